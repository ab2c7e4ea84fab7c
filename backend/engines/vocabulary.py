"""Vocabulary Manager

Bank-level operations: word CRUD, filtered listing, the due queue,
review history pages, statistics and study settings. Reviews and edits
of existing words go through ``ReviewService``.
"""
from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import delete, func, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.cache import KeyedCache
from core.clock import as_naive_utc, utcnow
from core.config import settings
from core.errors import (
    AppError, DatabaseErrorMapper, Err, Ok, Result,
    duplicate_key, not_found, validation_error,
)
from core.logging import engine_logger
from engines.srs import DEFAULT_EASINESS_FACTOR, MemoryState, PerformanceRating, ReviewScheduler
from engines.stats import BankStats, compute_bank_stats
from engines.store import WordStore
from models.schemas import SettingsUpdate, WordCreate
from models.vocabulary import ReviewEvent, VocabularyBank, VocabularyWord

log = engine_logger()

SORT_COLUMNS = {
    "next_review": VocabularyWord.next_review,
    "word": VocabularyWord.word_key,
    "mastery": VocabularyWord.mastery,
    "created_at": VocabularyWord.created_at,
    "difficulty": VocabularyWord.difficulty,
}


def initial_review_context(data: WordCreate) -> str:
    if data.source_type != "manual" and data.source_title:
        return f"Added from {data.source_type}: {data.source_title}"
    return "Manually added"


class VocabularyManager:
    """Manages one learner's vocabulary bank."""

    __slots__ = ("_db", "_cache", "_store", "_errors")

    def __init__(self, db: AsyncSession, cache: KeyedCache | None = None):
        self._db = db
        self._cache = cache
        self._store = WordStore(db)
        self._errors = DatabaseErrorMapper(origin="vocabulary")

    # -------------------------------------------------------------------------
    # Bank
    # -------------------------------------------------------------------------

    async def _find_bank(self, user_id: UUID) -> VocabularyBank | None:
        stmt = (
            select(VocabularyBank)
            .where(VocabularyBank.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        return (await self._db.execute(stmt)).scalar_one_or_none()

    async def get_or_create_bank(self, user_id: UUID) -> Result[VocabularyBank, AppError]:
        """Return the user's bank, creating it with default settings."""
        try:
            bank = await self._find_bank(user_id)
            if bank is not None:
                return Ok(bank)

            bank = VocabularyBank(id=uuid4(), user_id=user_id, custom_review_intervals=[])
            self._db.add(bank)
            await self._db.commit()
            log.info("bank_created", user_id=str(user_id))
            return Ok(bank)
        except IntegrityError:
            # Created concurrently by another request
            await self._db.rollback()
            bank = await self._find_bank(user_id)
            if bank is None:
                return not_found("VocabularyBank", user_id, origin="vocabulary")
            return Ok(bank)
        except SQLAlchemyError as exc:
            await self._db.rollback()
            return Err(self._errors.map_exception(exc))

    async def get_settings(self, user_id: UUID) -> Result[VocabularyBank, AppError]:
        return await self.get_or_create_bank(user_id)

    async def update_settings(
        self, user_id: UUID, changes: SettingsUpdate
    ) -> Result[VocabularyBank, AppError]:
        result = await self.get_or_create_bank(user_id)
        if result.is_err():
            return result
        bank = result.unwrap()

        updates = changes.model_dump(exclude_unset=True)
        if updates.get("review_frequency") == "custom" and not (
            updates.get("custom_review_intervals") or bank.custom_review_intervals
        ):
            return validation_error(
                "Custom review frequency needs at least one interval",
                field="custom_review_intervals",
                origin="vocabulary",
            )

        for name, value in updates.items():
            setattr(bank, name, value)
        try:
            await self._db.commit()
        except SQLAlchemyError as exc:
            await self._db.rollback()
            return Err(self._errors.map_exception(exc))

        log.info("settings_updated", user_id=str(user_id), fields=sorted(updates))
        return Ok(bank)

    # -------------------------------------------------------------------------
    # Words
    # -------------------------------------------------------------------------

    async def add_word(
        self, user_id: UUID, data: WordCreate, now: datetime | None = None
    ) -> Result[VocabularyWord, AppError]:
        """Add a new word in its initial memory state.

        Words are unique per bank ignoring case. The first history entry
        records where the word came from.
        """
        result = await self.get_or_create_bank(user_id)
        if result.is_err():
            return result
        bank = result.unwrap()

        now = as_naive_utc(now) if now else utcnow()
        key = data.word.lower()
        try:
            existing = await self._db.scalar(
                select(VocabularyWord.id).where(
                    VocabularyWord.bank_id == bank.id,
                    VocabularyWord.word_key == key,
                )
            )
            if existing is not None:
                return duplicate_key("VocabularyWord", "word", data.word, origin="vocabulary")

            word = VocabularyWord(
                id=uuid4(),
                bank_id=bank.id,
                word_key=key,
                **data.model_dump(),
                mastery=0,
                easiness_factor=DEFAULT_EASINESS_FACTOR,
                repetitions=0,
                interval=0,
                next_review=now,
                last_reviewed=now,
                version=1,
            )
            self._db.add(word)
            # The event row references the word, so the word is inserted first
            await self._db.flush()
            self._db.add(ReviewEvent(
                word_id=word.id,
                date=now,
                performance=int(PerformanceRating.FORGOT),
                context=initial_review_context(data),
            ))
            await self._db.commit()
        except SQLAlchemyError as exc:
            await self._db.rollback()
            return Err(self._errors.map_exception(exc))

        self._invalidate(user_id, word.id)
        log.info("word_added", user_id=str(user_id), word_id=str(word.id), source=data.source_type)
        return Ok(word)

    async def get_word(self, user_id: UUID, word_id: UUID) -> Result[VocabularyWord, AppError]:
        return await self._store.load_word(user_id, word_id)

    async def delete_word(self, user_id: UUID, word_id: UUID) -> Result[None, AppError]:
        """Delete a word and its history."""
        result = await self._store.load_word(user_id, word_id)
        if result.is_err():
            return result
        word = result.unwrap()

        try:
            await self._db.execute(delete(ReviewEvent).where(ReviewEvent.word_id == word_id))
            await self._db.delete(word)
            await self._db.commit()
        except SQLAlchemyError as exc:
            await self._db.rollback()
            return Err(self._errors.map_exception(exc))

        self._invalidate(user_id, word_id)
        log.info("word_deleted", user_id=str(user_id), word_id=str(word_id))
        return Ok(None)

    async def list_words(
        self,
        user_id: UUID,
        *,
        search: str | None = None,
        tag: str | None = None,
        part_of_speech: str | None = None,
        due_only: bool = False,
        sort: str = "next_review",
        offset: int = 0,
        limit: int = 50,
        now: datetime | None = None,
    ) -> Result[tuple[list[VocabularyWord], int], AppError]:
        """Filtered, sorted page of words plus the total match count.

        ``sort`` is a column name, prefixed with ``-`` for descending.
        """
        column = SORT_COLUMNS.get(sort.lstrip("-"))
        if column is None:
            return validation_error(
                f"Unknown sort field '{sort}'",
                field="sort",
                value=sort,
                allowed=sorted(SORT_COLUMNS),
                origin="vocabulary",
            )
        order = column.desc() if sort.startswith("-") else column.asc()

        stmt = (
            select(VocabularyWord)
            .join(VocabularyBank, VocabularyWord.bank_id == VocabularyBank.id)
            .where(VocabularyBank.user_id == user_id)
        )
        if search:
            pattern = f"%{search.strip().lower()}%"
            stmt = stmt.where(or_(
                VocabularyWord.word_key.like(pattern),
                func.lower(VocabularyWord.definition).like(pattern),
            ))
        if part_of_speech:
            stmt = stmt.where(VocabularyWord.part_of_speech == part_of_speech)
        if due_only:
            stmt = stmt.where(VocabularyWord.next_review <= (now or utcnow()))
        stmt = stmt.order_by(order, VocabularyWord.id)

        try:
            if tag:
                # Tags live in a JSON list, matched after loading
                wanted = tag.strip().lower()
                rows = (await self._db.execute(stmt)).scalars().all()
                matching = [w for w in rows if wanted in (w.tags or [])]
                return Ok((matching[offset:offset + limit], len(matching)))

            total = await self._db.scalar(select(func.count()).select_from(stmt.order_by(None).subquery()))
            rows = (await self._db.execute(stmt.offset(offset).limit(limit))).scalars().all()
        except SQLAlchemyError as exc:
            return Err(self._errors.map_exception(exc))
        return Ok((list(rows), total or 0))

    async def due_words(
        self, user_id: UUID, now: datetime | None = None, limit: int | None = None
    ) -> Result[tuple[list[VocabularyWord], int], AppError]:
        """Words due at ``now``, most urgent first, plus the total due count."""
        now = as_naive_utc(now) if now else utcnow()
        limit = limit or settings.DUE_QUEUE_LIMIT
        stmt = (
            select(VocabularyWord)
            .join(VocabularyBank, VocabularyWord.bank_id == VocabularyBank.id)
            .where(VocabularyBank.user_id == user_id, VocabularyWord.next_review <= now)
        )
        try:
            rows = (await self._db.execute(stmt)).scalars().all()
        except SQLAlchemyError as exc:
            return Err(self._errors.map_exception(exc))

        scheduler = ReviewScheduler()
        ranked = sorted(
            rows,
            key=lambda w: (-scheduler.review_priority(MemoryState.of(w), w.next_review, now), w.next_review),
        )
        return Ok((ranked[:limit], len(ranked)))

    async def review_history(
        self, user_id: UUID, word_id: UUID, offset: int = 0, limit: int = 50
    ) -> Result[tuple[list[ReviewEvent], int], AppError]:
        """Page of a word's review log, oldest first, plus its length."""
        result = await self._store.load_word(user_id, word_id)
        if result.is_err():
            return result

        base = select(ReviewEvent).where(ReviewEvent.word_id == word_id)
        try:
            total = await self._db.scalar(
                select(func.count()).select_from(ReviewEvent).where(ReviewEvent.word_id == word_id)
            )
            rows = (await self._db.execute(
                base.order_by(ReviewEvent.id.asc()).offset(offset).limit(limit)
            )).scalars().all()
        except SQLAlchemyError as exc:
            return Err(self._errors.map_exception(exc))
        return Ok((list(rows), total or 0))

    async def get_stats(self, user_id: UUID, now: datetime | None = None) -> Result[BankStats, AppError]:
        result = await self.get_or_create_bank(user_id)
        if result.is_err():
            return result
        bank = result.unwrap()

        try:
            words = (await self._db.execute(
                select(VocabularyWord.mastery, VocabularyWord.next_review)
                .where(VocabularyWord.bank_id == bank.id)
            )).all()
            review_dates = (await self._db.execute(
                select(ReviewEvent.date)
                .join(VocabularyWord, ReviewEvent.word_id == VocabularyWord.id)
                .where(VocabularyWord.bank_id == bank.id)
            )).scalars().all()
        except SQLAlchemyError as exc:
            return Err(self._errors.map_exception(exc))

        return Ok(compute_bank_stats(words, now or utcnow(), review_dates, bank.last_study_session))

    def _invalidate(self, user_id: UUID, word_id: UUID) -> None:
        if self._cache is not None:
            self._cache.invalidate_word(user_id, word_id)
