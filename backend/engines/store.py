"""Word Store

Versioned persistence for vocabulary words. Every write is a conditional
UPDATE on ``version``; a writer holding a stale copy updates zero rows and
gets a retryable version conflict instead of overwriting newer state.
"""
from datetime import datetime
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.clock import utcnow
from core.config import settings
from core.errors import (
    AppError, DatabaseErrorMapper, Err, Ok, Result,
    not_found, validation_error, version_conflict,
)
from core.logging import db_logger
from engines.srs import ReviewRecord
from models.vocabulary import ReviewEvent, VocabularyBank, VocabularyWord

log = db_logger()

EDITABLE_COLUMNS = frozenset({
    # content
    "word", "word_key", "definition", "context", "examples", "pronunciation",
    "part_of_speech", "difficulty", "tags",
    # memory state
    "mastery", "easiness_factor", "repetitions", "interval",
    "next_review", "last_reviewed",
})


class WordStore:
    """Loads and conditionally saves words within one user's bank."""

    __slots__ = ("_db", "_history_limit", "_errors")

    def __init__(self, db: AsyncSession, history_limit: int | None = None):
        self._db = db
        self._history_limit = history_limit or settings.REVIEW_HISTORY_LIMIT
        self._errors = DatabaseErrorMapper(origin="word_store")

    def _owned_word(self, user_id: UUID, word_id: UUID):
        bank_ids = select(VocabularyBank.id).where(VocabularyBank.user_id == user_id)
        return (VocabularyWord.id == word_id, VocabularyWord.bank_id.in_(bank_ids))

    async def load_word(self, user_id: UUID, word_id: UUID) -> Result[VocabularyWord, AppError]:
        """Read the current row, refreshing any copy already in the session."""
        stmt = (
            select(VocabularyWord)
            .where(*self._owned_word(user_id, word_id))
            .execution_options(populate_existing=True)
        )
        try:
            word = (await self._db.execute(stmt)).scalar_one_or_none()
        except SQLAlchemyError as exc:
            return Err(self._errors.map_exception(exc))

        if word is None:
            return not_found("VocabularyWord", word_id, origin="word_store")
        return Ok(word)

    async def save_word(
        self,
        user_id: UUID,
        word_id: UUID,
        patch: dict,
        expected_version: int,
        history: ReviewRecord | None = None,
        study_session_at: datetime | None = None,
    ) -> Result[VocabularyWord, AppError]:
        """Apply ``patch`` if the stored version still equals ``expected_version``.

        The version bump, the optional history record (with trimming) and the
        bank's study-session timestamp commit together or not at all.
        """
        unknown = set(patch) - EDITABLE_COLUMNS
        if unknown:
            return validation_error(
                f"Fields not editable: {', '.join(sorted(unknown))}",
                field=sorted(unknown)[0],
                origin="word_store",
            )

        stmt = (
            update(VocabularyWord)
            .where(*self._owned_word(user_id, word_id))
            .where(VocabularyWord.version == expected_version)
            .values(**patch, version=expected_version + 1, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )

        try:
            result = await self._db.execute(stmt)
            if result.rowcount == 0:
                await self._db.rollback()
                return await self._missed_update(user_id, word_id, expected_version)

            if history is not None:
                self._db.add(ReviewEvent(
                    word_id=word_id,
                    date=history.date,
                    performance=history.performance,
                    context=history.context,
                ))
                await self._db.flush()
                await self._trim_history(word_id)

            if study_session_at is not None:
                await self._db.execute(
                    update(VocabularyBank)
                    .where(VocabularyBank.user_id == user_id)
                    .values(last_study_session=study_session_at)
                    .execution_options(synchronize_session=False)
                )

            await self._db.commit()
        except SQLAlchemyError as exc:
            await self._db.rollback()
            error = self._errors.map_exception(exc)
            log.warning("word_save_failed", word_id=str(word_id), code=error.code.name)
            return Err(error)

        log.debug("word_saved", word_id=str(word_id), version=expected_version + 1)
        return await self.load_word(user_id, word_id)

    async def _missed_update(
        self, user_id: UUID, word_id: UUID, expected_version: int
    ) -> Result[VocabularyWord, AppError]:
        """Tell a stale version apart from a missing word after a zero-row update."""
        try:
            exists = await self._db.scalar(
                select(func.count()).select_from(VocabularyWord)
                .where(*self._owned_word(user_id, word_id))
            )
        except SQLAlchemyError as exc:
            return Err(self._errors.map_exception(exc))

        if not exists:
            return not_found("VocabularyWord", word_id, origin="word_store")
        log.info("word_version_conflict", word_id=str(word_id), expected_version=expected_version)
        return version_conflict("VocabularyWord", word_id, expected_version, origin="word_store")

    async def _trim_history(self, word_id: UUID) -> None:
        keep = (
            select(ReviewEvent.id)
            .where(ReviewEvent.word_id == word_id)
            .order_by(ReviewEvent.id.desc())
            .limit(self._history_limit)
        )
        result = await self._db.execute(
            delete(ReviewEvent)
            .where(ReviewEvent.word_id == word_id, ReviewEvent.id.not_in(keep))
            .execution_options(synchronize_session=False)
        )
        if result.rowcount:
            log.debug("review_history_trimmed", word_id=str(word_id), removed=result.rowcount)
