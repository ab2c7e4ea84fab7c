"""Review Service

Read, compute, conditional write. Each attempt re-reads the word, runs
the scheduler on that fresh state and saves with the version it read.
Version conflicts are retried with backoff; the loser of a race always
recomputes from the winner's state.
"""
from datetime import datetime
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from core.cache import KeyedCache
from core.clock import as_naive_utc, utcnow
from core.config import settings
from core.errors import AppError, ErrorCode, Err, Ok, Result
from core.logging import engine_logger
from core.resilience import RetryConfig, RetryPolicy
from engines.srs import MemoryState, ReviewScheduler, clamp_rating
from engines.store import WordStore
from models.vocabulary import VocabularyWord

log = engine_logger()

CONFLICT_MESSAGE = "Failed to update word. Please try again."


def review_retry_config(max_attempts: int | None = None) -> RetryConfig:
    return RetryConfig(
        max_attempts=max_attempts or settings.REVIEW_MAX_ATTEMPTS,
        base_delay_seconds=settings.REVIEW_RETRY_BASE_DELAY_SECONDS,
        retryable_codes=frozenset({ErrorCode.E4005_VERSION_CONFLICT}),
    )


class ReviewService:
    """Applies reviews and edits to stored words."""

    __slots__ = ("_store", "_cache", "_retry_config", "_scheduler")

    def __init__(
        self,
        db: AsyncSession,
        cache: KeyedCache | None = None,
        retry_config: RetryConfig | None = None,
        store: WordStore | None = None,
    ):
        self._store = store or WordStore(db)
        self._cache = cache
        self._retry_config = retry_config or review_retry_config()
        self._scheduler = ReviewScheduler()

    async def submit_review(
        self,
        user_id: UUID,
        word_id: UUID,
        rating,
        context: str | None = None,
        now: datetime | None = None,
    ) -> Result[VocabularyWord, AppError]:
        """Record one review of a word.

        ``rating`` may be anything; it is normalised to 0-4 first. Returns the
        saved word, ``not_found``, or a version conflict once attempts run out.
        """
        rating = clamp_rating(rating)

        async def attempt() -> Result[VocabularyWord, AppError]:
            loaded = await self._store.load_word(user_id, word_id)
            if loaded.is_err():
                return loaded
            word = loaded.unwrap()

            reviewed_at = as_naive_utc(now) if now else utcnow()
            outcome = self._scheduler.compute(rating, MemoryState.of(word), reviewed_at, context)
            state = outcome.state
            return await self._store.save_word(
                user_id,
                word_id,
                patch={
                    "mastery": state.mastery,
                    "easiness_factor": state.easiness_factor,
                    "repetitions": state.repetitions,
                    "interval": state.interval,
                    "next_review": outcome.next_review_date,
                    "last_reviewed": reviewed_at,
                },
                expected_version=word.version,
                history=outcome.record,
                study_session_at=reviewed_at,
            )

        result = await self._run(attempt, self._retry_config, word_id)
        if result.is_ok():
            word = result.unwrap()
            self._invalidate(user_id, word_id)
            log.info(
                "review_saved",
                word_id=str(word_id),
                rating=rating,
                interval=word.interval,
                mastery=word.mastery,
                version=word.version,
            )
        return result

    async def apply_edit(
        self,
        user_id: UUID,
        word_id: UUID,
        changes: dict,
        expected_version: int | None = None,
    ) -> Result[VocabularyWord, AppError]:
        """Edit content fields of a word.

        With ``expected_version`` the write happens only if the client saw the
        latest version; a conflict is reported, not retried.
        """
        changes = dict(changes)
        if changes.get("word"):
            changes["word_key"] = changes["word"].lower()

        async def attempt() -> Result[VocabularyWord, AppError]:
            version = expected_version
            if version is None:
                loaded = await self._store.load_word(user_id, word_id)
                if loaded.is_err():
                    return loaded
                version = loaded.unwrap().version
            return await self._store.save_word(user_id, word_id, changes, expected_version=version)

        config = self._retry_config
        if expected_version is not None:
            config = RetryConfig(max_attempts=1, retryable_codes=frozenset())

        result = await self._run(attempt, config, word_id)
        if result.is_ok():
            self._invalidate(user_id, word_id)
            log.info("word_edited", word_id=str(word_id), fields=sorted(changes))
        return result

    async def _run(self, attempt, config: RetryConfig, word_id: UUID) -> Result[VocabularyWord, AppError]:
        async def on_retry(attempt_number: int, error: AppError, delay: float) -> None:
            log.info(
                "review_conflict_retry",
                word_id=str(word_id),
                attempt=attempt_number,
                delay_seconds=round(delay, 3),
            )

        outcome = await RetryPolicy(config).execute(attempt, on_retry=on_retry)
        match outcome.result:
            case Ok(_):
                return outcome.result
            case Err(error) if error.code is ErrorCode.E4005_VERSION_CONFLICT:
                log.warning(
                    "review_conflict_exhausted",
                    word_id=str(word_id),
                    attempts=outcome.attempt_count,
                )
                return Err(AppError(
                    code=error.code,
                    message=CONFLICT_MESSAGE,
                    context=error.context,
                    metadata={**error.metadata, "attempts": outcome.attempt_count},
                    cause=error.cause,
                ))
            case Err(_):
                return outcome.result

    def _invalidate(self, user_id: UUID, word_id: UUID) -> None:
        if self._cache is not None:
            self._cache.invalidate_word(user_id, word_id)
