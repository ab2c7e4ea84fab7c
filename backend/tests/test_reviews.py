"""Review service: read-compute-write with conflict retries."""

import asyncio
from datetime import timedelta
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from conftest import NOW, USER_ID
from core.cache import word_key
from core.errors import ErrorCode
from core.resilience import RetryConfig
from engines.reviews import CONFLICT_MESSAGE, ReviewService
from engines.store import WordStore
from models.schemas import WordCreate, WordUpdate
from models.vocabulary import ReviewEvent, VocabularyBank

FAST_RETRY = RetryConfig(
    max_attempts=3,
    base_delay_seconds=0,
    retryable_codes=frozenset({ErrorCode.E4005_VERSION_CONFLICT}),
)


class InterferingStore(WordStore):
    """Lets another writer review the word right after each of the first N reads."""

    def __init__(self, session, session_factory, interferences: int = 1):
        super().__init__(session)
        self.session_factory = session_factory
        self.remaining = interferences
        self.loads = 0

    async def load_word(self, user_id, word_id):
        result = await super().load_word(user_id, word_id)
        self.loads += 1
        if self.remaining and result.is_ok():
            self.remaining -= 1
            async with self.session_factory() as other:
                competitor = ReviewService(other, retry_config=RetryConfig(max_attempts=1))
                (await competitor.submit_review(user_id, word_id, 4, context="other device", now=NOW)).unwrap()
        return result


async def history(session, word_id) -> list[ReviewEvent]:
    return (await session.execute(
        select(ReviewEvent).where(ReviewEvent.word_id == word_id).order_by(ReviewEvent.id)
    )).scalars().all()


@pytest.mark.asyncio
async def test_review_updates_state_history_and_bank(session, word):
    service = ReviewService(session, retry_config=FAST_RETRY)
    reviewed_at = NOW + timedelta(hours=1)

    result = await service.submit_review(USER_ID, word.id, 4, context="Flashcards", now=reviewed_at)

    updated = result.unwrap()
    assert updated.version == 2
    assert updated.repetitions == 1
    assert updated.interval == 1
    assert updated.easiness_factor == pytest.approx(2.6)
    assert updated.mastery == 15
    assert updated.next_review == reviewed_at + timedelta(days=1)
    assert updated.last_reviewed == reviewed_at

    events = await history(session, word.id)
    assert [(e.performance, e.context) for e in events] == [(0, "Manually added"), (4, "Flashcards")]

    bank = (await session.execute(
        select(VocabularyBank).where(VocabularyBank.user_id == USER_ID).execution_options(populate_existing=True)
    )).scalar_one()
    assert bank.last_study_session == reviewed_at


@pytest.mark.asyncio
async def test_malformed_rating_is_normalised(session, word):
    service = ReviewService(session, retry_config=FAST_RETRY)

    updated = (await service.submit_review(USER_ID, word.id, "not a number", now=NOW)).unwrap()

    assert updated.mastery == 5
    assert (await history(session, word.id))[-1].performance == 2


@pytest.mark.asyncio
async def test_conflict_is_retried_from_fresh_state(session, session_factory, word):
    store = InterferingStore(session, session_factory, interferences=1)
    service = ReviewService(session, retry_config=FAST_RETRY, store=store)
    word_id = word.id

    updated = (await service.submit_review(USER_ID, word_id, 3, now=NOW)).unwrap()

    # Two reads before computing, one re-read of the saved row
    assert store.loads == 3
    assert updated.version == 3
    # Both reviews count: the competitor's 4 then ours on top of it
    assert updated.repetitions == 2
    assert updated.interval == 6
    assert updated.mastery == 25
    assert [e.context for e in await history(session, word_id)] == [
        "Manually added", "other device", "Spaced repetition review",
    ]


@pytest.mark.asyncio
async def test_conflict_gives_up_after_max_attempts(session, session_factory, word):
    store = InterferingStore(session, session_factory, interferences=10)
    service = ReviewService(session, retry_config=FAST_RETRY, store=store)

    result = await service.submit_review(USER_ID, word.id, 3, now=NOW)

    error = result.unwrap_err()
    assert error.code is ErrorCode.E4005_VERSION_CONFLICT
    assert error.message == CONFLICT_MESSAGE
    assert error.metadata["attempts"] == 3
    assert store.loads == 3


@pytest.mark.asyncio
async def test_concurrent_reviews_do_not_lose_updates(session_factory, word):
    async def review(rating):
        async with session_factory() as s:
            service = ReviewService(s, retry_config=RetryConfig(max_attempts=5, base_delay_seconds=0.01))
            return await service.submit_review(USER_ID, word.id, rating, now=NOW)

    results = await asyncio.gather(review(3), review(3))

    assert all(r.is_ok() for r in results)
    async with session_factory() as s:
        final = (await WordStore(s).load_word(USER_ID, word.id)).unwrap()
        assert final.version == 3
        assert final.repetitions == 2
        assert len(await history(s, word.id)) == 3


@pytest.mark.asyncio
async def test_missing_word_is_not_retried(session):
    store = InterferingStore(session, None, interferences=0)
    service = ReviewService(session, retry_config=FAST_RETRY, store=store)

    result = await service.submit_review(USER_ID, uuid4(), 3, now=NOW)

    assert result.unwrap_err().code is ErrorCode.E4010_NOT_FOUND
    assert store.loads == 1


@pytest.mark.asyncio
async def test_review_invalidates_cached_word(session, cache, word):
    cache.set(USER_ID, word_key(word.id), "stale")
    cache.set(USER_ID, "stats", "stale")
    service = ReviewService(session, cache, retry_config=FAST_RETRY)

    (await service.submit_review(USER_ID, word.id, 2, now=NOW)).unwrap()

    assert cache.get(USER_ID, word_key(word.id)) is None
    assert cache.get(USER_ID, "stats") is None


@pytest.mark.asyncio
async def test_edit_content(session, word):
    service = ReviewService(session, retry_config=FAST_RETRY)

    changes = WordUpdate(word=" Transient ", tags=["B1", "b1"]).content_changes()

    updated = (await service.apply_edit(USER_ID, word.id, changes)).unwrap()

    assert updated.word == "Transient"
    assert updated.word_key == "transient"
    assert updated.tags == ["b1"]
    assert updated.version == 2
    # Memory state untouched
    assert (updated.repetitions, updated.mastery) == (0, 0)


@pytest.mark.asyncio
async def test_edit_with_stale_expected_version_is_not_retried(session, word):
    service = ReviewService(session, retry_config=FAST_RETRY)
    (await service.submit_review(USER_ID, word.id, 3, now=NOW)).unwrap()

    result = await service.apply_edit(USER_ID, word.id, {"definition": "brief"}, expected_version=1)

    error = result.unwrap_err()
    assert error.code is ErrorCode.E4005_VERSION_CONFLICT
    assert error.metadata["attempts"] == 1


@pytest.mark.asyncio
async def test_rename_to_existing_word_is_duplicate(session, manager, word):
    other = (await manager.add_word(USER_ID, WordCreate(word="fleeting", definition="brief"), now=NOW)).unwrap()
    service = ReviewService(session, retry_config=FAST_RETRY)

    result = await service.apply_edit(USER_ID, other.id, {"word": "EPHEMERAL"})

    assert result.unwrap_err().code is ErrorCode.E4011_DUPLICATE_KEY
    count = await session.scalar(select(func.count()).select_from(ReviewEvent))
    assert count == 2
