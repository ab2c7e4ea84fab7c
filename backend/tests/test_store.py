"""Versioned word persistence."""

from datetime import timedelta
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from conftest import NOW, OTHER_USER_ID, USER_ID
from core.errors import ErrorCode
from engines.srs import ReviewRecord
from engines.store import WordStore
from models.vocabulary import ReviewEvent, VocabularyBank


async def count_events(session, word_id) -> int:
    return await session.scalar(
        select(func.count()).select_from(ReviewEvent).where(ReviewEvent.word_id == word_id)
    )


@pytest.mark.asyncio
async def test_load_word_is_scoped_to_owner(session, word):
    store = WordStore(session)

    assert (await store.load_word(USER_ID, word.id)).unwrap().id == word.id

    result = await store.load_word(OTHER_USER_ID, word.id)
    assert result.is_err()
    assert result.unwrap_err().code is ErrorCode.E4010_NOT_FOUND


@pytest.mark.asyncio
async def test_save_bumps_version(session, word):
    store = WordStore(session)

    result = await store.save_word(USER_ID, word.id, {"mastery": 40, "interval": 3}, expected_version=1)

    saved = result.unwrap()
    assert saved.version == 2
    assert saved.mastery == 40
    assert saved.interval == 3


@pytest.mark.asyncio
async def test_stale_version_is_a_conflict(session, word):
    store = WordStore(session)
    word_id = word.id
    (await store.save_word(USER_ID, word_id, {"mastery": 40}, expected_version=1)).unwrap()

    result = await store.save_word(USER_ID, word_id, {"mastery": 90}, expected_version=1)

    error = result.unwrap_err()
    assert error.code is ErrorCode.E4005_VERSION_CONFLICT
    assert error.code.http_status == 409
    assert error.retryable
    assert (await store.load_word(USER_ID, word_id)).unwrap().mastery == 40


@pytest.mark.asyncio
async def test_missing_word_is_not_found(session, word):
    store = WordStore(session)
    word_id = word.id

    result = await store.save_word(USER_ID, uuid4(), {"mastery": 10}, expected_version=1)
    assert result.unwrap_err().code is ErrorCode.E4010_NOT_FOUND

    result = await store.save_word(OTHER_USER_ID, word_id, {"mastery": 10}, expected_version=1)
    assert result.unwrap_err().code is ErrorCode.E4010_NOT_FOUND


@pytest.mark.asyncio
async def test_only_whitelisted_columns_are_patched(session, word):
    store = WordStore(session)

    result = await store.save_word(USER_ID, word.id, {"version": 99, "bank_id": uuid4()}, expected_version=1)

    error = result.unwrap_err()
    assert error.code is ErrorCode.E2000_VALIDATION_GENERIC
    assert (await store.load_word(USER_ID, word.id)).unwrap().version == 1


@pytest.mark.asyncio
async def test_history_is_written_with_the_save_and_capped(session, word):
    store = WordStore(session, history_limit=3)
    version = word.version

    for day in range(5):
        record = ReviewRecord(date=NOW + timedelta(days=day), performance=day % 5, context=f"review {day}")
        version = (await store.save_word(USER_ID, word.id, {}, version, history=record)).unwrap().version

    assert version == 6
    assert await count_events(session, word.id) == 3
    contexts = (await session.execute(
        select(ReviewEvent.context).where(ReviewEvent.word_id == word.id).order_by(ReviewEvent.id)
    )).scalars().all()
    assert contexts == ["review 2", "review 3", "review 4"]


@pytest.mark.asyncio
async def test_conflict_writes_no_history(session, word):
    store = WordStore(session)
    word_id = word.id
    before = await count_events(session, word_id)

    record = ReviewRecord(date=NOW, performance=3, context="stale")
    result = await store.save_word(USER_ID, word_id, {"mastery": 5}, expected_version=7, history=record)

    assert result.is_err()
    assert await count_events(session, word_id) == before


@pytest.mark.asyncio
async def test_study_session_is_recorded_on_the_bank(session, word):
    store = WordStore(session)
    reviewed_at = NOW + timedelta(hours=2)

    await store.save_word(USER_ID, word.id, {"last_reviewed": reviewed_at}, 1, study_session_at=reviewed_at)

    bank = (await session.execute(
        select(VocabularyBank)
        .where(VocabularyBank.user_id == USER_ID)
        .execution_options(populate_existing=True)
    )).scalar_one()
    assert bank.last_study_session == reviewed_at
