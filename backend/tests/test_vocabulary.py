"""Vocabulary manager: bank, words, due queue, history and stats."""

from datetime import timedelta

import pytest

from conftest import NOW, OTHER_USER_ID, USER_ID
from core.cache import word_key
from core.errors import ErrorCode
from engines.reviews import ReviewService
from models.schemas import SettingsUpdate, WordCreate


async def add(manager, word, now=NOW, **fields):
    fields.setdefault("definition", f"meaning of {word}")
    return (await manager.add_word(USER_ID, WordCreate(word=word, **fields), now=now)).unwrap()


@pytest.mark.asyncio
async def test_bank_is_created_once(manager):
    first = (await manager.get_or_create_bank(USER_ID)).unwrap()
    second = (await manager.get_or_create_bank(USER_ID)).unwrap()

    assert first.id == second.id
    assert first.daily_word_goal == 5
    assert first.review_frequency == "spaced"
    assert first.notifications_enabled is True


@pytest.mark.asyncio
async def test_new_word_starts_fresh(manager, word):
    assert word.version == 1
    assert (word.mastery, word.easiness_factor, word.repetitions, word.interval) == (0, 2.5, 0, 0)
    assert word.next_review == NOW
    assert word.last_reviewed == NOW
    assert word.word == "Ephemeral"
    assert word.word_key == "ephemeral"

    events, total = (await manager.review_history(USER_ID, word.id)).unwrap()
    assert total == 1
    assert (events[0].performance, events[0].context) == (0, "Manually added")


@pytest.mark.asyncio
async def test_several_words_each_get_their_first_history_entry(manager):
    for text in ("alpha", "beta", "gamma"):
        word = (await manager.add_word(USER_ID, WordCreate(word=text, definition="letter"), now=NOW)).unwrap()
        events, total = (await manager.review_history(USER_ID, word.id)).unwrap()
        assert total == 1
        assert events[0].performance == 0


@pytest.mark.asyncio
async def test_source_is_recorded_in_first_history_entry(manager):
    data = WordCreate(word="laconic", definition="terse", source_type="reading", source_title="Dubliners")
    word = (await manager.add_word(USER_ID, data, now=NOW)).unwrap()

    events, _ = (await manager.review_history(USER_ID, word.id)).unwrap()
    assert events[0].context == "Added from reading: Dubliners"


@pytest.mark.asyncio
async def test_duplicate_word_ignores_case(manager, word):
    result = await manager.add_word(USER_ID, WordCreate(word="EPHEMERAL", definition="again"))

    error = result.unwrap_err()
    assert error.code is ErrorCode.E4011_DUPLICATE_KEY
    assert error.code.http_status == 409


@pytest.mark.asyncio
async def test_same_word_in_different_banks(manager, word):
    result = await manager.add_word(OTHER_USER_ID, WordCreate(word="ephemeral", definition="short-lived"))
    assert result.is_ok()


@pytest.mark.asyncio
async def test_delete_word_removes_it_and_invalidates_cache(manager, cache, word):
    cache.set(USER_ID, word_key(word.id), "cached")

    assert (await manager.delete_word(USER_ID, word.id)).is_ok()

    assert cache.get(USER_ID, word_key(word.id)) is None
    assert (await manager.get_word(USER_ID, word.id)).unwrap_err().code is ErrorCode.E4010_NOT_FOUND
    assert (await manager.delete_word(USER_ID, word.id)).unwrap_err().code is ErrorCode.E4010_NOT_FOUND


@pytest.mark.asyncio
async def test_other_users_cannot_delete(manager, word):
    result = await manager.delete_word(OTHER_USER_ID, word.id)
    assert result.unwrap_err().code is ErrorCode.E4010_NOT_FOUND
    assert (await manager.get_word(USER_ID, word.id)).is_ok()


@pytest.mark.asyncio
async def test_list_words_filters_and_pages(manager):
    await add(manager, "mitigate", part_of_speech="verb", tags=["Academic"])
    await add(manager, "cajole", part_of_speech="verb")
    await add(manager, "serendipity", part_of_speech="noun", definition="happy chance")
    await add(manager, "laconic", part_of_speech="adjective", tags=["literary", "academic"])

    words, total = (await manager.list_words(USER_ID, sort="word")).unwrap()
    assert total == 4
    assert [w.word for w in words] == ["cajole", "laconic", "mitigate", "serendipity"]

    words, total = (await manager.list_words(USER_ID, sort="-word", offset=1, limit=2)).unwrap()
    assert total == 4
    assert [w.word for w in words] == ["mitigate", "laconic"]

    words, _ = (await manager.list_words(USER_ID, part_of_speech="verb", sort="word")).unwrap()
    assert [w.word for w in words] == ["cajole", "mitigate"]

    words, _ = (await manager.list_words(USER_ID, search="CHANCE")).unwrap()
    assert [w.word for w in words] == ["serendipity"]

    words, total = (await manager.list_words(USER_ID, tag="academic", sort="word")).unwrap()
    assert total == 2
    assert [w.word for w in words] == ["laconic", "mitigate"]


@pytest.mark.asyncio
async def test_list_words_rejects_unknown_sort(manager):
    result = await manager.list_words(USER_ID, sort="password")
    assert result.unwrap_err().code is ErrorCode.E2000_VALIDATION_GENERIC


@pytest.mark.asyncio
async def test_list_words_due_only(manager, session):
    due = await add(manager, "due")
    not_due = await add(manager, "later")
    await ReviewService(session).submit_review(USER_ID, not_due.id, 4, now=NOW)

    words, total = (await manager.list_words(USER_ID, due_only=True, now=NOW + timedelta(hours=1))).unwrap()
    assert total == 1
    assert words[0].id == due.id


@pytest.mark.asyncio
async def test_due_words_ordered_by_priority(manager, session):
    service = ReviewService(session)
    hard = await add(manager, "hard")
    easy = await add(manager, "easy")
    very_overdue = await add(manager, "old", now=NOW - timedelta(days=10))
    future = await add(manager, "future")

    # Lapses push the easiness factor down; a perfect review pushes it up
    for _ in range(3):
        await service.submit_review(USER_ID, hard.id, 0, now=NOW - timedelta(days=1))
    await service.submit_review(USER_ID, easy.id, 4, now=NOW - timedelta(days=1))
    await service.submit_review(USER_ID, future.id, 4, now=NOW)

    words, total_due = (await manager.due_words(USER_ID, now=NOW)).unwrap()

    assert total_due == 3
    assert [w.id for w in words] == [very_overdue.id, hard.id, easy.id]

    words, total_due = (await manager.due_words(USER_ID, now=NOW, limit=1)).unwrap()
    assert total_due == 3
    assert len(words) == 1


@pytest.mark.asyncio
async def test_review_history_pages_oldest_first(manager, session, word):
    service = ReviewService(session)
    for rating in (1, 2, 3, 4):
        await service.submit_review(USER_ID, word.id, rating, now=NOW)

    events, total = (await manager.review_history(USER_ID, word.id, offset=1, limit=2)).unwrap()

    assert total == 5
    assert [e.performance for e in events] == [1, 2]


@pytest.mark.asyncio
async def test_stats(manager, session):
    service = ReviewService(session)
    a = await add(manager, "alpha", now=NOW - timedelta(days=1))
    await add(manager, "beta", now=NOW)
    await service.submit_review(USER_ID, a.id, 4, now=NOW)

    stats = (await manager.get_stats(USER_ID, now=NOW)).unwrap()

    assert stats.total_words == 2
    assert stats.learning_words == 1
    assert stats.mastered_words == 0
    assert stats.needs_review_words == 1
    assert stats.average_mastery == 7.5
    assert stats.study_streak == 2
    assert stats.last_study_session == NOW


@pytest.mark.asyncio
async def test_update_settings(manager):
    bank = (await manager.update_settings(
        USER_ID, SettingsUpdate(daily_word_goal=12, notifications_enabled=False)
    )).unwrap()

    assert bank.daily_word_goal == 12
    assert bank.notifications_enabled is False
    assert bank.review_frequency == "spaced"

    settings = (await manager.get_settings(USER_ID)).unwrap()
    assert settings.daily_word_goal == 12


@pytest.mark.asyncio
async def test_custom_frequency_needs_intervals(manager):
    result = await manager.update_settings(USER_ID, SettingsUpdate(review_frequency="custom"))
    assert result.unwrap_err().code is ErrorCode.E2000_VALIDATION_GENERIC

    bank = (await manager.update_settings(
        USER_ID, SettingsUpdate(review_frequency="custom", custom_review_intervals=[1, 3, 7])
    )).unwrap()
    assert bank.custom_review_intervals == [1, 3, 7]
