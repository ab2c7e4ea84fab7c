"""Vocabulary API with Monadic Error Handling

Word bank CRUD, reviews, the due queue, review history, statistics and
study settings. Engines return Results; routes unwrap them with
``raise_result`` so failures become structured error responses.
"""
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from core.cache import KeyedCache, get_cache, word_key
from core.database import get_db
from core.errors import raise_result
from core.security import get_current_user_id
from engines.reviews import ReviewService
from engines.vocabulary import VocabularyManager
from models.schemas import (
    BankSettings,
    BankStatsResponse,
    DueWordsResponse,
    PartOfSpeech,
    ReviewEventResponse,
    ReviewHistoryPage,
    ReviewSubmit,
    SettingsUpdate,
    WordCreate,
    WordListResponse,
    WordResponse,
    WordUpdate,
)

router = APIRouter()

STATS_KEY = "stats"


def get_manager(
    db: AsyncSession = Depends(get_db),
    cache: KeyedCache = Depends(get_cache),
) -> VocabularyManager:
    return VocabularyManager(db, cache)


def get_review_service(
    db: AsyncSession = Depends(get_db),
    cache: KeyedCache = Depends(get_cache),
) -> ReviewService:
    return ReviewService(db, cache)


# =============================================================================
# Words
# =============================================================================

@router.get("/words", response_model=WordListResponse)
async def list_words(
    search: str | None = Query(None, max_length=100),
    tag: str | None = Query(None, max_length=50),
    part_of_speech: PartOfSpeech | None = None,
    due_only: bool = False,
    sort: str = Query("next_review", description="Column name, '-' prefix for descending"),
    offset: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    user_id: UUID = Depends(get_current_user_id),
    manager: VocabularyManager = Depends(get_manager),
    cache: KeyedCache = Depends(get_cache),
):
    """List words in the bank with optional filters."""
    cache_key = ("words", search, tag, part_of_speech, due_only, sort, offset, limit)
    if not due_only:
        cached = cache.get(user_id, cache_key)
        if cached is not None:
            return cached

    result = await manager.list_words(
        user_id,
        search=search,
        tag=tag,
        part_of_speech=part_of_speech,
        due_only=due_only,
        sort=sort,
        offset=offset,
        limit=limit,
    )
    raise_result(result)
    words, total = result.unwrap()

    response = WordListResponse(
        items=[WordResponse.model_validate(w) for w in words],
        total=total,
        offset=offset,
        limit=limit,
    )
    if not due_only:
        cache.set(user_id, cache_key, response)
    return response


@router.post("/words", response_model=WordResponse, status_code=201)
async def add_word(
    data: WordCreate,
    user_id: UUID = Depends(get_current_user_id),
    manager: VocabularyManager = Depends(get_manager),
):
    """Add a word. Fails with 409 if the bank already has it (any case)."""
    result = await manager.add_word(user_id, data)
    raise_result(result)
    return result.unwrap()


@router.get("/words/{word_id}", response_model=WordResponse)
async def get_word(
    word_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    manager: VocabularyManager = Depends(get_manager),
    cache: KeyedCache = Depends(get_cache),
):
    cached = cache.get(user_id, word_key(word_id))
    if cached is not None:
        return cached

    result = await manager.get_word(user_id, word_id)
    raise_result(result)
    response = WordResponse.model_validate(result.unwrap())
    cache.set(user_id, word_key(word_id), response)
    return response


@router.patch("/words/{word_id}", response_model=WordResponse)
@router.put("/words/{word_id}", response_model=WordResponse)
async def update_word(
    word_id: UUID,
    data: WordUpdate,
    user_id: UUID = Depends(get_current_user_id),
    manager: VocabularyManager = Depends(get_manager),
    service: ReviewService = Depends(get_review_service),
):
    """Edit word content and/or record a review.

    A ``performance`` value is scored exactly like ``POST /words/{id}/review``.
    """
    changes = data.content_changes()
    word = None

    if changes:
        result = await service.apply_edit(user_id, word_id, changes, data.expected_version)
        raise_result(result)
        word = result.unwrap()

    if data.has_review:
        result = await service.submit_review(user_id, word_id, data.performance, data.review_context)
        raise_result(result)
        word = result.unwrap()

    if word is None:
        result = await manager.get_word(user_id, word_id)
        raise_result(result)
        word = result.unwrap()
    return word


@router.delete("/words/{word_id}", status_code=204)
async def delete_word(
    word_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    manager: VocabularyManager = Depends(get_manager),
):
    result = await manager.delete_word(user_id, word_id)
    raise_result(result)


@router.post("/words/{word_id}/review", response_model=WordResponse)
async def review_word(
    word_id: UUID,
    data: ReviewSubmit,
    user_id: UUID = Depends(get_current_user_id),
    service: ReviewService = Depends(get_review_service),
):
    """Submit a 0-4 performance rating and reschedule the word."""
    result = await service.submit_review(user_id, word_id, data.performance, data.context)
    raise_result(result)
    return result.unwrap()


@router.get("/words/{word_id}/history", response_model=ReviewHistoryPage)
async def get_review_history(
    word_id: UUID,
    offset: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    user_id: UUID = Depends(get_current_user_id),
    manager: VocabularyManager = Depends(get_manager),
):
    result = await manager.review_history(user_id, word_id, offset=offset, limit=limit)
    raise_result(result)
    events, total = result.unwrap()
    return ReviewHistoryPage(
        items=[ReviewEventResponse.model_validate(e) for e in events],
        total=total,
        offset=offset,
        limit=limit,
    )


# =============================================================================
# Bank
# =============================================================================

@router.get("/due", response_model=DueWordsResponse)
async def get_due_words(
    limit: int | None = Query(None, ge=1, le=200),
    user_id: UUID = Depends(get_current_user_id),
    manager: VocabularyManager = Depends(get_manager),
):
    """Words due for review, most urgent first."""
    result = await manager.due_words(user_id, limit=limit)
    raise_result(result)
    words, total_due = result.unwrap()
    return DueWordsResponse(
        items=[WordResponse.model_validate(w) for w in words],
        total_due=total_due,
    )


@router.get("/stats", response_model=BankStatsResponse)
async def get_stats(
    user_id: UUID = Depends(get_current_user_id),
    manager: VocabularyManager = Depends(get_manager),
    cache: KeyedCache = Depends(get_cache),
):
    cached = cache.get(user_id, STATS_KEY)
    if cached is not None:
        return cached

    result = await manager.get_stats(user_id)
    raise_result(result)
    stats = result.unwrap()
    response = BankStatsResponse(
        total_words=stats.total_words,
        mastered_words=stats.mastered_words,
        learning_words=stats.learning_words,
        needs_review_words=stats.needs_review_words,
        average_mastery=stats.average_mastery,
        study_streak=stats.study_streak,
        last_study_session=stats.last_study_session,
    )
    cache.set(user_id, STATS_KEY, response)
    return response


@router.get("/settings", response_model=BankSettings)
async def get_settings(
    user_id: UUID = Depends(get_current_user_id),
    manager: VocabularyManager = Depends(get_manager),
):
    result = await manager.get_settings(user_id)
    raise_result(result)
    return result.unwrap()


@router.patch("/settings", response_model=BankSettings)
async def update_settings(
    data: SettingsUpdate,
    user_id: UUID = Depends(get_current_user_id),
    manager: VocabularyManager = Depends(get_manager),
):
    result = await manager.update_settings(user_id, data)
    raise_result(result)
    return result.unwrap()
