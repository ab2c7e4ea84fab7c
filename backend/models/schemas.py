"""Request/response schemas for the vocabulary API."""
from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

PartOfSpeech = Literal[
    "noun", "verb", "adjective", "adverb",
    "preposition", "conjunction", "interjection", "other",
]
SourceType = Literal["reading", "writing", "speaking", "manual", "other"]
ReviewFrequency = Literal["daily", "spaced", "custom"]

# Accepted as-is and normalised by clamp_rating, so no value is rejected
RawRating = int | float | str | None


def _strip_text(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("must not be blank")
    return v


def _normalise_tags(v: list[str]) -> list[str]:
    seen: list[str] = []
    for tag in v:
        tag = tag.strip().lower()
        if tag and tag not in seen:
            seen.append(tag)
    return seen


class WordCreate(BaseModel):
    word: str = Field(min_length=1, max_length=255)
    definition: str = Field(min_length=1)
    context: list[str] = Field(default_factory=list)
    examples: list[str] = Field(default_factory=list)
    pronunciation: str | None = None
    part_of_speech: PartOfSpeech = "other"
    difficulty: int = Field(default=5, ge=1, le=10)
    tags: list[str] = Field(default_factory=list)
    source_type: SourceType = "manual"
    source_id: str | None = None
    source_title: str | None = None

    @field_validator("word", "definition")
    @classmethod
    def strip_text(cls, v: str) -> str:
        return _strip_text(v)

    @field_validator("tags")
    @classmethod
    def normalise_tags(cls, v: list[str]) -> list[str]:
        return _normalise_tags(v)


class WordUpdate(BaseModel):
    """Partial edit of a word.

    Memory state is not editable. A ``performance`` value is applied as a
    review; ``expected_version`` turns the edit into a conditional write.
    """
    word: str | None = Field(default=None, min_length=1, max_length=255)
    definition: str | None = Field(default=None, min_length=1)
    context: list[str] | None = None
    examples: list[str] | None = None
    pronunciation: str | None = None
    part_of_speech: PartOfSpeech | None = None
    difficulty: int | None = Field(default=None, ge=1, le=10)
    tags: list[str] | None = None
    performance: RawRating = None
    review_context: str | None = Field(default=None, max_length=255)
    expected_version: int | None = Field(default=None, ge=1)

    class Config:
        extra = "forbid"

    @field_validator(
        "word", "definition", "context", "examples",
        "part_of_speech", "difficulty", "tags",
    )
    @classmethod
    def not_null(cls, v):
        if v is None:
            raise ValueError("may be omitted but not null")
        return v

    @field_validator("word", "definition")
    @classmethod
    def strip_text(cls, v: str) -> str:
        return _strip_text(v)

    @field_validator("tags")
    @classmethod
    def normalise_tags(cls, v: list[str]) -> list[str]:
        return _normalise_tags(v)

    def content_changes(self) -> dict:
        return self.model_dump(
            exclude_unset=True,
            exclude={"performance", "review_context", "expected_version"},
        )

    @property
    def has_review(self) -> bool:
        return "performance" in self.model_fields_set


class ReviewSubmit(BaseModel):
    performance: RawRating = None
    context: str | None = Field(default=None, max_length=255)


class WordResponse(BaseModel):
    id: UUID
    word: str
    definition: str
    context: list[str]
    examples: list[str]
    pronunciation: str | None
    part_of_speech: str
    difficulty: int
    tags: list[str]
    source_type: str
    source_id: str | None
    source_title: str | None
    mastery: int
    easiness_factor: float
    repetitions: int
    interval: int
    next_review: datetime
    last_reviewed: datetime | None
    version: int
    created_at: datetime | None
    updated_at: datetime | None

    class Config:
        from_attributes = True


class WordListResponse(BaseModel):
    items: list[WordResponse]
    total: int
    offset: int
    limit: int


class DueWordsResponse(BaseModel):
    items: list[WordResponse]
    total_due: int


class ReviewEventResponse(BaseModel):
    date: datetime
    performance: int
    context: str

    class Config:
        from_attributes = True


class ReviewHistoryPage(BaseModel):
    items: list[ReviewEventResponse]
    total: int
    offset: int
    limit: int


class BankStatsResponse(BaseModel):
    total_words: int
    mastered_words: int
    learning_words: int
    needs_review_words: int
    average_mastery: float
    study_streak: int
    last_study_session: datetime | None


class BankSettings(BaseModel):
    daily_word_goal: int
    review_frequency: str
    custom_review_intervals: list[int]
    notifications_enabled: bool

    class Config:
        from_attributes = True


class SettingsUpdate(BaseModel):
    daily_word_goal: int | None = Field(default=None, ge=1)
    review_frequency: ReviewFrequency | None = None
    custom_review_intervals: list[int] | None = None
    notifications_enabled: bool | None = None

    class Config:
        extra = "forbid"

    @field_validator("custom_review_intervals")
    @classmethod
    def positive_intervals(cls, v: list[int] | None) -> list[int] | None:
        if v is not None and any(days < 1 for days in v):
            raise ValueError("review intervals must be at least 1 day")
        return v
