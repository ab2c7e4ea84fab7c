from uuid import uuid4

from sqlalchemy import (
    Boolean, CheckConstraint, Column, DateTime, Float, ForeignKey, Index,
    Integer, JSON, String, Text, UniqueConstraint,
)
from sqlalchemy.orm import relationship

from core.clock import utcnow
from core.database import Base, GUID

PARTS_OF_SPEECH = (
    "noun", "verb", "adjective", "adverb",
    "preposition", "conjunction", "interjection", "other",
)
SOURCE_TYPES = ("reading", "writing", "speaking", "manual", "other")
REVIEW_FREQUENCIES = ("daily", "spaced", "custom")


class VocabularyBank(Base):
    """One learner's vocabulary collection and study preferences."""
    __tablename__ = "vocabulary_banks"

    id = Column(GUID, primary_key=True, default=uuid4)
    user_id = Column(GUID, nullable=False, unique=True, index=True)
    daily_word_goal = Column(Integer, nullable=False, default=5)
    review_frequency = Column(String(10), nullable=False, default="spaced")
    custom_review_intervals = Column(JSON, default=list)
    notifications_enabled = Column(Boolean, nullable=False, default=True)
    last_study_session = Column(DateTime)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    words = relationship("VocabularyWord", back_populates="bank", passive_deletes=True)

    __table_args__ = (
        CheckConstraint("daily_word_goal >= 1", name="ck_bank_daily_goal"),
    )


class VocabularyWord(Base):
    """A word in a bank: display content plus SM-2 memory state.

    ``version`` increases on every save; writers compare it before
    updating so concurrent reviews can't overwrite each other.
    """
    __tablename__ = "vocabulary_words"

    id = Column(GUID, primary_key=True, default=uuid4)
    bank_id = Column(GUID, ForeignKey("vocabulary_banks.id", ondelete="CASCADE"), nullable=False)
    word = Column(String(255), nullable=False)
    word_key = Column(String(255), nullable=False)  # lower-cased, unique per bank
    definition = Column(Text, nullable=False)
    context = Column(JSON, default=list)
    examples = Column(JSON, default=list)
    pronunciation = Column(String(255))
    part_of_speech = Column(String(20), nullable=False, default="other")
    difficulty = Column(Integer, nullable=False, default=5)  # 1-10
    tags = Column(JSON, default=list)
    source_type = Column(String(20), nullable=False, default="manual")
    source_id = Column(String(64))
    source_title = Column(String(255))

    # Memory state
    mastery = Column(Integer, nullable=False, default=0)  # 0-100, user-facing only
    easiness_factor = Column(Float, nullable=False, default=2.5)
    repetitions = Column(Integer, nullable=False, default=0)
    interval = Column(Integer, nullable=False, default=0)  # days
    next_review = Column(DateTime, nullable=False, default=utcnow)
    last_reviewed = Column(DateTime, default=utcnow)

    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    bank = relationship("VocabularyBank", back_populates="words")

    __table_args__ = (
        UniqueConstraint("bank_id", "word_key", name="uq_word_per_bank"),
        CheckConstraint("easiness_factor >= 1.3", name="ck_word_easiness_floor"),
        CheckConstraint("mastery BETWEEN 0 AND 100", name="ck_word_mastery_range"),
        CheckConstraint("repetitions >= 0", name="ck_word_repetitions"),
        CheckConstraint('"interval" >= 0', name="ck_word_interval"),
        Index("ix_vocabulary_words_bank_next_review", "bank_id", "next_review"),
    )


class ReviewEvent(Base):
    """Append-only review log, one row per review; capped per word."""
    __tablename__ = "review_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    word_id = Column(GUID, ForeignKey("vocabulary_words.id", ondelete="CASCADE"), nullable=False)
    date = Column(DateTime, nullable=False, default=utcnow)
    performance = Column(Integer, nullable=False)
    context = Column(String(255), nullable=False, default="Review")

    __table_args__ = (
        CheckConstraint("performance BETWEEN 0 AND 4", name="ck_review_performance_range"),
        Index("ix_review_events_word_id_id", "word_id", "id"),
    )
