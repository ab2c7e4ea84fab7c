from models.vocabulary import (
    VocabularyBank,
    VocabularyWord,
    ReviewEvent,
    PARTS_OF_SPEECH,
    SOURCE_TYPES,
    REVIEW_FREQUENCIES,
)

__all__ = [
    "VocabularyBank", "VocabularyWord", "ReviewEvent",
    "PARTS_OF_SPEECH", "SOURCE_TYPES", "REVIEW_FREQUENCIES",
]
