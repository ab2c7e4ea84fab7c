from engines.srs import (
    MemoryState,
    PerformanceRating,
    ReviewBox,
    ReviewOutcome,
    ReviewRecord,
    ReviewScheduler,
    clamp_rating,
    compute_next_review,
)
from engines.stats import BankStats, compute_bank_stats
from engines.store import WordStore
from engines.reviews import ReviewService
from engines.vocabulary import VocabularyManager
from engines.importer import ImportSummary, import_word_list, load_word_list

__all__ = [
    "MemoryState",
    "PerformanceRating",
    "ReviewBox",
    "ReviewOutcome",
    "ReviewRecord",
    "ReviewScheduler",
    "clamp_rating",
    "compute_next_review",
    "BankStats",
    "compute_bank_stats",
    "WordStore",
    "ReviewService",
    "VocabularyManager",
    "ImportSummary",
    "import_word_list",
    "load_word_list",
]
