"""Review Scheduler

SM-2 variant on a 0-4 performance scale. Given a rating and the current
memory state of a word it returns the next memory state, the next review
date and the history record to append.

The scheduler is total: out-of-range ratings are clamped, malformed or
missing state fields fall back to defaults, and nothing here raises.
"""
import math
import sys
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import IntEnum

from core.logging import srs_logger

log = srs_logger()

MIN_EASINESS_FACTOR = 1.3
DEFAULT_EASINESS_FACTOR = 2.5
MAX_MASTERY = 100
MAX_INTERVAL_DAYS = 36500  # about a century
DEFAULT_REVIEW_CONTEXT = "Spaced repetition review"


class PerformanceRating(IntEnum):
    FORGOT = 0      # complete blackout
    DIFFICULT = 1   # recalled with great difficulty
    HESITANT = 2    # recalled after hesitation
    EASY = 3        # recalled easily
    PERFECT = 4     # perfect recall


NEUTRAL_RATING = PerformanceRating.HESITANT

# Mastery is a separate user-facing score; it never feeds the interval.
MASTERY_DELTAS: dict[int, int] = {
    PerformanceRating.FORGOT: -15,
    PerformanceRating.DIFFICULT: -5,
    PerformanceRating.HESITANT: 5,
    PerformanceRating.EASY: 10,
    PerformanceRating.PERFECT: 15,
}


class ReviewBox(IntEnum):
    """Implicit scheduling stage derived from consecutive successes."""
    NEW = 0     # new or relearning
    SHORT = 1   # 1-day interval
    MEDIUM = 2  # 6-day interval
    LONG = 3    # geometric growth


def clamp_rating(value) -> int:
    """Normalise any input to an integer rating in [0, 4].

    Numbers and numeric strings are truncated and clamped; anything that
    can't be read as a number becomes the neutral rating.
    """
    if isinstance(value, bool):
        value = int(value)
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return int(NEUTRAL_RATING)
    if not isinstance(value, (int, float)):
        return int(NEUTRAL_RATING)
    if isinstance(value, float) and not math.isfinite(value):
        return int(NEUTRAL_RATING)
    return int(max(PerformanceRating.FORGOT, min(PerformanceRating.PERFECT, int(value))))


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _number(value, default: float, upper: float) -> float:
    """Read a finite number no larger than ``upper``, else ``default``."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    if isinstance(value, float) and not math.isfinite(value):
        return default
    return min(value, upper)


def _add_days(moment: datetime, days: int) -> datetime:
    try:
        return moment + timedelta(days=days)
    except OverflowError:
        return datetime.max


def _first_present(mapping: Mapping, *keys: str):
    for key in keys:
        if mapping.get(key) is not None:
            return mapping[key]
    return None


@dataclass(frozen=True, slots=True)
class MemoryState:
    mastery: int = 0
    easiness_factor: float = DEFAULT_EASINESS_FACTOR
    repetitions: int = 0
    interval: int = 0

    @classmethod
    def from_mapping(cls, data: Mapping | None) -> "MemoryState":
        """Build a state from loosely-typed data, defaulting and clamping fields.

        Accepts snake_case or camelCase keys (``easinessFactor``).
        """
        data = data or {}
        mastery = _number(data.get("mastery"), 0, MAX_MASTERY)
        ef = _number(
            _first_present(data, "easiness_factor", "easinessFactor"),
            DEFAULT_EASINESS_FACTOR,
            sys.float_info.max,
        )
        repetitions = _number(data.get("repetitions"), 0, sys.maxsize)
        interval = _number(data.get("interval"), 0, MAX_INTERVAL_DAYS)
        return cls(
            mastery=max(0, int(mastery)),
            easiness_factor=max(MIN_EASINESS_FACTOR, float(ef)),
            repetitions=max(0, int(repetitions)),
            interval=max(0, int(interval)),
        )

    @classmethod
    def of(cls, word) -> "MemoryState":
        """Snapshot the memory fields of a stored word."""
        return cls.from_mapping({
            "mastery": word.mastery,
            "easiness_factor": word.easiness_factor,
            "repetitions": word.repetitions,
            "interval": word.interval,
        })

    @property
    def box(self) -> ReviewBox:
        return ReviewBox(min(self.repetitions, ReviewBox.LONG))


@dataclass(frozen=True, slots=True)
class ReviewRecord:
    date: datetime
    performance: int
    context: str


@dataclass(frozen=True, slots=True)
class ReviewOutcome:
    rating: int
    state: MemoryState
    next_review_date: datetime
    record: ReviewRecord


def mastery_delta(rating) -> int:
    return MASTERY_DELTAS[clamp_rating(rating)]


def next_mastery(rating, mastery: int) -> int:
    return max(0, min(MAX_MASTERY, mastery + mastery_delta(rating)))


def next_easiness_factor(rating, easiness_factor: float) -> float:
    gap = PerformanceRating.PERFECT - clamp_rating(rating)
    return max(MIN_EASINESS_FACTOR, easiness_factor + (0.1 - gap * (0.08 + gap * 0.02)))


class ReviewScheduler:
    """Computes the next memory state for a reviewed word."""

    __slots__ = ()

    def compute(
        self,
        rating,
        state: MemoryState | Mapping | None,
        now: datetime,
        context: str | None = None,
    ) -> ReviewOutcome:
        """Apply one review.

        Args:
            rating: Performance 0-4; other values are clamped/defaulted.
            state: Current memory state, or a mapping with any subset of its fields.
            now: Review time. The result depends on nothing else.
            context: Label stored with the history record.
        """
        r = clamp_rating(rating)
        if not isinstance(state, MemoryState):
            state = MemoryState.from_mapping(state)

        ef = next_easiness_factor(r, state.easiness_factor)

        if r < PerformanceRating.HESITANT:
            repetitions = 0
            interval = 1
        else:
            repetitions = state.repetitions + 1
            if repetitions == 1:
                interval = 1
            elif repetitions == 2:
                interval = 6
            else:
                grown = min(state.interval, MAX_INTERVAL_DAYS) * ef
                interval = round_half_up(min(grown, MAX_INTERVAL_DAYS))

        new_state = MemoryState(
            mastery=next_mastery(r, state.mastery),
            easiness_factor=ef,
            repetitions=repetitions,
            interval=interval,
        )
        outcome = ReviewOutcome(
            rating=r,
            state=new_state,
            next_review_date=_add_days(now, interval),
            record=ReviewRecord(date=now, performance=r, context=context or DEFAULT_REVIEW_CONTEXT),
        )
        log.debug(
            "review_scheduled",
            rating=r,
            box=new_state.box.name,
            interval=interval,
            easiness_factor=round(ef, 2),
            mastery=new_state.mastery,
        )
        return outcome

    def review_priority(self, state: MemoryState, next_review: datetime, now: datetime) -> float:
        """Ordering key for the due queue; higher is more urgent.

        Overdue days (capped at two weeks) weighted by how hard the word is.
        """
        days_overdue = max((now - next_review).total_seconds() / 86400, 0.0)
        overdue_factor = 1 + min(days_overdue, 14.0)
        difficulty_factor = DEFAULT_EASINESS_FACTOR / state.easiness_factor
        return overdue_factor * difficulty_factor


_scheduler = ReviewScheduler()


def compute_next_review(
    rating,
    state: MemoryState | Mapping | None,
    now: datetime,
    context: str | None = None,
) -> ReviewOutcome:
    """Module-level shortcut for ``ReviewScheduler().compute``."""
    return _scheduler.compute(rating, state, now, context)
