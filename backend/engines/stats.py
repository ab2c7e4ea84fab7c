"""Bank Statistics

Pure aggregation over a bank's words and review dates.
"""
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime, timedelta

MASTERED_THRESHOLD = 90


@dataclass(frozen=True, slots=True)
class BankStats:
    total_words: int
    mastered_words: int
    learning_words: int
    needs_review_words: int
    average_mastery: float
    study_streak: int
    last_study_session: datetime | None


def study_streak(review_dates: Iterable[datetime], today: date) -> int:
    """Consecutive days with at least one review, ending today or yesterday."""
    days = {d.date() for d in review_dates}
    if today in days:
        cursor = today
    elif today - timedelta(days=1) in days:
        cursor = today - timedelta(days=1)
    else:
        return 0

    streak = 0
    while cursor in days:
        streak += 1
        cursor -= timedelta(days=1)
    return streak


def compute_bank_stats(
    words: Iterable,
    now: datetime,
    review_dates: Iterable[datetime] = (),
    last_study_session: datetime | None = None,
) -> BankStats:
    """Summarise a bank.

    ``words`` needs ``mastery`` and ``next_review`` attributes; ORM rows and
    plain objects both work.
    """
    total = mastered = learning = due = 0
    mastery_sum = 0
    for word in words:
        total += 1
        mastery_sum += word.mastery
        if word.mastery >= MASTERED_THRESHOLD:
            mastered += 1
        elif word.mastery > 0:
            learning += 1
        if word.next_review <= now:
            due += 1

    return BankStats(
        total_words=total,
        mastered_words=mastered,
        learning_words=learning,
        needs_review_words=due,
        average_mastery=round(mastery_sum / total, 2) if total else 0.0,
        study_streak=study_streak(review_dates, now.date()),
        last_study_session=last_study_session,
    )
