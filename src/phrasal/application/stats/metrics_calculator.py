"""
Metrics calculator for spaced-repetition review history.

This is a pure computation module with no I/O.
"""

import math
from datetime import datetime, timezone

from phrasal.application.scheduler import round_half_up
from phrasal.domain.constants import (
    MASTERED_EASE_FACTOR,
    PASSING_GRADE,
    SECONDS_PER_ITEM_ESTIMATE,
)
from phrasal.domain.models import ReviewEntry, UserStats

GRADE_DESCRIPTIONS = {
    1: "Again (Complete blackout)",
    2: "Hard (Incorrect response; correct one remembered)",
    3: "Good (Correct response after hesitation)",
    4: "Easy (Perfect response)",
}


def grade_description(grade: int) -> str:
    return GRADE_DESCRIPTIONS.get(grade, "Unknown grade")


def difficulty_level(ease_factor: float) -> str:
    if ease_factor >= 2.5:
        return "Easy"
    if ease_factor >= 2.0:
        return "Medium"
    if ease_factor >= 1.7:
        return "Hard"
    return "Very Hard"


def calculate_progress(total_items: int, mastered_items: int) -> int:
    """Percentage of mastered items, 0 when there are none."""
    if total_items == 0:
        return 0
    return round_half_up(mastered_items / total_items * 100)


def estimate_session_duration(
    item_count: int, seconds_per_item: float = SECONDS_PER_ITEM_ESTIMATE
) -> int:
    """Estimated session length in whole minutes (rounded up)."""
    return math.ceil(item_count * seconds_per_item / 60)


class MetricsCalculator:
    """
    Computes user-level statistics from raw review entries.

    Stateless and side-effect free.
    """

    def summarize(
        self,
        reviews: list[ReviewEntry],
        now: datetime | None = None,
        total_phrases: int = 0,
    ) -> UserStats:
        """
        Aggregate review history.

        Due and overdue counts, and mastery, look at the latest review of
        each phrase; totals and retention look at every review.
        """
        now = now or datetime.now(timezone.utc)
        stats = UserStats(total_phrases=total_phrases)
        if not reviews:
            return stats

        stats.total_reviews = len(reviews)
        stats.average_grade = sum(r.grade for r in reviews) / len(reviews)
        successful = sum(1 for r in reviews if r.grade >= PASSING_GRADE)
        stats.retention_rate = successful / len(reviews) * 100

        latest = self._latest_per_phrase(reviews)
        stats.due_count = sum(1 for r in latest if r.next_review_at <= now)
        stats.overdue_count = sum(1 for r in latest if r.next_review_at < now)
        stats.mastered_phrases = sum(
            1 for r in latest if r.ease_factor > MASTERED_EASE_FACTOR
        )
        return stats

    def _latest_per_phrase(self, reviews: list[ReviewEntry]) -> list[ReviewEntry]:
        latest: dict[str, ReviewEntry] = {}
        for review in reviews:
            current = latest.get(review.phrase_id)
            if current is None or review.reviewed_at >= current.reviewed_at:
                latest[review.phrase_id] = review
        return list(latest.values())


def calculate_srs_stats(reviews: list[ReviewEntry], now: datetime | None = None) -> UserStats:
    return MetricsCalculator().summarize(reviews, now=now)
