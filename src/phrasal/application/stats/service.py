"""
SRS Stats Service: Application layer orchestrator.

Coordinates fetching review history from the repository and summarizing it.
"""

import logging
from datetime import datetime

from phrasal.domain.models import UserStats
from phrasal.domain.ports import ReviewHistory

from .metrics_calculator import MetricsCalculator

logger = logging.getLogger(__name__)


class SrsStatsService:
    """
    Application service for user-level review statistics.

    Depends on the ReviewHistory abstraction, not a concrete store.
    """

    def __init__(
        self,
        history: ReviewHistory,
        calculator: MetricsCalculator | None = None,
    ):
        """
        Args:
            history: The repository (port) for fetching reviews.
            calculator: Optional custom calculator; uses default if not provided.
        """
        self._history = history
        self._calc = calculator or MetricsCalculator()

    async def get_user_stats(self, user_id: str, now: datetime | None = None) -> UserStats:
        reviews = await self._history.get_review_history(user_id)
        total_phrases = await self._history.count_phrases(user_id)
        logger.debug(f"Summarizing {len(reviews)} reviews for user={user_id}")
        return self._calc.summarize(reviews, now=now, total_phrases=total_phrases)
