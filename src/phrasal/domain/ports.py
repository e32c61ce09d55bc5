"""
Ports (interfaces) for the study-session collaborators.

These define the contract that infrastructure adapters must implement.
The orchestrator depends on these abstractions, not concrete implementations.
Content ports are optional: the orchestrator runs without them.
"""

from abc import ABC, abstractmethod
from datetime import datetime

from .models import (
    DrillExercise,
    DueItem,
    Grade,
    LanguageContext,
    NarrativeResult,
    Phrase,
    ReviewEntry,
    ScheduleState,
    Session,
    StudyItem,
)


class DueItemProvider(ABC):
    """
    Port for fetching phrases that are due for review.

    Implementations:
        - SqlStore: Computes the due set from the phrases/reviews tables.
    """

    @abstractmethod
    async def fetch_due_items(self, user_id: str, limit: int) -> list[DueItem]:
        """
        Fetch due phrases for a user.

        Args:
            user_id: Owner of the phrases.
            limit: Maximum number of items.

        Returns:
            Never-reviewed phrases first, then by ascending next review time,
            ties broken by ascending add time.
        """
        pass


class ReviewWriter(ABC):
    """Append-only sink for review records."""

    @abstractmethod
    async def record_review(
        self,
        item_id: str,
        grade: Grade,
        schedule: ScheduleState,
        responded_at: datetime,
    ) -> None:
        """
        Persist one review.

        Args:
            item_id: The source phrase id (not the session-local item id).
            grade: Grade submitted for the phrase.
            schedule: Schedule state computed from this grade.
            responded_at: When the grade was submitted.
        """
        pass


class SessionRecorder(ABC):
    """Persists session records at start and completion, and one row per graded item."""

    @abstractmethod
    async def open_session(self, session: Session) -> None:
        pass

    @abstractmethod
    async def record_item(self, session_id: str, item: StudyItem) -> None:
        """
        Persist the outcome of one graded item.

        Args:
            session_id: Session the item belongs to.
            item: The graded item; carries order, grade, correctness and
                response time.
        """
        pass

    @abstractmethod
    async def close_session(self, session: Session) -> None:
        pass


class ReviewHistory(ABC):
    """Read access to persisted reviews, for user-level statistics."""

    @abstractmethod
    async def get_review_history(self, user_id: str) -> list[ReviewEntry]:
        """Reviews for the user, sorted by reviewed_at ascending."""
        pass

    @abstractmethod
    async def count_phrases(self, user_id: str) -> int:
        pass


class NarrativeGenerator(ABC):
    @abstractmethod
    async def generate_narrative(
        self, phrases: list[Phrase], context: LanguageContext
    ) -> NarrativeResult | None:
        """Build a short story using the phrases. None when unavailable."""
        pass


class DrillGenerator(ABC):
    @abstractmethod
    async def generate_drill_exercises(
        self, phrases: list[Phrase], context: LanguageContext, count: int
    ) -> list[DrillExercise]:
        pass


class SpeechSynthesizer(ABC):
    @abstractmethod
    async def synthesize(self, text: str, language: str) -> bytes:
        """Return encoded audio (mp3) for the text."""
        pass
