"""
Domain models for phrases, scheduling and study sessions.

These are pure data structures with no I/O or external dependencies.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, IntEnum
from typing import Any


class Grade(IntEnum):
    """Self-assessed recall quality."""

    AGAIN = 1  # Complete blackout
    HARD = 2  # Incorrect response; correct one remembered
    GOOD = 3  # Correct response after hesitation
    EASY = 4  # Perfect response


class SessionType(str, Enum):
    REVIEW = "review"
    NEW = "new"
    MIXED = "mixed"


class SessionPhase(str, Enum):
    LOADING = "loading"
    DRILLING = "drilling"
    REVIEWING = "reviewing"
    GRADING = "grading"
    COMPLETE = "complete"


@dataclass(frozen=True)
class ScheduleState:
    """
    Spaced-repetition memory for one (user, phrase) pair.

    Attributes:
        ease_factor: Interval growth multiplier, never below 1.3.
        interval_days: Days until the next review at last computation.
        repetitions: Consecutive successful reviews (grade >= 3).
        next_review_at: When the phrase becomes due again.
    """

    ease_factor: float
    interval_days: int
    repetitions: int
    next_review_at: datetime


@dataclass(frozen=True)
class Phrase:
    """A phrase the user is learning."""

    id: str
    text: str
    translation: str | None = None
    context: str | None = None
    added_at: datetime | None = None


@dataclass(frozen=True)
class DueItem:
    """A phrase returned by the due-item provider, with its latest schedule."""

    phrase: Phrase
    schedule: ScheduleState | None = None  # None if never reviewed


@dataclass
class StudyItem:
    """One unit of study within a session. Graded at most once."""

    id: str
    phrase: Phrase
    order: int
    grade: Grade | None = None
    response_time_seconds: float | None = None
    is_correct: bool | None = None
    schedule: ScheduleState | None = None
    graded_at: datetime | None = None

    @property
    def is_graded(self) -> bool:
        return self.grade is not None


@dataclass
class Session:
    """Aggregate view of one study-session run."""

    id: str
    user_id: str
    session_type: SessionType
    total_items: int
    started_at: datetime
    completed_items: int = 0
    correct_items: int = 0
    average_grade: float = 0.0
    duration_seconds: int = 0
    completed_at: datetime | None = None


@dataclass(frozen=True)
class LanguageContext:
    """Language pair and level passed through to content providers."""

    native_language: str
    target_language: str
    proficiency: str = "intermediate"


@dataclass(frozen=True)
class NarrativeReference:
    phrase: str
    position: int
    gloss: str = ""


@dataclass
class NarrativeResult:
    """A short story built around the session's phrases."""

    text: str
    item_references: list[NarrativeReference] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class DrillBlank:
    position: int
    answer: str
    alternatives: tuple[str, ...] = ()


@dataclass
class DrillExercise:
    """Fill-in-the-blank recall check shown before narrative review."""

    id: str
    text: str
    blanks: list[DrillBlank] = field(default_factory=list)
    explanation: str = ""
    difficulty: int | None = None


@dataclass(frozen=True)
class ReviewEntry:
    """
    A single persisted review.

    Attributes:
        phrase_id: The phrase that was reviewed.
        grade: Grade submitted (1-4).
        reviewed_at: When the grade was recorded.
        next_review_at: Due date computed from this review.
        ease_factor: Ease factor after this review.
    """

    phrase_id: str
    grade: int
    reviewed_at: datetime
    next_review_at: datetime
    ease_factor: float


@dataclass
class UserStats:
    """User-level spaced-repetition statistics."""

    total_reviews: int = 0
    average_grade: float = 0.0
    retention_rate: float = 0.0
    due_count: int = 0
    overdue_count: int = 0
    total_phrases: int = 0
    mastered_phrases: int = 0
