# Domain Package
from .errors import (
    GradeAlreadySubmitted,
    InvalidGrade,
    InvalidPhase,
    InvalidPriorState,
    NoActiveSession,
    NoItemsAvailable,
    ProviderFailure,
    SessionBusy,
    StudyError,
    UnknownItem,
)
from .models import (
    DrillBlank,
    DrillExercise,
    DueItem,
    Grade,
    LanguageContext,
    NarrativeReference,
    NarrativeResult,
    Phrase,
    ReviewEntry,
    ScheduleState,
    Session,
    SessionPhase,
    SessionType,
    StudyItem,
    UserStats,
)

__all__ = [
    "StudyError",
    "InvalidGrade",
    "InvalidPriorState",
    "NoItemsAvailable",
    "UnknownItem",
    "NoActiveSession",
    "ProviderFailure",
    "GradeAlreadySubmitted",
    "InvalidPhase",
    "SessionBusy",
    "Grade",
    "ScheduleState",
    "Phrase",
    "DueItem",
    "StudyItem",
    "Session",
    "SessionPhase",
    "SessionType",
    "LanguageContext",
    "NarrativeReference",
    "NarrativeResult",
    "DrillBlank",
    "DrillExercise",
    "ReviewEntry",
    "UserStats",
]
