"""
Error taxonomy for study sessions.

Validation errors (InvalidGrade, UnknownItem, NoActiveSession, ...) are raised
before any state changes. ProviderFailure wraps transport and storage problems
in the collaborators the orchestrator calls.
"""


class StudyError(Exception):
    """Base class for every error raised by phrasal."""


class InvalidGrade(StudyError):
    """Grade is not an integer in 1..4."""

    def __init__(self, grade: object):
        self.grade = grade
        super().__init__(f"Grade must be an integer between 1 and 4, got {grade!r}")


class InvalidPriorState(StudyError):
    """Schedule state fed to the scheduler is out of range."""


class NoItemsAvailable(StudyError):
    """The due-item provider returned nothing to study."""

    def __init__(self, user_id: str | None = None):
        self.user_id = user_id
        super().__init__("No phrases available for study")


class UnknownItem(StudyError):
    """Item id is not part of the current session."""

    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(f"Item not found in current session: {item_id}")


class NoActiveSession(StudyError):
    """Lifecycle call made before start_session or after completion."""

    def __init__(self, message: str = "No active session"):
        super().__init__(message)


class GradeAlreadySubmitted(StudyError):
    """Grades are write-once per item within a session."""

    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(f"Item {item_id} has already been graded")


class InvalidPhase(StudyError):
    """Operation is not allowed in the session's current phase."""

    def __init__(self, operation: str, phase: object):
        self.operation = operation
        self.phase = phase
        super().__init__(f"Cannot {operation} while session is in phase '{phase}'")


class SessionBusy(StudyError):
    """Another session operation is still in flight."""

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"Cannot {operation}: another session operation is in progress")


class ProviderFailure(StudyError):
    """A collaborator failed at the transport or storage layer."""

    def __init__(self, operation: str, message: str):
        self.operation = operation
        super().__init__(f"{operation} failed: {message}")
