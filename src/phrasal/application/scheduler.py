"""
SM-2 scheduler for 1-4 grades.

Pure functions: given a grade and the prior schedule state, compute the next
state. No I/O and no hidden state; `now` can be pinned for deterministic results.

Grades: 1=again, 2=hard, 3=good, 4=easy. Grades below 3 reset the streak.
"""

import math
from datetime import datetime, timedelta, timezone

from phrasal.domain.constants import (
    DEFAULT_EASE_FACTOR,
    DEFAULT_INTERVAL_DAYS,
    FAILURE_EASE_PENALTY,
    FIRST_INTERVAL_DAYS,
    MAX_GRADE,
    MAX_INTERVAL_DAYS,
    MIN_EASE_FACTOR,
    MIN_GRADE,
    PASSING_GRADE,
    SECOND_INTERVAL_DAYS,
)
from phrasal.domain.errors import InvalidGrade, InvalidPriorState
from phrasal.domain.models import Grade, ScheduleState


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive values (round() uses banker's rounding)."""
    return math.floor(value + 0.5)


def is_valid_grade(grade: object) -> bool:
    # bool is an int subclass; True must not pass as grade 1
    if isinstance(grade, bool) or not isinstance(grade, int):
        return False
    return MIN_GRADE <= grade <= MAX_GRADE


def validate_grade(grade: object) -> Grade:
    """Return the grade as a Grade enum or raise InvalidGrade."""
    if not is_valid_grade(grade):
        raise InvalidGrade(grade)
    return Grade(grade)


def validate_prior(prior: ScheduleState) -> None:
    if prior.ease_factor < MIN_EASE_FACTOR:
        raise InvalidPriorState(
            f"Previous ease factor must be at least {MIN_EASE_FACTOR}, got {prior.ease_factor}"
        )
    if prior.interval_days < 0:
        raise InvalidPriorState(f"Interval must be non-negative, got {prior.interval_days}")
    if prior.repetitions < 0:
        raise InvalidPriorState(f"Repetitions must be non-negative, got {prior.repetitions}")


def validate_schedule_params(grade: object, prior: ScheduleState) -> bool:
    """Non-raising check of the inputs accepted by compute_schedule."""
    try:
        validate_grade(grade)
        validate_prior(prior)
    except (InvalidGrade, InvalidPriorState):
        return False
    return True


def _now(now: datetime | None) -> datetime:
    return now if now is not None else datetime.now(timezone.utc)


def next_ease_factor(grade: int, previous: float) -> float:
    if grade >= PASSING_GRADE:
        q = 5 - grade
        ease = previous + (0.1 - q * (0.08 + q * 0.02))
    else:
        ease = max(MIN_EASE_FACTOR, previous - FAILURE_EASE_PENALTY)
    return max(MIN_EASE_FACTOR, ease)


def compute_schedule(
    grade: int, prior: ScheduleState, now: datetime | None = None
) -> ScheduleState:
    """
    Compute the schedule state that follows a review.

    Args:
        grade: 1-4 recall grade.
        prior: Schedule state before this review.
        now: Review time (defaults to current UTC time).

    Returns:
        New ScheduleState with ease >= 1.3; interval 1 and repetitions 0 on
        failure, growing interval on success.

    Raises:
        InvalidGrade: grade is not an integer in 1..4.
        InvalidPriorState: prior ease below 1.3 or negative counters.
    """
    grade = validate_grade(grade)
    validate_prior(prior)

    ease = next_ease_factor(grade, prior.ease_factor)

    if grade < PASSING_GRADE:
        repetitions = 0
        interval = FIRST_INTERVAL_DAYS
    else:
        repetitions = prior.repetitions + 1
        if repetitions == 1:
            interval = FIRST_INTERVAL_DAYS
        elif repetitions == 2:
            interval = SECOND_INTERVAL_DAYS
        else:
            interval = round_half_up(prior.interval_days * ease)

    # A prior interval of 0 would otherwise pin a success at 0 days
    interval = min(max(interval, 1), MAX_INTERVAL_DAYS)

    return ScheduleState(
        ease_factor=ease,
        interval_days=interval,
        repetitions=repetitions,
        next_review_at=_now(now) + timedelta(days=interval),
    )


def initial_schedule(now: datetime | None = None) -> ScheduleState:
    """Schedule state for a phrase that has never been reviewed."""
    return ScheduleState(
        ease_factor=DEFAULT_EASE_FACTOR,
        interval_days=DEFAULT_INTERVAL_DAYS,
        repetitions=0,
        next_review_at=_now(now) + timedelta(days=DEFAULT_INTERVAL_DAYS),
    )


def next_review_date(
    grade: int, prior: ScheduleState | None = None, now: datetime | None = None
) -> datetime:
    """Shortcut for the due date a grade would produce."""
    if prior is None:
        prior = initial_schedule(now)
    return compute_schedule(grade, prior, now).next_review_at
