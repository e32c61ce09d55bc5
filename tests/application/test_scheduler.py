from datetime import timedelta

import pytest

from phrasal.application.scheduler import (
    compute_schedule,
    initial_schedule,
    is_valid_grade,
    next_review_date,
    round_half_up,
    validate_schedule_params,
)
from phrasal.domain.constants import MAX_INTERVAL_DAYS
from phrasal.domain.errors import InvalidGrade, InvalidPriorState
from phrasal.domain.models import Grade, ScheduleState


def test_initial_schedule_defaults(now):
    state = initial_schedule(now)
    assert state.ease_factor == 2.5
    assert state.interval_days == 1
    assert state.repetitions == 0
    assert state.next_review_at == now + timedelta(days=1)


def test_good_grade_sequence(now):
    # 1 -> 6 -> round(6 * ease)
    first = compute_schedule(3, initial_schedule(now), now)
    assert first.repetitions == 1
    assert first.interval_days == 1
    assert first.ease_factor == pytest.approx(2.36)

    second = compute_schedule(3, first, now)
    assert second.repetitions == 2
    assert second.interval_days == 6
    assert second.ease_factor == pytest.approx(2.22)

    third = compute_schedule(3, second, now)
    assert third.repetitions == 3
    assert third.ease_factor == pytest.approx(2.08)
    assert third.interval_days == round_half_up(6 * third.ease_factor)
    assert third.interval_days == 12
    assert third.next_review_at == now + timedelta(days=12)


def test_easy_grade_keeps_ease(now):
    state = compute_schedule(Grade.EASY, initial_schedule(now), now)
    assert state.ease_factor == pytest.approx(2.5)
    assert state.interval_days == 1


@pytest.mark.parametrize("grade", [1, 2])
def test_failure_resets_streak(now, grade):
    prior = ScheduleState(
        ease_factor=2.5, interval_days=15, repetitions=4, next_review_at=now
    )
    state = compute_schedule(grade, prior, now)
    assert state.repetitions == 0
    assert state.interval_days == 1
    assert state.ease_factor == pytest.approx(2.3)
    assert state.next_review_at == now + timedelta(days=1)


def test_ease_never_below_minimum(now):
    prior = ScheduleState(ease_factor=1.3, interval_days=1, repetitions=0, next_review_at=now)
    assert compute_schedule(1, prior, now).ease_factor == pytest.approx(1.3)
    assert compute_schedule(3, prior, now).ease_factor == pytest.approx(1.3)


def test_interval_is_capped(now):
    prior = ScheduleState(
        ease_factor=2.5, interval_days=MAX_INTERVAL_DAYS, repetitions=10, next_review_at=now
    )
    state = compute_schedule(4, prior, now)
    assert state.interval_days == MAX_INTERVAL_DAYS


def test_zero_prior_interval_still_advances(now):
    prior = ScheduleState(ease_factor=2.5, interval_days=0, repetitions=2, next_review_at=now)
    assert compute_schedule(3, prior, now).interval_days == 1


@pytest.mark.parametrize("grade", [0, 5, -1, 3.0, "3", None, True])
def test_invalid_grades_rejected(now, grade):
    with pytest.raises(InvalidGrade):
        compute_schedule(grade, initial_schedule(now), now)
    assert not is_valid_grade(grade)


def test_invalid_prior_state(now):
    prior = ScheduleState(ease_factor=1.2, interval_days=1, repetitions=0, next_review_at=now)
    with pytest.raises(InvalidPriorState):
        compute_schedule(3, prior, now)

    negative = ScheduleState(ease_factor=2.5, interval_days=-1, repetitions=0, next_review_at=now)
    with pytest.raises(InvalidPriorState):
        compute_schedule(3, negative, now)


def test_validate_schedule_params(now):
    good = initial_schedule(now)
    bad = ScheduleState(ease_factor=1.0, interval_days=1, repetitions=0, next_review_at=now)
    assert validate_schedule_params(3, good)
    assert not validate_schedule_params(7, good)
    assert not validate_schedule_params(3, bad)


def test_next_review_date_defaults_to_initial_prior(now):
    assert next_review_date(3, now=now) == now + timedelta(days=1)


def test_round_half_up():
    assert round_half_up(2.5) == 3
    assert round_half_up(12.48) == 12
    assert round_half_up(0.5) == 1
