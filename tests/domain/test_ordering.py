from datetime import timedelta

from phrasal.domain.models import ScheduleState
from phrasal.domain.ordering import is_due, order_due_items, select_due_items


def _schedule(at):
    return ScheduleState(ease_factor=2.5, interval_days=1, repetitions=1, next_review_at=at)


def test_never_reviewed_come_first(now, due_item):
    reviewed = due_item("p1", "uno", schedule=_schedule(now - timedelta(days=3)))
    fresh = due_item("p2", "dos", added_at=now)

    ordered = order_due_items([reviewed, fresh])
    assert [i.phrase.id for i in ordered] == ["p2", "p1"]


def test_orders_by_next_review_then_added(now, due_item):
    later = due_item("late", "a", schedule=_schedule(now - timedelta(hours=1)))
    tie_new = due_item(
        "tie_new", "b", schedule=_schedule(now - timedelta(days=1)), added_at=now
    )
    tie_old = due_item(
        "tie_old",
        "c",
        schedule=_schedule(now - timedelta(days=1)),
        added_at=now - timedelta(days=10),
    )

    ordered = order_due_items([later, tie_new, tie_old])
    assert [i.phrase.id for i in ordered] == ["tie_old", "tie_new", "late"]


def test_select_filters_future_items(now, due_item):
    due = due_item("due", "a", schedule=_schedule(now))
    future = due_item("future", "b", schedule=_schedule(now + timedelta(seconds=1)))

    assert is_due(due, now)
    assert not is_due(future, now)
    assert [i.phrase.id for i in select_due_items([due, future], now)] == ["due"]


def test_select_respects_limit(now, due_item):
    items = [due_item(f"p{n}", f"t{n}", added_at=now + timedelta(minutes=n)) for n in range(5)]
    selected = select_due_items(items, now, limit=2)
    assert [i.phrase.id for i in selected] == ["p0", "p1"]


def test_naive_datetimes_treated_as_utc(now, due_item):
    naive = due_item("naive", "a", schedule=_schedule((now - timedelta(days=1)).replace(tzinfo=None)))
    assert is_due(naive, now)
