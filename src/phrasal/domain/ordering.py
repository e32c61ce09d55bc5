"""
Due-item ordering.

Providers return due phrases in a fixed study order:
1. Phrases never reviewed (no schedule)
2. Then by ascending next_review_at
3. Ties broken by ascending added_at

The orchestrator consumes that order as-is. Stores that compute the due set
locally use these helpers to reproduce it exactly.
"""

from collections.abc import Iterable
from datetime import datetime, timezone

from .models import DueItem

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _as_utc(value: datetime | None) -> datetime:
    if value is None:
        return _EPOCH
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def due_sort_key(item: DueItem) -> tuple[int, datetime, datetime]:
    if item.schedule is None:
        return (0, _EPOCH, _as_utc(item.phrase.added_at))
    return (1, _as_utc(item.schedule.next_review_at), _as_utc(item.phrase.added_at))


def is_due(item: DueItem, now: datetime) -> bool:
    """A phrase is due if it was never reviewed or its review time has passed."""
    if item.schedule is None:
        return True
    return _as_utc(item.schedule.next_review_at) <= _as_utc(now)


def order_due_items(items: Iterable[DueItem]) -> list[DueItem]:
    return sorted(items, key=due_sort_key)


def select_due_items(
    items: Iterable[DueItem], now: datetime, limit: int | None = None
) -> list[DueItem]:
    """
    Filter to due phrases and return them in study order.

    Args:
        items: Candidate phrases with their latest schedule.
        now: Reference time for due checks.
        limit: Maximum number of items to return (None for all).
    """
    ordered = order_due_items(item for item in items if is_due(item, now))
    if limit is not None:
        return ordered[: max(0, limit)]
    return ordered
