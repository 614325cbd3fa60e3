"""Date predicates that decide which stars a caller may see or connect."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from datetime import date, timedelta

DatePredicate = Callable[[str], bool]


def _parse(value: str) -> date | None:
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None


def rolling_window(today: date, days: int) -> DatePredicate:
    """Accept dates within the last ``days`` days, ``today`` included."""
    if days < 1:
        raise ValueError("days must be positive")
    earliest = today - timedelta(days=days - 1)

    def _visible(value: str) -> bool:
        parsed = _parse(value)
        return parsed is not None and earliest <= parsed <= today

    return _visible


def allow_list(dates: Iterable[str]) -> DatePredicate:
    allowed = frozenset(dates)
    return allowed.__contains__


def all_of(*predicates: DatePredicate | None) -> DatePredicate | None:
    active = [predicate for predicate in predicates if predicate is not None]
    if not active:
        return None
    if len(active) == 1:
        return active[0]
    return lambda value: all(predicate(value) for predicate in active)


def window_from_config(window_days: int | None, today: date | None = None) -> DatePredicate | None:
    if window_days is None:
        return None
    return rolling_window(today or date.today(), window_days)
