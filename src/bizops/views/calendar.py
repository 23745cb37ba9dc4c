"""Month-grid calendar bucketing for finance and project deadline views.

A month grid runs from the start of the week containing the 1st to the end
of the week containing the last day, so it always holds whole weeks (a
multiple of 7 cells) including leading and trailing days of the adjacent
months.
"""

from __future__ import annotations

import calendar
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from datetime import date, timedelta
from typing import TypeVar

from src.bizops.schemas import Project, Transaction

T = TypeVar("T")


@dataclass(frozen=True)
class CalendarDay:
    day: date
    in_month: bool


def month_grid(year: int, month: int, week_start: int = calendar.SUNDAY) -> list[CalendarDay]:
    """Days displayed for ``year``/``month``, whole weeks starting on ``week_start``.

    ``week_start`` uses the ``calendar`` module constants (MONDAY=0 ... SUNDAY=6).
    """
    first = date(year, month, 1)
    last = date(year, month, calendar.monthrange(year, month)[1])
    start = first - timedelta(days=(first.weekday() - week_start) % 7)
    end = last + timedelta(days=(week_start + 6 - last.weekday()) % 7)

    days = []
    current = start
    while current <= end:
        days.append(CalendarDay(day=current, in_month=current.month == month))
        current += timedelta(days=1)
    return days


def shift_month(year: int, month: int, delta: int) -> tuple[int, int]:
    """Month navigation: ``shift_month(2024, 1, -1) == (2023, 12)``."""
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def parse_day(value: str | None) -> date | None:
    """Date part of an ISO date/datetime string, or None if unparseable."""
    if not value:
        return None
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        return None


def bucket_by_day(
    items: Iterable[T],
    date_of: Callable[[T], str | None],
    days: Sequence[CalendarDay],
) -> dict[date, tuple[T, ...]]:
    """Group items by the grid day their date falls on.

    Every grid day is present in the result; items outside the grid or with
    unparseable dates are left out.
    """
    buckets: dict[date, list[T]] = {cell.day: [] for cell in days}
    for item in items:
        day = parse_day(date_of(item))
        if day in buckets:
            buckets[day].append(item)
    return {day: tuple(items_) for day, items_ in buckets.items()}


def transaction_calendar(
    transactions: Iterable[Transaction], year: int, month: int
) -> dict[date, tuple[Transaction, ...]]:
    return bucket_by_day(transactions, lambda t: t.date, month_grid(year, month))


def project_deadline_calendar(
    projects: Iterable[Project], year: int, month: int
) -> dict[date, tuple[Project, ...]]:
    return bucket_by_day(projects, lambda p: p.deadline, month_grid(year, month))
