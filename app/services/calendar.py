"""Month-view helpers for the appointments calendar."""

import calendar
from collections import defaultdict
from collections.abc import Iterable
from datetime import timedelta
from typing import Any

from app.schemas.scheduling import DayCell

GRID_CELLS = 42  # 6 weeks x 7 days


def group_by_day(
    appointments: Iterable[Any], year: int, month: int
) -> dict[int, list[Any]]:
    """Bucket the month's appointments by day-of-month.

    Each bucket is ordered by time; the sort is stable so appointments sharing
    a time keep their incoming (insertion) order. Cancelled appointments stay
    in the buckets.
    """
    buckets: dict[int, list[Any]] = defaultdict(list)
    for appointment in appointments:
        day = appointment.date
        if day.year == year and day.month == month:
            buckets[day.day].append(appointment)

    return {
        day: sorted(items, key=lambda a: a.time)
        for day, items in sorted(buckets.items())
    }


def month_grid(year: int, month: int, first_weekday: int = calendar.SUNDAY) -> list[DayCell]:
    """Return the 42 cells of a month calendar widget.

    Leading cells come from the previous month so the 1st lands in its weekday
    column (weeks start on Sunday by default), trailing cells from the next
    month fill the sixth row.
    """
    dates = list(calendar.Calendar(first_weekday).itermonthdates(year, month))
    while len(dates) < GRID_CELLS:
        dates.append(dates[-1] + timedelta(days=1))

    return [
        DayCell(
            date=day,
            belongs_to_displayed_month=(day.year == year and day.month == month),
        )
        for day in dates
    ]


def first_day_offset(year: int, month: int, first_weekday: int = calendar.SUNDAY) -> int:
    """Grid index of the 1st of the month."""
    return (calendar.weekday(year, month, 1) - first_weekday) % 7
