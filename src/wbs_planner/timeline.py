from __future__ import annotations

import calendar
import datetime as dt
from dataclasses import dataclass, field
from typing import Sequence

from .task_models import BarPosition, Task

DAY_WIDTH = 40
"""Default horizontal span of one calendar day, in pixels."""

MONTHS_BEFORE = 1
MONTHS_AFTER = 2


def shift_months(day: dt.date, months: int) -> dt.date:
    """Move `day` by whole calendar months, clamping to the target month's length."""
    month_index = day.year * 12 + (day.month - 1) + months
    year, month = divmod(month_index, 12)
    month += 1
    last_day = calendar.monthrange(year, month)[1]
    return dt.date(year, month, min(day.day, last_day))


def _month_start(day: dt.date) -> dt.date:
    return day.replace(day=1)


def _month_end(day: dt.date) -> dt.date:
    return day.replace(day=calendar.monthrange(day.year, day.month)[1])


def compute_window(pivot: dt.date) -> list[dt.date]:
    """
    Return every calendar day displayed around `pivot`.

    The window starts on the 1st of the month before the pivot's month and ends
    on the last day of the month two months after it, inclusive.
    """

    start = _month_start(shift_months(_month_start(pivot), -MONTHS_BEFORE))
    end = _month_end(shift_months(_month_start(pivot), MONTHS_AFTER))
    span = (end - start).days + 1
    return [start + dt.timedelta(days=offset) for offset in range(span)]


def day_index(window: Sequence[dt.date], day: dt.date | None) -> int | None:
    """Zero-based position of `day` in the window, or None when absent."""
    if day is None or not window:
        return None
    offset = (day - window[0]).days
    if 0 <= offset < len(window) and window[offset] == day:
        return offset
    return None


def position(task: Task, window: Sequence[dt.date], unit_width: float = DAY_WIDTH) -> BarPosition | None:
    """
    Map a task's date range onto horizontal offsets within the window.

    Returns None when a date is missing or either end falls outside the window;
    partially visible tasks are not clipped.
    """

    start_idx = day_index(window, task.start_date)
    end_idx = day_index(window, task.end_date)
    if start_idx is None or end_idx is None:
        return None
    return BarPosition(
        offset=start_idx * unit_width,
        width=(end_idx - start_idx + 1) * unit_width,
    )


@dataclass(frozen=True)
class MonthSpan:
    """Run of consecutive window days that share a month (header band cell)."""

    year: int
    month: int
    first_index: int
    day_count: int

    @property
    def label(self) -> str:
        return dt.date(self.year, self.month, 1).strftime("%b %Y")


def month_spans(window: Sequence[dt.date]) -> list[MonthSpan]:
    spans: list[MonthSpan] = []
    for idx, day in enumerate(window):
        if spans and (spans[-1].year, spans[-1].month) == (day.year, day.month):
            last = spans[-1]
            spans[-1] = MonthSpan(last.year, last.month, last.first_index, last.day_count + 1)
        else:
            spans.append(MonthSpan(day.year, day.month, idx, 1))
    return spans


@dataclass
class TimelineNavigator:
    """Owns the pivot date; the window is always recomputed from it."""

    pivot: dt.date = field(default_factory=dt.date.today)

    @property
    def window(self) -> list[dt.date]:
        return compute_window(self.pivot)

    def step_month(self, delta: int) -> list[dt.date]:
        if delta not in (-1, 1):
            raise ValueError(f"step must be +1 or -1 month, got {delta}")
        self.pivot = shift_months(self.pivot, delta)
        return self.window

    def reset_to_today(self, today: dt.date | None = None) -> list[dt.date]:
        self.pivot = today or dt.date.today()
        return self.window
