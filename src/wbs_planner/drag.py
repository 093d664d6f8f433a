from __future__ import annotations

import datetime as dt
import itertools
import math
from dataclasses import dataclass, field
from typing import Callable, Literal

from .logs import get_logger
from .store import StoreError, TaskStore
from .task_models import Task
from .timeline import DAY_WIDTH

logger = get_logger("drag")

DragMode = Literal["move", "resize-start", "resize-end"]
"""Which part of a bar the pointer grabbed: body, left edge or right edge."""

DRAG_MODES: tuple[str, ...] = ("move", "resize-start", "resize-end")


@dataclass(frozen=True)
class DragIntent:
    """Snapshot taken at pointer-down; lives only while the gesture is active."""

    task_id: str
    mode: DragMode
    anchor_x: float
    original_start: dt.date
    original_end: dt.date


@dataclass(frozen=True)
class DateUpdate:
    """Full date pair to write for a task (never a delta)."""

    task_id: str
    start_date: dt.date
    end_date: dt.date


def day_delta(anchor_x: float, current_x: float, unit_width: float = DAY_WIDTH) -> int:
    """Whole days travelled by the pointer; halves round towards +infinity."""
    return math.floor((current_x - anchor_x) / unit_width + 0.5)


def candidate_dates(intent: DragIntent, delta: int) -> DateUpdate | None:
    """
    Dates produced by shifting the gesture's original dates by `delta` days.

    Returns None when a resize would invert the range; a move is always valid.
    """

    shift = dt.timedelta(days=delta)
    start, end = intent.original_start, intent.original_end

    if intent.mode == "move":
        return DateUpdate(intent.task_id, start + shift, end + shift)
    if intent.mode == "resize-start":
        new_start = start + shift
        if new_start > end:
            return None
        return DateUpdate(intent.task_id, new_start, end)
    if intent.mode == "resize-end":
        new_end = end + shift
        if new_end < start:
            return None
        return DateUpdate(intent.task_id, start, new_end)
    raise ValueError(f"unknown drag mode '{intent.mode}'")


@dataclass
class FlushResult:
    applied: list[DateUpdate] = field(default_factory=list)
    failed: list[tuple[DateUpdate, StoreError]] = field(default_factory=list)


class PendingWrites:
    """
    Outbound date writes, one slot per task.

    A newer write for a task replaces the pending one, so the store only ever
    sees the latest date pair issued for it. Flushing applies tasks in the
    order their latest write was submitted.
    """

    def __init__(self) -> None:
        self._slots: dict[str, tuple[int, DateUpdate]] = {}
        self._sequence = itertools.count()

    def __len__(self) -> int:
        return len(self._slots)

    def submit(self, update: DateUpdate) -> None:
        self._slots[update.task_id] = (next(self._sequence), update)

    def pending(self) -> list[DateUpdate]:
        return [update for _, update in sorted(self._slots.values(), key=lambda slot: slot[0])]

    def latest(self, task_id: str) -> DateUpdate | None:
        slot = self._slots.get(task_id)
        return slot[1] if slot else None

    def flush(self, store: TaskStore) -> FlushResult:
        """Apply pending writes; failures are logged and reported, not retried."""
        result = FlushResult()
        updates = self.pending()
        self._slots.clear()
        for update in updates:
            try:
                store.update_task_dates(update.task_id, update.start_date, update.end_date)
            except StoreError as exc:
                logger.warning("Failed to update dates of task %s: %s", update.task_id, exc)
                result.failed.append((update, exc))
            else:
                result.applied.append(update)
        return result


class DragController:
    """
    Turns pointer events on task bars into date updates.

    Idle until a pointer-down lands on a bar of a task with both dates, then
    Dragging until pointer-up or pointer-leave. Every accepted pointer-move
    emits the full recomputed date pair right away.
    """

    def __init__(self, emit: Callable[[DateUpdate], None], unit_width: float = DAY_WIDTH) -> None:
        if unit_width <= 0:
            raise ValueError("unit_width must be positive")
        self._emit = emit
        self.unit_width = unit_width
        self.intent: DragIntent | None = None

    @property
    def is_dragging(self) -> bool:
        return self.intent is not None

    def pointer_down(self, task: Task, mode: DragMode, x: float) -> bool:
        """Start a gesture; returns False when the task cannot be dragged."""
        if mode not in DRAG_MODES:
            raise ValueError(f"unknown drag mode '{mode}'")
        if self.intent is not None:
            logger.debug("Pointer-down on %s while dragging %s; releasing", task.id, self.intent.task_id)
            self.intent = None
        if not task.has_dates:
            return False
        self.intent = DragIntent(
            task_id=task.id,
            mode=mode,
            anchor_x=x,
            original_start=task.start_date,
            original_end=task.end_date,
        )
        return True

    def pointer_move(self, x: float) -> DateUpdate | None:
        intent = self.intent
        if intent is None:
            return None
        delta = day_delta(intent.anchor_x, x, self.unit_width)
        if delta == 0:
            return None
        update = candidate_dates(intent, delta)
        if update is None:
            logger.debug("Rejected %s of task %s by %+d days", intent.mode, intent.task_id, delta)
            return None
        self._emit(update)
        return update

    def pointer_up(self) -> None:
        self.intent = None

    def pointer_leave(self) -> None:
        self.intent = None
