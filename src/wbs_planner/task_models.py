from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Literal


TaskStatus = Literal["pending", "in_progress", "completed", "cancelled"]
"""Lifecycle of a task: pending, in progress, completed, cancelled."""

TASK_STATUSES: tuple[str, ...] = ("pending", "in_progress", "completed", "cancelled")


@dataclass
class Project:
    """Container that scopes a set of tasks."""

    id: str
    name: str
    created_at: str
    description: str | None = None
    start_date: date | None = None
    end_date: date | None = None


@dataclass
class Task:
    """Single WBS item as stored; the hierarchy is expressed through parent_id."""

    id: str
    project_id: str
    title: str
    created_at: str
    parent_id: str | None = None
    description: str | None = None
    status: TaskStatus = "pending"
    priority: int = 0
    start_date: date | None = None
    end_date: date | None = None
    progress: int = 0
    order_index: int = 0

    @property
    def has_dates(self) -> bool:
        """True when both ends of the date range are known."""
        return self.start_date is not None and self.end_date is not None


@dataclass
class TaskTreeNode:
    """
    A task placed in the derived hierarchy.

    Nodes are rebuilt from the flat task list on every change and are never
    cached, so they must not be mutated by consumers.
    """

    task: Task
    children: list["TaskTreeNode"] = field(default_factory=list)
    level: int = 0

    @property
    def id(self) -> str:
        return self.task.id

    @property
    def has_children(self) -> bool:
        return bool(self.children)


@dataclass
class DailyTodo:
    """Entry of the flat per-day todo list, optionally linked to a task."""

    id: str
    title: str
    date: date
    created_at: str
    task_id: str | None = None
    completed: bool = False
    memo: str | None = None


@dataclass
class TodoView:
    """Todo enriched with the titles of its linked task and project."""

    todo: DailyTodo
    task_title: str | None = None
    project_name: str | None = None


@dataclass(frozen=True)
class BarPosition:
    """Horizontal placement of a bar within the timeline, in pixels."""

    offset: float
    width: float


@dataclass
class TimelineRow:
    """
    Flattened view of a visible tree node used by renderers.

    Only the fields relevant to drawing are kept: positional order,
    indentation level, expand state, status and the bar placement (None when
    the task cannot be drawn in the current window).
    """

    order: int
    indent: int
    node_id: str
    title: str
    status: TaskStatus
    progress: int
    has_children: bool = False
    expanded: bool = False
    start_date: date | None = None
    end_date: date | None = None
    bar: BarPosition | None = None
