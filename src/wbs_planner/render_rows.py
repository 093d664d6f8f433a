from __future__ import annotations

import datetime as dt
from typing import Iterable, List, Sequence

from .task_models import TaskTreeNode, TimelineRow
from .timeline import DAY_WIDTH, position
from .tree import ExpansionState

_STATUS_MARKS = {
    "pending": "[ ]",
    "in_progress": "[~]",
    "completed": "[x]",
    "cancelled": "[-]",
}


def to_render_rows(
    visible: Iterable[TaskTreeNode],
    window: Sequence[dt.date],
    expanded: ExpansionState,
    unit_width: float = DAY_WIDTH,
) -> list[TimelineRow]:
    """
    Convert flattened tree nodes into render rows for the given window.

    Rows keep the flattened order; indentation follows the node level and
    bars are placed with the position mapper (None when not drawable).
    """

    rows: List[TimelineRow] = []
    for order, node in enumerate(visible):
        task = node.task
        rows.append(
            TimelineRow(
                order=order,
                indent=node.level,
                node_id=node.id,
                title=task.title,
                status=task.status,
                progress=task.progress,
                has_children=node.has_children,
                expanded=node.has_children and expanded.is_expanded(node.id),
                start_date=task.start_date,
                end_date=task.end_date,
                bar=position(task, window, unit_width) if window else None,
            )
        )
    return rows


def outline_lines(rows: Iterable[TimelineRow], indent_width: int = 2) -> list[str]:
    """Render rows as the indented WBS list, one line per row."""

    lines: list[str] = []
    for row in rows:
        if row.has_children:
            marker = "v" if row.expanded else ">"
        else:
            marker = " "
        text = f"{' ' * (row.indent * indent_width)}{marker} {_STATUS_MARKS.get(row.status, '[?]')} {row.title}"
        details = [f"{row.progress}%"]
        if row.start_date or row.end_date:
            start = row.start_date.isoformat() if row.start_date else "?"
            end = row.end_date.isoformat() if row.end_date else "?"
            details.append(f"{start} .. {end}")
        lines.append(f"{text}  ({', '.join(details)})")
    return lines
