from __future__ import annotations

import datetime as dt
from typing import Iterable

from .task_models import TodoView


def generate_daily_report(todos: Iterable[TodoView], day: dt.date, memo: str = "") -> str:
    """
    Render the markdown daily report for `day`.

    Completed todos come first (with their memo as a sub-bullet), then the
    incomplete ones; the memo section is only written when a memo is given.
    """

    todo_list = list(todos)
    completed = [view for view in todo_list if view.todo.completed]
    incomplete = [view for view in todo_list if not view.todo.completed]

    lines = [f"# Daily report - {day.isoformat()}", "", "## Completed"]
    if not completed:
        lines.append("None")
    for view in completed:
        lines.append(f"- [x] {_label(view)}")
        if view.todo.memo:
            lines.append(f"  - {view.todo.memo}")

    lines += ["", "## Incomplete"]
    if not incomplete:
        lines.append("None")
    for view in incomplete:
        lines.append(f"- [ ] {_label(view)}")

    if memo:
        lines += ["", "## Memo", memo]

    return "\n".join(lines) + "\n"


def _label(view: TodoView) -> str:
    if view.project_name:
        return f"{view.project_name}: {view.todo.title}"
    return view.todo.title
