from __future__ import annotations

import datetime as _dt
import os
import tempfile
import uuid
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Callable, Protocol

import yaml

from .logs import get_logger
from .task_models import TASK_STATUSES, DailyTodo, Project, Task, TodoView

logger = get_logger("store")

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

_PROJECT_KEYS = {"id", "name", "description", "start_date", "end_date", "created_at"}
_TASK_KEYS = {
    "id",
    "project_id",
    "parent_id",
    "title",
    "description",
    "status",
    "priority",
    "start_date",
    "end_date",
    "progress",
    "order_index",
    "created_at",
}
_TODO_KEYS = {"id", "task_id", "title", "date", "completed", "memo", "created_at"}


class StoreError(Exception):
    """Raised when a store operation cannot be carried out (unknown ids, I/O)."""


class StoreValidationError(StoreError):
    """Raised when a document or a write violates the data model."""


class TaskStore(Protocol):
    """Persistence boundary consumed by the timeline engine."""

    def list_tasks(self, project_id: str) -> list[Task]: ...

    def update_task_dates(self, task_id: str, start_date: _dt.date | None, end_date: _dt.date | None) -> None: ...

    def update_task(self, task: Task) -> None: ...


@dataclass(frozen=True)
class _Path:
    """Helper to produce readable YAML path strings like tasks[0].start_date."""

    parts: tuple[str, ...] = ()

    def child(self, segment: str) -> "_Path":
        return _Path(self.parts + (segment,))

    def __str__(self) -> str:  # pragma: no cover - trivial
        return ".".join(self.parts) if self.parts else "root"


def _now() -> str:
    return _dt.datetime.now().strftime(TIMESTAMP_FORMAT)


class YamlTaskStore:
    """
    Projects, tasks and daily todos kept in a single YAML document.

    The whole document is loaded on construction and rewritten on every
    mutation. Deletes cascade the way the relational schema they mirror does:
    removing a task removes its descendants and unlinks todos that pointed at it.
    """

    def __init__(self, path: str | os.PathLike[str], clock: Callable[[], str] = _now) -> None:
        self.path = Path(path)
        self._clock = clock
        self.projects: list[Project] = []
        self.tasks: list[Task] = []
        self.todos: list[DailyTodo] = []
        if self.path.exists():
            self._load()

    # -- document I/O -------------------------------------------------------

    def _load(self) -> None:
        with self.path.open("r", encoding="utf-8") as fh:
            raw = yaml.safe_load(fh)
        self.projects, self.tasks, self.todos = _parse_document(raw, _Path())
        logger.debug(
            "Loaded %d projects, %d tasks, %d todos from %s",
            len(self.projects),
            len(self.tasks),
            len(self.todos),
            self.path,
        )

    def save(self) -> None:
        """Write the document atomically next to its final location."""
        document = {
            "projects": [_dump_project(p) for p in self.projects],
            "tasks": [_dump_task(t) for t in self.tasks],
            "todos": [_dump_todo(t) for t in self.todos],
        }
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", dir=self.path.parent)
        except OSError as exc:
            raise StoreError(f"cannot write {self.path}: {exc}") from exc
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                yaml.safe_dump(document, fh, sort_keys=False, allow_unicode=True)
            os.replace(tmp_name, self.path)
        except OSError as exc:
            Path(tmp_name).unlink(missing_ok=True)
            raise StoreError(f"cannot write {self.path}: {exc}") from exc
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    # -- projects -----------------------------------------------------------

    def create_project(
        self,
        name: str,
        description: str | None = None,
        start_date: _dt.date | None = None,
        end_date: _dt.date | None = None,
    ) -> Project:
        _check_range(start_date, end_date, "project")
        project = Project(
            id=str(uuid.uuid4()),
            name=name,
            description=description,
            start_date=start_date,
            end_date=end_date,
            created_at=self._clock(),
        )
        self.projects.append(project)
        self.save()
        return project

    def list_projects(self) -> list[Project]:
        """Projects, newest first."""
        return sorted(self.projects, key=lambda p: p.created_at, reverse=True)

    def get_project(self, project_id: str) -> Project | None:
        return next((p for p in self.projects if p.id == project_id), None)

    def update_project(
        self,
        project_id: str,
        name: str,
        description: str | None = None,
        start_date: _dt.date | None = None,
        end_date: _dt.date | None = None,
    ) -> None:
        project = self._require_project(project_id)
        _check_range(start_date, end_date, f"project '{project_id}'")
        project.name = name
        project.description = description
        project.start_date = start_date
        project.end_date = end_date
        self.save()

    def delete_project(self, project_id: str) -> None:
        self._require_project(project_id)
        doomed = {t.id for t in self.tasks if t.project_id == project_id}
        self.projects = [p for p in self.projects if p.id != project_id]
        self._drop_tasks(doomed)
        self.save()

    # -- tasks --------------------------------------------------------------

    def create_task(
        self,
        project_id: str,
        title: str,
        parent_id: str | None = None,
        description: str | None = None,
        status: str = "pending",
        priority: int = 0,
        start_date: _dt.date | None = None,
        end_date: _dt.date | None = None,
    ) -> Task:
        self._require_project(project_id)
        if parent_id is not None:
            self._require_task(parent_id)
        siblings = [t.order_index for t in self.tasks if t.project_id == project_id and t.parent_id == parent_id]
        task = Task(
            id=str(uuid.uuid4()),
            project_id=project_id,
            parent_id=parent_id,
            title=title,
            description=description,
            status=status,  # type: ignore[arg-type]
            priority=priority,
            start_date=start_date,
            end_date=end_date,
            progress=0,
            order_index=max(siblings, default=-1) + 1,
            created_at=self._clock(),
        )
        _check_task(task)
        self.tasks.append(task)
        self.save()
        return task

    def get_task(self, task_id: str) -> Task | None:
        return next((t for t in self.tasks if t.id == task_id), None)

    def list_tasks(self, project_id: str) -> list[Task]:
        """Fresh copies of a project's tasks ordered by order_index."""
        tasks = [replace(t) for t in self.tasks if t.project_id == project_id]
        return sorted(tasks, key=lambda t: t.order_index)

    def update_task(self, task: Task) -> None:
        """Persist the editable fields (title, description, status, priority, dates, progress)."""
        stored = self._require_task(task.id)
        _check_task(task)
        stored.title = task.title
        stored.description = task.description
        stored.status = task.status
        stored.priority = task.priority
        stored.start_date = task.start_date
        stored.end_date = task.end_date
        stored.progress = task.progress
        self.save()

    def update_task_dates(self, task_id: str, start_date: _dt.date | None, end_date: _dt.date | None) -> None:
        stored = self._require_task(task_id)
        _check_range(start_date, end_date, f"task '{task_id}'")
        stored.start_date = start_date
        stored.end_date = end_date
        self.save()

    def delete_task(self, task_id: str) -> None:
        self._require_task(task_id)
        doomed = {task_id}
        frontier = [task_id]
        while frontier:
            parent = frontier.pop()
            for task in self.tasks:
                if task.parent_id == parent and task.id not in doomed:
                    doomed.add(task.id)
                    frontier.append(task.id)
        self._drop_tasks(doomed)
        self.save()

    def _drop_tasks(self, doomed: set[str]) -> None:
        self.tasks = [t for t in self.tasks if t.id not in doomed]
        for todo in self.todos:
            if todo.task_id in doomed:
                todo.task_id = None

    # -- daily todos --------------------------------------------------------

    def create_todo(self, title: str, day: _dt.date, task_id: str | None = None, memo: str | None = None) -> DailyTodo:
        if task_id is not None:
            self._require_task(task_id)
        todo = DailyTodo(
            id=str(uuid.uuid4()),
            task_id=task_id,
            title=title,
            date=day,
            completed=False,
            memo=memo,
            created_at=self._clock(),
        )
        self.todos.append(todo)
        self.save()
        return todo

    def add_task_to_todo(self, task_id: str, day: _dt.date) -> DailyTodo:
        """Seed a todo for `day` from a task, copying its title."""
        task = self._require_task(task_id)
        return self.create_todo(task.title, day, task_id=task.id)

    def list_todos(self, day: _dt.date) -> list[TodoView]:
        """Todos for a day: incomplete first, then by creation time."""
        views: list[TodoView] = []
        for todo in self.todos:
            if todo.date != day:
                continue
            task = self.get_task(todo.task_id) if todo.task_id else None
            project = self.get_project(task.project_id) if task else None
            views.append(
                TodoView(
                    todo=replace(todo),
                    task_title=task.title if task else None,
                    project_name=project.name if project else None,
                )
            )
        return sorted(views, key=lambda v: (v.todo.completed, v.todo.created_at))

    def toggle_todo(self, todo_id: str) -> bool:
        todo = self._require_todo(todo_id)
        todo.completed = not todo.completed
        self.save()
        return todo.completed

    def update_todo_memo(self, todo_id: str, memo: str | None) -> None:
        todo = self._require_todo(todo_id)
        todo.memo = memo or None
        self.save()

    def delete_todo(self, todo_id: str) -> None:
        self._require_todo(todo_id)
        self.todos = [t for t in self.todos if t.id != todo_id]
        self.save()

    # -- lookups ------------------------------------------------------------

    def _require_project(self, project_id: str) -> Project:
        project = self.get_project(project_id)
        if project is None:
            raise StoreError(f"unknown project '{project_id}'")
        return project

    def _require_task(self, task_id: str) -> Task:
        task = self.get_task(task_id)
        if task is None:
            raise StoreError(f"unknown task '{task_id}'")
        return task

    def _require_todo(self, todo_id: str) -> DailyTodo:
        todo = next((t for t in self.todos if t.id == todo_id), None)
        if todo is None:
            raise StoreError(f"unknown todo '{todo_id}'")
        return todo


def _check_range(start: _dt.date | None, end: _dt.date | None, what: str) -> None:
    if start is not None and end is not None and start > end:
        raise StoreValidationError(f"{what}: start {start} is after end {end}")


def _check_task(task: Task) -> None:
    if task.status not in TASK_STATUSES:
        raise StoreValidationError(f"task '{task.id}': unknown status '{task.status}'")
    if not 0 <= task.progress <= 100:
        raise StoreValidationError(f"task '{task.id}': progress {task.progress} outside 0..100")
    _check_range(task.start_date, task.end_date, f"task '{task.id}'")


# -- parsing ----------------------------------------------------------------


def _parse_document(data: Any, path: _Path) -> tuple[list[Project], list[Task], list[DailyTodo]]:
    if data is None:
        return [], [], []
    if not isinstance(data, dict):
        raise StoreValidationError(f"{path}: expected mapping at top level")
    _assert_allowed_keys(data, {"projects", "tasks", "todos"}, path)

    ids: set[str] = set()
    projects = [
        _parse_project(raw, path.child(f"projects[{idx}]"), ids)
        for idx, raw in enumerate(_require_list(data, "projects", path))
    ]
    tasks = [
        _parse_task(raw, path.child(f"tasks[{idx}]"), ids)
        for idx, raw in enumerate(_require_list(data, "tasks", path))
    ]
    todos = [
        _parse_todo(raw, path.child(f"todos[{idx}]"), ids)
        for idx, raw in enumerate(_require_list(data, "todos", path))
    ]
    return projects, tasks, todos


def _parse_project(data: Any, path: _Path, ids: set[str]) -> Project:
    if not isinstance(data, dict):
        raise StoreValidationError(f"{path}: expected mapping for project")
    _assert_allowed_keys(data, _PROJECT_KEYS, path)
    project = Project(
        id=_require_id(data, path, ids),
        name=_require_str(data, "name", path),
        description=_optional_str(data, "description", path),
        start_date=_optional_date(data, "start_date", path),
        end_date=_optional_date(data, "end_date", path),
        created_at=_require_timestamp(data, path),
    )
    _check_range(project.start_date, project.end_date, str(path))
    return project


def _parse_task(data: Any, path: _Path, ids: set[str]) -> Task:
    if not isinstance(data, dict):
        raise StoreValidationError(f"{path}: expected mapping for task")
    _assert_allowed_keys(data, _TASK_KEYS, path)

    status = data.get("status", "pending")
    if status not in TASK_STATUSES:
        raise StoreValidationError(f"{path.child('status')}: expected one of {list(TASK_STATUSES)}")
    progress = _optional_int(data, "progress", path, default=0)
    if not 0 <= progress <= 100:
        raise StoreValidationError(f"{path.child('progress')}: expected integer in 0..100")

    task = Task(
        id=_require_id(data, path, ids),
        project_id=_require_str(data, "project_id", path),
        parent_id=_optional_str(data, "parent_id", path),
        title=_require_str(data, "title", path),
        description=_optional_str(data, "description", path),
        status=status,
        priority=_optional_int(data, "priority", path, default=0),
        start_date=_optional_date(data, "start_date", path),
        end_date=_optional_date(data, "end_date", path),
        progress=progress,
        order_index=_optional_int(data, "order_index", path, default=0),
        created_at=_require_timestamp(data, path),
    )
    _check_range(task.start_date, task.end_date, str(path))
    return task


def _parse_todo(data: Any, path: _Path, ids: set[str]) -> DailyTodo:
    if not isinstance(data, dict):
        raise StoreValidationError(f"{path}: expected mapping for todo")
    _assert_allowed_keys(data, _TODO_KEYS, path)

    completed = data.get("completed", False)
    if not isinstance(completed, bool):
        raise StoreValidationError(f"{path.child('completed')}: expected boolean")
    return DailyTodo(
        id=_require_id(data, path, ids),
        task_id=_optional_str(data, "task_id", path),
        title=_require_str(data, "title", path),
        date=_parse_date(_require_value(data, "date", path), path.child("date")),
        completed=completed,
        memo=_optional_str(data, "memo", path),
        created_at=_require_timestamp(data, path),
    )


def _assert_allowed_keys(data: dict[str, Any], allowed: set[str], path: _Path) -> None:
    extras = sorted(set(data.keys()) - allowed)
    if extras:
        raise StoreValidationError(f"{path}: unexpected fields {extras}")


def _require_list(data: dict[str, Any], key: str, path: _Path) -> list[Any]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise StoreValidationError(f"{path.child(key)}: expected list")
    return value


def _require_str(data: dict[str, Any], key: str, path: _Path) -> str:
    value = _require_value(data, key, path)
    if not isinstance(value, str) or not value.strip():
        raise StoreValidationError(f"{path.child(key)}: expected non-empty string")
    return value


def _optional_str(data: dict[str, Any], key: str, path: _Path) -> str | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise StoreValidationError(f"{path.child(key)}: expected string")
    return value


def _optional_int(data: dict[str, Any], key: str, path: _Path, default: int) -> int:
    value = data.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int):
        raise StoreValidationError(f"{path.child(key)}: expected integer")
    return value


def _require_value(data: dict[str, Any], key: str, path: _Path) -> Any:
    if key not in data:
        raise StoreValidationError(f"{path}: missing required field '{key}'")
    return data[key]


def _require_id(data: dict[str, Any], path: _Path, ids: set[str]) -> str:
    value = _require_str(data, "id", path)
    if value in ids:
        raise StoreValidationError(f"{path.child('id')}: duplicate id '{value}'")
    ids.add(value)
    return value


def _require_timestamp(data: dict[str, Any], path: _Path) -> str:
    value = _require_value(data, "created_at", path)
    # PyYAML resolves unquoted timestamps to datetime objects.
    if isinstance(value, _dt.datetime):
        return value.strftime(TIMESTAMP_FORMAT)
    if not isinstance(value, str):
        raise StoreValidationError(f"{path.child('created_at')}: expected timestamp string")
    return value


def _optional_date(data: dict[str, Any], key: str, path: _Path) -> _dt.date | None:
    value = data.get(key)
    if value is None:
        return None
    return _parse_date(value, path.child(key))


def _parse_date(value: Any, path: _Path) -> _dt.date:
    # PyYAML resolves unquoted YYYY-MM-DD scalars to date objects.
    if isinstance(value, _dt.date) and not isinstance(value, _dt.datetime):
        return value
    if not isinstance(value, str):
        raise StoreValidationError(f"{path}: expected YYYY-MM-DD string")
    try:
        parsed = _dt.date.fromisoformat(value)
    except ValueError as exc:
        raise StoreValidationError(f"{path}: expected YYYY-MM-DD string") from exc
    return parsed


# -- dumping ----------------------------------------------------------------


def _iso(value: _dt.date | None) -> str | None:
    return value.isoformat() if value else None


def _dump_project(project: Project) -> dict[str, Any]:
    return {
        "id": project.id,
        "name": project.name,
        "description": project.description,
        "start_date": _iso(project.start_date),
        "end_date": _iso(project.end_date),
        "created_at": project.created_at,
    }


def _dump_task(task: Task) -> dict[str, Any]:
    return {
        "id": task.id,
        "project_id": task.project_id,
        "parent_id": task.parent_id,
        "title": task.title,
        "description": task.description,
        "status": task.status,
        "priority": task.priority,
        "start_date": _iso(task.start_date),
        "end_date": _iso(task.end_date),
        "progress": task.progress,
        "order_index": task.order_index,
        "created_at": task.created_at,
    }


def _dump_todo(todo: DailyTodo) -> dict[str, Any]:
    return {
        "id": todo.id,
        "task_id": todo.task_id,
        "title": todo.title,
        "date": todo.date.isoformat(),
        "completed": todo.completed,
        "memo": todo.memo,
        "created_at": todo.created_at,
    }
