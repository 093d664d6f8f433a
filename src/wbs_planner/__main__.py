from __future__ import annotations

import argparse
import datetime as dt
import sys
import webbrowser
from pathlib import Path

import yaml

from .config import ConfigError, load_settings
from .drag import DRAG_MODES, DragController, PendingWrites
from .logs import get_logger, setup_logging
from .render_gantt import render_gantt
from .render_rows import outline_lines, to_render_rows
from .report import generate_daily_report
from .store import StoreError, YamlTaskStore
from .timeline import TimelineNavigator
from .tree import ExpansionState, build_task_tree, flatten_tree

logger = get_logger("cli")


def _parse_date(value: str) -> dt.date:
    try:
        return dt.date.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid date '{value}', expected YYYY-MM-DD") from exc


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="wbs-planner",
        description="Work breakdown structure and timeline planner",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    sub = parser.add_subparsers(dest="command", required=True)

    projects = sub.add_parser("projects", help="List projects, newest first")
    projects.add_argument("store", help="Path to the task store YAML")

    wbs = sub.add_parser("wbs", help="Print the indented task outline of a project")
    wbs.add_argument("store", help="Path to the task store YAML")
    wbs.add_argument("project", help="Project id")
    wbs.add_argument("--expand-all", action="store_true", help="Unfold every task with children")

    gantt = sub.add_parser(
        "gantt",
        help="Render the timeline of a project to SVG",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    gantt.add_argument("store", help="Path to the task store YAML")
    gantt.add_argument("project", help="Project id")
    gantt.add_argument("--pivot", type=_parse_date, help="Date the window is built around (default: today)")
    gantt.add_argument("--out", default="output/timeline.svg", help="Output SVG path")
    gantt.add_argument("--settings", help="YAML file overriding chart geometry")
    gantt.add_argument(
        "--view",
        dest="view",
        action="store_true",
        default=False,
        help="Best-effort open the output file after rendering",
    )
    gantt.add_argument(
        "--no-view",
        dest="view",
        action="store_false",
        help="Do not open the output file after rendering",
    )

    drag = sub.add_parser("drag", help="Replay a horizontal drag gesture on a task bar")
    drag.add_argument("store", help="Path to the task store YAML")
    drag.add_argument("task", help="Task id")
    drag.add_argument("--mode", choices=DRAG_MODES, default="move", help="Grabbed part of the bar")
    drag.add_argument("--dx", type=float, required=True, help="Pointer travel in pixels")
    drag.add_argument("--settings", help="YAML file overriding chart geometry")

    todos = sub.add_parser("todos", help="List the todos of a day")
    todos.add_argument("store", help="Path to the task store YAML")
    todos.add_argument("--date", type=_parse_date, help="Day to list (default: today)")

    report = sub.add_parser("report", help="Generate the markdown daily report")
    report.add_argument("store", help="Path to the task store YAML")
    report.add_argument("--date", type=_parse_date, help="Day to report (default: today)")
    report.add_argument("--memo", default="", help="Free text appended to the report")
    report.add_argument("--out", help="Write the report here instead of stdout")

    return parser


def _cmd_projects(store: YamlTaskStore, args: argparse.Namespace) -> int:
    for project in store.list_projects():
        print(f"{project.id}\t{project.name}")
    return 0


def _cmd_wbs(store: YamlTaskStore, args: argparse.Namespace) -> int:
    tasks = store.list_tasks(_require_project(store, args.project))
    forest = build_task_tree(tasks)
    expanded = ExpansionState.all_expanded(tasks) if args.expand_all else ExpansionState.collapsed()
    rows = to_render_rows(flatten_tree(forest, expanded), [], expanded)
    for line in outline_lines(rows):
        print(line)
    return 0


def _cmd_gantt(store: YamlTaskStore, args: argparse.Namespace) -> int:
    project_id = _require_project(store, args.project)
    settings = load_settings(args.settings)
    tasks = store.list_tasks(project_id)

    navigator = TimelineNavigator(args.pivot or dt.date.today())
    window = navigator.window
    expanded = ExpansionState.all_expanded(tasks)
    visible = flatten_tree(build_task_tree(tasks), expanded)
    rows = to_render_rows(visible, window, expanded, settings.day_width)

    render_gantt(
        rows=rows,
        window=window,
        out_path=args.out,
        title=store.get_project(project_id).name,
        today=dt.date.today(),
        settings=settings,
    )
    logger.info("Rendered %d rows over %s .. %s to %s", len(rows), window[0], window[-1], args.out)

    if args.view:
        try:
            webbrowser.open(Path(args.out).resolve().as_uri())
        except webbrowser.Error as exc:
            logger.warning("Could not open %s: %s", args.out, exc)
    return 0


def _cmd_drag(store: YamlTaskStore, args: argparse.Namespace) -> int:
    task = store.get_task(args.task)
    if task is None:
        raise StoreError(f"unknown task '{args.task}'")
    settings = load_settings(args.settings)

    writes = PendingWrites()
    controller = DragController(writes.submit, unit_width=settings.day_width)
    if not controller.pointer_down(task, args.mode, 0.0):
        print(f"Task '{task.title}' has no date range to drag", file=sys.stderr)
        return 2
    controller.pointer_move(args.dx)
    controller.pointer_up()

    result = writes.flush(store)
    if result.failed:
        return 1
    if not result.applied:
        print("No change")
        return 0
    for update in result.applied:
        print(f"{update.task_id}\t{update.start_date.isoformat()}\t{update.end_date.isoformat()}")
    return 0


def _cmd_todos(store: YamlTaskStore, args: argparse.Namespace) -> int:
    day = args.date or dt.date.today()
    for view in store.list_todos(day):
        mark = "x" if view.todo.completed else " "
        prefix = f"{view.project_name}: " if view.project_name else ""
        print(f"[{mark}] {prefix}{view.todo.title}")
    return 0


def _cmd_report(store: YamlTaskStore, args: argparse.Namespace) -> int:
    day = args.date or dt.date.today()
    content = generate_daily_report(store.list_todos(day), day, args.memo)
    if args.out:
        out = Path(args.out)
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(content, encoding="utf-8")
    else:
        sys.stdout.write(content)
    return 0


def _require_project(store: YamlTaskStore, project_id: str) -> str:
    if store.get_project(project_id) is None:
        raise StoreError(f"unknown project '{project_id}'")
    return project_id


_COMMANDS = {
    "projects": _cmd_projects,
    "wbs": _cmd_wbs,
    "gantt": _cmd_gantt,
    "drag": _cmd_drag,
    "todos": _cmd_todos,
    "report": _cmd_report,
}


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    setup_logging()

    store_path = Path(args.store)
    if args.command != "projects" and not store_path.exists():
        print(f"Error: store file not found: {store_path}", file=sys.stderr)
        return 1

    try:
        store = YamlTaskStore(store_path)
        return _COMMANDS[args.command](store, args)
    except (yaml.YAMLError, StoreError, ConfigError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2
    except FileNotFoundError as exc:
        print(f"Error: file not found: {exc.filename}", file=sys.stderr)
        return 1
    except OSError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
