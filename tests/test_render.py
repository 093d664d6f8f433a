import datetime as dt

import matplotlib.pyplot as plt
import pytest

from wbs_planner.config import ChartSettings
from wbs_planner.render_gantt import render_gantt
from wbs_planner.render_rows import outline_lines, to_render_rows
from wbs_planner.report import generate_daily_report
from wbs_planner.task_models import DailyTodo, Task, TodoView
from wbs_planner.timeline import compute_window
from wbs_planner.tree import ExpansionState, build_task_tree, flatten_tree


def _tasks():
    def task(task_id, parent_id=None, order_index=0, **kwargs):
        return Task(
            id=task_id,
            project_id="p",
            title=task_id.title(),
            created_at="2024-05-01 09:00:00",
            parent_id=parent_id,
            order_index=order_index,
            **kwargs,
        )

    return [
        task("design", start_date=dt.date(2024, 5, 1), end_date=dt.date(2024, 5, 3), status="completed", progress=100),
        task("wireframes", parent_id="design", start_date=dt.date(2024, 5, 1), end_date=dt.date(2024, 5, 2)),
        task("build", order_index=1, start_date=dt.date(2024, 5, 6), end_date=dt.date(2024, 5, 20), progress=40),
        task("launch", order_index=2),
    ]


def test_render_rows_carry_levels_and_bars():
    tasks = _tasks()
    expanded = ExpansionState.all_expanded(tasks)
    window = compute_window(dt.date(2024, 5, 15))

    rows = to_render_rows(flatten_tree(build_task_tree(tasks), expanded), window, expanded, unit_width=10)

    assert [r.node_id for r in rows] == ["design", "wireframes", "build", "launch"]
    assert [r.indent for r in rows] == [0, 1, 0, 0]
    assert [r.order for r in rows] == [0, 1, 2, 3]
    assert rows[0].has_children and rows[0].expanded
    assert not rows[1].expanded
    assert rows[0].bar.offset == 30 * 10
    assert rows[2].bar.width == 15 * 10
    assert rows[3].bar is None


def test_outline_marks_folded_parents():
    tasks = _tasks()
    expanded = ExpansionState.collapsed()
    rows = to_render_rows(flatten_tree(build_task_tree(tasks), expanded), [], expanded)

    lines = outline_lines(rows)

    assert len(lines) == 3
    assert lines[0].startswith("> [x] Design")
    assert "2024-05-01 .. 2024-05-03" in lines[0]
    assert lines[2] == "  [ ] Launch  (0%)"


def test_outline_indents_children():
    tasks = _tasks()
    expanded = ExpansionState.all_expanded(tasks)
    rows = to_render_rows(flatten_tree(build_task_tree(tasks), expanded), [], expanded)

    lines = outline_lines(rows)

    assert lines[0].startswith("v [x] Design")
    assert lines[1].startswith("    [ ] Wireframes")


def test_renderer_produces_svg(tmp_path):
    tasks = _tasks()
    settings = ChartSettings(day_width=12)
    expanded = ExpansionState.all_expanded(tasks)
    window = compute_window(dt.date(2024, 5, 15))
    rows = to_render_rows(flatten_tree(build_task_tree(tasks), expanded), window, expanded, settings.day_width)

    out_file = tmp_path / "out" / "chart.svg"
    render_gantt(rows, window, out_path=str(out_file), title="Website", today=dt.date(2024, 5, 15), settings=settings)

    assert out_file.exists()
    assert out_file.read_text(encoding="utf-8").lstrip().startswith("<?xml")


def test_renderer_handles_empty_rows(tmp_path):
    window = compute_window(dt.date(2024, 5, 15))
    out_file = tmp_path / "empty.svg"

    render_gantt([], window, out_path=str(out_file), title="Empty")

    assert out_file.stat().st_size > 0


def _view(title, completed=False, memo=None, project=None):
    todo = DailyTodo(id=title, title=title, date=dt.date(2024, 5, 2), created_at="2024-05-02 09:00:00",
                     completed=completed, memo=memo)
    return TodoView(todo=todo, project_name=project)


def test_daily_report_sections():
    report = generate_daily_report(
        [
            _view("Design review", completed=True, memo="approved", project="Website"),
            _view("Email vendor"),
        ],
        dt.date(2024, 5, 2),
        memo="Long day",
    )

    assert report == (
        "# Daily report - 2024-05-02\n"
        "\n"
        "## Completed\n"
        "- [x] Website: Design review\n"
        "  - approved\n"
        "\n"
        "## Incomplete\n"
        "- [ ] Email vendor\n"
        "\n"
        "## Memo\n"
        "Long day\n"
    )


def test_daily_report_empty_sections_and_no_memo():
    report = generate_daily_report([], dt.date(2024, 5, 2))

    assert report.count("None") == 2
    assert "## Memo" not in report


def test_renderer_closes_figure_when_saving_fails(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory", encoding="utf-8")
    window = compute_window(dt.date(2024, 5, 15))
    open_before = len(plt.get_fignums())

    with pytest.raises(OSError):
        render_gantt([], window, out_path=str(blocker / "chart.svg"), title="Blocked")

    assert len(plt.get_fignums()) == open_before
