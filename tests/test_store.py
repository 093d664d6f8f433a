import datetime as dt

import pytest

from wbs_planner.store import StoreError, StoreValidationError, YamlTaskStore


def _seed(store):
    project = store.create_project("Website", start_date=dt.date(2024, 5, 1))
    design = store.create_task(project.id, "Design", start_date=dt.date(2024, 5, 1), end_date=dt.date(2024, 5, 3))
    wireframes = store.create_task(project.id, "Wireframes", parent_id=design.id)
    build = store.create_task(project.id, "Build")
    return project, design, wireframes, build


def test_create_task_assigns_sibling_order(store):
    project, design, wireframes, build = _seed(store)
    mockups = store.create_task(project.id, "Mockups", parent_id=design.id)

    assert (design.order_index, build.order_index) == (0, 1)
    assert (wireframes.order_index, mockups.order_index) == (0, 1)
    assert design.progress == 0
    assert design.status == "pending"


def test_round_trip_through_yaml(store, tmp_path):
    project, design, wireframes, _ = _seed(store)
    store.add_task_to_todo(design.id, dt.date(2024, 5, 2))

    reloaded = YamlTaskStore(tmp_path / "store.yml")

    tasks = reloaded.list_tasks(project.id)
    assert [t.title for t in tasks] == ["Design", "Wireframes", "Build"]
    assert tasks[0].start_date == dt.date(2024, 5, 1)
    assert tasks[1].parent_id == design.id
    assert reloaded.get_project(project.id).start_date == dt.date(2024, 5, 1)
    assert [v.todo.title for v in reloaded.list_todos(dt.date(2024, 5, 2))] == ["Design"]


def test_list_tasks_returns_copies(store):
    project, design, _, _ = _seed(store)

    listed = store.list_tasks(project.id)[0]
    listed.title = "Changed"

    assert store.get_task(design.id).title == "Design"


def test_update_task_dates_rejects_inverted_range(store):
    _, design, _, _ = _seed(store)

    with pytest.raises(StoreValidationError):
        store.update_task_dates(design.id, dt.date(2024, 5, 5), dt.date(2024, 5, 4))

    store.update_task_dates(design.id, dt.date(2024, 5, 5), dt.date(2024, 5, 6))
    assert store.get_task(design.id).end_date == dt.date(2024, 5, 6)


def test_update_task_validates_status_and_progress(store):
    project, design, _, _ = _seed(store)
    task = store.list_tasks(project.id)[0]

    task.progress = 150
    with pytest.raises(StoreValidationError):
        store.update_task(task)

    task.progress = 60
    task.status = "in_progress"
    store.update_task(task)
    assert store.get_task(design.id).progress == 60
    assert store.get_task(design.id).status == "in_progress"


def test_unknown_ids_raise_store_error(store):
    with pytest.raises(StoreError):
        store.update_task_dates("missing", None, None)
    with pytest.raises(StoreError):
        store.create_task("missing", "Task")
    with pytest.raises(StoreError):
        store.toggle_todo("missing")


def test_delete_task_cascades_and_unlinks_todos(store):
    project, design, wireframes, build = _seed(store)
    todo = store.add_task_to_todo(wireframes.id, dt.date(2024, 5, 2))

    store.delete_task(design.id)

    assert [t.id for t in store.list_tasks(project.id)] == [build.id]
    views = store.list_todos(dt.date(2024, 5, 2))
    assert views[0].todo.id == todo.id
    assert views[0].todo.task_id is None
    assert views[0].todo.title == "Wireframes"


def test_delete_project_removes_its_tasks(store):
    project, _, _, _ = _seed(store)
    other = store.create_project("Other")
    store.create_task(other.id, "Keep")

    store.delete_project(project.id)

    assert store.list_tasks(project.id) == []
    assert [t.title for t in store.list_tasks(other.id)] == ["Keep"]


def test_list_projects_newest_first(store):
    first = store.create_project("First")
    second = store.create_project("Second")

    assert [p.id for p in store.list_projects()] == [second.id, first.id]


def test_todos_listing_order_and_toggle(store):
    project, design, _, _ = _seed(store)
    day = dt.date(2024, 5, 2)
    a = store.create_todo("Write notes", day)
    b = store.add_task_to_todo(design.id, day)
    store.create_todo("Other day", dt.date(2024, 5, 3))

    assert store.toggle_todo(a.id) is True

    views = store.list_todos(day)
    assert [v.todo.id for v in views] == [b.id, a.id]
    assert views[0].task_title == "Design"
    assert views[0].project_name == "Website"
    assert views[1].project_name is None

    assert store.toggle_todo(a.id) is False


def test_update_memo_and_delete_todo(store):
    day = dt.date(2024, 5, 2)
    todo = store.create_todo("Standup", day)

    store.update_todo_memo(todo.id, "notes")
    assert store.list_todos(day)[0].todo.memo == "notes"
    store.update_todo_memo(todo.id, "")
    assert store.list_todos(day)[0].todo.memo is None

    store.delete_todo(todo.id)
    assert store.list_todos(day) == []


def test_loading_accepts_unquoted_yaml_dates(tmp_path):
    path = tmp_path / "store.yml"
    path.write_text(
        """
projects:
  - id: p1
    name: Site
    created_at: 2024-05-01 09:00:00
tasks:
  - id: t1
    project_id: p1
    title: Design
    start_date: 2024-05-10
    end_date: "2024-05-12"
    created_at: "2024-05-01 09:00:00"
""",
        encoding="utf-8",
    )

    store = YamlTaskStore(path)

    task = store.list_tasks("p1")[0]
    assert task.start_date == dt.date(2024, 5, 10)
    assert task.end_date == dt.date(2024, 5, 12)
    assert store.get_project("p1").created_at == "2024-05-01 09:00:00"


@pytest.mark.parametrize(
    "document, message",
    [
        ("- not a mapping\n", "expected mapping at top level"),
        ("tasks:\n  - id: t1\n    title: X\n    created_at: x\n", "missing required field 'project_id'"),
        (
            "tasks:\n  - {id: t1, project_id: p, title: X, created_at: x, status: done}\n",
            "tasks[0].status",
        ),
        (
            "tasks:\n  - {id: t1, project_id: p, title: X, created_at: x, start_date: soon}\n",
            "tasks[0].start_date: expected YYYY-MM-DD string",
        ),
        (
            "tasks:\n  - {id: t1, project_id: p, title: X, created_at: x,"
            " start_date: 2024-05-03, end_date: 2024-05-01}\n",
            "is after end",
        ),
        (
            "tasks:\n  - {id: t1, project_id: p, title: X, created_at: x}\n"
            "  - {id: t1, project_id: p, title: Y, created_at: x}\n",
            "duplicate id 't1'",
        ),
        ("tasks:\n  - {id: t1, project_id: p, title: X, created_at: x, colour: red}\n", "unexpected fields"),
    ],
)
def test_invalid_documents_raise_validation_error(tmp_path, document, message):
    path = tmp_path / "store.yml"
    path.write_text(document, encoding="utf-8")

    with pytest.raises(StoreValidationError) as excinfo:
        YamlTaskStore(path)

    assert message in str(excinfo.value)


def test_unwritable_location_raises_store_error(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory", encoding="utf-8")
    store = YamlTaskStore(blocker / "store.yml")

    with pytest.raises(StoreError, match="cannot write"):
        store.create_project("Site")
