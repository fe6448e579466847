import asyncio
import datetime as dt

import pytest

from sprintboard.errors import TransitionError, ValidationError
from sprintboard.logs import LogContext
from sprintboard.repository.sqlite_store import SqliteStore
from sprintboard.services.sprint_svc import SprintService, sprint_payload
from sprintboard.services.table_cache import TableExistenceCache

from .fakes import FakeStore


def _service(db_path):
    store = SqliteStore(db_path)
    return SprintService(store, log_factory=LogContext, table_cache=TableExistenceCache(store))


def _sprint(svc, project_id, **over):
    form = {
        "name": "S",
        "start_date": "2024-06-01",
        "end_date": "2024-06-14",
        "project_id": project_id,
        "status": "planned",
    }
    form.update(over)
    res = asyncio.run(svc.create_sprint(form))
    assert res.ok, res.error
    return res.value


def test_sprint_payload_keeps_writable_columns():
    payload = sprint_payload({
        "name": "S", "startDate": dt.date(2024, 1, 1), "end_date": "2024-01-05",
        "description": "", "progress": 90, "original_status": "active",
    })
    assert payload == {
        "name": "S", "description": None, "start_date": "2024-01-01",
        "end_date": "2024-01-05", "status": "planned",
    }


def test_create_validates_before_any_call():
    store = FakeStore()
    svc = SprintService(store)
    with pytest.raises(ValidationError) as exc:
        asyncio.run(svc.create_sprint({"name": "S", "start_date": "2024-06-10", "end_date": "2024-06-01",
                                       "project_id": "p1"}))
    assert "end_date" in exc.value.errors
    assert store.calls == []


def test_create_ignores_original_status_in_either_spelling():
    store = FakeStore()
    svc = SprintService(store)
    form = {"name": "S", "start_date": "2024-06-01", "end_date": "2024-06-14", "project_id": "p1",
            "status": "active"}
    for key in ("original_status", "originalStatus"):
        asyncio.run(svc.create_sprint({**form, key: "completed"}))
    inserts = store.actions("insert")
    assert len(inserts) == 2
    assert all("originalStatus" not in q.rows[0] and "original_status" not in q.rows[0] for q in inserts)


def test_list_filters_by_status(tmp_db_path, seeded_project):
    svc = _service(tmp_db_path)
    _sprint(svc, seeded_project, name="a", status="planned")
    _sprint(svc, seeded_project, name="b", status="active")
    _sprint(svc, seeded_project, name="c", status="completed")
    one = asyncio.run(svc.list_sprints(seeded_project, "active"))
    two = asyncio.run(svc.list_sprints(seeded_project, ["planned", "active"]))
    assert [s["name"] for s in one] == ["b"]
    assert sorted(s["name"] for s in two) == ["a", "b"]
    assert asyncio.run(svc.list_sprints("other-project")) == []


def test_current_sprint_prefers_range_then_latest(tmp_db_path, seeded_project):
    svc = _service(tmp_db_path)
    _sprint(svc, seeded_project, name="old", status="active", start_date="2024-05-01", end_date="2024-05-14")
    _sprint(svc, seeded_project, name="now", status="active", start_date="2024-06-01", end_date="2024-06-14")
    _sprint(svc, seeded_project, name="next", status="planned", start_date="2024-06-15", end_date="2024-06-28")
    assert asyncio.run(svc.current_sprint(dt.date(2024, 5, 3)))["name"] == "old"
    assert asyncio.run(svc.current_sprint(dt.date(2024, 6, 5)))["name"] == "now"
    assert asyncio.run(svc.current_sprint(dt.date(2024, 8, 1)))["name"] == "now"


def test_current_sprint_none_without_active(tmp_db_path, seeded_project):
    svc = _service(tmp_db_path)
    _sprint(svc, seeded_project, status="planned")
    assert asyncio.run(svc.current_sprint(dt.date(2024, 6, 5))) is None


def test_recompute_progress_from_tasks(tmp_db_path, seeded_project):
    svc = _service(tmp_db_path)
    sprint = _sprint(svc, seeded_project, status="active")
    tasks = svc.writer.for_resource("tasks")
    asyncio.run(tasks.create({"title": "t1", "status": "done", "story_points": 3, "sprint_id": sprint["id"]}))
    asyncio.run(tasks.create({"title": "t2", "status": "todo", "story_points": 5, "sprint_id": sprint["id"]}))

    agg = asyncio.run(svc.recompute_progress(sprint["id"]))
    assert agg == {"progress": 50.0, "tasks_completed": 1, "tasks_total": 2, "story_points": 8}
    row = asyncio.run(svc.get_sprint(sprint["id"]))
    assert row["progress"] == 50.0 and row["tasks_total"] == 2
    assert len(asyncio.run(svc.tasks_for_sprints([sprint["id"], None]))) == 2


def test_update_checks_transition_against_stored_status(tmp_db_path, seeded_project):
    svc = _service(tmp_db_path)
    sprint = _sprint(svc, seeded_project, status="active")
    with pytest.raises(TransitionError):
        asyncio.run(svc.update_sprint(sprint["id"], {"status": "planned"}))
    renamed = asyncio.run(svc.update_sprint(sprint["id"], {"name": "Renamed"}))
    assert renamed.ok
    assert renamed.value["name"] == "Renamed"
    assert renamed.value["status"] == "active"
    done = asyncio.run(svc.update_sprint(sprint["id"], {"status": "completed"}))
    assert done.value["status"] == "completed"
    # completed is terminal: even a rename is refused
    with pytest.raises(TransitionError):
        asyncio.run(svc.update_sprint(sprint["id"], {"name": "Again"}))


def test_update_missing_sprint_returns_empty_success(tmp_db_path):
    svc = _service(tmp_db_path)
    res = asyncio.run(svc.update_sprint(12345, {"name": "x"}))
    assert res.ok and res.value is None


def test_delete_sprint(tmp_db_path, seeded_project):
    svc = _service(tmp_db_path)
    sprint = _sprint(svc, seeded_project)
    assert asyncio.run(svc.delete_sprint(sprint["id"])) is True
    assert asyncio.run(svc.get_sprint(sprint["id"])) is None
    assert asyncio.run(svc.delete_sprint(None)) is False
