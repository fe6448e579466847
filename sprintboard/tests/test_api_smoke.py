from __future__ import annotations

from unittest.mock import AsyncMock, patch

from sprintboard.db import get_conn


SPRINT = {
    "name": "API sprint",
    "start_date": "2024-06-01",
    "end_date": "2024-06-14",
    "project_id": "p1",
}


def test_health_and_version(client):
    assert client.get("/health").json() == {"status": "ok"}
    assert client.get("/version").json()["app"] == "sprintboard-api"


def test_create_sprint_and_read_back(client, seeded_project):
    r = client.post("/api/sprints", json=SPRINT)
    assert r.status_code == 201, r.text
    sprint = r.json()["sprint"]
    assert sprint["status"] == "planned"

    got = client.get(f"/api/sprints/{sprint['id']}")
    assert got.status_code == 200
    assert got.json()["name"] == "API sprint"

    notes = client.get("/api/notifications").json()["items"]
    assert notes[0]["title"] == "Successfully created sprints"

    logs = client.get("/api/logs/search", params={"action": "CREATE_SPRINTS"}).json()
    assert logs["total"] == 1


def test_invalid_sprint_is_rejected_before_write(client, seeded_project):
    r = client.post("/api/sprints", json={**SPRINT, "start_date": "2024-06-14", "end_date": "2024-06-01"})
    assert r.status_code == 422
    detail = r.json()["detail"]
    assert detail["kind"] == "validation"
    assert "end_date" in detail["errors"]
    with get_conn() as conn:
        assert conn.execute("SELECT COUNT(1) FROM sprints").fetchone()[0] == 0


def test_illegal_transition_reports_kind(client, seeded_project):
    sprint = client.post("/api/sprints", json={**SPRINT, "status": "completed"}).json()["sprint"]
    r = client.put(f"/api/sprints/{sprint['id']}", json={"status": "active"})
    assert r.status_code == 422
    assert r.json()["detail"]["kind"] == "transition"
    assert client.put("/api/sprints/9999", json={"name": "x"}).status_code == 404


def test_board_move_persists_status(client, seeded_project):
    for title, status in (("a", "todo"), ("b", "todo"), ("c", "done")):
        r = client.post(
            "/api/resources/backlog_items/mutate",
            json={"data": {"title": title, "status": status, "project_id": seeded_project}},
        )
        assert r.status_code == 200, r.text
    board = client.get("/api/board", params={"project_id": seeded_project}).json()["columns"]
    first = board["todo"][0]

    r = client.post("/api/board/move", json={
        "item_id": first, "from_column": "todo", "from_index": 0,
        "to_column": "in-progress", "to_index": 0, "project_id": seeded_project,
    })
    body = r.json()
    assert body["persisted"] is True and body["rolled_back"] is False
    assert body["columns"]["in-progress"] == [first]
    with get_conn() as conn:
        status = conn.execute("SELECT status FROM backlog_items WHERE id=?", (first,)).fetchone()["status"]
    assert status == "in-progress"

    bad = client.post("/api/board/move", json={
        "item_id": first, "from_column": "todo", "from_index": 0,
        "to_column": "done", "to_index": 0, "project_id": seeded_project,
    })
    assert bad.status_code == 400


def test_resource_query_and_table_probe(client, seeded_project):
    client.post("/api/sprints", json=SPRINT)
    r = client.post("/api/resources/sprints/query", json={
        "filters": [{"column": "status", "operator": "eq", "value": "planned"}],
        "relationships": ["projects"],
    })
    assert r.status_code == 200
    items = r.json()["items"]
    assert items[0]["projects"]["id"] == "p1"

    assert client.post("/api/resources/sprints/query", json={
        "filters": [{"column": "status", "operator": "between", "value": 1}],
    }).status_code == 400

    assert client.get("/api/tables/sprints/exists").json()["exists"] is True
    ghost = client.get("/api/tables/ghosts/exists").json()
    assert ghost == {"name": "ghosts", "exists": False, "status": "absent"}
    assert client.post("/api/resources/ghosts/query", json={}).status_code == 502
    cleared = client.post("/api/tables/cache/clear", json={"name": "ghosts"}).json()
    assert "ghosts" not in cleared["cache"]


def test_mutate_without_id_or_data_is_bad_request(client):
    assert client.post("/api/resources/sprints/mutate", json={}).status_code == 400


def test_settings_roundtrip(client):
    r = client.post("/api/settings/update", json={"updates": {"guard_window_ms": 250}})
    assert r.status_code == 200
    assert client.get("/api/settings/get").json()["guard_window_ms"] == 250
    assert client.post("/api/settings/update", json={"updates": {"nope": 1}}).status_code == 400


def test_sprint_form_sessions_guard_writes(client, seeded_project):
    client.post("/api/settings/update", json={"updates": {"guard_window_ms": 60000}})
    form_id = client.post("/api/sprints/forms", json={}).json()["form_id"]
    early = client.post(f"/api/sprints/forms/{form_id}/submit", json=SPRINT)
    assert early.status_code == 409
    assert early.json()["detail"]["reason"] == "guard_window"
    assert client.post(f"/api/sprints/forms/{form_id}/close").status_code == 200
    assert client.post(f"/api/sprints/forms/{form_id}/close").status_code == 404

    client.post("/api/settings/update", json={"updates": {"guard_window_ms": 0}})
    opened = client.post("/api/sprints/forms", json={})
    assert opened.status_code == 201 and opened.json()["editing"] is False
    submit = f"/api/sprints/forms/{opened.json()['form_id']}/submit"
    bad = client.post(submit, json={**SPRINT, "start_date": "2024-06-14", "end_date": "2024-06-01"})
    assert bad.status_code == 422
    assert set(bad.json()["detail"]["errors"]) == {"end_date"}
    saved = client.post(submit, json=SPRINT)
    assert saved.status_code == 200
    again = client.post(submit, json=SPRINT)
    assert again.status_code == 409
    assert again.json()["detail"]["reason"] == "session_closed"
    with get_conn() as conn:
        assert conn.execute("SELECT COUNT(1) AS n FROM sprints").fetchone()["n"] == 1

    sprint_id = saved.json()["sprint"]["id"]
    edit = client.post("/api/sprints/forms", json={"sprint_id": sprint_id}).json()
    assert edit["editing"] is True
    r = client.post(f"/api/sprints/forms/{edit['form_id']}/submit", json={"status": "active"})
    assert r.status_code == 200
    assert r.json()["sprint"]["status"] == "active"
    assert r.json()["sprint"]["name"] == SPRINT["name"]
    assert client.post("/api/sprints/forms", json={"sprint_id": 9999}).status_code == 404
    assert client.post("/api/sprints/forms/nope/submit", json=SPRINT).status_code == 404


class TestCurrentSprintAPI:

    @patch("sprintboard.services.sprint_svc.SprintService.current_sprint", new_callable=AsyncMock)
    def test_current_sprint_passthrough(self, mock_current, client):
        mock_current.return_value = {"id": 3, "name": "Now", "status": "active"}
        r = client.get("/api/sprints/current")
        assert r.status_code == 200
        assert r.json() == {"sprint": {"id": 3, "name": "Now", "status": "active"}}
        mock_current.assert_awaited_once()
