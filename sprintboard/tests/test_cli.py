from sprintboard.cli import main
from sprintboard.db import get_conn
from sprintboard.services.wiring import reset_tracker


def test_init_then_list_and_recompute(tmp_db_path, capsys):
    reset_tracker()
    main(["init", "--project-name", "Demo"])
    with get_conn() as conn:
        project = conn.execute("SELECT id, name FROM projects").fetchone()
        assert project["name"] == "Demo"
        cur = conn.execute(
            "INSERT INTO sprints(name, status, start_date, end_date, project_id) VALUES (?,?,?,?,?)",
            ("CLI sprint", "active", "2024-06-01", "2024-06-14", project["id"]),
        )
        sprint_id = cur.lastrowid
        conn.execute("INSERT INTO tasks(title, status, sprint_id) VALUES ('t', 'done', ?)", (sprint_id,))

    main(["sprints", "--status", "active"])
    main(["recompute", "--sprint", str(sprint_id)])
    out = capsys.readouterr().out
    assert "Initialized" in out
    assert "CLI sprint" in out
    assert "1/1 tasks, 100.00%" in out
    reset_tracker()


def test_no_command_prints_help(capsys):
    main([])
    assert "usage" in capsys.readouterr().out
