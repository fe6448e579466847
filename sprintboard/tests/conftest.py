import os
import sys
import sqlite3
import pytest
from pathlib import Path

# Ensure project root on sys.path
_THIS_DIR = Path(__file__).resolve().parent
_PROJECT_ROOT = _THIS_DIR.parent.parent
if str(_PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(_PROJECT_ROOT))


@pytest.fixture(scope="session")
def tmp_db_path(tmp_path_factory):
    path = tmp_path_factory.mktemp("db") / "sprintboard_test.db"
    # Point the package to this temp DB
    os.environ["SPRINTBOARD_DB_PATH"] = str(path)
    from sprintboard.db import ensure_schema
    from sprintboard.logs import ensure_log_schema
    ensure_schema(str(path))
    ensure_log_schema(str(path))
    return str(path)


@pytest.fixture()
def client(tmp_db_path):
    from sprintboard.services.config_svc import ensure_default_config
    from sprintboard.services.wiring import reset_tracker
    ensure_default_config()
    reset_tracker()
    # Import app after DB ready so startup hooks can use it
    from sprintboard.api import app
    from fastapi.testclient import TestClient
    with TestClient(app) as c:
        yield c
    reset_tracker()


@pytest.fixture()
def seeded_project(tmp_db_path):
    conn = sqlite3.connect(tmp_db_path)
    try:
        conn.execute("INSERT INTO projects(id, name) VALUES (?, ?)", ("p1", "Project One"))
        conn.commit()
    finally:
        conn.close()
    return "p1"


@pytest.fixture(autouse=True)
def _clean_db(request):
    # Only tests that touch the temp DB get it wiped
    if "tmp_db_path" not in request.fixturenames:
        yield
        return
    tmp_db_path = request.getfixturevalue("tmp_db_path")
    # Safety: ensure we only ever wipe the temp DB, never a real one
    assert os.environ.get("SPRINTBOARD_DB_PATH") == tmp_db_path, "Refusing to clean non-temp DB"
    tables = [
        "tasks",
        "backlog_items",
        "team_members",
        "sprints",
        "projects",
        "config",
        "operation_log",
    ]
    conn = sqlite3.connect(tmp_db_path)
    try:
        for t in tables:
            conn.execute(f"DELETE FROM {t}")
        conn.commit()
    finally:
        conn.close()
    yield
