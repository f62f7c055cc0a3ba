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
    path = tmp_path_factory.mktemp("db") / "maillist_test.db"
    # Point maillist to this temp DB
    os.environ["MAILLIST_DB_PATH"] = str(path)
    from maillist.repository import email_repo
    conn = sqlite3.connect(str(path))
    try:
        email_repo.try_create(conn)
        conn.commit()
    finally:
        conn.close()
    return str(path)


@pytest.fixture(autouse=True)
def _clean_db(tmp_db_path):
    # Safety: ensure we only ever wipe the temp DB, never a real one
    assert os.environ.get("MAILLIST_DB_PATH") == tmp_db_path, "Refusing to clean non-temp DB"
    conn = sqlite3.connect(tmp_db_path)
    try:
        conn.execute("DELETE FROM emails")
        conn.commit()
    finally:
        conn.close()
    yield
