import os

import pytest

if not os.getenv("DATABASE_URL"):
    pytest.skip("DATABASE_URL must be set for Postgres-only tests.", allow_module_level=True)

from core.db.base import get_conn
from core.db.snapshots import PostgresSnapshotStore
from core.status.document import StatusDocument


@pytest.fixture(autouse=True)
def _clean_db():
    store = PostgresSnapshotStore()
    conn = get_conn()
    cur = conn.cursor()
    cur.execute("TRUNCATE case_snapshots RESTART IDENTITY")
    conn.commit()
    conn.close()
    yield store


def test_load_returns_latest_version(_clean_db):
    store = _clean_db
    assert store.load("PG1") is None

    store.save("PG1", StatusDocument({"status": "Received"}))
    store.save("PG1", StatusDocument({"status": "Approved", "data": {"x": [1, 2]}}))

    assert store.load("PG1") == {"status": "Approved", "data": {"x": [1, 2]}}
    history = store.history("PG1")
    assert len(history) == 2
    assert history[0]["document"]["status"] == "Approved"
    assert store.load("PG2") is None
