"""
Schema helpers for the Postgres snapshot store.
"""
from __future__ import annotations

from core.db.base import get_conn


def init_db(database_url: str | None = None) -> None:
    """Create the case_snapshots table and its lookup index if they don't exist."""
    with get_conn(database_url) as conn:
        cur = conn.cursor()
        # One row per saved version; the newest row per case is the baseline.
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS case_snapshots (
                id BIGSERIAL PRIMARY KEY,
                case_id TEXT NOT NULL,
                document JSONB NOT NULL,
                fetched_at TEXT NOT NULL
            )
            """
        )
        cur.execute(
            """
            CREATE INDEX IF NOT EXISTS idx_case_snapshots_case_latest
            ON case_snapshots (case_id, id DESC)
            """
        )


__all__ = ["init_db"]
