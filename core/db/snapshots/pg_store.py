"""
Postgres snapshot store. Every save appends a timestamped version; the newest
version per case is the comparison baseline.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, List, Optional

from psycopg.types.json import Jsonb

from core.db.base import get_conn
from core.db.schema import init_db
from core.db.snapshots.file_store import validate_case_id
from core.status.document import StatusDocument


class PostgresSnapshotStore:
    def __init__(self, database_url: str | None = None, *, create_schema: bool = True):
        self.database_url = database_url
        if create_schema:
            init_db(database_url)

    def load(self, case_id: str) -> Optional[StatusDocument]:
        case_id = validate_case_id(case_id)
        conn = get_conn(self.database_url)
        try:
            cur = conn.cursor()
            cur.execute(
                """
                SELECT document
                FROM case_snapshots
                WHERE case_id = ?
                ORDER BY id DESC
                LIMIT 1
                """,
                (case_id,),
            )
            row = cur.fetchone()
        finally:
            conn.close()

        if not row:
            return None
        return StatusDocument(row["document"])

    def save(self, case_id: str, document: StatusDocument) -> None:
        case_id = validate_case_id(case_id)
        now = datetime.now(timezone.utc).isoformat(timespec="seconds")
        with get_conn(self.database_url) as conn:
            conn.cursor().execute(
                """
                INSERT INTO case_snapshots (case_id, document, fetched_at)
                VALUES (?, ?, ?)
                """,
                (case_id, Jsonb(document.to_dict()), now),
            )

    def history(self, case_id: str, limit: int = 20) -> List[Dict]:
        """Return saved versions for a case, newest first."""
        case_id = validate_case_id(case_id)
        conn = get_conn(self.database_url)
        try:
            cur = conn.cursor()
            cur.execute(
                """
                SELECT id, case_id, document, fetched_at
                FROM case_snapshots
                WHERE case_id = ?
                ORDER BY id DESC
                LIMIT ?
                """,
                (case_id, int(limit)),
            )
            rows = cur.fetchall()
        finally:
            conn.close()
        return [dict(r) for r in rows]


__all__ = ["PostgresSnapshotStore"]
