"""
Snapshot store re-exports.

A store keeps the last successfully fetched document per case. The worker is
the only writer; change detection only reads what `load` returns.
"""
from core.db.snapshots.file_store import (
    FileSnapshotStore,
    SnapshotError,
    validate_case_id,
)
from core.db.snapshots.pg_store import PostgresSnapshotStore

__all__ = [
    "FileSnapshotStore",
    "SnapshotError",
    "validate_case_id",
    "PostgresSnapshotStore",
]
