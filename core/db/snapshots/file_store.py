"""
JSON-file snapshot store: one `<case_id>.json` per tracked case.
"""
from __future__ import annotations

import os
import re
import tempfile
from pathlib import Path
from typing import Optional

from core.status.document import InvalidDocument, StatusDocument

_CASE_ID_RE = re.compile(r"^[A-Za-z0-9_-]+$")


class SnapshotError(Exception):
    """The stored snapshot exists but could not be read or written."""


def validate_case_id(case_id: str) -> str:
    case_id = (case_id or "").strip()
    if not _CASE_ID_RE.fullmatch(case_id):
        raise ValueError(f"invalid case id: {case_id!r}")
    return case_id


class FileSnapshotStore:
    def __init__(self, state_dir: str | os.PathLike):
        self.state_dir = Path(state_dir)

    def path_for(self, case_id: str) -> Path:
        return self.state_dir / f"{validate_case_id(case_id)}.json"

    def load(self, case_id: str) -> Optional[StatusDocument]:
        """
        Return the last saved snapshot, or None when the case has never been saved.
        Unreadable or corrupt files raise SnapshotError.
        """
        path = self.path_for(case_id)
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as exc:
            raise SnapshotError(f"could not read {path}: {exc}") from exc

        try:
            return StatusDocument.from_json(text)
        except InvalidDocument as exc:
            raise SnapshotError(f"corrupt snapshot {path}: {exc}") from exc

    def save(self, case_id: str, document: StatusDocument) -> None:
        path = self.path_for(case_id)
        try:
            self.state_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{path.stem}.", suffix=".tmp", dir=self.state_dir)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    fh.write(document.to_json())
                os.replace(tmp_name, path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as exc:
            raise SnapshotError(f"could not write {path}: {exc}") from exc


__all__ = ["SnapshotError", "validate_case_id", "FileSnapshotStore"]
