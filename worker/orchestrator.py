"""
Per-case poll pipeline: load -> fetch -> decide -> notify -> persist.

Every case runs in isolation. Whatever goes wrong for one case is logged and
reported in that case's result; it never stops the other cases in the cycle.
"""
from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Protocol, Sequence

from core.status.detector import Change, detect_changes, format_changes
from core.status.document import StatusDocument
from core.status.policy import Notify, decide, render_auth_failure_email
from worker.errors import AuthenticationFailed

log = logging.getLogger("tracker")


class Fetcher(Protocol):
    async def fetch(self, case_id: str) -> StatusDocument: ...


class Notifier(Protocol):
    def send(self, to_email: str, subject: str, html_body: str) -> None: ...


class SnapshotStore(Protocol):
    def load(self, case_id: str) -> Optional[StatusDocument]: ...

    def save(self, case_id: str, document: StatusDocument) -> None: ...


# -------- Poll outcomes --------
@dataclass(frozen=True)
class FirstObservation:
    document: StatusDocument
    kind: str = "first_observation"


@dataclass(frozen=True)
class Unchanged:
    document: StatusDocument
    kind: str = "unchanged"


@dataclass(frozen=True)
class Changed:
    document: StatusDocument
    changes: List[Change]
    kind: str = "changed"


@dataclass(frozen=True)
class AuthFailure:
    cause: Exception
    kind: str = "auth_failure"


@dataclass(frozen=True)
class TransientFailure:
    cause: Exception
    kind: str = "transient_failure"


@dataclass
class CaseResult:
    case_id: str
    outcome: object
    notified: bool = False
    saved: bool = False
    baseline_lost: bool = False
    notify_error: Optional[str] = None
    save_error: Optional[str] = None

    @property
    def kind(self) -> str:
        return self.outcome.kind


def all_auth_failed(results: Sequence[CaseResult]) -> bool:
    return bool(results) and all(isinstance(r.outcome, AuthFailure) for r in results)


class CaseTracker:
    def __init__(self, fetcher: Fetcher, notifier: Notifier, store: SnapshotStore, recipient: str):
        self.fetcher = fetcher
        self.notifier = notifier
        self.store = store
        self.recipient = recipient
        self._case_locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def poll_once(self, case_ids: Sequence[str]) -> List[CaseResult]:
        """Check every case concurrently; results come back in input order."""
        return list(await asyncio.gather(*(self.check_case(c) for c in case_ids)))

    async def check_case(self, case_id: str) -> CaseResult:
        # Overlapping cycles queue up behind the running pipeline for the same case.
        async with self._case_locks[case_id]:
            try:
                return await self._run_pipeline(case_id)
            except Exception as exc:
                log.exception("[%s] Unexpected error during case check", case_id)
                return CaseResult(case_id=case_id, outcome=TransientFailure(exc))

    async def _load_previous(self, case_id: str, result: CaseResult) -> Optional[StatusDocument]:
        try:
            previous = await asyncio.to_thread(self.store.load, case_id)
        except Exception as exc:
            result.baseline_lost = True
            log.warning(
                "[%s] Failed to load previous snapshot, treating as first observation: %s",
                case_id,
                exc,
                extra={"case_id": case_id},
            )
            return None
        if previous is None:
            log.info("[%s] No previous snapshot stored", case_id)
        return previous

    async def _send_auth_alert(self, case_id: str, exc: AuthenticationFailed) -> bool:
        subject, body = render_auth_failure_email("polling", exc)
        try:
            await asyncio.to_thread(self.notifier.send, self.recipient, subject, body)
        except Exception as send_exc:
            log.error("[%s] Failed to send authentication failure alert email: %s", case_id, send_exc)
            return False
        log.info("[%s] Authentication failure alert email sent to %s", case_id, self.recipient)
        return True

    async def _run_pipeline(self, case_id: str) -> CaseResult:
        result = CaseResult(case_id=case_id, outcome=None)
        previous = await self._load_previous(case_id, result)

        log.info("[%s] Fetching case status...", case_id)
        try:
            current = await self.fetcher.fetch(case_id)
        except AuthenticationFailed as exc:
            log.error("[%s] Authentication failed: %s", case_id, exc)
            result.outcome = AuthFailure(exc)
            result.notified = await self._send_auth_alert(case_id, exc)
            return result
        except Exception as exc:
            log.error("[%s] Failed to fetch case status: %s", case_id, exc)
            result.outcome = TransientFailure(exc)
            return result

        if not isinstance(current, StatusDocument):
            current = StatusDocument(current)

        is_first = previous is None
        changes = detect_changes(previous, current)
        decision = decide(is_first, changes, case_id=case_id, document=current)

        if is_first:
            result.outcome = FirstObservation(current)
            log.info("[%s] First observation - sending initial status email", case_id)
        elif changes:
            result.outcome = Changed(current, changes)
            log.info("[%s] Changes detected: %d field(s)\n%s", case_id, len(changes), format_changes(changes))
        else:
            result.outcome = Unchanged(current)
            log.info("[%s] No changes detected - skipping email notification", case_id)

        if not isinstance(decision, Notify):
            return result

        try:
            await asyncio.to_thread(self.notifier.send, self.recipient, decision.subject, decision.body)
            result.notified = True
            log.info("[%s] %s email sent", case_id, decision.kind)
        except Exception as exc:
            result.notify_error = str(exc)
            log.error("[%s] Failed to send %s email: %s", case_id, decision.kind, exc)

        # Saved even when the email failed, so the next cycle diffs against this document.
        try:
            await asyncio.to_thread(self.store.save, case_id, current)
            result.saved = True
        except Exception as exc:
            result.save_error = str(exc)
            log.warning("[%s] Failed to save snapshot: %s", case_id, exc)

        return result


__all__ = [
    "Fetcher",
    "Notifier",
    "SnapshotStore",
    "FirstObservation",
    "Unchanged",
    "Changed",
    "AuthFailure",
    "TransientFailure",
    "CaseResult",
    "CaseTracker",
    "all_auth_failed",
]
