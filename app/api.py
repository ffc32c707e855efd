"""
Tiny HTTP surface so container platforms can health-check the worker.
"""
from __future__ import annotations

import threading
from datetime import datetime, timezone
from typing import Dict, Optional, Sequence

from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse

app = FastAPI()

_state_lock = threading.Lock()
_last_cycle: Optional[Dict] = None


def record_cycle(results: Sequence) -> None:
    """Remember the outcome of the most recent poll cycle for /health."""
    global _last_cycle
    summary = {
        "finished_at": datetime.now(timezone.utc).isoformat(timespec="seconds"),
        "cases": [{"case_id": r.case_id, "outcome": r.kind} for r in results],
    }
    with _state_lock:
        _last_cycle = summary


def reset_state() -> None:
    global _last_cycle
    with _state_lock:
        _last_cycle = None


@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("X-Frame-Options", "DENY")
    return response


@app.get("/", response_class=PlainTextResponse)
def index():
    return "Case Tracker is running"


@app.get("/health")
def health():
    """
    Basic health check: the process is up, plus what the last cycle saw.
    """
    with _state_lock:
        last = dict(_last_cycle) if _last_cycle else None
    return {"status": "ok", "last_cycle": last}
