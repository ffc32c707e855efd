"""
Environment-driven configuration for the tracker worker.

`.env` is loaded for local runs (override=True so edits take effect after a
restart), then everything is read from the process environment.
"""
from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from typing import List, Mapping, Optional

from dotenv import load_dotenv

DEFAULT_POLL_INTERVAL = 300
DEFAULT_OTP_TIMEOUT = 600

_DURATION_RE = re.compile(r"(\d+(?:\.\d+)?)(ms|s|m|h)")
_UNIT_SECONDS = {"ms": 0.001, "s": 1, "m": 60, "h": 3600}


class ConfigError(RuntimeError):
    """Configuration is missing or malformed; the worker cannot start."""


@dataclass
class Config:
    case_ids: List[str]
    recipient_email: str
    poll_interval: float = DEFAULT_POLL_INTERVAL
    state_dir: str = "state"
    database_url: Optional[str] = None

    auto_login: bool = False
    uscis_cookie: Optional[str] = None
    uscis_username: Optional[str] = None
    uscis_password: Optional[str] = field(default=None, repr=False)

    imap_server: Optional[str] = None
    imap_username: Optional[str] = None
    imap_password: Optional[str] = field(default=None, repr=False)
    otp_timeout: float = DEFAULT_OTP_TIMEOUT
    headless: bool = True

    resend_api_key: Optional[str] = field(default=None, repr=False)
    resend_from: Optional[str] = None

    port: int = 8080
    test_mode: bool = False

    @property
    def imap_enabled(self) -> bool:
        return bool(self.imap_server and self.imap_username and self.imap_password)


def parse_duration(raw: str) -> float:
    """
    Parse a poll interval into seconds.

    Accepts plain seconds ("90") or Go-style durations ("5m", "1h30m", "45s").
    """
    raw = (raw or "").strip().lower()
    if not raw:
        raise ConfigError("empty duration")
    try:
        value = float(raw)
    except ValueError:
        value = None
    if value is None:
        pos = 0
        total = 0.0
        for match in _DURATION_RE.finditer(raw):
            if match.start() != pos:
                break
            total += float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
            pos = match.end()
        if pos != len(raw) or pos == 0:
            raise ConfigError(f"invalid duration: {raw!r}")
        value = total
    if value <= 0:
        raise ConfigError(f"duration must be positive: {raw!r}")
    return value


def _flag(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _required(env: Mapping[str, str], name: str) -> str:
    value = (env.get(name) or "").strip()
    if not value:
        raise ConfigError(f"{name} must be set")
    return value


def _number(env: Mapping[str, str], name: str, default: float) -> float:
    raw = (env.get(name) or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from exc


def load_config(environ: Mapping[str, str] | None = None) -> Config:
    if environ is None:
        load_dotenv(override=True)
        environ = os.environ
    env = environ

    test_mode = _flag(env, "TEST_MODE", False)

    case_ids = [c.strip() for c in (env.get("CASE_IDS") or "").split(",") if c.strip()]
    case_ids = list(dict.fromkeys(case_ids))
    if not case_ids:
        raise ConfigError("CASE_IDS must list at least one case id")
    for case_id in case_ids:
        if not re.fullmatch(r"[A-Za-z0-9_-]+", case_id):
            raise ConfigError(f"invalid case id in CASE_IDS: {case_id!r}")

    recipient = _required(env, "RECIPIENT_EMAIL")
    if "@" not in recipient:
        raise ConfigError(f"RECIPIENT_EMAIL is not an email address: {recipient!r}")

    poll_raw = env.get("POLL_INTERVAL")
    poll_interval = parse_duration(poll_raw) if poll_raw and poll_raw.strip() else DEFAULT_POLL_INTERVAL

    cfg = Config(
        case_ids=case_ids,
        recipient_email=recipient,
        poll_interval=poll_interval,
        state_dir=(env.get("STATE_DIR") or "state").strip(),
        database_url=(env.get("DATABASE_URL") or "").strip() or None,
        auto_login=_flag(env, "AUTO_LOGIN", False),
        uscis_cookie=(env.get("USCIS_COOKIE") or "").strip() or None,
        uscis_username=(env.get("USCIS_USERNAME") or "").strip() or None,
        uscis_password=env.get("USCIS_PASSWORD") or None,
        imap_server=(env.get("IMAP_SERVER") or "").strip() or None,
        imap_username=(env.get("IMAP_USERNAME") or "").strip() or None,
        imap_password=env.get("IMAP_PASSWORD") or None,
        otp_timeout=_number(env, "OTP_TIMEOUT", DEFAULT_OTP_TIMEOUT),
        headless=_flag(env, "PLAYWRIGHT_HEADLESS", True),
        resend_api_key=(env.get("RESEND_API_KEY") or "").strip() or None,
        resend_from=(env.get("RESEND_FROM") or "").strip() or None,
        port=int(_number(env, "PORT", 8080)),
        test_mode=test_mode,
    )

    if not test_mode:
        if cfg.auto_login:
            if not (cfg.uscis_username and cfg.uscis_password):
                raise ConfigError("AUTO_LOGIN requires USCIS_USERNAME and USCIS_PASSWORD")
        elif not cfg.uscis_cookie:
            raise ConfigError("USCIS_COOKIE must be set (or enable AUTO_LOGIN)")

    return cfg


__all__ = ["Config", "ConfigError", "load_config", "parse_duration"]
