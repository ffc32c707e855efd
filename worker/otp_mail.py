"""
One-time sign-in codes: read them from a mailbox over IMAP, or ask the
operator on stdin.
"""
from __future__ import annotations

import logging
import re
import sys
import time
from email import message_from_bytes, policy
from email.header import decode_header, make_header
from typing import Callable, List, Optional

from imapclient import IMAPClient

CODE_RE = re.compile(r"\bPlease enter this secure verification code:\s*(\d{6})\b")
SENDER_HINTS = ("uscis",)
SUBJECT_HINTS = ("verification", "myaccount", "secure")
MAX_MESSAGES = 50

log = logging.getLogger("otp")


class CodeNotFound(RuntimeError):
    """No one-time code arrived before the deadline."""


def extract_code(text: str) -> Optional[str]:
    """Return the first 6-digit verification code in the text, or None."""
    match = CODE_RE.search(text or "")
    return match.group(1) if match else None


def _decode(value) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="replace")
    try:
        return str(make_header(decode_header(value)))
    except Exception:
        return value


def _sender(envelope) -> str:
    senders = getattr(envelope, "from_", None) or ()
    if not senders:
        return ""
    addr = senders[0]
    mailbox = _decode(addr.mailbox)
    host = _decode(addr.host)
    return f"{mailbox}@{host}" if host else mailbox


def looks_like_code_mail(sender: str, subject: str) -> bool:
    sender = sender.lower()
    subject = subject.lower()
    return any(h in sender for h in SENDER_HINTS) or any(h in subject for h in SUBJECT_HINTS)


def _message_text(raw: bytes) -> str:
    msg = message_from_bytes(raw, policy=policy.default)
    chunks: List[str] = []
    for part in msg.walk():
        if part.get_content_maintype() != "text":
            continue
        try:
            content = part.get_content()
        except (LookupError, UnicodeDecodeError):
            continue
        if part.get_content_subtype() == "html":
            content = re.sub(r"<[^>]+>", " ", content)
        chunks.append(content)
    if not chunks:
        chunks.append(raw.decode("utf-8", errors="replace"))
    return "\n".join(chunks)


def _split_host(server: str) -> tuple[str, Optional[int]]:
    host, sep, port = server.rpartition(":")
    if sep and port.isdigit():
        return host, int(port)
    return server, None


class ImapCodeFetcher:
    def __init__(self, server: str, username: str, password: str, client_factory: Callable = IMAPClient):
        self.host, self.port = _split_host(server)
        self.username = username
        self.password = password
        self._client_factory = client_factory

    def try_fetch_code(self) -> Optional[str]:
        """Check the newest messages once, newest first."""
        client = self._client_factory(self.host, port=self.port, ssl=True)
        try:
            client.login(self.username, self.password)
            client.select_folder("INBOX", readonly=True)
            uids = sorted(client.search("ALL"))[-MAX_MESSAGES:]
            if not uids:
                return None
            response = client.fetch(uids, ["ENVELOPE", "BODY.PEEK[]"])
        finally:
            try:
                client.logout()
            except Exception:
                log.debug("IMAP logout failed", exc_info=True)

        for uid in reversed(uids):
            data = response.get(uid) or {}
            envelope = data.get(b"ENVELOPE")
            raw = data.get(b"BODY[]")
            if envelope is None or raw is None:
                continue
            sender = _sender(envelope)
            if not looks_like_code_mail(sender, _decode(envelope.subject)):
                continue
            code = extract_code(_message_text(raw))
            if code:
                log.info("Found verification code", extra={"from": sender})
                return code
        return None

    def fetch_latest_code(self, timeout: float = 600, poll_interval: float = 5) -> str:
        deadline = time.monotonic() + timeout
        log.info("Waiting for verification email", extra={"timeout": timeout})

        while True:
            try:
                code = self.try_fetch_code()
            except Exception as exc:
                log.warning("Error reading mailbox, will retry: %s", exc)
                code = None
            if code:
                return code
            if time.monotonic() + poll_interval > deadline:
                break
            time.sleep(poll_interval)

        raise CodeNotFound(f"no verification email received within {timeout:.0f}s")


def prompt_for_code(stream=None) -> str:
    stream = stream or sys.stdin
    print("Enter 2FA verification code: ", end="", flush=True)
    code = (stream.readline() or "").strip()
    if not code:
        raise CodeNotFound("no verification code entered")
    return code


class CodeProvider:
    """
    Mailbox first (when configured), operator prompt as the fallback.
    """

    def __init__(self, mailbox: ImapCodeFetcher | None = None, timeout: float = 600, prompt: Callable[[], str] = prompt_for_code):
        self.mailbox = mailbox
        self.timeout = timeout
        self.prompt = prompt

    def get_code(self) -> str:
        if self.mailbox is not None:
            try:
                return self.mailbox.fetch_latest_code(timeout=self.timeout)
            except CodeNotFound as exc:
                log.warning("Mailbox code lookup failed, falling back to manual input: %s", exc)
        log.info("Please check your email for the verification code")
        return self.prompt()


__all__ = [
    "CodeNotFound",
    "CodeProvider",
    "ImapCodeFetcher",
    "extract_code",
    "looks_like_code_mail",
    "prompt_for_code",
]
