"""
Outbound email for the tracker: SMTP (default) or the Resend HTTP API.

Both notifiers expose `send(to_email, subject, html_body)` and raise on any
delivery problem; callers decide whether that is fatal.
"""
from __future__ import annotations

import logging
import os
import smtplib
from email.mime.text import MIMEText

import httpx

RESEND_API_URL = "https://api.resend.com/emails"

log = logging.getLogger("notifier")


def _effective_from(email_from: str | None, email_user: str | None, smtp_server: str) -> str:
    if "gmail" in (smtp_server or "").lower() and email_user:
        return email_user
    return email_from or email_user or "noreply@case-tracker.local"


class SmtpNotifier:
    def __init__(
        self,
        email_user: str | None = None,
        email_password: str | None = None,
        email_from: str | None = None,
        smtp_server: str | None = None,
        smtp_port: int | None = None,
    ):
        self.email_user = email_user if email_user is not None else os.getenv("EMAIL_USER")
        self.email_password = email_password if email_password is not None else os.getenv("EMAIL_PASSWORD")
        self.email_from = email_from if email_from is not None else os.getenv("EMAIL_FROM")
        self.smtp_server = smtp_server or os.getenv("SMTP_SERVER", "smtp.gmail.com")
        self.smtp_port = int(smtp_port or os.getenv("SMTP_PORT", "587"))

    def send(self, to_email: str, subject: str, html_body: str) -> None:
        if not (self.email_user and self.email_password):
            raise RuntimeError("Email credentials not configured. Set EMAIL_USER and EMAIL_PASSWORD.")

        msg = MIMEText(html_body, "html", "utf-8")
        msg["Subject"] = subject
        msg["From"] = _effective_from(self.email_from, self.email_user, self.smtp_server)
        msg["To"] = to_email

        with smtplib.SMTP(self.smtp_server, self.smtp_port) as server:
            server.starttls()
            server.login(self.email_user, self.email_password)
            server.sendmail(msg["From"], [to_email], msg.as_string())
        log.info("Email sent", extra={"to": to_email, "subject": subject})


class ResendNotifier:
    def __init__(self, api_key: str, email_from: str | None = None, timeout: float = 15.0, transport=None):
        if not api_key:
            raise RuntimeError("RESEND_API_KEY is not configured.")
        self.api_key = api_key
        self.email_from = email_from or "Case Tracker <onboarding@resend.dev>"
        self.timeout = timeout
        self._transport = transport

    def send(self, to_email: str, subject: str, html_body: str) -> None:
        payload = {
            "from": self.email_from,
            "to": [to_email],
            "subject": subject,
            "html": html_body,
        }
        headers = {"Authorization": f"Bearer {self.api_key}"}
        with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
            resp = client.post(RESEND_API_URL, json=payload, headers=headers)
        if resp.status_code >= 300:
            raise RuntimeError(f"Resend rejected the email: HTTP {resp.status_code} {resp.text[:300]}")
        log.info("Email sent", extra={"to": to_email, "subject": subject, "via": "resend"})


__all__ = ["SmtpNotifier", "ResendNotifier"]
