"""
Notification policy: decide whether a poll result is worth an email, and
render the HTML for the ones that are.

Classification (`classify`) is kept apart from rendering so either can be
tested without the other. Nothing here performs I/O.
"""
from __future__ import annotations

import html
from dataclasses import dataclass
from typing import List, Mapping, Tuple, Union

from core.status.detector import Change, format_value
from core.status.document import StatusDocument

FIRST_RUN = "first_run"
UPDATE = "update"
SUPPRESS = "suppress"

_PRE_STYLE = (
    "background-color: #f5f5f5; padding: 15px; border-radius: 5px; "
    "overflow-x: auto; font-family: monospace;"
)
_FOOTER = "<p><small>This email was sent by Case Tracker</small></p>"


@dataclass(frozen=True)
class Notify:
    kind: str
    subject: str
    body: str


@dataclass(frozen=True)
class Suppress:
    kind: str = SUPPRESS


Decision = Union[Notify, Suppress]


def classify(is_first_observation: bool, changes: List[Change]) -> str:
    """Return FIRST_RUN, UPDATE or SUPPRESS."""
    if is_first_observation:
        return FIRST_RUN
    if changes:
        return UPDATE
    return SUPPRESS


def decide(
    is_first_observation: bool,
    changes: List[Change],
    *,
    case_id: str,
    document: Mapping,
) -> Decision:
    kind = classify(is_first_observation, changes)
    if kind == FIRST_RUN:
        subject, body = render_initial_status_email(case_id, document)
        return Notify(kind=FIRST_RUN, subject=subject, body=body)
    if kind == UPDATE:
        subject, body = render_change_email(case_id, changes, document)
        return Notify(kind=UPDATE, subject=subject, body=body)
    return Suppress()


def _document_json(document: Mapping) -> str:
    if not isinstance(document, StatusDocument):
        document = StatusDocument(document)
    return document.to_json()


def _pre(document: Mapping) -> str:
    return f'<pre style="{_PRE_STYLE}">{html.escape(_document_json(document))}</pre>'


def render_initial_status_email(case_id: str, document: Mapping) -> Tuple[str, str]:
    subject = f"Case Tracker - Initial Status for {case_id}"
    body = f"""
<h2>Case Tracker - Initial Status</h2>
<p><strong>Case ID:</strong> {html.escape(case_id)}</p>
<p>This is the first status check for your case. Future emails will only be sent when changes are detected.</p>
<h3>Current Status:</h3>
{_pre(document)}
{_FOOTER}
"""
    return subject, body


def _change_item(change: Change) -> str:
    field = html.escape(change.field)
    if change.is_addition:
        new = html.escape(format_value(change.new_value))
        return f"<li><strong>{field}</strong>: <span style='color: green;'>{new}</span> (new field)</li>"
    if change.is_removal:
        old = html.escape(format_value(change.old_value))
        return f"<li><strong>{field}</strong>: <span style='color: red;'>{old}</span> (removed)</li>"
    old = html.escape(format_value(change.old_value))
    new = html.escape(format_value(change.new_value))
    return (
        f"<li><strong>{field}</strong>: <span style='color: red;'>{old}</span> "
        f"&rarr; <span style='color: green;'>{new}</span></li>"
    )


def render_change_email(case_id: str, changes: List[Change], document: Mapping) -> Tuple[str, str]:
    subject = f"Case Status Update - {case_id}"
    items = "\n".join(_change_item(c) for c in changes)
    body = f"""
<h2>Case Status Update Detected!</h2>
<p><strong>Case ID:</strong> {html.escape(case_id)}</p>
<p>The following changes were detected in your case status:</p>
<ul>
{items}
</ul>
<h3>Full Current Status:</h3>
{_pre(document)}
{_FOOTER}
"""
    return subject, body


def render_auth_failure_email(context: str, error: object) -> Tuple[str, str]:
    """Alert sent when the upstream session or credentials stop working."""
    subject = "Case Tracker - Authentication Failed"
    body = f"""
<h2>&#9888; Authentication Failed</h2>
<p><strong>Context:</strong> {html.escape(context)}</p>
<p><strong>Error:</strong> {html.escape(str(error))}</p>

<h3>What this means:</h3>
<ul>
  <li><strong>Browser auto-login mode:</strong> the username/password may be incorrect, or the account may be locked</li>
  <li><strong>Manual cookie mode:</strong> the session cookie has expired</li>
  <li><strong>Session refresh:</strong> the tracker tried to sign in again and failed</li>
</ul>

<h3>What to do:</h3>
<ol>
  <li><strong>Check your credentials:</strong> verify USCIS_USERNAME and USCIS_PASSWORD (or refresh USCIS_COOKIE)</li>
  <li><strong>Check account status:</strong> sign in at https://my.uscis.gov to make sure the account is not locked</li>
  <li><strong>Restart:</strong> restart the tracker so it picks up the new credentials</li>
</ol>

<p><strong>Note:</strong> when every tracked case fails to authenticate the tracker stops, to avoid locking the account with repeated sign-in attempts.</p>

<p><small>This alert was sent by Case Tracker</small></p>
"""
    return subject, body


__all__ = [
    "FIRST_RUN",
    "UPDATE",
    "SUPPRESS",
    "Notify",
    "Suppress",
    "Decision",
    "classify",
    "decide",
    "render_initial_status_email",
    "render_change_email",
    "render_auth_failure_email",
]
