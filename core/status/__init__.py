"""
Status snapshot model, change detection, and notification policy re-exports.
"""
from core.status.document import InvalidDocument, StatusDocument, deep_equal
from core.status.detector import (
    MISSING,
    Change,
    detect_changes,
    format_changes,
)
from core.status.policy import (
    FIRST_RUN,
    SUPPRESS,
    UPDATE,
    Notify,
    Suppress,
    classify,
    decide,
    render_auth_failure_email,
)

__all__ = [
    "InvalidDocument",
    "StatusDocument",
    "deep_equal",
    "MISSING",
    "Change",
    "detect_changes",
    "format_changes",
    "FIRST_RUN",
    "SUPPRESS",
    "UPDATE",
    "Notify",
    "Suppress",
    "classify",
    "decide",
    "render_auth_failure_email",
]
