"""
Errors raised by case-status fetchers.
"""
from __future__ import annotations


class FetchError(Exception):
    """The case status could not be retrieved this time (network, parse, shape)."""


class AuthenticationFailed(FetchError):
    """
    The session or credentials are no longer accepted.

    status_code is the HTTP status for the cookie client, or 0 when a browser
    sign-in or session refresh failed.
    """

    def __init__(self, status_code: int = 0, detail: str | None = None):
        self.status_code = status_code
        self.detail = detail
        super().__init__(str(self))

    def __str__(self) -> str:
        if self.status_code:
            msg = f"authentication failed: received status code {self.status_code} (cookie may have expired)"
        else:
            msg = "authentication failed: browser sign-in or session refresh did not succeed"
        if self.detail:
            msg = f"{msg}: {self.detail}"
        return msg


__all__ = ["FetchError", "AuthenticationFailed"]
