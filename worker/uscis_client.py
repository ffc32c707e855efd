"""
Case status fetcher that calls the case API directly with a session cookie.
"""
from __future__ import annotations

import logging

import httpx

from core.status.document import InvalidDocument, StatusDocument
from worker.errors import AuthenticationFailed, FetchError

CASE_API_URL = "https://my.uscis.gov/account/case-service/api/cases"

USER_AGENT = "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36"

log = logging.getLogger("uscis.client")


class CaseStatusClient:
    """
    Manual-cookie mode. An expired cookie shows up as HTTP 401 and is reported
    as AuthenticationFailed; the operator has to paste a fresh cookie.
    Safe to call concurrently.
    """

    def __init__(self, cookie: str, *, timeout: float = 30.0, transport: httpx.AsyncBaseTransport | None = None):
        self._client = httpx.AsyncClient(
            timeout=timeout,
            transport=transport,
            headers={
                "Cookie": cookie,
                "Accept": "application/json, text/plain, */*",
                "Accept-Language": "en-US,en;q=0.9",
                "User-Agent": USER_AGENT,
            },
        )

    async def __aenter__(self) -> "CaseStatusClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    async def fetch(self, case_id: str) -> StatusDocument:
        url = f"{CASE_API_URL}/{case_id}"
        try:
            resp = await self._client.get(url)
        except httpx.HTTPError as exc:
            raise FetchError(f"failed to fetch case status: {exc}") from exc

        if resp.status_code == 401:
            raise AuthenticationFailed(status_code=401)
        if resp.status_code != 200:
            raise FetchError(f"unexpected status code: {resp.status_code}, body: {resp.text[:500]}")

        try:
            doc = StatusDocument.from_json(resp.text)
        except InvalidDocument as exc:
            raise FetchError(f"failed to parse JSON response: {exc}") from exc

        log.info("Case status fetched", extra={"case_id": case_id, "fields": len(doc)})
        return doc


__all__ = ["CASE_API_URL", "CaseStatusClient"]
