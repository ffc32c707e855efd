"""
Case status fetcher that drives a real Chromium session with Playwright.

Signs in once (solving the bot-detection redirects and the emailed one-time
code), then reads the case API through the same browser page on every fetch.
The page is shared, so fetches are serialized.
"""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

from core.status.document import InvalidDocument, StatusDocument
from worker.errors import AuthenticationFailed, FetchError
from worker.otp_mail import CodeProvider
from worker.uscis_client import CASE_API_URL

LOGIN_PAGE_URL = "https://myaccount.uscis.gov/sign-in"
APPLICANT_URL = "https://my.uscis.gov/account/applicant"

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/125.0.0.0 Safari/537.36"
)
REDIRECT_TIMEOUT = 60
REDIRECT_CHECK_INTERVAL = 2

log = logging.getLogger("uscis.browser")


class BrowserCaseClient:
    def __init__(
        self,
        username: str,
        password: str,
        *,
        code_provider: Optional[CodeProvider] = None,
        headless: bool = True,
    ):
        self.username = username
        self.password = password
        self.code_provider = code_provider or CodeProvider()
        self.headless = headless
        self._playwright = None
        self._browser = None
        self._page = None
        self._lock = asyncio.Lock()

    async def start(self) -> "BrowserCaseClient":
        """
        Launch Chromium and sign in. Any launch or sign-in failure closes
        whatever was started and raises AuthenticationFailed.
        """
        log.info("Creating browser client", extra={"headless": self.headless})
        try:
            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(
                headless=self.headless,
                args=[
                    "--disable-gpu",
                    "--no-sandbox",
                    "--disable-dev-shm-usage",
                    "--disable-blink-features=AutomationControlled",
                ],
            )
            context = await self._browser.new_context(
                user_agent=USER_AGENT,
                extra_http_headers={"Accept-Language": "en-US,en;q=0.9"},
            )
            self._page = await context.new_page()
            await self._login()
        except Exception as exc:
            log.error("Browser start-up or sign-in failed: %s", exc)
            await self.close()
            raise AuthenticationFailed(status_code=0, detail=str(exc)) from exc
        return self

    async def __aenter__(self) -> "BrowserCaseClient":
        return await self.start()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        if self._browser is not None:
            try:
                await self._browser.close()
            except PlaywrightError as exc:
                log.warning("Error closing browser: %s", exc)
        if self._playwright is not None:
            await self._playwright.stop()
        self._browser = None
        self._playwright = None
        self._page = None

    async def refresh(self) -> None:
        """Run the sign-in flow again on the existing browser."""
        log.info("Refreshing browser session...")
        await self._login()

    async def _login(self) -> None:
        page = self._page
        if page is None:
            raise RuntimeError("browser not started")

        log.info("Starting login automation", extra={"username": self.username, "password_length": len(self.password)})
        await page.goto(LOGIN_PAGE_URL, wait_until="domcontentloaded")
        await page.wait_for_selector("#email-address", state="visible")

        await page.fill("#email-address", self.username)
        await page.fill("#password", self.password)
        await page.wait_for_selector("#sign-in-btn:not([disabled])")
        await page.click("#sign-in-btn")

        # Bot-detection challenges can keep us on the sign-in page for a while.
        started = time.monotonic()
        while True:
            elapsed = time.monotonic() - started
            if elapsed > REDIRECT_TIMEOUT:
                raise RuntimeError(f"timeout waiting for redirect after sign-in (still on {page.url} after {elapsed:.0f}s)")
            await page.wait_for_timeout(REDIRECT_CHECK_INTERVAL * 1000)
            log.info("Current URL: %s (elapsed: %.0fs)", page.url, elapsed)
            if "/sign-in" not in page.url:
                break

        if "/auth" in page.url:
            log.info("2FA required")
            await self._submit_code()
        else:
            log.info("No 2FA required - redirected to %s", page.url)

        await page.goto(APPLICANT_URL, wait_until="domcontentloaded")
        await page.wait_for_timeout(3000)
        log.info("Login completed, browser session ready for API calls")

    async def _submit_code(self) -> None:
        page = self._page
        code = await asyncio.to_thread(self.code_provider.get_code)

        log.info("Submitting verification code...")
        await page.wait_for_selector("#secure-verification-code:not([disabled])")
        # Typing is required: a value set through JS is cleared on submit.
        await page.type("#secure-verification-code", code)
        await page.wait_for_timeout(1000)
        exists = await page.evaluate("() => document.getElementById('2fa-submit-btn') !== null")
        if not exists:
            raise RuntimeError("submit button not found in DOM")
        await page.evaluate("() => document.getElementById('2fa-submit-btn').click()")
        await page.wait_for_timeout(5000)
        log.info("Current URL after 2FA: %s", page.url)

    async def _read_case(self, case_id: str) -> StatusDocument:
        page = self._page
        if page is None:
            raise FetchError("browser not started")
        url = f"{CASE_API_URL}/{case_id}"
        try:
            await page.goto(url, wait_until="domcontentloaded")
            await page.wait_for_timeout(2000)
            text = await page.inner_text("pre")
        except PlaywrightError as exc:
            raise FetchError(f"failed to navigate to API URL: {exc}") from exc

        log.info("API response received (length: %d bytes)", len(text))
        try:
            return StatusDocument.from_json(text)
        except InvalidDocument as exc:
            raise FetchError(f"failed to parse API response: {exc}") from exc

    async def fetch(self, case_id: str) -> StatusDocument:
        async with self._lock:
            doc = await self._read_case(case_id)

            # A null "data" payload is how an expired session shows up.
            if "data" in doc and doc["data"] is None:
                log.warning("Possible session expiration detected (null data), attempting to refresh...")
                try:
                    await self.refresh()
                except Exception as exc:
                    log.error("Failed to refresh session: %s", exc)
                    raise AuthenticationFailed(status_code=0, detail=str(exc)) from exc
                log.info("Session refreshed, retrying request...")
                doc = await self._read_case(case_id)

            return doc


__all__ = ["BrowserCaseClient"]
