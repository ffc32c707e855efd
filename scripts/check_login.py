"""
Sign in with the browser client and print one case's current status.

Usage:
  python -m dotenv run -- python -m scripts.check_login IOE0000000000
"""
from __future__ import annotations

import argparse
import asyncio
import os

from dotenv import load_dotenv

from worker.errors import FetchError
from worker.otp_mail import CodeProvider, ImapCodeFetcher
from worker.uscis_browser import BrowserCaseClient


async def _run(case_id: str, headless: bool) -> None:
    username = os.getenv("USCIS_USERNAME")
    password = os.getenv("USCIS_PASSWORD")
    if not (username and password):
        raise SystemExit("Please set USCIS_USERNAME and USCIS_PASSWORD.")

    mailbox = None
    if os.getenv("IMAP_SERVER") and os.getenv("IMAP_USERNAME") and os.getenv("IMAP_PASSWORD"):
        mailbox = ImapCodeFetcher(os.getenv("IMAP_SERVER"), os.getenv("IMAP_USERNAME"), os.getenv("IMAP_PASSWORD"))

    client = BrowserCaseClient(username, password, code_provider=CodeProvider(mailbox), headless=headless)
    try:
        async with client:
            doc = await client.fetch(case_id)
    except FetchError as exc:
        raise SystemExit(f"Fetch failed: {exc}") from exc
    print(doc.to_json())


def main() -> None:
    load_dotenv(override=True)
    parser = argparse.ArgumentParser(description="Browser sign-in smoke test.")
    parser.add_argument("case_id")
    parser.add_argument("--headed", action="store_true", help="show the browser window")
    args = parser.parse_args()
    asyncio.run(_run(args.case_id, headless=not args.headed))


if __name__ == "__main__":
    main()
