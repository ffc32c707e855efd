"""
Check that the verification-code mailbox is reachable and a code can be read.

Usage:
  python -m dotenv run -- python -m scripts.check_imap
  python -m scripts.check_imap --timeout 120
"""
from __future__ import annotations

import argparse
import os

from dotenv import load_dotenv

from worker.otp_mail import CodeNotFound, ImapCodeFetcher


def main() -> None:
    load_dotenv(override=True)
    parser = argparse.ArgumentParser(description="Fetch the latest verification code over IMAP.")
    parser.add_argument("--timeout", type=float, default=float(os.getenv("OTP_TIMEOUT", "600")))
    args = parser.parse_args()

    server = os.getenv("IMAP_SERVER")
    username = os.getenv("IMAP_USERNAME")
    password = os.getenv("IMAP_PASSWORD")
    if not (server and username and password):
        raise SystemExit("Set IMAP_SERVER, IMAP_USERNAME and IMAP_PASSWORD first.")

    print(f"Mailbox: {username} @ {server}")
    fetcher = ImapCodeFetcher(server, username, password)
    try:
        code = fetcher.fetch_latest_code(timeout=args.timeout)
    except CodeNotFound as exc:
        raise SystemExit(f"Failed to fetch code: {exc}") from exc
    print(f"Fetched code: {code}")


if __name__ == "__main__":
    main()
