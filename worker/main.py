import asyncio
import logging
import signal
import sys
import threading
from typing import List

import uvicorn

from app.api import app as health_app
from app.api import record_cycle
from app.email_utils import ResendNotifier, SmtpNotifier
from core.db.snapshots import FileSnapshotStore, PostgresSnapshotStore
from core.status.document import StatusDocument
from core.status.policy import render_auth_failure_email
from worker.config import Config, ConfigError, load_config
from worker.errors import AuthenticationFailed
from worker.orchestrator import CaseResult, CaseTracker, all_auth_failed
from worker.otp_mail import CodeProvider, ImapCodeFetcher
from worker.uscis_browser import BrowserCaseClient
from worker.uscis_client import CaseStatusClient

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
log = logging.getLogger("worker")

SAMPLE_STATUS = {
    "data": {
        "receiptNumber": "IOE0000000000",
        "formType": "I-485",
        "status": "Case Was Received",
    }
}


class StaticFetcher:
    """TEST_MODE fetcher: always returns the same sample document."""

    def __init__(self, document=None):
        self.document = StatusDocument(document if document is not None else SAMPLE_STATUS)

    async def fetch(self, case_id: str) -> StatusDocument:
        return self.document

    async def close(self) -> None:
        return None


def build_notifier(cfg: Config):
    if cfg.resend_api_key:
        log.info("Notifier: Resend API")
        return ResendNotifier(cfg.resend_api_key, cfg.resend_from)
    log.info("Notifier: SMTP")
    return SmtpNotifier()


def build_store(cfg: Config):
    if cfg.database_url:
        log.info("Snapshot store: Postgres")
        return PostgresSnapshotStore(cfg.database_url)
    log.info("Snapshot store: files", extra={"state_dir": cfg.state_dir})
    return FileSnapshotStore(cfg.state_dir)


async def build_fetcher(cfg: Config):
    if cfg.test_mode:
        log.info("TEST_MODE: using a static sample document")
        return StaticFetcher()
    if cfg.auto_login:
        log.info("Authentication: auto-login mode (browser)")
        mailbox = None
        if cfg.imap_enabled:
            log.info("2FA: automated mailbox lookup", extra={"imap_server": cfg.imap_server})
            mailbox = ImapCodeFetcher(cfg.imap_server, cfg.imap_username, cfg.imap_password)
        else:
            log.info("2FA: manual stdin input (IMAP settings not configured)")
        client = BrowserCaseClient(
            cfg.uscis_username,
            cfg.uscis_password,
            code_provider=CodeProvider(mailbox, timeout=cfg.otp_timeout),
            headless=cfg.headless,
        )
        return await client.start()
    log.info("Authentication: manual cookie mode (HTTP client)")
    return CaseStatusClient(cfg.uscis_cookie)


def start_health_server(port: int) -> threading.Thread:
    """Serve app.api in a daemon thread; uvicorn skips signal handlers off the main thread."""
    server = uvicorn.Server(uvicorn.Config(health_app, host="0.0.0.0", port=port, log_level="warning"))
    thread = threading.Thread(target=server.run, name="health-server", daemon=True)
    thread.start()
    log.info("Health check server listening", extra={"port": port})
    return thread


async def run_once(tracker: CaseTracker, case_ids: List[str]) -> List[CaseResult]:
    log.info("Polling %d case(s)...", len(case_ids))
    results = await tracker.poll_once(case_ids)
    record_cycle(results)

    counts = {}
    for r in results:
        counts[r.kind] = counts.get(r.kind, 0) + 1
    log.info("Cycle complete", extra={"outcomes": counts})
    return results


def _install_signal_handlers(stop: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()

    def _request_stop(sig):
        log.info("Received signal %s, shutting down after the current cycle...", sig.name)
        stop.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _request_stop, sig)
        except (NotImplementedError, RuntimeError):
            # Not available on this platform / thread.
            pass


async def main() -> int:
    log.info("Case Tracker starting...")
    try:
        cfg = load_config()
    except ConfigError as e:
        log.error("Failed to load configuration: %s", e)
        return 1

    log.info(
        "Configuration loaded: cases=%s recipient=%s interval=%ss",
        cfg.case_ids,
        cfg.recipient_email,
        cfg.poll_interval,
    )

    notifier = build_notifier(cfg)
    store = build_store(cfg)

    if cfg.port:
        start_health_server(cfg.port)

    try:
        fetcher = await build_fetcher(cfg)
    except AuthenticationFailed as e:
        log.critical("Failed to create browser client: %s", e)
        log.critical("Sending alert email and exiting to prevent account lockout.")
        subject, body = render_auth_failure_email("browser initialization", e)
        try:
            await asyncio.to_thread(notifier.send, cfg.recipient_email, subject, body)
        except Exception as send_err:
            log.error("Failed to send authentication failure alert email: %s", send_err)
        return 1

    tracker = CaseTracker(fetcher, notifier, store, cfg.recipient_email)
    stop = asyncio.Event()
    _install_signal_handlers(stop)

    exit_code = 0
    try:
        while True:
            results = await run_once(tracker, cfg.case_ids)

            if all_auth_failed(results):
                log.critical("Authentication failed for every case; stopping. Refresh credentials and restart.")
                exit_code = 1
                break

            if cfg.test_mode:
                break

            log.info("Sleeping", extra={"seconds": cfg.poll_interval})
            try:
                await asyncio.wait_for(stop.wait(), timeout=cfg.poll_interval)
            except asyncio.TimeoutError:
                continue
            break
    finally:
        await fetcher.close()

    log.info("Case Tracker stopped")
    return exit_code


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
