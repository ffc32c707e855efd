import asyncio
import json

import worker.main as worker_main
from worker.config import Config, ConfigError
from worker.errors import AuthenticationFailed
from worker.orchestrator import CaseTracker


def _config(tmp_path, **overrides):
    values = dict(
        case_ids=["IOE0000000001"],
        recipient_email="me@example.com",
        state_dir=str(tmp_path / "state"),
        port=0,
        test_mode=True,
    )
    values.update(overrides)
    return Config(**values)


def test_test_mode_runs_one_cycle(monkeypatch, tmp_path, make_notifier):
    notifier = make_notifier()
    monkeypatch.setattr(worker_main, "load_config", lambda: _config(tmp_path))
    monkeypatch.setattr(worker_main, "build_notifier", lambda cfg: notifier)

    exit_code = asyncio.run(worker_main.main())

    assert exit_code == 0
    assert len(notifier.sent) == 1
    assert notifier.sent[0][1] == "Case Tracker - Initial Status for IOE0000000001"
    saved = json.loads((tmp_path / "state" / "IOE0000000001.json").read_text(encoding="utf-8"))
    assert saved == worker_main.SAMPLE_STATUS


def test_second_test_mode_run_is_quiet(monkeypatch, tmp_path, make_notifier):
    notifier = make_notifier()
    monkeypatch.setattr(worker_main, "load_config", lambda: _config(tmp_path))
    monkeypatch.setattr(worker_main, "build_notifier", lambda cfg: notifier)

    asyncio.run(worker_main.main())
    asyncio.run(worker_main.main())

    assert len(notifier.sent) == 1


def test_config_error_exits_1(monkeypatch):
    def _broken():
        raise ConfigError("CASE_IDS is required")

    monkeypatch.setattr(worker_main, "load_config", _broken)
    assert asyncio.run(worker_main.main()) == 1


def test_all_cases_auth_failed_exits_1(monkeypatch, tmp_path, make_fetcher, make_notifier):
    notifier = make_notifier()
    fetcher = make_fetcher({"A1": AuthenticationFailed(401), "B2": AuthenticationFailed(401)})

    async def _build_fetcher(cfg):
        return fetcher

    monkeypatch.setattr(
        worker_main, "load_config", lambda: _config(tmp_path, case_ids=["A1", "B2"], test_mode=False)
    )
    monkeypatch.setattr(worker_main, "build_notifier", lambda cfg: notifier)
    monkeypatch.setattr(worker_main, "build_fetcher", _build_fetcher)

    assert asyncio.run(worker_main.main()) == 1
    assert [s[1] for s in notifier.sent] == ["Case Tracker - Authentication Failed"] * 2


def test_browser_login_failure_sends_alert_and_exits(monkeypatch, tmp_path, make_notifier):
    notifier = make_notifier()

    async def _build_fetcher(cfg):
        raise AuthenticationFailed(0, "2FA code rejected")

    monkeypatch.setattr(worker_main, "load_config", lambda: _config(tmp_path, test_mode=False))
    monkeypatch.setattr(worker_main, "build_notifier", lambda cfg: notifier)
    monkeypatch.setattr(worker_main, "build_fetcher", _build_fetcher)

    assert asyncio.run(worker_main.main()) == 1
    assert len(notifier.sent) == 1
    assert "browser initialization" in notifier.sent[0][2]


def test_run_once_records_cycle(tmp_path, make_fetcher, notifier, make_store):
    from app.api import health, reset_state

    reset_state()
    tracker = CaseTracker(make_fetcher({"A1": {"status": "Received"}}), notifier, make_store(), "me@example.com")

    results = asyncio.run(worker_main.run_once(tracker, ["A1"]))

    assert [r.kind for r in results] == ["first_observation"]
    assert health()["last_cycle"]["cases"] == [{"case_id": "A1", "outcome": "first_observation"}]
    reset_state()


def test_build_store_and_notifier_selection(tmp_path):
    cfg = _config(tmp_path)
    assert isinstance(worker_main.build_store(cfg), worker_main.FileSnapshotStore)
    assert isinstance(worker_main.build_notifier(cfg), worker_main.SmtpNotifier)

    cfg.resend_api_key = "re_key"
    assert isinstance(worker_main.build_notifier(cfg), worker_main.ResendNotifier)


def test_interval_loop_runs_until_stop_requested(monkeypatch, tmp_path, make_store, make_notifier):
    notifier = make_notifier()
    store = make_store()
    events = {}

    class CountingFetcher:
        def __init__(self):
            self.calls = 0
            self.closed = False

        async def fetch(self, case_id):
            self.calls += 1
            if self.calls == 2:
                # Shutdown requested mid-cycle: this cycle still finishes.
                events["stop"].set()
            return {"status": "Received" if self.calls == 1 else "Approved"}

        async def close(self):
            self.closed = True

    fetcher = CountingFetcher()

    async def _build_fetcher(cfg):
        return fetcher

    monkeypatch.setattr(
        worker_main, "load_config", lambda: _config(tmp_path, test_mode=False, poll_interval=0.01)
    )
    monkeypatch.setattr(worker_main, "build_notifier", lambda cfg: notifier)
    monkeypatch.setattr(worker_main, "build_store", lambda cfg: store)
    monkeypatch.setattr(worker_main, "build_fetcher", _build_fetcher)
    monkeypatch.setattr(worker_main, "_install_signal_handlers", lambda stop: events.setdefault("stop", stop))

    assert asyncio.run(worker_main.main()) == 0

    assert fetcher.calls == 2
    assert fetcher.closed
    assert [s[1] for s in notifier.sent] == [
        "Case Tracker - Initial Status for IOE0000000001",
        "Case Status Update - IOE0000000001",
    ]
    assert store.data["IOE0000000001"] == {"status": "Approved"}
