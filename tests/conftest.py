import pytest

from core.status.document import StatusDocument


class FakeFetcher:
    """Returns canned documents per case; an Exception value is raised instead."""

    def __init__(self, responses=None):
        self.responses = dict(responses or {})
        self.calls = []

    async def fetch(self, case_id):
        self.calls.append(case_id)
        value = self.responses[case_id]
        if isinstance(value, Exception):
            raise value
        return StatusDocument(value)

    async def close(self):
        return None


class FakeNotifier:
    def __init__(self, fail=False):
        self.fail = fail
        self.sent = []

    def send(self, to_email, subject, html_body):
        if self.fail:
            raise RuntimeError("SMTP down")
        self.sent.append((to_email, subject, html_body))


class MemoryStore:
    def __init__(self, initial=None, fail_load=(), fail_save=()):
        self.data = {k: StatusDocument(v) for k, v in (initial or {}).items()}
        self.fail_load = set(fail_load)
        self.fail_save = set(fail_save)
        self.saves = []

    def load(self, case_id):
        if case_id in self.fail_load:
            raise OSError("disk unreadable")
        return self.data.get(case_id)

    def save(self, case_id, document):
        if case_id in self.fail_save:
            raise OSError("disk full")
        self.saves.append(case_id)
        self.data[case_id] = document


@pytest.fixture
def make_fetcher():
    return FakeFetcher


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def make_store():
    return MemoryStore


@pytest.fixture
def make_notifier():
    return FakeNotifier
