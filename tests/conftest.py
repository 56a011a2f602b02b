"""Shared fixtures: isolated runtime files and in-memory collaborators."""

import pytest

import config
from app.services.probe import (
    CONNECTION_FAILED, HEALTHY, UNREACHABLE, ProbeResult,
)


@pytest.fixture(autouse=True)
def isolated_runtime(tmp_path, monkeypatch):
    """Point every runtime file at a per-test temp directory."""
    monkeypatch.setattr(config, "EVENTS_DB", tmp_path / "events.db")
    monkeypatch.setattr(config, "STATE_FILE", tmp_path / "state.json")
    monkeypatch.setattr(config, "LOCK_FILE", tmp_path / "healthwatch.pid")
    monkeypatch.setattr(config, "LOG_FILE", tmp_path / "healthwatch.log")
    monkeypatch.setattr(config, "NOTIFY_ENABLED", False)
    return tmp_path


def healthy():
    return ProbeResult(HEALTHY, status_code=200, latency_ms=12.0)


def unreachable():
    return ProbeResult(UNREACHABLE, CONNECTION_FAILED)


class FakeProbe:
    """Returns queued results; repeats the last one when the queue runs dry."""

    url = "http://n8n.example.test/healthz"
    local_url = "http://127.0.0.1:5678/healthz"

    def __init__(self, results=None, local=None):
        self._results = list(results or [healthy()])
        self._local = list(local or [healthy()])
        self.calls = 0
        self.local_calls = 0

    def check(self):
        self.calls += 1
        if len(self._results) > 1:
            return self._results.pop(0)
        return self._results[0]

    def check_local(self):
        self.local_calls += 1
        if len(self._local) > 1:
            return self._local.pop(0)
        return self._local[0]


class FakeControl:
    service_name = "n8n"
    container_name = "n8n_automation"

    def __init__(self, fail=False, running=True, clock=None):
        self.fail = fail
        self.running = running
        self.recreates = []
        self._clock = clock

    def force_recreate(self):
        self.recreates.append(self._clock() if self._clock else None)
        if self.fail:
            from app.services.service_control import ServiceControlError
            raise ServiceControlError("docker compose exited 1: boom")

    def is_running(self):
        return self.running


class FakeDispatcher:
    def __init__(self):
        self.sent = []

    def notify(self, title, message, severity="warning"):
        self.sent.append((title, message, severity))
        return True

    def severities(self):
        return [s for _, _, s in self.sent]


class FailingDispatcher:
    """A sink whose every delivery blows up."""

    def __init__(self):
        self.attempts = 0

    def notify(self, title, message, severity="warning"):
        self.attempts += 1
        raise ConnectionError("sink down")


class FakeClock:
    """Manual clock; sleep() advances it instead of blocking."""

    def __init__(self, start=1_000_000.0):
        self.now = start

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.now += seconds

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()
