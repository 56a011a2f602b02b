"""Smoke + Beast tests for the status API (health, status, check)."""

import pytest

import config
from app import create_app
from app.services import event_log, state_store
from app.services.instance_lock import InstanceLock
from conftest import FakeProbe, healthy, unreachable


def _client(probe=None):
    application = create_app(probe=probe or FakeProbe())
    application.config["TESTING"] = True
    return application.test_client()


@pytest.fixture
def client():
    return _client()


@pytest.fixture
def running_daemon():
    """Hold the instance lock and write a snapshot, as a live daemon would."""
    lock = InstanceLock(config.LOCK_FILE)
    lock.acquire()
    yield lock
    lock.release()


def _snapshot(phase, failures=0, recoveries=0):
    state_store.save(config.STATE_FILE, {
        "phase": phase,
        "tracker": {
            "consecutive_failures": failures,
            "total_recoveries": recoveries,
            "last_recovery_at": None,
            "started_at": 0.0,
        },
        "last_check": {"status": phase},
    })


# ── /api/health ────────────────────────────────────────────────────────────

def test_health_returns_200(client):
    """Smoke: /api/health returns HTTP 200 with required fields."""
    resp = client.get("/api/health")
    assert resp.status_code == 200
    data = resp.get_json()
    for field in ("status", "uptime_seconds", "version"):
        assert field in data
    assert data["version"] == config.VERSION


# ── /api/status ────────────────────────────────────────────────────────────

def test_status_not_running_is_503(client):
    """Beast: no daemon → 503 and running False."""
    resp = client.get("/api/status")
    assert resp.status_code == 503
    data = resp.get_json()
    assert data["running"] is False
    assert data["pid"] is None


def test_status_running_healthy(client, running_daemon):
    """Beast: running daemon with a healthy last cycle → 200."""
    _snapshot("healthy", recoveries=2)
    event_log.record("n8n", "info", "Service recovered")
    resp = client.get("/api/status")
    assert resp.status_code == 200
    data = resp.get_json()
    assert data["running"] is True
    assert data["total_recoveries"] == 2
    assert data["uptime_seconds"] > 0
    assert data["recent_events"][0]["title"] == "Service recovered"
    assert data["config"]["failure_threshold"] == config.FAILURE_THRESHOLD


def test_status_running_degraded_is_503(client, running_daemon):
    """Beast: a degraded monitored service is reported as 503."""
    _snapshot("degraded", failures=1)
    resp = client.get("/api/status")
    assert resp.status_code == 503
    assert resp.get_json()["consecutive_failures"] == 1


# ── /api/check ─────────────────────────────────────────────────────────────

def test_check_healthy():
    """Beast: healthy probe → 200, no local check."""
    probe = FakeProbe([healthy()])
    resp = _client(probe).post("/api/check")
    assert resp.status_code == 200
    assert resp.get_json()["healthy"] is True
    assert probe.local_calls == 0


def test_check_unhealthy_includes_local():
    """Beast: failed probe → 503 with the local diagnostic."""
    probe = FakeProbe([unreachable()], local=[healthy()])
    resp = _client(probe).post("/api/check")
    assert resp.status_code == 503
    data = resp.get_json()
    assert data["primary"]["status"] == "unreachable"
    assert data["local"]["status"] == "healthy"
