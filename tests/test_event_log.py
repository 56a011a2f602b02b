"""Beast + Edge-case tests for the Event Log and its API.

Covers:
  - record, get_events, annotate, clear_all
  - GET /api/events
  - POST /api/events/{id}/annotate
  - Edge cases: empty DB, non-existent ID, filter by severity
"""

import json

import pytest

from app import create_app
from app.services import event_log
from conftest import FakeProbe


@pytest.fixture
def client():
    application = create_app(probe=FakeProbe())
    application.config["TESTING"] = True
    return application.test_client()


# ── Event log unit tests ───────────────────────────────────────────────────

def test_record_returns_event():
    """Beast: record returns a dict with all fields."""
    event = event_log.record("n8n", "warning", "Recovery started")
    assert event["id"].startswith("EVT-")
    assert event["severity"] == "warning"
    assert event["title"] == "Recovery started"


def test_record_increments_id():
    """Beast: IDs increment sequentially."""
    first = event_log.record("n8n", "info", "a")
    second = event_log.record("n8n", "info", "b")
    assert int(second["id"].split("-")[1]) == int(first["id"].split("-")[1]) + 1


def test_get_events_newest_first():
    """Beast: events are returned newest-first."""
    event_log.record("n8n", "info", "first")
    event_log.record("n8n", "info", "second")
    events = event_log.get_events()
    assert [e["title"] for e in events] == ["second", "first"]


def test_get_events_filter_by_severity():
    """Beast: filter by severity works."""
    event_log.record("n8n", "info", "fine")
    event_log.record("n8n", "critical", "down")
    events = event_log.get_events(severity="critical")
    assert len(events) == 1
    assert events[0]["title"] == "down"


def test_get_events_limit():
    """Beast: limit caps results."""
    for i in range(10):
        event_log.record("n8n", "info", f"e{i}")
    assert len(event_log.get_events(limit=3)) == 3


def test_get_events_empty_db():
    """4% edge: empty database returns empty list."""
    assert event_log.get_events() == []


def test_annotate_success():
    """Beast: annotating an event stores the note."""
    event = event_log.record("n8n", "critical", "down")
    assert event_log.annotate(event["id"], "Disk was full.") is True
    assert event_log.get_events()[0]["annotation"] == "Disk was full."


@pytest.mark.parametrize("event_id", ["EVT-9999", "garbage", "EVT-x"])
def test_annotate_unknown_id(event_id):
    """4% edge: unknown or malformed IDs return False."""
    assert event_log.annotate(event_id, "note") is False


def test_clear_all_resets_ids():
    """Beast: clear_all empties the log and restarts numbering."""
    event_log.record("n8n", "info", "a")
    event_log.clear_all()
    assert event_log.get_events() == []
    assert event_log.record("n8n", "info", "b")["id"] == "EVT-0001"


# ── API tests ──────────────────────────────────────────────────────────────

def test_api_events_empty(client):
    """4% edge: /api/events returns [] when empty."""
    resp = client.get("/api/events")
    assert resp.status_code == 200
    assert resp.get_json() == []


def test_api_events_filter_and_limit(client):
    """Beast: ?severity and ?limit are honoured."""
    for _ in range(3):
        event_log.record("n8n", "warning", "w")
    event_log.record("n8n", "critical", "c")
    assert len(client.get("/api/events?severity=warning").get_json()) == 3
    assert len(client.get("/api/events?limit=2").get_json()) == 2


def test_api_annotate_success(client):
    """Beast: annotating via API works."""
    event = event_log.record("n8n", "critical", "down")
    resp = client.post(
        f"/api/events/{event['id']}/annotate",
        data=json.dumps({"note": "Restarted host."}),
        content_type="application/json",
    )
    assert resp.status_code == 200
    assert resp.get_json()["status"] == "annotated"


def test_api_annotate_empty_note_400(client):
    """4% edge: empty note returns 400."""
    event = event_log.record("n8n", "critical", "down")
    resp = client.post(
        f"/api/events/{event['id']}/annotate",
        data=json.dumps({"note": "  "}),
        content_type="application/json",
    )
    assert resp.status_code == 400


def test_api_annotate_nonexistent_404(client):
    """4% edge: annotating a non-existent event returns 404."""
    resp = client.post(
        "/api/events/EVT-9999/annotate",
        data=json.dumps({"note": "test"}),
        content_type="application/json",
    )
    assert resp.status_code == 404
