"""Event Log — structured record of watchdog events backed by SQLite.

Every notification the watchdog raises (natural recovery, recovery
started / succeeded / failed, cooldown, critical) is written here, even
when the external notification sink is disabled.  The operator ``status``
command and the /api/events route read from it.  Events can be annotated
by an operator after the fact.

Database: data/events.db (HEALTHWATCH_EVENTS_DB)
"""

import logging
import sqlite3
import threading
from datetime import datetime, timezone

import config

log = logging.getLogger(__name__)

_lock = threading.Lock()

_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS events (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    timestamp TEXT NOT NULL,
    target TEXT NOT NULL,
    severity TEXT NOT NULL,
    title TEXT NOT NULL,
    message TEXT,
    annotation TEXT
);
"""


def _connect():
    """Return a SQLite connection (creates table on first call)."""
    path = config.EVENTS_DB
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path))
    conn.row_factory = sqlite3.Row
    conn.execute(_CREATE_TABLE)
    return conn


def _format_id(seq):
    return f"EVT-{seq:04d}"


def _parse_id(event_id):
    try:
        return int(str(event_id).split("-")[1])
    except (IndexError, ValueError):
        return None


def _row_to_dict(row):
    event = dict(row)
    event["id"] = _format_id(event.pop("seq"))
    return event


def record(target, severity, title, message=None, timestamp=None):
    """Store one event.

    Args:
        target:    The monitored URL or service label.
        severity:  info | warning | critical.
        title:     Short event title.
        message:   Free-text details.
        timestamp: ISO-8601 string; defaults to now (UTC).

    Returns:
        The event dict that was written (id is None if the write failed).
    """
    timestamp = timestamp or datetime.now(timezone.utc).isoformat()
    event = {
        "id": None,
        "timestamp": timestamp,
        "target": target,
        "severity": severity,
        "title": title,
        "message": message,
        "annotation": None,
    }

    try:
        with _lock, _connect() as conn:
            cursor = conn.execute(
                """INSERT INTO events
                   (timestamp, target, severity, title, message, annotation)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                (timestamp, target, severity, title, message, None),
            )
            event["id"] = _format_id(cursor.lastrowid)
        log.debug("Event %s: [%s] %s", event["id"], severity, title)
    except Exception as exc:
        log.error("Failed to record event: %s", exc)

    return event


def get_events(limit=50, severity=None):
    """Retrieve recent events, newest first, optionally by severity."""
    try:
        with _connect() as conn:
            if severity:
                rows = conn.execute(
                    "SELECT * FROM events WHERE severity = ? "
                    "ORDER BY seq DESC LIMIT ?",
                    (severity, limit),
                ).fetchall()
            else:
                rows = conn.execute(
                    "SELECT * FROM events ORDER BY seq DESC LIMIT ?",
                    (limit,),
                ).fetchall()
        return [_row_to_dict(r) for r in rows]
    except Exception as exc:
        log.error("Failed to read events: %s", exc)
        return []


def annotate(event_id, note):
    """Add or update the annotation on an event.

    Returns:
        True if the annotation was saved, False if the ID was not found.
    """
    seq = _parse_id(event_id)
    if seq is None:
        return False
    try:
        with _lock, _connect() as conn:
            cursor = conn.execute(
                "UPDATE events SET annotation = ? WHERE seq = ?",
                (note, seq),
            )
            return cursor.rowcount > 0
    except Exception as exc:
        log.error("Failed to annotate %s: %s", event_id, exc)
        return False


def clear_all():
    """Delete all events — used in testing only."""
    try:
        with _lock, _connect() as conn:
            conn.execute("DELETE FROM events")
            conn.execute("DELETE FROM sqlite_sequence WHERE name = 'events'")
    except Exception as exc:
        log.error("Failed to clear events: %s", exc)
