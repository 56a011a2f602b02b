"""Status report — shared by the ``status`` command and GET /api/status."""

import time
from collections import deque

import config
from app.services import event_log, state_store
from app.services.instance_lock import running_pid


def collect(events=10, log_lines=0):
    """Build the operator status report.

    Args:
        events:    Number of recent events to include.
        log_lines: Number of trailing log-file lines to include.

    Returns:
        Dict with running/pid, the daemon's last snapshot, configuration,
        recent events and a ``healthy`` verdict (daemon running and the
        last cycle was healthy).
    """
    pid = running_pid(config.LOCK_FILE)
    snapshot = state_store.load(config.STATE_FILE) if pid else {}
    tracker = snapshot.get("tracker", {})
    started_at = tracker.get("started_at")

    report = {
        "running": pid is not None,
        "pid": pid,
        "phase": snapshot.get("phase"),
        "uptime_seconds": (
            round(time.time() - started_at, 1) if pid and started_at else None
        ),
        "consecutive_failures": tracker.get("consecutive_failures", 0),
        "total_recoveries": tracker.get("total_recoveries", 0),
        "last_recovery_at": tracker.get("last_recovery_at"),
        "last_check": snapshot.get("last_check"),
        "last_recovery_attempt": snapshot.get("last_recovery_attempt"),
        "config": {
            "service_url": config.HEALTH_URL,
            "local_url": config.LOCAL_HEALTH_URL,
            "check_interval": config.CHECK_INTERVAL,
            "recovery_cooldown": config.RECOVERY_COOLDOWN,
            "failure_threshold": config.FAILURE_THRESHOLD,
            "confirm_window": config.CONFIRM_WINDOW,
            "poll_interval": config.POLL_INTERVAL,
            "log_file": str(config.LOG_FILE),
        },
        "recent_events": event_log.get_events(limit=events),
    }
    report["healthy"] = report["running"] and report["phase"] == "healthy"
    if log_lines:
        report["log_tail"] = tail(config.LOG_FILE, log_lines)
    return report


def tail(path, lines=10):
    """Return the last *lines* lines of a text file ([] if missing)."""
    try:
        with open(path, "r", encoding="utf-8", errors="replace") as fh:
            return [line.rstrip("\n") for line in deque(fh, maxlen=lines)]
    except FileNotFoundError:
        return []
