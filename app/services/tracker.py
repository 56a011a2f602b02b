"""Failure Tracker — the watchdog's in-memory monitor state.

One FailureTracker is built when the daemon starts and handed to every
component that needs it.  It is only touched by the monitoring loop, so
it carries no lock.

evaluate_phase() is the loop's state machine expressed as a pure
function of the cycle's probe results and the tracker counters.
"""

import time

HEALTHY = "healthy"
DEGRADED = "degraded"
RECOVERING = "recovering"
CRITICAL = "critical"


class FailureTracker:
    """Consecutive-failure counter plus recovery bookkeeping."""

    def __init__(self, threshold=2, started_at=None):
        if threshold < 1:
            raise ValueError("threshold must be at least 1")
        self.threshold = threshold
        self.consecutive_failures = 0
        self.last_recovery_at = None
        self.total_recoveries = 0
        self.started_at = started_at if started_at is not None else time.time()

    # ── Transitions ────────────────────────────────────────────────────────

    def record(self, result):
        """Fold one primary probe result into the counters.

        Returns:
            A transition dict ``{"event": "recovered_naturally",
            "failures": n}`` when a healthy probe ends a failure streak,
            otherwise None.
        """
        if result.healthy:
            previous = self.consecutive_failures
            self.consecutive_failures = 0
            if previous > 0:
                return {"event": "recovered_naturally", "failures": previous}
            return None
        self.consecutive_failures += 1
        return None

    def mark_recovered(self, now):
        """A recovery action restored health."""
        self.consecutive_failures = 0
        self.last_recovery_at = now
        self.total_recoveries += 1

    def mark_recovery_completed(self, now):
        """A recovery action ran but health was not confirmed."""
        self.last_recovery_at = now

    # ── Queries ────────────────────────────────────────────────────────────

    def is_degraded(self):
        return self.consecutive_failures > 0

    def should_attempt_recovery(self):
        return self.consecutive_failures >= self.threshold

    def cooldown_remaining(self, now, cooldown):
        """Seconds until another recovery may run (0 when allowed)."""
        if self.last_recovery_at is None:
            return 0
        return max(0, cooldown - (now - self.last_recovery_at))

    def uptime(self, now=None):
        return (now if now is not None else time.time()) - self.started_at

    # ── Persistence ────────────────────────────────────────────────────────

    def to_dict(self):
        return {
            "threshold": self.threshold,
            "consecutive_failures": self.consecutive_failures,
            "last_recovery_at": self.last_recovery_at,
            "total_recoveries": self.total_recoveries,
            "started_at": self.started_at,
        }

    @classmethod
    def from_dict(cls, data, threshold=None):
        tracker = cls(
            threshold=threshold or data.get("threshold", 2),
            started_at=data.get("started_at"),
        )
        tracker.consecutive_failures = int(data.get("consecutive_failures", 0))
        tracker.last_recovery_at = data.get("last_recovery_at")
        tracker.total_recoveries = int(data.get("total_recoveries", 0))
        return tracker


def evaluate_phase(result, local_result, tracker):
    """Classify a monitoring cycle.

    Args:
        result:       The primary ProbeResult (already recorded).
        local_result: The local verification result, or None when the
                      primary probe was healthy and no local check ran.
        tracker:      The FailureTracker after recording *result*.

    Returns:
        One of HEALTHY, DEGRADED, RECOVERING, CRITICAL.
    """
    if result.healthy:
        return HEALTHY
    if local_result is not None and not local_result.healthy:
        return CRITICAL
    if tracker.should_attempt_recovery():
        return RECOVERING
    return DEGRADED
