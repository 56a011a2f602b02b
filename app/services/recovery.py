"""Recovery Controller — rate-limited self-healing for the monitored service.

A recovery attempt runs in four steps:

  1. Cooldown gate: refuse if the last completed recovery is younger
     than the cooldown (default 10 min).  Nothing is touched.
  2. Local pre-check: if the service answers locally, the fault is
     probably in the proxy / network path.  Recovery still runs (a
     forced recreate is harmless) but is flagged low-confidence.
  3. Action: force-recreate the container, exactly once.  If that
     fails the attempt ends as ``failed-action``.
  4. Confirmation: poll the primary probe every poll_interval for up to
     confirm_window.  Healthy → ``succeeded``; otherwise
     ``failed-confirmation`` (cooldown still starts).
"""

import logging
import time

import config
from app.services import notifier
from app.services.probe import CONNECTION_FAILED, UNREACHABLE, ProbeResult

log = logging.getLogger(__name__)

SUCCEEDED = "succeeded"
FAILED_ACTION = "failed-action"
FAILED_CONFIRMATION = "failed-confirmation"
SKIPPED_COOLDOWN = "skipped-cooldown"


class RecoveryAttempt:
    """Record of one attempt_recovery() call."""

    def __init__(self, started_at, outcome=None, duration=0.0,
                 local_healthy=None, cooldown_remaining=0, detail=None):
        self.started_at = started_at
        self.outcome = outcome
        self.duration = duration
        self.local_healthy = local_healthy
        self.cooldown_remaining = cooldown_remaining
        self.detail = detail

    @property
    def succeeded(self):
        return self.outcome == SUCCEEDED

    def to_dict(self):
        return {
            "started_at": self.started_at,
            "outcome": self.outcome,
            "duration": round(self.duration, 1),
            "local_healthy": self.local_healthy,
            "cooldown_remaining": round(self.cooldown_remaining, 1),
            "detail": self.detail,
        }


class RecoveryController:
    """Decides whether a recovery may run, runs it, and confirms it."""

    def __init__(self, probe, control, dispatcher, cooldown=None,
                 poll_interval=None, confirm_window=None,
                 clock=time.time, sleep=time.sleep):
        self._probe = probe
        self._control = control
        self._dispatcher = dispatcher
        self.cooldown = config.RECOVERY_COOLDOWN if cooldown is None else cooldown
        self.poll_interval = (
            config.POLL_INTERVAL if poll_interval is None else poll_interval
        )
        self.confirm_window = (
            config.CONFIRM_WINDOW if confirm_window is None else confirm_window
        )
        self._clock = clock
        self._sleep = sleep

    def _notify(self, title, message, severity):
        try:
            self._dispatcher.notify(title, message, severity)
        except Exception as exc:
            log.warning("Notification %r failed: %s", title, exc)

    def verify_local(self):
        """Check the service directly: container state first, then HTTP."""
        running = self._control.is_running()
        if running is False:
            log.error("%s container is not running.", self._control.container_name)
            return ProbeResult(
                UNREACHABLE, CONNECTION_FAILED,
                url=self._probe.local_url, detail="container not running",
            )
        result = self._probe.check_local()
        if result.healthy:
            log.info("Service is healthy locally.")
        else:
            log.error("Local health check failed: %s", result.describe())
        return result

    def attempt_recovery(self, tracker, local=None):
        """Run one recovery attempt against *tracker*'s state.

        *local* is a local check the caller took this cycle; without one
        the service is verified locally here.
        """
        started = self._clock()
        name = self._control.service_name

        remaining = tracker.cooldown_remaining(started, self.cooldown)
        if remaining > 0:
            log.warning("Recovery in cooldown, %ds remaining.", remaining)
            self._notify(
                f"{name} recovery in cooldown",
                f"{tracker.consecutive_failures} consecutive failures; next "
                f"recovery allowed in {int(remaining)}s.",
                notifier.WARNING,
            )
            return RecoveryAttempt(
                started, SKIPPED_COOLDOWN, cooldown_remaining=remaining,
            )

        if local is None:
            local = self.verify_local()
        confidence = (
            " Local check is healthy; the fault is likely in the proxy or "
            "network path (low-confidence trigger)."
            if local.healthy else ""
        )
        log.warning("Starting automatic recovery of %s...", name)
        self._notify(
            f"{name} recovery started",
            f"Detected {tracker.consecutive_failures} consecutive failures, "
            f"starting recovery.{confidence}",
            notifier.WARNING,
        )

        try:
            self._control.force_recreate()
        except Exception as exc:
            log.error("Failed to recreate %s: %s", name, exc)
            self._notify(
                f"{name} recovery failed",
                f"Failed to recreate {name} container: {exc}. "
                "Manual intervention required.",
                notifier.CRITICAL,
            )
            return RecoveryAttempt(
                started, FAILED_ACTION, duration=self._clock() - started,
                local_healthy=local.healthy, detail=str(exc),
            )

        log.info("Waiting for %s to become ready...", name)
        deadline = self._clock() + self.confirm_window
        while True:
            self._sleep(max(0, min(self.poll_interval, deadline - self._clock())))
            result = self._probe.check()
            if result.healthy:
                finished = self._clock()
                tracker.mark_recovered(finished)
                elapsed = finished - started
                log.info(
                    "Recovery successful! %s restored in %ds.", name, elapsed,
                )
                self._notify(
                    f"{name} recovery successful",
                    f"Service restored successfully after {int(elapsed)}s. "
                    f"Total recoveries: {tracker.total_recoveries}. "
                    f"Monitor uptime: {int(tracker.uptime(finished))}s.",
                    notifier.INFO,
                )
                return RecoveryAttempt(
                    started, SUCCEEDED, duration=elapsed,
                    local_healthy=local.healthy,
                )
            if self._clock() >= deadline:
                break
            log.info("Still waiting: %s", result.describe())

        finished = self._clock()
        tracker.mark_recovery_completed(finished)
        log.error(
            "Recovery failed: %s did not become healthy within %ds.",
            name, self.confirm_window,
        )
        self._notify(
            f"{name} recovery failed",
            f"Container recreated but service did not become healthy within "
            f"{self.confirm_window}s. Manual intervention required.",
            notifier.CRITICAL,
        )
        return RecoveryAttempt(
            started, FAILED_CONFIRMATION, duration=finished - started,
            local_healthy=local.healthy,
        )
