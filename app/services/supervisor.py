"""Supervisor — the watchdog daemon loop.

Lifecycle: idle → running → stopping → stopped.

While running, each cycle:
  - probes the primary endpoint and records the result,
  - on failure verifies the service locally,
  - classifies the cycle (healthy / degraded / recovering / critical),
  - notifies or runs a recovery attempt accordingly,
  - writes a state snapshot for the status surfaces,
then waits for the next cycle on an Event so SIGTERM / SIGINT are
noticed immediately.  A cycle in progress is always allowed to finish.

Nothing raised by a component escapes run_cycle(); the loop only ends on
a stop request.
"""

import logging
import os
import signal
import threading
import time

import config
from app.services import notifier, state_store
from app.services.instance_lock import InstanceLock
from app.services.notifier import NotificationDispatcher
from app.services.probe import CONNECTION_FAILED, UNREACHABLE, Probe, ProbeResult
from app.services.recovery import RecoveryController
from app.services.service_control import ServiceControl
from app.services.tracker import (
    CRITICAL, HEALTHY, RECOVERING, FailureTracker, evaluate_phase,
)

log = logging.getLogger(__name__)

IDLE = "idle"
RUNNING = "running"
STOPPING = "stopping"
STOPPED = "stopped"


class Supervisor:
    """Single-threaded monitoring daemon for one target."""

    def __init__(self, probe=None, controller=None, dispatcher=None,
                 tracker=None, lock=None, interval=None, state_file=None,
                 clock=time.time):
        self.probe = probe or Probe()
        self.dispatcher = dispatcher or NotificationDispatcher()
        self.controller = controller or RecoveryController(
            self.probe, ServiceControl(), self.dispatcher,
        )
        self.tracker = tracker or FailureTracker(config.FAILURE_THRESHOLD)
        self.lock = lock or InstanceLock(config.LOCK_FILE)
        self.interval = config.CHECK_INTERVAL if interval is None else interval
        self.state_file = state_file or config.STATE_FILE
        self._clock = clock
        self._stop = threading.Event()

        self.lifecycle = IDLE
        self.phase = None
        self.last_result = None
        self.last_checked_at = None
        self.last_attempt = None
        self.cycles = 0

    # ── Lifecycle ──────────────────────────────────────────────────────────

    def start(self, install_signals=True):
        """Acquire the instance lock and run until a stop is requested.

        Raises:
            AlreadyRunningError: another instance holds the lock.  The
                running instance is not touched.
        """
        self.lock.acquire()
        self.lifecycle = RUNNING
        self.tracker.started_at = self._clock()

        if install_signals:
            signal.signal(signal.SIGTERM, self._handle_signal)
            signal.signal(signal.SIGINT, self._handle_signal)

        log.info("Health monitor started (PID: %d)", os.getpid())
        log.info("Monitoring: %s", self.probe.url)
        log.info("Check interval: %ds", self.interval)
        log.info("Recovery cooldown: %ds", self.controller.cooldown)

        try:
            while not self._stop.is_set():
                self.run_cycle()
                self._stop.wait(self.interval)
        finally:
            self.lifecycle = STOPPED
            self._guard(self._save_snapshot, "state snapshot")
            self.lock.release()
            log.info("Health monitor stopped (PID: %d)", os.getpid())

    def request_stop(self):
        """Ask the loop to exit after the current cycle."""
        if self.lifecycle == RUNNING:
            self.lifecycle = STOPPING
        self._stop.set()

    def _handle_signal(self, signum, _frame):
        log.info("Received signal %d, stopping after this cycle.", signum)
        self.request_stop()

    # ── One cycle ──────────────────────────────────────────────────────────

    def run_cycle(self):
        """Probe, classify, act.  Returns the cycle's phase."""
        self.cycles += 1
        result = self._guard(
            self.probe.check, "primary probe",
            ProbeResult(UNREACHABLE, CONNECTION_FAILED, url=self.probe.url),
        )
        self.last_result = result
        self.last_checked_at = self._clock()
        transition = self.tracker.record(result)

        local = None
        if result.healthy:
            log.info("Health check passed (%sms response time)", result.latency_ms)
            if transition:
                log.info(
                    "Service recovered naturally after %d failures",
                    transition["failures"],
                )
                self._guard(lambda: self.dispatcher.notify(
                    "Service recovered",
                    f"Service recovered naturally after "
                    f"{transition['failures']} consecutive failures.",
                    notifier.INFO,
                ), "notification")
        else:
            log.warning(
                "Health check failed: %s (consecutive failures: %d)",
                result.describe(), self.tracker.consecutive_failures,
            )
            local = self._guard(self.controller.verify_local, "local check")

        self.phase = evaluate_phase(result, local, self.tracker)

        if self.phase == CRITICAL:
            log.error("Local service is also unhealthy, may need manual intervention")
            self._guard(lambda: self.dispatcher.notify(
                "Service critical",
                "Both external and local health checks failing "
                f"({result.describe()}; local: {local.describe()}). "
                "Manual intervention may be required.",
                notifier.CRITICAL,
            ), "notification")
        elif self.phase == RECOVERING:
            attempt = self._guard(
                lambda: self.controller.attempt_recovery(self.tracker, local),
                "recovery",
            )
            if attempt is not None:
                self.last_attempt = attempt
                log.info("Recovery attempt outcome: %s", attempt.outcome)
        elif self.phase != HEALTHY and local is not None:
            log.info("Local service is healthy, issue might be with reverse proxy")

        self._guard(self._save_snapshot, "state snapshot")
        return self.phase

    @staticmethod
    def _guard(fn, what, fallback=None):
        """Run a component call; log and swallow anything it raises."""
        try:
            return fn()
        except Exception:
            log.exception("Unexpected error in %s; continuing.", what)
            return fallback

    # ── Status ─────────────────────────────────────────────────────────────

    def snapshot(self):
        now = self._clock()
        return {
            "pid": os.getpid(),
            "lifecycle": self.lifecycle,
            "phase": self.phase,
            "target": self.probe.url,
            "interval": self.interval,
            "cycles": self.cycles,
            "uptime_seconds": round(self.tracker.uptime(now), 1),
            "tracker": self.tracker.to_dict(),
            "last_check": (
                dict(self.last_result.to_dict(), checked_at=self.last_checked_at)
                if self.last_result else None
            ),
            "last_recovery_attempt": (
                self.last_attempt.to_dict() if self.last_attempt else None
            ),
            "updated_at": now,
        }

    def _save_snapshot(self):
        state_store.save(self.state_file, self.snapshot())
