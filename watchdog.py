"""Healthwatch — health monitor with automatic recovery.

Run:
    python watchdog.py start               # run the monitor (foreground)
    python watchdog.py stop                # stop a running monitor
    python watchdog.py restart
    python watchdog.py status              # state, counters, recent events
    python watchdog.py check               # one probe; exit 1 if unhealthy
    python watchdog.py test-notifications
    python watchdog.py test-recovery [--yes]   # recreates the container!
"""

import argparse
import logging
import os
import signal
import sys
import time
from pathlib import Path

import config
from app.services import state_store
from app.services import status as status_report
from app.services.instance_lock import AlreadyRunningError, InstanceLock, running_pid
from app.services.notifier import INFO, NotificationDispatcher
from app.services.probe import Probe
from app.services.recovery import RecoveryController
from app.services.service_control import ServiceControl
from app.services.supervisor import Supervisor
from app.services.tracker import FailureTracker

log = logging.getLogger("watchdog")

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging(to_file=False):
    """Console logging, plus the log file for the daemon.

    Falls back to ~/healthwatch.log when the configured file is not
    writable.
    """
    handlers = [logging.StreamHandler()]
    if to_file:
        path = Path(config.LOG_FILE)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            handlers.append(logging.FileHandler(path, encoding="utf-8"))
        except OSError:
            fallback = Path.home() / "healthwatch.log"
            print(f"Using fallback log file: {fallback}", file=sys.stderr)
            handlers.append(logging.FileHandler(fallback, encoding="utf-8"))
    logging.basicConfig(
        level=getattr(logging, config.LOG_LEVEL, logging.INFO),
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )


def restore_tracker():
    """Carry cooldown and recovery totals across daemon restarts."""
    tracker = FailureTracker(config.FAILURE_THRESHOLD)
    saved = state_store.load(config.STATE_FILE).get("tracker", {})
    tracker.last_recovery_at = saved.get("last_recovery_at")
    tracker.total_recoveries = int(saved.get("total_recoveries", 0))
    return tracker


def build_controller(probe, dispatcher):
    return RecoveryController(probe, ServiceControl(), dispatcher)


# ── Commands ───────────────────────────────────────────────────────────────

def cmd_start(args):
    pid = running_pid(config.LOCK_FILE)
    if pid:
        print(f"Monitor is already running (PID: {pid})")
        return 1

    setup_logging(to_file=True)
    probe = Probe()
    dispatcher = NotificationDispatcher()
    supervisor = Supervisor(
        probe=probe,
        controller=build_controller(probe, dispatcher),
        dispatcher=dispatcher,
        tracker=restore_tracker(),
    )
    try:
        supervisor.start()
    except AlreadyRunningError as exc:
        print(f"{exc}")
        return 1
    return 0


def cmd_stop(args):
    pid = running_pid(config.LOCK_FILE)
    if not pid:
        print("Monitor is not running")
        return 0

    print(f"Stopping health monitor (PID: {pid})")
    os.kill(pid, signal.SIGTERM)
    deadline = time.monotonic() + args.timeout
    while time.monotonic() < deadline:
        if running_pid(config.LOCK_FILE) is None:
            print("Monitor stopped")
            return 0
        time.sleep(1)

    if running_pid(config.LOCK_FILE) != pid:
        print("Monitor stopped")
        return 0
    print(f"Monitor did not exit within {args.timeout}s, force killing")
    try:
        os.kill(pid, signal.SIGKILL)
    except ProcessLookupError:
        pass
    return 0


def cmd_restart(args):
    cmd_stop(args)
    time.sleep(2)
    return cmd_start(args)


def cmd_status(args):
    report = status_report.collect(events=args.events, log_lines=10)

    print("Healthwatch Status")
    print("==================")
    if report["running"]:
        print(
            f"Monitor is running (PID: {report['pid']}, "
            f"uptime: {int(report['uptime_seconds'] or 0)}s)"
        )
        print(f"  Phase: {report['phase'] or 'starting'}")
    else:
        print("Monitor is not running")
    print(f"  Consecutive failures: {report['consecutive_failures']}")
    print(f"  Total recoveries: {report['total_recoveries']}")

    print("")
    print("Configuration:")
    for key, value in report["config"].items():
        print(f"  {key}: {value}")

    if report["recent_events"]:
        print("")
        print("Recent events:")
        for event in report["recent_events"]:
            print(
                f"  {event['id']} {event['timestamp']} "
                f"[{event['severity']}] {event['title']}"
            )

    if report.get("log_tail"):
        print("")
        print("Recent log entries:")
        for line in report["log_tail"]:
            print(f"  {line}")

    return 0 if report["healthy"] else 1


def cmd_check(args):
    setup_logging()
    probe = Probe()
    result = probe.check()
    local = probe.check_local()

    if result.healthy:
        if not local.healthy:
            log.warning(
                "Primary check is healthy but the local check failed (%s); "
                "this combination is unexpected, please investigate.",
                local.describe(),
            )
        print(f"Service is healthy ({result.latency_ms}ms)")
        return 0

    where = (
        "local service is healthy, issue might be with reverse proxy"
        if local.healthy else "local service is also unhealthy"
    )
    print(f"Service is unhealthy: {result.describe()} ({where})")
    return 1


def cmd_test_notifications(args):
    setup_logging()
    print("Testing notification system...")
    sent = NotificationDispatcher().notify(
        "Healthwatch test",
        "This is a test notification from the health monitor",
        INFO,
    )
    print("Test notification sent" if sent else
          "Notification not delivered (disabled or sink unreachable)")
    return 0


def cmd_test_recovery(args):
    setup_logging()
    print("Testing recovery process (this will recreate the service container)")
    if not args.yes:
        reply = input("Are you sure you want to proceed? (y/N): ")
        if reply.strip().lower() not in ("y", "yes"):
            print("Recovery test cancelled")
            return 1

    lock = InstanceLock(config.LOCK_FILE)
    try:
        lock.acquire()
    except AlreadyRunningError as exc:
        print(f"{exc}; stop it before testing recovery.")
        return 1

    try:
        probe = Probe()
        controller = build_controller(probe, NotificationDispatcher())
        tracker = restore_tracker()
        attempt = controller.attempt_recovery(tracker)

        snapshot = state_store.load(config.STATE_FILE)
        snapshot["tracker"] = tracker.to_dict()
        snapshot["last_recovery_attempt"] = attempt.to_dict()
        state_store.save(config.STATE_FILE, snapshot)
    finally:
        lock.release()

    print(f"Recovery outcome: {attempt.outcome}")
    return 0 if attempt.succeeded else 1


COMMANDS = {
    "start": cmd_start,
    "stop": cmd_stop,
    "restart": cmd_restart,
    "status": cmd_status,
    "check": cmd_check,
    "test-notifications": cmd_test_notifications,
    "test-recovery": cmd_test_recovery,
}


def build_parser():
    parser = argparse.ArgumentParser(
        prog="watchdog.py",
        description="Health monitor with automatic recovery.",
    )
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("start", help="Start the health monitor daemon")
    for name, text in (("stop", "Stop the health monitor daemon"),
                       ("restart", "Restart the health monitor daemon")):
        p = sub.add_parser(name, help=text)
        p.add_argument(
            "--timeout", type=int,
            default=int(config.PROBE_TIMEOUT + config.CONFIRM_WINDOW
                        + config.CONTROL_TIMEOUT + 30),
            help="Seconds to wait for a graceful exit before SIGKILL",
        )
    p = sub.add_parser("status", help="Show monitor status and recent events")
    p.add_argument("--events", type=int, default=10)
    sub.add_parser("check", help="Perform a single health check")
    sub.add_parser("test-notifications", help="Send a test notification")
    p = sub.add_parser("test-recovery", help="Run the recovery process now")
    p.add_argument("--yes", action="store_true", help="Skip confirmation")
    sub.add_parser("help", help="Show this help message")
    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    handler = COMMANDS.get(args.command)
    if handler is None:
        parser.print_help()
        return 0
    return handler(args)


if __name__ == "__main__":
    sys.exit(main())
