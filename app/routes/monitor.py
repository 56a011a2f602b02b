"""Monitor API routes.

Endpoints:
    GET  /api/status  → daemon state, counters, uptime, recent events
    POST /api/check   → single synchronous probe of the monitored service

Both answer 503 when the monitored service (or the daemon) is not
healthy, so they can be wired straight into external uptime checks.
"""

from flask import Blueprint, current_app, jsonify, request

from app.services import status as status_report

monitor_bp = Blueprint("monitor", __name__)


@monitor_bp.route("/api/status", methods=["GET"])
def status():
    """Return the operator status report."""
    events = request.args.get("events", 10, type=int)
    report = status_report.collect(events=events)
    return jsonify(report), 200 if report["healthy"] else 503


@monitor_bp.route("/api/check", methods=["POST"])
def check():
    """Probe the primary endpoint now; include the local check on failure."""
    probe = current_app.config["PROBE"]
    result = probe.check()
    body = {"healthy": result.healthy, "primary": result.to_dict()}
    if not result.healthy:
        body["local"] = probe.check_local().to_dict()
    return jsonify(body), 200 if result.healthy else 503
