"""Event Log API routes.

Endpoints:
    GET  /api/events                 → list events (query: limit, severity)
    POST /api/events/{id}/annotate   → add a note to an event
"""

from flask import Blueprint, jsonify, request

from app.services import event_log

events_bp = Blueprint("events", __name__)


@events_bp.route("/api/events", methods=["GET"])
def list_events():
    """Return recent events, optionally filtered by severity."""
    limit = request.args.get("limit", 50, type=int)
    severity = request.args.get("severity")
    return jsonify(event_log.get_events(limit=limit, severity=severity))


@events_bp.route("/api/events/<event_id>/annotate", methods=["POST"])
def annotate_event(event_id):
    """Add or update an annotation on an event."""
    body = request.get_json(silent=True) or {}
    note = body.get("note", "").strip()
    if not note:
        return jsonify({"error": "No note provided."}), 400

    success = event_log.annotate(event_id, note)
    if not success:
        return jsonify({"error": f"Event {event_id} not found."}), 404

    return jsonify({"status": "annotated", "event_id": event_id, "note": note})
