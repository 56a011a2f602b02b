"""Liveness endpoint for the Healthwatch status API itself."""

import time

from flask import Blueprint, jsonify

import config

health_bp = Blueprint("health", __name__)

# Recorded at module load — used for uptime calculation.
_start_time = time.time()


@health_bp.route("/api/health", methods=["GET"])
def health():
    """Return status-API health (not the monitored service's)."""
    return jsonify(
        {
            "status": "operational",
            "uptime_seconds": round(time.time() - _start_time, 1),
            "version": config.VERSION,
        }
    )
