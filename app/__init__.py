"""Healthwatch — operator status API.

Flask application factory lives here so the ``app`` package is
directly importable: ``from app import create_app``.  The API never
runs the monitoring loop; it reads the daemon's snapshot and event log
and can run a one-off probe.
"""

import logging

from flask import Flask
from flask_cors import CORS

import config
from app.services.probe import Probe


def create_app(probe=None):
    """Create and configure the Flask application.

    Args:
        probe: Probe used by POST /api/check.  Defaults to one built
            from config; tests pass a stub.
    """
    application = Flask(__name__)

    # CORS — local-only, dashboards on other ports poll it.
    CORS(application)

    # Logging
    logging.basicConfig(
        level=getattr(logging, config.LOG_LEVEL, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    application.config["PROBE"] = probe or Probe()

    # Register blueprints
    from app.routes.health import health_bp
    from app.routes.monitor import monitor_bp
    from app.routes.events import events_bp

    application.register_blueprint(health_bp)
    application.register_blueprint(monitor_bp)
    application.register_blueprint(events_bp)

    return application
