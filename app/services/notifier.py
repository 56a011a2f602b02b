"""Notification Dispatcher — best-effort delivery of watchdog events.

Events are POSTed to a webhook as either a plain JSON document
({title, message, severity, target, timestamp}) or a Slack-compatible
payload.  Delivery is fire-and-forget: a short timeout, no retries, and
every error is logged and swallowed.  Each event is also kept in the
local event log regardless of whether the sink is enabled.
"""

import logging
from datetime import datetime, timezone

import requests

import config
from app.services import event_log

log = logging.getLogger(__name__)

INFO = "info"
WARNING = "warning"
CRITICAL = "critical"

_SLACK_STYLE = {
    INFO: ("good", "✅"),
    WARNING: ("warning", "⚠️"),
    CRITICAL: ("danger", "🚨"),
}


class NotificationDispatcher:
    """Sends state-change events to an external sink."""

    def __init__(self, url=None, enabled=None, fmt=None, timeout=None,
                 target=None, label=None, session=None):
        self.url = url if url is not None else config.NOTIFY_URL
        self.enabled = enabled if enabled is not None else config.NOTIFY_ENABLED
        self.format = fmt or config.NOTIFY_FORMAT
        self.timeout = timeout or config.NOTIFY_TIMEOUT
        self.target = target or config.SERVICE_URL
        self.label = label or config.SERVICE_LABEL
        self._http = session or requests

    def notify(self, title, message, severity=WARNING):
        """Deliver one event.  Never raises.

        Returns:
            True if the sink accepted the event, False otherwise
            (including when notifications are disabled).
        """
        event = {
            "title": title,
            "message": message,
            "severity": severity,
            "target": self.target,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

        try:
            event_log.record(
                self.target, severity, title, message,
                timestamp=event["timestamp"],
            )
        except Exception as exc:
            log.error("Could not store event %r: %s", title, exc)

        if not self.enabled or not self.url:
            log.debug("Notifications disabled; not sending %r.", title)
            return False

        try:
            resp = self._http.post(
                self.url, json=self._payload(event), timeout=self.timeout,
            )
            if resp.status_code >= 400:
                log.warning(
                    "Notification sink rejected %r (HTTP %s).",
                    title, resp.status_code,
                )
                return False
            log.info("Notification sent: %s", title)
            return True
        except Exception as exc:
            log.warning("Could not deliver notification %r: %s", title, exc)
            return False

    def _payload(self, event):
        if self.format != "slack":
            return event

        color, emoji = _SLACK_STYLE.get(event["severity"], _SLACK_STYLE[WARNING])
        return {
            "text": f"{emoji} {event['title']}",
            "attachments": [
                {
                    "color": color,
                    "fields": [
                        {"title": "Service", "value": self.label, "short": True},
                        {"title": "URL", "value": event["target"], "short": True},
                        {"title": "Details", "value": event["message"], "short": False},
                        {"title": "Timestamp", "value": event["timestamp"], "short": True},
                    ],
                }
            ],
        }
