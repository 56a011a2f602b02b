"""Probe — one bounded HTTP health check, classified.

Two checks are offered:

  check()        the primary endpoint (possibly behind a reverse proxy).
  check_local()  the service directly, bypassing any intermediary.

The local check only helps decide *where* a failure lives; it never
overrides the verdict of the primary check.  Neither check raises —
every request error is folded into an ``unreachable`` result.
"""

import logging
import time

import requests

import config

log = logging.getLogger(__name__)

HEALTHY = "healthy"
UNHEALTHY = "unhealthy"
UNREACHABLE = "unreachable"

# Failure reasons
GATEWAY_TIMEOUT = "gateway_timeout"
UNEXPECTED_STATUS = "unexpected_status"
MALFORMED_BODY = "malformed_body"
TIMEOUT = "timeout"
CONNECTION_FAILED = "connection_failed"

GATEWAY_TIMEOUT_CODE = 504


class ProbeResult:
    """Outcome of a single probe."""

    def __init__(self, status, reason=None, status_code=None,
                 latency_ms=None, url=None, detail=None):
        self.status = status
        self.reason = reason
        self.status_code = status_code
        self.latency_ms = latency_ms
        self.url = url
        self.detail = detail

    @property
    def healthy(self):
        return self.status == HEALTHY

    def describe(self):
        """Short human-readable summary for logs and notifications."""
        if self.healthy:
            return f"healthy ({self.latency_ms}ms)"
        if self.reason == GATEWAY_TIMEOUT:
            return "504 Gateway Timeout"
        if self.reason == UNEXPECTED_STATUS:
            return f"unexpected HTTP status {self.status_code}"
        if self.reason == MALFORMED_BODY:
            return "malformed health response body"
        if self.reason == TIMEOUT:
            return "timed out"
        return "connection failed (refused or DNS failure)"

    def to_dict(self):
        return {
            "status": self.status,
            "reason": self.reason,
            "status_code": self.status_code,
            "latency_ms": self.latency_ms,
            "url": self.url,
            "detail": self.detail,
        }

    def __repr__(self):
        return f"ProbeResult({self.status!r}, reason={self.reason!r})"


class Probe:
    """Health checker for one monitored service."""

    def __init__(self, url=None, local_url=None, timeout=None,
                 connect_timeout=None, local_timeout=None, marker=None,
                 session=None):
        self.url = url or config.HEALTH_URL
        self.local_url = local_url or config.LOCAL_HEALTH_URL
        self.timeout = timeout or config.PROBE_TIMEOUT
        self.connect_timeout = connect_timeout or config.CONNECT_TIMEOUT
        self.local_timeout = local_timeout or config.LOCAL_TIMEOUT
        self.marker = marker or config.HEALTH_MARKER
        self._http = session or requests

    def check(self):
        """Probe the primary health endpoint."""
        return self._get(self.url, (self.connect_timeout, self.timeout))

    def check_local(self):
        """Probe the service directly on its non-proxied address."""
        return self._get(self.local_url, self.local_timeout)

    def _get(self, url, timeout):
        start = time.monotonic()
        try:
            resp = self._http.get(url, timeout=timeout)
        except requests.Timeout:
            return ProbeResult(UNREACHABLE, TIMEOUT, url=url)
        except requests.ConnectionError as exc:
            return ProbeResult(UNREACHABLE, CONNECTION_FAILED, url=url,
                               detail=str(exc))
        except Exception as exc:
            log.warning("Health probe of %s failed: %s", url, exc)
            return ProbeResult(UNREACHABLE, CONNECTION_FAILED, url=url,
                               detail=str(exc))

        latency = round((time.monotonic() - start) * 1000, 1)
        code = resp.status_code

        if code == GATEWAY_TIMEOUT_CODE:
            return ProbeResult(UNHEALTHY, GATEWAY_TIMEOUT, status_code=code,
                               latency_ms=latency, url=url)
        if code != 200:
            return ProbeResult(UNHEALTHY, UNEXPECTED_STATUS, status_code=code,
                               latency_ms=latency, url=url)
        if not self._has_marker(resp):
            return ProbeResult(UNHEALTHY, MALFORMED_BODY, status_code=code,
                               latency_ms=latency, url=url,
                               detail=resp.text[:200])
        return ProbeResult(HEALTHY, status_code=code, latency_ms=latency,
                           url=url)

    def _has_marker(self, resp):
        """True when the JSON body reports ``status`` equal to the marker."""
        try:
            body = resp.json()
        except ValueError:
            return False
        if not isinstance(body, dict):
            return False
        return str(body.get("status", "")).lower() == str(self.marker).lower()
