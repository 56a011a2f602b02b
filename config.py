"""Healthwatch configuration — defaults, optional YAML file, environment.

Precedence (lowest to highest):
  1. Defaults below
  2. healthwatch.yaml (or the file named by HEALTHWATCH_CONFIG_FILE)
  3. Environment variables / .env
"""

import os
from pathlib import Path

import yaml
from dotenv import load_dotenv

load_dotenv()

# Paths
BASE_DIR = Path(__file__).resolve().parent
DATA_DIR = BASE_DIR / "data"
LOGS_DIR = BASE_DIR / "logs"
CONFIG_FILE = Path(
    os.getenv("HEALTHWATCH_CONFIG_FILE", str(BASE_DIR / "healthwatch.yaml"))
)

# Ensure runtime directories exist
DATA_DIR.mkdir(exist_ok=True)
LOGS_DIR.mkdir(exist_ok=True)


def _load_file(path):
    """Return the option dict from a YAML config file ({} if absent)."""
    try:
        with open(path, "r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh) or {}
    except FileNotFoundError:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a mapping.")
    return {str(k).lower(): v for k, v in data.items()}


_FILE = _load_file(CONFIG_FILE)


def _opt(name, default):
    """Resolve one option: env HEALTHWATCH_<NAME> > YAML <name> > default."""
    env = os.getenv(f"HEALTHWATCH_{name}")
    if env is not None:
        return env
    return _FILE.get(name.lower(), default)


def _bool(value):
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


# Monitored service
SERVICE_URL = _opt("SERVICE_URL", os.getenv("N8N_URL", "http://localhost:5678"))
HEALTH_URL = _opt("HEALTH_URL", f"{SERVICE_URL.rstrip('/')}/healthz")
LOCAL_HEALTH_URL = _opt("LOCAL_HEALTH_URL", "http://127.0.0.1:5678/healthz")
HEALTH_MARKER = _opt("HEALTH_MARKER", "ok")

# Probe timing (seconds)
CHECK_INTERVAL = int(_opt("CHECK_INTERVAL", 300))
PROBE_TIMEOUT = float(_opt("PROBE_TIMEOUT", 30))
CONNECT_TIMEOUT = float(_opt("CONNECT_TIMEOUT", 10))
LOCAL_TIMEOUT = float(_opt("LOCAL_TIMEOUT", 5))

# Recovery
FAILURE_THRESHOLD = int(_opt("FAILURE_THRESHOLD", 2))
RECOVERY_COOLDOWN = int(_opt("RECOVERY_COOLDOWN", 600))
CONFIRM_WINDOW = int(_opt("CONFIRM_WINDOW", 120))
POLL_INTERVAL = int(_opt("POLL_INTERVAL", 10))

# Service control (docker compose)
COMPOSE_FILES = [
    f.strip() for f in str(_opt("COMPOSE_FILES", "docker-compose.yml")).split(",")
    if f.strip()
]
COMPOSE_PROJECT_DIR = Path(_opt("COMPOSE_PROJECT_DIR", str(BASE_DIR)))
SERVICE_NAME = _opt("SERVICE_NAME", "n8n")
CONTAINER_NAME = _opt("CONTAINER_NAME", "n8n_automation")
CONTROL_TIMEOUT = int(_opt("CONTROL_TIMEOUT", 180))

# Notifications
NOTIFY_ENABLED = _bool(_opt("NOTIFY_ENABLED", False))
NOTIFY_URL = _opt("NOTIFY_URL", os.getenv("SLACK_WEBHOOK_URL", ""))
NOTIFY_FORMAT = _opt("NOTIFY_FORMAT", "json")  # json | slack
NOTIFY_TIMEOUT = float(_opt("NOTIFY_TIMEOUT", 5))
SERVICE_LABEL = _opt("SERVICE_LABEL", "N8N Automation Platform")

# Runtime files
LOCK_FILE = Path(_opt("LOCK_FILE", str(DATA_DIR / "healthwatch.pid")))
STATE_FILE = Path(_opt("STATE_FILE", str(DATA_DIR / "state.json")))
EVENTS_DB = Path(_opt("EVENTS_DB", str(DATA_DIR / "events.db")))
LOG_FILE = Path(_opt("LOG_FILE", str(LOGS_DIR / "healthwatch.log")))
LOG_LEVEL = str(_opt("LOG_LEVEL", "INFO")).upper()

# Operator status API
HOST = _opt("HOST", "127.0.0.1")
PORT = int(_opt("PORT", 5090))

# Version
VERSION = "1.0.0"
