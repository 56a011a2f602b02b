"""State snapshot — lets other processes see what the daemon is doing.

The daemon rewrites data/state.json after every cycle.  The ``status``
command, ``test-recovery`` and the Flask status API read it back; the
daemon itself never reads its own snapshot while running.
"""

import json
import logging
from pathlib import Path

log = logging.getLogger(__name__)


def load(path):
    """Load the snapshot dict.  Returns {} if missing or unreadable."""
    path = Path(path)
    if not path.exists():
        return {}
    try:
        with open(path, encoding="utf-8") as fh:
            return json.load(fh)
    except (json.JSONDecodeError, OSError) as exc:
        log.warning("Corrupt state file %s, ignoring: %s", path, exc)
        return {}


def save(path, snapshot):
    """Atomically write the snapshot dict."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(".tmp")
    with open(tmp, "w", encoding="utf-8") as fh:
        json.dump(snapshot, fh, indent=2, default=str)
    tmp.replace(path)
