"""Instance Lock — only one watchdog may act on a target at a time.

The lock is an exclusive, non-blocking flock on a PID file.  The PID of
the holder is written into the file so a second instance (or the
``status`` / ``stop`` commands) can report and signal it.  Only the flock
decides ownership: the kernel drops it when the holder dies, so a PID
left behind by a crashed daemon is never trusted.  The file itself is
never removed, or two processes could lock two different inodes at the
same path.
"""

import fcntl
import logging
import os
from pathlib import Path

log = logging.getLogger(__name__)


class AlreadyRunningError(RuntimeError):
    """Another watchdog instance holds the lock."""

    def __init__(self, pid=None):
        self.pid = pid
        suffix = f" (pid {pid})" if pid else ""
        super().__init__(f"Another watchdog instance is already running{suffix}")


class InstanceLock:
    """Exclusive PID-file lock."""

    def __init__(self, path):
        self.path = Path(path)
        self._handle = None

    @property
    def held(self):
        return self._handle is not None

    def acquire(self):
        """Take the lock or raise AlreadyRunningError without blocking."""
        if self._handle is not None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        handle = open(self.path, "a+", encoding="utf-8")
        try:
            fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            handle.seek(0)
            pid = _parse_pid(handle.read())
            handle.close()
            raise AlreadyRunningError(pid) from None

        handle.seek(0)
        handle.truncate()
        handle.write(str(os.getpid()))
        handle.flush()
        self._handle = handle
        log.debug("Instance lock acquired: %s", self.path)

    def release(self):
        """Clear the recorded PID and drop the lock."""
        if self._handle is None:
            return
        self._handle.seek(0)
        self._handle.truncate()
        self._handle.flush()
        fcntl.flock(self._handle.fileno(), fcntl.LOCK_UN)
        self._handle.close()
        self._handle = None
        log.debug("Instance lock released: %s", self.path)

    def __enter__(self):
        self.acquire()
        return self

    def __exit__(self, *exc):
        self.release()


def _parse_pid(raw):
    try:
        return int(raw.strip())
    except (AttributeError, ValueError):
        return None


def read_pid(path):
    """Return the PID recorded in *path*, or None."""
    try:
        return _parse_pid(Path(path).read_text(encoding="utf-8"))
    except FileNotFoundError:
        return None


def running_pid(path):
    """PID of the process holding the lock on *path*, or None.

    A recorded PID counts only while its flock is held; a leftover file
    is ignored even if the PID now belongs to some other process.
    """
    try:
        handle = open(path, "r", encoding="utf-8")
    except FileNotFoundError:
        return None
    with handle:
        try:
            fcntl.flock(handle.fileno(), fcntl.LOCK_SH | fcntl.LOCK_NB)
        except BlockingIOError:
            return _parse_pid(handle.read())
        fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
    return None
