"""Service Control — drives the monitored container through docker.

Two operations:

  force_recreate()  docker compose up -d --force-recreate <service>
  is_running()      docker ps filtered on the container name

force_recreate() is called at most once per recovery attempt; it never
retries.  Any failure (missing binary, non-zero exit, timeout) raises
ServiceControlError.
"""

import logging
import subprocess

import config

log = logging.getLogger(__name__)


class ServiceControlError(Exception):
    """The control interface could not carry out an action."""


class ServiceControl:
    """docker compose wrapper for one named service."""

    def __init__(self, service_name=None, container_name=None,
                 compose_files=None, project_dir=None, timeout=None,
                 runner=None):
        self.service_name = service_name or config.SERVICE_NAME
        self.container_name = (
            container_name if container_name is not None
            else config.CONTAINER_NAME
        )
        self.compose_files = list(compose_files or config.COMPOSE_FILES)
        self.project_dir = project_dir or config.COMPOSE_PROJECT_DIR
        self.timeout = timeout or config.CONTROL_TIMEOUT
        self._run = runner or subprocess.run

    def recreate_command(self):
        cmd = ["docker", "compose"]
        for path in self.compose_files:
            cmd += ["-f", path]
        cmd += ["up", "-d", "--force-recreate", self.service_name]
        return cmd

    def force_recreate(self):
        """Recreate the service container.  Raises ServiceControlError."""
        cmd = self.recreate_command()
        log.info("Recreating %s: %s", self.service_name, " ".join(cmd))
        try:
            proc = self._run(
                cmd,
                cwd=str(self.project_dir),
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except FileNotFoundError as exc:
            raise ServiceControlError(f"docker not available: {exc}") from exc
        except subprocess.TimeoutExpired as exc:
            raise ServiceControlError(
                f"recreate of {self.service_name} timed out after {self.timeout}s"
            ) from exc
        except OSError as exc:
            raise ServiceControlError(str(exc)) from exc

        if proc.returncode != 0:
            stderr = (proc.stderr or "").strip()
            raise ServiceControlError(
                f"docker compose exited {proc.returncode}: {stderr[-500:]}"
            )
        log.info("Container recreation of %s completed.", self.service_name)

    def is_running(self):
        """True if the container is listed as running.

        Returns None when no container name is configured or docker
        cannot be queried, so callers can fall back to HTTP alone.
        """
        if not self.container_name:
            return None
        cmd = [
            "docker", "ps",
            "--filter", f"name={self.container_name}",
            "--filter", "status=running",
            "--quiet",
        ]
        try:
            proc = self._run(cmd, capture_output=True, text=True, timeout=15)
        except (OSError, subprocess.TimeoutExpired) as exc:
            log.warning("Cannot query docker for %s: %s", self.container_name, exc)
            return None
        if proc.returncode != 0:
            log.warning(
                "docker ps failed (%s): %s",
                proc.returncode, (proc.stderr or "").strip(),
            )
            return None
        return bool((proc.stdout or "").strip())
