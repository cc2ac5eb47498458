"""Daemon reachability probe, used as the admission gate for executions."""

from __future__ import annotations

from typing import TYPE_CHECKING

import docker.errors

from codebox._logging import get_logger
from codebox.exceptions import DaemonUnavailableError

if TYPE_CHECKING:
    from codebox.daemon import DaemonConnector

logger = get_logger(__name__)

_NOT_RUNNING_MARKERS = ("FileNotFoundError", "No such file", "Connection refused", "connect", "ENOENT")


class HealthMonitor:
    """Side-effect free daemon checks."""

    def __init__(self, daemon: DaemonConnector) -> None:
        self._daemon = daemon

    async def probe(self) -> bool:
        """Ping the daemon. Returns False on any communication failure, never raises."""
        try:
            await self._daemon.ping()
        except (DaemonUnavailableError, docker.errors.DockerException) as e:
            logger.error(
                "Docker health check failed",
                extra={"base_url": self._daemon.base_url, "error": str(e), "error_type": type(e).__name__},
            )
            return False
        except Exception as e:
            logger.error(
                "Docker health check error",
                extra={"base_url": self._daemon.base_url, "error": str(e), "error_type": type(e).__name__},
                exc_info=True,
            )
            return False
        return True

    async def describe(self) -> str:
        """Human-readable daemon status for operators."""
        try:
            info = await self._daemon.info()
        except DaemonUnavailableError as e:
            if any(marker in e.message for marker in _NOT_RUNNING_MARKERS):
                return "Docker is not running. Please start the Docker daemon."
            return f"Docker error: {e.message}"
        except docker.errors.DockerException as e:
            return f"Docker error: {e}"
        return f"Docker is running (Version: {info.get('ServerVersion', 'unknown')})"
