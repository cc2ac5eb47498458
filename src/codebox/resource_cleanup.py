"""Best-effort cleanup of per-execution resources.

Every function here logs failures and returns False instead of raising, so
cleanup never masks the primary outcome of an execution.
"""

from __future__ import annotations

import asyncio
import shutil
from typing import TYPE_CHECKING

import docker.errors

from codebox._logging import get_logger

if TYPE_CHECKING:
    from pathlib import Path

    from docker.models.containers import Container

    from codebox.daemon import DaemonConnector

logger = get_logger(__name__)


async def cleanup_directory(path: Path | None, context_id: str) -> bool:
    """Recursively remove a directory tree.

    Silently succeeds if the tree is already gone, fully or partially.

    Args:
        path: Directory to remove (None safe - returns immediately)
        context_id: Context for logging (e.g., workspace id)

    Returns:
        True if the tree is gone, False if issues occurred
    """
    if path is None:
        return True

    try:
        await asyncio.to_thread(shutil.rmtree, path)
        logger.debug("Directory removed", extra={"context_id": context_id, "path": str(path)})
        return True

    except FileNotFoundError:
        # Already deleted (race condition) - success
        return True

    except OSError as e:
        # Permission denied (files owned by the container user), busy mount, etc.
        logger.error(
            "Directory removal error",
            extra={"context_id": context_id, "path": str(path), "error": str(e), "error_type": type(e).__name__},
        )
        return False

    except Exception as e:
        logger.error(
            "Directory cleanup error",
            extra={"context_id": context_id, "path": str(path), "error": str(e), "error_type": type(e).__name__},
            exc_info=True,
        )
        return False


async def kill_container(daemon: DaemonConnector, container: Container, context_id: str) -> bool:
    """Force-kill a container (SIGKILL). Idempotent.

    A container that already stopped (409 Conflict) or vanished (404) counts as killed.

    Returns:
        True if the container is no longer running, False if issues occurred
    """
    try:
        await daemon.call(container.kill)
        logger.info("Container killed", extra={"context_id": context_id, "container_id": container.id})
        return True

    except docker.errors.NotFound:
        logger.debug("Container already gone", extra={"context_id": context_id, "container_id": container.id})
        return True

    except docker.errors.APIError as e:
        if e.status_code == 409:
            logger.debug("Container already stopped", extra={"context_id": context_id, "container_id": container.id})
            return True
        logger.warning(
            "Container kill failed",
            extra={"context_id": context_id, "container_id": container.id, "error": str(e)},
        )
        return False

    except Exception as e:
        logger.warning(
            "Container kill error",
            extra={"context_id": context_id, "container_id": container.id, "error": str(e), "error_type": type(e).__name__},
        )
        return False


async def remove_container(daemon: DaemonConnector, container: Container | None, context_id: str) -> bool:
    """Force-remove a container.

    Args:
        daemon: Connector used to reach the daemon
        container: Container to remove (None safe - returns immediately)
        context_id: Context for logging

    Returns:
        True if the container is gone, False if issues occurred
    """
    if container is None:
        return True

    try:
        await daemon.call(container.remove, force=True)
        logger.debug("Container removed", extra={"context_id": context_id, "container_id": container.id})
        return True

    except docker.errors.NotFound:
        return True

    except Exception as e:
        logger.error(
            "Container removal error",
            extra={"context_id": context_id, "container_id": container.id, "error": str(e), "error_type": type(e).__name__},
        )
        return False
