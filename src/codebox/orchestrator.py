"""Container orchestration: create, start, wait (raced against a timeout), collect logs, remove.

Lifecycle of one run:

    create ─► start ─► wait ─────────────────────► logs ─► remove
                         │                                   ▲
                         └─ timeout ─► kill ─► logs ─────────┘

Removal is always attempted once the container exists; kill and remove
failures are logged, never raised.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import docker.errors

from codebox import constants
from codebox._logging import get_logger
from codebox.exceptions import (
    ContainerStartError,
    DaemonUnavailableError,
    ExecutionTimeoutError,
    ImageUnavailableError,
)
from codebox.log_demux import DecodedLogs, decode_logs
from codebox.models import ContainerSpec, Language
from codebox.resource_cleanup import kill_container, remove_container

if TYPE_CHECKING:
    from docker.models.containers import Container

    from codebox.config import SandboxConfig
    from codebox.daemon import DaemonConnector
    from codebox.platform_utils import HostPlatform
    from codebox.workspace import SandboxWorkspace

logger = get_logger(__name__)


def build_container_spec(language: Language, config: SandboxConfig) -> ContainerSpec:
    """Canonical container spec for a language kind under the configured limits."""
    runtime = constants.LANGUAGE_RUNTIMES[language]
    return ContainerSpec(
        image=runtime.image,
        command=runtime.command,
        workdir=constants.CONTAINER_INPUT_DIR,
        memory_limit_bytes=config.memory_limit_bytes,
        cpu_share=config.cpu_share,
        network_disabled=True,
        input_dir=constants.CONTAINER_INPUT_DIR,
        output_dir=constants.CONTAINER_OUTPUT_DIR,
    )


@dataclass(frozen=True)
class ContainerRun:
    """Natural completion of a container."""

    exit_code: int
    raw_logs: bytes


class ContainerOrchestrator:
    """Runs one container per call under hard resource and time limits."""

    def __init__(self, daemon: DaemonConnector, platform: HostPlatform) -> None:
        self._daemon = daemon
        self._platform = platform

    def create_kwargs(self, spec: ContainerSpec, workspace: SandboxWorkspace) -> dict[str, Any]:
        """Docker SDK ``containers.create`` arguments for a spec bound to a workspace."""
        cpu_quota = int(constants.CPU_PERIOD_US * spec.cpu_share)
        return {
            "image": spec.image,
            "command": list(spec.command),
            "working_dir": spec.workdir,
            "name": f"codebox-{workspace.id[:12]}",
            "network_disabled": spec.network_disabled,
            "network_mode": "none",
            "mem_limit": spec.memory_limit_bytes,
            "memswap_limit": spec.memory_limit_bytes,  # no swap beyond the memory cap
            "cpu_period": constants.CPU_PERIOD_US,
            "cpu_quota": max(cpu_quota, 1000),  # kernel minimum is 1ms
            "pids_limit": constants.CONTAINER_PIDS_LIMIT,
            "auto_remove": False,
            "volumes": {
                self._platform.to_mount_path(workspace.input_dir): {"bind": spec.input_dir, "mode": "ro"},
                self._platform.to_mount_path(workspace.output_dir): {"bind": spec.output_dir, "mode": "rw"},
            },
            "labels": {"codebox.workspace": workspace.id},
        }

    async def run(self, spec: ContainerSpec, workspace: SandboxWorkspace, timeout_ms: int) -> ContainerRun:
        """Run the container to completion or until the timeout.

        The timeout is wall-clock from a successful start.

        Returns:
            ContainerRun with the exit code and the raw framed log capture

        Raises:
            ContainerStartError: create or start was rejected by the daemon
            ImageUnavailableError: the image vanished between resolution and create
            ExecutionTimeoutError: the timeout fired first; the container was killed
            DaemonUnavailableError: the daemon could not be reached
        """
        context_id = workspace.id
        client = await self._daemon.client()

        try:
            container: Container = await self._daemon.call(client.containers.create, **self.create_kwargs(spec, workspace))
        except docker.errors.ImageNotFound as exc:
            raise ImageUnavailableError(f"Image {spec.image} not found", context={"image": spec.image}) from exc
        except docker.errors.APIError as exc:
            raise ContainerStartError(
                f"Failed to create container: {exc.explanation or exc}",
                context={"image": spec.image, "workspace_id": context_id},
            ) from exc

        try:
            try:
                await self._daemon.call(container.start)
            except docker.errors.APIError as exc:
                raise ContainerStartError(
                    f"Failed to start container: {exc.explanation or exc}",
                    context={"container_id": container.id, "workspace_id": context_id},
                ) from exc
            logger.debug("Container started", extra={"context_id": context_id, "container_id": container.id})

            exit_code = await self._wait(container, timeout_ms)
            if exit_code is None:
                await kill_container(self._daemon, container, context_id)
                logs = await self._logs_after_kill(container, context_id)
                tail = constants.TIMEOUT_LOG_TAIL_CHARS
                logger.warning(
                    "Execution timed out",
                    extra={"context_id": context_id, "container_id": container.id, "timeout_ms": timeout_ms},
                )
                raise ExecutionTimeoutError(
                    timeout_ms,
                    context={
                        "container_id": container.id,
                        "workspace_id": context_id,
                        "stdout_tail": logs.stdout[-tail:],
                        "stderr_tail": logs.stderr[-tail:],
                    },
                )

            raw_logs = await self._daemon.fetch_raw_logs(container)
            logger.debug(
                "Container exited",
                extra={"context_id": context_id, "container_id": container.id, "exit_code": exit_code},
            )
            return ContainerRun(exit_code=exit_code, raw_logs=raw_logs)
        finally:
            await remove_container(self._daemon, container, context_id)

    async def _logs_after_kill(self, container: Container, context_id: str) -> DecodedLogs:
        """Output captured before the kill. Failures are logged and yield empty logs."""
        try:
            raw = await self._daemon.fetch_raw_logs(container)
        except (docker.errors.APIError, DaemonUnavailableError) as e:
            logger.warning(
                "Failed to fetch logs of timed-out container",
                extra={"context_id": context_id, "container_id": container.id, "error": str(e)},
            )
            return DecodedLogs("", "")
        return decode_logs(raw)

    async def _wait(self, container: Container, timeout_ms: int) -> int | None:
        """Await natural exit; None if the timeout fires first."""
        timeout_s = timeout_ms / 1000
        try:
            async with asyncio.timeout(timeout_s):
                # The blocking call gets its own deadline so the worker thread
                # is released even if the kill below does not land.
                status = await self._daemon.call(container.wait, timeout=timeout_s + constants.WAIT_GRACE_SECONDS)
        except TimeoutError:
            return None
        return int(status.get("StatusCode", 1))
