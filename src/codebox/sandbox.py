"""Sandbox - the execution engine facade.

One execute() call walks the whole pipeline:

    health gate ─► workspace ─► image ─► container run ─► log demux ─► artifacts ─► teardown

State machine per execution:

    Requested ─► Admitted ─► Provisioned ─► Running ─► {Exited | TimedOut | StartFailed} ─► TornDown

TornDown is reachable from every state past admission. Expected failures and
unexpected internal errors alike come back as an ExecutionResult with
success=False; callers never see an exception for a sandbox failure.

Example:
    ```python
    from codebox import Sandbox

    async with Sandbox() as sandbox:
        result = await sandbox.run("print('hello')", language="python")
        print(result.output)  # "hello\\n"
    ```
"""

from __future__ import annotations

import asyncio
import contextlib
import time
from typing import TYPE_CHECKING, Self

from codebox import constants
from codebox._logging import get_logger
from codebox.artifacts import ArtifactCollector
from codebox.config import SandboxConfig
from codebox.daemon import DaemonConnector
from codebox.exceptions import DaemonUnavailableError, ExecutionTimeoutError, NonZeroExitError, SandboxError
from codebox.health import HealthMonitor
from codebox.images import ImageResolver
from codebox.log_demux import decode_logs
from codebox.models import ExecutionRequest, ExecutionResult, Language
from codebox.orchestrator import ContainerOrchestrator, build_container_spec
from codebox.platform_utils import select_platform
from codebox.workspace import WorkspaceManager

if TYPE_CHECKING:
    from collections.abc import Callable
    from contextlib import AbstractAsyncContextManager

    from codebox.platform_utils import HostPlatform

logger = get_logger(__name__)


class Sandbox:
    """Runs untrusted snippets in short-lived, network-isolated containers.

    Components share one DaemonConnector. A connector built here is closed by
    close(); an injected connector belongs to the caller.

    Attributes:
        config: Effective configuration
        platform: Host platform used for daemon addressing and mount paths
    """

    def __init__(
        self,
        config: SandboxConfig | None = None,
        *,
        daemon: DaemonConnector | None = None,
        platform: HostPlatform | None = None,
        images: ImageResolver | None = None,
    ) -> None:
        self.config = config or SandboxConfig()
        self.platform = platform or select_platform()
        self._owns_daemon = daemon is None
        self._daemon = daemon or DaemonConnector.from_config(self.config, self.platform)

        self.health = HealthMonitor(self._daemon)
        self.workspaces = WorkspaceManager(self.config.scratch_dir)
        self.images = images or ImageResolver(self._daemon, auto_build_local=self.config.auto_build_local_images)
        self.orchestrator = ContainerOrchestrator(self._daemon, self.platform)
        self.artifacts = ArtifactCollector()

        self._slots = (
            asyncio.Semaphore(self.config.max_concurrent_executions)
            if self.config.max_concurrent_executions is not None
            else None
        )

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self, _exc_type: type[BaseException] | None, _exc_val: BaseException | None, _exc_tb: object
    ) -> None:
        await self.close()

    async def close(self) -> None:
        """Release the daemon connection if this sandbox created it."""
        if self._owns_daemon:
            await self._daemon.close()

    def _admission(self) -> AbstractAsyncContextManager[object]:
        return self._slots if self._slots is not None else contextlib.nullcontext()

    async def run(self, code: str, language: Language | str) -> ExecutionResult:
        """Convenience wrapper around execute()."""
        return await self.execute(ExecutionRequest(source_code=code, language=Language(language)))

    async def execute(self, request: ExecutionRequest) -> ExecutionResult:
        """Execute one request to completion. Never raises for sandbox failures."""
        start = time.monotonic()

        def elapsed_ms() -> int:
            return int((time.monotonic() - start) * 1000)

        if not await self.health.probe():
            return ExecutionResult.failure(
                constants.DAEMON_UNAVAILABLE_MESSAGE,
                elapsed_ms(),
                error_type=DaemonUnavailableError.__name__,
            )

        async with self._admission():
            start = time.monotonic()
            try:
                return await self._execute_admitted(request, elapsed_ms)
            except ExecutionTimeoutError as e:
                # Logged by the orchestrator
                return ExecutionResult.failure(e.message, elapsed_ms(), error_type=type(e).__name__)
            except SandboxError as e:
                logger.warning(
                    f"Execution failed: {e.message}",
                    extra={"language": request.language.value, "error_type": type(e).__name__, **e.context},
                )
                return ExecutionResult.failure(e.message, elapsed_ms(), error_type=type(e).__name__)
            except Exception as e:
                logger.error(
                    "Unexpected execution error",
                    extra={"language": request.language.value, "error": str(e), "error_type": type(e).__name__},
                    exc_info=True,
                )
                return ExecutionResult.failure(str(e) or type(e).__name__, elapsed_ms(), error_type=type(e).__name__)

    async def _execute_admitted(self, request: ExecutionRequest, elapsed_ms: Callable[[], int]) -> ExecutionResult:
        spec = build_container_spec(request.language, self.config)

        async with self.workspaces.workspace(request) as workspace:
            await self.images.ensure_image(spec.image)
            run = await self.orchestrator.run(spec, workspace, self.config.timeout_ms)
            logs = decode_logs(run.raw_logs)
            files = await self.artifacts.collect(workspace.output_dir)

        error: str | None = None
        error_type: str | None = None
        if run.exit_code != 0:
            failure = NonZeroExitError(run.exit_code, logs.stderr, context={"workspace_id": workspace.id})
            logger.info(
                "Program exited with non-zero status",
                extra={"workspace_id": workspace.id, "exit_code": run.exit_code},
            )
            error = failure.message
            error_type = type(failure).__name__

        return ExecutionResult(
            success=run.exit_code == 0,
            output=logs.stdout,
            error=error,
            files=files,
            execution_time_ms=elapsed_ms(),
            error_type=error_type,
        )
