"""codebox: run untrusted code snippets in throwaway Docker containers.

Each execution gets a private workspace, a memory/CPU-capped container with
networking disabled, and a hard wall-clock timeout. Output is captured,
artifacts written to /output are collected, and everything is torn down
whatever the outcome.

Quick Start:
    ```python
    from codebox import Sandbox

    async with Sandbox() as sandbox:
        result = await sandbox.run("print('hello')", language="python")
        print(result.output)  # "hello\\n"
    ```

With Configuration:
    ```python
    from codebox import Sandbox, SandboxConfig

    config = SandboxConfig(timeout_ms=5_000, memory_mb=256, max_concurrent_executions=4)
    async with Sandbox(config) as sandbox:
        result = await sandbox.run(chart_code, language="python-chart")
        for f in result.files:
            print(f.name, f.mime_type)
    ```

Requirements:
    - A reachable Docker daemon (unix socket, or named pipe on Windows)
    - Python 3.12+
"""

from codebox.config import SandboxConfig
from codebox.exceptions import (
    ArtifactReadError,
    ContainerStartError,
    DaemonUnavailableError,
    ExecutionTimeoutError,
    ImagePullTransientError,
    ImageUnavailableError,
    NonZeroExitError,
    SandboxError,
)
from codebox.models import ExecutionRequest, ExecutionResult, Language, MimeKind, OutputFile
from codebox.sandbox import Sandbox

__all__ = [
    "ArtifactReadError",
    "ContainerStartError",
    "DaemonUnavailableError",
    "ExecutionRequest",
    "ExecutionResult",
    "ExecutionTimeoutError",
    "ImagePullTransientError",
    "ImageUnavailableError",
    "Language",
    "MimeKind",
    "NonZeroExitError",
    "OutputFile",
    "Sandbox",
    "SandboxConfig",
    "SandboxError",
]

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("codebox")
except PackageNotFoundError:
    __version__ = "0.0.0.dev0"
