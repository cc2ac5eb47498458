"""Exception hierarchy for codebox.

All exceptions inherit from SandboxError base class.

Hierarchy:
    SandboxError (base)
    ├── DaemonUnavailableError        ← probe failed / daemon unreachable
    ├── ImageUnavailableError         ← local image missing or pull failed
    │   └── ImagePullTransientError   ← registry/daemon hiccup (retried)
    ├── ContainerStartError           ← create/start rejected by the daemon
    ├── ExecutionTimeoutError         ← wall-clock limit hit, container killed
    ├── NonZeroExitError              ← program exited with a non-zero status
    └── ArtifactReadError             ← one output file unreadable (non-fatal)

None of these reach callers of Sandbox.execute(): the facade converts them
into an ExecutionResult with success=False.
"""

from __future__ import annotations

from typing import Any


class SandboxError(Exception):
    """Base exception for all sandbox errors with structured context.

    Attributes:
        message: Human-readable error message
        context: Dictionary of structured error context for logging/debugging
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}


class DaemonUnavailableError(SandboxError):
    """Container daemon cannot be reached.

    Raised when the health probe fails or a daemon call fails for
    connectivity reasons (socket missing, connection refused).
    """


class ImageUnavailableError(SandboxError):
    """Required image is not available locally and could not be obtained.

    Raised when a locally built image is missing (never pulled) or when
    a registry pull reports failure.
    """


class ImagePullTransientError(ImageUnavailableError):
    """Image pull failed for a reason that may succeed on retry (5xx, read timeout)."""


class ContainerStartError(SandboxError):
    """Container could not be created or started."""


class ExecutionTimeoutError(SandboxError):
    """Execution exceeded the wall-clock limit and the container was killed.

    Attributes:
        timeout_ms: The limit that was exceeded
    """

    def __init__(self, timeout_ms: int, context: dict[str, Any] | None = None):
        super().__init__(f"Execution timeout ({timeout_ms}ms)", context)
        self.timeout_ms = timeout_ms


class NonZeroExitError(SandboxError):
    """Program ran to completion with a non-zero exit status.

    The message is the captured stderr, or ``Exit code: <n>`` when the
    program wrote nothing to stderr.
    """

    def __init__(self, exit_code: int, stderr: str = "", context: dict[str, Any] | None = None):
        super().__init__(stderr or f"Exit code: {exit_code}", context)
        self.exit_code = exit_code
        self.stderr = stderr


class ArtifactReadError(SandboxError):
    """An output file could not be read. Collection of other files continues."""

    def __init__(self, message: str, path: str, context: dict[str, Any] | None = None):
        super().__init__(message, context)
        self.path = path
