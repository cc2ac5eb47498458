"""Sandbox configuration for codebox.

SandboxConfig is the single, explicit configuration structure: built once at
startup (directly, or from the environment via from_settings()) and passed
down to every component.

Example:
    ```python
    from codebox import Sandbox, SandboxConfig

    config = SandboxConfig(timeout_ms=10_000, memory_mb=256)
    async with Sandbox(config) as sandbox:
        result = await sandbox.run("print('hello')", language="python")
    ```
"""

from __future__ import annotations

import tempfile
from fractions import Fraction
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator

from codebox import constants
from codebox.settings import Settings


class SandboxConfig(BaseModel):
    """Configuration for Sandbox.

    Attributes:
        timeout_ms: Wall-clock limit from container start. Default: 30000.
        memory_mb: Memory ceiling; swap is capped to the same value. Default: 512.
        cpu_share: CPU quota as a fraction of one core. Default: 1/2.
        docker_host: Daemon address override (URL or socket path).
            None selects the platform default (unix socket or named pipe).
        daemon_timeout_seconds: HTTP timeout for daemon API calls.
        scratch_dir: Root under which per-execution workspaces are created.
        max_concurrent_executions: Bound on simultaneously active executions.
            None disables the limiter.
        auto_build_local_images: Build a missing locally built image on first
            use instead of failing. Default: False.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        arbitrary_types_allowed=True,
    )

    timeout_ms: int = Field(
        default=constants.DEFAULT_TIMEOUT_MS,
        ge=constants.MIN_TIMEOUT_MS,
        le=constants.MAX_TIMEOUT_MS,
        description="Execution wall-clock timeout in milliseconds",
    )
    memory_mb: int = Field(
        default=constants.DEFAULT_MEMORY_MB,
        ge=constants.MIN_MEMORY_MB,
        le=constants.MAX_MEMORY_MB,
        description="Container memory ceiling in MB",
    )
    cpu_share: Fraction = Field(
        default=constants.DEFAULT_CPU_SHARE,
        description="CPU quota as a fraction of one core",
    )
    docker_host: str | None = Field(
        default=None,
        description="Daemon address override (None = platform default)",
    )
    daemon_timeout_seconds: float = Field(
        default=constants.DEFAULT_DAEMON_TIMEOUT_SECONDS,
        gt=0,
        description="HTTP timeout for daemon API calls",
    )
    scratch_dir: Path = Field(
        default_factory=lambda: Path(tempfile.gettempdir()),
        description="Scratch root for per-execution workspaces",
    )
    max_concurrent_executions: int | None = Field(
        default=None,
        ge=1,
        description="Admission limit on active executions (None = unbounded)",
    )
    auto_build_local_images: bool = Field(
        default=False,
        description="Build missing locally built images instead of failing",
    )

    @field_validator("cpu_share", mode="before")
    @classmethod
    def validate_cpu_share(cls, v: object) -> Fraction:
        """Accept Fraction, int, float or "1/2"-style strings; require 0 < share <= 64."""
        if isinstance(v, bool) or not isinstance(v, (Fraction, int, float, str)):
            raise ValueError(f"Invalid CPU share: {v!r}")
        try:
            share = Fraction(v).limit_denominator(constants.CPU_PERIOD_US)
        except (ValueError, ZeroDivisionError) as exc:
            raise ValueError(f"Invalid CPU share: {v!r}") from exc
        if not 0 < share <= 64:
            raise ValueError(f"CPU share must be in (0, 64], got {share}")
        return share

    @property
    def memory_limit_bytes(self) -> int:
        """Memory ceiling in bytes."""
        return self.memory_mb * 1024 * 1024

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> SandboxConfig:
        """Build the configuration from environment settings.

        Args:
            settings: Pre-loaded settings. If None, reads the environment now.
        """
        settings = settings or Settings()
        overrides: dict[str, object] = {
            "timeout_ms": settings.timeout_ms,
            "memory_mb": settings.memory_mb,
            "docker_host": settings.docker_host,
            "max_concurrent_executions": settings.max_concurrent,
            "auto_build_local_images": settings.auto_build_local_images,
        }
        if settings.scratch_dir is not None:
            overrides["scratch_dir"] = settings.scratch_dir
        if settings.cpu_share is not None:
            overrides["cpu_share"] = settings.cpu_share
        if settings.daemon_timeout_seconds is not None:
            overrides["daemon_timeout_seconds"] = settings.daemon_timeout_seconds
        return cls(**overrides)  # type: ignore[arg-type]
