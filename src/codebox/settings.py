"""Runtime configuration from environment variables."""

from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from codebox import constants


class Settings(BaseSettings):
    """Runtime configuration from environment variables.

    Every option reads ``CODEBOX_<NAME>``. The three options that predate the
    prefix also accept their historical names:
    MAX_EXECUTION_TIME, MAX_MEMORY_MB and DOCKER_HOST.
    """

    model_config = SettingsConfigDict(
        env_prefix="CODEBOX_",
        extra="ignore",
        populate_by_name=True,
    )

    timeout_ms: int = Field(
        default=constants.DEFAULT_TIMEOUT_MS,
        validation_alias=AliasChoices("CODEBOX_TIMEOUT_MS", "MAX_EXECUTION_TIME"),
    )
    memory_mb: int = Field(
        default=constants.DEFAULT_MEMORY_MB,
        validation_alias=AliasChoices("CODEBOX_MEMORY_MB", "MAX_MEMORY_MB"),
    )
    docker_host: str | None = Field(
        default=None,
        validation_alias=AliasChoices("CODEBOX_DOCKER_HOST", "DOCKER_HOST"),
    )

    scratch_dir: Path | None = None  # None = system temp dir
    max_concurrent: int | None = None  # None = unbounded
    auto_build_local_images: bool = False
    cpu_share: str | None = None  # "1/2" or "0.5"; validated by SandboxConfig
    daemon_timeout_seconds: float | None = None
