"""Unit tests for SandboxConfig and environment Settings.

No mocks - uses real environment variables via monkeypatch.
"""

import tempfile
from fractions import Fraction
from pathlib import Path

import pytest
from pydantic import ValidationError

from codebox import constants
from codebox.config import SandboxConfig
from codebox.settings import Settings

_ENV_VARS = (
    "CODEBOX_TIMEOUT_MS",
    "CODEBOX_MEMORY_MB",
    "CODEBOX_DOCKER_HOST",
    "CODEBOX_SCRATCH_DIR",
    "CODEBOX_MAX_CONCURRENT",
    "CODEBOX_AUTO_BUILD_LOCAL_IMAGES",
    "CODEBOX_CPU_SHARE",
    "CODEBOX_DAEMON_TIMEOUT_SECONDS",
    "MAX_EXECUTION_TIME",
    "MAX_MEMORY_MB",
    "DOCKER_HOST",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


# ============================================================================
# Config Validation
# ============================================================================


class TestSandboxConfigValidation:
    def test_defaults(self) -> None:
        config = SandboxConfig()
        assert config.timeout_ms == 30_000
        assert config.memory_mb == 512
        assert config.cpu_share == Fraction(1, 2)
        assert config.docker_host is None
        assert config.scratch_dir == Path(tempfile.gettempdir())
        assert config.max_concurrent_executions is None
        assert config.auto_build_local_images is False
        assert config.memory_limit_bytes == 512 * 1024 * 1024

    def test_timeout_range(self) -> None:
        assert SandboxConfig(timeout_ms=100).timeout_ms == 100
        assert SandboxConfig(timeout_ms=600_000).timeout_ms == 600_000
        with pytest.raises(ValidationError):
            SandboxConfig(timeout_ms=99)
        with pytest.raises(ValidationError):
            SandboxConfig(timeout_ms=600_001)

    def test_memory_range(self) -> None:
        assert SandboxConfig(memory_mb=64).memory_limit_bytes == 64 * 1024 * 1024
        with pytest.raises(ValidationError):
            SandboxConfig(memory_mb=63)
        with pytest.raises(ValidationError):
            SandboxConfig(memory_mb=65_537)

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (Fraction(1, 4), Fraction(1, 4)),
            ("1/2", Fraction(1, 2)),
            (2, Fraction(2)),
            (0.25, Fraction(1, 4)),
            ("1.5", Fraction(3, 2)),
        ],
    )
    def test_cpu_share_accepted(self, value: object, expected: Fraction) -> None:
        assert SandboxConfig(cpu_share=value).cpu_share == expected  # type: ignore[arg-type]

    @pytest.mark.parametrize("value", [0, -1, "0/1", 65, "abc", True, None, [1]])
    def test_cpu_share_rejected(self, value: object) -> None:
        with pytest.raises(ValidationError):
            SandboxConfig(cpu_share=value)  # type: ignore[arg-type]

    def test_max_concurrent_at_least_one(self) -> None:
        assert SandboxConfig(max_concurrent_executions=1).max_concurrent_executions == 1
        with pytest.raises(ValidationError):
            SandboxConfig(max_concurrent_executions=0)

    def test_frozen(self) -> None:
        config = SandboxConfig()
        with pytest.raises(ValidationError):
            config.timeout_ms = 1_000  # type: ignore[misc]

    def test_unknown_field_rejected(self) -> None:
        with pytest.raises(ValidationError):
            SandboxConfig(timeout=1_000)  # type: ignore[call-arg]


# ============================================================================
# Environment
# ============================================================================


class TestSettings:
    def test_defaults(self) -> None:
        settings = Settings()
        assert settings.timeout_ms == 30_000
        assert settings.memory_mb == 512
        assert settings.docker_host is None
        assert settings.scratch_dir is None
        assert settings.max_concurrent is None
        assert settings.auto_build_local_images is False
        assert settings.cpu_share is None
        assert settings.daemon_timeout_seconds is None

    def test_prefixed_variables(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.setenv("CODEBOX_TIMEOUT_MS", "5000")
        monkeypatch.setenv("CODEBOX_MEMORY_MB", "256")
        monkeypatch.setenv("CODEBOX_DOCKER_HOST", "tcp://10.0.0.2:2375")
        monkeypatch.setenv("CODEBOX_SCRATCH_DIR", str(tmp_path))
        monkeypatch.setenv("CODEBOX_MAX_CONCURRENT", "4")
        monkeypatch.setenv("CODEBOX_AUTO_BUILD_LOCAL_IMAGES", "true")

        settings = Settings()

        assert settings.timeout_ms == 5000
        assert settings.memory_mb == 256
        assert settings.docker_host == "tcp://10.0.0.2:2375"
        assert settings.scratch_dir == tmp_path
        assert settings.max_concurrent == 4
        assert settings.auto_build_local_images is True

    def test_historical_names(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("MAX_EXECUTION_TIME", "10000")
        monkeypatch.setenv("MAX_MEMORY_MB", "1024")
        monkeypatch.setenv("DOCKER_HOST", "unix:///run/user/1000/docker.sock")

        settings = Settings()

        assert settings.timeout_ms == 10_000
        assert settings.memory_mb == 1024
        assert settings.docker_host == "unix:///run/user/1000/docker.sock"

    def test_prefixed_name_wins(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("MAX_EXECUTION_TIME", "10000")
        monkeypatch.setenv("CODEBOX_TIMEOUT_MS", "2000")
        assert Settings().timeout_ms == 2000


class TestFromSettings:
    def test_from_environment(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.setenv("MAX_EXECUTION_TIME", "1500")
        monkeypatch.setenv("CODEBOX_SCRATCH_DIR", str(tmp_path))
        monkeypatch.setenv("CODEBOX_MAX_CONCURRENT", "3")

        config = SandboxConfig.from_settings()

        assert config.timeout_ms == 1500
        assert config.memory_mb == 512
        assert config.scratch_dir == tmp_path
        assert config.max_concurrent_executions == 3

    def test_scratch_dir_defaults_to_temp(self) -> None:
        assert SandboxConfig.from_settings(Settings()).scratch_dir == Path(tempfile.gettempdir())

    def test_limits_from_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CODEBOX_CPU_SHARE", "1/4")
        monkeypatch.setenv("CODEBOX_DAEMON_TIMEOUT_SECONDS", "7.5")

        config = SandboxConfig.from_settings()

        assert config.cpu_share == Fraction(1, 4)
        assert config.daemon_timeout_seconds == 7.5

    def test_unset_limits_keep_defaults(self) -> None:
        config = SandboxConfig.from_settings(Settings())
        assert config.cpu_share == constants.DEFAULT_CPU_SHARE
        assert config.daemon_timeout_seconds == constants.DEFAULT_DAEMON_TIMEOUT_SECONDS

    def test_invalid_cpu_share_environment_rejected(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CODEBOX_CPU_SHARE", "half")
        with pytest.raises(ValidationError, match="Invalid CPU share"):
            SandboxConfig.from_settings()

    def test_out_of_range_environment_rejected(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CODEBOX_TIMEOUT_MS", "10")
        with pytest.raises(ValidationError):
            SandboxConfig.from_settings()
