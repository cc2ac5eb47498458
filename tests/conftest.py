"""Shared pytest fixtures for codebox tests.

All tests run against an in-memory Docker client (tests/fake_docker.py);
no daemon is required.
"""

from pathlib import Path

import pytest

from codebox.config import SandboxConfig
from codebox.daemon import DaemonConnector
from codebox.platform_utils import PosixPlatform
from codebox.sandbox import Sandbox
from codebox.workspace import WorkspaceManager
from tests.fake_docker import FakeDockerClient

# ============================================================================
# Daemon
# ============================================================================


@pytest.fixture
def fake_docker() -> FakeDockerClient:
    """Fake daemon with the registry images already present."""
    return FakeDockerClient()


@pytest.fixture
def daemon(fake_docker: FakeDockerClient) -> DaemonConnector:
    return DaemonConnector("unix:///var/run/docker.sock", client=fake_docker)  # type: ignore[arg-type]


# ============================================================================
# Filesystem
# ============================================================================


@pytest.fixture
def scratch_dir(tmp_path: Path) -> Path:
    """Scratch root for workspaces (created on first provision)."""
    return tmp_path / "scratch"


@pytest.fixture
def workspaces(scratch_dir: Path) -> WorkspaceManager:
    return WorkspaceManager(scratch_dir)


# ============================================================================
# Sandbox
# ============================================================================


@pytest.fixture
def config(scratch_dir: Path) -> SandboxConfig:
    return SandboxConfig(scratch_dir=scratch_dir, timeout_ms=5_000)


@pytest.fixture
def sandbox(config: SandboxConfig, daemon: DaemonConnector) -> Sandbox:
    return Sandbox(config, daemon=daemon, platform=PosixPlatform())
