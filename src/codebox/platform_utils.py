"""Cross-platform host detection and daemon addressing.

The platform-specific parts of talking to the daemon (default socket address,
bind-mount path syntax) live behind the HostPlatform interface. One
implementation is selected at startup by select_platform(); call sites never
branch on the OS themselves.
"""

from __future__ import annotations

import re
from enum import Enum, auto
from functools import cache
from pathlib import PurePath
from typing import Protocol

import psutil

from codebox import constants


class HostOS(Enum):
    """Supported host operating systems."""

    LINUX = auto()
    MACOS = auto()
    WINDOWS = auto()
    """Drive-letter paths, daemon reached over a named pipe."""

    UNKNOWN = auto()


@cache
def detect_host_os() -> HostOS:
    """Detect current host operating system using psutil constants."""
    if psutil.LINUX:
        return HostOS.LINUX
    if psutil.MACOS:
        return HostOS.MACOS
    if psutil.WINDOWS:
        return HostOS.WINDOWS
    return HostOS.UNKNOWN


class HostPlatform(Protocol):
    """Platform capability used by the daemon connector and orchestrator."""

    name: str

    def default_daemon_url(self) -> str:
        """Address of the local daemon when no override is configured."""
        ...

    def to_mount_path(self, host_path: str | PurePath) -> str:
        """Convert a host path into a bind-mount source the daemon accepts."""
        ...


class PosixPlatform:
    """Linux/macOS: unix socket, paths passed through unchanged."""

    name = "posix"

    def default_daemon_url(self) -> str:
        return constants.POSIX_DAEMON_URL

    def to_mount_path(self, host_path: str | PurePath) -> str:
        return str(host_path)


_DRIVE_RE = re.compile(r"^([A-Za-z]):")


class DriveLetterPlatform:
    """Windows: named pipe, ``C:\\a\\b`` becomes ``/c/a/b``."""

    name = "drive-letter"

    def default_daemon_url(self) -> str:
        return constants.WINDOWS_DAEMON_URL

    def to_mount_path(self, host_path: str | PurePath) -> str:
        path = str(host_path).replace("\\", "/")
        return _DRIVE_RE.sub(lambda m: f"/{m.group(1).lower()}", path, count=1)


def select_platform(host_os: HostOS | None = None) -> HostPlatform:
    """Pick the platform implementation for the given (or detected) host OS."""
    host_os = host_os or detect_host_os()
    if host_os == HostOS.WINDOWS:
        return DriveLetterPlatform()
    return PosixPlatform()
