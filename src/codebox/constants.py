"""Constants for codebox limits and fixed per-language tables."""

from fractions import Fraction
from typing import Final

from codebox.models import Language, LanguageRuntime

# ============================================================================
# Execution Limits
# ============================================================================

DEFAULT_TIMEOUT_MS: Final[int] = 30_000
"""Default wall-clock execution timeout, measured from container start."""

MIN_TIMEOUT_MS: Final[int] = 100
"""Minimum accepted execution timeout."""

MAX_TIMEOUT_MS: Final[int] = 600_000
"""Maximum accepted execution timeout (10 minutes)."""

DEFAULT_MEMORY_MB: Final[int] = 512
"""Default container memory ceiling in MB (memory+swap is capped to the same value)."""

MIN_MEMORY_MB: Final[int] = 64
"""Minimum container memory in MB."""

MAX_MEMORY_MB: Final[int] = 65_536
"""Maximum container memory in MB."""

DEFAULT_CPU_SHARE: Final[Fraction] = Fraction(1, 2)
"""Default CPU quota as a fraction of one scheduler period (half a core)."""

CPU_PERIOD_US: Final[int] = 100_000
"""CFS scheduler period in microseconds used to express the CPU quota."""

CONTAINER_PIDS_LIMIT: Final[int] = 256
"""Maximum PIDs per container (fork bomb prevention)."""

WAIT_GRACE_SECONDS: Final[float] = 10.0
"""Extra time given to the blocking wait call beyond the execution timeout.
Bounds the worker thread once the container has been killed."""

TIMEOUT_LOG_TAIL_CHARS: Final[int] = 2048
"""Characters of stdout/stderr kept on a timeout error's context."""

# ============================================================================
# Output Collection
# ============================================================================

MAX_OUTPUT_FILE_BYTES: Final[int] = 5 * 1024 * 1024
"""Output files of this size or larger are excluded from the result."""

IMAGE_MIME_TYPES: Final[dict[str, str]] = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".svg": "image/svg+xml",
}
"""Allow-list of image extensions (base64-encoded) and their MIME types."""

TEXT_MIME_TYPE: Final[str] = "text/plain"
"""MIME type of every non-image output file."""

# ============================================================================
# Workspace
# ============================================================================

WORKSPACE_PREFIX: Final[str] = "sandbox-"
"""Directory name prefix of per-execution workspaces under the scratch root."""

INPUT_DIR_NAME: Final[str] = "code"
OUTPUT_DIR_NAME: Final[str] = "output"

CONTAINER_INPUT_DIR: Final[str] = "/code"
"""Mount point of the read-only source directory."""

CONTAINER_OUTPUT_DIR: Final[str] = "/output"
"""Mount point of the writable artifact directory."""

# ============================================================================
# Images
# ============================================================================

LOCAL_IMAGE_PREFIX: Final[str] = "local-"
"""Images carrying this prefix are built locally and never pulled."""

CHART_IMAGE: Final[str] = "local-sandbox-python"
"""Pre-built Python image with data and plotting libraries."""

CHART_BASE_IMAGE: Final[str] = "python:3.11-slim"

CHART_PACKAGES: Final[tuple[str, ...]] = ("matplotlib", "pandas", "numpy", "seaborn", "plotly")

PULL_MAX_ATTEMPTS: Final[int] = 3
"""Image pull attempts on transient registry/daemon errors."""

PULL_RETRY_MIN_SECONDS: Final[float] = 1.0
PULL_RETRY_MAX_SECONDS: Final[float] = 10.0

LANGUAGE_RUNTIMES: Final[dict[Language, LanguageRuntime]] = {
    Language.PYTHON: LanguageRuntime(
        image="python:3.11-slim",
        command=("python", f"{CONTAINER_INPUT_DIR}/main.py"),
        filename="main.py",
    ),
    Language.PYTHON_CHART: LanguageRuntime(
        image=CHART_IMAGE,
        command=("python", f"{CONTAINER_INPUT_DIR}/main.py"),
        filename="main.py",
    ),
    Language.NODE: LanguageRuntime(
        image="node:20-slim",
        command=("node", f"{CONTAINER_INPUT_DIR}/main.js"),
        filename="main.js",
    ),
}
"""Fixed image, command and source filename per language kind."""

# ============================================================================
# Daemon
# ============================================================================

POSIX_DAEMON_URL: Final[str] = "unix:///var/run/docker.sock"
WINDOWS_DAEMON_URL: Final[str] = "npipe:////./pipe/docker_engine"

DEFAULT_DAEMON_TIMEOUT_SECONDS: Final[float] = 60.0
"""HTTP timeout for Docker API calls (the container wait call is exempt)."""

DAEMON_UNAVAILABLE_MESSAGE: Final[str] = "Docker is not available. Please ensure Docker is running."
