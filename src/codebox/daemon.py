"""Daemon connector: the single shared handle to the container runtime.

The Docker SDK is synchronous; every call goes through DaemonConnector.call(),
which runs it on the default thread pool and maps connectivity failures to
DaemonUnavailableError. The underlying client is created lazily on first use
(API version negotiation needs a reachable daemon) and is read-only
afterwards, so one connector is safe to share between concurrent executions.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any, TypeVar

import docker
import docker.errors
import requests

from codebox import constants
from codebox._logging import get_logger
from codebox.exceptions import DaemonUnavailableError

if TYPE_CHECKING:
    from collections.abc import Callable

    from docker.api.client import APIClient
    from docker.models.containers import Container

    from codebox.config import SandboxConfig
    from codebox.platform_utils import HostPlatform

logger = get_logger(__name__)

T = TypeVar("T")


def resolve_daemon_url(override: str | None, platform: HostPlatform) -> str:
    """Resolve the daemon address.

    Accepts a full URL (``unix://``, ``npipe://``, ``tcp://``), a bare unix
    socket path, or a bare ``\\\\.\\pipe\\...`` named pipe path. Without an
    override the platform default is used.
    """
    if not override:
        return platform.default_daemon_url()
    if "://" in override:
        return override
    if override.startswith("\\\\"):
        pipe = override.replace("\\", "/")
        return f"npipe://{pipe}"
    if override.startswith("/"):
        return f"unix://{override}"
    return override


def _read_raw_logs(api: APIClient, container_id: str) -> bytes:
    """Fetch the undecoded, framed stdout+stderr stream of a container.

    The SDK's own logs() strips the frame headers and merges both streams,
    so the endpoint is read directly. _get() applies the client's HTTP timeout.
    """
    url = api._url("/containers/{0}/logs", container_id)
    response = api._get(url, params={"stdout": 1, "stderr": 1, "follow": 0, "timestamps": 0})
    try:
        response.raise_for_status()
    except requests.exceptions.HTTPError as exc:
        docker.errors.create_api_error_from_http_exception(exc)  # always raises
    return response.content


class DaemonConnector:
    """Explicitly constructed, injectable connection to the Docker daemon.

    Attributes:
        base_url: Daemon address the client connects to.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = constants.DEFAULT_DAEMON_TIMEOUT_SECONDS,
        client: docker.DockerClient | None = None,
    ) -> None:
        self.base_url = base_url
        self._timeout = timeout
        self._client = client
        self._connect_lock = asyncio.Lock()

    @classmethod
    def from_config(cls, config: SandboxConfig, platform: HostPlatform) -> DaemonConnector:
        """Build a connector for the configured (or platform default) address."""
        return cls(
            resolve_daemon_url(config.docker_host, platform),
            timeout=config.daemon_timeout_seconds,
        )

    async def call(self, func: Callable[..., T], /, *args: Any, **kwargs: Any) -> T:
        """Run a blocking SDK call on the thread pool.

        Raises:
            DaemonUnavailableError: The daemon could not be reached
        """
        try:
            return await asyncio.to_thread(func, *args, **kwargs)
        except requests.exceptions.ConnectionError as exc:
            raise DaemonUnavailableError(
                f"Cannot reach Docker daemon at {self.base_url}: {exc}",
                context={"base_url": self.base_url},
            ) from exc

    async def client(self) -> docker.DockerClient:
        """Return the shared SDK client, connecting on first use.

        Raises:
            DaemonUnavailableError: The daemon could not be reached
        """
        if self._client is not None:
            return self._client
        async with self._connect_lock:
            if self._client is None:
                self._client = await self.call(self._connect)
                logger.debug("Connected to Docker daemon", extra={"base_url": self.base_url})
        return self._client

    def _connect(self) -> docker.DockerClient:
        try:
            return docker.DockerClient(base_url=self.base_url, timeout=self._timeout)
        except docker.errors.DockerException as exc:
            raise DaemonUnavailableError(
                f"Cannot connect to Docker daemon at {self.base_url}: {exc}",
                context={"base_url": self.base_url},
            ) from exc

    async def ping(self) -> None:
        """Round-trip to the daemon. Raises on any failure."""
        client = await self.client()
        await self.call(client.ping)

    async def info(self) -> dict[str, Any]:
        """Daemon system information (version, storage driver, ...)."""
        client = await self.client()
        return await self.call(client.info)

    async def fetch_raw_logs(self, container: Container) -> bytes:
        """Framed combined output of a container, without live follow."""
        client = await self.client()
        return await self.call(_read_raw_logs, client.api, container.id)

    async def close(self) -> None:
        """Close the SDK client's HTTP session, if one was opened."""
        if self._client is None:
            return
        client, self._client = self._client, None
        try:
            await asyncio.to_thread(client.close)
        except Exception as e:
            logger.warning("Failed to close Docker client", extra={"error": str(e)})
