"""Image resolution: make sure the image for a language kind exists locally.

Two kinds of images:
- Registry images (``python:3.11-slim``) are pulled on demand.
- Locally built images (``local-`` prefix) are never pulled; they are built
  from a generated Dockerfile, either out-of-band (``codebox build-image``)
  or on first use when auto-build is enabled.

The SDK reports pull/build progress as a stream of JSON events. Both are
reduced to a single blocking completion: return on success, raise on the
first error event.
"""

from __future__ import annotations

import asyncio
import io
import logging
from typing import TYPE_CHECKING, Any

import docker.errors
import docker.utils
import requests
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_random_exponential,
)

from codebox import constants
from codebox._logging import get_logger
from codebox.exceptions import ImagePullTransientError, ImageUnavailableError

if TYPE_CHECKING:
    from collections.abc import Iterable

    from docker import DockerClient

    from codebox.daemon import DaemonConnector

logger = get_logger(__name__)


def is_locally_built(image: str) -> bool:
    """True for images that must never be pulled from a registry."""
    return image.startswith(constants.LOCAL_IMAGE_PREFIX)


def render_chart_dockerfile(
    base_image: str = constants.CHART_BASE_IMAGE,
    packages: Iterable[str] = constants.CHART_PACKAGES,
) -> str:
    """Generate the build recipe of the data-visualization image."""
    package_lines = " \\\n    ".join(packages)
    return (
        f"FROM {base_image}\n"
        "\n"
        "RUN pip install --no-cache-dir \\\n"
        f"    {package_lines}\n"
        "\n"
        "RUN useradd -m sandbox && mkdir -p /output && chown sandbox /output\n"
        "USER sandbox\n"
        "WORKDIR /code\n"
    )


def _follow_progress(events: Iterable[dict[str, Any]], image: str, action: str) -> None:
    """Drain a progress stream, raising on the first error event."""
    for event in events:
        error = event.get("error") or (event.get("errorDetail") or {}).get("message")
        if error:
            raise ImageUnavailableError(f"Failed to {action} image {image}: {error}", context={"image": image})
        if status := event.get("stream") or event.get("status"):
            logger.debug(f"[{action} {image}] {status.strip()}", extra={"image": image})


def _pull_blocking(client: DockerClient, image: str) -> None:
    repository, tag = docker.utils.parse_repository_tag(image)
    try:
        events = client.api.pull(repository, tag=tag or "latest", stream=True, decode=True)
        _follow_progress(events, image, "pull")
    except docker.errors.APIError as exc:
        if exc.is_server_error():
            raise ImagePullTransientError(f"Failed to pull image {image}: {exc}", context={"image": image}) from exc
        raise ImageUnavailableError(f"Failed to pull image {image}: {exc}", context={"image": image}) from exc
    except (requests.exceptions.Timeout, requests.exceptions.ChunkedEncodingError) as exc:
        raise ImagePullTransientError(f"Failed to pull image {image}: {exc}", context={"image": image}) from exc


def _build_blocking(client: DockerClient, tag: str, dockerfile: str) -> None:
    # In-memory build context: the SDK wraps a lone Dockerfile into a tar archive
    try:
        events = client.api.build(
            fileobj=io.BytesIO(dockerfile.encode("utf-8")),
            tag=tag,
            rm=True,
            forcerm=True,
            decode=True,
        )
        _follow_progress(events, tag, "build")
    except docker.errors.APIError as exc:
        raise ImageUnavailableError(f"Failed to build image {tag}: {exc}", context={"image": tag}) from exc


class ImageResolver:
    """Ensures images are present before a container is created."""

    def __init__(
        self,
        daemon: DaemonConnector,
        *,
        auto_build_local: bool = False,
        pull_attempts: int = constants.PULL_MAX_ATTEMPTS,
        pull_retry_min_seconds: float = constants.PULL_RETRY_MIN_SECONDS,
        pull_retry_max_seconds: float = constants.PULL_RETRY_MAX_SECONDS,
    ) -> None:
        self._daemon = daemon
        self._auto_build_local = auto_build_local
        self._pull_attempts = pull_attempts
        self._pull_retry_min_seconds = pull_retry_min_seconds
        self._pull_retry_max_seconds = pull_retry_max_seconds
        self._build_lock = asyncio.Lock()

    async def exists(self, image: str) -> bool:
        """Inspect the image locally."""
        client = await self._daemon.client()
        try:
            await self._daemon.call(client.images.get, image)
        except docker.errors.ImageNotFound:
            return False
        except docker.errors.APIError as exc:
            raise ImageUnavailableError(f"Failed to inspect image {image}: {exc}", context={"image": image}) from exc
        return True

    async def ensure_image(self, image: str) -> None:
        """Make sure ``image`` exists locally, pulling registry images on demand.

        Raises:
            ImageUnavailableError: Locally built image missing, or pull failed
            DaemonUnavailableError: The daemon could not be reached
        """
        if await self.exists(image):
            return

        if is_locally_built(image):
            if self._auto_build_local and image == constants.CHART_IMAGE:
                async with self._build_lock:
                    # A concurrent execution may have finished the build while we waited
                    if not await self.exists(image):
                        await self._build(image, render_chart_dockerfile())
                return
            raise ImageUnavailableError(
                f"Local image {image} not found. Please build it first.",
                context={"image": image},
            )

        await self.pull(image)

    async def pull(self, image: str) -> None:
        """Pull a registry image, blocking until the pull completes or fails.

        Transient failures (daemon/registry 5xx, read timeouts) are retried
        with exponential backoff and jitter.
        """
        client = await self._daemon.client()
        logger.info(f"Pulling image: {image}", extra={"image": image})
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self._pull_attempts),
            wait=wait_random_exponential(min=self._pull_retry_min_seconds, max=self._pull_retry_max_seconds),
            retry=retry_if_exception_type(ImagePullTransientError),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        ):
            with attempt:
                await self._daemon.call(_pull_blocking, client, image)
        logger.info(f"Pulled image: {image}", extra={"image": image})

    async def build_chart_image(self, tag: str = constants.CHART_IMAGE) -> None:
        """Build the data-visualization image from its generated Dockerfile."""
        async with self._build_lock:
            await self._build(tag, render_chart_dockerfile())

    async def _build(self, tag: str, dockerfile: str) -> None:
        client = await self._daemon.client()
        logger.info(f"Building image: {tag}", extra={"image": tag})
        await self._daemon.call(_build_blocking, client, tag, dockerfile)
        logger.info(f"Built image: {tag}", extra={"image": tag})
