"""Per-execution workspaces: a private input/output directory pair.

Layout under the scratch root:

    sandbox-<id>/
    ├── code/      ← source file, mounted read-only at /code
    └── output/    ← artifacts written by the program, mounted at /output

The workspace() context manager registers teardown at provisioning time, so
the tree is removed on every exit path, including a failure halfway through
provisioning itself.
"""

from __future__ import annotations

import asyncio
import os
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING
from uuid import uuid4

import aiofiles
import aiofiles.os

from codebox import constants
from codebox._logging import get_logger
from codebox.resource_cleanup import cleanup_directory

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from codebox.models import ExecutionRequest

logger = get_logger(__name__)


@dataclass(frozen=True)
class SandboxWorkspace:
    """Directory pair owned by exactly one execution."""

    id: str
    root: Path
    input_dir: Path
    output_dir: Path


class WorkspaceManager:
    """Creates and destroys workspaces under one scratch root."""

    def __init__(self, scratch_root: Path) -> None:
        self.scratch_root = scratch_root

    async def provision(self, request: ExecutionRequest) -> SandboxWorkspace:
        """Create a uniquely named workspace and write the request's source into it.

        The source goes to the fixed filename of the request's language kind.
        If any step fails, whatever was created is removed before re-raising.
        """
        workspace_id = uuid4().hex
        root = self.scratch_root / f"{constants.WORKSPACE_PREFIX}{workspace_id}"
        workspace = SandboxWorkspace(
            id=workspace_id,
            root=root,
            input_dir=root / constants.INPUT_DIR_NAME,
            output_dir=root / constants.OUTPUT_DIR_NAME,
        )
        filename = constants.LANGUAGE_RUNTIMES[request.language].filename

        await aiofiles.os.makedirs(self.scratch_root, exist_ok=True)
        await aiofiles.os.mkdir(root, mode=0o700)
        try:
            await aiofiles.os.mkdir(workspace.input_dir)
            await aiofiles.os.mkdir(workspace.output_dir)
            # Container users other than the host user must be able to write artifacts
            await asyncio.to_thread(os.chmod, workspace.input_dir, 0o755)
            await asyncio.to_thread(os.chmod, workspace.output_dir, 0o777)

            async with aiofiles.open(workspace.input_dir / filename, "w", encoding="utf-8") as f:
                await f.write(request.source_code)
            await asyncio.to_thread(os.chmod, workspace.input_dir / filename, 0o644)
        except BaseException:
            await cleanup_directory(root, context_id=workspace_id)
            raise

        logger.debug(
            "Workspace provisioned",
            extra={"workspace_id": workspace_id, "path": str(root), "language": request.language.value},
        )
        return workspace

    async def teardown(self, workspace: SandboxWorkspace) -> bool:
        """Remove both directories. Never raises; returns False if removal was incomplete."""
        return await cleanup_directory(workspace.root, context_id=workspace.id)

    @asynccontextmanager
    async def workspace(self, request: ExecutionRequest) -> AsyncIterator[SandboxWorkspace]:
        """Provision a workspace and guarantee its teardown."""
        workspace = await self.provision(request)
        try:
            yield workspace
        finally:
            await self.teardown(workspace)
