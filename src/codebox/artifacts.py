"""Artifact collection from a workspace's output directory."""

from __future__ import annotations

import base64
import stat
from pathlib import Path

import aiofiles
import aiofiles.os

from codebox import constants
from codebox._logging import get_logger
from codebox.exceptions import ArtifactReadError
from codebox.models import MimeKind, OutputFile

logger = get_logger(__name__)


def classify(name: str) -> tuple[MimeKind, str]:
    """Classify a filename by extension into (kind, MIME type)."""
    ext = Path(name).suffix.lower()
    mime_type = constants.IMAGE_MIME_TYPES.get(ext)
    if mime_type is not None:
        return MimeKind.IMAGE, mime_type
    return MimeKind.TEXT, constants.TEXT_MIME_TYPE


class ArtifactCollector:
    """Scans an output directory and encodes its regular files for transport.

    Only top-level regular files strictly smaller than ``max_file_bytes`` are
    collected. Directories, symlinks, oversized and unreadable files are
    skipped without aborting collection of the rest.
    """

    def __init__(self, max_file_bytes: int = constants.MAX_OUTPUT_FILE_BYTES) -> None:
        self.max_file_bytes = max_file_bytes

    async def collect(self, output_dir: Path) -> list[OutputFile]:
        """Collect output files, sorted by name. A missing directory yields []."""
        try:
            names = sorted(await aiofiles.os.listdir(output_dir))
        except FileNotFoundError:
            return []

        files: list[OutputFile] = []
        for name in names:
            path = output_dir / name
            try:
                # Symlinks are not followed: the target would be resolved on the host
                st = await aiofiles.os.stat(path, follow_symlinks=False)
            except OSError as e:
                logger.warning("Skipping unreadable output entry", extra={"path": str(path), "error": str(e)})
                continue

            if not stat.S_ISREG(st.st_mode):
                continue
            if st.st_size >= self.max_file_bytes:
                logger.info(
                    "Skipping oversized output file",
                    extra={"path": str(path), "size": st.st_size, "limit": self.max_file_bytes},
                )
                continue

            try:
                files.append(await self.read_file(path))
            except ArtifactReadError as e:
                logger.warning(e.message, extra={"path": e.path, **e.context})

        return files

    async def read_file(self, path: Path) -> OutputFile:
        """Read and encode one file: images as base64, everything else as UTF-8 text.

        Raises:
            ArtifactReadError: The file could not be read or is not valid UTF-8 text
        """
        kind, mime_type = classify(path.name)
        try:
            if kind is MimeKind.IMAGE:
                async with aiofiles.open(path, "rb") as f:
                    content = base64.b64encode(await f.read()).decode("ascii")
            else:
                async with aiofiles.open(path, encoding="utf-8") as f:
                    content = await f.read()
        except (OSError, UnicodeDecodeError) as e:
            raise ArtifactReadError(
                f"Failed to read output file {path.name}",
                path=str(path),
                context={"error": str(e), "error_type": type(e).__name__},
            ) from e

        return OutputFile(name=path.name, content=content, kind=kind, mime_type=mime_type)
