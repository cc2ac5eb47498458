"""Decoder for the daemon's framed combined-output stream.

Wire format (non-TTY containers), repeated until the end of the buffer:

    byte 0      stream id: 1 = stdout, 2 = stderr (anything else is skipped)
    bytes 1-3   padding
    bytes 4-7   payload length, big-endian uint32
    bytes 8..   payload

A truncated trailing frame ends decoding without error. A buffer that yields
no stdout or stderr bytes at all is treated as unframed plain text.
"""

from __future__ import annotations

import struct
from typing import Final, NamedTuple

HEADER: Final[struct.Struct] = struct.Struct(">BxxxI")
STDOUT: Final[int] = 1
STDERR: Final[int] = 2


class DecodedLogs(NamedTuple):
    stdout: str
    stderr: str


def decode_logs(raw: bytes) -> DecodedLogs:
    """Split a raw log capture into stdout and stderr text."""
    streams: dict[int, bytearray] = {STDOUT: bytearray(), STDERR: bytearray()}
    view = memoryview(raw)
    offset = 0

    while offset + HEADER.size <= len(view):
        stream_id, size = HEADER.unpack_from(view, offset)
        start = offset + HEADER.size
        end = start + size
        if end > len(view):
            break
        if stream_id in streams:
            streams[stream_id] += view[start:end]
        offset = end

    if not streams[STDOUT] and not streams[STDERR] and raw:
        return DecodedLogs(raw.decode("utf-8", errors="replace"), "")

    return DecodedLogs(
        streams[STDOUT].decode("utf-8", errors="replace"),
        streams[STDERR].decode("utf-8", errors="replace"),
    )


def encode_frame(stream_id: int, payload: bytes) -> bytes:
    """Build one frame. The inverse of decode_logs for a single frame."""
    return HEADER.pack(stream_id, len(payload)) + payload
