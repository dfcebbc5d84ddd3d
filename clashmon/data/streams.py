"""
Newline-delimited stream decoding.

Turns an arbitrarily chunked byte stream into complete lines, and complete
lines into JSON objects. Partial lines are buffered across chunk
boundaries up to a size cap; garbled and oversize lines are dropped without
ending the stream.
"""

import json
from typing import Any, AsyncIterable, AsyncIterator

from clashmon.core.logger import get_logger

logger = get_logger(__name__)


# Longest line kept; longer lines are dropped like malformed ones
MAX_LINE_BYTES = 64 * 1024


async def iter_lines(
    chunks: AsyncIterable[bytes],
    max_line_bytes: int = MAX_LINE_BYTES
) -> AsyncIterator[str]:
    """
    Yield complete text lines from a chunked byte stream.

    A trailing partial line at end of stream is yielded last. Lines longer
    than ``max_line_bytes`` are skipped, so at most one line's worth of
    bytes is ever buffered.

    Args:
        chunks: Async iterable of raw byte chunks
        max_line_bytes: Longest line to keep

    Yields:
        Lines without their line terminator
    """
    buf = b""
    skipping = False
    async for chunk in chunks:
        if not chunk:
            continue
        buf += chunk
        lines = buf.split(b"\n")
        buf = lines.pop()
        for raw in lines:
            if skipping:
                # tail of an oversize line
                skipping = False
                continue
            if len(raw) > max_line_bytes:
                logger.debug(f"Skipping oversize line: {len(raw)} bytes")
                continue
            yield raw.decode("utf-8", errors="replace").rstrip("\r")

        if len(buf) > max_line_bytes:
            if not skipping:
                logger.debug(f"Skipping oversize line: over {max_line_bytes} bytes")
            buf = b""
            skipping = True

    if buf and not skipping:
        yield buf.decode("utf-8", errors="replace").rstrip("\r")


async def iter_json_lines(
    chunks: AsyncIterable[bytes],
    max_line_bytes: int = MAX_LINE_BYTES
) -> AsyncIterator[Any]:
    """
    Yield one decoded JSON value per non-blank line.

    Args:
        chunks: Async iterable of raw byte chunks
        max_line_bytes: Longest line to decode

    Yields:
        Decoded JSON values; malformed lines are skipped
    """
    async for line in iter_lines(chunks, max_line_bytes):
        if not line.strip():
            continue
        try:
            yield json.loads(line)
        except json.JSONDecodeError:
            # skip malformed/incomplete json
            logger.debug(f"Skipping malformed line: {line[:80]!r}")
            continue
