"""The Streamer: decompression stages and chunked byte copying.

TAR compression wraps the whole archive stream, so decompression is a
stage in front of the tar reader rather than a per-member concern.
Neither ``gzip`` nor ``lzma`` promise to read their source to the very
end once the compressed payload is complete, which is why ``drain()``
exists: a digest over the original stream must see every byte.
"""

from __future__ import annotations

__author__ = "Artur Barseghyan <artur.barseghyan@gmail.com>"
__copyright__ = "2026 Artur Barseghyan"
__license__ = "MIT"
__all__ = (
    "copy_stream",
    "drain",
    "open_decompressor",
)

import gzip
import logging
import lzma
import zlib
from typing import BinaryIO

from safeinflate._exceptions import MalformedCompressionError

log = logging.getLogger("safeinflate")

# Default chunk size for copying and draining.
CHUNK_SIZE = 65536


def open_decompressor(raw: BinaryIO, compression: str) -> BinaryIO:
    """Wrap *raw* in the decompressor for *compression* (``"gz"``/``"xz"``).

    The header is decoded straight away, so a stream that is not gzip or
    xz at all fails here with ``MalformedCompressionError`` rather than
    somewhere inside the tar reader.
    """
    decompressor: BinaryIO
    match compression:
        case "gz":
            decompressor = gzip.GzipFile(fileobj=raw, mode="rb")  # type: ignore[assignment]
        case "xz":
            decompressor = lzma.LZMAFile(raw, mode="rb", format=lzma.FORMAT_XZ)  # type: ignore[assignment]
        case _:
            raise ValueError(f"Unsupported compression: {compression!r}")

    try:
        decompressor.peek(1)  # type: ignore[attr-defined]
    except (OSError, EOFError, lzma.LZMAError, zlib.error) as exc:
        decompressor.close()
        raise MalformedCompressionError(
            f"Malformed {compression} stream header: {exc}"
        ) from exc
    return decompressor


def copy_stream(
    source: BinaryIO,
    target: BinaryIO,
    *,
    chunk_size: int = CHUNK_SIZE,
) -> int:
    """Copy *source* into *target* in chunks; return the byte count."""
    total = 0
    while True:
        chunk = source.read(chunk_size)
        if not chunk:
            break
        target.write(chunk)
        total += len(chunk)
    return total


def drain(stream: BinaryIO, *, chunk_size: int = CHUNK_SIZE) -> int:
    """Read *stream* to EOF, discarding the data; return the byte count."""
    total = 0
    while True:
        chunk = stream.read(chunk_size)
        if not chunk:
            break
        total += len(chunk)
    if total:
        log.debug("Drained %d trailing bytes", total)
    return total
