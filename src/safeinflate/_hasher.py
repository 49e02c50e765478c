"""Hashing stream: digest a byte stream while it is being consumed.

Wrap the raw archive stream in a ``HashingStream`` before handing it to
an unpacker and call ``validate_checksum()`` afterwards; the digest then
covers exactly the bytes the unpacker consumed, plus anything it left
unread, without reading the source twice.
"""

from __future__ import annotations

__author__ = "Artur Barseghyan <artur.barseghyan@gmail.com>"
__copyright__ = "2026 Artur Barseghyan"
__license__ = "MIT"
__all__ = (
    "HashingStream",
    "new_hashing_stream",
    "parse_checksum",
    "register_algorithm",
)

import hashlib
import io
from collections.abc import Callable
from typing import Any, BinaryIO

from safeinflate._exceptions import (
    ChecksumFormatError,
    ChecksumMismatchError,
    UnsupportedAlgorithmError,
)
from safeinflate._streamer import CHUNK_SIZE
from safeinflate._types import ChecksumSpec

_ALGORITHMS: dict[str, Callable[[], Any]] = {
    "sha256": hashlib.sha256,
}


def register_algorithm(name: str, factory: Callable[[], Any]) -> None:
    """Make *name* usable in checksum specifications.

    *factory* must return a fresh ``hashlib``-style object exposing
    ``update()`` and ``hexdigest()``.
    """
    if not name or ":" in name:
        raise ValueError(f"Invalid algorithm identifier: {name!r}")
    _ALGORITHMS[name] = factory


def parse_checksum(checksum: str) -> ChecksumSpec:
    """Parse an ``algorithm:digest`` string into a ``ChecksumSpec``.

    Raises ``ChecksumFormatError`` when the separator is missing or either
    half is empty, and ``UnsupportedAlgorithmError`` for algorithms that
    have not been registered.
    """
    algorithm, sep, digest = checksum.partition(":")
    if not sep or not algorithm or not digest:
        raise ChecksumFormatError(f"Incorrect checksum format: {checksum!r}")
    if algorithm not in _ALGORITHMS:
        raise UnsupportedAlgorithmError(
            f"Unsupported hashing algorithm: {algorithm!r}"
        )
    return ChecksumSpec(algorithm=algorithm, digest=digest.lower())


class HashingStream(io.RawIOBase):
    """Pass-through binary stream that feeds every byte read into a digest.

    The wrapped *source* is not closed when the hashing stream is.

    :param source: Any object with a ``read(size)`` method.
    :param checksum: ``"<algorithm>:<hex digest>"``, e.g. ``"sha256:ab..."``.
    :raises ChecksumFormatError: If *checksum* is not an algorithm/digest
        pair.
    :raises UnsupportedAlgorithmError: If the algorithm is unregistered.
    """

    def __init__(self, source: BinaryIO, checksum: str) -> None:
        super().__init__()
        self._spec = parse_checksum(checksum)
        self._source = source
        self._hasher = _ALGORITHMS[self._spec.algorithm]()
        self._validated = False

    @property
    def spec(self) -> ChecksumSpec:
        return self._spec

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:  # noqa: ANN001
        data = self._source.read(len(buffer))
        if not data:
            return 0
        n = len(data)
        buffer[:n] = data
        self._hasher.update(data)
        return n

    def validate_checksum(self) -> None:
        """Drain the source and compare the digest with the expected one.

        May be called once; the digest state is spent afterwards.

        :raises ChecksumMismatchError: If the digests differ.
        :raises ValueError: If called a second time.
        """
        if self._validated:
            raise ValueError("Checksum has already been validated")
        self._validated = True

        while True:
            chunk = self.read(CHUNK_SIZE)
            if not chunk:
                break

        actual = self._hasher.hexdigest()
        if actual != self._spec.digest:
            raise ChecksumMismatchError(self._spec.digest, actual)


def new_hashing_stream(stream: BinaryIO, checksum: str) -> HashingStream:
    """Return a ``HashingStream`` over *stream* verifying *checksum*."""
    return HashingStream(stream, checksum)
