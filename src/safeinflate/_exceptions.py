"""Exception hierarchy for safeinflate.

All exceptions inherit from ``InflateError`` so callers can catch the
package's entire error surface with a single ``except`` clause.
"""

from __future__ import annotations

__author__ = "Artur Barseghyan <artur.barseghyan@gmail.com>"
__copyright__ = "2026 Artur Barseghyan"
__license__ = "MIT"


class InflateError(Exception):
    """Base exception for all safeinflate failures."""


class UnknownArchiveFormatError(InflateError):
    """The source name does not end with a recognised archive suffix."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Unknown archive format: {name!r}")
        self.name = name


class MalformedCompressionError(InflateError):
    """The compressed stream header could not be decoded.

    Raised when the decompressor is constructed, before any entry is
    read.  Retrying with the same bytes will fail the same way.
    """


class MalformedArchiveError(InflateError):
    """The archive is structurally invalid.

    Raised for unreadable headers, truncated streams, broken zip central
    directories and corrupt compressed data found mid-stream.
    """


class UnsafeEntryError(InflateError):
    """A member's path escapes the extraction root.

    Raised for path traversal (``../``), absolute paths, NUL bytes and
    writes redirected outside the root by an already extracted symlink.
    """


class UnsupportedEntryTypeError(InflateError):
    """A member is not a directory, regular file, symlink or hardlink.

    Raised for character devices, block devices, FIFOs and any
    unrecognised TAR type code.
    """


class FilesystemError(InflateError):
    """A filesystem operation failed (create, write, link, rename).

    The underlying ``OSError`` is always chained as ``__cause__``.
    """


class ChecksumError(InflateError):
    """Base class for checksum specification and verification failures."""


class ChecksumFormatError(ChecksumError):
    """The checksum specification is not an ``algorithm:digest`` pair."""


class UnsupportedAlgorithmError(ChecksumError):
    """The checksum specification names an unregistered algorithm."""


class ChecksumMismatchError(ChecksumError):
    """The digest of the consumed stream differs from the expected one."""

    def __init__(self, expected: str, actual: str) -> None:
        super().__init__(
            f"Checksum mismatch, expected: {expected!r}, got: {actual!r}"
        )
        self.expected = expected
        self.actual = actual
