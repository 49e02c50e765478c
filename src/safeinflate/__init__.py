"""safeinflate: staged, contained extraction of tar and zip streams.

Nothing reaches the destination unless every entry extracted cleanly.
Zero dependencies.  Python 3.11+.
"""

from __future__ import annotations

__title__ = "safeinflate"
__version__ = "0.1"
__author__ = "Artur Barseghyan <artur.barseghyan@gmail.com>"
__copyright__ = "2026 Artur Barseghyan"
__license__ = "MIT"

from safeinflate._exceptions import (
    ChecksumError,
    ChecksumFormatError,
    ChecksumMismatchError,
    FilesystemError,
    InflateError,
    MalformedArchiveError,
    MalformedCompressionError,
    UnknownArchiveFormatError,
    UnsafeEntryError,
    UnsupportedAlgorithmError,
    UnsupportedEntryTypeError,
)
from safeinflate._hasher import (
    HashingStream,
    new_hashing_stream,
    register_algorithm,
)
from safeinflate._types import ArchiveEntry, ArchiveFormat, ChecksumSpec, EntryKind

# _core pulls in tarfile and zipfile, so it is imported on first use.
_CORE_NAMES = (
    "Inflater",
    "detect_format",
    "inflate",
    "inflate_tar",
    "inflate_tar_gz",
    "inflate_tar_xz",
    "inflate_zip",
    "safe_inflate",
)


def __getattr__(name: str) -> object:
    if name in _CORE_NAMES:
        from safeinflate import _core

        for core_name in _CORE_NAMES:
            globals()[core_name] = getattr(_core, core_name)
        return globals()[name]
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    # Core
    "Inflater",
    "detect_format",
    "inflate",
    "inflate_tar",
    "inflate_tar_gz",
    "inflate_tar_xz",
    "inflate_zip",
    "safe_inflate",
    # Hashing
    "HashingStream",
    "new_hashing_stream",
    "register_algorithm",
    # Exceptions
    "InflateError",
    "UnknownArchiveFormatError",
    "MalformedCompressionError",
    "MalformedArchiveError",
    "UnsafeEntryError",
    "UnsupportedEntryTypeError",
    "FilesystemError",
    "ChecksumError",
    "ChecksumFormatError",
    "UnsupportedAlgorithmError",
    "ChecksumMismatchError",
    # Types
    "ArchiveEntry",
    "ArchiveFormat",
    "ChecksumSpec",
    "EntryKind",
]
