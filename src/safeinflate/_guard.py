"""The Guard: per-entry header classification and source capabilities.

The Guard turns each ``TarInfo`` / ``ZipInfo`` into an ``ArchiveEntry``
before a single byte of that member reaches the filesystem, rejecting
every entry type outside the supported whitelist.  It also provides the
seekable view that the zip unpacker needs on top of a plain stream.
"""

from __future__ import annotations

__author__ = "Artur Barseghyan <artur.barseghyan@gmail.com>"
__copyright__ = "2026 Artur Barseghyan"
__license__ = "MIT"
__all__ = (
    "entry_from_tarinfo",
    "entry_from_zipinfo",
    "is_metadata_entry",
    "seekable_view",
)

import contextlib
import logging
import stat
import tarfile
import tempfile
import zipfile
from collections.abc import Iterator
from typing import BinaryIO

from safeinflate._exceptions import UnsupportedEntryTypeError
from safeinflate._types import ArchiveEntry, EntryKind

log = logging.getLogger("safeinflate")

# Name GNU/BSD tar give to a pax global header when it is listed as a file.
_PAX_GLOBAL_HEADER = "pax_global_header"
_METADATA_TYPES = {tarfile.XHDTYPE, tarfile.XGLTYPE, tarfile.SOLARIS_XHDTYPE}

_FORBIDDEN_TYPE_NAMES = {
    tarfile.CHRTYPE: "character device",
    tarfile.BLKTYPE: "block device",
    tarfile.FIFOTYPE: "FIFO",
}

# Modes used for zip members created without Unix attributes.
_ZIP_DEFAULT_DIR_MODE = 0o755
_ZIP_DEFAULT_FILE_MODE = 0o644


def is_metadata_entry(info: tarfile.TarInfo) -> bool:
    """Return True if *info* describes the archive rather than a file."""
    return info.name == _PAX_GLOBAL_HEADER or info.type in _METADATA_TYPES


def entry_from_tarinfo(info: tarfile.TarInfo) -> ArchiveEntry:
    """Classify *info* into an ``ArchiveEntry``.

    The mode comes from ``TarInfo.mode``, which ``tarfile`` already
    decodes into ``st_mode`` permission bits whatever the header format.

    Raises ``UnsupportedEntryTypeError`` for devices, FIFOs and unknown
    type codes.
    """
    if info.isreg():
        kind = EntryKind.REGULAR
    elif info.isdir():
        kind = EntryKind.DIRECTORY
    elif info.issym():
        kind = EntryKind.SYMLINK
    elif info.islnk():
        kind = EntryKind.HARDLINK
    elif info.type in _FORBIDDEN_TYPE_NAMES:
        label = _FORBIDDEN_TYPE_NAMES[info.type]
        raise UnsupportedEntryTypeError(
            f"Unsupported entry type ({label}): {info.name!r}"
        )
    else:
        raise UnsupportedEntryTypeError(
            f"Unrecognised TAR type code {info.type!r}: {info.name!r}"
        )

    linkname = info.linkname if kind in (EntryKind.SYMLINK, EntryKind.HARDLINK) else ""
    return ArchiveEntry(
        name=info.name,
        kind=kind,
        mode=stat.S_IMODE(info.mode),
        linkname=linkname,
    )


def entry_from_zipinfo(info: zipfile.ZipInfo) -> ArchiveEntry:
    """Classify *info* into an ``ArchiveEntry``.

    The Unix mode lives in the high 16 bits of ``external_attr`` when the
    archive was written on a Unix host.  A member whose mode marks a
    symlink is a symlink whose target is the member payload; the caller
    reads it, so ``linkname`` is left empty here.
    """
    unix_mode = info.external_attr >> 16
    if info.is_dir():
        kind = EntryKind.DIRECTORY
        default_mode = _ZIP_DEFAULT_DIR_MODE
    elif stat.S_ISLNK(unix_mode):
        kind = EntryKind.SYMLINK
        default_mode = 0o777
    else:
        kind = EntryKind.REGULAR
        default_mode = _ZIP_DEFAULT_FILE_MODE

    return ArchiveEntry(
        name=info.filename,
        kind=kind,
        mode=stat.S_IMODE(unix_mode) or default_mode,
    )


@contextlib.contextmanager
def seekable_view(
    stream: BinaryIO,
    *,
    chunk_size: int,
    spool_max_size: int,
) -> Iterator[BinaryIO]:
    """Yield a seekable binary file object with the contents of *stream*.

    If *stream* is already seekable it is yielded as-is and left open.
    Otherwise it is buffered into a ``SpooledTemporaryFile`` that stays
    in memory up to *spool_max_size* bytes and rolls over to disk beyond
    that; the spool is closed (and so removed) on every exit path.
    """
    if hasattr(stream, "seekable") and stream.seekable():
        yield stream
        return

    with tempfile.SpooledTemporaryFile(max_size=spool_max_size) as spool:
        total = 0
        while True:
            chunk = stream.read(chunk_size)
            if not chunk:
                break
            spool.write(chunk)
            total += len(chunk)
        log.debug("Spooled %d bytes of non-seekable input", total)
        spool.seek(0)
        yield spool
