"""Entry kinds, archive formats and value objects for safeinflate."""

from __future__ import annotations

__author__ = "Artur Barseghyan <artur.barseghyan@gmail.com>"
__copyright__ = "2026 Artur Barseghyan"
__license__ = "MIT"

from dataclasses import dataclass
from enum import Enum


class EntryKind(Enum):
    """The closed set of entry kinds that can be materialised.

    Anything else found in an archive is rejected with
    ``UnsupportedEntryTypeError`` before it reaches the filesystem.
    """

    DIRECTORY = "directory"
    REGULAR = "regular"
    SYMLINK = "symlink"
    HARDLINK = "hardlink"


class ArchiveFormat(Enum):
    """Archive formats recognised by their file name suffix.

    ``TAR``
        Plain, uncompressed TAR stream.
    ``TAR_GZ``
        TAR wrapped in gzip (``.tar.gz`` or ``.tgz``).
    ``TAR_XZ``
        TAR wrapped in xz.
    ``ZIP``
        Zip container; needs a seekable source.
    """

    TAR = "tar"
    TAR_GZ = "tar.gz"
    TAR_XZ = "tar.xz"
    ZIP = "zip"


@dataclass(frozen=True, slots=True)
class ArchiveEntry:
    """Normalised view of a single archive member.

    Built from either a ``tarfile.TarInfo`` or a ``zipfile.ZipInfo`` so
    that both unpackers share one materialisation path.  The payload is
    not part of the entry; it is streamed from the archive reader.
    """

    name: str
    """Member name exactly as stored in the archive (untrusted)."""

    kind: EntryKind

    mode: int
    """Permission bits only (``stat.S_IMODE`` of the archive's mode)."""

    linkname: str = ""
    """Link target for symlinks and hardlinks, empty otherwise."""


@dataclass(frozen=True, slots=True)
class ChecksumSpec:
    """Parsed ``algorithm:digest`` checksum specification."""

    algorithm: str
    """Registered algorithm identifier, matched case-sensitively."""

    digest: str
    """Expected digest as lowercase hex."""
