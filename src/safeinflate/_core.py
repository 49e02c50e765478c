"""Inflater: staged, contained extraction of tar and zip streams.

``Inflater`` reads an archive stream once, materialises every entry
inside a private staging directory next to the destination and renames
that directory into place only after the last entry has been written.
The module-level functions are thin wrappers with the default settings.
"""

from __future__ import annotations

__author__ = "Artur Barseghyan <artur.barseghyan@gmail.com>"
__copyright__ = "2026 Artur Barseghyan"
__license__ = "MIT"
__all__ = (
    "Inflater",
    "detect_format",
    "inflate",
    "inflate_tar",
    "inflate_tar_gz",
    "inflate_tar_xz",
    "inflate_zip",
    "safe_inflate",
)

import contextlib
import dataclasses
import functools
import gzip
import logging
import lzma
import os
import tarfile
import zipfile
import zlib
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import BinaryIO

from safeinflate._exceptions import (
    FilesystemError,
    InflateError,
    MalformedArchiveError,
    UnknownArchiveFormatError,
)
from safeinflate._guard import (
    entry_from_tarinfo,
    entry_from_zipinfo,
    is_metadata_entry,
    seekable_view,
)
from safeinflate._hasher import HashingStream
from safeinflate._sandbox import (
    StagingDirectory,
    ensure_parent_dir,
    resolve_entry_path,
    sanitise_mode,
)
from safeinflate._streamer import copy_stream, drain, open_decompressor
from safeinflate._types import ArchiveEntry, ArchiveFormat, EntryKind

log = logging.getLogger("safeinflate")

# Errors raised by the stdlib readers for corrupt or truncated input.
# ``gzip.BadGzipFile`` is an ``OSError`` and must be matched first.
_ARCHIVE_ERRORS = (
    tarfile.TarError,
    zipfile.BadZipFile,
    zipfile.LargeZipFile,
    EOFError,
    lzma.LZMAError,
    zlib.error,
    gzip.BadGzipFile,
)

# zipfile raises NotImplementedError for unsupported compression methods
# and RuntimeError for encrypted members.
_ZIP_ERRORS = _ARCHIVE_ERRORS + (NotImplementedError, RuntimeError)

# Suffixes checked in this order; the first match wins.
_SUFFIXES: tuple[tuple[tuple[str, ...], ArchiveFormat], ...] = (
    ((".tar",), ArchiveFormat.TAR),
    ((".tar.gz", ".tgz"), ArchiveFormat.TAR_GZ),
    ((".tar.xz",), ArchiveFormat.TAR_XZ),
    ((".zip",), ArchiveFormat.ZIP),
)

# Longest symlink target accepted from a zip member payload.
_MAX_LINK_TARGET = 4096

# Hardlink placeholders stay writable until their target entry arrives.
_PLACEHOLDER_MODE = 0o600


# ---- environment-variable configuration helpers ----------------------------
# Each helper reads the relevant SAFEINFLATE_* variable and returns its
# typed value, falling back to *fallback* on absence or parse failure.


def _env_int(name: str, fallback: int) -> int:
    raw = os.environ.get(name)
    if raw is None:
        return fallback
    try:
        return int(raw)
    except ValueError:
        return fallback


def _env_bool(name: str, fallback: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return fallback
    return raw.lower() not in ("0", "false", "no", "off", "")


@contextlib.contextmanager
def _translate_errors(
    context: str,
    archive_errors: tuple[type[BaseException], ...] = _ARCHIVE_ERRORS,
) -> Iterator[None]:
    """Re-raise reader and filesystem errors as ``InflateError``."""
    try:
        yield
    except InflateError:
        raise
    except archive_errors as exc:
        raise MalformedArchiveError(f"{context}: {exc}") from exc
    except OSError as exc:
        raise FilesystemError(f"{context}: {exc}") from exc


def detect_format(name: str) -> ArchiveFormat:
    """Return the archive format implied by the suffix of *name*.

    Raises ``UnknownArchiveFormatError`` if no known suffix matches.
    """
    for suffixes, archive_format in _SUFFIXES:
        if name.endswith(suffixes):
            return archive_format
    raise UnknownArchiveFormatError(name)


class Inflater:
    """Staged archive extractor.

    Every entry is checked against the staging root before it is
    written, and the staging directory replaces *destination* in a
    single rename once the whole archive has been processed.  On any
    error the staging directory is removed and *destination* is left
    untouched.

    :param chunk_size: Read size used when copying payloads and
        draining streams.
    :param spool_max_size: Bytes of a non-seekable zip source kept in
        memory before the spool rolls over to a temporary file.
    :param strip_special_bits: Strip setuid/setgid/sticky bits from
        entry modes.
    :param before_commit: Optional callable run after every entry has
        been written and the source drained, right before promotion.
        An exception from it aborts the extraction.
    :raises ValueError: If *chunk_size* is not positive.
    """

    def __init__(
        self,
        *,
        chunk_size: int = _env_int("SAFEINFLATE_CHUNK_SIZE", 65536),
        spool_max_size: int = _env_int("SAFEINFLATE_SPOOL_MAX_SIZE", 16 * 1024**2),
        strip_special_bits: bool = _env_bool("SAFEINFLATE_STRIP_SPECIAL_BITS", True),
        before_commit: Callable[[], None] | None = None,
    ) -> None:
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        self._chunk_size = chunk_size
        self._spool_max_size = spool_max_size
        self._strip_special_bits = strip_special_bits
        self._before_commit = before_commit

    # ---- dispatch ----------------------------------------------------------

    def inflate(
        self,
        name: str,
        stream: BinaryIO,
        destination: str | os.PathLike[str],
    ) -> None:
        """Extract *stream* to *destination*, picking the format by *name*."""
        match detect_format(name):
            case ArchiveFormat.TAR:
                self.tar(stream, destination)
            case ArchiveFormat.TAR_GZ:
                self.tar_gz(stream, destination)
            case ArchiveFormat.TAR_XZ:
                self.tar_xz(stream, destination)
            case ArchiveFormat.ZIP:
                self.zip(stream, destination)

    # ---- per-format pipelines ----------------------------------------------

    def tar(self, stream: BinaryIO, destination: str | os.PathLike[str]) -> None:
        """Extract an uncompressed TAR stream."""
        self._inflate_tar_stream(stream, stream, destination)

    def tar_gz(self, stream: BinaryIO, destination: str | os.PathLike[str]) -> None:
        """Extract a gzip-compressed TAR stream."""
        with contextlib.closing(open_decompressor(stream, "gz")) as decompressed:
            self._inflate_tar_stream(decompressed, stream, destination)

    def tar_xz(self, stream: BinaryIO, destination: str | os.PathLike[str]) -> None:
        """Extract an xz-compressed TAR stream."""
        with contextlib.closing(open_decompressor(stream, "xz")) as decompressed:
            self._inflate_tar_stream(decompressed, stream, destination)

    def zip(self, stream: BinaryIO, destination: str | os.PathLike[str]) -> None:
        """Extract a zip archive.

        Non-seekable streams are spooled to a temporary file first, since
        the zip catalog sits at the end of the archive.
        """
        with StagingDirectory(destination) as staging:
            root = staging.root
            deferred_dirs: list[tuple[Path, int]] = []

            with (
                _translate_errors("Cannot read zip archive", _ZIP_ERRORS),
                seekable_view(
                    stream,
                    chunk_size=self._chunk_size,
                    spool_max_size=self._spool_max_size,
                ) as source,
                zipfile.ZipFile(source) as zf,
            ):
                for info in zf.infolist():
                    entry = entry_from_zipinfo(info)
                    with _translate_errors(
                        f"Cannot extract {info.filename!r}", _ZIP_ERRORS
                    ):
                        if entry.kind is EntryKind.SYMLINK:
                            entry = dataclasses.replace(
                                entry, linkname=_read_zip_link(zf, info)
                            )
                        self._materialise(
                            root,
                            entry,
                            functools.partial(zf.open, info),
                            deferred_dirs,
                        )

            self._promote(staging, deferred_dirs)

    # ---- internal ----------------------------------------------------------

    def _inflate_tar_stream(
        self,
        tar_stream: BinaryIO,
        raw: BinaryIO,
        destination: str | os.PathLike[str],
    ) -> None:
        """Walk the entries of *tar_stream*, then drain it and *raw*.

        *raw* is the stream handed in by the caller; for compressed
        archives *tar_stream* is the decompressor reading from it.
        """
        with StagingDirectory(destination) as staging:
            root = staging.root
            deferred_dirs: list[tuple[Path, int]] = []

            with _translate_errors("Cannot read TAR archive"):
                with tarfile.open(fileobj=tar_stream, mode="r|") as tf:
                    for info in tf:
                        if is_metadata_entry(info):
                            continue
                        entry = entry_from_tarinfo(info)
                        with _translate_errors(f"Cannot extract {info.name!r}"):
                            self._materialise(
                                root,
                                entry,
                                functools.partial(tf.extractfile, info),
                                deferred_dirs,
                            )

                # The tar reader stops at the end-of-archive marker and the
                # decompressor may stop before the end of its input.
                drain(tar_stream, chunk_size=self._chunk_size)
                if raw is not tar_stream:
                    drain(raw, chunk_size=self._chunk_size)

            self._promote(staging, deferred_dirs)

    def _materialise(
        self,
        root: Path,
        entry: ArchiveEntry,
        open_payload: Callable[[], BinaryIO | None],
        deferred_dirs: list[tuple[Path, int]],
    ) -> None:
        """Write a single *entry* below *root*."""
        path = resolve_entry_path(root, entry.name)
        if path is None:
            return

        mode = sanitise_mode(entry.mode, strip_special_bits=self._strip_special_bits)

        match entry.kind:
            case EntryKind.DIRECTORY:
                path.mkdir(mode=0o700, parents=True, exist_ok=True)
                # Applied after all entries, so a read-only directory
                # cannot block extraction of its own contents.
                deferred_dirs.append((path, mode))
            case EntryKind.REGULAR:
                self._write_file(path, mode, open_payload)
            case EntryKind.SYMLINK:
                # The target is stored verbatim; only the link's own
                # location is contained.
                ensure_parent_dir(path)
                os.symlink(entry.linkname, path)
            case EntryKind.HARDLINK:
                self._make_hardlink(root, path, entry.linkname)

        log.debug("Extracted %s %r", entry.kind.value, entry.name)

    def _write_file(
        self,
        path: Path,
        mode: int,
        open_payload: Callable[[], BinaryIO | None],
    ) -> None:
        ensure_parent_dir(path)
        # O_TRUNC keeps the inode, so hardlinks created against a
        # placeholder see the content written here.
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, mode)
        with os.fdopen(fd, "wb") as out:
            payload = open_payload()
            if payload is not None:
                with payload:
                    copy_stream(payload, out, chunk_size=self._chunk_size)
            # An existing placeholder keeps its mode through O_TRUNC.
            os.fchmod(out.fileno(), mode)

    def _make_hardlink(self, root: Path, path: Path, linkname: str) -> None:
        """Link *path* to *linkname*, which is relative to the archive root.

        The target may appear later in the archive; an empty placeholder
        is created for it and filled in place by its own entry, which also
        sets the final mode.
        """
        target = resolve_entry_path(root, linkname)
        if target is None:
            raise MalformedArchiveError(
                f"Hardlink {path.name!r} points at the archive root"
            )
        ensure_parent_dir(path)
        ensure_parent_dir(target)
        try:
            fd = os.open(
                target, os.O_WRONLY | os.O_CREAT | os.O_EXCL, _PLACEHOLDER_MODE
            )
        except FileExistsError:
            pass
        else:
            os.close(fd)
        os.link(target, path)

    def _promote(
        self,
        staging: StagingDirectory,
        deferred_dirs: list[tuple[Path, int]],
    ) -> None:
        # Deepest first, so parents stay writable until their children
        # are done.
        for path, mode in sorted(
            deferred_dirs, key=lambda item: len(item[0].parts), reverse=True
        ):
            try:
                os.chmod(path, mode)
            except OSError as exc:
                raise FilesystemError(f"Cannot set mode of {path}: {exc}") from exc

        if self._before_commit is not None:
            self._before_commit()

        staging.commit()


def _read_zip_link(zf: zipfile.ZipFile, info: zipfile.ZipInfo) -> str:
    """Return the symlink target stored as the payload of *info*."""
    with zf.open(info) as payload:
        data = payload.read(_MAX_LINK_TARGET + 1)
    if not data or len(data) > _MAX_LINK_TARGET:
        raise MalformedArchiveError(
            f"Invalid symlink target length for {info.filename!r}"
        )
    return os.fsdecode(data)


# ---- module-level convenience functions ------------------------------------


def inflate(
    name: str,
    stream: BinaryIO,
    destination: str | os.PathLike[str],
    **kwargs: object,
) -> None:
    """Extract *stream* to *destination*, picking the format by *name*.

    All keyword arguments are forwarded to the ``Inflater`` constructor.
    """
    Inflater(**kwargs).inflate(name, stream, destination)  # type: ignore[arg-type]


def inflate_tar(
    stream: BinaryIO, destination: str | os.PathLike[str], **kwargs: object
) -> None:
    """Extract an uncompressed TAR stream to *destination*."""
    Inflater(**kwargs).tar(stream, destination)  # type: ignore[arg-type]


def inflate_tar_gz(
    stream: BinaryIO, destination: str | os.PathLike[str], **kwargs: object
) -> None:
    """Extract a gzip-compressed TAR stream to *destination*."""
    Inflater(**kwargs).tar_gz(stream, destination)  # type: ignore[arg-type]


def inflate_tar_xz(
    stream: BinaryIO, destination: str | os.PathLike[str], **kwargs: object
) -> None:
    """Extract an xz-compressed TAR stream to *destination*."""
    Inflater(**kwargs).tar_xz(stream, destination)  # type: ignore[arg-type]


def inflate_zip(
    stream: BinaryIO, destination: str | os.PathLike[str], **kwargs: object
) -> None:
    """Extract a zip archive from *stream* to *destination*."""
    Inflater(**kwargs).zip(stream, destination)  # type: ignore[arg-type]


def safe_inflate(
    archive: str | os.PathLike[str] | BinaryIO,
    destination: str | os.PathLike[str],
    *,
    name: str | None = None,
    checksum: str | None = None,
    **kwargs: object,
) -> None:
    """Extract *archive* to *destination*, optionally verifying a digest.

    *archive* is a path or an open binary stream.  The format is taken
    from *name*, which defaults to the path (or the stream's ``name``).
    When *checksum* is given the source is read through a
    ``HashingStream`` and verified before promotion, so a mismatch
    leaves no trace at *destination*.

    All other keyword arguments are forwarded to ``Inflater``.
    """
    if isinstance(archive, (str, os.PathLike)):
        with open(archive, "rb") as fobj:
            safe_inflate(
                fobj,
                destination,
                name=name if name is not None else os.fspath(archive),
                checksum=checksum,
                **kwargs,
            )
        return

    if name is None:
        name = getattr(archive, "name", None)
        if not isinstance(name, str):
            raise TypeError(
                "safe_inflate() needs an explicit 'name' to detect the "
                "format of an unnamed stream"
            )

    stream: BinaryIO = archive
    if checksum is not None:
        hashing = HashingStream(archive, checksum)
        stream = hashing  # type: ignore[assignment]
        user_hook = kwargs.pop("before_commit", None)

        def _verify() -> None:
            hashing.validate_checksum()
            if user_hook is not None:
                user_hook()  # type: ignore[operator]

        kwargs["before_commit"] = _verify

    Inflater(**kwargs).inflate(name, stream, destination)  # type: ignore[arg-type]
