"""The Sandbox: path containment, mode sanitisation and the staging
directory that is atomically promoted to the destination.

Every candidate extraction path is resolved against the canonical path
of a private staging directory, never against the final destination.
Nothing becomes visible at the destination until ``commit()`` renames
the fully populated staging directory into place.
"""

from __future__ import annotations

__author__ = "Artur Barseghyan <artur.barseghyan@gmail.com>"
__copyright__ = "2026 Artur Barseghyan"
__license__ = "MIT"
__all__ = (
    "STAGING_SUFFIX",
    "StagingDirectory",
    "ensure_parent_dir",
    "resolve_entry_path",
    "sanitise_mode",
    "staging_path_for",
)

import logging
import os
import shutil
import stat
from pathlib import Path

from safeinflate._exceptions import FilesystemError, UnsafeEntryError

log = logging.getLogger("safeinflate")

# Fixed suffix marking a staging directory next to its destination.
STAGING_SUFFIX = ".tmp"

# Mode for the staging directory and for implicitly created parents.
_PRIVATE_DIR_MODE = 0o700


# ---- path containment ------------------------------------------------------


def _is_within(root: Path, candidate: Path) -> bool:
    return candidate == root or root in candidate.parents


def resolve_entry_path(root: Path, name: str) -> Path | None:
    """Resolve the untrusted member *name* against the canonical *root*.

    Returns the absolute path to write to, or ``None`` when the name
    designates *root* itself (a ``"."`` entry), which callers skip.

    Raises ``UnsafeEntryError`` if the name contains a NUL byte, if its
    path relative to *root* starts with a ``..`` segment, or if following
    symlinks already present under *root* leads outside of it.
    """
    if "\x00" in name:
        raise UnsafeEntryError(f"Null byte in member name: {name[:256]!r}")

    root_str = os.fspath(root)
    joined = os.path.normpath(os.path.join(root_str, name))
    if joined == root_str:
        return None

    rel = os.path.relpath(joined, root_str)
    if rel == os.pardir or rel.startswith(os.pardir + os.sep):
        raise UnsafeEntryError(
            f"Member {name!r} resolves outside base directory {root_str}"
        )

    candidate = Path(joined)
    # A symlink extracted earlier may point anywhere; follow it.
    real = candidate.resolve()
    if not _is_within(root, real):
        raise UnsafeEntryError(
            f"Member {name!r} is redirected by a symlink outside base "
            f"directory {root_str}"
        )

    return candidate


def ensure_parent_dir(path: Path) -> None:
    """Create the missing ancestors of *path* with private permissions."""
    try:
        path.parent.mkdir(mode=_PRIVATE_DIR_MODE, parents=True, exist_ok=True)
    except OSError as exc:
        raise FilesystemError(
            f"Cannot create parent directory of {path}: {exc}"
        ) from exc


# ---- permission sanitisation -----------------------------------------------


def sanitise_mode(mode: int, *, strip_special_bits: bool = True) -> int:
    """Reduce *mode* to permission bits, optionally without setuid
    (``04000``), setgid (``02000``) and sticky (``01000``).
    """
    mode = stat.S_IMODE(mode)
    if strip_special_bits:
        mode &= ~(stat.S_ISUID | stat.S_ISGID | stat.S_ISVTX)
    return mode


# ---- staging directory -----------------------------------------------------


def staging_path_for(destination: str | os.PathLike[str]) -> Path:
    """Return the staging path for *destination*.

    A pure function of the normalised destination, so extractions to
    different destinations never share a staging directory and a
    trailing separator cannot place it inside the destination.
    """
    path = Path(os.path.abspath(destination))
    if not path.name:
        raise FilesystemError(f"Cannot stage an extraction to {path}")
    return path.with_name(path.name + STAGING_SUFFIX)


class StagingDirectory:
    """Private directory populated before being renamed to *destination*.

    Use as a context manager: the directory is created on entry and
    removed on exit unless ``commit()`` succeeded.

    :param destination: Final path of the extracted tree.
    """

    def __init__(self, destination: str | os.PathLike[str]) -> None:
        self.destination = Path(os.path.abspath(destination))
        self.path = staging_path_for(self.destination)
        self._root: Path | None = None
        self._committed = False

    def __enter__(self) -> StagingDirectory:
        self.begin()
        return self

    def __exit__(self, *args: object) -> None:
        if not self._committed:
            self.abort()

    @property
    def root(self) -> Path:
        """Canonical path of the staging directory (containment root)."""
        if self._root is None:
            raise RuntimeError("Staging directory has not been created yet")
        return self._root

    def begin(self) -> Path:
        """Create the staging directory and return its canonical path.

        A leftover staging directory is removed first.  Any other kind of
        file at the staging path is left alone and ``FilesystemError`` is
        raised.
        """
        if os.path.lexists(self.path):
            if os.path.islink(self.path) or not os.path.isdir(self.path):
                raise FilesystemError(
                    f"Staging path {self.path} exists and is not a directory"
                )
            # Leftover of an extraction that died before cleaning up.
            log.warning("Removing stale staging directory %s", self.path)
            self._remove()
        try:
            self.path.mkdir(mode=_PRIVATE_DIR_MODE, parents=True)
            self._root = self.path.resolve(strict=True)
        except OSError as exc:
            raise FilesystemError(
                f"Cannot create staging directory {self.path}: {exc}"
            ) from exc
        return self._root

    def commit(self) -> None:
        """Atomically rename the staging directory to the destination."""
        try:
            os.rename(self.root, self.destination)
        except OSError as exc:
            raise FilesystemError(
                f"Cannot promote {self.root} to {self.destination}: {exc}"
            ) from exc
        self._committed = True
        log.info("Extracted archive to %s", self.destination)

    def abort(self) -> None:
        """Remove the staging directory.  Never raises."""
        self._remove()

    def _remove(self) -> None:
        try:
            shutil.rmtree(self.path)
        except FileNotFoundError:
            pass
        except OSError as exc:
            log.warning("Cannot remove staging path %s: %s", self.path, exc)
