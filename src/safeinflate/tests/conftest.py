"""Archive factory fixtures for safeinflate tests.

Every fixture generates a real, crafted archive programmatically using
Python's ``tarfile``, ``zipfile``, ``gzip`` and ``lzma`` modules.
No mocks, no stubs.  Fixtures return raw archive bytes; tests wrap them
in a stream of their choice.
"""

from __future__ import annotations

__author__ = "Artur Barseghyan <artur.barseghyan@gmail.com>"
__copyright__ = "2026 Artur Barseghyan"
__license__ = "MIT"

import gzip
import io
import lzma
import os
import stat
import tarfile
import zipfile

import pytest

# ---------------------------------------------------------------------------
# helpers
# ---------------------------------------------------------------------------


class NonSeekableReader(io.RawIOBase):
    """Read-only stream over *data* that refuses to seek."""

    def __init__(self, data: bytes) -> None:
        super().__init__()
        self._buf = io.BytesIO(data)

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        chunk = self._buf.read(len(buffer))
        buffer[: len(chunk)] = chunk
        return len(chunk)

    def remaining(self) -> int:
        return len(self._buf.getvalue()) - self._buf.tell()


def tar_bytes(callback, *, mode: str = "w") -> bytes:
    """Create a TAR archive in memory via *callback(tf)* and return bytes."""
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode=mode) as tf:
        callback(tf)
    return buf.getvalue()


def zip_bytes(callback) -> bytes:
    """Create a zip archive in memory via *callback(zf)* and return bytes."""
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, mode="w") as zf:
        callback(zf)
    return buf.getvalue()


def add_regular(tf, name: str, content: bytes, mode: int = 0o644) -> None:
    info = tarfile.TarInfo(name=name)
    info.size = len(content)
    info.mode = mode
    tf.addfile(info, io.BytesIO(content))


def add_dir(tf, name: str, mode: int = 0o755) -> None:
    info = tarfile.TarInfo(name=name)
    info.type = tarfile.DIRTYPE
    info.mode = mode
    tf.addfile(info)


def add_symlink(tf, name: str, target: str) -> None:
    info = tarfile.TarInfo(name=name)
    info.type = tarfile.SYMTYPE
    info.linkname = target
    tf.addfile(info)


def add_hardlink(tf, name: str, target: str, mode: int = 0o644) -> None:
    info = tarfile.TarInfo(name=name)
    info.type = tarfile.LNKTYPE
    info.linkname = target
    info.mode = mode
    tf.addfile(info)


def add_fifo(tf, name: str) -> None:
    info = tarfile.TarInfo(name=name)
    info.type = tarfile.FIFOTYPE
    tf.addfile(info)


def zip_symlink(zf, name: str, target: str) -> None:
    info = zipfile.ZipInfo(name)
    info.create_system = 3
    info.external_attr = (stat.S_IFLNK | 0o777) << 16
    zf.writestr(info, target)


def zip_regular(zf, name: str, content: bytes, mode: int = 0o644) -> None:
    info = zipfile.ZipInfo(name)
    info.create_system = 3
    info.external_attr = (stat.S_IFREG | mode) << 16
    zf.writestr(info, content)


def patch_zip_headers(data: bytes, *, local: int, central: int, value: int) -> bytes:
    """Overwrite a 16-bit field in the first local and central headers."""
    patched = bytearray(data)
    for signature, offset in ((b"PK\x03\x04", local), (b"PK\x01\x02", central)):
        start = patched.index(signature) + offset
        patched[start : start + 2] = value.to_bytes(2, "little")
    return bytes(patched)


def make_tree(root) -> None:
    """Build a tree with a file, an empty dir, a symlink and a hardlink."""
    root.mkdir()
    (root / "data").mkdir()
    (root / "data" / "file.txt").write_bytes(b"payload\n")
    (root / "empty").mkdir()
    os.symlink("data/file.txt", root / "link.txt")
    os.link(root / "data" / "file.txt", root / "hard.txt")


# ---------------------------------------------------------------------------
# path traversal archives
# ---------------------------------------------------------------------------


@pytest.fixture()
def traversal_tar() -> bytes:
    """TAR with a good entry followed by ``../../etc/passwd``."""

    def build(tf):
        add_regular(tf, "readme.txt", b"safe\n")
        add_regular(tf, "../../etc/passwd", b"root:x:0:0:")

    return tar_bytes(build)


@pytest.fixture()
def traversal_zip() -> bytes:
    """Zip with a good entry followed by ``../../etc/passwd``."""

    def build(zf):
        zf.writestr("readme.txt", b"safe\n")
        zf.writestr("../../etc/passwd", b"root:x:0:0:")

    return zip_bytes(build)


@pytest.fixture()
def absolute_path_tar() -> bytes:
    """TAR with an absolute path entry ``/etc/passwd``."""

    def build(tf):
        add_regular(tf, "/etc/passwd", b"root:x:0:0:")

    return tar_bytes(build)


@pytest.fixture()
def symlink_redirect_tar() -> bytes:
    """TAR writing through an earlier symlink that points outside."""

    def build(tf):
        add_symlink(tf, "escape", "../../..")
        add_regular(tf, "escape/evil.txt", b"pwned")

    return tar_bytes(build)


@pytest.fixture()
def hardlink_escape_tar() -> bytes:
    """TAR with a hardlink whose target is outside the root."""

    def build(tf):
        add_hardlink(tf, "shadow", "../../etc/shadow")

    return tar_bytes(build)


# ---------------------------------------------------------------------------
# entry type archives
# ---------------------------------------------------------------------------


@pytest.fixture()
def late_fifo_tar() -> bytes:
    """TAR whose third entry is a FIFO, after two good entries."""

    def build(tf):
        add_dir(tf, "data/")
        add_regular(tf, "data/report.csv", b"a,b\n1,2\n")
        add_fifo(tf, "data/pipe")

    return tar_bytes(build)


@pytest.fixture()
def dot_entry_tar() -> bytes:
    """TAR starting with a ``./`` entry, as produced by ``tar -C dir .``."""

    def build(tf):
        add_dir(tf, "./")
        add_regular(tf, "./hello.txt", b"hello\n")

    return tar_bytes(build)


@pytest.fixture()
def forward_hardlink_tar() -> bytes:
    """TAR where the hardlink appears before its target."""

    def build(tf):
        add_hardlink(tf, "first.txt", "later/target.txt")
        add_regular(tf, "later/target.txt", b"target content\n")

    return tar_bytes(build)


@pytest.fixture()
def readonly_forward_hardlink_tar() -> bytes:
    """TAR with a read-only hardlink listed before its read-only target."""

    def build(tf):
        add_hardlink(tf, "first.txt", "later/target.txt", mode=0o444)
        add_regular(tf, "later/target.txt", b"target content\n", mode=0o444)

    return tar_bytes(build)


@pytest.fixture()
def readonly_dir_tar() -> bytes:
    """TAR with a read-only directory listed before its contents."""

    def build(tf):
        add_dir(tf, "locked/", mode=0o555)
        add_regular(tf, "locked/inside.txt", b"inside\n")

    return tar_bytes(build)


@pytest.fixture()
def setuid_tar() -> bytes:
    """TAR with a regular file that has the setuid bit (04755)."""

    def build(tf):
        add_regular(tf, "suid_binary", b"ELF\x00", mode=0o4755)

    return tar_bytes(build)


# ---------------------------------------------------------------------------
# legitimate archives
# ---------------------------------------------------------------------------


def _legitimate(tf) -> None:
    add_regular(tf, "readme.txt", b"Hello, world!\n")
    add_dir(tf, "data/")
    add_regular(tf, "data/report.csv", b"a,b,c\n1,2,3\n")


@pytest.fixture()
def legitimate_tar() -> bytes:
    return tar_bytes(_legitimate)


@pytest.fixture()
def legitimate_tar_gz() -> bytes:
    return gzip.compress(tar_bytes(_legitimate))


@pytest.fixture()
def legitimate_tar_xz() -> bytes:
    return lzma.compress(tar_bytes(_legitimate), format=lzma.FORMAT_XZ)


@pytest.fixture()
def legitimate_zip() -> bytes:
    def build(zf):
        zf.writestr("readme.txt", b"Hello, world!\n")
        zf.writestr("data/", b"")
        zf.writestr("data/report.csv", b"a,b,c\n1,2,3\n")

    return zip_bytes(build)


@pytest.fixture()
def non_seekable():
    """Factory wrapping bytes in a stream that cannot seek."""
    return NonSeekableReader


@pytest.fixture()
def source_tree(tmp_path):
    """A directory tree with a regular file, empty dir, symlink, hardlink."""
    root = tmp_path / "tree"
    make_tree(root)
    return root


# ---------------------------------------------------------------------------
# unsupported zip features
# ---------------------------------------------------------------------------


@pytest.fixture()
def deflate64_zip() -> bytes:
    """Zip whose only member claims compression method 9 (Deflate64)."""
    data = zip_bytes(lambda zf: zf.writestr("a.txt", b"payload\n"))
    return patch_zip_headers(data, local=8, central=10, value=9)


@pytest.fixture()
def encrypted_zip() -> bytes:
    """Zip whose only member has the encryption flag set."""
    data = zip_bytes(lambda zf: zf.writestr("a.txt", b"payload\n"))
    return patch_zip_headers(data, local=6, central=8, value=0x1)
