"""
=============================================================================
FILE STORAGE
=============================================================================

Reads and writes files under the configured root directory. This is the
only component that touches the filesystem; the router and handlers keep
no state between requests.

=============================================================================
CONFINEMENT
=============================================================================

File names come straight from the URL:

    GET /files/notes/today.txt   →  name = "notes/today.txt"

The name is joined onto the root and canonicalized (resolving "..",
symlinks and absolute components). If the result is not strictly inside
the root, the operation is refused with UnsafePath:

    root = /srv/data

    "report.txt"            →  /srv/data/report.txt          ✓
    "a/b/c.bin"             →  /srv/data/a/b/c.bin           ✓ nested
    "../etc/passwd"         →  /srv/etc/passwd               ✗ UnsafePath
    "/etc/passwd"           →  /etc/passwd                   ✗ UnsafePath
    "."                     →  /srv/data                     ✗ UnsafePath

Nested names are legitimate: write() creates missing parent directories
inside the root.

=============================================================================
CONCURRENCY
=============================================================================

There is no locking. Two connections writing the same name race, and the
last write to reach the filesystem wins. Writes truncate, never append.

=============================================================================
"""

import logging
import os
from pathlib import Path
from typing import Union

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """A filesystem operation failed. Surfaces as 500 unless caught earlier."""


class StoredFileNotFound(StorageError):
    """No regular file exists under the requested name."""


class UnsafePath(StorageError):
    """The requested name resolves outside the storage root."""


class FileStorage:
    """
    Storage adapter rooted at a single directory.

    Usage:
        storage = FileStorage("/tmp/data")
        storage.write("hello.txt", b"hi")
        storage.read("hello.txt")   # b"hi"
    """

    def __init__(self, root: Union[str, os.PathLike]):
        """
        Args:
            root: Directory that confines every operation. Resolved once.
                  It must already exist; creating it is the caller's job.
        """
        self.root = Path(root).resolve()

        if not self.root.is_dir():
            raise ValueError(f"Storage root directory does not exist: {root}")

    def resolve(self, name: str) -> Path:
        """
        Map a file name to an absolute path inside the root.

        Raises:
            UnsafePath: If the name is empty or escapes the root.
        """
        if not name:
            raise UnsafePath("Empty file name")

        try:
            full_path = (self.root / name).resolve()
        except (OSError, ValueError, RuntimeError) as e:
            # NUL bytes, symlink loops
            raise UnsafePath(f"Cannot resolve {name!r}: {e}") from e

        try:
            relative = full_path.relative_to(self.root)
        except ValueError:
            logger.warning(f"Path traversal attempt: {name!r}")
            raise UnsafePath(f"Path escapes storage root: {name!r}") from None

        if relative == Path("."):
            raise UnsafePath(f"Path resolves to the storage root: {name!r}")

        return full_path

    def exists(self, name: str) -> bool:
        """True if a regular file is stored under this name."""
        try:
            return self.resolve(name).is_file()
        except UnsafePath:
            return False

    def read(self, name: str) -> bytes:
        """
        Return the full contents of a stored file.

        Raises:
            UnsafePath: Name escapes the root.
            StoredFileNotFound: Nothing (or a directory) under that name.
            StorageError: Any other I/O failure.
        """
        path = self.resolve(name)

        if not path.is_file():
            raise StoredFileNotFound(f"File not found: {name!r}")

        try:
            return path.read_bytes()
        except FileNotFoundError:
            # Removed between the check and the read
            raise StoredFileNotFound(f"File not found: {name!r}") from None
        except OSError as e:
            raise StorageError(f"Failed to read {name!r}: {e}") from e

    def write(self, name: str, data: bytes) -> None:
        """
        Create or truncate-overwrite a stored file.

        Raises:
            UnsafePath: Name escapes the root.
            StorageError: Directory creation or the write itself failed.
        """
        path = self.resolve(name)

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as e:
            raise StorageError(f"Failed to write {name!r}: {e}") from e

        logger.debug(f"Stored {len(data)} bytes at {path}")
