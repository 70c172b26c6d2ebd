"""
Storage root layout and atomic publish helpers shared by both stores.

Layout under the root directory:

    content/<content-key>   immutable blobs
    refs/<ref-name>         ref values
    tmp/                    in-flight writes

Temp files only ever live in tmp/, which sits on the same volume as the
published directories, so publishing is a single rename (or link).
"""

import logging
import os
import uuid
from pathlib import Path
from typing import Union

logger = logging.getLogger(__name__)


class StorageLayout:
    """Maps the keyspace of both stores onto one storage root."""

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)
        self.content_dir = self.root / "content"
        self.refs_dir = self.root / "refs"
        self.tmp_dir = self.root / "tmp"
        self._ensure_directories()

    def _ensure_directories(self):
        for path in (self.content_dir, self.refs_dir, self.tmp_dir):
            path.mkdir(parents=True, exist_ok=True)

    def content_path(self, key: str) -> Path:
        return self.content_dir / key

    def ref_path(self, name: str) -> Path:
        return self.refs_dir / name

    def temp_path(self, hint: str = "") -> Path:
        """Return a fresh, unused path under tmp/."""
        return self.tmp_dir / f"{hint}.{uuid.uuid4().hex}.tmp"

    def __repr__(self):
        return f"StorageLayout(root={str(self.root)!r})"


def write_file(path: Path, data: bytes):
    """Write ``data`` to a new file and flush it to stable storage."""
    with open(path, "xb") as f:
        f.write(data)
        f.flush()
        os.fsync(f.fileno())


def fsync_dir(path: Path):
    """Persist a directory entry change (rename/link) where the OS allows it."""
    if os.name != "posix":
        return
    fd = os.open(path, os.O_RDONLY)
    try:
        os.fsync(fd)
    finally:
        os.close(fd)


def sync_published(directory: Path, key: str):
    """
    fsync a directory after a rename or link has published ``key``.

    The write is already visible at this point, so a failure is logged and
    never reported as a failed write.
    """
    try:
        fsync_dir(directory)
    except OSError as e:
        logger.warning("published %s but could not sync %s: %s", key, directory, e)


def discard(path: Path):
    """Remove a temp file left behind by a failed or aborted write."""
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning("could not remove temp file %s: %s", path, e)
