"""
RefStore - Mutable named pointers with conditional writes.

Each ref is a single file under ``<root>/refs``. The only write paths are
create_if_absent and compare_and_swap; each runs its check and its
publish inside one critical section guarded by a lock owned by that ref
name, so concurrent writers of one name are totally ordered while
writers of different names never contend.
"""

import logging
import os
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterator, Union

from ..errors import AlreadyExists, Mismatch, NotFound, ReadError, WriteError
from ..keys import require_ref_key, validate_ref_key
from ._fs import StorageLayout, discard, sync_published, write_file

logger = logging.getLogger(__name__)

RefValue = Union[bytes, str]


@dataclass
class _LockEntry:
    lock: threading.Lock = field(default_factory=threading.Lock)
    holders: int = 0


class KeyedLocks:
    """
    One mutex per key, created on first use and dropped once no thread
    holds or waits for it.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._entries: Dict[str, _LockEntry] = {}

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = self._entries[key] = _LockEntry()
            entry.holders += 1

        entry.lock.acquire()
        try:
            yield
        finally:
            entry.lock.release()
            with self._guard:
                entry.holders -= 1
                if entry.holders == 0:
                    del self._entries[key]

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)


def _as_bytes(value: RefValue) -> bytes:
    if isinstance(value, str):
        return value.encode("utf-8")
    return bytes(value)


class RefStore:
    """
    File-based ref store.

    Usage:
        refs = RefStore("/var/lib/casserve")

        refs.create_if_absent("head", key)
        refs.compare_and_swap("head", key, new_key)

        current = refs.read("head")
    """

    def __init__(self, root: Union[str, Path, StorageLayout]):
        self.layout = root if isinstance(root, StorageLayout) else StorageLayout(root)
        self._locks = KeyedLocks()

    def read(self, name: str) -> bytes:
        """
        Read the current value of a ref.

        Raises:
            InvalidKey, NotFound, ReadError
        """
        path = self.layout.ref_path(require_ref_key(name))
        return self._read_path(name, path)

    def _read_path(self, name: str, path: Path) -> bytes:
        try:
            return path.read_bytes()
        except FileNotFoundError:
            raise NotFound(name) from None
        except OSError as e:
            raise ReadError(name, str(e)) from e

    def exists(self, name: str) -> bool:
        if not validate_ref_key(name):
            return False
        return self.layout.ref_path(name).is_file()

    def _stage(self, name: str, value: bytes) -> Path:
        """Write the new value to a temp file, outside any lock."""
        temp_path = self.layout.temp_path("ref")
        try:
            write_file(temp_path, value)
        except OSError as e:
            discard(temp_path)
            raise WriteError(name, str(e)) from e
        return temp_path

    def create_if_absent(self, name: str, value: RefValue):
        """
        Create a ref that does not exist yet.

        The publish is a hard link of the staged file, which fails if the
        target already exists, so not even a writer in another process can
        be overwritten.

        Raises:
            InvalidKey, AlreadyExists, WriteError
        """
        require_ref_key(name)
        data = _as_bytes(value)
        path = self.layout.ref_path(name)

        temp_path = self._stage(name, data)
        try:
            with self._locks.hold(name):
                if path.exists():
                    logger.info("create of ref %s rejected: already exists", name)
                    raise AlreadyExists(name)
                try:
                    os.link(temp_path, path)
                except FileExistsError:
                    logger.info("create of ref %s rejected: already exists", name)
                    raise AlreadyExists(name) from None
                except OSError as e:
                    logger.warning("failed to create ref %s: %s", name, e)
                    raise WriteError(name, str(e)) from e
                sync_published(self.layout.refs_dir, name)
        finally:
            discard(temp_path)

        logger.debug("created ref %s", name)

    def compare_and_swap(self, name: str, expected: RefValue, new_value: RefValue):
        """
        Replace a ref's value only if it currently equals ``expected``.

        Raises:
            InvalidKey
            NotFound: the ref does not exist
            Mismatch: the ref holds another value (reported as ``actual``)
            ReadError, WriteError
        """
        require_ref_key(name)
        expected_bytes = _as_bytes(expected)
        data = _as_bytes(new_value)
        path = self.layout.ref_path(name)

        temp_path = self._stage(name, data)
        try:
            with self._locks.hold(name):
                actual = self._read_path(name, path)
                if actual != expected_bytes:
                    logger.info("swap of ref %s rejected: value does not match", name)
                    raise Mismatch(name, expected_bytes, actual)
                try:
                    os.replace(temp_path, path)
                except OSError as e:
                    logger.warning("failed to update ref %s: %s", name, e)
                    raise WriteError(name, str(e)) from e
                sync_published(self.layout.refs_dir, name)
        finally:
            discard(temp_path)

        logger.debug("updated ref %s", name)
