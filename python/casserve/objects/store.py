"""
ContentStore - Content-addressed blob storage.

Blobs are stored as files named by their content key
(``sha256-<hex digest>``) under ``<root>/content``. A blob is written to a
temp file first and published with a single rename once the whole stream
has been consumed (and, by default, its digest checked against the key),
so readers never observe a partially written object.
"""

import hashlib
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Iterable, Union

from ..errors import DigestMismatch, NotFound, ReadError, StreamAborted, WriteError
from ..keys import digest_of_key, require_content_key, validate_content_key
from ._fs import StorageLayout, discard, sync_published

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 64 * 1024


@dataclass
class ContentInfo:
    """Result of a successful write."""
    key: str
    size: int

    def to_dict(self) -> dict:
        return {"key": self.key, "size": self.size}


class ContentWriter:
    """
    Incremental writer for one content object.

    Chunks are appended to a temp file while a rolling SHA-256 is kept.
    Nothing becomes visible under the key until commit() succeeds; leaving
    the ``with`` block without committing discards the temp file.

    Usage:
        with store.open_writer(key) as writer:
            for chunk in body:
                writer.write(chunk)
            writer.commit()
    """

    def __init__(self, layout: StorageLayout, key: str, verify: bool = True):
        self.key = key
        self.size = 0
        self._layout = layout
        self._verify = verify
        self._hasher = hashlib.sha256()
        self._temp_path = layout.temp_path("content")
        self._closed = False
        try:
            self._file: BinaryIO = open(self._temp_path, "xb")
        except OSError as e:
            raise WriteError(key, str(e)) from e

    @property
    def closed(self) -> bool:
        return self._closed

    def write(self, chunk: bytes):
        """Append one chunk of the object."""
        if self._closed:
            raise ValueError(f"Writer for {self.key} is closed")
        try:
            self._file.write(chunk)
        except OSError as e:
            self.abort()
            raise WriteError(self.key, str(e)) from e
        self._hasher.update(chunk)
        self.size += len(chunk)

    def hexdigest(self) -> str:
        return self._hasher.hexdigest()

    def commit(self) -> ContentInfo:
        """
        Flush, verify and publish the object under its key.

        Raises:
            DigestMismatch: the consumed bytes do not hash to the key
                (only when verification is enabled)
            WriteError: the temp file could not be flushed or published
        """
        if self._closed:
            raise ValueError(f"Writer for {self.key} is closed")

        try:
            self._file.flush()
            os.fsync(self._file.fileno())
        except OSError as e:
            self.abort()
            raise WriteError(self.key, str(e)) from e

        actual = self._hasher.hexdigest()
        expected = digest_of_key(self.key)
        if self._verify and actual != expected:
            self.abort()
            logger.info("rejected content %s: body hashes to sha256-%s", self.key, actual)
            raise DigestMismatch(self.key, expected, actual)

        self._closed = True
        try:
            self._file.close()
            os.replace(self._temp_path, self._layout.content_path(self.key))
        except OSError as e:
            discard(self._temp_path)
            logger.warning("failed to publish content %s: %s", self.key, e)
            raise WriteError(self.key, str(e)) from e
        sync_published(self._layout.content_dir, self.key)

        logger.debug("published content %s (%d bytes)", self.key, self.size)
        return ContentInfo(key=self.key, size=self.size)

    def abort(self):
        """Drop the temp file. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        try:
            self._file.close()
        finally:
            discard(self._temp_path)

    def __enter__(self) -> "ContentWriter":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.abort()
        return False


class ContentReader:
    """
    Chunked iterator over one open content file.

    The file is released when the stream is exhausted, when a read fails,
    or on close(), whichever comes first. close() is safe before the first
    chunk and safe to repeat.
    """

    def __init__(self, key: str, f: BinaryIO, chunk_size: int):
        self.key = key
        self.chunk_size = chunk_size
        self._file = f

    @property
    def closed(self) -> bool:
        return self._file.closed

    def __iter__(self) -> "ContentReader":
        return self

    def __next__(self) -> bytes:
        if self._file.closed:
            raise StopIteration
        try:
            chunk = self._file.read(self.chunk_size)
        except OSError as e:
            self.close()
            raise ReadError(self.key, str(e)) from e
        if not chunk:
            self.close()
            raise StopIteration
        return chunk

    def close(self):
        self._file.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


class ContentStore:
    """
    File-based content-addressed store.

    Usage:
        store = ContentStore("/var/lib/casserve")

        key = content_key_for(b"hello")
        store.put(key, b"hello")

        for chunk in store.get(key):
            ...
    """

    def __init__(
        self,
        root: Union[str, Path, StorageLayout],
        verify_digests: bool = True,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ):
        """
        Initialize ContentStore.

        Args:
            root: Storage root directory, or a StorageLayout shared with a RefStore
            verify_digests: Reject writes whose bytes do not hash to the key
            chunk_size: Read size used when streaming objects back out
        """
        self.layout = root if isinstance(root, StorageLayout) else StorageLayout(root)
        self.verify_digests = verify_digests
        self.chunk_size = chunk_size

    def open_writer(self, key: str) -> ContentWriter:
        """Start an incremental write of ``key``."""
        require_content_key(key)
        return ContentWriter(self.layout, key, verify=self.verify_digests)

    def put(self, key: str, data: Union[bytes, Iterable[bytes]]) -> ContentInfo:
        """
        Store a whole object under ``key``.

        Args:
            key: Content key (sha256-<hex>)
            data: The object bytes, or an iterable of byte chunks

        Returns:
            ContentInfo for the published object

        Raises:
            InvalidKey, DigestMismatch, WriteError, StreamAborted
        """
        with self.open_writer(key) as writer:
            chunks = iter([data]) if isinstance(data, (bytes, bytearray, memoryview)) else iter(data)
            while True:
                try:
                    chunk = next(chunks)
                except StopIteration:
                    break
                except Exception as e:
                    logger.warning("upload of %s aborted: %s", key, e)
                    raise StreamAborted(key, str(e)) from e
                writer.write(chunk)
            return writer.commit()

    def get(self, key: str) -> ContentReader:
        """
        Open an object for streaming.

        The file is opened before this returns, so a missing object raises
        NotFound here rather than on first iteration. Each call returns an
        independent stream; close it if it is not read to the end.

        Raises:
            InvalidKey, NotFound, ReadError
        """
        path = self.layout.content_path(require_content_key(key))
        try:
            f = open(path, "rb")
        except FileNotFoundError:
            raise NotFound(key) from None
        except OSError as e:
            raise ReadError(key, str(e)) from e
        return ContentReader(key, f, self.chunk_size)

    def read_bytes(self, key: str) -> bytes:
        """Read a whole object into memory."""
        with self.get(key) as reader:
            return b"".join(reader)

    def exists(self, key: str) -> bool:
        """Check if an object exists. Invalid keys never exist."""
        if not validate_content_key(key):
            return False
        return self.layout.content_path(key).is_file()

    def size(self, key: str) -> int:
        """Return the stored size of an object in bytes."""
        path = self.layout.content_path(require_content_key(key))
        try:
            return path.stat().st_size
        except FileNotFoundError:
            raise NotFound(key) from None
        except OSError as e:
            raise ReadError(key, str(e)) from e
