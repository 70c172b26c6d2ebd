"""
casserve storage layer.

Two stores share one storage root: an immutable content store keyed by
SHA-256 digest and a mutable ref store guarded by per-name locks.
"""

from ._fs import StorageLayout
from .refs import KeyedLocks, RefStore
from .store import ContentInfo, ContentReader, ContentStore, ContentWriter

__all__ = [
    "StorageLayout",
    "ContentStore",
    "ContentWriter",
    "ContentReader",
    "ContentInfo",
    "RefStore",
    "KeyedLocks",
]
