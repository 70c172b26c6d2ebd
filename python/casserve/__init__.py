"""
casserve - a small object store with immutable content and CAS-guarded refs.
"""

__version__ = "0.1.0"

from .errors import (
    AlreadyExists,
    DigestMismatch,
    InvalidKey,
    Mismatch,
    NotFound,
    PreconditionRequired,
    ReadError,
    StoreError,
    StreamAborted,
    WriteError,
)
from .keys import content_key_for, validate_content_key, validate_ref_key
from .objects import ContentStore, RefStore, StorageLayout

__all__ = [
    "__version__",
    "ContentStore",
    "RefStore",
    "StorageLayout",
    "content_key_for",
    "validate_content_key",
    "validate_ref_key",
    "StoreError",
    "InvalidKey",
    "NotFound",
    "AlreadyExists",
    "Mismatch",
    "DigestMismatch",
    "PreconditionRequired",
    "WriteError",
    "ReadError",
    "StreamAborted",
]
