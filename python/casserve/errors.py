"""
casserve errors.

Every failure a store operation can report is a StoreError subclass.
Validation and precondition failures are expected outcomes that callers
handle; WriteError / ReadError wrap the underlying OSError.
"""

from typing import Optional


class StoreError(Exception):
    """Base class for all casserve store errors."""


class InvalidKey(StoreError):
    """Raised when a ref name or content key fails syntax validation."""

    def __init__(self, key: object, kind: str = "key"):
        self.key = key
        self.kind = kind
        super().__init__(f"Invalid {kind}: {key!r}")


class NotFound(StoreError):
    """Raised when a read (or CAS) targets a key that does not exist."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Not found: {key}")


class AlreadyExists(StoreError):
    """Raised by create_if_absent when the ref is already present."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Ref already exists: {key}")


class Mismatch(StoreError):
    """Raised by compare_and_swap when the stored value differs from the expected one."""

    def __init__(self, key: str, expected: bytes, actual: bytes):
        self.key = key
        self.expected = expected
        self.actual = actual
        super().__init__(f"Ref {key} does not match: expected {expected!r}, found {actual!r}")


class DigestMismatch(StoreError):
    """Raised when uploaded bytes do not hash to the claimed content key."""

    def __init__(self, key: str, expected: str, actual: str):
        self.key = key
        self.expected = expected
        self.actual = actual
        super().__init__(f"Digest mismatch for {key}: body hashes to sha256-{actual}")


class WriteError(StoreError):
    """Raised when the storage layer fails while writing or publishing."""

    def __init__(self, key: str, reason: Optional[str] = None):
        self.key = key
        self.reason = reason
        msg = f"Write failed for {key}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class ReadError(StoreError):
    """Raised when the storage layer fails while reading an existing key."""

    def __init__(self, key: str, reason: Optional[str] = None):
        self.key = key
        self.reason = reason
        msg = f"Read failed for {key}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class StreamAborted(StoreError):
    """Raised when the upload stream ends before it was fully consumed."""

    def __init__(self, key: str, reason: Optional[str] = None):
        self.key = key
        self.reason = reason
        msg = f"Upload aborted for {key}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class PreconditionRequired(StoreError):
    """Raised when a ref write carries neither an if-empty nor an if-match condition."""

    def __init__(self, key: str):
        self.key = key
        super().__init__("x-if-empty or x-if-match header is required")
