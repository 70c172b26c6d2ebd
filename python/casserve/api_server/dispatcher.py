"""
Request Dispatcher - maps inbound operations onto the two stores.

The dispatcher knows nothing about routes or responses. It receives an
operation, a raw path segment, an optional precondition and a body
stream; it validates the segment before any store is touched and runs
the blocking store calls in the thread pool so a contended ref lock
never stalls the event loop.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, AsyncIterator, Dict, Optional, Type

from starlette.concurrency import run_in_threadpool
from starlette.requests import ClientDisconnect

from ..errors import (
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
from ..keys import require_content_key, require_ref_key
from ..objects import ContentInfo, ContentReader, ContentStore, RefStore

logger = logging.getLogger(__name__)


class Operation(str, Enum):
    READ_REF = "read-ref"
    WRITE_REF = "write-ref"
    READ_CONTENT = "read-content"
    WRITE_CONTENT = "write-content"


@dataclass(frozen=True)
class Precondition:
    """Condition attached to a ref write: the ref is absent, or equals ``value``."""
    kind: str
    value: Optional[bytes] = None

    ABSENT = "absent"
    EQUALS = "equals"

    @classmethod
    def absent(cls) -> "Precondition":
        return cls(cls.ABSENT)

    @classmethod
    def equals(cls, value) -> "Precondition":
        if isinstance(value, str):
            value = value.encode("utf-8")
        return cls(cls.EQUALS, value)

    @classmethod
    def from_headers(
        cls,
        if_empty: Optional[str] = None,
        if_match: Optional[str] = None,
    ) -> Optional["Precondition"]:
        """
        Build a precondition from x-if-empty / x-if-match header values.

        Empty header values count as missing. x-if-empty wins when both
        are present.
        """
        if if_empty:
            return cls.absent()
        if if_match:
            # header values arrive decoded as latin-1; recover the raw bytes
            return cls.equals(if_match.encode("latin-1"))
        return None


# Checked in order, so subclasses must precede their bases.
_STATUS_BY_ERROR: Dict[Type[StoreError], int] = {
    InvalidKey: 404,
    NotFound: 404,
    AlreadyExists: 400,
    Mismatch: 400,
    PreconditionRequired: 400,
    StreamAborted: 400,
    DigestMismatch: 409,
    WriteError: 500,
    ReadError: 500,
}


def status_for(error: StoreError) -> int:
    """HTTP status for a store error."""
    for error_type, status in _STATUS_BY_ERROR.items():
        if isinstance(error, error_type):
            return status
    return 500


def error_body(error: StoreError) -> Dict[str, Any]:
    """JSON body describing a store error."""
    body: Dict[str, Any] = {
        "error": type(error).__name__,
        "detail": str(error),
    }
    if isinstance(error, Mismatch):
        body["actual"] = error.actual.decode("utf-8", errors="replace")
    return body


class Dispatcher:
    """
    Forwards validated operations to a ContentStore and a RefStore.

    Usage:
        dispatcher = Dispatcher(content_store, ref_store)
        value = await dispatcher.read_ref("head")
    """

    def __init__(self, content_store: ContentStore, ref_store: RefStore):
        self.content_store = content_store
        self.ref_store = ref_store

    async def dispatch(
        self,
        operation: Operation,
        segment: str,
        body: Optional[AsyncIterator[bytes]] = None,
        precondition: Optional[Precondition] = None,
    ) -> Any:
        """Run one operation by kind."""
        operation = Operation(operation)
        if operation is Operation.READ_REF:
            return await self.read_ref(segment)
        if operation is Operation.WRITE_REF:
            return await self.write_ref(segment, precondition, _or_empty(body))
        if operation is Operation.READ_CONTENT:
            return await self.read_content(segment)
        return await self.write_content(segment, _or_empty(body))

    async def read_ref(self, name: str) -> bytes:
        require_ref_key(name)
        return await run_in_threadpool(self.ref_store.read, name)

    async def write_ref(
        self,
        name: str,
        precondition: Optional[Precondition],
        body: AsyncIterator[bytes],
    ):
        require_ref_key(name)
        if precondition is None:
            raise PreconditionRequired(name)

        # Ref values are small; take the whole body before any lock is held.
        value = await _collect(name, body)

        if precondition.kind == Precondition.ABSENT:
            await run_in_threadpool(self.ref_store.create_if_absent, name, value)
        else:
            await run_in_threadpool(
                self.ref_store.compare_and_swap, name, precondition.value, value
            )

    async def read_content(self, key: str) -> ContentReader:
        require_content_key(key)
        return await run_in_threadpool(self.content_store.get, key)

    async def write_content(self, key: str, body: AsyncIterator[bytes]) -> ContentInfo:
        require_content_key(key)
        writer = await run_in_threadpool(self.content_store.open_writer, key)
        with writer:
            try:
                async for chunk in body:
                    await run_in_threadpool(writer.write, chunk)
            except (ClientDisconnect, ConnectionError) as e:
                logger.warning("upload of %s aborted after %d bytes", key, writer.size)
                raise StreamAborted(key, "client disconnected") from e
            return await run_in_threadpool(writer.commit)


async def _collect(key: str, body: AsyncIterator[bytes]) -> bytes:
    chunks = []
    try:
        async for chunk in body:
            chunks.append(chunk)
    except (ClientDisconnect, ConnectionError) as e:
        logger.warning("ref write %s aborted: client disconnected", key)
        raise StreamAborted(key, "client disconnected") from e
    return b"".join(chunks)


async def _empty() -> AsyncIterator[bytes]:
    return
    yield


def _or_empty(body: Optional[AsyncIterator[bytes]]) -> AsyncIterator[bytes]:
    return body if body is not None else _empty()
