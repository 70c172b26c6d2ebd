"""
casserve HTTP client.

Thin httpx wrapper over the /refs and /content routes that turns error
responses back into casserve.errors exceptions.
"""

from typing import Iterable, Iterator, Optional, Union

import httpx

from .errors import (
    AlreadyExists,
    DigestMismatch,
    InvalidKey,
    Mismatch,
    NotFound,
    PreconditionRequired,
    ReadError,
    StoreError,
    WriteError,
)
from .keys import content_key_for, require_content_key, require_ref_key


class StoreClient:
    """
    Client for a casserve server.

    Usage:
        with StoreClient("http://localhost:8080") as client:
            key = client.put_content(b"hello")
            client.create_ref("head", key)
            client.swap_ref("head", key, other_key)
    """

    def __init__(
        self,
        base_url: Union[str, httpx.Client] = "http://localhost:8080",
        timeout: float = 30.0,
    ):
        """
        Initialize the client.

        Args:
            base_url: Server URL, or an already configured httpx.Client
                (e.g. a FastAPI TestClient)
            timeout: Request timeout in seconds when a URL is given
        """
        if isinstance(base_url, httpx.Client):
            self._http = base_url
            self._owns_http = False
        else:
            self._http = httpx.Client(base_url=base_url, timeout=timeout)
            self._owns_http = True

    def close(self):
        if self._owns_http:
            self._http.close()

    def __enter__(self) -> "StoreClient":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    # Refs

    def get_ref(self, name: str) -> bytes:
        require_ref_key(name)
        response = self._http.get(f"/refs/{name}")
        self._raise_for_error(response, name)
        return response.content

    def create_ref(self, name: str, value: Union[str, bytes]):
        """Create ``name``; raises AlreadyExists if it is already set."""
        require_ref_key(name)
        response = self._http.put(
            f"/refs/{name}", content=_as_bytes(value), headers={"x-if-empty": "1"}
        )
        self._raise_for_error(response, name)

    def swap_ref(self, name: str, expected: Union[str, bytes], value: Union[str, bytes]):
        """Replace ``name`` if it currently equals ``expected``; raises Mismatch otherwise."""
        require_ref_key(name)
        response = self._http.put(
            f"/refs/{name}", content=_as_bytes(value), headers={"x-if-match": _as_bytes(expected)}
        )
        self._raise_for_error(response, name, expected=expected)

    # Content

    def get_content(self, key: str) -> bytes:
        require_content_key(key)
        response = self._http.get(f"/content/{key}")
        self._raise_for_error(response, key)
        return response.content

    def iter_content(self, key: str, chunk_size: Optional[int] = None) -> Iterator[bytes]:
        """Stream a content object without holding it all in memory."""
        require_content_key(key)
        with self._http.stream("GET", f"/content/{key}") as response:
            if response.status_code >= 400:
                response.read()
                self._raise_for_error(response, key)
            yield from response.iter_bytes(chunk_size)

    def put_content(self, data: bytes, key: Optional[str] = None) -> str:
        """Upload ``data`` and return its content key."""
        key = key or content_key_for(data)
        self.put_content_stream(key, [data])
        return key

    def put_content_stream(self, key: str, chunks: Iterable[bytes]):
        """Upload a stream of chunks under a precomputed key."""
        require_content_key(key)
        response = self._http.put(f"/content/{key}", content=chunks)
        self._raise_for_error(response, key)

    def _raise_for_error(self, response: httpx.Response, key: str, expected: Optional[Union[str, bytes]] = None):
        if response.status_code < 400:
            return

        try:
            body = response.json()
        except ValueError:
            body = {}
        error = body.get("error") if isinstance(body, dict) else None
        detail = body.get("detail") if isinstance(body, dict) else None

        if error == "Mismatch":
            raise Mismatch(key, _as_bytes(expected or ""), _as_bytes(body.get("actual", "")))
        if error == "AlreadyExists":
            raise AlreadyExists(key)
        if error == "PreconditionRequired":
            raise PreconditionRequired(key)
        if error == "DigestMismatch":
            actual = str(detail or "").rpartition("sha256-")[2]
            raise DigestMismatch(key, key[len("sha256-"):], actual)
        if error == "InvalidKey":
            raise InvalidKey(key)
        if response.status_code == 404:
            raise NotFound(key)
        if error == "ReadError":
            raise ReadError(key, detail)
        if response.status_code >= 500:
            raise WriteError(key, detail or f"HTTP {response.status_code}")
        raise StoreError(detail or f"HTTP {response.status_code} for {key}")


def _as_bytes(value: Union[str, bytes]) -> bytes:
    if isinstance(value, str):
        return value.encode("utf-8")
    return value
