"""
API Server Router - HTTP routes for the ref and content stores.

This module provides the FastAPI application exposing the Request
Dispatcher over GET/PUT on /refs/{name} and /content/{key}, plus the
landing page, CORS headers and a compact access log.
"""

import logging
import time
from pathlib import Path
from typing import AsyncIterator, Optional

from fastapi import FastAPI, Header, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse, StreamingResponse
from pydantic import BaseModel
from starlette.background import BackgroundTask
from starlette.concurrency import iterate_in_threadpool

from .. import __version__
from ..config import StoreConfig
from ..errors import StoreError
from ..logging_config import ACCESS_LOGGER
from ..objects import ContentReader, ContentStore, RefStore, StorageLayout
from .dispatcher import Dispatcher, Precondition, error_body, status_for

logger = logging.getLogger(__name__)
access_logger = logging.getLogger(ACCESS_LOGGER)

DEFAULT_INDEX = Path(__file__).parent / "static" / "index.html"

CORS_ALLOW_HEADERS = [
    "Origin",
    "X-Requested-With",
    "Content-Type",
    "Accept",
    "x-if-match",
    "x-if-empty",
]


# Pydantic models for API docs
class HealthResponse(BaseModel):
    """Response for the health check."""
    status: str


class ErrorResponse(BaseModel):
    """Body of every store error response."""
    error: str
    detail: str
    actual: Optional[str] = None


async def stream_content(reader: ContentReader) -> AsyncIterator[bytes]:
    """Feed a content file to the response, releasing it however the response ends."""
    try:
        async for chunk in iterate_in_threadpool(reader):
            yield chunk
    finally:
        reader.close()


REF_ERRORS = {
    400: {"model": ErrorResponse, "description": "Precondition failed or missing"},
    404: {"model": ErrorResponse, "description": "Unknown or invalid ref name"},
}
CONTENT_ERRORS = {
    404: {"model": ErrorResponse, "description": "Unknown or invalid content key"},
    409: {"model": ErrorResponse, "description": "Body does not hash to the key"},
    500: {"model": ErrorResponse, "description": "Storage failure"},
}


def create_app(
    config: Optional[StoreConfig] = None,
    content_store: Optional[ContentStore] = None,
    ref_store: Optional[RefStore] = None,
) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        config: Server configuration. Defaults to StoreConfig().
        content_store: Optional ContentStore. Built from config.root if not provided.
        ref_store: Optional RefStore. Built from config.root if not provided.

    Returns:
        Configured FastAPI application
    """
    config = config or StoreConfig()

    app = FastAPI(
        title="casserve",
        description="Content-addressed blobs and compare-and-swap refs",
        version=__version__,
    )

    if content_store is None or ref_store is None:
        layout = StorageLayout(config.root)
        if content_store is None:
            content_store = ContentStore(
                layout,
                verify_digests=config.verify_digests,
                chunk_size=config.chunk_size,
            )
        if ref_store is None:
            ref_store = RefStore(layout)

    app.state.config = config
    app.state.dispatcher = Dispatcher(content_store, ref_store)
    index_path = Path(config.index_path) if config.index_path else DEFAULT_INDEX

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_methods=["GET", "PUT"],
        allow_headers=CORS_ALLOW_HEADERS,
    )

    @app.middleware("http")
    async def access_log(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000
        access_logger.info(
            "%s %s %d %s - %.3f ms",
            request.method,
            request.url.path,
            response.status_code,
            response.headers.get("content-length", "-"),
            elapsed_ms,
        )
        return response

    @app.exception_handler(StoreError)
    async def store_error_handler(request: Request, exc: StoreError):
        status = status_for(exc)
        if status >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=status, content=error_body(exc))

    @app.get("/")
    async def landing():
        """Landing page."""
        return FileResponse(index_path, media_type="text/html")

    @app.get("/health", response_model=HealthResponse)
    async def health():
        """Health check endpoint."""
        return HealthResponse(status="healthy")

    @app.get("/refs/{name}", responses=REF_ERRORS)
    async def read_ref(name: str):
        """Read the current value of a ref."""
        value = await app.state.dispatcher.read_ref(name)
        return Response(content=value, media_type="application/octet-stream")

    @app.put("/refs/{name}", status_code=204, responses=REF_ERRORS)
    async def write_ref(
        name: str,
        request: Request,
        x_if_empty: Optional[str] = Header(None, alias="x-if-empty"),
        x_if_match: Optional[str] = Header(None, alias="x-if-match"),
    ):
        """
        Conditionally write a ref.

        x-if-empty creates the ref only if it does not exist yet;
        x-if-match replaces it only if it currently holds the header value.
        """
        precondition = Precondition.from_headers(x_if_empty, x_if_match)
        await app.state.dispatcher.write_ref(name, precondition, request.stream())
        return Response(status_code=204)

    @app.get("/content/{key}", responses=CONTENT_ERRORS)
    async def read_content(key: str):
        """Stream a content object."""
        reader = await app.state.dispatcher.read_content(key)
        # a cancelled response never finishes the generator; the task closes the file
        return StreamingResponse(
            stream_content(reader),
            media_type="application/octet-stream",
            background=BackgroundTask(reader.close),
        )

    @app.put("/content/{key}", status_code=204, responses=CONTENT_ERRORS)
    async def write_content(key: str, request: Request):
        """Upload a content object under its sha256 key."""
        await app.state.dispatcher.write_content(key, request.stream())
        return Response(status_code=204)

    return app
