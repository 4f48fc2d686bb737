"""
File Server Application
=======================

FastAPI application serving the working directory read-only.

Endpoints:
    GET /{path} - File streamed with detected Content-Type and exact
                  Content-Length; 400 if the path escapes the root,
                  404 if it is missing or not a regular file

Error responses carry an empty body so they leak nothing about the
filesystem. The sync endpoint runs on the anyio worker thread pool,
which the lifespan caps at a fixed number of workers.
"""

import logging
import stat
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Union

import anyio.to_thread
from fastapi import FastAPI, Response
from fastapi.responses import FileResponse

from dash_wallclock.errors import PathEscapesRoot
from dash_wallclock.server.files import detect_content_type, resolve_request_path


logger = logging.getLogger(__name__)


BAD_REQUEST = 400
NOT_FOUND = 404

DEFAULT_WORKERS = 5


def create_app(root: Union[str, Path], workers: int = DEFAULT_WORKERS) -> FastAPI:
    """
    Build the file server application.

    Args:
        root: Directory to serve
        workers: Maximum concurrent request handlers

    Returns:
        FastAPI application
    """
    if workers < 1:
        raise ValueError("workers must be >= 1")

    root = Path(root)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        limiter = anyio.to_thread.current_default_thread_limiter()
        limiter.total_tokens = workers
        logger.info(f"Serving {root.resolve()} with {workers} workers")
        yield

    app = FastAPI(
        title="dash-wallclock",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        lifespan=lifespan,
    )

    @app.get("/{resource:path}")
    def serve(resource: str) -> Response:
        request_path = "/" + resource
        try:
            path = resolve_request_path(root, request_path)
        except PathEscapesRoot:
            logger.warning(f"Rejected path outside root: {request_path!r}")
            return Response(status_code=BAD_REQUEST)
        except (ValueError, OSError, RuntimeError) as e:
            # NUL bytes, symlink loops
            logger.warning(f"Unresolvable path {request_path!r}: {e}")
            return Response(status_code=BAD_REQUEST)

        try:
            stat_result = path.stat()
        except OSError:
            # Missing, rotated away by the transcoder, or an unusable name
            return Response(status_code=NOT_FOUND)
        if not stat.S_ISREG(stat_result.st_mode):
            return Response(status_code=NOT_FOUND)

        return FileResponse(
            path,
            media_type=detect_content_type(path),
            stat_result=stat_result,
        )

    return app
