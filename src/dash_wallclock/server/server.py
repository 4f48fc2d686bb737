"""
Sandboxed File Server
=====================

Runs the file server application under uvicorn on a background thread.

Design Rules:
    - start() returns once the listener is bound (or raises)
    - stop() is a zero-grace stop: the listener is released at once and
      in-flight responses are not drained
    - start() and stop() are idempotent
    - Process signals stay with the caller; uvicorn installs no handlers
      off the main thread
"""

import logging
import threading
import time
from pathlib import Path
from typing import Optional, Union

import uvicorn

from dash_wallclock.server.app import DEFAULT_WORKERS, create_app


logger = logging.getLogger(__name__)


_STARTUP_TIMEOUT_SEC = 10.0
_SHUTDOWN_TIMEOUT_SEC = 5.0


class SandboxedFileServer:
    """
    HTTP server restricted to a root directory.

    Example:
        server = SandboxedFileServer(root="./tmp", port=8080)
        server.start()
        ...
        server.stop()
    """

    def __init__(
        self,
        root: Union[str, Path],
        port: int,
        host: str = "0.0.0.0",
        workers: int = DEFAULT_WORKERS,
    ) -> None:
        """
        Args:
            root: Directory to serve
            port: TCP port to bind
            host: Interface to bind
            workers: Maximum concurrent request handlers
        """
        self.root = Path(root)
        self.host = host
        self.port = port
        self.workers = workers
        self._server: Optional[uvicorn.Server] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """
        Bind the listener and start serving.

        Raises:
            RuntimeError: If the server fails to start in time
        """
        if self._server is not None:
            return

        config = uvicorn.Config(
            create_app(self.root, workers=self.workers),
            host=self.host,
            port=self.port,
            log_level="warning",
            access_log=False,
        )
        self._server = uvicorn.Server(config)
        self._thread = threading.Thread(
            target=self._server.run,
            name="file-server",
            daemon=True,
        )
        self._thread.start()

        deadline = time.monotonic() + _STARTUP_TIMEOUT_SEC
        while not self._server.started:
            if not self._thread.is_alive():
                self._server = None
                raise RuntimeError(f"File server failed to bind {self.host}:{self.port}")
            if time.monotonic() > deadline:
                raise RuntimeError("File server did not start in time")
            time.sleep(0.05)

        logger.info(f"File server listening on {self.host}:{self.port}, root={self.root}")

    def stop(self) -> None:
        """Stop accepting connections and release the listener."""
        if self._server is None:
            return

        self._server.should_exit = True
        self._server.force_exit = True
        if self._thread is not None:
            self._thread.join(_SHUTDOWN_TIMEOUT_SEC)
            if self._thread.is_alive():
                logger.warning("File server thread did not exit in time")

        self._server = None
        self._thread = None
        logger.info("File server stopped")
