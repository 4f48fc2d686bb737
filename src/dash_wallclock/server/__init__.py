"""
Server Module
=============

Read-only HTTP access to the transcoder output.

    - resolve_request_path: Canonical path containment check
    - detect_content_type: Extension + content sniffing
    - create_app: FastAPI application with a single GET route
    - SandboxedFileServer: uvicorn on a background thread
"""

from dash_wallclock.server.files import detect_content_type, resolve_request_path
from dash_wallclock.server.app import create_app
from dash_wallclock.server.server import SandboxedFileServer


__all__ = [
    "detect_content_type",
    "resolve_request_path",
    "create_app",
    "SandboxedFileServer",
]
