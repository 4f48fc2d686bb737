"""
Sandboxed File Server Tests
===========================

Path containment (dot segments, symlinks, sibling prefixes), status
codes, content types and the threaded server lifecycle.
"""

import logging

import httpx
import pytest
from fastapi.testclient import TestClient

from conftest import encode_test_jpeg
from dash_wallclock.errors import PathEscapesRoot
from dash_wallclock.server import (
    SandboxedFileServer,
    create_app,
    detect_content_type,
    resolve_request_path,
)


MANIFEST = b'<?xml version="1.0"?>\n<MPD xmlns="urn:mpeg:dash:schema:mpd:2011"/>\n'


class _RecordingHandler(logging.Handler):
    def __init__(self) -> None:
        super().__init__(level=logging.DEBUG)
        self.records = []

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(record)


@pytest.fixture
def layout(tmp_path):
    """Server root with a manifest, a segment and a secret outside the root."""
    root = tmp_path / "root"
    root.mkdir()
    (root / "live.mpd").write_bytes(MANIFEST)
    (root / "chunk-stream0-00001.m4s").write_bytes(b"\x00\x00\x00\x18stypmsdh")
    (root / "snapshot").write_bytes(encode_test_jpeg(200))
    (root / "sub").mkdir()

    secret = tmp_path / "secret.txt"
    secret.write_text("top secret")
    sibling = tmp_path / "root-other"
    sibling.mkdir()
    (sibling / "leak.txt").write_text("leak")

    return root, secret


@pytest.fixture
def client(layout):
    root, _ = layout
    with TestClient(create_app(root)) as c:
        yield c


class TestResolveRequestPath:
    """Tests for resolve_request_path."""

    def test_inside_root(self, layout):
        root, _ = layout
        assert resolve_request_path(root, "/live.mpd") == (root / "live.mpd").resolve()

    def test_root_itself(self, layout):
        root, _ = layout
        assert resolve_request_path(root, "/") == root.resolve()

    @pytest.mark.parametrize("request_path", [
        "/../secret.txt",
        "/../../etc/passwd",
        "/sub/../../secret.txt",
        "//etc/passwd",
        "/../root-other/leak.txt",
    ])
    def test_escapes_rejected(self, layout, request_path):
        root, _ = layout
        with pytest.raises(PathEscapesRoot):
            resolve_request_path(root, request_path)

    def test_symlink_escape_rejected(self, layout):
        root, secret = layout
        (root / "link.txt").symlink_to(secret)

        with pytest.raises(PathEscapesRoot):
            resolve_request_path(root, "/link.txt")

    def test_symlinked_directory_escape_rejected(self, layout):
        root, secret = layout
        (root / "outside").symlink_to(secret.parent)

        with pytest.raises(PathEscapesRoot):
            resolve_request_path(root, "/outside/secret.txt")

    def test_symlink_inside_root_allowed(self, layout):
        root, _ = layout
        (root / "current.mpd").symlink_to(root / "live.mpd")
        assert resolve_request_path(root, "/current.mpd") == (root / "live.mpd").resolve()


class TestContentType:
    """Tests for extension and byte-sniffed content types."""

    def test_manifest_extension(self, layout):
        root, _ = layout
        assert detect_content_type(root / "live.mpd") == "application/dash+xml"

    def test_segment_extension(self, layout):
        root, _ = layout
        assert detect_content_type(root / "chunk-stream0-00001.m4s") == "video/iso.segment"

    def test_sniffed_jpeg(self, layout):
        root, _ = layout
        assert detect_content_type(root / "snapshot") == "image/jpeg"

    def test_sniffed_segment_tmp(self, tmp_path):
        path = tmp_path / "chunk.m4s.tmp"
        path.write_bytes(b"\x00\x00\x00\x18stypmsdh")
        assert detect_content_type(path) == "video/mp4"

    def test_unknown(self, tmp_path):
        path = tmp_path / "blob"
        path.write_bytes(b"\x01\x02\x03")
        assert detect_content_type(path) == "application/octet-stream"


class TestFileServerApp:
    """Tests for the HTTP surface."""

    def test_serves_existing_file(self, client):
        response = client.get("/live.mpd")

        assert response.status_code == 200
        assert response.content == MANIFEST
        assert response.headers["content-type"] == "application/dash+xml"
        assert int(response.headers["content-length"]) == len(MANIFEST)

    def test_sniffed_content_type(self, client, layout):
        root, _ = layout
        response = client.get("/snapshot")

        assert response.status_code == 200
        assert response.headers["content-type"] == "image/jpeg"
        assert response.content == (root / "snapshot").read_bytes()

    def test_missing_is_404(self, client):
        response = client.get("/nope.m4s")
        assert response.status_code == 404
        assert response.content == b""

    def test_directory_is_404(self, client):
        assert client.get("/sub").status_code == 404

    def test_overlong_name_is_404(self, client):
        response = client.get("/" + "a" * 300)

        assert response.status_code == 404
        assert response.content == b""

    @pytest.mark.parametrize("url", [
        "/%2e%2e/secret.txt",
        "/%2e%2e/%2e%2e/%2e%2e/etc/passwd",
        "/sub/%2e%2e/%2e%2e/secret.txt",
        "/%2e%2e/root-other/leak.txt",
    ])
    def test_traversal_is_400(self, client, url):
        response = client.get(url)
        assert response.status_code == 400
        assert response.content == b""

    def test_symlink_escape_is_400(self, client, layout):
        root, secret = layout
        (root / "passwd").symlink_to(secret)

        response = client.get("/passwd")

        assert response.status_code == 400
        assert b"secret" not in response.content

    def test_other_verbs_not_served(self, client):
        assert client.post("/live.mpd").status_code == 405

    def test_worker_pool_is_bounded(self, layout):
        import anyio.to_thread

        root, _ = layout
        with TestClient(create_app(root, workers=3)) as c:
            assert c.get("/live.mpd").status_code == 200
            limiter = c.portal.call(anyio.to_thread.current_default_thread_limiter)
            assert limiter.total_tokens == 3

    def test_rejects_zero_workers(self, tmp_path):
        with pytest.raises(ValueError):
            create_app(tmp_path, workers=0)


class TestSandboxedFileServer:
    """Tests for the uvicorn-backed server."""

    def test_start_serve_stop(self, layout, free_port):
        root, _ = layout
        server = SandboxedFileServer(root, port=free_port, host="127.0.0.1")

        server.start()
        try:
            assert server.is_running
            response = httpx.get(f"http://127.0.0.1:{free_port}/live.mpd", timeout=5.0)
            assert response.status_code == 200
            assert response.content == MANIFEST
        finally:
            server.stop()

        assert not server.is_running
        with pytest.raises(httpx.TransportError):
            httpx.get(f"http://127.0.0.1:{free_port}/live.mpd", timeout=1.0)

    def test_stop_is_idempotent(self, layout, free_port):
        root, _ = layout
        server = SandboxedFileServer(root, port=free_port, host="127.0.0.1")
        server.stop()
        server.start()
        server.start()
        server.stop()
        server.stop()
        assert not server.is_running

    def test_stop_logs_no_errors(self, layout, free_port):
        root, _ = layout
        server = SandboxedFileServer(root, port=free_port, host="127.0.0.1")
        server.start()

        handler = _RecordingHandler()
        uvicorn_logger = logging.getLogger("uvicorn.error")
        uvicorn_logger.addHandler(handler)
        try:
            assert httpx.get(f"http://127.0.0.1:{free_port}/live.mpd", timeout=5.0).status_code == 200
            server.stop()
        finally:
            uvicorn_logger.removeHandler(handler)

        assert [r.getMessage() for r in handler.records if r.levelno >= logging.ERROR] == []
