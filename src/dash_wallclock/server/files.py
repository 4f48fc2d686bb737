"""
Sandboxed File Access
=====================

Path containment and content type detection for served files.

Design Rules:
    - Both root and target are canonicalized with Path.resolve(), which
      collapses ".." and follows symlinks before the containment check
    - Containment compares path components, not string prefixes
    - Content type: extension first, then a sniff of the leading bytes
"""

import logging
import mimetypes
from pathlib import Path
from typing import Optional, Union

from dash_wallclock.errors import PathEscapesRoot


logger = logging.getLogger(__name__)


DEFAULT_CONTENT_TYPE = "application/octet-stream"

_SNIFF_BYTES = 64

# DASH artifacts are missing from most system mime tables
_DASH_TYPES = {
    ".mpd": "application/dash+xml",
    ".m4s": "video/iso.segment",
}

_types = mimetypes.MimeTypes()
for _ext, _type in _DASH_TYPES.items():
    _types.add_type(_type, _ext)


def resolve_request_path(root: Union[str, Path], request_path: str) -> Path:
    """
    Resolve an HTTP request path against the server root.

    Args:
        root: Directory files may be served from
        request_path: Decoded URL path, e.g. "/live.mpd"

    Returns:
        Canonical absolute path inside the root (may not exist)

    Raises:
        PathEscapesRoot: If the canonical path is outside the root
    """
    canonical_root = Path(root).resolve()
    relative = request_path[1:] if request_path.startswith("/") else request_path

    # An absolute remainder (e.g. "//etc/passwd") replaces the root on
    # join and is rejected by the containment check below
    resource = (canonical_root / relative).resolve()

    if resource != canonical_root and canonical_root not in resource.parents:
        raise PathEscapesRoot(request_path)

    return resource


def _sniff(head: bytes) -> Optional[str]:
    if head.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if head.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if head[4:8] in (b"ftyp", b"styp", b"moof", b"sidx"):
        return "video/mp4"
    stripped = head.lstrip(b"\xef\xbb\xbf \t\r\n")
    if stripped.startswith(b"<?xml"):
        if b"<MPD" in head:
            return _DASH_TYPES[".mpd"]
        return "application/xml"
    if stripped.startswith(b"<MPD"):
        return _DASH_TYPES[".mpd"]
    return None


def detect_content_type(path: Path) -> str:
    """
    Detect the content type of a file.

    Args:
        path: Existing regular file

    Returns:
        MIME type string
    """
    guessed, _ = _types.guess_type(path.name)
    if guessed:
        return guessed

    try:
        with path.open("rb") as f:
            head = f.read(_SNIFF_BYTES)
    except OSError as e:
        logger.debug(f"Cannot sniff {path}: {e}")
        return DEFAULT_CONTENT_TYPE

    return _sniff(head) or DEFAULT_CONTENT_TYPE
