"""
Error Types
===========

Exception hierarchy shared across the wall clock pipeline.

Taxonomy:
    - SetupError: working directory or pipe cannot be prepared (fatal)
    - FrameRenderError: a single frame failed to draw or encode (skipped)
    - PathEscapesRoot: a served path resolves outside the server root (400)

Sink failures surface as the OSError raised by the write itself.
"""


class WallClockError(Exception):
    """Base class for wall clock errors."""
    pass


class SetupError(WallClockError):
    """Raised when the working directory or named pipe cannot be created."""
    pass


class FrameRenderError(WallClockError):
    """Raised when a frame cannot be encoded."""
    pass


class PathEscapesRoot(WallClockError):
    """Raised when a requested path resolves outside the server root."""
    
    def __init__(self, requested: str) -> None:
        super().__init__(f"Path escapes server root: {requested!r}")
        self.requested = requested
