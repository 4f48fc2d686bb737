"""
dash-wallclock
==============

Live MPEG-DASH wall clock test stream.

This package renders a clock face into JPEG frames, paces them into an
external ffmpeg process through a named pipe, and serves the resulting
manifest and segments over HTTP.

Components:
    - render: Clock face drawing, font fitting, free-running producer
    - stream: Latest-frame slot and fixed-rate pacer
    - pipeline: Working directory, transcoder process, coordinator
    - server: Sandboxed static file server

Example:
    from dash_wallclock.config import load_config
    from dash_wallclock.pipeline import PipelineCoordinator
    
    coordinator = PipelineCoordinator(load_config())
    coordinator.run()
"""

__version__ = "0.1.0"

__all__ = [
    "__version__",
]
