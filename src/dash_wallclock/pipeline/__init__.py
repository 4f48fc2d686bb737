"""
Pipeline Module
===============

Process-level orchestration of the wall clock stream.

    - WorkingDirectory: Pipe + manifest/segment layout and cleanup
    - TranscoderProcess: External ffmpeg DASH packager
    - PipelineCoordinator: Setup/teardown state machine
"""

from dash_wallclock.pipeline.workdir import WorkingDirectory
from dash_wallclock.pipeline.transcoder import TranscoderProcess, build_ffmpeg_command
from dash_wallclock.pipeline.coordinator import PipelineCoordinator, PipelineState


__all__ = [
    "WorkingDirectory",
    "TranscoderProcess",
    "build_ffmpeg_command",
    "PipelineCoordinator",
    "PipelineState",
]
