"""
Stream Module
=============

Frame hand-off and real-time pacing components.

This module provides the output side of the wall clock pipeline:
    - Frame: Immutable encoded frame (JPEG bytes + metadata)
    - SharedFrameSlot: Lock-free latest-frame mailbox
    - PacingClock: Drift-free fixed interval tick timer
    - FramePacer: Thread writing the latest frame to a sink at a fixed fps

Example:
    from dash_wallclock.stream import FramePacer, SharedFrameSlot
    
    slot = SharedFrameSlot()
    pacer = FramePacer(
        slot=slot,
        sink_opener=lambda stop: open_fifo_writer(path, stop),
        fps=30,
        max_duration=None,
        alive=alive,
    )
    pacer.start()
    pacer.join()
"""

from dash_wallclock.stream.frame import Frame
from dash_wallclock.stream.slot import SharedFrameSlot
from dash_wallclock.stream.pacer import FramePacer, PacingClock, open_fifo_writer


__all__ = [
    "Frame",
    "SharedFrameSlot",
    "FramePacer",
    "PacingClock",
    "open_fifo_writer",
]
