"""
Shared Frame Slot
=================

Single-slot mailbox between the free-running producer and the paced writer.

This module provides the SharedFrameSlot class, the ONLY state shared
between FrameProducer and FramePacer.

Design Rules:
    - Holds at most one frame (latest wins, never a queue)
    - No lock: publishing rebinds a reference to an immutable Frame
    - Readers see either the previous or the new complete frame
    - Never blocks the producer
"""

import logging
from typing import Optional

from dash_wallclock.stream.frame import Frame


logger = logging.getLogger(__name__)


class SharedFrameSlot:
    """
    Latest-frame mailbox with last-write-wins semantics.
    
    Single writer (FrameProducer), single reader (FramePacer). Multiple
    publishes between two reads are allowed; the reader only ever sees
    the most recent completed one.
    
    Example:
        slot = SharedFrameSlot()
        
        # Producer
        slot.publish(frame)
        
        # Pacer
        frame = slot.latest()
        if frame is not None:
            sink.write(frame.data)
    """
    
    def __init__(self) -> None:
        self._frame: Optional[Frame] = None
        self._total_published: int = 0
    
    @property
    def total_published(self) -> int:
        """Total frames ever published into the slot."""
        return self._total_published
    
    def publish(self, frame: Frame) -> None:
        """
        Replace the current frame.
        
        Args:
            frame: Completely encoded frame
        """
        self._frame = frame
        self._total_published += 1
    
    def latest(self) -> Optional[Frame]:
        """
        Get the most recently published frame.
        
        Returns:
            Latest frame, or None if nothing has been published yet.
        """
        return self._frame
    
    def clear(self) -> None:
        """Drop the current frame."""
        self._frame = None
    
    def metrics(self) -> dict:
        """
        Get slot metrics for observability.
        
        Returns:
            Dict with has_frame, last_frame_id, total_published
        """
        frame = self._frame
        return {
            "has_frame": frame is not None,
            "last_frame_id": frame.frame_id if frame is not None else -1,
            "total_published": self._total_published,
        }
