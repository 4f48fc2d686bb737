"""
Frame Data Model
=================

Encoded frame representation shared between the producer and the pacer.

Design Rules:
    - Immutable: a published frame never changes
    - Holds one complete, self-delimiting JPEG payload
    - Does NOT decode image data
"""

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Frame:
    """
    One compressed snapshot of the rendered clock.
    
    Attributes:
        frame_id: Monotonically increasing render counter
        timestamp: UNIX timestamp when the frame was encoded
        data: Complete JPEG bytes
    """
    
    frame_id: int
    timestamp: float
    data: bytes
    
    @property
    def size(self) -> int:
        """Encoded payload length in bytes."""
        return len(self.data)
    
    def __repr__(self) -> str:
        """Compact repr that doesn't dump the full image."""
        return (
            f"Frame(frame_id={self.frame_id}, "
            f"timestamp={self.timestamp:.3f}, "
            f"size={len(self.data)})"
        )
