"""
Frame Producer
==============

Free-running renderer of the clock face.

This module provides the FrameProducer class which:
    - Draws the static background and gradient once per surface
    - Fits the clock font once per run (see text_fit)
    - Renders the current wall-clock time as fast as possible
    - Encodes each render to JPEG and publishes it to SharedFrameSlot

Design Rules:
    - No backpressure: never waits for the pacer
    - A failed frame is skipped, the previous frame stays visible
    - Runs until the shared alive flag is cleared
"""

import logging
import os
import threading
import time
from datetime import datetime
from typing import Callable, Optional, Tuple

import cv2
import numpy as np

from dash_wallclock.errors import FrameRenderError
from dash_wallclock.render.layout import BLACK, WHITE, ClockLayout
from dash_wallclock.render.text_fit import FittedText, HersheyFont, fit_text
from dash_wallclock.stream.frame import Frame
from dash_wallclock.stream.slot import SharedFrameSlot


logger = logging.getLogger(__name__)


def format_wall_clock(now: datetime) -> str:
    """Format a time as HH:MM:SS.mmm."""
    return now.strftime("%H:%M:%S.") + f"{now.microsecond // 1000:03d}"


# =============================================================================
# Drawing
# =============================================================================

def create_surface(layout: ClockLayout) -> np.ndarray:
    """Allocate a black BGR surface for the layout."""
    return np.zeros((layout.height, layout.width, 3), dtype=np.uint8)


def draw_background(surface: np.ndarray, layout: ClockLayout) -> None:
    """Paint the vertical colour bands."""
    band = layout.band_width
    for i, color in enumerate(layout.palette):
        x0 = int(i * band)
        x1 = int((i + 1) * band)
        surface[:, x0:x1] = color


def draw_gradient(surface: np.ndarray, layout: ClockLayout) -> None:
    """Paint the black-to-white luminance strip."""
    x0, y0, x1, y1 = layout.gradient.to_pixels()
    x1 = min(x1, layout.width)
    y1 = min(y1, layout.height)
    if x1 <= x0 or y1 <= y0:
        return

    # Gradient spans the full surface width; the strip shows a window of it
    columns = np.arange(x0, x1, dtype=np.float32)
    ramp = (columns * 255.0 / max(layout.width - 1, 1)).astype(np.uint8)
    surface[y0:y1, x0:x1] = ramp[np.newaxis, :, np.newaxis]


def draw_clock_box(surface: np.ndarray, layout: ClockLayout) -> None:
    x0, y0, x1, y1 = layout.clock_box.to_pixels()
    surface[y0:y1, x0:x1] = BLACK


def encode_jpeg(surface: np.ndarray, quality: int) -> bytes:
    """
    Encode a BGR surface to JPEG.

    Raises:
        FrameRenderError: If OpenCV fails to encode
    """
    ok, buffer = cv2.imencode(
        ".jpg", surface, [int(cv2.IMWRITE_JPEG_QUALITY), int(quality)]
    )
    if not ok:
        raise FrameRenderError("cv2.imencode returned failure")
    return buffer.tobytes()


# =============================================================================
# Producer
# =============================================================================

class FrameProducer:
    """
    Renders clock frames in a tight loop and publishes the latest one.

    Attributes:
        frames_rendered: Frames published to the slot
        render_failures: Iterations skipped because of a failure

    Example:
        alive = threading.Event()
        alive.set()
        producer = FrameProducer(slot, alive, ClockLayout.for_size(1280, 720))
        producer.start()
        ...
        alive.clear()
        producer.join()
    """

    def __init__(
        self,
        slot: SharedFrameSlot,
        alive: threading.Event,
        layout: ClockLayout,
        font: Optional[HersheyFont] = None,
        jpeg_quality: int = 90,
        now: Callable[[], datetime] = datetime.now,
    ) -> None:
        """
        Initialize frame producer.

        Args:
            slot: Slot to publish frames into
            alive: Shared pipeline flag; the loop runs while it is set
            layout: Clock face geometry
            font: Font to draw with (default: Hershey simplex)
            jpeg_quality: JPEG quality 1-100
            now: Wall-clock time source
        """
        self._slot = slot
        self._alive = alive
        self._layout = layout
        self._font = font or HersheyFont()
        self._jpeg_quality = jpeg_quality
        self._now = now
        self._thread: Optional[threading.Thread] = None

        self.frames_rendered: int = 0
        self.render_failures: int = 0

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the producer thread."""
        if self._thread is not None:
            raise RuntimeError("FrameProducer already started")

        self._thread = threading.Thread(
            target=self.run,
            name="frame-producer",
            daemon=True,
        )
        self._thread.start()

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def prepare(self) -> Tuple[np.ndarray, FittedText]:
        """
        Build the surface with its static content and fit the clock text.

        Returns:
            (surface, fitted) tuple
        """
        surface = create_surface(self._layout)
        draw_background(surface, self._layout)
        draw_gradient(surface, self._layout)

        sample = format_wall_clock(self._now())
        fitted = fit_text(self._layout.text_area, self._font, sample)
        return surface, fitted

    def render_frame(self, surface: np.ndarray, fitted: FittedText) -> bytes:
        """Draw the current time onto the surface and encode it."""
        draw_clock_box(surface, self._layout)
        self._font.draw(surface, format_wall_clock(self._now()), fitted, WHITE)
        return encode_jpeg(surface, self._jpeg_quality)

    def run(self) -> None:
        """Render loop. Runs on the producer thread."""
        _raise_thread_priority()

        surface, fitted = self.prepare()
        logger.info(
            f"Rendering {self._layout.width}x{self._layout.height} "
            f"clock (font size {fitted.size:.1f})"
        )

        frame_id = 0
        while self._alive.is_set():
            try:
                data = self.render_frame(surface, fitted)
            except Exception as e:
                self._record_failure(e)
                continue

            frame_id += 1
            self._slot.publish(Frame(frame_id=frame_id, timestamp=time.time(), data=data))
            self.frames_rendered += 1

        logger.info(
            f"Producer stopped: frames={self.frames_rendered}, "
            f"failures={self.render_failures}"
        )

    def _record_failure(self, error: Exception) -> None:
        self.render_failures += 1
        if self.render_failures == 1:
            logger.warning(f"Frame render failed, keeping previous frame: {error}")
        else:
            logger.debug(f"Frame render failed ({self.render_failures} total): {error}")


def _raise_thread_priority() -> None:
    """Best-effort bump of the calling thread's scheduling priority."""
    if not hasattr(os, "setpriority"):
        return
    try:
        os.setpriority(os.PRIO_PROCESS, threading.get_native_id(), -10)
    except OSError as e:
        logger.debug(f"Could not raise producer priority: {e}")
