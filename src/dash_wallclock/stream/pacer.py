"""
Frame Pacer
===========

Writes the latest frame to the output sink at a fixed frame rate.

This module provides:
    - PacingClock: fixed interval timer that sleeps only the residual of
      each tick, so slow ticks never compound into later ones
    - FramePacer: dedicated thread reading SharedFrameSlot once per tick
      and writing it synchronously to the sink
    - open_fifo_writer: opens a named pipe for writing without blocking
      forever when no reader is attached

Design Rules:
    - Never waits for a first frame (empty ticks are skipped)
    - The sleep is the only intentional suspension point
    - A write failure ends the loop; it is the normal shutdown path when
      the transcoder goes away
    - On exit the shared alive flag is cleared so the producer stops
"""

import errno
import logging
import os
import threading
import time
from typing import BinaryIO, Callable, Optional

from dash_wallclock.stream.slot import SharedFrameSlot


logger = logging.getLogger(__name__)


SinkOpener = Callable[[threading.Event], Optional[BinaryIO]]

# Poll period while waiting for a FIFO reader
_FIFO_OPEN_POLL_SEC = 0.05


def open_fifo_writer(
    path: os.PathLike,
    stop_event: threading.Event,
) -> Optional[BinaryIO]:
    """
    Open a named pipe for writing, waiting for a reader to attach.

    A plain blocking open() on a FIFO hangs until the other end is opened,
    which would make the pacer impossible to stop if the transcoder never
    starts. The pipe is opened non-blocking and retried until a reader
    exists, then switched back to blocking mode.

    Args:
        path: FIFO (or regular file) path
        stop_event: Aborts the wait when set

    Returns:
        Buffered binary writer, or None if stopped before a reader appeared.

    Raises:
        OSError: If the path cannot be opened for another reason
    """
    while not stop_event.is_set():
        try:
            fd = os.open(path, os.O_WRONLY | os.O_NONBLOCK)
        except OSError as e:
            if e.errno != errno.ENXIO:
                raise
            stop_event.wait(_FIFO_OPEN_POLL_SEC)
            continue

        os.set_blocking(fd, True)
        return os.fdopen(fd, "wb")

    return None


class PacingClock:
    """
    Fixed interval tick timer with per-tick drift correction.

    Each tick measures its own elapsed time and only the residual of the
    target interval is slept. A tick that overruns gets a residual <= 0
    and the next tick starts immediately without carrying the deficit.

    Attributes:
        interval: Target seconds between ticks (1 / fps)
    """

    def __init__(
        self,
        fps: int,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize pacing clock.

        Args:
            fps: Target frames per second. Must be >= 1.
            clock: Monotonic time source in seconds
        """
        if fps < 1:
            raise ValueError("fps must be >= 1")

        self.fps = fps
        self.interval = 1.0 / fps
        self._clock = clock
        self._started_at: Optional[float] = None
        self._tick_started_at: Optional[float] = None

    def start(self) -> float:
        """Start the total duration timer."""
        self._started_at = self._clock()
        self._tick_started_at = self._started_at
        return self._started_at

    def begin_tick(self) -> float:
        """Record the start of a tick."""
        self._tick_started_at = self._clock()
        return self._tick_started_at

    def residual(self) -> float:
        """
        Seconds left in the current tick.

        Returns:
            Target interval minus time spent in this tick. Zero or negative
            when the tick already overran.
        """
        if self._tick_started_at is None:
            raise RuntimeError("begin_tick() has not been called")
        return self.interval - (self._clock() - self._tick_started_at)

    def elapsed(self) -> float:
        """Seconds since start()."""
        if self._started_at is None:
            return 0.0
        return self._clock() - self._started_at

    def expired(self, max_duration: Optional[float]) -> bool:
        """
        Check whether the streaming duration has been exceeded.

        Args:
            max_duration: Maximum seconds, or None for unbounded
        """
        if max_duration is None:
            return False
        return self.elapsed() > max_duration


class FramePacer:
    """
    Rate-limited writer of the latest frame.

    Runs on its own thread. Every tick it writes the slot's current frame
    (if any) to the sink, then sleeps the residual of the interval.

    Attributes:
        error: Sink failure that ended the loop, if any
        ticks: Number of completed ticks
        frames_written: Number of frames written to the sink
        finished: Event set once the loop has exited

    Example:
        alive = threading.Event()
        alive.set()
        pacer = FramePacer(slot, opener, fps=30, max_duration=2.0, alive=alive)
        pacer.start()
        pacer.join()
        if pacer.error:
            logger.info(f"Sink closed: {pacer.error}")
    """

    def __init__(
        self,
        slot: SharedFrameSlot,
        sink_opener: SinkOpener,
        fps: int,
        max_duration: Optional[float],
        alive: threading.Event,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize frame pacer.

        Args:
            slot: Slot to read frames from
            sink_opener: Called on the pacer thread with the stop event;
                returns a writable binary stream or None to abort
            fps: Target frames per second
            max_duration: Stop after this many seconds (None = unbounded)
            alive: Shared pipeline flag, cleared when the pacer exits
            clock: Monotonic time source in seconds
        """
        self._slot = slot
        self._sink_opener = sink_opener
        self._max_duration = max_duration
        self._alive = alive
        self._clock = PacingClock(fps, clock)
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

        self.finished = threading.Event()
        self.error: Optional[BaseException] = None
        self.ticks: int = 0
        self.frames_written: int = 0
        self.bytes_written: int = 0

    @property
    def interval(self) -> float:
        """Target seconds between writes."""
        return self._clock.interval

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the pacer thread."""
        if self._thread is not None:
            raise RuntimeError("FramePacer already started")

        self._thread = threading.Thread(
            target=self.run,
            name="frame-pacer",
            daemon=True,
        )
        self._thread.start()

    def stop(self) -> None:
        """Request the loop to end at the next tick boundary."""
        self._stop_event.set()

    def join(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for the pacer to finish.

        Returns:
            True if the pacer has finished.
        """
        if self._thread is not None:
            self._thread.join(timeout)
        return self.finished.is_set()

    def run(self) -> None:
        """Pacing loop. Runs on the pacer thread."""
        sink: Optional[BinaryIO] = None
        try:
            sink = self._sink_opener(self._stop_event)
            if sink is None:
                logger.info("Pacer stopped before the sink was opened")
                return

            logger.info(
                f"Pacing at {self._clock.fps} fps "
                f"(interval={self._clock.interval * 1000:.1f}ms, "
                f"max_duration={self._max_duration})"
            )
            self._loop(sink)

        except OSError as e:
            self.error = e
            logger.info(f"Sink closed, ending pacing: {e}")
        finally:
            if sink is not None:
                self._close_sink(sink)
            self._alive.clear()
            self.finished.set()
            logger.info(
                f"Pacer finished: ticks={self.ticks}, "
                f"frames_written={self.frames_written}, "
                f"bytes_written={self.bytes_written}, "
                f"elapsed={self._clock.elapsed():.2f}s"
            )

    def _loop(self, sink: BinaryIO) -> None:
        self._clock.start()
        while not self._stop_event.is_set():
            self._clock.begin_tick()

            frame = self._slot.latest()
            if frame is not None:
                sink.write(frame.data)
                sink.flush()
                self.frames_written += 1
                self.bytes_written += len(frame.data)

            residual = self._clock.residual()
            if residual > 0:
                self._stop_event.wait(residual)

            self.ticks += 1

            if self._clock.expired(self._max_duration):
                logger.info(
                    f"Max streaming duration reached ({self._max_duration}s)"
                )
                break

    def _close_sink(self, sink: BinaryIO) -> None:
        try:
            sink.close()
        except OSError as e:
            # Flushing into a pipe whose reader is gone
            logger.debug(f"Error closing sink: {e}")
