"""
Pipeline Coordinator
====================

Owns setup and teardown ordering for the streaming pipeline.

State machine:
    IDLE -> PREPARED -> STREAMING -> DRAINING -> STOPPED

    IDLE -> PREPARED       working directory and pipe created, cleanup
                           finalizer registered
    PREPARED -> STREAMING  file server (if a port is set), transcoder,
                           producer and pacer started
    STREAMING -> DRAINING  pacer finished (duration, sink failure or stop)
    DRAINING -> STOPPED    bounded runs stop the transcoder gracefully;
                           runs without a server clean up immediately,
                           otherwise the server keeps serving

Design Rules:
    - clean_up() is idempotent and never raises; it may run from the
      normal flow, a signal handler and atexit
    - Setup failures raise SetupError before any thread starts
"""

import atexit
import logging
import threading
from enum import Enum
from typing import List, Optional

from dash_wallclock.config import Settings
from dash_wallclock.errors import SetupError
from dash_wallclock.pipeline.transcoder import (
    TranscoderProcess,
    build_ffmpeg_command,
    format_command,
)
from dash_wallclock.pipeline.workdir import WorkingDirectory
from dash_wallclock.render.layout import ClockLayout
from dash_wallclock.render.producer import FrameProducer
from dash_wallclock.server.server import SandboxedFileServer
from dash_wallclock.stream.pacer import FramePacer, open_fifo_writer
from dash_wallclock.stream.slot import SharedFrameSlot


logger = logging.getLogger(__name__)


_JOIN_POLL_SEC = 0.5
_PRODUCER_JOIN_SEC = 2.0


class PipelineState(str, Enum):
    """Lifecycle states of the pipeline."""

    IDLE = "IDLE"
    PREPARED = "PREPARED"
    STREAMING = "STREAMING"
    DRAINING = "DRAINING"
    STOPPED = "STOPPED"


class PipelineCoordinator:
    """
    Runs the wall clock pipeline from setup to teardown.

    Example:
        coordinator = PipelineCoordinator(settings)
        coordinator.run()
        if coordinator.serving:
            ...  # keep serving the last artifacts
        coordinator.clean_up()
    """

    def __init__(self, settings: Settings, install_finalizer: bool = True) -> None:
        """
        Initialize coordinator.

        Args:
            settings: Loaded configuration
            install_finalizer: Register clean_up() with atexit on prepare()
        """
        self.settings = settings
        self.install_finalizer = install_finalizer

        self.workdir = WorkingDirectory(settings.stream.output_dir)
        self.slot = SharedFrameSlot()
        self.alive = threading.Event()

        self.server: Optional[SandboxedFileServer] = None
        self.transcoder: Optional[TranscoderProcess] = None
        self.producer: Optional[FrameProducer] = None
        self.pacer: Optional[FramePacer] = None

        self._state = PipelineState.IDLE
        self._stop_requested = threading.Event()
        self._cleanup_lock = threading.Lock()
        self._cleaned_up = False

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def max_duration(self) -> Optional[float]:
        return self.settings.stream.max_duration_seconds

    @property
    def port(self) -> Optional[int]:
        return self.settings.server.port

    @property
    def serving(self) -> bool:
        """Whether the file server is still up."""
        return self.server is not None and self.server.is_running

    def _set_state(self, state: PipelineState) -> None:
        logger.info(f"Pipeline {self._state.value} -> {state.value}")
        self._state = state

    def _expect(self, state: PipelineState) -> None:
        if self._state != state:
            raise RuntimeError(
                f"Pipeline is {self._state.value}, expected {state.value}"
            )

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def run(self) -> None:
        """Run the whole pipeline until pacing ends."""
        self.prepare()
        self.start()
        self.wait()
        self.finish()

    def prepare(self) -> None:
        """
        Create the working directory and named pipe.

        Raises:
            SetupError: If the filesystem layout cannot be created
        """
        self._expect(PipelineState.IDLE)
        self.workdir.prepare()
        if self.install_finalizer:
            atexit.register(self.clean_up)
        self._set_state(PipelineState.PREPARED)

    def start(self) -> None:
        """
        Start the server, transcoder, producer and pacer.

        Raises:
            SetupError: If the server or the transcoder cannot be started
        """
        self._expect(PipelineState.PREPARED)
        video = self.settings.video

        if self.port is not None:
            self.server = SandboxedFileServer(
                root=self.workdir.path,
                port=self.port,
                host=self.settings.server.host,
                workers=self.settings.server.workers,
            )
            try:
                self.server.start()
            except RuntimeError as e:
                raise SetupError(str(e)) from e

        self.transcoder = TranscoderProcess(self._transcoder_command())
        try:
            self.transcoder.start()
        except OSError as e:
            raise SetupError(f"Cannot start transcoder: {e}") from e

        self.alive.set()

        self.producer = FrameProducer(
            slot=self.slot,
            alive=self.alive,
            layout=ClockLayout.for_size(video.width, video.height),
            jpeg_quality=video.jpeg_quality,
        )
        self.producer.start()

        input_path = self.workdir.input_path
        self.pacer = FramePacer(
            slot=self.slot,
            sink_opener=lambda stop: open_fifo_writer(input_path, stop),
            fps=video.fps,
            max_duration=self.max_duration,
            alive=self.alive,
        )
        self.pacer.start()
        if self._stop_requested.is_set():
            self.pacer.stop()

        self._set_state(PipelineState.STREAMING)

    def wait(self) -> None:
        """Block until the pacer finishes, then stop the producer."""
        self._expect(PipelineState.STREAMING)

        while not self.pacer.join(_JOIN_POLL_SEC):
            if self.transcoder is not None and not self.transcoder.is_running:
                logger.warning(
                    f"Transcoder exited with code {self.transcoder.returncode}"
                )
                self.pacer.stop()

        self.alive.clear()
        self.producer.join(_PRODUCER_JOIN_SEC)
        logger.info(f"Frame slot at drain: {self.slot.metrics()}")
        self.slot.clear()

        if self.pacer.error is not None:
            logger.info(f"Pacing ended by sink failure: {self.pacer.error}")

        self._set_state(PipelineState.DRAINING)

    def finish(self) -> None:
        """Stop the transcoder and clean up according to configuration."""
        self._expect(PipelineState.DRAINING)

        if self.max_duration is not None:
            if self.transcoder is not None:
                self.transcoder.stop()
            self.workdir.remove_pipe()

        if self.port is None:
            self.clean_up()

        self._set_state(PipelineState.STOPPED)

    def stop(self) -> None:
        """External stop request; safe to call from a signal handler."""
        self._stop_requested.set()
        if self.pacer is not None:
            self.pacer.stop()
        self.alive.clear()

    def clean_up(self) -> None:
        """
        Tear everything down.

        Stops the server, kills the transcoder, removes the pipe and all
        manifest/segment files. Runs once; later calls are no-ops. Never
        raises.
        """
        with self._cleanup_lock:
            if self._cleaned_up:
                return
            self._cleaned_up = True

        logger.info("Cleaning up pipeline")
        self.stop()

        if self.server is not None:
            try:
                self.server.stop()
            except Exception as e:
                logger.warning(f"Error stopping file server: {e}")

        if self.transcoder is not None:
            try:
                self.transcoder.kill()
            except Exception as e:
                logger.warning(f"Error killing transcoder: {e}")

        try:
            self.workdir.remove_pipe()
            removed = self.workdir.remove_artifacts()
            logger.info(f"Removed {removed} artifacts from {self.workdir.path}")
        except Exception as e:
            logger.warning(f"Error removing artifacts: {e}")

    def _transcoder_command(self) -> List[str]:
        cfg = self.settings.transcoder
        unbounded = self.max_duration is None
        if cfg.command:
            return format_command(
                cfg.command,
                self.workdir.input_path,
                self.workdir.manifest_path,
                self.settings.video.fps,
                unbounded,
            )
        return build_ffmpeg_command(
            self.workdir.input_path,
            self.workdir.manifest_path,
            fps=self.settings.video.fps,
            unbounded=unbounded,
            binary=cfg.binary,
            segment_seconds=cfg.segment_seconds,
            window_size=cfg.window_size,
            update_period=cfg.update_period,
        )
