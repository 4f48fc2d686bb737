"""
Transcoder Process
==================

External ffmpeg process turning the JPEG pipe into a live DASH stream.

The process reads concatenated JPEG images from the named pipe
(jpeg_pipe demuxer) and writes a manifest plus numbered segments into
the working directory. It is otherwise opaque to this package.

Stopping:
    - stop(): graceful (SIGINT), lets ffmpeg finalise the manifest
    - kill(): forced, used by cleanup
"""

import logging
import signal
import subprocess
from pathlib import Path
from typing import List, Optional, Sequence


logger = logging.getLogger(__name__)


_KILL_WAIT_SEC = 5.0

# (bitrate, height, profile) per rendition
RENDITIONS = (
    ("860k", 432, "baseline"),
    ("1850k", 540, "main"),
    ("4830k", 720, "high"),
    ("7830k", 1080, "high"),
)


def build_ffmpeg_command(
    input_path: Path,
    manifest_path: Path,
    fps: int,
    unbounded: bool,
    binary: str = "ffmpeg",
    segment_seconds: int = 2,
    window_size: int = 30,
    update_period: int = 6,
) -> List[str]:
    """
    Build the default ffmpeg DASH command line.

    Args:
        input_path: Named pipe carrying JPEG frames
        manifest_path: Output manifest
        fps: Input and output frame rate (also the keyframe interval)
        unbounded: Whether streaming has no maximum duration; segments are
            then removed when ffmpeg exits
        binary: ffmpeg executable
        segment_seconds: Target segment duration
        window_size: Segments kept in the manifest
        update_period: Manifest minimumUpdatePeriod in seconds

    Returns:
        Argument list for subprocess
    """
    command = [
        binary,
        "-hide_banner",
        "-nostdin",
        "-y",
        "-f", "jpeg_pipe",
        "-framerate", str(fps),
        "-i", str(input_path),
        "-c:v", "libx264",
        "-x264opts", f"keyint={fps}:min-keyint={fps}:no-scenecut",
        "-r", str(fps),
        "-bf", "1",
        "-b_strategy", "0",
        "-sc_threshold", "0",
        "-pix_fmt", "yuv420p",
    ]
    for _ in RENDITIONS:
        command += ["-map", "0:v:0"]
    for i, (bitrate, height, profile) in enumerate(RENDITIONS):
        command += [
            f"-b:v:{i}", bitrate,
            f"-filter:v:{i}", f"scale=-2:{height},setsar=1:1",
            f"-profile:v:{i}", profile,
        ]
    command += [
        "-f", "dash",
        "-seg_duration", str(segment_seconds),
        "-streaming", "1",
        "-window_size", str(window_size),
        "-dash_segment_type", "mp4",
        "-update_period", str(update_period),
        "-remove_at_exit", "1" if unbounded else "0",
        str(manifest_path),
    ]
    return command


def format_command(
    template: Sequence[str],
    input_path: Path,
    manifest_path: Path,
    fps: int,
    unbounded: bool,
) -> List[str]:
    """
    Expand a user supplied command template.

    Supported placeholders: {input}, {output}, {fps}, {remove_at_exit}.
    """
    values = {
        "input": str(input_path),
        "output": str(manifest_path),
        "fps": str(fps),
        "remove_at_exit": "1" if unbounded else "0",
    }
    return [part.format(**values) for part in template]


class TranscoderProcess:
    """
    Handle on the running transcoder.

    Example:
        transcoder = TranscoderProcess(build_ffmpeg_command(...))
        transcoder.start()
        ...
        transcoder.stop()
        transcoder.kill()
    """

    def __init__(self, command: Sequence[str], cwd: Optional[Path] = None) -> None:
        self.command = list(command)
        self.cwd = cwd
        self._process: Optional[subprocess.Popen] = None

    @property
    def is_running(self) -> bool:
        return self._process is not None and self._process.poll() is None

    @property
    def returncode(self) -> Optional[int]:
        if self._process is None:
            return None
        return self._process.poll()

    def start(self) -> None:
        """
        Launch the process. Output is inherited from this process.

        Raises:
            OSError: If the executable cannot be started
        """
        if self._process is not None:
            raise RuntimeError("Transcoder already started")

        logger.info(f"Starting transcoder: {' '.join(self.command)}")
        self._process = subprocess.Popen(
            self.command,
            stdin=subprocess.DEVNULL,
            cwd=self.cwd,
        )

    def stop(self) -> None:
        """Request graceful termination."""
        if not self.is_running:
            return
        logger.info("Requesting transcoder shutdown")
        try:
            self._process.send_signal(signal.SIGINT)
        except ProcessLookupError:
            pass

    def wait(self, timeout: Optional[float] = None) -> Optional[int]:
        if self._process is None:
            return None
        try:
            return self._process.wait(timeout)
        except subprocess.TimeoutExpired:
            return None

    def kill(self) -> None:
        """Force termination if still running."""
        if not self.is_running:
            return
        logger.info("Killing transcoder")
        try:
            self._process.kill()
        except ProcessLookupError:
            pass
        self.wait(_KILL_WAIT_SEC)
