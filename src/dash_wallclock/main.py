"""
dash-wallclock Command Line
===========================

Entry point for the wall clock streamer.

Usage:
    wallclock -d ./tmp
    wallclock -d ./tmp -fps 25 -msd 60 -p 8080
    python -m dash_wallclock -d ./tmp -c config.yaml

Exit codes:
    0 - streaming ended (duration reached, transcoder gone or stopped)
    1 - setup failure (working directory, pipe, server or transcoder)
    2 - invalid command line
"""

import argparse
import logging
import signal
import sys
import threading
from typing import List, Optional

from pydantic import ValidationError

from dash_wallclock import __version__
from dash_wallclock.config import DISABLED, Settings, load_config, setup_logging
from dash_wallclock.errors import SetupError
from dash_wallclock.pipeline.coordinator import PipelineCoordinator


logger = logging.getLogger(__name__)


_SERVE_POLL_SEC = 0.5


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="wallclock",
        description="Stream a live wall clock as MPEG-DASH.",
    )
    parser.add_argument("-v", "--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-vw", "--video-width", type=int, help="video width [default: 1920]")
    parser.add_argument("-vh", "--video-height", type=int, help="video height [default: 1080]")
    parser.add_argument("-fps", "--frames-per-second", type=int, help="video frames per second [default: 30]")
    parser.add_argument(
        "-msd", "--max-streaming-duration", type=float,
        help="end streaming after x secs [default: -1]",
    )
    parser.add_argument("-p", "--port", type=int, help="enable streaming on port [default: -1]")
    parser.add_argument("-d", "--output-dir", required=True, help="output directory")
    parser.add_argument("-c", "--config", help="path to config.yaml")
    return parser


def apply_cli_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    """Return settings with command line values applied on top."""
    data = settings.model_dump()

    if args.video_width is not None:
        data["video"]["width"] = args.video_width
    if args.video_height is not None:
        data["video"]["height"] = args.video_height
    if args.frames_per_second is not None:
        data["video"]["fps"] = args.frames_per_second
    if args.max_streaming_duration is not None:
        data["stream"]["max_duration_seconds"] = args.max_streaming_duration
    if args.port is not None:
        data["server"]["port"] = args.port
    data["stream"]["output_dir"] = args.output_dir

    return Settings.model_validate(data)


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = apply_cli_overrides(load_config(args.config), args)
    except ValidationError as e:
        parser.error(str(e))

    setup_logging(settings)
    logger.info(
        f"Starting wall clock: {settings.video.width}x{settings.video.height}"
        f"@{settings.video.fps}, max_duration={settings.stream.max_duration_seconds}, "
        f"port={settings.server.port if settings.server.port else DISABLED}, "
        f"dir={settings.stream.output_dir}"
    )

    coordinator = PipelineCoordinator(settings)
    shutdown = threading.Event()

    def _handle_signal(signum, frame):
        logger.info(f"Received {signal.Signals(signum).name}, stopping...")
        shutdown.set()
        coordinator.stop()

    signal.signal(signal.SIGTERM, _handle_signal)
    signal.signal(signal.SIGINT, _handle_signal)

    try:
        coordinator.run()
    except SetupError as e:
        print(f"error: {e}", file=sys.stderr)
        coordinator.clean_up()
        return 1

    if coordinator.serving:
        logger.info("Streaming finished, serving last artifacts until stopped")
        while not shutdown.wait(_SERVE_POLL_SEC):
            pass

    coordinator.clean_up()
    return 0


if __name__ == "__main__":
    sys.exit(main())
