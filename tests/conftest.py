"""
Test Configuration
==================

Pytest fixtures and test helpers for dash-wallclock.
"""

import socket
import sys

import cv2
import numpy as np
import pytest

from dash_wallclock.config import Settings
from dash_wallclock.render.text_fit import FontMetrics, TextBounds


# Stand-in transcoder: writes a manifest and one segment, then drains the
# pipe until the writer closes it
FAKE_TRANSCODER = (
    "import sys, pathlib\n"
    "out = pathlib.Path(sys.argv[2])\n"
    "out.write_text('<?xml version=\"1.0\"?><MPD/>')\n"
    "(out.parent / 'chunk-stream0-00001.m4s').write_bytes(b'segment')\n"
    "with open(sys.argv[1], 'rb') as f:\n"
    "    while f.read(65536):\n"
    "        pass\n"
)


class MonoFont:
    """Fixed-pitch font: every glyph is 0.6 em wide."""

    def measure(self, text: str, size: float) -> TextBounds:
        return TextBounds(left=0.0, width=len(text) * size * 0.6)

    def metrics(self, size: float) -> FontMetrics:
        return FontMetrics(ascent=size * 0.8, descent=size * 0.2)


class RecordingSink:
    """Writable binary sink keeping every write."""

    def __init__(self) -> None:
        self.chunks = []
        self.closed = False

    def write(self, data: bytes) -> int:
        self.chunks.append(bytes(data))
        return len(data)

    def flush(self) -> None:
        pass

    def close(self) -> None:
        self.closed = True


def encode_test_jpeg(value: int, width: int = 64, height: int = 48) -> bytes:
    image = np.full((height, width, 3), value, dtype=np.uint8)
    ok, buffer = cv2.imencode(".jpg", image)
    assert ok
    return buffer.tobytes()


@pytest.fixture
def mono_font():
    """Provide a deterministic fixed-pitch font."""
    return MonoFont()


@pytest.fixture
def recording_sink():
    """Provide an in-memory sink."""
    return RecordingSink()


@pytest.fixture
def sample_jpeg():
    """Provide a small valid JPEG payload."""
    return encode_test_jpeg(128)


@pytest.fixture
def free_port():
    """Provide a TCP port that is free right now."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


@pytest.fixture
def transcoder_command():
    """Provide a command template running the stand-in transcoder."""
    return [sys.executable, "-c", FAKE_TRANSCODER, "{input}", "{output}"]


@pytest.fixture
def make_settings(tmp_path, transcoder_command):
    """Build small, fast settings pointing at a fake transcoder."""
    def _make(**overrides) -> Settings:
        data = {
            "video": {"width": 320, "height": 180, "fps": 30},
            "stream": {
                "output_dir": str(tmp_path / "work"),
                "max_duration_seconds": overrides.pop("max_duration", None),
            },
            "transcoder": {
                "command": transcoder_command,
            },
            "server": {
                "host": "127.0.0.1",
                "port": overrides.pop("port", None),
            },
        }
        for section, values in overrides.items():
            data.setdefault(section, {}).update(values)
        return Settings.model_validate(data)

    return _make
