"""
Frame Pacer Tests
=================

Drift-free pacing, empty ticks, duration limit, sink failures and
FIFO opening.
"""

import os
import random
import threading
import time

import pytest

from conftest import RecordingSink
from dash_wallclock.stream import Frame, FramePacer, PacingClock, SharedFrameSlot, open_fifo_writer


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def _opener(sink):
    return lambda stop: sink


class TestPacingClock:
    """Tests for PacingClock."""

    def test_interval_from_fps(self):
        assert PacingClock(25).interval == pytest.approx(0.04)

    def test_rejects_zero_fps(self):
        with pytest.raises(ValueError):
            PacingClock(0)

    def test_residual_subtracts_tick_work(self):
        clock = FakeClock()
        pacing = PacingClock(20, clock)
        pacing.start()

        pacing.begin_tick()
        clock.advance(0.015)

        assert pacing.residual() == pytest.approx(0.035)

    def test_overrun_does_not_compound(self):
        """A slow tick yields a negative residual, the next one starts fresh."""
        clock = FakeClock()
        pacing = PacingClock(20, clock)
        pacing.start()

        pacing.begin_tick()
        clock.advance(0.120)
        assert pacing.residual() < 0

        pacing.begin_tick()
        clock.advance(0.010)
        assert pacing.residual() == pytest.approx(0.040)

    def test_expired(self):
        clock = FakeClock()
        pacing = PacingClock(30, clock)
        pacing.start()

        clock.advance(2.0)
        assert not pacing.expired(2.0)
        assert not pacing.expired(None)

        clock.advance(0.01)
        assert pacing.expired(2.0)

    def test_residual_requires_tick(self):
        with pytest.raises(RuntimeError):
            PacingClock(30).residual()


class TestFramePacer:
    """Tests for FramePacer."""

    def _pacer(self, slot, sink, fps=50, max_duration=0.3):
        alive = threading.Event()
        alive.set()
        pacer = FramePacer(
            slot=slot,
            sink_opener=_opener(sink),
            fps=fps,
            max_duration=max_duration,
            alive=alive,
        )
        return pacer, alive

    def test_empty_slot_ticks_without_writing(self, recording_sink):
        pacer, alive = self._pacer(SharedFrameSlot(), recording_sink)
        pacer.start()

        assert pacer.join(5.0)
        assert pacer.ticks > 0
        assert pacer.frames_written == 0
        assert recording_sink.chunks == []
        assert recording_sink.closed
        assert not alive.is_set()

    def test_writes_complete_frames(self, recording_sink, sample_jpeg):
        slot = SharedFrameSlot()
        slot.publish(Frame(frame_id=1, timestamp=0.0, data=sample_jpeg))
        pacer, _ = self._pacer(slot, recording_sink)

        pacer.start()
        assert pacer.join(5.0)

        assert pacer.frames_written == len(recording_sink.chunks) > 0
        assert all(chunk == sample_jpeg for chunk in recording_sink.chunks)
        assert pacer.bytes_written == len(sample_jpeg) * pacer.frames_written
        assert pacer.error is None

    def test_max_duration_ends_loop(self, recording_sink):
        pacer, _ = self._pacer(SharedFrameSlot(), recording_sink, fps=100, max_duration=0.25)

        started = time.monotonic()
        pacer.start()
        assert pacer.join(5.0)
        elapsed = time.monotonic() - started

        assert 0.25 <= elapsed < 1.0

    def test_average_interval_converges(self, sample_jpeg):
        """Jittery writes do not shift the long-run cadence."""
        fps = 50
        stamps = []
        rng = random.Random(1234)

        class JitterSink(RecordingSink):
            def write(self, data):
                stamps.append(time.monotonic())
                time.sleep(rng.uniform(0.0, 0.012))
                return len(data)

        slot = SharedFrameSlot()
        slot.publish(Frame(frame_id=1, timestamp=0.0, data=sample_jpeg))
        pacer, _ = self._pacer(slot, JitterSink(), fps=fps, max_duration=1.5)

        pacer.start()
        assert pacer.join(10.0)

        assert len(stamps) > 20
        average = (stamps[-1] - stamps[0]) / (len(stamps) - 1)
        assert average == pytest.approx(1.0 / fps, rel=0.15)

    def test_sink_failure_ends_loop(self, sample_jpeg):
        class BrokenSink(RecordingSink):
            def write(self, data):
                raise BrokenPipeError("reader went away")

        slot = SharedFrameSlot()
        slot.publish(Frame(frame_id=1, timestamp=0.0, data=sample_jpeg))
        pacer, alive = self._pacer(slot, BrokenSink(), max_duration=None)

        pacer.start()
        assert pacer.join(5.0)

        assert isinstance(pacer.error, BrokenPipeError)
        assert not alive.is_set()

    def test_stop_ends_unbounded_loop(self, recording_sink):
        pacer, alive = self._pacer(SharedFrameSlot(), recording_sink, max_duration=None)
        pacer.start()
        time.sleep(0.1)
        assert pacer.is_running

        pacer.stop()

        assert pacer.join(2.0)
        assert pacer.error is None
        assert not alive.is_set()

    def test_opener_abort(self):
        alive = threading.Event()
        alive.set()
        pacer = FramePacer(
            slot=SharedFrameSlot(),
            sink_opener=lambda stop: None,
            fps=30,
            max_duration=None,
            alive=alive,
        )
        pacer.start()

        assert pacer.join(2.0)
        assert pacer.ticks == 0
        assert not alive.is_set()

    def test_start_twice_rejected(self, recording_sink):
        pacer, _ = self._pacer(SharedFrameSlot(), recording_sink, max_duration=0.05)
        pacer.start()
        with pytest.raises(RuntimeError):
            pacer.start()
        pacer.join(2.0)


class TestOpenFifoWriter:
    """Tests for open_fifo_writer."""

    def test_returns_none_without_reader(self, tmp_path):
        fifo = tmp_path / "input"
        os.mkfifo(fifo)
        stop = threading.Event()
        threading.Timer(0.2, stop.set).start()

        assert open_fifo_writer(fifo, stop) is None

    def test_writes_reach_reader(self, tmp_path):
        fifo = tmp_path / "input"
        os.mkfifo(fifo)
        received = []

        def reader():
            with open(fifo, "rb") as f:
                received.append(f.read())

        thread = threading.Thread(target=reader)
        thread.start()

        writer = open_fifo_writer(fifo, threading.Event())
        assert writer is not None
        with writer:
            writer.write(b"frame-bytes")
        thread.join(5.0)

        assert received == [b"frame-bytes"]

    def test_regular_file(self, tmp_path):
        target = tmp_path / "sink.bin"
        target.touch()

        writer = open_fifo_writer(target, threading.Event())
        with writer:
            writer.write(b"abc")

        assert target.read_bytes() == b"abc"

    def test_missing_path_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            open_fifo_writer(tmp_path / "missing", threading.Event())
