"""
Test Configuration
==================

Pytest fixtures and test doubles for QuickRewind.

Capture never touches a real display here: FakeGrabber produces synthetic
RGB frames, and FakeClock lets tests move time forward instantly.
"""

import threading
import time
from datetime import datetime
from typing import Optional

import numpy as np
import pytest

from quickrewind.capture import Frame, FrameGrabber
from quickrewind.config import CaptureConfig
from quickrewind.encoding import AnimatedGifStage, ImageSequenceStage


def make_frame(sequence: int, width: int = 32, height: int = 24) -> Frame:
    """Synthetic frame whose pixels differ for every sequence number."""
    ys, xs = np.mgrid[0:height, 0:width]
    pixels = np.empty((height, width, 3), dtype=np.uint8)
    pixels[..., 0] = (xs * 7 + sequence * 37) % 256
    pixels[..., 1] = (ys * 11 + sequence * 13) % 256
    pixels[..., 2] = (xs + ys + sequence * 53) % 256
    return Frame(sequence=sequence, timestamp=float(sequence), pixels=pixels)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self._now = start
        self._lock = threading.Lock()

    def __call__(self) -> float:
        with self._lock:
            return self._now

    def advance(self, seconds: float) -> None:
        with self._lock:
            self._now += seconds


class FakeGrabber(FrameGrabber):
    """FrameGrabber that renders synthetic screens instead of grabbing."""

    def __init__(
        self,
        width: int = 64,
        height: int = 48,
        failures: int = 0,
        gate: Optional[threading.Event] = None,
    ) -> None:
        super().__init__()
        self.gate = gate
        self.grabbing = threading.Event()
        self.width = width
        self.height = height
        self.failures = failures
        self.calls = 0
        self.probe_calls = 0
        self.closed = False
        self._calls_lock = threading.Lock()

    def probe(self) -> dict:
        self.probe_calls += 1
        return {"left": 0, "top": 0, "width": self.width, "height": self.height}

    def capture_full(self) -> np.ndarray:
        self.grabbing.set()
        if self.gate is not None:
            self.gate.wait()
        with self._calls_lock:
            self.calls += 1
            call = self.calls
            if self.failures > 0:
                self.failures -= 1
                raise RuntimeError("simulated transient grab failure")
        return make_frame(call, self.width, self.height).pixels.copy()

    def close(self) -> None:
        self.closed = True


class BrokenGifStage(AnimatedGifStage):
    """Animated stage that always fails, to force the fallback chain."""

    def _write(self, request):
        raise RuntimeError("simulated GIF encoder failure")


class BrokenSequenceStage(ImageSequenceStage):
    """Sequence stage that fails after writing some frames."""

    def _write_manifest(self, directory, request):
        raise OSError("simulated disk full")


@pytest.fixture
def frame_factory():
    """Provide the synthetic frame builder."""
    return make_frame


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def output_dir(tmp_path):
    path = tmp_path / "out"
    path.mkdir()
    return path


@pytest.fixture
def capture_config(output_dir):
    """Small, fast capture settings writing into a temp folder."""
    return CaptureConfig(
        output_folder=str(output_dir),
        buffer_seconds=10,
        recording_fps=30,
        max_recording_minutes=1,
    )


@pytest.fixture
def fixed_now():
    return datetime(2026, 10, 18, 10, 15, 0)


@pytest.fixture
def wait_until():
    """Poll a predicate until it is true or the timeout expires."""

    def _wait(predicate, timeout: float = 5.0, interval: float = 0.02) -> bool:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if predicate():
                return True
            time.sleep(interval)
        return predicate()

    return _wait
