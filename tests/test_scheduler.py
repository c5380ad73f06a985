"""
Capture Scheduler Tests
=======================

These run the real capture threads against FakeGrabber. Recording uses the
maximum FPS so loops iterate quickly; FakeClock drives the recording time
ceiling.
"""

import threading
import time

import pytest

import quickrewind.capture.scheduler as scheduler_module

from quickrewind.capture import (
    ROLLING_CAPTURE_FPS,
    CaptureScheduler,
    RecordingStateError,
)
from quickrewind.config import CaptureConfig

from conftest import FakeGrabber


def _rolling_threads():
    return [t for t in threading.enumerate() if t.name == "quickrewind-rolling"]


@pytest.fixture
def grabber():
    return FakeGrabber()


@pytest.fixture
def scheduler(capture_config, grabber, fake_clock):
    scheduler = CaptureScheduler(
        capture_config,
        grabber,
        clock=fake_clock,
        settle_delay=0,
    )
    yield scheduler
    scheduler.shutdown()


class TestConstruction:

    def test_buffer_capacity_from_config(self, scheduler, capture_config):
        assert scheduler.buffer.capacity == capture_config.buffer_seconds * ROLLING_CAPTURE_FPS

    def test_session_limits_from_config(self, scheduler, capture_config):
        assert scheduler.session.fps == capture_config.recording_fps
        assert scheduler.session.max_minutes == capture_config.max_recording_minutes

    def test_initially_idle(self, scheduler):
        assert not scheduler.is_capturing
        assert not scheduler.is_active_recording
        assert scheduler.active_recording_duration_ms() == 0


class TestRollingCapture:

    def test_start_captures_frames(self, scheduler, wait_until):
        assert scheduler.start() is True
        assert scheduler.is_capturing
        assert wait_until(lambda: scheduler.buffer.size >= 1)

    def test_start_is_idempotent(self, scheduler):
        assert scheduler.start() is True
        assert scheduler.start() is False
        assert len(_rolling_threads()) == 1

    def test_stop_is_idempotent(self, scheduler):
        scheduler.start()
        scheduler.stop()
        scheduler.stop()

        assert not scheduler.is_capturing
        assert _rolling_threads() == []

    def test_stop_without_start(self, scheduler):
        scheduler.stop()
        assert not scheduler.is_capturing

    def test_restart_after_stop(self, scheduler, wait_until):
        scheduler.start()
        scheduler.stop()

        assert scheduler.start() is True
        assert wait_until(lambda: scheduler.is_capturing)

    def test_shutdown_closes_grabber(self, scheduler, grabber):
        scheduler.start()
        scheduler.shutdown()

        assert grabber.closed
        assert not scheduler.is_capturing


class TestActiveRecording:

    def test_requires_rolling_capture(self, scheduler):
        with pytest.raises(RecordingStateError):
            scheduler.start_active_recording()

    def test_records_frames(self, scheduler, wait_until):
        scheduler.start()
        scheduler.start_active_recording()

        assert scheduler.is_active_recording
        assert wait_until(lambda: scheduler.session.frame_count() >= 3)

        scheduler.stop_active_recording()
        assert not scheduler.is_active_recording
        assert scheduler.snapshot_recording()

    def test_double_start_rejected(self, scheduler):
        scheduler.start()
        scheduler.start_active_recording()

        with pytest.raises(RecordingStateError):
            scheduler.start_active_recording()

    def test_stop_without_recording_rejected(self, scheduler):
        scheduler.start()
        with pytest.raises(RecordingStateError):
            scheduler.stop_active_recording()

    def test_frames_kept_after_stop_until_cleared(self, scheduler, wait_until):
        scheduler.start()
        scheduler.start_active_recording()
        wait_until(lambda: scheduler.session.frame_count() >= 2)
        scheduler.stop_active_recording()

        count = scheduler.session.frame_count()
        assert count >= 2
        assert scheduler.clear_recording() == count
        assert scheduler.session.frame_count() == 0

    def test_no_frames_added_after_stop(self, scheduler, wait_until):
        scheduler.start()
        scheduler.start_active_recording()
        assert wait_until(lambda: scheduler.session.frame_count() >= 2)

        scheduler.stop_active_recording()
        count = scheduler.session.frame_count()
        time.sleep(0.2)

        assert scheduler.session.frame_count() == count
        assert scheduler.metrics()["recording_frames_captured"] == count

    def test_stopping_rolling_capture_stops_recording(self, scheduler):
        scheduler.start()
        scheduler.start_active_recording()

        scheduler.stop()

        assert not scheduler.is_active_recording
        assert not scheduler.is_capturing
        assert not any(t.name == "quickrewind-recording" for t in threading.enumerate())

    def test_duration_uses_clock(self, scheduler, fake_clock):
        scheduler.start()
        scheduler.start_active_recording()
        fake_clock.advance(2.5)

        assert scheduler.active_recording_duration_ms() == 2500

    def test_auto_stop_at_time_ceiling(self, capture_config, grabber, fake_clock, wait_until):
        """1 minute limit: after 61 simulated seconds the session stops itself."""
        config = capture_config.model_copy(update={"recording_fps": 10})
        auto_stopped = threading.Event()
        scheduler = CaptureScheduler(
            config,
            grabber,
            clock=fake_clock,
            settle_delay=0,
            on_auto_stop=auto_stopped.set,
        )
        try:
            scheduler.start()
            scheduler.start_active_recording()
            wait_until(lambda: scheduler.session.frame_count() >= 1)

            fake_clock.advance(61)

            assert auto_stopped.wait(timeout=5.0)
            assert not scheduler.is_active_recording
            assert scheduler.session.frame_count() <= 1 * 60 * 10
            assert scheduler.metrics()["auto_stops"] == 1
            assert scheduler.is_capturing
        finally:
            scheduler.shutdown()

    def test_can_record_again_after_auto_stop(self, scheduler, fake_clock, wait_until):
        scheduler.start()
        scheduler.start_active_recording()
        fake_clock.advance(61)
        assert wait_until(lambda: not scheduler.is_active_recording)

        scheduler.start_active_recording()
        assert scheduler.is_active_recording


class TestResilience:

    def test_transient_grab_errors_do_not_stop_capture(self, capture_config, fake_clock, wait_until):
        grabber = FakeGrabber(failures=3)
        scheduler = CaptureScheduler(capture_config, grabber, clock=fake_clock, settle_delay=0)
        try:
            scheduler.start()
            scheduler.start_active_recording()

            assert wait_until(lambda: scheduler.session.frame_count() >= 2)
            assert scheduler.metrics()["capture_errors"] == 3
            assert scheduler.is_capturing
            assert scheduler.is_active_recording
        finally:
            scheduler.shutdown()

    def test_metrics_shape(self, scheduler):
        metrics = scheduler.metrics()
        assert set(metrics) >= {
            "capturing",
            "active_recording",
            "frames_captured",
            "capture_errors",
            "buffer",
            "session_frames",
        }

    def test_counters_match_stored_frames(self, scheduler, wait_until):
        """Both loops update shared counters; totals must match what was stored."""
        scheduler.start()
        scheduler.start_active_recording()
        assert wait_until(
            lambda: scheduler.session.frame_count() >= 5 and scheduler.buffer.size >= 1
        )

        scheduler.stop()
        metrics = scheduler.metrics()

        assert metrics["frames_captured"] == scheduler.buffer.total_pushed
        assert metrics["recording_frames_captured"] == (
            scheduler.session.frame_count() + scheduler.session.trimmed_count
        )

    def test_restart_does_not_revive_a_stuck_loop(
        self, capture_config, fake_clock, wait_until, monkeypatch
    ):
        monkeypatch.setattr(scheduler_module, "THREAD_JOIN_TIMEOUT_SECONDS", 0.1)
        gate = threading.Event()
        grabber = FakeGrabber(gate=gate)
        scheduler = CaptureScheduler(capture_config, grabber, clock=fake_clock, settle_delay=0)
        try:
            scheduler.start()
            assert grabber.grabbing.wait(timeout=5.0)

            # The loop is blocked inside a grab, so the join gives up.
            scheduler.stop()
            assert len(_rolling_threads()) == 1

            assert scheduler.start() is True
            gate.set()

            assert wait_until(lambda: len(_rolling_threads()) == 1)
            assert scheduler.is_capturing
        finally:
            gate.set()
            scheduler.shutdown()


class TestSettleDelay:

    def test_frames_buffered_after_settle_delay(self, capture_config, grabber, fake_clock, wait_until):
        scheduler = CaptureScheduler(capture_config, grabber, clock=fake_clock, settle_delay=0.01)
        try:
            scheduler.start()
            assert wait_until(lambda: scheduler.buffer.size >= 1)
        finally:
            scheduler.shutdown()

    def test_stop_during_settle_delay_drops_frame(self, capture_config, grabber, fake_clock):
        scheduler = CaptureScheduler(capture_config, grabber, clock=fake_clock, settle_delay=30.0)
        try:
            scheduler.start()
            assert grabber.grabbing.wait(timeout=5.0)

            started = time.monotonic()
            scheduler.stop()

            assert time.monotonic() - started < 2.0
            assert _rolling_threads() == []
            assert scheduler.buffer.size == 0
            assert scheduler.metrics()["frames_captured"] == 0
        finally:
            scheduler.shutdown()
