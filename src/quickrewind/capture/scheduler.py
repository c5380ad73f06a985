"""
Capture Scheduler
=================

Owns the two capture loops and their lifecycle.

    Idle -> RollingCapture -> RollingCapture + ActiveRecording -> Idle

Active recording is an overlay on rolling capture, never a replacement:
stopping rolling capture also stops any recording in progress, and a
recording cannot be started while the scheduler is idle.

Threads:
    - quickrewind-rolling: long-lived, lowered OS priority, fixed 2 FPS,
      pushes into the RollingBuffer
    - quickrewind-recording: on demand, normal priority, configured FPS,
      appends into the ActiveRecordingSession

Both loops pace themselves with Event.wait(), which doubles as the
cancellation token: setting the event ends the sleep immediately. Every
start creates a fresh event, so a loop that outlived its join timeout can
never be revived by a later start.

Design Rules:
    - Configuration is read once at construction. Build a new scheduler to
      apply new settings.
    - Per-iteration errors are logged and the loop keeps going
    - Nothing outside this module mutates the buffer or session
"""

import logging
import os
import sys
import threading
import time
from typing import Callable, List, Optional

from quickrewind.capture.buffer import RollingBuffer
from quickrewind.capture.frame import Frame
from quickrewind.capture.grabber import FrameGrabber, ResampleQuality
from quickrewind.capture.session import ActiveRecordingSession
from quickrewind.config import CaptureConfig


logger = logging.getLogger(__name__)


# Rolling capture rate is fixed; only active recording follows the config.
ROLLING_CAPTURE_FPS = 2

# Pause between grabbing a frame and buffering it, to spread the load.
SETTLE_DELAY_SECONDS = 0.05

THREAD_JOIN_TIMEOUT_SECONDS = 5.0

ROLLING_NICE_INCREMENT = 10


class RecordingStateError(Exception):
    """Raised when a recording command does not match the current state."""
    pass


def _lower_current_thread_priority(increment: int = ROLLING_NICE_INCREMENT) -> None:
    """Best-effort nice() for the calling thread (Linux schedules threads individually)."""
    if not sys.platform.startswith("linux"):
        return

    tid = threading.get_native_id()
    try:
        current = os.getpriority(os.PRIO_PROCESS, tid)
        os.setpriority(os.PRIO_PROCESS, tid, current + increment)
    except OSError as e:
        logger.debug(f"Could not lower rolling capture priority: {e}")


class CaptureScheduler:
    """
    Background rolling capture plus on-demand active recording.

    Attributes:
        config: Capture settings this scheduler was built from
        grabber: Screen grabber shared by both loops
        buffer: Rolling buffer (last buffer_seconds of capture)
        session: Active recording frame store

    Example:
        scheduler = CaptureScheduler(settings.capture, FrameGrabber())
        scheduler.start()

        scheduler.start_active_recording()
        ...
        scheduler.stop_active_recording()
        frames = scheduler.snapshot_recording()

        scheduler.shutdown()
    """

    def __init__(
        self,
        config: CaptureConfig,
        grabber: FrameGrabber,
        clock: Callable[[], float] = time.monotonic,
        settle_delay: float = SETTLE_DELAY_SECONDS,
        on_auto_stop: Optional[Callable[[], None]] = None,
    ) -> None:
        """
        Initialize capture scheduler.

        Args:
            config: Capture settings (buffer length, recording FPS and limit)
            grabber: FrameGrabber used by both capture loops
            clock: Monotonic clock in seconds, injectable for tests
            settle_delay: Pause between grab and buffer insert (rolling loop)
            on_auto_stop: Called from the recording thread when a recording
                hits its time ceiling
        """
        self.config = config
        self.grabber = grabber
        self.settle_delay = settle_delay
        self.on_auto_stop = on_auto_stop
        self._clock = clock

        self.buffer = RollingBuffer(capacity=config.buffer_seconds * ROLLING_CAPTURE_FPS)
        self.session = ActiveRecordingSession(
            fps=config.recording_fps,
            max_minutes=config.max_recording_minutes,
        )

        self._lock = threading.Lock()
        self._metrics_lock = threading.Lock()
        self._rolling_stop = threading.Event()
        self._recording_stop = threading.Event()
        self._rolling_thread: Optional[threading.Thread] = None
        self._recording_thread: Optional[threading.Thread] = None

        # Metrics
        self._frames_captured: int = 0
        self._recording_frames_captured: int = 0
        self._capture_errors: int = 0
        self._auto_stops: int = 0

        logger.info(
            f"CaptureScheduler initialized: buffer={config.buffer_seconds}s "
            f"({self.buffer.capacity} frames @ {ROLLING_CAPTURE_FPS} FPS), "
            f"recording={config.recording_fps} FPS, "
            f"max {config.max_recording_minutes} min"
        )

    # =========================================================================
    # Queries
    # =========================================================================

    @property
    def is_capturing(self) -> bool:
        thread = self._rolling_thread
        return thread is not None and thread.is_alive() and not self._rolling_stop.is_set()

    @property
    def is_active_recording(self) -> bool:
        return self.session.is_running

    def active_recording_duration_ms(self) -> int:
        return self.session.duration_ms(self._clock())

    def snapshot_buffer(self) -> List[Frame]:
        return self.buffer.snapshot()

    def snapshot_recording(self) -> List[Frame]:
        return self.session.snapshot()

    def clear_recording(self) -> int:
        return self.session.clear()

    # =========================================================================
    # Rolling capture lifecycle
    # =========================================================================

    def start(self) -> bool:
        """
        Start rolling capture.

        Returns:
            True if a capture thread was started, False if already capturing.
        """
        with self._lock:
            if self.is_capturing:
                return False

            self._rolling_stop = threading.Event()
            self._rolling_thread = threading.Thread(
                target=self._rolling_loop,
                args=(self._rolling_stop,),
                name="quickrewind-rolling",
            )
            self._rolling_thread.start()

        logger.info("Rolling capture started")
        return True

    def stop(self) -> None:
        """
        Stop rolling capture, and any active recording with it.

        Safe to call repeatedly.
        """
        with self._lock:
            self._rolling_stop.set()
            rolling_thread, self._rolling_thread = self._rolling_thread, None

        if self.session.is_running:
            self._end_recording(self._clock())
            logger.info("Active recording stopped with rolling capture")

        self._join(self._recording_thread)
        if rolling_thread is not None:
            self._join(rolling_thread)
            logger.info("Rolling capture stopped")

    def shutdown(self) -> None:
        """Stop all capture and release grabber resources."""
        self.stop()
        self.grabber.close()

    # =========================================================================
    # Active recording lifecycle
    # =========================================================================

    def start_active_recording(self) -> None:
        """
        Start an active recording.

        Raises:
            RecordingStateError: If already recording or not capturing
        """
        with self._lock:
            if self.session.is_running:
                raise RecordingStateError("Active recording is already in progress")
            if not self.is_capturing:
                raise RecordingStateError("Rolling capture is not running")

            # A previous auto-stopped loop may still be unwinding.
            self._join(self._recording_thread)

            self.session.start(self._clock())
            self._recording_stop = threading.Event()
            self._recording_thread = threading.Thread(
                target=self._recording_loop,
                args=(self._recording_stop,),
                name="quickrewind-recording",
            )
            self._recording_thread.start()

        logger.info(
            f"Active recording started: {self.config.recording_fps} FPS, "
            f"limit {self.config.max_recording_minutes} min"
        )

    def stop_active_recording(self) -> None:
        """
        Stop the active recording. Frames stay available until cleared.

        Raises:
            RecordingStateError: If no recording is in progress
        """
        with self._lock:
            if not self.session.is_running:
                raise RecordingStateError("No active recording in progress")
            self._end_recording(self._clock())

        self._join(self._recording_thread)
        logger.info(
            f"Active recording stopped: {self.session.frame_count()} frames, "
            f"{self.active_recording_duration_ms()} ms"
        )

    def _end_recording(self, now: float) -> bool:
        self._recording_stop.set()
        return self.session.stop(now)

    # =========================================================================
    # Capture loops
    # =========================================================================

    def _rolling_loop(self, stop_event: threading.Event) -> None:
        _lower_current_thread_priority()
        self._run_paced(
            name="rolling",
            stop_event=stop_event,
            interval=1.0 / ROLLING_CAPTURE_FPS,
            step=lambda: self._rolling_step(stop_event),
        )

    def _recording_loop(self, stop_event: threading.Event) -> None:
        self._run_paced(
            name="recording",
            stop_event=stop_event,
            interval=1.0 / self.config.recording_fps,
            step=lambda: self._recording_step(stop_event),
        )

    def _run_paced(
        self,
        name: str,
        stop_event: threading.Event,
        interval: float,
        step: Callable[[], bool],
    ) -> None:
        """
        Call `step` every `interval` seconds until it returns False or
        `stop_event` is set.
        """
        logger.debug(f"{name} loop running, interval={interval * 1000:.0f}ms")

        while not stop_event.is_set():
            started = time.monotonic()
            try:
                if not step():
                    break
            except Exception as e:
                with self._metrics_lock:
                    self._capture_errors += 1
                logger.error(f"Error capturing screen ({name}): {e}")

            elapsed = time.monotonic() - started
            stop_event.wait(max(0.0, interval - elapsed))

        logger.debug(f"{name} loop exited")

    def _rolling_step(self, stop_event: threading.Event) -> bool:
        frame = self.grabber.capture_downscaled(
            self.config.rolling_scale, ResampleQuality.FAST
        )

        # Stopped during the grab or the settle pause: drop the frame.
        if stop_event.wait(self.settle_delay):
            return False

        self.buffer.push(frame)
        with self._metrics_lock:
            self._frames_captured += 1
        return True

    def _recording_step(self, stop_event: threading.Event) -> bool:
        now = self._clock()
        if self.session.duration_ms(now) >= self.session.max_duration_ms:
            self._auto_stop(now)
            return False

        frame = self.grabber.capture_downscaled(
            self.config.recording_scale, ResampleQuality.HIGH
        )

        if stop_event.is_set() or self.session.add(frame) is None:
            return False

        with self._metrics_lock:
            self._recording_frames_captured += 1
        return True

    def _auto_stop(self, now: float) -> None:
        if not self._end_recording(now):
            return

        with self._metrics_lock:
            self._auto_stops += 1
        logger.warning(
            f"Active recording reached {self.config.max_recording_minutes} min "
            f"limit, stopped automatically ({self.session.frame_count()} frames)"
        )

        if self.on_auto_stop is not None:
            try:
                self.on_auto_stop()
            except Exception as e:
                logger.error(f"Auto-stop handler failed: {e}")

    def _join(self, thread: Optional[threading.Thread]) -> None:
        if thread is None or thread is threading.current_thread():
            return
        thread.join(timeout=THREAD_JOIN_TIMEOUT_SECONDS)
        if thread.is_alive():
            logger.warning(f"Thread {thread.name} did not exit within {THREAD_JOIN_TIMEOUT_SECONDS}s")

    # =========================================================================
    # Observability
    # =========================================================================

    def metrics(self) -> dict:
        """
        Get scheduler metrics for observability.

        Returns:
            Dict with capture state, counters, buffer and session sizes
        """
        with self._metrics_lock:
            counters = {
                "frames_captured": self._frames_captured,
                "recording_frames_captured": self._recording_frames_captured,
                "capture_errors": self._capture_errors,
                "auto_stops": self._auto_stops,
            }

        return {
            "capturing": self.is_capturing,
            "active_recording": self.is_active_recording,
            "recording_duration_ms": self.active_recording_duration_ms(),
            **counters,
            "buffer": self.buffer.metrics(),
            "session_frames": self.session.frame_count(),
            "session_trimmed": self.session.trimmed_count,
        }
