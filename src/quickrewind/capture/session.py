"""
Active Recording Session
========================

Time- and count-bounded frame store for on-demand recording.

Unlike the rolling buffer, a session keeps every frame from start to stop.
Two safety valves keep it from growing without bound:

    1. Frame-count ceiling: max_minutes * 60 * fps frames. When an insert
       goes past it, one second's worth (fps frames) of the oldest frames is
       dropped in a single batch.
    2. Time ceiling: enforced by the scheduler, which stops the session once
       duration_ms() reaches max_minutes * 60000.

The session never clears itself. Callers clear it after a successful export
so a failed export can be retried against the same frames.
"""

import logging
import threading
from typing import List, Optional

from quickrewind.capture.frame import Frame


logger = logging.getLogger(__name__)


class ActiveRecordingSession:
    """
    Accumulating frame store for one active recording.

    Attributes:
        fps: Recording frame rate (frames per second)
        max_minutes: Maximum recording length in minutes
        max_frames: Frame-count ceiling derived from fps and max_minutes
    """

    def __init__(self, fps: int, max_minutes: int) -> None:
        if fps < 1:
            raise ValueError("fps must be >= 1")
        if max_minutes < 1:
            raise ValueError("max_minutes must be >= 1")

        self.fps = fps
        self.max_minutes = max_minutes
        self.max_frames = max_minutes * 60 * fps

        self._frames: List[Frame] = []
        self._lock = threading.Lock()
        self._running: bool = False
        self._start_time: Optional[float] = None
        self._stop_time: Optional[float] = None
        self._trimmed_count: int = 0

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def max_duration_ms(self) -> int:
        return self.max_minutes * 60_000

    @property
    def trimmed_count(self) -> int:
        """Frames dropped by the frame-count safety valve."""
        return self._trimmed_count

    def start(self, now: float) -> None:
        """Reset the frame store and start timing from `now` (seconds)."""
        with self._lock:
            self._frames = []
            self._trimmed_count = 0
            self._start_time = now
            self._stop_time = None
            self._running = True

    def stop(self, now: float) -> bool:
        """
        Stop the session, freezing its duration.

        Returns:
            True if the session was running, False if already stopped.
        """
        with self._lock:
            if not self._running:
                return False
            self._running = False
            self._stop_time = now
            return True

    def add(self, frame: Frame) -> Optional[int]:
        """
        Append a frame, trimming a batch of oldest frames if over the ceiling.

        Frames offered after stop() are discarded.

        Returns:
            Number of frames trimmed by this insert (0 or fps), or None if
            the session is not running and the frame was not added.
        """
        with self._lock:
            if not self._running:
                return None
            self._frames.append(frame)
            if len(self._frames) <= self.max_frames:
                return 0

            batch = min(self.fps, len(self._frames))
            del self._frames[:batch]
            self._trimmed_count += batch

        logger.warning(
            f"Recording at frame ceiling ({self.max_frames}), "
            f"trimmed {batch} oldest frames"
        )
        return batch

    def snapshot(self) -> List[Frame]:
        """Point-in-time copy of the recorded frames, oldest first."""
        with self._lock:
            return list(self._frames)

    def clear(self) -> int:
        """Release recorded frames. Returns the number cleared."""
        with self._lock:
            cleared = len(self._frames)
            self._frames = []
        return cleared

    def frame_count(self) -> int:
        with self._lock:
            return len(self._frames)

    def duration_ms(self, now: float) -> int:
        """
        Elapsed recording time in milliseconds.

        Measured against `now` while running and frozen at the stop time
        afterwards. Zero if the session was never started.
        """
        with self._lock:
            if self._start_time is None:
                return 0
            end = now if self._running else self._stop_time
            return max(0, int((end - self._start_time) * 1000))
