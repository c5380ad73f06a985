"""
Frame Grabber
=============

Dedicated module for grabbing the primary display and downscaling it.

Design Rules:
    - This is the ONLY place in the codebase that touches the screen
    - Always returns 24-bit RGB (mss alpha channel is discarded)
    - Resampling uses smoothing interpolation (bilinear or area)
    - mss handles are per-thread: rolling capture and active recording
      grab from different threads
"""

import itertools
import logging
import threading
import time
from enum import Enum
from typing import Callable

import cv2
import mss
from mss.exception import ScreenShotError
import numpy as np

from quickrewind.capture.frame import Frame


logger = logging.getLogger(__name__)


# mss.monitors[0] is the union of all displays, [1] is the primary one.
PRIMARY_MONITOR_INDEX = 1


class CaptureUnavailableError(Exception):
    """Raised when the display cannot be captured at all."""
    pass


class ResampleQuality(str, Enum):
    """
    Interpolation hint for downscaling.

    Attributes:
        FAST: Bilinear. Cheap enough to run continuously.
        HIGH: Pixel-area averaging. Sharper text, used for bounded bursts.
    """

    FAST = "fast"
    HIGH = "high"


_INTERPOLATION = {
    ResampleQuality.FAST: cv2.INTER_LINEAR,
    ResampleQuality.HIGH: cv2.INTER_AREA,
}


class FrameGrabber:
    """
    Screen grabber for the primary display.

    Attributes:
        monitor_index: mss monitor index (1 = primary display)

    Example:
        grabber = FrameGrabber()
        grabber.probe()
        frame = grabber.capture_downscaled(0.5, ResampleQuality.FAST)
        grabber.close()
    """

    def __init__(
        self,
        monitor_index: int = PRIMARY_MONITOR_INDEX,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.monitor_index = monitor_index
        self._clock = clock
        self._local = threading.local()
        self._handles = []
        self._handles_lock = threading.Lock()
        self._sequence = itertools.count()
        self._sequence_lock = threading.Lock()

    def _sct(self):
        sct = getattr(self._local, "sct", None)
        if sct is None:
            sct = mss.mss()
            self._local.sct = sct
            with self._handles_lock:
                self._handles.append(sct)
        return sct

    def _next_sequence(self) -> int:
        with self._sequence_lock:
            return next(self._sequence)

    def probe(self) -> dict:
        """
        Verify the primary display can be captured.

        Returns:
            The mss monitor geometry dict (left, top, width, height).

        Raises:
            CaptureUnavailableError: If no display is reachable
        """
        try:
            sct = self._sct()
            monitor = sct.monitors[self.monitor_index]
            sct.grab(monitor)
        except (IndexError, ScreenShotError) as e:
            raise CaptureUnavailableError(f"Screen capture unavailable: {e}") from e

        logger.info(
            f"Capturing display {self.monitor_index}: "
            f"{monitor['width']}x{monitor['height']}"
        )
        return dict(monitor)

    def capture_full(self) -> np.ndarray:
        """
        Grab the whole primary display.

        Returns:
            RGB image as np.ndarray (H, W, 3), dtype=uint8
        """
        sct = self._sct()
        shot = sct.grab(sct.monitors[self.monitor_index])
        return np.frombuffer(shot.rgb, dtype=np.uint8).reshape(
            (shot.height, shot.width, 3)
        )

    def capture_downscaled(
        self,
        scale_factor: float,
        quality: ResampleQuality = ResampleQuality.FAST,
    ) -> Frame:
        """
        Grab the display and resample it to `scale_factor` of full size.

        Args:
            scale_factor: Target scale in (0, 1]
            quality: Interpolation hint

        Returns:
            A new Frame stamped with the next sequence number
        """
        if not 0 < scale_factor <= 1:
            raise ValueError("scale_factor must be in (0, 1]")

        timestamp = self._clock()
        full = self.capture_full()
        height, width = full.shape[:2]

        if scale_factor < 1.0:
            size = (max(1, int(width * scale_factor)), max(1, int(height * scale_factor)))
            pixels = cv2.resize(full, size, interpolation=_INTERPOLATION[quality])
        else:
            pixels = full.copy()

        return Frame(
            sequence=self._next_sequence(),
            timestamp=timestamp,
            pixels=np.ascontiguousarray(pixels, dtype=np.uint8),
        )

    def close(self) -> None:
        """Release every per-thread mss handle."""
        with self._handles_lock:
            handles, self._handles = self._handles, []
        for sct in handles:
            sct.close()
        self._local = threading.local()
