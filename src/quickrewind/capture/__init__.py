"""
Capture Module
==============

Screen grabbing, frame buffering and capture scheduling.

This module provides the capture layer for QuickRewind:
    - Frame: Immutable RGB frame (internal representation)
    - FrameGrabber: mss screen grab + OpenCV downscale
    - RollingBuffer: Thread-safe bounded buffer (drops oldest on overflow)
    - ActiveRecordingSession: Bounded store for on-demand recordings
    - CaptureScheduler: Rolling capture and active recording threads

Example:
    from quickrewind.capture import CaptureScheduler, FrameGrabber

    scheduler = CaptureScheduler(settings.capture, FrameGrabber())
    scheduler.start()

    frames = scheduler.snapshot_buffer()
"""

from quickrewind.capture.frame import Frame
from quickrewind.capture.buffer import RollingBuffer
from quickrewind.capture.session import ActiveRecordingSession
from quickrewind.capture.grabber import (
    CaptureUnavailableError,
    FrameGrabber,
    ResampleQuality,
)
from quickrewind.capture.scheduler import (
    ROLLING_CAPTURE_FPS,
    CaptureScheduler,
    RecordingStateError,
)


__all__ = [
    "Frame",
    "RollingBuffer",
    "ActiveRecordingSession",
    "CaptureUnavailableError",
    "FrameGrabber",
    "ResampleQuality",
    "ROLLING_CAPTURE_FPS",
    "CaptureScheduler",
    "RecordingStateError",
]
