"""
Rolling Buffer
==============

Thread-safe bounded store of the most recent frames.

This module provides the RollingBuffer class, which sits between the
rolling-capture thread (single producer) and export requests (snapshot
consumers).

Design Rules:
    - Fixed capacity (drops oldest on overflow, exactly one per push)
    - Insertion order == capture order
    - Snapshots are copies; encoding never holds the buffer lock
    - Does NOT process or modify frames
"""

import logging
import threading
from collections import deque
from typing import Deque, List

from quickrewind.capture.frame import Frame


logger = logging.getLogger(__name__)


class RollingBuffer:
    """
    Thread-safe circular buffer of recent frames.

    Holds "the last N seconds" of capture. Uses a drop-oldest policy when
    full so memory stays bounded no matter how long capture runs.

    Attributes:
        capacity: Maximum number of frames retained
        dropped_count: Number of frames evicted due to overflow

    Example:
        buffer = RollingBuffer(capacity=60)

        # Producer (capture thread)
        buffer.push(frame)

        # Consumer (export)
        frames = buffer.snapshot()
    """

    def __init__(self, capacity: int) -> None:
        """
        Initialize rolling buffer.

        Args:
            capacity: Maximum frames to retain. Must be >= 1.
        """
        if capacity < 1:
            raise ValueError("capacity must be >= 1")

        self._capacity = capacity
        self._frames: Deque[Frame] = deque(maxlen=capacity)
        self._lock = threading.Lock()
        self._dropped_count: int = 0
        self._total_pushed: int = 0

    @property
    def capacity(self) -> int:
        """Maximum buffer size."""
        return self._capacity

    @property
    def size(self) -> int:
        """Current number of frames in buffer."""
        with self._lock:
            return len(self._frames)

    @property
    def dropped_count(self) -> int:
        """Number of frames evicted due to overflow."""
        return self._dropped_count

    @property
    def total_pushed(self) -> int:
        """Total frames ever pushed into buffer."""
        return self._total_pushed

    def push(self, frame: Frame) -> bool:
        """
        Add frame to buffer, evicting the oldest if full.

        Args:
            frame: Frame to add

        Returns:
            True if frame was added without evicting,
            False if the oldest frame was dropped to make room.
        """
        with self._lock:
            self._total_pushed += 1
            evicted = len(self._frames) == self._capacity
            if evicted:
                self._frames.popleft()
                self._dropped_count += 1
            self._frames.append(frame)

        return not evicted

    def snapshot(self) -> List[Frame]:
        """
        Point-in-time copy of the buffered frames, oldest first.

        An empty list means nothing has been captured yet.
        """
        with self._lock:
            return list(self._frames)

    def clear(self) -> int:
        """
        Clear all frames from buffer.

        Returns:
            Number of frames cleared.
        """
        with self._lock:
            cleared = len(self._frames)
            self._frames.clear()
        return cleared

    def metrics(self) -> dict:
        """
        Get buffer metrics for observability.

        Returns:
            Dict with size, capacity, dropped_count, total_pushed
        """
        return {
            "size": self.size,
            "capacity": self._capacity,
            "dropped_count": self._dropped_count,
            "total_pushed": self._total_pushed,
        }
