"""
Rolling Buffer Tests
====================
"""

import threading

import pytest

from quickrewind.capture import RollingBuffer


class TestRollingBuffer:
    """Capacity, ordering and snapshot behaviour."""

    def test_capacity_must_be_positive(self):
        with pytest.raises(ValueError):
            RollingBuffer(capacity=0)

    def test_empty_snapshot_is_empty_list(self):
        buffer = RollingBuffer(capacity=5)
        assert buffer.snapshot() == []
        assert buffer.size == 0

    def test_keeps_most_recent_frames_oldest_first(self, frame_factory):
        """10 s at 2 FPS = 20 frames; 25 pushes keep frames 5..24."""
        buffer = RollingBuffer(capacity=10 * 2)

        for i in range(25):
            buffer.push(frame_factory(i))

        frames = buffer.snapshot()
        assert len(frames) == 20
        assert [f.sequence for f in frames] == list(range(5, 25))

    def test_push_reports_eviction(self, frame_factory):
        buffer = RollingBuffer(capacity=2)

        assert buffer.push(frame_factory(0)) is True
        assert buffer.push(frame_factory(1)) is True
        assert buffer.push(frame_factory(2)) is False
        assert buffer.dropped_count == 1
        assert buffer.total_pushed == 3

    def test_size_never_exceeds_capacity(self, frame_factory):
        buffer = RollingBuffer(capacity=7)
        for i in range(50):
            buffer.push(frame_factory(i))
            assert buffer.size <= 7

    def test_snapshot_does_not_mutate_buffer(self, frame_factory):
        buffer = RollingBuffer(capacity=5)
        for i in range(3):
            buffer.push(frame_factory(i))

        first = buffer.snapshot()
        first.clear()

        second = buffer.snapshot()
        assert len(second) == 3
        assert [f.sequence for f in second] == [0, 1, 2]

    def test_snapshot_is_decoupled_from_later_pushes(self, frame_factory):
        buffer = RollingBuffer(capacity=3)
        for i in range(3):
            buffer.push(frame_factory(i))

        snapshot = buffer.snapshot()
        buffer.push(frame_factory(3))

        assert [f.sequence for f in snapshot] == [0, 1, 2]

    def test_clear(self, frame_factory):
        buffer = RollingBuffer(capacity=3)
        buffer.push(frame_factory(0))
        buffer.push(frame_factory(1))

        assert buffer.clear() == 2
        assert buffer.size == 0

    def test_metrics(self, frame_factory):
        buffer = RollingBuffer(capacity=2)
        for i in range(3):
            buffer.push(frame_factory(i))

        assert buffer.metrics() == {
            "size": 2,
            "capacity": 2,
            "dropped_count": 1,
            "total_pushed": 3,
        }

    def test_concurrent_push_and_snapshot(self, frame_factory):
        """Snapshots taken during pushes stay bounded and in capture order."""
        buffer = RollingBuffer(capacity=16)
        frames = [frame_factory(i, width=4, height=4) for i in range(2000)]
        problems = []

        def producer():
            for frame in frames:
                buffer.push(frame)

        def consumer():
            for _ in range(300):
                snap = buffer.snapshot()
                sequences = [f.sequence for f in snap]
                if len(snap) > 16 or sequences != sorted(sequences):
                    problems.append(sequences)

        threads = [threading.Thread(target=producer), threading.Thread(target=consumer)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert problems == []
        assert [f.sequence for f in buffer.snapshot()] == list(range(1984, 2000))
