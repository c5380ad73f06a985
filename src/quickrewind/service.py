"""
QuickRewind Service
===================

Application facade over the capture scheduler and encoding pipeline.

Tray menus, hotkey listeners and the local HTTP API all drive the core
through this class:

    export_buffer()    - save the rolling buffer ("the last N seconds")
    start_recording()  - begin an active recording
    stop_recording()   - stop it and save what was recorded
    reconfigure()      - rebuild capture from new settings

Exports run on a single worker thread, so capture threads are never blocked
by encoding and exports are written one at a time. Each export ends in
exactly one user-visible notification: GIF saved, PNG sequence saved,
screenshot saved, or save failed.
"""

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional

from quickrewind.capture import (
    ROLLING_CAPTURE_FPS,
    CaptureScheduler,
    Frame,
    FrameGrabber,
    RecordingStateError,
)
from quickrewind.capture.scheduler import SETTLE_DELAY_SECONDS
from quickrewind.config import CaptureConfig
from quickrewind.encoding import (
    EncodingPipeline,
    EncodingRequest,
    sequence_dir_for,
    still_path_for,
)
from quickrewind.models.export import EncodingResult, ExportMode, ExportOutcome
from quickrewind.models.notification import Severity
from quickrewind.observability import LoggingNotifier, Notifier


logger = logging.getLogger(__name__)


FILENAME_PREFIX = "quickrewind"
TIMESTAMP_FORMAT = "%Y%m%d-%H%M%S"

MIN_RECORDING_DELAY_MS = 100
MAX_RECORDING_DELAY_MS = 1000


def buffer_delay_ms() -> int:
    """Per-frame delay for rolling-buffer exports (real-time playback)."""
    return 1000 // ROLLING_CAPTURE_FPS


def recording_delay_ms(duration_ms: int, frame_count: int) -> int:
    """
    Per-frame delay that plays a recording back at roughly real speed.

    Clamped to 100-1000 ms so very short or very sparse recordings still
    produce a watchable GIF.
    """
    if frame_count <= 0:
        return MIN_RECORDING_DELAY_MS
    delay = duration_ms // frame_count
    return max(MIN_RECORDING_DELAY_MS, min(MAX_RECORDING_DELAY_MS, delay))


class QuickRewindService:
    """
    Capture core facade.

    Attributes:
        config: Current capture settings
        scheduler: Current capture scheduler (rebuilt on reconfigure)
        pipeline: Export fallback chain
        notifier: User-facing notification sink
        last_result: Result of the most recent finished export

    Example:
        service = QuickRewindService(settings.capture, notifier=feed)
        service.start()

        future = service.export_buffer()
        if future is not None:
            result = future.result()

        service.shutdown()
    """

    def __init__(
        self,
        config: CaptureConfig,
        notifier: Optional[Notifier] = None,
        grabber_factory: Callable[[], FrameGrabber] = FrameGrabber,
        pipeline: Optional[EncodingPipeline] = None,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], datetime] = datetime.now,
        settle_delay: float = SETTLE_DELAY_SECONDS,
    ) -> None:
        """
        Initialize the service. Capture does not start until start().

        Args:
            config: Capture settings
            notifier: Notification sink (defaults to the log)
            grabber_factory: Builds a FrameGrabber per scheduler
            pipeline: Encoding pipeline (defaults to GIF -> PNGs -> PNG)
            clock: Monotonic clock for recording timing
            wall_clock: Local time source for output filenames
            settle_delay: Rolling-capture settle delay
        """
        self.config = config
        self.notifier: Notifier = notifier or LoggingNotifier()
        self.pipeline = pipeline or EncodingPipeline()
        self.last_result: Optional[EncodingResult] = None

        self._grabber_factory = grabber_factory
        self._clock = clock
        self._wall_clock = wall_clock
        self._settle_delay = settle_delay
        self._lock = threading.Lock()
        self._executor = ThreadPoolExecutor(
            max_workers=1,
            thread_name_prefix="quickrewind-export",
        )
        self._exports_completed: int = 0

        self.scheduler = self._build_scheduler(config)

    def _build_scheduler(self, config: CaptureConfig) -> CaptureScheduler:
        return CaptureScheduler(
            config,
            self._grabber_factory(),
            clock=self._clock,
            settle_delay=self._settle_delay,
            on_auto_stop=self._on_auto_stop,
        )

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(self) -> None:
        """
        Probe the display and start rolling capture.

        Raises:
            CaptureUnavailableError: If the screen cannot be captured
        """
        self.scheduler.grabber.probe()
        if self.scheduler.start():
            self.notifier.notify(
                "QuickRewind Started",
                f"Keeping the last {self.config.buffer_seconds} seconds. "
                f"Output folder: {self.config.output_folder}",
                Severity.INFO,
            )

    def shutdown(self) -> None:
        """Stop capture, finish queued exports and release the display."""
        logger.info("Shutting down QuickRewind service...")
        self.scheduler.shutdown()
        self._executor.shutdown(wait=True)
        logger.info("QuickRewind service stopped")

    def reconfigure(self, config: CaptureConfig) -> None:
        """
        Apply new capture settings by rebuilding the scheduler.

        The old scheduler (and any recording in progress) is torn down.
        Capture restarts only if it was running before.
        """
        with self._lock:
            was_capturing = self.scheduler.is_capturing
            self.scheduler.shutdown()

            self.config = config
            self.scheduler = self._build_scheduler(config)
            if was_capturing:
                self.scheduler.start()

        logger.info(f"Capture reconfigured: {config.model_dump()}")
        self.notifier.notify(
            "Settings Updated",
            f"Buffer: {config.buffer_seconds}s, Output: {config.output_folder}",
            Severity.INFO,
        )

    # =========================================================================
    # Entry points
    # =========================================================================

    def export_buffer(self) -> Optional["Future[EncodingResult]"]:
        """
        Export the rolling buffer.

        Returns:
            Future resolving to the EncodingResult, or None when the buffer
            is empty (a warning notification is sent and nothing is written).
        """
        frames = self.scheduler.snapshot_buffer()
        if not frames:
            self.notifier.notify(
                "Capture Failed",
                "No frames available in buffer",
                Severity.WARNING,
            )
            return None

        return self._dispatch(frames, ExportMode.BUFFER, buffer_delay_ms())

    def start_recording(self) -> bool:
        """
        Start an active recording.

        Returns:
            True if recording started, False if the command was rejected.
        """
        try:
            self.scheduler.start_active_recording()
        except RecordingStateError as e:
            title = "Already Recording" if self.scheduler.is_active_recording else "Recording Unavailable"
            self.notifier.notify(title, str(e), Severity.WARNING)
            return False

        self.notifier.notify(
            "Recording Started",
            "Active recording started. Stop recording to save.",
            Severity.INFO,
        )
        return True

    def stop_recording(self) -> Optional["Future[EncodingResult]"]:
        """
        Stop the active recording and export it.

        Returns:
            Future resolving to the EncodingResult, or None if no recording
            was in progress or nothing was captured.
        """
        try:
            self.scheduler.stop_active_recording()
        except RecordingStateError as e:
            self.notifier.notify("No Active Recording", str(e), Severity.WARNING)
            return None

        return self._export_recording()

    def _on_auto_stop(self) -> None:
        self.notifier.notify(
            "Recording Limit Reached",
            f"Recording stopped after {self.config.max_recording_minutes} min, saving...",
            Severity.WARNING,
        )
        self._export_recording()

    def _export_recording(self) -> Optional["Future[EncodingResult]"]:
        frames = self.scheduler.snapshot_recording()
        if not frames:
            self.notifier.notify(
                "Recording Failed",
                "No frames captured during recording",
                Severity.WARNING,
            )
            return None

        delay = recording_delay_ms(self.scheduler.active_recording_duration_ms(), len(frames))
        scheduler = self.scheduler

        def release_frames() -> None:
            # A new recording may have started while this one was encoding.
            if not scheduler.is_active_recording:
                scheduler.clear_recording()

        return self._dispatch(frames, ExportMode.RECORDING, delay, on_success=release_frames)

    # =========================================================================
    # Export worker
    # =========================================================================

    def _dispatch(
        self,
        frames: List[Frame],
        mode: ExportMode,
        delay_ms: int,
        on_success: Optional[Callable[[], None]] = None,
    ) -> "Future[EncodingResult]":
        self.notifier.notify(
            "Processing...",
            f"Creating GIF from {len(frames)} frames",
            Severity.INFO,
        )
        return self._executor.submit(self._export, frames, mode, delay_ms, on_success)

    def _export(
        self,
        frames: List[Frame],
        mode: ExportMode,
        delay_ms: int,
        on_success: Optional[Callable[[], None]],
    ) -> EncodingResult:
        target = self.target_path(mode)
        logger.info(f"Saving {mode.value} export to: {target}")

        try:
            result = self.pipeline.encode(
                EncodingRequest(frames=frames, target=target, delay_ms=delay_ms),
                mode=mode,
            )
        except Exception as e:
            logger.exception(f"Export crashed: {e}")
            result = EncodingResult(
                outcome=ExportOutcome.FAILED,
                mode=mode,
                frame_count=len(frames),
                delay_ms=delay_ms,
                errors=[str(e)],
            )

        self.last_result = result
        self._exports_completed += 1
        self._report(result)

        if result.succeeded and on_success is not None:
            on_success()

        return result

    def _report(self, result: EncodingResult) -> None:
        name = Path(result.path).name if result.path else ""

        if result.outcome == ExportOutcome.ANIMATION:
            self.notifier.notify("GIF Saved!", f"Saved: {name}", Severity.INFO)
        elif result.outcome == ExportOutcome.SEQUENCE:
            self.notifier.notify(
                "Created PNG Sequence",
                f"GIF failed, saved as PNG sequence instead: {name}",
                Severity.WARNING,
            )
        elif result.outcome == ExportOutcome.SCREENSHOT:
            self.notifier.notify(
                "Saved Screenshot",
                f"Animation failed, saved last frame as PNG: {name}",
                Severity.WARNING,
            )
        else:
            reason = result.errors[-1] if result.errors else "unknown error"
            self.notifier.notify("Save Failed", f"Error saving GIF: {reason}", Severity.ERROR)

    def target_path(self, mode: ExportMode) -> Path:
        """
        Output path for a new export: quickrewind-<mode>-<timestamp>.gif

        A -N counter is appended when an artifact with that name (or its
        sequence/still fallback) already exists.
        """
        folder = Path(self.config.output_folder)
        stamp = self._wall_clock().strftime(TIMESTAMP_FORMAT)
        base = f"{FILENAME_PREFIX}-{mode.value}-{stamp}"

        candidate = folder / f"{base}.gif"
        counter = 1
        while (
            candidate.exists()
            or sequence_dir_for(candidate).exists()
            or still_path_for(candidate).exists()
        ):
            candidate = folder / f"{base}-{counter}.gif"
            counter += 1
        return candidate

    # =========================================================================
    # Observability
    # =========================================================================

    def status(self) -> dict:
        """Snapshot of capture state and the last export."""
        scheduler = self.scheduler
        return {
            "capturing": scheduler.is_capturing,
            "active_recording": scheduler.is_active_recording,
            "recording_duration_ms": scheduler.active_recording_duration_ms(),
            "buffer_frames": scheduler.buffer.size,
            "buffer_capacity": scheduler.buffer.capacity,
            "recording_frames": scheduler.session.frame_count(),
            "exports_completed": self._exports_completed,
            "last_export": (
                self.last_result.model_dump(mode="json") if self.last_result else None
            ),
            "config": self.config.model_dump(),
        }
