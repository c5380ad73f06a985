"""
Encoding Pipeline
=================

Runs an EncodingRequest through an ordered fallback chain of stages and
reports which one succeeded.

A stage failure never aborts the export; the next stage is tried. Only when
every stage fails is the result FAILED, and in that case no files are left
behind because each stage cleans up after itself.
"""

import logging
import time
from typing import List, Optional, Sequence

from quickrewind.encoding.request import EncodingRequest
from quickrewind.encoding.stages import EncoderStage, default_stages
from quickrewind.models.export import EncodingResult, ExportMode, ExportOutcome


logger = logging.getLogger(__name__)


class EmptyFramesError(ValueError):
    """Raised when an export is requested with zero frames."""
    pass


class EncodingPipeline:
    """
    Ordered fallback chain of encoder stages.

    Attributes:
        stages: Stages in attempt order

    Example:
        pipeline = EncodingPipeline()
        result = pipeline.encode(EncodingRequest(frames, target, delay_ms=500))
        if result.degraded:
            warn_user(result.outcome)
    """

    def __init__(self, stages: Optional[Sequence[EncoderStage]] = None) -> None:
        self.stages: List[EncoderStage] = (
            list(stages) if stages is not None else default_stages()
        )
        if not self.stages:
            raise ValueError("EncodingPipeline needs at least one stage")

    def encode(
        self,
        request: EncodingRequest,
        mode: Optional[ExportMode] = None,
    ) -> EncodingResult:
        """
        Encode `request`, falling back stage by stage.

        Args:
            request: Frames, target path and delay
            mode: Frame source, carried through to the result

        Returns:
            EncodingResult tagged with the stage that succeeded, or FAILED

        Raises:
            EmptyFramesError: If the request has no frames
        """
        if not request.frames:
            raise EmptyFramesError("No frames to encode")

        errors: List[str] = []

        try:
            request.target.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error(f"Cannot create output folder {request.target.parent}: {e}")
            errors.append(f"output folder: {e}")
            return self._result(ExportOutcome.FAILED, None, request, mode, errors)

        for stage in self.stages:
            started = time.time()
            stage_result = stage.encode(request)
            elapsed_ms = (time.time() - started) * 1000

            if stage_result.ok:
                logger.info(
                    f"Export via {stage.name} stage in {elapsed_ms:.0f}ms: "
                    f"{stage_result.path}"
                )
                return self._result(
                    stage.outcome, str(stage_result.path), request, mode, errors
                )

            errors.append(f"{stage.name}: {stage_result.error}")

        logger.error(f"All encoding stages failed for {request.target.name}: {errors}")
        return self._result(ExportOutcome.FAILED, None, request, mode, errors)

    @staticmethod
    def _result(
        outcome: ExportOutcome,
        path: Optional[str],
        request: EncodingRequest,
        mode: Optional[ExportMode],
        errors: List[str],
    ) -> EncodingResult:
        return EncodingResult(
            outcome=outcome,
            path=path,
            mode=mode,
            frame_count=len(request.frames),
            delay_ms=request.delay_ms,
            errors=errors,
        )
