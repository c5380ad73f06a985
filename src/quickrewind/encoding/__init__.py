"""
Encoding Module
===============

Frame-to-artifact export with cascading fallback.

This module provides:
    - EncodingRequest: Frames + target path + per-frame delay
    - EncodingPipeline: Ordered fallback chain runner
    - AnimatedGifStage / ImageSequenceStage / SingleStillStage

Nothing here touches capture state; the pipeline only sees snapshots.
"""

from quickrewind.encoding.request import EncodingRequest
from quickrewind.encoding.stages import (
    AnimatedGifStage,
    EncoderStage,
    ImageSequenceStage,
    SingleStillStage,
    StageResult,
    default_stages,
    sequence_dir_for,
    still_path_for,
)
from quickrewind.encoding.pipeline import EmptyFramesError, EncodingPipeline

__all__ = [
    "EncodingRequest",
    "EncodingPipeline",
    "EmptyFramesError",
    "EncoderStage",
    "StageResult",
    "AnimatedGifStage",
    "ImageSequenceStage",
    "SingleStillStage",
    "default_stages",
    "sequence_dir_for",
    "still_path_for",
]
