"""
Export Models
=============

Outcome contract for one export attempt.

Every export ends in exactly one of four outcomes. Only ANIMATION is the
intended result; SEQUENCE and SCREENSHOT are degraded fallbacks that
callers must surface as such.

Output Contract:
    {
        "outcome": "sequence",
        "path": "/home/me/QuickRewind/quickrewind-buffer-20260118-101500_sequence",
        "mode": "buffer",
        "frame_count": 60,
        "delay_ms": 500,
        "errors": ["animation: cannot write mode RGB as GIF"]
    }
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class ExportOutcome(str, Enum):
    """
    Which fallback stage produced the artifact.

    Attributes:
        ANIMATION: Animated GIF written
        SEQUENCE: GIF failed, PNG sequence directory written
        SCREENSHOT: GIF and sequence failed, last frame written as PNG
        FAILED: Nothing written
    """

    ANIMATION = "animation"
    SEQUENCE = "sequence"
    SCREENSHOT = "screenshot"
    FAILED = "failed"


class ExportMode(str, Enum):
    """Where the exported frames came from. Used in the output filename."""

    BUFFER = "buffer"
    RECORDING = "recording"


class EncodingResult(BaseModel):
    """
    Result of running the encoding pipeline once.

    Attributes:
        outcome: Stage that succeeded, or FAILED
        path: Artifact actually written (file or sequence directory)
        mode: Source of the frames, when known
        frame_count: Number of input frames
        delay_ms: Per-frame delay requested
        errors: One entry per failed stage, in attempt order
    """

    outcome: ExportOutcome = Field(
        ...,
        description="Fallback stage that produced the artifact",
    )

    path: Optional[str] = Field(
        default=None,
        description="Path of the written artifact (None when failed)",
    )

    mode: Optional[ExportMode] = Field(
        default=None,
        description="Frame source: rolling buffer or active recording",
    )

    frame_count: int = Field(
        ...,
        ge=0,
        description="Number of frames handed to the encoder",
    )

    delay_ms: int = Field(
        ...,
        ge=0,
        description="Per-frame display delay in milliseconds",
    )

    errors: List[str] = Field(
        default_factory=list,
        description="Failure message per attempted stage",
    )

    @property
    def succeeded(self) -> bool:
        return self.outcome != ExportOutcome.FAILED

    @property
    def degraded(self) -> bool:
        return self.outcome in (ExportOutcome.SEQUENCE, ExportOutcome.SCREENSHOT)
