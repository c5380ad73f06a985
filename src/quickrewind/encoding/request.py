"""
Encoding Request
================

Input handed to the encoding pipeline for one export.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from quickrewind.capture.frame import Frame


@dataclass(frozen=True, slots=True)
class EncodingRequest:
    """
    One export job.

    Attributes:
        frames: Snapshot of frames, oldest first
        target: Intended output path (the .gif file)
        delay_ms: Display time per frame in milliseconds
    """

    frames: Sequence[Frame]
    target: Path
    delay_ms: int

    def __repr__(self) -> str:
        return (
            f"EncodingRequest(frames={len(self.frames)}, "
            f"target={self.target.name}, delay_ms={self.delay_ms})"
        )
