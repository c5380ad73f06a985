"""
Frame Data Model
=================

Internal frame representation for the capture pipeline.

This module defines the typed Frame class that flows from the grabber into
the rolling buffer and recording session, and from there into the encoder.

Design Rules:
    - This is the ONLY frame format passed between capture and encoding
    - Pixels are 24-bit RGB (no alpha) to keep memory predictable
    - Pixel arrays are made read-only on construction
"""

from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True, slots=True)
class Frame:
    """
    One captured, downscaled screenshot.

    It is immutable (frozen, read-only pixels) so that snapshots can share
    frames with the live buffer without copying pixel data.

    Attributes:
        sequence: Monotonically increasing capture counter
        timestamp: Monotonic clock reading at capture time (seconds)
        pixels: RGB raster, shape (H, W, 3), dtype uint8
    """

    sequence: int
    timestamp: float
    pixels: np.ndarray

    def __post_init__(self) -> None:
        if self.pixels.ndim != 3 or self.pixels.shape[2] != 3:
            raise ValueError(f"Frame pixels must be (H, W, 3), got {self.pixels.shape}")
        if self.pixels.dtype != np.uint8:
            raise ValueError(f"Frame pixels must be uint8, got {self.pixels.dtype}")
        self.pixels.flags.writeable = False

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def nbytes(self) -> int:
        return int(self.pixels.nbytes)

    def __repr__(self) -> str:
        """Compact repr that doesn't dump the pixel data."""
        return (
            f"Frame(sequence={self.sequence}, "
            f"timestamp={self.timestamp:.3f}, "
            f"size={self.width}x{self.height})"
        )
