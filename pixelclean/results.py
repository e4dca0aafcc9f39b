"""
Result types returned by the grid and palette engines.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np

Color = Tuple[int, int, int, int]
Palette = List[Color]


@dataclass
class GridCandidate:
    size: int
    score: float


@dataclass
class GridDetectionResult:
    grid_size: int
    confidence: float
    candidates: List[GridCandidate]
    logical_width: int
    logical_height: int


@dataclass
class SnapResult:
    """Image resampled to its logical resolution."""
    data: np.ndarray
    width: int
    height: int


@dataclass
class QuantizeResult:
    """
    A palette, one palette index per pixel, and the rebuilt RGBA buffer.

    Transparent pixels carry index 0 and stay (0, 0, 0, 0) in `data`.
    """
    palette: Palette
    indices: np.ndarray
    data: np.ndarray

    @classmethod
    def empty(cls, pixel_count: int) -> "QuantizeResult":
        return cls(
            palette=[],
            indices=np.zeros(pixel_count, dtype=np.int32),
            data=np.zeros(pixel_count * 4, dtype=np.uint8),
        )

    @classmethod
    def from_assignment(
        cls,
        pixels: np.ndarray,
        opaque: np.ndarray,
        assignment: np.ndarray,
        palette: Palette,
    ) -> "QuantizeResult":
        """
        Build a result from the palette index of every opaque pixel.

        Args:
            pixels: (N, 4) source pixels.
            opaque: boolean mask of opaque pixels.
            assignment: palette index per opaque pixel, in mask order.
            palette: the final palette.
        """
        count = len(pixels)
        indices = np.zeros(count, dtype=np.int32)
        out = np.zeros((count, 4), dtype=np.uint8)
        if palette:
            lut = np.array(palette, dtype=np.uint8).reshape(-1, 4)
            indices[opaque] = assignment
            out[opaque] = lut[assignment]
        return cls(palette=palette, indices=indices, data=out.reshape(-1))


@dataclass
class CleanupResult:
    snapped: SnapResult
    reduced: Optional[QuantizeResult]
    grid_size: int
    detection: GridDetectionResult
    original_color_count: int
    reduced_color_count: int


@dataclass
class ImageAnalysis:
    unique_color_count: int
    width: int
    height: int
    suggested_grid_sizes: List[int] = field(default_factory=list)
    looks_like_pixel_art: bool = False
