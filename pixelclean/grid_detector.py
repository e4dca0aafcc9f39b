"""
Grid Detector
Estimates the block size of upscaled pixel art by combining a run-length
histogram with an edge-alignment score.
"""

import logging
from collections import Counter
from dataclasses import dataclass
from typing import Dict, Optional

import numpy as np

from .results import GridCandidate, GridDetectionResult
from .utils import BufferLike, as_pixels

logger = logging.getLogger(__name__)


@dataclass
class GridDetectorConfig:
    color_tolerance: int = 30
    min_grid_size: int = 2
    max_grid_size: int = 32
    runs_weight: float = 0.4
    edge_weight: float = 0.6
    max_candidates: int = 3


class GridDetector:
    def __init__(self, config: Optional[GridDetectorConfig] = None):
        self.config = config if config else GridDetectorConfig()

    def detect(self, buffer: BufferLike, width: int, height: int) -> GridDetectionResult:
        """Detect the grid size of a flat RGBA buffer."""
        pixels = as_pixels(buffer, width, height)

        # Tiny images cannot show any repetition
        if width <= 1 or height <= 1:
            return GridDetectionResult(
                grid_size=1,
                confidence=1.0,
                candidates=[GridCandidate(size=1, score=1.0)],
                logical_width=width,
                logical_height=height,
            )

        rgb = pixels[:, :3].astype(np.int64).reshape(height, width, 3)

        # 1. Runs-based histogram
        runs = self.runs_histogram(rgb)
        runs_mode = self.histogram_mode(runs)

        # 2. Edge-aware scores
        edge_scores = self.edge_scores(rgb)

        # 3. Combine
        total_runs = sum(runs.values()) or 1
        longest_side = max(width, height)

        sizes = {size for size in runs if 2 <= size <= longest_side}
        sizes.update(edge_scores)
        sizes.add(1)

        combined = []
        for size in sorted(sizes):
            runs_score = runs.get(size, 0) / total_runs
            edge_score = edge_scores.get(size, 0.0)
            combined.append(
                GridCandidate(
                    size=size,
                    score=runs_score * self.config.runs_weight + edge_score * self.config.edge_weight,
                )
            )

        # Stable sort: equal scores keep the smaller size first
        combined.sort(key=lambda c: c.score, reverse=True)
        top = combined[: self.config.max_candidates]

        best = top[0]
        second_score = top[1].score if len(top) > 1 else 0.0
        separation = (best.score - second_score) / best.score if best.score > 0 else 0.0
        agreement = 0.3 if runs_mode == best.size else 0.0
        confidence = min(1.0, max(0.0, agreement + separation * 0.5 + best.score * 0.5))

        logger.debug(
            "Grid detection %dx%d: size=%d confidence=%.3f runs_mode=%d",
            width, height, best.size, confidence, runs_mode,
        )

        return GridDetectionResult(
            grid_size=best.size,
            confidence=confidence,
            candidates=top,
            logical_width=width // best.size,
            logical_height=height // best.size,
        )

    def runs_histogram(self, rgb: np.ndarray) -> Counter:
        """
        Histogram of same-color run lengths over every row and every column.

        A run keeps growing while the pixel stays within tolerance of the
        run's first pixel. Only runs of length >= 2 are counted.
        """
        histogram: Counter = Counter()
        for line in rgb:
            self._scan_line(line, histogram)
        for line in rgb.transpose(1, 0, 2):
            self._scan_line(line, histogram)
        return histogram

    def _scan_line(self, line: np.ndarray, histogram: Counter) -> None:
        length = len(line)
        tolerance = self.config.color_tolerance
        # Distance from each pixel to its right neighbour
        steps = np.abs(np.diff(line, axis=0)).sum(axis=1).tolist()

        start = 0
        while start < length - 1:
            if steps[start] >= tolerance:
                start += 1
                continue
            end = self._run_end(line, start)
            histogram[end - start] += 1
            start = end

    def _run_end(self, line: np.ndarray, start: int) -> int:
        """
        End (exclusive) of the run starting at `start`, whose second pixel is
        already known to be within tolerance.

        Looks ahead in windows that double in size, so a run costs time
        proportional to its length.
        """
        length = len(line)
        lo = start + 2
        window = 8
        while lo < length:
            hi = min(length, lo + window)
            dist = np.abs(line[lo:hi] - line[start]).sum(axis=1)
            breaks = np.flatnonzero(dist >= self.config.color_tolerance)
            if breaks.size:
                return lo + int(breaks[0])
            lo = hi
            window *= 2
        return length

    @staticmethod
    def histogram_mode(histogram: Counter) -> int:
        """Most frequent run length; first seen wins ties, 1 when empty."""
        if not histogram:
            return 1
        return histogram.most_common(1)[0][0]

    def edge_scores(self, rgb: np.ndarray) -> Dict[int, float]:
        """
        Fraction of total gradient energy lying on multiples of each grid size.

        Column boundary g sits between pixel g-1 and pixel g.
        """
        height, width = rgb.shape[:2]

        h_grad = np.abs(np.diff(rgb, axis=1)).sum(axis=2)  # (H, W-1)
        v_grad = np.abs(np.diff(rgb, axis=0)).sum(axis=2)  # (H-1, W)

        col_energy = h_grad.sum(axis=0)
        row_energy = v_grad.sum(axis=1)
        total = int(col_energy.sum() + row_energy.sum())

        max_g = min(self.config.max_grid_size, max(width, height))
        sizes = range(self.config.min_grid_size, max_g + 1)

        if total == 0:
            # Uniform image: no size is better than another
            return {g: 0.0 for g in sizes}

        scores = {}
        for g in sizes:
            on_grid = col_energy[g - 1::g].sum() + row_energy[g - 1::g].sum()
            scores[g] = float(on_grid) / total
        return scores


def detect_grid_size(
    buffer: BufferLike,
    width: int,
    height: int,
    config: Optional[GridDetectorConfig] = None,
) -> GridDetectionResult:
    """
    Detect the grid size of a pixel art image from raw RGBA data.

    Args:
        buffer: Flat RGBA bytes, row-major.
        width: Image width in pixels.
        height: Image height in pixels.
        config: Optional detector tuning.

    Returns:
        GridDetectionResult with the best size, confidence and top candidates.
    """
    return GridDetector(config).detect(buffer, width, height)
