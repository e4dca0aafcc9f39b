"""
Median Cut Quantizer.

Repeatedly splits the most "important" color bucket (population x volume)
along its widest channel at the population-weighted median.
"""

import logging
from typing import List, Tuple

import numpy as np

from .color_space import nearest_indices
from .results import Palette, QuantizeResult
from .utils import BufferLike, as_pixels, distinct_opaque_colors, round_half_up

logger = logging.getLogger(__name__)


class Bucket:
    """A group of distinct colors that will become one palette entry."""

    def __init__(self, colors: np.ndarray, counts: np.ndarray):
        self.colors = colors
        self.counts = counts
        self.population = int(counts.sum())
        self.low = colors.min(axis=0)
        self.high = colors.max(axis=0)

    def __len__(self) -> int:
        return len(self.colors)

    @property
    def ranges(self) -> np.ndarray:
        return self.high - self.low

    @property
    def volume(self) -> int:
        return int(np.prod(self.ranges + 1))

    @property
    def score(self) -> int:
        return self.population * self.volume

    def split(self) -> Tuple["Bucket", "Bucket"]:
        """Split at the weighted median of the widest channel."""
        # argmax picks r, then g, then b on equal ranges
        channel = int(np.argmax(self.ranges))
        order = np.argsort(self.colors[:, channel], kind="stable")
        colors = self.colors[order]
        counts = self.counts[order]

        cumulative = np.cumsum(counts)[:-1]
        hits = np.flatnonzero(cumulative >= self.population / 2)
        split_at = int(hits[0]) + 1 if hits.size else 1

        return (
            Bucket(colors[:split_at], counts[:split_at]),
            Bucket(colors[split_at:], counts[split_at:]),
        )

    def mean_color(self) -> Tuple[int, int, int, int]:
        weighted = (self.colors * self.counts[:, None]).sum(axis=0) / self.population
        r, g, b = round_half_up(weighted).tolist()
        return (r, g, b, 255)


def median_cut_quantize(
    buffer: BufferLike,
    width: int,
    height: int,
    target_colors: int,
) -> QuantizeResult:
    """
    Quantize an RGBA buffer with median cut.

    Args:
        buffer: Flat RGBA data.
        width: Image width.
        height: Image height.
        target_colors: Maximum palette size.

    Returns:
        QuantizeResult with pixels mapped to the nearest entry in RGB.
    """
    pixels = as_pixels(buffer, width, height)
    pixel_count = len(pixels)

    if target_colors <= 0:
        return QuantizeResult.empty(pixel_count)

    opaque, colors, counts, inverse = distinct_opaque_colors(pixels)
    if len(colors) == 0:
        return QuantizeResult.empty(pixel_count)

    target = min(target_colors, len(colors))
    buckets: List[Bucket] = [Bucket(colors, counts)]

    while len(buckets) < target:
        best = -1
        best_score = -1
        for i, bucket in enumerate(buckets):
            if len(bucket) < 2:
                continue
            if bucket.score > best_score:
                best_score = bucket.score
                best = i

        if best == -1:
            break

        left, right = buckets[best].split()
        buckets[best] = left
        buckets.append(right)

    palette: Palette = [bucket.mean_color() for bucket in buckets]
    logger.debug("Median cut: %d buckets from %d colors", len(buckets), len(colors))

    centers = np.array([c[:3] for c in palette], dtype=np.float64)
    color_index = nearest_indices(colors, centers)
    return QuantizeResult.from_assignment(pixels, opaque, color_index[inverse], palette)
