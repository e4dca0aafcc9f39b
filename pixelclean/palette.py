"""
Palette statistics over opaque pixels.
"""

from typing import Dict

import numpy as np

from .results import Palette
from .utils import BufferLike, as_buffer, pack_rgb, unpack_rgb


def extract_colors(buffer: BufferLike) -> Dict[int, int]:
    """
    Count unique opaque colors.

    Fully transparent pixels are skipped. Keys are (r << 16) | (g << 8) | b.
    """
    pixels = as_buffer(buffer).reshape(-1, 4)
    keys = pack_rgb(pixels[pixels[:, 3] != 0])
    uniq, counts = np.unique(keys, return_counts=True)
    return dict(zip(uniq.tolist(), counts.tolist()))


def count_colors(buffer: BufferLike) -> int:
    """Number of distinct opaque colors."""
    pixels = as_buffer(buffer).reshape(-1, 4)
    return int(np.unique(pack_rgb(pixels[pixels[:, 3] != 0])).size)


def extract_top_colors(buffer: BufferLike, max_colors: int) -> Palette:
    """The `max_colors` most frequent opaque colors, most frequent first, alpha 255."""
    histogram = extract_colors(buffer)
    ranked = sorted(histogram.items(), key=lambda item: item[1], reverse=True)
    keys = [key for key, _ in ranked[: max(0, max_colors)]]
    return [(r, g, b, 255) for r, g, b in unpack_rgb(np.array(keys, dtype=np.int64)).tolist()]
