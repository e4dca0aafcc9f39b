"""
Quick analysis of imported images.
"""

import numpy as np

from .results import ImageAnalysis
from .utils import BufferLike, as_pixels, pack_rgb

GRID_SIZE_HINTS = (2, 4, 8, 16)


def analyze_image(buffer: BufferLike, width: int, height: int) -> ImageAnalysis:
    """
    Count unique colors and guess whether the image is upscaled pixel art.

    - Unique colors use packed RGB keys of opaque pixels.
    - Pixel art shows an average horizontal run of identical opaque colors
      longer than 2 pixels; transparent pixels end a run.
    - Suggested grid sizes are the hints that divide both dimensions.
    """
    pixels = as_pixels(buffer, width, height)
    opaque = pixels[:, 3] != 0

    keys = pack_rgb(pixels)
    keys[~opaque] = -1
    unique_count = int(np.unique(keys[opaque]).size)

    looks_like_pixel_art = False
    if width > 0 and height > 0:
        rows = keys.reshape(height, width)
        starts = rows != -1
        starts[:, 1:] &= rows[:, 1:] != rows[:, :-1]
        run_count = int(starts.sum())
        if run_count:
            looks_like_pixel_art = int(opaque.sum()) / run_count > 2

    suggested = [g for g in GRID_SIZE_HINTS if width % g == 0 and height % g == 0]

    return ImageAnalysis(
        unique_color_count=unique_count,
        width=width,
        height=height,
        suggested_grid_sizes=suggested,
        looks_like_pixel_art=looks_like_pixel_art,
    )
