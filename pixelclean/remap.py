"""
Palette Remapper - snaps pixels to an arbitrary palette and edits palettes.
"""

from typing import Sequence

import numpy as np

from .color_space import nearest_indices, to_perceptual
from .errors import PaletteIndexError
from .results import Color, Palette
from .utils import BufferLike, as_buffer, pack_rgb, round_half_up, unpack_rgb


def remap_to_palette(
    buffer: BufferLike,
    palette: Sequence[Color],
    space: str = "lab",
) -> np.ndarray:
    """
    Remap every pixel to the perceptually nearest palette color.

    The pixel's own alpha is kept so semi-transparent pixels stay
    semi-transparent. Fully transparent pixels come out as (0, 0, 0, 0).

    Args:
        buffer: Flat RGBA data.
        palette: Target colors.
        space: "lab" (Delta E 76) or "oklab".

    Returns:
        New flat RGBA buffer of the same length.
    """
    buf = as_buffer(buffer)
    if buf.size % 4:
        raise ValueError(f"Buffer length {buf.size} is not a multiple of 4")

    pixels = buf.reshape(-1, 4)
    out = np.zeros_like(pixels)
    if len(palette) == 0:
        return out.reshape(-1)

    lut = np.array([c[:3] for c in palette], dtype=np.uint8)
    palette_points = to_perceptual(lut, space)

    opaque = pixels[:, 3] != 0
    keys, inverse = np.unique(pack_rgb(pixels[opaque]), return_inverse=True)
    nearest = nearest_indices(to_perceptual(unpack_rgb(keys), space), palette_points)

    out[opaque, :3] = lut[nearest[inverse.reshape(-1)]]
    out[opaque, 3] = pixels[opaque, 3]
    return out.reshape(-1)


def merge_palette_colors(palette: Sequence[Color], index_a: int, index_b: int) -> Palette:
    """
    Merge two palette entries by averaging them.

    Returns a new palette with `index_b` removed and `index_a` replaced by the
    rounded RGBA average of both entries.

    Raises:
        PaletteIndexError: if either index is outside the palette.
    """
    for name, index in (("index_a", index_a), ("index_b", index_b)):
        if index < 0 or index >= len(palette):
            raise PaletteIndexError(
                f"{name} {index} out of bounds for palette of {len(palette)} colors"
            )

    copied: Palette = [tuple(int(v) for v in color) for color in palette]
    if index_a == index_b:
        return copied

    merged = round_half_up((np.array(copied[index_a]) + np.array(copied[index_b])) / 2)
    copied[index_a] = tuple(int(v) for v in merged)
    del copied[index_b]
    return copied
