"""
Palette Refiner - perceptual k-means over an existing palette.

Clustering happens in CIELAB or OKLab, but cluster centers are updated as the
mean *RGB* of their members so palette entries stay real sRGB colors.
"""

import logging
from typing import Sequence

import numpy as np

from .color_space import nearest_indices, to_perceptual
from .results import Color, Palette, QuantizeResult
from .utils import BufferLike, as_pixels, distinct_opaque_colors, round_half_up

logger = logging.getLogger(__name__)

DEFAULT_ITERATIONS = 3


def refine_palette(
    buffer: BufferLike,
    width: int,
    height: int,
    palette: Sequence[Color],
    max_iterations: int = DEFAULT_ITERATIONS,
    space: str = "lab",
) -> QuantizeResult:
    """
    Refine a palette with k-means in a perceptual color space.

    Args:
        buffer: Flat RGBA source data.
        width: Image width.
        height: Image height.
        palette: Starting palette (e.g. from an octree quantizer). Not modified.
        max_iterations: Upper bound on assign/update rounds.
        space: "lab" or "oklab".

    Returns:
        QuantizeResult with the refined palette. Palette slots that attract no
        pixels keep their previous color; no slot is ever dropped.
    """
    pixels = as_pixels(buffer, width, height)
    pixel_count = len(pixels)

    if len(palette) == 0:
        return QuantizeResult.empty(pixel_count)

    opaque, colors, counts, inverse = distinct_opaque_colors(pixels)

    working = np.array([c[:3] for c in palette], dtype=np.int64)
    alphas = [int(c[3]) for c in palette]
    k = len(working)

    color_points = to_perceptual(colors, space)
    palette_points = to_perceptual(working, space)

    iterations = 0
    for iterations in range(1, max_iterations + 1):
        # Assign
        assignment = nearest_indices(color_points, palette_points)

        # Update
        members = np.bincount(assignment, weights=counts, minlength=k)
        sums = np.stack(
            [np.bincount(assignment, weights=colors[:, ch] * counts, minlength=k) for ch in range(3)],
            axis=1,
        )
        filled = members > 0
        updated = working.copy()
        updated[filled] = round_half_up(sums[filled] / members[filled, None])

        converged = bool(np.all(np.abs(updated - working) <= 1))
        working = updated
        for c in np.flatnonzero(filled):
            alphas[c] = 255
        palette_points[filled] = to_perceptual(working[filled], space)

        if converged:
            break

    logger.debug("Refined %d-color palette in %s after %d iteration(s)", k, space, iterations)

    refined: Palette = [
        (int(r), int(g), int(b), alphas[i]) for i, (r, g, b) in enumerate(working.tolist())
    ]
    assignment = nearest_indices(color_points, palette_points)
    return QuantizeResult.from_assignment(pixels, opaque, assignment[inverse], refined)


def refine_with_kmeans(
    buffer: BufferLike,
    width: int,
    height: int,
    palette: Sequence[Color],
    max_iterations: int = DEFAULT_ITERATIONS,
) -> QuantizeResult:
    """Refine a palette with k-means clustering in CIELAB (Delta E 76)."""
    return refine_palette(buffer, width, height, palette, max_iterations, space="lab")


def refine_with_kmeans_oklab(
    buffer: BufferLike,
    width: int,
    height: int,
    palette: Sequence[Color],
    max_iterations: int = DEFAULT_ITERATIONS,
) -> QuantizeResult:
    """Refine a palette with k-means clustering in OKLab."""
    return refine_palette(buffer, width, height, palette, max_iterations, space="oklab")
