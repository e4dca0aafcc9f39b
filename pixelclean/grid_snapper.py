"""
Grid Snapper - resamples upscaled pixel art down to its logical resolution.

Each grid block becomes one output pixel: a color covering more than half of
the block wins outright (majority vote); otherwise the block is averaged with
weights that favor its geometric center, where anti-aliasing is rarest.
"""

import logging

import numpy as np

from .errors import InvalidGridSizeError
from .results import SnapResult
from .utils import BufferLike, as_pixels, pack_rgb, round_half_up

logger = logging.getLogger(__name__)


def center_weights(grid_size: int) -> np.ndarray:
    """Per-pixel weights 1 / (1 + distance from block center), row-major."""
    half = (grid_size - 1) / 2.0
    offsets = np.arange(grid_size) - half
    dist = np.sqrt(offsets[:, None] ** 2 + offsets[None, :] ** 2)
    return (1.0 / (1.0 + dist)).reshape(-1)


def snap_to_grid(
    buffer: BufferLike,
    width: int,
    height: int,
    grid_size: int,
) -> SnapResult:
    """
    Snap a pixel art image to its logical grid resolution.

    Args:
        buffer: Flat RGBA source data.
        width: Source width in pixels.
        height: Source height in pixels.
        grid_size: Size of each grid cell in source pixels.

    Returns:
        SnapResult at floor(width / grid_size) x floor(height / grid_size).
        Remainder pixels on the right and bottom edges are dropped.

    Raises:
        InvalidGridSizeError: grid_size < 1, or larger than either dimension.
    """
    if grid_size < 1:
        raise InvalidGridSizeError(f"gridSize must be >= 1, got {grid_size}")

    pixels = as_pixels(buffer, width, height)

    if grid_size == 1:
        return SnapResult(data=pixels.reshape(-1).copy(), width=width, height=height)

    logical_w = width // grid_size
    logical_h = height // grid_size
    if logical_w <= 0 or logical_h <= 0:
        raise InvalidGridSizeError(
            f"Grid size {grid_size} is too large for {width}x{height} image"
        )

    g = grid_size
    n = g * g
    image = pixels.reshape(height, width, 4)[: logical_h * g, : logical_w * g]

    # (rows, cols, g*g, 4) with block pixels in row-major order
    blocks = (
        image.reshape(logical_h, g, logical_w, g, 4)
        .transpose(0, 2, 1, 3, 4)
        .reshape(logical_h, logical_w, n, 4)
        .astype(np.int64)
    )

    # Fully transparent pixels vote together as one sentinel key
    transparent = blocks[..., 3] == 0
    blocks[transparent] = 0

    # Majority vote: a color above 50% must sit at the median of the sorted keys
    keys = pack_rgb(blocks)
    keys[transparent] = -1
    candidate = np.sort(keys, axis=2)[:, :, n // 2]
    matches = keys == candidate[..., None]
    votes = matches.sum(axis=2)
    has_majority = votes * 2 > n

    majority = np.zeros((logical_h, logical_w, 4), dtype=np.int64)
    majority[..., 0] = (candidate >> 16) & 0xFF
    majority[..., 1] = (candidate >> 8) & 0xFF
    majority[..., 2] = candidate & 0xFF
    alpha_sum = (blocks[..., 3] * matches).sum(axis=2)
    majority[..., 3] = round_half_up(alpha_sum / np.maximum(votes, 1))

    # Weighted-center fallback
    weights = center_weights(g)
    weighted = np.tensordot(blocks.astype(np.float64), weights, axes=([2], [0]))
    fallback = round_half_up(weighted / weights.sum())

    out = np.where(has_majority[..., None], majority, fallback)
    out[out[..., 3] == 0] = 0
    out = np.clip(out, 0, 255).astype(np.uint8)

    logger.debug(
        "Snapped %dx%d at grid %d -> %dx%d (%d/%d blocks by majority)",
        width, height, g, logical_w, logical_h,
        int(has_majority.sum()), logical_w * logical_h,
    )

    return SnapResult(data=out.reshape(-1), width=logical_w, height=logical_h)
