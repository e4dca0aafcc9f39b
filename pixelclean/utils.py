"""
Utility functions for pixelclean.

Buffer helpers shared by the engine, plus the Pillow adapter used by the CLI
to turn image files into flat RGBA buffers and back.
"""

from pathlib import Path
from typing import Tuple, Union

import numpy as np
from PIL import Image

BufferLike = Union[np.ndarray, bytes, bytearray, memoryview]


def load_image(path: str) -> Image.Image:
    """Load an image from disk."""
    return Image.open(path)


def save_image(image: Image.Image, path: str) -> None:
    """Save an image to disk, creating directories if needed."""
    output_path = Path(path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    image.save(path)


def ensure_rgba(image: Image.Image) -> Image.Image:
    """Ensure image is in RGBA mode."""
    if image.mode != "RGBA":
        return image.convert("RGBA")
    return image


def image_to_buffer(image: Image.Image) -> Tuple[np.ndarray, int, int]:
    """
    Flatten a PIL image into a row-major RGBA byte buffer.

    Returns:
        (buffer, width, height) where buffer has length width * height * 4.
    """
    img = ensure_rgba(image)
    width, height = img.size
    arr = np.array(img, dtype=np.uint8)
    return arr.reshape(-1), width, height


def buffer_to_image(buffer: BufferLike, width: int, height: int) -> Image.Image:
    """Wrap a flat RGBA buffer as a PIL image."""
    pixels = as_pixels(buffer, width, height)
    return Image.fromarray(pixels.reshape(height, width, 4).copy())


def get_output_path(input_path: str, suffix: str = "_cleaned") -> str:
    """Generate output path from input path with a suffix."""
    path = Path(input_path)
    return str(path.parent / f"{path.stem}{suffix}{path.suffix}")


def as_buffer(data: BufferLike) -> np.ndarray:
    """Coerce bytes or an array-like into a flat uint8 view."""
    if isinstance(data, np.ndarray):
        return data.reshape(-1).astype(np.uint8, copy=False)
    return np.frombuffer(bytes(data), dtype=np.uint8)


def as_pixels(data: BufferLike, width: int, height: int) -> np.ndarray:
    """
    Validate a flat RGBA buffer and view it as an (N, 4) pixel array.

    Raises:
        ValueError: if the dimensions are negative or the length does not
            equal width * height * 4.
    """
    if width < 0 or height < 0:
        raise ValueError(f"Image dimensions cannot be negative, got {width}x{height}")

    buf = as_buffer(data)
    expected = width * height * 4
    if buf.size != expected:
        raise ValueError(
            f"Buffer length {buf.size} does not match {width}x{height} RGBA ({expected})"
        )
    return buf.reshape(-1, 4)


def pack_rgb(rgb: np.ndarray) -> np.ndarray:
    """Pack (..., 3+) uint8 channels into (r << 16) | (g << 8) | b keys."""
    rgb = rgb.astype(np.int64)
    return (rgb[..., 0] << 16) | (rgb[..., 1] << 8) | rgb[..., 2]


def unpack_rgb(keys: np.ndarray) -> np.ndarray:
    """Inverse of pack_rgb: (N,) keys to an (N, 3) int64 array."""
    keys = np.asarray(keys, dtype=np.int64)
    return np.stack([(keys >> 16) & 0xFF, (keys >> 8) & 0xFF, keys & 0xFF], axis=-1)


def round_half_up(values) -> np.ndarray:
    """Round non-negative values with .5 going up (np.round rounds to even)."""
    return np.floor(np.asarray(values, dtype=np.float64) + 0.5).astype(np.int64)


def distinct_opaque_colors(pixels: np.ndarray) -> Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    """
    Histogram the opaque pixels of an (N, 4) array.

    Returns:
        opaque: boolean mask over all pixels.
        colors: (K, 3) int64 distinct RGB colors, ordered by packed key.
        counts: (K,) pixel count per color.
        inverse: for every opaque pixel (in order), its row in `colors`.
    """
    opaque = pixels[:, 3] != 0
    keys = pack_rgb(pixels[opaque])
    uniq, inverse, counts = np.unique(keys, return_inverse=True, return_counts=True)
    return opaque, unpack_rgb(uniq), counts.astype(np.int64), inverse.reshape(-1)
