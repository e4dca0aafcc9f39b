"""
Color Space - sRGB <-> CIELAB / OKLab conversion and perceptual distance.

Every function accepts a single color or an array of shape (..., 3) or
(..., 4); the alpha channel, when present, is ignored.
"""

from typing import Callable, Dict

import numpy as np
from skimage.color import deltaE_cie76
from sklearn.metrics import pairwise_distances_argmin

# CIE constants used by the piecewise XYZ -> LAB transform
EPSILON = 0.008856  # (6/29)^3
KAPPA = 903.3  # (29/3)^3

D65_WHITE = np.array([0.95047, 1.00000, 1.08883])

SRGB_TO_XYZ = np.array([
    [0.4124564, 0.3575761, 0.1804375],
    [0.2126729, 0.7151522, 0.0721750],
    [0.0193339, 0.1191920, 0.9503041],
])

XYZ_TO_SRGB = np.array([
    [3.2404542, -1.5371385, -0.4985314],
    [-0.9692660, 1.8760108, 0.0415560],
    [0.0556434, -0.2040259, 1.0572252],
])

LINEAR_TO_LMS = np.array([
    [0.4122214708, 0.5363325363, 0.0514459929],
    [0.2119034982, 0.6806995451, 0.1073969566],
    [0.0883024619, 0.2817188376, 0.6299787005],
])

LMS_TO_OKLAB = np.array([
    [0.2104542553, 0.7936177850, -0.0040720468],
    [1.9779984951, -2.4285922050, 0.4505937099],
    [0.0259040371, 0.7827717662, -0.8086757660],
])

OKLAB_TO_LMS = np.array([
    [1.0, 0.3963377774, 0.2158037573],
    [1.0, -0.1055613458, -0.0638541728],
    [1.0, -0.0894841775, -1.2914855480],
])

LMS_TO_LINEAR = np.array([
    [4.0767416621, -3.3077115913, 0.2309699292],
    [-1.2684380046, 2.6097574011, -0.3413193965],
    [-0.0041960863, -0.7034186147, 1.7076147010],
])


def _rgb_channels(rgb) -> np.ndarray:
    arr = np.asarray(rgb, dtype=np.float64)
    return arr[..., :3]


def _linearize(rgb) -> np.ndarray:
    """sRGB 0-255 -> linear 0-1 (gamma expansion)."""
    c = _rgb_channels(rgb) / 255.0
    return np.where(c > 0.04045, ((c + 0.055) / 1.055) ** 2.4, c / 12.92)


def _delinearize(linear: np.ndarray) -> np.ndarray:
    """Linear 0-1 -> sRGB 0-255 ints, clipped."""
    encoded = np.where(
        linear > 0.0031308,
        1.055 * np.power(np.clip(linear, 0.0, None), 1 / 2.4) - 0.055,
        12.92 * linear,
    )
    return np.clip(np.floor(encoded * 255.0 + 0.5), 0, 255).astype(np.int64)


def rgb_to_lab(rgb) -> np.ndarray:
    """
    Convert sRGB (0-255 per channel) to CIELAB, D65 reference white.

    Returns:
        Float array of shape (..., 3) holding L, a, b.
    """
    xyz = _linearize(rgb) @ SRGB_TO_XYZ.T
    xyz = xyz / D65_WHITE

    f = np.where(xyz > EPSILON, np.cbrt(xyz), (KAPPA * xyz + 16.0) / 116.0)
    fx, fy, fz = f[..., 0], f[..., 1], f[..., 2]

    L = 116.0 * fy - 16.0
    a = 500.0 * (fx - fy)
    b = 200.0 * (fy - fz)
    return np.stack([L, a, b], axis=-1)


def lab_to_rgb(lab) -> np.ndarray:
    """Convert CIELAB back to sRGB ints (0-255), rounded and clipped."""
    lab = np.asarray(lab, dtype=np.float64)
    L, a, b = lab[..., 0], lab[..., 1], lab[..., 2]

    fy = (L + 16.0) / 116.0
    fx = a / 500.0 + fy
    fz = fy - b / 200.0

    x = np.where(fx ** 3 > EPSILON, fx ** 3, (116.0 * fx - 16.0) / KAPPA)
    y = np.where(L > KAPPA * EPSILON, fy ** 3, L / KAPPA)
    z = np.where(fz ** 3 > EPSILON, fz ** 3, (116.0 * fz - 16.0) / KAPPA)

    xyz = np.stack([x, y, z], axis=-1) * D65_WHITE
    return _delinearize(xyz @ XYZ_TO_SRGB.T)


def rgb_to_oklab(rgb) -> np.ndarray:
    """Convert sRGB (0-255) to OKLab: matrix, cube root, matrix."""
    lms = _linearize(rgb) @ LINEAR_TO_LMS.T
    return np.cbrt(lms) @ LMS_TO_OKLAB.T


def oklab_to_rgb(lab) -> np.ndarray:
    """Convert OKLab back to sRGB ints (0-255), rounded and clipped."""
    lms_ = np.asarray(lab, dtype=np.float64) @ OKLAB_TO_LMS.T
    return _delinearize((lms_ ** 3) @ LMS_TO_LINEAR.T)


def delta_e(lab1, lab2) -> np.ndarray:
    """CIE76 Delta E: Euclidean distance in CIELAB."""
    lab1 = np.asarray(lab1, dtype=np.float64)
    lab2 = np.asarray(lab2, dtype=np.float64)
    shape = np.broadcast_shapes(lab1.shape, lab2.shape)
    # deltaE_cie76 takes (N, 3) rows; reshape back to the broadcast shape after
    flat1 = np.broadcast_to(lab1, shape).reshape(-1, 3)
    flat2 = np.broadcast_to(lab2, shape).reshape(-1, 3)
    return deltaE_cie76(flat1, flat2).reshape(shape[:-1])


def rgb_delta_e(c1, c2) -> float:
    """Delta E between two RGB(A) colors; alpha is ignored."""
    return float(delta_e(rgb_to_lab(c1), rgb_to_lab(c2)))


def oklab_distance(c1, c2) -> float:
    """Euclidean distance between two RGB(A) colors in OKLab."""
    diff = rgb_to_oklab(c1) - rgb_to_oklab(c2)
    return float(np.sqrt(np.sum(diff * diff, axis=-1)))


PERCEPTUAL_SPACES: Dict[str, Callable[..., np.ndarray]] = {
    "lab": rgb_to_lab,
    "oklab": rgb_to_oklab,
}


def to_perceptual(rgb, space: str = "lab") -> np.ndarray:
    """Convert RGB(A) colors into the named perceptual space."""
    try:
        convert = PERCEPTUAL_SPACES[space]
    except KeyError:
        raise ValueError(
            f"Unknown color space '{space}', expected one of {sorted(PERCEPTUAL_SPACES)}"
        ) from None
    return convert(rgb)


def nearest_indices(points: np.ndarray, centers: np.ndarray) -> np.ndarray:
    """
    Index of the nearest center (Euclidean) for every point.

    Ties resolve to the lowest center index. Empty input gives an empty result.
    """
    points = np.asarray(points, dtype=np.float64).reshape(-1, 3)
    centers = np.asarray(centers, dtype=np.float64).reshape(-1, 3)
    if len(points) == 0 or len(centers) == 0:
        return np.zeros(len(points), dtype=np.int64)
    return pairwise_distances_argmin(points, centers).astype(np.int64)
