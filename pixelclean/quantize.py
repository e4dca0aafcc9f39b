"""
Quantize dispatch - pick a color reduction strategy by name.
"""

from typing import List, Tuple

from .median_cut import median_cut_quantize
from .octree import octree_quantize, octree_quantize_weighted
from .refine import DEFAULT_ITERATIONS, refine_with_kmeans, refine_with_kmeans_oklab
from .results import QuantizeResult
from .utils import BufferLike

QUANTIZE_METHODS: List[Tuple[str, str]] = [
    ("median-cut", "Median Cut"),
    ("weighted-octree", "Weighted Octree"),
    ("oklab-refine", "OKLab + Refine"),
    ("octree-refine", "Octree + Refine"),
    ("octree", "Octree (Fast)"),
]


def quantize(
    buffer: BufferLike,
    width: int,
    height: int,
    target_colors: int,
    method: str = "octree",
    refine_iterations: int = DEFAULT_ITERATIONS,
) -> QuantizeResult:
    """
    Quantize image colors using the specified method.

    The refine methods seed k-means with an octree palette.

    Raises:
        ValueError: for an unknown method name.
    """
    if method == "octree":
        return octree_quantize(buffer, width, height, target_colors)
    elif method == "weighted-octree":
        return octree_quantize_weighted(buffer, width, height, target_colors)
    elif method == "median-cut":
        return median_cut_quantize(buffer, width, height, target_colors)
    elif method == "octree-refine":
        initial = octree_quantize(buffer, width, height, target_colors)
        return refine_with_kmeans(buffer, width, height, initial.palette, refine_iterations)
    elif method == "oklab-refine":
        initial = octree_quantize(buffer, width, height, target_colors)
        return refine_with_kmeans_oklab(buffer, width, height, initial.palette, refine_iterations)

    valid = ", ".join(value for value, _ in QUANTIZE_METHODS)
    raise ValueError(f"Unknown quantize method '{method}', expected one of: {valid}")
