"""
Cleanup Pipeline - one-click grid recovery and palette reduction.

detect grid -> snap to logical resolution -> reduce colors when there are
too many to edit comfortably.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from .grid_detector import GridDetector, GridDetectorConfig
from .grid_snapper import snap_to_grid
from .palette import count_colors
from .quantize import quantize
from .refine import DEFAULT_ITERATIONS
from .results import CleanupResult, GridDetectionResult, QuantizeResult, SnapResult
from .utils import BufferLike

logger = logging.getLogger(__name__)


@dataclass
class CleanupConfig:
    detector: GridDetectorConfig = field(default_factory=GridDetectorConfig)
    quantize_threshold: int = 32
    quantize_method: str = "octree"
    refine_iterations: int = DEFAULT_ITERATIONS


def suggest_color_count(unique_colors: int) -> int:
    """Heuristic target palette size for a given number of unique colors."""
    if unique_colors < 16:
        return unique_colors
    if unique_colors <= 64:
        return 16
    if unique_colors <= 256:
        return 24
    return 32


def auto_clean(
    buffer: BufferLike,
    width: int,
    height: int,
    config: Optional[CleanupConfig] = None,
) -> CleanupResult:
    """
    One-click auto-clean.

    Args:
        buffer: Flat RGBA source data.
        width: Source width.
        height: Source height.
        config: Thresholds and quantize method; defaults when omitted.

    Returns:
        CleanupResult holding the snapped image, the reduced image when the
        snapped one had more than `quantize_threshold` colors, the grid size
        and the color counts before and after.
    """
    return CleanupPipeline(config).auto_clean(buffer, width, height)


class CleanupPipeline:
    """
    Class-based interface for cleanup with configurable defaults.
    """

    def __init__(self, config: Optional[CleanupConfig] = None):
        self.config = config if config else CleanupConfig()
        self.detector = GridDetector(self.config.detector)

    def detect(self, buffer: BufferLike, width: int, height: int) -> GridDetectionResult:
        return self.detector.detect(buffer, width, height)

    def snap(self, buffer: BufferLike, width: int, height: int, grid_size: int) -> SnapResult:
        return snap_to_grid(buffer, width, height, grid_size)

    def quantize(
        self,
        buffer: BufferLike,
        width: int,
        height: int,
        target_colors: int,
    ) -> QuantizeResult:
        return quantize(
            buffer,
            width,
            height,
            target_colors,
            method=self.config.quantize_method,
            refine_iterations=self.config.refine_iterations,
        )

    def auto_clean(self, buffer: BufferLike, width: int, height: int) -> CleanupResult:
        """Detect, snap and, if needed, reduce colors."""
        detection = self.detect(buffer, width, height)
        snapped = self.snap(buffer, width, height, detection.grid_size)

        original_count = count_colors(snapped.data)
        reduced = None
        reduced_count = original_count

        if original_count > self.config.quantize_threshold:
            target = suggest_color_count(original_count)
            logger.debug(
                "Reducing %d colors to %d with %s",
                original_count, target, self.config.quantize_method,
            )
            reduced = self.quantize(snapped.data, snapped.width, snapped.height, target)
            reduced_count = len(reduced.palette)

        return CleanupResult(
            snapped=snapped,
            reduced=reduced,
            grid_size=detection.grid_size,
            detection=detection,
            original_color_count=original_count,
            reduced_color_count=reduced_count,
        )
