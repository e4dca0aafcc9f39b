# pixelclean - grid recovery and palette reduction for pixel art

from .analysis import analyze_image
from .color_space import (
    delta_e,
    lab_to_rgb,
    oklab_distance,
    oklab_to_rgb,
    rgb_delta_e,
    rgb_to_lab,
    rgb_to_oklab,
)
from .errors import InvalidGridSizeError, PaletteIndexError
from .grid_detector import GridDetector, GridDetectorConfig, detect_grid_size
from .grid_snapper import snap_to_grid
from .median_cut import median_cut_quantize
from .octree import octree_quantize, octree_quantize_weighted
from .palette import count_colors, extract_colors, extract_top_colors
from .pipeline import CleanupConfig, CleanupPipeline, auto_clean, suggest_color_count
from .quantize import QUANTIZE_METHODS, quantize
from .refine import refine_palette, refine_with_kmeans, refine_with_kmeans_oklab
from .remap import merge_palette_colors, remap_to_palette
from .results import (
    CleanupResult,
    GridCandidate,
    GridDetectionResult,
    ImageAnalysis,
    QuantizeResult,
    SnapResult,
)
