#!/usr/bin/env python3
"""
pixelclean - CLI Entry Point

Recover the pixel grid of upscaled pixel art and reduce its palette.
"""

import argparse
import logging
import os
import sys
from typing import List, Optional

from pixelclean.analysis import analyze_image
from pixelclean.grid_detector import detect_grid_size
from pixelclean.grid_snapper import snap_to_grid
from pixelclean.pipeline import CleanupConfig, auto_clean
from pixelclean.quantize import QUANTIZE_METHODS, quantize
from pixelclean.utils import buffer_to_image, get_output_path, image_to_buffer, load_image, save_image


def _load(path: str):
    if not os.path.exists(path):
        print(f"Error: Input file not found: {path}", file=sys.stderr)
        sys.exit(1)
    return image_to_buffer(load_image(path))


def cmd_detect(args):
    """Print the detected grid size."""
    buffer, width, height = _load(args.input)
    result = detect_grid_size(buffer, width, height)

    print(f"Image: {width}x{height}")
    print(f"Grid Size: {result.grid_size}")
    print(f"Confidence: {result.confidence:.2f}")
    print(f"Logical Size: {result.logical_width}x{result.logical_height}")
    for candidate in result.candidates:
        print(f"  candidate {candidate.size}: {candidate.score:.3f}")


def cmd_snap(args):
    """Snap an image to its logical resolution."""
    buffer, width, height = _load(args.input)

    grid_size = args.grid_size
    if grid_size is None:
        grid_size = detect_grid_size(buffer, width, height).grid_size
        print(f"Detected grid size: {grid_size}")

    snapped = snap_to_grid(buffer, width, height, grid_size)
    output = args.output or get_output_path(args.input, "_snapped")
    save_image(buffer_to_image(snapped.data, snapped.width, snapped.height), output)
    print(f"Snapped {width}x{height} -> {snapped.width}x{snapped.height}: {output}")


def cmd_quantize(args):
    """Reduce the palette of an image."""
    buffer, width, height = _load(args.input)
    result = quantize(buffer, width, height, args.colors, method=args.method)

    output = args.output or get_output_path(args.input, "_quantized")
    save_image(buffer_to_image(result.data, width, height), output)
    print(f"Palette: {len(result.palette)} colors ({args.method})")
    print(f"Saved to: {output}")


def cmd_clean(args):
    """Detect, snap and reduce colors in one go."""
    print("=" * 50)
    print("pixelclean - Auto Clean")
    print("=" * 50)

    buffer, width, height = _load(args.input)
    config = CleanupConfig(quantize_method=args.method)
    result = auto_clean(buffer, width, height, config)

    print(f"Grid Size: {result.grid_size} (confidence {result.detection.confidence:.2f})")
    print(f"Colors: {result.original_color_count} -> {result.reduced_color_count}")

    snapped = result.snapped
    data = snapped.data
    if result.reduced is not None and not args.snapped_only:
        data = result.reduced.data

    output = args.output or get_output_path(args.input, "_cleaned")
    save_image(buffer_to_image(data, snapped.width, snapped.height), output)
    print(f"\nDone! Cleaned image saved to: {output}")


def cmd_analyze(args):
    """Print a quick analysis of an image."""
    buffer, width, height = _load(args.input)
    analysis = analyze_image(buffer, width, height)

    print(f"Image: {analysis.width}x{analysis.height}")
    print(f"Unique colors: {analysis.unique_color_count}")
    print(f"Looks like pixel art: {'yes' if analysis.looks_like_pixel_art else 'no'}")
    sizes = ", ".join(str(g) for g in analysis.suggested_grid_sizes) or "none"
    print(f"Suggested grid sizes: {sizes}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Recover the pixel grid and palette of upscaled pixel art"
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Command to run")
    methods = [value for value, _ in QUANTIZE_METHODS]

    detect_parser = subparsers.add_parser("detect", help="Detect the grid size")
    detect_parser.add_argument("--input", "-i", required=True, help="Input image path")
    detect_parser.set_defaults(func=cmd_detect)

    snap_parser = subparsers.add_parser("snap", help="Snap to logical resolution")
    snap_parser.add_argument("--input", "-i", required=True, help="Input image path")
    snap_parser.add_argument("--output", "-o", help="Output file path")
    snap_parser.add_argument("--grid-size", "-g", type=int,
                             help="Grid size in source pixels (default: detect)")
    snap_parser.set_defaults(func=cmd_snap)

    quant_parser = subparsers.add_parser("quantize", help="Reduce the palette")
    quant_parser.add_argument("--input", "-i", required=True, help="Input image path")
    quant_parser.add_argument("--output", "-o", help="Output file path")
    quant_parser.add_argument("--colors", "-c", type=int, default=16,
                              help="Number of colors (default: 16)")
    quant_parser.add_argument("--method", "-m", choices=methods, default="octree",
                              help="Quantization method (default: octree)")
    quant_parser.set_defaults(func=cmd_quantize)

    clean_parser = subparsers.add_parser("clean", help="Detect, snap and reduce colors")
    clean_parser.add_argument("--input", "-i", required=True, help="Input image path")
    clean_parser.add_argument("--output", "-o", help="Output file path")
    clean_parser.add_argument("--method", "-m", choices=methods, default="octree",
                              help="Quantization method (default: octree)")
    clean_parser.add_argument("--snapped-only", action="store_true",
                              help="Save the snapped image even when colors were reduced")
    clean_parser.set_defaults(func=cmd_clean)

    analyze_parser = subparsers.add_parser("analyze", help="Quick image analysis")
    analyze_parser.add_argument("--input", "-i", required=True, help="Input image path")
    analyze_parser.set_defaults(func=cmd_analyze)

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    try:
        args.func(args)
    except (ValueError, IndexError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
