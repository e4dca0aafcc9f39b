import time
import unittest
from collections import Counter

import numpy as np

from pixelclean.errors import InvalidGridSizeError
from pixelclean.grid_detector import GridDetector, detect_grid_size
from pixelclean.grid_snapper import center_weights, snap_to_grid

RED = (255, 0, 0, 255)
BLUE = (0, 0, 255, 255)


def make_synthetic_image(logical_w, logical_h, grid_size, color_fn):
    """Flat RGBA buffer where every logical pixel is a solid grid_size block."""
    width = logical_w * grid_size
    height = logical_h * grid_size
    img = np.zeros((height, width, 4), dtype=np.uint8)
    for ly in range(logical_h):
        for lx in range(logical_w):
            img[ly * grid_size:(ly + 1) * grid_size, lx * grid_size:(lx + 1) * grid_size] = color_fn(lx, ly)
    return img.reshape(-1), width, height


def plain_runs(line, tolerance=30):
    """Pixel-by-pixel run scan, each run measured from its first pixel."""
    runs = Counter()
    start = 0
    while start < len(line):
        end = start + 1
        while end < len(line) and np.abs(line[end] - line[start]).sum() < tolerance:
            end += 1
        if end - start >= 2:
            runs[end - start] += 1
        start = end
    return runs


def checkerboard(lx, ly):
    return RED if (lx + ly) % 2 == 0 else BLUE


def distinct_colors(lx, ly):
    r = ((lx * 73 + ly * 137) % 200) + 30
    g = ((lx * 47 + ly * 89) % 200) + 30
    b = ((lx * 113 + ly * 53) % 200) + 30
    return (r, g, b, 255)


class TestDetectGridSize(unittest.TestCase):
    def test_detects_4px_grid_in_12x12_checkerboard(self):
        data, width, height = make_synthetic_image(3, 3, 4, checkerboard)
        result = detect_grid_size(data, width, height)

        self.assertEqual(result.grid_size, 4)
        self.assertEqual(result.logical_width, 3)
        self.assertEqual(result.logical_height, 3)
        self.assertGreater(result.confidence, 0)
        self.assertGreaterEqual(len(result.candidates), 1)
        self.assertLessEqual(len(result.candidates), 3)

    def test_detects_8px_grid(self):
        data, width, height = make_synthetic_image(2, 2, 8, checkerboard)
        result = detect_grid_size(data, width, height)

        self.assertEqual(result.grid_size, 8)
        self.assertEqual((result.logical_width, result.logical_height), (2, 2))

    def test_detects_grid_with_distinct_colors(self):
        data, width, height = make_synthetic_image(4, 4, 4, distinct_colors)
        result = detect_grid_size(data, width, height)

        self.assertEqual(result.grid_size, 4)
        self.assertEqual((result.logical_width, result.logical_height), (4, 4))

    def test_candidates_are_ranked(self):
        data, width, height = make_synthetic_image(3, 3, 4, checkerboard)
        result = detect_grid_size(data, width, height)

        scores = [c.score for c in result.candidates]
        self.assertEqual(scores, sorted(scores, reverse=True))
        self.assertEqual(result.candidates[0].size, result.grid_size)

    def test_tiny_image_short_circuits(self):
        data = np.array([128, 64, 32, 255], dtype=np.uint8)
        result = detect_grid_size(data, 1, 1)

        self.assertEqual(result.grid_size, 1)
        self.assertEqual(result.confidence, 1)
        self.assertEqual((result.logical_width, result.logical_height), (1, 1))

    def test_single_row_image(self):
        data = np.tile(np.array(RED, dtype=np.uint8), 5)
        result = detect_grid_size(data, 5, 1)
        self.assertEqual(result.grid_size, 1)
        self.assertEqual(result.logical_width, 5)

    def test_uniform_image_does_not_raise(self):
        data = np.tile(np.array(BLUE, dtype=np.uint8), 8 * 8)
        result = detect_grid_size(data, 8, 8)

        self.assertGreaterEqual(result.confidence, 0)
        self.assertLessEqual(result.confidence, 1)
        self.assertLessEqual(len(result.candidates), 3)

    def test_checkerboard_scores_and_confidence(self):
        data, width, height = make_synthetic_image(3, 3, 4, checkerboard)
        result = detect_grid_size(data, width, height)

        self.assertEqual([c.size for c in result.candidates], [4, 2, 8])
        for candidate, expected in zip(result.candidates, [1.0, 0.6, 0.3]):
            self.assertAlmostEqual(candidate.score, expected)
        # 0.3 (runs agree) + 0.5 * 0.4 separation + 0.5 * 1.0 score, clamped
        self.assertAlmostEqual(result.confidence, 1.0)

    def test_confidence_without_runs_agreement(self):
        # Two rows of AAABBB: rows vote for 3, columns for 2
        row = [RED] * 3 + [BLUE] * 3
        data = np.array(row * 2, dtype=np.uint8).reshape(-1)
        result = detect_grid_size(data, 6, 2)

        self.assertEqual(result.grid_size, 3)
        self.assertEqual([c.size for c in result.candidates], [3, 2, 1])
        self.assertAlmostEqual(result.candidates[0].score, 0.4 * 4 / 10 + 0.6)
        self.assertAlmostEqual(result.candidates[1].score, 0.4 * 6 / 10)

        best, second = 0.76, 0.24
        expected = 0.5 * (best - second) / best + 0.5 * best
        self.assertAlmostEqual(result.confidence, expected)
        self.assertLess(result.confidence, 1.0)

    def test_noisy_image_runs_in_linear_time(self):
        rng = np.random.default_rng(7)
        data = rng.integers(0, 256, size=512 * 512 * 4, dtype=np.uint8)

        start = time.perf_counter()
        result = detect_grid_size(data, 512, 512)
        elapsed = time.perf_counter() - start

        self.assertGreaterEqual(result.confidence, 0)
        self.assertLess(elapsed, 5.0)

    def test_accepts_bytes(self):
        data, width, height = make_synthetic_image(3, 3, 4, checkerboard)
        result = detect_grid_size(data.tobytes(), width, height)
        self.assertEqual(result.grid_size, 4)

    def test_rejects_wrong_buffer_length(self):
        with self.assertRaises(ValueError):
            detect_grid_size(np.zeros(10, dtype=np.uint8), 2, 2)


class TestGridDetectorSignals(unittest.TestCase):
    def setUp(self):
        self.detector = GridDetector()
        data, width, height = make_synthetic_image(3, 3, 4, checkerboard)
        self.rgb = data.reshape(height, width, 4)[..., :3].astype(np.int64)

    def test_runs_histogram_counts_rows_and_columns(self):
        histogram = self.detector.runs_histogram(self.rgb)
        # 3 runs per line, 12 rows + 12 columns
        self.assertEqual(dict(histogram), {4: 72})
        self.assertEqual(self.detector.histogram_mode(histogram), 4)

    def test_runs_compare_against_run_start(self):
        # Each step is small, but the drift from the first pixel is not
        line = np.array([[0, 0, 0], [10, 0, 0], [20, 0, 0], [30, 0, 0], [40, 0, 0]])
        histogram = self.detector.runs_histogram(line[None, :, :])
        self.assertEqual(histogram[3], 1)
        self.assertEqual(histogram[2], 1)

    def test_long_runs_match_pixel_by_pixel_scan(self):
        rng = np.random.default_rng(3)
        gradient = np.stack([np.arange(200), np.zeros(200), np.zeros(200)], axis=1)
        flat = np.full((100, 3), 77)
        noise = rng.integers(0, 256, size=(50, 3))
        blocky = np.repeat(rng.integers(0, 256, size=(20, 3)), 5, axis=0)
        line = np.concatenate([gradient, flat, noise, blocky, flat[:1]]).astype(np.int64)

        histogram = self.detector.runs_histogram(line[None, :, :])
        self.assertEqual(histogram, plain_runs(line))
        self.assertGreaterEqual(histogram[30], 6)

    def test_empty_histogram_mode_is_one(self):
        self.assertEqual(self.detector.histogram_mode({}), 1)

    def test_edge_scores_peak_on_grid_multiples(self):
        scores = self.detector.edge_scores(self.rgb)
        self.assertAlmostEqual(scores[4], 1.0)
        self.assertAlmostEqual(scores[2], 1.0)
        self.assertLess(scores[3], 1.0)
        self.assertEqual(max(scores), 12)

    def test_uniform_edge_scores_are_zero(self):
        rgb = np.zeros((8, 8, 3), dtype=np.int64)
        scores = self.detector.edge_scores(rgb)
        self.assertEqual(sorted(scores), list(range(2, 9)))
        self.assertTrue(all(score == 0 for score in scores.values()))


class TestSnapToGrid(unittest.TestCase):
    def test_output_dimensions(self):
        data, width, height = make_synthetic_image(3, 3, 4, checkerboard)
        result = snap_to_grid(data, width, height, 4)

        self.assertEqual((result.width, result.height), (3, 3))
        self.assertEqual(len(result.data), 3 * 3 * 4)

    def test_majority_vote_picks_dominant_color(self):
        block = np.tile(np.array(RED, dtype=np.uint8), (16, 1))
        block[:4] = BLUE  # 4 of 16 pixels
        result = snap_to_grid(block.reshape(-1), 4, 4, 4)

        self.assertEqual((result.width, result.height), (1, 1))
        self.assertEqual(tuple(result.data), RED)

    def test_majority_averages_alpha_of_matching_pixels(self):
        block = np.tile(np.array((255, 0, 0, 255), dtype=np.uint8), (16, 1))
        block[6:12, 3] = 128
        block[12:] = BLUE
        result = snap_to_grid(block.reshape(-1), 4, 4, 4)

        # 12 red pixels: six at 255, six at 128 -> 191.5 rounds up
        self.assertEqual(tuple(result.data), (255, 0, 0, 192))

    def test_weighted_center_fallback(self):
        data = np.array([
            0, 0, 0, 255, 100, 0, 0, 255,
            0, 100, 0, 255, 0, 0, 100, 255,
        ], dtype=np.uint8)
        result = snap_to_grid(data, 2, 2, 2)

        # All four pixels are equidistant from the center
        self.assertEqual(tuple(result.data), (25, 25, 25, 255))

    def test_weighted_center_fallback_with_many_colors(self):
        img = np.zeros((4, 4, 4), dtype=np.uint8)
        for y in range(4):
            for x in range(4):
                img[y, x] = (x * 60, y * 60, (x + y) * 30, 255)
        result = snap_to_grid(img.reshape(-1), 4, 4, 4)
        self.assertEqual(result.data[3], 255)

    def test_center_weights_favor_center(self):
        weights = center_weights(3).reshape(3, 3)
        self.assertAlmostEqual(weights[1, 1], 1.0)
        self.assertAlmostEqual(weights[0, 1], 0.5)
        self.assertLess(weights[0, 0], weights[0, 1])

    def test_grid_size_one_returns_copy(self):
        data = np.array([10, 20, 30, 255, 40, 50, 60, 255], dtype=np.uint8)
        result = snap_to_grid(data, 2, 1, 1)

        self.assertEqual((result.width, result.height), (2, 1))
        np.testing.assert_array_equal(result.data, data)
        self.assertIsNot(result.data, data)
        self.assertFalse(np.shares_memory(result.data, data))

    def test_non_divisible_dimensions_truncate(self):
        data = np.zeros((10, 10, 4), dtype=np.uint8)
        data[..., 0] = 255
        data[..., 3] = 255
        result = snap_to_grid(data.reshape(-1), 10, 10, 4)

        self.assertEqual((result.width, result.height), (2, 2))
        self.assertEqual(len(result.data), 2 * 2 * 4)

    def test_preserves_exact_colors_in_clean_grid(self):
        data, width, height = make_synthetic_image(3, 3, 4, checkerboard)
        result = snap_to_grid(data, width, height, 4)

        pixels = result.data.reshape(3, 3, 4)
        for ly in range(3):
            for lx in range(3):
                self.assertEqual(tuple(pixels[ly, lx]), checkerboard(lx, ly))

    def test_does_not_mutate_source(self):
        data, width, height = make_synthetic_image(3, 3, 4, distinct_colors)
        before = data.copy()
        snap_to_grid(data, width, height, 4)
        np.testing.assert_array_equal(data, before)

    def test_transparent_block_stays_transparent(self):
        block = np.zeros((16, 4), dtype=np.uint8)
        block[:, :3] = 9  # transparent pixels with stray RGB
        block[:4] = RED
        result = snap_to_grid(block.reshape(-1), 4, 4, 4)
        self.assertEqual(tuple(result.data), (0, 0, 0, 0))

    def test_transparent_does_not_vote_with_black(self):
        block = np.zeros((16, 4), dtype=np.uint8)
        block[:6] = (0, 0, 0, 255)
        # 6 black + 10 transparent: transparent wins by majority
        result = snap_to_grid(block.reshape(-1), 4, 4, 4)
        self.assertEqual(tuple(result.data), (0, 0, 0, 0))

    def test_rejects_grid_size_below_one(self):
        with self.assertRaises(InvalidGridSizeError):
            snap_to_grid(np.zeros(16, dtype=np.uint8), 2, 2, 0)

    def test_rejects_grid_larger_than_image(self):
        with self.assertRaises(ValueError):
            snap_to_grid(np.zeros(4 * 4 * 4, dtype=np.uint8), 4, 4, 8)


if __name__ == '__main__':
    unittest.main()
