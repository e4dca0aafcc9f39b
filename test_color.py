import unittest

import numpy as np
from skimage.color import rgb2lab

from pixelclean.color_space import (
    delta_e,
    lab_to_rgb,
    nearest_indices,
    oklab_distance,
    oklab_to_rgb,
    rgb_delta_e,
    rgb_to_lab,
    rgb_to_oklab,
    to_perceptual,
)
from pixelclean.palette import count_colors, extract_colors, extract_top_colors


def color_cube(step=17):
    levels = np.arange(0, 256, step)
    r, g, b = np.meshgrid(levels, levels, levels, indexing="ij")
    return np.stack([r.ravel(), g.ravel(), b.ravel()], axis=-1)


class TestLab(unittest.TestCase):
    def test_black(self):
        lab = rgb_to_lab([0, 0, 0])
        np.testing.assert_allclose(lab, [0, 0, 0], atol=1e-6)

    def test_white(self):
        L, a, b = rgb_to_lab([255, 255, 255])
        self.assertAlmostEqual(L, 100, places=2)
        self.assertAlmostEqual(a, 0, places=2)
        self.assertAlmostEqual(b, 0, places=2)

    def test_red(self):
        L, a, b = rgb_to_lab([255, 0, 0])
        self.assertAlmostEqual(L, 53.24, delta=0.1)
        self.assertGreater(a, 70)
        self.assertGreater(b, 60)

    def test_alpha_is_ignored(self):
        np.testing.assert_allclose(rgb_to_lab([10, 200, 30, 0]), rgb_to_lab([10, 200, 30]))

    def test_matches_skimage(self):
        colors = color_cube(51)
        expected = rgb2lab(colors[None, :, :] / 255.0)[0]
        np.testing.assert_allclose(rgb_to_lab(colors), expected, atol=0.1)

    def test_round_trip(self):
        colors = color_cube()
        back = lab_to_rgb(rgb_to_lab(colors))
        self.assertLessEqual(int(np.abs(back - colors).max()), 1)

    def test_lab_to_rgb_clips_out_of_gamut(self):
        rgb = lab_to_rgb([50, 200, -200])
        self.assertTrue(np.all((rgb >= 0) & (rgb <= 255)))


class TestOklab(unittest.TestCase):
    def test_white(self):
        L, a, b = rgb_to_oklab([255, 255, 255])
        self.assertAlmostEqual(L, 1.0, places=3)
        self.assertAlmostEqual(a, 0.0, places=3)
        self.assertAlmostEqual(b, 0.0, places=3)

    def test_round_trip(self):
        colors = color_cube()
        back = oklab_to_rgb(rgb_to_oklab(colors))
        self.assertLessEqual(int(np.abs(back - colors).max()), 1)

    def test_distance(self):
        self.assertEqual(oklab_distance((40, 80, 120, 255), (40, 80, 120, 255)), 0.0)
        self.assertAlmostEqual(oklab_distance((0, 0, 0), (255, 255, 255)), 1.0, places=3)


class TestDeltaE(unittest.TestCase):
    def test_identical_colors(self):
        self.assertEqual(rgb_delta_e((12, 34, 56, 255), (12, 34, 56, 255)), 0.0)

    def test_black_and_white_are_far_apart(self):
        self.assertGreater(rgb_delta_e((0, 0, 0), (255, 255, 255)), 90)

    def test_similar_colors_are_close(self):
        d = rgb_delta_e((200, 30, 30), (202, 31, 29))
        self.assertGreater(d, 0)
        self.assertLess(d, 5)

    def test_broadcasts_against_a_single_color(self):
        labs = rgb_to_lab([[0, 0, 0], [255, 255, 255]])
        d = delta_e(labs, rgb_to_lab([0, 0, 0]))
        self.assertEqual(d.shape, (2,))
        self.assertAlmostEqual(float(d[0]), 0.0)
        self.assertAlmostEqual(float(d[1]), 100.0, places=2)

    def test_unknown_space(self):
        with self.assertRaises(ValueError):
            to_perceptual([0, 0, 0], "hsv")


class TestNearestIndices(unittest.TestCase):
    def test_picks_closest_center(self):
        centers = np.array([[0, 0, 0], [100, 0, 0], [0, 100, 0]])
        points = np.array([[90, 5, 0], [3, 2, 1], [10, 80, 0]])
        np.testing.assert_array_equal(nearest_indices(points, centers), [1, 0, 2])

    def test_empty_points(self):
        result = nearest_indices(np.zeros((0, 3)), np.array([[0, 0, 0]]))
        self.assertEqual(len(result), 0)


class TestPaletteStats(unittest.TestCase):
    def setUp(self):
        self.data = np.array([
            255, 0, 0, 255,
            255, 0, 0, 255,
            255, 0, 0, 128,
            0, 255, 0, 255,
            0, 255, 0, 255,
            0, 0, 255, 255,
            7, 7, 7, 0,
        ], dtype=np.uint8)

    def test_extract_colors_skips_transparent(self):
        colors = extract_colors(self.data)
        self.assertEqual(colors, {0xFF0000: 3, 0x00FF00: 2, 0x0000FF: 1})

    def test_count_colors(self):
        self.assertEqual(count_colors(self.data), 3)
        self.assertEqual(count_colors(np.zeros(8, dtype=np.uint8)), 0)

    def test_top_colors_by_frequency(self):
        top = extract_top_colors(self.data, 2)
        self.assertEqual(top, [(255, 0, 0, 255), (0, 255, 0, 255)])

    def test_top_colors_with_nothing_opaque(self):
        self.assertEqual(extract_top_colors(np.zeros(8, dtype=np.uint8), 4), [])


if __name__ == '__main__':
    unittest.main()
