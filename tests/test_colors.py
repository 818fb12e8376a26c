from __future__ import annotations

import unittest

from bitfield_mcp.colors import DEFAULT_TYPE_COLOR, hls_to_rgb, type_color, type_color_table, type_rgb


class TestTypeColors(unittest.TestCase):
    def test_known_type_colors(self) -> None:
        expected = {
            "2": "rgb(255, 204, 204)",
            "3": "rgb(238, 255, 204)",
            "4": "rgb(204, 255, 246)",
            "5": "rgb(255, 242, 204)",
            "6": "rgb(204, 255, 209)",
            "7": "rgb(204, 225, 255)",
        }
        for tag, color in expected.items():
            with self.subTest(tag=tag):
                self.assertEqual(type_color(tag), color)

    def test_numeric_tags_match_string_tags(self) -> None:
        self.assertEqual(type_color(4), type_color("4"))

    def test_unknown_tags_fall_back_to_grey(self) -> None:
        for tag in (None, "", "1", "8", "x"):
            with self.subTest(tag=tag):
                self.assertEqual(type_color(tag), DEFAULT_TYPE_COLOR)
                self.assertIsNone(type_rgb(tag))
        self.assertEqual(DEFAULT_TYPE_COLOR, "rgb(229, 229, 229)")

    def test_table_covers_all_types(self) -> None:
        table = type_color_table()
        self.assertEqual(sorted(table), ["2", "3", "4", "5", "6", "7"])
        self.assertEqual(table["2"], "rgb(255, 204, 204)")


class TestHlsToRgb(unittest.TestCase):
    def test_primary_hues(self) -> None:
        self.assertEqual(hls_to_rgb(0.0, 0.5, 1.0), (255, 0, 0))
        self.assertEqual(hls_to_rgb(120.0, 0.5, 1.0), (0, 255, 0))
        self.assertEqual(hls_to_rgb(240.0, 0.5, 1.0), (0, 0, 255))

    def test_greys_and_extremes(self) -> None:
        self.assertEqual(hls_to_rgb(0.0, 0.0, 1.0), (0, 0, 0))
        self.assertEqual(hls_to_rgb(0.0, 1.0, 1.0), (255, 255, 255))
        self.assertEqual(hls_to_rgb(200.0, 0.5, 0.0), (127, 127, 127))


if __name__ == "__main__":
    unittest.main()
