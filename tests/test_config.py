from __future__ import annotations

import unittest

from bitfield_mcp.config import RenderConfig, RenderConfigError


class TestRenderConfigValidation(unittest.TestCase):
    def test_defaults(self) -> None:
        config = RenderConfig()
        self.assertEqual(config.row_height, 80)
        self.assertEqual(config.canvas_width, 800)
        self.assertEqual(config.lane_count, 1)
        self.assertIsNone(config.total_bits_override)
        self.assertEqual(config.font_size, 14)
        self.assertEqual(config.font_family, "sans-serif")
        self.assertEqual(config.font_weight, "normal")
        self.assertEqual(config.stroke_width, 1.0)
        self.assertIsNone(config.legend)
        self.assertIs(config.validate(), config)

    def test_minimal_values_are_accepted(self) -> None:
        config = RenderConfig(row_height=20, canvas_width=40, lane_count=1, font_size=6).validate()
        self.assertEqual(config.row_height, 20)
        RenderConfig(total_bits_override=5).validate()

    def test_values_at_the_bound_are_rejected(self) -> None:
        cases = {
            "row_height": 19,
            "canvas_width": 39,
            "lane_count": 0,
            "total_bits_override": 4,
            "font_size": 5,
        }
        for option, value in cases.items():
            with self.subTest(option=option):
                with self.assertRaisesRegex(RenderConfigError, option):
                    RenderConfig(**{option: value}).validate()

    def test_error_message_names_the_value(self) -> None:
        with self.assertRaises(RenderConfigError) as ctx:
            RenderConfig(row_height=19).validate()
        self.assertEqual(str(ctx.exception), "row_height must be greater than 19, got 19")

    def test_instances_are_slotted_and_frozen(self) -> None:
        config = RenderConfig()
        self.assertFalse(hasattr(config, "__dict__"))
        with self.assertRaises(AttributeError):
            config.row_height = 100  # type: ignore[misc]


class TestRenderConfigFromDict(unittest.TestCase):
    def test_on_disk_aliases(self) -> None:
        config = RenderConfig.from_dict(
            {
                "vspace": 100,
                "hspace": 640,
                "lanes": 2,
                "bits": 32,
                "fontsize": 12,
                "fontfamily": "monospace",
                "fontweight": "bold",
                "strokewidth": 2,
                "trim": 8,
                "uneven": True,
            }
        )
        self.assertEqual(config.row_height, 100)
        self.assertEqual(config.canvas_width, 640)
        self.assertEqual(config.lane_count, 2)
        self.assertEqual(config.total_bits_override, 32)
        self.assertEqual(config.font_size, 12)
        self.assertEqual(config.font_family, "monospace")
        self.assertEqual(config.font_weight, "bold")
        self.assertEqual(config.stroke_width, 2.0)
        self.assertEqual(config.trim_char_width, 8.0)
        self.assertTrue(config.uneven_last_lane)

    def test_flip_aliases_cross_over(self) -> None:
        config = RenderConfig.from_dict({"hflip": True})
        self.assertTrue(config.flip_vertical)
        self.assertFalse(config.flip_horizontal)
        config = RenderConfig.from_dict({"vflip": True})
        self.assertTrue(config.flip_horizontal)
        self.assertFalse(config.flip_vertical)

    def test_field_names_are_accepted(self) -> None:
        config = RenderConfig.from_dict({"lane_count": 4, "compact": True})
        self.assertEqual(config.lane_count, 4)
        self.assertTrue(config.compact)

    def test_unknown_option_is_rejected(self) -> None:
        with self.assertRaisesRegex(RenderConfigError, "Unknown config option 'colour'"):
            RenderConfig.from_dict({"colour": "red"})

    def test_type_errors(self) -> None:
        with self.assertRaisesRegex(RenderConfigError, "lane_count must be a number"):
            RenderConfig.from_dict({"lanes": "many"})
        with self.assertRaisesRegex(RenderConfigError, "lane_count must be a number"):
            RenderConfig.from_dict({"lanes": 1.5})
        with self.assertRaisesRegex(RenderConfigError, "compact must be a boolean"):
            RenderConfig.from_dict({"compact": "yes"})

    def test_out_of_range_from_dict(self) -> None:
        with self.assertRaisesRegex(RenderConfigError, "row_height"):
            RenderConfig.from_dict({"vspace": 19})

    def test_merged_layers_on_existing_values(self) -> None:
        base = RenderConfig.from_dict({"fontfamily": "serif", "lanes": 2})
        merged = base.merged({"lanes": 4})
        self.assertEqual(merged.font_family, "serif")
        self.assertEqual(merged.lane_count, 4)
        self.assertIs(base.merged(None), base)

    def test_legend_forms(self) -> None:
        from_strings = RenderConfig.from_dict({"legend": ["Status:2", "Control:4", "junk"]})
        self.assertEqual(from_strings.legend, {"Status": "2", "Control": "4"})
        from_mapping = RenderConfig.from_dict({"legend": {"Status": 2}})
        self.assertEqual(from_mapping.legend, {"Status": "2"})
        from_pairs = RenderConfig.from_dict({"legend": [["Status", "2"]]})
        self.assertEqual(from_pairs.legend, {"Status": "2"})
        self.assertIsNone(RenderConfig.from_dict({"legend": ["junk"]}).legend)
        with self.assertRaises(RenderConfigError):
            RenderConfig.from_dict({"legend": 5})

    def test_as_dict_round_trips(self) -> None:
        config = RenderConfig.from_dict({"lanes": 2, "legend": {"A": "3"}})
        self.assertEqual(RenderConfig.from_dict(config.as_dict()), config)


if __name__ == "__main__":
    unittest.main()
