from __future__ import annotations

import unittest

from bitfield_mcp.config import RenderConfig
from bitfield_mcp.layout import (
    BitfieldLayoutError,
    assign_positions,
    compute_layout,
    lane_order,
    lane_width,
    max_attribute_count,
    total_bits,
    uneven_skip,
)
from bitfield_mcp.models import FieldDescriptor, parse_field_list


def _fields(*widths: int) -> list[FieldDescriptor]:
    return [FieldDescriptor(width=width) for width in widths]


class TestBitPositions(unittest.TestCase):
    def test_ranges_are_contiguous_and_cover_all_bits(self) -> None:
        for widths in ((8,), (1, 2, 3, 4), (3, 13, 7, 1, 8), (32,)):
            with self.subTest(widths=widths):
                descriptors = _fields(*widths)
                positioned = assign_positions(descriptors, lane_width(sum(widths), 2))
                self.assertEqual(positioned[0].lsb, 0)
                for before, after in zip(positioned, positioned[1:]):
                    self.assertEqual(after.lsb, before.msb + 1)
                for item in positioned:
                    self.assertEqual(item.msb - item.lsb + 1, item.width)
                self.assertEqual(sum(item.width for item in positioned), total_bits(descriptors, RenderConfig()))

    def test_positions_in_lane_are_modulo_lane_width(self) -> None:
        positioned = assign_positions(_fields(4, 12), 8)
        self.assertEqual((positioned[1].lsb, positioned[1].msb), (4, 15))
        self.assertEqual((positioned[1].lsb_in_lane, positioned[1].msb_in_lane), (4, 7))

    def test_lane_width_rounds_up(self) -> None:
        self.assertEqual(lane_width(16, 2), 8)
        self.assertEqual(lane_width(10, 3), 4)
        self.assertEqual(lane_width(5, 1), 5)

    def test_descriptors_are_not_mutated(self) -> None:
        descriptors = _fields(4, 4)
        before = [item.as_dict() for item in descriptors]
        compute_layout(descriptors, RenderConfig(lane_count=2))
        self.assertEqual([item.as_dict() for item in descriptors], before)


class TestComputeLayout(unittest.TestCase):
    def test_single_named_field(self) -> None:
        layout = compute_layout(parse_field_list([{"name": "OP", "bits": 8}]), RenderConfig())
        self.assertEqual(layout.width, 800)
        self.assertEqual(layout.total_bits, 8)
        self.assertEqual(layout.mod_bits, 8)
        self.assertEqual((layout.fields[0].lsb, layout.fields[0].msb), (0, 7))
        self.assertEqual(layout.max_attr_count, 0)
        self.assertEqual(len(layout.lanes), 1)
        self.assertAlmostEqual(layout.height, 80.5)
        self.assertAlmostEqual(layout.vlane, 80 - 14 * 1.2)

    def test_field_spanning_two_lanes_is_clipped(self) -> None:
        layout = compute_layout(_fields(4, 12), RenderConfig(lane_count=2))
        self.assertEqual(layout.total_bits, 16)
        self.assertEqual(layout.mod_bits, 8)

        spans = [span for lane in layout.lanes for span in lane.spans if span.field.lsb == 4]
        self.assertEqual(len(spans), 2)
        self.assertEqual(sorted(span.bit_count for span in spans), [4, 8])
        self.assertEqual(sum(span.bit_count for span in spans), 12)

    def test_lane_order_puts_highest_lane_first(self) -> None:
        self.assertEqual(lane_order(3, flip_vertical=False), [2, 1, 0])
        self.assertEqual(lane_order(3, flip_vertical=True), [0, 1, 2])
        layout = compute_layout(_fields(8, 8), RenderConfig(lane_count=2))
        self.assertEqual([lane.lane_index for lane in layout.lanes], [1, 0])
        self.assertEqual([lane.offset_y for lane in layout.lanes], [0, 80])

    def test_slots_follow_bit_direction(self) -> None:
        descriptors = _fields(2, 6)
        default = compute_layout(descriptors, RenderConfig())
        flipped = compute_layout(descriptors, RenderConfig(flip_horizontal=True))
        first = default.lanes[0].spans[0]
        first_flipped = flipped.lanes[0].spans[0]
        self.assertEqual((first.lsb_slot, first.msb_slot), (7, 6))
        self.assertEqual((first_flipped.lsb_slot, first_flipped.msb_slot), (0, 1))

    def test_attribute_rows_shrink_lane_height(self) -> None:
        descriptors = parse_field_list([{"bits": 4, "attr": ["RW", 3]}, {"bits": 4, "attr": "RO"}])
        layout = compute_layout(descriptors, RenderConfig())
        self.assertEqual(max_attribute_count(layout.fields), 2)
        self.assertAlmostEqual(layout.vlane, 80 - 14 * (1.2 + 2))

    def test_compact_offsets(self) -> None:
        layout = compute_layout(_fields(8, 8, 8), RenderConfig(lane_count=3, compact=True))
        vlane = 80 - 14 * 1.2
        self.assertAlmostEqual(layout.vlane, vlane)
        offsets = [lane.offset_y for lane in layout.lanes]
        self.assertAlmostEqual(offsets[0], 0)
        self.assertAlmostEqual(offsets[1], 80)
        self.assertAlmostEqual(offsets[2], vlane + 80)
        self.assertAlmostEqual(layout.height, vlane * 2 + 80 + 0.5)

    def test_legend_pushes_lanes_down(self) -> None:
        layout = compute_layout(_fields(8), RenderConfig(legend={"Status": "2"}))
        self.assertAlmostEqual(layout.legend_offset, 14 * 1.2)
        self.assertAlmostEqual(layout.lanes[0].offset_y, 14 * 1.2)
        self.assertAlmostEqual(layout.height, 80.5 + 14 * 1.2)

    def test_bits_override_sets_total(self) -> None:
        layout = compute_layout(_fields(4), RenderConfig(total_bits_override=16, lane_count=2))
        self.assertEqual(layout.total_bits, 16)
        self.assertEqual(layout.mod_bits, 8)

    def test_empty_field_list_without_override_is_rejected(self) -> None:
        with self.assertRaises(BitfieldLayoutError):
            compute_layout([], RenderConfig())
        layout = compute_layout([], RenderConfig(total_bits_override=8))
        self.assertEqual(layout.total_bits, 8)

    def test_as_dict_is_json_friendly(self) -> None:
        payload = compute_layout(_fields(4, 12), RenderConfig(lane_count=2)).as_dict()
        self.assertEqual(payload["lane_count"], 2)
        self.assertEqual(payload["step"], 100)
        self.assertEqual(len(payload["fields"]), 2)
        self.assertEqual(len(payload["lanes"][0]["spans"]), 1)


class TestUnevenSkip(unittest.TestCase):
    def test_only_last_lane_is_shortened(self) -> None:
        config = RenderConfig(lane_count=3, uneven_last_lane=True)
        self.assertEqual(uneven_skip(config, 10, 4, 2), 2)
        self.assertEqual(uneven_skip(config, 10, 4, 1), 0)
        self.assertEqual(uneven_skip(config, 12, 4, 2), 0)

    def test_disabled_or_single_lane(self) -> None:
        self.assertEqual(uneven_skip(RenderConfig(lane_count=3), 10, 4, 2), 0)
        self.assertEqual(uneven_skip(RenderConfig(uneven_last_lane=True), 10, 10, 0), 0)


if __name__ == "__main__":
    unittest.main()
