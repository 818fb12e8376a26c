from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Sequence

from .config import RenderConfig
from .models import FieldDescriptor, PositionedField


class BitfieldLayoutError(ValueError):
    pass


@dataclass(slots=True, frozen=True)
class LaneSpan:
    """A field clipped to one lane, with its horizontal bit slots."""

    field: PositionedField
    lsb: int
    msb: int
    lsb_in_lane: int
    msb_in_lane: int
    lsb_slot: int
    msb_slot: int

    @property
    def bit_count(self) -> int:
        return self.msb_in_lane - self.lsb_in_lane + 1

    def as_dict(self) -> dict[str, Any]:
        return {
            "name": self.field.name,
            "lsb": self.lsb,
            "msb": self.msb,
            "lsb_in_lane": self.lsb_in_lane,
            "msb_in_lane": self.msb_in_lane,
            "lsb_slot": self.lsb_slot,
            "msb_slot": self.msb_slot,
        }


@dataclass(slots=True)
class LaneGeometry:
    position: int
    lane_index: int
    offset_y: float
    skip: int
    spans: list[LaneSpan] = field(default_factory=list)

    def as_dict(self) -> dict[str, Any]:
        return {
            "position": self.position,
            "lane_index": self.lane_index,
            "offset_y": self.offset_y,
            "skip": self.skip,
            "spans": [span.as_dict() for span in self.spans],
        }


@dataclass(slots=True)
class Layout:
    config: RenderConfig
    total_bits: int
    mod_bits: int
    fields: list[PositionedField]
    max_attr_count: int
    vlane: float
    width: float
    height: float
    legend_offset: float
    lanes: list[LaneGeometry] = field(default_factory=list)

    @property
    def step(self) -> float:
        return self.config.canvas_width / self.mod_bits

    @property
    def field_starts(self) -> set[int]:
        return {item.lsb for item in self.fields}

    def as_dict(self) -> dict[str, Any]:
        return {
            "total_bits": self.total_bits,
            "mod_bits": self.mod_bits,
            "lane_count": len(self.lanes),
            "max_attr_count": self.max_attr_count,
            "vlane": self.vlane,
            "width": self.width,
            "height": self.height,
            "step": self.step,
            "fields": [item.as_dict() for item in self.fields],
            "lanes": [lane.as_dict() for lane in self.lanes],
        }


def total_bits(fields: Sequence[FieldDescriptor], config: RenderConfig) -> int:
    if config.total_bits_override is not None:
        return config.total_bits_override
    return sum(item.width for item in fields)


def lane_width(total: int, lane_count: int) -> int:
    return (total + lane_count - 1) // lane_count


def assign_positions(descriptors: Sequence[FieldDescriptor], mod_bits: int) -> list[PositionedField]:
    positioned: list[PositionedField] = []
    running = 0
    for descriptor in descriptors:
        lsb = running
        msb = lsb + descriptor.width - 1
        running += descriptor.width
        positioned.append(
            PositionedField(
                descriptor=descriptor,
                lsb=lsb,
                msb=msb,
                lsb_in_lane=lsb % mod_bits,
                msb_in_lane=msb % mod_bits,
            )
        )
    return positioned


def max_attribute_count(fields: Sequence[PositionedField]) -> int:
    counts = [max(1, len(item.attribute_list)) for item in fields if item.attribute is not None]
    return max(counts, default=0)


def bit_slot(bit_in_lane: int, mod_bits: int, flip_horizontal: bool) -> int:
    return bit_in_lane if flip_horizontal else mod_bits - bit_in_lane - 1


def lane_spans(
    fields: Sequence[PositionedField],
    lane_index: int,
    mod_bits: int,
    flip_horizontal: bool,
) -> list[LaneSpan]:
    lane_lsb = lane_index * mod_bits
    lane_msb = lane_lsb + mod_bits - 1
    spans: list[LaneSpan] = []
    for item in fields:
        if item.msb < lane_lsb or item.lsb > lane_msb:
            continue
        lsb = max(item.lsb, lane_lsb)
        msb = min(item.msb, lane_msb)
        lsb_in_lane = lsb - lane_lsb
        msb_in_lane = msb - lane_lsb
        spans.append(
            LaneSpan(
                field=item,
                lsb=lsb,
                msb=msb,
                lsb_in_lane=lsb_in_lane,
                msb_in_lane=msb_in_lane,
                lsb_slot=bit_slot(lsb_in_lane, mod_bits, flip_horizontal),
                msb_slot=bit_slot(msb_in_lane, mod_bits, flip_horizontal),
            )
        )
    return spans


def lane_order(lane_count: int, flip_vertical: bool) -> list[int]:
    return [index if flip_vertical else lane_count - index - 1 for index in range(lane_count)]


def uneven_skip(config: RenderConfig, total: int, mod_bits: int, lane_index: int) -> int:
    if not (config.uneven_last_lane and config.lane_count > 1 and lane_index == config.lane_count - 1):
        return 0
    skip = mod_bits - total % mod_bits
    return 0 if skip == mod_bits else skip


def _lane_offset(config: RenderConfig, position: int, vlane: float, legend_offset: float) -> float:
    if config.compact:
        offset = (position - 1) * vlane + config.row_height if position > 0 else 0.0
    else:
        offset = position * config.row_height
    return offset + legend_offset


def compute_layout(descriptors: Sequence[FieldDescriptor], config: RenderConfig) -> Layout:
    config.validate()
    total = total_bits(descriptors, config)
    if total <= 0:
        raise BitfieldLayoutError("Nothing to lay out: the field list is empty and no bits override was given.")

    mod_bits = lane_width(total, config.lane_count)
    positioned = assign_positions(descriptors, mod_bits)
    max_attr = max_attribute_count(positioned)

    if config.compact:
        vlane = config.row_height - config.font_size * 1.2
        height = vlane * (config.lane_count - 1) + config.row_height + config.stroke_width / 2
    else:
        vlane = config.row_height - config.font_size * (1.2 + max_attr)
        height = config.row_height * config.lane_count + config.stroke_width / 2

    legend_offset = config.font_size * 1.2 if config.legend else 0.0
    height += legend_offset

    layout = Layout(
        config=config,
        total_bits=total,
        mod_bits=mod_bits,
        fields=positioned,
        max_attr_count=max_attr,
        vlane=vlane,
        width=config.canvas_width,
        height=height,
        legend_offset=legend_offset,
    )
    for position, lane_index in enumerate(lane_order(config.lane_count, config.flip_vertical)):
        layout.lanes.append(
            LaneGeometry(
                position=position,
                lane_index=lane_index,
                offset_y=_lane_offset(config, position, vlane, legend_offset),
                skip=uneven_skip(config, total, mod_bits, lane_index),
                spans=lane_spans(positioned, lane_index, mod_bits, config.flip_horizontal),
            )
        )
    return layout
