from __future__ import annotations

import json
import logging
import os
import time
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Mapping, Sequence

from .colors import type_color
from .config import RenderConfig
from .layout import LaneGeometry, Layout, compute_layout
from .models import FieldDescriptor, parse_field_list
from .svg import Font, Style, SvgDocument, beautify_svg, rotate, translate


_LOGGER = logging.getLogger(__name__)
_EVENT_HISTORY_LIMIT = max(50, int(os.getenv("BITFIELD_MCP_EVENT_HISTORY_LIMIT", "400")))
_render_event_history: deque[dict[str, Any]] = deque(maxlen=_EVENT_HISTORY_LIMIT)

_LEGEND_SWATCH = 12
_LEGEND_SWATCH_PADDING = 20
_LEGEND_NAME_PADDING = 64
_NAME_BASELINE_SHIFT = 6


def _log_render_event(level: int, event: str, **fields: Any) -> None:
    payload = {"event": event, **fields}
    _render_event_history.append(
        {
            "timestamp": datetime.now().isoformat(),
            "level": logging.getLevelName(level),
            **payload,
        }
    )
    try:
        encoded = json.dumps(payload, sort_keys=True, default=str)
    except Exception:  # noqa: BLE001
        encoded = str(payload)
    _LOGGER.log(level, "bitfield_render %s", encoded)


def get_render_event_history(limit: int = 200) -> list[dict[str, Any]]:
    if limit <= 0:
        return []
    return list(_render_event_history)[-limit:]


@dataclass(slots=True)
class RenderResult:
    svg: str
    layout: Layout
    beautified: bool
    duration_seconds: float

    def as_dict(self) -> dict[str, Any]:
        return {
            "width": self.layout.width,
            "height": self.layout.height,
            "total_bits": self.layout.total_bits,
            "mod_bits": self.layout.mod_bits,
            "lanes": len(self.layout.lanes),
            "field_count": len(self.layout.fields),
            "bytes": len(self.svg.encode("utf-8")),
            "beautified": self.beautified,
            "duration_seconds": round(self.duration_seconds, 4),
        }


def trim_text(text: str, available_space: float, char_width: float | None) -> str:
    if char_width is None or char_width <= 0:
        return text
    text_width = len(text) * char_width
    if text_width <= available_space:
        return text
    end = len(text) - int((text_width - available_space) / char_width) - 3
    trimmed = text[: max(end, 1)] + "..."
    # strictly shorter than the input, or the input itself
    return trimmed if len(trimmed) < len(text) else text


def _coerce_config(config: RenderConfig | Mapping[str, Any] | None) -> RenderConfig:
    if config is None:
        return RenderConfig().validate()
    if isinstance(config, RenderConfig):
        return config.validate()
    return RenderConfig.from_dict(dict(config))


def _is_unsigned(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def _attribute_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    try:
        return json.dumps(value)
    except (TypeError, ValueError):
        return str(value)


def _render_legend(doc: SvgDocument, layout: Layout, font: Font) -> None:
    config = layout.config
    legend = config.legend or {}
    with doc.group(translate(0, config.stroke_width / 2)):
        x = config.canvas_width / 2 - len(legend) / 2 * (_LEGEND_SWATCH_PADDING + _LEGEND_NAME_PADDING)
        for label, tag in legend.items():
            doc.rect(x, 0, _LEGEND_SWATCH, _LEGEND_SWATCH, type_color(tag))
            x += _LEGEND_SWATCH_PADDING
            doc.text(x, config.font_size / 1.2, label, font)
            x += _LEGEND_NAME_PADDING


def _render_bit_numbers(doc: SvgDocument, layout: Layout, lane: LaneGeometry, font: Font) -> None:
    config = layout.config
    step = layout.step
    with doc.group(translate(step / 2, config.font_size)):
        if config.compact:
            for slot in range(layout.mod_bits):
                number = slot if config.flip_horizontal else layout.mod_bits - slot - 1
                doc.text(step * slot, 0, str(number), font)
            return
        for span in lane.spans:
            doc.text(step * span.lsb_slot, 0, str(span.lsb), font)
            if span.lsb_in_lane != span.msb_in_lane:
                doc.text(step * span.msb_slot, 0, str(span.msb), font)


def _render_blanks(doc: SvgDocument, layout: Layout, lane: LaneGeometry) -> None:
    config = layout.config
    step = layout.step
    with doc.group(translate(0, 0)):
        for span in lane.spans:
            item = span.field
            if item.name is not None and item.type_tag is None:
                continue
            x = step * (span.lsb_slot if config.flip_horizontal else span.msb_slot)
            doc.rect(
                x,
                config.stroke_width / 2,
                step * span.bit_count,
                layout.vlane - config.stroke_width / 2,
                type_color(item.type_tag),
            )


def _render_names(doc: SvgDocument, layout: Layout, lane: LaneGeometry, font: Font) -> None:
    config = layout.config
    step = layout.step
    with doc.group(translate(step / 2, layout.vlane / 2 + config.font_size / 2)):
        for span in lane.spans:
            item = span.field
            if item.name is None:
                continue
            text = trim_text(item.name, step * span.bit_count, config.trim_char_width)
            attrs: dict[str, Any] = {"text-anchor": "middle", "y": _NAME_BASELINE_SHIFT}
            if item.rotation is not None:
                attrs["transform"] = rotate(item.rotation)
            if item.overline:
                attrs["text-decoration"] = "overline"
            center = step * (span.msb_slot + span.lsb_slot) / 2
            with doc.group(translate(center, -_NAME_BASELINE_SHIFT)):
                doc.label(text, font, attrs)


def _render_attributes(doc: SvgDocument, layout: Layout, lane: LaneGeometry, font: Font) -> None:
    config = layout.config
    step = layout.step
    with doc.group(translate(step / 2, layout.vlane + config.font_size)):
        for span in lane.spans:
            item = span.field
            for index, value in enumerate(item.attribute_list):
                with doc.group(translate(0, index * config.font_size)):
                    if not _is_unsigned(value):
                        center = step * (span.msb_slot + span.lsb_slot) / 2
                        doc.text(center, 0, _attribute_text(value), font)
                        continue
                    # bit k of the span reads bit (k + span offset) of the value
                    shift = span.lsb - item.lsb
                    for offset in range(span.bit_count):
                        bit = (value >> (offset + shift)) & 1
                        if config.flip_horizontal:
                            slot = span.lsb_slot + offset
                        else:
                            slot = span.lsb_slot - offset
                        doc.text(step * slot, 0, str(bit), font)


def _render_labels(doc: SvgDocument, layout: Layout, lane: LaneGeometry, font: Font) -> None:
    config = layout.config
    with_header = not config.compact or lane.position == 0
    with doc.group(translate(0, 0), Style(text_anchor="middle")):
        if with_header:
            _render_bit_numbers(doc, layout, lane, font)
        body_offset = config.font_size * 1.2 if with_header else 0
        with doc.group(translate(0, body_offset)):
            _render_blanks(doc, layout, lane)
            _render_names(doc, layout, lane, font)
            if not config.compact:
                _render_attributes(doc, layout, lane, font)


def _render_cage(doc: SvgDocument, layout: Layout, lane: LaneGeometry) -> None:
    config = layout.config
    mod_bits = layout.mod_bits
    step = layout.step
    vlane = layout.vlane
    half_stroke = config.stroke_width / 2
    dy = config.font_size * 1.2 if not config.compact or lane.position == 0 else 0
    style = Style(stroke="black", stroke_width=config.stroke_width, stroke_linecap="butt")

    with doc.group(translate(0, dy), style):
        hlen = step * (mod_bits - lane.skip)
        hpos = 0.0 if config.flip_horizontal else step * lane.skip
        if not config.compact or config.flip_vertical or lane.lane_index == 0:
            doc.line(hpos, vlane, hpos + hlen, vlane)
        if not config.compact or not config.flip_vertical or lane.lane_index == 0:
            doc.line(hpos, 0, hpos + hlen, 0)

        hbit = (config.canvas_width - config.stroke_width) / mod_bits
        starts = layout.field_starts
        for slot in range(mod_bits):
            bitm = slot if config.flip_horizontal else mod_bits - slot - 1
            bit = lane.lane_index * mod_bits + bitm
            if bit >= layout.total_bits:
                continue
            rpos = slot + 1 if config.flip_horizontal else slot
            lpos = slot if config.flip_horizontal else slot + 1
            if bitm + 1 == mod_bits - lane.skip:
                x = rpos * hbit + half_stroke
                doc.line(x, 0, x, vlane)
            x = lpos * hbit + half_stroke
            if bitm == 0 or bit in starts:
                doc.line(x, 0, x, vlane)
            else:
                doc.line(x, 0, x, vlane / 8)
                doc.line(x, vlane * 7 / 8, x, vlane)


def build_document(fields: Sequence[FieldDescriptor], config: RenderConfig) -> tuple[SvgDocument, Layout]:
    layout = compute_layout(fields, config)
    font = Font(size=config.font_size, family=config.font_family, weight=config.font_weight)
    doc = SvgDocument(layout.width, layout.height)
    if config.legend:
        _render_legend(doc, layout, font)
    for lane in layout.lanes:
        with doc.group(translate(0, lane.offset_y)):
            _render_labels(doc, layout, lane, font)
            _render_cage(doc, layout, lane)
    return doc, layout


def render_bitfield(
    fields: Sequence[FieldDescriptor | Mapping[str, Any]],
    config: RenderConfig | Mapping[str, Any] | None = None,
    *,
    beautify: bool = False,
) -> RenderResult:
    started = time.perf_counter()
    try:
        resolved = _coerce_config(config)
        descriptors = parse_field_list(list(fields))
        _log_render_event(logging.DEBUG, "render_start", fields=len(descriptors), lanes=resolved.lane_count)
        doc, layout = build_document(descriptors, resolved)
    except Exception as exc:
        _log_render_event(logging.WARNING, "render_failed", error=str(exc), error_type=type(exc).__name__)
        raise

    svg = doc.serialize()
    if beautify:
        svg = beautify_svg(svg)
    result = RenderResult(
        svg=svg,
        layout=layout,
        beautified=beautify,
        duration_seconds=time.perf_counter() - started,
    )
    _log_render_event(logging.INFO, "render_success", **result.as_dict())
    return result


def render(
    fields: Sequence[FieldDescriptor | Mapping[str, Any]],
    config: RenderConfig | Mapping[str, Any] | None = None,
    *,
    beautify: bool = False,
) -> str:
    return render_bitfield(fields, config, beautify=beautify).svg


def _safe_name(name: str) -> str:
    cleaned = "".join(ch if (ch.isalnum() or ch in "_-") else "_" for ch in name)
    return cleaned.strip("_") or "bitfield"


def resolve_image_output_path(*, workdir: Path, name: str, output_path: str | None) -> Path:
    if output_path:
        target = Path(output_path).expanduser().resolve()
        return target if target.suffix.lower() == ".svg" else target.with_suffix(".svg")
    stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    return (workdir / "images" / "bitfields" / f"{stamp}_{_safe_name(name)}.svg").resolve()


def _write_svg(target: Path, svg: str) -> Path:
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(svg, encoding="utf-8")
    return target


def render_to_file(
    fields: Sequence[FieldDescriptor | Mapping[str, Any]],
    config: RenderConfig | Mapping[str, Any] | None,
    target: str | Path,
    *,
    beautify: bool = False,
) -> Path:
    result = render_bitfield(fields, config, beautify=beautify)
    return _write_svg(Path(target).expanduser().resolve(), result.svg)


def render_bitfield_svg(
    *,
    workdir: Path,
    fields: Sequence[FieldDescriptor | Mapping[str, Any]],
    config: RenderConfig | Mapping[str, Any] | None = None,
    name: str = "bitfield",
    output_path: str | None = None,
    beautify: bool = False,
) -> dict[str, Any]:
    result = render_bitfield(fields, config, beautify=beautify)
    target = _write_svg(resolve_image_output_path(workdir=workdir, name=name, output_path=output_path), result.svg)
    return {
        "image_path": str(target),
        "format": "svg",
        "name": name,
        **result.as_dict(),
    }
