from __future__ import annotations

from typing import Any

from .models import FieldType


DEFAULT_TYPE_COLOR = "rgb(229, 229, 229)"

_TYPE_HUES: dict[FieldType, float] = {
    FieldType.TYPE_2: 0.0,
    FieldType.TYPE_3: 80.0,
    FieldType.TYPE_4: 170.0,
    FieldType.TYPE_5: 45.0,
    FieldType.TYPE_6: 126.0,
    FieldType.TYPE_7: 215.0,
}

_LIGHTNESS = 0.9
_SATURATION = 1.0


def _channel(value: float) -> int:
    return int(min(255.0, max(0.0, value * 255.0)))


def hls_to_rgb(h: float, l: float, s: float) -> tuple[int, int, int]:
    """Convert hue (degrees), lightness and saturation to an 8-bit RGB triple.

    Channels are truncated after clamping, so the result is stable across
    platforms for a given input.
    """
    c = (1.0 - abs(2.0 * l - 1.0)) * s
    x = c * (1.0 - abs((h / 60.0) % 2.0 - 1.0))
    m = l - c / 2.0

    if h < 60.0:
        r, g, b = c, x, 0.0
    elif h < 120.0:
        r, g, b = x, c, 0.0
    elif h < 180.0:
        r, g, b = 0.0, c, x
    elif h < 240.0:
        r, g, b = 0.0, x, c
    elif h < 300.0:
        r, g, b = x, 0.0, c
    else:
        r, g, b = c, 0.0, x

    return _channel(r + m), _channel(g + m), _channel(b + m)


def type_rgb(tag: Any) -> tuple[int, int, int] | None:
    hue = _TYPE_HUES.get(FieldType.parse(tag))
    if hue is None:
        return None
    return hls_to_rgb(hue, _LIGHTNESS, _SATURATION)


def type_color(tag: Any) -> str:
    rgb = type_rgb(tag)
    if rgb is None:
        return DEFAULT_TYPE_COLOR
    return "rgb({}, {}, {})".format(*rgb)


def type_color_table() -> dict[str, str]:
    return {field_type.value: type_color(field_type.value) for field_type in _TYPE_HUES}
