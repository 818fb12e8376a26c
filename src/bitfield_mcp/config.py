from __future__ import annotations

from dataclasses import asdict, dataclass, fields, replace
from typing import Any


class RenderConfigError(ValueError):
    pass


# On-disk option names. hflip reverses lane stacking and vflip reverses the
# bit direction inside a lane, hence the crossed mapping.
_OPTION_ALIASES = {
    "vspace": "row_height",
    "hspace": "canvas_width",
    "lanes": "lane_count",
    "bits": "total_bits_override",
    "fontsize": "font_size",
    "fontfamily": "font_family",
    "fontweight": "font_weight",
    "hflip": "flip_vertical",
    "vflip": "flip_horizontal",
    "strokewidth": "stroke_width",
    "trim": "trim_char_width",
    "uneven": "uneven_last_lane",
}


def _parse_legend(value: Any) -> dict[str, str] | None:
    if value is None:
        return None
    if isinstance(value, dict):
        legend = {str(label): str(tag) for label, tag in value.items()}
    elif isinstance(value, (list, tuple)):
        legend = {}
        for item in value:
            if isinstance(item, (list, tuple)) and len(item) == 2:
                legend[str(item[0])] = str(item[1])
                continue
            text = str(item)
            if ":" not in text:
                continue
            label, tag = text.split(":", 1)
            legend[label] = tag
    else:
        raise RenderConfigError(f"legend must be a mapping or a list of 'NAME:TYPE' entries, got {value!r}")
    return legend or None


@dataclass(slots=True, frozen=True)
class RenderConfig:
    row_height: int = 80
    canvas_width: int = 800
    lane_count: int = 1
    total_bits_override: int | None = None
    font_size: int = 14
    font_family: str = "sans-serif"
    font_weight: str = "normal"
    compact: bool = False
    flip_horizontal: bool = False
    flip_vertical: bool = False
    stroke_width: float = 1.0
    trim_char_width: float | None = None
    uneven_last_lane: bool = False
    legend: dict[str, str] | None = None

    def validate(self) -> "RenderConfig":
        if self.row_height <= 19:
            raise RenderConfigError(f"row_height must be greater than 19, got {self.row_height}")
        if self.canvas_width <= 39:
            raise RenderConfigError(f"canvas_width must be greater than 39, got {self.canvas_width}")
        if self.lane_count <= 0:
            raise RenderConfigError(f"lane_count must be greater than 0, got {self.lane_count}")
        if self.total_bits_override is not None and self.total_bits_override <= 4:
            raise RenderConfigError(
                f"total_bits_override must be greater than 4, got {self.total_bits_override}"
            )
        if self.font_size <= 5:
            raise RenderConfigError(f"font_size must be greater than 5, got {self.font_size}")
        return self

    def as_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        if self.legend is not None:
            payload["legend"] = dict(self.legend)
        return payload

    @classmethod
    def from_dict(cls, payload: dict[str, Any] | None) -> "RenderConfig":
        return cls().merged(payload)

    def merged(self, payload: dict[str, Any] | None) -> "RenderConfig":
        if not payload:
            return self.validate()
        if not isinstance(payload, dict):
            raise RenderConfigError(f"config must be an object, got {type(payload).__name__}")

        known = {item.name: item for item in fields(self)}
        changes: dict[str, Any] = {}
        for key, value in payload.items():
            name = _OPTION_ALIASES.get(str(key), str(key))
            if name not in known:
                raise RenderConfigError(f"Unknown config option '{key}'")
            changes[name] = _coerce_option(name, value)
        return replace(self, **changes).validate()


_INT_OPTIONS = {"row_height", "canvas_width", "lane_count", "total_bits_override", "font_size"}
_FLOAT_OPTIONS = {"stroke_width", "trim_char_width"}
_BOOL_OPTIONS = {"compact", "flip_horizontal", "flip_vertical", "uneven_last_lane"}


def _coerce_option(name: str, value: Any) -> Any:
    if name == "legend":
        return _parse_legend(value)
    if value is None:
        if name in {"total_bits_override", "trim_char_width"}:
            return None
        raise RenderConfigError(f"{name} must not be null")
    try:
        if name in _INT_OPTIONS:
            if isinstance(value, bool):
                raise TypeError("boolean")
            number = float(value)
            if not number.is_integer():
                raise ValueError("not an integer")
            return int(number)
        if name in _FLOAT_OPTIONS:
            if isinstance(value, bool):
                raise TypeError("boolean")
            return float(value)
    except (TypeError, ValueError) as exc:
        raise RenderConfigError(f"{name} must be a number, got {value!r}") from exc
    if name in _BOOL_OPTIONS:
        if not isinstance(value, bool):
            raise RenderConfigError(f"{name} must be a boolean, got {value!r}")
        return value
    return str(value)
