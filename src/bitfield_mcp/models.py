from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class FieldDescriptorError(ValueError):
    pass


class FieldType(Enum):
    UNKNOWN = ""
    TYPE_2 = "2"
    TYPE_3 = "3"
    TYPE_4 = "4"
    TYPE_5 = "5"
    TYPE_6 = "6"
    TYPE_7 = "7"

    @classmethod
    def parse(cls, value: Any) -> "FieldType":
        if value is None or isinstance(value, bool):
            return cls.UNKNOWN
        if isinstance(value, float) and value.is_integer():
            value = int(value)
        try:
            return cls(str(value).strip())
        except ValueError:
            return cls.UNKNOWN


_KEY_ALIASES = {
    "bits": "width",
    "width": "width",
    "name": "name",
    "type": "type_tag",
    "type_tag": "type_tag",
    "attr": "attribute",
    "attribute": "attribute",
    "rotate": "rotation",
    "rotation": "rotation",
    "overline": "overline",
}


@dataclass(slots=True, frozen=True)
class FieldDescriptor:
    width: int
    name: str | None = None
    type_tag: str | None = None
    attribute: Any = None
    rotation: float | None = None
    overline: bool = False

    def __post_init__(self) -> None:
        if isinstance(self.width, bool) or not isinstance(self.width, int):
            raise FieldDescriptorError(f"width must be an integer, got {self.width!r}")
        if self.width <= 0:
            raise FieldDescriptorError(f"width must be greater than 0, got {self.width}")

    def as_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"bits": self.width}
        if self.name is not None:
            payload["name"] = self.name
        if self.type_tag is not None:
            payload["type"] = self.type_tag
        if self.attribute is not None:
            payload["attr"] = self.attribute
        if self.rotation is not None:
            payload["rotate"] = self.rotation
        if self.overline:
            payload["overline"] = True
        return payload

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "FieldDescriptor":
        if not isinstance(payload, dict):
            raise FieldDescriptorError(f"field descriptor must be an object, got {type(payload).__name__}")

        values: dict[str, Any] = {}
        for key, value in payload.items():
            target = _KEY_ALIASES.get(str(key))
            if target is None:
                continue
            values[target] = value

        if "width" not in values:
            raise FieldDescriptorError("field descriptor is missing 'bits'")

        name = values.get("name")
        type_tag = values.get("type_tag")
        rotation = values.get("rotation")
        if rotation is not None:
            try:
                rotation = float(rotation)
            except (TypeError, ValueError) as exc:
                raise FieldDescriptorError(f"rotate must be a number, got {rotation!r}") from exc

        return cls(
            width=values["width"],
            name=None if name is None else str(name),
            type_tag=None if type_tag is None else str(type_tag),
            attribute=values.get("attribute"),
            rotation=rotation,
            overline=bool(values.get("overline", False)),
        )


def parse_field_list(items: Any) -> list[FieldDescriptor]:
    if not isinstance(items, (list, tuple)):
        raise FieldDescriptorError(f"field list must be an array, got {type(items).__name__}")
    fields: list[FieldDescriptor] = []
    for index, item in enumerate(items):
        if isinstance(item, FieldDescriptor):
            fields.append(item)
            continue
        try:
            fields.append(FieldDescriptor.from_dict(item))
        except FieldDescriptorError as exc:
            raise FieldDescriptorError(f"field {index}: {exc}") from exc
    return fields


@dataclass(slots=True, frozen=True)
class PositionedField:
    descriptor: FieldDescriptor
    lsb: int
    msb: int
    lsb_in_lane: int
    msb_in_lane: int

    @property
    def name(self) -> str | None:
        return self.descriptor.name

    @property
    def width(self) -> int:
        return self.descriptor.width

    @property
    def type_tag(self) -> str | None:
        return self.descriptor.type_tag

    @property
    def attribute(self) -> Any:
        return self.descriptor.attribute

    @property
    def rotation(self) -> float | None:
        return self.descriptor.rotation

    @property
    def overline(self) -> bool:
        return self.descriptor.overline

    @property
    def attribute_list(self) -> list[Any]:
        attribute = self.descriptor.attribute
        if attribute is None:
            return []
        if isinstance(attribute, (list, tuple)):
            return list(attribute)
        return [attribute]

    def as_dict(self) -> dict[str, Any]:
        return {
            **self.descriptor.as_dict(),
            "lsb": self.lsb,
            "msb": self.msb,
            "lsb_in_lane": self.lsb_in_lane,
            "msb_in_lane": self.msb_in_lane,
        }
