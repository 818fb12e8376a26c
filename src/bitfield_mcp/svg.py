from __future__ import annotations

import re
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from typing import Any, Iterator


XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>'
SVG_NAMESPACE = "http://www.w3.org/2000/svg"

# Inline label markup and the tspan presentation attributes it maps to.
_MARKUP_STYLES: dict[str, dict[str, str]] = {
    "b": {"font-weight": "bold"},
    "i": {"font-style": "italic"},
    "u": {"text-decoration": "underline"},
    "s": {"text-decoration": "line-through"},
    "o": {"text-decoration": "overline"},
    "sub": {"baseline-shift": "sub", "font-size": "0.7em"},
    "sup": {"baseline-shift": "super", "font-size": "0.7em"},
    "tt": {"font-family": "monospace"},
}
_MARKUP_RE = re.compile(r"<(/?)(b|i|u|s|o|sub|sup|tt)>")
_CLOSED_ELEMENT_RE = re.compile(r"</[^<>]+>$")


def svg_escape(text: str) -> str:
    return (
        text.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
        .replace("'", "&#39;")
        .replace("\r", "&#13;")
        .replace("\n", "&#10;")
    )


def format_number(value: Any) -> str:
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if value.is_integer():
            return str(int(value))
        text = f"{value:.4f}".rstrip("0").rstrip(".")
        return "0" if text in {"", "-0"} else text
    return str(value)


def translate(x: float, y: float) -> str:
    return f"translate({format_number(x)}, {format_number(y)})"


def rotate(angle: float) -> str:
    return f"rotate({format_number(angle)})"


@dataclass(slots=True)
class Element:
    tag: str
    attrs: dict[str, Any] = field(default_factory=dict)
    children: list["Element | str"] = field(default_factory=list)

    def append(self, child: "Element | str") -> "Element | str":
        self.children.append(child)
        return child


@dataclass(slots=True, frozen=True)
class Style:
    text_anchor: str | None = None
    stroke: str | None = None
    stroke_width: float | None = None
    stroke_linecap: str | None = None

    def merged(self, other: "Style | None") -> "Style":
        if other is None:
            return self
        return replace(
            self,
            text_anchor=other.text_anchor or self.text_anchor,
            stroke=other.stroke or self.stroke,
            stroke_width=self.stroke_width if other.stroke_width is None else other.stroke_width,
            stroke_linecap=other.stroke_linecap or self.stroke_linecap,
        )

    def text_attrs(self) -> dict[str, Any]:
        return {"text-anchor": self.text_anchor} if self.text_anchor else {}

    def line_attrs(self) -> dict[str, Any]:
        attrs: dict[str, Any] = {}
        if self.stroke:
            attrs["stroke"] = self.stroke
        if self.stroke_width is not None:
            attrs["stroke-width"] = self.stroke_width
        if self.stroke_linecap:
            attrs["stroke-linecap"] = self.stroke_linecap
        return attrs


@dataclass(slots=True, frozen=True)
class Font:
    size: float
    family: str
    weight: str

    def attrs(self) -> dict[str, Any]:
        return {"font-size": self.size, "font-family": self.family, "font-weight": self.weight}


def parse_markup(text: str) -> list[Element | str]:
    """Split label text into plain strings and tspan elements.

    Tags may nest. A closing tag that does not match the innermost open tag
    is dropped, and anything that is not a known tag stays literal text.
    """
    root = Element("text")
    stack: list[tuple[str, Element]] = [("", root)]
    pos = 0
    for match in _MARKUP_RE.finditer(text):
        if match.start() > pos:
            stack[-1][1].append(text[pos : match.start()])
        closing, tag = match.groups()
        if closing:
            if len(stack) > 1 and stack[-1][0] == tag:
                stack.pop()
        else:
            span = Element("tspan", dict(_MARKUP_STYLES[tag]))
            stack[-1][1].append(span)
            stack.append((tag, span))
        pos = match.end()
    if pos < len(text):
        stack[-1][1].append(text[pos:])
    return root.children


def _render_attrs(attrs: dict[str, Any]) -> str:
    return "".join(f' {key}="{svg_escape(format_number(value))}"' for key, value in attrs.items())


def _render_inline(node: Element) -> str:
    body = "".join(
        svg_escape(child) if isinstance(child, str) else _render_inline(child) for child in node.children
    )
    return f"<{node.tag}{_render_attrs(node.attrs)}>{body}</{node.tag}>"


def _render_node(node: Element, depth: int, indent: int, lines: list[str]) -> None:
    pad = " " * (indent * depth)
    if node.tag == "text" or any(isinstance(child, str) for child in node.children):
        lines.append(pad + _render_inline(node))
        return
    if not node.children:
        lines.append(f"{pad}<{node.tag}{_render_attrs(node.attrs)}/>")
        return
    lines.append(f"{pad}<{node.tag}{_render_attrs(node.attrs)}>")
    for child in node.children:
        _render_node(child, depth + 1, indent, lines)  # type: ignore[arg-type]
    lines.append(f"{pad}</{node.tag}>")


class SvgDocument:
    def __init__(self, width: float, height: float) -> None:
        self.width = width
        self.height = height
        self.root = Element(
            "svg",
            {
                "xmlns": SVG_NAMESPACE,
                "width": width,
                "height": height,
                "viewBox": f"0 0 {format_number(width)} {format_number(height)}",
            },
        )
        self._stack: list[Element] = [self.root]
        self._styles: list[Style] = [Style()]

    @property
    def style(self) -> Style:
        return self._styles[-1]

    @contextmanager
    def group(self, transform: str, style: Style | None = None) -> Iterator[Element]:
        node = Element("g", {"transform": transform})
        self._stack[-1].append(node)
        self._stack.append(node)
        self._styles.append(self._styles[-1].merged(style))
        try:
            yield node
        finally:
            self._styles.pop()
            self._stack.pop()

    def _emit(self, node: Element) -> Element:
        self._stack[-1].append(node)
        return node

    def text(
        self,
        x: float,
        y: float,
        content: str,
        font: Font,
        attrs: dict[str, Any] | None = None,
    ) -> Element:
        node = Element("text", {"x": x, "y": y, **font.attrs(), **self.style.text_attrs(), **(attrs or {})})
        node.children.extend(parse_markup(content))
        return self._emit(node)

    def label(self, content: str, font: Font, attrs: dict[str, Any] | None = None) -> Element:
        node = Element("text", {**font.attrs(), **self.style.text_attrs(), **(attrs or {})})
        node.children.extend(parse_markup(content))
        return self._emit(node)

    def rect(self, x: float, y: float, width: float, height: float, fill: str) -> Element:
        return self._emit(Element("rect", {"x": x, "y": y, "width": width, "height": height, "fill": fill}))

    def line(self, x1: float, y1: float, x2: float, y2: float) -> Element:
        return self._emit(
            Element("line", {"x1": x1, "y1": y1, "x2": x2, "y2": y2, **self.style.line_attrs()})
        )

    def serialize(self, indent: int = 2) -> str:
        if len(self._stack) != 1:
            raise RuntimeError("Cannot serialize an SVG document with open groups")
        lines = [XML_DECLARATION]
        _render_node(self.root, 0, indent, lines)
        return "\n".join(lines) + "\n"


def beautify_svg(svg: str) -> str:
    result: list[str] = []
    indent = 0
    for line in svg.splitlines():
        trimmed = line.strip()
        if not trimmed:
            continue
        if trimmed.startswith("</"):
            indent = max(0, indent - 1)
            result.append("  " * indent + trimmed)
        elif trimmed.endswith("/>") or trimmed.startswith("<?") or trimmed.startswith("<!--"):
            result.append("  " * indent + trimmed)
        elif trimmed.startswith("<"):
            result.append("  " * indent + trimmed)
            # a line holding a whole element (<text>..</text>) does not open a level
            if not _CLOSED_ELEMENT_RE.search(trimmed):
                indent += 1
        elif _CLOSED_ELEMENT_RE.search(trimmed):
            # tail of an element whose text ran over several lines
            indent = max(0, indent - 1)
            result.append("  " * indent + trimmed)
        else:
            result.append("  " * indent + trimmed)
    return "".join(item + "\n" for item in result)
