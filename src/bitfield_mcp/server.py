from __future__ import annotations

import argparse
import base64
import json
import logging
import os
from pathlib import Path
from typing import Any

import mcp.types as types
from mcp.server.fastmcp import FastMCP

from .colors import DEFAULT_TYPE_COLOR, type_color_table
from .config import RenderConfig
from .layout import compute_layout
from .models import parse_field_list
from .renderer import get_render_event_history, render_bitfield_svg
from .sources import find_bitfield_sources, load_bitfield_source
from .svg import beautify_svg


_LOGGER = logging.getLogger(__name__)

mcp = FastMCP("bitfield-mcp")


def _read_env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in {"1", "true", "yes", "on"}:
        return True
    if value in {"0", "false", "no", "off"}:
        return False
    return default


def _read_env_int(name: str) -> int | None:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return None
    try:
        return int(raw)
    except ValueError:
        _LOGGER.warning("Ignoring non-integer %s=%r", name, raw)
        return None


_DEFAULT_WORKDIR = Path(os.getenv("BITFIELD_MCP_WORKDIR", os.getcwd()))
_DEFAULT_BEAUTIFY = _read_env_bool("BITFIELD_MCP_BEAUTIFY", default=False)
_DEFAULT_FONT_FAMILY = os.getenv("BITFIELD_MCP_FONT_FAMILY")
_DEFAULT_FONT_SIZE = _read_env_int("BITFIELD_MCP_FONT_SIZE")

_workdir: Path = _DEFAULT_WORKDIR.expanduser().resolve()
_beautify_default: bool = _DEFAULT_BEAUTIFY
_font_family: str | None = _DEFAULT_FONT_FAMILY
_font_size: int | None = _DEFAULT_FONT_SIZE


def _server_defaults() -> dict[str, Any]:
    defaults: dict[str, Any] = {}
    if _font_family:
        defaults["font_family"] = _font_family
    if _font_size is not None:
        defaults["font_size"] = _font_size
    return defaults


def _resolve_config(*layers: dict[str, Any] | None) -> RenderConfig:
    config = RenderConfig().merged(_server_defaults())
    for layer in layers:
        config = config.merged(layer)
    return config


def _effective_beautify(beautify: bool | None) -> bool:
    return _beautify_default if beautify is None else bool(beautify)


def _image_tool_result(payload: dict[str, Any]) -> types.CallToolResult:
    image_path = payload.get("image_path")
    if not image_path:
        raise ValueError("image payload missing image_path")
    path = Path(str(image_path)).expanduser().resolve()
    if not path.exists():
        raise FileNotFoundError(f"image_path does not exist: {path}")

    data_b64 = base64.b64encode(path.read_bytes()).decode("ascii")
    content: list[types.TextContent | types.ImageContent] = [
        types.ImageContent(type="image", mimeType="image/svg+xml", data=data_b64),
        types.TextContent(type="text", text=json.dumps(payload, indent=2)),
    ]
    return types.CallToolResult(content=content, structuredContent=payload, isError=False)


@mcp.tool()
def getBitfieldServerStatus() -> dict[str, Any]:
    """Get bitfield renderer defaults and server configuration."""
    return {
        "workdir": str(_workdir),
        "images_dir": str(_workdir / "images" / "bitfields"),
        "beautify_default": _beautify_default,
        "font_family_default": _font_family,
        "font_size_default": _font_size,
        "render_config_defaults": _resolve_config().as_dict(),
        "type_colors": type_color_table(),
    }


@mcp.tool()
def getTypeColors() -> dict[str, Any]:
    """Return the background colour used for each field type tag."""
    return {
        "colors": type_color_table(),
        "default": DEFAULT_TYPE_COLOR,
    }


@mcp.tool()
def computeBitfieldLayout(
    fields: list[dict[str, Any]],
    config: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """
    Compute lane geometry for a field list without drawing it.

    Returns bit positions per field and the clipped spans of each lane in draw order.
    """
    descriptors = parse_field_list(fields)
    layout = compute_layout(descriptors, _resolve_config(config))
    return layout.as_dict()


@mcp.tool()
def renderBitfieldImage(
    fields: list[dict[str, Any]],
    config: dict[str, Any] | None = None,
    name: str = "bitfield",
    output_path: str | None = None,
    beautify: bool | None = None,
) -> types.CallToolResult:
    """
    Render a register bitfield diagram to SVG and return the image through MCP.

    Each field is an object with `bits` and optional `name`, `type`, `attr`,
    `rotate` and `overline`. The response includes the SVG image content and
    structured metadata (image_path, width, height, lanes, etc.).
    """
    if not name.strip():
        raise ValueError("name must be a non-empty string")
    payload = render_bitfield_svg(
        workdir=_workdir,
        fields=fields,
        config=_resolve_config(config),
        name=name,
        output_path=output_path,
        beautify=_effective_beautify(beautify),
    )
    return _image_tool_result(payload)


@mcp.tool()
def renderBitfieldFile(
    source_path: str,
    config: dict[str, Any] | None = None,
    output_path: str | None = None,
    beautify: bool | None = None,
) -> types.CallToolResult:
    """
    Render a bitfield JSON file (a field list, or {"reg": [...], "config": {...}}).

    Options passed in `config` override the options stored in the file.
    """
    source = load_bitfield_source(source_path)
    payload = render_bitfield_svg(
        workdir=_workdir,
        fields=source.fields,
        config=_resolve_config(source.config, config),
        name=source.path.stem,
        output_path=output_path,
        beautify=_effective_beautify(beautify),
    )
    payload["source_path"] = str(source.path)
    payload["source"] = source.as_dict()
    return _image_tool_result(payload)


@mcp.tool()
def listBitfieldSources(directory: str | None = None, recursive: bool = False) -> dict[str, Any]:
    """List JSON files in a directory that look like bitfield descriptions."""
    root = Path(directory).expanduser().resolve() if directory else _workdir
    paths = find_bitfield_sources(root, recursive=recursive)
    return {
        "directory": str(root),
        "recursive": recursive,
        "count": len(paths),
        "sources": [str(path) for path in paths],
    }


@mcp.tool()
def beautifySvg(svg: str) -> dict[str, Any]:
    """Re-indent an SVG document one element per line."""
    pretty = beautify_svg(svg)
    return {"svg": pretty, "changed": pretty != svg}


@mcp.tool()
def getRenderEventHistory(limit: int = 50) -> dict[str, Any]:
    """Return the most recent render events (start, success, failure)."""
    events = get_render_event_history(limit)
    return {"count": len(events), "events": events}


def _configure_server(
    *,
    workdir: Path,
    beautify: bool | None = None,
    font_family: str | None = None,
    font_size: int | None = None,
) -> None:
    global _workdir, _beautify_default, _font_family, _font_size
    _workdir = Path(workdir).expanduser().resolve()
    _beautify_default = _DEFAULT_BEAUTIFY if beautify is None else bool(beautify)
    _font_family = font_family or _DEFAULT_FONT_FAMILY
    _font_size = _DEFAULT_FONT_SIZE if font_size is None else int(font_size)


def main() -> None:
    parser = argparse.ArgumentParser(description="MCP server for register bitfield diagrams")
    parser.add_argument(
        "--workdir",
        default=os.getenv("BITFIELD_MCP_WORKDIR", os.getcwd()),
        help="Directory where rendered images are written",
    )
    parser.add_argument(
        "--beautify",
        dest="beautify",
        action="store_true",
        help="Re-indent rendered SVG by default",
    )
    parser.add_argument(
        "--no-beautify",
        dest="beautify",
        action="store_false",
        help="Keep the emitter's own indentation by default",
    )
    parser.set_defaults(beautify=None)
    parser.add_argument(
        "--font-family",
        default=os.getenv("BITFIELD_MCP_FONT_FAMILY"),
        help="Default font family for labels",
    )
    parser.add_argument(
        "--font-size",
        type=int,
        default=None,
        help="Default font size for labels",
    )
    parser.add_argument(
        "--transport",
        default="stdio",
        choices=["stdio", "sse"],
        help="MCP transport",
    )
    args = parser.parse_args()

    _configure_server(
        workdir=Path(args.workdir).expanduser().resolve(),
        beautify=args.beautify,
        font_family=args.font_family,
        font_size=args.font_size,
    )
    mcp.run(transport=args.transport)


if __name__ == "__main__":
    main()
