#!/usr/bin/env python3
from __future__ import annotations

import argparse
import base64
import json
import sys
from pathlib import Path
from typing import Any

import anyio
from mcp.client.session import ClientSession
from mcp.client.stdio import StdioServerParameters, stdio_client


def _extract_call_result(payload: Any) -> Any:
    structured = getattr(payload, "structuredContent", None)
    if structured is not None:
        if isinstance(structured, dict) and "result" in structured:
            return structured["result"]
        return structured

    content = getattr(payload, "content", None) or []
    for item in content:
        text = getattr(item, "text", None)
        if text is None:
            continue
        try:
            return json.loads(text)
        except json.JSONDecodeError:
            return text
    return None


def _extract_image(payload: Any) -> tuple[str, bytes] | None:
    for item in getattr(payload, "content", None) or []:
        if getattr(item, "type", None) == "image":
            return item.mimeType, base64.b64decode(item.data)
    return None


def _require(condition: bool, message: str) -> None:
    if not condition:
        raise AssertionError(message)


async def _run_smoke_test(args: argparse.Namespace) -> None:
    workdir = Path(args.workdir).expanduser().resolve()
    workdir.mkdir(parents=True, exist_ok=True)

    server_params = StdioServerParameters(
        command=args.server_command,
        args=["--transport", "stdio", "--workdir", str(workdir)],
        cwd=str(Path(args.server_cwd).expanduser().resolve()),
    )

    async with stdio_client(server_params) as (read_stream, write_stream):
        async with ClientSession(read_stream, write_stream) as session:
            init = await session.initialize()
            print(f"Connected to {init.serverInfo.name} {init.serverInfo.version}")

            tools_result = await session.list_tools()
            tool_names = {tool.name for tool in tools_result.tools}
            required_tools = {
                "getBitfieldServerStatus",
                "getTypeColors",
                "computeBitfieldLayout",
                "renderBitfieldImage",
                "renderBitfieldFile",
                "listBitfieldSources",
                "beautifySvg",
                "getRenderEventHistory",
            }
            missing_tools = required_tools - tool_names
            _require(not missing_tools, f"Missing required tools: {sorted(missing_tools)}")
            print(f"Tool check passed ({len(tool_names)} tools)")

            status = _extract_call_result(await session.call_tool("getBitfieldServerStatus", {}))
            _require(isinstance(status, dict), "getBitfieldServerStatus did not return an object")
            _require(status.get("workdir") == str(workdir), f"Unexpected workdir: {status.get('workdir')}")
            print("Status check passed")

            fields = [
                {"bits": 8, "name": "data", "type": 4},
                {"bits": 4, "name": "mode", "attr": 5},
                {"bits": 4},
                {"bits": 16, "name": "address", "type": 2},
            ]
            layout = _extract_call_result(
                await session.call_tool(
                    "computeBitfieldLayout",
                    {"fields": fields, "config": {"lanes": 2}},
                )
            )
            _require(isinstance(layout, dict), "computeBitfieldLayout did not return an object")
            _require(layout.get("total_bits") == 32, f"Unexpected total_bits: {layout.get('total_bits')}")
            _require(layout.get("mod_bits") == 16, f"Unexpected mod_bits: {layout.get('mod_bits')}")
            print("Layout check passed")

            rendered = await session.call_tool(
                "renderBitfieldImage",
                {"fields": fields, "config": {"lanes": 2}, "name": "smoke_register"},
            )
            _require(not rendered.isError, f"renderBitfieldImage failed: {rendered.content}")
            image = _extract_image(rendered)
            _require(image is not None, "renderBitfieldImage returned no image content")
            mime, data = image
            _require(mime == "image/svg+xml", f"Unexpected image MIME type: {mime}")
            _require(data.count(b"<svg") == 1, "Rendered SVG does not hold exactly one <svg> element")
            payload = _extract_call_result(rendered)
            _require(Path(payload["image_path"]).exists(), "Rendered SVG file is missing")
            print(f"Render check passed ({payload['image_path']})")

            source = workdir / "smoke_source.json"
            source.write_text(
                json.dumps({"reg": fields, "config": {"lanes": 4, "compact": True}}),
                encoding="utf-8",
            )
            listing = _extract_call_result(
                await session.call_tool("listBitfieldSources", {"directory": str(workdir)})
            )
            _require(str(source) in listing.get("sources", []), "Source file not listed")
            file_render = await session.call_tool("renderBitfieldFile", {"source_path": str(source)})
            _require(not file_render.isError, f"renderBitfieldFile failed: {file_render.content}")
            print("File render check passed")

            events = _extract_call_result(await session.call_tool("getRenderEventHistory", {"limit": 10}))
            _require(isinstance(events, dict), "getRenderEventHistory did not return an object")
            names = [event.get("event") for event in events.get("events", [])]
            _require("render_success" in names, f"No render_success event recorded: {names}")
            print("Event history check passed")

    print("MCP smoke test passed")


def main() -> int:
    parser = argparse.ArgumentParser(
        description="End-to-end smoke test for bitfield-mcp via MCP stdio transport"
    )
    parser.add_argument(
        "--server-command",
        default="bitfield-mcp",
        help="Command used to launch the MCP server",
    )
    parser.add_argument(
        "--server-cwd",
        default=str(Path(__file__).resolve().parent),
        help="Working directory for launching the server",
    )
    parser.add_argument(
        "--workdir",
        default=str((Path(__file__).resolve().parent / ".tmp_smoke").resolve()),
        help="Bitfield MCP workdir used during the smoke test",
    )
    args = parser.parse_args()

    try:
        anyio.run(_run_smoke_test, args)
        return 0
    except Exception as exc:
        print(f"Smoke test failed: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
