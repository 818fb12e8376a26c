from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .models import FieldDescriptor, FieldDescriptorError, parse_field_list


_LOGGER = logging.getLogger(__name__)
_SOURCE_SUFFIXES = {".json", ".json5"}
_SNIFF_BYTES = 4096


class BitfieldSourceError(ValueError):
    pass


@dataclass(slots=True)
class BitfieldSource:
    path: Path
    fields: list[FieldDescriptor]
    config: dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> dict[str, Any]:
        return {
            "path": str(self.path),
            "field_count": len(self.fields),
            "total_width": sum(item.width for item in self.fields),
            "config": dict(self.config),
        }


def decode_source_bytes(blob: bytes, errors: str = "strict") -> str:
    if blob.startswith(b"\xef\xbb\xbf"):
        return blob.decode("utf-8-sig", errors=errors)
    if blob.startswith(b"\xff\xfe"):
        return blob[2:].decode("utf-16le", errors=errors)
    if blob.startswith(b"\xfe\xff"):
        return blob[2:].decode("utf-16be", errors=errors)
    return blob.decode("utf-8", errors=errors)


def _read_source_text(path: Path) -> str:
    try:
        blob = path.read_bytes()
    except OSError as exc:
        raise BitfieldSourceError(f"Failed to read bitfield source {path}: {exc}") from exc
    try:
        return decode_source_bytes(blob)
    except UnicodeDecodeError as exc:
        raise BitfieldSourceError(f"Bitfield source {path} is not valid UTF-8/UTF-16 text: {exc}") from exc


def parse_bitfield_source(text: str, *, path: Path) -> BitfieldSource:
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise BitfieldSourceError(f"Failed to parse JSON in {path}: {exc}") from exc

    config: dict[str, Any] = {}
    if isinstance(payload, dict):
        if "reg" not in payload:
            raise BitfieldSourceError(f"{path}: expected a field list or an object with a 'reg' list")
        raw_config = payload.get("config") or {}
        if not isinstance(raw_config, dict):
            raise BitfieldSourceError(f"{path}: 'config' must be an object")
        config = dict(raw_config)
        payload = payload["reg"]

    try:
        fields = parse_field_list(payload)
    except FieldDescriptorError as exc:
        raise BitfieldSourceError(f"{path}: {exc}") from exc
    return BitfieldSource(path=path, fields=fields, config=config)


def load_bitfield_source(path: str | Path) -> BitfieldSource:
    source_path = Path(path).expanduser().resolve()
    if not source_path.exists():
        raise BitfieldSourceError(f"Bitfield source not found: {source_path}")
    return parse_bitfield_source(_read_source_text(source_path), path=source_path)


def looks_like_bitfield(path: str | Path) -> bool:
    candidate = Path(path)
    if candidate.suffix.lower() not in _SOURCE_SUFFIXES or not candidate.is_file():
        return False
    try:
        with candidate.open("rb") as handle:
            head = decode_source_bytes(handle.read(_SNIFF_BYTES), errors="replace")
    except OSError as exc:
        _LOGGER.warning("Skipping unreadable bitfield candidate '%s': %s", candidate, exc)
        return False
    stripped = head.lstrip()
    if stripped.startswith("["):
        return '"bits"' in stripped
    return stripped.startswith("{") and '"reg"' in stripped


def find_bitfield_sources(directory: str | Path, *, recursive: bool = False) -> list[Path]:
    root = Path(directory).expanduser().resolve()
    if not root.is_dir():
        raise BitfieldSourceError(f"Not a directory: {root}")
    pattern = "**/*" if recursive else "*"
    return sorted(path for path in root.glob(pattern) if looks_like_bitfield(path))
