"""
JSON source adapter for stored sessions.

Handles a JSON array (file is [{...}, {...}, ...]), an object wrapping the
array (``json_path``, e.g. "data.sessions"), JSON Lines (one object per
line), and a whole local-storage dump (``format: "local_storage"``).

Numbers are read with ``parse_float=Decimal`` so stored amounts never pass
through binary floats.
"""

from __future__ import annotations

import json
from decimal import Decimal
from pathlib import Path
from typing import Any, Iterator

from splitbill_kernel.logging_config import get_logger

logger = get_logger("ingestion.json_adapter")

FORMATS = ("array", "jsonl", "local_storage")


def _get_nested(data: Any, path: str) -> Any:
    """Follow dot-separated path into dict/list. Returns None if key missing."""
    if not path.strip():
        return data
    for key in path.split("."):
        key = key.strip()
        if not key:
            continue
        if isinstance(data, list):
            try:
                data = data[int(key)]
            except (ValueError, IndexError):
                return None
        elif isinstance(data, dict) and key in data:
            data = data[key]
        else:
            return None
    return data


class JsonSessionSource:
    """Read stored session records from JSON files, one dict per record."""

    def read(self, source_path: Path, options: dict[str, Any] | None = None) -> Iterator[dict[str, Any]]:
        """
        Yield one record per stored session.

        Options:
            format: "array" (default), "jsonl" or "local_storage".
            json_path: dot path to the array inside the document.
            encoding: file encoding, default utf-8.

        Raises:
            ValueError: unknown format, or the document holds no array at
                ``json_path``.
            json.JSONDecodeError: the file is not valid JSON.
        """
        options = options or {}
        fmt = options.get("format", "array")
        json_path = options.get("json_path")
        encoding = options.get("encoding", "utf-8")

        if fmt not in FORMATS:
            raise ValueError(f"Unknown JSON format {fmt!r}; expected one of {FORMATS}")

        if fmt == "jsonl":
            with source_path.open("r", encoding=encoding) as f:
                for line_no, line in enumerate(f, start=1):
                    line = line.strip()
                    if not line:
                        continue
                    item = json.loads(line, parse_float=Decimal)
                    if not isinstance(item, dict):
                        logger.warning("json_record_skipped", extra={
                            "source": str(source_path),
                            "line": line_no,
                            "reason": "not an object",
                        })
                        continue
                    yield item
            return

        with source_path.open("r", encoding=encoding) as f:
            data = json.load(f, parse_float=Decimal)

        if fmt == "local_storage":
            if not isinstance(data, dict):
                raise ValueError(f"{source_path}: local storage dump must be a JSON object")
            yield data
            return

        root = _get_nested(data, json_path) if json_path else data
        if isinstance(root, dict) and not json_path and "sessions" in root:
            root = root["sessions"]
        if not isinstance(root, list):
            raise ValueError(f"{source_path}: no JSON array at {json_path or 'document root'}")
        for index, item in enumerate(root):
            if not isinstance(item, dict):
                logger.warning("json_record_skipped", extra={
                    "source": str(source_path),
                    "index": index,
                    "reason": "not an object",
                })
                continue
            yield item
