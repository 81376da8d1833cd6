from __future__ import annotations

import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional


def configure_stdio() -> None:
    """Make CLI output robust across Windows console encodings.

    Some Windows terminals use a non-UTF8 encoding (e.g., cp1252). Configure
    stdout/stderr to replace unencodable characters instead of crashing on
    decoded text or table glyphs.
    """

    if os.name != "nt":
        return

    for stream in (sys.stdout, sys.stderr):
        reconfigure = getattr(stream, "reconfigure", None)
        if reconfigure is not None:
            reconfigure(errors="replace")


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def parse_batch(content: str) -> List[Dict[str, Any]]:
    """Parse a batch from a JSON array or JSON Lines text.

    Raises:
        ValueError: If the content is not a list of JSON objects.
    """
    stripped = content.strip()
    if not stripped:
        return []

    if stripped.startswith("["):
        records = json.loads(stripped)
    else:
        records = []
        for line_no, line in enumerate(stripped.splitlines(), 1):
            if not line.strip():
                continue
            try:
                records.append(json.loads(line))
            except json.JSONDecodeError as e:
                raise ValueError(f"Invalid JSON on line {line_no}: {e}") from e

    for position, record in enumerate(records):
        if not isinstance(record, dict):
            raise ValueError(f"Record {position} is not a JSON object")
    return records


def read_batch(path: Optional[Path]) -> List[Dict[str, Any]]:
    """Read a batch file, or stdin when ``path`` is None or ``-``."""
    if path is None or str(path) == "-":
        return parse_batch(sys.stdin.read())
    return parse_batch(path.read_text(encoding="utf-8"))
