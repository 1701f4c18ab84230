"""
mediaroute.io - Atomic file writes for CLI output.

The analysis core works on in-memory buffers; these helpers are for the
command line collaborator that persists profiles and audio artifacts.
"""

from __future__ import annotations

import json
import tempfile
from collections.abc import Callable
from pathlib import Path
from typing import IO, Any


def _write_atomic(path: Path, binary: bool, write: Callable[[IO[Any]], None]) -> None:
    """Write via a sibling temp file, then rename over path."""
    path.parent.mkdir(parents=True, exist_ok=True)
    options: dict[str, Any] = {"mode": "wb"} if binary else {"mode": "w", "encoding": "utf-8"}
    with tempfile.NamedTemporaryFile(dir=path.parent, delete=False, suffix=".tmp", **options) as tmp:
        tmp_path = Path(tmp.name)
        try:
            write(tmp)
        except Exception:
            tmp.close()
            tmp_path.unlink(missing_ok=True)
            raise
    tmp_path.replace(path)


def read_json(path: Path) -> dict[str, Any]:
    """Read JSON file with UTF-8 encoding.

    Raises:
        FileNotFoundError: If file doesn't exist
        json.JSONDecodeError: If file contains invalid JSON
    """
    with open(path, encoding="utf-8") as f:
        return json.load(f)


def write_json(path: Path, data: dict[str, Any], indent: int = 2) -> None:
    """Write a profile or report as pretty-printed JSON, atomically."""
    _write_atomic(path, False, lambda f: json.dump(data, f, indent=indent, ensure_ascii=False))


def write_bytes(path: Path, content: bytes) -> None:
    """Write an audio artifact atomically."""
    _write_atomic(path, True, lambda f: f.write(content))
