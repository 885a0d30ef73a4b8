"""Write-to-temp + rename helpers for shared case files."""

import json
import os
from pathlib import Path
from typing import Any


def _temp_path(path: Path) -> Path:
    # Per-process name so two writers never share a temp file
    return path.with_name(f".{path.name}.{os.getpid()}.tmp")


def write_text_atomic(path: Path, text: str) -> None:
    """Atomically replace ``path`` with ``text``."""
    path.parent.mkdir(parents=True, exist_ok=True)
    temp_path = _temp_path(path)
    try:
        with open(temp_path, "w") as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        os.replace(temp_path, path)  # Atomic on POSIX
    finally:
        temp_path.unlink(missing_ok=True)


def write_json_atomic(path: Path, data: Any) -> None:
    """Atomically replace ``path`` with ``data`` as indented JSON."""
    write_text_atomic(path, json.dumps(data, indent=2) + "\n")


def read_json(path: Path) -> Any:
    """Parse a JSON file; raises FileNotFoundError or json.JSONDecodeError."""
    with open(path) as f:
        return json.load(f)
