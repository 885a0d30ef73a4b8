"""Read-only helpers shared by the artifact gates.

Gates never raise on a missing or broken file; they report it in their
details and fail.
"""

import json
import re
from pathlib import Path
from typing import Any

SOURCE_ID_PATTERN = re.compile(r"^S\d+$")
_BOLD_LINE = re.compile(r"^\*\*(.+?)\*\*$", re.MULTILINE)


def read_text(path: Path) -> str | None:
    try:
        return path.read_text()
    except (FileNotFoundError, IsADirectoryError, UnicodeDecodeError):
        return None


def read_json(path: Path) -> tuple[Any, str | None]:
    """Return ``(value, None)`` or ``(None, error code)``."""
    text = read_text(path)
    if not text:
        return None, "READ_FAILED"
    try:
        return json.loads(text), None
    except json.JSONDecodeError:
        return None, "INVALID_JSON"


def mtime_ns(path: Path) -> int:
    try:
        return path.stat().st_mtime_ns
    except FileNotFoundError:
        return 0


def non_empty(path: Path) -> bool:
    return path.is_file() and path.stat().st_size > 0


def source_records(data: Any) -> dict[str, dict[str, Any]]:
    """Source records by ID from either sources.json layout."""
    if not isinstance(data, dict):
        return {}
    if isinstance(data.get("sources"), list):
        return {
            s["id"]: s
            for s in data["sources"]
            if isinstance(s, dict) and isinstance(s.get("id"), str)
        }
    return {
        key: value
        for key, value in data.items()
        if SOURCE_ID_PATTERN.match(key) and isinstance(value, dict)
    }


def last_bold_status(text: str | None, allowed: tuple[str, ...]) -> str | None:
    """The last ``**VALUE**`` line whose value is one of ``allowed``."""
    if not text:
        return None
    for match in reversed(_BOLD_LINE.findall(text)):
        candidate = match.strip()
        if candidate in allowed:
            return candidate
    return None
