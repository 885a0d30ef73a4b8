"""Case identifier formatting (S001, L017, F003)."""

import re

_ID_PATTERN = re.compile(r"^([A-Za-z]+)(\d+)$")

SOURCE_PREFIX = "S"
LEAD_PREFIX = "L"
LEDGER_PREFIX = "L"
FINDING_PREFIX = "F"


def format_id(prefix: str, number: int, width: int = 3) -> str:
    """Format a numeric ID with its prefix, zero-padded (never truncated)."""
    return f"{prefix}{number:0{width}d}"


def parse_id(identifier: str) -> int | None:
    """Return the numeric part of an identifier like 'S012', or None."""
    match = _ID_PATTERN.match(identifier.strip()) if identifier else None
    if match is None:
        return None
    return int(match.group(2))


def highest_number(identifiers: "list[str] | tuple[str, ...]") -> int:
    """Highest numeric part among identifiers, 0 when none parse."""
    numbers = [n for n in (parse_id(i) for i in identifiers) if n is not None]
    return max(numbers, default=0)
