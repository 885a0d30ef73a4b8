"""caseguard JSON Schema definitions and validation utilities.

Schemas describe the shape of the shared case files so that a malformed or
unknown-shape file is rejected when it is loaded rather than half-parsed.

Schemas:
    - state.schema.json: Phase, counters, gates and live source allocations
    - leads.schema.json: Lead list with its version counter
    - sources.schema.json: Source catalog in either layout
    - ledger.schema.json: Append-only coordination ledger
    - evidence-metadata.schema.json: evidence/<source_id>/metadata.json
    - batch-results.schema.json: One worker's partial results

Usage:
    from caseguard.schemas import validate

    validate("state", data)  # Raises jsonschema.ValidationError if invalid
"""

from __future__ import annotations

import json
from functools import cache
from importlib.resources import files
from typing import Any

import jsonschema

SCHEMA_NAMES: tuple[str, ...] = (
    "state",
    "leads",
    "sources",
    "ledger",
    "evidence-metadata",
    "batch-results",
)


@cache
def get_schema(name: str) -> dict[str, Any]:
    """Load a JSON schema from the schemas package.

    Args:
        name: Schema stem (e.g., 'state' for state.schema.json)

    Returns:
        Parsed JSON schema as a dictionary
    """
    if name not in SCHEMA_NAMES:
        raise KeyError(f"Unknown schema '{name}'")
    schema_text = files("caseguard.schemas").joinpath(f"{name}.schema.json").read_text()
    result: dict[str, Any] = json.loads(schema_text)
    return result


def validate(name: str, data: Any) -> None:
    """Validate data against a named schema.

    Raises:
        jsonschema.ValidationError: If validation fails
    """
    jsonschema.validate(data, get_schema(name))


def validate_ledger(data: dict[str, Any]) -> None:
    validate("ledger", data)


def validate_evidence_metadata(data: dict[str, Any]) -> None:
    validate("evidence-metadata", data)


def validate_batch_results(data: dict[str, Any]) -> None:
    validate("batch-results", data)


def drop_invalid_batch_records(data: dict[str, Any]) -> tuple[dict[str, Any], list[str]]:
    """Split batch results into the valid part and one message per rejected record.

    A failing list item drops only that item; a failing top-level value drops
    the whole key.

    Raises:
        jsonschema.ValidationError: If ``data`` is not an object at all
    """
    validator = jsonschema.Draft202012Validator(get_schema("batch-results"))
    bad_keys: dict[str, str] = {}
    bad_items: dict[tuple[str, int], str] = {}
    for error in validator.iter_errors(data):
        path = list(error.absolute_path)
        if not path:
            raise error
        key = path[0]
        if len(path) > 1 and isinstance(path[1], int):
            bad_items.setdefault((key, path[1]), f"{key}[{path[1]}]: {error.message}")
        else:
            bad_keys.setdefault(key, f"{key}: {error.message}")

    kept: dict[str, Any] = {}
    for key, value in data.items():
        if key in bad_keys:
            continue
        if isinstance(value, list):
            value = [item for i, item in enumerate(value) if (key, i) not in bad_items]
        kept[key] = value
    rejected = [*bad_keys.values(), *(bad_items[k] for k in sorted(bad_items))]
    return kept, rejected
