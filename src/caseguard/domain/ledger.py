"""Ledger entry catalogue: the fixed whitelist of coordination events.

Each entry type declares the fields it requires, the ones it accepts, their
defaults, and how raw command-line values are coerced.
"""

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from caseguard.domain.exceptions import LedgerError


class LedgerEntryType(str, Enum):
    """Types of coordination events."""

    ITERATION_START = "iteration_start"
    ITERATION_COMPLETE = "iteration_complete"
    PHASE_START = "phase_start"
    PHASE_COMPLETE = "phase_complete"
    AGENT_DISPATCH = "agent_dispatch"
    AGENT_COMPLETE = "agent_complete"
    TASK_CREATE = "task_create"
    TASK_ASSIGN = "task_assign"
    TASK_COMPLETE = "task_complete"
    SOURCE_CAPTURE = "source_capture"
    CLAIM_CREATE = "claim_create"
    CLAIM_UPDATE = "claim_update"
    GATE_CHECK = "gate_check"
    SYNTHESIS_COMPLETE = "synthesis_complete"
    FILE_LOCK = "file_lock"
    FILE_UNLOCK = "file_unlock"


def _to_int(value: Any) -> int:
    return value if isinstance(value, int) else int(str(value), 10)


def _to_bool(value: Any) -> Any:
    if isinstance(value, bool):
        return value
    if value == "true":
        return True
    if value == "false":
        return False
    return value


def _to_list(value: Any) -> list[str]:
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value]
    return [part.strip() for part in str(value).split(",") if part.strip()]


@dataclass(frozen=True)
class EntrySpec:
    """Field contract of one ledger entry type."""

    required: tuple[str, ...] = ()
    optional: tuple[str, ...] = ()
    defaults: Mapping[str, Any] = field(default_factory=dict)
    coerce: Mapping[str, Callable[[Any], Any]] = field(default_factory=dict)
    # CLI flag name -> field name, where they differ
    flags: Mapping[str, str] = field(default_factory=dict)

    @property
    def accepted(self) -> tuple[str, ...]:
        return self.required + self.optional


_ITERATION = {"iteration": _to_int}

ENTRY_SPECS: dict[LedgerEntryType, EntrySpec] = {
    LedgerEntryType.ITERATION_START: EntrySpec(
        required=("iteration",), defaults={"iteration": 1}, coerce=_ITERATION
    ),
    LedgerEntryType.ITERATION_COMPLETE: EntrySpec(
        required=("iteration",),
        optional=("blocking_gaps", "tasks_completed"),
        defaults={"iteration": 1, "blocking_gaps": 0, "tasks_completed": 0},
        coerce={**_ITERATION, "blocking_gaps": _to_int, "tasks_completed": _to_int},
        flags={"blocking": "blocking_gaps", "tasks": "tasks_completed"},
    ),
    LedgerEntryType.PHASE_START: EntrySpec(
        required=("phase", "iteration"), defaults={"iteration": 1}, coerce=_ITERATION
    ),
    LedgerEntryType.PHASE_COMPLETE: EntrySpec(
        required=("phase", "iteration"),
        optional=("duration_ms",),
        defaults={"iteration": 1},
        coerce={**_ITERATION, "duration_ms": _to_int},
        flags={"duration": "duration_ms"},
    ),
    LedgerEntryType.AGENT_DISPATCH: EntrySpec(
        required=("agent", "output_expected"),
        optional=("task_id",),
        flags={"output": "output_expected", "task": "task_id"},
    ),
    LedgerEntryType.AGENT_COMPLETE: EntrySpec(
        required=("agent", "output_expected"),
        optional=("task_id", "success"),
        defaults={"success": True},
        coerce={"success": _to_bool},
        flags={"output": "output_expected", "task": "task_id"},
    ),
    LedgerEntryType.TASK_CREATE: EntrySpec(
        required=("task_id",),
        optional=("priority", "perspective", "description", "gap_id"),
        defaults={"priority": "MEDIUM"},
        flags={"task": "task_id", "gap": "gap_id"},
    ),
    LedgerEntryType.TASK_ASSIGN: EntrySpec(
        required=("task_id", "agent"), flags={"task": "task_id"}
    ),
    LedgerEntryType.TASK_COMPLETE: EntrySpec(
        required=("task_id", "findings_file"),
        optional=("sources_added",),
        coerce={"sources_added": _to_list},
        flags={"task": "task_id", "output": "findings_file", "sources": "sources_added"},
    ),
    LedgerEntryType.SOURCE_CAPTURE: EntrySpec(
        required=("source_id", "url", "evidence_path"),
        optional=("file_count",),
        coerce={"file_count": _to_int},
        flags={"source": "source_id", "path": "evidence_path", "files": "file_count"},
    ),
    LedgerEntryType.CLAIM_CREATE: EntrySpec(
        required=("claim_id",),
        optional=("risk_level", "claim_type"),
        defaults={"risk_level": "MEDIUM"},
        flags={"claim": "claim_id", "risk": "risk_level", "type": "claim_type"},
    ),
    LedgerEntryType.CLAIM_UPDATE: EntrySpec(
        required=("claim_id",),
        optional=("sources_added", "new_status"),
        coerce={"sources_added": _to_list},
        flags={"claim": "claim_id", "sources": "sources_added", "status": "new_status"},
    ),
    LedgerEntryType.GATE_CHECK: EntrySpec(
        required=("gate", "passed"),
        optional=("reason",),
        coerce={"passed": _to_bool},
    ),
    LedgerEntryType.SYNTHESIS_COMPLETE: EntrySpec(
        required=("iteration", "output_file"),
        optional=("claims_verified",),
        defaults={"iteration": 1, "output_file": "summary.md"},
        coerce={**_ITERATION, "claims_verified": _to_int},
        flags={"output": "output_file", "claims": "claims_verified"},
    ),
    LedgerEntryType.FILE_LOCK: EntrySpec(required=("file", "agent")),
    LedgerEntryType.FILE_UNLOCK: EntrySpec(required=("file", "agent")),
}


def parse_entry_type(value: str) -> LedgerEntryType:
    try:
        return LedgerEntryType(value)
    except ValueError:
        valid = ", ".join(t.value for t in LedgerEntryType)
        raise LedgerError(
            f"Invalid entry type '{value}'. Valid types: {valid}"
        ) from None


def build_fields(entry_type: LedgerEntryType, raw: Mapping[str, Any]) -> dict[str, Any]:
    """
    Normalise raw fields for an entry type.

    Translates CLI flag names, applies defaults and coercions, drops
    ``None`` values and rejects fields the type does not declare.

    Raises:
        LedgerError: On undeclared fields, missing required fields, or
            values that cannot be coerced.
    """
    spec = ENTRY_SPECS[entry_type]
    fields: dict[str, Any] = dict(spec.defaults)
    for key, value in raw.items():
        name = spec.flags.get(key, key)
        if name not in spec.accepted:
            raise LedgerError(f"{entry_type.value} does not accept field '{key}'")
        if value is None:
            continue
        fields[name] = value

    for name, convert in spec.coerce.items():
        if name in fields:
            try:
                fields[name] = convert(fields[name])
            except ValueError as e:
                raise LedgerError(
                    f"{entry_type.value}: invalid value for '{name}': {e}"
                ) from e

    missing = [name for name in spec.required if fields.get(name) in (None, "")]
    if missing:
        raise LedgerError(
            f"{entry_type.value} requires field(s): {', '.join(missing)}"
        )
    return fields
