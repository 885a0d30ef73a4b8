"""
JSON codec between case files and domain models.

Known keys map onto model fields; every other key is kept in ``extra`` and
written back unchanged, so fields owned by other tools survive a rewrite.
"""

from typing import Any

from caseguard.domain.models import (
    GATE_NAMES,
    Allocation,
    AllocationStatus,
    CaseState,
    Lead,
    LeadBook,
    LeadPriority,
    LeadStatus,
    LedgerEntry,
    Phase,
    SourceCatalog,
    SourceLayout,
    SourceRecord,
)

_ALLOCATION_KEYS = {
    "start",
    "end",
    "count",
    "allocated_at",
    "status",
    "used_count",
    "committed_at",
}
_STATE_KEYS = {
    "phase",
    "iteration",
    "next_source",
    "next_lead",
    "source_reserved_until",
    "gates",
    "source_allocations",
}
_LEAD_KEYS = {
    "id",
    "lead",
    "parent",
    "depth",
    "priority",
    "status",
    "sources",
    "result",
    "claimed_by",
    "claimed_at",
}
_SOURCE_KEYS = {"id", "url", "title", "captured", "type", "evidence_path"}


def _extra(data: dict[str, Any], known: set[str]) -> dict[str, Any]:
    return {k: v for k, v in data.items() if k not in known}


# =============================================================================
# STATE
# =============================================================================


def allocation_from_dict(batch_id: str, data: dict[str, Any]) -> Allocation:
    return Allocation(
        batch_id=batch_id,
        start=data["start"],
        end=data["end"],
        count=data["count"],
        allocated_at=data.get("allocated_at", ""),
        status=AllocationStatus(data.get("status", AllocationStatus.ACTIVE.value)),
        used_count=data.get("used_count"),
        committed_at=data.get("committed_at"),
        extra=_extra(data, _ALLOCATION_KEYS),
    )


def allocation_to_dict(allocation: Allocation) -> dict[str, Any]:
    data: dict[str, Any] = {
        "start": allocation.start,
        "end": allocation.end,
        "count": allocation.count,
        "allocated_at": allocation.allocated_at,
        "status": allocation.status.value,
    }
    if allocation.used_count is not None:
        data["used_count"] = allocation.used_count
    if allocation.committed_at is not None:
        data["committed_at"] = allocation.committed_at
    data.update(allocation.extra)
    return data


def state_from_dict(data: dict[str, Any]) -> CaseState:
    gates = dict.fromkeys(GATE_NAMES, False)
    gates.update(data.get("gates", {}))
    return CaseState(
        phase=Phase(data["phase"]),
        iteration=data.get("iteration", 1),
        next_source=data.get("next_source", 1),
        next_lead=data.get("next_lead", 1),
        source_reserved_until=data.get("source_reserved_until", 1),
        gates=gates,
        source_allocations={
            batch_id: allocation_from_dict(batch_id, alloc)
            for batch_id, alloc in data.get("source_allocations", {}).items()
        },
        extra=_extra(data, _STATE_KEYS),
    )


def state_to_dict(state: CaseState) -> dict[str, Any]:
    data: dict[str, Any] = dict(state.extra)
    data.update(
        {
            "phase": state.phase.value,
            "iteration": state.iteration,
            "next_source": state.next_source,
            "next_lead": state.next_lead,
            "gates": dict(state.gates),
            "source_allocations": {
                batch_id: allocation_to_dict(alloc)
                for batch_id, alloc in state.source_allocations.items()
            },
        }
    )
    if state.source_reserved_until > state.next_source:
        data["source_reserved_until"] = state.source_reserved_until
    return data


# =============================================================================
# LEADS
# =============================================================================


def lead_from_dict(data: dict[str, Any]) -> Lead:
    return Lead(
        id=data["id"],
        lead=data["lead"],
        parent=data.get("parent"),
        depth=data.get("depth", 0),
        priority=LeadPriority(data.get("priority", LeadPriority.MEDIUM.value)),
        status=LeadStatus(data.get("status", LeadStatus.PENDING.value)),
        sources=tuple(data.get("sources") or ()),
        result=data.get("result"),
        claimed_by=data.get("claimed_by"),
        claimed_at=data.get("claimed_at"),
        extra=_extra(data, _LEAD_KEYS),
    )


def lead_to_dict(lead: Lead) -> dict[str, Any]:
    data: dict[str, Any] = {
        "id": lead.id,
        "lead": lead.lead,
        "parent": lead.parent,
        "depth": lead.depth,
        "priority": lead.priority.value,
        "status": lead.status.value,
        "sources": list(lead.sources),
        "result": lead.result,
    }
    if lead.claimed_by is not None:
        data["claimed_by"] = lead.claimed_by
        data["claimed_at"] = lead.claimed_at
    data.update(lead.extra)
    return data


def leadbook_from_dict(data: dict[str, Any], default_max_depth: int = 3) -> LeadBook:
    return LeadBook(
        max_depth=data.get("max_depth", default_max_depth),
        version=data.get("version", 1),
        leads=[lead_from_dict(lead) for lead in data.get("leads", [])],
        extra=_extra(data, {"max_depth", "version", "leads"}),
    )


def leadbook_to_dict(book: LeadBook) -> dict[str, Any]:
    data: dict[str, Any] = dict(book.extra)
    data.update(
        {
            "max_depth": book.max_depth,
            "version": book.version,
            "leads": [lead_to_dict(lead) for lead in book.leads],
        }
    )
    return data


# =============================================================================
# SOURCES
# =============================================================================


def source_from_dict(data: dict[str, Any], source_id: str | None = None) -> SourceRecord:
    return SourceRecord(
        id=source_id or data["id"],
        url=data.get("url", ""),
        title=data.get("title", ""),
        captured=bool(data.get("captured", False)),
        type=data.get("type"),
        evidence_path=data.get("evidence_path"),
        extra=_extra(data, _SOURCE_KEYS),
    )


def source_to_dict(source: SourceRecord, include_id: bool = True) -> dict[str, Any]:
    data: dict[str, Any] = {"id": source.id} if include_id else {}
    data.update({"url": source.url, "title": source.title, "captured": source.captured})
    if source.type is not None:
        data["type"] = source.type
    if source.evidence_path is not None:
        data["evidence_path"] = source.evidence_path
    data.update(source.extra)
    return data


def catalog_from_dict(data: dict[str, Any]) -> SourceCatalog:
    """Read either ``{"sources": [...]}`` or the legacy ID-keyed map."""
    if "sources" in data:
        return SourceCatalog(
            sources=[source_from_dict(s) for s in data["sources"]],
            layout=SourceLayout.ARRAY,
            extra=_extra(data, {"sources"}),
        )
    return SourceCatalog(
        sources=[
            source_from_dict(record, source_id)
            for source_id, record in data.items()
        ],
        layout=SourceLayout.MAP,
    )


def catalog_to_dict(catalog: SourceCatalog) -> dict[str, Any]:
    if catalog.layout == SourceLayout.MAP:
        return {
            source.id: source_to_dict(source, include_id=False)
            for source in catalog.sources
        }
    data: dict[str, Any] = dict(catalog.extra)
    data["sources"] = [source_to_dict(source) for source in catalog.sources]
    return data


# =============================================================================
# LEDGER
# =============================================================================


def ledger_entry_from_dict(data: dict[str, Any]) -> LedgerEntry:
    return LedgerEntry(
        id=data["id"],
        type=data["type"],
        ts=data["ts"],
        fields=_extra(data, {"id", "type", "ts"}),
    )


def ledger_entry_to_dict(entry: LedgerEntry) -> dict[str, Any]:
    return {"id": entry.id, "type": entry.type, "ts": entry.ts, **entry.fields}
