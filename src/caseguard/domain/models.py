"""
Domain models for the coordination core.

Pure data structures mirroring the case files. Records are frozen
dataclasses; the three whole-file aggregates (CaseState, LeadBook,
SourceCatalog) are mutable because they are loaded, edited, and written
back inside a single lock scope.

Every record keeps an ``extra`` mapping so fields this core does not own
round-trip untouched.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any

from caseguard.domain.identifiers import LEAD_PREFIX, format_id, highest_number

# =============================================================================
# PHASES AND GATES
# =============================================================================


class Phase(str, Enum):
    """Investigation phases, in order."""

    PLAN = "PLAN"
    BOOTSTRAP = "BOOTSTRAP"
    QUESTION = "QUESTION"
    FOLLOW = "FOLLOW"
    WRITE = "WRITE"
    VERIFY = "VERIFY"
    COMPLETE = "COMPLETE"


GATE_NAMES: tuple[str, ...] = (
    "planning",
    "questions",
    "curiosity",
    "reconciliation",
    "article",
    "sources",
    "integrity",
    "legal",
)


# =============================================================================
# ALLOCATIONS
# =============================================================================


class AllocationStatus(str, Enum):
    """Lifecycle of a reserved ID range."""

    ACTIVE = "active"
    COMMITTED = "committed"
    RELEASED = "released"


@dataclass(frozen=True)
class Allocation:
    """A reserved, not-yet-consumed range [start, end) of source IDs."""

    batch_id: str
    start: int
    end: int
    count: int
    allocated_at: str  # ISO 8601
    status: AllocationStatus = AllocationStatus.ACTIVE
    used_count: int | None = None
    committed_at: str | None = None
    extra: Mapping[str, Any] = field(default_factory=dict)

    def age(self, now: datetime) -> timedelta | None:
        if not self.allocated_at:
            return None
        return now - parse_timestamp(self.allocated_at)

    def is_stale(self, now: datetime, threshold: timedelta) -> bool:
        """Allocations without a timestamp never go stale."""
        age = self.age(now)
        return age is not None and age > threshold


@dataclass(frozen=True)
class AllocationRange:
    """Result of a successful allocate call."""

    batch_id: str
    start: int
    end: int
    count: int


@dataclass(frozen=True)
class CommitResult:
    """Result of committing an allocation."""

    batch_id: str
    used_count: int
    next_source: int


@dataclass(frozen=True)
class AllocationStatusReport:
    """Active/stale partition of the live allocation map."""

    next_source: int
    active: tuple[Allocation, ...]
    stale: tuple[Allocation, ...]


# =============================================================================
# SOURCES AND EVIDENCE
# =============================================================================


@dataclass(frozen=True)
class SourceRecord:
    """A registered source; ``captured`` flips only after evidence verifies."""

    id: str
    url: str
    title: str = ""
    captured: bool = False
    type: str | None = None
    evidence_path: str | None = None
    extra: Mapping[str, Any] = field(default_factory=dict)


class SourceLayout(str, Enum):
    """The two sources.json shapes found in case directories."""

    ARRAY = "array"  # {"sources": [...]}
    MAP = "map"  # {"S001": {...}, ...}


@dataclass(frozen=True)
class EvidenceFile:
    """One captured file inside an evidence directory."""

    path: str
    hash: str
    size: int | None = None
    extra: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class EvidenceMetadata:
    """Contents of evidence/<source_id>/metadata.json."""

    source_id: str
    url: str
    captured_at: str
    files: Mapping[str, EvidenceFile]
    capture_signature: str | None = None
    signature_version: str | None = None
    method: str | None = None
    extra: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class VerificationResult:
    """Outcome of an evidence check."""

    valid: bool
    reason: str = ""


# =============================================================================
# LEADS
# =============================================================================


class LeadPriority(str, Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {LeadPriority.HIGH: 0, LeadPriority.MEDIUM: 1, LeadPriority.LOW: 2}


class LeadStatus(str, Enum):
    PENDING = "pending"
    INVESTIGATED = "investigated"
    DEAD_END = "dead_end"


@dataclass(frozen=True)
class Lead:
    """A research sub-question with priority and lifecycle status."""

    id: str
    lead: str
    parent: str | None = None
    depth: int = 0
    priority: LeadPriority = LeadPriority.MEDIUM
    status: LeadStatus = LeadStatus.PENDING
    sources: tuple[str, ...] = ()
    result: str | None = None
    claimed_by: str | None = None
    claimed_at: str | None = None
    extra: Mapping[str, Any] = field(default_factory=dict)

    @property
    def natural_key(self) -> tuple[str, str | None]:
        return (self.lead, self.parent)

    @property
    def is_pending(self) -> bool:
        return self.status == LeadStatus.PENDING

    def claim_is_stale(self, now: datetime, threshold: timedelta) -> bool:
        if not self.claimed_at:
            return False
        return now - parse_timestamp(self.claimed_at) > threshold

    def is_available(self, now: datetime, threshold: timedelta) -> bool:
        """Pending and either unclaimed or holding a stale claim."""
        if not self.is_pending:
            return False
        return not self.claimed_by or self.claim_is_stale(now, threshold)


@dataclass(frozen=True)
class LeadChange:
    """Leads written by one lead-board operation and the resulting file version."""

    leads: tuple[Lead, ...]
    version: int
    claim_id: str | None = None


# =============================================================================
# LEDGER
# =============================================================================


@dataclass(frozen=True)
class LedgerEntry:
    """One append-only ledger record."""

    id: str
    type: str
    ts: str
    fields: Mapping[str, Any] = field(default_factory=dict)


# =============================================================================
# AGGREGATES (mutable, edited under a lock)
# =============================================================================


@dataclass
class CaseState:
    """state.json: phase, counters, gates and live allocations."""

    phase: Phase = Phase.PLAN
    iteration: int = 1
    next_source: int = 1
    next_lead: int = 1
    source_reserved_until: int = 1
    gates: dict[str, bool] = field(
        default_factory=lambda: dict.fromkeys(GATE_NAMES, False)
    )
    source_allocations: dict[str, Allocation] = field(default_factory=dict)
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass
class LeadBook:
    """leads.json: the lead list with its optimistic version counter."""

    max_depth: int = 3
    version: int = 1
    leads: list[Lead] = field(default_factory=list)
    extra: dict[str, Any] = field(default_factory=dict)

    def get(self, lead_id: str) -> Lead | None:
        for lead in self.leads:
            if lead.id == lead_id:
                return lead
        return None

    def replace(self, updated: Lead) -> None:
        for index, lead in enumerate(self.leads):
            if lead.id == updated.id:
                self.leads[index] = updated
                return
        raise KeyError(updated.id)

    def highest_number(self) -> int:
        return highest_number([lead.id for lead in self.leads])

    def next_id(self, floor: int = 1) -> str:
        return format_id(LEAD_PREFIX, max(self.highest_number() + 1, floor))

    def counts(self) -> dict[str, int]:
        counts = {status.value: 0 for status in LeadStatus}
        for lead in self.leads:
            counts[lead.status.value] += 1
        counts["total"] = len(self.leads)
        return counts


@dataclass
class SourceCatalog:
    """sources.json in either of its two layouts."""

    sources: list[SourceRecord] = field(default_factory=list)
    layout: SourceLayout = SourceLayout.ARRAY
    extra: dict[str, Any] = field(default_factory=dict)

    def ids(self) -> set[str]:
        return {source.id for source in self.sources}


# =============================================================================
# GATES AND NEXT ACTION
# =============================================================================


@dataclass(frozen=True)
class GateResult:
    """Derived pass/fail of one gate with the evidence for it."""

    passed: bool
    details: Mapping[str, Any] = field(default_factory=dict)


class ActionStatus(str, Enum):
    CONTINUE = "CONTINUE"
    COMPLETE = "COMPLETE"
    ERROR = "ERROR"


@dataclass(frozen=True)
class NextAction:
    """The single instruction the supervisor should execute next."""

    status: ActionStatus
    phase: Phase
    action: str | None
    reason: str
    lead_id: str | None = None
    batch: tuple[str, ...] = ()
    missing_prerequisites: tuple[str, ...] = ()
    lead_counts: Mapping[str, int] = field(default_factory=dict)


# =============================================================================
# MERGE REPORT
# =============================================================================


@dataclass(frozen=True)
class MergeReport:
    """What a batch merge changed, per artifact kind."""

    batch_id: str
    leads_updated: tuple[str, ...] = ()
    leads_not_found: tuple[str, ...] = ()
    leads_added: tuple[str, ...] = ()
    leads_skipped: int = 0
    leads_over_depth: int = 0
    sources_added: tuple[str, ...] = ()
    sources_skipped: int = 0
    fragments_merged: int = 0
    question_files_updated: int = 0
    next_source: int | None = None
    rejected: tuple[str, ...] = ()


@dataclass(frozen=True)
class QuestionMergeReport:
    """What folding the question-phase batch files changed."""

    batches: tuple[int, ...] = ()
    findings_created: tuple[str, ...] = ()
    leads_added: tuple[str, ...] = ()
    leads_skipped: int = 0
    sources_added: tuple[str, ...] = ()
    sources_skipped: int = 0
    next_source: int | None = None
    files_removed: int = 0
    rejected: tuple[str, ...] = ()


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO 8601 timestamp, accepting a trailing 'Z'."""
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(moment: datetime) -> str:
    """ISO 8601 in UTC with millisecond precision and a trailing Z."""
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace(
        "+00:00", "Z"
    )
