"""
Domain layer for the coordination core.

Contains case models, the ledger catalogue and the phase state machine, with
no I/O and no dependencies outside the standard library.
"""

from caseguard.domain.exceptions import (
    AllocationConflict,
    AllocationNotFound,
    CaptureRejected,
    CaseFileError,
    CaseguardError,
    ConfigurationError,
    EvidenceMissing,
    LeadClaimError,
    LeadDepthExceeded,
    LeadNotFound,
    LedgerError,
    LockTimeout,
    SignatureInvalid,
)
from caseguard.domain.interfaces import (
    CaseStoreInterface,
    EvidenceGuardInterface,
    GateInterface,
)
from caseguard.domain.ledger import LedgerEntryType
from caseguard.domain.models import (
    GATE_NAMES,
    ActionStatus,
    Allocation,
    AllocationRange,
    AllocationStatus,
    AllocationStatusReport,
    CaseState,
    CommitResult,
    EvidenceFile,
    EvidenceMetadata,
    GateResult,
    Lead,
    LeadBook,
    LeadChange,
    LeadPriority,
    LeadStatus,
    LedgerEntry,
    MergeReport,
    NextAction,
    Phase,
    QuestionMergeReport,
    SourceCatalog,
    SourceLayout,
    SourceRecord,
    VerificationResult,
)
from caseguard.domain.phases import decide_next_action

__all__ = [
    # Models
    "GATE_NAMES",
    "ActionStatus",
    "Allocation",
    "AllocationRange",
    "AllocationStatus",
    "AllocationStatusReport",
    "CaseState",
    "CommitResult",
    "EvidenceFile",
    "EvidenceMetadata",
    "GateResult",
    "Lead",
    "LeadBook",
    "LeadChange",
    "LeadPriority",
    "LeadStatus",
    "LedgerEntry",
    "LedgerEntryType",
    "MergeReport",
    "NextAction",
    "Phase",
    "QuestionMergeReport",
    "SourceCatalog",
    "SourceLayout",
    "SourceRecord",
    "VerificationResult",
    # State machine
    "decide_next_action",
    # Interfaces
    "CaseStoreInterface",
    "EvidenceGuardInterface",
    "GateInterface",
    # Exceptions
    "CaseguardError",
    "LockTimeout",
    "AllocationNotFound",
    "AllocationConflict",
    "CaptureRejected",
    "EvidenceMissing",
    "SignatureInvalid",
    "LedgerError",
    "CaseFileError",
    "LeadNotFound",
    "LeadClaimError",
    "LeadDepthExceeded",
    "ConfigurationError",
]
