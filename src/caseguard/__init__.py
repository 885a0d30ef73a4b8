"""
caseguard: coordination core for parallel investigation workers.

Serializes access to the shared case files, hands out collision-free source
and lead IDs, keeps an append-only ledger that only accepts verified
captures, merges worker results, and derives the phase gates that decide
what the supervisor does next.

Example:
    from caseguard import FilesystemCaseStore, SourceAllocator, GateEvaluator

    store = FilesystemCaseStore("cases/acme")
    batch = SourceAllocator(store).allocate(10)
    ...
    action = GateEvaluator(store).evaluate().action
"""

# Application layer (services)
from caseguard.application import (
    BatchMerger,
    Evaluation,
    GateEvaluator,
    LeadBoard,
    SourceAllocator,
)
from caseguard.config import CoordinationConfig, load_config

# Domain exceptions
from caseguard.domain.exceptions import (
    AllocationConflict,
    AllocationNotFound,
    CaptureRejected,
    CaseFileError,
    CaseguardError,
    LockTimeout,
)

# Domain models (most commonly used)
from caseguard.domain.models import (
    ActionStatus,
    Lead,
    LeadPriority,
    LeadStatus,
    NextAction,
    Phase,
)

# Guards
from caseguard.guards import full_evidence_guard, sign, verify

# Infrastructure
from caseguard.infrastructure import (
    FileLock,
    FilesystemCaseStore,
    FilesystemLedger,
    check_capture,
    seal_evidence,
)

__version__ = "0.1.0"

__all__ = [
    # Version
    "__version__",
    # Application
    "BatchMerger",
    "Evaluation",
    "GateEvaluator",
    "LeadBoard",
    "SourceAllocator",
    # Configuration
    "CoordinationConfig",
    "load_config",
    # Exceptions
    "AllocationConflict",
    "AllocationNotFound",
    "CaptureRejected",
    "CaseFileError",
    "CaseguardError",
    "LockTimeout",
    # Models
    "ActionStatus",
    "Lead",
    "LeadPriority",
    "LeadStatus",
    "NextAction",
    "Phase",
    # Guards
    "full_evidence_guard",
    "sign",
    "verify",
    # Infrastructure
    "FileLock",
    "FilesystemCaseStore",
    "FilesystemLedger",
    "check_capture",
    "seal_evidence",
]
