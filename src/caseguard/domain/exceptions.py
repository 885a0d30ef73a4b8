"""
Domain exceptions for the coordination core.

These represent rule violations that callers must report, never bypass.
Stale allocations and merge key collisions are expected outcomes, not
errors, and have no class here.
"""


class CaseguardError(Exception):
    """Base class for all coordination errors."""


class LockTimeout(CaseguardError):
    """
    Raised when an advisory lock cannot be acquired within its timeout.

    The guarded operation must be treated as failed.
    """

    def __init__(self, lock_path: str, timeout: float):
        super().__init__(f"Could not acquire lock {lock_path} within {timeout:.2f}s")
        self.lock_path = lock_path
        self.timeout = timeout


class AllocationNotFound(CaseguardError):
    """Raised when release/commit names a batch with no active allocation."""

    def __init__(self, batch_id: str):
        super().__init__(f"Allocation {batch_id} not found")
        self.batch_id = batch_id


class AllocationConflict(CaseguardError):
    """Raised when allocating under a batch ID that is already active."""

    def __init__(self, batch_id: str):
        super().__init__(f"Allocation {batch_id} is already active")
        self.batch_id = batch_id


class CaptureRejected(CaseguardError):
    """
    Raised when a claimed evidence capture cannot be accepted.

    Evidence must be recaptured; it is never repaired in place.
    """

    def __init__(self, source_id: str | None, reason: str):
        super().__init__(f"Capture rejected for {source_id or '<unknown>'}: {reason}")
        self.source_id = source_id
        self.reason = reason


class EvidenceMissing(CaptureRejected):
    """Raised when the evidence directory or its metadata.json is absent."""


class SignatureInvalid(CaptureRejected):
    """Raised when evidence metadata fails capture-signature verification."""


class LedgerError(CaseguardError):
    """Raised for unknown entry types or missing required entry fields."""


class CaseFileError(CaseguardError):
    """Raised when a case file is missing, unparseable, or of an unknown shape."""

    def __init__(self, path: str, message: str):
        super().__init__(f"{path}: {message}")
        self.path = path


class LeadNotFound(CaseguardError):
    """Raised when a lead ID does not exist in leads.json."""

    def __init__(self, lead_id: str):
        super().__init__(f"Lead {lead_id} not found")
        self.lead_id = lead_id


class LeadClaimError(CaseguardError):
    """Raised when one or more leads cannot be claimed."""

    def __init__(self, errors: list[str]):
        super().__init__("; ".join(errors))
        self.errors = errors


class LeadDepthExceeded(CaseguardError):
    """Raised when a child lead would exceed the case's max_depth."""

    def __init__(self, depth: int, max_depth: int):
        super().__init__(f"Lead depth {depth} exceeds max_depth {max_depth}")
        self.depth = depth
        self.max_depth = max_depth


class ConfigurationError(CaseguardError):
    """Raised when coordination configuration is invalid."""
