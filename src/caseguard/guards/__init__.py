"""
Guards for the coordination core.

Guards are deterministic validators over evidence metadata and case
artifacts. They report, they never repair.

Organization:
- capture/: Evidence metadata checks (stub fields, signature, file hashes)
- composite/: Guard composition patterns
- gates/: Gates derived from case artifacts
"""

from caseguard.guards.capture import (
    CaptureSignatureGuard,
    FileHashGuard,
    StubFieldGuard,
    sign,
    verify,
)
from caseguard.guards.composite import CompositeEvidenceGuard
from caseguard.guards.gates import default_gates, derive_all_gates


def full_evidence_guard() -> CompositeEvidenceGuard:
    """Stub fields, then signature, then on-disk hashes."""
    return CompositeEvidenceGuard(StubFieldGuard(), CaptureSignatureGuard(), FileHashGuard())


__all__ = [
    # Capture guards
    "StubFieldGuard",
    "CaptureSignatureGuard",
    "FileHashGuard",
    "sign",
    "verify",
    # Composition patterns
    "CompositeEvidenceGuard",
    "full_evidence_guard",
    # Gates
    "default_gates",
    "derive_all_gates",
]
