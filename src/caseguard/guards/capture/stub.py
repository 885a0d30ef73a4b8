"""
Stub evidence guard.

Rejects metadata carrying agent-authored prose fields. Runs before any
signature check and cannot be satisfied by a valid signature.
"""

from collections.abc import Mapping
from pathlib import Path
from typing import Any

from caseguard.domain.interfaces import EvidenceGuardInterface
from caseguard.domain.models import VerificationResult

# Fields a capture tool never writes but an agent inventing evidence does
STUB_FIELDS: tuple[str, ...] = (
    "summary",
    "key_facts",
    "key_claims",
    "category",
    "credibility",
    "relevance",
    "independence",
    "reliability",
)


def check_stub(metadata: Mapping[str, Any]) -> VerificationResult | None:
    """Return a rejection for stub-shaped metadata, None otherwise."""
    for name in STUB_FIELDS:
        if metadata.get(name):
            return VerificationResult(
                valid=False,
                reason=f'Metadata contains agent-written field "{name}" - stub evidence, not a capture',
            )
    if metadata.get("id") and not metadata.get("source_id"):
        return VerificationResult(
            valid=False,
            reason='Metadata uses "id" instead of "source_id" - stub evidence',
        )
    return None


class StubFieldGuard(EvidenceGuardInterface):
    """Pure guard: looks only at metadata keys."""

    def validate(
        self, metadata: Mapping[str, Any], evidence_dir: Path | None = None
    ) -> VerificationResult:
        rejection = check_stub(metadata)
        if rejection is not None:
            return rejection
        return VerificationResult(valid=True, reason="No stub fields")
