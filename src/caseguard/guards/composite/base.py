"""
Evidence guard composition.

CompositeEvidenceGuard chains guards so cheap metadata checks run before
the ones that read files.
"""

from collections.abc import Mapping
from pathlib import Path
from typing import Any

from caseguard.domain.interfaces import EvidenceGuardInterface
from caseguard.domain.models import VerificationResult


class CompositeEvidenceGuard(EvidenceGuardInterface):
    """
    Logical AND of multiple evidence guards. All must pass.

    Evaluates guards in order, short-circuits on first failure.
    """

    def __init__(self, *guards: EvidenceGuardInterface):
        """
        Args:
            *guards: Guards to compose (evaluated in order)
        """
        self.guards = guards

    def validate(
        self, metadata: Mapping[str, Any], evidence_dir: Path | None = None
    ) -> VerificationResult:
        for guard in self.guards:
            result = guard.validate(metadata, evidence_dir)
            if not result.valid:
                return result  # Short-circuit on failure
        return VerificationResult(valid=True, reason="All guards passed")
