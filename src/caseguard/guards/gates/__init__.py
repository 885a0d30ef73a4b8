"""
Gates - pass/fail conditions derived from case artifacts.

Gates are recomputed from files on every evaluation; a value stored in
state.json is a cache, never an input.
"""

from pathlib import Path

from caseguard.domain.interfaces import GateInterface
from caseguard.domain.models import GateResult
from caseguard.guards.gates.artifacts import ArticleGate, PlanningGate, QuestionsGate
from caseguard.guards.gates.evidence import SourcesGate
from caseguard.guards.gates.leads import CuriosityGate, ReconciliationGate
from caseguard.guards.gates.review import ReviewGate


def default_gates() -> tuple[GateInterface, ...]:
    """The eight gates, in phase order."""
    return (
        PlanningGate(),
        QuestionsGate(),
        CuriosityGate(),
        ReconciliationGate(),
        ArticleGate(),
        SourcesGate(),
        ReviewGate("integrity", "integrity-review.md"),
        ReviewGate("legal", "legal-review.md"),
    )


def derive_all_gates(
    case_dir: Path, gates: tuple[GateInterface, ...] | None = None
) -> dict[str, GateResult]:
    """Derive every gate, keyed by gate name."""
    return {gate.name: gate.derive(case_dir) for gate in gates or default_gates()}


__all__ = [
    "PlanningGate",
    "QuestionsGate",
    "CuriosityGate",
    "ReconciliationGate",
    "ArticleGate",
    "SourcesGate",
    "ReviewGate",
    "default_gates",
    "derive_all_gates",
]
