"""
Phase state machine.

Derives the single next action from the current phase, the derived gates and
the lead list. Pure: the caller decides whether a phase advance is persisted.
"""

from collections.abc import Mapping, Sequence
from datetime import datetime, timedelta

from caseguard.domain.models import (
    ActionStatus,
    Lead,
    NextAction,
    Phase,
)

WRITE_PREREQUISITES: tuple[str, ...] = (
    "planning",
    "questions",
    "curiosity",
    "reconciliation",
)


def select_next_lead(leads: Sequence[Lead]) -> Lead | None:
    """Highest-priority pending lead; ties keep input order."""
    pending = [lead for lead in leads if lead.is_pending]
    if not pending:
        return None
    return sorted(pending, key=lambda lead: lead.priority.rank)[0]


def select_lead_batch(
    leads: Sequence[Lead],
    size: int,
    now: datetime,
    claim_stale_after: timedelta,
) -> list[Lead]:
    """Up to ``size`` available leads, by priority then shallowest depth."""
    available = [lead for lead in leads if lead.is_available(now, claim_stale_after)]
    available.sort(key=lambda lead: (lead.priority.rank, lead.depth))
    return available[:size]


def _lead_counts(leads: Sequence[Lead]) -> dict[str, int]:
    counts = {"pending": 0, "investigated": 0, "dead_end": 0}
    for lead in leads:
        counts[lead.status.value] += 1
    counts["total"] = len(leads)
    return counts


def _continue(phase: Phase, action: str, reason: str, **kwargs: object) -> NextAction:
    return NextAction(
        status=ActionStatus.CONTINUE,
        phase=phase,
        action=action,
        reason=reason,
        **kwargs,  # type: ignore[arg-type]
    )


def decide_next_action(
    phase: Phase,
    gates: Mapping[str, bool],
    leads: Sequence[Lead],
    now: datetime,
    batch_size: int | None = None,
    claim_stale_after: timedelta = timedelta(minutes=30),
) -> NextAction:
    """
    Decide what the supervisor does next.

    Phases whose exit gate is already satisfied advance in place; the
    returned ``NextAction.phase`` is the phase the action belongs to.

    Args:
        phase: Phase recorded in state.json
        gates: Freshly derived gate values
        leads: Current leads, in file order
        now: Reference time for claim staleness (batch mode only)
        batch_size: When set, select up to this many leads for parallel follow
        claim_stale_after: Age after which a lead claim no longer blocks it

    Returns:
        NextAction with status CONTINUE, COMPLETE or ERROR
    """
    if gates and all(gates.values()):
        return NextAction(
            status=ActionStatus.COMPLETE,
            phase=Phase.COMPLETE,
            action=None,
            reason="All gates passing",
        )

    counts = _lead_counts(leads)

    while True:
        if phase == Phase.PLAN:
            if not gates.get("planning"):
                return _continue(
                    phase, "plan-investigation", "Plan phase - design investigation strategy"
                )
            phase = Phase.BOOTSTRAP
            continue

        if phase == Phase.BOOTSTRAP:
            return _continue(phase, "research", "Bootstrap phase - need initial research")

        if phase == Phase.QUESTION:
            if not gates.get("questions"):
                return _continue(
                    phase, "question", "Questions phase - answer framework questions"
                )
            phase = Phase.FOLLOW
            continue

        if phase == Phase.FOLLOW:
            if batch_size is not None and batch_size > 1:
                batch = select_lead_batch(leads, batch_size, now, claim_stale_after)
                if len(batch) > 1:
                    ids = tuple(lead.id for lead in batch)
                    return _continue(
                        phase,
                        f"follow-batch {' '.join(ids)}",
                        f"Batch processing {len(batch)} leads in parallel",
                        batch=ids,
                        lead_counts=counts,
                    )
                if len(batch) == 1:
                    return _continue(
                        phase,
                        f"follow {batch[0].id}",
                        f'Pending lead: "{batch[0].lead}"',
                        lead_id=batch[0].id,
                        lead_counts=counts,
                    )
                # Pending leads may all be freshly claimed by other workers
                if counts["pending"]:
                    return _continue(
                        phase,
                        "wait",
                        f"{counts['pending']} pending lead(s) claimed by other workers",
                        lead_counts=counts,
                    )
            else:
                lead = select_next_lead(leads)
                if lead is not None:
                    return _continue(
                        phase,
                        f"follow {lead.id}",
                        f'Pending lead: "{lead.lead}"',
                        lead_id=lead.id,
                        lead_counts=counts,
                    )

            if not gates.get("reconciliation"):
                return _continue(
                    phase,
                    "reconcile",
                    "All leads terminal - reconcile results with summary",
                    lead_counts=counts,
                )
            if not gates.get("curiosity"):
                return _continue(
                    phase,
                    "curiosity",
                    "Reconciled - evaluate completeness",
                    lead_counts=counts,
                )
            phase = Phase.WRITE
            continue

        if phase == Phase.WRITE:
            missing = tuple(g for g in WRITE_PREREQUISITES if not gates.get(g))
            if missing:
                return NextAction(
                    status=ActionStatus.ERROR,
                    phase=phase,
                    action=None,
                    reason=(
                        f"Cannot write articles - missing gates: {', '.join(missing)}. "
                        "Return to FOLLOW phase."
                    ),
                    missing_prerequisites=missing,
                )
            if not gates.get("article"):
                return _continue(phase, "article", "Write phase - generate articles")
            phase = Phase.VERIFY
            continue

        if phase == Phase.VERIFY:
            failing = [name for name, ok in gates.items() if not ok]
            if gates.get("sources") and not gates.get("integrity") and not gates.get("legal"):
                return _continue(
                    phase,
                    "parallel-review",
                    "Parallel integrity + legal review (sources gate passed)",
                )
            return _continue(
                phase,
                f"verify (failing: {', '.join(failing)})",
                "Verify phase - fix failing gates",
            )

        if phase == Phase.COMPLETE:
            return NextAction(
                status=ActionStatus.COMPLETE,
                phase=phase,
                action=None,
                reason="Investigation complete",
            )

        raise ValueError(f"Unknown phase: {phase}")
