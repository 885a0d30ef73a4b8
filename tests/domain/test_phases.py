"""Tests for the phase state machine."""

from datetime import datetime, timedelta, timezone

from caseguard.domain.models import (
    GATE_NAMES,
    ActionStatus,
    Lead,
    LeadPriority,
    LeadStatus,
    Phase,
    format_timestamp,
)
from caseguard.domain.phases import (
    decide_next_action,
    select_lead_batch,
    select_next_lead,
)

NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


def gates(*passing: str) -> dict[str, bool]:
    return {name: name in passing for name in GATE_NAMES}


class TestLeadSelection:
    """Tests for picking leads to follow."""

    def test_highest_priority_first(self):
        leads = [
            Lead(id="L001", lead="a", priority=LeadPriority.MEDIUM),
            Lead(id="L002", lead="b", priority=LeadPriority.HIGH),
        ]
        assert select_next_lead(leads).id == "L002"

    def test_ties_keep_file_order(self):
        leads = [Lead(id="L003", lead="a"), Lead(id="L001", lead="b")]
        assert select_next_lead(leads).id == "L003"

    def test_no_pending_lead(self):
        assert select_next_lead([Lead(id="L001", lead="a", status=LeadStatus.INVESTIGATED)]) is None

    def test_batch_orders_by_priority_then_depth(self):
        leads = [
            Lead(id="L001", lead="a", priority=LeadPriority.LOW),
            Lead(id="L002", lead="b", depth=2),
            Lead(id="L003", lead="c", depth=1),
            Lead(id="L004", lead="d", priority=LeadPriority.HIGH, depth=3),
        ]
        batch = select_lead_batch(leads, 3, NOW, timedelta(minutes=30))
        assert [lead.id for lead in batch] == ["L004", "L003", "L002"]

    def test_batch_skips_fresh_claims(self):
        leads = [
            Lead(
                id="L001",
                lead="a",
                claimed_by="pid_1_1",
                claimed_at=format_timestamp(NOW - timedelta(minutes=1)),
            ),
            Lead(id="L002", lead="b"),
        ]
        batch = select_lead_batch(leads, 5, NOW, timedelta(minutes=30))
        assert [lead.id for lead in batch] == ["L002"]


class TestDecideNextAction:
    """Scenarios for the supervisor's next step."""

    def test_all_gates_passing_is_complete(self):
        action = decide_next_action(Phase.FOLLOW, gates(*GATE_NAMES), [], NOW)
        assert action.status == ActionStatus.COMPLETE
        assert action.phase == Phase.COMPLETE

    def test_plan_without_planning_gate(self):
        action = decide_next_action(Phase.PLAN, gates(), [], NOW)
        assert action.status == ActionStatus.CONTINUE
        assert action.phase == Phase.PLAN
        assert action.action == "plan-investigation"

    def test_plan_with_planning_gate_advances_to_bootstrap(self):
        action = decide_next_action(Phase.PLAN, gates("planning"), [], NOW)
        assert action.phase == Phase.BOOTSTRAP
        assert action.action == "research"

    def test_question_phase_with_answered_questions_moves_to_follow(self):
        leads = [Lead(id="L001", lead="a")]
        action = decide_next_action(Phase.QUESTION, gates("planning", "questions"), leads, NOW)
        assert action.phase == Phase.FOLLOW
        assert action.action == "follow L001"

    def test_follow_highest_priority_pending_lead(self):
        leads = [
            Lead(id="L001", lead="a", priority=LeadPriority.MEDIUM),
            Lead(id="L002", lead="b", priority=LeadPriority.HIGH),
        ]
        action = decide_next_action(Phase.FOLLOW, gates("planning", "questions"), leads, NOW)
        assert action.action == "follow L002"
        assert action.lead_id == "L002"
        assert action.lead_counts["pending"] == 2

    def test_terminal_leads_without_reconciliation_reconcile(self):
        leads = [
            Lead(id="L001", lead="a", status=LeadStatus.INVESTIGATED),
            Lead(id="L002", lead="b", status=LeadStatus.DEAD_END),
        ]
        action = decide_next_action(Phase.FOLLOW, gates("planning", "questions"), leads, NOW)
        assert action.action == "reconcile"

    def test_reconciled_without_curiosity(self):
        action = decide_next_action(
            Phase.FOLLOW, gates("planning", "questions", "reconciliation"), [], NOW
        )
        assert action.action == "curiosity"

    def test_follow_complete_advances_to_write(self):
        action = decide_next_action(
            Phase.FOLLOW,
            gates("planning", "questions", "reconciliation", "curiosity"),
            [],
            NOW,
        )
        assert action.phase == Phase.WRITE
        assert action.action == "article"

    def test_batch_mode_returns_several_leads(self):
        leads = [Lead(id=f"L00{i}", lead=str(i)) for i in range(1, 5)]
        action = decide_next_action(
            Phase.FOLLOW, gates("planning", "questions"), leads, NOW, batch_size=3
        )
        assert action.batch == ("L001", "L002", "L003")
        assert action.action == "follow-batch L001 L002 L003"

    def test_batch_mode_single_available_lead_follows_it(self):
        leads = [Lead(id="L001", lead="a")]
        action = decide_next_action(
            Phase.FOLLOW, gates("planning", "questions"), leads, NOW, batch_size=4
        )
        assert action.action == "follow L001"

    def test_batch_mode_waits_on_claimed_leads(self):
        leads = [
            Lead(
                id="L001",
                lead="a",
                claimed_by="pid_9_9",
                claimed_at=format_timestamp(NOW - timedelta(minutes=1)),
            )
        ]
        action = decide_next_action(
            Phase.FOLLOW, gates("planning", "questions"), leads, NOW, batch_size=4
        )
        assert action.action == "wait"

    def test_write_with_missing_prerequisites_is_error(self):
        action = decide_next_action(Phase.WRITE, gates("planning", "questions"), [], NOW)
        assert action.status == ActionStatus.ERROR
        assert action.missing_prerequisites == ("curiosity", "reconciliation")

    def test_verify_with_sources_gate_requests_parallel_review(self):
        passing = ("planning", "questions", "curiosity", "reconciliation", "article", "sources")
        action = decide_next_action(Phase.VERIFY, gates(*passing), [], NOW)
        assert action.action == "parallel-review"

    def test_verify_lists_failing_gates(self):
        passing = ("planning", "questions", "curiosity", "reconciliation", "article")
        action = decide_next_action(Phase.VERIFY, gates(*passing), [], NOW)
        assert action.action == "verify (failing: sources, integrity, legal)"

    def test_bootstrap_always_researches(self):
        action = decide_next_action(Phase.BOOTSTRAP, gates("planning"), [], NOW)
        assert action.action == "research"
