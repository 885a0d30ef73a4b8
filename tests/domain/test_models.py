"""Tests for domain models."""

from datetime import datetime, timedelta, timezone

import pytest

from caseguard.domain.models import (
    GATE_NAMES,
    Allocation,
    CaseState,
    Lead,
    LeadBook,
    LeadPriority,
    LeadStatus,
    Phase,
    format_timestamp,
    parse_timestamp,
)

NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


class TestPhase:
    """Tests for the Phase enum."""

    def test_phases_in_order(self):
        assert [p.value for p in Phase] == [
            "PLAN",
            "BOOTSTRAP",
            "QUESTION",
            "FOLLOW",
            "WRITE",
            "VERIFY",
            "COMPLETE",
        ]

    def test_eight_gates(self):
        assert len(GATE_NAMES) == 8
        assert GATE_NAMES[0] == "planning"
        assert GATE_NAMES[-1] == "legal"


class TestTimestamps:
    """Tests for timestamp helpers."""

    def test_format_uses_z_suffix_and_milliseconds(self):
        assert format_timestamp(NOW) == "2026-03-01T12:00:00.000Z"

    def test_parse_round_trips_format(self):
        assert parse_timestamp(format_timestamp(NOW)) == NOW

    def test_naive_timestamp_is_utc(self):
        assert parse_timestamp("2026-03-01T12:00:00").tzinfo == timezone.utc


class TestAllocation:
    """Tests for Allocation staleness."""

    def _allocation(self, allocated_at: str) -> Allocation:
        return Allocation(
            batch_id="b1", start=1, end=11, count=10, allocated_at=allocated_at
        )

    def test_old_allocation_is_stale(self):
        alloc = self._allocation(format_timestamp(NOW - timedelta(hours=2)))
        assert alloc.is_stale(NOW, timedelta(hours=1))

    def test_recent_allocation_is_not_stale(self):
        alloc = self._allocation(format_timestamp(NOW - timedelta(minutes=5)))
        assert not alloc.is_stale(NOW, timedelta(hours=1))

    def test_allocation_without_timestamp_never_stale(self):
        alloc = self._allocation("")
        assert alloc.age(NOW) is None
        assert not alloc.is_stale(NOW, timedelta(seconds=0))

    def test_allocation_immutable(self):
        alloc = self._allocation("")
        with pytest.raises(AttributeError):
            alloc.start = 5


class TestLead:
    """Tests for Lead availability."""

    def test_unclaimed_pending_lead_is_available(self):
        lead = Lead(id="L001", lead="q")
        assert lead.is_available(NOW, timedelta(minutes=30))

    def test_fresh_claim_blocks(self):
        lead = Lead(
            id="L001",
            lead="q",
            claimed_by="pid_1_1",
            claimed_at=format_timestamp(NOW - timedelta(minutes=5)),
        )
        assert not lead.is_available(NOW, timedelta(minutes=30))

    def test_stale_claim_does_not_block(self):
        lead = Lead(
            id="L001",
            lead="q",
            claimed_by="pid_1_1",
            claimed_at=format_timestamp(NOW - timedelta(hours=1)),
        )
        assert lead.claim_is_stale(NOW, timedelta(minutes=30))
        assert lead.is_available(NOW, timedelta(minutes=30))

    def test_terminal_lead_is_never_available(self):
        lead = Lead(id="L001", lead="q", status=LeadStatus.DEAD_END)
        assert not lead.is_available(NOW, timedelta(minutes=30))

    def test_natural_key_is_text_and_parent(self):
        assert Lead(id="L009", lead="q", parent="L001").natural_key == ("q", "L001")

    def test_priority_rank(self):
        ranks = sorted(LeadPriority, key=lambda p: p.rank)
        assert ranks == [LeadPriority.HIGH, LeadPriority.MEDIUM, LeadPriority.LOW]


class TestLeadBook:
    """Tests for the LeadBook aggregate."""

    def test_next_id_follows_highest(self):
        book = LeadBook(leads=[Lead(id="L001", lead="a"), Lead(id="L007", lead="b")])
        assert book.next_id() == "L008"

    def test_next_id_respects_floor(self):
        book = LeadBook(leads=[Lead(id="L001", lead="a")])
        assert book.next_id(floor=20) == "L020"

    def test_replace_unknown_lead_raises(self):
        book = LeadBook()
        with pytest.raises(KeyError):
            book.replace(Lead(id="L001", lead="a"))

    def test_counts(self):
        book = LeadBook(
            leads=[
                Lead(id="L001", lead="a"),
                Lead(id="L002", lead="b", status=LeadStatus.INVESTIGATED),
                Lead(id="L003", lead="c", status=LeadStatus.DEAD_END),
            ]
        )
        assert book.counts() == {
            "pending": 1,
            "investigated": 1,
            "dead_end": 1,
            "total": 3,
        }


class TestCaseState:
    """Tests for CaseState defaults."""

    def test_defaults(self):
        state = CaseState()
        assert state.phase == Phase.PLAN
        assert state.next_source == 1
        assert set(state.gates) == set(GATE_NAMES)
        assert not any(state.gates.values())
