"""Tests for LeadBoard."""

import pytest

from caseguard.application.leads import LeadBoard
from caseguard.domain.exceptions import LeadClaimError, LeadDepthExceeded, LeadNotFound
from caseguard.domain.models import LeadPriority, LeadStatus


@pytest.fixture
def board(store, config, clock) -> LeadBoard:
    return LeadBoard(store, config, clock=clock)


@pytest.fixture
def three_leads(write_leads, make_lead):
    write_leads(
        make_lead("L001", priority="LOW"),
        make_lead("L002", priority="HIGH", depth=1, parent="L001"),
        make_lead("L003", priority="HIGH"),
    )


class TestClaim:
    """Tests for claiming leads."""

    def test_claim_marks_lead(self, board, store, three_leads):
        change = board.claim("L002")

        assert change.claim_id.startswith("pid_")
        assert change.version == 2
        stored = store.load_leads().get("L002")
        assert stored.claimed_by == change.claim_id
        assert stored.claimed_at == "2026-03-01T12:00:00.000Z"

    def test_unknown_lead(self, board, three_leads):
        with pytest.raises(LeadNotFound):
            board.claim("L404")

    def test_claimed_lead_cannot_be_claimed_again(self, board, three_leads):
        board.claim("L001")
        with pytest.raises(LeadClaimError, match="already claimed"):
            board.claim("L001")

    def test_stale_claim_can_be_taken_over(self, board, clock, three_leads):
        first = board.claim("L001")
        clock.advance(hours=1)

        second = board.claim("L001")
        assert second.leads[0].claimed_by == second.claim_id
        assert second.version == first.version + 1

    def test_terminal_lead_cannot_be_claimed(self, board, three_leads):
        board.update("L003", LeadStatus.DEAD_END)
        with pytest.raises(LeadClaimError, match="not pending"):
            board.claim("L003")


class TestBatchClaim:
    """Tests for all-or-none batch claims."""

    def test_claims_every_lead_under_one_id(self, board, store, three_leads):
        change = board.batch_claim(["L001", "L003"])

        book = store.load_leads()
        assert {book.get("L001").claimed_by, book.get("L003").claimed_by} == {change.claim_id}
        assert book.get("L002").claimed_by is None

    def test_one_bad_lead_claims_nothing(self, board, store, three_leads):
        board.claim("L003")
        version = store.load_leads().version

        with pytest.raises(LeadClaimError) as excinfo:
            board.batch_claim(["L001", "L003", "L404"])

        assert len(excinfo.value.errors) == 2
        book = store.load_leads()
        assert book.get("L001").claimed_by is None
        assert book.version == version


class TestReleaseAndUpdate:
    """Tests for releasing claims and recording outcomes."""

    def test_release_clears_claim(self, board, store, three_leads):
        board.claim("L001")
        board.release("L001")

        lead = store.load_leads().get("L001")
        assert lead.claimed_by is None
        assert lead.claimed_at is None

    def test_update_records_outcome(self, board, store, three_leads):
        board.claim("L002")
        change = board.update("L002", "investigated", result="Found it", sources=["S001", "S004"])

        lead = store.load_leads().get("L002")
        assert lead.status == LeadStatus.INVESTIGATED
        assert lead.result == "Found it"
        assert lead.sources == ("S001", "S004")
        assert lead.claimed_by is None
        assert change.version == 3

    def test_update_rejects_unknown_status(self, board, three_leads):
        with pytest.raises(ValueError):
            board.update("L001", "abandoned")

    def test_update_unknown_lead(self, board, three_leads):
        with pytest.raises(LeadNotFound):
            board.update("L404", "dead_end")


class TestAddChild:
    """Tests for adding discovered leads."""

    def test_child_gets_next_id_and_depth(self, board, store, three_leads):
        change = board.add_child("L002", "Who signed the contract?", priority="HIGH")

        child = change.leads[0]
        assert child.id == "L004"
        assert child.parent == "L002"
        assert child.depth == 2
        assert child.priority == LeadPriority.HIGH
        assert store.load_leads().get("L004").extra["from"] == "L002"

    def test_depth_limit(self, board, write_leads, make_lead):
        write_leads(make_lead("L001", depth=1), max_depth=1)
        with pytest.raises(LeadDepthExceeded):
            board.add_child("L001", "Too deep")

    def test_reserved_lead_range_skipped(self, board, three_leads, write_state):
        write_state(next_lead=20)
        assert board.add_child("L001", "After the reserved range").leads[0].id == "L020"

    def test_unknown_parent(self, board, three_leads):
        with pytest.raises(LeadNotFound):
            board.add_child("L404", "Orphan")


class TestSelectionAndStats:
    """Tests for batch selection, stale cleanup and statistics."""

    def test_batch_select_orders_by_priority_then_depth(self, board, three_leads):
        assert [lead.id for lead in board.batch_select(3)] == ["L003", "L002", "L001"]

    def test_batch_select_skips_fresh_claims(self, board, three_leads):
        board.claim("L003")
        assert [lead.id for lead in board.batch_select(2)] == ["L002", "L001"]

    def test_batch_select_does_not_write(self, board, store, three_leads):
        board.batch_select(2)
        assert store.load_leads().version == 1

    def test_cleanup_stale_claims(self, board, store, clock, three_leads):
        board.claim("L001")
        board.claim("L002")
        clock.advance(minutes=45)

        assert board.cleanup_stale() == 2
        assert board.cleanup_stale() == 0
        assert all(lead.claimed_by is None for lead in store.load_leads().leads)

    def test_stats(self, board, clock, three_leads):
        board.claim("L001")
        board.update("L003", "investigated")

        stats = board.stats()

        assert stats["pending"] == 2
        assert stats["investigated"] == 1
        assert stats["total"] == 3
        assert stats["claimed"] == 1
        assert stats["available"] == 1
        assert stats["by_priority"] == {"HIGH": 2, "MEDIUM": 0, "LOW": 1}
        assert stats["by_depth"] == {"0": 2, "1": 1}
        assert stats["version"] == 3
