"""Tests for the ledger entry catalogue."""

import pytest

from caseguard.domain.exceptions import LedgerError
from caseguard.domain.ledger import (
    ENTRY_SPECS,
    LedgerEntryType,
    build_fields,
    parse_entry_type,
)


class TestParseEntryType:
    """Tests for entry type lookup."""

    def test_known_type(self):
        assert parse_entry_type("gate_check") == LedgerEntryType.GATE_CHECK

    def test_unknown_type_lists_valid_ones(self):
        with pytest.raises(LedgerError, match="Valid types: iteration_start"):
            parse_entry_type("coffee_break")

    def test_every_type_has_a_spec(self):
        assert set(ENTRY_SPECS) == set(LedgerEntryType)


class TestBuildFields:
    """Tests for field normalisation."""

    def test_defaults_applied(self):
        assert build_fields(LedgerEntryType.ITERATION_START, {}) == {"iteration": 1}

    def test_iteration_coerced_to_int(self):
        fields = build_fields(LedgerEntryType.PHASE_START, {"phase": "FOLLOW", "iteration": "3"})
        assert fields == {"phase": "FOLLOW", "iteration": 3}

    def test_flag_aliases_translate(self):
        fields = build_fields(
            LedgerEntryType.AGENT_DISPATCH, {"agent": "researcher", "output": "findings/F001.md"}
        )
        assert fields["output_expected"] == "findings/F001.md"

    def test_bool_coercion(self):
        fields = build_fields(LedgerEntryType.GATE_CHECK, {"gate": "sources", "passed": "false"})
        assert fields["passed"] is False

    def test_list_coercion(self):
        fields = build_fields(
            LedgerEntryType.CLAIM_UPDATE, {"claim": "C1", "sources": "S001, S002"}
        )
        assert fields["sources_added"] == ["S001", "S002"]

    def test_missing_required_field(self):
        with pytest.raises(LedgerError, match="requires field"):
            build_fields(LedgerEntryType.TASK_ASSIGN, {"task": "T1"})

    def test_undeclared_field_rejected(self):
        with pytest.raises(LedgerError, match="does not accept"):
            build_fields(LedgerEntryType.FILE_LOCK, {"file": "a", "agent": "b", "color": "red"})

    def test_bad_integer_rejected(self):
        with pytest.raises(LedgerError, match="invalid value"):
            build_fields(LedgerEntryType.PHASE_START, {"phase": "PLAN", "iteration": "two"})

    def test_none_values_dropped(self):
        fields = build_fields(
            LedgerEntryType.GATE_CHECK, {"gate": "legal", "passed": True, "reason": None}
        )
        assert "reason" not in fields
