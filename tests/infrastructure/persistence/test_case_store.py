"""Tests for FilesystemCaseStore."""

import pytest

from caseguard.config import CoordinationConfig
from caseguard.domain.exceptions import CaseFileError
from caseguard.domain.models import (
    Lead,
    Phase,
    SourceLayout,
    SourceRecord,
)
from caseguard.infrastructure.persistence.case_store import FilesystemCaseStore


class TestState:
    """Tests for state.json."""

    def test_load_initial_state(self, store):
        state = store.load_state()
        assert state.phase == Phase.PLAN
        assert state.next_source == 1
        assert state.source_allocations == {}

    def test_missing_state_is_an_error(self, tmp_path):
        with pytest.raises(CaseFileError, match="not found"):
            FilesystemCaseStore(tmp_path).load_state()

    def test_unknown_phase_is_rejected(self, store, write_state):
        write_state(phase="DANCE")
        with pytest.raises(CaseFileError):
            store.load_state()

    def test_invalid_json_is_rejected(self, store, case_dir):
        (case_dir / "state.json").write_text("{not json")
        with pytest.raises(CaseFileError, match="invalid JSON"):
            store.load_state()

    def test_save_round_trip_keeps_unknown_keys(self, store, write_state, read_json, case_dir):
        write_state(case_title="Acme")
        state = store.load_state()
        state.next_source = 42
        store.save_state(state)

        data = read_json(case_dir / "state.json")
        assert data["next_source"] == 42
        assert data["case_title"] == "Acme"

    def test_save_leaves_no_temp_files(self, store, case_dir):
        store.save_state(store.load_state())
        assert [p.name for p in case_dir.iterdir()] == ["state.json"]


class TestLeads:
    """Tests for leads.json."""

    def test_missing_leads_file_is_empty_book(self, case_dir):
        store = FilesystemCaseStore(case_dir, CoordinationConfig(default_max_depth=5))
        book = store.load_leads()
        assert book.leads == []
        assert book.max_depth == 5

    def test_round_trip(self, store, write_leads, make_lead):
        write_leads(make_lead("L001"), make_lead("L002", priority="HIGH"), version=7)
        book = store.load_leads()
        assert book.version == 7
        book.leads.append(Lead(id="L003", lead="new"))
        store.save_leads(book)

        assert [lead.id for lead in store.load_leads().leads] == ["L001", "L002", "L003"]

    def test_bad_lead_id_rejected(self, store, write_leads, make_lead):
        write_leads(make_lead("lead-1"))
        with pytest.raises(CaseFileError):
            store.load_leads()


class TestSources:
    """Tests for sources.json in both layouts."""

    def test_missing_sources_file_is_empty(self, store):
        assert store.load_sources().sources == []

    def test_array_layout_preserved(self, store, write_json, read_json, case_dir):
        write_json(case_dir / "sources.json", {"sources": [{"id": "S001", "url": "u"}]})
        catalog = store.load_sources()
        catalog.sources.append(SourceRecord(id="S002", url="v"))
        store.save_sources(catalog)

        data = read_json(case_dir / "sources.json")
        assert [s["id"] for s in data["sources"]] == ["S001", "S002"]

    def test_map_layout_preserved(self, store, write_json, read_json, case_dir):
        write_json(case_dir / "sources.json", {"S001": {"url": "u", "captured": True}})
        catalog = store.load_sources()
        assert catalog.layout == SourceLayout.MAP
        catalog.sources.append(SourceRecord(id="S002", url="v"))
        store.save_sources(catalog)

        data = read_json(case_dir / "sources.json")
        assert set(data) == {"S001", "S002"}
        assert data["S001"]["captured"] is True


class TestAuxiliaryFiles:
    """Tests for text/JSON helpers and directory listing."""

    def test_read_missing_text(self, store):
        assert store.read_text("summary.md") is None

    def test_write_and_read_text_in_new_directory(self, store):
        store.write_text("findings/F001.md", "# Finding\n")
        assert store.read_text("findings/F001.md") == "# Finding\n"

    def test_list_files_sorted_and_relative(self, store):
        store.write_text("temp/b.md", "b")
        store.write_text("temp/a.md", "a")
        store.write_json("temp/c.json", {})

        assert list(store.list_files("temp")) == ["temp/a.md", "temp/b.md", "temp/c.json"]
        assert list(store.list_files("temp", "*.md")) == ["temp/a.md", "temp/b.md"]

    def test_list_missing_directory(self, store):
        assert list(store.list_files("nowhere")) == []

    def test_remove_is_idempotent(self, store):
        store.write_text("temp/a.md", "a")
        store.remove("temp/a.md")
        store.remove("temp/a.md")
        assert store.read_text("temp/a.md") is None

    def test_invalid_auxiliary_json(self, store, case_dir):
        (case_dir / "findings").mkdir()
        (case_dir / "findings" / "manifest.json").write_text("[")
        with pytest.raises(CaseFileError):
            store.read_json("findings/manifest.json")


class TestLocked:
    """Tests for per-file locks."""

    def test_lock_marker_exists_only_inside_block(self, store, case_dir):
        with store.locked("state.json"):
            assert (case_dir / "state.json.lock").exists()
        assert not (case_dir / "state.json.lock").exists()
