"""Shared pytest fixtures for caseguard tests."""

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import pytest

from caseguard.config import CoordinationConfig
from caseguard.domain.models import GATE_NAMES
from caseguard.infrastructure.persistence.case_store import FilesystemCaseStore

START = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Deterministic clock; call it for the time, ``advance`` to move it."""

    def __init__(self, start: datetime = START):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


def initial_state(**overrides: Any) -> dict[str, Any]:
    state: dict[str, Any] = {
        "phase": "PLAN",
        "iteration": 1,
        "next_source": 1,
        "next_lead": 1,
        "gates": dict.fromkeys(GATE_NAMES, False),
        "source_allocations": {},
    }
    state.update(overrides)
    return state


def lead(lead_id: str, text: str | None = None, **fields: Any) -> dict[str, Any]:
    """A leads.json record with sensible defaults."""
    record = {
        "id": lead_id,
        "lead": text or f"Question {lead_id}",
        "parent": None,
        "depth": 0,
        "priority": "MEDIUM",
        "status": "pending",
        "sources": [],
        "result": None,
    }
    record.update(fields)
    return record


@pytest.fixture
def clock() -> FakeClock:
    """A clock frozen at 2026-03-01T12:00:00Z."""
    return FakeClock()


@pytest.fixture
def write_json():
    """Write a JSON document, creating parent directories."""

    def _write(path: Path, data: Any) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(data, indent=2))
        return path

    return _write


@pytest.fixture
def read_json():
    """Read a JSON document."""

    def _read(path: Path) -> Any:
        return json.loads(path.read_text())

    return _read


@pytest.fixture
def case_dir(tmp_path: Path, write_json) -> Path:
    """A case directory holding a fresh PLAN-phase state.json."""
    directory = tmp_path / "case"
    directory.mkdir()
    write_json(directory / "state.json", initial_state())
    return directory


@pytest.fixture
def config() -> CoordinationConfig:
    """Short lock timeout so contention tests fail fast."""
    return CoordinationConfig(lock_timeout=0.5, lock_retry_interval=0.01)


@pytest.fixture
def store(case_dir: Path, config: CoordinationConfig, clock: FakeClock) -> FilesystemCaseStore:
    """Case store over ``case_dir`` using the fake clock."""
    return FilesystemCaseStore(case_dir, config, clock=clock)


@pytest.fixture
def write_leads(case_dir: Path, write_json):
    """Write leads.json from lead records."""

    def _write(*leads: dict[str, Any], max_depth: int = 3, version: int = 1) -> Path:
        return write_json(
            case_dir / "leads.json",
            {"max_depth": max_depth, "version": version, "leads": list(leads)},
        )

    return _write


@pytest.fixture
def make_lead():
    """Build a leads.json record; see ``lead``."""
    return lead


@pytest.fixture
def write_state(case_dir: Path, write_json):
    """Overwrite state.json with the initial state plus overrides."""

    def _write(**overrides: Any) -> Path:
        return write_json(case_dir / "state.json", initial_state(**overrides))

    return _write
