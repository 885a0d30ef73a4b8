"""
Sources gate: every source the article cites is backed by verified evidence.
"""

import re
from pathlib import Path

from caseguard.domain.interfaces import GateInterface
from caseguard.domain.models import GateResult
from caseguard.guards.capture.signature import verify
from caseguard.guards.gates.files import read_json, read_text, source_records

_CITED_ID = re.compile(r"\[(S\d{3,})\]")


class SourcesGate(GateInterface):
    """Fails when the article is missing or cites nothing."""

    name = "sources"

    def derive(self, case_dir: Path) -> GateResult:
        text = read_text(case_dir / "articles" / "full.md")
        if not text:
            return GateResult(passed=False, details={"error": "ARTICLE_NOT_FOUND"})

        cited = sorted(set(_CITED_ID.findall(text)))
        if not cited:
            return GateResult(passed=False, details={"error": "NO_CITATIONS"})

        sources_data, _ = read_json(case_dir / "sources.json")
        records = source_records(sources_data)

        missing, uncaptured, invalid = [], [], {}
        for source_id in cited:
            record = records.get(source_id)
            if record is None:
                missing.append(source_id)
                continue
            if not record.get("captured"):
                uncaptured.append(source_id)
                continue
            metadata, error = read_json(case_dir / "evidence" / source_id / "metadata.json")
            if error or not isinstance(metadata, dict):
                invalid[source_id] = error or "metadata is not an object"
                continue
            result = verify(metadata)
            if not result.valid:
                invalid[source_id] = result.reason

        return GateResult(
            passed=not (missing or uncaptured or invalid),
            details={
                "cited": len(cited),
                "missing": missing,
                "uncaptured": uncaptured,
                "invalid": invalid,
            },
        )
