"""
Gates derived from leads.json and the reconciliation log.
"""

from pathlib import Path

from caseguard.domain.interfaces import GateInterface
from caseguard.domain.models import GateResult
from caseguard.guards.gates.files import mtime_ns, read_json, source_records


class CuriosityGate(GateInterface):
    """No lead is left pending."""

    name = "curiosity"

    def derive(self, case_dir: Path) -> GateResult:
        data, error = read_json(case_dir / "leads.json")
        if error:
            return GateResult(passed=False, details={"error": error})

        leads = data.get("leads") if isinstance(data, dict) else None
        leads = leads if isinstance(leads, list) else []
        pending = [
            lead for lead in leads if isinstance(lead, dict) and lead.get("status") == "pending"
        ]
        return GateResult(
            passed=not pending,
            details={
                "pending": len(pending),
                "pending_ids": [lead["id"] for lead in pending[:25] if lead.get("id")],
            },
        )


class ReconciliationGate(GateInterface):
    """
    Reconciliation log is newer than every input it reconciles, and every
    source an investigated lead cites is registered.
    """

    name = "reconciliation"

    def derive(self, case_dir: Path) -> GateResult:
        log_path = case_dir / "reconciliation-log.md"
        if not log_path.exists():
            return GateResult(passed=False, details={"error": "RECONCILIATION_LOG_MISSING"})

        inputs = [case_dir / "leads.json", case_dir / "sources.json"]
        findings_dir = case_dir / "findings"
        if findings_dir.is_dir():
            inputs.extend(
                p for p in findings_dir.iterdir() if p.suffix in (".md", ".json")
            )
        inputs_latest = max((mtime_ns(p) for p in inputs), default=0)
        log_mtime = mtime_ns(log_path)
        stale = inputs_latest > log_mtime

        leads_data, _ = read_json(case_dir / "leads.json")
        sources_data, _ = read_json(case_dir / "sources.json")
        known = source_records(sources_data)
        leads = leads_data.get("leads", []) if isinstance(leads_data, dict) else []
        unregistered = sorted(
            {
                source_id
                for lead in leads
                if isinstance(lead, dict) and lead.get("status") == "investigated"
                for source_id in lead.get("sources") or []
                if source_id not in known
            }
        )

        return GateResult(
            passed=not stale and not unregistered,
            details={"stale": stale, "unregistered_sources": unregistered},
        )
