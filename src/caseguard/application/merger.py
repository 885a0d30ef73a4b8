"""Application service for merging parallel worker results.

Each worker writes partial results (lead outcomes, new leads, sources,
summary fragments) for its batch. The merger folds them into the canonical
case files. Each artifact kind is merged under its own file lock; a crash
between kinds leaves earlier kinds merged and later ones untouched, and a
re-run skips what is already present.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import TYPE_CHECKING, Any

from caseguard import schemas
from caseguard.domain.codec import source_from_dict
from caseguard.domain.exceptions import CaseFileError
from caseguard.domain.identifiers import (
    FINDING_PREFIX,
    LEAD_PREFIX,
    format_id,
    highest_number,
    parse_id,
)
from caseguard.domain.interfaces import LEADS_FILE, SOURCES_FILE, STATE_FILE
from caseguard.domain.models import (
    Lead,
    LeadPriority,
    LeadStatus,
    MergeReport,
    QuestionMergeReport,
    utc_now,
)

if TYPE_CHECKING:
    from caseguard.domain.interfaces import CaseStoreInterface

logger = logging.getLogger("caseguard.merger")

SUMMARY_FILE = "summary.md"
FINDINGS_HEADING = "## Findings from Leads"
QUESTION_BATCH_PREFIX = "question_batch_"

_TEMP_BATCH_FILE = re.compile(
    r"^(?P<kind>findings|summary|leads|sources)-batch-(?P<num>\d+)\.(?:md|json)$"
)
_NEW_LEAD_KEYS = {"id", "lead", "parent", "depth", "priority", "status"}


@dataclass
class _LeadMerge:
    added: list[str] = field(default_factory=list)
    skipped: int = 0
    over_depth: int = 0


@dataclass
class _SourceMerge:
    added: list[str] = field(default_factory=list)
    skipped: int = 0
    highest: int = 0


class BatchMerger:
    """Fold batch results into leads.json, sources.json, summary.md and state.json."""

    def __init__(
        self,
        store: CaseStoreInterface,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._clock = clock

    # -------------------------------------------------------------------------
    # Per-kind steps
    # -------------------------------------------------------------------------

    def _apply_lead_updates(
        self, updates: Sequence[Mapping[str, Any]]
    ) -> tuple[list[str], list[str]]:
        updated, not_found = [], []
        with self._store.locked(LEADS_FILE):
            book = self._store.load_leads()
            for update in updates:
                lead = book.get(update["id"])
                if lead is None:
                    not_found.append(update["id"])
                    continue
                book.replace(
                    replace(
                        lead,
                        status=LeadStatus(update["status"]),
                        result=update.get("result"),
                        sources=tuple(update.get("sources") or ()),
                        claimed_by=None,
                        claimed_at=None,
                    )
                )
                updated.append(lead.id)
            if updated:
                book.version += 1
                self._store.save_leads(book)
        if not_found:
            logger.warning("Lead updates for unknown leads: %s", ", ".join(not_found))
        return updated, not_found

    def _add_new_leads(self, new_leads: Sequence[Mapping[str, Any]]) -> _LeadMerge:
        """Append leads not already present by (text, parent).

        Proposed IDs are replaced by sequential ones; later leads in the same
        batch that name a proposed ID as parent follow the remapping.
        """
        merge = _LeadMerge()
        with self._store.locked(LEADS_FILE):
            book = self._store.load_leads()
            with self._store.locked(STATE_FILE):
                state = self._store.load_state()
                next_number = max(state.next_lead, book.highest_number() + 1)
                seen = {lead.natural_key: lead.id for lead in book.leads}
                remap: dict[str, str] = {}

                for raw in new_leads:
                    proposed = raw.get("id")
                    parent = raw.get("parent")
                    parent = remap.get(parent, parent) if parent else None
                    key = (raw["lead"], parent)
                    if key in seen:
                        merge.skipped += 1
                        if proposed:
                            remap[proposed] = seen[key]
                        continue

                    parent_lead = book.get(parent) if parent else None
                    if parent_lead is not None:
                        depth = parent_lead.depth + 1
                    else:
                        depth = int(raw.get("depth", 0))
                    if depth > book.max_depth:
                        merge.over_depth += 1
                        logger.warning(
                            "Skipping lead over max_depth %d: %s", book.max_depth, raw["lead"]
                        )
                        continue

                    lead_id = format_id(LEAD_PREFIX, next_number)
                    next_number += 1
                    if proposed and proposed != lead_id:
                        remap[proposed] = lead_id
                    book.leads.append(
                        Lead(
                            id=lead_id,
                            lead=raw["lead"],
                            parent=parent,
                            depth=depth,
                            priority=LeadPriority(raw.get("priority", "MEDIUM")),
                            status=LeadStatus(raw.get("status", "pending")),
                            extra={k: v for k, v in raw.items() if k not in _NEW_LEAD_KEYS},
                        )
                    )
                    seen[key] = lead_id
                    merge.added.append(lead_id)

                if merge.added:
                    book.version += 1
                    self._store.save_leads(book)
                    state.next_lead = max(state.next_lead, next_number)
                    self._store.save_state(state)
        return merge

    def _add_sources(self, new_sources: Iterable[Mapping[str, Any]]) -> _SourceMerge:
        merge = _SourceMerge()
        with self._store.locked(SOURCES_FILE):
            catalog = self._store.load_sources()
            known = catalog.ids()
            for raw in new_sources:
                merge.highest = max(merge.highest, parse_id(raw["id"]) or 0)
                if raw["id"] in known:
                    merge.skipped += 1
                    continue
                catalog.sources.append(source_from_dict(dict(raw)))
                known.add(raw["id"])
                merge.added.append(raw["id"])
            if merge.added:
                self._store.save_sources(catalog)
        return merge

    def _append_summary(self, batch_id: str, fragments: Sequence[Mapping[str, Any]]) -> int:
        blocks = [
            f"\n#### {f.get('lead_id', '')}: {f.get('lead_title') or 'Result'}\n\n"
            f"{f['content'].strip()}\n"
            for f in fragments
            if (f.get("content") or "").strip()
        ]
        if not blocks:
            return 0

        batch_heading = f"### Batch {batch_id}"
        with self._store.locked(SUMMARY_FILE):
            summary = self._store.read_text(SUMMARY_FILE) or ""
            if re.search(rf"^{re.escape(batch_heading)}$", summary, re.MULTILINE):
                logger.info("Summary already has %s, skipping fragments", batch_heading)
                return 0
            if FINDINGS_HEADING not in summary:
                summary = summary.rstrip("\n") + f"\n\n{FINDINGS_HEADING}\n"
            summary = summary.rstrip("\n") + f"\n\n{batch_heading}\n" + "".join(blocks)
            self._store.write_text(SUMMARY_FILE, summary)
        return len(blocks)

    def _append_framework_findings(self, findings: Sequence[Mapping[str, Any]]) -> int:
        updated = 0
        for finding in findings:
            file_name = finding.get("framework_file")
            content = (finding.get("content") or "").strip()
            if not file_name or not content:
                continue
            relative = f"questions/{file_name}"
            with self._store.locked(relative):
                text = self._store.read_text(relative)
                if text is None:
                    logger.warning("Framework file %s not found, skipping", relative)
                    continue
                block = f"\n### {finding.get('lead_id', '')} Result\n{content}\n"
                if block in text:
                    continue
                if FINDINGS_HEADING not in text:
                    text = text.rstrip("\n") + f"\n\n{FINDINGS_HEADING}\n"
                self._store.write_text(relative, text + block)
            updated += 1
        return updated

    def _advance_next_source(
        self, highest_observed: int, clear: Callable[[str], bool]
    ) -> int:
        with self._store.locked(STATE_FILE):
            state = self._store.load_state()
            state.next_source = max(state.next_source, highest_observed + 1)
            for batch_id in [b for b in state.source_allocations if clear(b)]:
                del state.source_allocations[batch_id]
            self._store.save_state(state)
        return state.next_source

    # -------------------------------------------------------------------------
    # Public operations
    # -------------------------------------------------------------------------

    def merge(self, batch_id: str, results: Mapping[str, Any]) -> MergeReport:
        """Merge one worker's results.

        Args:
            batch_id: Batch the results belong to; its allocation is retired.
            results: Mapping with any of ``lead_updates``, ``new_leads``,
                ``new_sources``, ``summary_fragments``, ``framework_findings``,
                ``highest_source_used``.

        Returns:
            MergeReport describing what changed.

        Records failing the batch-results schema are dropped before anything
        is written and listed in the report's ``rejected``.

        Raises:
            CaseFileError: If a canonical file is malformed.
            LockTimeout: If a file lock cannot be acquired.
            jsonschema.ValidationError: If ``results`` is not an object.
        """
        results, rejected = schemas.drop_invalid_batch_records(dict(results))
        if rejected:
            logger.warning("Batch %s: dropped %d invalid records", batch_id, len(rejected))

        updated: list[str] = []
        not_found: list[str] = []
        if results.get("lead_updates"):
            updated, not_found = self._apply_lead_updates(results["lead_updates"])

        leads = _LeadMerge()
        if results.get("new_leads"):
            leads = self._add_new_leads(results["new_leads"])

        sources = _SourceMerge()
        if results.get("new_sources"):
            sources = self._add_sources(results["new_sources"])

        fragments = 0
        if results.get("summary_fragments"):
            fragments = self._append_summary(batch_id, results["summary_fragments"])

        question_files = 0
        if results.get("framework_findings"):
            question_files = self._append_framework_findings(results["framework_findings"])

        highest = max(int(results.get("highest_source_used") or 0), sources.highest)
        next_source = self._advance_next_source(highest, lambda b: b == batch_id)

        report = MergeReport(
            batch_id=batch_id,
            leads_updated=tuple(updated),
            leads_not_found=tuple(not_found),
            leads_added=tuple(leads.added),
            leads_skipped=leads.skipped,
            leads_over_depth=leads.over_depth,
            sources_added=tuple(sources.added),
            sources_skipped=sources.skipped,
            fragments_merged=fragments,
            question_files_updated=question_files,
            next_source=next_source,
            rejected=tuple(rejected),
        )
        logger.info(
            "Merged %s: %d lead updates, %d new leads, %d new sources",
            batch_id,
            len(updated),
            len(leads.added),
            len(sources.added),
        )
        return report

    def _temp_batch_files(self) -> dict[int, dict[str, str]]:
        batches: dict[int, dict[str, str]] = {}
        for relative in self._store.list_files("temp"):
            match = _TEMP_BATCH_FILE.match(relative.rsplit("/", 1)[-1])
            if match:
                batches.setdefault(int(match["num"]), {})[match["kind"]] = relative
        return dict(sorted(batches.items()))

    def _temp_records(
        self, relative: str, list_key: str, results_key: str, rejected: list[str]
    ) -> tuple[list[dict[str, Any]], dict[str, Any]]:
        """Schema-valid records from one temp batch file, plus the file's object."""
        try:
            data = self._store.read_json(relative)
        except CaseFileError as e:
            rejected.append(str(e))
            return [], {}
        if not isinstance(data, dict):
            rejected.append(f"{relative}: not a JSON object")
            return [], {}
        kept, errors = schemas.drop_invalid_batch_records({results_key: data.get(list_key, [])})
        rejected.extend(f"{relative}: {error}" for error in errors)
        return kept.get(results_key, []), data

    def _write_finding(self, number: int, batch_num: int, content: str) -> str:
        finding_id = format_id(FINDING_PREFIX, number)
        today = self._clock().date().isoformat()
        self._store.write_text(
            f"findings/{finding_id}.md",
            "---\n"
            f"id: {finding_id}\n"
            "status: draft\n"
            f"created: {today}\n"
            f"updated: {today}\n"
            "sources: []\n"
            "supersedes: null\n"
            "superseded_by: null\n"
            "confidence: medium\n"
            "related_leads: []\n"
            "---\n\n"
            f"# Finding: Batch {batch_num} Discoveries\n\n"
            f"{content}\n",
        )
        return finding_id

    def merge_question_batches(self) -> QuestionMergeReport:
        """Fold the question-phase ``temp/*-batch-<n>.*`` files into the case.

        Findings become ``findings/F###.md`` appended to the manifest's
        assembly order; leads and sources merge as in ``merge``. Allocations
        named ``question_batch_*`` are retired and the temp files removed.

        Returns:
            QuestionMergeReport; ``batches`` is empty when there was nothing to merge.
        """
        batches = self._temp_batch_files()
        if not batches:
            return QuestionMergeReport()

        manifest = self._store.read_json("findings/manifest.json") or {
            "version": 1,
            "assembly_order": [],
            "sections": {},
        }
        existing = [p.rsplit("/", 1)[-1][:-3] for p in self._store.list_files("findings", "F*.md")]
        next_finding = highest_number(existing) + 1

        created: list[str] = []
        raw_leads: list[dict[str, Any]] = []
        raw_sources: list[dict[str, Any]] = []
        rejected: list[str] = []
        highest_used = 0
        for batch_num, files in batches.items():
            findings_file = files.get("findings") or files.get("summary")
            if findings_file:
                content = (self._store.read_text(findings_file) or "").strip()
                if content:
                    created.append(self._write_finding(next_finding, batch_num, content))
                    next_finding += 1
            if "leads" in files:
                records, _ = self._temp_records(files["leads"], "leads", "new_leads", rejected)
                raw_leads.extend(records)
            if "sources" in files:
                records, data = self._temp_records(
                    files["sources"], "sources", "new_sources", rejected
                )
                raw_sources.extend(records)
                meta = data.get("_batch_metadata")
                used = meta.get("highest_used") if isinstance(meta, dict) else None
                if isinstance(used, int) and not isinstance(used, bool):
                    highest_used = max(highest_used, used)

        if rejected:
            logger.warning("Question batches: dropped %d invalid records", len(rejected))

        if created:
            manifest.setdefault("assembly_order", []).extend(created)
            self._store.write_json("findings/manifest.json", manifest)

        leads = self._add_new_leads(raw_leads) if raw_leads else _LeadMerge()
        sources = self._add_sources(raw_sources) if raw_sources else _SourceMerge()
        next_source = self._advance_next_source(
            max(highest_used, sources.highest),
            lambda b: b.startswith(QUESTION_BATCH_PREFIX),
        )

        removed = 0
        for files in batches.values():
            for relative in files.values():
                self._store.remove(relative)
                removed += 1

        logger.info(
            "Merged question batches %s: %d findings, %d leads, %d sources",
            list(batches),
            len(created),
            len(leads.added),
            len(sources.added),
        )
        return QuestionMergeReport(
            batches=tuple(batches),
            findings_created=tuple(created),
            leads_added=tuple(leads.added),
            leads_skipped=leads.skipped,
            sources_added=tuple(sources.added),
            sources_skipped=sources.skipped,
            next_source=next_source,
            files_removed=removed,
            rejected=tuple(rejected),
        )

    def cleanup_batch_files(self, batch_id: str) -> int:
        """Delete ``temp/*-batch-<batch_id>.*``; returns how many were removed."""
        pattern = re.compile(rf"^.*-batch-{re.escape(batch_id)}\..*$")
        removed = 0
        for relative in list(self._store.list_files("temp")):
            if pattern.match(relative.rsplit("/", 1)[-1]):
                self._store.remove(relative)
                removed += 1
        return removed
