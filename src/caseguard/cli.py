"""
Command line for the coordination core.

Every command takes the case directory as its first argument. Results are
printed to stdout as JSON with a ``success`` key; logs and error panels go
to stderr. Exit status is 0 on success and 1 on failure, except
``next-action`` (0 COMPLETE, 1 ERROR, 2 CONTINUE).
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from dataclasses import asdict
from functools import wraps
from pathlib import Path
from typing import IO, Any

import click
import jsonschema

from caseguard import __version__, schemas
from caseguard.application import BatchMerger, GateEvaluator, LeadBoard, SourceAllocator
from caseguard.config import CoordinationConfig, load_config
from caseguard.console import print_error, print_gates, print_next_action
from caseguard.domain.codec import allocation_to_dict, lead_to_dict, ledger_entry_to_dict
from caseguard.domain.exceptions import CaseguardError, LockTimeout
from caseguard.domain.models import ActionStatus, Allocation, LeadPriority, LeadStatus, utc_now
from caseguard.guards import full_evidence_guard
from caseguard.infrastructure import FilesystemCaseStore, FilesystemLedger, check_capture
from caseguard.logging_setup import setup_logging

logger = logging.getLogger("caseguard.cli")

EXIT_CODES = {
    ActionStatus.COMPLETE: 0,
    ActionStatus.ERROR: 1,
    ActionStatus.CONTINUE: 2,
}

LEDGER_FLAGS = (
    "iteration",
    "blocking",
    "tasks",
    "phase",
    "duration",
    "agent",
    "output",
    "task",
    "priority",
    "perspective",
    "description",
    "gap",
    "sources",
    "source",
    "url",
    "path",
    "files",
    "claim",
    "risk",
    "type",
    "status",
    "gate",
    "passed",
    "reason",
    "claims",
    "file",
)

case_argument = click.argument(
    "case", type=click.Path(exists=True, file_okay=False, path_type=Path)
)


# =============================================================================
# HELPERS
# =============================================================================


def _open(case: Path) -> tuple[FilesystemCaseStore, CoordinationConfig]:
    config = load_config(case)
    return FilesystemCaseStore(case, config), config


def _emit(payload: dict[str, Any]) -> None:
    click.echo(json.dumps(payload, indent=2, default=str))


def _fail(error: Exception) -> None:
    message = error.message if isinstance(error, jsonschema.ValidationError) else str(error)
    hint = None
    if isinstance(error, LockTimeout):
        hint = "another worker holds the lock; retry, or run again after it goes stale"
    logger.debug("Command failed", exc_info=error)
    print_error(message, hint)
    _emit({"success": False, "error": message})
    click.get_current_context().exit(1)


def json_result[F: Callable[..., dict[str, Any]]](func: F) -> Callable[..., None]:
    """
    Decorator turning a command's returned payload into JSON output.

    Coordination errors, bad values and schema violations become
    ``{"success": false, "error": ...}`` with exit status 1.
    """

    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> None:
        try:
            payload = func(*args, **kwargs)
        except (CaseguardError, ValueError, jsonschema.ValidationError) as e:
            _fail(e)
            return
        _emit({"success": True, **payload})

    return wrapper


def ledger_flag_options[F: Callable[..., Any]](func: F) -> F:
    """Decorator adding one string option per ledger field flag."""
    for flag in reversed(LEDGER_FLAGS):
        func = click.option(f"--{flag}", default=None, help=f"Value for '{flag}'")(func)
    return func


def _allocation_payload(alloc: Allocation) -> dict[str, Any]:
    age = alloc.age(utc_now())
    return {
        "batch_id": alloc.batch_id,
        **allocation_to_dict(alloc),
        "age_seconds": int(age.total_seconds()) if age is not None else None,
    }


# =============================================================================
# GROUP
# =============================================================================


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose (DEBUG) logging to console")
@click.option("--log-file", default=None, type=click.Path(), help="Path to log file")
@click.version_option(__version__, prog_name="caseguard")
def cli(verbose: bool, log_file: str | None) -> None:
    """Coordinate parallel workers on an investigation case directory."""
    setup_logging(log_file=log_file, verbose=verbose)


# =============================================================================
# SOURCE ID ALLOCATION
# =============================================================================


@cli.command()
@case_argument
@click.argument("count", type=int)
@click.argument("batch_id", required=False)
@json_result
def allocate(case: Path, count: int, batch_id: str | None) -> dict[str, Any]:
    """Reserve COUNT consecutive source IDs for a batch."""
    store, config = _open(case)
    allocated = SourceAllocator(store, config).allocate(count, batch_id)
    return asdict(allocated)


@cli.command()
@case_argument
@click.argument("batch_id")
@json_result
def release(case: Path, batch_id: str) -> dict[str, Any]:
    """Abandon a batch's allocation without committing it."""
    store, config = _open(case)
    SourceAllocator(store, config).release(batch_id)
    return {"batch_id": batch_id, "released": True}


@cli.command()
@case_argument
@click.argument("batch_id")
@click.argument("used_count", type=int)
@json_result
def commit(case: Path, batch_id: str, used_count: int) -> dict[str, Any]:
    """Record how many of a batch's IDs were used and retire it."""
    store, config = _open(case)
    return asdict(SourceAllocator(store, config).commit(batch_id, used_count))


@cli.command()
@case_argument
@json_result
def status(case: Path) -> dict[str, Any]:
    """Show next_source and live allocations."""
    store, config = _open(case)
    report = SourceAllocator(store, config).status()
    return {
        "next_source": report.next_source,
        "active": [_allocation_payload(a) for a in report.active],
        "stale": [_allocation_payload(a) for a in report.stale],
    }


@cli.command("cleanup-stale")
@case_argument
@json_result
def cleanup_stale(case: Path) -> dict[str, Any]:
    """Drop allocations older than the staleness threshold."""
    store, config = _open(case)
    return {"removed": SourceAllocator(store, config).cleanup_stale()}


@cli.command("allocate-leads")
@case_argument
@click.argument("count", type=int)
@click.argument("batch_id")
@json_result
def allocate_leads(case: Path, count: int, batch_id: str) -> dict[str, Any]:
    """Reserve COUNT consecutive lead IDs for a batch."""
    store, config = _open(case)
    return asdict(SourceAllocator(store, config).allocate_leads(count, batch_id))


# =============================================================================
# LEDGER
# =============================================================================


@cli.command("ledger-init")
@case_argument
@json_result
def ledger_init(case: Path) -> dict[str, Any]:
    """Create an empty ledger.json."""
    ledger = FilesystemLedger(case, load_config(case))
    ledger.init()
    return {"path": str(ledger.path)}


@cli.command("ledger-append")
@case_argument
@click.argument("entry_type")
@ledger_flag_options
@json_result
def ledger_append(case: Path, entry_type: str, **flags: str | None) -> dict[str, Any]:
    """Append one ENTRY_TYPE event to ledger.json."""
    ledger = FilesystemLedger(case, load_config(case))
    given = {flag: value for flag, value in flags.items() if value is not None}
    entry = ledger.append(entry_type, **given)
    return {"entry": ledger_entry_to_dict(entry)}


# =============================================================================
# MERGING
# =============================================================================


@cli.command("merge-batch-results")
@case_argument
@click.argument("batch_id")
@click.argument("results_json", type=click.File("r"), default="-")
@click.option("--cleanup", is_flag=True, help="Delete temp/*-batch-<BATCH_ID>.* after merging")
@json_result
def merge_batch_results(
    case: Path, batch_id: str, results_json: IO[str], cleanup: bool
) -> dict[str, Any]:
    """Merge a worker's RESULTS_JSON (stdin when omitted) into the case."""
    results = json.load(results_json)
    schemas.validate_batch_results(results)
    store, _ = _open(case)
    merger = BatchMerger(store)
    report = merger.merge(batch_id, results)
    payload = asdict(report)
    if cleanup:
        payload["files_removed"] = merger.cleanup_batch_files(batch_id)
    return payload


@cli.command("merge-question-batches")
@case_argument
@json_result
def merge_question_batches(case: Path) -> dict[str, Any]:
    """Fold the question-phase temp batch files into the case."""
    store, _ = _open(case)
    return asdict(BatchMerger(store).merge_question_batches())


# =============================================================================
# LEADS
# =============================================================================


@cli.group()
def leads() -> None:
    """Claim, update and extend leads."""


@leads.command("claim")
@case_argument
@click.argument("lead_id")
@json_result
def leads_claim(case: Path, lead_id: str) -> dict[str, Any]:
    """Claim one pending lead."""
    store, config = _open(case)
    change = LeadBoard(store, config).claim(lead_id)
    return {
        "claim_id": change.claim_id,
        "lead": lead_to_dict(change.leads[0]),
        "version": change.version,
    }


@leads.command("batch-claim")
@case_argument
@click.argument("lead_ids", nargs=-1, required=True)
@json_result
def leads_batch_claim(case: Path, lead_ids: tuple[str, ...]) -> dict[str, Any]:
    """Claim several leads at once, all or none."""
    store, config = _open(case)
    change = LeadBoard(store, config).batch_claim(list(lead_ids))
    return {
        "claim_id": change.claim_id,
        "leads": [lead_to_dict(lead) for lead in change.leads],
        "version": change.version,
    }


@leads.command("release")
@case_argument
@click.argument("lead_id")
@json_result
def leads_release(case: Path, lead_id: str) -> dict[str, Any]:
    """Drop a lead's claim."""
    store, config = _open(case)
    change = LeadBoard(store, config).release(lead_id)
    return {"lead": lead_to_dict(change.leads[0]), "version": change.version}


@leads.command("update")
@case_argument
@click.argument("lead_id")
@click.argument("new_status", type=click.Choice([s.value for s in LeadStatus]))
@click.option("--result", default=None, help="What following the lead produced")
@click.option("--sources", default="", help="Comma-separated source IDs")
@json_result
def leads_update(
    case: Path, lead_id: str, new_status: str, result: str | None, sources: str
) -> dict[str, Any]:
    """Record a lead's outcome."""
    store, config = _open(case)
    source_ids = [s.strip() for s in sources.split(",") if s.strip()]
    change = LeadBoard(store, config).update(lead_id, new_status, result, source_ids)
    return {"lead": lead_to_dict(change.leads[0]), "version": change.version}


@leads.command("add-child")
@case_argument
@click.argument("parent_id")
@click.argument("text")
@click.option(
    "--priority",
    type=click.Choice([p.value for p in LeadPriority]),
    default=LeadPriority.MEDIUM.value,
    show_default=True,
)
@json_result
def leads_add_child(case: Path, parent_id: str, text: str, priority: str) -> dict[str, Any]:
    """Add a lead discovered while following PARENT_ID."""
    store, config = _open(case)
    change = LeadBoard(store, config).add_child(parent_id, text, priority)
    return {"lead": lead_to_dict(change.leads[0]), "version": change.version}


@leads.command("batch-select")
@case_argument
@click.argument("count", type=int, required=False)
@json_result
def leads_batch_select(case: Path, count: int | None) -> dict[str, Any]:
    """List up to COUNT claimable leads, by priority then depth."""
    store, config = _open(case)
    selected = LeadBoard(store, config).batch_select(count or config.batch_size)
    return {"count": len(selected), "leads": [lead_to_dict(lead) for lead in selected]}


@leads.command("cleanup-stale")
@case_argument
@json_result
def leads_cleanup_stale(case: Path) -> dict[str, Any]:
    """Clear lead claims older than the claim staleness threshold."""
    store, config = _open(case)
    return {"cleared": LeadBoard(store, config).cleanup_stale()}


@leads.command("stats")
@case_argument
@json_result
def leads_stats(case: Path) -> dict[str, Any]:
    """Lead counts by status, claim, priority and depth."""
    store, config = _open(case)
    return LeadBoard(store, config).stats()


# =============================================================================
# EVIDENCE AND GATES
# =============================================================================


@cli.command("verify-evidence")
@case_argument
@click.argument("source_id")
@json_result
def verify_evidence(case: Path, source_id: str) -> dict[str, Any]:
    """Check a capture's stub fields, signature and file hashes."""
    result = check_capture(case / "evidence" / source_id, source_id, full_evidence_guard())
    return {"source_id": source_id, "valid": result.valid, "reason": result.reason}


@cli.command("update-gates")
@case_argument
@click.option("--write", is_flag=True, help="Persist derived gates to state.json")
@click.option("--json", "as_json", is_flag=True, help="Print JSON instead of a table")
@click.pass_context
def update_gates(ctx: click.Context, case: Path, write: bool, as_json: bool) -> None:
    """Derive every gate from case artifacts; exit 0 only if all pass."""
    try:
        store, config = _open(case)
        evaluation = GateEvaluator(store, config).evaluate(write=write)
    except (CaseguardError, ValueError) as e:
        _fail(e)
        return

    if as_json:
        _emit(
            {
                "success": evaluation.all_passed,
                "gates": dict(evaluation.gates),
                "details": {n: dict(r.details) for n, r in evaluation.details.items()},
                "changed": list(evaluation.changed_gates),
                "written": evaluation.written,
            }
        )
    else:
        print_gates(evaluation)
    ctx.exit(0 if evaluation.all_passed else 1)


@cli.command("next-action")
@case_argument
@click.option("--batch", is_flag=True, help="Select a batch of leads for parallel follow")
@click.option("--batch-size", type=int, default=None, help="Leads per batch (implies --batch)")
@click.option("--write", is_flag=True, help="Persist derived gates and phase advance")
@click.option("--json", "as_json", is_flag=True, help="Print JSON instead of a panel")
@click.pass_context
def next_action(
    ctx: click.Context,
    case: Path,
    batch: bool,
    batch_size: int | None,
    write: bool,
    as_json: bool,
) -> None:
    """Decide the single next step; exit 0 COMPLETE, 1 ERROR, 2 CONTINUE."""
    try:
        store, config = _open(case)
        if batch or batch_size is not None:
            batch_size = batch_size or config.batch_size
        evaluation = GateEvaluator(store, config).evaluate(write=write, batch_size=batch_size)
    except (CaseguardError, ValueError) as e:
        _fail(e)
        return

    action = evaluation.action
    if as_json:
        _emit(
            {
                "success": action.status != ActionStatus.ERROR,
                **asdict(action),
                "gates": dict(evaluation.gates),
            }
        )
    else:
        print_next_action(evaluation)
    ctx.exit(EXIT_CODES[action.status])


def main() -> None:
    """Console script entry point."""
    cli()


if __name__ == "__main__":
    main()
