"""Application service for claiming and updating leads.

Parallel workers claim leads before following them so two workers never
chase the same question. Every write happens under the ``leads.json`` lock
and bumps the file's version counter.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable, Iterable, Sequence
from dataclasses import replace
from datetime import datetime
from typing import TYPE_CHECKING, Any

from caseguard.config import CoordinationConfig
from caseguard.domain.exceptions import (
    LeadClaimError,
    LeadDepthExceeded,
    LeadNotFound,
)
from caseguard.domain.interfaces import LEADS_FILE
from caseguard.domain.models import (
    Lead,
    LeadBook,
    LeadChange,
    LeadPriority,
    LeadStatus,
    format_timestamp,
    utc_now,
)
from caseguard.domain.phases import select_lead_batch

if TYPE_CHECKING:
    from caseguard.domain.interfaces import CaseStoreInterface

logger = logging.getLogger("caseguard.leads")


def new_claim_id(now: datetime) -> str:
    return f"pid_{os.getpid()}_{int(now.timestamp() * 1000)}"


def _release_claim(lead: Lead) -> Lead:
    return replace(lead, claimed_by=None, claimed_at=None)


class LeadBoard:
    """Claim, release, update and extend the lead list."""

    def __init__(
        self,
        store: CaseStoreInterface,
        config: CoordinationConfig | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._config = config or CoordinationConfig()
        self._clock = clock

    def _save(self, book: LeadBook) -> int:
        book.version += 1
        self._store.save_leads(book)
        return book.version

    def _require(self, book: LeadBook, lead_id: str) -> Lead:
        lead = book.get(lead_id)
        if lead is None:
            raise LeadNotFound(lead_id)
        return lead

    def _claim_problem(self, lead: Lead | None, lead_id: str, now: datetime) -> str | None:
        if lead is None:
            return f"{lead_id}: not found"
        if not lead.is_pending:
            return f"{lead_id}: not pending ({lead.status.value})"
        if lead.claimed_by and not lead.claim_is_stale(now, self._config.claim_staleness):
            return f"{lead_id}: already claimed by {lead.claimed_by}"
        return None

    def claim(self, lead_id: str) -> LeadChange:
        """Claim one pending lead.

        Raises:
            LeadNotFound: If the lead does not exist.
            LeadClaimError: If it is not pending or holds a fresh claim.
        """
        return self.batch_claim([lead_id])

    def batch_claim(self, lead_ids: Sequence[str]) -> LeadChange:
        """Claim several leads under one claim ID, all or none.

        Raises:
            LeadNotFound: For a single unknown lead.
            LeadClaimError: Listing every lead that cannot be claimed.
        """
        with self._store.locked(LEADS_FILE):
            book = self._store.load_leads()
            now = self._clock()
            errors = [
                problem
                for lead_id in lead_ids
                if (problem := self._claim_problem(book.get(lead_id), lead_id, now))
            ]
            if len(lead_ids) == 1 and book.get(lead_ids[0]) is None:
                raise LeadNotFound(lead_ids[0])
            if errors:
                raise LeadClaimError(errors)

            claim_id = new_claim_id(now)
            claimed_at = format_timestamp(now)
            claimed = []
            for lead_id in lead_ids:
                lead = replace(book.get(lead_id), claimed_by=claim_id, claimed_at=claimed_at)
                book.replace(lead)
                claimed.append(lead)
            version = self._save(book)

        logger.info("Claimed %s as %s", ", ".join(lead_ids), claim_id)
        return LeadChange(leads=tuple(claimed), version=version, claim_id=claim_id)

    def release(self, lead_id: str) -> LeadChange:
        """Drop a lead's claim, whoever holds it."""
        with self._store.locked(LEADS_FILE):
            book = self._store.load_leads()
            lead = _release_claim(self._require(book, lead_id))
            book.replace(lead)
            version = self._save(book)
        return LeadChange(leads=(lead,), version=version)

    def update(
        self,
        lead_id: str,
        status: LeadStatus | str,
        result: str | None = None,
        sources: Iterable[str] = (),
    ) -> LeadChange:
        """Record the outcome of following a lead and clear its claim."""
        with self._store.locked(LEADS_FILE):
            book = self._store.load_leads()
            lead = replace(
                _release_claim(self._require(book, lead_id)),
                status=LeadStatus(status),
                result=result,
                sources=tuple(sources),
            )
            book.replace(lead)
            version = self._save(book)
        logger.info("Updated %s -> %s", lead_id, lead.status.value)
        return LeadChange(leads=(lead,), version=version)

    def add_child(
        self,
        parent_id: str,
        lead: str,
        priority: LeadPriority | str = LeadPriority.MEDIUM,
        **extra: Any,
    ) -> LeadChange:
        """Add a lead discovered while following ``parent_id``.

        The new ID is above both the highest existing lead and any lead
        range reserved through the allocator.

        Raises:
            LeadNotFound: If the parent does not exist.
            LeadDepthExceeded: If the child would be deeper than max_depth.
        """
        with self._store.locked(LEADS_FILE):
            book = self._store.load_leads()
            parent = self._require(book, parent_id)
            depth = parent.depth + 1
            if depth > book.max_depth:
                raise LeadDepthExceeded(depth, book.max_depth)

            floor = self._store.load_state().next_lead
            child = Lead(
                id=book.next_id(floor),
                lead=lead,
                parent=parent_id,
                depth=depth,
                priority=LeadPriority(priority),
                extra={"from": parent_id, **extra},
            )
            book.leads.append(child)
            version = self._save(book)

        logger.info("Added %s under %s (depth %d)", child.id, parent_id, depth)
        return LeadChange(leads=(child,), version=version)

    def batch_select(self, count: int) -> list[Lead]:
        """Up to ``count`` claimable leads, by priority then depth. Read-only."""
        book = self._store.load_leads()
        return select_lead_batch(
            book.leads, count, self._clock(), self._config.claim_staleness
        )

    def cleanup_stale(self) -> int:
        """Clear claims older than the claim staleness threshold."""
        with self._store.locked(LEADS_FILE):
            book = self._store.load_leads()
            now = self._clock()
            stale = [
                lead
                for lead in book.leads
                if lead.claimed_by and lead.claim_is_stale(now, self._config.claim_staleness)
            ]
            for lead in stale:
                logger.warning("Clearing stale claim on %s (%s)", lead.id, lead.claimed_by)
                book.replace(_release_claim(lead))
            if stale:
                self._save(book)
        return len(stale)

    def stats(self) -> dict[str, Any]:
        book = self._store.load_leads()
        now = self._clock()
        stats: dict[str, Any] = book.counts()
        stats.update(
            {
                "claimed": 0,
                "stale_claims": 0,
                "available": 0,
                "by_priority": {p.value: 0 for p in LeadPriority},
                "by_depth": {},
            }
        )
        for lead in book.leads:
            if lead.claimed_by:
                if lead.claim_is_stale(now, self._config.claim_staleness):
                    stats["stale_claims"] += 1
                else:
                    stats["claimed"] += 1
            if lead.is_available(now, self._config.claim_staleness):
                stats["available"] += 1
            stats["by_priority"][lead.priority.value] += 1
            stats["by_depth"][str(lead.depth)] = stats["by_depth"].get(str(lead.depth), 0) + 1
        stats["version"] = book.version
        return stats
