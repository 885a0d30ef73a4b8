"""Application service for source ID allocation.

Parallel workers each reserve a contiguous range of source IDs before they
start capturing, so two workers never mint the same ``S###``. The ID space
is append-only: a released or stale range is abandoned, never handed out
again. ``source_reserved_until`` in state.json remembers the end of the
highest range ever reserved.
"""

from __future__ import annotations

import logging
import random
import string
from collections.abc import Callable
from datetime import datetime
from typing import TYPE_CHECKING, Any

from caseguard.config import CoordinationConfig
from caseguard.domain.exceptions import AllocationConflict, AllocationNotFound
from caseguard.domain.interfaces import LEADS_FILE, STATE_FILE
from caseguard.domain.models import (
    Allocation,
    AllocationRange,
    AllocationStatus,
    AllocationStatusReport,
    CaseState,
    CommitResult,
    format_timestamp,
    utc_now,
)

if TYPE_CHECKING:
    from caseguard.domain.interfaces import CaseStoreInterface

logger = logging.getLogger("caseguard.allocator")

_BASE36 = string.digits + string.ascii_lowercase


def new_batch_id(now: datetime, rng: random.Random | None = None) -> str:
    """``batch_<epoch ms>_<6 base36 chars>``."""
    suffix = "".join((rng or random).choices(_BASE36, k=6))
    return f"batch_{int(now.timestamp() * 1000)}_{suffix}"


class SourceAllocator:
    """Reserve, commit and release source ID ranges in state.json.

    Every mutation runs inside one ``state.json`` lock scope; ``status`` is
    a lock-free snapshot read.
    """

    def __init__(
        self,
        store: CaseStoreInterface,
        config: CoordinationConfig | None = None,
        clock: Callable[[], datetime] = utc_now,
        rng: random.Random | None = None,
    ) -> None:
        """Initialize the allocator.

        Args:
            store: Case store holding state.json.
            config: Staleness thresholds (defaults when omitted).
            clock: Source of the current time.
            rng: Random source for generated batch IDs.
        """
        self._store = store
        self._config = config or CoordinationConfig()
        self._clock = clock
        self._rng = rng

    def _purge_stale(self, state: CaseState, now: datetime) -> list[str]:
        threshold = self._config.allocation_staleness
        stale = [
            batch_id
            for batch_id, alloc in state.source_allocations.items()
            if alloc.status == AllocationStatus.ACTIVE and alloc.is_stale(now, threshold)
        ]
        for batch_id in stale:
            alloc = state.source_allocations.pop(batch_id)
            logger.warning(
                "Dropping stale allocation %s [S%03d, S%03d)", batch_id, alloc.start, alloc.end
            )
        return stale

    def allocate(
        self, count: int, batch_id: str | None = None, **metadata: Any
    ) -> AllocationRange:
        """Reserve ``count`` consecutive source IDs.

        Args:
            count: Number of IDs to reserve (must be positive).
            batch_id: Caller-chosen batch ID; generated when omitted.
            **metadata: Extra fields stored with the allocation.

        Returns:
            The reserved half-open range [start, end).

        Raises:
            ValueError: If count is not positive.
            AllocationConflict: If batch_id already holds an active allocation.
            LockTimeout: If state.json cannot be locked.
        """
        if count <= 0:
            raise ValueError(f"count must be positive, got {count}")

        with self._store.locked(STATE_FILE):
            state = self._store.load_state()
            now = self._clock()
            self._purge_stale(state, now)

            batch_id = batch_id or new_batch_id(now, self._rng)
            if batch_id in state.source_allocations:
                raise AllocationConflict(batch_id)

            start = max(
                [state.next_source or 1, state.source_reserved_until]
                + [alloc.end for alloc in state.source_allocations.values()]
            )
            state.source_allocations[batch_id] = Allocation(
                batch_id=batch_id,
                start=start,
                end=start + count,
                count=count,
                allocated_at=format_timestamp(now),
                extra=metadata,
            )
            state.source_reserved_until = start + count
            self._store.save_state(state)

        logger.info("Allocated %s: [%d, %d)", batch_id, start, start + count)
        return AllocationRange(batch_id=batch_id, start=start, end=start + count, count=count)

    def release(self, batch_id: str) -> None:
        """Abandon an allocation; next_source is left untouched.

        Raises:
            AllocationNotFound: If batch_id has no live allocation.
        """
        with self._store.locked(STATE_FILE):
            state = self._store.load_state()
            if batch_id not in state.source_allocations:
                raise AllocationNotFound(batch_id)
            del state.source_allocations[batch_id]
            self._store.save_state(state)
        logger.info("Released %s", batch_id)

    def commit(self, batch_id: str, used_count: int) -> CommitResult:
        """Record how many IDs of a range were used and retire it.

        ``next_source`` advances to ``start + used_count`` when that is
        higher; the unused tail of the range is never reissued.

        Raises:
            AllocationNotFound: If batch_id has no live allocation.
            ValueError: If used_count is outside 0..count.
        """
        with self._store.locked(STATE_FILE):
            state = self._store.load_state()
            alloc = state.source_allocations.get(batch_id)
            if alloc is None:
                raise AllocationNotFound(batch_id)
            if not 0 <= used_count <= alloc.count:
                raise ValueError(
                    f"used_count must be within 0..{alloc.count}, got {used_count}"
                )

            actual_end = alloc.start + used_count
            state.next_source = max(state.next_source, actual_end)
            del state.source_allocations[batch_id]
            self._store.save_state(state)

        logger.info(
            "Committed %s: used %d of %d, next_source=%d",
            batch_id,
            used_count,
            alloc.count,
            state.next_source,
        )
        return CommitResult(
            batch_id=batch_id, used_count=used_count, next_source=state.next_source
        )

    def status(self) -> AllocationStatusReport:
        """Snapshot of live allocations split into active and stale."""
        state = self._store.load_state()
        now = self._clock()
        threshold = self._config.allocation_staleness
        active, stale = [], []
        for alloc in state.source_allocations.values():
            (stale if alloc.is_stale(now, threshold) else active).append(alloc)
        return AllocationStatusReport(
            next_source=state.next_source, active=tuple(active), stale=tuple(stale)
        )

    def cleanup_stale(self) -> int:
        """Drop every stale active allocation; returns how many were dropped."""
        with self._store.locked(STATE_FILE):
            state = self._store.load_state()
            stale = self._purge_stale(state, self._clock())
            if stale:
                self._store.save_state(state)
        return len(stale)

    def allocate_leads(self, count: int, batch_id: str) -> AllocationRange:
        """Reserve ``count`` consecutive lead IDs and advance next_lead.

        Lock order is leads.json then state.json, matching the merger.

        Raises:
            ValueError: If count is not positive.
            LockTimeout: If either file cannot be locked.
        """
        if count <= 0:
            raise ValueError(f"count must be positive, got {count}")

        with self._store.locked(LEADS_FILE):
            highest = self._store.load_leads().highest_number()
            with self._store.locked(STATE_FILE):
                state = self._store.load_state()
                start = max(state.next_lead, highest + 1)
                state.next_lead = start + count
                self._store.save_state(state)

        logger.info("Allocated leads %s: [%d, %d)", batch_id, start, start + count)
        return AllocationRange(batch_id=batch_id, start=start, end=start + count, count=count)
