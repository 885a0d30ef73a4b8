"""Application service for gate evaluation and next-action decisions.

Gates are always re-derived from case artifacts; the copy in state.json is a
cache the supervisor may refresh with ``write=True``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING

from caseguard.config import CoordinationConfig
from caseguard.domain.interfaces import STATE_FILE
from caseguard.domain.models import (
    ActionStatus,
    GateResult,
    NextAction,
    Phase,
    utc_now,
)
from caseguard.domain.phases import decide_next_action
from caseguard.guards.gates import default_gates, derive_all_gates

if TYPE_CHECKING:
    from caseguard.domain.interfaces import CaseStoreInterface, GateInterface

logger = logging.getLogger("caseguard.gates")


@dataclass(frozen=True)
class Evaluation:
    """Derived gates, the phase on record and the decided next action."""

    gates: Mapping[str, bool]
    details: Mapping[str, GateResult]
    recorded_phase: Phase
    action: NextAction
    written: bool = False
    changed_gates: tuple[str, ...] = field(default=())

    @property
    def all_passed(self) -> bool:
        return bool(self.gates) and all(self.gates.values())


class GateEvaluator:
    """Derive gates and decide what the supervisor does next."""

    def __init__(
        self,
        store: CaseStoreInterface,
        config: CoordinationConfig | None = None,
        clock: Callable[[], datetime] = utc_now,
        gates: tuple[GateInterface, ...] | None = None,
    ) -> None:
        self._store = store
        self._config = config or CoordinationConfig()
        self._clock = clock
        self._gates = gates or default_gates()

    def derive(self) -> dict[str, GateResult]:
        return derive_all_gates(self._store.case_dir, self._gates)

    def evaluate(self, write: bool = False, batch_size: int | None = None) -> Evaluation:
        """Derive gates, decide the next action and optionally persist.

        With ``write=True`` the derived gates replace the cached ones in
        state.json and a phase advance is recorded. An ERROR decision never
        moves the phase.

        Args:
            write: Persist gates and phase under the state.json lock.
            batch_size: Select up to this many leads for parallel follow.

        Raises:
            CaseFileError: If state.json or leads.json is missing or malformed.
            LockTimeout: If ``write`` and state.json cannot be locked.
        """
        details = self.derive()
        gates = {name: result.passed for name, result in details.items()}
        state = self._store.load_state()
        book = self._store.load_leads()

        action = decide_next_action(
            state.phase,
            gates,
            book.leads,
            self._clock(),
            batch_size=batch_size,
            claim_stale_after=self._config.claim_staleness,
        )
        changed = tuple(name for name, ok in gates.items() if state.gates.get(name) != ok)

        if write:
            with self._store.locked(STATE_FILE):
                current = self._store.load_state()
                current.gates.update(gates)
                if action.status != ActionStatus.ERROR and action.phase != current.phase:
                    logger.info("Phase %s -> %s", current.phase.value, action.phase.value)
                    current.phase = action.phase
                self._store.save_state(current)

        for name in changed:
            logger.info("Gate %s: %s", name, "PASS" if gates[name] else "FAIL")

        return Evaluation(
            gates=gates,
            details=details,
            recorded_phase=state.phase,
            action=action,
            written=write,
            changed_gates=changed,
        )
