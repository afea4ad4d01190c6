"""PhaseJoin — fan-in for the agents working on one phase.

The runner creates one join per phase run, records every agent response
into it and awaits :meth:`PhaseJoin.wait`. The join resolves when every
expected role has reported, or immediately on the first failure. Records
arriving after resolution are ignored. :meth:`PhaseJoin.cancel` resolves a
join early when the runner is detached mid-phase.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from autocrew.agent.messages import WorkerResponse


@dataclass
class JoinOutcome:
    success: bool
    results: dict[str, Any] = field(default_factory=dict)
    """Role -> worker result, for every role that succeeded."""

    artifacts: dict[str, Any] = field(default_factory=dict)
    failed_role: str = ""
    error: str = ""
    cancelled: bool = False


class PhaseJoin:
    def __init__(self, phase: str, roles: list[str]) -> None:
        self.phase = phase
        self._pending = list(dict.fromkeys(roles))
        self._results: dict[str, Any] = {}
        self._artifacts: dict[str, Any] = {}
        self._outcome: JoinOutcome | None = None
        self._done = asyncio.Event()
        if not self._pending:
            self._resolve(JoinOutcome(success=True))

    @property
    def resolved(self) -> bool:
        return self._outcome is not None

    @property
    def pending_roles(self) -> list[str]:
        return list(self._pending)

    def record(self, role: str, response: WorkerResponse) -> bool:
        """Record one role's response. Returns True once the join has resolved."""
        if self._outcome is not None:
            logger.debug(f"Join {self.phase}: ignoring late response from {role}")
            return True
        if role not in self._pending:
            logger.warning(f"Join {self.phase}: unexpected response from {role}")
            return False

        self._pending.remove(role)
        if not response.success:
            self._resolve(
                JoinOutcome(
                    success=False,
                    results=dict(self._results),
                    artifacts=dict(self._artifacts),
                    failed_role=role,
                    error=response.error or "worker reported failure",
                )
            )
            return True

        self._results[role] = response.result
        self._artifacts.update(response.artifacts)
        if not self._pending:
            self._resolve(JoinOutcome(success=True, results=dict(self._results), artifacts=dict(self._artifacts)))
            return True
        return False

    def cancel(self, reason: str = "cancelled") -> bool:
        """Resolve an unfinished join as cancelled. Returns False if it had already resolved."""
        if self._outcome is not None:
            return False
        self._resolve(JoinOutcome(success=False, results=dict(self._results), error=reason, cancelled=True))
        return True

    async def wait(self) -> JoinOutcome:
        await self._done.wait()
        assert self._outcome is not None
        return self._outcome

    def _resolve(self, outcome: JoinOutcome) -> None:
        self._outcome = outcome
        self._done.set()
