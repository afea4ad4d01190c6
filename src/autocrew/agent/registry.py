"""AgentRegistry — lifecycle of live agent instances.

The registry creates agents around worker handles, runs them one request at
a time and publishes lifecycle events (``agent.created``, ``agent.started``,
``agent.completed``, ``agent.failed``, ``agent.removed``). It listens to
``project.realign`` and drops every agent when the user pivots.

Status transitions::

    idle/any -> working -> completed | failed
"""

from __future__ import annotations

import inspect
import uuid
from collections import Counter
from typing import Any

from loguru import logger

from autocrew.core.events import (
    AGENT_COMPLETED,
    AGENT_CREATED,
    AGENT_FAILED,
    AGENT_REMOVED,
    AGENT_STARTED,
    PROJECT_REALIGN,
    SYSTEM_ERROR,
    Event,
    EventBus,
)
from autocrew.core.exceptions import AgentNotFoundError, ValidationError, WorkerExecutionError

from .messages import WorkerRequest, WorkerResponse
from .models import AgentConfig, AgentInstance, AgentStatistics, AgentStatus

_SOURCE = "AgentRegistry"


class AgentRegistry:
    """Tracks agent instances by id and by role."""

    def __init__(self, bus: EventBus) -> None:
        self._bus = bus
        self._agents: dict[str, AgentInstance] = {}
        self._by_role: dict[str, list[str]] = {}
        self._attached = False
        self.attach()

    def attach(self) -> None:
        """Subscribe to pivot and error events. Safe to call more than once."""
        if self._attached:
            return
        self._bus.subscribe(PROJECT_REALIGN, self._on_realign)
        self._bus.subscribe(SYSTEM_ERROR, self._on_system_error)
        self._attached = True

    def detach(self) -> None:
        self._bus.unsubscribe(PROJECT_REALIGN, self._on_realign)
        self._bus.unsubscribe(SYSTEM_ERROR, self._on_system_error)
        self._attached = False

    # -- Creation / lookup ---------------------------------------------------

    def create_agent(self, role: str, config: AgentConfig | None, worker: Any) -> str:
        """Register *worker* under *role* and return the new agent id."""
        if not role:
            raise ValidationError("Agent role must be a non-empty string")
        if not callable(getattr(worker, "execute", None)):
            raise ValidationError(f"Worker for role {role!r} has no callable execute()")
        role = str(role)

        agent_id = f"agent-{uuid.uuid4().hex[:12]}"
        instance = AgentInstance(id=agent_id, role=role, config=config or AgentConfig(role=role), worker=worker)
        self._agents[agent_id] = instance
        self._by_role.setdefault(role, []).append(agent_id)

        logger.debug(f"Created agent {agent_id} ({role})")
        self._bus.publish(AGENT_CREATED, {"agent_id": agent_id, "role": role}, source=_SOURCE)
        return agent_id

    def get_agent(self, agent_id: str) -> AgentInstance | None:
        return self._agents.get(agent_id)

    def get_agents_by_role(self, role: str) -> list[AgentInstance]:
        return [self._agents[aid] for aid in self._by_role.get(role, []) if aid in self._agents]

    def get_active_agents(self) -> list[AgentInstance]:
        """Agents that are idle or working, in creation order."""
        return [a for a in self._agents.values() if a.status in (AgentStatus.IDLE, AgentStatus.WORKING)]

    # -- Execution -----------------------------------------------------------

    async def execute_agent(self, agent_id: str, request: WorkerRequest) -> WorkerResponse:
        """Run one request through the agent's worker.

        The worker may be sync or async. Exceptions are turned into a
        failure response and ``agent.failed``; they do not propagate.
        """
        instance = self._agents.get(agent_id)
        if instance is None:
            raise AgentNotFoundError(agent_id)

        instance.status = AgentStatus.WORKING
        self._bus.publish(
            AGENT_STARTED,
            {"agent_id": agent_id, "role": instance.role, "phase": request.phase},
            source=_SOURCE,
        )

        try:
            response = instance.worker.execute(request)
            if inspect.isawaitable(response):
                response = await response
            if not isinstance(response, WorkerResponse):
                raise WorkerExecutionError(
                    f"execute() returned {type(response).__name__}, expected WorkerResponse", role=instance.role
                )
        except Exception as e:
            logger.exception(f"Agent {agent_id} ({instance.role}) raised during execute")
            response = WorkerResponse.failure(str(e) or type(e).__name__, exception=e)

        # The agent may have been removed (e.g. by a pivot) while it was running
        if self._agents.get(agent_id) is not instance:
            logger.debug(f"Agent {agent_id} finished after removal; dropping status update")
            return response

        if response.success:
            instance.status = AgentStatus.COMPLETED
            instance.last_error = ""
            self._bus.publish(
                AGENT_COMPLETED,
                {"agent_id": agent_id, "role": instance.role, "phase": request.phase, "response": response},
                source=_SOURCE,
            )
        else:
            instance.status = AgentStatus.FAILED
            instance.last_error = response.error
            logger.warning(f"Agent {agent_id} ({instance.role}) failed: {response.error}")
            self._bus.publish(
                AGENT_FAILED,
                {"agent_id": agent_id, "role": instance.role, "phase": request.phase, "error": response.error},
                source=_SOURCE,
            )
        return response

    # -- Removal -------------------------------------------------------------

    def remove_agent(self, agent_id: str) -> bool:
        instance = self._agents.pop(agent_id, None)
        if instance is None:
            return False

        ids = self._by_role.get(instance.role, [])
        if agent_id in ids:
            ids.remove(agent_id)
        if not ids:
            self._by_role.pop(instance.role, None)

        self._bus.publish(AGENT_REMOVED, {"agent_id": agent_id, "role": instance.role}, source=_SOURCE)
        return True

    def clear_agents(self) -> int:
        """Drop every agent at once. Returns how many were tracked."""
        count = len(self._agents)
        self._agents, self._by_role = {}, {}
        if count:
            logger.info(f"Cleared {count} agent(s)")
        return count

    def get_statistics(self) -> AgentStatistics:
        agents = list(self._agents.values())
        return AgentStatistics(
            total=len(agents),
            by_role=dict(Counter(a.role for a in agents)),
            by_status=dict(Counter(str(a.status) for a in agents)),
        )

    # -- Event handlers ------------------------------------------------------

    def _on_realign(self, event: Event) -> None:
        logger.info(f"Re-aligning: {event.metadata.get('old_purpose', '?')} -> {event.metadata.get('new_purpose', '?')}")
        self.clear_agents()

    def _on_system_error(self, event: Event) -> None:
        logger.error(f"System error reported by {event.source or 'unknown'}: {event.payload.get('error', '')}")
