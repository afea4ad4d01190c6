"""PhaseRunner — runs the agents of a phase when the engine starts it.

The runner listens to each phase's start event. For every role of the
phase it picks the role's first registered agent, builds a WorkerRequest
and executes it through the AgentRegistry. Parallel phases run their agents
concurrently; other phases run them one after another. Responses are
joined through a :class:`PhaseJoin`, artifacts are written to the project
and exactly one event is published: the phase's complete event, or
``phase.failed`` on the first failure.

Roles with no registered agent are skipped, so a phase nobody works on
completes immediately with an empty result.
"""

from __future__ import annotations

import asyncio
from functools import partial
from typing import Any

from loguru import logger

from autocrew.agent.messages import WorkerRequest, WorkerResponse, result_to_dict
from autocrew.agent.models import AgentInstance
from autocrew.agent.registry import AgentRegistry
from autocrew.core.events import PHASE_FAILED, Event, EventBus
from autocrew.core.exceptions import AgentNotFoundError
from autocrew.project.models import PhaseStatus, ProjectContext
from autocrew.project.store import ProjectStore

from .join import JoinOutcome, PhaseJoin
from .models import PhaseSpec, WorkflowDefinition
from .progress import ProgressTracker

_SOURCE = "PhaseRunner"


class PhaseRunner:
    def __init__(self, bus: EventBus, store: ProjectStore, registry: AgentRegistry) -> None:
        self._bus = bus
        self._store = store
        self._registry = registry
        self._handlers: dict[str, partial] = {}
        self._inflight: set[asyncio.Task] = set()
        self._joins: set[PhaseJoin] = set()
        self._definition: WorkflowDefinition | None = None

    @property
    def attached(self) -> bool:
        return self._definition is not None

    def attach(self, definition: WorkflowDefinition) -> None:
        """Listen to the start events of *definition*, replacing any previous one."""
        self.detach()
        for spec in definition.phases:
            handler = partial(self._on_phase_start, spec)
            self._bus.subscribe(spec.start_event, handler)
            self._handlers[spec.start_event] = handler
        self._definition = definition
        logger.debug(f"PhaseRunner attached to workflow {definition.name!r}")

    def detach(self) -> None:
        """Stop listening and cancel any phase still running."""
        for channel, handler in self._handlers.items():
            self._bus.unsubscribe(channel, handler)
        self._handlers = {}
        self._definition = None

        for join in list(self._joins):
            join.cancel("runner detached")
        for task in list(self._inflight):
            task.cancel()
        if self._inflight:
            logger.info(f"Cancelled {len(self._inflight)} running agent task(s)")

    # -- Phase execution -----------------------------------------------------

    async def run_phase(self, spec: PhaseSpec, project: ProjectContext, metadata: dict[str, Any] | None = None) -> JoinOutcome:
        """Execute every agent of *spec* against *project* and return the joined outcome."""
        agents = self._select_agents(spec)
        join = PhaseJoin(spec.name, [agent.role for agent in agents])
        tracker = ProgressTracker(self._bus, project.id, spec.name)
        for agent in agents:
            tracker.add_task(agent.id, agent.role)
        tracker.start()

        requests = {agent.id: self._build_request(spec, project, agent, metadata) for agent in agents}

        self._joins.add(join)
        try:
            if spec.parallel:
                for agent in agents:
                    task = asyncio.create_task(self._run_agent(agent, requests[agent.id], join, tracker))
                    self._inflight.add(task)
                    task.add_done_callback(self._inflight.discard)
            else:
                for agent in agents:
                    if await self._run_agent(agent, requests[agent.id], join, tracker):
                        break
            outcome = await join.wait()
        finally:
            self._joins.discard(join)

        if outcome.cancelled:
            return outcome
        if outcome.success:
            tracker.complete()
        else:
            tracker.fail(outcome.error)
        return outcome

    async def _run_agent(self, agent: AgentInstance, request: WorkerRequest, join: PhaseJoin, tracker: ProgressTracker) -> bool:
        tracker.start_task(agent.id)
        try:
            response: WorkerResponse = await self._registry.execute_agent(agent.id, request)
        except AgentNotFoundError as e:
            # Removed after the phase picked it, e.g. by a pivot
            logger.warning(f"Agent {agent.id} ({agent.role}) disappeared during phase {request.phase!r}")
            response = WorkerResponse.failure(f"Agent for role {agent.role!r} is no longer registered", exception=e)
        if response.success:
            tracker.complete_task(agent.id)
        else:
            tracker.fail_task(agent.id, response.error)
        return join.record(agent.role, response)

    def _select_agents(self, spec: PhaseSpec) -> list[AgentInstance]:
        agents = []
        for role in dict.fromkeys(spec.roles):
            candidates = self._registry.get_agents_by_role(role)
            if candidates:
                agents.append(candidates[0])
        return agents

    @staticmethod
    def _build_request(
        spec: PhaseSpec,
        project: ProjectContext,
        agent: AgentInstance,
        metadata: dict[str, Any] | None,
    ) -> WorkerRequest:
        previous = {
            name: record.result
            for name, record in project.phases.items()
            if record.status == PhaseStatus.COMPLETED and name != spec.name
        }
        return WorkerRequest(
            user_message=project.last_user_message(),
            previous_results=previous,
            project=project,
            metadata={"project_id": project.id, "purpose_id": project.purpose_id, **(metadata or {})},
            phase=spec.name,
            role=agent.role,
        )

    # -- Event handlers ------------------------------------------------------

    async def _on_phase_start(self, spec: PhaseSpec, event: Event) -> None:
        project_id = event.payload.get("project_id")
        project = self._store.get(project_id) if project_id else self._store.get_current()
        if project is None:
            logger.error(f"Phase {spec.name!r} started for unknown project {project_id}")
            self._bus.publish(
                PHASE_FAILED,
                {"phase": spec.name, "project_id": project_id, "error": f"Unknown project: {project_id}"},
                source=_SOURCE,
            )
            return

        outcome = await self.run_phase(spec, project, metadata={"workflow": event.payload.get("workflow", "")})

        if outcome.cancelled:
            logger.info(f"Phase {spec.name!r} cancelled for project {project.id}")
            return

        if not outcome.success:
            self._bus.publish(
                PHASE_FAILED,
                {"phase": spec.name, "project_id": project.id, "role": outcome.failed_role, "error": outcome.error},
                source=_SOURCE,
            )
            return

        for key, value in outcome.artifacts.items():
            self._store.set_artifact(project.id, key, value)

        self._bus.publish(
            spec.complete_event,
            {
                "phase": spec.name,
                "project_id": project.id,
                "result": {role: result_to_dict(result) for role, result in outcome.results.items()},
                "artifacts": outcome.artifacts,
            },
            source=_SOURCE,
        )
