"""Orchestration root — wires one run's bus, store, registry and engine together.

Everything a run needs lives on an :class:`OrchestrationContext`; nothing is
a module-level singleton, so two orchestrators in one process do not share
state. The :class:`Orchestrator` turns purpose selection into a project plus
a team of agents, starts workflows and handles pivots and shutdown.

Usage::

    ctx = OrchestrationContext.create(Config(data_dir="/tmp/crew"))
    orch = Orchestrator(ctx, {"requirements": lambda cfg: MyRequirementsWorker(cfg)})
    orch.initialize()
    orch.select_purpose("cli-tool", "Build me a todo CLI")
    orch.start()
    await ctx.bus.wait_for(WORKFLOW_COMPLETED, timeout=60)
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from loguru import logger

from autocrew.agent.errors import friendly_error_message
from autocrew.agent.models import AgentConfig
from autocrew.agent.registry import AgentRegistry
from autocrew.core.config import Config
from autocrew.core.events import (
    LEAD_RESPONSE,
    PROJECT_CREATED,
    PROJECT_REALIGN,
    PURPOSE_SELECTED,
    SYSTEM_ERROR,
    SYSTEM_INIT,
    SYSTEM_SHUTDOWN,
    USER_MESSAGE,
    Event,
    EventBus,
)
from autocrew.core.exceptions import ConfigurationError, ValidationError, WorkflowDefinitionError, WorkflowError
from autocrew.core.utils.logging import setup_logging
from autocrew.project.models import ConversationRole, ProjectContext
from autocrew.project.store import ProjectStore
from autocrew.purposes.models import Purpose
from autocrew.purposes.registry import PurposeRegistry
from autocrew.workflow.engine import WorkflowEngine
from autocrew.workflow.runner import PhaseRunner

WorkerFactory = Callable[[AgentConfig], Any]

_SOURCE = "Orchestrator"


@dataclass
class OrchestrationContext:
    """The collaborators of one orchestration run."""

    config: Config
    bus: EventBus
    store: ProjectStore
    registry: AgentRegistry
    engine: WorkflowEngine
    runner: PhaseRunner
    purposes: PurposeRegistry

    @classmethod
    def create(cls, config: Config | None = None) -> OrchestrationContext:
        """Build a fresh context from *config* (a default Config when omitted)."""
        config = config or Config()
        settings = config.validated()

        bus = EventBus(history_size=settings.events.history_size)
        store = ProjectStore(settings.paths.projects_dir)
        registry = AgentRegistry(bus)
        engine = WorkflowEngine(bus, store)
        runner = PhaseRunner(bus, store, registry)

        purposes = PurposeRegistry()
        if settings.purposes.file:
            purposes.load_yaml(settings.purposes.file)

        return cls(
            config=config,
            bus=bus,
            store=store,
            registry=registry,
            engine=engine,
            runner=runner,
            purposes=purposes,
        )


class Orchestrator:
    """Coordinates purpose selection, agent teams and workflow runs."""

    def __init__(
        self,
        context: OrchestrationContext,
        worker_factories: dict[str, WorkerFactory] | None = None,
        configure_logging: bool = False,
    ) -> None:
        self.ctx = context
        self._factories: dict[str, WorkerFactory] = {str(k): v for k, v in (worker_factories or {}).items()}
        self._initialized = False
        self._subscribed = False

        if configure_logging:
            settings = context.config.validated()
            setup_logging(level=settings.logging.level, log_file=settings.logging.file)

        self._subscribe()

    @property
    def initialized(self) -> bool:
        return self._initialized

    def register_worker_factory(self, role: str, factory: WorkerFactory) -> None:
        self._factories[str(role)] = factory

    def _subscribe(self) -> None:
        if not self._subscribed:
            self.ctx.bus.subscribe(PURPOSE_SELECTED, self._on_purpose_selected)
            self._subscribed = True

    # -- Lifecycle -----------------------------------------------------------

    def initialize(self) -> int:
        """Reseed the store from durable records and announce startup.

        Idempotent: a second call does nothing and returns 0. After
        :meth:`shutdown` it re-subscribes the handlers that shutdown dropped.
        """
        if self._initialized:
            return 0
        self.ctx.registry.attach()
        self._subscribe()
        loaded = self.ctx.store.load_all()
        self._initialized = True
        self.ctx.bus.publish(SYSTEM_INIT, {"projects_loaded": loaded}, source=_SOURCE)
        return loaded

    def shutdown(self) -> None:
        self.ctx.registry.clear_agents()
        self.ctx.runner.detach()
        self.ctx.engine.reset()
        self.ctx.bus.publish(SYSTEM_SHUTDOWN, {}, source=_SOURCE)
        self.ctx.registry.detach()
        self.ctx.bus.remove_all_subscribers()
        self._subscribed = False
        self._initialized = False
        logger.info("Orchestrator shut down")

    # -- User-facing operations ----------------------------------------------

    def select_purpose(self, purpose_id: str, user_message: str = "") -> ProjectContext:
        """Create a project for *purpose_id* and assemble its agent team."""
        purpose = self.ctx.purposes.get(purpose_id)
        if purpose is None:
            raise ValidationError(f"Unknown purpose: {purpose_id}")

        project = self.ctx.store.create(purpose.id, purpose.name, purpose.tech_stack)
        if user_message:
            self.ctx.store.append_conversation(project.id, ConversationRole.USER, user_message)

        self.ctx.bus.publish(
            PROJECT_CREATED,
            {"project_id": project.id, "purpose_id": purpose.id},
            source=_SOURCE,
        )
        self.ctx.bus.publish(
            PURPOSE_SELECTED,
            {"purpose_id": purpose.id, "purpose_name": purpose.name, "user_message": user_message},
            source=_SOURCE,
        )
        return project

    def handle_user_message(self, message: str) -> None:
        """Record a user message on the current project and publish it."""
        project = self.ctx.store.get_current()
        if project is not None:
            self.ctx.store.append_conversation(project.id, ConversationRole.USER, message)
        self.ctx.bus.publish(
            USER_MESSAGE,
            {"message": message, "project_id": project.id if project else None},
            source=_SOURCE,
        )

    def respond(self, message: str, **metadata: Any) -> None:
        """Publish a lead response and log it on the current project."""
        project = self.ctx.store.get_current()
        if project is not None:
            self.ctx.store.append_conversation(project.id, ConversationRole.LEAD, message, metadata or None)
        self.ctx.bus.publish(LEAD_RESPONSE, {"message": message, **metadata}, source=_SOURCE)

    def start(self, workflow: str | None = None) -> None:
        """Attach the phase runner to *workflow* and start it on the current project."""
        name = workflow or self.ctx.config.get("workflow.default", "default")
        definition = self.ctx.engine.get_workflow(name)
        if definition is None:
            raise WorkflowDefinitionError(f"Workflow {name!r} not found", workflow=name)
        if self.ctx.store.get_current() is None:
            raise WorkflowError("No active project found")

        self.ctx.runner.attach(definition)
        self.ctx.engine.start_workflow(name)

    def realign(self, new_purpose_id: str) -> None:
        """Pivot to another purpose: every agent is dropped; the project record stays."""
        project = self.ctx.store.get_current()
        old_purpose = project.purpose_id if project else None
        logger.info(f"Re-aligning from {old_purpose} to {new_purpose_id}")
        self.ctx.engine.reset()
        self.ctx.runner.detach()
        self.ctx.bus.publish(
            PROJECT_REALIGN,
            {"project_id": project.id if project else None},
            source=_SOURCE,
            metadata={"old_purpose": old_purpose, "new_purpose": new_purpose_id},
        )

    def report_error(self, error: BaseException, source: str = _SOURCE) -> None:
        """Publish internal detail on ``system.error`` and a plain-language lead response."""
        self.ctx.bus.publish(
            SYSTEM_ERROR,
            {"error": str(error), "error_type": type(error).__name__},
            source=source,
        )
        self.respond(friendly_error_message(error), error=True)

    def statistics(self) -> dict[str, Any]:
        return {
            "projects": len(self.ctx.store.list_projects()),
            "agents": self.ctx.registry.get_statistics().to_dict(),
            "purposes": len(self.ctx.purposes),
            "workflow_running": self.ctx.engine.is_running,
            "current_phase": self.ctx.engine.current_phase,
        }

    # -- Team assembly -------------------------------------------------------

    def setup_agents_for_purpose(self, purpose: Purpose) -> list[str]:
        """Create one agent per role of *purpose*. Roles without a factory are skipped."""
        created = []
        for role in purpose.roles:
            factory = self._factories.get(str(role))
            if factory is None:
                logger.warning(f"No worker factory for role {role!r}; skipping")
                continue
            config = AgentConfig(role=str(role), system_prompt=purpose.prompts.get(str(role), ""))
            try:
                worker = factory(config)
            except Exception as e:
                raise ConfigurationError(f"Worker factory for role {role!r} failed: {e}") from e
            created.append(self.ctx.registry.create_agent(str(role), config, worker))
        logger.info(f"Assembled {len(created)} agent(s) for purpose {purpose.id}")
        return created

    def _on_purpose_selected(self, event: Event) -> None:
        purpose_id = event.payload.get("purpose_id", "")
        purpose = self.ctx.purposes.get(purpose_id)
        if purpose is None:
            self.report_error(ValidationError(f"Unknown purpose: {purpose_id}"), source=event.source or _SOURCE)
            return
        try:
            self.setup_agents_for_purpose(purpose)
        except (ConfigurationError, ValidationError) as e:
            logger.error(f"Could not assemble agents for {purpose_id}: {e}")
            self.report_error(e)
