"""WorkflowEngine — drives a project forward through the phases of a workflow.

The engine owns no workers. It publishes a phase's start event, waits for
someone (usually the PhaseRunner) to publish the matching complete event,
records the outcome on the project and moves to ``next_phase``. Complete
events are routed through a dispatch table keyed by phase name, so custom
workflows need no engine changes.

State per project::

    not started -> <phase> in progress -> ... -> completed
                               \\-> failed (phase.failed / fail_phase)

Transitions only move forward. There is no retry and no rollback:
re-publishing a start or complete event is the only way to recover.
Complete events for any phase other than the current one, or arriving
after the run has completed, are ignored.
"""

from __future__ import annotations

from functools import partial

from loguru import logger

from autocrew.agent.messages import result_to_dict
from autocrew.core.events import PHASE_FAILED, WORKFLOW_COMPLETED, Event, EventBus
from autocrew.core.exceptions import WorkflowDefinitionError, WorkflowError
from autocrew.project.models import PhaseStatus, ProjectStatus, now_iso
from autocrew.project.store import ProjectStore

from .models import DEFAULT_WORKFLOW_NAME, PhaseSpec, WorkflowDefinition, default_phases, phase_status, validate_definition

_SOURCE = "WorkflowEngine"


class WorkflowEngine:
    """Linear phase state machine on top of the event bus and project store."""

    def __init__(self, bus: EventBus, store: ProjectStore) -> None:
        self._bus = bus
        self._store = store
        self._workflows: dict[str, WorkflowDefinition] = {}
        self._active: WorkflowDefinition | None = None
        self._project_id: str | None = None
        self._current_phase: str | None = None
        self._running = False
        # channel -> bound handler for the active definition
        self._handlers: dict[str, partial] = {}

        self.register_workflow(DEFAULT_WORKFLOW_NAME, default_phases())

    # -- Introspection -------------------------------------------------------

    @property
    def current_phase(self) -> str | None:
        return self._current_phase

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def active_workflow(self) -> WorkflowDefinition | None:
        return self._active

    @property
    def project_id(self) -> str | None:
        return self._project_id

    def get_workflow(self, name: str) -> WorkflowDefinition | None:
        return self._workflows.get(name)

    def workflow_names(self) -> list[str]:
        return sorted(self._workflows)

    # -- Definitions ---------------------------------------------------------

    def register_workflow(self, name: str, phases: list[PhaseSpec]) -> WorkflowDefinition:
        """Validate and store a workflow. Replaces an existing one of the same name.

        Registration does not subscribe anything; :meth:`start_workflow` does.
        """
        definition = validate_definition(name, phases)
        if name in self._workflows:
            logger.info(f"Replacing workflow {name!r}")
        self._workflows[name] = definition
        return definition

    # -- Lifecycle -----------------------------------------------------------

    def start_workflow(self, name: str = DEFAULT_WORKFLOW_NAME) -> PhaseSpec:
        """Activate *name* for the current project and publish its first start event."""
        definition = self._workflows.get(name)
        if definition is None:
            raise WorkflowDefinitionError(f"Workflow {name!r} not found", workflow=name)

        project = self._store.get_current()
        if project is None:
            raise WorkflowError("No active project found")

        self._activate(definition)
        self._project_id = project.id
        self._running = True

        first = definition.first
        logger.info(f"Starting workflow {name!r} for project {project.id} at phase {first.name!r}")
        self._enter_phase(first)
        return first

    def proceed_to_next_phase(self, phase_name: str) -> PhaseSpec | None:
        """Advance past *phase_name*. Returns the phase entered, or None when the run is complete."""
        definition = self._require_active()
        spec = definition.get_phase(phase_name)
        if spec is None:
            raise WorkflowDefinitionError(
                f"Phase {phase_name!r} is not part of workflow {definition.name!r}",
                workflow=definition.name,
                phase=phase_name,
            )

        if spec.next_phase is None:
            self._finish()
            return None

        next_spec = definition.get_phase(spec.next_phase)
        if next_spec is None:  # validated at registration
            raise WorkflowDefinitionError(
                f"Unknown next phase {spec.next_phase!r}", workflow=definition.name, phase=phase_name
            )
        self._running = True
        self._enter_phase(next_spec)
        return next_spec

    def fail_phase(self, phase_name: str, error: str) -> None:
        """Mark *phase_name* failed and halt the run."""
        project_id = self._require_project()
        self._store.upsert_phase(
            project_id,
            phase_name,
            status=PhaseStatus.FAILED,
            completed_at=now_iso(),
            error=error,
        )
        self._store.set_status(project_id, ProjectStatus.FAILED)
        self._running = False
        logger.warning(f"Phase {phase_name!r} failed for project {project_id}: {error}")

    def reset(self) -> None:
        """Deactivate the current workflow and drop its subscriptions."""
        for channel, handler in self._handlers.items():
            self._bus.unsubscribe(channel, handler)
        self._handlers = {}
        self._active = None
        self._project_id = None
        self._current_phase = None
        self._running = False

    # -- Internal ------------------------------------------------------------

    def _activate(self, definition: WorkflowDefinition) -> None:
        self.reset()
        handlers: dict[str, partial] = {}
        for spec in definition.phases:
            handlers[spec.complete_event] = partial(self._on_phase_complete, spec.name)
        handlers[PHASE_FAILED] = partial(self._on_phase_failed)
        for channel, handler in handlers.items():
            self._bus.subscribe(channel, handler)
        self._handlers = handlers
        self._active = definition

    def _enter_phase(self, spec: PhaseSpec) -> None:
        project_id = self._require_project()
        self._current_phase = spec.name
        # Overwrite any earlier record for this phase with a fresh start
        self._store.upsert_phase(
            project_id,
            spec.name,
            status=PhaseStatus.IN_PROGRESS,
            started_at=now_iso(),
            completed_at=None,
            error="",
        )
        self._store.set_status(project_id, phase_status(spec.name))
        self._bus.publish(
            spec.start_event,
            {"phase": spec.name, "project_id": project_id, "workflow": self._active.name if self._active else ""},
            source=_SOURCE,
        )

    def _finish(self) -> None:
        project_id = self._require_project()
        self._store.set_status(project_id, ProjectStatus.COMPLETED)
        self._running = False
        workflow = self._active.name if self._active else ""
        logger.info(f"Workflow {workflow!r} completed for project {project_id}")
        self._bus.publish(WORKFLOW_COMPLETED, {"project_id": project_id, "workflow": workflow}, source=_SOURCE)

    def _on_phase_complete(self, phase_name: str, event: Event) -> None:
        project_id = self._require_project()
        if not self._accepts_completion(project_id, phase_name):
            logger.info(f"Ignoring stale complete event for phase {phase_name!r} (current: {self._current_phase!r})")
            return
        payload = event.payload
        self._store.upsert_phase(
            project_id,
            phase_name,
            status=PhaseStatus.COMPLETED,
            completed_at=now_iso(),
            result=result_to_dict(payload.get("result")),
            artifacts=dict(payload.get("artifacts") or {}),
        )
        logger.debug(f"Phase {phase_name!r} completed for project {project_id}")
        self.proceed_to_next_phase(phase_name)

    def _accepts_completion(self, project_id: str, phase_name: str) -> bool:
        """Only the current phase may complete, and only while running or after it failed."""
        project = self._store.get(project_id)
        if project is None or project.status == ProjectStatus.COMPLETED:
            return False
        if phase_name != self._current_phase:
            return False
        if self._running:
            return True
        record = project.phases.get(phase_name)
        return record is not None and record.status == PhaseStatus.FAILED

    def _on_phase_failed(self, event: Event) -> None:
        phase_name = event.payload.get("phase") or self._current_phase
        if not phase_name:
            logger.warning("Ignoring phase.failed without a phase name")
            return
        self.fail_phase(phase_name, str(event.payload.get("error", "")))

    def _require_active(self) -> WorkflowDefinition:
        if self._active is None:
            raise WorkflowError("No workflow is active")
        return self._active

    def _require_project(self) -> str:
        if self._project_id is None:
            raise WorkflowError("No workflow is active")
        return self._project_id
