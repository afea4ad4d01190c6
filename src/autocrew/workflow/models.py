"""Workflow definitions — phases, the default SDLC pipeline and status mapping.

A workflow is a named, ordered list of :class:`PhaseSpec`. Each phase names
the agent roles that work on it, the channel that starts it, the channel
that reports it complete and the phase that follows it (None ends the run).
A ``parallel`` phase lets several roles work under the one phase name.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from autocrew.agent.models import AgentRole
from autocrew.core.events import phase_complete_channel, phase_start_channel
from autocrew.core.exceptions import WorkflowDefinitionError
from autocrew.project.models import ProjectStatus

DEFAULT_WORKFLOW_NAME = "default"


@dataclass(frozen=True)
class PhaseSpec:
    """One step of a workflow."""

    name: str
    roles: tuple[str, ...] = ()
    start_event: str = ""
    complete_event: str = ""
    next_phase: str | None = None
    parallel: bool = False

    @classmethod
    def build(cls, name: str, roles: list[str] | tuple[str, ...] = (), **kwargs) -> PhaseSpec:
        """Create a spec using the conventional ``phase.<name>.start/complete`` channels."""
        kwargs.setdefault("start_event", phase_start_channel(name))
        kwargs.setdefault("complete_event", phase_complete_channel(name))
        return cls(name=name, roles=tuple(str(r) for r in roles), **kwargs)


@dataclass
class WorkflowDefinition:
    name: str
    phases: list[PhaseSpec] = field(default_factory=list)

    @property
    def first(self) -> PhaseSpec:
        return self.phases[0]

    def get_phase(self, name: str) -> PhaseSpec | None:
        for phase in self.phases:
            if phase.name == name:
                return phase
        return None

    def phase_names(self) -> list[str]:
        return [p.name for p in self.phases]


def default_phases() -> list[PhaseSpec]:
    """The built-in requirements -> ... -> documentation pipeline."""
    return [
        PhaseSpec.build("requirements", [AgentRole.REQUIREMENTS], next_phase="architecture"),
        PhaseSpec.build("architecture", [AgentRole.ARCHITECT], next_phase="development"),
        PhaseSpec.build(
            "development",
            [AgentRole.BACKEND, AgentRole.FRONTEND, AgentRole.MOBILE, AgentRole.GAME],
            next_phase="testing",
            parallel=True,
        ),
        PhaseSpec.build("testing", [AgentRole.TESTER], next_phase="devops"),
        PhaseSpec.build("devops", [AgentRole.DEVOPS], next_phase="documentation"),
        PhaseSpec.build("documentation", [AgentRole.DOCS]),
    ]


# Phase name -> project status. Names outside this table map to DEVELOPMENT.
PHASE_STATUS_MAP: dict[str, ProjectStatus] = {
    "requirements": ProjectStatus.REQUIREMENTS,
    "architecture": ProjectStatus.ARCHITECTURE,
    "development": ProjectStatus.DEVELOPMENT,
    "testing": ProjectStatus.TESTING,
    "devops": ProjectStatus.DEVOPS,
    "documentation": ProjectStatus.DOCUMENTATION,
}


def phase_status(phase_name: str) -> ProjectStatus:
    return PHASE_STATUS_MAP.get(phase_name, ProjectStatus.DEVELOPMENT)


def validate_definition(name: str, phases: list[PhaseSpec]) -> WorkflowDefinition:
    """Check a phase list and wrap it in a WorkflowDefinition.

    Raises:
        WorkflowDefinitionError: on an empty list, duplicate phase names or
            complete events, missing channels, a dangling ``next_phase`` or a
            ``next_phase`` chain that loops.
    """
    if not name:
        raise WorkflowDefinitionError("Workflow name must be a non-empty string")
    if not phases:
        raise WorkflowDefinitionError(f"Workflow {name!r} has no phases", workflow=name)

    seen: set[str] = set()
    complete_events: set[str] = set()
    for phase in phases:
        if not isinstance(phase, PhaseSpec):
            raise WorkflowDefinitionError(f"Workflow {name!r}: expected PhaseSpec, got {type(phase).__name__}", workflow=name)
        if not phase.name:
            raise WorkflowDefinitionError(f"Workflow {name!r} has a phase without a name", workflow=name)
        if phase.name in seen:
            raise WorkflowDefinitionError(f"Duplicate phase {phase.name!r}", workflow=name, phase=phase.name)
        if not phase.start_event or not phase.complete_event:
            raise WorkflowDefinitionError(
                f"Phase {phase.name!r} needs both a start and a complete event", workflow=name, phase=phase.name
            )
        if phase.complete_event in complete_events:
            raise WorkflowDefinitionError(
                f"Complete event {phase.complete_event!r} is used by more than one phase", workflow=name, phase=phase.name
            )
        seen.add(phase.name)
        complete_events.add(phase.complete_event)

    for phase in phases:
        if phase.next_phase is not None and phase.next_phase not in seen:
            raise WorkflowDefinitionError(
                f"Phase {phase.name!r} points to unknown next phase {phase.next_phase!r}", workflow=name, phase=phase.name
            )

    next_of = {phase.name: phase.next_phase for phase in phases}
    for phase in phases:
        visited = {phase.name}
        current = phase.next_phase
        while current is not None:
            if current in visited:
                raise WorkflowDefinitionError(
                    f"Phase {phase.name!r} leads back to {current!r}; workflows must not loop", workflow=name, phase=phase.name
                )
            visited.add(current)
            current = next_of[current]

    return WorkflowDefinition(name=name, phases=list(phases))
