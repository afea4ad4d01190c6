"""Tests for WorkflowEngine — activation, phase progression, failure handling."""

import pytest

from autocrew.core.events import (
    PHASE_ARCHITECTURE_START,
    PHASE_DOCUMENTATION_COMPLETE,
    PHASE_FAILED,
    PHASE_REQUIREMENTS_COMPLETE,
    PHASE_REQUIREMENTS_START,
    WORKFLOW_COMPLETED,
)
from autocrew.core.exceptions import WorkflowDefinitionError, WorkflowError
from autocrew.project.models import PhaseStatus, ProjectStatus
from autocrew.workflow.engine import WorkflowEngine
from autocrew.workflow.models import PhaseSpec, default_phases


@pytest.fixture
def engine(bus, store):
    return WorkflowEngine(bus, store)


@pytest.fixture
def project(store):
    return store.create("web-development", "Web Development")


def _starts(bus) -> list[str]:
    return [e.channel for e in bus.history() if e.channel.endswith(".start")]


def _complete(bus, phase: str, result=None, artifacts=None) -> None:
    bus.publish(
        f"phase.{phase}.complete",
        {"phase": phase, "result": result or {}, "artifacts": artifacts or {}},
        source="test",
    )


@pytest.mark.smoke
class TestStartWorkflow:
    def test_default_workflow_registered(self, engine):
        assert engine.workflow_names() == ["default"]
        assert engine.get_workflow("default").phase_names() == [
            "requirements",
            "architecture",
            "development",
            "testing",
            "devops",
            "documentation",
        ]

    def test_start_publishes_first_start_event_once(self, bus, engine, project):
        assert project.status == ProjectStatus.INITIALIZING

        engine.start_workflow()

        assert project.status == ProjectStatus.REQUIREMENTS
        assert _starts(bus) == [PHASE_REQUIREMENTS_START]
        start = bus.history(PHASE_REQUIREMENTS_START)[0]
        assert start.payload == {"phase": "requirements", "project_id": project.id, "workflow": "default"}
        assert start.source == "WorkflowEngine"

        record = project.phases["requirements"]
        assert record.status == PhaseStatus.IN_PROGRESS
        assert record.started_at is not None
        assert engine.current_phase == "requirements"
        assert engine.is_running

    def test_requires_current_project(self, engine):
        with pytest.raises(WorkflowError, match="No active project"):
            engine.start_workflow()

    def test_unknown_workflow(self, engine, project):
        with pytest.raises(WorkflowDefinitionError):
            engine.start_workflow("nightly")


class TestProgression:
    def test_requirements_complete_starts_architecture(self, bus, engine, project):
        engine.start_workflow()

        _complete(bus, "requirements", result={"functional": ["login"]}, artifacts={"reqs.md": "# Reqs"})

        assert bus.history(PHASE_REQUIREMENTS_COMPLETE)
        assert _starts(bus) == [PHASE_REQUIREMENTS_START, PHASE_ARCHITECTURE_START]
        assert project.status == ProjectStatus.ARCHITECTURE

        done = project.phases["requirements"]
        assert done.status == PhaseStatus.COMPLETED
        assert done.completed_at is not None
        assert done.result == {"functional": ["login"]}
        assert done.artifacts == {"reqs.md": "# Reqs"}

        arch = project.phases["architecture"]
        assert arch.status == PhaseStatus.IN_PROGRESS
        assert arch.started_at is not None
        assert project.in_progress_phases == ["architecture"]

    def test_full_run_completes(self, bus, engine, project):
        engine.start_workflow()
        for phase in engine.get_workflow("default").phase_names():
            _complete(bus, phase)

        assert project.status == ProjectStatus.COMPLETED
        assert not engine.is_running
        assert len(bus.history(WORKFLOW_COMPLETED)) == 1
        assert len(_starts(bus)) == 6

    def test_no_start_after_final_phase(self, bus, engine, project):
        engine.start_workflow()
        for phase in engine.get_workflow("default").phase_names():
            _complete(bus, phase)
        starts_before = len(_starts(bus))

        bus.publish(PHASE_DOCUMENTATION_COMPLETE, {"phase": "documentation"})

        assert len(_starts(bus)) == starts_before

    def test_stale_complete_after_completion_is_ignored(self, bus, engine, project):
        engine.start_workflow()
        for phase in engine.get_workflow("default").phase_names():
            _complete(bus, phase)

        _complete(bus, "requirements")

        assert project.status == ProjectStatus.COMPLETED
        assert len(bus.history(PHASE_ARCHITECTURE_START)) == 1
        assert not engine.is_running

    def test_earlier_complete_does_not_move_backward(self, bus, engine, project):
        engine.start_workflow()
        _complete(bus, "requirements")
        _complete(bus, "architecture")

        _complete(bus, "requirements")

        assert engine.current_phase == "development"
        assert project.status == ProjectStatus.DEVELOPMENT
        assert len(bus.history(PHASE_ARCHITECTURE_START)) == 1

    def test_future_complete_is_ignored(self, bus, engine, project):
        engine.start_workflow()

        _complete(bus, "testing")

        assert engine.current_phase == "requirements"
        assert "testing" not in project.phases

    def test_proceed_unknown_phase(self, engine, project):
        engine.start_workflow()
        with pytest.raises(WorkflowDefinitionError):
            engine.proceed_to_next_phase("qa")

    def test_proceed_without_active_workflow(self, engine):
        with pytest.raises(WorkflowError):
            engine.proceed_to_next_phase("requirements")


class TestFailure:
    def test_phase_failed_event_halts(self, bus, engine, project):
        engine.start_workflow()

        bus.publish(PHASE_FAILED, {"phase": "requirements", "error": "worker crashed"})

        record = project.phases["requirements"]
        assert record.status == PhaseStatus.FAILED
        assert record.error == "worker crashed"
        assert project.status == ProjectStatus.FAILED
        assert not engine.is_running
        assert _starts(bus) == [PHASE_REQUIREMENTS_START]

    def test_republishing_complete_recovers(self, bus, engine, project):
        engine.start_workflow()
        engine.fail_phase("requirements", "flaky")

        _complete(bus, "requirements")

        assert project.status == ProjectStatus.ARCHITECTURE
        assert engine.is_running

    def test_halted_run_ignores_other_phases(self, bus, engine, project):
        engine.start_workflow()
        _complete(bus, "requirements")
        bus.publish(PHASE_FAILED, {"phase": "architecture", "error": "timeout"})

        _complete(bus, "requirements")

        assert project.status == ProjectStatus.FAILED
        assert project.phases["architecture"].status == PhaseStatus.FAILED
        assert len(bus.history(PHASE_ARCHITECTURE_START)) == 1


class TestCustomWorkflows:
    def test_register_and_run_custom(self, bus, engine, project):
        engine.register_workflow(
            "lean",
            [
                PhaseSpec.build("requirements", ["requirements"], next_phase="prototype"),
                PhaseSpec.build("prototype", ["backend"]),
            ],
        )
        engine.start_workflow("lean")
        _complete(bus, "requirements")

        # unmapped phase names fall back to the development status
        assert project.status == ProjectStatus.DEVELOPMENT
        assert engine.current_phase == "prototype"

        _complete(bus, "prototype")
        assert project.status == ProjectStatus.COMPLETED

    def test_activation_replaces_previous_handlers(self, bus, engine, project):
        engine.start_workflow()
        engine.register_workflow("solo", [PhaseSpec.build("requirements", ["requirements"])])
        engine.start_workflow("solo")

        _complete(bus, "requirements")

        # only the solo definition reacted: the run completes instead of moving to architecture
        assert project.status == ProjectStatus.COMPLETED
        assert PHASE_ARCHITECTURE_START not in _starts(bus)

    @pytest.mark.parametrize(
        "phases",
        [
            [],
            [PhaseSpec.build("a"), PhaseSpec.build("a")],
            [PhaseSpec.build("a", next_phase="missing")],
            [PhaseSpec.build("a"), PhaseSpec("b", start_event="b.start", complete_event="phase.a.complete")],
            [PhaseSpec("a")],
            [PhaseSpec.build("a", next_phase="a")],
            [PhaseSpec.build("a", next_phase="b"), PhaseSpec.build("b", next_phase="a")],
            [PhaseSpec.build("a", next_phase="b"), PhaseSpec.build("b", next_phase="c"), PhaseSpec.build("c", next_phase="b")],
        ],
    )
    def test_invalid_definitions_rejected(self, engine, phases):
        with pytest.raises(WorkflowDefinitionError):
            engine.register_workflow("bad", phases)

    def test_reset_unsubscribes(self, bus, engine, project):
        engine.start_workflow()
        engine.reset()

        _complete(bus, "requirements")

        assert engine.active_workflow is None
        assert project.phases["requirements"].status == PhaseStatus.IN_PROGRESS
        assert bus.subscriber_count(PHASE_FAILED) == 0

    def test_default_phases_are_fresh_copies(self):
        assert default_phases() == default_phases()
        assert default_phases()[2].parallel is True
