"""Tests for autocrew.core.exceptions."""

from autocrew.core.exceptions import (
    AgentNotFoundError,
    AutocrewError,
    ConfigurationError,
    EventTimeoutError,
    PersistenceError,
    ProjectNotFoundError,
    ValidationError,
    WorkerExecutionError,
    WorkflowDefinitionError,
    WorkflowError,
)


def test_hierarchy():
    """All exceptions should inherit from AutocrewError."""
    for exc_cls in [
        ConfigurationError,
        ValidationError,
        ProjectNotFoundError,
        AgentNotFoundError,
        WorkerExecutionError,
        WorkflowError,
        WorkflowDefinitionError,
        PersistenceError,
        EventTimeoutError,
    ]:
        assert issubclass(exc_cls, AutocrewError)


def test_not_found_errors_are_validation_errors():
    assert issubclass(ProjectNotFoundError, ValidationError)
    assert issubclass(AgentNotFoundError, ValidationError)

    err = ProjectNotFoundError("abc123")
    assert err.project_id == "abc123"
    assert "abc123" in str(err)


def test_workflow_definition_error_carries_context():
    err = WorkflowDefinitionError("bad phase", workflow="default", phase="qa")
    assert isinstance(err, WorkflowError)
    assert err.workflow == "default"
    assert err.phase == "qa"


def test_event_timeout_is_a_timeout():
    err = EventTimeoutError("phase.testing.complete", 2.5)
    assert isinstance(err, TimeoutError)
    assert err.channel == "phase.testing.complete"
    assert "2.5" in str(err)


def test_catch_base():
    """Catching AutocrewError should catch all subtypes."""
    try:
        raise WorkerExecutionError("worker exploded", role="backend")
    except AutocrewError as e:
        assert "worker exploded" in str(e)
        assert e.role == "backend"
