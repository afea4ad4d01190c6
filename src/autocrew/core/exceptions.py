"""
Autocrew exception hierarchy.

All autocrew exceptions inherit from AutocrewError, making it easy for callers
to catch library-level errors while still distinguishing specific failure modes.
"""


class AutocrewError(Exception):
    """Base exception class for all autocrew errors."""


class ConfigurationError(AutocrewError):
    """Raised for configuration errors (missing keys, invalid values)."""


class ValidationError(AutocrewError):
    """Raised when a call receives malformed input. Never retried."""


class ProjectNotFoundError(ValidationError):
    """Raised when a project id is not known to the store."""

    def __init__(self, project_id: str) -> None:
        super().__init__(f"Project not found: {project_id}")
        self.project_id = project_id


class AgentNotFoundError(ValidationError):
    """Raised when an agent id is not tracked by the registry."""

    def __init__(self, agent_id: str) -> None:
        super().__init__(f"Agent not found: {agent_id}")
        self.agent_id = agent_id


class WorkerExecutionError(AutocrewError):
    """Raised (or carried in a response) when a worker's execute call fails."""

    def __init__(self, message: str, role: str = "") -> None:
        super().__init__(message)
        self.role = role


class WorkflowError(AutocrewError):
    """Raised when the workflow engine cannot act on the current state."""


class WorkflowDefinitionError(WorkflowError):
    """Raised for unknown workflows or phases and malformed definitions."""

    def __init__(self, message: str, workflow: str = "", phase: str = "") -> None:
        super().__init__(message)
        self.workflow = workflow
        self.phase = phase


class PersistenceError(AutocrewError):
    """Raised for durable storage failures."""


class EventTimeoutError(AutocrewError, TimeoutError):
    """Raised when EventBus.wait_for does not see its channel in time."""

    def __init__(self, channel: str, timeout: float) -> None:
        super().__init__(f"Timeout waiting for event: {channel} ({timeout}s)")
        self.channel = channel
        self.timeout = timeout
