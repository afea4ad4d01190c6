"""autocrew — event-driven orchestration core for multi-agent project generation."""

__version__ = "0.1.0"

from autocrew.agent import AgentConfig, AgentRegistry, AgentRole, BaseWorker, WorkerRequest, WorkerResponse
from autocrew.core import Config, Event, EventBus
from autocrew.orchestrator import OrchestrationContext, Orchestrator
from autocrew.project import ProjectStatus, ProjectStore
from autocrew.purposes import Purpose, PurposeRegistry
from autocrew.workflow import PhaseRunner, PhaseSpec, WorkflowEngine

__all__ = [
    "AgentConfig",
    "AgentRegistry",
    "AgentRole",
    "BaseWorker",
    "Config",
    "Event",
    "EventBus",
    "OrchestrationContext",
    "Orchestrator",
    "PhaseRunner",
    "PhaseSpec",
    "ProjectStatus",
    "ProjectStore",
    "Purpose",
    "PurposeRegistry",
    "WorkerRequest",
    "WorkerResponse",
    "WorkflowEngine",
    "__version__",
]
