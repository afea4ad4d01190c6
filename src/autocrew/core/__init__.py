"""Core infrastructure — event bus, configuration, exceptions, logging."""

from .config import Config, get_config, reset_config
from .events import Event, EventBus
from .exceptions import (
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
from .utils.logging import setup_logging

__all__ = [
    "AgentNotFoundError",
    "AutocrewError",
    "Config",
    "ConfigurationError",
    "Event",
    "EventBus",
    "EventTimeoutError",
    "PersistenceError",
    "ProjectNotFoundError",
    "ValidationError",
    "WorkerExecutionError",
    "WorkflowDefinitionError",
    "WorkflowError",
    "get_config",
    "reset_config",
    "setup_logging",
]
