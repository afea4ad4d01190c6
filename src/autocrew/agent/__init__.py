"""Agents — worker contract, lifecycle registry and user-facing error text."""

from .base import BaseWorker, Worker
from .errors import friendly_error_message
from .messages import (
    ArchitectureResult,
    DevelopmentResult,
    DevopsResult,
    DocumentationResult,
    GenericResult,
    RequirementsResult,
    SummaryResult,
    TestingResult,
    WorkerRequest,
    WorkerResponse,
    result_from_dict,
    result_to_dict,
)
from .models import AgentConfig, AgentInstance, AgentRole, AgentStatistics, AgentStatus
from .registry import AgentRegistry

__all__ = [
    "AgentConfig",
    "AgentInstance",
    "AgentRegistry",
    "AgentRole",
    "AgentStatistics",
    "AgentStatus",
    "ArchitectureResult",
    "BaseWorker",
    "DevelopmentResult",
    "DevopsResult",
    "DocumentationResult",
    "GenericResult",
    "RequirementsResult",
    "SummaryResult",
    "TestingResult",
    "Worker",
    "WorkerRequest",
    "WorkerResponse",
    "friendly_error_message",
    "result_from_dict",
    "result_to_dict",
]
