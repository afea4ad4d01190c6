"""Workflow — phase definitions, the engine that advances them and the runner that executes them."""

from .engine import WorkflowEngine
from .join import JoinOutcome, PhaseJoin
from .models import (
    DEFAULT_WORKFLOW_NAME,
    PHASE_STATUS_MAP,
    PhaseSpec,
    WorkflowDefinition,
    default_phases,
    phase_status,
    validate_definition,
)
from .progress import ProgressTracker, TaskStatus
from .runner import PhaseRunner

__all__ = [
    "DEFAULT_WORKFLOW_NAME",
    "PHASE_STATUS_MAP",
    "JoinOutcome",
    "PhaseJoin",
    "PhaseRunner",
    "PhaseSpec",
    "ProgressTracker",
    "TaskStatus",
    "WorkflowDefinition",
    "WorkflowEngine",
    "default_phases",
    "phase_status",
    "validate_definition",
]
