"""Project contexts — models, durable JSON records and the write-through store."""

from .backend import FileProjectBackend, ProjectBackend
from .models import (
    TERMINAL_STATUSES,
    ConversationEntry,
    ConversationRole,
    PhaseRecord,
    PhaseStatus,
    ProjectContext,
    ProjectStatus,
    project_from_dict,
    project_to_dict,
)
from .store import ProjectStore

__all__ = [
    "TERMINAL_STATUSES",
    "ConversationEntry",
    "ConversationRole",
    "FileProjectBackend",
    "PhaseRecord",
    "PhaseStatus",
    "ProjectBackend",
    "ProjectContext",
    "ProjectStatus",
    "ProjectStore",
    "project_from_dict",
    "project_to_dict",
]
