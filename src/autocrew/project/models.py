"""Data models for orchestrated projects.

Defines the project context, its phase records and conversation log, plus
the dict (de)serializers used for the durable JSON record. Pure data — no
I/O, no dependencies beyond stdlib.

Status lifecycle:
    initializing -> <one status per phase name> ... -> completed
    any phase status -> failed (worker failure halts progression)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

SCHEMA_VERSION = 1


class ProjectStatus(StrEnum):
    INITIALIZING = "initializing"
    REQUIREMENTS = "requirements"
    ARCHITECTURE = "architecture"
    DEVELOPMENT = "development"
    TESTING = "testing"
    DEVOPS = "devops"
    DOCUMENTATION = "documentation"
    COMPLETED = "completed"
    FAILED = "failed"


class PhaseStatus(StrEnum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class ConversationRole(StrEnum):
    USER = "user"
    LEAD = "lead"
    SYSTEM = "system"


TERMINAL_STATUSES = {ProjectStatus.COMPLETED, ProjectStatus.FAILED}


def now_iso() -> str:
    """Timestamp format used for every project field (ISO 8601, microseconds)."""
    return datetime.now().isoformat()


@dataclass
class PhaseRecord:
    """Progress of one named phase within a project."""

    name: str
    status: PhaseStatus = PhaseStatus.PENDING
    started_at: str | None = None  # ISO 8601
    completed_at: str | None = None  # ISO 8601
    result: Any = None
    artifacts: dict[str, Any] = field(default_factory=dict)
    notes: list[str] = field(default_factory=list)
    error: str = ""


# Fields callers may merge through ProjectStore.upsert_phase
PHASE_FIELDS = frozenset({"status", "started_at", "completed_at", "result", "artifacts", "notes", "error"})


@dataclass
class ConversationEntry:
    """One line of the project's conversation log."""

    timestamp: str  # ISO 8601
    role: ConversationRole
    message: str
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class ProjectContext:
    """The complete mutable state of one orchestrated run."""

    id: str
    purpose_id: str
    purpose_name: str
    tech_stack: dict[str, Any] = field(default_factory=dict)  # opaque to the core
    status: ProjectStatus = ProjectStatus.INITIALIZING
    phases: dict[str, PhaseRecord] = field(default_factory=dict)
    artifacts: dict[str, Any] = field(default_factory=dict)
    conversation: list[ConversationEntry] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: str = field(default_factory=now_iso)
    updated_at: str = field(default_factory=now_iso)
    schema_version: int = SCHEMA_VERSION

    @property
    def in_progress_phases(self) -> list[str]:
        return [name for name, rec in self.phases.items() if rec.status == PhaseStatus.IN_PROGRESS]

    def last_user_message(self) -> str:
        for entry in reversed(self.conversation):
            if entry.role == ConversationRole.USER:
                return entry.message
        return ""


def phase_to_dict(phase: PhaseRecord) -> dict[str, Any]:
    return {
        "name": phase.name,
        "status": phase.status.value if isinstance(phase.status, PhaseStatus) else phase.status,
        "started_at": phase.started_at,
        "completed_at": phase.completed_at,
        "result": phase.result,
        "artifacts": phase.artifacts,
        "notes": phase.notes,
        "error": phase.error,
    }


def phase_from_dict(data: dict[str, Any]) -> PhaseRecord:
    data = dict(data)
    if "status" in data and isinstance(data["status"], str):
        data["status"] = PhaseStatus(data["status"])
    data.setdefault("artifacts", {})
    data.setdefault("notes", [])
    return PhaseRecord(**data)


def project_to_dict(project: ProjectContext) -> dict[str, Any]:
    """Serialize a ProjectContext to a JSON-safe dict (the durable record layout)."""
    return {
        "schema_version": project.schema_version,
        "id": project.id,
        "purpose_id": project.purpose_id,
        "purpose_name": project.purpose_name,
        "tech_stack": project.tech_stack,
        "status": project.status.value if isinstance(project.status, ProjectStatus) else project.status,
        "phases": {name: phase_to_dict(p) for name, p in project.phases.items()},
        "artifacts": project.artifacts,
        "conversation": [
            {
                "timestamp": c.timestamp,
                "role": c.role.value if isinstance(c.role, ConversationRole) else c.role,
                "message": c.message,
                "metadata": c.metadata,
            }
            for c in project.conversation
        ],
        "metadata": project.metadata,
        "created_at": project.created_at,
        "updated_at": project.updated_at,
    }


def project_from_dict(data: dict[str, Any]) -> ProjectContext:
    """Deserialize a ProjectContext from a dict."""
    data = dict(data)  # shallow copy to avoid mutating caller's dict
    phases_data = data.pop("phases", {}) or {}
    conversation_data = data.pop("conversation", []) or []

    if "status" in data and isinstance(data["status"], str):
        data["status"] = ProjectStatus(data["status"])

    phases = {name: phase_from_dict(pd) for name, pd in phases_data.items()}
    conversation = [
        ConversationEntry(
            timestamp=c["timestamp"],
            role=ConversationRole(c["role"]),
            message=c["message"],
            metadata=c.get("metadata") or {},
        )
        for c in conversation_data
    ]
    return ProjectContext(**data, phases=phases, conversation=conversation)
