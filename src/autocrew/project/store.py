"""ProjectStore — in-memory project contexts with write-through persistence.

The in-memory map is the single source of truth during a run. Every
mutating call updates memory, bumps ``updated_at`` and immediately writes
the full snapshot through the backend; there is no batching and no
deferred flush. Calls are not transactional with each other, so a reader
between two mutating calls sees the first change only. Callers that need
several fields to change together must pass them in one call (for example
``upsert_phase(pid, "testing", status=..., started_at=...)``).

No locking: the store assumes a single cooperative writer per project.
"""

from __future__ import annotations

import uuid
from pathlib import Path
from typing import Any

from loguru import logger

from autocrew.core.exceptions import ProjectNotFoundError, ValidationError

from .backend import FileProjectBackend, ProjectBackend, validate_project_id
from .models import (
    PHASE_FIELDS,
    ConversationEntry,
    ConversationRole,
    PhaseRecord,
    PhaseStatus,
    ProjectContext,
    ProjectStatus,
    now_iso,
)


class ProjectStore:
    """Owns project contexts and the single "current project" pointer."""

    def __init__(self, base_dir: str | Path | None = None, *, backend: ProjectBackend | None = None) -> None:
        if backend is None:
            if base_dir is None:
                raise ValidationError("ProjectStore needs either base_dir or backend")
            backend = FileProjectBackend(base_dir)
        self._backend = backend
        self._projects: dict[str, ProjectContext] = {}
        self._current_id: str | None = None

    @property
    def backend(self) -> ProjectBackend:
        return self._backend

    @property
    def current_id(self) -> str | None:
        return self._current_id

    # -- CRUD ----------------------------------------------------------------

    def create(self, purpose_id: str, purpose_name: str, tech_stack: dict[str, Any] | None = None) -> ProjectContext:
        """Create a project, make it current and persist it."""
        if not purpose_id or not isinstance(purpose_id, str):
            raise ValidationError("purpose_id must be a non-empty string")

        project = ProjectContext(
            id=uuid.uuid4().hex,
            purpose_id=purpose_id,
            purpose_name=purpose_name or purpose_id,
            tech_stack=dict(tech_stack or {}),
        )
        self._projects[project.id] = project
        self._current_id = project.id
        self._backend.save(project)
        logger.info(f"Created project {project.id} for purpose {purpose_id}")
        return project

    def get_current(self) -> ProjectContext | None:
        if self._current_id is None:
            return None
        return self._projects.get(self._current_id)

    def get(self, project_id: str) -> ProjectContext | None:
        return self._projects.get(project_id)

    def set_current(self, project_id: str) -> ProjectContext:
        project = self._require(project_id)
        self._current_id = project_id
        return project

    def list_projects(self) -> list[ProjectContext]:
        """All projects held in memory, oldest first."""
        return sorted(self._projects.values(), key=lambda p: p.created_at)

    def delete(self, project_id: str) -> bool:
        """Remove a project from memory and delete its durable record."""
        validate_project_id(project_id)
        removed = self._projects.pop(project_id, None) is not None
        if self._current_id == project_id:
            self._current_id = None
        removed = self._backend.delete(project_id) or removed
        if removed:
            logger.info(f"Deleted project {project_id}")
        return removed

    # -- Mutations -----------------------------------------------------------

    def set_status(self, project_id: str, status: ProjectStatus | str) -> ProjectContext:
        project = self._require(project_id)
        try:
            target = ProjectStatus(status)
        except ValueError:
            raise ValidationError(f"Unknown project status: {status!r}") from None

        old = project.status
        project.status = target
        self._commit(project)
        if old != target:
            logger.debug(f"Project {project_id}: {old} -> {target}")
        return project

    def upsert_phase(self, project_id: str, name: str, **fields: Any) -> PhaseRecord:
        """Merge *fields* into the phase record, creating a pending record first if needed."""
        project = self._require(project_id)
        if not name:
            raise ValidationError("Phase name must be a non-empty string")
        unknown = set(fields) - PHASE_FIELDS
        if unknown:
            raise ValidationError(f"Unknown phase fields: {', '.join(sorted(unknown))}")
        if "status" in fields:
            try:
                fields["status"] = PhaseStatus(fields["status"])
            except ValueError:
                raise ValidationError(f"Unknown phase status: {fields['status']!r}") from None

        record = project.phases.get(name)
        if record is None:
            record = PhaseRecord(name=name)
            project.phases[name] = record
        for key, value in fields.items():
            setattr(record, key, value)

        self._commit(project)
        return record

    def set_artifact(self, project_id: str, key: str, value: Any) -> None:
        project = self._require(project_id)
        project.artifacts[key] = value
        self._commit(project)

    def get_artifact(self, project_id: str, key: str, default: Any = None) -> Any:
        return self._require(project_id).artifacts.get(key, default)

    def append_conversation(
        self,
        project_id: str,
        role: ConversationRole | str,
        message: str,
        metadata: dict[str, Any] | None = None,
    ) -> ConversationEntry:
        project = self._require(project_id)
        try:
            conv_role = ConversationRole(role)
        except ValueError:
            raise ValidationError(f"Unknown conversation role: {role!r}") from None

        entry = ConversationEntry(timestamp=now_iso(), role=conv_role, message=message, metadata=dict(metadata or {}))
        project.conversation.append(entry)
        self._commit(project)
        return entry

    def get_conversation(self, project_id: str) -> list[ConversationEntry]:
        return list(self._require(project_id).conversation)

    def set_metadata(self, project_id: str, key: str, value: Any) -> None:
        project = self._require(project_id)
        project.metadata[key] = value
        self._commit(project)

    # -- Durable storage -----------------------------------------------------

    def load(self, project_id: str) -> ProjectContext | None:
        """Reload one project from its durable record, replacing the in-memory copy."""
        project = self._backend.load(validate_project_id(project_id))
        if project is not None:
            self._projects[project.id] = project
        return project

    def load_all(self) -> int:
        """Reseed memory from every durable record. Returns the number loaded."""
        loaded = 0
        for project_id in self._backend.list_ids():
            if self.load(project_id) is not None:
                loaded += 1
        logger.info(f"Loaded {loaded} project(s) from durable storage")
        return loaded

    # -- Internal ------------------------------------------------------------

    def _require(self, project_id: str) -> ProjectContext:
        project = self._projects.get(project_id)
        if project is None:
            raise ProjectNotFoundError(project_id)
        return project

    def _commit(self, project: ProjectContext) -> bool:
        project.updated_at = now_iso()
        return self._backend.save(project)
