"""ProjectBackend protocol and file-based implementation.

The backend handles durability only: one pretty-printed JSON document per
project (``<base_dir>/<project_id>.json``) holding the full context
snapshot. The in-memory ProjectStore is the source of truth during a run;
these records exist to reseed memory on startup and are safe to inspect
or diff by hand.

Failure semantics: I/O and encoding errors are logged and reported through
the boolean / None return values. They never raise into the caller, so a
failed write leaves memory and disk diverged until the next write succeeds.
"""

from __future__ import annotations

import json
import os
import re
import tempfile
from pathlib import Path
from typing import Protocol, runtime_checkable

from loguru import logger

from autocrew.core.exceptions import ValidationError

from .models import ProjectContext, project_from_dict, project_to_dict

_PROJECT_ID_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")


def validate_project_id(project_id: str) -> str:
    """Reject ids that cannot be used as a record filename."""
    if not isinstance(project_id, str) or not _PROJECT_ID_RE.match(project_id) or ".." in project_id:
        raise ValidationError(f"Invalid project id: {project_id!r}")
    return project_id


@runtime_checkable
class ProjectBackend(Protocol):
    """Pluggable durability backend for project contexts."""

    def save(self, project: ProjectContext) -> bool: ...

    def load(self, project_id: str) -> ProjectContext | None: ...

    def delete(self, project_id: str) -> bool: ...

    def list_ids(self) -> list[str]: ...


class FileProjectBackend:
    """Stores each project as ``<project_id>.json`` under *base_dir*."""

    def __init__(self, base_dir: str | Path) -> None:
        self._base = Path(base_dir).expanduser()
        try:
            self._base.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error(f"Failed to create project directory {self._base}: {e}")

    @property
    def base_dir(self) -> Path:
        return self._base

    def record_path(self, project_id: str) -> Path:
        return self._base / f"{validate_project_id(project_id)}.json"

    def save(self, project: ProjectContext) -> bool:
        """Write a full snapshot atomically. Returns False on failure."""
        path = self.record_path(project.id)
        try:
            content = json.dumps(project_to_dict(project), indent=2, ensure_ascii=False)
            self._atomic_write(path, content)
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Failed to persist project {project.id}: {e}")
            return False
        return True

    def load(self, project_id: str) -> ProjectContext | None:
        """Read one record. Missing or unreadable records yield None."""
        path = self.record_path(project_id)
        if not path.exists():
            return None
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return project_from_dict(data)
        except (OSError, json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            logger.warning(f"Failed to load project {project_id}: {e}")
            return None

    def delete(self, project_id: str) -> bool:
        path = self.record_path(project_id)
        try:
            if path.exists():
                path.unlink()
                return True
        except OSError as e:
            logger.error(f"Failed to delete project record {project_id}: {e}")
        return False

    def list_ids(self) -> list[str]:
        """List ids of every record on disk, sorted."""
        if not self._base.exists():
            return []
        return sorted(p.stem for p in self._base.glob("*.json") if _PROJECT_ID_RE.match(p.stem))

    # --- Internal helpers ---

    @staticmethod
    def _atomic_write(path: Path, content: str) -> None:
        """Write atomically via temp file + rename."""
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.stem}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, path)
        except Exception:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
