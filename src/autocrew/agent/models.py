"""Agent roles, statuses and the records the registry keeps."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any


class AgentRole(StrEnum):
    LEAD = "lead"
    REQUIREMENTS = "requirements"
    ARCHITECT = "architect"
    BACKEND = "backend"
    FRONTEND = "frontend"
    MOBILE = "mobile"
    GAME = "game"
    TESTER = "tester"
    DEVOPS = "devops"
    DOCS = "docs"
    SUMMARIZER = "summarizer"


class AgentStatus(StrEnum):
    IDLE = "idle"
    WORKING = "working"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class AgentConfig:
    """Static configuration handed to a worker factory."""

    role: str
    capabilities: list[str] = field(default_factory=list)
    priority: int = 1
    system_prompt: str = ""


@dataclass
class AgentInstance:
    """One live agent: a worker handle plus its lifecycle status."""

    id: str
    role: str
    config: AgentConfig
    worker: Any = field(repr=False)
    status: AgentStatus = AgentStatus.IDLE
    created_at: str = field(default_factory=lambda: datetime.now().isoformat())
    last_error: str = ""


@dataclass
class AgentStatistics:
    total: int = 0
    by_role: dict[str, int] = field(default_factory=dict)
    by_status: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"total": self.total, "by_role": dict(self.by_role), "by_status": dict(self.by_status)}
