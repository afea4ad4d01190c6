"""Purpose model — what kind of project to build, with which stack and roles."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from autocrew.core.exceptions import ValidationError


@dataclass
class Purpose:
    """A buildable project type.

    ``tech_stack`` is passed through to workers untouched. ``prompts`` maps a
    role to the name of a prompt configuration the worker should use.
    """

    id: str
    name: str
    description: str = ""
    category: str = ""
    tech_stack: dict[str, list[str]] = field(default_factory=dict)
    roles: list[str] = field(default_factory=list)
    prompts: dict[str, str] = field(default_factory=dict)
    default_structure: list[str] = field(default_factory=list)  # directories

    def __post_init__(self) -> None:
        # Role keys may arrive as AgentRole members; store plain strings
        self.roles = [str(r) for r in self.roles]
        self.prompts = {str(k): str(v) for k, v in self.prompts.items()}

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "tech_stack": {k: list(v) for k, v in self.tech_stack.items()},
            "roles": list(self.roles),
            "prompts": dict(self.prompts),
            "default_structure": list(self.default_structure),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Purpose:
        if not isinstance(data, dict):
            raise ValidationError(f"Purpose entry must be a mapping, got {type(data).__name__}")
        purpose_id = data.get("id")
        if not purpose_id or not isinstance(purpose_id, str):
            raise ValidationError("Purpose entry needs a non-empty string 'id'")

        structure = data.get("default_structure") or []
        if isinstance(structure, dict):
            structure = structure.get("directories") or []

        return cls(
            id=purpose_id,
            name=str(data.get("name") or purpose_id),
            description=str(data.get("description") or ""),
            category=str(data.get("category") or ""),
            tech_stack={str(k): list(v or []) for k, v in (data.get("tech_stack") or {}).items()},
            roles=[str(r) for r in data.get("roles") or []],
            prompts={str(k): str(v) for k, v in (data.get("prompts") or {}).items()},
            default_structure=[str(d) for d in structure],
        )
