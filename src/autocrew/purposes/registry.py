"""PurposeRegistry — maps purpose ids to tech stacks and agent roles.

Seeded with the built-in purposes; more can be registered in code or loaded
from a YAML file holding a list of purpose mappings::

    - id: chrome-extension
      name: Chrome Extension
      category: Web
      tech_stack:
        frontend: [TypeScript, React]
      roles: [requirements, architect, frontend, tester, docs]
      prompts:
        frontend: react_frontend
      default_structure: [src/popup, src/background, public]
"""

from __future__ import annotations

from pathlib import Path

import yaml
from loguru import logger

from autocrew.core.exceptions import ConfigurationError, ValidationError

from .builtin import builtin_purposes
from .models import Purpose


class PurposeRegistry:
    def __init__(self, include_builtin: bool = True) -> None:
        self._purposes: dict[str, Purpose] = {}
        if include_builtin:
            for purpose in builtin_purposes():
                self.register(purpose)

    def __len__(self) -> int:
        return len(self._purposes)

    def __contains__(self, purpose_id: object) -> bool:
        return purpose_id in self._purposes

    def register(self, purpose: Purpose) -> None:
        """Add or replace a purpose."""
        if purpose.id in self._purposes:
            logger.debug(f"Replacing purpose {purpose.id}")
        self._purposes[purpose.id] = purpose

    def get(self, purpose_id: str) -> Purpose | None:
        return self._purposes.get(purpose_id)

    def get_all(self) -> list[Purpose]:
        return list(self._purposes.values())

    def get_by_category(self, category: str) -> list[Purpose]:
        return [p for p in self._purposes.values() if p.category == category]

    def search(self, query: str) -> list[Purpose]:
        """Case-insensitive substring match on name, description and category."""
        q = query.lower()
        return [
            p
            for p in self._purposes.values()
            if q in p.name.lower() or q in p.description.lower() or q in p.category.lower()
        ]

    def categories(self) -> list[str]:
        """Distinct categories in registration order."""
        return list(dict.fromkeys(p.category for p in self._purposes.values()))

    def load_yaml(self, path: str | Path) -> int:
        """Register every purpose in a YAML list. Returns the number loaded.

        Raises:
            ConfigurationError: if the file is unreadable, not a list, or holds
                an invalid entry.
        """
        path = Path(path).expanduser()
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Could not read purposes file {path}: {e}") from e

        if data is None:
            return 0
        if isinstance(data, dict) and "purposes" in data:
            data = data["purposes"]
        if not isinstance(data, list):
            raise ConfigurationError(f"Purposes file {path} must contain a list of purposes")

        loaded = []
        for i, entry in enumerate(data):
            try:
                loaded.append(Purpose.from_dict(entry))
            except (ValidationError, TypeError, AttributeError) as e:
                raise ConfigurationError(f"Invalid purpose #{i} in {path}: {e}") from e

        for purpose in loaded:
            self.register(purpose)
        logger.info(f"Loaded {len(loaded)} purpose(s) from {path}")
        return len(loaded)
