"""Settings for an autocrew run.

Three layers, later ones winning: built-in defaults, an optional YAML or
JSON file, then ``AUTOCREW_SECTION__KEY`` environment variables. Values stay
a plain nested dict; :meth:`Config.validated` turns them into the typed
:class:`~autocrew.core.config_schema.AutocrewConfig` that
:meth:`OrchestrationContext.create` reads::

    config = Config(config_file="autocrew.yaml", data_dir="~/.autocrew")
    config.get("events.history_size")
    config.validated().paths.projects_dir
"""

from __future__ import annotations

import json
import os
from typing import TYPE_CHECKING, Any

import yaml

from .exceptions import ConfigurationError

if TYPE_CHECKING:
    from .config_schema import AutocrewConfig

_DEFAULT_ENV_PREFIX = "AUTOCREW_"
_DEFAULT_DATA_DIR_NAME = ".autocrew"


class Config:
    """Layered settings with dot-path access.

    ``AUTOCREW_EVENTS__HISTORY_SIZE=50`` sets ``events.history_size`` to the
    string ``"50"``; the pydantic schema coerces it on :meth:`validated`.
    """

    def __init__(
        self,
        config_file: str | None = None,
        env_prefix: str = _DEFAULT_ENV_PREFIX,
        data_dir: str | None = None,
        defaults: dict[str, Any] | None = None,
    ):
        """*data_dir* roots the project records and logs (default ``./.autocrew``).

        *defaults* is merged over the built-in defaults, below the file.
        A missing *config_file* is ignored; an unparsable one raises
        :class:`ConfigurationError`.
        """
        self.config_file = config_file
        self.env_prefix = env_prefix or ""
        self._data_dir = data_dir or _DEFAULT_DATA_DIR_NAME
        self._extra_defaults = defaults or {}
        self.config_data: dict[str, Any] = {}

        self._load_config()

    def _load_config(self) -> None:
        self.config_data = self._get_default_config()

        if self._extra_defaults:
            self._update_dict(self.config_data, self._extra_defaults)

        if self.config_file and os.path.exists(self.config_file):
            file_config = self._load_file(self.config_file)
            self._update_dict(self.config_data, file_config)

        # Environment wins over file and defaults
        self._load_from_env()

    def _get_default_config(self) -> dict[str, Any]:
        data_dir = os.path.expanduser(self._data_dir)
        return {
            "paths": {
                "data_dir": data_dir,
                "projects_dir": os.path.join(data_dir, "projects"),
                "log_dir": os.path.join(data_dir, "logs"),
            },
            "events": {
                "history_size": 1000,
            },
            "workflow": {
                "default": "default",
            },
            "logging": {
                "level": "WARNING",
                "file": None,
            },
            "purposes": {
                "file": None,
            },
        }

    @staticmethod
    def _load_file(path: str) -> dict[str, Any]:
        """Parse by extension; other extensions read as empty."""
        ext = os.path.splitext(path)[1].lower()
        try:
            with open(path, encoding="utf-8") as f:
                if ext in (".yaml", ".yml"):
                    return yaml.safe_load(f) or {}
                elif ext == ".json":
                    return json.load(f)
        except (yaml.YAMLError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Could not parse config file {path}: {e}") from e
        return {}

    def _update_dict(self, target: dict, source: dict) -> None:
        for key, value in source.items():
            if key in target and isinstance(target[key], dict) and isinstance(value, dict):
                self._update_dict(target[key], value)
            else:
                target[key] = value

    def _load_from_env(self) -> None:
        if not self.env_prefix:
            return
        for env_key, env_value in os.environ.items():
            if not env_key.startswith(self.env_prefix):
                continue
            config_key = env_key[len(self.env_prefix) :].lower()
            key_parts = config_key.split("__")

            current = self.config_data
            for part in key_parts[:-1]:
                if not isinstance(current.get(part), dict):
                    current[part] = {}
                current = current[part]
            current[key_parts[-1]] = env_value

    def get(self, key_path: str, default: Any = None) -> Any:
        """Look up ``"section.key"``; *default* when any part is missing."""
        parts = key_path.split(".")
        current = self.config_data
        for part in parts:
            if not isinstance(current, dict) or part not in current:
                return default
            current = current[part]
        return current

    def set(self, key_path: str, value: Any) -> None:
        """Assign ``"section.key"``, creating missing sections."""
        parts = key_path.split(".")
        current = self.config_data
        for part in parts[:-1]:
            if part not in current:
                current[part] = {}
            current = current[part]
        current[parts[-1]] = value

    def get_data_dir(self) -> str:
        """``paths.data_dir`` with ``~`` expanded."""
        return os.path.expanduser(self.get("paths.data_dir", self._data_dir))

    def ensure_directories(self) -> None:
        """Create every directory under ``paths`` (data, projects, logs)."""
        for path_value in self.config_data.get("paths", {}).values():
            if isinstance(path_value, str):
                os.makedirs(os.path.expanduser(path_value), exist_ok=True)

    def validated(self) -> AutocrewConfig:
        """Return a typed, validated view of the current config data.

        Raises:
            ConfigurationError: if any section fails schema validation.
        """
        from pydantic import ValidationError as PydanticValidationError

        from .config_schema import AutocrewConfig

        try:
            return AutocrewConfig.model_validate(self.config_data)
        except PydanticValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e


# Module-level singleton
_config_instance: Config | None = None


def get_config(
    config_file: str | None = None,
    env_prefix: str = _DEFAULT_ENV_PREFIX,
    data_dir: str | None = None,
) -> Config:
    """Process-wide Config, built on first call. Later arguments are ignored."""
    global _config_instance
    if _config_instance is None:
        _config_instance = Config(config_file=config_file, env_prefix=env_prefix, data_dir=data_dir)
    return _config_instance


def reset_config() -> None:
    """Forget the process-wide Config so the next get_config() rebuilds it."""
    global _config_instance
    _config_instance = None
