"""Configuration management for Timesheet AI.

Settings live in a YAML file (``~/.timesheet-ai/config.yml`` by default)
and are addressed with dotted keys such as ``backend.supabase.url``.
Missing keys fall back to ``DEFAULTS``; the merged result must satisfy
``SCHEMA``.
"""

import copy
import logging
import os
from pathlib import Path
from typing import Any, Optional

import yaml  # type: ignore[import-untyped]
from jsonschema import ValidationError, validate  # type: ignore[import-untyped]

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path.home() / ".timesheet-ai" / "config.yml"

# Settings that may be supplied through the environment instead of the file
ENV_OVERRIDES = {
    "backend.supabase.url": "SUPABASE_URL",
    "backend.supabase.anon_key": "SUPABASE_ANON_KEY",
}

DEFAULTS: dict[str, Any] = {
    "version": "1.0",
    "general": {
        "data_dir": "~/.timesheet-ai/data",
        "state_dir": "~/.timesheet-ai/state",
    },
    "backend": {
        "type": "csv",
        "supabase": {
            "url": None,
            "anon_key": None,
            "table": "timesheet_entries",
            "timeout": 30,
        },
        "local": {
            "user_id": "local-user",
            "email": None,
        },
    },
    "summarizer": {
        "model": "gemini-2.5-flash",
        "temperature": 0.3,
        "api_key": None,
        "api_key_env": "GEMINI_API_KEY",
        "timeout": 60,
    },
    "display": {
        "default_start_time": "08:30",
        "default_end_time": "17:00",
    },
    "advanced": {
        "log_level": "INFO",
        "log_file": "~/.timesheet-ai/timesheet.log",
    },
}

_OPTIONAL_STRING = {"type": ["string", "null"]}
_TIMEOUT = {"type": "number", "minimum": 1, "maximum": 600}
_TIME_OF_DAY = {"type": "string", "pattern": "^([01][0-9]|2[0-3]):[0-5][0-9]$"}


def _section(**properties: Any) -> dict[str, Any]:
    return {"type": "object", "properties": properties}


SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["version"],
    "properties": {
        "version": {"type": "string"},
        "general": _section(data_dir={"type": "string"}, state_dir={"type": "string"}),
        "backend": _section(
            type={"type": "string", "enum": ["csv", "supabase"]},
            supabase=_section(
                url=_OPTIONAL_STRING,
                anon_key=_OPTIONAL_STRING,
                table={"type": "string", "minLength": 1},
                timeout=_TIMEOUT,
            ),
            local=_section(
                user_id={"type": "string", "minLength": 1},
                email=_OPTIONAL_STRING,
            ),
        ),
        "summarizer": _section(
            model={"type": "string", "minLength": 1},
            temperature={"type": "number", "minimum": 0, "maximum": 2},
            api_key=_OPTIONAL_STRING,
            api_key_env={"type": "string"},
            timeout=_TIMEOUT,
        ),
        "display": _section(default_start_time=_TIME_OF_DAY, default_end_time=_TIME_OF_DAY),
        "advanced": _section(
            log_level={"type": "string", "enum": ["DEBUG", "INFO", "WARNING", "ERROR"]},
            log_file=_OPTIONAL_STRING,
        ),
    },
}


def merged(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return a deep copy of ``base`` with ``override`` applied on top.

    Nested dictionaries are merged key by key; any other value replaces the
    one in ``base``.
    """
    result = copy.deepcopy(base)
    for key, value in override.items():
        current = result.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            result[key] = merged(current, value)
        else:
            result[key] = copy.deepcopy(value)
    return result


def flatten(data: dict[str, Any], prefix: str = "") -> dict[str, Any]:
    """Flatten nested settings into ``{"a.b.c": value}`` form."""
    flat: dict[str, Any] = {}
    for key, value in data.items():
        dotted = f"{prefix}.{key}" if prefix else key
        if isinstance(value, dict):
            flat.update(flatten(value, dotted))
        else:
            flat[dotted] = value
    return flat


class ConfigManager:
    """Load, validate and persist the application configuration."""

    def __init__(self, config_path: Optional[Path] = None):
        """Initialize configuration manager.

        A missing file is created with the defaults.

        Args:
            config_path: Path to config file. Defaults to ~/.timesheet-ai/config.yml

        Raises:
            ValueError: If the existing file does not validate. It is moved
                aside to ``config.yml.backup`` and replaced with defaults first.
        """
        self.config_path = config_path or DEFAULT_CONFIG_PATH
        self._config: dict[str, Any] = copy.deepcopy(DEFAULTS)

        if not self.config_path.exists():
            self.save()
            return

        self._config = merged(DEFAULTS, self._read())
        try:
            self.validate()
        except ValueError as e:
            self._recover(e)

    def _read(self) -> dict[str, Any]:
        with open(self.config_path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
        return data if isinstance(data, dict) else {}

    def _recover(self, error: ValueError) -> None:
        backup_path = self.config_path.with_suffix(".yml.backup")
        self.config_path.replace(backup_path)
        logger.warning(f"Invalid config moved to {backup_path}: {error}")
        self.reset()
        raise ValueError(
            f"Config validation failed, backed up to {backup_path}. "
            f"Using defaults. Error: {error}"
        )

    def get(self, key: str, default: Any = None) -> Any:
        """Look up a dotted key.

        Returns ``default`` when any part of the path is missing or the
        stored value is null.

        Example:
            >>> config.get('summarizer.model')
            'gemini-2.5-flash'
        """
        node: Any = self._config
        for part in key.split("."):
            if not isinstance(node, dict) or node.get(part) is None:
                return default
            node = node[part]
        return node

    def set(self, key: str, value: Any, persist: bool = True) -> None:
        """Assign a dotted key, creating intermediate sections as needed.

        Args:
            key: Configuration key in dot notation
            value: Value to set
            persist: Write the file afterwards. False keeps the change in
                memory only (command-line overrides)

        Raises:
            ValueError: If the result does not validate; nothing is changed
        """
        *parents, leaf = key.split(".")
        candidate = copy.deepcopy(self._config)
        node = candidate
        for part in parents:
            node = node.setdefault(part, {})
        node[leaf] = value

        previous, self._config = self._config, candidate
        try:
            self.validate()
        except ValueError:
            self._config = previous
            raise

        if persist:
            self.save()

    def validate(self) -> bool:
        """Check the current settings against ``SCHEMA``.

        Raises:
            ValueError: If configuration is invalid
        """
        try:
            validate(instance=self._config, schema=SCHEMA)
        except ValidationError as e:
            raise ValueError(f"Invalid configuration: {e.message}")
        return True

    def save(self) -> None:
        self.config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.config_path, "w", encoding="utf-8") as f:
            yaml.safe_dump(self._config, f, sort_keys=False, allow_unicode=True)

    def reset(self) -> None:
        """Replace all settings with the defaults and save."""
        self._config = copy.deepcopy(DEFAULTS)
        self.save()

    def to_dict(self) -> dict[str, Any]:
        return copy.deepcopy(self._config)

    def get_all_keys(self, prefix: str = "") -> list[str]:
        """List every leaf key in dot notation, optionally under ``prefix``."""
        section = self.get(prefix, {}) if prefix else self._config
        if not isinstance(section, dict):
            return []
        return list(flatten(section, prefix))

    def resolve(self, key: str, default: Any = None) -> Any:
        """Get a value, letting its environment variable take precedence.

        Args:
            key: Key listed in ``ENV_OVERRIDES``, or any other key

        Returns:
            Environment value if set, else the configured value or default
        """
        env_name = ENV_OVERRIDES.get(key)
        if env_name and os.environ.get(env_name):
            return os.environ[env_name]
        return self.get(key, default)

    def summarizer_api_key(self) -> Optional[str]:
        """Get the summarizer API key from config or its environment variable."""
        key: Optional[str] = self.get("summarizer.api_key")
        if key:
            return key
        env_name = self.get("summarizer.api_key_env", "GEMINI_API_KEY")
        return os.environ.get(env_name) or None

    def path(self, key: str) -> Path:
        """Get a path-valued setting with ``~`` expanded."""
        return Path(str(self.get(key))).expanduser()
