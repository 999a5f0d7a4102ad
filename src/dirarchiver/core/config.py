"""Configuration resolver with 4-level priority.

Priority (highest to lowest):
1. CLI arguments
2. Environment variables (DIRARCHIVER_*)
3. Config files (user > system)
4. Defaults
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from dirarchiver.core.errors import ConfigError
from dirarchiver.types import ReadErrorPolicy, StrategyName

ALLOWED_LOGGING_LEVELS = frozenset({"quiet", "normal", "verbose", "debug"})
DEFAULT_LOGGING_LEVEL = "normal"

ENV_PREFIX = "DIRARCHIVER_"

_TRUE_STRINGS = frozenset({"1", "true", "yes", "on"})
_FALSE_STRINGS = frozenset({"0", "false", "no", "off"})


@dataclass
class ConfigSource:
    """Represents where a config value came from."""

    value: Any
    source: str  # 'cli' | 'env' | 'user_config' | 'system_config' | 'default'


@dataclass(frozen=True)
class LoggingPolicy:
    """Resolved, immutable logging policy."""

    level_name: str  # quiet | normal | verbose | debug
    color: bool
    sources: dict[str, ConfigSource] = field(default_factory=dict)


@dataclass(frozen=True)
class ArchiveSettings:
    """Resolved settings for one archival run."""

    root: str
    exclude: tuple[str, ...]
    strategy: StrategyName
    extension: str
    compression_level: int
    chunk_size: int
    channel_capacity: int
    max_readers: int
    on_read_error: ReadErrorPolicy
    continue_on_error: bool
    working_dir: str | None
    home_dir: str | None


class ConfigResolver:
    """Resolve configuration with strict 4-level priority.

    Example:
        resolver = ConfigResolver(
            cli_args={'archive': {'strategy': 'fanin'}},
            user_config_path=Path('~/.config/dirarchiver/config.yaml'),
        )

        strategy, source = resolver.resolve('archive.strategy')
        # strategy = 'fanin', source = 'cli'
    """

    def __init__(
        self,
        cli_args: dict[str, Any] | None = None,
        user_config_path: Path | None = None,
        system_config_path: Path | None = None,
        defaults: dict[str, Any] | None = None,
    ) -> None:
        """Initialize config resolver.

        Args:
            cli_args: Arguments from CLI (highest priority, nested dicts)
            user_config_path: Path to user config file
            system_config_path: Path to system config file
            defaults: Default values (lowest priority)
        """
        self.cli_args = cli_args or {}
        self.user_config_path = user_config_path or _default_user_config_path()
        self.system_config_path = system_config_path or Path("/etc/dirarchiver/config.yaml")
        self.defaults = defaults if defaults is not None else self._default_config()

        self._user_config: dict[str, Any] | None = None
        self._system_config: dict[str, Any] | None = None

    def resolve(self, key: str) -> tuple[Any, str]:
        """Resolve config value with priority.

        Args:
            key: Config key (supports dot notation: 'archive.strategy')

        Returns:
            (value, source) tuple

        Raises:
            ConfigError: If key not found in any source
        """
        value = self._get_nested(self.cli_args, key)
        if value is not None:
            return value, "cli"

        value = self._from_env(key)
        if value is not None:
            return value, "env"

        value = self._get_nested(self._get_user_config(), key)
        if value is not None:
            return value, "user_config"

        value = self._get_nested(self._get_system_config(), key)
        if value is not None:
            return value, "system_config"

        value = self._get_nested(self.defaults, key)
        if value is not None:
            return value, "default"

        raise ConfigError(f"Config key '{key}' not found in any source")

    def resolve_optional(self, key: str, default: Any = None) -> Any:
        """Resolve a key, returning `default` when no source defines it."""
        try:
            value, _src = self.resolve(key)
        except ConfigError as e:
            if "not found in any source" in str(e):
                return default
            raise
        return value

    def resolve_logging_level(self) -> str:
        """Resolve and validate logging.level.

        Backwards compatible alias (resolver-only):
            verbosity -> logging.level

        Raises:
            ConfigError: If the resolved value is invalid.
        """
        level, _src = self._resolve_logging_level_and_source()
        return level

    def resolve_logging_policy(self) -> LoggingPolicy:
        """Resolve the logging policy (side-effect free)."""
        level_name, src = self._resolve_logging_level_and_source()
        color = self._coerce_bool("logging.color", self.resolve_optional("logging.color", True))
        return LoggingPolicy(level_name=level_name, color=color, sources={"level_name": src})

    def _resolve_logging_level_and_source(self) -> tuple[str, ConfigSource]:
        key = "logging.level"
        found = self._try_resolve_value(key)
        if found is None:
            found = self._try_resolve_value("verbosity")

        if found is None:
            return DEFAULT_LOGGING_LEVEL, ConfigSource(value=DEFAULT_LOGGING_LEVEL, source="default")

        value, source = found
        if not isinstance(value, str):
            raise ConfigError(f"Config key '{key}' must be a string, got {type(value).__name__}")

        norm = value.strip().lower()
        if norm not in ALLOWED_LOGGING_LEVELS:
            allowed = ", ".join(sorted(ALLOWED_LOGGING_LEVELS))
            raise ConfigError(f"Invalid '{key}': {value!r}. Allowed values: {allowed}")

        return norm, ConfigSource(value=norm, source=source)

    def _try_resolve_value(self, key: str) -> tuple[Any, str] | None:
        try:
            return self.resolve(key)
        except ConfigError as e:
            if "not found in any source" in str(e):
                return None
            raise

    def resolve_settings(self) -> ArchiveSettings:
        """Resolve and validate every setting the archival engine needs.

        Values coming from the environment are strings; numeric and boolean
        keys are coerced here.

        Raises:
            ConfigError: If a value has the wrong type or is out of range.
        """
        root = self.resolve_optional("root", ".")
        if not isinstance(root, str) or root.strip() == "":
            raise ConfigError("Config key 'root' must be a non-empty path string")

        strategy = StrategyName.parse(self.resolve_optional("archive.strategy", "stream"))
        on_read_error = ReadErrorPolicy.parse(self.resolve_optional("archive.on_read_error", "abort"))

        extension = str(self.resolve_optional("archive.extension", "zip")).strip().lstrip(".")
        if not extension:
            raise ConfigError("Config key 'archive.extension' must not be empty")

        level = self._coerce_int("archive.compression_level", 6, minimum=0, maximum=9)
        chunk_size = self._coerce_int("archive.chunk_size", 64 * 1024, minimum=1)
        capacity = self._coerce_int("archive.channel_capacity", 1024, minimum=1)
        readers = self._coerce_int("archive.max_readers", 16, minimum=1)

        continue_on_error = self._coerce_bool(
            "archive.continue_on_error",
            self.resolve_optional("archive.continue_on_error", False),
        )

        working_dir = self.resolve_optional("paths.working_dir")
        home_dir = self.resolve_optional("paths.home_dir")
        for key, value in (("paths.working_dir", working_dir), ("paths.home_dir", home_dir)):
            if value is not None and not isinstance(value, str):
                raise ConfigError(f"Config key '{key}' must be a path string")

        return ArchiveSettings(
            root=root,
            exclude=tuple(parse_exclusions(self.resolve_optional("exclude", []))),
            strategy=strategy,
            extension=extension,
            compression_level=level,
            chunk_size=chunk_size,
            channel_capacity=capacity,
            max_readers=readers,
            on_read_error=on_read_error,
            continue_on_error=continue_on_error,
            working_dir=working_dir,
            home_dir=home_dir,
        )

    def _coerce_int(
        self, key: str, default: int, *, minimum: int | None = None, maximum: int | None = None
    ) -> int:
        value = self.resolve_optional(key, default)
        if isinstance(value, bool):
            raise ConfigError(f"Config key '{key}' must be an int")
        if isinstance(value, str) and value.strip().isdigit():
            value = int(value.strip())
        if not isinstance(value, int):
            raise ConfigError(f"Config key '{key}' must be an int, got {type(value).__name__}")
        if minimum is not None and value < minimum:
            raise ConfigError(f"Config key '{key}' must be >= {minimum}, got {value}")
        if maximum is not None and value > maximum:
            raise ConfigError(f"Config key '{key}' must be <= {maximum}, got {value}")
        return value

    def _coerce_bool(self, key: str, value: Any) -> bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            norm = value.strip().lower()
            if norm in _TRUE_STRINGS:
                return True
            if norm in _FALSE_STRINGS:
                return False
        raise ConfigError(f"Config key '{key}' must be a bool")

    def _from_env(self, key: str) -> Any | None:
        """Get value from environment variables.

        Environment variable format: DIRARCHIVER_KEY_NAME
        Example: DIRARCHIVER_ARCHIVE_STRATEGY, DIRARCHIVER_EXCLUDE
        """
        env_key = f"{ENV_PREFIX}{key.upper().replace('.', '_')}"
        return os.environ.get(env_key)

    def _get_user_config(self) -> dict[str, Any]:
        if self._user_config is None:
            self._user_config = self._load_yaml(self.user_config_path)
        return self._user_config

    def _get_system_config(self) -> dict[str, Any]:
        if self._system_config is None:
            self._system_config = self._load_yaml(self.system_config_path)
        return self._system_config

    def _load_yaml(self, path: Path | None) -> dict[str, Any]:
        if path is None or not path.exists():
            return {}

        try:
            with open(path) as f:
                data = yaml.safe_load(f)
                return data if isinstance(data, dict) else {}
        except Exception as e:
            raise ConfigError(f"Failed to load config from {path}: {e}") from e

    def _get_nested(self, data: dict[str, Any], key: str) -> Any | None:
        """Get nested value using dot notation.

        Example:
            data = {'archive': {'strategy': 'bulk'}}
            _get_nested(data, 'archive.strategy') -> 'bulk'
        """
        current: Any = data
        for part in key.split("."):
            if not isinstance(current, dict):
                return None
            current = current.get(part)
            if current is None:
                return None
        return current

    @staticmethod
    def _default_config() -> dict[str, Any]:
        """Default configuration."""
        return {
            "root": ".",
            "exclude": [],
            "archive": {
                "strategy": "stream",
                "extension": "zip",
                "compression_level": 6,
                "chunk_size": 64 * 1024,
                "channel_capacity": 1024,
                "max_readers": 16,
                "on_read_error": "abort",
                "continue_on_error": False,
            },
            "paths": {
                "working_dir": None,
                "home_dir": None,
            },
            "logging": {
                "level": "normal",
                "color": True,
            },
        }


def parse_exclusions(value: Any) -> list[str]:
    """Split a delimited exclusion string (or list) into path strings.

    Blank items are dropped; order is preserved.
    """
    if value is None:
        return []
    if isinstance(value, str):
        items = value.split(",")
    elif isinstance(value, list | tuple):
        items = []
        for item in value:
            items.extend(str(item).split(","))
    else:
        raise ConfigError(f"Config key 'exclude' must be a list or string, got {type(value).__name__}")
    return [item.strip() for item in items if item.strip()]


def _default_user_config_path() -> Path | None:
    # The user file is optional; a missing home only disables it.
    try:
        return Path.home() / ".config" / "dirarchiver" / "config.yaml"
    except RuntimeError:
        return None
