"""Engine configuration loading and validation.

Reads a TOML file, resolves ``${VAR_NAME}`` references from the environment
and returns a validated :class:`EngineConfig`.
"""

from __future__ import annotations

import os
import re
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")
_LOG_FORMATS = ("text", "json")

DEFAULT_CONFIG_PATH = Path("timeblocks.toml")


class ConfigError(Exception):
    """Raised when configuration is missing, malformed, or invalid."""


@dataclass
class LoggingConfig:
    """Logging configuration from the [logging] section."""

    level: str = "INFO"
    format: str = "text"  # "text" or "json"
    log_root: str | None = None


@dataclass
class StoreConfig:
    """Remote event store from the [store] section."""

    base_url: str
    api_key: str | None = None
    timeout_seconds: float = 30.0


@dataclass
class CalendarSection:
    """The [calendar] section.

    ``timezone`` is the zone whose offset the time normalizer captures; the
    host's local zone is used when it is unset.
    """

    name: str
    timezone: str | None = None


@dataclass
class EngineConfig:
    calendar: CalendarSection
    store: StoreConfig
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def resolve_env_vars(value: Any) -> Any:
    """Recursively resolve ``${VAR_NAME}`` references in config values.

    Walks dicts, lists, and strings. Non-string leaves pass through unchanged.

    Raises
    ------
    ConfigError
        If a referenced environment variable is not set.
    """
    if isinstance(value, dict):
        return {k: resolve_env_vars(v) for k, v in value.items()}

    if isinstance(value, list):
        return [resolve_env_vars(item) for item in value]

    if isinstance(value, str):
        return _resolve_string(value)

    return value


def _resolve_string(s: str) -> str:
    """Replace all ``${VAR_NAME}`` occurrences, reporting every missing one at once."""
    missing: list[str] = []

    def _replace(match: re.Match) -> str:
        var_name = match.group(1)
        env_value = os.environ.get(var_name)
        if env_value is None:
            missing.append(var_name)
            return match.group(0)
        return env_value

    result = _ENV_VAR_PATTERN.sub(_replace, s)

    if missing:
        vars_str = ", ".join(missing)
        raise ConfigError(
            f"Unresolved environment variable(s) in config value: {vars_str} (original: {s!r})"
        )

    return result


def _require_table(data: dict[str, Any], name: str) -> dict[str, Any]:
    section = data.get(name)
    if not isinstance(section, dict):
        raise ConfigError(f"Missing [{name}] section in config")
    return section


def _optional_string(section: dict[str, Any], key: str, path: str) -> str | None:
    value = section.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ConfigError(f"{path} must be a string when set")
    return value.strip() or None


def _parse_calendar(data: dict[str, Any]) -> CalendarSection:
    section = _require_table(data, "calendar")
    name = section.get("name")
    if not isinstance(name, str) or not name.strip():
        raise ConfigError("Missing required field: calendar.name")

    timezone = _optional_string(section, "timezone", "calendar.timezone")
    if timezone is not None:
        try:
            ZoneInfo(timezone)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ConfigError(f"calendar.timezone is not a known zone: {timezone!r}") from exc
    return CalendarSection(name=name.strip(), timezone=timezone)


def _parse_store(data: dict[str, Any]) -> StoreConfig:
    section = _require_table(data, "store")
    base_url = section.get("base_url")
    if not isinstance(base_url, str) or not base_url.strip():
        raise ConfigError("Missing required field: store.base_url")
    if not base_url.startswith(("http://", "https://")):
        raise ConfigError(f"store.base_url must be an http(s) URL, got {base_url!r}")

    timeout = section.get("timeout_seconds", 30.0)
    if isinstance(timeout, bool) or not isinstance(timeout, int | float) or timeout <= 0:
        raise ConfigError(
            f"Invalid store.timeout_seconds: {timeout!r}. Must be a positive number."
        )
    return StoreConfig(
        base_url=base_url.strip(),
        api_key=_optional_string(section, "api_key", "store.api_key"),
        timeout_seconds=float(timeout),
    )


def _parse_logging(data: dict[str, Any]) -> LoggingConfig:
    section = data.get("logging", {})
    if not isinstance(section, dict):
        raise ConfigError("[logging] must be a table")
    level = section.get("level", "INFO")
    fmt = section.get("format", "text")
    if not isinstance(level, str) or not level.strip():
        raise ConfigError("logging.level must be a non-empty string")
    if fmt not in _LOG_FORMATS:
        raise ConfigError(f"logging.format must be one of {', '.join(_LOG_FORMATS)}, got {fmt!r}")
    return LoggingConfig(
        level=level.strip().upper(),
        format=fmt,
        log_root=_optional_string(section, "log_root", "logging.log_root"),
    )


def parse_config(data: dict[str, Any]) -> EngineConfig:
    """Validate an already-parsed TOML document."""
    data = resolve_env_vars(data)
    return EngineConfig(
        calendar=_parse_calendar(data),
        store=_parse_store(data),
        logging=_parse_logging(data),
    )


def load_config(path: Path = DEFAULT_CONFIG_PATH) -> EngineConfig:
    """Load and validate the TOML config at *path*.

    Raises
    ------
    ConfigError
        If the file is missing, contains invalid TOML, or lacks required fields.
    """
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")

    try:
        data = tomllib.loads(path.read_bytes().decode())
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Invalid TOML in {path}: {exc}") from exc

    return parse_config(data)
