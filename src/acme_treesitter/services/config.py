"""Daemon configuration dataclasses and YAML loading."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from ..errors import ConfigError

__all__ = [
    "BackoffSettings",
    "DaemonConfig",
    "FilenameHandler",
    "ConfigStore",
    "load_config",
]

LOGGER = logging.getLogger(__name__)
_ENV_OVERRIDES: Mapping[str, str] = {
    "ACME_TREESITTER_LAYER_NAME": "layer_name",
    "ACME_TREESITTER_LOG_DIR": "log_dir",
    "ACME_TREESITTER_STYLE_FILE": "style_file",
    "ACME_TREESITTER_QUERIES_DIR": "queries_dir",
}
_BOOL_ENV_OVERRIDES: Mapping[str, str] = {
    "ACME_TREESITTER_DEBUG": "debug",
}
_FLOAT_ENV_OVERRIDES: Mapping[str, str] = {
    "ACME_TREESITTER_DEBOUNCE_SECONDS": "debounce_seconds",
}
_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}


@dataclass(slots=True)
class BackoffSettings:
    """Base and cap for a full-jitter backoff, in seconds."""

    base_seconds: float = 0.2
    cap_seconds: float = 30.0


@dataclass(slots=True)
class FilenameHandler:
    """Maps a filename regular expression to a grammar language id.

    Handlers are tried in order and the first match wins.
    """

    pattern: str
    language_id: str


@dataclass(slots=True)
class DaemonConfig:
    """Everything the daemon reads from its YAML configuration file."""

    filename_handlers: list[FilenameHandler] = field(default_factory=list)
    style_file: str | None = None
    queries_dir: str | None = None
    layer_name: str = "treesitter"
    debounce_seconds: float = 0.2
    session_backoff: BackoffSettings = field(default_factory=BackoffSettings)
    reconnect_backoff: BackoffSettings = field(default_factory=BackoffSettings)
    cleanup_timeout: float = 2.0
    acme_service: str = "acme"
    styles_service: str = "acme-styles"
    log_dir: str | None = None
    debug: bool = False


class ConfigStore:
    """Reads :class:`DaemonConfig` from a YAML file."""

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path).expanduser()

    @property
    def path(self) -> Path:
        return self._path

    def load(self, *, overrides: Mapping[str, Any] | None = None) -> DaemonConfig:
        """Parse the file, then apply explicit and environment overrides."""

        payload = self._read_payload()
        config = _build_config(payload, source=str(self._path))
        if overrides:
            config = _apply_overrides(config, overrides, source="CLI")
        config = _apply_env_overrides(config)
        _validate(config)
        LOGGER.debug(
            "Configuration loaded from %s: %d filename handlers, layer=%s",
            self._path,
            len(config.filename_handlers),
            config.layer_name,
        )
        return config

    def _read_payload(self) -> Dict[str, Any]:
        try:
            text = self._path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise ConfigError(f"cannot read {self._path}: {exc}") from exc
        try:
            payload = YAML(typ="safe").load(text)
        except YAMLError as exc:
            raise ConfigError(f"parse {self._path}: {exc}") from exc
        if payload is None:
            return {}
        if not isinstance(payload, Mapping):
            raise ConfigError(f"{self._path}: top level must be a mapping")
        return dict(payload)


def load_config(path: Path | str, *, overrides: Mapping[str, Any] | None = None) -> DaemonConfig:
    return ConfigStore(path).load(overrides=overrides)


def _build_config(payload: Mapping[str, Any], *, source: str) -> DaemonConfig:
    allowed = {item.name for item in fields(DaemonConfig)}
    data: Dict[str, Any] = {}
    for key, value in payload.items():
        if key not in allowed:
            LOGGER.debug("Ignoring unknown configuration key %r in %s", key, source)
            continue
        data[key] = value

    data["filename_handlers"] = _parse_handlers(data.get("filename_handlers"), source)
    for name in ("session_backoff", "reconnect_backoff"):
        if name in data:
            data[name] = _parse_backoff(data[name], name, source)
    try:
        return DaemonConfig(**data)
    except TypeError as exc:  # pragma: no cover - guarded by the field filter above
        raise ConfigError(f"{source}: {exc}") from exc


def _parse_handlers(raw: Any, source: str) -> list[FilenameHandler]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ConfigError(f"{source}: filename_handlers must be a list")
    handlers: list[FilenameHandler] = []
    for position, item in enumerate(raw):
        if not isinstance(item, Mapping):
            raise ConfigError(f"{source}: filename_handlers[{position}] must be a mapping")
        pattern = item.get("pattern")
        language_id = item.get("language_id")
        if not isinstance(pattern, str) or not isinstance(language_id, str):
            raise ConfigError(f"{source}: filename_handlers[{position}] needs string pattern and language_id")
        handlers.append(FilenameHandler(pattern=pattern, language_id=language_id))
    return handlers


def _parse_backoff(raw: Any, name: str, source: str) -> BackoffSettings:
    if isinstance(raw, BackoffSettings):
        return raw
    if not isinstance(raw, Mapping):
        raise ConfigError(f"{source}: {name} must be a mapping")
    try:
        return BackoffSettings(**{key: float(value) for key, value in raw.items()})
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{source}: invalid {name}: {exc}") from exc


def _apply_overrides(config: DaemonConfig, overrides: Mapping[str, Any], *, source: str) -> DaemonConfig:
    allowed = {item.name for item in fields(DaemonConfig)}
    filtered = {key: value for key, value in overrides.items() if key in allowed and value is not None}
    if filtered:
        LOGGER.debug("Applying %s configuration overrides: %s", source, sorted(filtered))
        config = replace(config, **filtered)
    return config


def _apply_env_overrides(config: DaemonConfig) -> DaemonConfig:
    overrides: Dict[str, Any] = {}
    for env_name, field_name in _ENV_OVERRIDES.items():
        value = os.environ.get(env_name)
        if value is not None:
            overrides[field_name] = value
    for env_name, field_name in _BOOL_ENV_OVERRIDES.items():
        value = os.environ.get(env_name)
        if value is not None:
            overrides[field_name] = value.strip().lower() in _TRUE_VALUES
    for env_name, field_name in _FLOAT_ENV_OVERRIDES.items():
        value = os.environ.get(env_name)
        if value is None:
            continue
        try:
            overrides[field_name] = float(value)
        except ValueError:
            LOGGER.warning("Environment override %s=%s is not a valid float", env_name, value)
    if overrides:
        config = _apply_overrides(config, overrides, source="environment")
    return config


def _validate(config: DaemonConfig) -> None:
    numeric = {
        "debounce_seconds": config.debounce_seconds,
        "cleanup_timeout": config.cleanup_timeout,
        "session_backoff.base_seconds": config.session_backoff.base_seconds,
        "session_backoff.cap_seconds": config.session_backoff.cap_seconds,
        "reconnect_backoff.base_seconds": config.reconnect_backoff.base_seconds,
        "reconnect_backoff.cap_seconds": config.reconnect_backoff.cap_seconds,
    }
    for name, value in numeric.items():
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ConfigError(f"{name} must be a number, got {value!r}")
        if value < 0:
            raise ConfigError(f"{name} must not be negative")
    if not isinstance(config.layer_name, str) or not config.layer_name.strip():
        raise ConfigError("layer_name must be a non-empty string")
