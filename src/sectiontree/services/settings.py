"""Persisted user settings for section scanning and tracking."""

from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Callable, Dict, Mapping

__all__ = ["Settings", "SettingsStore", "DEFAULT_SETTINGS_PATH"]

LOGGER = logging.getLogger(__name__)

DEFAULT_SETTINGS_PATH = Path.home() / ".sectiontree" / "settings.json"
_SETTINGS_VERSION = 1
_DEFAULT_DEBOUNCE_SECONDS = 0.5
_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}


def _env_bool(value: str) -> bool:
    return value.strip().lower() in _TRUE_VALUES


# (variable, settings field, parser, description used in warnings)
_ENV_OVERRIDES: tuple[tuple[str, str, Callable[[str], Any], str], ...] = (
    ("SECTIONTREE_DEBOUNCE_SECONDS", "debounce_seconds", float, "float"),
    ("SECTIONTREE_STRICT_NESTING", "strict_nesting", _env_bool, "boolean"),
    ("SECTIONTREE_DEBUG_LOGGING", "debug_logging", _env_bool, "boolean"),
)


@dataclass(slots=True)
class Settings:
    """User-configurable settings persisted between sessions.

    ``cell_markers`` maps a language name to the regular expression that
    opens a cell, extending or replacing the built-in MATLAB and Python
    markers. ``language_suffixes`` maps file suffixes such as ``".jl"`` to a
    language name.
    """

    debounce_seconds: float = _DEFAULT_DEBOUNCE_SECONDS
    strict_nesting: bool = False
    debug_logging: bool = False
    cell_markers: dict[str, str] = field(default_factory=dict)
    language_suffixes: dict[str, str] = field(default_factory=dict)

    def normalized(self) -> "Settings":
        """Return a copy with clamped timings and validated marker tables.

        Values of the wrong type (hand-edited JSON, for instance) are replaced
        by their defaults with a warning.
        """

        markers: dict[str, str] = {}
        for language, pattern in _mapping_field("cell_markers", self.cell_markers).items():
            try:
                re.compile(pattern)
            except (re.error, TypeError) as exc:
                LOGGER.warning("Ignoring cell marker for %s: invalid pattern %r (%s)", language, pattern, exc)
                continue
            markers[str(language).strip().lower()] = pattern
        suffixes = {
            _normalize_suffix(suffix): str(language).strip().lower()
            for suffix, language in _mapping_field("language_suffixes", self.language_suffixes).items()
            if str(suffix).strip()
        }
        try:
            debounce = max(0.0, float(self.debounce_seconds))
        except (TypeError, ValueError):
            LOGGER.warning("Ignoring debounce_seconds=%r: not a number", self.debounce_seconds)
            debounce = _DEFAULT_DEBOUNCE_SECONDS
        return replace(
            self,
            debounce_seconds=debounce,
            strict_nesting=_bool_field("strict_nesting", self.strict_nesting),
            debug_logging=_bool_field("debug_logging", self.debug_logging),
            cell_markers=markers,
            language_suffixes=suffixes,
        )


class SettingsStore:
    """Reads and writes :class:`Settings` as versioned JSON."""

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or DEFAULT_SETTINGS_PATH

    @property
    def path(self) -> Path:
        return self._path

    def load(self, *, overrides: Mapping[str, Any] | None = None) -> Settings:
        """Return persisted settings with ``overrides`` then environment variables applied.

        A payload written by an older version (or none) is rewritten in the
        current format.
        """

        payload = self._read_payload()
        settings = _settings_from_payload(payload).normalized()
        if payload and payload.get("version") != _SETTINGS_VERSION:
            try:
                self.save(settings)
            except OSError as exc:
                LOGGER.warning("Could not rewrite settings file %s: %s", self._path, exc)

        if overrides:
            settings = _merge(settings, overrides, source="CLI")
        settings = _merge(settings, _environment_overrides(), source="environment")
        return settings.normalized()

    def save(self, settings: Settings) -> Path:
        """Write ``settings`` through a temporary file so readers never see partial JSON."""

        payload = {"version": _SETTINGS_VERSION, **asdict(settings)}
        self._path.parent.mkdir(parents=True, exist_ok=True)
        staging = self._path.with_suffix(".tmp")
        staging.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
        staging.replace(self._path)
        LOGGER.debug("Settings saved to %s", self._path)
        return self._path

    def _read_payload(self) -> Dict[str, Any]:
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError as exc:
            LOGGER.warning("Settings file %s is not valid JSON: %s", self._path, exc)
            return {}
        if not isinstance(payload, dict):
            LOGGER.warning("Settings file %s does not contain an object", self._path)
            return {}
        return payload


def _settings_from_payload(payload: Mapping[str, Any]) -> Settings:
    if not payload:
        return Settings()
    known = _filter_fields(payload)
    ignored = sorted(set(payload) - set(known) - {"version"})
    if ignored:
        LOGGER.debug("Ignoring unknown settings fields: %s", ignored)
    try:
        return Settings(**known)
    except TypeError as exc:
        LOGGER.warning("Settings payload contained unexpected data: %s", exc)
        return Settings()


def _merge(settings: Settings, overrides: Mapping[str, Any], *, source: str) -> Settings:
    changes = {key: value for key, value in _filter_fields(overrides).items() if value is not None}
    if not changes:
        return settings
    LOGGER.debug("Applying %s settings overrides: %s", source, sorted(changes))
    return replace(settings, **changes)


def _environment_overrides() -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    for variable, field_name, parse, kind in _ENV_OVERRIDES:
        raw = os.environ.get(variable)
        if raw is None:
            continue
        try:
            overrides[field_name] = parse(raw)
        except ValueError:
            LOGGER.warning("Environment override %s=%s is not a valid %s", variable, raw, kind)
    return overrides


def _filter_fields(payload: Mapping[str, Any]) -> Dict[str, Any]:
    allowed = {item.name for item in fields(Settings)}
    return {key: value for key, value in payload.items() if key in allowed}


def _normalize_suffix(suffix: Any) -> str:
    text = str(suffix).strip().lower()
    return text if text.startswith(".") else f".{text}"


def _mapping_field(name: str, value: Any) -> Mapping[Any, Any]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        LOGGER.warning("Ignoring %s=%r: expected an object", name, value)
        return {}
    return value


def _bool_field(name: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    LOGGER.warning("Ignoring %s=%r: expected true or false", name, value)
    return False
