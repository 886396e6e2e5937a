"""Pipeline settings dataclass and environment overrides."""

from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass, fields, replace
from typing import Any, Dict, Mapping

__all__ = [
    "DEFAULT_TRUNCATION_NOTICE",
    "PipelineSettings",
    "load_settings",
]

LOGGER = logging.getLogger(__name__)

DEFAULT_TRUNCATION_NOTICE = "\n\n[Content truncated due to length - please try with smaller sections]"

_BOOL_ENV_OVERRIDES: Mapping[str, str] = {
    "INKFLOW_REJECT_STALE_SELECTION": "reject_stale_selection",
    "INKFLOW_DEBUG_LOGGING": "debug_logging",
}
_INT_ENV_OVERRIDES: Mapping[str, str] = {
    "INKFLOW_MAX_CONTENT_LENGTH": "max_content_length",
    "INKFLOW_HISTORY_DEBOUNCE_MS": "history_debounce_ms",
    "INKFLOW_HISTORY_MAX_SIZE": "history_max_size",
    "INKFLOW_REPLAY_SETTLE_MS": "replay_settle_ms",
}
_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}
_MINIMUMS: Mapping[str, int] = {
    "max_content_length": 1,
    "history_debounce_ms": 0,
    "history_max_size": 1,
    "replay_settle_ms": 0,
}


@dataclass(slots=True)
class PipelineSettings:
    """Tunables for parsing, mutation and history behaviour."""

    max_content_length: int = 50_000
    truncation_notice: str = DEFAULT_TRUNCATION_NOTICE
    history_debounce_ms: int = 300
    history_max_size: int = 50
    replay_settle_ms: int = 100
    reject_stale_selection: bool = False
    debug_logging: bool = False

    @property
    def history_debounce_seconds(self) -> float:
        return self.history_debounce_ms / 1000.0

    @property
    def replay_settle_seconds(self) -> float:
        return self.replay_settle_ms / 1000.0

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


def load_settings(
    overrides: Mapping[str, Any] | None = None,
    *,
    environ: Mapping[str, str] | None = None,
) -> PipelineSettings:
    """Build settings from defaults, then environment, then explicit overrides."""

    settings = PipelineSettings()
    settings = _apply_env_overrides(settings, os.environ if environ is None else environ)
    if overrides:
        settings = _apply_overrides(settings, overrides, source="caller")
    return settings


def _apply_env_overrides(settings: PipelineSettings, environ: Mapping[str, str]) -> PipelineSettings:
    overrides: Dict[str, Any] = {}
    for env_name, field_name in _BOOL_ENV_OVERRIDES.items():
        value = environ.get(env_name)
        if value is not None:
            overrides[field_name] = value.strip().lower() in _TRUE_VALUES
    for env_name, field_name in _INT_ENV_OVERRIDES.items():
        value = environ.get(env_name)
        if value is None:
            continue
        try:
            overrides[field_name] = int(value, 10)
        except ValueError:
            LOGGER.warning(
                "Environment override %s=%s is not a valid integer",
                env_name,
                value,
            )
    if overrides:
        settings = _apply_overrides(settings, overrides, source="environment")
    return settings


def _apply_overrides(
    settings: PipelineSettings,
    overrides: Mapping[str, Any],
    *,
    source: str,
) -> PipelineSettings:
    known = {item.name for item in fields(PipelineSettings)}
    updates: Dict[str, Any] = {}
    for key, value in overrides.items():
        if key not in known:
            LOGGER.warning("Ignoring unknown %s setting %r", source, key)
            continue
        minimum = _MINIMUMS.get(key)
        if minimum is not None and (not isinstance(value, int) or isinstance(value, bool) or value < minimum):
            LOGGER.warning("Ignoring %s setting %s=%r (expected integer >= %d)", source, key, value, minimum)
            continue
        updates[key] = value
    if not updates:
        return settings
    LOGGER.debug("Applying %s settings overrides: %s", source, sorted(updates))
    return replace(settings, **updates)
