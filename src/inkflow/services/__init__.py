"""Service layer helpers (settings, telemetry)."""

from .settings import PipelineSettings, load_settings

__all__ = ["PipelineSettings", "load_settings"]
