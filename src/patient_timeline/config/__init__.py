"""Configuration management for the patient timeline."""

from __future__ import annotations

from patient_timeline.config.loader import load_config
from patient_timeline.config.models import (
    DisplayConfig,
    FilterDefaults,
    JsonExporterConfig,
    StdoutExporterConfig,
    TimelineConfig,
)
from patient_timeline.config.serializer import generate_config_toml
from patient_timeline.config.validation import ConfigValidator, ValidationError

__all__ = [
    "TimelineConfig",
    "DisplayConfig",
    "FilterDefaults",
    "StdoutExporterConfig",
    "JsonExporterConfig",
    "ConfigValidator",
    "ValidationError",
    "load_config",
    "generate_config_toml",
]
