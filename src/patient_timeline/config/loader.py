"""Load and validate patient timeline configuration from TOML files."""

from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Any

from patient_timeline.config.models import (
    DEFAULT_CONFIG_PATH,
    DEFAULT_DATA_DIR,
    DEFAULT_JSON_PATH,
    DisplayConfig,
    FilterDefaults,
    JsonExporterConfig,
    StdoutExporterConfig,
    TimelineConfig,
)
from patient_timeline.config.validation import ConfigValidator


def load_config(path: Path = DEFAULT_CONFIG_PATH) -> TimelineConfig:
    """Load config from TOML file, validate, and return."""
    if not path.exists():
        msg = f"Config not found at {path}. Run 'patient-timeline init' to create one."
        raise FileNotFoundError(msg)

    with open(path, "rb") as f:
        data = tomllib.load(f)

    config = _from_dict(data)

    validator = ConfigValidator()
    errors = validator.validate(config)
    if errors:
        error_msgs = "\n".join(f"  {e.path}: {e.message}" for e in errors)
        msg = f"Config validation failed:\n{error_msgs}"
        raise ValueError(msg)

    return config


def _from_dict(data: dict[str, Any]) -> TimelineConfig:
    """Convert TOML dict to TimelineConfig dataclass."""
    general = data.get("general", {})
    display = data.get("display", {})
    filters = data.get("filters", {})
    stdout_data = data.get("exporters", {}).get("stdout", {})
    json_data = data.get("exporters", {}).get("json", {})

    data_dir = Path(general.get("data_dir", str(DEFAULT_DATA_DIR))).expanduser()

    return TimelineConfig(
        data_dir=data_dir,
        display=DisplayConfig(
            aggregation=display.get("aggregation", "individual"),
            lanes=display.get("lanes", []),
        ),
        filters=FilterDefaults(
            source_systems=filters.get("source_systems", []),
        ),
        stdout=StdoutExporterConfig(
            enabled=stdout_data.get("enabled", True),
            group_by=stdout_data.get("group_by", "flat"),
        ),
        json=JsonExporterConfig(
            enabled=json_data.get("enabled", False),
            path=json_data.get("path", str(DEFAULT_JSON_PATH)),
        ),
    )
