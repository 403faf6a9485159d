"""TOML serialization for patient timeline configuration."""

from __future__ import annotations

from patient_timeline.config.models import TimelineConfig


def _escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


def _format_list(values: list[str]) -> str:
    return "[" + ", ".join(f'"{_escape(v)}"' for v in values) + "]"


def generate_config_toml(config: TimelineConfig) -> str:
    """Generate TOML string from config for writing to file."""
    return f"""[general]
data_dir = "{_escape(str(config.data_dir))}"

[display]
# individual, daily or weekly
aggregation = "{config.display.aggregation}"
# empty list shows every lane
lanes = {_format_list(config.display.lanes)}

[filters]
# CDW source codes to keep; empty list (or "ALL") keeps every source
source_systems = {_format_list(config.filters.source_systems)}

[exporters.stdout]
enabled = {str(config.stdout.enabled).lower()}
group_by = "{config.stdout.group_by}"

[exporters.json]
enabled = {str(config.json.enabled).lower()}
path = "{_escape(config.json.path)}"
"""
