"""Configuration dataclasses for the patient timeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_CONFIG_DIR = Path.home() / ".patient-timeline"
DEFAULT_CONFIG_PATH = DEFAULT_CONFIG_DIR / "config.toml"
DEFAULT_DATA_DIR = DEFAULT_CONFIG_DIR / "data"
DEFAULT_JSON_PATH = DEFAULT_CONFIG_DIR / "timeline.json"


@dataclass
class DisplayConfig:
    """Default aggregation level and visible lanes."""

    aggregation: str = "individual"
    lanes: list[str] = field(default_factory=list)  # empty means every lane


@dataclass
class FilterDefaults:
    """Filters applied when the command line does not override them."""

    source_systems: list[str] = field(default_factory=list)  # empty means all


@dataclass
class StdoutExporterConfig:
    """Stdout exporter configuration."""

    enabled: bool = True
    group_by: str = "flat"


@dataclass
class JsonExporterConfig:
    """JSON exporter configuration."""

    enabled: bool = False
    path: str = str(DEFAULT_JSON_PATH)


@dataclass
class TimelineConfig:
    """Main patient timeline configuration."""

    data_dir: Path = field(default_factory=lambda: DEFAULT_DATA_DIR)
    display: DisplayConfig = field(default_factory=DisplayConfig)
    filters: FilterDefaults = field(default_factory=FilterDefaults)
    stdout: StdoutExporterConfig = field(default_factory=StdoutExporterConfig)
    json: JsonExporterConfig = field(default_factory=JsonExporterConfig)
