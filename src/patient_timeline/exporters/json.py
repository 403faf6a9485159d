"""JSON exporter — lane table plus ordered items for a browser renderer."""

from __future__ import annotations

import json
from pathlib import Path

import click

from patient_timeline.assembler import AssembledTimeline
from patient_timeline.config import TimelineConfig
from patient_timeline.exporters.base import Exporter


class JsonExporter(Exporter):
    def __init__(self, path: Path | None = None) -> None:
        self._path = path

    def export(self, timeline: AssembledTimeline, config: TimelineConfig) -> None:
        """Write to the explicit path, else the configured one; '-' means stdout."""
        payload = json.dumps(timeline.to_dict(), indent=2, ensure_ascii=False)
        target = self._path or Path(config.json.path).expanduser()

        if str(target) == "-":
            click.echo(payload)
            return

        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(payload + "\n", encoding="utf-8")
        click.echo(f"  Wrote {len(timeline.items)} items to {target}")
