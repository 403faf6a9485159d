"""Pipeline orchestrator — load → normalize → filter → aggregate → assemble → export."""

from __future__ import annotations

from collections.abc import Sequence

import click

from patient_timeline.aggregation import AggregationEngine
from patient_timeline.assembler import AssembledTimeline, TimelineAssembler
from patient_timeline.config import TimelineConfig
from patient_timeline.exporters.base import Exporter
from patient_timeline.exporters.json import JsonExporter
from patient_timeline.exporters.stdout import StdoutExporter
from patient_timeline.filters import FilterPipeline
from patient_timeline.loaders import FileRecordLoader, RecordLoader
from patient_timeline.models import AggregationLevel, FilterCriteria, PatientData
from patient_timeline.transformer import Normalizer


def build_timeline(
    patient_data: PatientData,
    criteria: FilterCriteria | None = None,
    level: AggregationLevel | str | None = AggregationLevel.INDIVIDUAL,
    normalizer: Normalizer | None = None,
    filters: FilterPipeline | None = None,
    engine: AggregationEngine | None = None,
    assembler: TimelineAssembler | None = None,
) -> AssembledTimeline:
    """Pure transform from raw records to display-ready items.

    Same inputs always give the same, identically ordered output.
    """
    normalizer = normalizer or Normalizer()
    filters = filters or FilterPipeline()
    engine = engine or AggregationEngine()
    assembler = assembler or TimelineAssembler()

    normalized = normalizer.normalize_all(patient_data)
    filtered = filters.apply(normalized.events, criteria)
    entries = engine.aggregate(filtered, level)

    return AssembledTimeline(
        patient_id=patient_data.patient_id,
        items=assembler.assemble(entries),
        lanes=assembler.lanes(),
        level=AggregationLevel.coerce(level),
        rows_in=normalized.rows_in,
        skipped={c.kind.value: c.dropped for c in normalized.counts if c.dropped},
    )


class Pipeline:
    def __init__(
        self,
        config: TimelineConfig,
        loader: RecordLoader | None = None,
        exporters: Sequence[Exporter] | None = None,
    ) -> None:
        self._config = config
        self._loader = loader or FileRecordLoader(config.data_dir)
        self._normalizer = Normalizer()
        self._filters = FilterPipeline()
        self._engine = AggregationEngine()
        self._assembler = TimelineAssembler()
        self._exporters = list(exporters) if exporters is not None else self._build_exporters()

    def _build_exporters(self) -> Sequence[Exporter]:
        exporters: list[Exporter] = []
        if self._config.stdout.enabled:
            exporters.append(StdoutExporter())
        if self._config.json.enabled:
            exporters.append(JsonExporter())
        return exporters

    def load(self, patient_id: str) -> PatientData:
        click.echo(f"  [{self._loader.source_name()}] Loading patient {patient_id}...")
        data = self._loader.load(patient_id)
        click.echo(f"  Loaded {data.total_rows} records from {len(data.records)} tables")
        return data

    def build(
        self,
        patient_data: PatientData,
        criteria: FilterCriteria | None = None,
        level: AggregationLevel | str | None = None,
    ) -> AssembledTimeline:
        """Normalize, filter, aggregate and assemble, reporting skipped records."""
        timeline = build_timeline(
            patient_data,
            criteria,
            level or self._config.display.aggregation,
            normalizer=self._normalizer,
            filters=self._filters,
            engine=self._engine,
            assembler=self._assembler,
        )

        for kind, skipped in timeline.skipped.items():
            click.echo(
                click.style(
                    f"  ⚠️  {kind}: {skipped} records skipped (no usable date)",
                    fg="yellow",
                )
            )
        click.echo(f"  {timeline.level.label}: {len(timeline.items)} timeline items")
        return timeline

    def run(
        self,
        patient_id: str,
        criteria: FilterCriteria | None = None,
        level: AggregationLevel | str | None = None,
    ) -> AssembledTimeline:
        """Full pipeline: load, build and export."""
        timeline = self.build(self.load(patient_id), criteria, level)
        self.export(timeline)
        return timeline

    def export(self, timeline: AssembledTimeline) -> None:
        for exporter in self._exporters:
            exporter.export(timeline, self._config)
