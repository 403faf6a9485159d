"""Summaries of a patient's raw record set: counts, sources and date span."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from datetime import date, timedelta

from patient_timeline.dates import DateResolver
from patient_timeline.models import DateBounds, Kind, Lane, PatientData
from patient_timeline.transformer.dispatcher import END_COLUMNS, EXTRA_COLUMNS, START_COLUMNS
from patient_timeline.transformer.formatter import text
from patient_timeline.transformer.parser import SOURCE_SYSTEM_COLUMN

FALLBACK_SPAN_DAYS = 365


@dataclass(frozen=True)
class SourceSystemCount:
    code: str
    count: int
    description: str | None = None

    @property
    def display_label(self) -> str:
        if self.description:
            return f"{self.description} ({self.code}) - {self.count} events"
        return f"{self.code} - {self.count} events"


def count_records(patient_data: PatientData) -> dict[Lane, int]:
    """Raw row count per lane, before any normalization or filtering."""
    counts: dict[Lane, int] = {}
    for kind in Kind:
        if kind.lane is not None:
            counts[kind.lane] = len(patient_data.rows(kind))
    return counts


def source_systems(patient_data: PatientData) -> list[SourceSystemCount]:
    """Distinct source-system codes across all tables, most frequent first."""
    counter: Counter[str] = Counter()
    for rows in patient_data.records.values():
        for row in rows:
            code = text(row.get(SOURCE_SYSTEM_COLUMN))
            if code:
                counter[code] += 1

    ranked = sorted(counter.items(), key=lambda item: (-item[1], item[0]))
    return [
        SourceSystemCount(
            code=code,
            count=count,
            description=patient_data.source_descriptions.get(code),
        )
        for code, count in ranked
    ]


def date_span(
    patient_data: PatientData,
    today: date | None = None,
    resolver: DateResolver | None = None,
) -> DateBounds:
    """Earliest and latest resolvable date over every date column.

    Falls back to the year ending today when nothing resolves.
    """
    resolver = resolver or DateResolver()
    found: list[date] = []
    for kind in Kind:
        columns = set(START_COLUMNS[kind]) | set(EXTRA_COLUMNS.get(kind, ()))
        if kind in END_COLUMNS:
            columns.add(END_COLUMNS[kind])
        rows = patient_data.rows(kind)
        for column in sorted(columns):
            found.extend(d for d in resolver.resolve_many(r.get(column) for r in rows) if d)

    if not found:
        today = today or date.today()
        return DateBounds(start=today - timedelta(days=FALLBACK_SPAN_DAYS), end=today)
    return DateBounds(start=min(found), end=max(found))
