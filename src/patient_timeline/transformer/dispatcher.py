"""Normalizer orchestrator — resolves dates, then dispatches to kind-specific parsers."""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any

from patient_timeline.dates import DateResolver
from patient_timeline.models import Event, Kind, PatientData
from patient_timeline.transformer.formatter import number, text
from patient_timeline.transformer.parser import DateSpan, Parser, Record

# Candidate start columns, first resolvable wins
START_COLUMNS: dict[Kind, tuple[str, ...]] = {
    Kind.ENCOUNTER: ("ADMIT_DATE",),
    Kind.DIAGNOSIS: ("DX_DATE", "ADMIT_DATE"),
    Kind.PROCEDURE: ("PX_DATE", "ADMIT_DATE"),
    Kind.LAB: ("RESULT_DATE",),
    Kind.PRESCRIBING: ("RX_START_DATE", "RX_ORDER_DATE"),
    Kind.DISPENSING: ("DISPENSE_DATE",),
    Kind.VITAL: ("MEASURE_DATE",),
    Kind.CONDITION: ("ONSET_DATE", "REPORT_DATE"),
    Kind.DEATH: ("DEATH_DATE",),
    Kind.BIRTH: ("BIRTH_DATE",),
}

END_COLUMNS: dict[Kind, str] = {
    Kind.ENCOUNTER: "DISCHARGE_DATE",
    Kind.PRESCRIBING: "RX_END_DATE",
}

# Secondary dates shown in tooltips, resolved alongside the span
EXTRA_COLUMNS: dict[Kind, tuple[str, ...]] = {
    Kind.CONDITION: ("ONSET_DATE", "REPORT_DATE", "RESOLVE_DATE"),
}

DAYS_SUPPLY_COLUMN = "RX_DAYS_SUPPLY"

ParseFn = Callable[[Record, DateSpan, str], Event]


@dataclass(frozen=True)
class KindCount:
    """Rows in versus events out for one record kind."""

    kind: Kind
    rows_in: int
    events_out: int

    @property
    def dropped(self) -> int:
        return self.rows_in - self.events_out


@dataclass
class NormalizationResult:
    events: list[Event] = field(default_factory=list)
    counts: list[KindCount] = field(default_factory=list)

    @property
    def rows_in(self) -> int:
        return sum(c.rows_in for c in self.counts)

    @property
    def dropped(self) -> int:
        return sum(c.dropped for c in self.counts)


class Normalizer:
    """Convert raw per-table records into canonical events.

    Every call runs two ordered phases: all dates of the batch are resolved
    first, then each surviving record is formatted. Records whose required
    date cannot be resolved are dropped, never raised on.
    """

    def __init__(
        self,
        resolver: DateResolver | None = None,
        parser: Parser | None = None,
    ) -> None:
        self._resolver = resolver or DateResolver()
        self._parser = parser or Parser()
        self._dispatch: dict[Kind, ParseFn] = {
            Kind.ENCOUNTER: self._parser.parse_encounter,
            Kind.DIAGNOSIS: self._parser.parse_diagnosis,
            Kind.PROCEDURE: self._parser.parse_procedure,
            Kind.LAB: self._parser.parse_lab,
            Kind.PRESCRIBING: self._parser.parse_prescribing,
            Kind.DISPENSING: self._parser.parse_dispensing,
            Kind.VITAL: self._parser.parse_vital,
            Kind.CONDITION: self._parser.parse_condition,
            Kind.DEATH: self._parser.parse_death,
            Kind.BIRTH: self._parser.parse_birth,
        }
        missing = set(Kind) - set(self._dispatch)
        if missing:
            msg = f"No parser registered for: {', '.join(sorted(k.value for k in missing))}"
            raise TypeError(msg)

    @property
    def kinds(self) -> frozenset[Kind]:
        return frozenset(self._dispatch)

    def normalize(self, records: Sequence[Record], kind: Kind) -> list[Event]:
        """Normalize one table's records; unresolvable rows are omitted."""
        spans = self.resolve_spans(records, kind)
        parse = self._dispatch[kind]

        events: list[Event] = []
        seen: set[str] = set()
        for index, (record, span) in enumerate(zip(records, spans, strict=True)):
            if span is None:
                continue
            event = parse(record, span, self._source_key(record, kind, index))
            if event.id in seen:
                continue
            seen.add(event.id)
            events.append(event)
            if kind.is_life_marker:
                break
        return events

    def normalize_all(self, patient_data: PatientData) -> NormalizationResult:
        """Normalize every table of a patient, reporting rows dropped per kind."""
        result = NormalizationResult()
        for kind in Kind:
            rows = patient_data.rows(kind)
            events = self.normalize(rows, kind)
            result.events.extend(events)
            result.counts.append(KindCount(kind=kind, rows_in=len(rows), events_out=len(events)))
        return result

    def resolve_spans(self, records: Sequence[Record], kind: Kind) -> list[DateSpan | None]:
        """Phase one: bulk date resolution for a whole batch."""
        starts: list[date | None] = [None] * len(records)
        for column in START_COLUMNS[kind]:
            resolved = self._column(records, column)
            starts = [s if s is not None else r for s, r in zip(starts, resolved, strict=True)]

        end_column = END_COLUMNS.get(kind)
        ends = self._column(records, end_column) if end_column else [None] * len(records)

        extras: list[dict[str, date | None]] = [{} for _ in records]
        for column in EXTRA_COLUMNS.get(kind, ()):
            for extra, value in zip(extras, self._column(records, column), strict=True):
                extra[column] = value

        spans: list[DateSpan | None] = []
        for record, start, end, extra in zip(records, starts, ends, extras, strict=True):
            if start is None:
                spans.append(None)
                continue
            if end is None and kind is Kind.PRESCRIBING:
                end = self._supply_end(start, record.get(DAYS_SUPPLY_COLUMN))
            if end is not None and end < start:
                end = None
            spans.append(DateSpan(start=start, end=end, extra=extra or None))
        return spans

    def _column(self, records: Sequence[Record], column: str) -> list[date | None]:
        return self._resolver.resolve_many(r.get(column) for r in records)

    @staticmethod
    def _supply_end(start: date, days_supply: Any) -> date | None:
        days = number(days_supply)
        if days is None or days <= 0:
            return None
        return start + timedelta(days=int(days))

    @staticmethod
    def _source_key(record: Mapping[str, Any], kind: Kind, index: int) -> str:
        return text(record.get(kind.id_column)) or f"row{index}"
