"""Core data models for the timeline pipeline: raw records → events → timeline items."""

from __future__ import annotations

from collections.abc import Collection, Mapping
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Self

MEDICATIONS = "medications"


class Lane(str, Enum):
    """Display track an in-lane event is drawn on, in display order."""

    ENCOUNTERS = "encounters"
    DIAGNOSES = "diagnoses"
    PROCEDURES = "procedures"
    LABS = "labs"
    PRESCRIBING = "prescribing"
    DISPENSING = "dispensing"
    VITALS = "vitals"
    CONDITIONS = "conditions"

    @property
    def label(self) -> str:
        return LANE_LABELS[self]

    @property
    def order(self) -> int:
        return list(Lane).index(self)


LANE_LABELS: dict[Lane, str] = {
    Lane.ENCOUNTERS: "Encounters",
    Lane.DIAGNOSES: "Diagnoses",
    Lane.PROCEDURES: "Procedures",
    Lane.LABS: "Labs",
    Lane.PRESCRIBING: "Prescriptions",
    Lane.DISPENSING: "Dispensing",
    Lane.VITALS: "Vitals",
    Lane.CONDITIONS: "Conditions",
}


class Kind(str, Enum):
    """Clinical category of the record an event came from."""

    ENCOUNTER = "encounter"
    DIAGNOSIS = "diagnosis"
    PROCEDURE = "procedure"
    LAB = "lab"
    PRESCRIBING = "prescribing"
    DISPENSING = "dispensing"
    VITAL = "vital"
    CONDITION = "condition"
    DEATH = "death"
    BIRTH = "birth"

    @property
    def table(self) -> str:
        return _KIND_TABLES[self][0]

    @property
    def id_column(self) -> str:
        return _KIND_TABLES[self][1]

    @property
    def lane(self) -> Lane | None:
        return _KIND_LANES.get(self)

    @property
    def is_life_marker(self) -> bool:
        return self in (Kind.DEATH, Kind.BIRTH)


_KIND_TABLES: dict[Kind, tuple[str, str]] = {
    Kind.ENCOUNTER: ("ENCOUNTER", "ENCOUNTERID"),
    Kind.DIAGNOSIS: ("DIAGNOSIS", "DIAGNOSISID"),
    Kind.PROCEDURE: ("PROCEDURES", "PROCEDURESID"),
    Kind.LAB: ("LAB_RESULT_CM", "LAB_RESULT_CM_ID"),
    Kind.PRESCRIBING: ("PRESCRIBING", "PRESCRIBINGID"),
    Kind.DISPENSING: ("DISPENSING", "DISPENSINGID"),
    Kind.VITAL: ("VITAL", "VITALID"),
    Kind.CONDITION: ("CONDITION", "CONDITIONID"),
    Kind.DEATH: ("DEATH", "PATID"),
    Kind.BIRTH: ("DEMOGRAPHIC", "PATID"),
}

_KIND_LANES: dict[Kind, Lane] = {
    Kind.ENCOUNTER: Lane.ENCOUNTERS,
    Kind.DIAGNOSIS: Lane.DIAGNOSES,
    Kind.PROCEDURE: Lane.PROCEDURES,
    Kind.LAB: Lane.LABS,
    Kind.PRESCRIBING: Lane.PRESCRIBING,
    Kind.DISPENSING: Lane.DISPENSING,
    Kind.VITAL: Lane.VITALS,
    Kind.CONDITION: Lane.CONDITIONS,
}


class Shape(str, Enum):
    POINT = "point"
    RANGE = "range"
    LIFE_MARKER = "life-marker"


class AggregationLevel(str, Enum):
    INDIVIDUAL = "individual"
    DAILY = "daily"
    WEEKLY = "weekly"

    @property
    def label(self) -> str:
        return _AGGREGATION_LABELS[self]

    @classmethod
    def parse(cls, token: str) -> Self:
        """Parse a user-supplied level, rejecting anything unrecognized.

        Raises:
            ValueError: If the token is not one of individual, daily, weekly.
        """
        try:
            return cls(token.strip().lower())
        except (AttributeError, ValueError):
            choices = ", ".join(level.value for level in cls)
            msg = f"Invalid aggregation level: {token!r}. Use one of: {choices}."
            raise ValueError(msg) from None

    @classmethod
    def coerce(cls, token: AggregationLevel | str | None) -> AggregationLevel:
        """Lenient variant of parse: anything unrecognized means individual."""
        if isinstance(token, AggregationLevel):
            return token
        try:
            return cls.parse(token)  # type: ignore[arg-type]
        except ValueError:
            return cls.INDIVIDUAL


_AGGREGATION_LABELS: dict[AggregationLevel, str] = {
    AggregationLevel.INDIVIDUAL: "Individual Events",
    AggregationLevel.DAILY: "Daily Aggregation",
    AggregationLevel.WEEKLY: "Weekly Aggregation",
}


@dataclass(frozen=True)
class DateBounds:
    """Inclusive date range; either end may be open."""

    start: date | None = None
    end: date | None = None

    def __post_init__(self) -> None:
        if self.start and self.end and self.start > self.end:
            msg = f"start ({self.start}) must be <= end ({self.end})"
            raise ValueError(msg)

    def contains(self, d: date) -> bool:
        if self.start and d < self.start:
            return False
        if self.end and d > self.end:
            return False
        return True

    @property
    def days(self) -> int | None:
        if self.start is None or self.end is None:
            return None
        return (self.end - self.start).days + 1


@dataclass(frozen=True)
class Event:
    """Normalized timeline event — one per surviving source record."""

    id: str
    content: str
    start: date
    kind: Kind
    source_table: str
    source_key: str
    end: date | None = None
    lane: Lane | None = None
    shape: Shape = Shape.POINT
    style_class: str = ""
    tooltip: str = ""
    source_system: str | None = None
    code: str | None = None  # diagnosis / procedure / condition code
    names: tuple[str, ...] = ()  # untruncated name fields for text matching


@dataclass(frozen=True)
class BucketKey:
    lane: Lane
    kind: Kind
    period: str


@dataclass(frozen=True)
class AggregatedEvent:
    """A (lane, kind, period) bucket produced by the aggregation engine."""

    bucket_key: BucketKey
    count: int
    representative: Event
    original_ids: tuple[str, ...]
    source_system_summary: str | None = None

    @property
    def start(self) -> date:
        return self.representative.start

    @property
    def is_aggregated(self) -> bool:
        return self.count > 1

    @property
    def original_ids_csv(self) -> str:
        return ",".join(self.original_ids)


TimelineEntry = Event | AggregatedEvent


def _id_set(ids: Any) -> frozenset[str]:
    """Identifiers as strings; a lone string or integer is one identifier."""
    if isinstance(ids, str | int):
        return frozenset({str(ids)})
    return frozenset(str(i) for i in ids)


@dataclass(frozen=True)
class SemanticResult:
    """Allow-list produced by the external semantic query collaborator.

    ``matching_ids`` is either a flat collection of source keys for the
    target, or a mapping keyed by sub-kind ("prescribing", "dispensing")
    when the target is the combined medications query.
    """

    target: str
    matching_ids: frozenset[str] | Mapping[str, frozenset[str]]

    def __init__(
        self,
        target: str,
        matching_ids: Collection[Any] | Mapping[str, Collection[Any]],
    ) -> None:
        object.__setattr__(self, "target", target)
        if isinstance(matching_ids, Mapping):
            keyed = {str(k).lower(): _id_set(ids) for k, ids in matching_ids.items()}
            object.__setattr__(self, "matching_ids", keyed)
        else:
            object.__setattr__(self, "matching_ids", _id_set(matching_ids))

    def ids_for(self, kind: Kind) -> frozenset[str]:
        """Source keys allowed for one kind of event."""
        if not isinstance(self.matching_ids, Mapping):
            return self.matching_ids
        ids = self.matching_ids.get(kind.value)
        if ids is None and kind.lane is not None:
            ids = self.matching_ids.get(kind.lane.value)
        return ids or frozenset()

    @property
    def is_empty(self) -> bool:
        if isinstance(self.matching_ids, Mapping):
            return not any(self.matching_ids.values())
        return not self.matching_ids


@dataclass(frozen=True)
class FilterCriteria:
    """Caller-selected filters; every field is optional."""

    semantic: SemanticResult | None = None
    lanes: Collection[Lane | str] | None = None
    start_date: date | None = None
    end_date: date | None = None
    dx_pattern: str | None = None
    px_pattern: str | None = None
    lab_name: str | None = None
    med_name: str | None = None
    source_systems: Collection[str] | None = None

    @property
    def date_bounds(self) -> DateBounds:
        return DateBounds(start=self.start_date, end=self.end_date)


@dataclass
class PatientData:
    """Raw per-table records for one patient, keyed by record kind."""

    patient_id: str
    records: dict[Kind, list[dict[str, Any]]] = field(default_factory=dict)
    source_descriptions: dict[str, str] = field(default_factory=dict)

    def rows(self, kind: Kind) -> list[dict[str, Any]]:
        return self.records.get(kind, [])

    @property
    def total_rows(self) -> int:
        return sum(len(rows) for rows in self.records.values())
