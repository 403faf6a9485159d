"""Final ordering and display touch-ups before handing items to a renderer."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import asdict, dataclass, field
from typing import Any

from patient_timeline.aggregation import parse_original_ids
from patient_timeline.models import (
    AggregatedEvent,
    AggregationLevel,
    Event,
    Lane,
    TimelineEntry,
)

AGGREGATED_CLASS = "event-aggregated"

# Life markers span every lane and sort ahead of same-day lane events
LIFE_MARKER_ORDER = -1


@dataclass(frozen=True)
class LaneDefinition:
    id: str
    label: str
    order: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class TimelineItem:
    """Display-ready record: the whole contract with the rendering layer."""

    id: str
    content: str
    start: str
    end: str | None
    group: str | None
    type: str
    class_name: str
    title: str
    source_table: str
    source_key: str
    event_type: str
    original_ids: str
    is_aggregated: bool
    count: int
    source_system: str | None
    source_badge: str | None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["className"] = data.pop("class_name")
        return data


@dataclass
class AssembledTimeline:
    """Everything a renderer needs for one patient."""

    patient_id: str
    items: list[TimelineItem]
    lanes: list[LaneDefinition]
    level: AggregationLevel
    rows_in: int = 0
    skipped: dict[str, int] = field(default_factory=dict)  # kind -> rows without a date

    @property
    def dropped(self) -> int:
        return sum(self.skipped.values())

    def to_dict(self) -> dict[str, Any]:
        return {
            "patient_id": self.patient_id,
            "aggregation": self.level.value,
            "lanes": [lane.to_dict() for lane in self.lanes],
            "items": [item.to_dict() for item in self.items],
        }


def lane_definitions() -> list[LaneDefinition]:
    """The fixed, ordered lane table."""
    return [LaneDefinition(id=lane.value, label=lane.label, order=lane.order) for lane in Lane]


class TimelineAssembler:
    """Turn events and aggregated groups into ordered timeline items."""

    def lanes(self) -> list[LaneDefinition]:
        return lane_definitions()

    def assemble(self, entries: Iterable[TimelineEntry]) -> list[TimelineItem]:
        items = [self._item(entry) for entry in entries]
        items.sort(key=self._sort_key)
        return items

    def _item(self, entry: TimelineEntry) -> TimelineItem:
        if isinstance(entry, AggregatedEvent):
            event = entry.representative
            count = entry.count
            original_ids = entry.original_ids_csv
            badge = entry.source_system_summary
        else:
            event = entry
            count = 1
            original_ids = event.id
            badge = event.source_system

        class_name = event.style_class or f"event-{event.kind.value}"
        if count > 1 and AGGREGATED_CLASS not in class_name.split():
            class_name = f"{class_name} {AGGREGATED_CLASS}"

        return TimelineItem(
            id=event.id,
            content=event.content or "",
            start=event.start.isoformat(),
            end=event.end.isoformat() if event.end else None,
            group=event.lane.value if event.lane else None,
            type=event.shape.value,
            class_name=class_name,
            title=event.tooltip or "",
            source_table=event.source_table,
            source_key=event.source_key,
            event_type=event.kind.value,
            original_ids=original_ids,
            is_aggregated=count > 1,
            count=count,
            source_system=event.source_system,
            source_badge=badge,
        )

    @staticmethod
    def _sort_key(item: TimelineItem) -> tuple[str, int, str]:
        order = Lane(item.group).order if item.group else LIFE_MARKER_ORDER
        return (item.start, order, item.id)

    def expand(self, item: TimelineItem, events: Sequence[Event]) -> list[Event]:
        """Resolve an item (aggregated or not) back to its underlying events."""
        by_id = {e.id: e for e in events}
        return [by_id[i] for i in parse_original_ids(item.original_ids) if i in by_id]
