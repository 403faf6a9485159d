"""Collapse same-period, same-type point events into count markers."""

from __future__ import annotations

import html
from collections.abc import Sequence
from datetime import date

from patient_timeline.models import (
    AggregatedEvent,
    AggregationLevel,
    BucketKey,
    Event,
    Shape,
    TimelineEntry,
)

MAX_TOOLTIP_ITEMS = 10
MIXED_SOURCE = "mixed"

# Checked before the suffix rules
IRREGULAR_PLURALS: dict[str, str] = {
    "prescribing": "prescriptions",
    "dispensing": "dispensings",
}


def pluralize(word: str) -> str:
    """diagnosis → diagnoses, lab → labs, labs → labs."""
    lower = word.lower()
    if lower in IRREGULAR_PLURALS:
        return IRREGULAR_PLURALS[lower]
    if lower.endswith("sis"):
        return word[:-3] + "ses"
    if lower.endswith("s"):
        return word
    return word + "s"


def period_key(d: date, level: AggregationLevel) -> str:
    """ISO date for daily buckets, ``YYYY-Www`` for weekly ones."""
    if level is AggregationLevel.WEEKLY:
        year, week, _ = d.isocalendar()
        return f"{year}-W{week:02d}"
    return d.isoformat()


def is_eligible(event: Event) -> bool:
    return event.shape is Shape.POINT and not event.kind.is_life_marker and event.lane is not None


def summarize_sources(events: Sequence[Event]) -> tuple[str | None, list[str]]:
    """Single code, the mixed marker, or None; plus the distinct codes seen."""
    codes: list[str] = []
    for event in events:
        if event.source_system and event.source_system not in codes:
            codes.append(event.source_system)
    if not codes:
        return None, codes
    if len(codes) == 1:
        return codes[0], codes
    return MIXED_SOURCE, codes


def aggregation_label(level: AggregationLevel | str) -> str:
    """Human-readable name of an aggregation level."""
    if isinstance(level, AggregationLevel):
        return level.label
    try:
        return AggregationLevel.parse(level).label
    except ValueError:
        return level


def parse_original_ids(original_ids: str | None) -> list[str]:
    """Split a comma-joined id list; blank input gives an empty list."""
    if not original_ids:
        return []
    return [i for i in (part.strip() for part in original_ids.split(",")) if i]


class AggregationEngine:
    """Group eligible events by (lane, kind, period) and merge each group.

    Ranges and life markers bypass grouping. A group of one keeps its
    original event; larger groups get a synthesized summary event.
    """

    def aggregate(
        self,
        events: Sequence[Event],
        level: AggregationLevel | str | None,
    ) -> list[TimelineEntry]:
        resolved = AggregationLevel.coerce(level)
        if resolved is AggregationLevel.INDIVIDUAL:
            return list(events)

        groups: dict[BucketKey, list[Event]] = {}
        # Groups and passthrough events in first-seen order
        slots: list[BucketKey | Event] = []
        for event in events:
            if not is_eligible(event):
                slots.append(event)
                continue
            key = BucketKey(
                lane=event.lane,  # type: ignore[arg-type]
                kind=event.kind,
                period=period_key(event.start, resolved),
            )
            if key not in groups:
                groups[key] = []
                slots.append(key)
            groups[key].append(event)

        result: list[TimelineEntry] = []
        for slot in slots:
            if isinstance(slot, Event):
                result.append(slot)
            else:
                result.append(self._merge(slot, groups[slot]))
        result.sort(key=lambda entry: entry.start)
        return result

    def _merge(self, key: BucketKey, members: list[Event]) -> AggregatedEvent:
        ordered = sorted(members, key=lambda e: (e.start, e.id))
        summary, codes = summarize_sources(ordered)
        original_ids = tuple(e.id for e in ordered)

        if len(ordered) == 1:
            return AggregatedEvent(
                bucket_key=key,
                count=1,
                representative=ordered[0],
                original_ids=original_ids,
                source_system_summary=summary,
            )

        first = ordered[0]
        count = len(ordered)
        plural = pluralize(key.kind.value).title()
        return AggregatedEvent(
            bucket_key=key,
            count=count,
            representative=Event(
                id=f"agg-{key.lane.value}-{key.kind.value}-{key.period}",
                content=f"{count} {plural}",
                start=first.start,
                kind=key.kind,
                lane=key.lane,
                shape=Shape.POINT,
                style_class=self._merge_classes(ordered),
                tooltip=self._tooltip(ordered, plural, summary, codes),
                source_table=first.source_table,
                source_key=",".join(e.source_key for e in ordered),
                source_system=summary,
            ),
            original_ids=original_ids,
            source_system_summary=summary,
        )

    @staticmethod
    def _merge_classes(members: list[Event]) -> str:
        classes: list[str] = []
        for event in members:
            for name in event.style_class.split():
                if name not in classes:
                    classes.append(name)
        return " ".join(classes)

    @staticmethod
    def _tooltip(
        members: list[Event],
        plural: str,
        summary: str | None,
        codes: list[str],
    ) -> str:
        lines = [f"<b>{len(members)} {plural} on {members[0].start.isoformat()}</b>"]
        lines.extend(f"• {html.escape(e.content)}" for e in members[:MAX_TOOLTIP_ITEMS])
        overflow = len(members) - MAX_TOOLTIP_ITEMS
        if overflow > 0:
            lines.append(f"...and {overflow} more")
        if summary == MIXED_SOURCE:
            lines.append(f"<b>Sources:</b> {MIXED_SOURCE} ({html.escape(', '.join(codes))})")
        elif summary:
            lines.append(f"<b>Source:</b> {html.escape(summary)}")
        return "<br>".join(lines)
