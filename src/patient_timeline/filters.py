"""Ordered filter stages that narrow the normalized event set."""

from __future__ import annotations

import re
from collections.abc import Callable, Collection

from patient_timeline.config.validation import ValidationError
from patient_timeline.models import MEDICATIONS, Event, FilterCriteria, Kind, Lane

ALL_SOURCES = "ALL"

Stage = Callable[[list[Event], FilterCriteria], list[Event]]


class PatternError(ValueError):
    """A code pattern that cannot be translated to a regular expression."""


def like_to_regex(pattern: str) -> re.Pattern[str]:
    """Translate a SQL LIKE pattern into an anchored, case-insensitive regex.

    ``%`` matches any run of characters, ``_`` exactly one, ``[...]`` a
    character class (``[^...]`` negated) and a backslash escapes the next
    character. Use ``fullmatch`` on the result.

    Raises:
        PatternError: On a dangling escape or an unclosed or empty class.
    """
    parts: list[str] = []
    i = 0
    while i < len(pattern):
        ch = pattern[i]
        if ch == "\\":
            if i + 1 >= len(pattern):
                msg = f"Dangling escape at end of pattern {pattern!r}"
                raise PatternError(msg)
            parts.append(re.escape(pattern[i + 1]))
            i += 2
            continue
        if ch == "[":
            close = pattern.find("]", i + 1)
            if close == -1:
                msg = f"Unclosed '[' at position {i} in pattern {pattern!r}"
                raise PatternError(msg)
            parts.append(_char_class(pattern[i + 1 : close], pattern))
            i = close + 1
            continue
        if ch == "%":
            parts.append(".*")
        elif ch == "_":
            parts.append(".")
        else:
            parts.append(re.escape(ch))
        i += 1
    return re.compile("".join(parts), re.IGNORECASE | re.DOTALL)


def _char_class(body: str, pattern: str) -> str:
    negate = body.startswith("^")
    if negate:
        body = body[1:]
    if not body:
        msg = f"Empty character class in pattern {pattern!r}"
        raise PatternError(msg)

    members = []
    for j, ch in enumerate(body):
        if ch == "-" and 0 < j < len(body) - 1:
            members.append("-")
        else:
            members.append(re.escape(ch))
    return "[" + ("^" if negate else "") + "".join(members) + "]"


def semantic_kinds(target: str) -> frozenset[Kind]:
    """Kinds a semantic target names; empty for an unrecognized target."""
    token = target.strip().lower()
    if token == MEDICATIONS:
        return frozenset({Kind.PRESCRIBING, Kind.DISPENSING})
    for kind in Kind:
        if kind.is_life_marker:
            continue
        lane = kind.lane
        names = {kind.value, kind.table.lower()}
        if lane is not None:
            names |= {lane.value, lane.label.lower()}
        if token in names:
            return frozenset({kind})
    return frozenset()


def _lane_values(lanes: Collection[Lane | str]) -> set[str]:
    """Lane ids for a selection given as ids or labels; unknown names are skipped."""
    by_name: dict[str, str] = {}
    for lane in Lane:
        by_name[lane.value] = lane.value
        by_name[lane.label.lower()] = lane.value

    selected = set()
    for lane in lanes:
        name = lane.value if isinstance(lane, Lane) else str(lane).strip().lower()
        if name in by_name:
            selected.add(by_name[name])
    return selected


def restrict_semantic(events: list[Event], criteria: FilterCriteria) -> list[Event]:
    """Exclusive restriction to the semantic query's matching records."""
    semantic = criteria.semantic
    if semantic is None or semantic.is_empty:
        return events
    kinds = semantic_kinds(semantic.target)
    return [e for e in events if e.kind in kinds and e.source_key in semantic.ids_for(e.kind)]


def include_lanes(events: list[Event], criteria: FilterCriteria) -> list[Event]:
    if not criteria.lanes:
        return events
    selected = _lane_values(criteria.lanes)
    return [e for e in events if e.lane is None or e.lane.value in selected]


def bound_dates(events: list[Event], criteria: FilterCriteria) -> list[Event]:
    if criteria.start_date is None and criteria.end_date is None:
        return events
    start, end = criteria.start_date, criteria.end_date
    if start and end and start > end:
        return []
    return [
        e
        for e in events
        if (start is None or e.start >= start) and (end is None or e.start <= end)
    ]


def match_codes(events: list[Event], criteria: FilterCriteria) -> list[Event]:
    patterns: dict[Kind, re.Pattern[str]] = {}
    if criteria.dx_pattern:
        patterns[Kind.DIAGNOSIS] = like_to_regex(criteria.dx_pattern)
    if criteria.px_pattern:
        patterns[Kind.PROCEDURE] = like_to_regex(criteria.px_pattern)
    if not patterns:
        return events

    def keep(event: Event) -> bool:
        regex = patterns.get(event.kind)
        if regex is None:
            return True
        return event.code is not None and regex.fullmatch(event.code) is not None

    return [e for e in events if keep(e)]


def match_names(events: list[Event], criteria: FilterCriteria) -> list[Event]:
    needles: dict[Kind, str] = {}
    lab = (criteria.lab_name or "").strip().lower()
    if lab:
        needles[Kind.LAB] = lab
    med = (criteria.med_name or "").strip().lower()
    if med:
        needles[Kind.PRESCRIBING] = med
        needles[Kind.DISPENSING] = med
    if not needles:
        return events

    def keep(event: Event) -> bool:
        needle = needles.get(event.kind)
        if needle is None:
            return True
        return any(needle in name.lower() for name in event.names)

    return [e for e in events if keep(e)]


def restrict_sources(events: list[Event], criteria: FilterCriteria) -> list[Event]:
    if not criteria.source_systems:
        return events
    selected = {s.strip() for s in criteria.source_systems}
    if any(s.upper() == ALL_SOURCES for s in selected):
        return events
    return [
        e
        for e in events
        if e.kind.is_life_marker or e.source_system is None or e.source_system in selected
    ]


STAGES: tuple[Stage, ...] = (
    restrict_semantic,
    include_lanes,
    bound_dates,
    match_codes,
    match_names,
    restrict_sources,
)


class FilterPipeline:
    """Run the filter stages in their fixed order."""

    def __init__(self, stages: tuple[Stage, ...] = STAGES) -> None:
        self._stages = stages

    def apply(self, events: list[Event], criteria: FilterCriteria | None = None) -> list[Event]:
        result = list(events)
        if criteria is None:
            return result
        for stage in self._stages:
            result = stage(result, criteria)
        return result


class CriteriaValidator:
    """Boundary validation for caller-supplied filter criteria."""

    def validate(self, criteria: FilterCriteria) -> list[ValidationError]:
        """Validate criteria, return list of errors (empty if valid)."""
        errors: list[ValidationError] = []

        for path, pattern in [
            ("dx_pattern", criteria.dx_pattern),
            ("px_pattern", criteria.px_pattern),
        ]:
            if not pattern:
                continue
            try:
                like_to_regex(pattern)
            except PatternError as e:
                errors.append(ValidationError(path, str(e)))

        for lane in criteria.lanes or ():
            if not _lane_values([lane]):
                errors.append(ValidationError("lanes", f"Unknown lane {lane!r}"))

        if criteria.start_date and criteria.end_date and criteria.start_date > criteria.end_date:
            errors.append(
                ValidationError(
                    "start_date",
                    f"start ({criteria.start_date}) must be <= end ({criteria.end_date})",
                )
            )

        return errors
