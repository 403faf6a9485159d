"""Configuration validation for the patient timeline."""

from __future__ import annotations

from dataclasses import dataclass

from patient_timeline.config.models import TimelineConfig
from patient_timeline.models import AggregationLevel, Lane

GROUP_BY_CHOICES = ("flat", "lane")


@dataclass(frozen=True)
class ValidationError:
    """A configuration or filter validation error."""

    path: str
    message: str


class ConfigValidator:
    """Validate TimelineConfig dataclass against schema."""

    def validate(self, config: TimelineConfig) -> list[ValidationError]:
        """Validate config, return list of errors (empty if valid)."""
        errors: list[ValidationError] = []

        try:
            AggregationLevel.parse(config.display.aggregation)
        except ValueError as e:
            errors.append(ValidationError("display.aggregation", str(e)))

        known_lanes = [lane.value for lane in Lane]
        for i, lane in enumerate(config.display.lanes):
            if not isinstance(lane, str) or lane not in known_lanes:
                errors.append(
                    ValidationError(
                        f"display.lanes[{i}]",
                        f"Unknown lane {lane!r} (expected one of: {', '.join(known_lanes)})",
                    )
                )

        for i, code in enumerate(config.filters.source_systems):
            if not isinstance(code, str) or not code.strip():
                errors.append(
                    ValidationError(
                        f"filters.source_systems[{i}]",
                        f"Source system {code!r} is not a non-empty string",
                    )
                )

        if config.stdout.group_by not in GROUP_BY_CHOICES:
            errors.append(
                ValidationError(
                    "exporters.stdout.group_by",
                    f"Invalid group_by: {config.stdout.group_by!r} "
                    f"(expected {' or '.join(GROUP_BY_CHOICES)})",
                )
            )

        if config.json.enabled and not config.json.path:
            errors.append(ValidationError("exporters.json.path", "Path is required when enabled"))

        return errors
