"""Terminal/stdout exporter — display a patient timeline in the terminal."""

from __future__ import annotations

import html
import re

import click

from patient_timeline.assembler import AssembledTimeline, TimelineItem
from patient_timeline.config import TimelineConfig
from patient_timeline.exporters.base import Exporter

LANE_COLORS: dict[str, str] = {
    "encounters": "blue",
    "diagnoses": "red",
    "procedures": "magenta",
    "labs": "cyan",
    "prescribing": "green",
    "dispensing": "bright_green",
    "vitals": "yellow",
    "conditions": "bright_red",
}

MARKER_COLORS: dict[str, str] = {
    "death": "bright_white",
    "birth": "bright_blue",
}

_TAG_RE = re.compile(r"<[^>]+>")


class StdoutExporter(Exporter):
    def __init__(self, show_details: bool = False) -> None:
        self._show_details = show_details

    def export(self, timeline: AssembledTimeline, config: TimelineConfig) -> None:
        if config.stdout.group_by == "lane":
            self._export_by_lane(timeline)
        else:
            self._export_flat(timeline)

    def _export_flat(self, timeline: AssembledTimeline) -> None:
        """Flat chronological timeline."""
        self._print_header(timeline)

        if not timeline.items:
            click.echo(click.style("  (no events)", dim=True))
        else:
            for item in timeline.items:
                self._print_item(item)
        click.echo()

    def _export_by_lane(self, timeline: AssembledTimeline) -> None:
        """One block per lane, life markers first."""
        self._print_header(timeline)

        markers = [item for item in timeline.items if item.group is None]
        if markers:
            click.echo(click.style("  Life events", bold=True))
            for item in markers:
                self._print_item(item)
            click.echo()

        for lane in timeline.lanes:
            lane_items = [item for item in timeline.items if item.group == lane.id]
            title = f"  {lane.label} ({len(lane_items)})"
            click.echo(click.style(title, bold=True, fg=LANE_COLORS.get(lane.id, "white")))
            click.echo(click.style(f"  {'─' * 40}", dim=True))
            if lane_items:
                for item in lane_items:
                    self._print_item(item)
            else:
                click.echo(click.style("    (no events)", dim=True))
            click.echo()

    def _print_header(self, timeline: AssembledTimeline) -> None:
        header = f"Patient {timeline.patient_id} — {timeline.level.label}"
        click.echo()
        click.echo(click.style(f"  {header}", bold=True))
        click.echo(click.style(f"  {'═' * len(header)}", dim=True))

        if timeline.items:
            click.echo(
                click.style("  From: ", dim=True)
                + click.style(timeline.items[0].start, bold=True)
                + click.style("  To: ", dim=True)
                + click.style(max(i.end or i.start for i in timeline.items), bold=True)
                + click.style(f"  ({len(timeline.items)} items)", dim=True)
            )
        if timeline.dropped:
            click.echo(
                click.style(
                    f"  {timeline.dropped} of {timeline.rows_in} records skipped (no usable date)",
                    fg="yellow",
                )
            )
        click.echo()

    def _print_item(self, item: TimelineItem) -> None:
        """Print a single timeline line with colors."""
        when = item.start if not item.end else f"{item.start} → {item.end}"
        when_styled = click.style(when, dim=True)

        if item.group is None:
            color = MARKER_COLORS.get(item.event_type, "white")
            label = click.style(f"[{item.event_type}]", fg=color, bold=True)
        else:
            label = click.style(f"[{item.group}]", fg=LANE_COLORS.get(item.group, "white"))

        content = item.content or item.event_type.title()
        if "event-lab-abnormal" in item.class_name.split():
            content = click.style(content, fg="red", bold=True)

        badge = ""
        if item.source_badge:
            badge = " " + click.style(f"[{item.source_badge}]", fg="bright_black")

        click.echo(f"    {when_styled}  {label} {content}{badge}")

        if self._show_details and item.title:
            for line in item.title.split("<br>"):
                text = html.unescape(_TAG_RE.sub("", line))
                click.echo(click.style(f"        {text}", dim=True))
