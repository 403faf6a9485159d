"""CLI interface for patient-timeline — click-based commands."""

from __future__ import annotations

from collections.abc import Callable
from datetime import date
from pathlib import Path
from typing import Any

import click

from patient_timeline import inventory
from patient_timeline.config import TimelineConfig, generate_config_toml, load_config
from patient_timeline.config.models import DEFAULT_CONFIG_PATH
from patient_timeline.exporters.json import JsonExporter
from patient_timeline.filters import CriteriaValidator
from patient_timeline.loaders import FileRecordLoader, load_semantic_result
from patient_timeline.models import AggregationLevel, FilterCriteria, Lane, PatientData
from patient_timeline.pipeline import Pipeline, build_timeline

AVAILABLE_LANES = [lane.value for lane in Lane]
AGGREGATION_CHOICES = [level.value for level in AggregationLevel]


def parse_date_arg(value: str | None, name: str) -> date | None:
    """Parse an optional YYYY-MM-DD bound."""
    if not value:
        return None
    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        msg = f"Invalid {name} date: '{value}'. Use YYYY-MM-DD."
        raise click.BadParameter(msg) from None


def parse_lanes_arg(value: str) -> list[str]:
    """Parse comma-separated lane ids and validate against AVAILABLE_LANES."""
    lanes = [s.strip().lower() for s in value.split(",") if s.strip()]
    invalid = sorted(set(lanes) - set(AVAILABLE_LANES))
    if invalid:
        msg = (
            f"Invalid lane(s): {', '.join(invalid)}. "
            f"Available lanes: {', '.join(AVAILABLE_LANES)}"
        )
        raise click.BadParameter(msg)
    return lanes


def parse_csv_arg(value: str | None) -> list[str]:
    if not value:
        return []
    return [s.strip() for s in value.split(",") if s.strip()]


def _build_criteria(
    config: TimelineConfig,
    lanes: str | None,
    start: str | None,
    end: str | None,
    dx: str | None,
    px: str | None,
    lab: str | None,
    med: str | None,
    sources: str | None,
    semantic: Path | None,
) -> FilterCriteria:
    """Combine command-line filters with config defaults, rejecting bad input."""
    semantic_result = None
    if semantic is not None:
        try:
            semantic_result = load_semantic_result(semantic)
        except ValueError as e:
            raise click.BadParameter(str(e), param_hint="--semantic") from e

    criteria = FilterCriteria(
        semantic=semantic_result,
        lanes=parse_lanes_arg(lanes) if lanes else config.display.lanes,
        start_date=parse_date_arg(start, "start"),
        end_date=parse_date_arg(end, "end"),
        dx_pattern=dx,
        px_pattern=px,
        lab_name=lab,
        med_name=med,
        source_systems=parse_csv_arg(sources) or config.filters.source_systems,
    )

    errors = CriteriaValidator().validate(criteria)
    if errors:
        msg = "; ".join(f"{e.path}: {e.message}" for e in errors)
        raise click.BadParameter(msg)
    return criteria


def filter_options(f: Callable[..., Any]) -> Callable[..., Any]:
    """Filter and aggregation options shared by show and export."""
    options = [
        click.option(
            "--aggregation",
            type=click.Choice(AGGREGATION_CHOICES),
            default=None,
            help="Collapse same-day or same-week events (default from config)",
        ),
        click.option("--lanes", type=str, default=None, help="Show only these lanes (csv)"),
        click.option("--start", type=str, default=None, help="Earliest date (YYYY-MM-DD)"),
        click.option("--end", type=str, default=None, help="Latest date (YYYY-MM-DD)"),
        click.option("--dx", type=str, default=None, help="Diagnosis code pattern, e.g. 'E11%'"),
        click.option("--px", type=str, default=None, help="Procedure code pattern"),
        click.option("--lab", type=str, default=None, help="Lab name contains (case-insensitive)"),
        click.option("--med", type=str, default=None, help="Medication name contains"),
        click.option(
            "--sources", type=str, default=None, help="Source system codes (csv), or ALL"
        ),
        click.option(
            "--semantic",
            type=click.Path(exists=True, dir_okay=False, path_type=Path),
            default=None,
            help="JSON file with a semantic query result (target + matching_ids)",
        ),
    ]
    for option in reversed(options):
        f = option(f)
    return f


def data_options(f: Callable[..., Any]) -> Callable[..., Any]:
    f = click.option(
        "--data-dir",
        type=click.Path(file_okay=False, path_type=Path),
        default=None,
        help="Directory with per-table extracts (overrides config)",
    )(f)
    f = click.option(
        "--config",
        "config_path",
        type=click.Path(dir_okay=False, path_type=Path),
        default=None,
        help="Config file (default ~/.patient-timeline/config.toml)",
    )(f)
    return f


@click.group()
@click.version_option(package_name="patient-timeline")
def cli() -> None:
    """Patient timeline — one patient's clinical record as a filterable timeline.

    Reads per-table extracts (encounters, diagnoses, labs, medications, ...)
    and prints them as a single chronological, optionally aggregated view.

    Run 'patient-timeline init' to set up your configuration.
    """


@cli.command()
def init() -> None:
    """Create default configuration at ~/.patient-timeline/config.toml."""
    config_path = DEFAULT_CONFIG_PATH
    if config_path.exists() and not click.confirm(
        f"Config already exists at {config_path}. Overwrite?"
    ):
        return

    config = TimelineConfig()
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(generate_config_toml(config))

    click.echo(f"✓ Config created at: {config_path}")
    click.echo("Edit to set the data directory, default lanes and aggregation.")


@cli.command()
@click.argument("patient_id")
@filter_options
@data_options
@click.option(
    "--group-by",
    type=click.Choice(["flat", "lane"]),
    default=None,
    help="How to group events in the display",
)
def show(
    patient_id: str,
    aggregation: str | None,
    lanes: str | None,
    start: str | None,
    end: str | None,
    dx: str | None,
    px: str | None,
    lab: str | None,
    med: str | None,
    sources: str | None,
    semantic: Path | None,
    data_dir: Path | None,
    config_path: Path | None,
    group_by: str | None,
) -> None:
    """Display the timeline for PATIENT_ID in the terminal."""
    config = _load_config(config_path, data_dir)
    if group_by:
        config.stdout.group_by = group_by
    config.stdout.enabled = True
    config.json.enabled = False

    criteria = _build_criteria(config, lanes, start, end, dx, px, lab, med, sources, semantic)
    pipeline = Pipeline(config)
    try:
        pipeline.run(patient_id, criteria, aggregation)
    except (OSError, ValueError) as e:
        raise click.ClickException(str(e)) from e


@cli.command()
@click.argument("patient_id")
@filter_options
@data_options
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, allow_dash=True, path_type=Path),
    default=None,
    help="Where to write JSON ('-' for stdout; default from config)",
)
def export(
    patient_id: str,
    aggregation: str | None,
    lanes: str | None,
    start: str | None,
    end: str | None,
    dx: str | None,
    px: str | None,
    lab: str | None,
    med: str | None,
    sources: str | None,
    semantic: Path | None,
    data_dir: Path | None,
    config_path: Path | None,
    output: Path | None,
) -> None:
    """Write the timeline for PATIENT_ID as JSON (lanes + items)."""
    config = _load_config(config_path, data_dir)
    criteria = _build_criteria(config, lanes, start, end, dx, px, lab, med, sources, semantic)
    exporter = JsonExporter(output)
    level = aggregation or config.display.aggregation

    if output is not None and str(output) == "-":
        # Progress output would corrupt the JSON document on stdout
        timeline = build_timeline(_load_patient(config, patient_id), criteria, level)
        exporter.export(timeline, config)
        return

    pipeline = Pipeline(config, exporters=[exporter])
    try:
        pipeline.run(patient_id, criteria, level)
    except (OSError, ValueError) as e:
        raise click.ClickException(str(e)) from e


@cli.command()
@click.argument("patient_id")
@data_options
def sources(patient_id: str, data_dir: Path | None, config_path: Path | None) -> None:
    """List source systems contributing records for PATIENT_ID."""
    config = _load_config(config_path, data_dir)
    data = _load_patient(config, patient_id)

    systems = inventory.source_systems(data)
    if not systems:
        click.echo(click.style("  (no source system information)", dim=True))
        return
    for system in systems:
        click.echo(f"  {system.display_label}")


@cli.command()
@click.argument("patient_id")
@data_options
def counts(patient_id: str, data_dir: Path | None, config_path: Path | None) -> None:
    """Show record counts per lane and the date span for PATIENT_ID."""
    config = _load_config(config_path, data_dir)
    data = _load_patient(config, patient_id)

    span = inventory.date_span(data)
    click.echo(click.style(f"  Patient {patient_id}", bold=True))
    click.echo(f"  Records span {span.start} to {span.end}")
    click.echo()
    for lane, count in inventory.count_records(data).items():
        count_styled = click.style(str(count), bold=True) if count else click.style("0", dim=True)
        click.echo(f"    {lane.label:<15} {count_styled}")


@cli.command()
def lanes() -> None:
    """List the timeline lanes in display order."""
    for lane in Lane:
        click.echo(f"  {lane.value:<12} {lane.label}")


def _load_patient(config: TimelineConfig, patient_id: str) -> PatientData:
    try:
        return FileRecordLoader(config.data_dir).load(patient_id)
    except (OSError, ValueError) as e:
        raise click.ClickException(str(e)) from e


def _load_config(config_path: Path | None = None, data_dir: Path | None = None) -> TimelineConfig:
    """Load config, falling back to defaults when the default file is absent."""
    if config_path is None and not DEFAULT_CONFIG_PATH.exists():
        config = TimelineConfig()
    else:
        try:
            config = load_config(config_path or DEFAULT_CONFIG_PATH)
        except FileNotFoundError as e:
            raise click.ClickException(str(e)) from e
        except ValueError as e:
            raise click.ClickException(str(e)) from e

    if data_dir is not None:
        config.data_dir = data_dir
    return config
