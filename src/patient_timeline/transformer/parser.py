"""Kind-specific formatting of raw clinical records into timeline events."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date
from typing import Any

from patient_timeline.models import Event, Kind, Shape
from patient_timeline.transformer.formatter import (
    CONDITION_STATUS_LABELS,
    LAB_CONTENT_WIDTH,
    MED_CONTENT_WIDTH,
    PDX_LABELS,
    VITAL_CONTENT_WIDTH,
    build_tooltip,
    coalesce,
    expand_code,
    format_lab_result,
    format_vital_content,
    is_abnormal,
    text,
    truncate,
)

SOURCE_SYSTEM_COLUMN = "CDW_Source"

Record = Mapping[str, Any]


@dataclass(frozen=True)
class DateSpan:
    """Dates resolved for a record before any formatting happens."""

    start: date
    end: date | None = None
    extra: Mapping[str, date | None] | None = None

    def get(self, column: str) -> date | None:
        if self.extra is None:
            return None
        return self.extra.get(column)


def _iso(d: date | None) -> str | None:
    return d.isoformat() if d else None


def _names(*values: Any) -> tuple[str, ...]:
    return tuple(n for n in (text(v) for v in values) if n)


class Parser:
    """Build one Event from one raw record whose dates are already resolved."""

    def _event(
        self,
        kind: Kind,
        record: Record,
        span: DateSpan,
        key: str,
        content: str,
        tooltip: str,
        *,
        style_class: str | None = None,
        code: str | None = None,
        names: tuple[str, ...] = (),
    ) -> Event:
        if kind.is_life_marker:
            shape = Shape.LIFE_MARKER
        elif span.end is not None:
            shape = Shape.RANGE
        else:
            shape = Shape.POINT
        return Event(
            id=f"{kind.value}-{key}",
            content=content,
            start=span.start,
            end=span.end if shape is Shape.RANGE else None,
            kind=kind,
            lane=kind.lane,
            shape=shape,
            style_class=style_class or f"event-{kind.value}",
            tooltip=tooltip,
            source_table=kind.table,
            source_key=key,
            source_system=text(record.get(SOURCE_SYSTEM_COLUMN)),
            code=code,
            names=names,
        )

    def parse_encounter(self, record: Record, span: DateSpan, key: str) -> Event:
        tooltip = build_tooltip(
            [
                ("Encounter Type", record.get("ENC_TYPE")),
                ("Admit Date", _iso(span.start)),
                ("Discharge Date", _iso(span.end)),
                ("Facility", record.get("FACILITY_LOCATION")),
                ("DRG", record.get("DRG")),
                ("Discharge Status", record.get("RAW_DISCHARGE_STATUS")),
                ("Payer", record.get("PAYER_TYPE_PRIMARY")),
            ]
        )
        return self._event(
            Kind.ENCOUNTER,
            record,
            span,
            key,
            content=coalesce(record.get("ENC_TYPE"), default="Encounter"),
            tooltip=tooltip,
        )

    def parse_diagnosis(self, record: Record, span: DateSpan, key: str) -> Event:
        code = text(record.get("DX"))
        tooltip = build_tooltip(
            [
                ("Diagnosis Code", code),
                ("Description", record.get("RAW_DX")),
                ("Type", record.get("DX_TYPE")),
                ("PDX", expand_code(record.get("PDX"), PDX_LABELS)),
                ("Date", _iso(span.start)),
                ("Encounter", record.get("ENCOUNTERID")),
            ]
        )
        return self._event(
            Kind.DIAGNOSIS,
            record,
            span,
            key,
            content=coalesce(record.get("RAW_DX"), code, default="Diagnosis"),
            tooltip=tooltip,
            code=code,
            names=_names(record.get("RAW_DX"), code),
        )

    def parse_procedure(self, record: Record, span: DateSpan, key: str) -> Event:
        code = text(record.get("PX"))
        tooltip = build_tooltip(
            [
                ("Procedure Code", code),
                ("Description", record.get("RAW_PX_NAME")),
                ("Type", record.get("PX_TYPE")),
                ("Date", _iso(span.start)),
                ("Encounter", record.get("ENCOUNTERID")),
            ]
        )
        return self._event(
            Kind.PROCEDURE,
            record,
            span,
            key,
            content=coalesce(record.get("RAW_PX_NAME"), code, default="Procedure"),
            tooltip=tooltip,
            code=code,
            names=_names(record.get("RAW_PX_NAME"), code),
        )

    def parse_lab(self, record: Record, span: DateSpan, key: str) -> Event:
        result = format_lab_result(
            record.get("RESULT_NUM"),
            record.get("RESULT_QUAL"),
            record.get("RESULT_MODIFIER"),
            record.get("RESULT_UNIT"),
            record.get("ABN_IND"),
        )
        low, high = text(record.get("NORM_RANGE_LOW")), text(record.get("NORM_RANGE_HIGH"))
        norm_range = f"{low} - {high}" if low and high else None
        tooltip = build_tooltip(
            [
                ("Lab Name", record.get("RAW_LAB_NAME")),
                ("LOINC", record.get("LAB_LOINC")),
                ("Result", result),
                ("Date", _iso(span.start)),
                ("Normal Range", norm_range),
                ("Specimen", record.get("SPECIMEN_SOURCE")),
            ]
        )
        style_class = "event-lab"
        if is_abnormal(record.get("ABN_IND")):
            style_class = "event-lab event-lab-abnormal"
        label = coalesce(record.get("RAW_LAB_NAME"), record.get("LAB_LOINC"), default="Lab")
        return self._event(
            Kind.LAB,
            record,
            span,
            key,
            content=truncate(label, LAB_CONTENT_WIDTH),
            tooltip=tooltip,
            style_class=style_class,
            names=_names(record.get("RAW_LAB_NAME"), record.get("LAB_LOINC")),
        )

    def parse_prescribing(self, record: Record, span: DateSpan, key: str) -> Event:
        dose = text(record.get("RX_DOSE_ORDERED"))
        unit = text(record.get("RX_DOSE_ORDERED_UNIT"))
        if dose and unit:
            dose = f"{dose} {unit}"
        tooltip = build_tooltip(
            [
                ("Medication", record.get("RAW_RX_MED_NAME")),
                ("RxNorm", record.get("RXNORM_CUI")),
                ("Dose", dose),
                ("Frequency", record.get("RAW_RX_FREQUENCY")),
                ("Route", record.get("RAW_RX_ROUTE")),
                ("Start Date", _iso(span.start)),
                ("End Date", _iso(span.end)),
                ("Days Supply", record.get("RX_DAYS_SUPPLY")),
                ("Refills", record.get("RX_REFILLS")),
            ]
        )
        label = coalesce(record.get("RAW_RX_MED_NAME"), record.get("RXNORM_CUI"), default="Rx")
        return self._event(
            Kind.PRESCRIBING,
            record,
            span,
            key,
            content=truncate(label, MED_CONTENT_WIDTH),
            tooltip=tooltip,
            names=_names(record.get("RAW_RX_MED_NAME")),
        )

    def parse_dispensing(self, record: Record, span: DateSpan, key: str) -> Event:
        tooltip = build_tooltip(
            [
                ("Medication", record.get("RAW_DISP_MED_NAME")),
                ("NDC", record.get("NDC")),
                ("Quantity", record.get("DISPENSE_AMT")),
                ("Days Supply", record.get("DISPENSE_SUP")),
                ("Date", _iso(span.start)),
            ]
        )
        label = coalesce(record.get("RAW_DISP_MED_NAME"), record.get("NDC"), default="Dispensed")
        return self._event(
            Kind.DISPENSING,
            record,
            span,
            key,
            content=truncate(label, MED_CONTENT_WIDTH),
            tooltip=tooltip,
            names=_names(record.get("RAW_DISP_MED_NAME")),
        )

    def parse_vital(self, record: Record, span: DateSpan, key: str) -> Event:
        systolic, diastolic = text(record.get("SYSTOLIC")), text(record.get("DIASTOLIC"))
        blood_pressure = None
        if systolic and diastolic:
            blood_pressure = f"{systolic}/{diastolic}"
            position = text(record.get("BP_POSITION"))
            if position:
                blood_pressure += f" ({position})"
        tooltip = build_tooltip(
            [
                ("Date", _iso(span.start)),
                ("Blood Pressure", blood_pressure),
                ("Height", record.get("HT")),
                ("Weight", record.get("WT")),
                ("BMI", record.get("ORIGINAL_BMI")),
                ("Smoking", record.get("SMOKING")),
                ("Tobacco", record.get("TOBACCO")),
            ]
        )
        content = format_vital_content(
            record.get("SYSTOLIC"),
            record.get("DIASTOLIC"),
            record.get("HT"),
            record.get("WT"),
            record.get("ORIGINAL_BMI"),
        )
        return self._event(
            Kind.VITAL,
            record,
            span,
            key,
            content=truncate(content, VITAL_CONTENT_WIDTH),
            tooltip=tooltip,
        )

    def parse_condition(self, record: Record, span: DateSpan, key: str) -> Event:
        code = text(record.get("CONDITION"))
        tooltip = build_tooltip(
            [
                ("Condition Code", code),
                ("Description", record.get("RAW_CONDITION")),
                ("Status", expand_code(record.get("CONDITION_STATUS"), CONDITION_STATUS_LABELS)),
                ("Onset Date", _iso(span.get("ONSET_DATE"))),
                ("Report Date", _iso(span.get("REPORT_DATE"))),
                ("Resolve Date", _iso(span.get("RESOLVE_DATE"))),
            ]
        )
        return self._event(
            Kind.CONDITION,
            record,
            span,
            key,
            content=coalesce(record.get("RAW_CONDITION"), code, default="Condition"),
            tooltip=tooltip,
            code=code,
            names=_names(record.get("RAW_CONDITION"), code),
        )

    def parse_death(self, record: Record, span: DateSpan, key: str) -> Event:
        death_date = span.start.isoformat()
        tooltip = build_tooltip(
            [
                ("Death Date", death_date),
                ("Source", record.get("DEATH_SOURCE")),
                ("Confidence", record.get("DEATH_MATCH_CONFIDENCE")),
            ]
        )
        return self._event(
            Kind.DEATH, record, span, key, content=f"Death: {death_date}", tooltip=tooltip
        )

    def parse_birth(self, record: Record, span: DateSpan, key: str) -> Event:
        tooltip = build_tooltip([("Birth Date", span.start.isoformat())])
        return self._event(Kind.BIRTH, record, span, key, content="", tooltip=tooltip)
