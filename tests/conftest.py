"""Shared test fixtures."""

from __future__ import annotations

import csv
import json
from datetime import date
from pathlib import Path
from typing import Any

import pytest

from patient_timeline.config import TimelineConfig
from patient_timeline.models import Event, Kind, PatientData, Shape


def make_event(
    kind: Kind = Kind.DIAGNOSIS,
    key: str = "1",
    start: date = date(2020, 1, 1),
    end: date | None = None,
    content: str | None = None,
    source_system: str | None = None,
    code: str | None = None,
    names: tuple[str, ...] = (),
    style_class: str | None = None,
) -> Event:
    """Build a normalized event without going through the normalizer."""
    if kind.is_life_marker:
        shape = Shape.LIFE_MARKER
    elif end is not None:
        shape = Shape.RANGE
    else:
        shape = Shape.POINT
    return Event(
        id=f"{kind.value}-{key}",
        content=content if content is not None else f"{kind.value} {key}",
        start=start,
        end=end if shape is Shape.RANGE else None,
        kind=kind,
        lane=kind.lane,
        shape=shape,
        style_class=style_class or f"event-{kind.value}",
        tooltip=f"<b>Id:</b> {key}",
        source_table=kind.table,
        source_key=key,
        source_system=source_system,
        code=code,
        names=names,
    )


@pytest.fixture
def config(tmp_path) -> TimelineConfig:
    """Test config pointing at a temp data directory."""
    config = TimelineConfig(data_dir=tmp_path / "data")
    config.json.path = str(tmp_path / "out" / "timeline.json")
    return config


@pytest.fixture
def raw_records() -> dict[Kind, list[dict[str, Any]]]:
    """Realistic PCORnet-style rows for patient P001."""
    return {
        Kind.ENCOUNTER: [
            {
                "PATID": "P001",
                "ENCOUNTERID": "ENC_1",
                "ADMIT_DATE": "2020-01-01",
                "DISCHARGE_DATE": "2020-01-04",
                "ENC_TYPE": "IP",
                "FACILITY_LOCATION": "Main Campus",
                "DRG": "291",
                "PAYER_TYPE_PRIMARY": "Medicare",
                "CDW_Source": "EPIC",
            },
            {
                "PATID": "P001",
                "ENCOUNTERID": "ENC_2",
                "ADMIT_DATE": "2020-03-15",
                "DISCHARGE_DATE": None,
                "ENC_TYPE": "AV",
                "CDW_Source": "CERNER",
            },
        ],
        Kind.DIAGNOSIS: [
            {
                "PATID": "P001",
                "DIAGNOSISID": "DX_1",
                "ENCOUNTERID": "ENC_1",
                "DX": "E11.9",
                "RAW_DX": "Type 2 diabetes mellitus",
                "DX_TYPE": "10",
                "PDX": "P",
                "DX_DATE": "2020-01-01",
                "CDW_Source": "EPIC",
            },
            {
                "PATID": "P001",
                "DIAGNOSISID": "DX_2",
                "ENCOUNTERID": "ENC_1",
                "DX": "I10",
                "RAW_DX": None,
                "DX_TYPE": "10",
                "PDX": "S",
                "DX_DATE": None,
                "ADMIT_DATE": "2020-01-01",
                "CDW_Source": "EPIC",
            },
            {
                "PATID": "P001",
                "DIAGNOSISID": "DX_3",
                "DX": "J45.909",
                "RAW_DX": "Asthma",
                "DX_DATE": "not-a-date",
                "CDW_Source": "CERNER",
            },
        ],
        Kind.PROCEDURE: [
            {
                "PATID": "P001",
                "PROCEDURESID": "PX_1",
                "PX": "99213",
                "RAW_PX_NAME": "Office visit",
                "PX_TYPE": "CH",
                "PX_DATE": "2020-03-15",
                "CDW_Source": "CERNER",
            },
        ],
        Kind.LAB: [
            {
                "PATID": "P001",
                "LAB_RESULT_CM_ID": "LAB_1",
                "RAW_LAB_NAME": "Hemoglobin A1c",
                "LAB_LOINC": "4548-4",
                "RESULT_DATE": "2020-01-02",
                "RESULT_NUM": 9.5,
                "RESULT_UNIT": "%",
                "ABN_IND": "CR",
                "NORM_RANGE_LOW": "4.0",
                "NORM_RANGE_HIGH": "5.6",
                "CDW_Source": "EPIC",
            },
            {
                "PATID": "P001",
                "LAB_RESULT_CM_ID": "LAB_2",
                "RAW_LAB_NAME": "Glucose",
                "RESULT_DATE": "2020-01-02",
                "RESULT_NUM": 110,
                "RESULT_UNIT": "mg/dL",
                "ABN_IND": "NI",
                "CDW_Source": "EPIC",
            },
        ],
        Kind.PRESCRIBING: [
            {
                "PATID": "P001",
                "PRESCRIBINGID": "RX_1",
                "RAW_RX_MED_NAME": "Metformin 500 MG Oral Tablet",
                "RXNORM_CUI": "861007",
                "RX_START_DATE": "2021-03-01",
                "RX_END_DATE": None,
                "RX_DAYS_SUPPLY": 30,
                "RX_DOSE_ORDERED": 500,
                "RX_DOSE_ORDERED_UNIT": "mg",
                "CDW_Source": "EPIC",
            },
        ],
        Kind.DISPENSING: [
            {
                "PATID": "P001",
                "DISPENSINGID": "DISP_1",
                "RAW_DISP_MED_NAME": "Metformin",
                "NDC": "00093104801",
                "DISPENSE_DATE": "2021-03-02",
                "DISPENSE_AMT": 60,
                "DISPENSE_SUP": 30,
                "CDW_Source": "EPIC",
            },
        ],
        Kind.VITAL: [
            {
                "PATID": "P001",
                "VITALID": "VIT_1",
                "MEASURE_DATE": "2020-01-01",
                "SYSTOLIC": 128,
                "DIASTOLIC": 82,
                "HT": 70,
                "WT": 190.5,
                "ORIGINAL_BMI": 27.34,
                "CDW_Source": "EPIC",
            },
        ],
        Kind.CONDITION: [
            {
                "PATID": "P001",
                "CONDITIONID": "COND_1",
                "CONDITION": "E11.9",
                "RAW_CONDITION": None,
                "CONDITION_STATUS": "AC",
                "ONSET_DATE": None,
                "REPORT_DATE": "2019-12-01",
                "CDW_Source": "EPIC",
            },
        ],
        Kind.DEATH: [
            {
                "PATID": "P001",
                "DEATH_DATE": "2022-06-30",
                "DEATH_SOURCE": "L",
                "DEATH_MATCH_CONFIDENCE": "E",
            },
        ],
        Kind.BIRTH: [
            {"PATID": "P001", "BIRTH_DATE": "1950-05-17", "SEX": "F"},
        ],
    }


@pytest.fixture
def patient_data(raw_records) -> PatientData:
    return PatientData(
        patient_id="P001",
        records=raw_records,
        source_descriptions={"EPIC": "Epic Clarity"},
    )


@pytest.fixture
def data_dir(tmp_path, raw_records) -> Path:
    """Data directory with one extract per table, mixing CSV and JSON."""
    directory = tmp_path / "data"
    directory.mkdir()

    other_patient = {"PATID": "P002", "DIAGNOSISID": "DX_99", "DX": "Z00", "DX_DATE": "2020-01-01"}
    for kind, rows in raw_records.items():
        if kind is Kind.DIAGNOSIS:
            _write_csv(directory / f"{kind.table}.csv", [*rows, other_patient])
        elif kind is Kind.LAB:
            with open(directory / f"{kind.table}.jsonl", "w", encoding="utf-8") as f:
                for row in rows:
                    f.write(json.dumps(row) + "\n")
        else:
            (directory / f"{kind.table}.json").write_text(json.dumps(rows), encoding="utf-8")

    _write_csv(
        directory / "SOURCE_SYSTEM.csv",
        [
            {"SRC": "EPIC", "SourceDescription": "Epic Clarity"},
            {"SRC": "CERNER", "SourceDescription": "Cerner Millennium"},
        ],
    )
    return directory


def _write_csv(path: Path, rows: list[dict[str, Any]]) -> None:
    columns: list[str] = []
    for row in rows:
        for column in row:
            if column not in columns:
                columns.append(column)
    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=columns)
        writer.writeheader()
        for row in rows:
            writer.writerow({k: ("" if v is None else v) for k, v in row.items()})
