"""Load per-table extracts (CSV, JSON or JSON Lines) from a data directory."""

from __future__ import annotations

import csv
import json
from pathlib import Path
from typing import Any

from patient_timeline.loaders.base import RecordLoader
from patient_timeline.models import Kind, PatientData, SemanticResult

PATIENT_COLUMN = "PATID"
SOURCE_SYSTEM_TABLE = "SOURCE_SYSTEM"
SUPPORTED_SUFFIXES = (".csv", ".jsonl", ".json")


class FileRecordLoader(RecordLoader):
    """Read ``<TABLE>.csv|.jsonl|.json`` files, keeping one patient's rows.

    Missing tables are treated as empty. Blank CSV cells are read as None.
    """

    def __init__(self, data_dir: Path) -> None:
        self._data_dir = data_dir

    def source_name(self) -> str:
        return str(self._data_dir)

    def load(self, patient_id: str) -> PatientData:
        if not self._data_dir.is_dir():
            msg = f"Data directory not found: {self._data_dir}"
            raise FileNotFoundError(msg)

        data = PatientData(patient_id=patient_id)
        for kind in Kind:
            rows = [r for r in self._read_table(kind.table) if _patient_of(r) == patient_id]
            if rows:
                data.records[kind] = rows

        for row in self._read_table(SOURCE_SYSTEM_TABLE):
            code = row.get("SRC")
            description = row.get("SourceDescription")
            if code and description:
                data.source_descriptions[str(code)] = str(description)
        return data

    def available_tables(self) -> list[str]:
        return sorted(kind.table for kind in Kind if self._table_path(kind.table) is not None)

    def _table_path(self, table: str) -> Path | None:
        for suffix in SUPPORTED_SUFFIXES:
            path = self._data_dir / f"{table}{suffix}"
            if path.exists():
                return path
        return None

    def _read_table(self, table: str) -> list[dict[str, Any]]:
        path = self._table_path(table)
        if path is None:
            return []
        try:
            if path.suffix == ".csv":
                return _read_csv(path)
            if path.suffix == ".jsonl":
                return _read_jsonl(path)
            return _read_json(path)
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            msg = f"Could not read {path}: {e}"
            raise ValueError(msg) from e


def _patient_of(row: dict[str, Any]) -> str | None:
    value = row.get(PATIENT_COLUMN)
    return None if value is None else str(value).strip()


def _read_csv(path: Path) -> list[dict[str, Any]]:
    with open(path, newline="", encoding="utf-8-sig") as f:
        return [{k: (v if v != "" else None) for k, v in row.items()} for row in csv.DictReader(f)]


def _read_jsonl(path: Path) -> list[dict[str, Any]]:
    rows = []
    with open(path, encoding="utf-8-sig") as f:
        for line in f:
            line = line.strip()
            if line:
                rows.append(json.loads(line))
    return rows


def _read_json(path: Path) -> list[dict[str, Any]]:
    with open(path, encoding="utf-8-sig") as f:
        data = json.load(f)
    if not isinstance(data, list):
        msg = f"Expected a JSON array of records in {path}"
        raise ValueError(msg)
    return data


def load_semantic_result(path: Path) -> SemanticResult:
    """Read a semantic query result.

    Expected shape::

        {"target": "diagnoses", "matching_ids": ["DX_1", "DX_2"]}
        {"target": "medications",
         "matching_ids": {"prescribing": ["RX_1"], "dispensing": ["DISP_4"]}}
    """
    with open(path, encoding="utf-8-sig") as f:
        data = json.load(f)
    try:
        return SemanticResult(target=str(data["target"]), matching_ids=data["matching_ids"])
    except (KeyError, TypeError) as e:
        msg = f"Invalid semantic result in {path}: expected 'target' and 'matching_ids'"
        raise ValueError(msg) from e
