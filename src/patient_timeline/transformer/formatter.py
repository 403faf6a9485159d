"""Display formatting for normalized events: labels, results and tooltips."""

from __future__ import annotations

import html
import math
from collections.abc import Iterable
from typing import Any

LAB_CONTENT_WIDTH = 30
MED_CONTENT_WIDTH = 30
VITAL_CONTENT_WIDTH = 40

RESULT_MODIFIERS: dict[str, str] = {
    "LT": "<",
    "LE": "<=",
    "GT": ">",
    "GE": ">=",
    "EQ": "",
}

ABNORMAL_FLAGS: dict[str, str] = {
    "AB": "Abnormal",
    "AH": "High",
    "AL": "Low",
    "CH": "Crit High",
    "CL": "Crit Low",
    "CR": "Critical",
}

NO_INFORMATION = "NI"

# Units written directly against the number ("9.5%") rather than after a space
ATTACHED_UNITS = frozenset({"%"})

PDX_LABELS: dict[str, str] = {
    "P": "Principal",
    "S": "Secondary",
    "X": "Unable to classify",
}

CONDITION_STATUS_LABELS: dict[str, str] = {
    "AC": "Active",
    "RS": "Resolved",
    "IN": "Inactive",
}


def text(value: Any) -> str | None:
    """Render a raw cell as display text, or None when it carries nothing."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float):
        if math.isnan(value):
            return None
        return format_number(value)
    result = str(value).strip()
    return result or None


def number(value: Any) -> float | None:
    """Parse a raw cell as a number, or None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(result) or math.isinf(result):
        return None
    return result


def format_number(value: float) -> str:
    """Integral floats print without a trailing '.0'."""
    if value.is_integer():
        return str(int(value))
    return repr(value)


def coalesce(*values: Any, default: str = "") -> str:
    """First value that renders as non-empty text."""
    for value in values:
        rendered = text(value)
        if rendered is not None:
            return rendered
    return default


def truncate(label: str, width: int) -> str:
    return label[:width]


def build_tooltip(fields: Iterable[tuple[str, Any]]) -> str:
    """HTML tooltip of ``<b>Label:</b> value`` lines; empty values are skipped."""
    lines = []
    for label, value in fields:
        rendered = text(value)
        if rendered is None:
            continue
        lines.append(f"<b>{html.escape(label)}:</b> {html.escape(rendered)}")
    return "<br>".join(lines)


def is_abnormal(abn_ind: Any) -> bool:
    flag = text(abn_ind)
    return flag is not None and flag.upper() != NO_INFORMATION


def format_lab_result(
    result_num: Any,
    result_qual: Any,
    result_modifier: Any,
    result_unit: Any,
    abn_ind: Any,
) -> str:
    """Compose modifier, value, unit and severity, e.g. ``<5.2 mg/dL [Low]``."""
    result = ""
    value = number(result_num)
    if value is not None:
        modifier = RESULT_MODIFIERS.get((text(result_modifier) or "").upper(), "")
        result = f"{modifier}{format_number(value)}"
        unit = text(result_unit)
        if unit:
            result += unit if unit in ATTACHED_UNITS else f" {unit}"
    else:
        result = text(result_qual) or ""

    flag = ABNORMAL_FLAGS.get((text(abn_ind) or "").upper())
    if flag:
        result += f" [{flag}]"
    return result


def format_vital_content(
    systolic: Any,
    diastolic: Any,
    height: Any,
    weight: Any,
    bmi: Any,
) -> str:
    """Space-joined summary of whichever vitals are present."""
    parts = []
    sys_text, dia_text = text(systolic), text(diastolic)
    if sys_text and dia_text:
        parts.append(f"BP:{sys_text}/{dia_text}")
    height_text = text(height)
    if height_text:
        parts.append(f"Ht:{height_text}")
    weight_text = text(weight)
    if weight_text:
        parts.append(f"Wt:{weight_text}")
    bmi_value = number(bmi)
    if bmi_value is not None:
        parts.append(f"BMI:{format_number(round(bmi_value, 1))}")
    return " ".join(parts) if parts else "Vitals"


def expand_code(value: Any, labels: dict[str, str]) -> str | None:
    """Expand a coded value to its label, passing unknown codes through."""
    code = text(value)
    if code is None:
        return None
    return labels.get(code.upper(), code)
