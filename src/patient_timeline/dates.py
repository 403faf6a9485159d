"""Best-effort resolution of heterogeneous date values to calendar dates."""

from __future__ import annotations

import math
import re
from collections.abc import Iterable
from datetime import date, datetime, timedelta
from typing import Any

EPOCH = date(1970, 1, 1)

# Day offsets from EPOCH outside this open interval (1900-01-01 .. 2100-01-01)
# are treated as stray numeric codes, not dates.
MIN_DAY_OFFSET = -25567
MAX_DAY_OFFSET = 47482

STRING_FORMATS = ("%Y-%m-%d", "%Y/%m/%d", "%m/%d/%Y", "%d-%b-%Y")

DAY_OFFSET_RE = re.compile(r"^-?\d+(\.\d+)?$")


class DateResolver:
    """Resolve native dates, timestamps, strings and day offsets.

    The first rule that applies wins; anything else resolves to None,
    which callers treat as "drop this record".
    """

    def resolve(self, value: Any) -> date | None:
        if value is None or isinstance(value, bool):
            return None
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        if isinstance(value, int | float):
            return self._from_offset(value)
        if isinstance(value, str):
            return self._from_string(value)
        return None

    def resolve_many(self, values: Iterable[Any]) -> list[date | None]:
        """Resolve a batch, one result per input."""
        return [self.resolve(v) for v in values]

    def first_resolvable(self, *values: Any) -> date | None:
        for value in values:
            resolved = self.resolve(value)
            if resolved is not None:
                return resolved
        return None

    def _from_string(self, text: str) -> date | None:
        text = text.strip()
        if not text:
            return None

        try:
            return datetime.fromisoformat(text).date()
        except ValueError:
            pass

        for fmt in STRING_FORMATS:
            try:
                return datetime.strptime(text, fmt).date()
            except ValueError:
                continue

        if DAY_OFFSET_RE.match(text):
            return self._from_offset(float(text))
        return None

    def _from_offset(self, offset: float) -> date | None:
        if math.isnan(offset) or not MIN_DAY_OFFSET < offset < MAX_DAY_OFFSET:
            return None
        return EPOCH + timedelta(days=math.floor(offset))
