"""Record loaders - fetch raw per-table records for one patient."""

from __future__ import annotations

from patient_timeline.loaders.base import RecordLoader
from patient_timeline.loaders.files import FileRecordLoader, load_semantic_result

__all__ = ["RecordLoader", "FileRecordLoader", "load_semantic_result"]
