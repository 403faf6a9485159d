"""Abstract base class for record loaders."""

from __future__ import annotations

from abc import ABC, abstractmethod

from patient_timeline.models import PatientData


class RecordLoader(ABC):
    """Base class for everything that fetches a patient's raw records."""

    @abstractmethod
    def load(self, patient_id: str) -> PatientData:
        """Fetch every clinical table for one patient."""
        ...

    @abstractmethod
    def source_name(self) -> str:
        """Short description of where records come from."""
        ...
