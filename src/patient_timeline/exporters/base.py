"""Abstract base class for exporters."""

from __future__ import annotations

from abc import ABC, abstractmethod

from patient_timeline.assembler import AssembledTimeline
from patient_timeline.config import TimelineConfig


class Exporter(ABC):
    """Base class for all output exporters."""

    @abstractmethod
    def export(self, timeline: AssembledTimeline, config: TimelineConfig) -> None:
        """Export an assembled timeline."""
        ...
