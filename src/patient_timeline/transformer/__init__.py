"""Event normalization layer - raw clinical records to timeline events."""

from __future__ import annotations

from patient_timeline.transformer.dispatcher import KindCount, NormalizationResult, Normalizer

__all__ = ["KindCount", "NormalizationResult", "Normalizer"]
