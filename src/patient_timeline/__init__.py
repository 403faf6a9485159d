"""Patient timeline — normalize, filter and aggregate one patient's clinical record."""

from __future__ import annotations

__version__ = "0.1.0"
