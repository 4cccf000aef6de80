"""UI."""

from dvingest.ui.reporter import Reporter

__all__ = ["Reporter"]
