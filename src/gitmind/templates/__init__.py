"""Report templates and renderer."""

from gitmind.templates.renderer import ReportRenderer

__all__ = ["ReportRenderer"]
