"""Jinja2 filters used by the report templates."""

from gitmind.renderers.filters import format_score, mermaid_flowchart, mermaid_id

__all__ = ["format_score", "mermaid_flowchart", "mermaid_id"]
