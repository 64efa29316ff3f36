"""Markdown report renderer.

Renders a run's results with Jinja2 templates shipped in this package.
Output is deterministic for a given result and timestamp.
"""

import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from jinja2 import Environment, PackageLoader, TemplateNotFound, select_autoescape

from gitmind.models.insights import InsightBundle
from gitmind.pipeline import RunResult
from gitmind.renderers.filters import format_score, mermaid_flowchart

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATE = "report.md.j2"


def format_datetime(dt: datetime | str | None) -> str:
    """Format a datetime (or ISO string) as `YYYY-MM-DD HH:MM:SS UTC`."""
    if dt is None:
        return "N/A"

    if isinstance(dt, str):
        try:
            dt = datetime.fromisoformat(dt.replace("Z", "+00:00"))
        except ValueError:
            return dt

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)

    return dt.astimezone(UTC).strftime("%Y-%m-%d %H:%M:%S UTC")


class ReportRenderer:
    """Renders run results to markdown.

    Usage:
        renderer = ReportRenderer()
        markdown = renderer.render(result)
    """

    def __init__(self) -> None:
        self._env = Environment(
            loader=PackageLoader("gitmind", "templates"),
            autoescape=select_autoescape(["html", "xml"]),
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
        )
        self._env.filters["format_datetime"] = format_datetime
        self._env.filters["mermaid"] = mermaid_flowchart
        self._env.filters["score"] = format_score

    def render(
        self,
        result: RunResult,
        insights: InsightBundle | None = None,
        template_name: str = DEFAULT_TEMPLATE,
        generated_at: datetime | None = None,
    ) -> str:
        """Render a ready run to markdown.

        Raises:
            ValueError: If the run has no report or the template is missing
        """
        if result.report is None or result.snapshot is None:
            raise ValueError(f"Run {result.run_id} has no report to render (stage: {result.stage.value})")

        try:
            template = self._env.get_template(template_name)
        except TemplateNotFound as e:
            raise ValueError(f"Template not found: {template_name}") from e

        rendered = template.render(**self._build_context(result, insights, generated_at))
        logger.info("Rendered report for %s (%d characters)", result.reference.slug, len(rendered))
        return rendered

    def _build_context(
        self,
        result: RunResult,
        insights: InsightBundle | None,
        generated_at: datetime | None,
    ) -> dict[str, Any]:
        snapshot = result.snapshot
        assert snapshot is not None
        return {
            "repository": result.reference,
            "metadata": snapshot.metadata,
            "truncated": snapshot.truncated,
            "tree": snapshot.tree,
            "report": result.report,
            "guide": result.guide,
            "insights": insights or result.insights,
            "audit": result.audit,
            "remediation": result.remediation,
            "stage": result.stage.value,
            "enrichment_errors": {k: v.message for k, v in result.enrichment_errors.items()},
            "generated_at": generated_at or datetime.now(UTC),
        }

    def render_to_file(self, result: RunResult, output_path: Path, **kwargs: Any) -> Path:
        content = self.render(result, **kwargs)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(content, encoding="utf-8")
        logger.info("Wrote report to %s", output_path)
        return output_path
