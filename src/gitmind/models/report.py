"""Structured result shapes.

These pydantic models double as the output-shape contracts sent to the
inference service: the gateway requests a reply constrained to the model's
JSON schema and validates it against the same model, so nothing downstream
ever handles unstructured text.
"""

import logging
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

logger = logging.getLogger(__name__)


class Shape(BaseModel):
    """Base for all contract models: unknown keys are ignored."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)


# =============================================================================
# Analysis report
# =============================================================================


class Scorecard(Shape):
    """Repository health scores, each 0-100."""

    maintenance: float = Field(ge=0, le=100)
    documentation: float = Field(ge=0, le=100)
    innovation: float = Field(ge=0, le=100)
    security: float = Field(ge=0, le=100)

    @property
    def overall(self) -> float:
        return round(
            (self.maintenance + self.documentation + self.innovation + self.security) / 4, 1
        )


class ArchitectureNode(Shape):
    id: str
    label: str
    kind: str = "component"


class ArchitectureEdge(Shape):
    source: str
    target: str
    label: str = ""


class ArchitectureGraph(Shape):
    """Node/edge architecture graph.

    Edges whose endpoints are not both present in `nodes` are dropped
    during validation.
    """

    nodes: list[ArchitectureNode] = Field(default_factory=list)
    edges: list[ArchitectureEdge] = Field(default_factory=list)

    @model_validator(mode="after")
    def drop_dangling_edges(self) -> "ArchitectureGraph":
        node_ids = {node.id for node in self.nodes}
        kept = [e for e in self.edges if e.source in node_ids and e.target in node_ids]
        if len(kept) != len(self.edges):
            logger.debug(
                "Dropped %d architecture edge(s) with unknown endpoints",
                len(self.edges) - len(kept),
            )
            self.edges = kept
        return self


class DeploymentSuggestion(Shape):
    service_name: str
    platform: str
    reasoning: str
    config_snippet: str = ""
    complexity: str = "Medium"


class TourStep(Shape):
    node_id: str
    title: str
    bullets: list[str] = Field(default_factory=list)


class ArchitectureTour(Shape):
    title: str
    summary: str
    steps: list[TourStep] = Field(default_factory=list)


class AnalysisReport(Shape):
    """Primary result of core analysis."""

    summary: str
    tech_stack: list[str] = Field(default_factory=list)
    key_features: list[str] = Field(default_factory=list)
    architecture_suggestion: str = ""
    scorecard: Scorecard
    roadmap: list[str] = Field(default_factory=list)
    architecture: ArchitectureGraph = Field(default_factory=ArchitectureGraph)
    deployment: list[DeploymentSuggestion] = Field(default_factory=list)
    tour: ArchitectureTour | None = None


# =============================================================================
# Onboarding guide
# =============================================================================


class CommonTask(Shape):
    task: str
    steps: list[str] = Field(default_factory=list)


class GuideDraft(Shape):
    """Base onboarding fields produced in one inference call."""

    quick_start: str
    critical_files: list[str] = Field(default_factory=list)
    recommended_path: list[str] = Field(default_factory=list)
    common_tasks: list[CommonTask] = Field(default_factory=list)
    setup_instructions: str = ""


class AreaOwner(Shape):
    area: str
    author: str
    commits: int


class OwnershipNarrative(Shape):
    summary: str
    bus_factor_risks: list[str] = Field(default_factory=list)


class OwnershipInsight(Shape):
    owners: list[AreaOwner] = Field(default_factory=list)
    narrative: OwnershipNarrative


class HeatmapCell(Shape):
    area: str
    changes: int


class ActivityNarrative(Shape):
    summary: str
    hotspots: list[str] = Field(default_factory=list)


class ActivityInsight(Shape):
    heatmap: list[HeatmapCell] = Field(default_factory=list)
    narrative: ActivityNarrative


class TestingSetup(Shape):
    __test__ = False  # not a pytest class

    has_tests: bool
    test_framework: str = ""
    test_command: str = ""
    test_files: list[str] = Field(default_factory=list)
    guidance: str = ""


ENRICHMENT_FIELDS = ("ownership", "activity", "testing")


class OnboardingGuide(GuideDraft):
    """Guide plus optional, additive enrichments."""

    ownership: OwnershipInsight | None = None
    activity: ActivityInsight | None = None
    testing: TestingSetup | None = None

    @classmethod
    def from_draft(cls, draft: GuideDraft) -> "OnboardingGuide":
        return cls(**draft.model_dump())

    def merge(self, field_name: str, value: Shape) -> bool:
        """Set an enrichment if it is not already present.

        Base fields are never touched.

        Returns:
            True if the enrichment was applied
        """
        if field_name not in ENRICHMENT_FIELDS:
            raise ValueError(f"Not an enrichment field: {field_name}")
        if getattr(self, field_name) is not None:
            return False
        setattr(self, field_name, value)
        return True


# =============================================================================
# Insights
# =============================================================================


class NarrativeSection(Shape):
    heading: str
    bullets: list[str] = Field(default_factory=list)


class SectionNarrative(Shape):
    """Narrative summary for one insight tab (issues, PRs, team)."""

    overview: str
    sections: list[NarrativeSection] = Field(default_factory=list)


# =============================================================================
# Security audit and remediation
# =============================================================================


class AuditFinding(Shape):
    title: str
    severity: str
    location: str = ""
    description: str = ""

    @field_validator("severity", mode="before")
    @classmethod
    def normalize_severity(cls, value: Any) -> Any:
        return value.strip().capitalize() if isinstance(value, str) else value


class SecurityAudit(Shape):
    summary: str
    risk_level: str
    findings: list[AuditFinding] = Field(default_factory=list)


class RemediationStep(Shape):
    title: str
    priority: str
    actions: list[str] = Field(default_factory=list)
    effort: str = ""


class RemediationPlan(Shape):
    summary: str
    steps: list[RemediationStep] = Field(default_factory=list)


# =============================================================================
# Media
# =============================================================================


class SpeechClip(Shape):
    """Narrated audio returned inline."""

    audio_base64: str
    mime_type: str = "audio/mpeg"
    voice: str = ""


class MediaAsset(Shape):
    """Playable media produced by a long-running job."""

    job_id: str
    mime_type: str = "video/mp4"
    content_base64: str = ""
    uri: str = ""
