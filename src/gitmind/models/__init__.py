"""GitMind data models.

- repository: references, metadata, file trees, commits, snapshots
- report: structured result shapes (also the inference output contracts)
- insights: issues, pull requests, contributors, dependencies, code health
- llm_config: inference provider configuration
"""

from gitmind.models.insights import (
    CodeHealthMetrics,
    Contributor,
    Dependency,
    InsightBundle,
    IssueSummary,
    PullRequestSummary,
)
from gitmind.models.report import (
    ActivityInsight,
    AnalysisReport,
    ArchitectureGraph,
    GuideDraft,
    OnboardingGuide,
    OwnershipInsight,
    SectionNarrative,
    TestingSetup,
)
from gitmind.models.repository import (
    CommitFile,
    CommitRecord,
    FileNode,
    FileTree,
    RepositoryMetadata,
    RepositoryReference,
    RepositorySnapshot,
    build_file_tree,
)

__all__ = [
    "ActivityInsight",
    "AnalysisReport",
    "ArchitectureGraph",
    "CodeHealthMetrics",
    "CommitFile",
    "CommitRecord",
    "Contributor",
    "Dependency",
    "FileNode",
    "FileTree",
    "GuideDraft",
    "InsightBundle",
    "IssueSummary",
    "OnboardingGuide",
    "OwnershipInsight",
    "PullRequestSummary",
    "RepositoryMetadata",
    "RepositoryReference",
    "RepositorySnapshot",
    "SectionNarrative",
    "TestingSetup",
    "build_file_tree",
]
