"""Insight bundle entities (issues, pull requests, team, code health)."""

from dataclasses import asdict, dataclass, field
from typing import Any

from gitmind.models.report import SectionNarrative


@dataclass
class IssueSummary:
    number: int
    title: str
    state: str
    author: str = ""
    labels: list[str] = field(default_factory=list)
    comments: int = 0
    created_at: str = ""
    updated_at: str = ""

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "IssueSummary":
        return cls(
            number=int(data.get("number") or 0),
            title=data.get("title") or "",
            state=data.get("state") or "open",
            author=(data.get("user") or {}).get("login", ""),
            labels=[label.get("name", "") for label in data.get("labels") or [] if isinstance(label, dict)],
            comments=int(data.get("comments") or 0),
            created_at=data.get("created_at") or "",
            updated_at=data.get("updated_at") or "",
        )


@dataclass
class PullRequestSummary:
    number: int
    title: str
    state: str
    author: str = ""
    merged: bool = False
    created_at: str = ""
    updated_at: str = ""

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "PullRequestSummary":
        return cls(
            number=int(data.get("number") or 0),
            title=data.get("title") or "",
            state=data.get("state") or "open",
            author=(data.get("user") or {}).get("login", ""),
            merged=bool(data.get("merged_at")),
            created_at=data.get("created_at") or "",
            updated_at=data.get("updated_at") or "",
        )


@dataclass
class Contributor:
    login: str
    contributions: int = 0
    avatar_url: str = ""

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Contributor":
        return cls(
            login=data.get("login") or "",
            contributions=int(data.get("contributions") or 0),
            avatar_url=data.get("avatar_url") or "",
        )


@dataclass
class Dependency:
    """Single third-party dependency declared in a manifest.

    Attributes:
        name: Package name
        ecosystem: Package ecosystem (npm, pypi, go, cargo)
        source_file: Manifest the dependency was declared in
        version: Version specifier (may be a range)
        dev: Whether it is a development-only dependency
    """

    name: str
    ecosystem: str
    source_file: str
    version: str | None = None
    dev: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "ecosystem": self.ecosystem,
            "source_file": self.source_file,
            "version": self.version,
            "dev": self.dev,
        }


@dataclass
class CodeHealthMetrics:
    """Structural health indicators computed locally from the tree."""

    file_count: int = 0
    directory_count: int = 0
    test_file_count: int = 0
    test_ratio: float = 0.0
    has_readme: bool = False
    has_license: bool = False
    has_ci: bool = False
    has_contributing: bool = False
    language_shares: dict[str, float] = field(default_factory=dict)
    largest_files: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "file_count": self.file_count,
            "directory_count": self.directory_count,
            "test_file_count": self.test_file_count,
            "test_ratio": self.test_ratio,
            "has_readme": self.has_readme,
            "has_license": self.has_license,
            "has_ci": self.has_ci,
            "has_contributing": self.has_contributing,
            "language_shares": self.language_shares,
            "largest_files": self.largest_files,
        }


@dataclass
class InsightBundle:
    """Social and health data for a repository plus narrative summaries.

    Narratives are optional; each one fails independently.
    """

    issues: list[IssueSummary] = field(default_factory=list)
    pull_requests: list[PullRequestSummary] = field(default_factory=list)
    contributors: list[Contributor] = field(default_factory=list)
    dependencies: list[Dependency] = field(default_factory=list)
    frameworks: list[str] = field(default_factory=list)
    languages: dict[str, int] = field(default_factory=dict)
    health: CodeHealthMetrics = field(default_factory=CodeHealthMetrics)
    issues_narrative: SectionNarrative | None = None
    pull_requests_narrative: SectionNarrative | None = None
    team_narrative: SectionNarrative | None = None

    def to_dict(self) -> dict[str, Any]:
        def narrative(value: SectionNarrative | None) -> dict[str, Any] | None:
            return value.model_dump(mode="json") if value is not None else None

        return {
            "issues": [asdict(i) for i in self.issues],
            "pull_requests": [asdict(p) for p in self.pull_requests],
            "contributors": [asdict(c) for c in self.contributors],
            "dependencies": [d.to_dict() for d in self.dependencies],
            "frameworks": self.frameworks,
            "languages": self.languages,
            "health": self.health.to_dict(),
            "issues_narrative": narrative(self.issues_narrative),
            "pull_requests_narrative": narrative(self.pull_requests_narrative),
            "team_narrative": narrative(self.team_narrative),
        }
