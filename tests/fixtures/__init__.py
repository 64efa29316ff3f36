"""Test fixtures for GitMind.

Canned GitHub API payloads and in-memory stand-ins for the two gateways,
so pipeline tests can script success, failure and timing per call.

- SAMPLE_*: GitHub REST payloads for a small Flask-like repository
- FakeSource: SourceGateway look-alike backed by the sample payloads
- FakeAnalysis: AnalysisGateway look-alike with per-operation failures
"""

import asyncio
import base64
from collections.abc import Callable
from typing import Any

from gitmind.errors import GitMindError, SourceProviderError, UpstreamApiError
from gitmind.models.insights import Contributor, IssueSummary, PullRequestSummary
from gitmind.models.report import (
    ActivityNarrative,
    AnalysisReport,
    GuideDraft,
    MediaAsset,
    OwnershipNarrative,
    RemediationPlan,
    SectionNarrative,
    SecurityAudit,
    SpeechClip,
    TestingSetup,
)
from gitmind.models.repository import (
    CommitFile,
    CommitRecord,
    FileTree,
    RepositoryMetadata,
    RepositoryReference,
    build_file_tree,
    truncate_entries,
)

# =============================================================================
# GitHub payloads
# =============================================================================

SAMPLE_REPO = {
    "name": "flask",
    "full_name": "pallets/flask",
    "description": "The Python micro framework for building web applications.",
    "stargazers_count": 67000,
    "forks_count": 16000,
    "open_issues_count": 12,
    "language": "Python",
    "default_branch": "main",
    "html_url": "https://github.com/pallets/flask",
    "topics": ["python", "wsgi", "web"],
}

SAMPLE_TREE_ENTRIES: list[dict[str, Any]] = [
    {"path": "README.md", "type": "blob", "sha": "a1", "size": 2000},
    {"path": "LICENSE", "type": "blob", "sha": "a2", "size": 1500},
    {"path": "pyproject.toml", "type": "blob", "sha": "a3", "size": 900},
    {"path": "src", "type": "tree", "sha": "t1"},
    {"path": "src/flask", "type": "tree", "sha": "t2"},
    {"path": "src/flask/__init__.py", "type": "blob", "sha": "b1", "size": 300},
    {"path": "src/flask/app.py", "type": "blob", "sha": "b2", "size": 40000},
    {"path": "src/flask/cli.py", "type": "blob", "sha": "b3", "size": 12000},
    {"path": "tests", "type": "tree", "sha": "t3"},
    {"path": "tests/test_basic.py", "type": "blob", "sha": "c1", "size": 9000},
    {"path": ".github", "type": "tree", "sha": "t4"},
    {"path": ".github/workflows", "type": "tree", "sha": "t5"},
    {"path": ".github/workflows/tests.yaml", "type": "blob", "sha": "d1", "size": 700},
]

SAMPLE_README = "# Flask\n\nFlask is a lightweight WSGI web application framework.\n"

SAMPLE_PYPROJECT = """[project]
name = "flask"
dependencies = [
    "werkzeug>=3.0",
    "jinja2>=3.1.2",
    "click>=8.1.3",
]

[project.optional-dependencies]
dev = ["pytest>=8.0"]
"""

SAMPLE_COMMIT_LISTING = [{"sha": "c0ffee1"}, {"sha": "c0ffee2"}]

SAMPLE_COMMIT_DETAILS = {
    "c0ffee1": {
        "sha": "c0ffee1",
        "author": {"login": "davidism"},
        "commit": {
            "author": {"name": "David Lord", "date": "2026-10-01T12:00:00Z"},
            "message": "Fix CLI loading\n\nLonger description.",
        },
        "files": [
            {"filename": "src/flask/cli.py", "additions": 10, "deletions": 2, "status": "modified"},
            {"filename": "tests/test_basic.py", "additions": 5, "deletions": 0, "status": "modified"},
        ],
    },
    "c0ffee2": {
        "sha": "c0ffee2",
        "author": None,
        "commit": {
            "author": {"name": "Jane Doe", "date": "2026-09-30T08:30:00Z"},
            "message": "Update README",
        },
        "files": [{"filename": "README.md", "additions": 1, "deletions": 1, "status": "modified"}],
    },
}


def encoded(text: str) -> dict[str, Any]:
    """Wrap text the way the contents/readme endpoints return it."""
    return {"content": base64.b64encode(text.encode()).decode(), "encoding": "base64"}


# =============================================================================
# Domain objects
# =============================================================================

REFERENCE = RepositoryReference(owner="pallets", name="flask")


def sample_tree(max_entries: int | None = None) -> FileTree:
    kept = truncate_entries(SAMPLE_TREE_ENTRIES, max_entries) if max_entries else SAMPLE_TREE_ENTRIES
    return FileTree(
        roots=build_file_tree(kept),
        paths=[e["path"] for e in kept],
        truncated=len(kept) < len(SAMPLE_TREE_ENTRIES),
        total_entries=len(SAMPLE_TREE_ENTRIES),
    )


def sample_commits() -> list[CommitRecord]:
    return [
        CommitRecord(
            sha="c0ffee1",
            author="davidism",
            message="Fix CLI loading",
            date="2026-10-01T12:00:00Z",
            files=[CommitFile(path="src/flask/cli.py"), CommitFile(path="tests/test_basic.py")],
        ),
        CommitRecord(
            sha="c0ffee2",
            author="Jane Doe",
            message="Update README",
            date="2026-09-30T08:30:00Z",
            files=[CommitFile(path="README.md")],
        ),
    ]


REPORT_PAYLOAD: dict[str, Any] = {
    "summary": "A lightweight WSGI web framework.",
    "tech_stack": ["Python", "Werkzeug", "Jinja2"],
    "key_features": ["Routing", "Templating"],
    "architecture_suggestion": "Keep the core small and push features into extensions.",
    "scorecard": {"maintenance": 90, "documentation": 85, "innovation": 60, "security": 75},
    "roadmap": ["Async views everywhere"],
    "architecture": {
        "nodes": [
            {"id": "app", "label": "Flask app", "kind": "service"},
            {"id": "cli", "label": "CLI", "kind": "component"},
        ],
        "edges": [{"source": "cli", "target": "app", "label": "loads"}],
    },
    "deployment": [],
}

GUIDE_PAYLOAD: dict[str, Any] = {
    "quick_start": "pip install -e . && flask run",
    "critical_files": ["src/flask/app.py"],
    "recommended_path": ["Read app.py", "Read cli.py"],
    "common_tasks": [{"task": "Add a route", "steps": ["Edit app.py"]}],
    "setup_instructions": "Use a virtualenv.",
}


def sample_report() -> AnalysisReport:
    return AnalysisReport.model_validate(REPORT_PAYLOAD)


def sample_guide() -> GuideDraft:
    return GuideDraft.model_validate(GUIDE_PAYLOAD)


# =============================================================================
# Clocks
# =============================================================================


class ManualClock:
    """Clock that only moves when told to."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, amount: float) -> None:
        self.now += amount


# =============================================================================
# Gateway stand-ins
# =============================================================================


class FakeSource:
    """In-memory SourceGateway with per-method failure injection.

    `failures` maps a method name to the exception it raises. `gates` maps
    a method name to an asyncio.Event the call waits on before answering.
    `calls` records every method invoked, in order.
    """

    def __init__(
        self,
        commits: list[CommitRecord] | None = None,
        readme: str = SAMPLE_README,
        files: dict[str, str] | None = None,
    ) -> None:
        self.commits = sample_commits() if commits is None else commits
        self.readme = readme
        self.files = files if files is not None else {"pyproject.toml": SAMPLE_PYPROJECT}
        self.failures: dict[str, Exception] = {}
        self.gates: dict[str, asyncio.Event] = {}
        self.calls: list[str] = []
        self.slug_metadata: dict[str, dict[str, Any]] = {}

    async def _enter(self, name: str) -> None:
        self.calls.append(name)
        gate = self.gates.get(name)
        if gate is not None:
            await gate.wait()
        if name in self.failures:
            raise self.failures[name]

    def resolve(self, text: str) -> RepositoryReference:
        return RepositoryReference.parse(text)

    async def aclose(self) -> None:
        return None

    async def fetch_metadata(self, ref: RepositoryReference) -> RepositoryMetadata:
        await self._enter("fetch_metadata")
        data = self.slug_metadata.get(ref.slug, SAMPLE_REPO)
        return RepositoryMetadata.from_api(ref.owner, ref.name, data)

    async def fetch_tree(self, ref: RepositoryReference, branch: str, max_entries: int | None = None) -> FileTree:
        await self._enter("fetch_tree")
        return sample_tree(max_entries)

    async def fetch_readme(self, ref: RepositoryReference) -> str:
        await self._enter("fetch_readme")
        return self.readme

    async def fetch_file_content(self, ref: RepositoryReference, path: str) -> str:
        await self._enter("fetch_file_content")
        if path not in self.files:
            raise SourceProviderError(f"{path} not found", status_code=404)
        return self.files[path]

    async def fetch_recent_commits(self, ref: RepositoryReference, limit: int = 30) -> list[CommitRecord]:
        await self._enter("fetch_recent_commits")
        return self.commits

    async def fetch_contributors(self, ref: RepositoryReference, limit: int = 10) -> list[Contributor]:
        await self._enter("fetch_contributors")
        return [Contributor(login="davidism", contributions=1200)]

    async def fetch_issues(self, ref: RepositoryReference, limit: int = 10) -> list[IssueSummary]:
        await self._enter("fetch_issues")
        return [IssueSummary(number=1, title="Crash on startup", state="open", author="someone")]

    async def fetch_pull_requests(self, ref: RepositoryReference, limit: int = 10) -> list[PullRequestSummary]:
        await self._enter("fetch_pull_requests")
        return [PullRequestSummary(number=2, title="Fix crash", state="closed", merged=True)]

    async def fetch_languages(self, ref: RepositoryReference) -> dict[str, int]:
        await self._enter("fetch_languages")
        return {"Python": 9000, "HTML": 1000}


class FakeAnalysis:
    """In-memory AnalysisGateway with per-method failure injection.

    Same `failures`, `gates` and `calls` conventions as FakeSource.
    `on_call` runs synchronously at the start of every call.
    """

    def __init__(self) -> None:
        self.failures: dict[str, Exception] = {}
        self.gates: dict[str, asyncio.Event] = {}
        self.calls: list[str] = []
        self.on_call: Callable[[str], None] | None = None
        self.summaries: dict[str, str] = {}

    async def _enter(self, name: str) -> None:
        self.calls.append(name)
        if self.on_call is not None:
            self.on_call(name)
        gate = self.gates.get(name)
        if gate is not None:
            await gate.wait()
        if name in self.failures:
            raise self.failures[name]

    async def analyze_repository(self, snapshot: Any) -> AnalysisReport:
        await self._enter("analyze_repository")
        report = sample_report()
        summary = self.summaries.get(snapshot.reference.slug)
        return report.model_copy(update={"summary": summary}) if summary else report

    async def onboarding_guide(self, snapshot: Any, report: AnalysisReport) -> GuideDraft:
        await self._enter("onboarding_guide")
        return sample_guide()

    async def ownership_narrative(self, slug: str, owners: list[Any]) -> OwnershipNarrative:
        await self._enter("ownership_narrative")
        return OwnershipNarrative(summary="davidism owns the CLI.", bus_factor_risks=["src"])

    async def activity_narrative(self, slug: str, heatmap: list[Any], commits: list[Any]) -> ActivityNarrative:
        await self._enter("activity_narrative")
        return ActivityNarrative(summary="Most changes touch src.", hotspots=["src"])

    async def detect_testing_setup(self, snapshot: Any) -> TestingSetup:
        await self._enter("detect_testing_setup")
        return TestingSetup(has_tests=True, test_framework="pytest", test_command="pytest")

    async def summarize_issues(self, slug: str, issues: list[Any]) -> SectionNarrative:
        await self._enter("summarize_issues")
        return SectionNarrative(overview="One open crash report.")

    async def summarize_pull_requests(self, slug: str, pulls: list[Any]) -> SectionNarrative:
        await self._enter("summarize_pull_requests")
        return SectionNarrative(overview="Fixes merge quickly.")

    async def summarize_team(self, slug: str, contributors: list[Any]) -> SectionNarrative:
        await self._enter("summarize_team")
        return SectionNarrative(overview="One core maintainer.")

    async def explain_file(self, path: str, content: str) -> str:
        await self._enter("explain_file")
        return f"{path} holds {len(content)} characters."

    async def chat(self, context: str, history: list[tuple[str, str]], question: str) -> str:
        await self._enter("chat")
        return f"answer {len(history) // 2 + 1}: {question}"

    async def narrate(self, text: str) -> SpeechClip:
        await self._enter("narrate")
        return SpeechClip(audio_base64=base64.b64encode(b"ID3").decode())

    async def security_audit(self, snapshot: Any, manifests: dict[str, str] | None = None) -> SecurityAudit:
        await self._enter("security_audit")
        return SecurityAudit.model_validate(
            {
                "summary": "Mostly fine.",
                "risk_level": "Low",
                "findings": [
                    {"title": "Debug mode", "severity": "low", "location": "src/flask/app.py"},
                ],
            }
        )

    async def plan_remediation(self, slug: str, audit: SecurityAudit) -> RemediationPlan:
        await self._enter("plan_remediation")
        return RemediationPlan.model_validate(
            {"summary": "One step.", "steps": [{"title": "Disable debug", "priority": "Low"}]}
        )

    async def synthesize_video(self, report: AnalysisReport) -> MediaAsset:
        await self._enter("synthesize_video")
        return MediaAsset(job_id="video-1", content_base64=base64.b64encode(b"mp4").decode())


def upstream_failure(message: str = "provider exploded") -> GitMindError:
    return UpstreamApiError(message)
