"""Analysis pipeline orchestrator.

Drives one repository submission through a two-phase state machine:

    IDLE -> FETCHING_METADATA -> FETCHING_STRUCTURE -> FETCHING_README
         -> RUNNING_CORE_ANALYSIS -> CORE_READY -> BACKGROUND_ENRICHING
         -> COMPLETE | FAILED

The critical path (metadata, structure, core analysis) must succeed or the
run fails as a whole. Everything after CORE_READY is optional: the
onboarding guide and its enrichments (ownership, activity, testing) fail
independently and only ever add fields.

A new submission supersedes the previous run. In-flight work of the old
run is not cancelled; its results are simply never applied.
"""

import asyncio
import logging
from collections.abc import Awaitable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar

from gitmind.analyzers.activity import area_owners, change_heatmap
from gitmind.analyzers.health import compute_health
from gitmind.analyzers.manifests import MANIFEST_FILES, ManifestParser, detect_frameworks
from gitmind.config import PipelineConfig
from gitmind.errors import GitMindError, RateLimitExceededError, ValidationError, classify_error
from gitmind.llm.gateway import AnalysisGateway
from gitmind.models.insights import Contributor, InsightBundle
from gitmind.models.report import (
    ActivityInsight,
    AnalysisReport,
    MediaAsset,
    OnboardingGuide,
    OwnershipInsight,
    RemediationPlan,
    SecurityAudit,
    SpeechClip,
)
from gitmind.models.repository import CommitRecord, RepositoryReference, RepositorySnapshot
from gitmind.persistence.record_store import RecordStore
from gitmind.source.gateway import SourceGateway
from gitmind.utils.logging import StageLog

logger = logging.getLogger(__name__)

T = TypeVar("T")


class PipelineStage(Enum):
    """Run lifecycle stages."""

    IDLE = "idle"
    FETCHING_METADATA = "fetching_metadata"
    FETCHING_STRUCTURE = "fetching_structure"
    FETCHING_README = "fetching_readme"
    RUNNING_CORE_ANALYSIS = "running_core_analysis"
    CORE_READY = "core_ready"
    BACKGROUND_ENRICHING = "background_enriching"
    COMPLETE = "complete"
    FAILED = "failed"


READY_STAGES = frozenset(
    {PipelineStage.CORE_READY, PipelineStage.BACKGROUND_ENRICHING, PipelineStage.COMPLETE}
)


@dataclass
class PipelineOptions:
    """Options for controlling pipeline execution.

    Attributes:
        fast_mode: Return at CORE_READY and enrich in the background; also
            caps the file tree at `fast_mode_max_entries`
        fast_mode_max_entries: Tree entries kept in fast mode
        daily_limit: Analyses per user per day (0 disables the cap)
        recent_commit_limit: Recent commits fetched for enrichment
    """

    fast_mode: bool = True
    fast_mode_max_entries: int = 300
    daily_limit: int = 3
    recent_commit_limit: int = 30

    @classmethod
    def from_config(cls, config: PipelineConfig) -> "PipelineOptions":
        return cls(
            fast_mode=config.fast_mode,
            fast_mode_max_entries=config.fast_mode_max_entries,
            daily_limit=config.daily_limit,
            recent_commit_limit=config.recent_commit_limit,
        )


@dataclass
class Settled(Generic[T]):
    """Outcome of a prefetch: a value or a classified error, never a raise."""

    value: T | None = None
    error: GitMindError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class RunResult:
    """Observable state of one run.

    Attributes:
        run_id: Monotonically increasing run identity
        reference: Repository being analyzed
        stage: Current lifecycle stage
        snapshot: Structural inputs (discarded on failure)
        report: Core analysis (available from CORE_READY)
        guide: Onboarding guide (available once background work produced it)
        insights: Insight bundle, loaded on demand
        audit: Security audit, produced on demand
        remediation: Remediation plan for the audit
        error: Classified critical-path failure
        enrichment_errors: Background failures by step name
        chat_history: (role, text) conversation turns
        superseded: True once a newer submission replaced this run
    """

    run_id: int
    reference: RepositoryReference
    stage: PipelineStage = PipelineStage.IDLE
    snapshot: RepositorySnapshot | None = None
    report: AnalysisReport | None = None
    guide: OnboardingGuide | None = None
    insights: InsightBundle | None = None
    audit: SecurityAudit | None = None
    remediation: RemediationPlan | None = None
    error: GitMindError | None = None
    enrichment_errors: dict[str, GitMindError] = field(default_factory=dict)
    chat_history: list[tuple[str, str]] = field(default_factory=list)
    superseded: bool = False

    @property
    def is_ready(self) -> bool:
        return self.stage in READY_STAGES

    @property
    def is_complete(self) -> bool:
        return self.stage in (PipelineStage.COMPLETE, PipelineStage.FAILED)

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "repository": self.reference.slug,
            "stage": self.stage.value,
            "truncated": self.snapshot.truncated if self.snapshot else False,
            "metadata": self.snapshot.metadata.to_dict() if self.snapshot else None,
            "report": self.report.model_dump(mode="json") if self.report else None,
            "guide": self.guide.model_dump(mode="json") if self.guide else None,
            "error": self.error.to_dict() if self.error else None,
            "enrichment_errors": {k: v.to_dict() for k, v in self.enrichment_errors.items()},
        }


@dataclass
class _Run:
    result: RunResult
    readme: "asyncio.Task[Settled[str]]"
    commits: "asyncio.Task[Settled[list[CommitRecord]]]"
    contributors: "asyncio.Task[Settled[list[Contributor]]]"
    background: "asyncio.Task[None] | None" = None

    @property
    def run_id(self) -> int:
        return self.result.run_id


def settle(awaitable: Awaitable[T]) -> "asyncio.Task[Settled[T]]":
    """Start `awaitable` as a task whose result is a Settled outcome."""

    async def run() -> Settled[T]:
        try:
            return Settled(value=await awaitable)
        except Exception as e:
            return Settled(error=classify_error(e))

    return asyncio.create_task(run())


class Orchestrator:
    """Runs submissions through the pipeline and exposes the current run.

    Args:
        source: GitHub gateway
        analysis: Inference gateway
        options: Pipeline options
        record_store: Optional store for completed analyses and the daily cap
        log: Stage log (a fresh one is created when omitted)
    """

    def __init__(
        self,
        source: SourceGateway,
        analysis: AnalysisGateway,
        options: PipelineOptions | None = None,
        record_store: RecordStore | None = None,
        log: StageLog | None = None,
    ) -> None:
        self.source = source
        self.analysis = analysis
        self.options = options or PipelineOptions()
        self.record_store = record_store
        self.log = log or StageLog()
        self._manifest_parser = ManifestParser()
        self._run_counter = 0
        self._current: _Run | None = None

    # -------------------------------------------------------------------------
    # Run bookkeeping
    # -------------------------------------------------------------------------

    @property
    def current(self) -> RunResult | None:
        return self._current.result if self._current else None

    @property
    def stage(self) -> PipelineStage:
        return self._current.result.stage if self._current else PipelineStage.IDLE

    def _is_current(self, run: _Run) -> bool:
        return self._current is run

    def _transition(self, run: _Run, stage: PipelineStage, message: str = "") -> None:
        run.result.stage = stage
        self.log.record(run.run_id, stage.value, message or f"Entered {stage.value}")

    def _abandon(self, run: _Run) -> RunResult:
        run.result.superseded = True
        newer = self._current.run_id if self._current else "?"
        self.log.record(
            run.run_id,
            run.result.stage.value,
            f"Superseded by run {newer}; discarding results",
            level=logging.WARNING,
        )
        return run.result

    def _fail(self, run: _Run, error: GitMindError) -> None:
        result = run.result
        result.snapshot = None
        result.report = None
        result.guide = None
        result.error = error
        self._transition(run, PipelineStage.FAILED, error.message)
        self.log.record(
            run.run_id,
            PipelineStage.FAILED.value,
            f"{error.kind.value}: {error.message}",
            level=logging.ERROR,
            error_kind=error.kind.value,
        )

    def _record_enrichment_failure(self, run: _Run, step: str, exc: Exception) -> None:
        error = classify_error(exc)
        if self._is_current(run):
            run.result.enrichment_errors[step] = error
        self.log.record(
            run.run_id,
            run.result.stage.value,
            f"{step} skipped: {error.message}",
            level=logging.WARNING,
            error_kind=error.kind.value,
        )

    def _require_ready(self) -> _Run:
        run = self._current
        if run is None or not run.result.is_ready or run.result.snapshot is None or run.result.report is None:
            raise ValidationError("No repository analysis is loaded. Analyze a repository first.")
        return run

    # -------------------------------------------------------------------------
    # Submission
    # -------------------------------------------------------------------------

    async def submit(self, text: str, user_id: str | None = None) -> RunResult:
        """Analyze a repository reference.

        Malformed references raise before any network call or budget use.
        With fast mode on, returns at CORE_READY while enrichment continues
        in the background (see `wait_until_complete`).

        Args:
            text: Repository URL or clone address
            user_id: Identity for the daily cap and the record store

        Returns:
            RunResult of this run (marked `superseded` if a newer run
            replaced it mid-flight)

        Raises:
            ValidationError: Malformed reference
            RateLimitExceededError: Daily cap reached
            GitMindError: Classified critical-path failure
        """
        reference = self.source.resolve(text)

        if user_id and self.record_store is not None and self.options.daily_limit > 0:
            await self._check_daily_limit(user_id)

        run = self._start_run(reference)

        try:
            self._transition(run, PipelineStage.FETCHING_METADATA)
            metadata = await self.source.fetch_metadata(reference)
            if not self._is_current(run):
                return self._abandon(run)

            self._transition(run, PipelineStage.FETCHING_STRUCTURE, f"Branch {metadata.default_branch}")
            max_entries = self.options.fast_mode_max_entries if self.options.fast_mode else None
            tree = await self.source.fetch_tree(reference, metadata.default_branch, max_entries)
            if not self._is_current(run):
                return self._abandon(run)
            if tree.truncated:
                self.log.record(
                    run.run_id,
                    PipelineStage.FETCHING_STRUCTURE.value,
                    f"Tree truncated to {len(tree.paths)} of {tree.total_entries} entries"
                    if len(tree.paths) < tree.total_entries
                    else "GitHub returned a partial tree listing",
                )

            self._transition(run, PipelineStage.FETCHING_README)
            readme_outcome = await run.readme
            if not self._is_current(run):
                return self._abandon(run)
            readme = readme_outcome.value or ""
            if not readme_outcome.ok:
                self.log.record(
                    run.run_id,
                    PipelineStage.FETCHING_README.value,
                    f"README unavailable: {readme_outcome.error.message}",  # type: ignore[union-attr]
                    level=logging.WARNING,
                )

            snapshot = RepositorySnapshot(reference=reference, metadata=metadata, tree=tree, readme=readme)

            self._transition(run, PipelineStage.RUNNING_CORE_ANALYSIS)
            report = await self.analysis.analyze_repository(snapshot)
            if not self._is_current(run):
                return self._abandon(run)
        except Exception as e:
            error = classify_error(e)
            if not self._is_current(run):
                return self._abandon(run)
            self._fail(run, error)
            raise error from e

        run.result.snapshot = snapshot
        run.result.report = report
        self._transition(run, PipelineStage.CORE_READY, "Core analysis ready")

        if user_id and self.record_store is not None:
            self.record_store.persist_in_background(user_id, reference, report)

        if self.options.fast_mode:
            run.background = asyncio.create_task(self._enrich(run))
        else:
            await self._enrich(run)
        return run.result

    def _start_run(self, reference: RepositoryReference) -> _Run:
        self._run_counter += 1
        run_id = self._run_counter
        run = _Run(
            result=RunResult(run_id=run_id, reference=reference),
            readme=settle(self.source.fetch_readme(reference)),
            commits=settle(self.source.fetch_recent_commits(reference, self.options.recent_commit_limit)),
            contributors=settle(self.source.fetch_contributors(reference)),
        )
        if self._current is not None and not self._current.result.is_complete:
            self.log.record(self._current.run_id, self._current.result.stage.value, f"Superseded by run {run_id}")
        self._current = run
        self.log.record(run_id, PipelineStage.IDLE.value, f"Submitted {reference.slug}")
        return run

    async def _check_daily_limit(self, user_id: str) -> None:
        assert self.record_store is not None
        try:
            used = await self.record_store.count_today(user_id)
        except GitMindError as e:
            logger.warning("Could not check daily usage for %s; allowing the run: %s", user_id, e.message)
            return
        if used >= self.options.daily_limit:
            raise RateLimitExceededError(
                f"Daily limit of {self.options.daily_limit} analyses reached. Try again tomorrow.",
                details={"used": used, "limit": self.options.daily_limit},
            )

    async def wait_until_complete(self) -> RunResult | None:
        """Await background enrichment of the current run, if any."""
        run = self._current
        if run is None:
            return None
        if run.background is not None:
            await run.background
        return run.result

    # -------------------------------------------------------------------------
    # Background enrichment
    # -------------------------------------------------------------------------

    async def _enrich(self, run: _Run) -> None:
        if not self._is_current(run):
            return
        self._transition(run, PipelineStage.BACKGROUND_ENRICHING)
        snapshot, report = run.result.snapshot, run.result.report
        assert snapshot is not None and report is not None

        try:
            draft = await self.analysis.onboarding_guide(snapshot, report)
        except Exception as e:
            self._record_enrichment_failure(run, "guide", e)
        else:
            if not self._is_current(run):
                return
            run.result.guide = OnboardingGuide.from_draft(draft)
            await self._enrich_guide(run, snapshot)

        if self._is_current(run):
            self._transition(run, PipelineStage.COMPLETE)

    async def _enrich_guide(self, run: _Run, snapshot: RepositorySnapshot) -> None:
        outcome = await run.commits
        if not outcome.ok:
            self._record_enrichment_failure(run, "commits", outcome.error)  # type: ignore[arg-type]
            return
        commits = outcome.value or []
        if not commits:
            self.log.record(run.run_id, run.result.stage.value, "No recent commits; skipping guide enrichments")
            return

        await asyncio.gather(
            self._enrich_ownership(run, commits),
            self._enrich_activity(run, commits),
            self._enrich_testing(run, snapshot),
        )

    def _merge(self, run: _Run, field_name: str, value: Any) -> None:
        if not self._is_current(run) or run.result.guide is None:
            return
        if run.result.guide.merge(field_name, value):
            self.log.record(run.run_id, run.result.stage.value, f"Merged {field_name} into guide")

    async def _enrich_ownership(self, run: _Run, commits: list[CommitRecord]) -> None:
        try:
            owners = area_owners(commits)
            narrative = await self.analysis.ownership_narrative(run.result.reference.slug, owners)
        except Exception as e:
            self._record_enrichment_failure(run, "ownership", e)
            return
        self._merge(run, "ownership", OwnershipInsight(owners=owners, narrative=narrative))

    async def _enrich_activity(self, run: _Run, commits: list[CommitRecord]) -> None:
        try:
            heatmap = change_heatmap(commits)
            narrative = await self.analysis.activity_narrative(run.result.reference.slug, heatmap, commits)
        except Exception as e:
            self._record_enrichment_failure(run, "activity", e)
            return
        self._merge(run, "activity", ActivityInsight(heatmap=heatmap, narrative=narrative))

    async def _enrich_testing(self, run: _Run, snapshot: RepositorySnapshot) -> None:
        try:
            testing = await self.analysis.detect_testing_setup(snapshot)
        except Exception as e:
            self._record_enrichment_failure(run, "testing", e)
            return
        self._merge(run, "testing", testing)

    # -------------------------------------------------------------------------
    # On-demand operations on the current run
    # -------------------------------------------------------------------------

    async def _fetch_manifests(self, run: _Run) -> dict[str, str]:
        snapshot = run.result.snapshot
        assert snapshot is not None
        present = [name for name in MANIFEST_FILES if snapshot.tree.find(name) is not None]
        outcomes = await asyncio.gather(
            *(settle(self.source.fetch_file_content(snapshot.reference, name)) for name in present)
        )
        manifests: dict[str, str] = {}
        for name, outcome in zip(present, outcomes, strict=True):
            if outcome.ok and outcome.value:
                manifests[name] = outcome.value
            elif outcome.error is not None:
                logger.warning("Could not fetch %s: %s", name, outcome.error.message)
        return manifests

    async def load_insights(self) -> InsightBundle:
        """Collect issues, pull requests, team, dependencies and health.

        Each section fails independently: a failed fetch leaves its list
        empty, a failed narrative leaves it None.
        """
        run = self._require_ready()
        snapshot = run.result.snapshot
        assert snapshot is not None
        ref = snapshot.reference

        issues_o, pulls_o, languages_o = await asyncio.gather(
            settle(self.source.fetch_issues(ref)),
            settle(self.source.fetch_pull_requests(ref)),
            settle(self.source.fetch_languages(ref)),
        )
        contributors_o = await run.contributors
        manifests = await self._fetch_manifests(run)

        for name, outcome in (
            ("issues", issues_o),
            ("pull requests", pulls_o),
            ("languages", languages_o),
            ("contributors", contributors_o),
        ):
            if not outcome.ok:
                logger.warning("Could not load %s for %s: %s", name, ref.slug, outcome.error.message)  # type: ignore[union-attr]

        dependencies = self._manifest_parser.parse_all(manifests)
        languages = languages_o.value or {}
        bundle = InsightBundle(
            issues=issues_o.value or [],
            pull_requests=pulls_o.value or [],
            contributors=contributors_o.value or [],
            dependencies=dependencies,
            frameworks=detect_frameworks(dependencies),
            languages=languages,
            health=compute_health(snapshot.tree, languages),
        )

        narratives = await asyncio.gather(
            settle(self.analysis.summarize_issues(ref.slug, bundle.issues)) if bundle.issues else _none(),
            settle(self.analysis.summarize_pull_requests(ref.slug, bundle.pull_requests))
            if bundle.pull_requests
            else _none(),
            settle(self.analysis.summarize_team(ref.slug, bundle.contributors)) if bundle.contributors else _none(),
        )
        for attr, outcome in zip(
            ("issues_narrative", "pull_requests_narrative", "team_narrative"), narratives, strict=True
        ):
            if outcome.ok:
                setattr(bundle, attr, outcome.value)
            else:
                logger.warning("%s unavailable: %s", attr, outcome.error.message)  # type: ignore[union-attr]

        if self._is_current(run):
            run.result.insights = bundle
        return bundle

    async def explain_file(self, path: str) -> str:
        run = self._require_ready()
        content = await self.source.fetch_file_content(run.result.reference, path)
        return await self.analysis.explain_file(path, content)

    def _chat_context(self, run: _Run) -> str:
        report, snapshot = run.result.report, run.result.snapshot
        assert report is not None and snapshot is not None
        return (
            f"Repository: {run.result.reference.slug}\n"
            f"Summary: {report.summary}\n"
            f"Tech stack: {', '.join(report.tech_stack)}\n"
            f"Key features: {'; '.join(report.key_features)}\n"
            f"Structure:\n{snapshot.structure_outline(100)}\n"
            f"README:\n{snapshot.readme[:3000]}"
        )

    async def chat(self, question: str) -> str:
        """Answer a question about the current repository, keeping history."""
        run = self._require_ready()
        history = list(run.result.chat_history)
        answer = await self.analysis.chat(self._chat_context(run), history, question)
        if self._is_current(run):
            run.result.chat_history.extend([("user", question), ("model", answer)])
        return answer

    async def narrate(self, text: str) -> SpeechClip:
        if not text.strip():
            raise ValidationError("Nothing to narrate")
        return await self.analysis.narrate(text)

    async def audit(self) -> tuple[SecurityAudit, RemediationPlan]:
        """Run a security audit of the current repository and plan remediation."""
        run = self._require_ready()
        snapshot = run.result.snapshot
        assert snapshot is not None
        manifests = await self._fetch_manifests(run)
        audit = await self.analysis.security_audit(snapshot, manifests)
        plan = await self.analysis.plan_remediation(snapshot.reference.slug, audit)
        if self._is_current(run):
            run.result.audit = audit
            run.result.remediation = plan
        return audit, plan

    async def synthesize_walkthrough(self) -> MediaAsset:
        run = self._require_ready()
        assert run.result.report is not None
        return await self.analysis.synthesize_video(run.result.report)


async def _none() -> Settled[Any]:
    return Settled(value=None)
