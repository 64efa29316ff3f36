"""Inference gateway.

Every operation follows the same path:

1. Return a cached result for idempotent operations (analysis cache).
2. Consume a request-budget token keyed by the operation kind; a denial
   raises RateLimitExceededError without touching the network.
3. Race the provider call against the per-call timeout.
4. For structured operations, validate the reply against its response
   model. Nothing unvalidated leaves this module.
5. Classify any other failure.
"""

import asyncio
import base64
import logging
import re
import time
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import pydantic

from gitmind.budget import RequestBudget
from gitmind.cache import ANALYSIS_TTL_SECONDS, ResultCache
from gitmind.errors import (
    RateLimitExceededError,
    RequestTimeoutError,
    UpstreamApiError,
    ValidationError,
    classify_error,
)
from gitmind.llm import prompts
from gitmind.llm.client import LLMClient
from gitmind.models.insights import Contributor, IssueSummary, PullRequestSummary
from gitmind.models.report import (
    ActivityNarrative,
    AnalysisReport,
    AreaOwner,
    GuideDraft,
    HeatmapCell,
    MediaAsset,
    OwnershipNarrative,
    RemediationPlan,
    SectionNarrative,
    SecurityAudit,
    Shape,
    SpeechClip,
    TestingSetup,
)
from gitmind.models.repository import CommitRecord, RepositorySnapshot

logger = logging.getLogger(__name__)

ShapeT = TypeVar("ShapeT", bound=Shape)
T = TypeVar("T")

DEFAULT_CALL_TIMEOUT = 120.0
DEFAULT_POLL_INTERVAL = 10.0
DEFAULT_MAX_WAIT = 600.0

CHAT_FALLBACK = "I couldn't process that request."
EXPLAIN_FALLBACK = "Failed to explain code."

_FENCE_RE = re.compile(r"^\s*```[a-zA-Z0-9_-]*\s*\n?(.*?)\n?\s*```\s*$", re.DOTALL)


def strip_code_fences(text: str) -> str:
    """Remove a single surrounding markdown code fence, if present."""
    match = _FENCE_RE.match(text)
    return match.group(1).strip() if match else text.strip()


def parse_structured(text: str, model: type[ShapeT]) -> ShapeT:
    """Validate a raw reply against `model`.

    Raises:
        UpstreamApiError: If the reply is empty
        ValidationError: If the reply is not JSON of the expected shape
    """
    body = strip_code_fences(text or "")
    if not body:
        raise UpstreamApiError(f"Empty reply where {model.__name__} was expected")
    try:
        return model.model_validate_json(body)
    except pydantic.ValidationError as e:
        raise ValidationError(
            f"Reply did not match {model.__name__}: {e.error_count()} error(s)",
            details=str(e),
        ) from e


class AnalysisGateway:
    """Budgeted, timed, shape-checked access to the inference service.

    Args:
        client: LiteLLM-backed client
        budget: Request budget shared across runs
        cache: Analysis cache shared across runs
        call_timeout: Wall-clock seconds allowed per provider call
        poll_interval: Seconds between media job polls
        max_wait: Ceiling in seconds for media job polling
        sleep: Awaitable sleep (injectable for tests)
        clock: Monotonic clock in seconds (injectable for tests)
    """

    def __init__(
        self,
        client: LLMClient,
        budget: RequestBudget | None = None,
        cache: ResultCache[Any] | None = None,
        call_timeout: float = DEFAULT_CALL_TIMEOUT,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        max_wait: float = DEFAULT_MAX_WAIT,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.client = client
        self.budget = budget if budget is not None else RequestBudget()
        self.cache: ResultCache[Any] = cache if cache is not None else ResultCache(ANALYSIS_TTL_SECONDS)
        self.call_timeout = call_timeout
        self.poll_interval = poll_interval
        self.max_wait = max_wait
        self._sleep = sleep
        self._clock = clock

    # -------------------------------------------------------------------------
    # Shared call path
    # -------------------------------------------------------------------------

    def _consume(self, kind: str) -> None:
        decision = self.budget.is_allowed(kind)
        if not decision.allowed:
            wait_s = (decision.retry_after_ms or 0) / 1000
            logger.warning("Budget exhausted for '%s'; retry in %.1fs", kind, wait_s)
            raise RateLimitExceededError(
                f"Too many {kind} requests. Please wait {wait_s:.0f}s and try again.",
                retry_after_ms=decision.retry_after_ms,
            )

    async def _call(self, kind: str, awaitable: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=self.call_timeout)
        except asyncio.TimeoutError as e:
            raise RequestTimeoutError(
                f"The {kind} request did not finish within {self.call_timeout:.0f}s."
            ) from e
        except Exception as e:
            raise classify_error(e) from e

    async def _structured(
        self,
        kind: str,
        model: type[ShapeT],
        prompt: str,
        cache_key: str | None = None,
        reasoning_effort: str | None = None,
    ) -> ShapeT:
        if cache_key is not None:
            cached = self.cache.get(cache_key)
            if cached is not None:
                logger.debug("Analysis cache hit: %s", cache_key)
                return cached

        self._consume(kind)
        logger.info("Requesting %s (%s)", kind, model.__name__)

        response = await self._call(
            kind,
            self.client.complete(
                prompt,
                system_prompt=prompts.get_system_prompt(kind),
                response_schema=model.model_json_schema(),
                schema_name=model.__name__,
                reasoning_effort=reasoning_effort,
            ),
        )
        result = parse_structured(response.content, model)

        if cache_key is not None:
            self.cache.set(cache_key, result)
        return result

    async def _text(self, kind: str, prompt: str, fallback: str) -> str:
        self._consume(kind)
        response = await self._call(
            kind,
            self.client.complete(prompt, system_prompt=prompts.get_system_prompt(kind)),
        )
        return response.content.strip() or fallback

    # -------------------------------------------------------------------------
    # Core and guide
    # -------------------------------------------------------------------------

    async def analyze_repository(self, snapshot: RepositorySnapshot) -> AnalysisReport:
        return await self._structured(
            "analysis",
            AnalysisReport,
            prompts.build_analysis_prompt(snapshot),
            cache_key=f"analysis:{snapshot.reference.slug}",
            reasoning_effort="high",
        )

    async def onboarding_guide(self, snapshot: RepositorySnapshot, report: AnalysisReport) -> GuideDraft:
        return await self._structured(
            "onboarding",
            GuideDraft,
            prompts.build_onboarding_prompt(snapshot, report),
            cache_key=f"guide:{snapshot.reference.slug}",
        )

    async def ownership_narrative(self, slug: str, owners: list[AreaOwner]) -> OwnershipNarrative:
        return await self._structured(
            "ownership", OwnershipNarrative, prompts.build_ownership_prompt(slug, owners)
        )

    async def activity_narrative(
        self,
        slug: str,
        heatmap: list[HeatmapCell],
        commits: list[CommitRecord],
    ) -> ActivityNarrative:
        return await self._structured(
            "activity", ActivityNarrative, prompts.build_activity_prompt(slug, heatmap, commits)
        )

    async def detect_testing_setup(self, snapshot: RepositorySnapshot) -> TestingSetup:
        return await self._structured(
            "testing",
            TestingSetup,
            prompts.build_testing_prompt(snapshot),
            cache_key=f"testing:{snapshot.reference.slug}",
        )

    # -------------------------------------------------------------------------
    # Insight narratives (share one budget key)
    # -------------------------------------------------------------------------

    async def summarize_issues(self, slug: str, issues: list[IssueSummary]) -> SectionNarrative:
        return await self._structured(
            "insights", SectionNarrative, prompts.build_issues_prompt(slug, issues)
        )

    async def summarize_pull_requests(self, slug: str, pulls: list[PullRequestSummary]) -> SectionNarrative:
        return await self._structured(
            "insights", SectionNarrative, prompts.build_pull_requests_prompt(slug, pulls)
        )

    async def summarize_team(self, slug: str, contributors: list[Contributor]) -> SectionNarrative:
        return await self._structured(
            "insights", SectionNarrative, prompts.build_team_prompt(slug, contributors)
        )

    # -------------------------------------------------------------------------
    # On-demand operations
    # -------------------------------------------------------------------------

    async def explain_file(self, path: str, content: str) -> str:
        return await self._text("explain", prompts.build_explain_prompt(path, content), EXPLAIN_FALLBACK)

    async def chat(self, context: str, history: list[tuple[str, str]], question: str) -> str:
        if not question.strip():
            raise ValidationError("Question cannot be empty")
        return await self._text(
            "chat", prompts.build_chat_prompt(context, history, question), CHAT_FALLBACK
        )

    async def narrate(self, text: str) -> SpeechClip:
        """Render a spoken explanation of `text` as inline audio."""
        self._consume("speech")
        audio = await self._call(
            "speech", self.client.synthesize_speech(prompts.build_narration_text(text))
        )
        return SpeechClip(
            audio_base64=base64.b64encode(audio).decode("ascii"),
            voice=self.client.config.speech_voice,
        )

    async def security_audit(
        self,
        snapshot: RepositorySnapshot,
        manifests: dict[str, str] | None = None,
    ) -> SecurityAudit:
        return await self._structured(
            "audit",
            SecurityAudit,
            prompts.build_audit_prompt(snapshot, manifests),
            cache_key=f"audit:{snapshot.reference.slug}",
            reasoning_effort="high",
        )

    async def plan_remediation(self, slug: str, audit: SecurityAudit) -> RemediationPlan:
        return await self._structured(
            "remediation",
            RemediationPlan,
            prompts.build_remediation_prompt(slug, audit),
            cache_key=f"remediation:{slug}",
            reasoning_effort="high",
        )

    async def synthesize_video(self, report: AnalysisReport) -> MediaAsset:
        """Submit a walkthrough video job and poll it to completion.

        Raises:
            UpstreamApiError: If the job reports failure
            RequestTimeoutError: If the job is still running after `max_wait`
        """
        self._consume("video")
        job = await self._call("video", self.client.start_video(prompts.build_video_prompt(report)))
        logger.info("Video job %s submitted (%s)", job.job_id, job.status)

        started = self._clock()
        while not job.done:
            if job.failed:
                raise UpstreamApiError(
                    f"Video generation failed: {job.error or job.status}",
                    details=job.job_id,
                )
            if self._clock() - started >= self.max_wait:
                raise RequestTimeoutError(
                    f"Video job {job.job_id} is still in progress after {self.max_wait:.0f}s.",
                    details=job.job_id,
                )
            await self._sleep(self.poll_interval)
            job = await self._call("video", self.client.video_status(job.job_id))
            logger.debug("Video job %s: %s", job.job_id, job.status)

        content = await self._call("video", self.client.video_content(job.job_id))
        return MediaAsset(job_id=job.job_id, content_base64=content)
