"""Async LLM client wrapper using LiteLLM.

Provides one interface over the configured provider for three kinds of
calls: text/structured completion, speech synthesis, and long-running video
jobs. Provider exceptions are translated into classified GitMind errors at
this boundary.
"""

import base64
import logging
from dataclasses import dataclass, field
from typing import Any

import litellm

from gitmind.errors import (
    GitMindError,
    InvalidConfigurationError,
    NetworkError,
    RequestTimeoutError,
    UpstreamApiError,
    classify_error,
)
from gitmind.models.llm_config import LLMConfig

logger = logging.getLogger(__name__)


@dataclass
class LLMResponse:
    """Response from LLM completion.

    Attributes:
        content: Generated text content
        model: Model that generated the response
        usage: Token usage statistics
        finish_reason: Reason for completion (stop, length, etc.)
    """

    content: str
    model: str
    usage: dict[str, int] = field(default_factory=dict)
    finish_reason: str | None = None


@dataclass
class VideoJob:
    """State of a long-running video generation job."""

    job_id: str
    status: str
    error: str | None = None

    @property
    def done(self) -> bool:
        return self.status == "completed"

    @property
    def failed(self) -> bool:
        return self.status in ("failed", "cancelled")


class LLMError(UpstreamApiError):
    """The provider answered, but the answer was unusable."""


class LLMClient:
    """Unified async LLM client using LiteLLM.

    Supports any provider LiteLLM routes to; the model name is built from
    the configured provider and model (see `LLMConfig.get_litellm_model_name`).
    """

    def __init__(self, config: LLMConfig) -> None:
        self.config = config

    def _base_kwargs(self) -> dict[str, Any]:
        kwargs: dict[str, Any] = {}
        if self.config.api_key:
            kwargs["api_key"] = self.config.api_key
        if self.config.api_base:
            kwargs["api_base"] = self.config.api_base
        return kwargs

    def _translate(self, error: Exception, action: str) -> GitMindError:
        provider = self.config.provider
        if isinstance(error, GitMindError):
            return error
        if isinstance(error, litellm.exceptions.Timeout):
            return RequestTimeoutError(f"{action} timed out at {provider}", details=str(error))
        if isinstance(error, litellm.exceptions.AuthenticationError):
            return InvalidConfigurationError(
                f"Authentication failed for {provider}. Check the configured API key.",
                details=str(error),
            )
        if isinstance(error, litellm.exceptions.RateLimitError):
            return UpstreamApiError(
                f"{provider} is rate limiting requests. Try again shortly.",
                status_code=429,
                details=str(error),
            )
        if isinstance(error, litellm.exceptions.APIConnectionError):
            return NetworkError(f"Connection failed to {provider}", details=str(error))
        return classify_error(error)

    async def complete(
        self,
        prompt: str,
        system_prompt: str | None = None,
        response_schema: dict[str, Any] | None = None,
        schema_name: str = "response",
        reasoning_effort: str | None = None,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        """Generate a completion from the LLM.

        Args:
            prompt: User prompt for the LLM
            system_prompt: Optional system prompt
            response_schema: JSON schema the reply must follow
            schema_name: Name sent alongside the schema
            reasoning_effort: Extended reasoning level ("low", "medium", "high")
            max_tokens: Override max_tokens from config

        Returns:
            LLMResponse with generated content

        Raises:
            GitMindError: Classified provider failure
        """
        messages: list[dict[str, str]] = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        completion_kwargs: dict[str, Any] = {
            "model": self.config.get_litellm_model_name(),
            "messages": messages,
            "temperature": self.config.temperature,
            "max_tokens": max_tokens or self.config.max_tokens,
            # Providers that lack reasoning or schema support ignore them
            "drop_params": True,
            **self._base_kwargs(),
        }
        if response_schema is not None:
            completion_kwargs["response_format"] = {
                "type": "json_schema",
                "json_schema": {"name": schema_name, "schema": response_schema, "strict": False},
            }
        if reasoning_effort:
            completion_kwargs["reasoning_effort"] = reasoning_effort

        try:
            response = await litellm.acompletion(**completion_kwargs)
        except Exception as e:
            raise self._translate(e, "Completion") from e

        if not response.choices:
            raise LLMError(f"{self.config.provider} returned no choices")

        choice = response.choices[0]
        content = choice.message.content or ""

        usage: dict[str, int] = {}
        if getattr(response, "usage", None):
            usage = {
                "prompt_tokens": response.usage.prompt_tokens or 0,
                "completion_tokens": response.usage.completion_tokens or 0,
                "total_tokens": response.usage.total_tokens or 0,
            }

        logger.debug(
            "Completion from %s: %d chars, %s tokens",
            response.model or self.config.model,
            len(content),
            usage.get("total_tokens", "?"),
        )

        return LLMResponse(
            content=content,
            model=response.model or self.config.model,
            usage=usage,
            finish_reason=choice.finish_reason,
        )

    async def synthesize_speech(self, text: str, voice: str | None = None) -> bytes:
        """Render `text` to audio with the configured speech model.

        Returns:
            Raw audio bytes (MP3)
        """
        try:
            response = await litellm.aspeech(
                model=self.config.speech_model,
                input=text,
                voice=voice or self.config.speech_voice,
                **self._base_kwargs(),
            )
        except Exception as e:
            raise self._translate(e, "Speech synthesis") from e

        audio = response.content
        if not audio:
            raise LLMError("Speech synthesis returned no audio")
        return audio

    async def start_video(self, prompt: str, seconds: int = 8) -> VideoJob:
        """Submit a video generation job."""
        try:
            video = await litellm.avideo_generation(
                model=self.config.video_model,
                prompt=prompt,
                seconds=str(seconds),
                **self._base_kwargs(),
            )
        except Exception as e:
            raise self._translate(e, "Video generation") from e
        return _video_job(video)

    async def video_status(self, job_id: str) -> VideoJob:
        try:
            video = await litellm.avideo_status(video_id=job_id, **self._base_kwargs())
        except Exception as e:
            raise self._translate(e, "Video status") from e
        return _video_job(video)

    async def video_content(self, job_id: str) -> str:
        """Download a finished video, base64-encoded."""
        try:
            content = await litellm.avideo_content(video_id=job_id, **self._base_kwargs())
        except Exception as e:
            raise self._translate(e, "Video download") from e
        if not content:
            raise LLMError(f"Video job {job_id} produced no content")
        return base64.b64encode(content).decode("ascii")


def _video_job(video: Any) -> VideoJob:
    job_id = getattr(video, "id", None) or (video.get("id") if isinstance(video, dict) else None)
    status = getattr(video, "status", None) or (video.get("status") if isinstance(video, dict) else None)
    if not job_id:
        raise LLMError("Video service did not return a job id")
    error = getattr(video, "error", None)
    return VideoJob(job_id=str(job_id), status=str(status or "queued"), error=str(error) if error else None)


def create_client(config: LLMConfig) -> LLMClient:
    """Create an LLM client from configuration.

    Raises:
        InvalidConfigurationError: If inference is disabled or the provider
            needs a key and only a placeholder is configured
    """
    if not config.enabled:
        raise InvalidConfigurationError("LLM is disabled in configuration")
    if not config.has_usable_key:
        raise InvalidConfigurationError(
            f"No API key configured for {config.provider}. "
            "Set llm.api_key in the config file or GITMIND_LLM_API_KEY."
        )
    return LLMClient(config)
