"""Inference service configuration.

Defines the provider/model selection used by the LiteLLM-backed client.
Supports multiple providers: Claude, Gemini, OpenAI, Ollama, and Bedrock.
"""

from dataclasses import dataclass, field

# Valid LLM providers
VALID_PROVIDERS = frozenset({"claude", "gemini", "openai", "ollama", "bedrock"})

# Providers that authenticate with an API key
KEYED_PROVIDERS = frozenset({"claude", "gemini", "openai"})

_LITELLM_PREFIXES = {
    "claude": "anthropic",
    "gemini": "gemini",
    "openai": "openai",
    "ollama": "ollama",
    "bedrock": "bedrock",
}


def is_placeholder_key(api_key: str | None) -> bool:
    """Return True for empty keys and template values like ``your_api_key_here``."""
    if not api_key or not api_key.strip():
        return True
    lowered = api_key.strip().lower()
    return lowered.startswith("your_") or lowered.endswith("_here") or lowered in {"changeme", "xxx"}


@dataclass
class LLMConfig:
    """Configuration for the inference provider.

    Attributes:
        provider: LLM provider (claude, gemini, openai, ollama, bedrock)
        model: Model identifier for text and structured generation
        api_key: API key (not required for Ollama or Bedrock)
        api_base: API base URL (required for Ollama)
        temperature: Sampling temperature
        max_tokens: Maximum response tokens
        speech_model: Model used for narrated speech
        speech_voice: Voice name for narrated speech
        video_model: Model used for long-form video synthesis
        enabled: Whether inference calls are enabled
    """

    provider: str
    model: str
    api_key: str | None = None
    api_base: str | None = None
    temperature: float = field(default=0.2)
    max_tokens: int = field(default=8192)
    speech_model: str = "openai/tts-1"
    speech_voice: str = "alloy"
    video_model: str = "openai/sora-2"
    enabled: bool = field(default=True)

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        self.provider = self.provider.lower().strip()

        if self.provider not in VALID_PROVIDERS:
            raise ValueError(
                f"Invalid provider '{self.provider}'. "
                f"Must be one of: {sorted(VALID_PROVIDERS)}"
            )

        if not self.model or not self.model.strip():
            raise ValueError("Model identifier cannot be empty")
        self.model = self.model.strip()

        if not 0.0 <= self.temperature <= 2.0:
            raise ValueError(f"temperature must be within [0, 2]. Got: {self.temperature}")

        if self.max_tokens <= 0:
            raise ValueError(f"max_tokens must be positive. Got: {self.max_tokens}")

        if self.provider == "ollama" and not self.api_base:
            self.api_base = "http://localhost:11434"

    @property
    def requires_api_key(self) -> bool:
        return self.provider in KEYED_PROVIDERS

    @property
    def has_usable_key(self) -> bool:
        """True when no key is needed or a non-placeholder key is set."""
        return not self.requires_api_key or not is_placeholder_key(self.api_key)

    def validate(self) -> list[str]:
        """Validate configuration and return warnings.

        Returns:
            List of warning messages (empty if no warnings)
        """
        warnings: list[str] = []

        if self.max_tokens < 1000:
            warnings.append(
                f"max_tokens is set to {self.max_tokens}, which may truncate structured replies"
            )

        if (
            self.api_base
            and not self.api_base.startswith(("http://", "https://"))
        ):
            warnings.append(
                f"api_base '{self.api_base}' does not start with http:// or https://"
            )

        return warnings

    def to_dict(self) -> dict[str, str | int | float | bool | None]:
        return {
            "provider": self.provider,
            "model": self.model,
            "api_key": self.api_key,
            "api_base": self.api_base,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "speech_model": self.speech_model,
            "speech_voice": self.speech_voice,
            "video_model": self.video_model,
            "enabled": self.enabled,
        }

    @classmethod
    def from_dict(cls, data: dict[str, str | int | float | bool | None]) -> "LLMConfig":
        """Create LLMConfig from dictionary."""
        return cls(
            provider=str(data.get("provider", "gemini")),
            model=str(data.get("model", "gemini-2.5-pro")),
            api_key=data.get("api_key") if data.get("api_key") else None,  # type: ignore[arg-type]
            api_base=data.get("api_base") if data.get("api_base") else None,  # type: ignore[arg-type]
            temperature=float(data.get("temperature", 0.2)),  # type: ignore[arg-type]
            max_tokens=int(data.get("max_tokens", 8192)),  # type: ignore[arg-type]
            speech_model=str(data.get("speech_model", "openai/tts-1")),
            speech_voice=str(data.get("speech_voice", "alloy")),
            video_model=str(data.get("video_model", "openai/sora-2")),
            enabled=bool(data.get("enabled", True)),
        )

    def get_litellm_model_name(self, model: str | None = None) -> str:
        """Get a model name in LiteLLM ``provider/model`` format.

        Names that already carry a provider prefix are returned unchanged.
        """
        name = model or self.model
        if "/" in name:
            return name
        return f"{_LITELLM_PREFIXES[self.provider]}/{name}"
