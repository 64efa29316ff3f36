"""GitMind configuration system.

Configuration is YAML-based with a handful of flat environment bindings that
override the file (read once at process start).
Supports environment variable substitution (${VAR}) in config files.

Configuration file discovery (in priority order):
1. CLI --config argument
2. ./.gitmind/config.yaml
3. ./gitmind.yaml
"""

import os
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from gitmind.models.llm_config import LLMConfig

# =============================================================================
# Configuration Dataclasses
# =============================================================================


@dataclass
class GitHubConfig:
    """Source host configuration.

    Attributes:
        token: Personal access token (optional; raises quota and unlocks private repos)
        api_base: REST API base URL
        timeout: HTTP timeout in seconds
    """

    token: str | None = None
    api_base: str = "https://api.github.com"
    timeout: float = 30.0


@dataclass
class PipelineConfig:
    """Orchestrator toggles.

    Attributes:
        fast_mode: Release results at CoreReady and cap the file tree
        fast_mode_max_entries: Tree entries kept in fast mode
        call_timeout_seconds: Wall-clock budget per inference call
        daily_limit: Analyses per user per day (record store required)
        media_poll_interval_seconds: Interval between media job polls
        media_max_wait_seconds: Ceiling for media job polling
        budget_capacity: Requests per budget window, per operation kind
        budget_window_seconds: Budget refill window
        structure_cache_ttl_seconds: TTL for raw structural fetches
        analysis_cache_ttl_seconds: TTL for derived analysis
        log_capacity: Stage log ring buffer size
        recent_commit_limit: Recent commits fetched for enrichment
    """

    fast_mode: bool = True
    fast_mode_max_entries: int = 300
    call_timeout_seconds: float = 120.0
    daily_limit: int = 3
    media_poll_interval_seconds: float = 10.0
    media_max_wait_seconds: float = 600.0
    budget_capacity: int = 20
    budget_window_seconds: float = 60.0
    structure_cache_ttl_seconds: float = 600.0
    analysis_cache_ttl_seconds: float = 1800.0
    log_capacity: int = 1000
    recent_commit_limit: int = 30

    def __post_init__(self) -> None:
        """Validate pipeline configuration."""
        positive = {
            "fast_mode_max_entries": self.fast_mode_max_entries,
            "call_timeout_seconds": self.call_timeout_seconds,
            "media_poll_interval_seconds": self.media_poll_interval_seconds,
            "media_max_wait_seconds": self.media_max_wait_seconds,
            "budget_capacity": self.budget_capacity,
            "budget_window_seconds": self.budget_window_seconds,
            "log_capacity": self.log_capacity,
        }
        for name, value in positive.items():
            if value <= 0:
                raise ValueError(f"pipeline.{name} must be positive (got {value})")
        if self.daily_limit < 0:
            raise ValueError(f"pipeline.daily_limit must be >= 0 (got {self.daily_limit})")


@dataclass
class RecordStoreConfig:
    """Record store (Supabase/PostgREST) configuration.

    Attributes:
        url: Project URL (e.g. https://xyz.supabase.co); empty disables the store
        api_key: Anon or service key
        table: Table receiving analysis records
    """

    url: str | None = None
    api_key: str | None = None
    table: str = "analyses"

    @property
    def enabled(self) -> bool:
        return bool(self.url and self.api_key)


def _default_llm() -> LLMConfig:
    return LLMConfig(provider="gemini", model="gemini-2.5-pro")


@dataclass
class GitMindConfig:
    """Top-level GitMind configuration.

    Attributes:
        github: Source host settings
        llm: Inference provider settings
        pipeline: Orchestrator toggles
        record_store: Record store settings
    """

    github: GitHubConfig = field(default_factory=GitHubConfig)
    llm: LLMConfig = field(default_factory=_default_llm)
    pipeline: PipelineConfig = field(default_factory=PipelineConfig)
    record_store: RecordStoreConfig = field(default_factory=RecordStoreConfig)

    _config_path: Path | None = field(default=None, repr=False)

    @property
    def config_path(self) -> Path | None:
        """Get the path to the config file that was loaded."""
        return self._config_path


# =============================================================================
# Environment Variable Substitution
# =============================================================================


def substitute_env_vars(value: Any) -> Any:
    """Substitute environment variables in config values.

    Supports ${VAR} syntax for environment variable substitution.
    Example: ${GEMINI_API_KEY} -> value of GEMINI_API_KEY

    Args:
        value: Config value (string, dict, list, or other)

    Returns:
        Value with environment variables substituted

    Raises:
        ValueError: If a referenced variable is not set
    """
    if isinstance(value, str):
        pattern = re.compile(r"\$\{([^}]+)\}")

        def replace_var(match: re.Match[str]) -> str:
            var_name = match.group(1)
            env_value = os.environ.get(var_name)
            if env_value is None:
                raise ValueError(f"Environment variable not set: {var_name}")
            return env_value

        return pattern.sub(replace_var, value)

    elif isinstance(value, dict):
        return {k: substitute_env_vars(v) for k, v in value.items()}

    elif isinstance(value, list):
        return [substitute_env_vars(v) for v in value]

    return value


# =============================================================================
# Flat Environment Bindings
# =============================================================================

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _parse_bool(name: str, raw: str) -> bool:
    lowered = raw.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean (got {raw!r})")


def _coerce_pipeline_value(name: str, default: Any, value: Any) -> Any:
    if isinstance(default, bool):
        return value if isinstance(value, bool) else _parse_bool(f"pipeline.{name}", str(value))
    return type(default)(value)


def apply_env_overrides(
    config: GitMindConfig,
    environ: Mapping[str, str] | None = None,
) -> GitMindConfig:
    """Apply flat environment bindings on top of a loaded config.

    Recognized variables:
        GITMIND_FAST_MODE, GITMIND_FAST_MODE_MAX_ENTRIES,
        GITMIND_CALL_TIMEOUT_SECONDS, GITMIND_DAILY_LIMIT,
        GITHUB_TOKEN (only when the file sets no token),
        GITMIND_LLM_API_KEY (only when the file sets no key)

    Args:
        config: Configuration to update in place
        environ: Environment mapping (defaults to os.environ)

    Returns:
        The same config instance
    """
    env = os.environ if environ is None else environ

    if "GITMIND_FAST_MODE" in env:
        config.pipeline.fast_mode = _parse_bool("GITMIND_FAST_MODE", env["GITMIND_FAST_MODE"])
    if "GITMIND_FAST_MODE_MAX_ENTRIES" in env:
        config.pipeline.fast_mode_max_entries = int(env["GITMIND_FAST_MODE_MAX_ENTRIES"])
    if "GITMIND_CALL_TIMEOUT_SECONDS" in env:
        config.pipeline.call_timeout_seconds = float(env["GITMIND_CALL_TIMEOUT_SECONDS"])
    if "GITMIND_DAILY_LIMIT" in env:
        config.pipeline.daily_limit = int(env["GITMIND_DAILY_LIMIT"])

    if not config.github.token and env.get("GITHUB_TOKEN"):
        config.github.token = env["GITHUB_TOKEN"]
    if not config.llm.api_key and env.get("GITMIND_LLM_API_KEY"):
        config.llm.api_key = env["GITMIND_LLM_API_KEY"]

    # Re-run validation on the overridden values
    config.pipeline.__post_init__()
    return config


# =============================================================================
# Config File Discovery
# =============================================================================


def find_config_file(start_path: Path | None = None) -> Path | None:
    """Find configuration file in standard locations.

    Search order:
    1. ./.gitmind/config.yaml
    2. ./gitmind.yaml

    Args:
        start_path: Starting directory for search (defaults to cwd)

    Returns:
        Path to config file if found, None otherwise
    """
    if start_path is None:
        start_path = Path.cwd()

    start_path = start_path.resolve()

    candidates = [
        start_path / ".gitmind" / "config.yaml",
        start_path / "gitmind.yaml",
    ]

    for candidate in candidates:
        if candidate.exists():
            return candidate

    return None


# =============================================================================
# Config Loading
# =============================================================================


def load_config_from_dict(data: dict[str, Any]) -> GitMindConfig:
    """Load configuration from a dictionary.

    Args:
        data: Configuration dictionary

    Returns:
        GitMindConfig instance
    """
    data = substitute_env_vars(data)

    config = GitMindConfig()

    if "github" in data:
        github_data = data["github"] or {}
        config.github = GitHubConfig(
            token=github_data.get("token") or None,
            api_base=github_data.get("api_base", config.github.api_base),
            timeout=float(github_data.get("timeout", config.github.timeout)),
        )

    if "llm" in data:
        config.llm = LLMConfig.from_dict(data["llm"] or {})

    if "pipeline" in data:
        pipeline_data = data["pipeline"] or {}
        defaults = PipelineConfig()
        config.pipeline = PipelineConfig(
            **{
                name: _coerce_pipeline_value(name, getattr(defaults, name), pipeline_data[name])
                for name in defaults.__dataclass_fields__
                if name in pipeline_data
            }
        )

    if "record_store" in data:
        store_data = data["record_store"] or {}
        config.record_store = RecordStoreConfig(
            url=store_data.get("url") or None,
            api_key=store_data.get("api_key") or None,
            table=store_data.get("table", "analyses"),
        )

    return config


def load_config(
    config_path: Path | None = None,
    auto_discover: bool = True,
    environ: Mapping[str, str] | None = None,
) -> GitMindConfig:
    """Load configuration from file and environment.

    Args:
        config_path: Explicit path to config file
        auto_discover: Whether to search for config file if not specified
        environ: Environment mapping for flat overrides (defaults to os.environ)

    Returns:
        GitMindConfig instance

    Raises:
        FileNotFoundError: If config_path specified but doesn't exist
    """
    if config_path is not None:
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
        found_path = config_path
    elif auto_discover:
        found_path = find_config_file()
    else:
        found_path = None

    if found_path is not None:
        with open(found_path) as f:
            data = yaml.safe_load(f) or {}
        config = load_config_from_dict(data)
        config._config_path = found_path
    else:
        config = GitMindConfig()

    return apply_env_overrides(config, environ)


def create_default_config() -> str:
    """Create default configuration YAML content.

    Returns:
        YAML string with default configuration and comments
    """
    return '''# GitMind Configuration

# Source host (GitHub REST API)
github:
  # token: "${GITHUB_TOKEN}"   # Optional: raises quota, required for private repos
  api_base: "https://api.github.com"
  timeout: 30

# Inference service (any LiteLLM provider)
llm:
  provider: "gemini"          # gemini, claude, openai, ollama, bedrock
  model: "gemini-2.5-pro"
  api_key: "${GEMINI_API_KEY}"
  max_tokens: 8192
  speech_model: "openai/tts-1"
  speech_voice: "alloy"
  video_model: "openai/sora-2"

# Orchestrator toggles (flat; GITMIND_* environment variables override these)
pipeline:
  fast_mode: true             # Release results at CoreReady, enrich in background
  fast_mode_max_entries: 300  # File tree cap in fast mode
  call_timeout_seconds: 120   # Per inference call
  daily_limit: 3              # Analyses per user per day (needs record_store)
  media_poll_interval_seconds: 10
  media_max_wait_seconds: 600
  budget_capacity: 20         # Requests per window, per operation kind
  budget_window_seconds: 60

# Record store (optional, Supabase/PostgREST)
# record_store:
#   url: "${SUPABASE_URL}"
#   api_key: "${SUPABASE_ANON_KEY}"
#   table: "analyses"
'''
