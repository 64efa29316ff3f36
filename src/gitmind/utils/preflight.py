"""Preflight validation.

Checks run before any analysis so that a missing or placeholder credential
fails fast with a clear message instead of mid-pipeline:

- litellm importable (required)
- inference credentials present and not a template value (required)
- Ollama server reachable (required when the provider is ollama)
- GitHub token (optional; unauthenticated quota is small)
- record store configured (optional)
"""

import importlib.util
from dataclasses import dataclass, field
from typing import Any

import httpx

from gitmind.config import GitHubConfig, GitMindConfig, RecordStoreConfig
from gitmind.models.llm_config import LLMConfig, is_placeholder_key


@dataclass
class ToolCheck:
    """Result of a single check.

    Attributes:
        name: Check name
        available: Whether the dependency is usable
        version: Version if known
        required: Whether a failure blocks analysis
        path: Module path or endpoint checked
        message: Human-readable context
    """

    name: str
    available: bool
    version: str | None = None
    required: bool = True
    path: str | None = None
    message: str = ""


@dataclass
class PreflightResult:
    """Result of preflight validation.

    Attributes:
        success: Whether every required check passed
        checks: Individual check results
        errors: Messages for failed required checks
        warnings: Messages for failed optional checks
    """

    success: bool = True
    checks: list[ToolCheck] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def add_check(self, check: ToolCheck) -> None:
        self.checks.append(check)

        if not check.available:
            detail = f"{check.name}: {check.message}" if check.message else check.name
            if check.required:
                self.success = False
                self.errors.append(detail)
            else:
                self.warnings.append(detail)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON output."""
        return {
            "success": self.success,
            "checks": [
                {
                    "name": c.name,
                    "available": c.available,
                    "version": c.version,
                    "required": c.required,
                    "path": c.path,
                    "message": c.message,
                }
                for c in self.checks
            ],
            "errors": self.errors,
            "warnings": self.warnings,
        }


class PreflightChecker:
    """Validates dependencies and credentials before analysis.

    Usage:
        checker = PreflightChecker()
        result = checker.check_all(config)
        if not result.success:
            raise typer.Exit(1)
    """

    def __init__(self, timeout: float = 5.0) -> None:
        self.timeout = timeout

    def check_litellm(self, required: bool = True) -> ToolCheck:
        spec = importlib.util.find_spec("litellm")
        if spec is None:
            return ToolCheck(
                name="litellm",
                available=False,
                required=required,
                message="Install with: pip install litellm",
            )

        from importlib.metadata import PackageNotFoundError, version

        try:
            found_version: str | None = version("litellm")
        except PackageNotFoundError:
            found_version = None

        return ToolCheck(
            name="litellm",
            available=True,
            version=found_version,
            required=required,
            path=spec.origin,
            message="Unified LLM interface",
        )

    def check_llm_credentials(self, config: LLMConfig) -> ToolCheck:
        """Check that the provider has a usable (non-placeholder) key."""
        name = f"llm:{config.provider}"
        if not config.enabled:
            return ToolCheck(name=name, available=False, message="Inference is disabled in configuration")

        if not config.requires_api_key:
            return ToolCheck(name=name, available=True, message=f"{config.provider} needs no API key")

        if is_placeholder_key(config.api_key):
            hint = "placeholder value" if config.api_key else "missing"
            return ToolCheck(
                name=name,
                available=False,
                message=f"API key {hint}. Set llm.api_key or GITMIND_LLM_API_KEY",
            )

        return ToolCheck(name=name, available=True, message=f"model {config.get_litellm_model_name()}")

    def check_ollama_server(self, api_base: str) -> ToolCheck:
        try:
            response = httpx.get(f"{api_base.rstrip('/')}/api/version", timeout=self.timeout)
        except httpx.HTTPError:
            response = None

        if response is not None and response.is_success:
            return ToolCheck(
                name="ollama",
                available=True,
                version=response.json().get("version"),
                path=api_base,
                message="Local LLM server",
            )
        return ToolCheck(
            name="ollama",
            available=False,
            path=api_base,
            message=f"Ollama not responding at {api_base}",
        )

    def check_github(self, config: GitHubConfig, online: bool = False) -> ToolCheck:
        """Check the GitHub token; with `online`, also query the rate limit."""
        if is_placeholder_key(config.token):
            return ToolCheck(
                name="github",
                available=False,
                required=False,
                path=config.api_base,
                message="No token: 60 requests/hour and public repositories only. Set GITHUB_TOKEN",
            )

        if not online:
            return ToolCheck(name="github", available=True, required=False, path=config.api_base, message="token set")

        try:
            response = httpx.get(
                f"{config.api_base.rstrip('/')}/rate_limit",
                headers={"Authorization": f"Bearer {config.token}"},
                timeout=self.timeout,
            )
        except httpx.HTTPError as e:
            return ToolCheck(name="github", available=False, required=False, message=f"Unreachable: {e}")

        if response.status_code == 401:
            return ToolCheck(name="github", available=False, required=False, message="Token rejected (401)")

        core = (response.json().get("resources") or {}).get("core") or {}
        return ToolCheck(
            name="github",
            available=True,
            required=False,
            path=config.api_base,
            message=f"{core.get('remaining', '?')}/{core.get('limit', '?')} requests remaining",
        )

    def check_record_store(self, config: RecordStoreConfig) -> ToolCheck:
        if not config.enabled:
            return ToolCheck(
                name="record_store",
                available=False,
                required=False,
                message="Not configured; analyses are not saved and the daily limit is not enforced",
            )
        return ToolCheck(name="record_store", available=True, required=False, path=config.url, message=config.table)

    def check_all(self, config: GitMindConfig, online: bool = False) -> PreflightResult:
        """Run all preflight checks.

        Args:
            config: Loaded configuration
            online: Also contact Ollama/GitHub to verify connectivity

        Returns:
            PreflightResult with all check results
        """
        result = PreflightResult()
        result.add_check(self.check_litellm())
        result.add_check(self.check_llm_credentials(config.llm))
        if online and config.llm.provider == "ollama" and config.llm.api_base:
            result.add_check(self.check_ollama_server(config.llm.api_base))
        result.add_check(self.check_github(config.github, online=online))
        result.add_check(self.check_record_store(config.record_store))
        return result
