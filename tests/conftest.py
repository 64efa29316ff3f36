"""Shared pytest fixtures for GitMind tests.

Fixtures are organized by category:
- Clock fixtures: Manually advanced clocks for budget and cache tests
- Configuration fixtures: Config dictionaries for various scenarios
- Repository fixtures: Snapshots, reports and commits built from the
  sample payloads in tests.fixtures
"""

from typing import Any

import pytest

from gitmind.models.report import AnalysisReport, GuideDraft
from gitmind.models.repository import (
    CommitRecord,
    RepositoryMetadata,
    RepositoryReference,
    RepositorySnapshot,
)
from tests.fixtures import (
    REFERENCE,
    SAMPLE_README,
    SAMPLE_REPO,
    ManualClock,
    sample_commits,
    sample_guide,
    sample_report,
    sample_tree,
)

# =============================================================================
# Clock Fixtures
# =============================================================================


@pytest.fixture
def clock() -> ManualClock:
    """Return a manually advanced clock."""
    return ManualClock()


# =============================================================================
# Configuration Fixtures
# =============================================================================


@pytest.fixture
def minimal_config() -> dict[str, Any]:
    """Return a minimal valid GitMind configuration."""
    return {
        "llm": {
            "provider": "gemini",
            "model": "gemini-2.5-pro",
            "api_key": "test-key",
        }
    }


@pytest.fixture
def full_config() -> dict[str, Any]:
    """Return a complete GitMind configuration with all sections."""
    return {
        "github": {
            "token": "ghp_test",
            "api_base": "https://api.github.com",
            "timeout": 10,
        },
        "llm": {
            "provider": "claude",
            "model": "claude-sonnet-4-20250514",
            "api_key": "sk-test",
            "max_tokens": 4096,
        },
        "pipeline": {
            "fast_mode": False,
            "fast_mode_max_entries": 100,
            "call_timeout_seconds": 30,
            "daily_limit": 5,
            "budget_capacity": 2,
            "budget_window_seconds": 10,
        },
        "record_store": {
            "url": "https://example.supabase.co",
            "api_key": "anon-key",
            "table": "analyses",
        },
    }


# =============================================================================
# Repository Fixtures
# =============================================================================


@pytest.fixture
def reference() -> RepositoryReference:
    """Return the sample repository reference."""
    return REFERENCE


@pytest.fixture
def snapshot() -> RepositorySnapshot:
    """Return a snapshot of the sample repository."""
    return RepositorySnapshot(
        reference=REFERENCE,
        metadata=RepositoryMetadata.from_api(REFERENCE.owner, REFERENCE.name, SAMPLE_REPO),
        tree=sample_tree(),
        readme=SAMPLE_README,
    )


@pytest.fixture
def report() -> AnalysisReport:
    """Return a validated sample analysis report."""
    return sample_report()


@pytest.fixture
def guide_draft() -> GuideDraft:
    """Return a validated sample onboarding guide draft."""
    return sample_guide()


@pytest.fixture
def commits() -> list[CommitRecord]:
    """Return two recent commits touching src, tests and the root."""
    return sample_commits()
