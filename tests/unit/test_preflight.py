"""Unit tests for preflight checks."""

from unittest.mock import MagicMock, patch

import httpx

from gitmind.config import GitHubConfig, GitMindConfig, RecordStoreConfig
from gitmind.models.llm_config import LLMConfig
from gitmind.utils.preflight import PreflightChecker, PreflightResult, ToolCheck


class TestPreflightResult:
    """Tests for result aggregation."""

    def test_required_failure_is_error(self) -> None:
        """Test that a failed required check fails the run."""
        result = PreflightResult()

        result.add_check(ToolCheck(name="llm", available=False, message="missing key"))

        assert not result.success
        assert result.errors == ["llm: missing key"]

    def test_optional_failure_is_warning(self) -> None:
        """Test that a failed optional check only warns."""
        result = PreflightResult()

        result.add_check(ToolCheck(name="github", available=False, required=False))

        assert result.success
        assert result.warnings == ["github"]
        assert result.to_dict()["checks"][0]["required"] is False


class TestLLMCredentials:
    """Tests for check_llm_credentials."""

    def test_placeholder_key(self) -> None:
        """Test that a template key fails."""
        check = PreflightChecker().check_llm_credentials(
            LLMConfig(provider="gemini", model="gemini-2.5-pro", api_key="your_api_key_here")
        )

        assert not check.available
        assert "placeholder value" in check.message

    def test_missing_key(self) -> None:
        """Test that a missing key fails."""
        check = PreflightChecker().check_llm_credentials(LLMConfig(provider="openai", model="gpt-4o"))

        assert not check.available
        assert "missing" in check.message

    def test_keyless_provider(self) -> None:
        """Test that Ollama needs no key."""
        check = PreflightChecker().check_llm_credentials(LLMConfig(provider="ollama", model="llama3.2"))

        assert check.available

    def test_disabled(self) -> None:
        """Test that disabled inference fails."""
        check = PreflightChecker().check_llm_credentials(
            LLMConfig(provider="gemini", model="gemini-2.5-pro", api_key="k", enabled=False)
        )

        assert not check.available


class TestGitHubCheck:
    """Tests for check_github."""

    def test_no_token_is_optional_warning(self) -> None:
        """Test the unauthenticated warning."""
        check = PreflightChecker().check_github(GitHubConfig())

        assert not check.available
        assert not check.required
        assert "GITHUB_TOKEN" in check.message

    def test_offline_token(self) -> None:
        """Test that a token passes without contacting GitHub."""
        with patch("gitmind.utils.preflight.httpx.get") as mock_get:
            check = PreflightChecker().check_github(GitHubConfig(token="ghp_real"))

        assert check.available
        mock_get.assert_not_called()

    def test_online_rate_limit(self) -> None:
        """Test the online quota report."""
        response = MagicMock(status_code=200)
        response.json.return_value = {"resources": {"core": {"remaining": 4999, "limit": 5000}}}

        with patch("gitmind.utils.preflight.httpx.get", return_value=response):
            check = PreflightChecker().check_github(GitHubConfig(token="ghp_real"), online=True)

        assert check.available
        assert check.message == "4999/5000 requests remaining"

    def test_online_rejected_token(self) -> None:
        """Test a 401 from GitHub."""
        with patch("gitmind.utils.preflight.httpx.get", return_value=MagicMock(status_code=401)):
            check = PreflightChecker().check_github(GitHubConfig(token="ghp_revoked"), online=True)

        assert not check.available
        assert check.message == "Token rejected (401)"

    def test_online_unreachable(self) -> None:
        """Test a transport failure."""
        with patch("gitmind.utils.preflight.httpx.get", side_effect=httpx.ConnectError("refused")):
            check = PreflightChecker().check_github(GitHubConfig(token="ghp_real"), online=True)

        assert not check.available
        assert check.message.startswith("Unreachable")


class TestOllamaCheck:
    """Tests for check_ollama_server."""

    def test_running(self) -> None:
        """Test a responding server."""
        response = MagicMock(is_success=True)
        response.json.return_value = {"version": "0.5.1"}

        with patch("gitmind.utils.preflight.httpx.get", return_value=response):
            check = PreflightChecker().check_ollama_server("http://localhost:11434")

        assert check.available
        assert check.version == "0.5.1"

    def test_not_running(self) -> None:
        """Test a refused connection."""
        with patch("gitmind.utils.preflight.httpx.get", side_effect=httpx.ConnectError("refused")):
            check = PreflightChecker().check_ollama_server("http://localhost:11434")

        assert not check.available


class TestCheckAll:
    """Tests for check_all."""

    def test_configured(self) -> None:
        """Test a fully configured setup passes without warnings."""
        config = GitMindConfig(
            github=GitHubConfig(token="ghp_real"),
            llm=LLMConfig(provider="gemini", model="gemini-2.5-pro", api_key="real-key"),
            record_store=RecordStoreConfig(url="https://x.supabase.co", api_key="anon"),
        )

        result = PreflightChecker().check_all(config)

        assert result.success
        assert result.warnings == []
        assert [c.name for c in result.checks] == ["litellm", "llm:gemini", "github", "record_store"]

    def test_defaults_fail_on_missing_key(self) -> None:
        """Test that the default config needs an API key."""
        result = PreflightChecker().check_all(GitMindConfig())

        assert not result.success
        assert any(e.startswith("llm:gemini") for e in result.errors)
        assert len(result.warnings) == 2
