"""Unit tests for configuration system."""

from pathlib import Path
from typing import Any

import pytest

from gitmind.config import (
    GitMindConfig,
    PipelineConfig,
    apply_env_overrides,
    create_default_config,
    find_config_file,
    load_config,
    load_config_from_dict,
    substitute_env_vars,
)


class TestSubstituteEnvVars:
    """Tests for environment variable substitution."""

    def test_substitute_string(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test substituting env var in string."""
        monkeypatch.setenv("TEST_VAR", "test_value")

        assert substitute_env_vars("prefix_${TEST_VAR}_suffix") == "prefix_test_value_suffix"

    def test_substitute_nested(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test substituting env vars in dictionaries and lists."""
        monkeypatch.setenv("API_KEY", "secret123")

        result = substitute_env_vars({"llm": {"api_key": "${API_KEY}"}, "items": ["${API_KEY}", 3]})

        assert result == {"llm": {"api_key": "secret123"}, "items": ["secret123", 3]}

    def test_missing_env_var_raises(self) -> None:
        """Test that missing env var raises ValueError."""
        with pytest.raises(ValueError, match="Environment variable not set"):
            substitute_env_vars("${GITMIND_SURELY_UNSET_VAR}")


class TestFindConfigFile:
    """Tests for config file discovery."""

    def test_find_gitmind_dir_config(self, tmp_path: Path) -> None:
        """Test finding .gitmind/config.yaml first."""
        config_dir = tmp_path / ".gitmind"
        config_dir.mkdir()
        config_file = config_dir / "config.yaml"
        config_file.write_text("github: {}")
        (tmp_path / "gitmind.yaml").write_text("github: {}")

        assert find_config_file(tmp_path) == config_file

    def test_find_root_config(self, tmp_path: Path) -> None:
        """Test falling back to gitmind.yaml."""
        config_file = tmp_path / "gitmind.yaml"
        config_file.write_text("github: {}")

        assert find_config_file(tmp_path) == config_file

    def test_no_config(self, tmp_path: Path) -> None:
        """Test that nothing is found in an empty directory."""
        assert find_config_file(tmp_path) is None


class TestLoadConfigFromDict:
    """Tests for dictionary loading."""

    def test_defaults(self) -> None:
        """Test an empty dictionary yields defaults."""
        config = load_config_from_dict({})

        assert config.llm.provider == "gemini"
        assert config.pipeline.fast_mode is True
        assert config.pipeline.daily_limit == 3
        assert config.github.token is None
        assert not config.record_store.enabled

    def test_full_config(self, full_config: dict[str, Any]) -> None:
        """Test every section is read."""
        config = load_config_from_dict(full_config)

        assert config.github.token == "ghp_test"
        assert config.github.timeout == 10.0
        assert config.llm.provider == "claude"
        assert config.llm.max_tokens == 4096
        assert config.pipeline.fast_mode is False
        assert config.pipeline.budget_capacity == 2
        assert config.pipeline.call_timeout_seconds == 30.0
        assert config.pipeline.log_capacity == 1000
        assert config.record_store.enabled
        assert config.record_store.table == "analyses"

    def test_invalid_pipeline_value(self) -> None:
        """Test that non-positive pipeline values are rejected."""
        with pytest.raises(ValueError, match="budget_capacity must be positive"):
            load_config_from_dict({"pipeline": {"budget_capacity": 0}})

    @pytest.mark.parametrize(("raw", "expected"), [("false", False), ("0", False), ("true", True), ("yes", True)])
    def test_string_booleans(self, raw: str, expected: bool) -> None:
        """Test that substituted string booleans are parsed, not truth-tested."""
        config = load_config_from_dict({"pipeline": {"fast_mode": raw}})

        assert config.pipeline.fast_mode is expected

    def test_substituted_pipeline_values(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that ${VAR} pipeline values are coerced to their field types."""
        monkeypatch.setenv("GITMIND_TEST_FAST", "false")
        monkeypatch.setenv("GITMIND_TEST_ENTRIES", "50")
        monkeypatch.setenv("GITMIND_TEST_TIMEOUT", "12.5")

        config = load_config_from_dict(
            {
                "pipeline": {
                    "fast_mode": "${GITMIND_TEST_FAST}",
                    "fast_mode_max_entries": "${GITMIND_TEST_ENTRIES}",
                    "call_timeout_seconds": "${GITMIND_TEST_TIMEOUT}",
                }
            }
        )

        assert config.pipeline.fast_mode is False
        assert config.pipeline.fast_mode_max_entries == 50
        assert config.pipeline.call_timeout_seconds == 12.5

    def test_invalid_pipeline_boolean(self) -> None:
        """Test that an unrecognized boolean string is rejected."""
        with pytest.raises(ValueError, match="pipeline.fast_mode must be a boolean"):
            load_config_from_dict({"pipeline": {"fast_mode": "maybe"}})

    def test_invalid_provider(self) -> None:
        """Test that an unknown provider is rejected."""
        with pytest.raises(ValueError, match="Invalid provider"):
            load_config_from_dict({"llm": {"provider": "nope", "model": "m"}})


class TestEnvOverrides:
    """Tests for flat environment bindings."""

    def test_pipeline_toggles(self) -> None:
        """Test that GITMIND_* variables override the file."""
        config = apply_env_overrides(
            GitMindConfig(),
            {
                "GITMIND_FAST_MODE": "off",
                "GITMIND_FAST_MODE_MAX_ENTRIES": "50",
                "GITMIND_CALL_TIMEOUT_SECONDS": "5",
                "GITMIND_DAILY_LIMIT": "0",
            },
        )

        assert config.pipeline.fast_mode is False
        assert config.pipeline.fast_mode_max_entries == 50
        assert config.pipeline.call_timeout_seconds == 5.0
        assert config.pipeline.daily_limit == 0

    def test_invalid_boolean(self) -> None:
        """Test that an unparseable boolean is rejected."""
        with pytest.raises(ValueError, match="GITMIND_FAST_MODE must be a boolean"):
            apply_env_overrides(GitMindConfig(), {"GITMIND_FAST_MODE": "maybe"})

    def test_invalid_override_value(self) -> None:
        """Test that overridden values are validated."""
        with pytest.raises(ValueError, match="call_timeout_seconds must be positive"):
            apply_env_overrides(GitMindConfig(), {"GITMIND_CALL_TIMEOUT_SECONDS": "0"})

    def test_credentials_fill_only_when_unset(self) -> None:
        """Test that env credentials never replace file credentials."""
        config = GitMindConfig()
        config.llm.api_key = "from-file"

        apply_env_overrides(config, {"GITHUB_TOKEN": "ghp_env", "GITMIND_LLM_API_KEY": "from-env"})

        assert config.github.token == "ghp_env"
        assert config.llm.api_key == "from-file"


class TestLoadConfig:
    """Tests for load_config."""

    def test_explicit_missing_path(self, tmp_path: Path) -> None:
        """Test that an explicit missing file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "missing.yaml", environ={})

    def test_load_file(self, tmp_path: Path) -> None:
        """Test loading YAML with the env applied afterwards."""
        config_file = tmp_path / "gitmind.yaml"
        config_file.write_text("pipeline:\n  daily_limit: 7\n  fast_mode: false\n")

        config = load_config(config_file, environ={"GITMIND_DAILY_LIMIT": "9"})

        assert config.config_path == config_file
        assert config.pipeline.fast_mode is False
        assert config.pipeline.daily_limit == 9

    def test_default_config_round_trips(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that the generated default config loads."""
        monkeypatch.setenv("GEMINI_API_KEY", "k")
        config_file = tmp_path / "gitmind.yaml"
        config_file.write_text(create_default_config())

        config = load_config(config_file, environ={})

        assert config.llm.model == "gemini-2.5-pro"
        assert config.pipeline == PipelineConfig()
