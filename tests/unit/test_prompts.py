"""Unit tests for prompt builders."""

import pytest

from gitmind.llm import prompts
from gitmind.models.report import AnalysisReport, SecurityAudit
from gitmind.models.repository import RepositorySnapshot
from tests.fixtures import sample_tree


class TestSystemPrompts:
    """Tests for get_system_prompt."""

    @pytest.mark.parametrize(
        "operation",
        ["analysis", "onboarding", "ownership", "activity", "testing", "insights", "explain", "chat", "audit", "remediation"],
    )
    def test_known_operations(self, operation: str) -> None:
        """Test every gateway operation has a system prompt."""
        assert prompts.get_system_prompt(operation)

    def test_unknown_operation(self) -> None:
        """Test that unknown operations raise KeyError."""
        with pytest.raises(KeyError):
            prompts.get_system_prompt("poetry")


class TestBuilders:
    """Tests for prompt content and limits."""

    def test_analysis_prompt(self, snapshot: RepositorySnapshot) -> None:
        """Test repository context, structure and README."""
        prompt = prompts.build_analysis_prompt(snapshot)

        assert "Repo: pallets/flask" in prompt
        assert "Topics: python, wsgi, web" in prompt
        assert "src/flask/app.py" in prompt
        assert "Flask is a lightweight WSGI" in prompt

    def test_truncated_structure_noted(self, snapshot: RepositorySnapshot) -> None:
        """Test that a capped listing says so."""
        snapshot.tree = sample_tree(max_entries=4)

        prompt = prompts.build_analysis_prompt(snapshot)

        assert "(listing truncated: 4 of 13 entries)" in prompt

    def test_missing_readme(self, snapshot: RepositorySnapshot) -> None:
        """Test the placeholder for a repository without README."""
        snapshot.readme = ""

        assert "(no README)" in prompts.build_analysis_prompt(snapshot)

    def test_readme_limit(self, snapshot: RepositorySnapshot) -> None:
        """Test that long READMEs are cut."""
        snapshot.readme = "x" * (prompts.README_LIMIT + 500)

        prompt = prompts.build_analysis_prompt(snapshot)

        assert "x" * prompts.README_LIMIT in prompt
        assert "x" * (prompts.README_LIMIT + 1) not in prompt

    def test_chat_prompt_history(self) -> None:
        """Test conversation turns appear in order before the question."""
        prompt = prompts.build_chat_prompt(
            "ctx", [("user", "What is it?"), ("model", "A framework.")], "Who maintains it?"
        )

        assert prompt.splitlines() == [
            "CONTEXT: ctx",
            "USER: What is it?",
            "MODEL: A framework.",
            "USER: Who maintains it?",
        ]

    def test_explain_and_narration_limits(self) -> None:
        """Test content limits for explain and narration."""
        explain = prompts.build_explain_prompt("a.py", "y" * (prompts.FILE_CONTENT_LIMIT + 10))
        narration = prompts.build_narration_text("z" * 1000)

        assert explain.count("y") == prompts.FILE_CONTENT_LIMIT
        assert narration.count("z") == prompts.NARRATION_LIMIT

    def test_audit_prompt_includes_manifests(self, snapshot: RepositorySnapshot) -> None:
        """Test manifests are appended to the audit prompt."""
        prompt = prompts.build_audit_prompt(snapshot, {"package.json": '{"dependencies": {}}'})

        assert prompt.endswith('package.json:\n{"dependencies": {}}')

    def test_remediation_prompt(self) -> None:
        """Test findings are listed with severity and location."""
        audit = SecurityAudit.model_validate(
            {
                "summary": "Two issues.",
                "risk_level": "High",
                "findings": [{"title": "Hardcoded secret", "severity": "high", "location": "config.py"}],
            }
        )

        prompt = prompts.build_remediation_prompt("pallets/flask", audit)

        assert "Overall risk: High" in prompt
        assert "- [High] Hardcoded secret (config.py): " in prompt

    def test_video_prompt_components(self, report: AnalysisReport) -> None:
        """Test the video prompt names architecture components."""
        assert "Components: Flask app, CLI" in prompts.build_video_prompt(report)
