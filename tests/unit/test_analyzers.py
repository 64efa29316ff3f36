"""Unit tests for code health and commit activity analyzers."""

import pytest

from gitmind.analyzers.activity import ROOT_AREA, area_of, area_owners, change_heatmap
from gitmind.analyzers.health import compute_health, is_test_file, language_shares
from gitmind.models.repository import CommitFile, CommitRecord
from tests.fixtures import sample_tree


class TestHealth:
    """Tests for compute_health."""

    @pytest.mark.parametrize(
        ("path", "expected"),
        [
            ("tests/test_basic.py", True),
            ("src/__tests__/App.jsx", True),
            ("pkg/server_test.go", True),
            ("web/button.spec.ts", True),
            ("src/main/UserServiceTest.java", True),
            ("src/flask/app.py", False),
            ("docs/testing.md", False),
        ],
    )
    def test_is_test_file(self, path: str, expected: bool) -> None:
        """Test the test-file heuristics."""
        assert is_test_file(path) is expected

    def test_sample_tree_metrics(self) -> None:
        """Test metrics for the sample repository."""
        health = compute_health(sample_tree(), {"Python": 9000, "HTML": 1000})

        assert health.file_count == 8
        assert health.directory_count == 5
        assert health.test_file_count == 1
        assert health.test_ratio == 0.125
        assert health.has_readme
        assert health.has_license
        assert health.has_ci
        assert not health.has_contributing
        assert health.language_shares == {"Python": 90.0, "HTML": 10.0}
        assert health.largest_files[0] == "src/flask/app.py"

    def test_language_shares_empty(self) -> None:
        """Test that no bytes means no shares."""
        assert language_shares({}) == {}


class TestActivity:
    """Tests for ownership and heatmaps."""

    def test_area_of(self) -> None:
        """Test area derivation at different depths."""
        assert area_of("README.md") == ROOT_AREA
        assert area_of("src/flask/app.py") == "src"
        assert area_of("src/flask/app.py", depth=2) == "src/flask"
        assert area_of("src/app.py", depth=3) == "src"

    def test_area_owners(self, commits: list[CommitRecord]) -> None:
        """Test the top author per area."""
        owners = area_owners(commits)

        assert {(o.area, o.author, o.commits) for o in owners} == {
            ("src", "davidism", 1),
            ("tests", "davidism", 1),
            (ROOT_AREA, "Jane Doe", 1),
        }

    def test_area_counts_commit_once(self) -> None:
        """Test that several files in one area count as one commit."""
        commit = CommitRecord(
            sha="1",
            author="alice",
            message="m",
            date="",
            files=[CommitFile(path="src/a.py"), CommitFile(path="src/b.py")],
        )

        owners = area_owners([commit])

        assert owners[0].commits == 1

    def test_change_heatmap_busiest_first(self) -> None:
        """Test change counts per area and ordering."""
        commits = [
            CommitRecord(
                sha=str(i),
                author="a",
                message="m",
                date="",
                files=[CommitFile(path="src/a.py"), CommitFile(path="docs/x.md")],
            )
            for i in range(2)
        ] + [CommitRecord(sha="3", author="a", message="m", date="", files=[CommitFile(path="src/b.py")])]

        heatmap = change_heatmap(commits, limit=1)

        assert [(c.area, c.changes) for c in heatmap] == [("src", 3)]
