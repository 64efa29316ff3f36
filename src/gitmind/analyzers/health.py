"""Code-health metrics computed locally from the file tree.

No network calls: everything is derived from paths, sizes and the
language byte counts the source host reports.
"""

import re

from gitmind.models.insights import CodeHealthMetrics
from gitmind.models.repository import FileTree

_TEST_PATTERNS = (
    re.compile(r"(^|/)(tests?|__tests__|spec|specs)/"),
    re.compile(r"(^|/)test_[^/]+\.py$"),
    re.compile(r"_test\.(py|go|rs|exs?)$"),
    re.compile(r"\.(test|spec)\.[jt]sx?$"),
    re.compile(r"(^|/)[A-Z][A-Za-z0-9]*Tests?\.(java|kt|cs)$"),
)

_CI_PREFIXES = (".github/workflows/", ".gitlab-ci", ".circleci/", "azure-pipelines", "Jenkinsfile", ".travis.yml")


def is_test_file(path: str) -> bool:
    return any(pattern.search(path) for pattern in _TEST_PATTERNS)


def _root_names(tree: FileTree) -> set[str]:
    return {root.name.lower() for root in tree.roots}


def language_shares(languages: dict[str, int]) -> dict[str, float]:
    """Convert byte counts to percentages (one decimal), largest first."""
    total = sum(languages.values())
    if total <= 0:
        return {}
    ordered = sorted(languages.items(), key=lambda item: item[1], reverse=True)
    return {name: round(count * 100 / total, 1) for name, count in ordered}


def compute_health(
    tree: FileTree,
    languages: dict[str, int] | None = None,
    largest_limit: int = 5,
) -> CodeHealthMetrics:
    """Compute structural health indicators.

    Args:
        tree: Reconstructed repository tree
        languages: Language byte counts from the source host
        largest_limit: Number of largest files to report

    Returns:
        CodeHealthMetrics
    """
    files = []
    directory_count = 0
    for root in tree.roots:
        for node in root.walk():
            if node.is_dir:
                directory_count += 1
            else:
                files.append(node)

    test_count = sum(1 for node in files if is_test_file(node.path))
    root_names = _root_names(tree)
    sized = sorted((n for n in files if n.size is not None), key=lambda n: n.size or 0, reverse=True)

    return CodeHealthMetrics(
        file_count=len(files),
        directory_count=directory_count,
        test_file_count=test_count,
        test_ratio=round(test_count / len(files), 3) if files else 0.0,
        has_readme=any(name.startswith("readme") for name in root_names),
        has_license=any(name.startswith(("license", "licence", "copying")) for name in root_names),
        has_ci=any(node.path.startswith(_CI_PREFIXES) for node in files),
        has_contributing=any(name.startswith("contributing") for name in root_names)
        or tree.find(".github/CONTRIBUTING.md") is not None,
        language_shares=language_shares(languages or {}),
        largest_files=[node.path for node in sized[:largest_limit]],
    )
