"""Local repository analyzers (no inference calls).

- manifests: dependency manifest parsing
- health: code-health metrics from the file tree
- activity: ownership and change heatmaps from recent commits
"""

from gitmind.analyzers.activity import area_owners, change_heatmap
from gitmind.analyzers.health import compute_health, is_test_file, language_shares
from gitmind.analyzers.manifests import MANIFEST_FILES, ManifestParser, detect_frameworks

__all__ = [
    "MANIFEST_FILES",
    "ManifestParser",
    "area_owners",
    "change_heatmap",
    "compute_health",
    "detect_frameworks",
    "is_test_file",
    "language_shares",
]
