"""Repository entities: references, metadata, file trees and snapshots.

A RepositoryReference is the validated (owner, name) pair a run is keyed on.
Everything else here is structural data fetched from the source host and
held only for the lifetime of the active run.
"""

import re
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urlparse

from gitmind.errors import ValidationError

SOURCE_HOST = "github.com"

_OWNER_RE = re.compile(r"^[A-Za-z0-9](?:[A-Za-z0-9-]*[A-Za-z0-9])?$")
_NAME_RE = re.compile(r"^[A-Za-z0-9._-]+$")
_SCP_RE = re.compile(r"^(?P<user>[A-Za-z0-9_.-]+)@(?P<host>[A-Za-z0-9.-]+):(?P<path>.+)$")


@dataclass(frozen=True)
class RepositoryReference:
    """Validated owner/name pair for a hosted repository.

    Attributes:
        owner: Account or organization login
        name: Repository name (without ``.git``)
    """

    owner: str
    name: str

    @property
    def slug(self) -> str:
        """Return ``owner/name``."""
        return f"{self.owner}/{self.name}"

    @property
    def url(self) -> str:
        """Return the canonical web URL."""
        return f"https://{SOURCE_HOST}/{self.slug}"

    def __str__(self) -> str:
        return self.slug

    @classmethod
    def parse(cls, text: str, host: str = SOURCE_HOST) -> "RepositoryReference":
        """Parse a URL or SSH clone string into a reference.

        Accepted forms:
        - https://github.com/owner/name (optional www., .git, trailing slash)
        - github.com/owner/name
        - git@github.com:owner/name.git
        - ssh://git@github.com/owner/name.git

        Args:
            text: User-supplied reference
            host: Expected source host

        Returns:
            RepositoryReference

        Raises:
            ValidationError: If the host differs or the path is not exactly
                owner/name
        """
        if not isinstance(text, str) or not text.strip():
            raise ValidationError("Invalid GitHub URL: reference is empty")

        raw = text.strip().replace("<", "").replace(">", "")

        scp = _SCP_RE.match(raw)
        if scp and "://" not in raw:
            found_host = scp.group("host")
            path = scp.group("path")
        else:
            candidate = raw if "://" in raw else f"https://{raw}"
            parsed = urlparse(candidate)
            if parsed.scheme not in {"http", "https", "ssh", "git"}:
                raise ValidationError(f"Invalid GitHub URL: {text}")
            if parsed.query or parsed.fragment:
                raise ValidationError(f"Invalid GitHub URL: {text}")
            found_host = parsed.hostname or ""
            path = parsed.path

        found_host = found_host.lower()
        if found_host.startswith("www."):
            found_host = found_host[4:]
        if found_host != host:
            raise ValidationError(f"Invalid GitHub URL: {text} (expected host {host})")

        path = path.strip("/")
        if path.endswith(".git"):
            path = path[: -len(".git")]
        segments = [segment for segment in path.split("/") if segment]

        if len(segments) != 2:
            raise ValidationError(
                f"Invalid GitHub URL: {text} (expected exactly owner/name)"
            )

        owner, name = segments
        if not _OWNER_RE.match(owner) or not _NAME_RE.match(name) or name in {".", ".."}:
            raise ValidationError(f"Invalid GitHub URL: {text}")

        return cls(owner=owner, name=name)


def is_valid_reference(text: str) -> bool:
    """Return True if `text` parses as a repository reference."""
    try:
        RepositoryReference.parse(text)
    except ValidationError:
        return False
    return True


@dataclass
class RepositoryMetadata:
    """Repository metadata from the source host."""

    owner: str
    name: str
    description: str = "No description provided"
    stars: int = 0
    forks: int = 0
    open_issues: int = 0
    language: str = "Unknown"
    default_branch: str = "main"
    url: str = ""
    topics: list[str] = field(default_factory=list)

    @classmethod
    def from_api(cls, owner: str, name: str, data: dict[str, Any]) -> "RepositoryMetadata":
        """Build from a GitHub ``/repos/{owner}/{name}`` payload."""
        return cls(
            owner=owner,
            name=name,
            description=data.get("description") or "No description provided",
            stars=int(data.get("stargazers_count") or 0),
            forks=int(data.get("forks_count") or 0),
            open_issues=int(data.get("open_issues_count") or 0),
            language=data.get("language") or "Unknown",
            default_branch=data.get("default_branch") or "main",
            url=data.get("html_url") or f"https://{SOURCE_HOST}/{owner}/{name}",
            topics=list(data.get("topics") or []),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "owner": self.owner,
            "name": self.name,
            "description": self.description,
            "stars": self.stars,
            "forks": self.forks,
            "open_issues": self.open_issues,
            "language": self.language,
            "default_branch": self.default_branch,
            "url": self.url,
            "topics": self.topics,
        }


@dataclass
class FileNode:
    """Node in the reconstructed repository tree.

    Attributes:
        path: Full path from the repository root
        name: Last path segment
        type: "blob" for files, "tree" for directories
        sha: Object id (empty for placeholder directories)
        size: Size in bytes (files only)
        children: Child nodes (directories only)
    """

    path: str
    name: str
    type: str
    sha: str = ""
    size: int | None = None
    children: list["FileNode"] = field(default_factory=list)

    @property
    def is_dir(self) -> bool:
        return self.type == "tree"

    def walk(self):
        """Yield this node and all descendants depth-first."""
        yield self
        for child in self.children:
            yield from child.walk()

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"path": self.path, "name": self.name, "type": self.type}
        if self.size is not None:
            data["size"] = self.size
        if self.is_dir:
            data["children"] = [child.to_dict() for child in self.children]
        return data


def _parent_path(path: str) -> str | None:
    if "/" not in path:
        return None
    return path.rsplit("/", 1)[0]


def build_file_tree(entries: list[dict[str, Any]]) -> list[FileNode]:
    """Reconstruct a hierarchy from a flat list of tree entries.

    Each entry is attached to its parent through a path lookup map. A parent
    referenced before its own entry arrives is created as a placeholder
    directory and filled in later, so input order does not matter.

    Args:
        entries: Dicts with ``path``, ``type`` and optional ``sha``/``size``

    Returns:
        Top-level nodes, directories first then by name
    """
    nodes: dict[str, FileNode] = {}
    attached: set[str] = set()
    roots: list[FileNode] = []

    def get_or_create(path: str, node_type: str = "tree") -> FileNode:
        node = nodes.get(path)
        if node is None:
            node = FileNode(path=path, name=path.rsplit("/", 1)[-1], type=node_type)
            nodes[path] = node
        return node

    def attach(node: FileNode) -> None:
        # Walk upwards until an already-attached ancestor is reached
        while node.path not in attached:
            attached.add(node.path)
            parent_path = _parent_path(node.path)
            if parent_path is None:
                roots.append(node)
                return
            parent = get_or_create(parent_path)
            parent.children.append(node)
            node = parent

    for entry in entries:
        path = str(entry.get("path", "")).strip("/")
        if not path:
            continue
        node_type = entry.get("type", "blob")
        node = get_or_create(path, node_type)
        # Fill in a placeholder created by an earlier child
        node.type = node_type
        node.sha = entry.get("sha") or node.sha
        if entry.get("size") is not None:
            node.size = int(entry["size"])
        attach(node)

    def sort_key(node: FileNode) -> tuple[int, str]:
        return (0 if node.is_dir else 1, node.name.lower())

    for node in nodes.values():
        node.children.sort(key=sort_key)
    roots.sort(key=sort_key)
    return roots


def truncate_entries(entries: list[dict[str, Any]], max_entries: int) -> list[dict[str, Any]]:
    """Keep the shallowest `max_entries` entries (fast mode)."""
    if max_entries <= 0 or len(entries) <= max_entries:
        return list(entries)
    ordered = sorted(entries, key=lambda e: (str(e.get("path", "")).count("/"), e.get("path", "")))
    return ordered[:max_entries]


@dataclass
class FileTree:
    """Reconstructed tree plus the flat path listing it came from."""

    roots: list[FileNode] = field(default_factory=list)
    paths: list[str] = field(default_factory=list)
    truncated: bool = False
    total_entries: int = 0

    @property
    def file_paths(self) -> list[str]:
        """Paths of blob entries only."""
        return [
            node.path
            for root in self.roots
            for node in root.walk()
            if not node.is_dir
        ]

    def find(self, path: str) -> FileNode | None:
        for root in self.roots:
            for node in root.walk():
                if node.path == path:
                    return node
        return None


@dataclass
class CommitFile:
    """File touched by a commit."""

    path: str
    additions: int = 0
    deletions: int = 0
    status: str = "modified"


@dataclass
class CommitRecord:
    """Recent commit with its changed files."""

    sha: str
    author: str
    message: str
    date: str
    files: list[CommitFile] = field(default_factory=list)


@dataclass
class RepositorySnapshot:
    """Structural inputs for core analysis; never persisted."""

    reference: RepositoryReference
    metadata: RepositoryMetadata
    tree: FileTree
    readme: str = ""

    @property
    def truncated(self) -> bool:
        return self.tree.truncated

    def structure_outline(self, limit: int = 200) -> str:
        """Newline-separated path listing for prompts."""
        return "\n".join(self.tree.paths[:limit])
