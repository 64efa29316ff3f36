"""Read-only gateway to the GitHub REST API.

All structural fetches (metadata, trees, readmes, file contents) go through
the structure cache. Every failure leaves this module as a classified
GitMindError.
"""

import asyncio
import base64
import logging
from typing import Any

import httpx

from gitmind.cache import ResultCache
from gitmind.config import GitHubConfig
from gitmind.errors import (
    GitMindError,
    SourceProviderError,
    UpstreamApiError,
    classify_error,
)
from gitmind.models.insights import Contributor, IssueSummary, PullRequestSummary
from gitmind.models.llm_config import is_placeholder_key
from gitmind.models.repository import (
    CommitFile,
    CommitRecord,
    FileTree,
    RepositoryMetadata,
    RepositoryReference,
    build_file_tree,
    truncate_entries,
)

logger = logging.getLogger(__name__)

GITHUB_API_VERSION = "2022-11-28"


class SourceGateway:
    """Async facade over the GitHub REST API.

    Args:
        config: Token, base URL and timeout
        cache: Structure cache shared across runs
        client: Pre-built httpx client (tests inject one with a MockTransport)
    """

    def __init__(
        self,
        config: GitHubConfig | None = None,
        cache: ResultCache[Any] | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.config = config or GitHubConfig()
        self.cache: ResultCache[Any] = cache if cache is not None else ResultCache()
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=self.config.api_base,
            headers=self._headers(),
            timeout=self.config.timeout,
        )

    def _headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": GITHUB_API_VERSION,
        }
        if not is_placeholder_key(self.config.token):
            headers["Authorization"] = f"Bearer {self.config.token}"
        return headers

    @property
    def authenticated(self) -> bool:
        return not is_placeholder_key(self.config.token)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "SourceGateway":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    # -------------------------------------------------------------------------
    # Transport
    # -------------------------------------------------------------------------

    async def _request(self, path: str, params: dict[str, Any] | None = None) -> httpx.Response:
        try:
            response = await self._client.get(path, params=params)
        except Exception as e:
            raise classify_error(e) from e

        if response.is_success:
            return response

        raise self._error_for(response)

    async def _get_json(self, path: str, params: dict[str, Any] | None = None) -> Any:
        response = await self._request(path, params)
        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise UpstreamApiError(f"GitHub returned a non-JSON reply for {path}") from e

    def _error_for(self, response: httpx.Response) -> GitMindError:
        upstream_message = ""
        try:
            body = response.json()
            if isinstance(body, dict):
                upstream_message = str(body.get("message") or "")
        except ValueError:
            upstream_message = response.text[:200]

        status = response.status_code
        logger.debug("GitHub %s %s -> %d %s", response.request.method, response.request.url, status, upstream_message)

        if status == 404:
            return SourceProviderError(
                "Repository or resource not found. Check the owner/name format; "
                "private repositories need a GitHub token.",
                status_code=404,
                details=upstream_message,
            )
        if status in (403, 429):
            hint = "" if self.authenticated else " Configure a GitHub token to raise the limit."
            return SourceProviderError(
                f"GitHub denied the request ({upstream_message or 'rate limit or access denied'}).{hint}",
                status_code=status,
                details=upstream_message,
            )
        return UpstreamApiError(
            f"GitHub API error: {upstream_message or response.reason_phrase}",
            status_code=status,
            details=upstream_message,
        )

    async def _cached(self, key: str, loader: Any) -> Any:
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("Structure cache hit: %s", key)
            return cached
        value = await loader()
        self.cache.set(key, value)
        return value

    # -------------------------------------------------------------------------
    # Structural fetches
    # -------------------------------------------------------------------------

    def resolve(self, text: str) -> RepositoryReference:
        """Parse a user-supplied reference. Raises ValidationError."""
        return RepositoryReference.parse(text)

    async def fetch_metadata(self, ref: RepositoryReference) -> RepositoryMetadata:
        async def load() -> RepositoryMetadata:
            data = await self._get_json(f"/repos/{ref.owner}/{ref.name}")
            return RepositoryMetadata.from_api(ref.owner, ref.name, data or {})

        return await self._cached(f"metadata:{ref.slug}", load)

    async def fetch_tree(
        self,
        ref: RepositoryReference,
        branch: str,
        max_entries: int | None = None,
    ) -> FileTree:
        """Fetch the recursive tree of `branch` and rebuild the hierarchy.

        Args:
            ref: Repository reference
            branch: Branch name (from metadata)
            max_entries: Keep only the shallowest N entries when set

        Returns:
            FileTree with `truncated` set when entries were dropped, either
            here or by GitHub itself
        """

        async def load() -> tuple[list[dict[str, Any]], bool]:
            data = await self._get_json(
                f"/repos/{ref.owner}/{ref.name}/git/trees/{branch}",
                params={"recursive": "1"},
            )
            data = data or {}
            entries = list(data.get("tree") or [])
            partial = bool(data.get("truncated"))
            if partial:
                logger.warning("GitHub truncated the tree for %s; listing is partial", ref.slug)
            return entries, partial

        entries, partial = await self._cached(f"tree:{ref.slug}:{branch}", load)
        total = len(entries)
        kept = truncate_entries(entries, max_entries) if max_entries else entries

        return FileTree(
            roots=build_file_tree(kept),
            paths=[str(e.get("path", "")) for e in kept],
            truncated=partial or len(kept) < total,
            total_entries=total,
        )

    async def fetch_readme(self, ref: RepositoryReference) -> str:
        """Return the decoded README, or an empty string if there is none."""

        async def load() -> str:
            try:
                data = await self._get_json(f"/repos/{ref.owner}/{ref.name}/readme")
            except SourceProviderError as e:
                if e.status_code == 404:
                    logger.info("No README found for %s", ref.slug)
                    return ""
                raise
            return _decode_content(data)

        return await self._cached(f"readme:{ref.slug}", load)

    async def fetch_file_content(self, ref: RepositoryReference, path: str) -> str:
        async def load() -> str:
            data = await self._get_json(f"/repos/{ref.owner}/{ref.name}/contents/{path.lstrip('/')}")
            if isinstance(data, list):
                raise UpstreamApiError(f"'{path}' is a directory, not a file", status_code=400)
            return _decode_content(data)

        return await self._cached(f"file:{ref.slug}:{path}", load)

    # -------------------------------------------------------------------------
    # Auxiliary fetches (not cached; used for enrichment and insights)
    # -------------------------------------------------------------------------

    async def fetch_issues(self, ref: RepositoryReference, limit: int = 10) -> list[IssueSummary]:
        data = await self._get_json(
            f"/repos/{ref.owner}/{ref.name}/issues",
            params={"state": "open", "per_page": limit},
        )
        # The issues endpoint also returns pull requests
        return [IssueSummary.from_api(item) for item in data or [] if "pull_request" not in item]

    async def fetch_pull_requests(self, ref: RepositoryReference, limit: int = 10) -> list[PullRequestSummary]:
        data = await self._get_json(
            f"/repos/{ref.owner}/{ref.name}/pulls",
            params={"state": "all", "per_page": limit},
        )
        return [PullRequestSummary.from_api(item) for item in data or []]

    async def fetch_contributors(self, ref: RepositoryReference, limit: int = 10) -> list[Contributor]:
        data = await self._get_json(
            f"/repos/{ref.owner}/{ref.name}/contributors",
            params={"per_page": limit},
        )
        return [Contributor.from_api(item) for item in data or []]

    async def fetch_commit_activity(self, ref: RepositoryReference) -> list[dict[str, Any]]:
        """Weekly commit counts for the last year.

        GitHub answers 202 while it computes the statistics; that is
        reported as no data rather than retried.
        """
        response = await self._request(f"/repos/{ref.owner}/{ref.name}/stats/commit_activity")
        if response.status_code == 202 or not response.content:
            logger.debug("Commit activity for %s is still being computed", ref.slug)
            return []
        try:
            data = response.json()
        except ValueError as e:
            raise UpstreamApiError(f"GitHub returned a non-JSON reply for commit activity of {ref.slug}") from e
        return list(data) if isinstance(data, list) else []

    async def fetch_languages(self, ref: RepositoryReference) -> dict[str, int]:
        data = await self._get_json(f"/repos/{ref.owner}/{ref.name}/languages")
        return {str(k): int(v) for k, v in (data or {}).items()}

    async def fetch_recent_commits(self, ref: RepositoryReference, limit: int = 30) -> list[CommitRecord]:
        """Fetch recent commits, each expanded with its changed files."""
        listing = await self._get_json(
            f"/repos/{ref.owner}/{ref.name}/commits",
            params={"per_page": limit},
        )
        shas = [item["sha"] for item in listing or [] if item.get("sha")]
        details = await asyncio.gather(
            *(self._get_json(f"/repos/{ref.owner}/{ref.name}/commits/{sha}") for sha in shas)
        )
        return [_commit_from_api(detail or {}) for detail in details]


def _decode_content(data: Any) -> str:
    if not isinstance(data, dict):
        return ""
    content = data.get("content") or ""
    if data.get("encoding", "base64") != "base64":
        return str(content)
    try:
        return base64.b64decode(content).decode("utf-8", errors="replace")
    except ValueError as e:
        raise UpstreamApiError("GitHub returned undecodable file content") from e


def _commit_from_api(data: dict[str, Any]) -> CommitRecord:
    commit = data.get("commit") or {}
    author_info = commit.get("author") or {}
    login = (data.get("author") or {}).get("login")
    return CommitRecord(
        sha=data.get("sha") or "",
        author=login or author_info.get("name") or "unknown",
        message=(commit.get("message") or "").split("\n", 1)[0],
        date=author_info.get("date") or "",
        files=[
            CommitFile(
                path=f.get("filename") or "",
                additions=int(f.get("additions") or 0),
                deletions=int(f.get("deletions") or 0),
                status=f.get("status") or "modified",
            )
            for f in data.get("files") or []
        ],
    )
