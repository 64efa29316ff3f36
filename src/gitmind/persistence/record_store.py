"""Record store for completed analyses (Supabase/PostgREST REST API).

Two operations are used by the pipeline:

- `save_analysis`: insert one row into the analyses table. Called
  fire-and-forget through `persist_in_background`; failures are logged and
  never surfaced.
- `count_today`: number of rows a user created since local midnight, used to
  enforce the daily usage cap before a run starts.

The store is optional; when it is not configured the pipeline skips both.
"""

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any

import httpx

from gitmind.config import RecordStoreConfig
from gitmind.errors import InvalidConfigurationError, UpstreamApiError, classify_error
from gitmind.models.report import AnalysisReport
from gitmind.models.repository import RepositoryReference

logger = logging.getLogger(__name__)


def _start_of_day(now: datetime) -> datetime:
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def _parse_content_range(value: str | None) -> int:
    """Total from a PostgREST Content-Range header ("0-9/42" or "*/0")."""
    if not value or "/" not in value:
        raise UpstreamApiError(f"Record store returned no row count (Content-Range: {value!r})")
    total = value.rsplit("/", 1)[1]
    if total == "*":
        raise UpstreamApiError("Record store did not return an exact count")
    return int(total)


class RecordStore:
    """Minimal PostgREST client for the analyses table.

    Args:
        config: Store URL, key and table name
        client: Pre-built httpx client (tests inject one with a MockTransport)
        now: Clock returning an aware local datetime
    """

    def __init__(
        self,
        config: RecordStoreConfig,
        client: httpx.AsyncClient | None = None,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        if not config.enabled:
            raise InvalidConfigurationError(
                "Record store is not configured. Set record_store.url and record_store.api_key."
            )
        self.config = config
        self._now = now or (lambda: datetime.now().astimezone())
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=f"{str(config.url).rstrip('/')}/rest/v1",
            headers={
                "apikey": str(config.api_key),
                "Authorization": f"Bearer {config.api_key}",
            },
            timeout=15.0,
        )
        self._pending: set[asyncio.Task[None]] = set()

    async def aclose(self) -> None:
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
        if self._owns_client:
            await self._client.aclose()

    @staticmethod
    def build_record(
        user_id: str,
        reference: RepositoryReference,
        report: AnalysisReport,
    ) -> dict[str, Any]:
        return {
            "user_id": user_id,
            "repo_owner": reference.owner,
            "repo_name": reference.name,
            "repo_url": reference.url,
            "summary": report.summary,
            "tech_stack": report.tech_stack,
            "scorecard": report.scorecard.model_dump(),
            "raw_analysis": report.model_dump(mode="json"),
        }

    async def save_analysis(
        self,
        user_id: str,
        reference: RepositoryReference,
        report: AnalysisReport,
    ) -> None:
        """Insert one analysis row.

        Raises:
            GitMindError: Classified transport or API failure
        """
        record = self.build_record(user_id, reference, report)
        try:
            response = await self._client.post(
                f"/{self.config.table}",
                json=record,
                headers={"Prefer": "return=minimal"},
            )
        except Exception as e:
            raise classify_error(e) from e

        if not response.is_success:
            raise UpstreamApiError(
                f"Failed to save analysis: {_error_text(response)}",
                status_code=response.status_code,
            )
        logger.info("Saved analysis of %s for user %s", reference.slug, user_id)

    async def count_today(self, user_id: str) -> int:
        """Count analyses created by `user_id` since local midnight."""
        since = _start_of_day(self._now()).isoformat()
        try:
            response = await self._client.head(
                f"/{self.config.table}",
                params={
                    "select": "id",
                    "user_id": f"eq.{user_id}",
                    "created_at": f"gte.{since}",
                },
                headers={"Prefer": "count=exact"},
            )
        except Exception as e:
            raise classify_error(e) from e

        if not response.is_success:
            raise UpstreamApiError(
                f"Failed to check daily usage: {_error_text(response)}",
                status_code=response.status_code,
            )
        return _parse_content_range(response.headers.get("content-range"))

    def persist_in_background(
        self,
        user_id: str,
        reference: RepositoryReference,
        report: AnalysisReport,
    ) -> asyncio.Task[None]:
        """Schedule `save_analysis` without awaiting it; failures are logged only."""

        async def run() -> None:
            try:
                await self.save_analysis(user_id, reference, report)
            except Exception as e:
                logger.warning("Could not persist analysis of %s: %s", reference.slug, e)

        task = asyncio.create_task(run())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task


def _error_text(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200] or response.reason_phrase
    if isinstance(body, dict):
        return str(body.get("message") or body.get("error") or body)
    return str(body)
