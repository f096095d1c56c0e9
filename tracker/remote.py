"""
Remote Client - thin HTTP wrappers around the record-store server.

Every call is bounded by ``SyncConfig.request_timeout``. Timeouts, transport
errors, non-2xx responses and undecodable bodies all surface the same way:
fetches raise ``RemoteUnavailable`` and pushes return ``False``.
"""

import asyncio
import logging
from typing import Any, Optional

import httpx

from .config import SyncConfig
from .exceptions import RemoteUnavailable
from .models import (
    ChecklistRecord,
    CounterRecord,
    Record,
    RemoteActivity,
    RemoteCounter,
)
from .status import SyncStatus

logger = logging.getLogger(__name__)


class RemoteClient:
    """Async client for the /api/mantras and /api/activities endpoints."""

    def __init__(
        self,
        config: SyncConfig,
        status: Optional[SyncStatus] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config
        self.status = status
        self._transport = transport
        self._http_client: Optional[httpx.AsyncClient] = None

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(
                base_url=self.config.api_base_url,
                timeout=httpx.Timeout(self.config.request_timeout),
                limits=httpx.Limits(max_keepalive_connections=5, max_connections=10),
                transport=self._transport,
            )
        return self._http_client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._http_client and not self._http_client.is_closed:
            await self._http_client.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        """Perform one request and return the decoded JSON body.

        Publishes the outcome to the shared status: success means online,
        any failure means offline.
        """
        client = await self._get_http_client()
        try:
            # httpx timeouts bound each phase, not the whole exchange
            response = await asyncio.wait_for(
                client.request(method, path, **kwargs),
                timeout=self.config.request_timeout,
            )
            response.raise_for_status()
            data = response.json()
        except (httpx.TimeoutException, asyncio.TimeoutError) as e:
            self._went_offline()
            raise RemoteUnavailable(
                f"{method} {path} exceeded {self.config.request_timeout}s"
            ) from e
        except httpx.HTTPStatusError as e:
            self._went_offline()
            raise RemoteUnavailable(
                f"{method} {path} returned {e.response.status_code}",
                status_code=e.response.status_code,
            ) from e
        except httpx.RequestError as e:
            self._went_offline()
            raise RemoteUnavailable(f"{method} {path} failed: {e}") from e
        except ValueError as e:
            self._went_offline()
            raise RemoteUnavailable(f"{method} {path} returned invalid JSON: {e}") from e

        logger.debug(f"{method} {path} - {response.status_code}")
        if self.status is not None:
            self.status.mark_online()
        return data

    def _went_offline(self) -> None:
        if self.status is not None:
            self.status.mark_offline()

    def _malformed(self, request: str, detail: str) -> RemoteUnavailable:
        self._went_offline()
        return RemoteUnavailable(f"{request} returned a malformed body: {detail}")

    # === Fetch ===

    async def fetch_counters(self, date: str) -> list[RemoteCounter]:
        """Server counters for ``date``; raises RemoteUnavailable."""
        path = f"/api/mantras/{date}"
        data = await self._request("GET", path)
        if not isinstance(data, dict) or not isinstance(data.get("mantras"), list):
            raise self._malformed(f"GET {path}", "missing 'mantras' list")
        try:
            return [RemoteCounter.from_dict(entry) for entry in data["mantras"]]
        except (KeyError, TypeError, ValueError) as e:
            raise self._malformed(f"GET {path}", str(e)) from e

    async def fetch_checklist(self, date: str) -> list[RemoteActivity]:
        """Server checklist for ``date``; raises RemoteUnavailable."""
        path = f"/api/activities/{date}"
        data = await self._request("GET", path)
        if not isinstance(data, dict) or not isinstance(data.get("activities"), list):
            raise self._malformed(f"GET {path}", "missing 'activities' list")
        try:
            return [RemoteActivity.from_dict(entry) for entry in data["activities"]]
        except (KeyError, TypeError, ValueError) as e:
            raise self._malformed(f"GET {path}", str(e)) from e

    # === Push ===

    async def push_counter_count(self, name: str, date: str, count: int) -> bool:
        """Set the server count for (name, date). True when accepted."""
        try:
            await self._request(
                "PUT",
                "/api/mantras",
                json={"name": name, "date": date, "count": count},
            )
        except RemoteUnavailable as e:
            logger.warning(f"Push of counter {name}@{date}={count} failed: {e}")
            return False
        return True

    async def push_checklist_state(self, name: str, date: str, completed: bool) -> bool:
        """Set the server completion state for (name, date). True when accepted."""
        try:
            await self._request(
                "PUT",
                "/api/activities",
                json={"name": name, "date": date, "completed": completed},
            )
        except RemoteUnavailable as e:
            logger.warning(f"Push of activity {name}@{date}={completed} failed: {e}")
            return False
        return True

    async def push_record(self, record: Record) -> bool:
        """Push whichever value ``record`` carries."""
        if isinstance(record, CounterRecord):
            return await self.push_counter_count(record.name, record.date, record.count)
        if isinstance(record, ChecklistRecord):
            return await self.push_checklist_state(record.name, record.date, record.completed)
        raise TypeError(f"Cannot push {type(record).__name__}")

    async def increment_counter(self, name: str, date: str) -> RemoteCounter:
        """Server-side increment; not idempotent, so never retried automatically."""
        path = "/api/mantras/increment"
        data = await self._request("POST", path, json={"name": name, "date": date})
        try:
            return RemoteCounter.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            raise self._malformed(f"POST {path}", str(e)) from e

    async def health_check(self) -> bool:
        """Check if the server is reachable."""
        try:
            await self._request("GET", "/api/health")
            return True
        except RemoteUnavailable:
            return False
