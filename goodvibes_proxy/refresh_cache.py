"""
Full-dataset refresh cache for the public Good Vibes listing.

The listing endpoint caps page size, so each refresh cycle walks it with
continuation tokens and swaps the complete result in as the new snapshot.
A failed cycle leaves the previous snapshot in service.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime
from typing import Any, Protocol

from .models import UpstreamResponse


class ListingClient(Protocol):
    async def list_good_vibes(self, params: dict[str, Any] | None = None) -> UpstreamResponse: ...


class RefreshAbortedError(Exception):
    """A refresh cycle stopped before reaching the end of the listing."""


class PageLimitExceededError(RefreshAbortedError):
    """The walk went past the configured page bound."""


class DatasetRefreshCache:
    """
    In-memory snapshot of every public Good Vibe.

    One background task runs a cycle at start and then every
    interval_seconds. Readers get a copy of the current list and never see
    a half-built walk. is_ready flips to True after the first successful
    cycle and stays True.
    """

    def __init__(
        self,
        client: ListingClient,
        *,
        interval_seconds: float = 300,
        page_limit: int = 100,
        max_pages: int | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.client = client
        self.interval_seconds = interval_seconds
        self.page_limit = page_limit
        self.max_pages = max_pages
        self.logger = logger or logging.getLogger(self.__class__.__module__)
        self.last_refreshed_at: datetime | None = None
        self.last_error: str | None = None
        self._records: list[dict[str, Any]] = []
        self._ready = False
        self._lock: asyncio.Lock | None = None
        self._stop_event: asyncio.Event | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def is_ready(self) -> bool:
        return self._ready

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def snapshot(self) -> list[dict[str, Any]]:
        """Return a copy of the current snapshot (empty before the first refresh)."""
        async with self._ensure_lock():
            return list(self._records)

    async def refresh_once(self) -> bool:
        """
        Run one complete walk and publish it.

        Returns True when a new snapshot was published. Failures are logged
        and leave the previous snapshot and readiness untouched.
        """
        try:
            records, pages = await self._walk()
        except PageLimitExceededError as exc:
            self.last_error = str(exc)
            self.logger.error("Good Vibes refresh aborted at page bound: %s", exc)
            return False
        except RefreshAbortedError as exc:
            self.last_error = str(exc)
            self.logger.warning("Good Vibes refresh failed, keeping previous snapshot: %s", exc)
            return False

        async with self._ensure_lock():
            self._records = records
            self._ready = True
            self.last_refreshed_at = datetime.now(UTC)
        self.last_error = None
        self.logger.info("Good Vibes cache refreshed: %s records from %s pages", len(records), pages)
        return True

    def start(self) -> asyncio.Task[None]:
        """
        Schedule the refresh loop on the running event loop.

        Returns immediately; the first cycle runs in the background.
        """
        if self.is_running:
            return self._task
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._run(), name="goodvibes-refresh")
        return self._task

    async def stop(self) -> None:
        """Signal the loop and wait for the current cycle to finish."""
        if self._task is None:
            return
        if self._stop_event is not None:
            self._stop_event.set()
        try:
            await self._task
        finally:
            self._task = None

    async def _run(self) -> None:
        stop_event = self._stop_event
        while not stop_event.is_set():
            try:
                await self.refresh_once()
            except Exception:  # noqa: BLE001 - the loop must outlive one bad cycle
                self.logger.exception("Unexpected error in Good Vibes refresh cycle")
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self.interval_seconds)
            except TimeoutError:
                continue
        self.logger.info("Good Vibes refresh loop stopped")

    async def _walk(self) -> tuple[list[dict[str, Any]], int]:
        accumulated: list[dict[str, Any]] = []
        continuation_token: str | None = None
        pages = 0

        while True:
            if self.max_pages is not None and pages >= self.max_pages:
                raise PageLimitExceededError(
                    f"more than {self.max_pages} pages ({len(accumulated)} records so far)"
                )

            params: dict[str, Any] = {"isPublic": "true", "limit": self.page_limit}
            if continuation_token:
                params["continuationToken"] = continuation_token

            try:
                response = await self.client.list_good_vibes(params)
            except Exception as exc:  # noqa: BLE001 - any transport failure aborts the cycle
                raise RefreshAbortedError(f"page {pages + 1} failed: {exc}") from exc

            if not response.ok:
                raise RefreshAbortedError(f"page {pages + 1} returned status {response.status}")

            body = response.body
            if not isinstance(body, dict) or not isinstance(body.get("data"), list):
                raise RefreshAbortedError(f"page {pages + 1} returned no data array")
            accumulated.extend(body["data"])
            pages += 1

            metadata = body.get("metadata")
            continuation_token = metadata.get("continuationToken") if isinstance(metadata, dict) else None
            if not continuation_token:
                return accumulated, pages

    def _ensure_lock(self) -> asyncio.Lock:
        if self._lock is None:
            self._lock = asyncio.Lock()
        return self._lock


__all__ = [
    "DatasetRefreshCache",
    "RefreshAbortedError",
    "PageLimitExceededError",
]
