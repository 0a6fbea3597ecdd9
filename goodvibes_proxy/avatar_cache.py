"""
Avatar lookup cache for Workleap user identifiers.

Resolves a user id to an avatar URL through the single-user endpoint and
keeps the outcome, including "no avatar", in a cachetools.TTLCache. Upstream
work is bounded by a global semaphore and concurrent lookups for the same
user id are coalesced into one fetch.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any, Protocol

from cachetools import TTLCache

from .models import UpstreamResponse

USER_EXTENSION_KEY = "urn:workleap:params:scim:schemas:extension:user:2.0:User"
PREFERRED_AVATAR_SIZES = ("32x32", "48x48", "24x24", "64x64")

_MISSING = object()


class UserLookupClient(Protocol):
    async def get_user(self, user_id: str) -> UpstreamResponse: ...


def extract_avatar_url(user: Any) -> str | None:
    """
    Pick an avatar URL out of a single-user response body.

    Sizes are tried in PREFERRED_AVATAR_SIZES order; when none of them is
    present the first entry of the map wins. Returns None when the body has
    no imageUrls map.
    """
    if not isinstance(user, dict):
        return None
    extension = user.get(USER_EXTENSION_KEY)
    if not isinstance(extension, dict):
        return None
    image_urls = extension.get("imageUrls")
    if not isinstance(image_urls, dict) or not image_urls:
        return None

    for size in PREFERRED_AVATAR_SIZES:
        if size in image_urls:
            return image_urls[size]
    # Upstream enumeration order decides the fallback
    return next(iter(image_urls.values()))


class AvatarLookupCache:
    """
    Async-safe, single-flight avatar cache.

    A hit is served straight from the TTLCache. A miss joins the in-flight
    lookup for that user id or starts one; the lookup takes a semaphore slot,
    re-checks the cache, then fetches with retry and stores the result for
    ttl_seconds whatever the outcome. resolve() never raises for upstream
    failures; they surface as None.
    """

    def __init__(
        self,
        client: UserLookupClient,
        *,
        ttl_seconds: float = 3600,
        max_entries: int = 10000,
        max_concurrency: int = 10,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        timer: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        logger: logging.Logger | None = None,
    ) -> None:
        self.client = client
        self.max_concurrency = max_concurrency
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.logger = logger or logging.getLogger(self.__class__.__module__)
        self._sleep = sleep
        self._cache: TTLCache[str, str | None] = TTLCache(
            maxsize=max_entries,
            ttl=ttl_seconds,
            timer=timer,
        )
        self._inflight: dict[str, asyncio.Future[str | None]] = {}
        # Created lazily so nothing touches asyncio before an event loop exists.
        self._lock: asyncio.Lock | None = None
        self._semaphore: asyncio.Semaphore | None = None

    @property
    def cached_count(self) -> int:
        """Number of unexpired entries."""
        self._cache.expire()
        return len(self._cache)

    async def resolve(self, user_id: str) -> str | None:
        """
        Return the avatar URL for user_id, or None when there is none.

        Args:
            user_id: Non-empty Workleap user identifier.
        """
        value = await self._lookup(user_id)
        if value is not _MISSING:
            return value

        pending = self._inflight.get(user_id)
        if pending is None:
            pending = asyncio.ensure_future(self._load(user_id))
            self._inflight[user_id] = pending
            pending.add_done_callback(lambda done: self._forget(user_id, done))
        # Shielded so one cancelled caller does not cancel the shared lookup.
        return await asyncio.shield(pending)

    async def clear(self) -> None:
        async with self._ensure_lock():
            self._cache.clear()

    async def _load(self, user_id: str) -> str | None:
        async with self._ensure_semaphore():
            # Another lookup may have stored this key while we waited for a slot.
            value = await self._lookup(user_id)
            if value is not _MISSING:
                return value

            avatar_url = await self._fetch_with_retry(user_id)
            async with self._ensure_lock():
                self._cache[user_id] = avatar_url
            return avatar_url

    async def _fetch_with_retry(self, user_id: str) -> str | None:
        for attempt in range(self.max_attempts):
            try:
                response = await self.client.get_user(user_id)
            except Exception as exc:  # noqa: BLE001 - every failure is retried
                self.logger.error(
                    "Error fetching avatar for user %s, attempt %s: %s",
                    user_id,
                    attempt + 1,
                    exc,
                )
                continue

            if response.rate_limited:
                delay = self.base_delay * (2**attempt)
                self.logger.warning("Rate limited for user %s, waiting %ss", user_id, delay)
                await self._sleep(delay)
                continue

            if response.ok:
                return extract_avatar_url(response.body)

            self.logger.warning(
                "User lookup for %s returned %s, attempt %s",
                user_id,
                response.status,
                attempt + 1,
            )

        self.logger.warning(
            "Giving up on avatar for user %s after %s attempts", user_id, self.max_attempts
        )
        return None

    async def _lookup(self, user_id: str) -> Any:
        async with self._ensure_lock():
            return self._cache.get(user_id, _MISSING)

    def _forget(self, user_id: str, done: asyncio.Future[str | None]) -> None:
        if self._inflight.get(user_id) is done:
            del self._inflight[user_id]

    def _ensure_lock(self) -> asyncio.Lock:
        if self._lock is None:
            self._lock = asyncio.Lock()
        return self._lock

    def _ensure_semaphore(self) -> asyncio.Semaphore:
        if self._semaphore is None:
            self._semaphore = asyncio.Semaphore(self.max_concurrency)
        return self._semaphore


__all__ = ["AvatarLookupCache", "extract_avatar_url", "PREFERRED_AVATAR_SIZES"]
