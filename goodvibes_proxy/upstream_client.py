"""Thin HTTP client for the Officevibe and Workleap user APIs."""

from __future__ import annotations

import json
import logging
from typing import Any

import aiohttp

from .config_loader import Config, config
from .models import UpstreamResponse


class UpstreamClient:
    """
    Performs one authenticated GET per call and returns status plus body.

    The client does not interpret status codes; callers decide what a 429
    or any other failure means for them. Transport errors propagate as
    aiohttp.ClientError or TimeoutError.
    """

    def __init__(
        self,
        app_config: Config | None = None,
        session: aiohttp.ClientSession | None = None,
        logger: logging.Logger | None = None,
    ):
        app_config = app_config or config
        self.goodvibes_url = app_config.officevibe_api_url.rstrip("/")
        self.users_url = app_config.users_api_url.rstrip("/")
        self.subscription_key = app_config.subscription_key
        self.timeout = app_config.http_timeout
        self.logger = logger or logging.getLogger(self.__class__.__module__)
        self._session = session
        self._owns_session = session is None

    @property
    def headers(self) -> dict[str, str]:
        return {
            "workleap-subscription-key": self.subscription_key,
            "Accept": "application/json",
        }

    async def list_good_vibes(self, params: dict[str, Any] | None = None) -> UpstreamResponse:
        """GET the listing endpoint with the given query parameters."""
        return await self._get(self.goodvibes_url, params)

    async def get_good_vibe(self, good_vibe_id: str) -> UpstreamResponse:
        return await self._get(f"{self.goodvibes_url}/{good_vibe_id}")

    async def get_collections(self) -> UpstreamResponse:
        return await self._get(f"{self.goodvibes_url}/collections")

    async def get_user(self, user_id: str) -> UpstreamResponse:
        """GET the single-user endpoint."""
        return await self._get(f"{self.users_url}/{user_id}")

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def _get(self, url: str, params: dict[str, Any] | None = None) -> UpstreamResponse:
        session = self._ensure_session()
        async with session.get(
            url,
            params=params,
            headers=self.headers,
            timeout=aiohttp.ClientTimeout(total=self.timeout),
        ) as response:
            text = await response.text()
            if response.status >= 400:
                self.logger.debug("Upstream %s returned %s: %s", url, response.status, text[:500])
            return UpstreamResponse(status=response.status, body=_parse_body(text))

    def _ensure_session(self) -> aiohttp.ClientSession:
        """
        Lazily create the shared session once an event loop is running.
        """
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session


def _parse_body(text: str) -> Any:
    if not text:
        return None
    try:
        return json.loads(text)
    except ValueError:
        return text
