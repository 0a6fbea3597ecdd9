"""Good Vibes endpoints backed by the upstream API and the avatar cache."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable
from typing import Any

import aiohttp
from fastapi import HTTPException

from .avatar_cache import AvatarLookupCache
from .models import UpstreamResponse
from .service_base import BaseService
from .upstream_client import UpstreamClient


class GoodVibesService(BaseService):
    """Fetches Good Vibes from upstream and adds avatarUrl to every user reference."""

    def __init__(
        self,
        client: UpstreamClient,
        avatars: AvatarLookupCache,
        logger: logging.Logger | None = None,
    ):
        super().__init__(logger=logger)
        self.client = client
        self.avatars = avatars

    async def list_good_vibes(self, is_public: bool | None = None) -> Any:
        """
        Fetch one listing page and enrich each record.

        Args:
            is_public: Forwarded as the isPublic filter when not None
        """
        params = None
        if is_public is not None:
            params = {"isPublic": str(is_public).lower()}

        response = await self._call(self.client.list_good_vibes(params), "Good Vibes")
        body = self._raise_for_upstream(response)
        if not isinstance(body, dict) or not isinstance(body.get("data"), list):
            return body

        records = await asyncio.gather(*(self.enrich_record(item) for item in body["data"]))
        payload: dict[str, Any] = {"data": list(records)}
        if "metadata" in body:
            payload["metadata"] = body["metadata"]
        return payload

    async def get_good_vibe(self, good_vibe_id: str) -> Any:
        """Fetch a single Good Vibe and enrich it together with its replies."""
        response = await self._call(self.client.get_good_vibe(good_vibe_id), "Good Vibe")
        body = self._raise_for_upstream(response)
        if not isinstance(body, dict):
            return body

        enriched = await self.enrich_record(body)
        replies = body.get("replies")
        if isinstance(replies, list):
            enriched["replies"] = list(await asyncio.gather(*(self._enrich_reply(r) for r in replies)))
        return enriched

    async def get_collections(self) -> Any:
        response = await self._call(self.client.get_collections(), "Good Vibes Collections")
        return self._raise_for_upstream(response)

    async def get_user(self, user_id: str) -> Any:
        response = await self._call(self.client.get_user(user_id), "user information")
        return self._raise_for_upstream(response, source="Workleap")

    async def enrich_record(self, record: Any) -> Any:
        """Return a copy of record with avatars on senderUser and recipients."""
        if not isinstance(record, dict):
            return record

        enriched = dict(record)
        if "senderUser" in record:
            enriched["senderUser"] = await self._with_avatar(record["senderUser"])
        recipients = record.get("recipients")
        if isinstance(recipients, list):
            enriched["recipients"] = list(
                await asyncio.gather(*(self._with_avatar(r) for r in recipients))
            )
        return enriched

    async def _enrich_reply(self, reply: Any) -> Any:
        if not isinstance(reply, dict) or "senderUser" not in reply:
            return reply
        return {**reply, "senderUser": await self._with_avatar(reply["senderUser"])}

    async def _with_avatar(self, user: Any) -> Any:
        # Entries without a userId are passed through untouched
        if not isinstance(user, dict) or not user.get("userId"):
            return user
        avatar_url = await self.avatars.resolve(user["userId"])
        if avatar_url is None:
            return user
        return {**user, "avatarUrl": avatar_url}

    async def _call(self, request: Awaitable[UpstreamResponse], what: str) -> UpstreamResponse:
        try:
            return await request
        except TimeoutError as exc:
            raise HTTPException(status_code=504, detail=f"Timed out fetching {what}") from exc
        except aiohttp.ClientError as exc:
            self.logger.error("Upstream connection error fetching %s: %s", what, exc)
            raise HTTPException(status_code=502, detail=f"Failed to fetch {what}: {exc}") from exc
        except Exception as exc:  # noqa: BLE001 - surface unexpected errors
            self.logger.error("Unexpected error fetching %s: %s", what, exc)
            raise HTTPException(status_code=500, detail=f"Failed to fetch {what}: {exc}") from exc
