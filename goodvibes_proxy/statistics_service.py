"""Aggregate statistics over the cached Good Vibes snapshot."""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterable
from datetime import datetime
from typing import Any

from .models import GoodVibesStatistics, UserCount
from .refresh_cache import DatasetRefreshCache
from .service_base import BaseService


class StatisticsService(BaseService):
    """Computes statistics from the refresh cache; never calls upstream."""

    def __init__(self, dataset: DatasetRefreshCache, logger: logging.Logger | None = None):
        super().__init__(logger=logger)
        self.dataset = dataset

    async def get_statistics(self, top_n: int = 10) -> GoodVibesStatistics:
        if not self.dataset.is_ready:
            return GoodVibesStatistics(ready=False)

        records = await self.dataset.snapshot()
        senders: Counter[str] = Counter()
        recipients: Counter[str] = Counter()
        by_month: Counter[str] = Counter()

        for record in records:
            if not isinstance(record, dict):
                continue
            sender_id = _user_id(record.get("senderUser"))
            if sender_id:
                senders[sender_id] += 1
            recipient_list = record.get("recipients")
            if not isinstance(recipient_list, list):
                recipient_list = []
            for recipient in recipient_list:
                recipient_id = _user_id(recipient)
                if recipient_id:
                    recipients[recipient_id] += 1
            month = _creation_month(record.get("creationDate"))
            if month:
                by_month[month] += 1

        return GoodVibesStatistics(
            ready=True,
            last_refreshed_at=self.dataset.last_refreshed_at,
            total=len(records),
            unique_senders=len(senders),
            unique_recipients=len(recipients),
            top_senders=_top(senders.items(), top_n),
            top_recipients=_top(recipients.items(), top_n),
            by_month=dict(sorted(by_month.items())),
        )


def _user_id(user: Any) -> str | None:
    if isinstance(user, dict):
        user_id = user.get("userId")
        if isinstance(user_id, str) and user_id:
            return user_id
    return None


def _creation_month(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    try:
        created = datetime.fromisoformat(value)
    except ValueError:
        return None
    return f"{created.year:04d}-{created.month:02d}"


def _top(counts: Iterable[tuple[str, int]], top_n: int) -> list[UserCount]:
    ranked = sorted(counts, key=lambda item: (-item[1], item[0]))
    return [UserCount(userId=user_id, count=count) for user_id, count in ranked[:top_n]]
