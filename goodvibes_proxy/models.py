"""
Pydantic models for upstream responses and API payloads.

Upstream records themselves stay plain dictionaries: the proxy passes them
through and only touches the user references it enriches.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class UpstreamResponse(BaseModel):
    """
    Raw result of one upstream GET.

    Attributes:
        status: HTTP status code returned by the upstream
        body: Parsed JSON body, the raw text when it was not JSON, or None
    """

    status: int
    body: Any = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def rate_limited(self) -> bool:
        return self.status == 429


class UserCount(BaseModel):
    userId: str
    count: int


class GoodVibesStatistics(BaseModel):
    """
    Aggregates computed over the full-dataset snapshot.

    Attributes:
        ready: Whether at least one full refresh has completed
        last_refreshed_at: Time of the last successful refresh (UTC)
        total: Number of records in the snapshot
        unique_senders: Distinct sender user ids
        unique_recipients: Distinct recipient user ids
        top_senders: Most frequent senders, most frequent first
        top_recipients: Most frequent recipients, most frequent first
        by_month: Record count per creation month (YYYY-MM)
    """

    ready: bool
    last_refreshed_at: datetime | None = None
    total: int = 0
    unique_senders: int = 0
    unique_recipients: int = 0
    top_senders: list[UserCount] = Field(default_factory=list)
    top_recipients: list[UserCount] = Field(default_factory=list)
    by_month: dict[str, int] = Field(default_factory=dict)


class HealthResponse(BaseModel):
    status: str
    message: str
    datasetReady: bool
    cachedAvatars: int


__all__ = [
    "UpstreamResponse",
    "UserCount",
    "GoodVibesStatistics",
    "HealthResponse",
]
