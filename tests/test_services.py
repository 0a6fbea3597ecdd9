import aiohttp
import pytest
from fastapi import HTTPException

from goodvibes_proxy.avatar_cache import USER_EXTENSION_KEY, AvatarLookupCache
from goodvibes_proxy.good_vibes_service import GoodVibesService
from goodvibes_proxy.models import UpstreamResponse
from goodvibes_proxy.refresh_cache import DatasetRefreshCache
from goodvibes_proxy.statistics_service import StatisticsService

AVATARS = {
    "sender-1": "https://img/sender-1",
    "recipient-1": "https://img/recipient-1",
    "replier-1": "https://img/replier-1",
}


class _StubUpstreamClient:
    def __init__(self, listing=None, single=None, collections=None):
        self.listing = listing
        self.single = single
        self.collections = collections
        self.listing_params = []
        self.user_calls = []

    async def list_good_vibes(self, params=None):
        self.listing_params.append(params)
        if isinstance(self.listing, Exception):
            raise self.listing
        return self.listing

    async def get_good_vibe(self, good_vibe_id):
        return self.single

    async def get_collections(self):
        return self.collections

    async def get_user(self, user_id):
        self.user_calls.append(user_id)
        if user_id in AVATARS:
            body = {USER_EXTENSION_KEY: {"imageUrls": {"32x32": AVATARS[user_id]}}}
            return UpstreamResponse(status=200, body=body)
        return UpstreamResponse(status=200, body={"id": user_id})


def _service(client):
    return GoodVibesService(client, AvatarLookupCache(client))


def _record():
    return {
        "id": "gv-1",
        "message": "Thanks!",
        "senderUser": {"userId": "sender-1", "displayName": "Sam"},
        "recipients": [
            {"userId": "recipient-1"},
            {"userId": "no-avatar"},
            {"displayName": "External guest"},
        ],
    }


@pytest.mark.asyncio
async def test_list_good_vibes_enriches_senders_and_recipients():
    listing = UpstreamResponse(
        status=200,
        body={"data": [_record()], "metadata": {"continuationToken": "next"}},
    )
    client = _StubUpstreamClient(listing=listing)

    result = await _service(client).list_good_vibes(is_public=True)

    assert client.listing_params == [{"isPublic": "true"}]
    assert result["metadata"] == {"continuationToken": "next"}
    record = result["data"][0]
    assert record["message"] == "Thanks!"
    assert record["senderUser"]["avatarUrl"] == "https://img/sender-1"
    assert record["recipients"][0]["avatarUrl"] == "https://img/recipient-1"
    assert "avatarUrl" not in record["recipients"][1]
    assert record["recipients"][2] == {"displayName": "External guest"}


@pytest.mark.asyncio
async def test_list_good_vibes_without_filter_sends_no_params():
    client = _StubUpstreamClient(listing=UpstreamResponse(status=200, body={"data": []}))

    result = await _service(client).list_good_vibes()

    assert client.listing_params == [None]
    assert result == {"data": []}


@pytest.mark.asyncio
async def test_enrichment_does_not_mutate_upstream_record():
    record = _record()
    client = _StubUpstreamClient(listing=UpstreamResponse(status=200, body={"data": [record]}))

    await _service(client).list_good_vibes()

    assert "avatarUrl" not in record["senderUser"]


@pytest.mark.asyncio
async def test_get_good_vibe_enriches_replies():
    body = _record()
    body["replies"] = [
        {"message": "You're welcome", "senderUser": {"userId": "replier-1"}},
        {"message": "anonymous"},
    ]
    client = _StubUpstreamClient(single=UpstreamResponse(status=200, body=body))

    result = await _service(client).get_good_vibe("gv-1")

    assert result["senderUser"]["avatarUrl"] == "https://img/sender-1"
    assert result["replies"][0]["senderUser"]["avatarUrl"] == "https://img/replier-1"
    assert result["replies"][1] == {"message": "anonymous"}


@pytest.mark.asyncio
async def test_upstream_error_status_is_mirrored():
    client = _StubUpstreamClient(listing=UpstreamResponse(status=401, body={"error": "bad key"}))

    with pytest.raises(HTTPException) as exc:
        await _service(client).list_good_vibes()

    assert exc.value.status_code == 401
    assert "Officevibe API error: 401" in exc.value.detail


@pytest.mark.asyncio
async def test_upstream_connection_error_becomes_bad_gateway():
    client = _StubUpstreamClient(listing=aiohttp.ClientConnectionError("refused"))

    with pytest.raises(HTTPException) as exc:
        await _service(client).list_good_vibes()

    assert exc.value.status_code == 502


@pytest.mark.asyncio
async def test_collections_are_passed_through():
    client = _StubUpstreamClient(collections=UpstreamResponse(status=200, body=[{"id": "c1"}]))

    assert await _service(client).get_collections() == [{"id": "c1"}]


class _StubListingClient:
    def __init__(self, records):
        self.records = records

    async def list_good_vibes(self, params=None):
        return UpstreamResponse(status=200, body={"data": self.records})


@pytest.mark.asyncio
async def test_statistics_not_ready_before_first_refresh():
    dataset = DatasetRefreshCache(_StubListingClient([]))

    stats = await StatisticsService(dataset).get_statistics()

    assert stats.ready is False
    assert stats.total == 0


@pytest.mark.asyncio
async def test_statistics_over_snapshot():
    records = [
        {
            "senderUser": {"userId": "s1"},
            "recipients": [{"userId": "r1"}, {"userId": "r2"}],
            "creationDate": "2024-01-15T10:00:00Z",
        },
        {
            "senderUser": {"userId": "s1"},
            "recipients": [{"userId": "r1"}],
            "creationDate": "2024-02-01T08:30:00+00:00",
        },
        {
            "senderUser": {"userId": "s2"},
            "recipients": [],
            "creationDate": "not a date",
        },
    ]
    dataset = DatasetRefreshCache(_StubListingClient(records))
    await dataset.refresh_once()

    stats = await StatisticsService(dataset).get_statistics(top_n=1)

    assert stats.ready is True
    assert stats.total == 3
    assert stats.unique_senders == 2
    assert stats.unique_recipients == 2
    assert [(u.userId, u.count) for u in stats.top_senders] == [("s1", 2)]
    assert [(u.userId, u.count) for u in stats.top_recipients] == [("r1", 2)]
    assert stats.by_month == {"2024-01": 1, "2024-02": 1}
    assert stats.last_refreshed_at == dataset.last_refreshed_at


@pytest.mark.asyncio
async def test_statistics_ignore_malformed_recipients():
    records = [
        {"senderUser": {"userId": "s1"}, "recipients": 5},
        {"senderUser": {"userId": "s2"}, "recipients": {"userId": "r9"}},
        {"senderUser": {"userId": "s3"}, "recipients": [{"userId": "r1"}]},
    ]
    dataset = DatasetRefreshCache(_StubListingClient(records))
    await dataset.refresh_once()

    stats = await StatisticsService(dataset).get_statistics()

    assert stats.total == 3
    assert stats.unique_senders == 3
    assert [(u.userId, u.count) for u in stats.top_recipients] == [("r1", 1)]
