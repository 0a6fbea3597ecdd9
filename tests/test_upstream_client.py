import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from goodvibes_proxy.config_loader import Config
from goodvibes_proxy.upstream_client import UpstreamClient


async def _listing(request):
    return web.json_response(
        {
            "data": [],
            "query": dict(request.query),
            "key": request.headers.get("workleap-subscription-key"),
            "accept": request.headers.get("Accept"),
        }
    )


async def _user(request):
    if request.match_info["user_id"] == "busy":
        return web.Response(status=429, text="slow down")
    return web.json_response({"id": request.match_info["user_id"]})


@pytest_asyncio.fixture
async def upstream_server():
    app = web.Application()
    app.router.add_get("/goodvibes", _listing)
    app.router.add_get("/users/{user_id}", _user)
    server = TestServer(app)
    await server.start_server()
    yield server
    await server.close()


def _client_for(server):
    base = str(server.make_url(""))
    return UpstreamClient(
        Config(
            data={
                "proxy": {
                    "officevibe_api_url": f"{base}/goodvibes",
                    "users_api_url": f"{base}/users",
                    "subscription_key": "secret",
                }
            }
        )
    )


@pytest.mark.asyncio
async def test_listing_sends_auth_headers_and_params(upstream_server, monkeypatch):
    for name in ("OFFICEVIBE_API_KEY", "OFFICEVIBE_API_URL", "WORKLEAP_USERS_URL"):
        monkeypatch.delenv(name, raising=False)
    client = _client_for(upstream_server)
    try:
        response = await client.list_good_vibes({"isPublic": "true", "limit": 100})
    finally:
        await client.close()

    assert response.ok
    assert response.body["query"] == {"isPublic": "true", "limit": "100"}
    assert response.body["key"] == "secret"
    assert response.body["accept"] == "application/json"


@pytest.mark.asyncio
async def test_user_lookup_returns_status_without_raising(upstream_server, monkeypatch):
    for name in ("OFFICEVIBE_API_KEY", "OFFICEVIBE_API_URL", "WORKLEAP_USERS_URL"):
        monkeypatch.delenv(name, raising=False)
    client = _client_for(upstream_server)
    try:
        found = await client.get_user("u-1")
        limited = await client.get_user("busy")
    finally:
        await client.close()

    assert found.body == {"id": "u-1"}
    assert limited.status == 429
    assert limited.rate_limited
    assert limited.body == "slow down"
