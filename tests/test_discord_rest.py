import asyncio

import pytest
from aiohttp import web
from aiohttp import test_utils

from common.discord_rest import DiscordRest, DiscordRestError
from common.errors import DataFetchError


def _run_against(routes, fn):
    async def main():
        app = web.Application()
        app.router.add_routes(routes)
        server = test_utils.TestServer(app)
        await server.start_server()
        rest = DiscordRest("bot-token", api_base=str(server.make_url("/")), timeout=5)
        try:
            return await fn(rest)
        finally:
            await rest.close()
            await server.close()

    return asyncio.run(main())


def test_get_guild_sends_bot_token():
    seen = {}

    async def guild(request):
        seen["auth"] = request.headers.get("Authorization")
        return web.json_response({"id": request.match_info["gid"], "owner_id": "42"})

    data = _run_against([web.get("/guilds/{gid}", guild)], lambda r: r.get_guild(7))

    assert seen["auth"] == "Bot bot-token"
    assert data == {"id": "7", "owner_id": "42"}


def test_error_status_carries_discord_message():
    async def user(request):
        return web.json_response({"message": "Unknown User", "code": 10013}, status=404)

    with pytest.raises(DiscordRestError) as exc:
        _run_against([web.get("/users/{uid}", user)], lambda r: r.get_user(1))
    assert exc.value.status == 404
    assert exc.value.message == "Unknown User"


def test_non_json_success_body_is_a_fetch_failure():
    async def guild(request):
        return web.Response(status=200, text="<html>gateway hiccup</html>")

    with pytest.raises(DataFetchError) as exc:
        _run_against([web.get("/guilds/{gid}", guild)], lambda r: r.get_guild(7))
    assert isinstance(exc.value, DiscordRestError)
    assert exc.value.status == 0


def test_no_content_returns_none():
    async def delete(request):
        return web.Response(status=204)

    routes = [web.delete("/channels/{cid}/messages/{mid}", delete)]
    assert _run_against(routes, lambda r: r.delete_message(1, 2)) is None
