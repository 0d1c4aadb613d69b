# =============================================================================
#  Tickets Dashboard
#  Copyright (C) 2025 Tickets Dashboard contributors
#
#  This source code is released under the GNU Affero General Public License
#  version 3.0. A copy of the license is available at:
#  https://www.gnu.org/licenses/agpl-3.0.en.html
# =============================================================================

from __future__ import annotations
import asyncio
import contextlib
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional

from fastapi import Body, Depends, FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.middleware.base import BaseHTTPMiddleware

from admin.auth import init_auth, load_or_create_secret_key
from admin.logging_setup import (
    LOGGER,
    client_var,
    configure_app_logging,
    guild_var,
    redact,
    req_id_var,
    route_var,
)
from admin.panels import PanelUpdateError, update_panel
from admin.premium import PremiumTier, WhitelabelRequired, require_whitelabel
from common.archiver import ArchiverClient
from common.common_helpers import (
    format_mentions,
    lookup,
    mentioned_user_ids,
    parse_snowflake,
)
from common.config import CURRENT_VERSION, Config
from common.db import DBManager
from common.discord_rest import DiscordRest
from common.errors import AuthorizationError, DataFetchError
from common.guild_resolver import GuildResolver
from export.orchestrator import ExportSources, export_guild

APP_TITLE = "Tickets Dashboard"
TICKET_MESSAGE_LIMIT = 100


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse({"success": False, "error": message}, status_code=status_code)


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        rid = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:8]
        token_r = req_id_var.set(rid)
        token_s = route_var.set(request.url.path or "-")
        token_c = client_var.set(
            f"{getattr(request.client, 'host', '?')}:{getattr(request.client, 'port', '?')}"
        )

        response = None
        try:
            try:
                response = await call_next(request)
            except asyncio.CancelledError:
                LOGGER.debug("Request task cancelled (client gone)")
                return PlainTextResponse("client disconnected", status_code=499)
        finally:
            if response is not None:
                response.headers["X-Request-ID"] = rid

            req_id_var.reset(token_r)
            route_var.reset(token_s)
            client_var.reset(token_c)

        return response


async def _usernames(discord: DiscordRest, user_ids: List[int]) -> Dict[int, str]:
    """
    Resolve each distinct mentioned user once. Users Discord will not give us
    are left out, so their mentions stay raw.
    """

    async def _one(uid: int) -> Optional[str]:
        try:
            user = await discord.get_user(uid)
        except DataFetchError as e:
            LOGGER.debug("ticket view | user %s lookup failed: %s", uid, e)
            return None
        return (user or {}).get("username")

    names = await asyncio.gather(*(_one(uid) for uid in user_ids))
    return {uid: name for uid, name in zip(user_ids, names) if name}


def create_app(
    config: Optional[Config] = None,
    *,
    db: Optional[DBManager] = None,
    archiver: Optional[ArchiverClient] = None,
    discord: Optional[DiscordRest] = None,
) -> FastAPI:
    """
    Build the dashboard app. Collaborators not passed in are built from config
    and closed again on shutdown.

        uvicorn admin.app:create_app --factory
    """
    config = config or Config()
    configure_app_logging(config.LOG_LEVEL)

    db = db or DBManager(config.DB_PATH, init_schema=True)
    archiver = archiver or ArchiverClient(
        config.ARCHIVER_URL,
        auth_key=config.ARCHIVER_AUTH_KEY,
        timeout=config.ARCHIVER_TIMEOUT,
    )
    discord = discord or DiscordRest(
        config.DISCORD_BOT_TOKEN,
        api_base=config.DISCORD_API_BASE,
        timeout=config.DISCORD_TIMEOUT,
    )

    @contextlib.asynccontextmanager
    async def lifespan(app: FastAPI):
        LOGGER.info("%s %s starting", APP_TITLE, CURRENT_VERSION)
        LOGGER.debug(
            "Config: %s",
            redact({k: v for k, v in vars(config).items() if k.isupper()}),
        )
        yield
        for client in (archiver, discord, db):
            close = getattr(client, "close", None)
            if close is None:
                continue
            res = close()
            if asyncio.iscoroutine(res):
                await res
        LOGGER.info("%s stopped", APP_TITLE)

    app = FastAPI(title=APP_TITLE, version=CURRENT_VERSION, lifespan=lifespan)
    app.state.config = config
    app.state.db = db
    app.state.archiver = archiver
    app.state.discord = discord
    app.state.guilds = GuildResolver(discord)

    secret = load_or_create_secret_key(Path(config.DATA_DIR), config.SECRET_KEY)
    init_auth(app, secret)
    app.add_middleware(RequestContextMiddleware)

    @app.exception_handler(WhitelabelRequired)
    async def _whitelabel_required(request: Request, exc: WhitelabelRequired):
        return _error(402, str(exc))

    @app.exception_handler(DataFetchError)
    async def _data_fetch_failed(request: Request, exc: DataFetchError):
        LOGGER.error("%s %s failed: %s", request.method, request.url.path, exc)
        return _error(500, str(exc))

    @app.get("/health", response_class=PlainTextResponse)
    async def health():
        return "ok"

    @app.get("/api/{guild_id}/export", response_class=JSONResponse)
    async def api_export(guild_id: str, request: Request):
        gid = parse_snowflake(guild_id)
        if gid is None:
            return _error(400, "Invalid guild ID")

        token_g = guild_var.set(gid)
        try:
            sources = ExportSources(
                db=request.app.state.db,
                archiver=request.app.state.archiver,
                guilds=request.app.state.guilds,
                blacklist_limit=config.BLACKLIST_PAGE_LIMIT,
                timeout=config.EXPORT_TIMEOUT_SECONDS or None,
            )
            try:
                export = await export_guild(sources, gid, request.state.user_id)
            except AuthorizationError as e:
                return _error(403, str(e))
            except DataFetchError as e:
                LOGGER.error("export failed: %s", e)
                return _error(500, str(e))
            except Exception as e:
                LOGGER.exception("export crashed: %s", e)
                return _error(500, "Internal server error")
            return export.dump()
        finally:
            guild_var.reset(token_g)

    @app.get("/api/{guild_id}/tickets/{ticket_id}", response_class=JSONResponse)
    async def api_ticket(guild_id: str, ticket_id: str, request: Request):
        gid = parse_snowflake(guild_id)
        if gid is None:
            return _error(400, "Invalid guild ID")
        tid = parse_snowflake(ticket_id)
        if tid is None:
            return _error(400, "Invalid ticket ID")

        rest: DiscordRest = request.app.state.discord
        try:
            ticket = await lookup(request.app.state.db.get_ticket, tid, gid)
        except DataFetchError as e:
            LOGGER.error("ticket view | lookup failed: %s", e)
            return _error(500, str(e))

        if ticket is None or not ticket["open"]:
            return _error(404, "Ticket does not exist")
        if not ticket.get("channel_id"):
            return _error(404, "Ticket channel does not exist")

        try:
            raw = await rest.get_channel_messages(
                ticket["channel_id"], limit=TICKET_MESSAGE_LIMIT
            )
        except DataFetchError as e:
            LOGGER.info("ticket view | messages unavailable for ticket %s: %s", tid, e)
            raw = []
        raw.reverse()

        wanted: List[int] = []
        for msg in raw:
            for uid in mentioned_user_ids(msg.get("content") or ""):
                if uid not in wanted:
                    wanted.append(uid)
        usernames = await _usernames(rest, wanted)

        messages = [
            {
                "username": ((msg.get("author") or {}).get("username")) or "",
                "content": format_mentions(msg.get("content") or "", usernames),
            }
            for msg in raw
        ]

        return {
            "success": True,
            "ticket": {
                "id": ticket["id"],
                "guild_id": str(ticket["guild_id"]),
                "channel_id": str(ticket["channel_id"]),
                "user_id": str(ticket["user_id"]),
                "open": ticket["open"],
                "panel_id": ticket.get("panel_id"),
            },
            "messages": messages,
        }

    @app.patch("/api/{guild_id}/panels/{panel_id}", response_class=JSONResponse)
    async def api_update_panel(
        guild_id: str, panel_id: str, request: Request, payload: Dict[str, Any] = Body(...)
    ):
        gid = parse_snowflake(guild_id)
        if gid is None:
            return _error(400, "Invalid guild ID")
        pid = parse_snowflake(panel_id)
        if pid is None:
            return _error(400, "Missing panel ID")

        token_g = guild_var.set(gid)
        try:
            await update_panel(
                request.app.state.db,
                request.app.state.discord,
                request.app.state.guilds,
                gid,
                pid,
                payload,
            )
        except PanelUpdateError as e:
            return _error(e.status_code, e.message)
        except DataFetchError as e:
            LOGGER.error("panel update failed: %s", e)
            return _error(500, str(e))
        finally:
            guild_var.reset(token_g)
        return {"success": True}

    @app.get("/api/whitelabel", response_class=JSONResponse)
    async def api_whitelabel(
        request: Request, tier: PremiumTier = Depends(require_whitelabel)
    ):
        bot_id = await lookup(
            request.app.state.db.get_whitelabel_bot_id, request.state.user_id
        )
        return {"success": True, "bot_id": str(bot_id) if bot_id is not None else None}

    return app
