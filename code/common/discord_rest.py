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
import logging
from typing import Any, Dict, List, Optional

import aiohttp

from common.errors import DataFetchError

logger = logging.getLogger("dashboard.discord")

DISCORD_API_BASE = "https://discord.com/api/v10"


def _redact_token(tok: str) -> str:
    """
    Keep only the first 8 chars of a token for debug logs.
    """
    if not tok:
        return "<empty>"
    t = str(tok)
    return t[:8] + "...len=" + str(len(t))


class DiscordRestError(DataFetchError):
    def __init__(self, status: int, message: str):
        super().__init__(f"discord {status}: {message}")
        self.status = status
        self.message = message


class DiscordRest:
    """
    Minimal bot-token REST client for the handful of calls the dashboard
    proxies. No caching: every call goes to Discord.
    """

    def __init__(
        self,
        token: str,
        api_base: str = DISCORD_API_BASE,
        timeout: float = 10,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.token = token
        self.api_base = api_base.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self._session = session
        self._owns_session = session is None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._owns_session and self._session is not None:
            with contextlib.suppress(Exception):
                await self._session.close()
        self._session = None

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> Any:
        url = f"{self.api_base}{path}"
        headers = {"Authorization": f"Bot {self.token}"}
        try:
            async with self._get_session().request(
                method,
                url,
                params=params,
                json=json,
                headers=headers,
                timeout=self.timeout,
            ) as resp:
                if resp.status == 204:
                    return None
                if resp.status >= 400:
                    message = ""
                    try:
                        body = await resp.json(content_type=None)
                        message = str((body or {}).get("message") or "")
                    except Exception:
                        message = (await resp.text())[:200]
                    logger.debug(
                        "discord | %s %s status=%s bot=%s message=%r",
                        method,
                        path,
                        resp.status,
                        _redact_token(self.token),
                        message,
                    )
                    raise DiscordRestError(resp.status, message or resp.reason or "")
                return await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise DiscordRestError(0, f"{type(e).__name__}: {e}") from e

    async def get_guild(self, guild_id: int) -> Dict[str, Any]:
        return await self._request("GET", f"/guilds/{int(guild_id)}")

    async def get_user(self, user_id: int) -> Dict[str, Any]:
        return await self._request("GET", f"/users/{int(user_id)}")

    async def get_channel_messages(
        self, channel_id: int, limit: int = 100
    ) -> List[Dict[str, Any]]:
        """
        Newest first, as Discord returns them.
        """
        data = await self._request(
            "GET",
            f"/channels/{int(channel_id)}/messages",
            params={"limit": str(max(1, min(int(limit), 100)))},
        )
        return list(data or [])

    async def delete_message(self, channel_id: int, message_id: int) -> None:
        await self._request(
            "DELETE", f"/channels/{int(channel_id)}/messages/{int(message_id)}"
        )

    async def create_message(
        self, channel_id: int, payload: Dict[str, Any]
    ) -> Dict[str, Any]:
        return await self._request(
            "POST", f"/channels/{int(channel_id)}/messages", json=payload
        )
