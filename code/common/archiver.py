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
from typing import Optional

import aiohttp
from pydantic import ValidationError

from common.errors import DataFetchError
from common.models import Transcript

logger = logging.getLogger("dashboard.archiver")


class ArchiverError(DataFetchError):
    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class TranscriptNotFound(Exception):
    """
    The archive has no transcript for this ticket. Callers treat this as an
    empty result, not a failure.
    """

    def __init__(self, guild_id: int, ticket_id: int):
        super().__init__(f"Transcript not found (guild={guild_id} ticket={ticket_id})")
        self.guild_id = guild_id
        self.ticket_id = ticket_id


class ArchiverClient:
    """
    Reads ticket transcripts from the log archiver service.
    """

    def __init__(
        self,
        base_url: str,
        auth_key: str = "",
        timeout: float = 10,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.auth_key = auth_key
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

    async def get(self, guild_id: int, ticket_id: int) -> Transcript:
        headers = {}
        if self.auth_key:
            headers["Authorization"] = self.auth_key

        params = {"guild": str(guild_id), "id": str(ticket_id)}
        url = f"{self.base_url}/"

        try:
            async with self._get_session().get(
                url, params=params, headers=headers, timeout=self.timeout
            ) as resp:
                if resp.status == 404:
                    raise TranscriptNotFound(guild_id, ticket_id)
                if resp.status != 200:
                    body = (await resp.text())[:200]
                    logger.warning(
                        "archiver | status=%s guild=%s ticket=%s body=%r",
                        resp.status,
                        guild_id,
                        ticket_id,
                        body,
                    )
                    raise ArchiverError(
                        f"archiver returned {resp.status} for ticket {ticket_id}",
                        status=resp.status,
                    )
                data = await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise ArchiverError(
                f"archiver request failed for ticket {ticket_id}: {type(e).__name__}: {e}"
            ) from e

        if not isinstance(data, dict):
            raise ArchiverError(f"archiver returned a non-object for ticket {ticket_id}")

        try:
            return Transcript.model_validate(data)
        except ValidationError as e:
            raise ArchiverError(
                f"archiver returned a malformed transcript for ticket {ticket_id}: "
                f"{e.error_count()} invalid field(s)"
            ) from e
