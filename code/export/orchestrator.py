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
import logging
from dataclasses import dataclass
from time import perf_counter
from typing import Optional

from common.archiver import ArchiverClient
from common.db import DBManager
from common.errors import AuthorizationError, DataFetchError
from common.guild_resolver import GuildResolver
from common.joingroup import JoinGroup
from common.models import Export
from export.fetchers import (
    fetch_blacklist,
    fetch_forms,
    fetch_multi_panels,
    fetch_panels,
    fetch_staff_teams,
    fetch_tags,
    fetch_tickets,
)
from export.settings import get_settings

logger = logging.getLogger("dashboard.export")


@dataclass
class ExportSources:
    """
    Everything one export request reads from. Built per request and passed
    down explicitly.
    """

    db: DBManager
    archiver: ArchiverClient
    guilds: GuildResolver
    blacklist_limit: int = 100000
    timeout: Optional[float] = None


async def _collect(sources: ExportSources, guild_id: int) -> Export:
    db = sources.db

    group = JoinGroup("export")
    group.go(get_settings(db, guild_id))
    group.go(fetch_multi_panels(db, guild_id))
    group.go(fetch_panels(db, guild_id))
    group.go(fetch_tickets(db, sources.archiver, guild_id))
    group.go(fetch_tags(db, guild_id))
    group.go(fetch_blacklist(db, guild_id, sources.blacklist_limit))
    group.go(fetch_forms(db, guild_id))
    group.go(fetch_staff_teams(db, guild_id))

    (
        settings,
        multi_panels,
        panels,
        tickets,
        tags,
        blacklist,
        forms,
        staff_teams,
    ) = await group.wait()

    return Export(
        guild_id=guild_id,
        settings=settings,
        panels=panels,
        multi_panels=multi_panels,
        tickets=tickets,
        tags=tags,
        blacklist=blacklist,
        forms=forms,
        staff_teams=staff_teams,
    )


async def export_guild(sources: ExportSources, guild_id: int, user_id: int) -> Export:
    """
    Build the full export for a guild on behalf of user_id.

    Raises AuthorizationError before touching any data if user_id does not own
    the guild; any failed lookup aborts the export with that lookup's error.
    """
    owner_id = await sources.guilds.get_owner_id(guild_id)
    if owner_id != int(user_id):
        logger.warning(
            "export | denied guild=%s user=%s (owner=%s)", guild_id, user_id, owner_id
        )
        raise AuthorizationError("Only the server owner can export server data")

    t0 = perf_counter()
    try:
        if sources.timeout:
            async with asyncio.timeout(sources.timeout):
                export = await _collect(sources, guild_id)
        else:
            export = await _collect(sources, guild_id)
    except TimeoutError as e:
        raise DataFetchError(
            f"export of guild {guild_id} timed out after {sources.timeout}s"
        ) from e

    logger.info(
        "export | guild=%s panels=%d multi_panels=%d tickets=%d tags=%d forms=%d teams=%d in %.1fms",
        guild_id,
        len(export.panels),
        len(export.multi_panels),
        len(export.tickets),
        len(export.tags),
        len(export.forms),
        len(export.staff_teams),
        (perf_counter() - t0) * 1000.0,
    )
    return export
