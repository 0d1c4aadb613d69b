# =============================================================================
#  Tickets Dashboard
#  Copyright (C) 2025 Tickets Dashboard contributors
#
#  This source code is released under the GNU Affero General Public License
#  version 3.0. A copy of the license is available at:
#  https://www.gnu.org/licenses/agpl-3.0.en.html
# =============================================================================

from __future__ import annotations
import logging
from datetime import timedelta
from typing import Any, Dict, Optional

from common.common_helpers import lookup
from common.config import DEFAULT_TICKET_LIMIT, DEFAULT_WELCOME_MESSAGE
from common.customisation import build_colour_map
from common.db import DBManager
from common.joingroup import JoinGroup
from common.models import AutoCloseData, ClaimSettings, Settings, TicketPermissions

logger = logging.getLogger("dashboard.export.settings")


def _whole_seconds(td: Optional[timedelta]) -> int:
    if td is None:
        return 0
    return int(td.total_seconds())


def convert_auto_close(row: Dict[str, Any]) -> AutoCloseData:
    on_leave = row.get("on_user_leave")
    return AutoCloseData(
        enabled=bool(row.get("enabled")),
        since_open_with_no_response=_whole_seconds(row.get("since_open_with_no_response")),
        since_last_message=_whole_seconds(row.get("since_last_message")),
        on_user_leave=bool(on_leave) if on_leave is not None else False,
    )


async def _auto_close(db: DBManager, guild_id: int) -> AutoCloseData:
    return convert_auto_close(await lookup(db.get_auto_close, guild_id))


async def _colours(db: DBManager, guild_id: int) -> Dict[str, str]:
    return build_colour_map(await lookup(db.get_custom_colours, guild_id))


async def _welcome_message(db: DBManager, guild_id: int) -> str:
    message = await lookup(db.get_welcome_message, guild_id)
    return message or DEFAULT_WELCOME_MESSAGE


async def _ticket_limit(db: DBManager, guild_id: int) -> int:
    limit = await lookup(db.get_ticket_limit, guild_id)
    return limit if limit != 0 else DEFAULT_TICKET_LIMIT


async def _language(db: DBManager, guild_id: int) -> Optional[str]:
    locale = await lookup(db.get_active_language, guild_id)
    return locale or None


async def get_settings(db: DBManager, guild_id: int) -> Settings:
    """
    Fetch every guild-level setting concurrently and merge them into one
    Settings record. Defaults only replace values that were fetched fine; any
    failed lookup fails the whole record.
    """
    group = JoinGroup("settings")

    group.go(lookup(db.get_settings, guild_id))
    group.go(lookup(db.get_claim_settings, guild_id))
    group.go(_auto_close(db, guild_id))
    group.go(lookup(db.get_ticket_permissions, guild_id))
    group.go(_colours(db, guild_id))
    group.go(_welcome_message(db, guild_id))
    group.go(_ticket_limit(db, guild_id))
    group.go(lookup(db.get_channel_category, guild_id))
    group.go(lookup(db.get_archive_channel, guild_id))
    group.go(lookup(db.get_users_can_close, guild_id))
    group.go(lookup(db.get_naming_scheme, guild_id))
    group.go(lookup(db.get_close_confirmation, guild_id))
    group.go(lookup(db.get_feedback_enabled, guild_id))
    group.go(_language(db, guild_id))

    (
        main,
        claim,
        auto_close,
        permissions,
        colours,
        welcome_message,
        ticket_limit,
        category,
        archive_channel,
        users_can_close,
        naming_scheme,
        close_confirmation,
        feedback_enabled,
        language,
    ) = await group.wait()

    logger.debug("settings | guild=%s fetched %d fields", guild_id, len(group))

    return Settings(
        **main,
        claim_settings=ClaimSettings(**claim),
        auto_close=auto_close,
        ticket_permissions=TicketPermissions(**permissions),
        colours=colours,
        welcome_message=welcome_message,
        ticket_limit=ticket_limit,
        category=category,
        archive_channel=archive_channel,
        naming_scheme=naming_scheme,
        users_can_close=users_can_close,
        close_confirmation=close_confirmation,
        feedback_enabled=feedback_enabled,
        language=language,
    )
