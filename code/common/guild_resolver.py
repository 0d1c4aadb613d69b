# =============================================================================
#  Tickets Dashboard
#  Copyright (C) 2025 Tickets Dashboard contributors
#
#  This source code is released under the GNU Affero General Public License
#  version 3.0. A copy of the license is available at:
#  https://www.gnu.org/licenses/agpl-3.0.en.html
# =============================================================================


from __future__ import annotations

from common.common_helpers import parse_snowflake
from common.discord_rest import DiscordRest, DiscordRestError


class GuildResolver:
    def __init__(self, rest: DiscordRest):
        self.rest = rest

    async def get_owner_id(self, guild_id: int) -> int:
        """
        Owner of the guild, straight from Discord. A payload without a usable
        owner_id is treated as a failed lookup.
        """
        guild = await self.rest.get_guild(int(guild_id))
        owner_id = parse_snowflake((guild or {}).get("owner_id"))
        if owner_id is None:
            raise DiscordRestError(502, f"guild {guild_id} has no owner_id")
        return owner_id
