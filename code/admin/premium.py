# =============================================================================
#  Tickets Dashboard
#  Copyright (C) 2025 Tickets Dashboard contributors
#
#  This source code is released under the GNU Affero General Public License
#  version 3.0. A copy of the license is available at:
#  https://www.gnu.org/licenses/agpl-3.0.en.html
# =============================================================================

from __future__ import annotations
from enum import IntEnum

from fastapi import Request

from common.common_helpers import lookup


class PremiumTier(IntEnum):
    NONE = -1
    PREMIUM = 0
    WHITELABEL = 1


class WhitelabelRequired(Exception):
    def __init__(self, tier: PremiumTier):
        super().__init__("You must have the whitelabel premium tier")
        self.tier = tier


async def get_user_tier(db, user_id: int) -> PremiumTier:
    raw = await lookup(db.get_premium_tier, user_id)
    try:
        return PremiumTier(raw)
    except ValueError:
        return PremiumTier.NONE


async def require_whitelabel(request: Request) -> PremiumTier:
    """
    FastAPI dependency: the caller must hold the whitelabel tier.
    """
    tier = await get_user_tier(request.app.state.db, request.state.user_id)
    if tier < PremiumTier.WHITELABEL:
        raise WhitelabelRequired(tier)
    return tier


async def get_guild_tier(db, guilds, guild_id: int) -> PremiumTier:
    """
    A guild has whatever tier its owner holds.
    """
    owner_id = await guilds.get_owner_id(guild_id)
    return await get_user_tier(db, owner_id)
