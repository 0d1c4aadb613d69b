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
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field, ValidationError

from admin.logging_setup import get_logger
from admin.premium import PremiumTier, get_guild_tier
from common.common_helpers import lookup, parse_emote, parse_snowflake
from common.db import DBManager
from common.discord_rest import DiscordRest, DiscordRestError
from common.errors import DataFetchError
from common.guild_resolver import GuildResolver
from common.joingroup import JoinGroup

logger = get_logger("panels")

FREE_TIER_FOOTER = "Powered by ticketsbot.cloud"


class PanelUpdateError(Exception):
    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message


class PanelBody(BaseModel):
    title: str = Field(min_length=1, max_length=80)
    content: str = Field(min_length=1, max_length=4096)
    colour: int = Field(ge=0, le=0xFFFFFF)
    channel_id: int = Field(gt=0)
    category_id: int = Field(ge=0)
    emote: str = ""
    welcome_message: Optional[int] = None
    mentions: List[str] = Field(default_factory=list)
    teams: List[str] = Field(default_factory=list)
    naming_scheme: Optional[str] = Field(default=None, max_length=100)
    image_url: Optional[str] = None
    thumbnail_url: Optional[str] = None
    button_style: int = Field(default=1, ge=1, le=4)
    button_label: str = Field(default="", max_length=80)


def _same_emoji(
    a: Tuple[Optional[str], Optional[int]], b: Tuple[Optional[str], Optional[int]]
) -> bool:
    if a[1] is not None or b[1] is not None:
        return a[1] == b[1]
    return bool(a[0]) and a[0] == b[0]


def _parse_mentions(raw: List[str]) -> Tuple[bool, List[int]]:
    """
    "user" means mention the ticket opener; everything else must be a role id.
    """
    mention_user = False
    role_ids: List[int] = []
    for mention in raw:
        if mention == "user":
            mention_user = True
            continue
        role_id = parse_snowflake(mention)
        if role_id is None:
            raise PanelUpdateError(400, f"Invalid mention: {mention}")
        if role_id not in role_ids:
            role_ids.append(role_id)
    return mention_user, role_ids


async def _resolve_teams(
    db: DBManager, guild_id: int, raw: List[str]
) -> Tuple[bool, List[int]]:
    with_default = False
    team_ids: List[int] = []
    for team in raw:
        if team == "default":
            with_default = True
            continue
        team_id = parse_snowflake(team)
        if team_id is None:
            raise PanelUpdateError(400, f"Invalid support team: {team}")
        if team_id not in team_ids:
            team_ids.append(team_id)

    group = JoinGroup("panel teams")
    for team_id in team_ids:
        group.go(lookup(db.get_support_team, team_id))
    rows = await group.wait()

    for team_id, row in zip(team_ids, rows):
        if row is None or int(row["guild_id"]) != int(guild_id):
            raise PanelUpdateError(400, f"Invalid support team: {team_id}")
    return with_default, team_ids


async def would_have_duplicate_emote(
    db: DBManager, panel: Dict[str, Any], emoji: Tuple[Optional[str], Optional[int]]
) -> bool:
    """
    True if another panel sharing a multi-panel with this one already uses
    the given emoji.
    """
    multi_panel_ids = await lookup(db.get_multi_panels_for_panel, panel["panel_id"])

    duplicate = False
    duplicate_lock = asyncio.Lock()

    async def _check(multi_panel_id: int) -> None:
        nonlocal duplicate
        sub_panels = await lookup(db.get_multi_panel_panels, multi_panel_id)
        for sub in sub_panels:
            if sub["message_id"] == panel["message_id"]:
                continue
            if _same_emoji((sub["emoji_name"], sub["emoji_id"]), emoji):
                async with duplicate_lock:
                    duplicate = True
                break

    group = JoinGroup("multi-panel emotes")
    for multi_panel_id in multi_panel_ids:
        group.go(_check(multi_panel_id))
    await group.wait()

    return duplicate


def build_panel_message(
    body: PanelBody,
    custom_id: str,
    emoji_name: Optional[str],
    emoji_id: Optional[int],
    premium: bool = False,
) -> Dict[str, Any]:
    embed: Dict[str, Any] = {
        "title": body.title,
        "description": body.content,
        "color": body.colour,
    }
    if body.image_url:
        embed["image"] = {"url": body.image_url}
    if body.thumbnail_url:
        embed["thumbnail"] = {"url": body.thumbnail_url}
    if not premium:
        embed["footer"] = {"text": FREE_TIER_FOOTER}

    button: Dict[str, Any] = {
        "type": 2,
        "style": body.button_style,
        "label": body.button_label or body.title,
        "custom_id": custom_id,
    }
    if emoji_name:
        button["emoji"] = {"name": emoji_name}
        if emoji_id is not None:
            button["emoji"]["id"] = str(emoji_id)

    return {"embeds": [embed], "components": [{"type": 1, "components": [button]}]}


async def update_panel(
    db: DBManager,
    discord: DiscordRest,
    guilds: GuildResolver,
    guild_id: int,
    panel_id: int,
    payload: Dict[str, Any],
) -> Dict[str, Any]:
    try:
        body = PanelBody.model_validate(payload)
    except ValidationError as e:
        first = e.errors()[0] if e.errors() else {}
        loc = ".".join(str(x) for x in first.get("loc", ()))
        raise PanelUpdateError(400, f"Invalid {loc or 'body'}: {first.get('msg', 'invalid')}")

    existing = await lookup(db.get_panel, panel_id)
    if existing is None:
        raise PanelUpdateError(404, "Panel not found")
    if int(existing["guild_id"]) != int(guild_id):
        raise PanelUpdateError(400, "Guild ID does not match")

    emoji_name, emoji_id = parse_emote(body.emote)
    mention_user, role_ids = _parse_mentions(body.mentions)
    with_default_team, team_ids = await _resolve_teams(db, guild_id, body.teams)

    if body.welcome_message is not None:
        embed = await lookup(db.get_embed, body.welcome_message)
        if embed is None or int(embed["guild_id"]) != int(guild_id):
            raise PanelUpdateError(400, "Invalid welcome message")

    if emoji_name and await would_have_duplicate_emote(
        db, existing, (emoji_name, emoji_id)
    ):
        raise PanelUpdateError(
            400,
            "Changing the reaction emote to this value would cause a conflict in a multi-panel",
        )

    emoji_changed = bool(existing["emoji_name"] or emoji_name) and not _same_emoji(
        (existing["emoji_name"], existing["emoji_id"]), (emoji_name, emoji_id)
    )
    should_update_message = (
        emoji_changed
        or existing["colour"] != body.colour
        or existing["channel_id"] != body.channel_id
        or existing["content"] != body.content
        or existing["title"] != body.title
    )

    message_id = existing["message_id"]
    if should_update_message:
        tier = await get_guild_tier(db, guilds, guild_id)

        try:
            await discord.delete_message(existing["channel_id"], existing["message_id"])
        except DataFetchError as e:
            logger.debug("panel %s | old message delete failed: %s", panel_id, e)

        try:
            sent = await discord.create_message(
                body.channel_id,
                build_panel_message(
                    body,
                    existing["custom_id"],
                    emoji_name,
                    emoji_id,
                    premium=tier > PremiumTier.NONE,
                ),
            )
        except DiscordRestError as e:
            if e.status == 403:
                raise PanelUpdateError(
                    500, "I do not have permission to send messages in the specified channel"
                ) from e
            raise PanelUpdateError(500, str(e)) from e
        message_id = int(sent["id"])

    panel = {
        "panel_id": int(panel_id),
        "message_id": message_id,
        "channel_id": body.channel_id,
        "guild_id": int(guild_id),
        "title": body.title,
        "content": body.content,
        "colour": body.colour,
        "target_category": body.category_id,
        "emoji_name": emoji_name,
        "emoji_id": emoji_id,
        "welcome_message": body.welcome_message,
        "with_default_team": with_default_team,
        "custom_id": existing["custom_id"],
        "image_url": body.image_url,
        "thumbnail_url": body.thumbnail_url,
        "button_style": body.button_style,
        "button_label": body.button_label,
        "naming_scheme": body.naming_scheme,
    }
    await lookup(db.update_panel, panel)
    await lookup(
        db.replace_panel_links,
        panel_id,
        role_ids=role_ids,
        mention_user=mention_user,
        team_ids=team_ids,
    )

    logger.info(
        "panel %s | updated guild=%s message_refreshed=%s", panel_id, guild_id, should_update_message
    )
    return panel
