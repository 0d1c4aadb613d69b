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
from typing import Any, Dict, List, Optional

from common.archiver import ArchiverClient, TranscriptNotFound
from common.common_helpers import lookup
from common.db import DBManager
from common.joingroup import JoinGroup
from common.models import (
    Blacklist,
    CustomEmbed,
    Emoji,
    Form,
    FormInput,
    MultiPanel,
    Panel,
    PanelAccessControlRule,
    SupportTeam,
    Tag,
    Ticket,
)

logger = logging.getLogger("dashboard.export")


# =============================================================================
# Multi-panels
# =============================================================================


async def fetch_multi_panels(db: DBManager, guild_id: int) -> List[MultiPanel]:
    rows = await lookup(db.get_multi_panels, guild_id)

    group = JoinGroup("multi-panel targets")
    for row in rows:
        group.go(lookup(db.get_multi_panel_panel_ids, row["id"]))
    panel_ids = await group.wait()

    return [MultiPanel(**row, panels=ids) for row, ids in zip(rows, panel_ids)]


# =============================================================================
# Panels
# =============================================================================


async def _panel_mentions(db: DBManager, panel_id: int) -> List[str]:
    group = JoinGroup(f"panel {panel_id} mentions")
    group.go(lookup(db.should_mention_user, panel_id))
    group.go(lookup(db.get_panel_role_mentions, panel_id))
    should_mention, role_ids = await group.wait()

    mentions = ["user"] if should_mention else []
    mentions.extend(str(role_id) for role_id in role_ids)
    return mentions


async def _build_panel(
    db: DBManager,
    row: Dict[str, Any],
    fields_by_embed: Dict[int, List[Dict[str, Any]]],
    acl_by_panel: Dict[int, List[Dict[str, Any]]],
) -> Panel:
    panel_id = row["panel_id"]

    group = JoinGroup(f"panel {panel_id}")
    group.go(_panel_mentions(db, panel_id))
    group.go(lookup(db.get_panel_team_ids, panel_id))
    mentions, teams = await group.wait()

    row = dict(row)
    embed_row = row.pop("welcome_embed", None)
    row.pop("welcome_message", None)

    welcome_message: Optional[CustomEmbed] = None
    if embed_row is not None:
        welcome_message = CustomEmbed.from_row(
            embed_row, fields_by_embed.get(embed_row["id"])
        )

    acl = [PanelAccessControlRule(**rule) for rule in acl_by_panel.get(panel_id) or []]

    return Panel(
        **row,
        welcome_message=welcome_message,
        use_custom_emoji=row.get("emoji_id") is not None,
        emote=Emoji(name=row.get("emoji_name"), id=row.get("emoji_id")),
        mentions=mentions,
        teams=teams or [],
        use_server_default_naming_scheme=row.get("naming_scheme") is None,
        access_control_list=acl,
    )


async def fetch_panels(db: DBManager, guild_id: int) -> List[Panel]:
    """
    Phase 1 pulls the panel rows and the two guild-wide side tables (ACL
    rules, welcome-embed fields). Phase 2 resolves each panel's per-panel
    links against them.
    """
    side = JoinGroup("panels")
    side.go(lookup(db.get_panels_with_welcome_message, guild_id))
    side.go(lookup(db.get_panel_acl_rules_for_guild, guild_id))
    side.go(lookup(db.get_embed_fields_for_guild_panels, guild_id))
    rows, acl_by_panel, fields_by_embed = await side.wait()

    group = JoinGroup("panel details")
    for row in rows:
        group.go(_build_panel(db, row, fields_by_embed, acl_by_panel))
    return await group.wait()


# =============================================================================
# Tickets
# =============================================================================


async def _ticket_transcript(
    archiver: ArchiverClient,
    guild_id: int,
    ticket_id: int,
    ratings: Dict[int, int],
    close_metadata: Dict[int, Dict[str, Any]],
) -> Optional[Ticket]:
    try:
        transcript = await archiver.get(guild_id, ticket_id)
    except TranscriptNotFound:
        logger.debug("export | guild=%s ticket=%s has no transcript", guild_id, ticket_id)
        return None

    meta = close_metadata.get(ticket_id) or {}
    return Ticket(
        ticket_id=ticket_id,
        close_reason=meta.get("reason"),
        closed_by=meta.get("closed_by"),
        rating=ratings.get(ticket_id),
        transcript=transcript,
    )


async def fetch_tickets(
    db: DBManager, archiver: ArchiverClient, guild_id: int
) -> List[Ticket]:
    """
    Three phases: the ticket list, then ratings + close metadata for those
    ids, then one archive lookup per ticket. Tickets the archive does not
    know about are left out.
    """
    rows = await lookup(db.get_tickets, guild_id)
    ticket_ids = [int(r["id"]) for r in rows]

    ratings: Dict[int, int] = {}
    close_metadata: Dict[int, Dict[str, Any]] = {}
    if ticket_ids:
        meta = JoinGroup("ticket metadata")
        meta.go(lookup(db.get_service_ratings, guild_id, ticket_ids))
        meta.go(lookup(db.get_close_metadata, guild_id, ticket_ids))
        ratings, close_metadata = await meta.wait()

    group = JoinGroup("transcripts")
    for ticket_id in ticket_ids:
        group.go(
            _ticket_transcript(archiver, guild_id, ticket_id, ratings, close_metadata)
        )
    slots = await group.wait()

    tickets = [t for t in slots if t is not None]
    if len(tickets) != len(ticket_ids):
        logger.info(
            "export | guild=%s %d/%d tickets had no transcript",
            guild_id,
            len(ticket_ids) - len(tickets),
            len(ticket_ids),
        )
    return tickets


# =============================================================================
# Tags
# =============================================================================


async def _tag_embed(db: DBManager, embed_id: int) -> Optional[CustomEmbed]:
    group = JoinGroup(f"tag embed {embed_id}")
    group.go(lookup(db.get_embed, embed_id))
    group.go(lookup(db.get_embed_fields, embed_id))
    row, fields = await group.wait()
    if row is None:
        return None
    return CustomEmbed.from_row(row, fields)


async def _build_tag(db: DBManager, row: Dict[str, Any]) -> Tag:
    embed = None
    if row.get("embed_id") is not None:
        embed = await _tag_embed(db, row["embed_id"])
    use_embed = embed is not None
    return Tag(
        id=row["tag_id"],
        trigger=row["trigger"],
        use_guild_command=row.get("application_command_id") is not None,
        content=None if use_embed else (row.get("content") or ""),
        use_embed=use_embed,
        embed=embed,
    )


async def fetch_tags(db: DBManager, guild_id: int) -> List[Tag]:
    rows = await lookup(db.get_tags, guild_id)

    group = JoinGroup("tags")
    for row in rows:
        group.go(_build_tag(db, row))
    return await group.wait()


# =============================================================================
# Blacklist
# =============================================================================


async def fetch_blacklist(
    db: DBManager, guild_id: int, user_limit: int = 100000
) -> Blacklist:
    group = JoinGroup("blacklist")
    group.go(lookup(db.get_blacklisted_users, guild_id, user_limit, 0))
    group.go(lookup(db.get_blacklisted_roles, guild_id))
    users, roles = await group.wait()
    return Blacklist(users=users or [], roles=roles or [])


# =============================================================================
# Forms
# =============================================================================


async def fetch_forms(db: DBManager, guild_id: int) -> List[Form]:
    group = JoinGroup("forms")
    group.go(lookup(db.get_forms, guild_id))
    group.go(lookup(db.get_form_inputs_for_guild, guild_id))
    rows, inputs = await group.wait()

    return [
        Form(
            **row,
            inputs=[FormInput(**i) for i in inputs.get(row["form_id"]) or []],
        )
        for row in rows
    ]


# =============================================================================
# Staff teams
# =============================================================================


async def _build_team(db: DBManager, row: Dict[str, Any]) -> SupportTeam:
    team_id = row["id"]
    group = JoinGroup(f"team {team_id}")
    group.go(lookup(db.get_team_members, team_id))
    group.go(lookup(db.get_team_roles, team_id))
    users, roles = await group.wait()
    return SupportTeam(
        id=team_id,
        name=row["name"],
        on_call_role_id=row.get("on_call_role"),
        users=users or [],
        roles=roles or [],
    )


async def fetch_staff_teams(db: DBManager, guild_id: int) -> List[SupportTeam]:
    rows = await lookup(db.get_support_teams, guild_id)

    group = JoinGroup("staff teams")
    for row in rows:
        group.go(_build_team(db, row))
    return await group.wait()
