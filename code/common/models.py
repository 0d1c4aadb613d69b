# =============================================================================
#  Tickets Dashboard
#  Copyright (C) 2025 Tickets Dashboard contributors
#
#  This source code is released under the GNU Affero General Public License
#  version 3.0. A copy of the license is available at:
#  https://www.gnu.org/licenses/agpl-3.0.en.html
# =============================================================================

"""
Pydantic models for the guild export document.

Snowflakes (guild/channel/role/user/message ids) serialize as decimal strings
so browsers never lose precision on them. Internal row ids stay numbers.
"""

from __future__ import annotations
from typing import Annotated, Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer, model_validator


Snowflake = Annotated[int, PlainSerializer(lambda v: str(v), return_type=str)]


class Base(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def dump(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


# =============================================================================
# Settings
# =============================================================================


class ClaimSettings(Base):
    support_can_view: bool = True
    support_can_type: bool = True


class AutoCloseData(Base):
    enabled: bool = False
    since_open_with_no_response: int = 0  # seconds
    since_last_message: int = 0  # seconds
    on_user_leave: bool = False


class TicketPermissions(Base):
    attach_files: bool = True
    embed_links: bool = True
    add_reactions: bool = True


class Settings(Base):
    hide_claim_button: bool = False
    disable_open_command: bool = False
    context_menu_permission_level: int = 0
    context_menu_add_sender: bool = True
    context_menu_panel: Optional[int] = None
    store_transcripts: bool = True
    use_threads: bool = False
    thread_archive_duration: int = 10080
    ticket_notification_channel: Optional[Snowflake] = None
    overflow_enabled: bool = False
    overflow_category_id: Optional[Snowflake] = None

    claim_settings: ClaimSettings = Field(default_factory=ClaimSettings)
    auto_close: AutoCloseData = Field(default_factory=AutoCloseData)
    ticket_permissions: TicketPermissions = Field(default_factory=TicketPermissions)
    colours: Dict[str, str] = Field(default_factory=dict)

    welcome_message: str = ""
    ticket_limit: int = 5
    category: Snowflake = 0
    archive_channel: Optional[Snowflake] = None
    naming_scheme: str = "id"
    users_can_close: bool = True
    close_confirmation: bool = True
    feedback_enabled: bool = True
    language: Optional[str] = None


# =============================================================================
# Embeds
# =============================================================================


class EmbedField(Base):
    name: str
    value: str
    inline: bool = False


class EmbedAuthor(Base):
    name: Optional[str] = None
    icon_url: Optional[str] = None
    url: Optional[str] = None


class EmbedFooter(Base):
    text: Optional[str] = None
    icon_url: Optional[str] = None


class CustomEmbed(Base):
    title: Optional[str] = None
    description: Optional[str] = None
    url: Optional[str] = None
    colour: int = 0
    author: EmbedAuthor = Field(default_factory=EmbedAuthor)
    image_url: Optional[str] = None
    thumbnail_url: Optional[str] = None
    footer: EmbedFooter = Field(default_factory=EmbedFooter)
    timestamp: Optional[str] = None
    fields: List[EmbedField] = Field(default_factory=list)

    @classmethod
    def from_row(cls, row: Dict[str, Any], fields: Optional[List[Dict[str, Any]]]) -> "CustomEmbed":
        return cls(
            title=row.get("title"),
            description=row.get("description"),
            url=row.get("url"),
            colour=row.get("colour") or 0,
            author=EmbedAuthor(
                name=row.get("author_name"),
                icon_url=row.get("author_icon_url"),
                url=row.get("author_url"),
            ),
            image_url=row.get("image_url"),
            thumbnail_url=row.get("thumbnail_url"),
            footer=EmbedFooter(
                text=row.get("footer_text"),
                icon_url=row.get("footer_icon_url"),
            ),
            timestamp=row.get("timestamp"),
            fields=[
                EmbedField(name=f["name"], value=f["value"], inline=bool(f["inline"]))
                for f in (fields or [])
            ],
        )


# =============================================================================
# Panels
# =============================================================================


class Emoji(Base):
    name: Optional[str] = None
    id: Optional[Snowflake] = None


class PanelAccessControlRule(Base):
    role_id: Snowflake
    action: str


class Panel(Base):
    panel_id: int
    message_id: Snowflake
    channel_id: Snowflake
    guild_id: Snowflake
    title: str
    content: str
    colour: int = 0
    target_category: Snowflake = 0
    emoji_name: Optional[str] = None
    emoji_id: Optional[Snowflake] = None
    with_default_team: bool = True
    custom_id: str
    image_url: Optional[str] = None
    thumbnail_url: Optional[str] = None
    button_style: int = 1
    button_label: str = ""
    form_id: Optional[int] = None
    naming_scheme: Optional[str] = None
    force_disabled: bool = False
    disabled: bool = False

    welcome_message: Optional[CustomEmbed] = None
    use_custom_emoji: bool = False
    emote: Emoji = Field(default_factory=Emoji)
    mentions: List[str] = Field(default_factory=list)
    teams: List[int] = Field(default_factory=list)
    use_server_default_naming_scheme: bool = True
    access_control_list: List[PanelAccessControlRule] = Field(default_factory=list)


class MultiPanel(Base):
    id: int
    message_id: Snowflake
    channel_id: Snowflake
    guild_id: Snowflake
    title: str
    content: str
    colour: int = 0
    select_menu: bool = False
    panels: List[int] = Field(default_factory=list)


# =============================================================================
# Tickets
# =============================================================================


class Transcript(Base):
    """
    Archived message log. The archive owns the format; unknown keys are kept
    as-is.
    """

    model_config = ConfigDict(extra="allow")

    entities: Dict[str, Any] = Field(default_factory=dict)
    messages: List[Dict[str, Any]] = Field(default_factory=list)


class Ticket(Base):
    ticket_id: int
    close_reason: Optional[str] = None
    closed_by: Optional[Snowflake] = None
    rating: Optional[int] = None
    transcript: Transcript = Field(default_factory=Transcript)


# =============================================================================
# Tags, blacklist, forms, teams
# =============================================================================


class Tag(Base):
    id: str
    trigger: str
    use_guild_command: bool = False
    content: Optional[str] = None
    use_embed: bool = False
    embed: Optional[CustomEmbed] = None

    @model_validator(mode="after")
    def _content_xor_embed(self) -> "Tag":
        if (self.content is None) == (self.embed is None):
            raise ValueError("a tag carries exactly one of content or an embed")
        if self.use_embed != (self.embed is not None):
            raise ValueError("use_embed must match whether the tag has an embed")
        return self


class Blacklist(Base):
    users: List[Snowflake] = Field(default_factory=list)
    roles: List[Snowflake] = Field(default_factory=list)


class FormInput(Base):
    id: int
    form_id: int
    position: int
    custom_id: str
    style: int = 1
    label: str
    placeholder: Optional[str] = None
    required: bool = True
    min_length: Optional[int] = None
    max_length: Optional[int] = None


class Form(Base):
    form_id: int
    guild_id: Snowflake
    title: str
    custom_id: str
    inputs: List[FormInput] = Field(default_factory=list)


class SupportTeam(Base):
    id: int
    name: str
    on_call_role_id: Optional[Snowflake] = None
    users: List[Snowflake] = Field(default_factory=list)
    roles: List[Snowflake] = Field(default_factory=list)


# =============================================================================
# Root document
# =============================================================================


class Export(Base):
    guild_id: Snowflake
    settings: Settings
    panels: List[Panel] = Field(default_factory=list)
    multi_panels: List[MultiPanel] = Field(default_factory=list)
    tickets: List[Ticket] = Field(default_factory=list)
    tags: List[Tag] = Field(default_factory=list)
    blacklist: Blacklist = Field(default_factory=Blacklist)
    forms: List[Form] = Field(default_factory=list)
    staff_teams: List[SupportTeam] = Field(default_factory=list)
