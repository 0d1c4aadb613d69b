import asyncio
from datetime import timedelta

import pytest

from common.archiver import TranscriptNotFound
from seeding import SeedDB
from common.discord_rest import DiscordRestError
from common.models import Transcript

GUILD_ID = 900000000000000001
OTHER_GUILD_ID = 900000000000000002
OWNER_ID = 800000000000000001
STRANGER_ID = 800000000000000002


class FakeArchiver:
    def __init__(self):
        self.transcripts = {}
        self.errors = {}
        self.delay = 0.0
        self.calls = []

    async def get(self, guild_id, ticket_id):
        self.calls.append((guild_id, ticket_id))
        if self.delay:
            await asyncio.sleep(self.delay)
        if ticket_id in self.errors:
            raise self.errors[ticket_id]
        if ticket_id not in self.transcripts:
            raise TranscriptNotFound(guild_id, ticket_id)
        return Transcript.model_validate(self.transcripts[ticket_id])

    async def close(self):
        pass


class FakeGuilds:
    def __init__(self, owners):
        self.owners = owners

    async def get_owner_id(self, guild_id):
        return self.owners[guild_id]


class FakeDiscord:
    def __init__(self):
        self.owners = {}
        self.users = {}
        self.messages = {}
        self.messages_error = None
        self.create_error = None
        self.created = []
        self.deleted = []
        self._next_id = 5000

    async def get_guild(self, guild_id):
        if guild_id not in self.owners:
            raise DiscordRestError(404, "Unknown Guild")
        return {"id": str(guild_id), "owner_id": str(self.owners[guild_id])}

    async def get_user(self, user_id):
        if user_id not in self.users:
            raise DiscordRestError(404, "Unknown User")
        return {"id": str(user_id), "username": self.users[user_id]}

    async def get_channel_messages(self, channel_id, limit=100):
        if self.messages_error is not None:
            raise self.messages_error
        return list(self.messages.get(channel_id, []))[:limit]

    async def delete_message(self, channel_id, message_id):
        self.deleted.append((channel_id, message_id))

    async def create_message(self, channel_id, payload):
        if self.create_error is not None:
            raise self.create_error
        self._next_id += 1
        self.created.append((channel_id, payload))
        return {"id": str(self._next_id), "channel_id": str(channel_id)}

    async def close(self):
        pass


@pytest.fixture
def db():
    d = SeedDB(":memory:", init_schema=True)
    yield d
    d.close()


@pytest.fixture
def archiver():
    return FakeArchiver()


@pytest.fixture
def guilds():
    return FakeGuilds({GUILD_ID: OWNER_ID, OTHER_GUILD_ID: OWNER_ID})


@pytest.fixture
def discord():
    d = FakeDiscord()
    d.owners = {GUILD_ID: OWNER_ID, OTHER_GUILD_ID: STRANGER_ID}
    return d


@pytest.fixture
def seeded(db, archiver):
    """
    One fully configured guild plus a second guild that must never leak into
    the first one's export.
    """
    g = GUILD_ID

    db.set_settings(g, use_threads=True, ticket_notification_channel=111)
    db.set_custom_colour(g, 0, 0x123456)
    db.set_auto_close(
        g,
        enabled=True,
        since_last_message=timedelta(hours=2, milliseconds=500),
        on_user_leave=True,
    )
    db.set_welcome_message(g, "Hello there")
    db.set_archive_channel(g, 4444)
    db.set_naming_scheme(g, "username")

    welcome = db.create_embed(g, title="Welcome", description="Hi", colour=0xFF0000)
    db.add_embed_field(welcome, "Rules", "Be nice", True)
    tag_embed = db.create_embed(g, title="Rules", footer_text="mods")

    team = db.create_support_team(g, "Staff", on_call_role=222)
    db.add_team_member(team, 333)
    db.add_team_role(team, 444)

    panel = db.create_panel(
        message_id=1001,
        channel_id=1002,
        guild_id=g,
        title="Support",
        content="Click to open",
        colour=0x2ECC71,
        target_category=1003,
        emoji_name="🎫",
        welcome_message=welcome,
        custom_id="panel-a",
    )
    panel2 = db.create_panel(
        message_id=2001,
        channel_id=1002,
        guild_id=g,
        title="Billing",
        content="Payments",
        custom_id="panel-b",
        emoji_name="coin",
        emoji_id=555555555555555555,
        naming_scheme="bill-{id}",
    )
    db.set_panel_user_mention(panel, True)
    db.add_panel_role_mention(panel, 666)
    db.add_panel_team(panel, team)
    db.add_panel_acl_rule(panel, 777, "allow", 0)

    multi = db.create_multi_panel(
        message_id=3001, channel_id=1002, guild_id=g, title="All", content="Pick one"
    )
    db.add_multi_panel_target(multi, panel)
    db.add_multi_panel_target(multi, panel2)

    db.create_ticket(ticket_id=1, guild_id=g, user_id=888, channel_id=4001, open=False)
    db.create_ticket(ticket_id=2, guild_id=g, user_id=889, channel_id=4002, panel_id=panel)
    db.create_ticket(ticket_id=3, guild_id=g, user_id=890, open=False)
    db.set_service_rating(g, 1, 5)
    db.set_close_metadata(g, 1, "resolved", 999)

    db.add_tag(g, "faq", "faq", content="See the docs")
    db.add_tag(g, "rules", "rules", embed_id=tag_embed, application_command_id=12345)

    db.add_blacklisted_user(g, 11)
    db.add_blacklisted_user(g, 10)
    db.add_blacklisted_role(g, 12)

    form = db.create_form(g, "Intake", "form-1")
    db.add_form_input(form, position=1, custom_id="q2", label="Details", style=2)
    db.add_form_input(form, position=0, custom_id="q1", label="Topic")

    db.create_ticket(ticket_id=1, guild_id=OTHER_GUILD_ID, user_id=1, channel_id=1)
    db.add_blacklisted_user(OTHER_GUILD_ID, 99)

    archiver.transcripts = {
        1: {"entities": {"users": {}}, "messages": [{"content": "closed ticket"}]},
        2: {"entities": {}, "messages": [{"content": "open ticket"}], "version": 2},
    }

    return {
        "welcome": welcome,
        "tag_embed": tag_embed,
        "team": team,
        "panel": panel,
        "panel2": panel2,
        "multi": multi,
        "form": form,
    }
