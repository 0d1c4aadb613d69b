import pytest
from fastapi.testclient import TestClient

from admin.app import create_app
from admin.auth import issue_session_token
from common.config import Config
from common.discord_rest import DiscordRestError

from conftest import GUILD_ID, OTHER_GUILD_ID, OWNER_ID, STRANGER_ID


@pytest.fixture
def app(db, archiver, discord, tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATA_DIR", str(tmp_path))
    monkeypatch.setenv("DISCORD_BOT_TOKEN", "bot-token")
    monkeypatch.setenv("EXPORT_TIMEOUT_SECONDS", "30")
    return create_app(Config(), db=db, archiver=archiver, discord=discord)


@pytest.fixture
def client(app):
    return TestClient(app)


def _auth(app, user_id=OWNER_ID):
    return {"Authorization": f"Bearer {issue_session_token(app.state.signer, user_id)}"}


def _panel_body(**overrides):
    body = {
        "title": "Support",
        "content": "Click to open",
        "colour": 0x2ECC71,
        "channel_id": "1002",
        "category_id": "1003",
        "emote": "🎫",
        "mentions": ["user", "666"],
        "teams": ["default"],
    }
    body.update(overrides)
    return body


# ---------------------------------------------------------------------------
# auth / health
# ---------------------------------------------------------------------------


def test_health_is_open(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.text == "ok"


def test_missing_session_is_unauthorized(client):
    resp = client.get(f"/api/{GUILD_ID}/export")
    assert resp.status_code == 401
    assert resp.json() == {"success": False, "error": "Unauthorized"}


def test_forged_session_is_unauthorized(client):
    resp = client.get(
        f"/api/{GUILD_ID}/export", headers={"Authorization": "Bearer not-a-token"}
    )
    assert resp.status_code == 401


def test_request_id_is_echoed(app, client):
    resp = client.get("/health", headers={"X-Request-ID": "abc123"})
    assert resp.headers["X-Request-ID"] == "abc123"


# ---------------------------------------------------------------------------
# export
# ---------------------------------------------------------------------------


def test_export_for_owner(app, client, seeded):
    resp = client.get(f"/api/{GUILD_ID}/export", headers=_auth(app))
    assert resp.status_code == 200
    doc = resp.json()
    assert doc["guild_id"] == str(GUILD_ID)
    assert [t["ticket_id"] for t in doc["tickets"]] == [1, 2]


def test_export_session_cookie_works(app, seeded):
    token = issue_session_token(app.state.signer, OWNER_ID)
    client = TestClient(app, cookies={"dashboard_session": token})
    assert client.get(f"/api/{GUILD_ID}/export").status_code == 200


def test_export_for_non_owner_is_forbidden(app, client, seeded):
    resp = client.get(f"/api/{GUILD_ID}/export", headers=_auth(app, STRANGER_ID))
    assert resp.status_code == 403
    assert resp.json() == {
        "success": False,
        "error": "Only the server owner can export server data",
    }


def test_export_invalid_guild_id(app, client):
    resp = client.get("/api/not-a-guild/export", headers=_auth(app))
    assert resp.status_code == 400


def test_export_owner_lookup_failure_is_500(app, client, discord):
    discord.owners = {}
    resp = client.get(f"/api/{GUILD_ID}/export", headers=_auth(app))
    assert resp.status_code == 500
    assert resp.json()["success"] is False


def test_export_fetch_failure_is_500(app, client, archiver, seeded):
    from common.archiver import ArchiverError

    archiver.errors[1] = ArchiverError("archiver returned 502 for ticket 1", status=502)
    resp = client.get(f"/api/{GUILD_ID}/export", headers=_auth(app))
    assert resp.status_code == 500
    assert resp.json() == {"success": False, "error": "archiver returned 502 for ticket 1"}


# ---------------------------------------------------------------------------
# ticket view
# ---------------------------------------------------------------------------


def test_ticket_view(app, client, discord, seeded):
    discord.users = {333: "staffer"}
    discord.messages[4002] = [
        {"author": {"username": "bob"}, "content": "thanks <@333>, and <@!404>"},
        {"author": {"username": "alice"}, "content": "hello"},
    ]

    resp = client.get(f"/api/{GUILD_ID}/tickets/2", headers=_auth(app))
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["ticket"]["id"] == 2
    assert body["ticket"]["channel_id"] == "4002"
    assert body["messages"] == [
        {"username": "alice", "content": "hello"},
        {"username": "bob", "content": "thanks @staffer, and <@!404>"},
    ]


def test_ticket_view_when_messages_unavailable(app, client, discord, seeded):
    discord.messages_error = DiscordRestError(403, "Missing Access")
    resp = client.get(f"/api/{GUILD_ID}/tickets/2", headers=_auth(app))
    assert resp.status_code == 200
    assert resp.json()["messages"] == []


@pytest.mark.parametrize(
    "ticket_id, status, error",
    [
        ("abc", 400, "Invalid ticket ID"),
        ("77", 404, "Ticket does not exist"),
        ("1", 404, "Ticket does not exist"),
    ],
)
def test_ticket_view_errors(app, client, seeded, ticket_id, status, error):
    resp = client.get(f"/api/{GUILD_ID}/tickets/{ticket_id}", headers=_auth(app))
    assert resp.status_code == status
    assert resp.json() == {"success": False, "error": error}


def test_ticket_view_without_channel(app, client, db, seeded):
    db.create_ticket(ticket_id=9, guild_id=GUILD_ID, user_id=1, channel_id=None)
    resp = client.get(f"/api/{GUILD_ID}/tickets/9", headers=_auth(app))
    assert resp.status_code == 404
    assert resp.json()["error"] == "Ticket channel does not exist"


def test_ticket_view_does_not_reach_into_other_guilds(app, client, db, discord, seeded):
    db.create_ticket(ticket_id=50, guild_id=OTHER_GUILD_ID, user_id=1, channel_id=6001)
    discord.messages[6001] = [{"author": {"username": "eve"}, "content": "secret"}]

    resp = client.get(f"/api/{GUILD_ID}/tickets/50", headers=_auth(app))
    assert resp.status_code == 404
    assert resp.json() == {"success": False, "error": "Ticket does not exist"}


# ---------------------------------------------------------------------------
# whitelabel
# ---------------------------------------------------------------------------


def test_whitelabel_requires_tier(app, client, db):
    db.set_premium_tier(OWNER_ID, 0)
    resp = client.get("/api/whitelabel", headers=_auth(app))
    assert resp.status_code == 402
    assert resp.json() == {
        "success": False,
        "error": "You must have the whitelabel premium tier",
    }


def test_whitelabel_with_tier(app, client, db):
    db.set_premium_tier(OWNER_ID, 1)
    db.set_whitelabel_bot(OWNER_ID, 123456789012345678)
    resp = client.get("/api/whitelabel", headers=_auth(app))
    assert resp.status_code == 200
    assert resp.json() == {"success": True, "bot_id": "123456789012345678"}


# ---------------------------------------------------------------------------
# panel update
# ---------------------------------------------------------------------------


def test_panel_update_reposts_message(app, client, db, discord, seeded):
    panel_id = seeded["panel"]
    resp = client.patch(
        f"/api/{GUILD_ID}/panels/{panel_id}",
        headers=_auth(app),
        json=_panel_body(title="Help desk", mentions=["777"], teams=[str(seeded["team"])]),
    )
    assert resp.status_code == 200, resp.text
    assert resp.json() == {"success": True}

    assert discord.deleted == [(1002, 1001)]
    (channel_id, payload), = discord.created
    assert channel_id == 1002
    assert payload["embeds"][0]["title"] == "Help desk"
    button = payload["components"][0]["components"][0]
    assert button["custom_id"] == "panel-a"
    assert button["emoji"] == {"name": "🎫"}

    stored = db.get_panel(panel_id)
    assert stored["title"] == "Help desk"
    assert stored["message_id"] == 5001
    assert stored["with_default_team"] is False
    assert db.get_panel_role_mentions(panel_id) == [777]
    assert db.should_mention_user(panel_id) is False
    assert db.get_panel_team_ids(panel_id) == [seeded["team"]]


def test_reposted_panel_is_branded_without_premium(app, client, discord, seeded):
    resp = client.patch(
        f"/api/{GUILD_ID}/panels/{seeded['panel']}",
        headers=_auth(app),
        json=_panel_body(title="Help desk"),
    )
    assert resp.status_code == 200, resp.text
    embed = discord.created[0][1]["embeds"][0]
    assert embed["footer"] == {"text": "Powered by ticketsbot.cloud"}


@pytest.mark.parametrize("tier", [0, 1])
def test_reposted_panel_is_unbranded_with_premium(app, client, db, discord, seeded, tier):
    db.set_premium_tier(OWNER_ID, tier)
    resp = client.patch(
        f"/api/{GUILD_ID}/panels/{seeded['panel']}",
        headers=_auth(app),
        json=_panel_body(title="Help desk"),
    )
    assert resp.status_code == 200, resp.text
    assert "footer" not in discord.created[0][1]["embeds"][0]


def test_panel_update_without_visual_change_keeps_message(app, client, db, discord, seeded):
    panel_id = seeded["panel"]
    resp = client.patch(
        f"/api/{GUILD_ID}/panels/{panel_id}",
        headers=_auth(app),
        json=_panel_body(category_id="2000"),
    )
    assert resp.status_code == 200, resp.text
    assert discord.created == []
    assert discord.deleted == []
    assert db.get_panel(panel_id)["target_category"] == 2000


def test_panel_update_rejects_multi_panel_emote_conflict(app, client, discord, seeded):
    resp = client.patch(
        f"/api/{GUILD_ID}/panels/{seeded['panel2']}",
        headers=_auth(app),
        json=_panel_body(title="Billing", content="Payments", emote="🎫", mentions=[]),
    )
    assert resp.status_code == 400
    assert resp.json()["error"] == (
        "Changing the reaction emote to this value would cause a conflict in a multi-panel"
    )
    assert discord.created == []


def test_panel_update_custom_emote(app, client, db, discord, seeded):
    panel_id = seeded["panel"]
    resp = client.patch(
        f"/api/{GUILD_ID}/panels/{panel_id}",
        headers=_auth(app),
        json=_panel_body(emote="<:help:123456789012345678>"),
    )
    assert resp.status_code == 200, resp.text
    stored = db.get_panel(panel_id)
    assert (stored["emoji_name"], stored["emoji_id"]) == ("help", 123456789012345678)
    button = discord.created[0][1]["components"][0]["components"][0]
    assert button["emoji"] == {"name": "help", "id": "123456789012345678"}


def test_panel_update_wrong_guild(app, client, seeded):
    resp = client.patch(
        f"/api/{OTHER_GUILD_ID}/panels/{seeded['panel']}",
        headers=_auth(app),
        json=_panel_body(),
    )
    assert resp.status_code == 400
    assert resp.json()["error"] == "Guild ID does not match"


def test_panel_update_missing_panel(app, client, seeded):
    resp = client.patch(f"/api/{GUILD_ID}/panels/9999", headers=_auth(app), json=_panel_body())
    assert resp.status_code == 404


@pytest.mark.parametrize(
    "overrides",
    [
        {"title": ""},
        {"title": "x" * 81},
        {"content": "x" * 4097},
        {"colour": 0x1000000},
        {"mentions": ["@everyone"]},
        {"teams": ["424242"]},
        {"welcome_message": 424242},
    ],
)
def test_panel_update_validation(app, client, db, discord, seeded, overrides):
    resp = client.patch(
        f"/api/{GUILD_ID}/panels/{seeded['panel']}",
        headers=_auth(app),
        json=_panel_body(**overrides),
    )
    assert resp.status_code == 400
    assert resp.json()["success"] is False
    assert discord.created == []
    assert db.get_panel(seeded["panel"])["title"] == "Support"


def test_panel_update_without_send_permission(app, client, discord, seeded):
    discord.create_error = DiscordRestError(403, "Missing Permissions")
    resp = client.patch(
        f"/api/{GUILD_ID}/panels/{seeded['panel']}",
        headers=_auth(app),
        json=_panel_body(title="New title"),
    )
    assert resp.status_code == 500
    assert resp.json()["error"] == (
        "I do not have permission to send messages in the specified channel"
    )
