import asyncio
import sqlite3
from datetime import timedelta

import pytest

from common.config import DEFAULT_WELCOME_MESSAGE
from common.errors import DataFetchError
from export.settings import convert_auto_close, get_settings

from conftest import GUILD_ID


def test_defaults_for_unconfigured_guild(db):
    settings = asyncio.run(get_settings(db, GUILD_ID))

    assert settings.ticket_limit == 5
    assert settings.welcome_message == DEFAULT_WELCOME_MESSAGE
    assert settings.language is None
    assert settings.colours == {"0": "2ecc71", "1": "fc3f35"}
    assert settings.category == 0
    assert settings.archive_channel is None
    assert settings.naming_scheme == "id"
    assert settings.users_can_close is True
    assert settings.auto_close.enabled is False
    assert settings.auto_close.since_last_message == 0
    assert settings.claim_settings.support_can_view is True
    assert settings.ticket_permissions.attach_files is True


def test_stored_values_are_merged(db, seeded):
    db.set_ticket_limit(GUILD_ID, 3)
    db.set_active_language(GUILD_ID, "fr")
    db.set_claim_settings(GUILD_ID, support_can_view=True, support_can_type=False)

    settings = asyncio.run(get_settings(db, GUILD_ID))

    assert settings.use_threads is True
    assert settings.ticket_limit == 3
    assert settings.language == "fr"
    assert settings.welcome_message == "Hello there"
    assert settings.colours == {"0": "123456", "1": "fc3f35"}
    assert settings.archive_channel == 4444
    assert settings.naming_scheme == "username"
    assert settings.claim_settings.support_can_type is False
    assert settings.auto_close.enabled is True
    assert settings.auto_close.since_last_message == 7200
    assert settings.auto_close.on_user_leave is True

    dumped = settings.dump()
    assert dumped["ticket_notification_channel"] == "111"
    assert dumped["archive_channel"] == "4444"


def test_zero_ticket_limit_means_default(db):
    db.set_ticket_limit(GUILD_ID, 0)
    assert asyncio.run(get_settings(db, GUILD_ID)).ticket_limit == 5


def test_convert_auto_close_truncates_to_seconds():
    data = convert_auto_close(
        {
            "enabled": True,
            "since_open_with_no_response": timedelta(seconds=90, milliseconds=999),
            "since_last_message": None,
            "on_user_leave": None,
        }
    )
    assert data.since_open_with_no_response == 90
    assert data.since_last_message == 0
    assert data.on_user_leave is False


def test_one_failed_lookup_fails_the_record(db, monkeypatch):
    def get_naming_scheme(guild_id):
        raise sqlite3.OperationalError("database is locked")

    monkeypatch.setattr(db, "get_naming_scheme", get_naming_scheme)

    with pytest.raises(DataFetchError, match="get_naming_scheme"):
        asyncio.run(get_settings(db, GUILD_ID))
