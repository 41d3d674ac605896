import sqlite3

import pytest

from okto.storage.database import Database, MalformedSettingsError, SettingsStoreError
from okto.storage.models import (
    ChannelReminder,
    GuildSettings,
    Reminder,
    Subscriber,
    UserSettings,
)


def _write_raw(database: Database, table: str, key_column: str, key, document: str):
    conn = sqlite3.connect(str(database.db_path))
    conn.execute(
        f"INSERT OR REPLACE INTO {table} ({key_column}, document, updated_at) VALUES (?, ?, ?)",
        (key, document, "2026-10-18T00:00:00"),
    )
    conn.commit()
    conn.close()


def test_guild_settings_round_trip(database):
    settings = GuildSettings(
        guild=1001,
        filters=("falcon",),
        mentions=(77,),
        scrub_notifications=True,
        notifications_channel=555,
    )
    database.upsert_guild_settings(settings)

    assert database.get_guild_settings(1001) == settings
    assert database.get_guild_settings(9999) is None


def test_user_settings_defaults_for_missing_fields(database):
    _write_raw(database, "user_settings", "user_id", "42", '{"user": 42}')

    settings = database.get_user_settings(42)

    assert settings == UserSettings(user=42)
    assert settings.get_filters() == ()
    assert not settings.notify_scrub()
    assert not settings.notify_outcome()


def test_get_malformed_document_raises(database):
    _write_raw(database, "guild_settings", "guild_id", "1001", "{not json")

    with pytest.raises(MalformedSettingsError):
        database.get_guild_settings(1001)


def test_list_skips_malformed_documents(database):
    database.upsert_user_settings(UserSettings(user=1, outcome_notifications=True))
    _write_raw(database, "user_settings", "user_id", "2", '{"user": "not a number"}')
    _write_raw(database, "user_settings", "user_id", "3", '["a", "list"]')

    assert database.list_user_settings() == [UserSettings(user=1, outcome_notifications=True)]


def test_reminders_are_ordered_and_deletable(database):
    database.upsert_reminder(Reminder(minutes=60, users=(1,)))
    database.upsert_reminder(Reminder(
        minutes=15,
        channels=(ChannelReminder(guild=1001, channel=555),),
    ))

    assert [r.minutes for r in database.list_reminders()] == [15, 60]
    assert database.list_reminders()[0].channels == (ChannelReminder(1001, 555),)

    database.delete_reminder(15)

    assert [r.minutes for r in database.list_reminders()] == [60]


def test_subscribers_with_reminders_are_grouped(database):
    database.upsert_guild_settings(GuildSettings(guild=1001, mentions=(77,)))
    database.upsert_reminder(Reminder(
        minutes=60,
        channels=(ChannelReminder(guild=1001, channel=555),),
        users=(42,),
    ))
    database.upsert_reminder(Reminder(minutes=15, users=(42,)))

    entries = {e.subscriber: e for e in database.list_subscribers_with_reminders()}

    guild = entries[Subscriber.guild(1001)]
    assert guild.settings.mentions == (77,)
    assert [r.minutes for r in guild.reminders] == [60]

    user = entries[Subscriber.user(42)]
    assert user.settings == UserSettings(user=42)
    assert [r.minutes for r in user.reminders] == [15, 60]


def test_subscriber_with_malformed_settings_is_skipped(database):
    _write_raw(database, "guild_settings", "guild_id", "1001", '{"guild": 1001, "mentions": ["x"]}')
    database.upsert_reminder(Reminder(
        minutes=60,
        channels=(ChannelReminder(guild=1001, channel=555),),
        users=(42,),
    ))

    subscribers = [e.subscriber for e in database.list_subscribers_with_reminders()]

    assert subscribers == [Subscriber.user(42)]


def test_unreadable_database_raises_store_error(database):
    database.db_path.unlink()
    database.db_path.mkdir()

    with pytest.raises(SettingsStoreError):
        database.list_reminders()
