"""SQLite settings store for guild settings, user settings and reminder rules

Every row holds one JSON document keyed by guild id, user id or reminder
minutes. Documents are decoded on read; a document that cannot be decoded is
reported as MalformedSettingsError by the single-row getters and skipped by
the list operations.
"""
import json
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, List, Optional

from .models import (
    ChannelReminder,
    GuildSettings,
    Reminder,
    Subscriber,
    SubscriberKind,
    SubscriberReminders,
    UserSettings,
)
from ..utils.logger import setup_logger
from ..utils.timezone import now_utc

logger = setup_logger(__name__)


class SettingsStoreError(Exception):
    """The settings store could not be read or written"""


class MalformedSettingsError(ValueError):
    """A stored settings document could not be decoded"""


class Database:
    """SQLite database manager for subscriber settings and reminders"""

    def __init__(self, db_path: str = "data/okto.db"):
        """Initialize database connection"""
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _init_db(self):
        """Create tables if they don't exist"""
        with self._get_connection() as conn:
            cursor = conn.cursor()

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS guild_settings (
                    guild_id TEXT PRIMARY KEY,
                    document TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS user_settings (
                    user_id TEXT PRIMARY KEY,
                    document TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS reminders (
                    minutes INTEGER PRIMARY KEY,
                    document TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)

            conn.commit()

    @contextmanager
    def _get_connection(self):
        """Get database connection with context manager"""
        try:
            conn = sqlite3.connect(str(self.db_path))
        except sqlite3.Error as e:
            raise SettingsStoreError(f"Cannot open settings database {self.db_path}: {e}") from e
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        except sqlite3.Error as e:
            raise SettingsStoreError(f"Settings database error: {e}") from e
        finally:
            conn.close()

    # Writes

    def upsert_guild_settings(self, settings: GuildSettings):
        """Insert or replace the settings document of a guild"""
        document = {
            "guild": settings.guild,
            "filters": list(settings.filters),
            "mentions": list(settings.mentions),
            "scrub_notifications": settings.scrub_notifications,
            "outcome_notifications": settings.outcome_notifications,
            "mention_others": settings.mention_others,
            "notifications_channel": settings.notifications_channel,
        }
        self._upsert_document("guild_settings", "guild_id", str(settings.guild), document)

    def upsert_user_settings(self, settings: UserSettings):
        """Insert or replace the settings document of a user"""
        document = {
            "user": settings.user,
            "filters": list(settings.filters),
            "scrub_notifications": settings.scrub_notifications,
            "outcome_notifications": settings.outcome_notifications,
        }
        self._upsert_document("user_settings", "user_id", str(settings.user), document)

    def upsert_reminder(self, reminder: Reminder):
        """Insert or replace the reminder rule for a lead time"""
        document = {
            "minutes": reminder.minutes,
            "channels": [
                {"guild": c.guild, "channel": c.channel} for c in reminder.channels
            ],
            "users": list(reminder.users),
        }
        self._upsert_document("reminders", "minutes", reminder.minutes, document)

    def delete_reminder(self, minutes: int):
        """Remove the reminder rule for a lead time"""
        with self._get_connection() as conn:
            conn.execute("DELETE FROM reminders WHERE minutes = ?", (minutes,))
            conn.commit()

    def _upsert_document(self, table: str, key_column: str, key, document: dict):
        with self._get_connection() as conn:
            conn.execute(
                f"INSERT OR REPLACE INTO {table} ({key_column}, document, updated_at) "
                f"VALUES (?, ?, ?)",
                (key, json.dumps(document), now_utc().isoformat())
            )
            conn.commit()

    # Reads

    def get_guild_settings(self, guild_id: int) -> Optional[GuildSettings]:
        """Get the settings of a guild, or None if it has none stored"""
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT document FROM guild_settings WHERE guild_id = ?", (str(guild_id),)
            ).fetchone()
        if row is None:
            return None
        return self._document_to_guild_settings(row['document'])

    def get_user_settings(self, user_id: int) -> Optional[UserSettings]:
        """Get the settings of a user, or None if they have none stored"""
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT document FROM user_settings WHERE user_id = ?", (str(user_id),)
            ).fetchone()
        if row is None:
            return None
        return self._document_to_user_settings(row['document'])

    def list_guild_settings(self) -> List[GuildSettings]:
        """Get every decodable guild settings document"""
        with self._get_connection() as conn:
            rows = conn.execute("SELECT guild_id, document FROM guild_settings").fetchall()

        settings = []
        for row in rows:
            try:
                settings.append(self._document_to_guild_settings(row['document']))
            except MalformedSettingsError as e:
                logger.warning(f"Skipping guild {row['guild_id']}: {e}")
        return settings

    def list_user_settings(self) -> List[UserSettings]:
        """Get every decodable user settings document"""
        with self._get_connection() as conn:
            rows = conn.execute("SELECT user_id, document FROM user_settings").fetchall()

        settings = []
        for row in rows:
            try:
                settings.append(self._document_to_user_settings(row['document']))
            except MalformedSettingsError as e:
                logger.warning(f"Skipping user {row['user_id']}: {e}")
        return settings

    def list_reminders(self) -> List[Reminder]:
        """Get every decodable reminder rule, ordered by lead time"""
        with self._get_connection() as conn:
            rows = conn.execute(
                "SELECT minutes, document FROM reminders ORDER BY minutes ASC"
            ).fetchall()

        reminders = []
        for row in rows:
            try:
                reminders.append(self._document_to_reminder(row['document']))
            except MalformedSettingsError as e:
                logger.warning(f"Skipping reminder rule for {row['minutes']} minutes: {e}")
        return reminders

    def list_subscribers_with_reminders(self) -> List[SubscriberReminders]:
        """
        Group the reminder rules by the guilds and users they name

        Subscribers without a stored settings document get default settings.
        A subscriber whose document is malformed is left out of the result.

        Returns:
            List of SubscriberReminders, one per subscriber
        """
        grouped: Dict[Subscriber, List[Reminder]] = {}
        for reminder in self.list_reminders():
            for channel in reminder.channels:
                grouped.setdefault(Subscriber.guild(channel.guild), []).append(reminder)
            for user in reminder.users:
                grouped.setdefault(Subscriber.user(user), []).append(reminder)

        result = []
        for subscriber, reminders in grouped.items():
            try:
                if subscriber.kind is SubscriberKind.GUILD:
                    settings = (
                        self.get_guild_settings(subscriber.id)
                        or GuildSettings(guild=subscriber.id)
                    )
                else:
                    settings = (
                        self.get_user_settings(subscriber.id)
                        or UserSettings(user=subscriber.id)
                    )
            except MalformedSettingsError as e:
                logger.warning(
                    f"Skipping {subscriber.kind.value} {subscriber.id} with reminders: {e}"
                )
                continue
            result.append(SubscriberReminders(subscriber, settings, tuple(reminders)))

        return result

    # Document decoding

    def _load_document(self, raw: str) -> dict:
        try:
            document = json.loads(raw)
        except (TypeError, ValueError) as e:
            raise MalformedSettingsError(f"invalid JSON document: {e}") from e
        if not isinstance(document, dict):
            raise MalformedSettingsError("settings document is not an object")
        return document

    def _document_to_guild_settings(self, raw: str) -> GuildSettings:
        """Convert a stored document to a GuildSettings object"""
        document = self._load_document(raw)
        try:
            channel = document.get("notifications_channel")
            return GuildSettings(
                guild=int(document["guild"]),
                filters=tuple(str(f) for f in document.get("filters") or ()),
                mentions=tuple(int(r) for r in document.get("mentions") or ()),
                scrub_notifications=bool(document.get("scrub_notifications", False)),
                outcome_notifications=bool(document.get("outcome_notifications", False)),
                mention_others=bool(document.get("mention_others", False)),
                notifications_channel=int(channel) if channel is not None else None,
            )
        except (KeyError, TypeError, ValueError) as e:
            raise MalformedSettingsError(f"invalid guild settings: {e!r}") from e

    def _document_to_user_settings(self, raw: str) -> UserSettings:
        """Convert a stored document to a UserSettings object"""
        document = self._load_document(raw)
        try:
            return UserSettings(
                user=int(document["user"]),
                filters=tuple(str(f) for f in document.get("filters") or ()),
                scrub_notifications=bool(document.get("scrub_notifications", False)),
                outcome_notifications=bool(document.get("outcome_notifications", False)),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise MalformedSettingsError(f"invalid user settings: {e!r}") from e

    def _document_to_reminder(self, raw: str) -> Reminder:
        """Convert a stored document to a Reminder object"""
        document = self._load_document(raw)
        try:
            return Reminder(
                minutes=int(document["minutes"]),
                channels=tuple(
                    ChannelReminder(guild=int(c["guild"]), channel=int(c["channel"]))
                    for c in document.get("channels") or ()
                ),
                users=tuple(int(u) for u in document.get("users") or ()),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise MalformedSettingsError(f"invalid reminder: {e!r}") from e
