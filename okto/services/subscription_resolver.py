"""Subscription resolution: who gets notified about a launch, and where"""
from dataclasses import dataclass
from typing import Iterable, Optional, Set, Tuple

from ..storage.database import Database
from ..storage.models import (
    OUTCOME_STATUSES,
    SCRUB_STATUSES,
    AnySettings,
    GuildSettings,
    LaunchRecord,
    NotificationClass,
    ReminderSettings,
    Subscriber,
    SubscriberKind,
    SubscriberReminders,
    Target,
    UserSettings,
)
from ..utils.logger import setup_logger

logger = setup_logger(__name__)


@dataclass(frozen=True)
class Subscription:
    """A subscriber resolved to one delivery target"""
    subscriber: Subscriber
    settings: AnySettings
    target: Target
    minutes: Optional[int] = None
    mentions: Tuple[int, ...] = ()


@dataclass(frozen=True)
class SettingsSnapshot:
    """Point-in-time copy of the settings store used for one evaluation"""
    subscribers: Tuple[SubscriberReminders, ...] = ()
    guilds: Tuple[GuildSettings, ...] = ()
    users: Tuple[UserSettings, ...] = ()

    @classmethod
    def load(cls, store: Database) -> "SettingsSnapshot":
        """
        Read everything the scheduler needs from the settings store

        Raises:
            SettingsStoreError: If the store cannot be read at all
        """
        snapshot = cls(
            subscribers=tuple(store.list_subscribers_with_reminders()),
            guilds=tuple(store.list_guild_settings()),
            users=tuple(store.list_user_settings()),
        )
        logger.debug(
            f"Loaded settings: {len(snapshot.subscribers)} subscribers with reminders, "
            f"{len(snapshot.guilds)} guilds, {len(snapshot.users)} users"
        )
        return snapshot

    def reminder_channels(self, guild_id: int) -> Tuple[int, ...]:
        """Channels a guild receives reminders in, in rule order"""
        channels = []
        for entry in self.subscribers:
            if entry.subscriber != Subscriber.guild(guild_id):
                continue
            for reminder in entry.reminders:
                for target in reminder.channels:
                    if target.guild == guild_id and target.channel not in channels:
                        channels.append(target.channel)
        return tuple(channels)


def classify_change(
    previous: Optional[LaunchRecord],
    current: LaunchRecord
) -> Optional[NotificationClass]:
    """
    Decide whether a launch changed in a way subscribers are told about

    Args:
        previous: The record seen on the previous evaluation, if any
        current: The record in the latest snapshot

    Returns:
        NotificationClass.OUTCOME or NotificationClass.SCRUB, or None
    """
    if previous is None:
        return None

    if current.status != previous.status:
        if current.status in OUTCOME_STATUSES:
            return NotificationClass.OUTCOME
        if current.status in SCRUB_STATUSES:
            return NotificationClass.SCRUB

    if current.net > previous.net and current.status not in OUTCOME_STATUSES:
        return NotificationClass.SCRUB

    return None


class SubscriptionResolver:
    """Applies subscriber filters and targeting rules to launches"""

    def is_filtered(self, launch: LaunchRecord, settings: ReminderSettings) -> bool:
        """
        Check whether a subscriber filters a launch out

        A filter matches when it is a case-insensitive substring of the
        launch vehicle, provider or mission type.
        """
        fields = (
            launch.vehicle.lower(),
            launch.lsp.lower(),
            launch.mission_type.lower(),
        )
        for launch_filter in settings.get_filters():
            needle = launch_filter.strip().lower()
            if needle and any(needle in value for value in fields):
                return True
        return False

    def resolve(
        self,
        launch: LaunchRecord,
        snapshot: SettingsSnapshot
    ) -> Set[Subscription]:
        """
        Resolve the lead-time reminder subscriptions for a launch

        Scrub and outcome toggles do not apply here.

        Args:
            launch: Launch to resolve subscribers for
            snapshot: Settings for this evaluation

        Returns:
            Set of subscriptions, one per (subscriber, target, lead time)
        """
        subscriptions: Set[Subscription] = set()

        for entry in snapshot.subscribers:
            if self.is_filtered(launch, entry.settings):
                logger.debug(
                    f"{entry.subscriber.kind.value} {entry.subscriber.id} filters out {launch.name}"
                )
                continue

            for reminder in entry.reminders:
                for target in self._reminder_targets(entry, reminder.channels):
                    subscriptions.add(Subscription(
                        subscriber=entry.subscriber,
                        settings=entry.settings,
                        target=target,
                        minutes=reminder.minutes,
                        mentions=self._mentions(entry.settings),
                    ))

        return subscriptions

    def resolve_status_change(
        self,
        launch: LaunchRecord,
        notification_class: NotificationClass,
        snapshot: SettingsSnapshot
    ) -> Set[Subscription]:
        """
        Resolve the scrub or outcome subscriptions for a launch

        Guild roles are only mentioned when the guild has mention_others set.

        Args:
            launch: Launch whose status changed
            notification_class: NotificationClass.SCRUB or NotificationClass.OUTCOME
            snapshot: Settings for this evaluation

        Returns:
            Set of subscriptions, one per (subscriber, target)
        """
        subscriptions: Set[Subscription] = set()

        for guild in snapshot.guilds:
            if not self._wants(guild, notification_class) or self.is_filtered(launch, guild):
                continue

            if guild.notifications_channel is not None:
                channels: Iterable[int] = (guild.notifications_channel,)
            else:
                channels = snapshot.reminder_channels(guild.guild)
            if not channels:
                logger.debug(
                    f"Guild {guild.guild} wants {notification_class.value} "
                    f"notifications but has no channel to send them to"
                )
                continue

            for channel in channels:
                subscriptions.add(Subscription(
                    subscriber=guild.subscriber,
                    settings=guild,
                    target=Target.channel(channel, guild.guild),
                    mentions=guild.mentions if guild.mention_others else (),
                ))

        for user in snapshot.users:
            if not self._wants(user, notification_class) or self.is_filtered(launch, user):
                continue
            subscriptions.add(Subscription(
                subscriber=user.subscriber,
                settings=user,
                target=Target.direct_message(user.user),
            ))

        return subscriptions

    def _reminder_targets(self, entry: SubscriberReminders, channels) -> Set[Target]:
        if entry.subscriber.kind is SubscriberKind.USER:
            return {Target.direct_message(entry.subscriber.id)}

        guild_channels = [c.channel for c in channels if c.guild == entry.subscriber.id]
        if not guild_channels:
            return set()

        notifications_channel = getattr(entry.settings, "notifications_channel", None)
        if notifications_channel is not None:
            return {Target.channel(notifications_channel, entry.subscriber.id)}
        return {Target.channel(channel, entry.subscriber.id) for channel in guild_channels}

    def _mentions(self, settings: AnySettings) -> Tuple[int, ...]:
        return getattr(settings, "mentions", ())

    def _wants(self, settings: ReminderSettings, notification_class: NotificationClass) -> bool:
        if notification_class is NotificationClass.SCRUB:
            return settings.notify_scrub()
        if notification_class is NotificationClass.OUTCOME:
            return settings.notify_outcome()
        return False
