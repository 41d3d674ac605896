"""Data models for launches, reminder rules, subscriber settings and due reminders"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum, IntEnum
from typing import Optional, Protocol, Tuple, Union


class LaunchStatus(IntEnum):
    """Launch Library 2 status ids"""
    GO = 1
    TBD = 2
    SUCCESS = 3
    FAILURE = 4
    HOLD = 5
    IN_FLIGHT = 6
    PARTIAL_FAILURE = 7
    TBC = 8


SCRUB_STATUSES = frozenset({LaunchStatus.TBD, LaunchStatus.HOLD, LaunchStatus.TBC})
OUTCOME_STATUSES = frozenset({
    LaunchStatus.SUCCESS,
    LaunchStatus.FAILURE,
    LaunchStatus.PARTIAL_FAILURE,
})


@dataclass(frozen=True)
class VideoUrl:
    """A livestream link attached to a launch"""
    priority: int
    title: str
    url: str


@dataclass(frozen=True)
class LaunchRecord:
    """Immutable snapshot of a single launch"""
    ll_id: str
    name: str
    status: int
    payload: str
    vehicle: str
    location: str
    net: datetime  # authoritative launch instant, naive UTC
    launch_window: timedelta
    mission_type: str
    mission_description: str
    lsp: str
    vid_urls: Tuple[VideoUrl, ...] = ()
    rocket_img: Optional[str] = None
    id: int = 0

    @property
    def status_name(self) -> str:
        try:
            return LaunchStatus(self.status).name.replace("_", " ").title()
        except ValueError:
            return f"Status {self.status}"


class SubscriberKind(Enum):
    GUILD = "guild"
    USER = "user"


@dataclass(frozen=True)
class Subscriber:
    """Tagged identity of a guild or user that receives notifications"""
    kind: SubscriberKind
    id: int

    @classmethod
    def guild(cls, guild_id: int) -> "Subscriber":
        return cls(SubscriberKind.GUILD, guild_id)

    @classmethod
    def user(cls, user_id: int) -> "Subscriber":
        return cls(SubscriberKind.USER, user_id)


class TargetKind(Enum):
    CHANNEL = "channel"
    DIRECT_MESSAGE = "direct_message"


@dataclass(frozen=True)
class Target:
    """Where a notification is delivered"""
    kind: TargetKind
    id: int
    guild: Optional[int] = None

    @classmethod
    def channel(cls, channel_id: int, guild_id: Optional[int] = None) -> "Target":
        return cls(TargetKind.CHANNEL, channel_id, guild_id)

    @classmethod
    def direct_message(cls, user_id: int) -> "Target":
        return cls(TargetKind.DIRECT_MESSAGE, user_id)


@dataclass(frozen=True)
class ChannelReminder:
    guild: int
    channel: int


@dataclass(frozen=True)
class Reminder:
    """A lead-time rule: notify `minutes` before a launch's net"""
    minutes: int
    channels: Tuple[ChannelReminder, ...] = ()
    users: Tuple[int, ...] = ()

    def get_duration(self) -> timedelta:
        return timedelta(minutes=self.minutes)


class ReminderSettings(Protocol):
    """Capability shared by guild and user settings"""

    @property
    def subscriber(self) -> Subscriber: ...

    def get_filters(self) -> Tuple[str, ...]: ...

    def notify_scrub(self) -> bool: ...

    def notify_outcome(self) -> bool: ...


@dataclass(frozen=True)
class GuildSettings:
    guild: int
    filters: Tuple[str, ...] = ()
    mentions: Tuple[int, ...] = ()
    scrub_notifications: bool = False
    outcome_notifications: bool = False
    mention_others: bool = False
    notifications_channel: Optional[int] = None

    @property
    def subscriber(self) -> Subscriber:
        return Subscriber.guild(self.guild)

    def get_filters(self) -> Tuple[str, ...]:
        return self.filters

    def notify_scrub(self) -> bool:
        return self.scrub_notifications

    def notify_outcome(self) -> bool:
        return self.outcome_notifications


@dataclass(frozen=True)
class UserSettings:
    user: int
    filters: Tuple[str, ...] = ()
    scrub_notifications: bool = False
    outcome_notifications: bool = False

    @property
    def subscriber(self) -> Subscriber:
        return Subscriber.user(self.user)

    def get_filters(self) -> Tuple[str, ...]:
        return self.filters

    def notify_scrub(self) -> bool:
        return self.scrub_notifications

    def notify_outcome(self) -> bool:
        return self.outcome_notifications


AnySettings = Union[GuildSettings, UserSettings]


@dataclass(frozen=True)
class SubscriberReminders:
    """A subscriber, its settings and the reminder rules that name it"""
    subscriber: Subscriber
    settings: AnySettings
    reminders: Tuple[Reminder, ...]


class NotificationClass(Enum):
    REMINDER = "reminder"
    SCRUB = "scrub"
    OUTCOME = "outcome"


@dataclass(frozen=True)
class DueReminder:
    """One notification the scheduler wants delivered"""
    launch: LaunchRecord
    subscriber: Subscriber
    notification_class: NotificationClass
    target: Target
    minutes: Optional[int] = None
    mentions: Tuple[int, ...] = field(default=())

    @property
    def dedup_key(self) -> tuple:
        if self.notification_class is NotificationClass.REMINDER:
            return (
                self.launch.ll_id,
                self.notification_class,
                self.subscriber,
                self.target,
                self.minutes,
            )
        return (
            self.launch.ll_id,
            self.notification_class,
            self.subscriber,
            self.target,
            self.launch.status,
            self.launch.net,
        )
