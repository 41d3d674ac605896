"""Discord bot client delivering launch notifications"""
import asyncio
from calendar import timegm
from typing import Optional

import discord
from discord.ext import commands

from ..storage.models import DueReminder, NotificationClass, TargetKind
from ..utils.logger import setup_logger

logger = setup_logger(__name__)


class DiscordClient:
    """Discord bot client for notifications"""

    def __init__(self, token: str, max_retries: int = 3):
        """
        Initialize Discord client

        Args:
            token: Discord bot token
            max_retries: Delivery attempts per notification
        """
        self.token = token
        self.max_retries = max_retries

        intents = discord.Intents.default()
        self.bot = commands.Bot(command_prefix=';', intents=intents)

        self._setup_events()

    def _setup_events(self):
        """Set up Discord bot events"""
        @self.bot.event
        async def on_ready():
            logger.info(f"Discord bot logged in as {self.bot.user}")
            logger.info(f"Bot is ready, connected to {len(self.bot.guilds)} guild(s)")

    async def start(self):
        """Start the Discord bot"""
        await self.bot.start(self.token)

    async def close(self):
        """Close the Discord bot connection"""
        await self.bot.close()

    async def dispatch(self, due: DueReminder) -> bool:
        """
        Deliver a due notification, retrying with exponential backoff

        Args:
            due: Notification to deliver

        Returns:
            True if the notification was delivered
        """
        for attempt in range(self.max_retries):
            success = await self.send_notification(due)
            if success:
                return True

            if attempt < self.max_retries - 1:
                wait_time = 2 ** attempt
                logger.info(f"Retrying notification in {wait_time} seconds...")
                await asyncio.sleep(wait_time)

        logger.error(
            f"Failed to deliver {due.notification_class.value} notification for "
            f"{due.launch.name} after {self.max_retries} attempts"
        )
        return False

    async def send_notification(self, due: DueReminder) -> bool:
        """
        Send one notification to its target channel or user

        Args:
            due: Notification to send

        Returns:
            True if the notification was sent successfully
        """
        try:
            destination = await self._resolve_destination(due)
            if destination is None:
                return False

            await destination.send(self.format_message(due))

            logger.info(
                f"Sent {due.notification_class.value} notification for {due.launch.name} "
                f"to {due.target.kind.value} {due.target.id}"
            )
            return True

        except discord.errors.Forbidden as e:
            logger.error(f"Permission denied sending to {due.target.kind.value} {due.target.id}: {e}")
            return False
        except discord.errors.NotFound as e:
            logger.error(f"{due.target.kind.value} {due.target.id} not found: {e}")
            return False
        except discord.errors.HTTPException as e:
            logger.error(f"Discord API error sending notification: {e}")
            return False

    async def _resolve_destination(self, due: DueReminder) -> Optional[discord.abc.Messageable]:
        target = due.target
        if target.kind is TargetKind.DIRECT_MESSAGE:
            user = self.bot.get_user(target.id) or await self.bot.fetch_user(target.id)
            return user

        channel = self.bot.get_channel(target.id)
        if channel is None:
            channel = await self.bot.fetch_channel(target.id)
        if not isinstance(channel, discord.abc.Messageable):
            logger.error(f"Channel {target.id} cannot receive messages")
            return None

        guild = getattr(channel, "guild", None)
        if guild is not None and not channel.permissions_for(guild.me).send_messages:
            logger.error(f"Bot lacks permission to send messages in channel {target.id}")
            return None

        return channel

    def format_message(self, due: DueReminder) -> str:
        """
        Format notification message

        Args:
            due: Notification to format

        Returns:
            Formatted message string
        """
        launch = due.launch
        timestamp = timegm(launch.net.utctimetuple())

        if due.notification_class is NotificationClass.REMINDER:
            header = f"🚀 **{launch.name}** launches in {_format_minutes(due.minutes)}!"
        elif due.notification_class is NotificationClass.SCRUB:
            header = f"⏸️ **{launch.name}** has been delayed ({launch.status_name})"
        else:
            header = f"📣 **{launch.name}** outcome: {launch.status_name}"

        lines = [
            header,
            f"Vehicle: {launch.vehicle} ({launch.lsp})",
            f"Payload: {launch.payload}",
            f"Mission: {launch.mission_type}",
            f"Location: {launch.location}",
            f"NET: <t:{timestamp}:F> (<t:{timestamp}:R>)",
        ]

        if launch.vid_urls and due.notification_class is not NotificationClass.OUTCOME:
            lines.append(f"Watch: {launch.vid_urls[0].url}")

        message = "\n".join(lines)

        if due.target.kind is TargetKind.CHANNEL and due.mentions:
            mentions = " ".join(f"<@&{role}>" for role in due.mentions)
            message = mentions + "\n" + message

        return message


def _format_minutes(minutes: Optional[int]) -> str:
    if minutes is None:
        return "a moment"
    if minutes < 60:
        return f"{minutes} minute{'s' if minutes != 1 else ''}"
    hours, remainder = divmod(minutes, 60)
    text = f"{hours} hour{'s' if hours != 1 else ''}"
    if remainder:
        text += f" {remainder} minute{'s' if remainder != 1 else ''}"
    return text
