from calendar import timegm
from dataclasses import replace
from unittest.mock import AsyncMock, MagicMock, patch

import discord
import pytest

from conftest import NET, make_launch
from okto.services.discord_client import DiscordClient
from okto.storage.models import (
    DueReminder,
    LaunchStatus,
    NotificationClass,
    Subscriber,
    Target,
    VideoUrl,
)


def _due(notification_class=NotificationClass.REMINDER, target=None, minutes=60, mentions=(), **launch):
    return DueReminder(
        launch=make_launch(**launch),
        subscriber=Subscriber.guild(1001),
        notification_class=notification_class,
        target=target or Target.channel(555, 1001),
        minutes=minutes,
        mentions=mentions,
    )


@pytest.fixture
def client():
    return DiscordClient(token="token", max_retries=3)


def test_reminder_message_has_lead_time_and_discord_timestamp(client):
    message = client.format_message(_due(minutes=90))

    timestamp = timegm(NET.utctimetuple())
    assert "launches in 1 hour 30 minutes" in message
    assert f"<t:{timestamp}:F>" in message
    assert "Falcon 9 Block 5 (SpaceX)" in message


def test_channel_message_mentions_roles(client):
    message = client.format_message(_due(mentions=(77, 78)))

    assert message.splitlines()[0] == "<@&77> <@&78>"


def test_direct_message_has_no_role_mentions(client):
    message = client.format_message(_due(target=Target.direct_message(42), mentions=(77,)))

    assert "<@&77>" not in message


def test_status_change_messages(client):
    scrub = client.format_message(
        _due(NotificationClass.SCRUB, minutes=None, status=LaunchStatus.HOLD)
    )
    outcome = client.format_message(
        _due(NotificationClass.OUTCOME, minutes=None, status=LaunchStatus.PARTIAL_FAILURE)
    )

    assert "has been delayed (Hold)" in scrub
    assert "outcome: Partial Failure" in outcome


def test_reminder_message_links_first_stream(client):
    due = _due()
    due = replace(due, launch=replace(due.launch, vid_urls=(
        VideoUrl(priority=1, title="SpaceX", url="https://youtu.be/first"),
        VideoUrl(priority=2, title="NSF", url="https://youtu.be/second"),
    )))

    assert "Watch: https://youtu.be/first" in client.format_message(due)


@pytest.mark.asyncio
async def test_dispatch_sends_direct_message(client):
    user = MagicMock()
    user.send = AsyncMock()
    client.bot.get_user = MagicMock(return_value=user)

    assert await client.dispatch(_due(target=Target.direct_message(42)))

    client.bot.get_user.assert_called_once_with(42)
    user.send.assert_awaited_once()


@pytest.mark.asyncio
async def test_dispatch_retries_with_backoff(client):
    client.send_notification = AsyncMock(side_effect=[False, False, True])

    with patch("asyncio.sleep", new_callable=AsyncMock) as sleep:
        assert await client.dispatch(_due())

    assert client.send_notification.await_count == 3
    assert [call.args[0] for call in sleep.await_args_list] == [1, 2]


@pytest.mark.asyncio
async def test_dispatch_gives_up_after_max_retries(client):
    client.send_notification = AsyncMock(return_value=False)

    with patch("asyncio.sleep", new_callable=AsyncMock):
        assert not await client.dispatch(_due())

    assert client.send_notification.await_count == 3


@pytest.mark.asyncio
async def test_send_notification_handles_forbidden(client):
    user = MagicMock()
    response = MagicMock(status=403, reason="Forbidden")
    user.send = AsyncMock(side_effect=discord.errors.Forbidden(response, "Cannot send messages to this user"))
    client.bot.get_user = MagicMock(return_value=user)

    assert not await client.send_notification(_due(target=Target.direct_message(42)))
