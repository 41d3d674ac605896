"""Reminder scheduler: turns the launch cache and settings into due notifications"""
import asyncio
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Dict, List, Optional, Set

from .launch_cache import LaunchCache
from .subscription_resolver import (
    SettingsSnapshot,
    Subscription,
    SubscriptionResolver,
    classify_change,
)
from ..storage.database import Database, SettingsStoreError
from ..storage.models import SCRUB_STATUSES, DueReminder, LaunchRecord, NotificationClass
from ..utils.logger import setup_logger
from ..utils.timezone import now_utc

logger = setup_logger(__name__)

Dispatch = Callable[[DueReminder], Awaitable[bool]]


class ReminderScheduler:
    """
    Fixed-interval evaluation of lead-time and status-change notifications

    Every tick reads one cache snapshot and one settings snapshot and emits
    each DueReminder at most once per dedup key. Keys of launches that leave
    the cache are forgotten, so a launch that comes back is treated as new.
    """

    def __init__(
        self,
        cache: LaunchCache,
        database: Database,
        dispatch: Dispatch,
        resolver: Optional[SubscriptionResolver] = None,
        check_interval: float = 30
    ):
        """
        Initialize reminder scheduler

        Args:
            cache: Launch cache to read snapshots from
            database: Settings store to read subscriber settings from
            dispatch: Coroutine function delivering one DueReminder
            resolver: Subscription resolver, a default one if omitted
            check_interval: Seconds between evaluations
        """
        self.cache = cache
        self.database = database
        self.dispatch = dispatch
        self.resolver = resolver or SubscriptionResolver()
        self.check_interval = check_interval

        self._emitted: Dict[str, Set[tuple]] = {}
        self._last_seen: Dict[str, LaunchRecord] = {}
        self._dispatch_tasks: Set[asyncio.Task] = set()
        self._stop_event = asyncio.Event()
        self.running = False

    async def run(self):
        """Run the evaluation loop until stop() is called"""
        self.running = True
        self._stop_event.clear()
        logger.info(f"Starting reminder scheduler (check every {self.check_interval}s)")

        while not self._stop_event.is_set():
            try:
                self.tick()
            except Exception as e:
                logger.error(f"Error in reminder scheduler tick: {e}", exc_info=True)

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.check_interval)
            except asyncio.TimeoutError:
                pass

        self.running = False
        logger.info("Reminder scheduler stopped")

    def stop(self):
        """Stop the loop once the tick in progress, if any, has finished"""
        self._stop_event.set()
        logger.info("Stopping reminder scheduler")

    async def shutdown(self):
        """Stop the loop and wait for dispatches still in flight"""
        self.stop()
        if self._dispatch_tasks:
            logger.info(f"Waiting for {len(self._dispatch_tasks)} pending dispatches")
            await asyncio.gather(*self._dispatch_tasks, return_exceptions=True)

    @property
    def pending_dispatches(self) -> int:
        return len(self._dispatch_tasks)

    def tick(self, now: Optional[datetime] = None) -> List[DueReminder]:
        """
        Evaluate the cache once and hand due notifications to the dispatcher

        Args:
            now: Evaluation instant (naive UTC), the current time if omitted

        Returns:
            DueReminder objects emitted by this tick
        """
        due = self.evaluate(now)
        for reminder in due:
            self._hand_off(reminder)
        if due:
            logger.info(f"Emitted {len(due)} notification(s)")
        return due

    def evaluate(self, now: Optional[datetime] = None) -> List[DueReminder]:
        """
        Compute the notifications due at `now` and mark them emitted

        A failure reading the cache or the settings store aborts the
        evaluation without touching any bookkeeping.
        """
        now = now or now_utc()

        try:
            launches = self.cache.snapshot()
        except Exception as e:
            logger.error(f"Cannot read launch cache, skipping this tick: {e}")
            return []

        try:
            settings = SettingsSnapshot.load(self.database)
        except SettingsStoreError as e:
            logger.error(f"Cannot read settings store, skipping this tick: {e}")
            return []

        due: List[DueReminder] = []
        for launch in launches:
            previous = self._last_seen.get(launch.ll_id)
            try:
                if previous is not None:
                    self._rearm(previous, launch, now)
                if launch.net > now:
                    due.extend(self._lead_time_reminders(launch, settings, now))
                due.extend(self._status_change_notifications(previous, launch, settings))
                self._last_seen[launch.ll_id] = launch
            except Exception as e:
                logger.error(f"Error evaluating launch {launch.ll_id} ({launch.name}): {e}", exc_info=True)

        self._evict({launch.ll_id for launch in launches})
        return due

    def _lead_time_reminders(
        self,
        launch: LaunchRecord,
        settings: SettingsSnapshot,
        now: datetime
    ) -> List[DueReminder]:
        due = []
        lead_time = launch.net - now

        for subscription in self.resolver.resolve(launch, settings):
            if lead_time > timedelta(minutes=subscription.minutes):
                continue
            reminder = self._to_due(launch, subscription, NotificationClass.REMINDER)
            if self._mark_emitted(reminder):
                logger.debug(
                    f"{launch.name} is {lead_time} away, due {subscription.minutes}m reminder "
                    f"for {subscription.subscriber.kind.value} {subscription.subscriber.id}"
                )
                due.append(reminder)

        return due

    def _rearm(self, previous: LaunchRecord, launch: LaunchRecord, now: datetime):
        """
        Forget keys that no longer describe the launch

        Reminders whose lead time lies ahead again after a postponement fire
        again, and leaving a scrub status lets the next scrub be announced.
        """
        keys = self._emitted.get(launch.ll_id)
        if not keys:
            return

        rearmed = set()
        if launch.net > previous.net:
            lead_time = launch.net - now
            rearmed |= {
                key for key in keys
                if key[1] is NotificationClass.REMINDER and timedelta(minutes=key[4]) < lead_time
            }
        if previous.status in SCRUB_STATUSES and launch.status not in SCRUB_STATUSES:
            rearmed |= {key for key in keys if key[1] is NotificationClass.SCRUB}

        if rearmed:
            keys -= rearmed
            logger.info(
                f"{launch.name} changed (status {launch.status_name}, net {launch.net}), "
                f"re-armed {len(rearmed)} notification(s)"
            )

    def _status_change_notifications(
        self,
        previous: Optional[LaunchRecord],
        launch: LaunchRecord,
        settings: SettingsSnapshot
    ) -> List[DueReminder]:
        notification_class = classify_change(previous, launch)
        if notification_class is None:
            return []

        logger.info(
            f"{launch.name} changed: {notification_class.value} "
            f"(status {launch.status_name}, net {launch.net})"
        )
        due = []
        for subscription in self.resolver.resolve_status_change(launch, notification_class, settings):
            notification = self._to_due(launch, subscription, notification_class)
            if self._mark_emitted(notification):
                due.append(notification)
        return due

    def _to_due(
        self,
        launch: LaunchRecord,
        subscription: Subscription,
        notification_class: NotificationClass
    ) -> DueReminder:
        return DueReminder(
            launch=launch,
            subscriber=subscription.subscriber,
            notification_class=notification_class,
            target=subscription.target,
            minutes=subscription.minutes,
            mentions=subscription.mentions,
        )

    def _mark_emitted(self, reminder: DueReminder) -> bool:
        """Record the dedup key, returning False if it was already emitted"""
        keys = self._emitted.setdefault(reminder.launch.ll_id, set())
        key = reminder.dedup_key
        if key in keys:
            return False
        keys.add(key)
        return True

    def _evict(self, present_ids: Set[str]):
        for ll_id in list(self._emitted):
            if ll_id not in present_ids:
                del self._emitted[ll_id]
                logger.debug(f"Forgot notification keys for launch {ll_id}")
        for ll_id in list(self._last_seen):
            if ll_id not in present_ids:
                del self._last_seen[ll_id]

    def _hand_off(self, reminder: DueReminder):
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(
                f"No running event loop, dropping {reminder.notification_class.value} "
                f"notification for {reminder.launch.name}"
            )
            return

        task = loop.create_task(self._dispatch(reminder))
        self._dispatch_tasks.add(task)
        task.add_done_callback(self._dispatch_tasks.discard)

    async def _dispatch(self, reminder: DueReminder):
        try:
            delivered = await self.dispatch(reminder)
        except Exception as e:
            logger.error(
                f"Dispatch failed for {reminder.launch.name} to "
                f"{reminder.target.kind.value} {reminder.target.id}: {e}"
            )
            return
        if not delivered:
            logger.warning(
                f"Could not deliver {reminder.notification_class.value} notification for "
                f"{reminder.launch.name} to {reminder.target.kind.value} {reminder.target.id}"
            )
