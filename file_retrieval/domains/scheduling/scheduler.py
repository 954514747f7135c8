"""
Scheduler - tick-driven loop that turns cron fire times into execution triggers.
"""

import asyncio
import logging
from collections import OrderedDict
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional

from file_retrieval.config import Settings
from file_retrieval.core.configuration_repository import ConfigurationRepository
from file_retrieval.core.cqrs.command_bus import CommandBus
from file_retrieval.core.events.configuration_events import (
    ConfigurationChanged,
    ConfigurationDeactivated,
    ConfigurationDeleted,
)
from file_retrieval.core.events.event_bus import DomainEventBus
from file_retrieval.domains.execution.commands import scheduled_trigger
from file_retrieval.domains.scheduling.schedule_evaluator import ScheduleEvaluator
from file_retrieval.models import Configuration, utcnow


class Scheduler:
    """
    Each tick evaluates every cached active configuration and triggers the ones
    whose cron expression has a fire time in (last checked, now].

    - Only the latest fire time in a window is triggered; earlier ones missed by a
      late tick are logged and skipped.
    - Every fire time is triggered at most once: its idempotency key
      "{client}:{config}:scheduled:{fire time}" is remembered, and the dispatcher
      deduplicates the same key again.
    - A failing configuration is logged and never stops the others.
    """

    def __init__(
        self,
        settings: Settings,
        configuration_repository: ConfigurationRepository,
        command_bus: CommandBus,
        event_bus: DomainEventBus,
        evaluator: Optional[ScheduleEvaluator] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._configurations = configuration_repository
        self._command_bus = command_bus
        self._event_bus = event_bus
        self._evaluator = evaluator or ScheduleEvaluator()
        self._clock = clock

        self._tick_interval = timedelta(seconds=settings.scheduler_tick_seconds)
        self._startup_delay = settings.scheduler_startup_delay_seconds
        self._history_size = settings.trigger_history_size

        self._cache: Dict[str, Configuration] = {}
        self._cache_loaded = False
        self._last_checked: Dict[str, datetime] = {}
        self._fired_keys: "OrderedDict[str, None]" = OrderedDict()
        self._tick_lock = asyncio.Lock()
        self._subscribed = False

        self._running = False
        self._loop_task: Optional[asyncio.Task] = None

        logging.info(f"Scheduler initialiseret (tick hvert {settings.scheduler_tick_seconds}s)")

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def cached_configuration_ids(self):
        return set(self._cache)

    async def start(self) -> None:
        if self._running:
            logging.warning("Scheduler kører allerede")
            return

        await self.subscribe()
        self._running = True
        self._loop_task = asyncio.create_task(self._tick_loop())
        logging.info("Scheduler startet")

    async def stop(self) -> None:
        if not self._running:
            return

        self._running = False
        if self._loop_task and not self._loop_task.done():
            self._loop_task.cancel()
            try:
                await self._loop_task
            except asyncio.CancelledError:
                logging.debug("Scheduler task cancelled")
        self._loop_task = None
        logging.info("Scheduler stoppet")

    async def subscribe(self) -> None:
        if not self._subscribed:
            await self._event_bus.subscribe(ConfigurationChanged, self.handle_configuration_changed)
            self._subscribed = True

    async def _tick_loop(self) -> None:
        try:
            if self._startup_delay:
                await asyncio.sleep(self._startup_delay)
            while self._running:
                try:
                    await self.tick()
                except Exception as e:
                    logging.error(f"Fejl i scheduler tick: {e}", exc_info=True)
                await asyncio.sleep(self._tick_interval.total_seconds())
        except asyncio.CancelledError:
            logging.info("Scheduler loop cancelled")
            raise
        finally:
            self._running = False

    async def refresh_cache(self) -> None:
        active = await self._configurations.list_active()
        self._cache = {c.id: c for c in active}
        self._cache_loaded = True
        for stale_id in set(self._last_checked) - set(self._cache):
            del self._last_checked[stale_id]
        logging.info(f"Scheduler cache opdateret: {len(self._cache)} aktive configurations")

    async def handle_configuration_changed(self, event: ConfigurationChanged) -> None:
        """Keep the cache in step with configuration lifecycle events."""
        if isinstance(event, (ConfigurationDeleted, ConfigurationDeactivated)):
            self._forget(event.configuration_id)
            logging.info(f"Configuration {event.configuration_id} fjernet fra scheduler cache")
            return

        configuration = await self._configurations.get(event.client_id, event.configuration_id)
        if configuration is None or not configuration.is_active:
            self._forget(event.configuration_id)
            return

        previous = self._cache.get(configuration.id)
        self._cache[configuration.id] = configuration
        if previous is not None and (
            previous.cron_expression != configuration.cron_expression
            or previous.timezone != configuration.timezone
        ):
            # New schedule applies from now on
            self._last_checked[configuration.id] = self._clock()
        logging.info(f"Configuration {configuration.id} ({configuration.name}) opdateret i scheduler cache")

    def _forget(self, configuration_id: str) -> None:
        self._cache.pop(configuration_id, None)
        self._last_checked.pop(configuration_id, None)

    async def tick(self, now: Optional[datetime] = None) -> int:
        """
        Evaluate all cached configurations once.

        Returns:
            The number of triggers issued.
        """
        async with self._tick_lock:
            now = now or self._clock()
            if not self._cache_loaded:
                await self.refresh_cache()

            triggered = 0
            for configuration in list(self._cache.values()):
                try:
                    if await self._evaluate(configuration, now):
                        triggered += 1
                except Exception as e:
                    logging.error(
                        f"Scheduler kunne ikke evaluere configuration {configuration.id} "
                        f"({configuration.name}): {e}",
                        exc_info=True,
                    )

            if triggered:
                logging.info(f"Scheduler tick {now.isoformat()}: {triggered} trigger(s) udsendt")
            return triggered

    async def _evaluate(self, configuration: Configuration, now: datetime) -> bool:
        last_checked = self._last_checked.get(configuration.id, now - self._tick_interval)
        if now <= last_checked:
            return False

        fire_times = self._evaluator.fire_times_between(
            configuration.cron_expression, configuration.timezone, last_checked, now
        )
        self._last_checked[configuration.id] = now
        if not fire_times:
            return False

        if len(fire_times) > 1:
            logging.warning(
                f"Configuration {configuration.id}: {len(fire_times) - 1} fire time(s) missed "
                f"since {last_checked.isoformat()}, only {fire_times[-1].isoformat()} triggers"
            )

        command = scheduled_trigger(configuration.client_id, configuration.id, fire_times[-1])
        if command.idempotency_key in self._fired_keys:
            logging.debug(f"Fire time {command.idempotency_key} allerede triggered")
            return False
        self._remember(command.idempotency_key)

        logging.info(f"Trigger {command.idempotency_key} for {configuration.name}")
        await self._command_bus.execute(command)
        return True

    def _remember(self, key: str) -> None:
        self._fired_keys[key] = None
        while len(self._fired_keys) > self._history_size:
            self._fired_keys.popitem(last=False)
