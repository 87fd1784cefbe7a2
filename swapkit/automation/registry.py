"""
Timed registry shared by the scheduler and the trigger monitor.

Each entry carries its own next fire time. run_pending() fires every
due entry as an independent task; serve() keeps calling it while the
registry is running.
"""

import asyncio
import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Set, Union

from swapkit.automation.schedule import CronSchedule, IntervalSchedule
from swapkit.core.clock import SystemClock
from swapkit.core.events import EventBus

logger = logging.getLogger(__name__)

Schedule = Union[CronSchedule, IntervalSchedule]


@dataclass
class RegistryEntry:
    """A registered item with its schedule and fire state."""
    id: str
    item: Any
    schedule: Schedule
    next_fire_at: Optional[datetime] = None
    task: Optional[asyncio.Task] = None

    @property
    def enabled(self) -> bool:
        return self.item.enabled

    @property
    def busy(self) -> bool:
        return self.task is not None and not self.task.done()


class TimedRegistry(ABC):
    """
    Base registry of entries fired on their own schedules.

    Subclasses implement _fire(). Entries registered before start() stay
    unarmed until the registry starts.

    Entries are armed (have a next fire time) only while the registry
    is running and the entry is enabled. A fire that is still running
    when its entry comes due again causes that fire to be skipped.
    """

    id_prefix = "entry"

    def __init__(self, events: Optional[EventBus] = None, clock=None, max_idle_sleep: float = 1.0):
        self.events = events or EventBus()
        self.clock = clock or SystemClock()
        self.max_idle_sleep = max_idle_sleep
        self.running = False
        self._entries: Dict[str, RegistryEntry] = {}
        self._in_flight: Set[asyncio.Task] = set()

    def __len__(self) -> int:
        return len(self._entries)

    def _new_id(self) -> str:
        return f"{self.id_prefix}_{uuid.uuid4().hex}"

    def _not_found(self, entry_id: str) -> Exception:
        return KeyError(entry_id)

    @abstractmethod
    async def _fire(self, entry: RegistryEntry) -> None:
        """Run one fire of the entry."""

    def _on_rescheduled(self, entry: RegistryEntry) -> None:
        """Hook called whenever an entry's next fire time changes."""

    def _arm(self, entry: RegistryEntry) -> None:
        if self.running and entry.enabled:
            entry.next_fire_at = entry.schedule.next_after(self.clock.now())
        else:
            entry.next_fire_at = None
        self._on_rescheduled(entry)

    def _add(self, entry: RegistryEntry) -> None:
        self._arm(entry)
        self._entries[entry.id] = entry

    def _get(self, entry_id: str) -> RegistryEntry:
        entry = self._entries.get(entry_id)
        if entry is None:
            raise self._not_found(entry_id)
        return entry

    def _remove(self, entry_id: str) -> RegistryEntry:
        entry = self._entries.pop(entry_id, None)
        if entry is None:
            raise self._not_found(entry_id)
        entry.next_fire_at = None
        self._on_rescheduled(entry)
        return entry

    def _set_enabled(self, entry_id: str, enabled: bool) -> RegistryEntry:
        entry = self._get(entry_id)
        entry.item.enabled = enabled
        self._arm(entry)
        return entry

    def _is_current(self, entry: RegistryEntry) -> bool:
        """False once the entry has been removed from the registry."""
        return self._entries.get(entry.id) is entry

    def _snapshot(self) -> List[RegistryEntry]:
        return list(self._entries.values())

    def start(self) -> None:
        """Arm every enabled entry."""
        if self.running:
            return
        self.running = True
        for entry in self._snapshot():
            self._arm(entry)

    def stop(self) -> None:
        """Disarm every entry. In-flight fires run to completion."""
        if not self.running:
            return
        self.running = False
        for entry in self._snapshot():
            self._arm(entry)

    async def run_pending(self) -> List[asyncio.Task]:
        """
        Fire every entry that is due.

        The next fire time is computed from the current clock reading,
        so missed fires are not replayed.

        Returns:
            Tasks started by this call
        """
        now = self.clock.now()
        started: List[asyncio.Task] = []

        for entry in self._snapshot():
            if entry.next_fire_at is None or entry.next_fire_at > now:
                continue
            if not self._is_current(entry):
                continue

            entry.next_fire_at = entry.schedule.next_after(now)
            self._on_rescheduled(entry)

            if entry.busy:
                logger.warning(f"Skipping fire of {entry.id}: previous run still in progress")
                continue

            task = asyncio.create_task(self._fire(entry), name=f"fire-{entry.id}")
            self._in_flight.add(task)
            task.add_done_callback(self._in_flight.discard)
            entry.task = task
            started.append(task)

        return started

    def seconds_until_next(self) -> Optional[float]:
        """Seconds until the earliest armed entry is due, or None."""
        upcoming = [e.next_fire_at for e in self._snapshot() if e.next_fire_at is not None]
        if not upcoming:
            return None
        return max(0.0, (min(upcoming) - self.clock.now()).total_seconds())

    async def serve(self) -> None:
        """Fire due entries until stopped."""
        while self.running:
            await self.run_pending()
            wait = self.seconds_until_next()
            if wait is None or wait > self.max_idle_sleep:
                wait = self.max_idle_sleep
            await self.clock.sleep(wait)

    async def wait_idle(self) -> None:
        """Wait for every in-flight fire to finish, including fires of removed entries."""
        tasks = list(self._in_flight)
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
