"""
Unit tests for the recurring swap scheduler.

Schedules are driven with a ManualClock; executions use a mocked
executor.
"""

import asyncio
import pytest
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock
import sys
from pathlib import Path

# Add parent to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from solders.keypair import Keypair

from swapkit.automation.registry import TimedRegistry
from swapkit.automation.scheduler import Scheduler
from swapkit.core.clock import ManualClock
from swapkit.core.errors import (
    InvalidCron,
    InvalidRequest,
    ScheduledSwapNotFound,
    TransactionFailed,
)
from swapkit.core.events import EventBus, EventType
from swapkit.core.signer import Signable


def make_scheduler(execute=None):
    keypair = Keypair()
    owner = str(keypair.pubkey())
    executor = MagicMock()
    executor.execute_swap = execute or AsyncMock(return_value=MagicMock(signature="sig123"))
    events = EventBus()
    received = []
    events.subscribe(None, received.append)
    clock = ManualClock()
    scheduler = Scheduler(executor, lambda address: Signable(keypair), events=events, clock=clock)
    return scheduler, executor, clock, owner, received


def types_of(received):
    return [event.type for event in received]


class TestRegistration:
    """Test scheduling validation and bookkeeping."""

    def test_invalid_cron_not_registered(self):
        """Invalid cron fails before anything is added."""
        scheduler, _, _, owner, received = make_scheduler()

        with pytest.raises(InvalidCron):
            scheduler.schedule_recurring_swap("not-a-cron", "USDC", "SOL", 100, owner)

        assert len(scheduler.get_scheduled_swaps()) == 0
        assert received == []

    @pytest.mark.parametrize("amount", [0, -1, 2.5])
    def test_invalid_amount_not_registered(self, amount):
        """Non-positive or fractional amounts are rejected."""
        scheduler, _, _, owner, _ = make_scheduler()
        with pytest.raises(InvalidRequest):
            scheduler.schedule_recurring_swap("* * * * *", "USDC", "SOL", amount, owner)
        assert scheduler.get_scheduled_swaps() == []

    def test_invalid_owner_not_registered(self):
        """Owner must be a valid public key."""
        scheduler, _, _, _, _ = make_scheduler()
        with pytest.raises(InvalidRequest):
            scheduler.schedule_recurring_swap("* * * * *", "USDC", "SOL", 100, "nobody")
        assert scheduler.get_scheduled_swaps() == []

    def test_schedule_emits_event(self):
        """Scheduling publishes swapScheduled with the config."""
        scheduler, _, clock, owner, received = make_scheduler()

        swap_id = scheduler.schedule_recurring_swap("*/5 * * * *", "USDC", "SOL", 100, owner)

        config = scheduler.get_scheduled_swap(swap_id)
        assert swap_id.startswith("swap_")
        assert config.enabled is True
        assert config.created_at == clock.now()
        assert config.next_execution_at is None  # not started
        assert types_of(received) == [EventType.SWAP_SCHEDULED]
        assert received[0].payload["config"] is config

    def test_start_arms_next_execution(self):
        """Starting computes the next cron fire time."""
        scheduler, _, _, owner, _ = make_scheduler()
        swap_id = scheduler.schedule_recurring_swap("*/5 * * * *", "USDC", "SOL", 100, owner)

        scheduler.start()

        expected = datetime(2024, 1, 1, 0, 5, tzinfo=timezone.utc)
        assert scheduler.get_scheduled_swap(swap_id).next_execution_at == expected

    def test_cancel_round_trip(self):
        """Cancelled ids disappear and a second cancel fails."""
        scheduler, _, _, owner, received = make_scheduler()
        swap_id = scheduler.schedule_recurring_swap("* * * * *", "USDC", "SOL", 100, owner)

        scheduler.cancel_scheduled_swap(swap_id)

        assert swap_id not in [c.id for c in scheduler.get_scheduled_swaps()]
        assert received[-1].type == EventType.SWAP_CANCELLED
        assert received[-1].payload["id"] == swap_id
        with pytest.raises(ScheduledSwapNotFound):
            scheduler.cancel_scheduled_swap(swap_id)

    def test_registry_base_is_abstract(self):
        """The shared registry cannot be used without a fire implementation."""
        with pytest.raises(TypeError):
            TimedRegistry()

    def test_toggle_unknown_id(self):
        """Toggling an unknown id fails."""
        scheduler, _, _, _, _ = make_scheduler()
        with pytest.raises(ScheduledSwapNotFound):
            scheduler.toggle_scheduled_swap("swap_missing", False)


class TestExecution:
    """Test scheduled fires."""

    def test_tick_executes_once(self):
        """One due tick executes once and records lastExecutedAt."""
        scheduler, executor, clock, owner, received = make_scheduler()

        async def scenario():
            swap_id = scheduler.schedule_recurring_swap("* * * * *", "USDC", "SOL", 100, owner)
            scheduler.start()

            assert await scheduler.run_pending() == []  # not due yet

            clock.advance(60)
            tasks = await scheduler.run_pending()
            await asyncio.gather(*tasks)
            return swap_id, len(tasks)

        swap_id, fired = asyncio.run(scenario())

        config = scheduler.get_scheduled_swap(swap_id)
        assert fired == 1
        assert config.last_executed_at == clock.now()
        assert types_of(received).count(EventType.SWAP_EXECUTED) == 1
        executor.execute_swap.assert_awaited_once()
        input_asset, output_asset, amount, signer, options = executor.execute_swap.call_args.args
        assert (input_asset, output_asset, amount) == ("USDC", "SOL", 100)
        assert options.slippage_bps is None

    def test_failure_keeps_schedule_enabled(self):
        """A failed tick reports swapFailed and the next tick still fires."""
        execute = AsyncMock(side_effect=[TransactionFailed("boom"), MagicMock(signature="sig2")])
        scheduler, _, clock, owner, received = make_scheduler(execute)

        async def scenario():
            swap_id = scheduler.schedule_recurring_swap("* * * * *", "USDC", "SOL", 100, owner)
            scheduler.start()

            clock.advance(60)
            await asyncio.gather(*await scheduler.run_pending())
            config = scheduler.get_scheduled_swap(swap_id)
            assert config.enabled is True
            assert config.last_executed_at is None

            clock.advance(60)
            await asyncio.gather(*await scheduler.run_pending())
            return config

        config = asyncio.run(scenario())

        assert types_of(received).count(EventType.SWAP_FAILED) == 1
        assert types_of(received).count(EventType.SWAP_EXECUTED) == 1
        failed = next(e for e in received if e.type == EventType.SWAP_FAILED)
        assert isinstance(failed.payload["error"], TransactionFailed)
        assert config.last_executed_at == clock.now()

    def test_disabled_swap_does_not_fire(self):
        """Disabled entries are kept but never fire."""
        scheduler, executor, clock, owner, received = make_scheduler()

        async def scenario():
            swap_id = scheduler.schedule_recurring_swap("* * * * *", "USDC", "SOL", 100, owner)
            scheduler.start()
            scheduler.toggle_scheduled_swap(swap_id, False)
            clock.advance(120)
            return swap_id, await scheduler.run_pending()

        swap_id, tasks = asyncio.run(scenario())

        assert tasks == []
        assert scheduler.get_scheduled_swap(swap_id).next_execution_at is None
        assert received[-1].payload == {"id": swap_id, "enabled": False}
        executor.execute_swap.assert_not_called()

    def test_stopped_scheduler_does_not_fire(self):
        """Stop disarms every entry."""
        scheduler, executor, clock, owner, _ = make_scheduler()

        async def scenario():
            scheduler.schedule_recurring_swap("* * * * *", "USDC", "SOL", 100, owner)
            scheduler.start()
            scheduler.stop()
            clock.advance(120)
            return await scheduler.run_pending()

        assert asyncio.run(scenario()) == []
        executor.execute_swap.assert_not_called()

    def test_missed_fires_not_replayed(self):
        """A long gap produces a single fire."""
        scheduler, executor, clock, owner, _ = make_scheduler()

        async def scenario():
            scheduler.schedule_recurring_swap("* * * * *", "USDC", "SOL", 100, owner)
            scheduler.start()
            clock.advance(600)
            await asyncio.gather(*await scheduler.run_pending())
            return await scheduler.run_pending()

        assert asyncio.run(scenario()) == []
        assert executor.execute_swap.await_count == 1

    def test_busy_entry_skips_overlapping_fire(self):
        """A fire still running when the entry comes due again is skipped."""
        release = None

        async def slow_execute(*args):
            await release.wait()
            return MagicMock(signature="slow")

        scheduler, executor, clock, owner, received = make_scheduler(AsyncMock(side_effect=slow_execute))

        async def scenario():
            nonlocal release
            release = asyncio.Event()
            scheduler.schedule_recurring_swap("* * * * *", "USDC", "SOL", 100, owner)
            scheduler.start()

            clock.advance(60)
            first = await scheduler.run_pending()
            await asyncio.sleep(0)

            clock.advance(60)
            second = await scheduler.run_pending()

            release.set()
            await asyncio.gather(*first)
            return first, second

        first, second = asyncio.run(scenario())

        assert len(first) == 1
        assert second == []
        assert executor.execute_swap.await_count == 1
        assert types_of(received).count(EventType.SWAP_EXECUTED) == 1

    def test_cancel_during_execution_discards_result(self):
        """An in-flight fire completes but its outcome is dropped."""
        release = None

        async def slow_execute(*args):
            await release.wait()
            return MagicMock(signature="late")

        scheduler, _, clock, owner, received = make_scheduler(AsyncMock(side_effect=slow_execute))

        async def scenario():
            nonlocal release
            release = asyncio.Event()
            swap_id = scheduler.schedule_recurring_swap("* * * * *", "USDC", "SOL", 100, owner)
            scheduler.start()

            clock.advance(60)
            tasks = await scheduler.run_pending()
            await asyncio.sleep(0)

            scheduler.cancel_scheduled_swap(swap_id)
            release.set()
            await asyncio.gather(*tasks)

        asyncio.run(scenario())

        assert EventType.SWAP_EXECUTED not in types_of(received)
        assert EventType.SWAP_FAILED not in types_of(received)
        assert types_of(received)[-1] == EventType.SWAP_CANCELLED

    def test_wait_idle_covers_cancelled_entry(self):
        """wait_idle still waits for a fire whose entry was cancelled."""
        release = None
        finished = []

        async def slow_execute(*args):
            await release.wait()
            finished.append(True)
            return MagicMock(signature="late")

        scheduler, _, clock, owner, _ = make_scheduler(AsyncMock(side_effect=slow_execute))

        async def scenario():
            nonlocal release
            release = asyncio.Event()
            swap_id = scheduler.schedule_recurring_swap("* * * * *", "USDC", "SOL", 100, owner)
            scheduler.start()

            clock.advance(60)
            await scheduler.run_pending()
            await asyncio.sleep(0)
            scheduler.cancel_scheduled_swap(swap_id)

            waiter = asyncio.create_task(scheduler.wait_idle())
            await asyncio.sleep(0.01)
            assert not waiter.done()

            release.set()
            await waiter

        asyncio.run(scenario())

        assert finished == [True]

    def test_signer_resolution_failure_reported(self):
        """An owner without a signer fails the fire, not the scheduler."""
        scheduler, executor, clock, owner, received = make_scheduler()

        def no_signer(address):
            raise RuntimeError(f"no signer for {address}")

        scheduler.signer_resolver = no_signer

        async def scenario():
            scheduler.schedule_recurring_swap("* * * * *", "USDC", "SOL", 100, owner)
            scheduler.start()
            clock.advance(60)
            await asyncio.gather(*await scheduler.run_pending())

        asyncio.run(scenario())

        assert types_of(received)[-1] == EventType.SWAP_FAILED
        executor.execute_swap.assert_not_called()


class TestServe:
    """Test the serve loop."""

    def test_serve_fires_and_exits_on_stop(self):
        """serve() fires due entries and returns after stop()."""
        scheduler, executor, clock, owner, received = make_scheduler()

        def stop_after_execution(event):
            scheduler.stop()

        scheduler.events.subscribe(EventType.SWAP_EXECUTED, stop_after_execution)

        async def scenario():
            scheduler.schedule_recurring_swap("* * * * *", "USDC", "SOL", 100, owner)
            scheduler.start()
            await asyncio.wait_for(scheduler.serve(), timeout=5)

        asyncio.run(scenario())

        assert executor.execute_swap.await_count == 1
        assert scheduler.running is False
