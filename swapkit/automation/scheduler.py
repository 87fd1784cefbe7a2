"""
Recurring swap scheduler for SwapKit.

Runs swaps on cron schedules. A failed execution is reported and
logged; it never stops the schedule.
"""

import logging
from typing import Callable, List, Optional

from swapkit.automation.registry import RegistryEntry, TimedRegistry
from swapkit.automation.schedule import CronSchedule
from swapkit.core.errors import InvalidRequest, ScheduledSwapNotFound
from swapkit.core.events import EventBus, EventType
from swapkit.core.mints import resolve_mint
from swapkit.core.models import RecurringSwapConfig, SwapOptions
from swapkit.core.signer import Signer, parse_pubkey

logger = logging.getLogger(__name__)

SignerResolver = Callable[[str], Signer]


def validate_amount(amount) -> int:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise InvalidRequest(f"Amount must be a positive integer in smallest units, got {amount!r}")
    return amount


class Scheduler(TimedRegistry):
    """
    Registry of recurring swaps.

    Each entry moves Enabled <-> Disabled until cancelled.
    """

    id_prefix = "swap"

    def __init__(
        self,
        executor,
        signer_resolver: SignerResolver,
        events: Optional[EventBus] = None,
        clock=None,
        max_idle_sleep: float = 1.0,
    ):
        """
        Initialize scheduler.

        Args:
            executor: Object with an async execute_swap(...) method
            signer_resolver: Maps an owner address to its signer
            events: Event channel for lifecycle events
            clock: Clock source (SystemClock by default)
            max_idle_sleep: Upper bound on serve() sleeps, in seconds
        """
        super().__init__(events=events, clock=clock, max_idle_sleep=max_idle_sleep)
        self.executor = executor
        self.signer_resolver = signer_resolver

    def _not_found(self, entry_id: str) -> Exception:
        return ScheduledSwapNotFound(entry_id)

    def _on_rescheduled(self, entry: RegistryEntry) -> None:
        entry.item.next_execution_at = entry.next_fire_at

    def schedule_recurring_swap(
        self,
        cron_schedule: str,
        input_asset: str,
        output_asset: str,
        amount: int,
        owner_account: str,
        enabled: bool = True,
        max_slippage_bps: Optional[int] = None,
    ) -> str:
        """
        Schedule a recurring swap.

        Validation happens before anything is registered.

        Returns:
            Id of the new scheduled swap

        Raises:
            InvalidCron: on an invalid cron expression
            InvalidRequest: on invalid assets, amount or owner
        """
        schedule = CronSchedule(cron_schedule)
        resolve_mint(input_asset)
        resolve_mint(output_asset)
        validate_amount(amount)
        parse_pubkey(owner_account)
        if max_slippage_bps is not None and max_slippage_bps < 0:
            raise InvalidRequest(f"Slippage must not be negative, got {max_slippage_bps}")

        config = RecurringSwapConfig(
            id=self._new_id(),
            cron_schedule=schedule.expression,
            input_asset=input_asset,
            output_asset=output_asset,
            amount=amount,
            owner_account=owner_account,
            enabled=enabled,
            created_at=self.clock.now(),
            max_slippage_bps=max_slippage_bps,
        )

        self._add(RegistryEntry(id=config.id, item=config, schedule=schedule))

        logger.info(
            f"Scheduled swap {config.id}: {amount} {input_asset} -> {output_asset} "
            f"on '{config.cron_schedule}' ({'enabled' if enabled else 'disabled'})"
        )
        self.events.emit(EventType.SWAP_SCHEDULED, config=config)
        return config.id

    def get_scheduled_swaps(self) -> List[RecurringSwapConfig]:
        return [entry.item for entry in self._snapshot()]

    def get_scheduled_swap(self, swap_id: str) -> RecurringSwapConfig:
        return self._get(swap_id).item

    def cancel_scheduled_swap(self, swap_id: str) -> None:
        """
        Cancel a scheduled swap.

        An execution already in flight completes, but its outcome is
        discarded.

        Raises:
            ScheduledSwapNotFound: if the id is not registered
        """
        self._remove(swap_id)
        logger.info(f"Cancelled scheduled swap {swap_id}")
        self.events.emit(EventType.SWAP_CANCELLED, id=swap_id)

    def toggle_scheduled_swap(self, swap_id: str, enabled: bool) -> None:
        """
        Enable or disable a scheduled swap without losing it.

        Raises:
            ScheduledSwapNotFound: if the id is not registered
        """
        self._set_enabled(swap_id, enabled)
        logger.info(f"Scheduled swap {swap_id} {'enabled' if enabled else 'disabled'}")
        self.events.emit(EventType.SWAP_TOGGLED, id=swap_id, enabled=enabled)

    async def _fire(self, entry: RegistryEntry) -> None:
        config: RecurringSwapConfig = entry.item
        self.events.emit(EventType.SWAP_EXECUTING, config=config)

        try:
            signer = self.signer_resolver(config.owner_account)
            result = await self.executor.execute_swap(
                config.input_asset,
                config.output_asset,
                config.amount,
                signer,
                SwapOptions(slippage_bps=config.max_slippage_bps),
            )
        except Exception as e:
            if not self._is_current(entry):
                logger.info(f"Discarding failure of cancelled swap {config.id}: {e}")
                return
            # Reported, never raised: the schedule keeps running
            logger.error(f"Scheduled swap failed for {config.id}: {e}")
            self.events.emit(EventType.SWAP_FAILED, config=config, error=e)
            return

        if not self._is_current(entry):
            logger.info(f"Discarding result of cancelled swap {config.id}: {result.signature}")
            return

        config.last_executed_at = self.clock.now()
        logger.info(f"Scheduled swap {config.id} executed: {result.signature}")
        self.events.emit(EventType.SWAP_EXECUTED, config=config, result=result)
