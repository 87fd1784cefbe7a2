"""
SwapKit client.

Single entry point wiring the aggregator, ledger RPC, scheduler and
trigger monitor together from one Config.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Tuple

from solana.exceptions import SolanaRpcException
from solana.rpc.async_api import AsyncClient
from solana.rpc.core import RPCException
from solders.transaction import VersionedTransaction

from swapkit.automation.scheduler import Scheduler
from swapkit.automation.triggers import CustomCheck, Notifier, TriggerMonitor
from swapkit.core.clock import SystemClock
from swapkit.core.config import Config
from swapkit.core.errors import SwapKitError, WalletSigningRequired
from swapkit.core.events import EventBus, EventType, Handler
from swapkit.core.mints import SOL_MINT, USDC_MINT
from swapkit.core.models import (
    BalanceCheck,
    QuoteResponse,
    RecurringSwapConfig,
    RouteComparison,
    RouteFilter,
    SimulationResult,
    SwapOptions,
    SwapResult,
    TokenMetadata,
    TriggerCondition,
)
from swapkit.core.signer import AccountRef, Signable, Signer, signer_from_base58
from swapkit.trading.balance import BalanceGuard
from swapkit.trading.executor import SwapExecutor
from swapkit.trading.jupiter import AggregatorAPI, QuoteGateway
from swapkit.trading.routes import RouteScorer, ScoreWeights
from swapkit.trading.tokens import TokenService

logger = logging.getLogger(__name__)

# 0.001 SOL, used to probe the quote endpoint
HEALTH_CHECK_AMOUNT = 1_000_000


class SwapClient:
    """
    Facade over quoting, execution and automation.

    Usage:
        async with SwapClient(Config.from_env()) as client:
            quote = await client.get_quote("SOL", "USDC", 100_000_000)
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        wallet: Optional[Signable] = None,
        rpc_client: Optional[AsyncClient] = None,
        api: Optional[AggregatorAPI] = None,
        clock=None,
        events: Optional[EventBus] = None,
        weights: Optional[ScoreWeights] = None,
        notifier: Optional[Notifier] = None,
    ):
        """
        Initialize client.

        Args:
            config: Settings (Config.from_env() by default)
            wallet: Signing wallet; falls back to config.wallet_private_key
            rpc_client: Async Solana RPC client to use instead of a new one
            api: Aggregator HTTP client to use instead of a new one
            clock: Clock source for automation (SystemClock by default)
            events: Event channel shared by scheduler and triggers
            weights: Route scoring weights
            notifier: Callback for notify trigger actions
        """
        self.config = config or Config.from_env()
        self.clock = clock or SystemClock()
        self.events = events or EventBus()

        self.api = api or AggregatorAPI(self.config.jupiter_api_url, timeout=self.config.request_timeout)
        self.rpc_client = rpc_client or AsyncClient(self.config.rpc_url, timeout=self.config.request_timeout)

        self.gateway = QuoteGateway(self.api, self.config)
        self.tokens = TokenService(self.api, self.config.price_cache_ttl, self.clock)
        self.scorer = RouteScorer(self.gateway, self.config, weights)
        self.balance_guard = BalanceGuard(self.rpc_client)
        self.executor = SwapExecutor(self.rpc_client, self.gateway, self.balance_guard, self.config)

        if wallet is None and self.config.wallet_private_key:
            wallet = signer_from_base58(self.config.wallet_private_key)
        self.wallet = wallet

        default_owner = str(wallet.pubkey) if wallet else None

        self.scheduler = Scheduler(
            self.executor,
            self._resolve_signer,
            events=self.events,
            clock=self.clock,
            max_idle_sleep=self.config.max_idle_sleep,
        )
        self.triggers = TriggerMonitor(
            self.executor,
            self.balance_guard,
            self.tokens,
            self._resolve_signer,
            events=self.events,
            clock=self.clock,
            poll_interval=self.config.trigger_poll_interval,
            default_owner=default_owner,
            notifier=notifier,
            max_idle_sleep=self.config.max_idle_sleep,
        )

        self.running = False

        if wallet:
            logger.info(f"SwapClient ready ({self.config.mode}) with wallet {wallet.pubkey}")
        else:
            logger.info(f"SwapClient ready ({self.config.mode}) without wallet")

    async def __aenter__(self) -> "SwapClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def _resolve_signer(self, owner_account: str) -> Signer:
        """Map an owner address to the configured wallet."""
        if self.wallet is not None and str(self.wallet.pubkey) == owner_account:
            return self.wallet
        raise WalletSigningRequired(f"No signing wallet configured for {owner_account}")

    def _signer_or_wallet(self, signer: Optional[Signer]) -> Signer:
        if signer is not None:
            return signer
        if self.wallet is None:
            raise WalletSigningRequired("No wallet configured. Set WALLET_PRIVATE_KEY or pass a signer.")
        return self.wallet

    # Trading

    async def get_quote(
        self,
        input_asset: str,
        output_asset: str,
        amount: int,
        options: Optional[SwapOptions] = None,
    ) -> QuoteResponse:
        return await self.gateway.get_quote(input_asset, output_asset, amount, options)

    async def get_route_options(
        self,
        input_asset: str,
        output_asset: str,
        amount: int,
        route_filter: Optional[RouteFilter] = None,
    ) -> List[RouteComparison]:
        return await self.scorer.compare_routes(input_asset, output_asset, amount, route_filter)

    async def execute_swap(
        self,
        input_asset: str,
        output_asset: str,
        amount: int,
        signer: Optional[Signer] = None,
        options: Optional[SwapOptions] = None,
    ) -> SwapResult:
        """
        Execute a swap with the given signer, or the configured wallet.

        Raises:
            WalletSigningRequired: when neither is available
        """
        signer = self._signer_or_wallet(signer)
        return await self.executor.execute_swap(input_asset, output_asset, amount, signer, options)

    async def create_swap_transaction(
        self,
        input_asset: str,
        output_asset: str,
        amount: int,
        signer: Optional[Signer] = None,
        options: Optional[SwapOptions] = None,
    ) -> Tuple[QuoteResponse, VersionedTransaction]:
        signer = self._signer_or_wallet(signer)
        return await self.executor.create_swap_transaction(input_asset, output_asset, amount, signer, options)

    async def simulate_swap(
        self,
        input_asset: str,
        output_asset: str,
        amount: int,
        signer: Optional[Signer] = None,
        options: Optional[SwapOptions] = None,
    ) -> SimulationResult:
        signer = self._signer_or_wallet(signer)
        return await self.executor.simulate_swap(input_asset, output_asset, amount, signer, options)

    async def check_balance(self, account: AccountRef, asset: str, required: int) -> BalanceCheck:
        return await self.balance_guard.check_balance(account, asset, required)

    # Tokens

    async def get_token_metadata(self, asset: str) -> TokenMetadata:
        return await self.tokens.get_token_metadata(asset)

    async def get_supported_tokens(self, refresh: bool = False) -> List[TokenMetadata]:
        return await self.tokens.get_supported_tokens(refresh)

    async def get_token_price(self, asset: str, fresh: bool = False) -> float:
        return await self.tokens.get_token_price(asset, fresh)

    # Scheduled swaps

    def schedule_recurring_swap(
        self,
        cron_schedule: str,
        input_asset: str,
        output_asset: str,
        amount: int,
        owner_account: Optional[str] = None,
        enabled: bool = True,
        max_slippage_bps: Optional[int] = None,
    ) -> str:
        """Schedule a recurring swap; owner defaults to the configured wallet."""
        if owner_account is None:
            owner_account = str(self._signer_or_wallet(None).pubkey)
        return self.scheduler.schedule_recurring_swap(
            cron_schedule,
            input_asset,
            output_asset,
            amount,
            owner_account,
            enabled=enabled,
            max_slippage_bps=max_slippage_bps,
        )

    def get_scheduled_swaps(self) -> List[RecurringSwapConfig]:
        return self.scheduler.get_scheduled_swaps()

    def cancel_scheduled_swap(self, swap_id: str) -> None:
        self.scheduler.cancel_scheduled_swap(swap_id)

    def toggle_scheduled_swap(self, swap_id: str, enabled: bool) -> None:
        self.scheduler.toggle_scheduled_swap(swap_id, enabled)

    # Triggers

    def set_trigger(
        self,
        kind,
        comparison_operator,
        threshold,
        resulting_action,
        watched_asset: Optional[str] = None,
        action_parameters: Optional[Dict[str, Any]] = None,
        enabled: bool = True,
        custom_check: Optional[str] = None,
    ) -> str:
        return self.triggers.set_trigger(
            kind,
            comparison_operator,
            threshold,
            resulting_action,
            watched_asset=watched_asset,
            action_parameters=action_parameters,
            enabled=enabled,
            custom_check=custom_check,
        )

    def get_triggers(self) -> List[TriggerCondition]:
        return self.triggers.get_triggers()

    def remove_trigger(self, trigger_id: str) -> None:
        self.triggers.remove_trigger(trigger_id)

    def toggle_trigger(self, trigger_id: str, enabled: bool) -> None:
        self.triggers.toggle_trigger(trigger_id, enabled)

    def register_custom_check(self, name: str, check: CustomCheck) -> None:
        self.triggers.register_custom_check(name, check)

    def subscribe(self, event_type: Optional[EventType], handler: Handler):
        """Attach an event handler. Returns a function that detaches it."""
        return self.events.subscribe(event_type, handler)

    # Lifecycle

    def start(self) -> None:
        """Arm scheduled swaps and triggers."""
        if self.running:
            return
        self.running = True
        self.scheduler.start()
        self.triggers.start()
        logger.info(
            f"Automation started: {len(self.scheduler)} scheduled swap(s), "
            f"{len(self.triggers)} trigger(s)"
        )
        self.events.emit(EventType.SCHEDULER_STARTED)

    def stop(self) -> None:
        """Disarm everything. In-flight executions run to completion."""
        if not self.running:
            return
        self.running = False
        self.scheduler.stop()
        self.triggers.stop()
        logger.info("Automation stopped")
        self.events.emit(EventType.SCHEDULER_STOPPED)

    async def serve(self) -> None:
        """Start automation and drive it until stop() is called."""
        self.start()
        await asyncio.gather(self.scheduler.serve(), self.triggers.serve())

    def get_status(self) -> Dict[str, Any]:
        return {
            "running": self.running,
            "scheduled_swap_count": len(self.scheduler),
            "trigger_count": len(self.triggers),
        }

    async def health_check(self) -> Dict[str, bool]:
        """Probe the aggregator and the ledger RPC independently."""
        status = {"jupiter": True, "solana": True}

        try:
            await self.gateway.get_quote(SOL_MINT, USDC_MINT, HEALTH_CHECK_AMOUNT)
        except SwapKitError as e:
            logger.warning(f"Jupiter health check failed: {e}")
            status["jupiter"] = False

        try:
            await self.rpc_client.get_slot()
        except (SolanaRpcException, RPCException) as e:
            logger.warning(f"Solana health check failed: {e}")
            status["solana"] = False

        return status

    async def close(self) -> None:
        """Stop automation and release HTTP and RPC connections."""
        self.stop()
        await self.scheduler.wait_idle()
        await self.triggers.wait_idle()
        await self.api.close()
        await self.rpc_client.close()
