"""
Swap executor for SwapKit.

Builds, signs, sends and confirms aggregator swap transactions on Solana.
"""

import asyncio
import logging
import time
from typing import Optional, Tuple, Union

from solana.exceptions import SolanaRpcException
from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Confirmed
from solana.rpc.core import RPCException
from solana.rpc.types import TxOpts
from solders.hash import Hash
from solders.message import Message, MessageV0
from solders.signature import Signature
from solders.transaction import VersionedTransaction
from solders.transaction_status import TransactionConfirmationStatus

from swapkit.core.config import Config
from swapkit.core.errors import (
    InsufficientBalance,
    InvalidSwapResponse,
    TransactionFailed,
)
from swapkit.core.mints import resolve_mint
from swapkit.core.models import QuoteResponse, SimulationResult, SwapOptions, SwapResult
from swapkit.core.signer import Signer, require_signable
from swapkit.trading.balance import BalanceGuard
from swapkit.trading.jupiter import QuoteGateway

logger = logging.getLogger(__name__)

CONFIRMED_STATUSES = (
    TransactionConfirmationStatus.Confirmed,
    TransactionConfirmationStatus.Finalized,
)


def with_blockhash(message: Union[Message, MessageV0], blockhash: Hash) -> Union[Message, MessageV0]:
    """Copy a compiled message with a different recent blockhash."""
    if isinstance(message, MessageV0):
        return MessageV0(
            message.header,
            message.account_keys,
            blockhash,
            message.instructions,
            message.address_table_lookups,
        )

    header = message.header
    return Message.new_with_compiled_instructions(
        header.num_required_signatures,
        header.num_readonly_signed_accounts,
        header.num_readonly_unsigned_accounts,
        message.account_keys,
        blockhash,
        message.instructions,
    )


class SwapExecutor:
    """
    Executes swaps end to end.

    Balance check, quote, transaction build, signing, submission and
    confirmation.
    """

    def __init__(
        self,
        rpc_client: AsyncClient,
        gateway: QuoteGateway,
        balance_guard: BalanceGuard,
        config: Optional[Config] = None,
    ):
        """
        Initialize swap executor.

        Args:
            rpc_client: Async Solana RPC client
            gateway: Quote gateway for quotes and swap transactions
            balance_guard: Balance guard for pre-flight checks
            config: Retry and confirmation settings
        """
        self.rpc_client = rpc_client
        self.gateway = gateway
        self.balance_guard = balance_guard
        self.config = config or gateway.config

    async def create_swap_transaction(
        self,
        input_asset: str,
        output_asset: str,
        amount: int,
        signer: Signer,
        options: Optional[SwapOptions] = None,
    ) -> Tuple[QuoteResponse, VersionedTransaction]:
        """
        Build an unsigned swap transaction without executing it.

        Args:
            input_asset: Input mint address or known symbol
            output_asset: Output mint address or known symbol
            amount: Amount in smallest unit
            signer: Fee payer identity (either variant)
            options: Quote and transaction options

        Returns:
            Tuple of (quote, unsigned transaction)

        Raises:
            QuoteFailed, SwapTransactionFailed, InvalidSwapResponse
        """
        quote = await self.gateway.get_quote(input_asset, output_asset, amount, options)
        tx_bytes = await self.gateway.get_swap_transaction(quote, str(signer.pubkey), options)

        try:
            transaction = VersionedTransaction.from_bytes(tx_bytes)
        except ValueError as e:
            raise InvalidSwapResponse(f"Swap transaction could not be deserialized: {e}")

        return quote, transaction

    async def sign_transaction(self, transaction: VersionedTransaction, signer: Signer) -> VersionedTransaction:
        """
        Sign a swap transaction with a fresh blockhash.

        Raises:
            WalletSigningRequired: for ViewOnly signers
            InvalidSwapResponse: when the fee payer is not the signer
        """
        keypair = require_signable(signer)
        message = transaction.message

        fee_payer = message.account_keys[0] if message.account_keys else None
        if fee_payer != keypair.pubkey():
            raise InvalidSwapResponse(
                f"Swap transaction fee payer {fee_payer} does not match signer {keypair.pubkey()}"
            )

        blockhash = await self._get_recent_blockhash()
        return VersionedTransaction(with_blockhash(message, blockhash), [keypair])

    async def _get_recent_blockhash(self) -> Hash:
        """Get recent blockhash for transaction."""
        try:
            response = await self.rpc_client.get_latest_blockhash(commitment=Confirmed)
        except (SolanaRpcException, RPCException) as e:
            raise TransactionFailed(f"Failed to fetch recent blockhash: {e}")
        return response.value.blockhash

    async def send_transaction(self, transaction: VersionedTransaction, skip_preflight: bool = False) -> Signature:
        """
        Send a signed transaction.

        Resubmits the same signed bytes on transport errors; identical
        bytes share one signature, so a resubmission cannot execute twice.

        Raises:
            TransactionFailed: when every attempt fails
        """
        opts = TxOpts(skip_preflight=skip_preflight, preflight_commitment=Confirmed)
        raw = bytes(transaction)
        attempts = max(1, self.config.send_retries)
        last_error: Optional[Exception] = None

        for attempt in range(1, attempts + 1):
            try:
                result = await self.rpc_client.send_raw_transaction(raw, opts=opts)
                logger.info(f"Transaction sent: {result.value}")
                return result.value

            except RPCException as e:
                # Preflight rejection: resubmitting will not help
                logger.error(f"Transaction rejected: {e}")
                raise TransactionFailed(f"Transaction rejected: {e}", details=e.args[0] if e.args else None)

            except SolanaRpcException as e:
                last_error = e
                logger.warning(f"Send failed, retrying... ({attempt}/{attempts}): {e}")
                if attempt < attempts:
                    await asyncio.sleep(self.config.confirm_poll_interval)

        raise TransactionFailed(f"Failed to send transaction after {attempts} attempt(s): {last_error}")

    async def confirm_transaction(self, signature: Signature) -> None:
        """
        Wait for transaction confirmation.

        Raises:
            TransactionFailed: with the network error payload, or on timeout
        """
        deadline = time.monotonic() + self.config.confirm_timeout

        while time.monotonic() < deadline:
            try:
                result = await self.rpc_client.get_signature_statuses([signature])
            except (SolanaRpcException, RPCException) as e:
                logger.warning(f"Confirmation poll error: {e}")
                await asyncio.sleep(self.config.confirm_poll_interval)
                continue

            status = result.value[0] if result.value else None
            if status is not None:
                if status.err is not None:
                    logger.error(f"Transaction failed: {status.err}")
                    raise TransactionFailed(
                        f"Transaction failed: {status.err}",
                        details={"signature": str(signature), "err": status.err},
                    )
                if status.confirmation_status in CONFIRMED_STATUSES:
                    logger.info(f"Transaction confirmed: {signature}")
                    return

            await asyncio.sleep(self.config.confirm_poll_interval)

        logger.error(f"Transaction confirmation timeout: {signature}")
        raise TransactionFailed(
            f"Transaction not confirmed within {self.config.confirm_timeout:.0f}s",
            details={"signature": str(signature), "err": "timeout"},
        )

    async def execute_swap(
        self,
        input_asset: str,
        output_asset: str,
        amount: int,
        signer: Signer,
        options: Optional[SwapOptions] = None,
    ) -> SwapResult:
        """
        Execute a swap and wait for confirmation.

        Args:
            input_asset: Input mint address or known symbol
            output_asset: Output mint address or known symbol
            amount: Amount in smallest unit
            signer: Signable identity paying for and signing the swap
            options: Quote and transaction options

        Returns:
            SwapResult of the confirmed transaction

        Raises:
            WalletSigningRequired: for ViewOnly signers
            InsufficientBalance: when the input balance is too low
            QuoteFailed, SwapTransactionFailed, InvalidSwapResponse, TransactionFailed
        """
        options = options or SwapOptions()
        require_signable(signer)

        balance = await self.balance_guard.check_balance(signer, input_asset, amount)
        if not balance.sufficient:
            raise InsufficientBalance(resolve_mint(input_asset), amount, balance.available)

        quote, transaction = await self.create_swap_transaction(
            input_asset, output_asset, amount, signer, options
        )

        signed = await self.sign_transaction(transaction, signer)
        signature = await self.send_transaction(signed, skip_preflight=options.skip_preflight)
        await self.confirm_transaction(signature)

        logger.info(
            f"Swap confirmed {signature}: {quote.in_amount} {quote.input_asset[:8]}.. -> "
            f"{quote.out_amount} {quote.output_asset[:8]}.."
        )

        return SwapResult(
            signature=str(signature),
            input_amount=quote.in_amount,
            output_amount=quote.out_amount,
            price_impact=abs(quote.price_impact_pct),
            route=quote,
            raw_transaction=bytes(signed),
        )

    async def simulate_swap(
        self,
        input_asset: str,
        output_asset: str,
        amount: int,
        signer: Signer,
        options: Optional[SwapOptions] = None,
    ) -> SimulationResult:
        """
        Build a swap transaction and simulate it without signing.

        Quote and build errors propagate; simulation errors are reported
        in the result.
        """
        _, transaction = await self.create_swap_transaction(
            input_asset, output_asset, amount, signer, options
        )

        try:
            response = await self.rpc_client.simulate_transaction(
                transaction, sig_verify=False, commitment=Confirmed
            )
        except (SolanaRpcException, RPCException) as e:
            return SimulationResult(success=False, error=str(e))

        value = response.value
        return SimulationResult(
            success=value.err is None,
            logs=list(value.logs or []),
            units_consumed=value.units_consumed or 0,
            error=str(value.err) if value.err is not None else None,
        )
