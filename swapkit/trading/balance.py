"""
Balance checks for SwapKit.

Verifies an account holds enough of the input asset before a swap.
"""

import logging

from solana.exceptions import SolanaRpcException
from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Confirmed
from solana.rpc.core import RPCException
from solders.pubkey import Pubkey
from spl.token.instructions import get_associated_token_address

from swapkit.core.errors import BalanceCheckFailed, InvalidRequest
from swapkit.core.mints import SOL_MINT, resolve_mint
from swapkit.core.models import BalanceCheck
from swapkit.core.signer import AccountRef, pubkey_of

logger = logging.getLogger(__name__)


class BalanceGuard:
    """
    Reads native and token balances.

    Amounts are always in the asset's smallest unit.
    """

    def __init__(self, rpc_client: AsyncClient):
        """
        Initialize balance guard.

        Args:
            rpc_client: Async Solana RPC client
        """
        self.rpc_client = rpc_client

    async def get_balance(self, account: AccountRef, asset: str) -> int:
        """
        Get an account's balance of an asset.

        A token account that does not exist yet counts as zero.

        Raises:
            InvalidRequest: on an invalid account or asset
            BalanceCheckFailed: on RPC or parse errors
        """
        owner = pubkey_of(account)
        mint = resolve_mint(asset)
        mint_key = None if mint == SOL_MINT else _parse_mint(mint)

        try:
            if mint_key is None:
                response = await self.rpc_client.get_balance(owner, commitment=Confirmed)
                return int(response.value)

            token_account = get_associated_token_address(owner, mint_key)

            info = await self.rpc_client.get_account_info(token_account, commitment=Confirmed)
            if info.value is None:
                logger.debug(f"No token account for {mint} owned by {owner}")
                return 0

            response = await self.rpc_client.get_token_account_balance(token_account, commitment=Confirmed)
            return int(response.value.amount)

        except (SolanaRpcException, RPCException) as e:
            logger.error(f"Failed to get balance of {mint} for {owner}: {e}")
            raise BalanceCheckFailed(f"Failed to check balance: {e}", details={"asset": mint})
        except (AttributeError, TypeError, ValueError) as e:
            raise BalanceCheckFailed(f"Unexpected balance response: {e}", details={"asset": mint})

    async def check_balance(self, account: AccountRef, asset: str, required: int) -> BalanceCheck:
        """
        Check whether an account holds at least `required` of an asset.

        Args:
            account: Signer, public key or base58 address
            asset: Mint address or known symbol
            required: Required amount in smallest unit

        Returns:
            BalanceCheck with sufficient flag, available and required amounts
        """
        available = await self.get_balance(account, asset)
        return BalanceCheck(
            sufficient=available >= required,
            available=available,
            required=required,
        )


def _parse_mint(mint: str) -> Pubkey:
    try:
        return Pubkey.from_string(mint)
    except ValueError as e:
        raise InvalidRequest(f"Invalid mint address {mint!r}: {e}")
