"""
Well-known Solana token mints.

Lets callers pass familiar symbols instead of raw mint addresses.
"""

from typing import Dict

from swapkit.core.errors import InvalidRequest

# Wrapped SOL mint, used by the aggregator for the native asset
SOL_MINT = "So11111111111111111111111111111111111111112"
USDC_MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
USDT_MINT = "Es9vMFrzaCERmJfrF4H2FYD4KCoNkY11McCe8BenwNYB"

SOL_DECIMALS = 9

KNOWN_MINTS: Dict[str, str] = {
    "SOL": SOL_MINT,
    "WSOL": SOL_MINT,
    "USDC": USDC_MINT,
    "USDT": USDT_MINT,
}


def resolve_mint(asset: str) -> str:
    """
    Resolve a symbol or mint address to a mint address.

    Unknown values are assumed to already be mint addresses.

    Raises:
        InvalidRequest: if asset is empty
    """
    if not asset or not asset.strip():
        raise InvalidRequest("Asset identifier must not be empty")

    asset = asset.strip()
    return KNOWN_MINTS.get(asset.upper(), asset)


def is_native(asset: str) -> bool:
    """True when asset refers to native SOL."""
    return resolve_mint(asset) == SOL_MINT
