"""
Utility functions for SwapKit.
"""

from decimal import Decimal
from typing import Union
from urllib.parse import urlparse

from swapkit.core.mints import SOL_DECIMALS

Number = Union[int, float, str, Decimal]


def to_smallest_unit(amount: Number, decimals: int) -> int:
    """
    Convert a human amount to the token's smallest unit.

    Examples:
        to_smallest_unit("1.5", 9) -> 1500000000
        to_smallest_unit(100, 6) -> 100000000

    Fractions below the smallest unit are truncated.
    """
    return int(Decimal(str(amount)) * (Decimal(10) ** decimals))


def from_smallest_unit(amount: int, decimals: int) -> Decimal:
    """Convert a smallest-unit amount to a human amount."""
    return Decimal(amount) / (Decimal(10) ** decimals)


def sol_to_lamports(sol: Number) -> int:
    return to_smallest_unit(sol, SOL_DECIMALS)


def lamports_to_sol(lamports: int) -> Decimal:
    return from_smallest_unit(lamports, SOL_DECIMALS)


def mask_url(url: str) -> str:
    """Mask path and query of a URL (often holds API keys) for safe logging."""
    if not url:
        return "Not configured"

    parsed = urlparse(url)
    if not parsed.scheme or not parsed.netloc:
        return "***MASKED***"
    if parsed.path in ("", "/") and not parsed.query:
        return f"{parsed.scheme}://{parsed.netloc}"
    return f"{parsed.scheme}://{parsed.netloc}/***MASKED***"
