"""
Token list and price lookups for SwapKit.

Token metadata is cached for the lifetime of the service; prices are
cached for a configurable TTL.
"""

import logging
from typing import Dict, List, Optional, Tuple

from swapkit.core.clock import SystemClock
from swapkit.core.errors import AggregatorError, SwapKitError
from swapkit.core.mints import SOL_MINT, resolve_mint
from swapkit.core.models import TokenMetadata
from swapkit.trading.jupiter import AggregatorAPI

logger = logging.getLogger(__name__)


class TokenService:
    """Token metadata and USD prices from the aggregator."""

    def __init__(self, api: AggregatorAPI, price_cache_ttl: float = 300.0, clock=None):
        self.api = api
        self.price_cache_ttl = price_cache_ttl
        self.clock = clock or SystemClock()
        self._tokens: Optional[Dict[str, TokenMetadata]] = None
        self._prices: Dict[str, Tuple[float, float]] = {}  # mint -> (price, fetched_at)

    async def get_supported_tokens(self, refresh: bool = False) -> List[TokenMetadata]:
        """
        Get all tokens known to the aggregator.

        Raises:
            SwapKitError: SUPPORTED_TOKENS_FAILED or INVALID_TOKEN_RESPONSE
        """
        if self._tokens is not None and not refresh:
            return list(self._tokens.values())

        try:
            data = await self.api.get_json("/tokens")
        except AggregatorError as e:
            raise SwapKitError(
                f"Failed to get supported tokens: {e.message}",
                code="SUPPORTED_TOKENS_FAILED",
                details=e.details,
            )

        # Accept both a bare list and {"tokens": [...]}
        entries = data.get("tokens") if isinstance(data, dict) else data
        if not isinstance(entries, list):
            raise SwapKitError("Invalid token list response", code="INVALID_TOKEN_RESPONSE")

        tokens: Dict[str, TokenMetadata] = {}
        for entry in entries:
            try:
                token = TokenMetadata.from_dict(entry)
            except (KeyError, ValueError, TypeError):
                logger.debug(f"Skipping malformed token entry: {entry!r}")
                continue
            tokens[token.address] = token

        self._tokens = tokens
        logger.info(f"Loaded {len(tokens)} tokens from Jupiter")
        return list(tokens.values())

    async def get_token_metadata(self, asset: str) -> TokenMetadata:
        """
        Get metadata for one token.

        Raises:
            SwapKitError: TOKEN_NOT_FOUND when the mint is not listed
        """
        mint = resolve_mint(asset)
        if self._tokens is None or mint not in self._tokens:
            await self.get_supported_tokens(refresh=self._tokens is not None)

        token = self._tokens.get(mint) if self._tokens else None
        if token is None:
            raise SwapKitError(f"Token not found: {mint}", code="TOKEN_NOT_FOUND")
        return token

    async def search_tokens(self, query: str) -> List[TokenMetadata]:
        """Search tokens by name or symbol (case-insensitive)."""
        needle = query.lower()
        tokens = await self.get_supported_tokens()
        return [
            token for token in tokens
            if needle in token.symbol.lower() or needle in token.name.lower()
        ]

    async def get_token_price(self, asset: str, fresh: bool = False) -> float:
        """
        Get a token's USD price.

        Args:
            asset: Mint address or known symbol
            fresh: Bypass the price cache

        Raises:
            SwapKitError: TOKEN_PRICE_FAILED or INVALID_PRICE_RESPONSE
        """
        mint = resolve_mint(asset)
        now = self.clock.now().timestamp()

        cached = self._prices.get(mint)
        if cached and not fresh and now - cached[1] < self.price_cache_ttl:
            return cached[0]

        try:
            data = await self.api.get_json("/price", params={"ids": mint})
        except AggregatorError as e:
            raise SwapKitError(
                f"Failed to get token price: {e.message}",
                code="TOKEN_PRICE_FAILED",
                details=e.details,
            )

        if not isinstance(data, dict) or not isinstance(data.get("data"), dict):
            raise SwapKitError("Invalid price response", code="INVALID_PRICE_RESPONSE", details=data)

        entry = data["data"].get(mint)
        if not entry or entry.get("price") is None:
            raise SwapKitError(f"No price available for {mint}", code="TOKEN_PRICE_FAILED", details=data)

        try:
            price = float(entry["price"])
        except (TypeError, ValueError):
            raise SwapKitError("Invalid price response", code="INVALID_PRICE_RESPONSE", details=data)

        self._prices[mint] = (price, now)
        return price

    async def get_sol_price(self) -> float:
        """Get current SOL/USD price."""
        return await self.get_token_price(SOL_MINT)

    def clear_price_cache(self) -> None:
        self._prices.clear()

    def clear_token_cache(self) -> None:
        self._tokens = None
