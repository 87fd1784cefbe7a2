"""
Jupiter V6 aggregator integration for SwapKit.

Handles quote fetching and swap transaction building.
"""

import asyncio
import base64
import binascii
import logging
from typing import Any, Dict, Optional

import aiohttp

from swapkit.core.config import Config
from swapkit.core.errors import (
    AggregatorError,
    InvalidRequest,
    InvalidSwapResponse,
    QuoteFailed,
    SwapTransactionFailed,
)
from swapkit.core.mints import resolve_mint
from swapkit.core.models import QuoteRequest, QuoteResponse, SwapOptions

logger = logging.getLogger(__name__)


class AggregatorAPI:
    """
    Thin async HTTP client for the aggregator.

    Owns one aiohttp session, created lazily on first request.
    """

    def __init__(self, base_url: str, timeout: float = 30.0, session: Optional[aiohttp.ClientSession] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session
        self._owns_session = session is None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
            self._owns_session = True
        return self._session

    async def get_json(self, path: str, params: Optional[Dict[str, str]] = None) -> Any:
        """
        GET a JSON document.

        Raises:
            AggregatorError: on transport errors, HTTP errors or invalid JSON
        """
        return await self._request("GET", path, params=params)

    async def post_json(self, path: str, payload: Dict[str, Any]) -> Any:
        """
        POST a JSON payload and return the JSON response.

        Raises:
            AggregatorError: on transport errors, HTTP errors or invalid JSON
        """
        return await self._request("POST", path, json=payload)

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        url = f"{self.base_url}/{path.lstrip('/')}"
        session = self._get_session()

        try:
            async with session.request(method, url, **kwargs) as response:
                if response.status >= 400:
                    body = await response.text()
                    raise AggregatorError(
                        f"{method} {path} returned HTTP {response.status}",
                        status=response.status,
                        body=body,
                    )
                return await response.json(content_type=None)

        except aiohttp.ClientError as e:
            raise AggregatorError(f"{method} {path} failed: {e}")
        except asyncio.TimeoutError:
            raise AggregatorError(f"{method} {path} timed out after {self.timeout}s")
        except ValueError as e:
            raise AggregatorError(f"{method} {path} returned invalid JSON: {e}")

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None


def _error_message(error: AggregatorError) -> str:
    """Prefer the aggregator's own error text over the HTTP status line."""
    if isinstance(error.details, str) and error.details:
        return error.details[:200]
    return error.message


class QuoteGateway:
    """
    Quote and swap-transaction access to the aggregator.

    No caching: every call reaches the aggregator.
    """

    def __init__(self, api: AggregatorAPI, config: Optional[Config] = None):
        """
        Initialize quote gateway.

        Args:
            api: Aggregator HTTP client
            config: Settings for default slippage and priority fee
        """
        self.api = api
        self.config = config or Config()

    def build_request(
        self,
        input_asset: str,
        output_asset: str,
        amount: int,
        options: Optional[SwapOptions] = None,
    ) -> QuoteRequest:
        """
        Validate inputs and build a QuoteRequest.

        Raises:
            InvalidRequest: on empty assets or a non-positive amount
        """
        options = options or SwapOptions()

        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise InvalidRequest(f"Amount must be a positive integer in smallest units, got {amount!r}")

        slippage_bps = options.slippage_bps
        if slippage_bps is None:
            slippage_bps = self.config.default_slippage_bps
        if slippage_bps < 0:
            raise InvalidRequest(f"Slippage must not be negative, got {slippage_bps}")

        return QuoteRequest(
            input_asset=resolve_mint(input_asset),
            output_asset=resolve_mint(output_asset),
            amount=amount,
            slippage_bps=slippage_bps,
            fee_bps=options.fee_bps,
            only_direct_routes=options.only_direct_routes,
            as_legacy_transaction=options.as_legacy_transaction,
        )

    async def get_quote(
        self,
        input_asset: str,
        output_asset: str,
        amount: int,
        options: Optional[SwapOptions] = None,
    ) -> QuoteResponse:
        """
        Get a swap quote.

        Args:
            input_asset: Input mint address or known symbol
            output_asset: Output mint address or known symbol
            amount: Amount in smallest unit (lamports for SOL)
            options: Slippage and routing overrides

        Returns:
            QuoteResponse with a non-empty route plan

        Raises:
            InvalidRequest: on invalid arguments
            QuoteFailed: when the aggregator errors or returns no usable payload
        """
        request = self.build_request(input_asset, output_asset, amount, options)
        return await self.fetch_quote(request)

    async def fetch_quote(self, request: QuoteRequest) -> QuoteResponse:
        """Fetch a quote for an already validated request."""
        try:
            data = await self.api.get_json("/quote", params=request.to_params())
        except AggregatorError as e:
            logger.error(f"Jupiter quote request failed: {e}")
            raise QuoteFailed(f"Failed to get quote: {_error_message(e)}", details=e.details)

        if not data:
            raise QuoteFailed("Empty quote response")

        if isinstance(data, dict) and "error" in data:
            logger.error(f"Jupiter quote error: {data['error']}")
            raise QuoteFailed(f"Failed to get quote: {data['error']}", details=data)

        try:
            quote = QuoteResponse.from_dict(data)
        except (KeyError, ValueError, TypeError) as e:
            raise QuoteFailed(f"Malformed quote response: {e}", details=data)

        if not quote.route_plan:
            raise QuoteFailed("Quote response has no route plan", details=data)

        quote.slippage_bps = quote.slippage_bps or request.slippage_bps

        logger.debug(
            f"Quote {request.input_asset[:8]}.. -> {request.output_asset[:8]}..: "
            f"{quote.in_amount} -> {quote.out_amount} via {' > '.join(quote.dex_path)}"
        )
        return quote

    async def get_swap_transaction(
        self,
        quote: QuoteResponse,
        user_public_key: str,
        options: Optional[SwapOptions] = None,
    ) -> bytes:
        """
        Get a prebuilt swap transaction keyed to a quote.

        Args:
            quote: Quote from get_quote()
            user_public_key: Fee payer and owner of the swapped accounts
            options: Transaction building options

        Returns:
            Serialized (unsigned) transaction bytes

        Raises:
            SwapTransactionFailed: when the request fails
            InvalidSwapResponse: when the response carries no usable transaction
        """
        options = options or SwapOptions()

        payload: Dict[str, Any] = {
            "quoteResponse": quote.raw,
            "userPublicKey": user_public_key,
            "wrapAndUnwrapSol": options.wrap_and_unwrap_sol,
            "dynamicComputeUnitLimit": options.dynamic_compute_unit_limit,
            "asLegacyTransaction": options.as_legacy_transaction,
        }

        priority_fee = options.prioritization_fee_lamports
        if priority_fee is None:
            priority_fee = self.config.priority_fee_lamports
        if priority_fee is not None:
            payload["prioritizationFeeLamports"] = priority_fee
        if options.compute_unit_price_micro_lamports is not None:
            payload["computeUnitPriceMicroLamports"] = options.compute_unit_price_micro_lamports
        if options.destination_token_account:
            payload["destinationTokenAccount"] = options.destination_token_account

        try:
            data = await self.api.post_json("/swap", payload)
        except AggregatorError as e:
            logger.error(f"Jupiter swap request failed: {e}")
            raise SwapTransactionFailed(
                f"Failed to create swap transaction: {_error_message(e)}", details=e.details
            )

        if not isinstance(data, dict) or not data.get("swapTransaction"):
            raise InvalidSwapResponse("Invalid swap transaction response", details=data)

        try:
            return base64.b64decode(data["swapTransaction"], validate=True)
        except (binascii.Error, ValueError) as e:
            raise InvalidSwapResponse(f"Swap transaction is not valid base64: {e}")
