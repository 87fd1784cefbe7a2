"""
Route comparison for SwapKit.

Fetches candidate routes, filters them by DEX and hop constraints,
scores them and classifies their risk.
"""

import asyncio
import logging
from dataclasses import dataclass, replace
from typing import List, Optional

from swapkit.core.config import Config
from swapkit.core.errors import QuoteFailed, RouteOptionsFailed
from swapkit.core.models import (
    QuoteResponse,
    RiskLevel,
    RouteComparison,
    RouteFilter,
    SwapOptions,
)
from swapkit.trading.jupiter import QuoteGateway

logger = logging.getLogger(__name__)

# Execution time estimate: base + per hop (seconds)
BASE_EXECUTION_SECONDS = 2.0
PER_HOP_SECONDS = 0.5

# Risk thresholds (price impact in percent, hop counts)
LOW_RISK_MAX_IMPACT = 0.5
LOW_RISK_MAX_HOPS = 2
MEDIUM_RISK_MAX_IMPACT = 2.0
MEDIUM_RISK_MAX_HOPS = 3


@dataclass(frozen=True)
class ScoreWeights:
    """
    Weights combining output amount, price impact and preferences.

    The terms have different units, so these are tuning knobs rather
    than a normalized model.
    """
    out_amount_divisor: float = 1e6
    price_impact_penalty: float = 100.0
    speed_reference_hops: int = 10
    speed_bonus_per_hop: float = 10.0
    cheapest_bonus: float = 1000.0


def score_route(
    route: QuoteResponse,
    route_filter: Optional[RouteFilter] = None,
    weights: ScoreWeights = ScoreWeights(),
) -> float:
    """Score a route. Higher is better."""
    score = route.out_amount / weights.out_amount_divisor
    score -= abs(route.price_impact_pct) * weights.price_impact_penalty

    if route_filter and route_filter.prefer_speed:
        score += (weights.speed_reference_hops - route.hop_count) * weights.speed_bonus_per_hop

    if route_filter and route_filter.prefer_cheapest:
        score += weights.cheapest_bonus

    return score


def assess_risk(route: QuoteResponse) -> RiskLevel:
    """Classify a route's risk from price impact and hop count."""
    impact = abs(route.price_impact_pct)
    hops = route.hop_count

    if impact < LOW_RISK_MAX_IMPACT and hops <= LOW_RISK_MAX_HOPS:
        return RiskLevel.LOW
    if impact < MEDIUM_RISK_MAX_IMPACT and hops <= MEDIUM_RISK_MAX_HOPS:
        return RiskLevel.MEDIUM
    return RiskLevel.HIGH


def estimate_execution_seconds(route: QuoteResponse) -> float:
    return BASE_EXECUTION_SECONDS + route.hop_count * PER_HOP_SECONDS


def passes_filter(route: QuoteResponse, route_filter: Optional[RouteFilter]) -> bool:
    """
    Check DEX and hop constraints.

    Inclusion is checked before exclusion. A route failing any
    constraint is dropped entirely.
    """
    if route_filter is None:
        return True

    dexes = set(route.dex_path)

    if route_filter.include_dexes and not dexes.intersection(route_filter.include_dexes):
        return False

    if route_filter.exclude_dexes and dexes.intersection(route_filter.exclude_dexes):
        return False

    if route_filter.max_hops is not None and route.hop_count > route_filter.max_hops:
        return False

    return True


class RouteScorer:
    """Ranks candidate routes for a token pair and amount."""

    def __init__(
        self,
        gateway: QuoteGateway,
        config: Optional[Config] = None,
        weights: Optional[ScoreWeights] = None,
    ):
        self.gateway = gateway
        self.config = config or gateway.config
        self.weights = weights or ScoreWeights()

    async def fetch_candidates(
        self,
        input_asset: str,
        output_asset: str,
        amount: int,
        slippage_bps: int,
    ) -> List[QuoteResponse]:
        """
        Fetch the best route and, optionally, the best direct route.

        Raises:
            RouteOptionsFailed: when the best-route fetch fails
        """
        request = self.gateway.build_request(
            input_asset, output_asset, amount, SwapOptions(slippage_bps=slippage_bps)
        )

        fetches = [self.gateway.fetch_quote(request)]
        if self.config.compare_direct_routes:
            fetches.append(self.gateway.fetch_quote(replace(request, only_direct_routes=True)))

        results = await asyncio.gather(*fetches, return_exceptions=True)

        best = results[0]
        if isinstance(best, QuoteFailed):
            raise RouteOptionsFailed(f"Failed to get route options: {best.message}", details=best.details)
        if isinstance(best, BaseException):
            raise best

        candidates = [best]
        for extra in results[1:]:
            if isinstance(extra, QuoteFailed):
                logger.warning(f"Ignoring direct-route candidate: {extra.message}")
                continue
            if isinstance(extra, BaseException):
                raise extra
            if not any(_same_route(extra, known) for known in candidates):
                candidates.append(extra)

        return candidates

    async def compare_routes(
        self,
        input_asset: str,
        output_asset: str,
        amount: int,
        route_filter: Optional[RouteFilter] = None,
    ) -> List[RouteComparison]:
        """
        Get scored route options, best first.

        Args:
            input_asset: Input mint address or known symbol
            output_asset: Output mint address or known symbol
            amount: Amount in smallest unit
            route_filter: Optional constraints and preferences

        Returns:
            RouteComparison list sorted by descending score; empty when
            the filter eliminates every candidate

        Raises:
            InvalidRequest: on invalid arguments
            RouteOptionsFailed: on upstream errors
        """
        slippage_bps = self.config.route_comparison_slippage_bps
        if route_filter and route_filter.max_slippage_bps is not None:
            slippage_bps = route_filter.max_slippage_bps

        candidates = await self.fetch_candidates(input_asset, output_asset, amount, slippage_bps)

        comparisons = [
            RouteComparison(
                route=route,
                score=score_route(route, route_filter, self.weights),
                estimated_execution_seconds=estimate_execution_seconds(route),
                risk_level=assess_risk(route),
                dex_path=route.dex_path,
            )
            for route in candidates
            if passes_filter(route, route_filter)
        ]

        dropped = len(candidates) - len(comparisons)
        if dropped:
            logger.info(f"Route filter dropped {dropped}/{len(candidates)} candidate(s)")

        comparisons.sort(
            key=lambda c: (-c.score, c.route.hop_count, abs(c.route.price_impact_pct))
        )
        return comparisons


def _same_route(a: QuoteResponse, b: QuoteResponse) -> bool:
    return a.dex_path == b.dex_path and a.out_amount == b.out_amount
