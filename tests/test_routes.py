"""
Unit tests for route comparison.

Tests scoring, risk classification, DEX/hop filtering and candidate
ordering.
"""

import asyncio
import pytest
from unittest.mock import AsyncMock, MagicMock
import sys
from pathlib import Path

# Add parent to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from swapkit.core.config import Config
from swapkit.core.errors import QuoteFailed, RouteOptionsFailed
from swapkit.core.mints import SOL_MINT, USDC_MINT
from swapkit.core.models import QuoteResponse, RiskLevel, RouteFilter
from swapkit.trading.jupiter import AggregatorAPI, QuoteGateway
from swapkit.trading.routes import (
    RouteScorer,
    ScoreWeights,
    assess_risk,
    estimate_execution_seconds,
    passes_filter,
    score_route,
)


def make_quote(out_amount=15_000_000, labels=("Orca",), impact=0.01):
    return QuoteResponse.from_dict({
        "inputMint": SOL_MINT,
        "outputMint": USDC_MINT,
        "inAmount": "100000000",
        "outAmount": str(out_amount),
        "priceImpactPct": str(impact),
        "slippageBps": 100,
        "routePlan": [
            {"swapInfo": {"ammKey": f"pool{i}", "label": label}, "percent": 100}
            for i, label in enumerate(labels)
        ],
    })


def make_scorer(best, direct=None, config=None, weights=None):
    """Scorer whose gateway returns `best` then `direct` from fetch_quote."""
    api = MagicMock(spec=AggregatorAPI)
    gateway = QuoteGateway(api, config or Config())
    responses = [best] if direct is None else [best, direct]
    gateway.fetch_quote = AsyncMock(side_effect=responses)
    return RouteScorer(gateway, weights=weights), gateway


class TestScoring:
    """Test the route score."""

    def test_base_score(self):
        """Output amount minus price impact penalty."""
        quote = make_quote(out_amount=15_000_000, impact=0.5)
        assert score_route(quote) == pytest.approx(15.0 - 50.0)

    def test_negative_impact_penalized_by_magnitude(self):
        """Impact sign does not matter."""
        assert score_route(make_quote(impact=-0.5)) == score_route(make_quote(impact=0.5))

    def test_prefer_speed_rewards_fewer_hops(self):
        """Speed preference adds (10 - hops) * 10."""
        route_filter = RouteFilter(prefer_speed=True)
        one_hop = score_route(make_quote(labels=("Orca",), impact=0), route_filter)
        three_hops = score_route(make_quote(labels=("Orca", "Raydium", "Meteora"), impact=0), route_filter)
        assert one_hop - three_hops == pytest.approx(20.0)

    def test_prefer_cheapest_bonus(self):
        """Cheapest preference adds a flat bonus."""
        quote = make_quote(impact=0)
        assert score_route(quote, RouteFilter(prefer_cheapest=True)) - score_route(quote) == 1000

    def test_custom_weights(self):
        """Weights are configurable."""
        weights = ScoreWeights(out_amount_divisor=1.0, price_impact_penalty=0.0)
        assert score_route(make_quote(out_amount=42, impact=3.0), weights=weights) == 42


class TestRiskAndTiming:
    """Test risk classification and execution estimate."""

    def test_low_risk(self):
        """Small impact, few hops."""
        assert assess_risk(make_quote(impact=0.1, labels=("A", "B"))) == RiskLevel.LOW

    def test_medium_risk(self):
        """Moderate impact or three hops."""
        assert assess_risk(make_quote(impact=1.0)) == RiskLevel.MEDIUM
        assert assess_risk(make_quote(impact=0.1, labels=("A", "B", "C"))) == RiskLevel.MEDIUM

    def test_high_risk(self):
        """Large impact or many hops."""
        assert assess_risk(make_quote(impact=2.0)) == RiskLevel.HIGH
        assert assess_risk(make_quote(impact=0.1, labels=("A", "B", "C", "D"))) == RiskLevel.HIGH

    def test_execution_estimate(self):
        """Two seconds plus half a second per hop."""
        assert estimate_execution_seconds(make_quote(labels=("A", "B"))) == 3.0


class TestFiltering:
    """Test DEX and hop constraints."""

    def test_include_requires_overlap(self):
        """Routes without any included DEX are dropped."""
        quote = make_quote(labels=("Orca", "Raydium"))
        assert passes_filter(quote, RouteFilter(include_dexes=["Raydium"]))
        assert not passes_filter(quote, RouteFilter(include_dexes=["Meteora"]))

    def test_exclude_drops_any_match(self):
        """A single excluded hop drops the whole route."""
        quote = make_quote(labels=("Orca", "Raydium"))
        assert not passes_filter(quote, RouteFilter(exclude_dexes=["Raydium"]))

    def test_include_checked_before_exclude(self):
        """A route matching both lists is dropped by the exclusion."""
        quote = make_quote(labels=("Orca", "Raydium"))
        route_filter = RouteFilter(include_dexes=["Orca"], exclude_dexes=["Raydium"])
        assert not passes_filter(quote, route_filter)

    def test_empty_include_is_no_constraint(self):
        """An empty include list filters nothing."""
        quote = make_quote(labels=("Orca",))
        assert passes_filter(quote, RouteFilter(include_dexes=[]))
        assert passes_filter(quote, None)

    def test_max_hops(self):
        """Routes with too many hops are dropped."""
        quote = make_quote(labels=("A", "B", "C"))
        assert not passes_filter(quote, RouteFilter(max_hops=2))
        assert passes_filter(quote, RouteFilter(max_hops=3))


class TestCompareRoutes:
    """Test candidate fetching and ordering."""

    def test_sorted_by_descending_score(self):
        """Best score first."""
        worse = make_quote(out_amount=14_000_000, labels=("Orca", "Raydium"), impact=0.01)
        better = make_quote(out_amount=15_000_000, labels=("Raydium",), impact=0.01)
        scorer, _ = make_scorer(worse, better)

        options = asyncio.run(scorer.compare_routes("SOL", "USDC", 100_000_000))

        assert len(options) == 2
        scores = [option.score for option in options]
        assert scores == sorted(scores, reverse=True)
        assert options[0].dex_path == ["Raydium"]

    def test_equal_scores_prefer_fewer_hops(self):
        """Tied scores put the route with fewer hops first."""
        two_hops = make_quote(out_amount=15_000_000, labels=("Raydium", "Meteora"), impact=0.01)
        one_hop = make_quote(out_amount=15_000_000, labels=("Orca",), impact=0.01)
        scorer, _ = make_scorer(two_hops, one_hop)

        options = asyncio.run(scorer.compare_routes(SOL_MINT, USDC_MINT, 1_000))

        assert options[0].score == options[1].score
        assert [o.dex_path for o in options] == [["Orca"], ["Raydium", "Meteora"]]

    def test_equal_scores_and_hops_prefer_lower_impact(self):
        """With scores and hops tied, the smaller absolute impact wins."""
        high_impact = make_quote(out_amount=15_000_000, labels=("Raydium",), impact=-0.5)
        low_impact = make_quote(out_amount=15_000_000, labels=("Orca",), impact=0.1)
        scorer, _ = make_scorer(high_impact, low_impact, weights=ScoreWeights(price_impact_penalty=0))

        options = asyncio.run(scorer.compare_routes(SOL_MINT, USDC_MINT, 1_000))

        assert options[0].score == options[1].score
        assert [o.dex_path for o in options] == [["Orca"], ["Raydium"]]

    def test_uses_comparison_slippage(self):
        """Route comparison requests the wider default slippage."""
        scorer, gateway = make_scorer(make_quote(), make_quote(labels=("Raydium",)))

        asyncio.run(scorer.compare_routes(SOL_MINT, USDC_MINT, 1_000))

        best_request = gateway.fetch_quote.call_args_list[0].args[0]
        direct_request = gateway.fetch_quote.call_args_list[1].args[0]
        assert best_request.slippage_bps == 100
        assert best_request.only_direct_routes is False
        assert direct_request.only_direct_routes is True

    def test_duplicate_direct_route_dropped(self):
        """Identical best and direct routes are listed once."""
        scorer, _ = make_scorer(make_quote(), make_quote())
        options = asyncio.run(scorer.compare_routes(SOL_MINT, USDC_MINT, 1_000))
        assert len(options) == 1

    def test_idempotent_under_empty_include(self):
        """An empty include filter gives the same result as no filter."""
        quotes = [make_quote(), make_quote(labels=("Raydium",), out_amount=1)]
        scorer, gateway = make_scorer(*quotes)
        unfiltered = asyncio.run(scorer.compare_routes(SOL_MINT, USDC_MINT, 1_000))

        gateway.fetch_quote = AsyncMock(side_effect=quotes)
        filtered = asyncio.run(scorer.compare_routes(SOL_MINT, USDC_MINT, 1_000, RouteFilter(include_dexes=[])))

        assert [o.dex_path for o in filtered] == [o.dex_path for o in unfiltered]

    def test_filter_can_eliminate_everything(self):
        """No surviving candidate yields an empty list."""
        scorer, _ = make_scorer(make_quote(), make_quote(labels=("Raydium",)))
        options = asyncio.run(
            scorer.compare_routes(SOL_MINT, USDC_MINT, 1_000, RouteFilter(include_dexes=["Phoenix"]))
        )
        assert options == []

    def test_best_route_failure_raises(self):
        """A failed best-route fetch is RouteOptionsFailed."""
        scorer, _ = make_scorer(QuoteFailed("no route"), make_quote())
        with pytest.raises(RouteOptionsFailed):
            asyncio.run(scorer.compare_routes(SOL_MINT, USDC_MINT, 1_000))

    def test_direct_route_failure_ignored(self):
        """A failed direct-route fetch leaves the best route."""
        scorer, _ = make_scorer(make_quote(), QuoteFailed("no direct route"))
        options = asyncio.run(scorer.compare_routes(SOL_MINT, USDC_MINT, 1_000))
        assert len(options) == 1

    def test_direct_comparison_disabled(self):
        """Only one fetch when direct routes are not compared."""
        scorer, gateway = make_scorer(make_quote(), config=Config(compare_direct_routes=False))
        asyncio.run(scorer.compare_routes(SOL_MINT, USDC_MINT, 1_000))
        assert gateway.fetch_quote.call_count == 1
