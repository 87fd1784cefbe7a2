"""
Trading module for SwapKit.

Handles quotes, route comparison, balance checks and swap execution.
"""

from swapkit.trading.jupiter import AggregatorAPI, QuoteGateway
from swapkit.trading.tokens import TokenService
from swapkit.trading.routes import RouteScorer, ScoreWeights
from swapkit.trading.balance import BalanceGuard
from swapkit.trading.executor import SwapExecutor

__all__ = [
    "AggregatorAPI",
    "QuoteGateway",
    "TokenService",
    "RouteScorer",
    "ScoreWeights",
    "BalanceGuard",
    "SwapExecutor",
]
