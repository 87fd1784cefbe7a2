"""
SwapKit - Jupiter swap automation SDK

Quotes, compares, schedules and triggers token swaps through the
Jupiter aggregator and executes them on Solana.
"""

__version__ = "0.1.0"
