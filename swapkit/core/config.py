"""
Configuration management for SwapKit.

Loads settings from environment variables (optionally via a .env file).
"""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from swapkit.core.utils import mask_url

DEFAULT_JUPITER_API_URL = "https://quote-api.jup.ag/v6"
DEFAULT_RPC_URL = "https://api.mainnet-beta.solana.com"


def _env_int(name: str, default: Optional[int]) -> Optional[int]:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}")


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {value!r}")


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Config:
    """Application configuration."""

    # Endpoints
    jupiter_api_url: str = DEFAULT_JUPITER_API_URL
    rpc_url: str = DEFAULT_RPC_URL
    request_timeout: float = 30.0

    # Quoting
    default_slippage_bps: int = 50  # 0.5%
    route_comparison_slippage_bps: int = 100  # wider, leaves room for trade-offs
    compare_direct_routes: bool = True

    # Execution
    confirm_timeout: float = 60.0
    confirm_poll_interval: float = 2.0
    send_retries: int = 3
    priority_fee_lamports: Optional[int] = None

    # Automation
    trigger_poll_interval: float = 30.0
    max_idle_sleep: float = 1.0

    # Token service
    price_cache_ttl: float = 300.0

    # Wallet (base58 private key, never logged)
    wallet_private_key: Optional[str] = None

    # Mode: LIVE or TEST
    mode: str = "TEST"

    @classmethod
    def from_env(cls, dotenv_path: Optional[str] = None) -> "Config":
        """Load configuration from environment variables and an optional .env file."""
        load_dotenv(dotenv_path)

        return cls(
            jupiter_api_url=os.getenv("JUPITER_API_URL", DEFAULT_JUPITER_API_URL).rstrip("/"),
            rpc_url=os.getenv("SOLANA_RPC_URL", DEFAULT_RPC_URL),
            request_timeout=_env_float("REQUEST_TIMEOUT", 30.0),

            default_slippage_bps=_env_int("DEFAULT_SLIPPAGE_BPS", 50),
            route_comparison_slippage_bps=_env_int("ROUTE_COMPARISON_SLIPPAGE_BPS", 100),
            compare_direct_routes=_env_bool("COMPARE_DIRECT_ROUTES", True),

            confirm_timeout=_env_float("CONFIRM_TIMEOUT", 60.0),
            confirm_poll_interval=_env_float("CONFIRM_POLL_INTERVAL", 2.0),
            send_retries=_env_int("SEND_RETRIES", 3),
            priority_fee_lamports=_env_int("PRIORITY_FEE_LAMPORTS", None),

            trigger_poll_interval=_env_float("TRIGGER_POLL_INTERVAL", 30.0),
            max_idle_sleep=_env_float("MAX_IDLE_SLEEP", 1.0),

            price_cache_ttl=_env_float("PRICE_CACHE_TTL", 300.0),

            wallet_private_key=os.getenv("WALLET_PRIVATE_KEY") or None,

            mode=os.getenv("MODE", "TEST").upper(),
        )

    @property
    def is_live(self) -> bool:
        return self.mode == "LIVE"

    def get_summary(self) -> str:
        """Get a summary of current settings, with secrets masked."""
        return f"""Mode: {self.mode}

Endpoints:
  Jupiter API: {self.jupiter_api_url}
  Solana RPC: {mask_url(self.rpc_url)}
  Timeout: {self.request_timeout:.0f}s

Quoting:
  Default Slippage: {self.default_slippage_bps} bps
  Comparison Slippage: {self.route_comparison_slippage_bps} bps
  Compare Direct Routes: {'Yes' if self.compare_direct_routes else 'No'}

Execution:
  Confirm Timeout: {self.confirm_timeout:.0f}s
  Send Retries: {self.send_retries}
  Priority Fee: {"auto" if self.priority_fee_lamports is None else self.priority_fee_lamports}

Automation:
  Trigger Poll Interval: {self.trigger_poll_interval:.0f}s

Wallet: {'Configured' if self.wallet_private_key else 'Not configured'}
"""
