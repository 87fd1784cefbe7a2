"""
Data models for SwapKit.

Models: QuoteRequest, RouteStep, QuoteResponse, RouteFilter, RouteComparison,
SwapOptions, SwapResult, RecurringSwapConfig, TriggerCondition.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union


class RiskLevel(str, Enum):
    """Risk classification of a route."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class TriggerKind(str, Enum):
    """What a trigger watches."""
    PRICE = "price"
    BALANCE = "balance"
    TIME = "time"
    CUSTOM = "custom"


class ComparisonOperator(str, Enum):
    """Operator used to compare an observed value with a threshold."""
    GT = "gt"
    LT = "lt"
    EQ = "eq"
    GTE = "gte"
    LTE = "lte"

    def compare(self, observed: float, threshold: float) -> bool:
        if self is ComparisonOperator.GT:
            return observed > threshold
        if self is ComparisonOperator.LT:
            return observed < threshold
        if self is ComparisonOperator.EQ:
            return observed == threshold
        if self is ComparisonOperator.GTE:
            return observed >= threshold
        return observed <= threshold


class TriggerAction(str, Enum):
    """Action performed when a trigger condition holds."""
    SWAP = "swap"
    SELL = "sell"
    BUY = "buy"
    NOTIFY = "notify"


@dataclass(frozen=True)
class QuoteRequest:
    """Parameters of a single aggregator quote call."""
    input_asset: str
    output_asset: str
    amount: int  # smallest unit of input asset
    slippage_bps: int
    fee_bps: Optional[int] = None
    only_direct_routes: bool = False
    as_legacy_transaction: bool = False

    def to_params(self) -> Dict[str, str]:
        """Render as aggregator query parameters."""
        params = {
            "inputMint": self.input_asset,
            "outputMint": self.output_asset,
            "amount": str(self.amount),
            "slippageBps": str(self.slippage_bps),
            "onlyDirectRoutes": "true" if self.only_direct_routes else "false",
            "asLegacyTransaction": "true" if self.as_legacy_transaction else "false",
        }
        if self.fee_bps is not None:
            params["feeBps"] = str(self.fee_bps)
        return params


@dataclass(frozen=True)
class RouteStep:
    """One pool hop in a route plan."""
    pool_id: str
    dex_label: str
    input_mint: str
    output_mint: str
    in_amount: int
    out_amount: int
    fee_amount: int
    fee_mint: str
    percent: int = 100

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RouteStep":
        swap_info = data["swapInfo"]
        return cls(
            pool_id=swap_info.get("ammKey", ""),
            dex_label=swap_info.get("label", ""),
            input_mint=swap_info.get("inputMint", ""),
            output_mint=swap_info.get("outputMint", ""),
            in_amount=int(swap_info.get("inAmount", 0)),
            out_amount=int(swap_info.get("outAmount", 0)),
            fee_amount=int(swap_info.get("feeAmount", 0)),
            fee_mint=swap_info.get("feeMint", ""),
            percent=int(data.get("percent", 100)),
        )


@dataclass
class QuoteResponse:
    """Quote from the aggregator for a swap."""
    input_asset: str
    output_asset: str
    in_amount: int
    out_amount: int
    other_amount_threshold: int
    price_impact_pct: float
    slippage_bps: int
    route_plan: List[RouteStep]
    context_slot: Optional[int] = None
    time_taken: Optional[float] = None
    raw: Dict[str, Any] = field(default_factory=dict)  # full payload for swap request

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "QuoteResponse":
        """
        Build from an aggregator quote payload.

        Raises:
            KeyError, ValueError, TypeError: on malformed payloads
        """
        out_amount = int(data["outAmount"])
        if out_amount < 0:
            raise ValueError(f"Negative outAmount: {out_amount}")

        return cls(
            input_asset=data["inputMint"],
            output_asset=data["outputMint"],
            in_amount=int(data["inAmount"]),
            out_amount=out_amount,
            other_amount_threshold=int(data.get("otherAmountThreshold", out_amount)),
            price_impact_pct=float(data.get("priceImpactPct", 0) or 0),
            slippage_bps=int(data.get("slippageBps", 0)),
            route_plan=[RouteStep.from_dict(step) for step in data.get("routePlan", [])],
            context_slot=data.get("contextSlot"),
            time_taken=data.get("timeTaken"),
            raw=data,
        )

    @property
    def hop_count(self) -> int:
        return len(self.route_plan)

    @property
    def dex_path(self) -> List[str]:
        return [step.dex_label for step in self.route_plan]


@dataclass
class RouteFilter:
    """Optional constraints and preferences for route comparison."""
    include_dexes: Optional[List[str]] = None
    exclude_dexes: Optional[List[str]] = None
    max_hops: Optional[int] = None
    min_liquidity: Optional[float] = None
    prefer_speed: bool = False
    prefer_cheapest: bool = False
    max_slippage_bps: Optional[int] = None


@dataclass
class RouteComparison:
    """A scored candidate route. Never persisted."""
    route: QuoteResponse
    score: float
    estimated_execution_seconds: float
    risk_level: RiskLevel
    dex_path: List[str]


@dataclass
class SwapOptions:
    """Per-call swap options forwarded to the aggregator."""
    slippage_bps: Optional[int] = None
    fee_bps: Optional[int] = None
    only_direct_routes: bool = False
    as_legacy_transaction: bool = False
    wrap_and_unwrap_sol: bool = True
    dynamic_compute_unit_limit: bool = True
    prioritization_fee_lamports: Optional[int] = None
    compute_unit_price_micro_lamports: Optional[int] = None
    destination_token_account: Optional[str] = None
    skip_preflight: bool = False


@dataclass
class BalanceCheck:
    """Outcome of a balance check, amounts in smallest unit."""
    sufficient: bool
    available: int
    required: int


@dataclass
class SwapResult:
    """Result of a confirmed swap."""
    signature: str
    input_amount: int
    output_amount: int
    price_impact: float
    route: QuoteResponse
    raw_transaction: bytes


@dataclass
class SimulationResult:
    """Result of simulating a swap transaction."""
    success: bool
    logs: List[str] = field(default_factory=list)
    units_consumed: int = 0
    error: Optional[str] = None


@dataclass
class TokenMetadata:
    """Token list entry."""
    address: str
    symbol: str
    name: str
    decimals: int
    logo_uri: Optional[str] = None
    tags: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TokenMetadata":
        return cls(
            address=data["address"],
            symbol=data.get("symbol", ""),
            name=data.get("name", ""),
            decimals=int(data.get("decimals", 0)),
            logo_uri=data.get("logoURI"),
            tags=data.get("tags") or [],
        )


@dataclass
class RecurringSwapConfig:
    """
    A swap executed on a cron schedule.

    Owned by the Scheduler; enabled and last_executed_at are mutated
    only by the Scheduler itself.
    """
    id: str
    cron_schedule: str
    input_asset: str
    output_asset: str
    amount: int
    owner_account: str
    enabled: bool
    created_at: datetime
    max_slippage_bps: Optional[int] = None
    last_executed_at: Optional[datetime] = None
    next_execution_at: Optional[datetime] = None


@dataclass
class TriggerCondition:
    """
    A condition polled on a fixed interval, and the action it fires.

    Owned by the TriggerMonitor.
    """
    id: str
    kind: TriggerKind
    comparison_operator: ComparisonOperator
    threshold: Union[float, str, datetime]
    resulting_action: TriggerAction
    enabled: bool
    created_at: datetime
    watched_asset: Optional[str] = None
    action_parameters: Dict[str, Any] = field(default_factory=dict)
    custom_check: Optional[str] = None
    last_triggered_at: Optional[datetime] = None
