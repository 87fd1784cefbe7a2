"""
Error taxonomy for SwapKit.

Every error carries a machine-readable code and optional details payload.
"""

from typing import Any, Optional


class SwapKitError(Exception):
    """Base exception for all SwapKit errors."""

    code = "SWAPKIT_ERROR"

    def __init__(self, message: str, code: Optional[str] = None, details: Any = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        self.details = details

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


class InvalidRequest(SwapKitError, ValueError):
    """A caller supplied a missing or malformed argument."""

    code = "INVALID_REQUEST"


class AggregatorError(SwapKitError):
    """Transport or HTTP-level failure talking to the aggregator."""

    code = "AGGREGATOR_ERROR"

    def __init__(self, message: str, status: Optional[int] = None, body: Any = None):
        super().__init__(message, details=body)
        self.status = status


class QuoteFailed(SwapKitError):
    code = "QUOTE_FAILED"


class RouteOptionsFailed(SwapKitError):
    code = "ROUTE_OPTIONS_FAILED"


class InvalidSwapResponse(SwapKitError):
    code = "INVALID_SWAP_RESPONSE"


class SwapTransactionFailed(SwapKitError):
    code = "SWAP_TRANSACTION_FAILED"


class InsufficientBalance(SwapKitError):
    """Account does not hold enough of the input asset."""

    code = "INSUFFICIENT_BALANCE"

    def __init__(self, asset: str, required: int, available: int):
        super().__init__(
            f"Insufficient {asset} balance. Required: {required}, Available: {available}",
            details={"asset": asset, "required": required, "available": available},
        )
        self.asset = asset
        self.required = required
        self.available = available


class WalletSigningRequired(SwapKitError):
    code = "WALLET_SIGNING_REQUIRED"


class TransactionFailed(SwapKitError):
    """Submitted transaction was rejected or never confirmed."""

    code = "TRANSACTION_FAILED"


class BalanceCheckFailed(SwapKitError):
    code = "BALANCE_CHECK_FAILED"


class ScheduledSwapNotFound(SwapKitError):
    code = "SCHEDULED_SWAP_NOT_FOUND"

    def __init__(self, swap_id: str):
        super().__init__(f"Scheduled swap not found: {swap_id}", details={"id": swap_id})


class TriggerNotFound(SwapKitError):
    code = "TRIGGER_NOT_FOUND"

    def __init__(self, trigger_id: str):
        super().__init__(f"Trigger not found: {trigger_id}", details={"id": trigger_id})


class TokenRequired(SwapKitError):
    code = "TOKEN_REQUIRED"


class InvalidCron(SwapKitError):
    code = "INVALID_CRON"

    def __init__(self, expression: str):
        super().__init__(f"Invalid cron expression: {expression}", details={"expression": expression})
