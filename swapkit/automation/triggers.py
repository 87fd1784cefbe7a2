"""
Trigger monitor for SwapKit.

Polls price, balance, time and custom conditions on a fixed interval
and performs an action when a condition holds. A failing check or
action is reported for that trigger only.
"""

import inspect
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from swapkit.automation.registry import RegistryEntry, TimedRegistry
from swapkit.automation.schedule import IntervalSchedule
from swapkit.automation.scheduler import SignerResolver, validate_amount
from swapkit.core.errors import InvalidRequest, TokenRequired, TriggerNotFound
from swapkit.core.events import EventBus, EventType
from swapkit.core.mints import USDC_MINT, resolve_mint
from swapkit.core.models import (
    ComparisonOperator,
    SwapOptions,
    TriggerAction,
    TriggerCondition,
    TriggerKind,
)
from swapkit.core.signer import parse_pubkey

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 30.0

CustomCheck = Callable[[TriggerCondition], Any]
Notifier = Callable[[TriggerCondition, str], Any]


def _coerce(enum_cls, value, label: str):
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise InvalidRequest(f"Invalid {label} {value!r}, expected one of: {allowed}")


def parse_threshold_time(value) -> datetime:
    """
    Parse a time threshold.

    Accepts a datetime, an ISO-8601 string or epoch seconds. Naive
    values are taken as UTC.
    """
    if isinstance(value, datetime):
        moment = value
    elif isinstance(value, str):
        try:
            moment = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            raise InvalidRequest(f"Invalid time threshold: {value!r}")
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        moment = datetime.fromtimestamp(value, tz=timezone.utc)
    else:
        raise InvalidRequest(f"Invalid time threshold: {value!r}")

    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


def _numeric_threshold(value) -> float:
    if isinstance(value, bool):
        raise InvalidRequest(f"Threshold must be a number, got {value!r}")
    try:
        return float(value)
    except (TypeError, ValueError):
        raise InvalidRequest(f"Threshold must be a number, got {value!r}")


def _default_notifier(condition: TriggerCondition, message: str) -> None:
    logger.info(f"Trigger notification ({condition.id}): {message}")


class TriggerMonitor(TimedRegistry):
    """
    Registry of condition -> action rules.

    Each entry moves Enabled <-> Disabled until removed.
    """

    id_prefix = "trigger"

    def __init__(
        self,
        executor,
        balance_guard,
        token_service,
        signer_resolver: SignerResolver,
        events: Optional[EventBus] = None,
        clock=None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        default_owner: Optional[str] = None,
        notifier: Optional[Notifier] = None,
        max_idle_sleep: float = 1.0,
    ):
        """
        Initialize trigger monitor.

        Args:
            executor: Object with an async execute_swap(...) method
            balance_guard: Balance reads for balance triggers
            token_service: Price reads for price triggers
            signer_resolver: Maps an owner address to its signer
            events: Event channel for lifecycle events
            clock: Clock source (SystemClock by default)
            poll_interval: Seconds between checks of one trigger
            default_owner: Owner used when a trigger names none
            notifier: Callback for notify actions (sync or async)
            max_idle_sleep: Upper bound on serve() sleeps, in seconds
        """
        super().__init__(events=events, clock=clock, max_idle_sleep=max_idle_sleep)
        self.executor = executor
        self.balance_guard = balance_guard
        self.token_service = token_service
        self.signer_resolver = signer_resolver
        self.poll_interval = poll_interval
        self.default_owner = default_owner
        self.notifier = notifier or _default_notifier
        self._custom_checks: Dict[str, CustomCheck] = {}

    def _not_found(self, entry_id: str) -> Exception:
        return TriggerNotFound(entry_id)

    def register_custom_check(self, name: str, check: CustomCheck) -> None:
        """Register a predicate (sync or async) for custom triggers."""
        if not name:
            raise InvalidRequest("Custom check name must not be empty")
        self._custom_checks[name] = check

    def _owner_for(self, params: Dict[str, Any]) -> str:
        owner = params.get("owner") or self.default_owner
        if not owner:
            raise InvalidRequest("No owner account given and no default owner configured")
        parse_pubkey(str(owner))
        return str(owner)

    def _swap_parameters(self, condition: TriggerCondition) -> Tuple[str, str, int, str]:
        """
        Resolve (input, output, amount, owner) for a swap/sell/buy action.

        sell: watched asset -> output_asset (USDC by default)
        buy: input_asset (USDC by default) -> watched asset
        """
        params = condition.action_parameters
        action = condition.resulting_action

        if action is TriggerAction.SELL:
            input_asset = condition.watched_asset or params.get("input_asset")
            output_asset = params.get("output_asset") or USDC_MINT
        elif action is TriggerAction.BUY:
            input_asset = params.get("input_asset") or USDC_MINT
            output_asset = condition.watched_asset or params.get("output_asset")
        else:
            input_asset = params.get("input_asset")
            output_asset = params.get("output_asset")

        if not input_asset or not output_asset:
            raise InvalidRequest(f"{action.value} action needs both an input and an output asset")

        resolve_mint(input_asset)
        resolve_mint(output_asset)
        amount = validate_amount(params.get("amount"))
        return input_asset, output_asset, amount, self._owner_for(params)

    def set_trigger(
        self,
        kind,
        comparison_operator,
        threshold,
        resulting_action,
        watched_asset: Optional[str] = None,
        action_parameters: Optional[Dict[str, Any]] = None,
        enabled: bool = True,
        custom_check: Optional[str] = None,
    ) -> str:
        """
        Register a trigger.

        Validation happens before anything is registered.

        Returns:
            Id of the new trigger

        Raises:
            TokenRequired: price/balance trigger without a watched asset
            InvalidRequest: on any other invalid field
        """
        kind = _coerce(TriggerKind, kind, "trigger kind")
        operator = _coerce(ComparisonOperator, comparison_operator, "comparison operator")
        action = _coerce(TriggerAction, resulting_action, "trigger action")
        params = dict(action_parameters or {})

        if kind in (TriggerKind.PRICE, TriggerKind.BALANCE) and not watched_asset:
            raise TokenRequired(f"Token required for {kind.value} condition")
        if watched_asset:
            resolve_mint(watched_asset)

        if kind is TriggerKind.TIME:
            parse_threshold_time(threshold)
        elif kind is TriggerKind.CUSTOM:
            if not custom_check:
                raise InvalidRequest("Custom trigger needs a custom_check name")
        else:
            threshold = _numeric_threshold(threshold)

        if kind is TriggerKind.BALANCE:
            self._owner_for(params)

        condition = TriggerCondition(
            id=self._new_id(),
            kind=kind,
            comparison_operator=operator,
            threshold=threshold,
            resulting_action=action,
            enabled=enabled,
            created_at=self.clock.now(),
            watched_asset=watched_asset,
            action_parameters=params,
            custom_check=custom_check,
        )

        if action is not TriggerAction.NOTIFY:
            self._swap_parameters(condition)

        self._add(RegistryEntry(
            id=condition.id,
            item=condition,
            schedule=IntervalSchedule(self.poll_interval),
        ))

        logger.info(
            f"Trigger {condition.id} set: {kind.value} {watched_asset or ''} "
            f"{operator.value} {threshold} -> {action.value}"
        )
        self.events.emit(EventType.TRIGGER_SET, condition=condition)
        return condition.id

    def get_triggers(self) -> List[TriggerCondition]:
        return [entry.item for entry in self._snapshot()]

    def get_trigger(self, trigger_id: str) -> TriggerCondition:
        return self._get(trigger_id).item

    def remove_trigger(self, trigger_id: str) -> None:
        """
        Remove a trigger.

        Raises:
            TriggerNotFound: if the id is not registered
        """
        self._remove(trigger_id)
        logger.info(f"Removed trigger {trigger_id}")
        self.events.emit(EventType.TRIGGER_REMOVED, id=trigger_id)

    def toggle_trigger(self, trigger_id: str, enabled: bool) -> None:
        """
        Enable or disable a trigger without losing it.

        Raises:
            TriggerNotFound: if the id is not registered
        """
        self._set_enabled(trigger_id, enabled)
        logger.info(f"Trigger {trigger_id} {'enabled' if enabled else 'disabled'}")
        self.events.emit(EventType.TRIGGER_TOGGLED, id=trigger_id, enabled=enabled)

    async def evaluate(self, condition: TriggerCondition) -> bool:
        """
        Check whether a condition currently holds.

        Raises:
            TokenRequired: price/balance condition without a watched asset
        """
        operator = condition.comparison_operator

        if condition.kind is TriggerKind.PRICE:
            if not condition.watched_asset:
                raise TokenRequired("Token required for price condition")
            price = await self.token_service.get_token_price(condition.watched_asset, fresh=True)
            return operator.compare(price, _numeric_threshold(condition.threshold))

        if condition.kind is TriggerKind.BALANCE:
            if not condition.watched_asset:
                raise TokenRequired("Token required for balance condition")
            owner = self._owner_for(condition.action_parameters)
            balance = await self.balance_guard.get_balance(owner, condition.watched_asset)
            return operator.compare(balance, _numeric_threshold(condition.threshold))

        if condition.kind is TriggerKind.TIME:
            target = parse_threshold_time(condition.threshold)
            return operator.compare(self.clock.now().timestamp(), target.timestamp())

        check = self._custom_checks.get(condition.custom_check or "")
        if check is None:
            logger.debug(f"No custom check registered as {condition.custom_check!r}")
            return False

        result = check(condition)
        if inspect.isawaitable(result):
            result = await result
        return bool(result)

    async def _fire(self, entry: RegistryEntry) -> None:
        condition: TriggerCondition = entry.item

        try:
            holds = await self.evaluate(condition)
        except Exception as e:
            logger.error(f"Trigger check failed for {condition.id}: {e}")
            self.events.emit(EventType.TRIGGER_CHECK_FAILED, condition=condition, error=e)
            return

        if not holds or not self._is_current(entry):
            return

        await self._execute_action(entry)

    async def _execute_action(self, entry: RegistryEntry) -> None:
        condition: TriggerCondition = entry.item
        self.events.emit(EventType.TRIGGER_EXECUTING, condition=condition)

        try:
            result = await self._perform(condition)
        except Exception as e:
            if not self._is_current(entry):
                logger.info(f"Discarding failure of removed trigger {condition.id}: {e}")
                return
            logger.error(f"Trigger action failed for {condition.id}: {e}")
            self.events.emit(EventType.TRIGGER_FAILED, condition=condition, error=e)
            return

        if not self._is_current(entry):
            logger.info(f"Discarding result of removed trigger {condition.id}")
            return

        condition.last_triggered_at = self.clock.now()
        self.events.emit(EventType.TRIGGER_EXECUTED, condition=condition, result=result)

    async def _perform(self, condition: TriggerCondition):
        if condition.resulting_action is TriggerAction.NOTIFY:
            message = condition.action_parameters.get("message") or (
                f"{condition.kind.value} condition {condition.comparison_operator.value} "
                f"{condition.threshold} met"
            )
            result = self.notifier(condition, message)
            if inspect.isawaitable(result):
                result = await result
            return result

        input_asset, output_asset, amount, owner = self._swap_parameters(condition)
        slippage_bps = condition.action_parameters.get("slippage_bps")

        return await self.executor.execute_swap(
            input_asset,
            output_asset,
            amount,
            self.signer_resolver(owner),
            SwapOptions(slippage_bps=slippage_bps),
        )
