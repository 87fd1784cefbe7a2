"""
Event channel for SwapKit.

State transitions in the scheduler and trigger monitor publish typed
events; subscribers (UI, logging, tests) attach independently.
"""

import asyncio
import inspect
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Set

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    """Observable engine events."""
    SWAP_SCHEDULED = "swapScheduled"
    SWAP_CANCELLED = "swapCancelled"
    SWAP_TOGGLED = "swapToggled"
    SWAP_EXECUTING = "swapExecuting"
    SWAP_EXECUTED = "swapExecuted"
    SWAP_FAILED = "swapFailed"
    TRIGGER_SET = "triggerSet"
    TRIGGER_REMOVED = "triggerRemoved"
    TRIGGER_TOGGLED = "triggerToggled"
    TRIGGER_EXECUTING = "triggerExecuting"
    TRIGGER_EXECUTED = "triggerExecuted"
    TRIGGER_FAILED = "triggerFailed"
    TRIGGER_CHECK_FAILED = "triggerCheckFailed"
    SCHEDULER_STARTED = "schedulerStarted"
    SCHEDULER_STOPPED = "schedulerStopped"


@dataclass
class Event:
    """A published event."""
    type: EventType
    payload: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


Handler = Callable[[Event], Any]


class EventBus:
    """
    Publish/subscribe channel.

    A handler that raises is logged and skipped; it never affects the
    publisher or other handlers. Coroutine handlers are scheduled as
    tasks on the running loop and their failures are logged the same way.
    """

    def __init__(self):
        self._handlers: Dict[Optional[EventType], List[Handler]] = defaultdict(list)
        self._pending: Set[asyncio.Future] = set()

    def subscribe(self, event_type: Optional[EventType], handler: Handler) -> Callable[[], None]:
        """
        Attach a handler.

        Args:
            event_type: Event to listen for, or None for every event
            handler: Callable receiving the Event; may be a coroutine function

        Returns:
            Function that detaches the handler
        """
        self._handlers[event_type].append(handler)

        def unsubscribe() -> None:
            self.unsubscribe(event_type, handler)

        return unsubscribe

    def unsubscribe(self, event_type: Optional[EventType], handler: Handler) -> None:
        handlers = self._handlers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)

    def emit(self, event_type: EventType, **payload: Any) -> Event:
        event = Event(type=event_type, payload=payload)

        for handler in list(self._handlers.get(event_type, [])) + list(self._handlers.get(None, [])):
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    self._schedule(event_type, result)
            except Exception:
                logger.exception(f"Event handler failed for {event_type.value}")

        return event

    @property
    def pending(self) -> int:
        """Number of async handlers still running."""
        return len(self._pending)

    def _schedule(self, event_type: EventType, awaitable) -> None:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            logger.error(f"Async handler for {event_type.value} dropped: no running event loop")
            return

        future = asyncio.ensure_future(awaitable)
        self._pending.add(future)
        future.add_done_callback(lambda f: self._handler_done(event_type, f))

    def _handler_done(self, event_type: EventType, future: asyncio.Future) -> None:
        self._pending.discard(future)
        if future.cancelled():
            return
        error = future.exception()
        if error is not None:
            logger.error(
                f"Event handler failed for {event_type.value}: {error}",
                exc_info=(type(error), error, error.__traceback__),
            )
