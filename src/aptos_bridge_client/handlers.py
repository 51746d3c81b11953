"""
Event handler contract and ready-made handlers.

Applications receive decoded bridge events by implementing ``EventHandler``.
Handler methods may be plain functions or coroutines; raising signals failure
and keeps the event from being marked as consumed.
"""

import inspect
import logging
from typing import Any, Awaitable, Callable, Protocol

from .models import BridgeEvent, BurnEvent, MintEvent
from .utils.btc import format_btc_amount

logger = logging.getLogger(__name__)


class EventHandler(Protocol):
    """Capability set the synchronizer dispatches to."""

    def handle_mint(self, event: MintEvent) -> Awaitable[None] | None: ...

    def handle_burn(self, event: BurnEvent) -> Awaitable[None] | None: ...


async def dispatch_event(handler: EventHandler, event: BridgeEvent) -> None:
    """Route an event to the matching handler method and await it if needed."""
    match event:
        case MintEvent():
            result: Any = handler.handle_mint(event)
        case BurnEvent():
            result = handler.handle_burn(event)
        case _:
            raise TypeError(f"Unsupported event type: {type(event).__name__}")
    if inspect.isawaitable(result):
        await result


class CallbackEventHandler:
    """Adapts a pair of functions to the handler contract."""

    def __init__(
        self,
        on_mint: Callable[[MintEvent], Any],
        on_burn: Callable[[BurnEvent], Any],
    ):
        self._on_mint = on_mint
        self._on_burn = on_burn

    def handle_mint(self, event: MintEvent) -> Any:
        return self._on_mint(event)

    def handle_burn(self, event: BurnEvent) -> Any:
        return self._on_burn(event)


class LoggingEventHandler:
    """Logs every event; used by the command-line listener."""

    async def handle_mint(self, event: MintEvent) -> None:
        logger.info(
            f"Mint Event - To: {event.to}, Amount: {format_btc_amount(event.amount)}, "
            f"Block: {event.btc_block_num}, Version: {event.version}, Timestamp: {event.timestamp}"
        )

    async def handle_burn(self, event: BurnEvent) -> None:
        logger.info(
            f"Burn Event - From: {event.sender}, To: {event.btc_address}, "
            f"Amount: {format_btc_amount(event.amount)}, FeeRate: {event.fee_rate}, "
            f"Operator: {event.operator_id}, Version: {event.version}, Timestamp: {event.timestamp}"
        )
