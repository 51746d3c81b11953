"""
Polling synchronizer for the bridge event stream.

The synchronizer keeps a cursor (the next unconsumed transaction version),
fetches events in batches through the chain gateway, decodes them, and hands
them to an application handler one at a time in ascending version order.
The cursor only moves past a version once every event at that version has
been handled successfully, so a failing handler sees the same event again
instead of losing it.
"""

import asyncio
import logging
from typing import Any, Callable

from .codec import OperationCodec
from .cursor_store import CursorStore
from .errors import BridgeError, ConfigError, EventDecodeFailed, HandlerError, NetworkError
from .gateway import ChainGateway
from .handlers import EventHandler, dispatch_event
from .models import HandlerFailurePolicy, RawEvent, SyncState
from .utils.retry import backoff_delay


class EventSynchronizer:
    """
    Delivers bridge events to a handler, at least once and strictly in order.

    Lifecycle: ``IDLE`` -> ``POLLING`` (``start()``) -> ``STOPPED`` (``stop()``)
    or ``FAILED`` (unrecoverable handler/decode failure under the halting policy).
    """

    def __init__(
        self,
        gateway: ChainGateway,
        contract_address: str,
        handler: EventHandler,
        cursor_start: int = 0,
        batch_size: int = 100,
        poll_interval: float = 10.0,
        *,
        handler_failure_policy: HandlerFailurePolicy = HandlerFailurePolicy.RETRY,
        retry_backoff: float = 1.0,
        max_retry_backoff: float = 60.0,
        skip_decode_failures: bool = False,
        on_error: Callable[[BridgeError], Any] | None = None,
        cursor_store: CursorStore | None = None,
    ):
        """
        Initialize the synchronizer.

        Args:
            gateway: Chain gateway used to fetch raw events
            contract_address: Bridge contract whose events are replayed
            handler: Application handler receiving decoded events
            cursor_start: First version to fetch (resume point after a restart)
            batch_size: Maximum events requested per fetch
            poll_interval: Seconds to wait after an empty fetch
            handler_failure_policy: Redeliver after a backoff, or halt into FAILED
            retry_backoff: First redelivery delay in seconds
            max_retry_backoff: Cap on the redelivery delay
            skip_decode_failures: Advance past undecodable events instead of halting
            on_error: Called with every handler, decode or fetch failure
            cursor_store: Receives every advanced cursor value
        """
        if cursor_start < 0:
            raise ConfigError(f"cursor_start must be non-negative, got {cursor_start}")
        self._validate_batch_size(batch_size)
        self._validate_poll_interval(poll_interval)

        self.gateway = gateway
        self.contract_address = contract_address
        self.handler = handler
        self.handler_failure_policy = handler_failure_policy
        self.retry_backoff = retry_backoff
        self.max_retry_backoff = max_retry_backoff
        self.skip_decode_failures = skip_decode_failures
        self.on_error = on_error
        self.cursor_store = cursor_store

        self._cursor = cursor_start
        self._batch_size = batch_size
        self._poll_interval = poll_interval
        self._state = SyncState.IDLE

        self.last_error: BridgeError | None = None
        self.events_processed = 0
        self._consecutive_failures = 0

        self._stop_event = asyncio.Event()
        self._batch_lock = asyncio.Lock()

        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    @staticmethod
    def _validate_batch_size(batch_size: int) -> None:
        if batch_size <= 0:
            raise ConfigError(f"Batch size must be positive, got {batch_size}")

    @staticmethod
    def _validate_poll_interval(poll_interval: float) -> None:
        if poll_interval < 0:
            raise ConfigError(f"Poll interval must be non-negative, got {poll_interval}")

    @property
    def cursor(self) -> int:
        """Next unconsumed version; persist this to resume after a restart."""
        return self._cursor

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def batch_size(self) -> int:
        return self._batch_size

    @property
    def poll_interval(self) -> float:
        return self._poll_interval

    def set_batch_size(self, batch_size: int) -> None:
        """Change the batch size; takes effect on the next fetch."""
        self._validate_batch_size(batch_size)
        self._batch_size = batch_size

    def set_poll_interval(self, poll_interval: float) -> None:
        """Change the idle poll interval; takes effect on the next wait."""
        self._validate_poll_interval(poll_interval)
        self._poll_interval = poll_interval

    async def start(self) -> None:
        """
        Poll until ``stop()`` is called or an unrecoverable failure occurs.

        A batch with nothing new means the stream is caught up and is followed by a
        ``poll_interval`` wait. Network failures are reported and retried on
        the next poll.
        """
        if self._state is not SyncState.IDLE:
            self.logger.warning(f"Synchronizer cannot start from state {self._state.value}")
            return

        self._state = SyncState.POLLING
        self.logger.info(
            f"Starting event sync for {self.contract_address} at version {self._cursor} "
            f"(batch size {self._batch_size}, poll interval {self._poll_interval}s)"
        )

        try:
            while self._state is SyncState.POLLING:
                try:
                    pending, _ = await self._process_batch()
                except NetworkError as e:
                    self._report(e)
                    self.logger.warning(f"Error fetching events: {e}")
                    await self._sleep(self._poll_interval)
                    continue
                except EventDecodeFailed as e:
                    self._fail(e)
                    break
                except HandlerError as e:
                    if self.handler_failure_policy is HandlerFailurePolicy.HALT:
                        self._fail(e)
                        break
                    delay = backoff_delay(
                        self._consecutive_failures - 1, self.retry_backoff, self.max_retry_backoff
                    )
                    self.logger.warning(f"Redelivering event at version {e.version} in {delay:.2f}s")
                    await self._sleep(delay)
                    continue
                except BridgeError as e:
                    self._report(e)
                    self.logger.error(f"Error in sync loop: {e}")
                    await self._sleep(self._poll_interval)
                    continue

                if pending == 0:
                    await self._sleep(self._poll_interval)
        except asyncio.CancelledError:
            self.logger.info("Event sync cancelled")
            self._state = SyncState.STOPPED
            raise
        except Exception as e:
            self.logger.error(f"Unexpected error in sync loop: {e}", exc_info=True)
            self._state = SyncState.FAILED
            raise

        self.logger.info(f"Event sync ended in state {self._state.value} at version {self._cursor}")

    def stop(self) -> None:
        """Halt the polling loop; wakes any in-progress wait or fetch."""
        if self._state in (SyncState.STOPPED, SyncState.FAILED):
            return
        self.logger.info(f"Stopping event sync for {self.contract_address}")
        self._state = SyncState.STOPPED
        self._stop_event.set()

    async def process_events_once(self) -> int:
        """
        Run a single fetch/decode/dispatch pass, for callers driving the polling themselves.

        Returns:
            Number of events dispatched to the handler

        Raises:
            HandlerError: The handler failed; the cursor stays on that event
            EventDecodeFailed: An event could not be decoded and skipping is disabled
            NetworkError: The gateway could not be reached
        """
        if self._state in (SyncState.STOPPED, SyncState.FAILED):
            raise BridgeError(f"Synchronizer is {self._state.value}")
        _, dispatched = await self._process_batch()
        return dispatched

    async def _process_batch(self) -> tuple[int, int]:
        """Fetch one batch and dispatch it. Returns (events not yet consumed, events dispatched)."""
        async with self._batch_lock:
            batch_size = self._batch_size
            raw_events = await self._fetch(batch_size)
            if not raw_events:
                return 0, 0

            pending = self._pending_events(raw_events)
            dispatched = 0
            for i, raw in enumerate(pending):
                if self._stop_event.is_set():
                    break
                if await self._consume(raw):
                    dispatched += 1
                last_of_version = i + 1 == len(pending) or pending[i + 1].version != raw.version
                if last_of_version:
                    self._advance(raw.version + 1)

            if dispatched:
                self.logger.info(f"Dispatched {dispatched} events, cursor now {self._cursor}")
            return len(pending), dispatched

    def _pending_events(self, raw_events: list[RawEvent]) -> list[RawEvent]:
        """Order a batch and drop anything already consumed or repeated."""
        seen: set[tuple[int, int]] = set()
        pending = []
        for raw in sorted(raw_events, key=lambda e: (e.version, e.event_index)):
            key = (raw.version, raw.event_index)
            if raw.version < self._cursor or key in seen:
                self.logger.debug(f"Skipping already consumed event {key}")
                continue
            seen.add(key)
            pending.append(raw)
        return pending

    async def _consume(self, raw: RawEvent) -> bool:
        """Decode and dispatch one event. Returns False if it was skipped as undecodable."""
        try:
            event = OperationCodec.decode_event(raw, self.contract_address)
        except EventDecodeFailed as e:
            self._report(e)
            if not self.skip_decode_failures:
                self.logger.error(f"Halting at undecodable event: {e}")
                raise
            self.logger.warning(f"Skipping undecodable event: {e}")
            return False

        try:
            await dispatch_event(self.handler, event)
        except Exception as e:
            self._consecutive_failures += 1
            error = HandlerError(raw.version, e)
            self._report(error)
            self.logger.error(str(error), exc_info=True)
            raise error from e

        self.events_processed += 1
        self._consecutive_failures = 0
        return True

    async def _fetch(self, batch_size: int) -> list[RawEvent] | None:
        """Fetch a batch, abandoning the request if ``stop()`` is called meanwhile."""
        fetch = asyncio.ensure_future(
            self.gateway.fetch_events(self.contract_address, self._cursor, batch_size)
        )
        stopped = asyncio.ensure_future(self._stop_event.wait())
        try:
            done, _ = await asyncio.wait({fetch, stopped}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            stopped.cancel()
            if not fetch.done():
                fetch.cancel()
        if fetch not in done:
            try:
                await fetch
            except asyncio.CancelledError:
                pass  # Expected when stopping mid-fetch
            return None
        return fetch.result()

    async def _sleep(self, delay: float) -> None:
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            pass

    def _advance(self, cursor: int) -> None:
        self._cursor = cursor
        if self.cursor_store is not None:
            self.cursor_store.save(cursor)

    def _report(self, error: BridgeError) -> None:
        self.last_error = error
        if self.on_error is None:
            return
        try:
            self.on_error(error)
        except Exception as callback_error:
            self.logger.error(f"Error callback raised: {callback_error}", exc_info=True)

    def _fail(self, error: BridgeError) -> None:
        self.logger.error(f"Event sync halted at version {self._cursor}: {error}")
        self._state = SyncState.FAILED

    def get_status(self) -> dict[str, Any]:
        """
        Get current status of the synchronizer.

        Returns:
            Dictionary with status information
        """
        return {
            "state": self._state.value,
            "cursor": self._cursor,
            "events_processed": self.events_processed,
            "batch_size": self._batch_size,
            "poll_interval": self._poll_interval,
            "contract_address": self.contract_address,
            "last_error": str(self.last_error) if self.last_error else None,
        }
