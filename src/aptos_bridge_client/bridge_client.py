"""
Bridge client facade.

This module wires the gateway, signer, transaction orchestrator, query client
and event synchronizer together from one configuration object and runs the
standing event listener.
"""

import asyncio
import logging
from collections.abc import Sequence

from .config import BridgeClientConfig
from .cursor_store import CursorStore
from .errors import BridgeError, ConfigError
from .gateway import AptosRestGateway, ChainGateway
from .handlers import EventHandler
from .models import BridgeConfig, Peg, SyncState, TransactionHandle, TransactionStatus
from .orchestrator import TransactionOrchestrator
from .query_client import QueryClient
from .signer import Ed25519Signer, Signer
from .synchronizer import EventSynchronizer

logger = logging.getLogger(__name__)


class BridgeClient:
    """
    Entry point for applications using the bridge.

    Mint and burn calls go through the orchestrator; ``run()`` drives the
    event synchronizer until ``stop()`` is called.
    """

    STATUS_LOG_INTERVAL = 30  # seconds

    def __init__(
        self,
        config: BridgeClientConfig,
        gateway: ChainGateway | None = None,
        signer: Signer | None = None,
    ):
        """
        Initialize the bridge client.

        Args:
            config: Client configuration
            gateway: Chain gateway (defaults to the REST/indexer gateway from ``config``)
            signer: Signing account (defaults to the key in ``config.account``)
        """
        self.config = config
        self.contract_address = config.contract.contract_address

        self._owns_gateway = gateway is None
        self.gateway = gateway or AptosRestGateway(
            node_url=config.node.node_url,
            indexer_url=config.node.indexer_url,
            indexer_api_key=config.node.indexer_api_key,
            request_timeout=config.node.request_timeout,
            max_retries=config.node.max_retries,
        )

        if signer is None and config.account is not None:
            signer = Ed25519Signer.from_hex(config.account.private_key)
        self.signer = signer

        self.query = QueryClient(self.gateway, self.contract_address)
        self.orchestrator = (
            TransactionOrchestrator(
                self.gateway, signer, self.contract_address, config.node.chain_id
            )
            if signer
            else None
        )
        self.synchronizer: EventSynchronizer | None = None

        self.running = False
        self.shutdown_event = asyncio.Event()

        if signer:
            logger.info(f"Bridge client ready for account {signer.address}")
        else:
            logger.info("Bridge client ready in read-only mode")

    @classmethod
    def from_env(cls, require_account: bool = True) -> "BridgeClient":
        """
        Create a BridgeClient from environment variables.

        Raises:
            ConfigError: If required environment variables are missing or invalid
        """
        config = BridgeClientConfig.from_env(require_account=require_account)
        config.log_config()
        return cls(config)

    async def close(self) -> None:
        if self._owns_gateway and isinstance(self.gateway, AptosRestGateway):
            await self.gateway.close()

    async def __aenter__(self) -> "BridgeClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    def _require_orchestrator(self) -> TransactionOrchestrator:
        if self.orchestrator is None:
            raise ConfigError("No signing account configured; set PRIVATE_KEY to submit transactions")
        return self.orchestrator

    async def mint(self, pegs: Sequence[Peg]) -> TransactionHandle:
        return await self._require_orchestrator().submit_mint(pegs)

    async def burn(self, btc_address: str, fee_rate: int, amount: int, operator_id: int) -> TransactionHandle:
        return await self._require_orchestrator().submit_burn(btc_address, fee_rate, amount, operator_id)

    async def get_transaction_status(self, tx_hash: str) -> TransactionStatus:
        return await self.query.get_transaction_status(tx_hash)

    async def wait_for_transaction(
        self, handle: TransactionHandle, timeout: float | None = None
    ) -> TransactionStatus:
        """Wait for a submitted transaction, up to the configured confirmation timeout."""
        if timeout is None:
            timeout = self.config.sync.confirmation_timeout
        return await self._require_orchestrator().await_confirmation(handle, timeout)

    async def get_bridge_config(self) -> BridgeConfig:
        return await self.query.get_bridge_config()

    async def get_minted(self, address: str) -> int:
        return await self.query.get_minted(address)

    async def refresh_bridge_config(self) -> BridgeConfig:
        """Load contract bounds into the orchestrator for local validation."""
        return await self._require_orchestrator().refresh_bridge_config(self.query)

    def create_synchronizer(
        self,
        handler: EventHandler,
        cursor_store: CursorStore | None = None,
        on_error=None,
    ) -> EventSynchronizer:
        """
        Build a synchronizer from the sync configuration.

        A saved cursor in ``cursor_store`` takes precedence over the
        configured start version.
        """
        sync = self.config.sync
        cursor_start = sync.start_version
        if cursor_store is not None and (saved := cursor_store.load()) is not None:
            logger.info(f"Resuming event sync from saved cursor {saved}")
            cursor_start = saved

        return EventSynchronizer(
            self.gateway,
            self.contract_address,
            handler,
            cursor_start=cursor_start,
            batch_size=sync.batch_size,
            poll_interval=sync.poll_interval,
            handler_failure_policy=sync.handler_failure_policy,
            skip_decode_failures=sync.skip_decode_failures,
            on_error=on_error,
            cursor_store=cursor_store,
        )

    async def _periodic_status_logger(self) -> None:
        """Log synchronizer status periodically while running."""
        while self.running:
            await asyncio.sleep(self.STATUS_LOG_INTERVAL)
            if self.synchronizer:
                status = self.synchronizer.get_status()
                logger.info(
                    f"Status: {status['state']}, cursor {status['cursor']}, "
                    f"{status['events_processed']} events processed"
                )

    async def _check_task_health(self, tasks: dict[str, asyncio.Task]) -> bool:
        """Check if any critical task has ended."""
        for name, task in tasks.items():
            if task.done() and name != "status":
                try:
                    await task
                except Exception as e:
                    logger.error(f"{name} task failed: {e}", exc_info=True)
                return False
        return True

    async def _cleanup_tasks(self, tasks: dict[str, asyncio.Task]) -> None:
        if self.synchronizer:
            self.synchronizer.stop()

        for task in tasks.values():
            if not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass  # Expected when cancelling

    async def run(
        self,
        handler: EventHandler,
        cursor_store: CursorStore | None = None,
        on_error=None,
    ) -> None:
        """Run the event listener until ``stop()`` or a synchronizer failure."""
        self.running = True
        self.synchronizer = self.create_synchronizer(handler, cursor_store, on_error)
        logger.info("Bridge event listener starting...")

        tasks: dict[str, asyncio.Task] = {}
        try:
            tasks = {
                "sync": asyncio.create_task(self.synchronizer.start()),
                "status": asyncio.create_task(self._periodic_status_logger()),
            }

            # Wait until shutdown or task failure
            while self.running:
                try:
                    await asyncio.wait_for(self.shutdown_event.wait(), timeout=1.0)
                    break  # Shutdown requested
                except asyncio.TimeoutError:
                    pass  # Continue running

                if not await self._check_task_health(tasks):
                    logger.error(f"Event sync ended: {self.synchronizer.state.value}")
                    break

        except Exception as e:
            logger.error(f"Error in main loop: {e}", exc_info=True)
            raise
        finally:
            self.running = False
            await self._cleanup_tasks(tasks)
            logger.info(f"Bridge event listener stopped at version {self.synchronizer.cursor}")

        if self.synchronizer.state is SyncState.FAILED:
            raise BridgeError(f"Event sync failed: {self.synchronizer.last_error}")

    def stop(self) -> None:
        """Stop the event listener."""
        self.running = False
        self.shutdown_event.set()
