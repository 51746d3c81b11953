"""
Transaction orchestrator for bridge mint and burn calls.

Submissions from one account are serialized behind a per-account lock held
for the whole "read sequence number -> build -> sign -> submit" section, so
two concurrent calls can never use the same sequence number. Different
accounts submit fully concurrently.
"""

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from aptos_sdk.transactions import TransactionPayload

from .codec import OperationCodec
from .constants import BURN_FUNCTION, MINT_FUNCTION
from .errors import (
    InvalidAddress,
    InvalidInput,
    NetworkError,
    TransactionSubmissionFailed,
)
from .gateway import ChainGateway
from .models import (
    BridgeConfig,
    BurnRequest,
    Peg,
    ScriptType,
    TransactionHandle,
    TransactionStatus,
)
from .signer import Signer
from .transaction_builder import TransactionBuilder, bridge_call
from .utils.address import parse_account_address
from .utils.btc import validate_btc_address, validate_fee_rate

logger = logging.getLogger(__name__)


@dataclass
class _AccountSequence:
    """Sequence-number bookkeeping for one signing account."""
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    next_sequence: int | None = None


class TransactionOrchestrator:
    """
    Builds, signs, submits and tracks bridge transactions.

    Bounds in ``bridge_config`` are only a best-effort local check; the
    contract enforces the real limits.
    """

    def __init__(
        self,
        gateway: ChainGateway,
        signer: Signer,
        contract_address: str,
        chain_id: int,
        bridge_config: BridgeConfig | None = None,
        builder: TransactionBuilder | None = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            gateway: Chain gateway used for submission and status lookups
            signer: Default signing account
            contract_address: Bridge contract address
            chain_id: Chain identifier embedded in every transaction
            bridge_config: Known contract parameters for local validation
            builder: Transaction builder (defaults to standard gas settings)
        """
        self.gateway = gateway
        self.signer = signer
        self.contract_address = contract_address
        self.bridge_config = bridge_config
        self.builder = builder or TransactionBuilder(chain_id)
        self._accounts: dict[str, _AccountSequence] = {}
        self._terminal: dict[str, TransactionStatus] = {}

    async def refresh_bridge_config(self, query_client) -> BridgeConfig:
        """Reload the bounds used for local validation from the chain."""
        self.bridge_config = await query_client.get_bridge_config()
        return self.bridge_config

    def _check_pegs(self, pegs: Sequence[Peg]) -> None:
        if not pegs:
            raise InvalidInput("Pegs cannot be empty")

        config = self.bridge_config
        if config and len(pegs) > config.max_pegs_per_mint:
            raise InvalidInput(
                f"Too many pegs: {len(pegs)} exceeds maximum {config.max_pegs_per_mint}"
            )

        for i, peg in enumerate(pegs):
            try:
                parse_account_address(peg.to)
            except ValueError as e:
                raise InvalidAddress(peg.to, str(e)) from None
            if peg.value <= 0:
                raise InvalidInput(f"Peg {i}: value must be positive")
            try:
                ScriptType(peg.script_type)
            except ValueError:
                raise InvalidInput(f"Peg {i}: unknown script type {peg.script_type!r}") from None
            if config and not config.min_btc_per_mint <= peg.value <= config.max_btc_per_mint:
                raise InvalidInput(
                    f"Peg {i}: value {peg.value} outside mint bounds "
                    f"[{config.min_btc_per_mint}, {config.max_btc_per_mint}]"
                )

    def _check_burn(self, request: BurnRequest) -> None:
        validate_btc_address(request.btc_address)
        if request.amount <= 0:
            raise InvalidInput("Amount cannot be zero")

        config = self.bridge_config
        if config is None:
            if request.fee_rate <= 0:
                raise InvalidInput("Fee rate cannot be zero")
            return
        if config.burn_paused:
            raise InvalidInput("Burns are currently paused")
        if not config.min_btc_per_burn <= request.amount <= config.max_btc_per_burn:
            raise InvalidInput(
                f"Burn amount {request.amount} outside bounds "
                f"[{config.min_btc_per_burn}, {config.max_btc_per_burn}]"
            )
        validate_fee_rate(request.fee_rate, config.max_fee_rate)

    async def submit_mint(self, pegs: Sequence[Peg], signer: Signer | None = None) -> TransactionHandle:
        """
        Submit one ``mint`` call carrying every peg.

        Args:
            pegs: Deposits to mint for, in order
            signer: Signing account (defaults to the orchestrator's signer)

        Returns:
            Handle with the transaction hash and the sequence number used

        Raises:
            InvalidInput: Empty pegs or a locally known bound is violated
            EncodingFailed: A peg cannot be serialized (e.g. bad proof index)
            TransactionSubmissionFailed: The node rejected or never received the transaction
        """
        self._check_pegs(pegs)
        payload = bridge_call(
            self.contract_address, MINT_FUNCTION, [OperationCodec.encode_pegs(pegs)]
        )
        logger.info(f"Submitting mint with {len(pegs)} peg(s), total {sum(p.value for p in pegs)} satoshi")
        return await self._submit(payload, signer or self.signer)

    async def submit_burn(
        self,
        btc_address: str,
        fee_rate: int,
        amount: int,
        operator_id: int,
        signer: Signer | None = None,
    ) -> TransactionHandle:
        """
        Submit a ``burn`` call withdrawing ``amount`` satoshi to ``btc_address``.

        Every validation happens before the gateway is contacted.

        Raises:
            InvalidAddress: The Bitcoin address is malformed
            InvalidInput: Zero amount, paused burns, or a locally known bound is violated
            TransactionSubmissionFailed: The node rejected or never received the transaction
        """
        request = BurnRequest(
            btc_address=btc_address, fee_rate=fee_rate, amount=amount, operator_id=operator_id
        )
        self._check_burn(request)
        payload = bridge_call(
            self.contract_address, BURN_FUNCTION, OperationCodec.encode_burn_args(request)
        )
        logger.info(f"Submitting burn of {amount} satoshi to {btc_address} via operator {operator_id}")
        return await self._submit(payload, signer or self.signer)

    async def _submit(self, payload: TransactionPayload, signer: Signer) -> TransactionHandle:
        account = self._accounts.setdefault(signer.address, _AccountSequence())
        async with account.lock:
            try:
                on_chain = await self.gateway.get_account_sequence_number(signer.address)
            except NetworkError as e:
                raise TransactionSubmissionFailed(f"Could not read sequence number: {e}") from e

            # The node may not reflect our own accepted-but-pending submissions yet
            sequence_number = on_chain
            if account.next_sequence is not None:
                sequence_number = max(on_chain, account.next_sequence)

            raw_txn = self.builder.build(signer.address, sequence_number, payload)
            signed = self.builder.sign(raw_txn, signer)

            try:
                result = await self.gateway.submit_signed_transaction(signed)
            except NetworkError as e:
                raise TransactionSubmissionFailed(str(e)) from e
            except TransactionSubmissionFailed as e:
                if e.error_code and "SEQUENCE_NUMBER" in e.error_code:
                    account.next_sequence = None
                raise

            account.next_sequence = sequence_number + 1

        logger.info(f"Transaction submitted: {result.hash} (sequence {sequence_number})")
        return TransactionHandle(hash=result.hash, sequence_number=sequence_number, sender=signer.address)

    async def status(self, handle: TransactionHandle) -> TransactionStatus:
        """Single status lookup. Confirmed and failed results never change afterwards."""
        if cached := self._terminal.get(handle.hash):
            return cached
        status = await self.gateway.get_transaction_status(handle.hash)
        if status.is_terminal:
            self._terminal[handle.hash] = status
        return status

    async def await_confirmation(
        self,
        handle: TransactionHandle,
        timeout: float,
        poll_interval: float = 1.0,
        cancel: asyncio.Event | None = None,
    ) -> TransactionStatus:
        """
        Poll until the transaction is confirmed or failed.

        Args:
            handle: Handle returned by a submission
            timeout: Seconds to wait before giving up
            poll_interval: Seconds between status lookups
            cancel: Setting this event ends the wait early

        Returns:
            The terminal status, or ``Pending`` on timeout or cancellation
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        cancel = cancel or asyncio.Event()

        while not cancel.is_set():
            try:
                status = await self.status(handle)
            except NetworkError as e:
                logger.warning(f"Status lookup for {handle.hash} failed: {e}")
            else:
                if status.is_terminal:
                    logger.info(f"Transaction {handle.hash}: {status}")
                    return status

            remaining = deadline - loop.time()
            if remaining <= 0:
                break
            try:
                await asyncio.wait_for(cancel.wait(), timeout=min(poll_interval, remaining))
            except asyncio.TimeoutError:
                pass

        logger.info(f"Transaction {handle.hash} still pending after waiting")
        return TransactionStatus.pending()
