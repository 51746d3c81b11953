"""Data models for the Aptos bridge client.

This module contains the immutable value types shared by the transaction
orchestrator, the event synchronizer and the codec.
"""

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Mapping

from .utils.address import canonical_address


class ScriptType(IntEnum):
    """Bitcoin output script type, encoded as a u8 on the wire."""
    P2PKH = 0
    P2SH = 1
    P2WPKH = 2
    P2WSH = 3
    P2TR = 4


@dataclass(frozen=True, slots=True)
class InclusionProof:
    """Evidence that a Bitcoin transaction is included in a block.

    The codec never re-verifies the Merkle path; it only preserves the byte
    content and the order of ``merkle_proof`` exactly as given.

    Attributes:
        block_header: Raw 80-byte Bitcoin block header
        tx_id: Transaction id bytes
        tx_index: Position of the transaction within the block
        merkle_proof: Ordered Merkle path node hashes
        raw_tx: Raw serialized Bitcoin transaction
    """
    block_header: bytes
    tx_id: bytes
    tx_index: int
    merkle_proof: tuple[bytes, ...]
    raw_tx: bytes

    def __post_init__(self) -> None:
        # Accept any sequence for the path but store it immutably
        if not isinstance(self.merkle_proof, tuple):
            object.__setattr__(self, 'merkle_proof', tuple(self.merkle_proof))


@dataclass(frozen=True, slots=True)
class Peg:
    """A claimed Bitcoin deposit presented for minting.

    Attributes:
        to: Aptos recipient address, held in canonical long form when it parses
        value: Deposit value in satoshi
        block_num: Bitcoin block height of the deposit
        inclusion_proof: Proof that the deposit transaction is in that block
        tx_out_ix: Output index within the deposit transaction
        dest_script_hash: Hash of the destination script
        script_type: Script type of the deposit output
    """
    to: str
    value: int
    block_num: int
    inclusion_proof: InclusionProof
    tx_out_ix: int
    dest_script_hash: bytes
    script_type: ScriptType

    def __post_init__(self) -> None:
        # Unparseable addresses are kept as given and rejected at submission
        try:
            canonical = canonical_address(self.to)
        except ValueError:
            return
        if canonical != self.to:
            object.__setattr__(self, 'to', canonical)


@dataclass(frozen=True, slots=True)
class BurnRequest:
    """Arguments of a burn (withdrawal to Bitcoin) call."""
    btc_address: str
    fee_rate: int
    amount: int
    operator_id: int


@dataclass(frozen=True, slots=True)
class BridgeConfig:
    """Snapshot of the bridge contract's parameters.

    Only used for client-side validation; the contract stays authoritative.
    """
    owner: str
    min_confirmations: int
    max_pegs_per_mint: int
    max_btc_per_mint: int
    min_btc_per_mint: int
    max_btc_per_burn: int
    min_btc_per_burn: int
    burn_paused: bool
    max_fee_rate: int

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "owner": self.owner,
            "min_confirmations": self.min_confirmations,
            "max_pegs_per_mint": self.max_pegs_per_mint,
            "max_btc_per_mint": self.max_btc_per_mint,
            "min_btc_per_mint": self.min_btc_per_mint,
            "max_btc_per_burn": self.max_btc_per_burn,
            "min_btc_per_burn": self.min_btc_per_burn,
            "burn_paused": self.burn_paused,
            "max_fee_rate": self.max_fee_rate,
        }


@dataclass(frozen=True, slots=True)
class TransactionHandle:
    """Result of a submission: the transaction hash and the sequence number used."""
    hash: str
    sequence_number: int
    sender: str


@dataclass(frozen=True, slots=True)
class SubmissionResult:
    """What the node reports back for an accepted transaction."""
    hash: str
    sequence_number: int


class TxState(Enum):
    """Lifecycle state of a submitted transaction."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"
    NOT_FOUND = "not_found"


@dataclass(frozen=True, slots=True)
class TransactionStatus:
    """Status of a submitted transaction.

    ``version`` is set only for confirmed transactions, ``reason`` only for
    failed ones. Confirmed and failed are terminal.
    """
    state: TxState
    version: int | None = None
    reason: str | None = None

    @classmethod
    def pending(cls) -> "TransactionStatus":
        return cls(TxState.PENDING)

    @classmethod
    def confirmed(cls, version: int) -> "TransactionStatus":
        return cls(TxState.CONFIRMED, version=version)

    @classmethod
    def failed(cls, reason: str) -> "TransactionStatus":
        return cls(TxState.FAILED, reason=reason)

    @classmethod
    def not_found(cls) -> "TransactionStatus":
        return cls(TxState.NOT_FOUND)

    @property
    def is_terminal(self) -> bool:
        return self.state in (TxState.CONFIRMED, TxState.FAILED)

    def __str__(self) -> str:
        match self.state:
            case TxState.CONFIRMED:
                return f"Confirmed(version={self.version})"
            case TxState.FAILED:
                return f"Failed(reason={self.reason})"
            case TxState.PENDING:
                return "Pending"
            case _:
                return "NotFound"


@dataclass(frozen=True, slots=True)
class RawEvent:
    """An undecoded entry of the bridge event stream.

    Attributes:
        version: Transaction version that emitted the event
        event_index: Position of the event among those emitted at ``version``
        type_tag: Fully qualified Move event type, the decoding discriminant
        data: Event payload fields as returned by the indexer
    """
    version: int
    event_index: int
    type_tag: str
    data: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class MintEvent:
    """A decoded Mint event.

    Attributes:
        version: Transaction version that emitted the event
        event_index: Position among the events of that version
        to: Aptos address that received the minted tokens
        amount: Minted amount in satoshi
        btc_tx_id: Bitcoin deposit transaction id
        btc_block_num: Bitcoin block height of the deposit
        timestamp: Aptos block timestamp
    """
    version: int
    event_index: int
    to: str
    amount: int
    btc_tx_id: bytes
    btc_block_num: int
    timestamp: int

    def __str__(self) -> str:
        return f"Mint: {self.amount} satoshi to {self.to}"


@dataclass(frozen=True, slots=True)
class BurnEvent:
    """A decoded Burn event.

    Attributes:
        version: Transaction version that emitted the event
        event_index: Position among the events of that version
        sender: Aptos address whose tokens were burned
        btc_address: Bitcoin withdrawal destination
        fee_rate: Requested Bitcoin fee rate
        amount: Burned amount in satoshi
        operator_id: Operator selected to fulfil the withdrawal
        timestamp: Aptos block timestamp
    """
    version: int
    event_index: int
    sender: str
    btc_address: str
    fee_rate: int
    amount: int
    operator_id: int
    timestamp: int

    def __str__(self) -> str:
        return f"Burn: {self.amount} satoshi from {self.sender} to {self.btc_address}"


BridgeEvent = MintEvent | BurnEvent


class SyncState(Enum):
    """Lifecycle state of an event synchronizer."""
    IDLE = "idle"
    POLLING = "polling"
    STOPPED = "stopped"
    FAILED = "failed"


class HandlerFailurePolicy(Enum):
    """What the synchronizer does when a handler raises."""
    RETRY = "retry"
    HALT = "halt"
