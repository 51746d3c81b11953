"""
Aptos bridge client package.

Mint and burn submission plus ordered event synchronization for the Aptos
Bitcoin bridge.
"""

from .bridge_client import BridgeClient
from .codec import OperationCodec
from .config import BridgeClientConfig
from .cursor_store import CursorStore, InMemoryCursorStore
from .errors import (
    BridgeError,
    ConfigError,
    EncodingFailed,
    EventDecodeFailed,
    HandlerError,
    InvalidAddress,
    InvalidInput,
    NetworkError,
    TransactionSubmissionFailed,
)
from .gateway import AptosRestGateway, ChainGateway
from .handlers import CallbackEventHandler, EventHandler, LoggingEventHandler
from .models import (
    BridgeConfig,
    BurnEvent,
    BurnRequest,
    HandlerFailurePolicy,
    InclusionProof,
    MintEvent,
    Peg,
    ScriptType,
    SyncState,
    TransactionHandle,
    TransactionStatus,
    TxState,
)
from .orchestrator import TransactionOrchestrator
from .query_client import QueryClient
from .signer import Ed25519Signer, Signer
from .synchronizer import EventSynchronizer

__all__ = [
    "BridgeClient",
    "BridgeClientConfig",
    "TransactionOrchestrator",
    "EventSynchronizer",
    "OperationCodec",
    "QueryClient",
    "AptosRestGateway",
    "ChainGateway",
    "Ed25519Signer",
    "Signer",
    "EventHandler",
    "CallbackEventHandler",
    "LoggingEventHandler",
    "CursorStore",
    "InMemoryCursorStore",
    "Peg",
    "InclusionProof",
    "ScriptType",
    "BurnRequest",
    "BridgeConfig",
    "MintEvent",
    "BurnEvent",
    "TransactionHandle",
    "TransactionStatus",
    "TxState",
    "SyncState",
    "HandlerFailurePolicy",
    "BridgeError",
    "NetworkError",
    "InvalidInput",
    "InvalidAddress",
    "EncodingFailed",
    "TransactionSubmissionFailed",
    "EventDecodeFailed",
    "HandlerError",
    "ConfigError",
]
__version__ = "0.1.0"
