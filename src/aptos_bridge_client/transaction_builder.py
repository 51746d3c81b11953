"""
Aptos transaction building and signing.

This module wraps bridge entry-function calls into aptos_sdk
``RawTransaction``s and turns a signer's Ed25519 signature into the
``SignedTransaction`` bytes the node accepts.
"""

import time

from aptos_sdk.authenticator import Authenticator, Ed25519Authenticator
from aptos_sdk.bcs import Deserializer
from aptos_sdk.ed25519 import PublicKey, Signature
from aptos_sdk.transactions import (
    EntryFunction,
    ModuleId,
    RawTransaction,
    SignedTransaction,
    TransactionPayload,
)
from nacl.signing import VerifyKey

from .constants import (
    BRIDGE_MODULE,
    DEFAULT_GAS_UNIT_PRICE,
    DEFAULT_MAX_GAS_AMOUNT,
    EXPIRATION_TIMESTAMP_SECS,
)
from .signer import Signer
from .utils.address import parse_account_address


def bridge_call(contract_address: str, function: str, args: list[bytes]) -> TransactionPayload:
    """Entry-function payload calling ``{contract}::fiamma_bridge_account::{function}``."""
    module = ModuleId(parse_account_address(contract_address), BRIDGE_MODULE)
    return TransactionPayload(EntryFunction(module, function, [], list(args)))


class TransactionBuilder:
    """Builds and signs bridge transactions for a fixed chain and gas policy."""

    def __init__(
        self,
        chain_id: int,
        max_gas_amount: int = DEFAULT_MAX_GAS_AMOUNT,
        gas_unit_price: int = DEFAULT_GAS_UNIT_PRICE,
        expiration_secs: int = EXPIRATION_TIMESTAMP_SECS,
    ):
        self.chain_id = chain_id
        self.max_gas_amount = max_gas_amount
        self.gas_unit_price = gas_unit_price
        self.expiration_secs = expiration_secs

    def build(self, sender: str, sequence_number: int, payload: TransactionPayload) -> RawTransaction:
        return RawTransaction(
            parse_account_address(sender),
            sequence_number,
            payload,
            self.max_gas_amount,
            self.gas_unit_price,
            int(time.time()) + self.expiration_secs,
            self.chain_id,
        )

    @staticmethod
    def sign(raw_txn: RawTransaction, signer: Signer) -> bytes:
        """
        Sign a raw transaction and return the ``SignedTransaction`` BCS bytes.

        ``raw_txn.keyed()`` is the salted signing message
        (``sha3_256("APTOS::RawTransaction")`` followed by the BCS transaction).
        """
        signature = signer.sign(raw_txn.keyed())
        authenticator = Authenticator(
            Ed25519Authenticator(PublicKey(VerifyKey(signer.public_key)), Signature(signature))
        )
        return SignedTransaction(raw_txn, authenticator).bytes()


def decode_signed_transaction(data: bytes) -> tuple[RawTransaction, bytes, bytes]:
    """
    Split ``SignedTransaction`` bytes into the raw transaction, public key and signature.

    Raises:
        ValueError: If the bytes are not a single-signer Ed25519 transaction
    """
    deserializer = Deserializer(data)
    try:
        raw_txn = RawTransaction.deserialize(deserializer)
        authenticator = Authenticator.deserialize(deserializer)
    # aptos_sdk's Deserializer reports truncated input with a plain Exception
    except Exception as e:
        raise ValueError(f"Malformed signed transaction: {e}") from e
    if deserializer.remaining():
        raise ValueError(f"{deserializer.remaining()} trailing bytes after signed transaction")
    if authenticator.variant != Authenticator.ED25519:
        raise ValueError(f"Unsupported authenticator variant: {authenticator.variant}")

    ed25519_auth = authenticator.authenticator
    return raw_txn, ed25519_auth.public_key.key.encode(), ed25519_auth.signature.signature
