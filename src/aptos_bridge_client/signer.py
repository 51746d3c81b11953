"""
Ed25519 transaction signer for Aptos accounts.
"""

import logging
from typing import Protocol

from aptos_sdk import ed25519
from aptos_sdk.account import Account
from aptos_sdk.account_address import AccountAddress
from nacl.exceptions import CryptoError
from nacl.signing import SigningKey

from .errors import ConfigError
from .utils.address import format_account_address

logger = logging.getLogger(__name__)


class Signer(Protocol):
    """Signs transaction signing messages for one account."""

    @property
    def address(self) -> str: ...

    @property
    def public_key(self) -> bytes: ...

    def sign(self, message: bytes) -> bytes: ...


class Ed25519Signer:
    """Local signer over an aptos_sdk ``Account`` holding a raw 32-byte Ed25519 key."""

    def __init__(self, account: Account):
        self._account = account
        self._public_key = account.public_key().key.encode()
        self._address = format_account_address(account.address())

    @classmethod
    def from_hex(cls, private_key_hex: str) -> "Ed25519Signer":
        """
        Create a signer from a hex private key.

        The account address is derived from the public key with the
        single-signer Ed25519 scheme.

        Args:
            private_key_hex: 64 hex characters, optionally ``0x``-prefixed

        Raises:
            ConfigError: If the key is not 32 bytes of hex
        """
        key = private_key_hex[2:] if private_key_hex.startswith("0x") else private_key_hex
        try:
            seed = bytes.fromhex(key)
        except ValueError:
            raise ConfigError("Invalid private key format. Must be hexadecimal") from None
        if len(seed) != 32:
            raise ConfigError(
                f"Invalid private key length. Expected 64 hex characters, got {len(key)}"
            )
        try:
            private_key = ed25519.PrivateKey(SigningKey(seed))
        except CryptoError as e:
            raise ConfigError(f"Invalid private key: {e}") from e
        return cls(Account(AccountAddress.from_key(private_key.public_key()), private_key))

    @property
    def address(self) -> str:
        return self._address

    @property
    def public_key(self) -> bytes:
        return self._public_key

    def sign(self, message: bytes) -> bytes:
        return self._account.sign(message).signature

    def __repr__(self) -> str:
        return f"Ed25519Signer(address={self._address})"
