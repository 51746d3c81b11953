"""
Bitcoin-side helpers: address validation, amount formatting and fee checks.
"""

from decimal import Decimal, InvalidOperation

import bech32

from ..constants import SATOSHI_PER_BTC
from ..errors import InvalidAddress, InvalidInput

SEGWIT_HRPS = ("bc", "tb", "bcrt")
BASE58_PREFIXES = ("1", "3", "m", "n", "2")
BASE58_ALPHABET = set("123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz")


def validate_btc_address(address: str) -> None:
    """
    Check that a string is a plausible Bitcoin address.

    Segwit addresses (``bc1``/``tb1``/``bcrt1``) are fully checksum-decoded,
    including bech32m for witness v1+. Base58 addresses get a prefix,
    alphabet and length check only.

    Raises:
        InvalidAddress: If the address is not acceptable
    """
    if not address:
        raise InvalidAddress(address, "BTC address cannot be empty")

    lowered = address.lower()
    for hrp in SEGWIT_HRPS:
        if lowered.startswith(hrp + "1"):
            witver, witprog = bech32.decode(hrp, address)
            if witver is None or witprog is None:
                raise InvalidAddress(address, "bad segwit encoding or checksum")
            return

    if not address.startswith(BASE58_PREFIXES):
        raise InvalidAddress(address, "Invalid BTC address format")
    if len(address) < 26 or len(address) > 35:
        raise InvalidAddress(address, "BTC address length is invalid")
    if not set(address) <= BASE58_ALPHABET:
        raise InvalidAddress(address, "BTC address contains non-base58 characters")


def format_btc_amount(satoshi: int) -> str:
    """Format a satoshi amount as BTC, e.g. ``100000000`` -> ``"1.00000000 BTC"``."""
    btc = Decimal(satoshi) / SATOSHI_PER_BTC
    return f"{btc:.8f} BTC"


def parse_btc_amount(text: str) -> int:
    """
    Parse a BTC amount (optionally suffixed with ``btc``) into satoshi.

    Raises:
        InvalidInput: If the text is not a non-negative amount with at most 8 decimals
    """
    cleaned = text.strip().lower()
    if cleaned.endswith("btc"):
        cleaned = cleaned[:-3].strip()
    try:
        btc = Decimal(cleaned)
    except InvalidOperation:
        raise InvalidInput(f"Invalid BTC amount format: {text!r}") from None
    if not btc.is_finite():
        raise InvalidInput(f"Invalid BTC amount format: {text!r}")
    if btc < 0:
        raise InvalidInput("BTC amount cannot be negative")
    satoshi = btc * SATOSHI_PER_BTC
    if satoshi != satoshi.to_integral_value():
        raise InvalidInput(f"BTC amount has more than 8 decimal places: {text!r}")
    return int(satoshi)


def validate_fee_rate(fee_rate: int, max_fee_rate: int) -> None:
    """
    Check a fee rate against the bridge maximum.

    Raises:
        InvalidInput: If the fee rate is zero or above ``max_fee_rate``
    """
    if fee_rate <= 0:
        raise InvalidInput("Fee rate cannot be zero")
    if fee_rate > max_fee_rate:
        raise InvalidInput(f"Fee rate {fee_rate} exceeds maximum {max_fee_rate}")
