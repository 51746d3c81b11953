"""
Account address helpers on top of aptos_sdk's ``AccountAddress``.
"""

from aptos_sdk.account_address import AccountAddress


def parse_account_address(address: str) -> AccountAddress:
    """
    Parse a hex account address, accepting the short forms the node prints (``0x1``).

    Raises:
        ValueError: If the string is empty, longer than 32 bytes or not hexadecimal
    """
    if not isinstance(address, str):
        raise ValueError(f"Account address must be a string, got {type(address).__name__}")
    try:
        return AccountAddress.from_str_relaxed(address)
    except RuntimeError as e:
        raise ValueError(str(e)) from None


def format_account_address(address: AccountAddress) -> str:
    """Long form: ``0x`` followed by 64 lowercase hex characters."""
    return "0x" + address.address.hex()


def canonical_address(address: str) -> str:
    return format_account_address(parse_account_address(address))
