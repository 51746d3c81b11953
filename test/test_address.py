#!/usr/bin/env python3
"""Unit tests for account address parsing and formatting."""

import pytest
from aptos_sdk.account_address import AccountAddress

from aptos_bridge_client.utils.address import (
    canonical_address,
    format_account_address,
    parse_account_address,
)


class TestAccountAddress:
    """Tests for address parsing."""

    def test_long_form(self):
        address = "0x" + "ab" * 32
        assert parse_account_address(address) == AccountAddress(b"\xab" * 32)

    def test_short_form_is_padded(self):
        assert parse_account_address("0x1").address == b"\x00" * 31 + b"\x01"

    def test_without_prefix(self):
        assert parse_account_address("ff").address == b"\x00" * 31 + b"\xff"

    @pytest.mark.parametrize("address", ["", "0x", "0x" + "a" * 65, "0xzz", None])
    def test_invalid(self, address):
        with pytest.raises(ValueError):
            parse_account_address(address)

    def test_special_addresses_render_long(self):
        assert format_account_address(AccountAddress(b"\x00" * 31 + b"\x01")) == "0x" + "0" * 63 + "1"

    def test_canonical_lowercases(self):
        assert canonical_address("0xABC") == "0x" + "0" * 61 + "abc"
