#!/usr/bin/env python3
"""Unit tests for the Bitcoin-side helpers."""

import pytest

from aptos_bridge_client.errors import InvalidAddress, InvalidInput
from aptos_bridge_client.utils.btc import (
    format_btc_amount,
    parse_btc_amount,
    validate_btc_address,
    validate_fee_rate,
)


class TestValidateBtcAddress:
    """Tests for address validation."""

    @pytest.mark.parametrize("address", [
        "bc1qw508d6qejxtdg4y5r3zarvary0c5xw7kv8f3t4",
        "tb1qw508d6qejxtdg4y5r3zarvary0c5xw7kxpjzsx",
        "bc1p5cyxnuxmeuwuvkwfem96lqzszd02n6xdcjrs20cac6yqjjwudpxqkedrcr",
        "1A1zP1eP5QGefi2DMPTfTL5SLmv7DivfNa",
        "3J98t1WpEZ73CNmQviecrnyiWrnqRhWNLy",
        "mipcBbFg9gMiCh81Kj8tqqdgoZub1ZJRfn",
    ])
    def test_valid(self, address):
        validate_btc_address(address)

    @pytest.mark.parametrize("address, details", [
        ("", "empty"),
        ("bc1qw508d6qejxtdg4y5r3zarvary0c5xw7kv8f3t5", "checksum"),
        ("xpub6CUGRUonZSQ4TWtTMmzXdrXDtypWKiK", "format"),
        ("1short", "length"),
        ("1A1zP1eP5QGefi2DMPTfTL5SLmv7DivfN0", "non-base58"),
    ])
    def test_invalid(self, address, details):
        with pytest.raises(InvalidAddress, match=details) as exc_info:
            validate_btc_address(address)
        assert exc_info.value.address == address


class TestAmounts:
    """Tests for amount formatting and parsing."""

    @pytest.mark.parametrize("satoshi, expected", [
        (100_000_000, "1.00000000 BTC"),
        (1, "0.00000001 BTC"),
        (0, "0.00000000 BTC"),
        (2_150_000_000, "21.50000000 BTC"),
    ])
    def test_format(self, satoshi, expected):
        assert format_btc_amount(satoshi) == expected

    @pytest.mark.parametrize("text, expected", [
        ("1", 100_000_000),
        ("0.5 BTC", 50_000_000),
        ("0.00000001", 1),
        (" 21.5btc ", 2_150_000_000),
    ])
    def test_parse(self, text, expected):
        assert parse_btc_amount(text) == expected

    @pytest.mark.parametrize("text, message", [
        ("abc", "Invalid BTC amount format"),
        ("-1", "negative"),
        ("0.000000001", "more than 8 decimal places"),
        ("inf", "Invalid BTC amount format"),
    ])
    def test_parse_invalid(self, text, message):
        with pytest.raises(InvalidInput, match=message):
            parse_btc_amount(text)


class TestFeeRate:
    """Tests for fee rate checks."""

    def test_within_bounds(self):
        validate_fee_rate(50, 100)
        validate_fee_rate(100, 100)

    def test_zero(self):
        with pytest.raises(InvalidInput, match="zero"):
            validate_fee_rate(0, 100)

    def test_above_maximum(self):
        with pytest.raises(InvalidInput, match="exceeds maximum 100"):
            validate_fee_rate(101, 100)
