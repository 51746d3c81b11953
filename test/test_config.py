#!/usr/bin/env python3
"""Tests for the configuration module."""

import logging
import os
from unittest.mock import patch

import pytest

from conftest import TEST_PRIVATE_KEY
from aptos_bridge_client.config import (
    AccountConfig,
    BridgeClientConfig,
    ContractConfig,
    NodeConfig,
    SyncConfig,
)
from aptos_bridge_client.errors import ConfigError
from aptos_bridge_client.models import HandlerFailurePolicy

REQUIRED_ENV = {
    "BRIDGE_CONTRACT_ADDRESS": "0xabc",
    "PRIVATE_KEY": TEST_PRIVATE_KEY,
}


class TestNodeConfig:
    """Tests for NodeConfig."""

    def test_defaults_point_at_testnet(self):
        config = NodeConfig()
        assert config.node_url == "https://fullnode.testnet.aptoslabs.com/v1"
        assert config.chain_id == 2

    def test_invalid_url_scheme(self):
        with pytest.raises(ConfigError, match="Invalid node URL"):
            NodeConfig(node_url="ftp://node.test")

    @pytest.mark.parametrize("chain_id", [0, 256])
    def test_chain_id_range(self, chain_id):
        with pytest.raises(ConfigError, match="Chain ID"):
            NodeConfig(chain_id=chain_id)

    def test_max_retries_bounds(self):
        with pytest.raises(ConfigError, match="too high"):
            NodeConfig(max_retries=11)


class TestContractAndAccount:
    """Tests for ContractConfig and AccountConfig."""

    def test_contract_address_normalized(self):
        config = ContractConfig("0xabc")
        assert config.contract_address == "0x" + "0" * 61 + "abc"

    def test_contract_address_required(self):
        with pytest.raises(ConfigError, match="required"):
            ContractConfig("")

    def test_contract_address_must_be_hex(self):
        with pytest.raises(ConfigError, match="Invalid bridge contract address"):
            ContractConfig("0xnothex")

    def test_private_key_validation(self):
        with pytest.raises(ConfigError, match="Expected 64 hex characters"):
            AccountConfig("0x1234")
        with pytest.raises(ConfigError, match="hexadecimal"):
            AccountConfig("g" * 64)

    def test_private_key_not_in_repr(self):
        assert TEST_PRIVATE_KEY[2:] not in repr(AccountConfig(TEST_PRIVATE_KEY))


class TestSyncConfig:
    """Tests for SyncConfig."""

    @pytest.mark.parametrize("kwargs, message", [
        ({"start_version": -1}, "Start version"),
        ({"batch_size": 0}, "Batch size must be positive"),
        ({"batch_size": 5000}, "Batch size too high"),
        ({"poll_interval": 0}, "Poll interval must be positive"),
        ({"poll_interval": 301}, "Poll interval too long"),
        ({"confirmation_timeout": 0}, "Confirmation timeout"),
    ])
    def test_invalid_values(self, kwargs, message):
        with pytest.raises(ConfigError, match=message):
            SyncConfig(**kwargs)

    def test_config_errors_are_value_errors(self):
        with pytest.raises(ValueError):
            SyncConfig(batch_size=0)


class TestFromEnv:
    """Tests for BridgeClientConfig.from_env."""

    def test_minimal_environment(self):
        with patch.dict(os.environ, REQUIRED_ENV, clear=True):
            config = BridgeClientConfig.from_env()

        assert config.contract.contract_address.endswith("abc")
        assert config.account.private_key == TEST_PRIVATE_KEY
        assert config.sync.batch_size == 100
        assert config.sync.handler_failure_policy is HandlerFailurePolicy.RETRY
        assert config.node.indexer_api_key is None

    def test_full_environment(self):
        env = {
            **REQUIRED_ENV,
            "APTOS_NODE_URL": "http://localhost:8080/v1",
            "APTOS_INDEXER_URL": "http://localhost:8090/v1/graphql",
            "GRAPHQL_API_KEY": "key",
            "CHAIN_ID": "4",
            "START_VERSION": "123456",
            "BATCH_SIZE": "25",
            "POLL_INTERVAL": "2.5",
            "CONFIRMATION_TIMEOUT": "45",
            "MAX_RETRIES": "5",
            "HANDLER_FAILURE_POLICY": "HALT",
            "SKIP_DECODE_FAILURES": "true",
        }
        with patch.dict(os.environ, env, clear=True):
            config = BridgeClientConfig.from_env()

        assert config.node.node_url == "http://localhost:8080/v1"
        assert config.node.indexer_api_key == "key"
        assert config.node.chain_id == 4
        assert config.node.max_retries == 5
        assert config.sync.start_version == 123456
        assert config.sync.batch_size == 25
        assert config.sync.poll_interval == 2.5
        assert config.sync.confirmation_timeout == 45
        assert config.sync.handler_failure_policy is HandlerFailurePolicy.HALT
        assert config.sync.skip_decode_failures is True

    def test_missing_contract_address(self):
        with patch.dict(os.environ, {"PRIVATE_KEY": TEST_PRIVATE_KEY}, clear=True):
            with pytest.raises(ConfigError, match="BRIDGE_CONTRACT_ADDRESS"):
                BridgeClientConfig.from_env()

    def test_missing_private_key(self):
        env = {"BRIDGE_CONTRACT_ADDRESS": "0x1"}
        with patch.dict(os.environ, env, clear=True):
            with pytest.raises(ConfigError, match="PRIVATE_KEY"):
                BridgeClientConfig.from_env()
            config = BridgeClientConfig.from_env(require_account=False)
        assert config.account is None

    @pytest.mark.parametrize("name, value", [
        ("BATCH_SIZE", "many"),
        ("POLL_INTERVAL", "soon"),
        ("SKIP_DECODE_FAILURES", "maybe"),
        ("HANDLER_FAILURE_POLICY", "ignore"),
    ])
    def test_malformed_values(self, name, value):
        with patch.dict(os.environ, {**REQUIRED_ENV, name: value}, clear=True):
            with pytest.raises(ConfigError, match=name):
                BridgeClientConfig.from_env()

    def test_log_config_masks_secrets(self, caplog):
        env = {**REQUIRED_ENV, "GRAPHQL_API_KEY": "super-secret-key"}
        with patch.dict(os.environ, env, clear=True):
            config = BridgeClientConfig.from_env()

        with caplog.at_level(logging.INFO, logger="aptos_bridge_client.config"):
            config.log_config()

        assert "Private Key: [SET]" in caplog.text
        assert "super-secret-key" not in caplog.text
        assert TEST_PRIVATE_KEY[2:] not in caplog.text
