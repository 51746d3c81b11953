#!/usr/bin/env python3
"""Tests for the BridgeClient facade and its event listener loop."""

import asyncio
import os
from unittest.mock import patch

import pytest

from conftest import (
    BTC_ADDRESS,
    CONTRACT,
    TEST_PRIVATE_KEY,
    FakeGateway,
    RecordingHandler,
    event_stream,
    make_peg,
    wait_until,
)
from aptos_bridge_client import BridgeClient
from aptos_bridge_client.config import (
    AccountConfig,
    BridgeClientConfig,
    ContractConfig,
    NodeConfig,
    SyncConfig,
)
from aptos_bridge_client.cursor_store import InMemoryCursorStore
from aptos_bridge_client.errors import BridgeError, ConfigError
from aptos_bridge_client.gateway import AptosRestGateway
from aptos_bridge_client.models import HandlerFailurePolicy, SyncState, TransactionStatus


def make_config(account: bool = False, **sync_overrides) -> BridgeClientConfig:
    sync_overrides.setdefault("poll_interval", 0.01)
    return BridgeClientConfig(
        node=NodeConfig(),
        contract=ContractConfig(CONTRACT),
        sync=SyncConfig(**sync_overrides),
        account=AccountConfig(TEST_PRIVATE_KEY) if account else None,
    )


class TestConstruction:
    """Tests for wiring components from configuration."""

    def test_signer_from_account_config(self, gateway, signer):
        client = BridgeClient(make_config(account=True), gateway=gateway)

        assert client.signer.address == signer.address
        assert client.orchestrator is not None
        assert client.orchestrator.builder.chain_id == 2

    def test_read_only_without_account(self, gateway):
        client = BridgeClient(make_config(), gateway=gateway)

        assert client.signer is None
        assert client.orchestrator is None

    @pytest.mark.asyncio
    async def test_default_gateway_from_config(self):
        async with BridgeClient(make_config()) as client:
            assert isinstance(client.gateway, AptosRestGateway)

    def test_from_env(self):
        env = {"BRIDGE_CONTRACT_ADDRESS": CONTRACT}
        with patch.dict(os.environ, env, clear=True):
            client = BridgeClient.from_env(require_account=False)

        assert client.contract_address == CONTRACT
        assert client.orchestrator is None

    def test_from_env_missing_key(self):
        with patch.dict(os.environ, {"BRIDGE_CONTRACT_ADDRESS": CONTRACT}, clear=True):
            with pytest.raises(ConfigError, match="PRIVATE_KEY"):
                BridgeClient.from_env()


class TestOperations:
    """Tests for delegation to the orchestrator and query client."""

    @pytest.mark.asyncio
    async def test_mint_and_wait(self, gateway, signer):
        gateway.status_script = [TransactionStatus.confirmed(77)]
        client = BridgeClient(make_config(), gateway=gateway, signer=signer)

        handle = await client.mint([make_peg()])
        status = await client.wait_for_transaction(handle)

        assert handle.sender == signer.address
        assert gateway.submitted[0].payload.value.function == "mint"
        assert status == TransactionStatus.confirmed(77)

    @pytest.mark.asyncio
    async def test_burn(self, gateway, signer):
        client = BridgeClient(make_config(), gateway=gateway, signer=signer)

        handle = await client.burn(BTC_ADDRESS, fee_rate=10, amount=50_000, operator_id=1)

        assert handle.sequence_number == 0
        assert gateway.submitted[0].payload.value.function == "burn"

    @pytest.mark.asyncio
    async def test_read_only_client_cannot_submit(self, gateway):
        client = BridgeClient(make_config(), gateway=gateway)

        with pytest.raises(ConfigError, match="No signing account"):
            await client.mint([make_peg()])
        with pytest.raises(ConfigError, match="No signing account"):
            await client.burn(BTC_ADDRESS, 10, 50_000, 1)
        assert gateway.submitted == []

    @pytest.mark.asyncio
    async def test_queries(self, gateway):
        gateway.state["get_minted"] = b'["42"]'
        client = BridgeClient(make_config(), gateway=gateway)

        assert await client.get_minted("0x1") == 42
        assert await client.get_transaction_status("0xdead") == TransactionStatus.not_found()


class TestSynchronizerFactory:
    """Tests for create_synchronizer."""

    def test_uses_sync_config(self, gateway, handler):
        client = BridgeClient(
            make_config(start_version=50, batch_size=7, handler_failure_policy=HandlerFailurePolicy.HALT),
            gateway=gateway,
        )

        synchronizer = client.create_synchronizer(handler)

        assert synchronizer.cursor == 50
        assert synchronizer.batch_size == 7
        assert synchronizer.handler_failure_policy is HandlerFailurePolicy.HALT

    def test_saved_cursor_wins(self, gateway, handler):
        client = BridgeClient(make_config(start_version=50), gateway=gateway)

        synchronizer = client.create_synchronizer(handler, InMemoryCursorStore(120))

        assert synchronizer.cursor == 120

    def test_empty_store_uses_start_version(self, gateway, handler):
        client = BridgeClient(make_config(start_version=50), gateway=gateway)

        synchronizer = client.create_synchronizer(handler, InMemoryCursorStore())

        assert synchronizer.cursor == 50


class TestRun:
    """Tests for the standing listener."""

    @pytest.mark.asyncio
    async def test_run_until_stopped(self, handler):
        gateway = FakeGateway(event_stream(6))
        store = InMemoryCursorStore()
        client = BridgeClient(make_config(batch_size=4), gateway=gateway)

        run_task = asyncio.create_task(client.run(handler, cursor_store=store))
        await wait_until(lambda: len(handler.events) == 6)
        client.stop()
        await asyncio.wait_for(run_task, timeout=2)

        assert [e.version for e in handler.events] == list(range(6))
        assert store.load() == 6
        assert client.synchronizer.state is SyncState.STOPPED
        assert client.running is False

    @pytest.mark.asyncio
    async def test_run_raises_when_sync_fails(self):
        gateway = FakeGateway(event_stream(3))
        failing = RecordingHandler(fail_on={(1, 0): 1})
        client = BridgeClient(
            make_config(handler_failure_policy=HandlerFailurePolicy.HALT), gateway=gateway
        )

        with pytest.raises(BridgeError, match="Event sync failed"):
            await asyncio.wait_for(client.run(failing), timeout=5)

        assert client.synchronizer.state is SyncState.FAILED
        assert client.synchronizer.cursor == 1
        assert [e.version for e in failing.events] == [0]
