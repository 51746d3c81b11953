"""Shared fixtures: an in-memory chain gateway and event/peg builders."""

import asyncio
import hashlib

import pytest

from aptos_bridge_client.codec import burn_event_type, mint_event_type
from aptos_bridge_client.models import (
    InclusionProof,
    Peg,
    RawEvent,
    ScriptType,
    SubmissionResult,
    TransactionStatus,
)
from aptos_bridge_client.signer import Ed25519Signer
from aptos_bridge_client.transaction_builder import decode_signed_transaction

CONTRACT = "0x" + "ee" * 32
RECIPIENT = "0x" + "12" * 32
BTC_ADDRESS = "bc1qw508d6qejxtdg4y5r3zarvary0c5xw7kv8f3t4"
TEST_PRIVATE_KEY = "0x" + "11" * 32


def make_peg(value: int = 100_000_000, block_num: int = 800_000, tx_index: int = 3) -> Peg:
    return Peg(
        to=RECIPIENT,
        value=value,
        block_num=block_num,
        inclusion_proof=InclusionProof(
            block_header=bytes(range(80)),
            tx_id=b"\xaa" * 32,
            tx_index=tx_index,
            merkle_proof=(b"\x01" * 32, b"\x02" * 32),
            raw_tx=b"\x02\x00\x00\x00raw",
        ),
        tx_out_ix=1,
        dest_script_hash=b"\x33" * 32,
        script_type=ScriptType.P2WPKH,
    )


def mint_raw(version: int, event_index: int = 0, amount: int = 100_000) -> RawEvent:
    return RawEvent(
        version=version,
        event_index=event_index,
        type_tag=mint_event_type(CONTRACT),
        data={
            "to_address": RECIPIENT,
            "amount": str(amount),
            "btc_tx_id": "0x" + "ab" * 32,
            "btc_block_num": "800000",
            "timestamp": "1700000000",
        },
    )


def burn_raw(version: int, event_index: int = 0, amount: int = 5_000) -> RawEvent:
    return RawEvent(
        version=version,
        event_index=event_index,
        type_tag=burn_event_type(CONTRACT),
        data={
            "from": RECIPIENT,
            "btc_address": BTC_ADDRESS,
            "fee_rate": "10",
            "amount": str(amount),
            "operator_id": "1",
            "timestamp": "1700000000",
        },
    )


def event_stream(count: int) -> list[RawEvent]:
    """Alternating mint/burn events at versions 0..count-1."""
    return [mint_raw(v) if v % 2 == 0 else burn_raw(v) for v in range(count)]


async def wait_until(predicate, timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("Condition not met before timeout")
        await asyncio.sleep(0.005)


class FakeGateway:
    """In-memory ChainGateway.

    ``page_limit`` caps every fetch below the requested size, like a node-side
    page limit. ``status_script`` is replayed per lookup; its last entry repeats.
    """

    def __init__(self, events=(), page_limit: int | None = None):
        self.events = sorted(events, key=lambda e: (e.version, e.event_index))
        self.page_limit = page_limit
        self.fetch_calls: list[tuple[int, int]] = []
        self.fetch_errors: list[Exception] = []
        self.sequence_numbers: dict[str, int] = {}
        self.submitted = []
        self.submitted_hashes: set[str] = set()
        self.submit_errors: list[Exception] = []
        self.status_script: list[TransactionStatus] = [TransactionStatus.confirmed(1)]
        self.status_calls = 0
        self.state: dict[str, bytes] = {}

    def add_events(self, events) -> None:
        self.events = sorted([*self.events, *events], key=lambda e: (e.version, e.event_index))

    async def fetch_events(self, contract_address, start_version, max_count):
        await asyncio.sleep(0)
        self.fetch_calls.append((start_version, max_count))
        if self.fetch_errors:
            raise self.fetch_errors.pop(0)

        limit = min(max_count, self.page_limit or max_count)
        matching = [e for e in self.events if e.version >= start_version]
        page = matching[:limit]
        if len(matching) > limit and page and matching[limit].version == page[-1].version:
            last = page[-1].version
            page = [e for e in page if e.version < last] or [e for e in matching if e.version == last]
        return page

    async def get_account_sequence_number(self, address):
        await asyncio.sleep(0)
        return self.sequence_numbers.get(address, 0)

    async def submit_signed_transaction(self, signed_txn):
        await asyncio.sleep(0)
        if self.submit_errors:
            raise self.submit_errors.pop(0)
        raw_txn, _, _ = decode_signed_transaction(signed_txn)
        tx_hash = "0x" + hashlib.sha3_256(signed_txn).hexdigest()
        self.submitted.append(raw_txn)
        self.submitted_hashes.add(tx_hash)
        return SubmissionResult(hash=tx_hash, sequence_number=raw_txn.sequence_number)

    async def get_transaction_status(self, tx_hash):
        await asyncio.sleep(0)
        self.status_calls += 1
        if tx_hash not in self.submitted_hashes:
            return TransactionStatus.not_found()
        if len(self.status_script) > 1:
            return self.status_script.pop(0)
        return self.status_script[0]

    async def get_contract_state(self, contract_address, key, arguments=()):
        await asyncio.sleep(0)
        return self.state[key]


class RecordingHandler:
    """Records delivered events; ``fail_on`` maps (version, event_index) to a failure count."""

    def __init__(self, fail_on=None):
        self.events = []
        self.attempts = []
        self.failures = dict(fail_on or {})

    async def handle_mint(self, event):
        self._record(event)

    async def handle_burn(self, event):
        self._record(event)

    def _record(self, event):
        key = (event.version, event.event_index)
        self.attempts.append(key)
        if self.failures.get(key, 0) > 0:
            self.failures[key] -= 1
            raise RuntimeError(f"handler failed at {key}")
        self.events.append(event)


@pytest.fixture
def signer():
    return Ed25519Signer.from_hex(TEST_PRIVATE_KEY)


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def handler():
    return RecordingHandler()
