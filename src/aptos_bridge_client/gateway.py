"""
Chain gateway: the thin I/O layer between the bridge client and the Aptos node.

``ChainGateway`` is the capability set the orchestrator and synchronizer
depend on. ``AptosRestGateway`` implements it against the node REST API for
transactions, accounts and view calls, and against the GraphQL indexer for
the bridge event stream.
"""

import logging
from collections.abc import Sequence
from typing import Any, Protocol

import httpx

from .codec import burn_event_type, mint_event_type
from .constants import qualified_name
from .errors import BridgeError, InvalidInput, NetworkError, TransactionSubmissionFailed
from .models import RawEvent, SubmissionResult, TransactionStatus
from .utils.retry import retry_with_backoff

logger = logging.getLogger(__name__)

SIGNED_TRANSACTION_CONTENT_TYPE = "application/x.aptos.signed_transaction+bcs"

BRIDGE_EVENTS_QUERY = """
    query GetBridgeEvents($startVersion: numeric!, $limit: Int!) {
        bridge_mint_events(
            where: {version: {_gte: $startVersion}}, order_by: {version: asc}, limit: $limit
        ) {
            amount, btc_block_num, btc_tx_id, timestamp, to_address, version
        }
        bridge_burn_events(
            where: {version: {_gte: $startVersion}}, order_by: {version: asc}, limit: $limit
        ) {
            amount, btc_address, fee_rate, from, operator_id, timestamp, version
        }
    }
"""

BRIDGE_VERSION_EVENTS_QUERY = """
    query GetBridgeEventsAtVersion($version: numeric!, $limit: Int!) {
        bridge_mint_events(where: {version: {_eq: $version}}, limit: $limit) {
            amount, btc_block_num, btc_tx_id, timestamp, to_address, version
        }
        bridge_burn_events(where: {version: {_eq: $version}}, limit: $limit) {
            amount, btc_address, fee_rate, from, operator_id, timestamp, version
        }
    }
"""


class ChainGateway(Protocol):
    """Node capabilities consumed by the bridge client. No business logic."""

    async def submit_signed_transaction(self, signed_txn: bytes) -> SubmissionResult:
        """Submit signed transaction bytes; raise TransactionSubmissionFailed on rejection."""
        ...

    async def get_transaction_status(self, tx_hash: str) -> TransactionStatus:
        ...

    async def get_account_sequence_number(self, address: str) -> int:
        ...

    async def fetch_events(
        self, contract_address: str, start_version: int, max_count: int
    ) -> list[RawEvent]:
        """
        Return bridge events with ``version >= start_version`` in ascending order.

        May return fewer than ``max_count`` events even when more exist, and more
        when a single version holds more than ``max_count`` events. A
        returned page never ends part-way through the events of one version.
        """
        ...

    async def get_contract_state(
        self, contract_address: str, key: str, arguments: Sequence[Any] = ()
    ) -> bytes:
        ...


class _TransientResponse(Exception):
    """HTTP status that is worth retrying (429, 5xx)."""

    def __init__(self, response: httpx.Response):
        self.response = response
        super().__init__(f"HTTP {response.status_code} from {response.request.url}")


class AptosRestGateway:
    """
    ChainGateway over the Aptos REST API and GraphQL indexer.

    One ``httpx.AsyncClient`` (and its connection pool) is shared by every
    caller of this gateway.
    """

    def __init__(
        self,
        node_url: str,
        indexer_url: str | None = None,
        indexer_api_key: str | None = None,
        request_timeout: float = 30.0,
        max_retries: int = 3,
        base_delay: float = 0.5,
        max_delay: float = 8.0,
        client: httpx.AsyncClient | None = None,
    ):
        """
        Initialize the gateway.

        Args:
            node_url: Node REST base URL, e.g. ``https://fullnode.testnet.aptoslabs.com/v1``
            indexer_url: GraphQL indexer endpoint serving the bridge event tables
            indexer_api_key: Bearer token for the indexer (optional)
            request_timeout: Per-request timeout in seconds
            max_retries: Retries for transient failures before raising NetworkError
            base_delay: First backoff delay in seconds
            max_delay: Backoff cap in seconds
            client: Pre-built client (tests inject one with a mock transport)
        """
        self.node_url = node_url.rstrip("/")
        self.indexer_url = indexer_url
        self.indexer_api_key = indexer_api_key
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self._client = client or httpx.AsyncClient(timeout=request_timeout)

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "AptosRestGateway":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def _request(self, method: str, url: str, description: str, **kwargs: Any) -> httpx.Response:
        """Send a request, retrying transport errors and transient statuses."""

        async def attempt() -> httpx.Response:
            response = await self._client.request(method, url, **kwargs)
            if response.status_code == 429 or response.status_code >= 500:
                raise _TransientResponse(response)
            return response

        try:
            return await retry_with_backoff(
                attempt,
                retry_on=(httpx.TransportError, _TransientResponse),
                max_retries=self.max_retries,
                base_delay=self.base_delay,
                max_delay=self.max_delay,
                description=description,
            )
        except (httpx.TransportError, _TransientResponse) as e:
            raise NetworkError(f"{description} failed: {e}") from e

    @staticmethod
    def _error_details(response: httpx.Response) -> tuple[str, str | None]:
        """Extract the node's error message and code from an error response."""
        try:
            body = response.json()
        except ValueError:
            return response.text or f"HTTP {response.status_code}", None
        if isinstance(body, dict):
            return str(body.get("message", body)), body.get("error_code")
        return str(body), None

    async def submit_signed_transaction(self, signed_txn: bytes) -> SubmissionResult:
        response = await self._request(
            "POST",
            f"{self.node_url}/transactions",
            "Transaction submission",
            content=signed_txn,
            headers={"Content-Type": SIGNED_TRANSACTION_CONTENT_TYPE},
        )
        if response.status_code >= 400:
            reason, error_code = self._error_details(response)
            logger.error(f"Node rejected transaction: {reason} ({error_code})")
            raise TransactionSubmissionFailed(reason, error_code)

        body = response.json()
        result = SubmissionResult(hash=body["hash"], sequence_number=int(body["sequence_number"]))
        logger.debug(f"Transaction accepted by node: {result.hash}")
        return result

    async def get_transaction_status(self, tx_hash: str) -> TransactionStatus:
        response = await self._request(
            "GET", f"{self.node_url}/transactions/by_hash/{tx_hash}", "Transaction lookup"
        )
        match response.status_code:
            case 404:
                return TransactionStatus.not_found()
            case 400:
                reason, _ = self._error_details(response)
                raise InvalidInput(f"Invalid transaction hash {tx_hash}: {reason}")
            case code if code >= 400:
                reason, _ = self._error_details(response)
                raise BridgeError(f"Transaction lookup failed with HTTP {code}: {reason}")

        body = response.json()
        if body.get("type") == "pending_transaction":
            return TransactionStatus.pending()
        if body.get("success"):
            return TransactionStatus.confirmed(int(body["version"]))
        return TransactionStatus.failed(body.get("vm_status", "unknown failure"))

    async def get_account_sequence_number(self, address: str) -> int:
        response = await self._request("GET", f"{self.node_url}/accounts/{address}", "Account lookup")
        if response.status_code == 404:
            # Accounts only exist on-chain after their first transaction
            return 0
        if response.status_code >= 400:
            reason, _ = self._error_details(response)
            raise BridgeError(f"Account lookup failed with HTTP {response.status_code}: {reason}")
        return int(response.json()["sequence_number"])

    async def get_contract_state(
        self, contract_address: str, key: str, arguments: Sequence[Any] = ()
    ) -> bytes:
        payload = {
            "function": qualified_name(contract_address, key),
            "type_arguments": [],
            "arguments": [str(arg) if isinstance(arg, int) else arg for arg in arguments],
        }
        response = await self._request("POST", f"{self.node_url}/view", f"View {key}", json=payload)
        if response.status_code >= 400:
            reason, _ = self._error_details(response)
            raise BridgeError(f"View function {key} failed: {reason}")
        return response.content

    async def fetch_events(
        self, contract_address: str, start_version: int, max_count: int
    ) -> list[RawEvent]:
        if not self.indexer_url:
            raise BridgeError("No indexer URL configured; cannot fetch bridge events")

        mint_rows, burn_rows = await self._query_event_tables(
            BRIDGE_EVENTS_QUERY, {"startVersion": start_version, "limit": max_count}
        )
        horizon = self._page_horizon(mint_rows, burn_rows, max_count)
        if horizon is not None and all(
            int(row["version"]) >= horizon for row in (*mint_rows, *burn_rows)
        ):
            # The first version alone fills the page
            return await self._fetch_version(contract_address, horizon, max_count)

        return self._merge_event_rows(contract_address, mint_rows, burn_rows, max_count)

    async def _fetch_version(self, contract_address: str, version: int, limit: int) -> list[RawEvent]:
        """Fetch every bridge event at ``version``, raising the limit until neither table is full."""
        while True:
            limit *= 2
            mint_rows, burn_rows = await self._query_event_tables(
                BRIDGE_VERSION_EVENTS_QUERY, {"version": version, "limit": limit}
            )
            if len(mint_rows) < limit and len(burn_rows) < limit:
                logger.info(
                    f"Fetched all {len(mint_rows) + len(burn_rows)} bridge events at version {version}"
                )
                return self._merge_event_rows(contract_address, mint_rows, burn_rows)

    async def _query_event_tables(
        self, query: str, variables: dict[str, Any]
    ) -> tuple[list[dict[str, Any]], list[dict[str, Any]]]:
        headers = {}
        if self.indexer_api_key:
            headers["Authorization"] = f"Bearer {self.indexer_api_key}"

        response = await self._request(
            "POST",
            self.indexer_url,
            "Indexer query",
            json={"query": query, "variables": variables},
            headers=headers,
        )
        if response.status_code >= 400:
            reason, _ = self._error_details(response)
            raise NetworkError(f"Indexer query failed with HTTP {response.status_code}: {reason}")

        body = response.json()
        if errors := body.get("errors"):
            raise NetworkError(f"GraphQL errors: {errors}")
        data = body.get("data")
        if not data:
            raise NetworkError("No data in GraphQL response")

        return data.get("bridge_mint_events", []), data.get("bridge_burn_events", [])

    @staticmethod
    def _page_horizon(
        mint_rows: list[dict[str, Any]], burn_rows: list[dict[str, Any]], max_count: int
    ) -> int | None:
        """Lowest last version among full table pages, or None if neither table is full.

        Each table was limited separately, so a full table page only proves
        completeness up to (but excluding) its last version.
        """
        horizon: int | None = None
        for rows in (mint_rows, burn_rows):
            if rows and len(rows) >= max_count:
                last = int(rows[-1]["version"])
                horizon = last if horizon is None else min(horizon, last)
        return horizon

    @classmethod
    def _merge_event_rows(
        cls,
        contract_address: str,
        mint_rows: list[dict[str, Any]],
        burn_rows: list[dict[str, Any]],
        max_count: int | None = None,
    ) -> list[RawEvent]:
        """
        Merge the two per-table pages into one ascending page of whole versions.

        Without ``max_count`` the rows are taken to be complete and are all kept.
        """
        entries: list[tuple[int, int, int, str, dict[str, Any]]] = []
        for order, (type_tag, rows) in enumerate((
            (mint_event_type(contract_address), mint_rows),
            (burn_event_type(contract_address), burn_rows),
        )):
            for position, row in enumerate(rows):
                entries.append((int(row["version"]), order, position, type_tag, row))
        entries.sort(key=lambda entry: entry[:3])

        if max_count is not None:
            horizon = cls._page_horizon(mint_rows, burn_rows, max_count)
            if horizon is not None:
                entries = [entry for entry in entries if entry[0] < horizon]

            if len(entries) > max_count:
                boundary = entries[max_count][0]
                head = [entry for entry in entries[:max_count] if entry[0] < boundary]
                entries = head or [entry for entry in entries if entry[0] == boundary]

        events: list[RawEvent] = []
        index_in_version = 0
        previous_version: int | None = None
        for version, _, _, type_tag, row in entries:
            index_in_version = index_in_version + 1 if version == previous_version else 0
            previous_version = version
            events.append(RawEvent(version=version, event_index=index_in_version, type_tag=type_tag, data=row))
        return events
