"""
Read-only queries against the bridge contract's view functions.
"""

import json
import logging
from collections.abc import Sequence
from typing import Any

from .constants import (
    BURN_PAUSED_FUNCTION,
    GET_MINTED_FUNCTION,
    GET_OWNER_FUNCTION,
    MAX_BTC_PER_BURN_FUNCTION,
    MAX_BTC_PER_MINT_FUNCTION,
    MAX_FEE_RATE_FUNCTION,
    MAX_PEGS_PER_MINT_FUNCTION,
    MIN_BTC_PER_BURN_FUNCTION,
    MIN_BTC_PER_MINT_FUNCTION,
    MIN_CONFIRMATIONS_FUNCTION,
)
from .errors import BridgeError, InvalidAddress
from .gateway import ChainGateway
from .models import BridgeConfig, TransactionStatus
from .utils.address import canonical_address

logger = logging.getLogger(__name__)


class QueryClient:
    """Fetches contract parameters and balances through the chain gateway."""

    def __init__(self, gateway: ChainGateway, contract_address: str):
        self.gateway = gateway
        self.contract_address = contract_address

    async def _view(self, function: str, arguments: Sequence[Any] = ()) -> Any:
        """Call a view function and return its first return value."""
        raw = await self.gateway.get_contract_state(self.contract_address, function, arguments)
        try:
            values = json.loads(raw)
        except ValueError as e:
            raise BridgeError(f"View function {function} returned invalid JSON: {e}") from e
        if not isinstance(values, list) or not values:
            raise BridgeError(f"View function {function} returned no value: {values!r}")
        return values[0]

    async def _view_u64(self, function: str, arguments: Sequence[Any] = ()) -> int:
        value = await self._view(function, arguments)
        try:
            # u64 values arrive as decimal strings
            return int(value)
        except (TypeError, ValueError):
            raise BridgeError(f"View function {function} returned a non-integer: {value!r}") from None

    async def _view_bool(self, function: str) -> bool:
        value = await self._view(function)
        if not isinstance(value, bool):
            raise BridgeError(f"View function {function} returned a non-boolean: {value!r}")
        return value

    async def get_bridge_config(self) -> BridgeConfig:
        """Fetch a snapshot of the bridge parameters. Never cached here."""
        owner = await self._view(GET_OWNER_FUNCTION)
        config = BridgeConfig(
            owner=str(owner),
            min_confirmations=await self._view_u64(MIN_CONFIRMATIONS_FUNCTION),
            max_pegs_per_mint=await self._view_u64(MAX_PEGS_PER_MINT_FUNCTION),
            max_btc_per_mint=await self._view_u64(MAX_BTC_PER_MINT_FUNCTION),
            min_btc_per_mint=await self._view_u64(MIN_BTC_PER_MINT_FUNCTION),
            max_btc_per_burn=await self._view_u64(MAX_BTC_PER_BURN_FUNCTION),
            min_btc_per_burn=await self._view_u64(MIN_BTC_PER_BURN_FUNCTION),
            burn_paused=await self._view_bool(BURN_PAUSED_FUNCTION),
            max_fee_rate=await self._view_u64(MAX_FEE_RATE_FUNCTION),
        )
        logger.debug(f"Fetched bridge config: {config}")
        return config

    async def get_minted(self, address: str) -> int:
        """Total satoshi minted to ``address``."""
        try:
            canonical = canonical_address(address)
        except ValueError as e:
            raise InvalidAddress(address, str(e)) from None
        return await self._view_u64(GET_MINTED_FUNCTION, [canonical])

    async def get_transaction_status(self, tx_hash: str) -> TransactionStatus:
        return await self.gateway.get_transaction_status(tx_hash)
