"""Names and limits of the on-chain bridge module."""

BRIDGE_MODULE = "fiamma_bridge_account"

# Entry functions
MINT_FUNCTION = "mint"
BURN_FUNCTION = "burn"

# Event struct names, qualified as {contract}::{BRIDGE_MODULE}::{name}
MINT_EVENT = "Mint"
BURN_EVENT = "Burn"

# View functions
GET_OWNER_FUNCTION = "get_owner"
MIN_CONFIRMATIONS_FUNCTION = "min_confirmations"
MAX_PEGS_PER_MINT_FUNCTION = "max_pegs_per_mint"
MAX_BTC_PER_MINT_FUNCTION = "max_btc_per_mint"
MIN_BTC_PER_MINT_FUNCTION = "min_btc_per_mint"
MAX_BTC_PER_BURN_FUNCTION = "max_btc_per_burn"
MIN_BTC_PER_BURN_FUNCTION = "min_btc_per_burn"
BURN_PAUSED_FUNCTION = "burn_paused"
MAX_FEE_RATE_FUNCTION = "max_fee_rate"
GET_MINTED_FUNCTION = "get_minted"

# Transaction defaults
EXPIRATION_TIMESTAMP_SECS = 60
DEFAULT_MAX_GAS_AMOUNT = 200_000
DEFAULT_GAS_UNIT_PRICE = 100

SATOSHI_PER_BTC = 100_000_000


def qualified_name(contract_address: str, name: str) -> str:
    """Fully qualified Move name of a bridge function or event."""
    return f"{contract_address}::{BRIDGE_MODULE}::{name}"
