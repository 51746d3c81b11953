"""Configuration management for the Aptos bridge client.

This module provides validated configuration dataclasses for the bridge
client. The core components only take explicit constructor parameters;
``BridgeClientConfig.from_env`` is the bootstrapping layer that reads them
from environment variables.
"""

import logging
import os
from dataclasses import dataclass
from urllib.parse import urlparse

from .errors import ConfigError
from .models import HandlerFailurePolicy
from .utils.address import canonical_address

# Get logger for this module
logger = logging.getLogger(__name__)

DEFAULT_NODE_URL = "https://fullnode.testnet.aptoslabs.com/v1"
DEFAULT_INDEXER_URL = "https://api.testnet.aptoslabs.com/v1/graphql"
TESTNET_CHAIN_ID = 2


def _check_url(url: str, name: str) -> None:
    parsed = urlparse(url)
    if parsed.scheme not in ('http', 'https') or not parsed.netloc:
        raise ConfigError(f"Invalid {name}: {url!r}. Expected an http(s) URL")


@dataclass(frozen=True, slots=True)
class NodeConfig:
    """Endpoints and network behaviour.

    Attributes:
        node_url: Aptos node REST endpoint
        indexer_url: GraphQL indexer endpoint serving bridge events
        indexer_api_key: Optional bearer token for the indexer
        chain_id: Chain identifier embedded in transactions
        request_timeout: HTTP request timeout in seconds
        max_retries: Retries for transient network failures
    """

    node_url: str = DEFAULT_NODE_URL
    indexer_url: str | None = DEFAULT_INDEXER_URL
    indexer_api_key: str | None = None
    chain_id: int = TESTNET_CHAIN_ID
    request_timeout: float = 30.0
    max_retries: int = 3

    def __post_init__(self) -> None:
        """Validate node configuration."""
        _check_url(self.node_url, "node URL (APTOS_NODE_URL)")
        if self.indexer_url:
            _check_url(self.indexer_url, "indexer URL (APTOS_INDEXER_URL)")

        # Chain ids are a u8 on the wire
        if not 0 < self.chain_id < 256:
            raise ConfigError(f"Chain ID must be between 1 and 255, got {self.chain_id}")
        if self.request_timeout <= 0:
            raise ConfigError(f"Request timeout must be positive, got {self.request_timeout}")
        if self.max_retries < 0:
            raise ConfigError(f"Max retries must be non-negative, got {self.max_retries}")
        if self.max_retries > 10:
            raise ConfigError(f"Max retries too high (max 10), got {self.max_retries}")


@dataclass(frozen=True, slots=True)
class AccountConfig:
    """Signing credential. Never logged."""

    private_key: str

    def __post_init__(self) -> None:
        key = self.private_key
        if key.startswith('0x'):
            key = key[2:]

        if len(key) != 64:
            raise ConfigError(
                f"Invalid private key length. Expected 64 hex characters, got {len(key)}"
            )

        try:
            int(key, 16)
        except ValueError:
            raise ConfigError("Invalid private key format. Must be hexadecimal") from None

    def __repr__(self) -> str:
        return "AccountConfig(private_key=[SET])"


@dataclass(frozen=True, slots=True)
class ContractConfig:
    """Bridge contract location.

    Attributes:
        contract_address: Address the bridge module is published under,
            normalized to the canonical long form
    """

    contract_address: str

    def __post_init__(self) -> None:
        if not self.contract_address:
            raise ConfigError(
                "Bridge contract address is required (BRIDGE_CONTRACT_ADDRESS)"
            )
        try:
            canonical = canonical_address(self.contract_address)
        except ValueError as e:
            raise ConfigError(f"Invalid bridge contract address: {e}") from None
        if canonical != self.contract_address:
            object.__setattr__(self, 'contract_address', canonical)


@dataclass(frozen=True, slots=True)
class SyncConfig:
    """Event synchronization and confirmation settings."""
    start_version: int = 0  # first event-stream version to fetch
    batch_size: int = 100  # max events per fetch
    poll_interval: float = 10.0  # seconds between polls once caught up
    confirmation_timeout: float = 30.0  # seconds to wait for a transaction
    handler_failure_policy: HandlerFailurePolicy = HandlerFailurePolicy.RETRY
    skip_decode_failures: bool = False

    def __post_init__(self) -> None:
        """Validate sync configuration."""
        if self.start_version < 0:
            raise ConfigError(f"Start version must be non-negative, got {self.start_version}")

        if self.batch_size <= 0:
            raise ConfigError(f"Batch size must be positive, got {self.batch_size}")
        if self.batch_size > 1000:
            raise ConfigError(f"Batch size too high (max 1000), got {self.batch_size}")

        if self.poll_interval <= 0:
            raise ConfigError(f"Poll interval must be positive, got {self.poll_interval}")
        if self.poll_interval > 300:
            raise ConfigError(f"Poll interval too long (max 300s), got {self.poll_interval}")

        if self.confirmation_timeout <= 0:
            raise ConfigError(
                f"Confirmation timeout must be positive, got {self.confirmation_timeout}"
            )


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from None


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from None


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    match raw.strip().lower():
        case "1" | "true" | "yes" | "on":
            return True
        case "0" | "false" | "no" | "off":
            return False
        case _:
            raise ConfigError(f"{name} must be a boolean, got {raw!r}")


@dataclass(frozen=True, slots=True)
class BridgeClientConfig:
    """Main configuration for the bridge client.

    Attributes:
        node: Endpoints and network behaviour
        contract: Bridge contract location
        sync: Event synchronization settings
        account: Signing credential; optional for read-only use
    """

    node: NodeConfig
    contract: ContractConfig
    sync: SyncConfig
    account: AccountConfig | None = None

    @classmethod
    def from_env(cls, require_account: bool = True) -> "BridgeClientConfig":
        """Load configuration from environment variables.

        Args:
            require_account: Fail if PRIVATE_KEY is not set

        Returns:
            BridgeClientConfig instance with loaded values

        Raises:
            ConfigError: If required environment variables are missing or invalid
        """
        node_config = NodeConfig(
            node_url=os.environ.get("APTOS_NODE_URL", DEFAULT_NODE_URL),
            indexer_url=os.environ.get("APTOS_INDEXER_URL", DEFAULT_INDEXER_URL) or None,
            indexer_api_key=os.environ.get("GRAPHQL_API_KEY") or None,
            chain_id=_env_int("CHAIN_ID", TESTNET_CHAIN_ID),
            max_retries=_env_int("MAX_RETRIES", 3),
        )

        contract_address = os.environ.get("BRIDGE_CONTRACT_ADDRESS", "")
        if not contract_address:
            raise ConfigError(
                "BRIDGE_CONTRACT_ADDRESS environment variable is required. "
                "This should be the address the bridge module is published under."
            )
        contract_config = ContractConfig(contract_address=contract_address)

        policy_name = os.environ.get("HANDLER_FAILURE_POLICY", HandlerFailurePolicy.RETRY.value)
        try:
            policy = HandlerFailurePolicy(policy_name.strip().lower())
        except ValueError:
            raise ConfigError(
                f"HANDLER_FAILURE_POLICY must be 'retry' or 'halt', got {policy_name!r}"
            ) from None

        sync_config = SyncConfig(
            start_version=_env_int("START_VERSION", 0),
            batch_size=_env_int("BATCH_SIZE", 100),
            poll_interval=_env_float("POLL_INTERVAL", 10.0),
            confirmation_timeout=_env_float("CONFIRMATION_TIMEOUT", 30.0),
            handler_failure_policy=policy,
            skip_decode_failures=_env_bool("SKIP_DECODE_FAILURES", False),
        )

        private_key = os.environ.get("PRIVATE_KEY")
        if not private_key and require_account:
            raise ConfigError(
                "PRIVATE_KEY environment variable is required. "
                "This is used to sign mint and burn transactions"
            )

        return cls(
            node=node_config,
            contract=contract_config,
            sync=sync_config,
            account=AccountConfig(private_key) if private_key else None,
        )

    def log_config(self) -> None:
        """Log the configuration in a readable format for debugging."""
        logger.info("=" * 60)
        logger.info("Aptos Bridge Client Configuration")
        logger.info("=" * 60)

        logger.info("Node:")
        logger.info(f"  REST URL: {self.node.node_url}")
        logger.info(f"  Indexer URL: {self.node.indexer_url or '[NOT SET]'}")
        logger.info(f"  Indexer API Key: {'[SET]' if self.node.indexer_api_key else '[NOT SET]'}")
        logger.info(f"  Chain ID: {self.node.chain_id}")
        logger.info(f"  Max Retries: {self.node.max_retries}")

        logger.info("Bridge Contract:")
        logger.info(f"  Address: {self.contract.contract_address}")

        logger.info("Event Sync:")
        logger.info(f"  Start Version: {self.sync.start_version}")
        logger.info(f"  Batch Size: {self.sync.batch_size}")
        logger.info(f"  Poll Interval: {self.sync.poll_interval} seconds")
        logger.info(f"  Handler Failure Policy: {self.sync.handler_failure_policy.value}")
        logger.info(f"  Skip Decode Failures: {self.sync.skip_decode_failures}")
        logger.info(f"  Confirmation Timeout: {self.sync.confirmation_timeout} seconds")

        logger.info(f"Private Key: {'[SET]' if self.account else '[NOT SET]'}")
        logger.info("=" * 60)
