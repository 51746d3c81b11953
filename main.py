#!/usr/bin/env python3
"""Command-line entry point for the Aptos bridge client.

Subcommands:
  listen         Stream bridge Mint/Burn events to the log
  config         Print the on-chain bridge configuration
  status <hash>  Print the status of a submitted transaction
"""

import argparse
import asyncio
import json
import logging
import os
import signal
import sys


# Configure logging before any other imports create loggers
def setup_logging(level: str = "INFO") -> None:
    """Configure logging for the application.

    Args:
        level: Logging level as string (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    log_level: int = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


# Get logger for this module
logger = logging.getLogger(__name__)

from aptos_bridge_client import BridgeClient, LoggingEventHandler
from aptos_bridge_client.utils.btc import format_btc_amount


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Aptos Bitcoin bridge client",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""Environment Variables:
  APTOS_NODE_URL          - Aptos node REST endpoint (default: testnet)
  APTOS_INDEXER_URL       - GraphQL indexer endpoint (default: testnet)
  GRAPHQL_API_KEY         - Indexer API key (optional)
  BRIDGE_CONTRACT_ADDRESS - Bridge contract address (required)
  PRIVATE_KEY             - Ed25519 private key (only needed to submit transactions)
  CHAIN_ID                - Chain ID (default: 2)
  START_VERSION           - First event version to sync (default: 0)
  BATCH_SIZE              - Events per fetch (default: 100)
  POLL_INTERVAL           - Seconds between polls (default: 10)
  HANDLER_FAILURE_POLICY  - retry or halt (default: retry)
  SKIP_DECODE_FAILURES    - Skip undecodable events (default: false)
  LOG_LEVEL               - Logging level (can be overridden with --log-level)
        """
    )
    parser.add_argument(
        "--log-level",
        default=os.environ.get("LOG_LEVEL", "INFO"),
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Set the logging level (default: INFO)"
    )
    subcommands = parser.add_subparsers(dest="command", required=True)
    subcommands.add_parser("listen", help="Stream bridge events to the log")
    subcommands.add_parser("config", help="Print the on-chain bridge configuration")
    status_parser = subcommands.add_parser("status", help="Print a transaction's status")
    status_parser.add_argument("tx_hash", help="Transaction hash (0x-prefixed)")
    return parser


async def listen(client: BridgeClient) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, client.stop)
        except NotImplementedError:
            pass  # Not supported on this platform; Ctrl+C still cancels the run
    await client.run(LoggingEventHandler())


async def show_config(client: BridgeClient) -> None:
    bridge_config = await client.get_bridge_config()
    print(json.dumps(bridge_config.to_dict(), indent=2))
    logger.info(f"Max per burn: {format_btc_amount(bridge_config.max_btc_per_burn)}")


async def show_status(client: BridgeClient, tx_hash: str) -> None:
    status = await client.get_transaction_status(tx_hash)
    print(f"{tx_hash}: {status}")


async def main() -> None:
    """Parse arguments, load configuration from the environment and run a subcommand."""
    args: argparse.Namespace = build_parser().parse_args()
    setup_logging(args.log_level)

    try:
        client = BridgeClient.from_env(require_account=False)
    except ValueError as e:
        logger.error(f"Configuration Error: {e}")
        logger.error("Please check your environment variables:")
        logger.error("  - BRIDGE_CONTRACT_ADDRESS: Bridge contract address")
        logger.error("  - APTOS_NODE_URL: Aptos node REST endpoint")
        logger.error("  - APTOS_INDEXER_URL: GraphQL indexer endpoint (for listen)")
        sys.exit(1)

    try:
        match args.command:
            case "listen":
                await listen(client)
            case "config":
                await show_config(client)
            case "status":
                await show_status(client, args.tx_hash)
    except KeyboardInterrupt:
        logger.info("Received interrupt signal, shutting down gracefully...")
        client.stop()
    except Exception as e:
        logger.error(f"Fatal Error: {e}", exc_info=True)
        sys.exit(1)
    finally:
        await client.close()


if __name__ == "__main__":
    asyncio.run(main())
