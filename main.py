#!/usr/bin/env python3
"""Entry point for explorer lookups of the message tracker.

Queries a chain's block explorer for a transaction, receipt, block or logs
and prints the validated result as JSON.
"""

import argparse
import asyncio
import json
import logging
import os
import sys

from dotenv import load_dotenv


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

from message_tracker.errors import ConfigError, TrackerError
from message_tracker.tracker import MessageTracker


def build_parser() -> argparse.ArgumentParser:
    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        description="Message Tracker - query block explorers for on-chain detail",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""Environment Variables:
  EXPLORER_API_URLS     - chainId=url pairs, comma separated
  EXPLORER_API_KEYS     - chainId=key pairs, comma separated (optional)
  QUERY_SERVICE_URL     - GraphQL endpoint of the message status service
  ENVIRONMENT           - mainnet or testnet (default: mainnet)
  REQUEST_TIMEOUT       - HTTP timeout in seconds (default: 10)
  LOG_LEVEL             - Logging level (can be overridden with --log-level)
        """
    )
    parser.add_argument(
        "--log-level",
        default=os.environ.get("LOG_LEVEL", "INFO"),
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Set the logging level (default: INFO)"
    )
    parser.add_argument(
        "--use-key",
        action="store_true",
        default=False,
        help="Use the chain's explorer API key (skips throttling)"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    tx = subparsers.add_parser("tx", help="Fetch a transaction by hash")
    tx.add_argument("chain_id", type=int)
    tx.add_argument("tx_hash")

    receipt = subparsers.add_parser("receipt", help="Fetch a transaction receipt by hash")
    receipt.add_argument("chain_id", type=int)
    receipt.add_argument("tx_hash")

    block = subparsers.add_parser("block", help="Fetch a block by number (default: latest)")
    block.add_argument("chain_id", type=int)
    block.add_argument("block_number", nargs="?", default=None)

    logs = subparsers.add_parser("logs", help="Fetch logs with a raw explorer query string")
    logs.add_argument("chain_id", type=int)
    logs.add_argument("params", help="e.g. module=logs&action=getLogs&address=0x...&topic0=0x...")
    return parser


async def run_command(tracker: MessageTracker, args: argparse.Namespace) -> object:
    explorer = tracker.explorer
    match args.command:
        case "tx":
            return await explorer.query_tx(args.chain_id, args.tx_hash, args.use_key)
        case "receipt":
            return await explorer.query_tx_receipt(args.chain_id, args.tx_hash, args.use_key)
        case "block":
            number = args.block_number
            if number is not None and number.isdigit():
                number = int(number)
            return await explorer.query_block(args.chain_id, number, args.use_key)
        case "logs":
            logs = await explorer.query_normalized_logs(args.chain_id, args.params, args.use_key)
            return [log.to_dict() for log in logs]
    raise ValueError(f"Unknown command: {args.command}")


async def main() -> None:
    """Main entry point for explorer lookups.

    Raises:
        SystemExit: On configuration or query errors
    """
    load_dotenv()
    args: argparse.Namespace = build_parser().parse_args()
    setup_logging(args.log_level)

    try:
        tracker: MessageTracker = MessageTracker.from_env()
    except ValueError as e:
        logger.error(f"Configuration Error: {e}")
        logger.error("Please check your environment variables:")
        logger.error("  - EXPLORER_API_URLS: chainId=url pairs")
        logger.error("  - EXPLORER_API_KEYS: chainId=key pairs (optional)")
        logger.error("  - ENVIRONMENT: mainnet or testnet")
        sys.exit(1)

    try:
        result = await run_command(tracker, args)
        print(json.dumps(result, indent=2))
    except ConfigError as e:
        logger.error(f"Configuration Error: {e}")
        sys.exit(1)
    except TrackerError as e:
        logger.error(f"Query failed: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Received interrupt signal, shutting down...")
        sys.exit(0)
    except Exception as e:
        logger.error(f"Fatal Error: {e}", exc_info=True)
        sys.exit(1)
    finally:
        await tracker.aclose()


if __name__ == "__main__":
    asyncio.run(main())
