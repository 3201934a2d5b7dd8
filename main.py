#!/usr/bin/env python3
"""Entry point for the RedStone Movement relayer.

Runs one relay: fetch a signed payload for the configured feed, wrap it in
a transaction, simulate it and submit it to the connector contract.
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

from src.redstone_relayer.exceptions import ConfigurationError, RelayerError
from src.redstone_relayer.relayer import PayloadRelayer


async def run() -> int:
    """Run the relayer once and return the process exit code."""
    try:
        relayer: PayloadRelayer = PayloadRelayer.from_env()
    except ConfigurationError as e:
        logger.error(f"Configuration Error: {e}")
        logger.error("Please check your environment variables:")
        logger.error("  - MOVEMENT_PRIVATE_KEY: Key of the relaying account")
        logger.error("  - CONTRACT_ADDRESS: RedStone connector package address")
        logger.error("  - MOVEMENT_RPC_URL: Node REST endpoint (optional)")
        logger.error("  - INITIALIZE: Set to run the one-time initialize call (optional)")
        return 1

    async with relayer:
        try:
            report = await relayer.run()
        except RelayerError as e:
            logger.error(f"Relay failed ({type(e).__name__}): {e}")
            return 1

    logger.info(f"Run report: {json.dumps(report.to_dict())}")
    return 0


def main() -> None:
    """Parse startup arguments, configure logging and run the relayer."""
    load_dotenv()

    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        description="RedStone Relayer - Relay signed price payloads to Movement",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""Environment Variables:
  MOVEMENT_PRIVATE_KEY  - Ed25519 private key of the relaying account
  CONTRACT_ADDRESS      - RedStone connector package address
  MOVEMENT_RPC_URL      - Node REST endpoint (default: Movement Porto testnet)
  FEED_SYMBOL           - Feed to relay (default: BTC)
  PAYLOAD_CLI           - Payload generator executable (default: redstone-payload-cli)
  INITIALIZE            - If present, run the one-time initialize call first
  LOG_LEVEL             - Logging level (can be overridden with --log-level)
        """
    )
    parser.add_argument(
        "--log-level",
        default=os.environ.get("LOG_LEVEL", "INFO"),
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Set the logging level (default: INFO)"
    )
    args: argparse.Namespace = parser.parse_args()

    setup_logging(args.log_level)
    logger.info("=== RedStone Relayer Starting ===")

    try:
        sys.exit(asyncio.run(run()))
    except KeyboardInterrupt:
        logger.info("\nReceived interrupt signal, shutting down...")
        sys.exit(130)
    except Exception as e:
        logger.error(f"Fatal Error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
