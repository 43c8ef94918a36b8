#!/usr/bin/env python3
"""Entry point for the Sucker Relayer service.

Scans the L2 for sucker withdrawals and proves or finalizes them on L1, either
once or on a fixed interval until interrupted.
"""

import argparse
import asyncio
import logging
import os
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

from sucker_relayer.relayer import SuckerRelayer
from sucker_relayer.utils.relay_utility import RelayPausedError


async def main() -> None:
    """Main entry point for the Sucker Relayer.

    Raises:
        SystemExit: On configuration errors, a paused relay, or fatal runtime errors
    """
    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        description="Sucker Relayer - Prove and finalize sucker withdrawals on L1",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""Environment Variables:
  L2_RPC_URL, L2_CHAIN_ID      - Source chain (OP Stack L2)
  L1_RPC_URL, L1_CHAIN_ID      - Destination chain (L1)
  L2_SUCKER_ADDRESS            - Sucker on the L2
  L1_SUCKER_ADDRESS            - Sucker on L1
  L1_STANDARD_BRIDGE_ADDRESS   - L1 standard bridge
  OPTIMISM_PORTAL_ADDRESS      - OptimismPortal on L1
  L2_OUTPUT_ORACLE_ADDRESS     - L2OutputOracle on L1
  EOA_PRIVATE_KEY              - Key for direct broadcasting
  RELAY_API_URL, RELAY_API_KEY - Relay service (takes precedence over the key)
  POLLING_INTERVAL             - Seconds between passes (default: 300)
  LOOKBACK_BLOCKS              - Blocks to scan back (default: 10000)
  PAGE_SIZE                    - Blocks per log query (default: 100)
  CONFIRMATIONS                - Direct mode confirmations (default: 3)
  GAS_LIMIT                    - Gas limit for prove/finalize (default: 1000000)
  RECEIPT_TIMEOUT              - Direct mode receipt wait in seconds (default: 300)
  LOG_LEVEL                    - Logging level (can be overridden with --log-level)
        """
    )
    parser.add_argument(
        "--once",
        action="store_true",
        default=False,
        help="Run a single scan-and-settle pass and exit"
    )
    parser.add_argument(
        "--log-level",
        default=os.environ.get("LOG_LEVEL", "INFO"),
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Set the logging level (default: INFO)"
    )
    args: argparse.Namespace = parser.parse_args()

    setup_logging(args.log_level)
    logger.info(f"=== Sucker Relayer Starting {'(SINGLE PASS)' if args.once else ''} ===")

    relayer: SuckerRelayer | None = None
    try:
        relayer = SuckerRelayer.from_env()
        await relayer.ensure_relay_ready()

        if args.once:
            await relayer.run_once()
        else:
            await relayer.run()

    except ValueError as e:
        logger.error(f"Configuration Error: {e}")
        logger.error("Please check your environment variables:")
        logger.error("  - L1_RPC_URL / L2_RPC_URL and L1_CHAIN_ID / L2_CHAIN_ID")
        logger.error("  - L1_SUCKER_ADDRESS, L2_SUCKER_ADDRESS, L1_STANDARD_BRIDGE_ADDRESS")
        logger.error("  - OPTIMISM_PORTAL_ADDRESS, L2_OUTPUT_ORACLE_ADDRESS")
        logger.error("  - EOA_PRIVATE_KEY or RELAY_API_URL")
        sys.exit(1)

    except RelayPausedError as e:
        logger.error(f"Relay Error: {e}")
        sys.exit(1)

    except KeyboardInterrupt:
        logger.info("Received interrupt signal, shutting down...")
        if relayer is not None:
            relayer.stop()

    except Exception as e:
        logger.error(f"Fatal Error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
