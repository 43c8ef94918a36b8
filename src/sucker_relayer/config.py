"""Configuration management for the Sucker Relayer.

This module provides type-safe configuration dataclasses with validation for the
relayer that settles sucker withdrawals from an OP Stack L2 on L1. Configuration
is loaded from environment variables with sensible defaults where appropriate.
"""

import logging
import os
from dataclasses import dataclass
from urllib.parse import urlparse

from web3 import Web3

# Get logger for this module
logger = logging.getLogger(__name__)


def _checksummed(address: str, description: str, env_var: str) -> str:
    """Validate an address and return it in checksum format."""
    if not address:
        raise ValueError(f"{description} is required ({env_var})")
    if not Web3.is_address(address):
        raise ValueError(f"Invalid {description.lower()}: {address}")
    return Web3.to_checksum_address(address)


def _validate_rpc_url(rpc_url: str, env_var: str) -> None:
    if not rpc_url:
        raise ValueError(f"RPC URL is required ({env_var})")
    parsed = urlparse(rpc_url)
    if parsed.scheme not in ('http', 'https'):
        raise ValueError(
            f"Invalid RPC URL scheme: {parsed.scheme}. "
            "Expected http or https"
        )


def _int_from_env(name: str, default: str | None = None) -> int:
    raw = os.environ.get(name, default)
    if raw is None or raw == "":
        raise ValueError(f"{name} environment variable is required")
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


@dataclass(frozen=True, slots=True)
class SourceChainConfig:
    """Configuration for the source chain (the OP Stack L2).

    Attributes:
        rpc_url: HTTP(S) RPC endpoint for the L2
        chain_id: Chain ID of the L2
        sucker_address: Checksummed address of the L2 sucker, which emits withdrawal events
    """

    rpc_url: str
    chain_id: int
    sucker_address: str

    def __post_init__(self) -> None:
        """Validate source chain configuration."""
        _validate_rpc_url(self.rpc_url, "L2_RPC_URL")
        if self.chain_id <= 0:
            raise ValueError(f"L2 chain ID must be positive, got {self.chain_id}")
        # Use object.__setattr__ since dataclass is frozen
        object.__setattr__(
            self, 'sucker_address',
            _checksummed(self.sucker_address, "L2 sucker address", "L2_SUCKER_ADDRESS"),
        )


@dataclass(frozen=True, slots=True)
class TargetChainConfig:
    """Configuration for the destination chain (L1).

    Attributes:
        rpc_url: HTTP(S) RPC endpoint for L1
        chain_id: Chain ID of L1
        sucker_address: Checksummed address of the L1 sucker
        standard_bridge_address: Checksummed address of the L1 standard bridge
        optimism_portal_address: Checksummed address of the OptimismPortal proxy
        l2_output_oracle_address: Checksummed address of the L2OutputOracle proxy
    """

    rpc_url: str
    chain_id: int
    sucker_address: str
    standard_bridge_address: str
    optimism_portal_address: str
    l2_output_oracle_address: str

    def __post_init__(self) -> None:
        """Validate target chain configuration."""
        _validate_rpc_url(self.rpc_url, "L1_RPC_URL")
        if self.chain_id <= 0:
            raise ValueError(f"L1 chain ID must be positive, got {self.chain_id}")

        for field_name, description, env_var in (
            ('sucker_address', "L1 sucker address", "L1_SUCKER_ADDRESS"),
            ('standard_bridge_address', "L1 standard bridge address", "L1_STANDARD_BRIDGE_ADDRESS"),
            ('optimism_portal_address', "OptimismPortal address", "OPTIMISM_PORTAL_ADDRESS"),
            ('l2_output_oracle_address', "L2OutputOracle address", "L2_OUTPUT_ORACLE_ADDRESS"),
        ):
            object.__setattr__(
                self, field_name,
                _checksummed(getattr(self, field_name), description, env_var),
            )


@dataclass(frozen=True, slots=True)
class RelayConfig:
    """Configuration for the transaction relay service.

    Attributes:
        api_url: Base URL of the relay API, or a unix socket path
        api_key: API key for the relay (optional)
    """

    api_url: str
    api_key: str | None = None

    def __post_init__(self) -> None:
        """Validate relay configuration."""
        if not self.api_url:
            raise ValueError("Relay API URL is required (RELAY_API_URL)")
        parsed = urlparse(self.api_url)
        if parsed.scheme not in ('http', 'https') and not self.api_url.startswith('/'):
            raise ValueError(
                f"Invalid relay API URL: {self.api_url}. "
                "Expected an http(s) URL or an absolute socket path"
            )


@dataclass(frozen=True, slots=True)
class MonitoringConfig:
    """Configuration for scanning and settlement."""
    polling_interval: int = 300  # seconds between passes
    lookback_blocks: int = 10_000  # blocks to scan back from the head
    page_size: int = 100  # blocks per eth_getLogs call
    confirmations: int = 3  # blocks to wait for in direct mode
    gas_limit: int = 1_000_000  # gas limit for prove/finalize transactions
    receipt_timeout: int = 300  # seconds to wait for a direct transaction to be mined

    def __post_init__(self) -> None:
        """Validate monitoring configuration."""
        if self.polling_interval <= 0:
            raise ValueError(f"Polling interval must be positive, got {self.polling_interval}")
        if self.lookback_blocks <= 0:
            raise ValueError(f"Lookback blocks must be positive, got {self.lookback_blocks}")
        if self.page_size <= 0:
            raise ValueError(f"Page size must be positive, got {self.page_size}")
        if self.page_size > self.lookback_blocks:
            raise ValueError(
                f"Page size ({self.page_size}) cannot exceed lookback blocks ({self.lookback_blocks})"
            )
        if self.confirmations <= 0:
            raise ValueError(f"Confirmations must be positive, got {self.confirmations}")
        if self.gas_limit < 21_000:
            raise ValueError(f"Gas limit too low (min 21000), got {self.gas_limit}")
        if self.receipt_timeout <= 0:
            raise ValueError(f"Receipt timeout must be positive, got {self.receipt_timeout}")


@dataclass(frozen=True, slots=True)
class RelayerConfig:
    """Main configuration for the Sucker Relayer.

    Attributes:
        source_chain: Configuration for the L2
        target_chain: Configuration for L1
        monitoring: Configuration for scanning and settlement
        relay: Relay service configuration (None to broadcast directly)
        private_key: Key for direct broadcasting (optional when a relay is set)
    """

    source_chain: SourceChainConfig
    target_chain: TargetChainConfig
    monitoring: MonitoringConfig
    relay: RelayConfig | None = None
    private_key: str | None = None

    def __post_init__(self) -> None:
        """Validate relayer configuration."""
        if self.relay is None and not self.private_key:
            raise ValueError(
                "Either EOA_PRIVATE_KEY or RELAY_API_URL must be set"
            )

        if self.private_key:
            # Basic private key validation (should be 64 hex chars, optionally with 0x prefix)
            key = self.private_key.removeprefix('0x')

            if len(key) != 64:
                raise ValueError(
                    f"Invalid private key length. Expected 64 hex characters, got {len(key)}"
                )

            try:
                int(key, 16)
            except ValueError:
                raise ValueError(
                    "Invalid private key format. Must be hexadecimal"
                ) from None

    @property
    def use_relay(self) -> bool:
        """Whether transactions go through the relay rather than being broadcast directly."""
        return self.relay is not None

    @classmethod
    def from_env(cls) -> "RelayerConfig":
        """Load configuration from environment variables.

        Returns:
            RelayerConfig instance with loaded values

        Raises:
            ValueError: If required environment variables are missing or invalid
        """
        l2_chain_id = _int_from_env("L2_CHAIN_ID")
        source_config = SourceChainConfig(
            rpc_url=os.environ.get("L2_RPC_URL", ""),
            chain_id=l2_chain_id,
            sucker_address=os.environ.get("L2_SUCKER_ADDRESS", ""),
        )

        target_config = TargetChainConfig(
            rpc_url=os.environ.get("L1_RPC_URL", ""),
            chain_id=_int_from_env("L1_CHAIN_ID"),
            sucker_address=os.environ.get("L1_SUCKER_ADDRESS", ""),
            standard_bridge_address=os.environ.get("L1_STANDARD_BRIDGE_ADDRESS", ""),
            optimism_portal_address=os.environ.get("OPTIMISM_PORTAL_ADDRESS", ""),
            l2_output_oracle_address=os.environ.get("L2_OUTPUT_ORACLE_ADDRESS", ""),
        )

        monitoring_config = MonitoringConfig(
            polling_interval=_int_from_env("POLLING_INTERVAL", "300"),
            lookback_blocks=_int_from_env("LOOKBACK_BLOCKS", "10000"),
            page_size=_int_from_env("PAGE_SIZE", "100"),
            confirmations=_int_from_env("CONFIRMATIONS", "3"),
            gas_limit=_int_from_env("GAS_LIMIT", "1000000"),
            receipt_timeout=_int_from_env("RECEIPT_TIMEOUT", "300"),
        )

        relay_url = os.environ.get("RELAY_API_URL")
        relay_config = RelayConfig(
            api_url=relay_url,
            api_key=os.environ.get("RELAY_API_KEY") or None,
        ) if relay_url else None

        return cls(
            source_chain=source_config,
            target_chain=target_config,
            monitoring=monitoring_config,
            relay=relay_config,
            private_key=os.environ.get("EOA_PRIVATE_KEY") or None,
        )

    def log_config(self) -> None:
        """Log the configuration in a readable format (hiding sensitive data)."""
        logger.info("=" * 60)
        logger.info("Sucker Relayer Configuration")
        logger.info("=" * 60)

        logger.info("Source Chain (L2):")
        logger.info(f"  RPC URL: {self.source_chain.rpc_url}")
        logger.info(f"  Chain ID: {self.source_chain.chain_id}")
        logger.info(f"  Sucker: {self.source_chain.sucker_address}")

        logger.info("Target Chain (L1):")
        logger.info(f"  RPC URL: {self.target_chain.rpc_url}")
        logger.info(f"  Chain ID: {self.target_chain.chain_id}")
        logger.info(f"  Sucker: {self.target_chain.sucker_address}")
        logger.info(f"  Standard Bridge: {self.target_chain.standard_bridge_address}")
        logger.info(f"  OptimismPortal: {self.target_chain.optimism_portal_address}")
        logger.info(f"  L2OutputOracle: {self.target_chain.l2_output_oracle_address}")

        logger.info("Monitoring Settings:")
        logger.info(f"  Polling Interval: {self.monitoring.polling_interval} seconds")
        logger.info(f"  Lookback Blocks: {self.monitoring.lookback_blocks}")
        logger.info(f"  Page Size: {self.monitoring.page_size}")
        logger.info(f"  Confirmations: {self.monitoring.confirmations}")
        logger.info(f"  Gas Limit: {self.monitoring.gas_limit}")

        logger.info("Submission:")
        if self.relay:
            logger.info("  Mode: RELAY")
            logger.info(f"  Relay URL: {self.relay.api_url}")
            logger.info(f"  Relay API Key: {'[SET]' if self.relay.api_key else '[NOT SET]'}")
        else:
            logger.info("  Mode: DIRECT")
            logger.info("  Private Key: [CONFIGURED]")

        logger.info("=" * 60)
