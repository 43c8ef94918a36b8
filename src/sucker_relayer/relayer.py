"""
Sucker Relayer implementation.

This module contains the main relayer service that scans the L2 for sucker
withdrawals and settles the resulting messages on L1, one pass at a time.
"""

import asyncio
import logging
from collections import Counter
from typing import TYPE_CHECKING

from web3 import Web3

from .action_executor import ActionExecutor
from .config import RelayerConfig
from .event_scanner import EventScanner
from .message_classifier import MessageClassifier
from .messenger import BedrockMessenger
from .models import ActionOutcome, CrossChainMessage, MessagePriority, OutcomeKind
from .status_resolver import StatusResolver
from .submitter import DirectSubmitter, RelaySubmitter, TransactionSubmitter
from .utils.contract_utility import ContractUtility
from .utils.relay_utility import RelayUtility

if TYPE_CHECKING:
    from .messenger import ChainMessenger

logger = logging.getLogger(__name__)


class SuckerRelayer:
    """
    Main relayer service that orchestrates scanning and settlement.

    Each pass starts from a fresh lookback window and derives every message's
    status from chain data, so nothing needs to be remembered between passes.
    """

    def __init__(
        self,
        config: RelayerConfig,
        messenger: "ChainMessenger | None" = None,
        submitter: TransactionSubmitter | None = None,
        scanner: EventScanner | None = None,
        relay_util: RelayUtility | None = None,
    ):
        """
        Initialize the Sucker Relayer.

        Collaborators that are not passed in are built from the configuration.

        Args:
            config: Relayer configuration
            messenger: Cross-chain messenger
            submitter: Transaction submitter
            scanner: Withdrawal event scanner
            relay_util: Relay client, used for the startup pause check
        """
        self.config = config
        self.running = False
        self.relay_util = relay_util

        if messenger is None or submitter is None or scanner is None:
            self._init_utilities()
        if messenger is not None:
            self.messenger = messenger
        if submitter is not None:
            self.submitter = submitter
        if scanner is not None:
            self.scanner = scanner

        self.classifier = MessageClassifier(
            local_bridge_address=config.target_chain.sucker_address,
            remote_bridge_address=config.source_chain.sucker_address,
            standard_bridge_address=config.target_chain.standard_bridge_address,
        )
        self.status_resolver = StatusResolver(self.messenger)
        self.executor = ActionExecutor(self.messenger, self.submitter)

        # Async coordination
        self.shutdown_event = asyncio.Event()

    def _init_utilities(self) -> None:
        """
        Connect to both chains and build the messenger, submitter and scanner.

        Raises:
            ValueError: If an RPC endpoint reports an unexpected chain ID
        """
        monitoring = self.config.monitoring
        self.w3_source = Web3(Web3.HTTPProvider(self.config.source_chain.rpc_url))

        if self.config.use_relay:
            self.contract_util = ContractUtility()
            self.w3_target = Web3(Web3.HTTPProvider(self.config.target_chain.rpc_url))
            self.relay_util = self.relay_util or RelayUtility(
                self.config.relay.api_url,
                self.config.relay.api_key,
            )
            self.submitter = RelaySubmitter(self.relay_util)
            sender_address = None
        else:
            self.contract_util = ContractUtility(
                rpc_url=self.config.target_chain.rpc_url,
                secret=self.config.private_key,
            )
            self.w3_target = self.contract_util.w3
            self.submitter = DirectSubmitter(
                self.w3_target,
                confirmations=monitoring.confirmations,
                receipt_timeout=monitoring.receipt_timeout,
            )
            sender_address = self.contract_util.account.address

        self.messenger = BedrockMessenger(
            l1_w3=self.w3_target,
            l2_w3=self.w3_source,
            optimism_portal_address=self.config.target_chain.optimism_portal_address,
            l2_output_oracle_address=self.config.target_chain.l2_output_oracle_address,
            contract_util=self.contract_util,
            sender_address=sender_address,
            gas_limit=monitoring.gas_limit,
        )
        self.messenger.verify_chain_ids(
            l1_chain_id=self.config.target_chain.chain_id,
            l2_chain_id=self.config.source_chain.chain_id,
        )

        self.scanner = EventScanner(
            w3=self.w3_source,
            contract_address=self.config.source_chain.sucker_address,
            lookback_blocks=monitoring.lookback_blocks,
            page_size=monitoring.page_size,
        )

        logger.info(f"Initialized relayer in {'RELAY' if self.config.use_relay else 'DIRECT'} mode")

    @classmethod
    def from_env(cls) -> "SuckerRelayer":
        """
        Create a SuckerRelayer instance from environment variables.

        Returns:
            Configured SuckerRelayer instance

        Raises:
            ValueError: If required environment variables are missing
        """
        config = RelayerConfig.from_env()
        config.log_config()
        return cls(config)

    async def ensure_relay_ready(self) -> None:
        """
        Refuse to start against a paused relay.

        Raises:
            RelayPausedError: If the relay reports itself as paused
        """
        if self.relay_util is not None:
            await self.relay_util.ensure_not_paused()

    async def handle_message(self, message: CrossChainMessage, index: int) -> ActionOutcome:
        """
        Classify one message and take whatever action it is ready for.

        Args:
            message: The message to handle
            index: Position of the message within its transaction

        Returns:
            Outcome of the action
        """
        priority = self.classifier.classify(message)
        if priority is MessagePriority.IGNORE:
            logger.debug(f"Ignoring message {index} of {message.transaction_hash}: not for this bridge pair")
            return ActionOutcome.skipped()

        status = await self.status_resolver.resolve_status(message, index)
        return await self.executor.act(message, index, priority, status)

    async def process_transaction(self, tx_hash: str, stats: Counter) -> None:
        """
        Handle every message sent by one withdrawal transaction, in order.

        A failing message is logged and skipped so its siblings still get handled.

        Args:
            tx_hash: Source chain transaction hash
            stats: Counter updated with the outcome of each message
        """
        messages = await self.messenger.get_messages_by_transaction(tx_hash)
        stats['messages'] += len(messages)

        for index, message in enumerate(messages):
            try:
                outcome = await self.handle_message(message, index)
            except Exception as e:
                source_tx, log_index = message.unique_key
                logger.error(
                    f"Skipping message {index} (tx {source_tx}, log {log_index}) because of an error: {e}",
                    exc_info=True
                )
                stats['failed'] += 1
                stats[OutcomeKind.SKIPPED.value] += 1
                continue
            stats[outcome.kind.value] += 1

    async def run_once(self) -> dict[str, int]:
        """
        Run one full scan-and-settle pass.

        Returns:
            Counts of transactions, messages and outcomes for the pass
        """
        stats: Counter = Counter()
        async for tx_hash in self.scanner.scan():
            stats['transactions'] += 1
            try:
                await self.process_transaction(tx_hash, stats)
            except Exception as e:
                logger.error(f"Skipping transaction {tx_hash} because of an error: {e}", exc_info=True)
                stats['failed'] += 1

        summary = {
            'transactions': stats['transactions'],
            'messages': stats['messages'],
            'skipped': stats[OutcomeKind.SKIPPED.value],
            'submitted': stats[OutcomeKind.SUBMITTED.value],
            'already_pending': stats[OutcomeKind.ALREADY_PENDING.value],
            'failed': stats['failed'],
        }
        logger.info(
            f"Pass complete: {summary['transactions']} transactions, {summary['messages']} messages, "
            f"{summary['submitted']} submitted, {summary['already_pending']} already pending, "
            f"{summary['failed']} failed"
        )
        return summary

    async def run(self) -> None:
        """Run passes on a fixed interval until stopped."""
        self.running = True
        interval = self.config.monitoring.polling_interval
        logger.info("Sucker Relayer starting...")
        logger.info(f"Polling interval: {interval}s")
        logger.info(f"Lookback blocks: {self.config.monitoring.lookback_blocks}")

        try:
            while self.running:
                try:
                    await self.run_once()
                except Exception as e:
                    logger.error(f"Error in scan pass, retrying next interval: {e}", exc_info=True)

                try:
                    await asyncio.wait_for(self.shutdown_event.wait(), timeout=interval)
                    break  # Shutdown requested
                except asyncio.TimeoutError:
                    pass  # Next pass
        finally:
            self.running = False
            logger.info("Sucker Relayer stopped")

    def stop(self) -> None:
        """Stop the relayer service."""
        self.running = False
        self.shutdown_event.set()
