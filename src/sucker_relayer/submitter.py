"""
Transaction submission for the Sucker Relayer.

Both ways of getting a transaction onto L1 sit behind one interface: through the
relay service, or signed locally and broadcast directly. Each exposes a snapshot
of its own pending transactions so callers can avoid sending duplicates.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from web3 import Web3
from web3.exceptions import TransactionNotFound
from web3.types import TxParams, TxReceipt

from .models import PendingRelayRequest

if TYPE_CHECKING:
    from .utils.relay_utility import RelayUtility

logger = logging.getLogger(__name__)


class TransactionSubmitter(ABC):
    """Sends built transactions to L1."""

    @abstractmethod
    async def pending_requests(self) -> list[PendingRelayRequest]:
        """Transactions sent but not yet mined, at the time of the call."""

    @abstractmethod
    async def submit(self, tx: TxParams) -> str:
        """Send a transaction and return a reference to it."""


class RelaySubmitter(TransactionSubmitter):
    """Submits through the relay service, which signs and broadcasts for us."""

    def __init__(self, relay_util: "RelayUtility") -> None:
        self.relay_util = relay_util

    async def pending_requests(self) -> list[PendingRelayRequest]:
        return await self.relay_util.list_pending_transactions()

    async def submit(self, tx: TxParams) -> str:
        return await self.relay_util.submit_tx(tx)


class DirectSubmitter(TransactionSubmitter):
    """Signs with the local key and broadcasts directly.

    Blocks until the transaction has the configured number of confirmations.
    Transactions whose receipt has not shown up yet are reported as pending.
    """

    CONFIRMATION_POLL_INTERVAL: float = 4.0

    def __init__(self, w3: Web3, confirmations: int = 3, receipt_timeout: int = 300) -> None:
        """
        Initialize the DirectSubmitter.

        Args:
            w3: Web3 for the destination chain with signing middleware installed
            confirmations: Blocks to wait for, counting the inclusion block
            receipt_timeout: Seconds to wait for the transaction to be mined
        """
        self.w3 = w3
        self.confirmations = confirmations
        self.receipt_timeout = receipt_timeout
        self.in_flight: dict[str, PendingRelayRequest] = {}

    async def pending_requests(self) -> list[PendingRelayRequest]:
        for tx_hash in list(self.in_flight):
            if self._is_outstanding(tx_hash):
                continue
            del self.in_flight[tx_hash]
        return list(self.in_flight.values())

    def _is_outstanding(self, tx_hash: str) -> bool:
        """Whether a broadcast is still unmined and known to the node."""
        try:
            self.w3.eth.get_transaction_receipt(tx_hash)
        except TransactionNotFound:
            pass
        else:
            logger.debug(f"Transaction {tx_hash} has been mined, no longer pending")
            return False

        try:
            self.w3.eth.get_transaction(tx_hash)
        except TransactionNotFound:
            # Dropped from the mempool or replaced at the same nonce
            logger.warning(f"Transaction {tx_hash} is no longer known to the node, allowing resubmission")
            return False
        return True

    async def submit(self, tx: TxParams) -> str:
        tx_hash = Web3.to_hex(self.w3.eth.send_transaction(tx))
        self.in_flight[tx_hash] = PendingRelayRequest.from_tx(tx)
        logger.info(f"Transaction broadcast: {tx_hash}")

        receipt: TxReceipt = self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self.receipt_timeout)
        del self.in_flight[tx_hash]

        if (status := receipt.get('status', 0)) != 1:
            raise RuntimeError(f"Transaction {tx_hash} reverted with status={status}")

        logger.info(f"Waiting for {self.confirmations} blocks of confirmation...")
        await self._wait_for_confirmations(receipt['blockNumber'])
        logger.info(f"Confirmations done for {tx_hash}")
        return tx_hash

    async def _wait_for_confirmations(self, block_number: int) -> None:
        while self.w3.eth.block_number - block_number + 1 < self.confirmations:
            await asyncio.sleep(self.CONFIRMATION_POLL_INTERVAL)
