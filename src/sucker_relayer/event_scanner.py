"""
Backward log scanner for sucker withdrawal events.

Walks the source chain from the current head back over a fixed lookback window
in pages, yielding the hashes of transactions that emitted withdrawal events.
"""

import logging
from collections.abc import AsyncIterator, Iterable, Iterator, Mapping
from typing import Any

from web3 import Web3

from .models import ScanWindow

logger = logging.getLogger(__name__)

SUCKING_TO_REMOTE_EVENT = "SuckingToRemote(address,uint64)"


def scan_windows(head: int, lookback_blocks: int, page_size: int) -> Iterator[ScanWindow]:
    """
    Pages covering [head - lookback_blocks, head], newest first.

    Consecutive pages share their boundary block. Nothing below the lookback
    floor (or block 0) is ever included.

    Args:
        head: Block to start from
        lookback_blocks: How far back to go
        page_size: Blocks per page

    Yields:
        ScanWindow for each page
    """
    oldest_block = max(head - lookback_blocks, 0)
    upper = head
    while upper >= oldest_block:
        from_block = max(upper - page_size, oldest_block)
        yield ScanWindow(from_block=from_block, to_block=upper)
        if from_block == oldest_block:
            break
        upper -= page_size


def _tx_hash_of(log: Mapping[str, Any]) -> str | None:
    match log.get('transactionHash'):
        case bytes() as tx_hash_bytes:
            return Web3.to_hex(tx_hash_bytes)
        case str() as tx_hash:
            return tx_hash
        case _:
            logger.warning(f"Log without usable transaction hash: {log}")
            return None


def coalesce_transaction_hashes(
    logs: Iterable[Mapping[str, Any]],
    last_tx_hash: str | None,
) -> tuple[list[str], str | None]:
    """
    Collapse runs of logs from the same transaction into one hash.

    Only the immediately previous hash is compared, so a transaction whose logs
    are not adjacent is emitted once per run.

    Args:
        logs: Logs in scan order
        last_tx_hash: Hash of the last log seen before these

    Returns:
        New hashes in order, and the hash of the last log seen
    """
    hashes: list[str] = []
    for log in logs:
        tx_hash = _tx_hash_of(log)
        if tx_hash is None or tx_hash == last_tx_hash:
            continue
        last_tx_hash = tx_hash
        hashes.append(tx_hash)
    return hashes, last_tx_hash


class EventScanner:
    """
    Scans a contract's recent history for one event via eth_getLogs.
    """

    def __init__(
        self,
        w3: Web3,
        contract_address: str,
        lookback_blocks: int = 10_000,
        page_size: int = 100,
        event_signature: str = SUCKING_TO_REMOTE_EVENT,
    ):
        """
        Initialize the event scanner.

        Args:
            w3: Web3 instance for the chain to scan
            contract_address: Address of the contract emitting the event
            lookback_blocks: Number of blocks to look back from the head
            page_size: Blocks per eth_getLogs call
            event_signature: Canonical event signature, e.g. "Transfer(address,address,uint256)"
        """
        self.w3 = w3
        self.contract_address = Web3.to_checksum_address(contract_address)
        self.lookback_blocks = lookback_blocks
        self.page_size = page_size
        self.event_signature = event_signature
        self.event_topic = Web3.to_hex(Web3.keccak(text=event_signature))

    async def scan(self) -> AsyncIterator[str]:
        """
        Yield hashes of transactions that emitted the event, newest page first.

        State lives only for the duration of one scan.
        """
        head = self.w3.eth.block_number
        last_tx_hash: str | None = None

        for window in scan_windows(head, self.lookback_blocks, self.page_size):
            logger.debug(f"Looking in blocks {window.from_block} - {window.to_block}")
            logs = self.w3.eth.get_logs({
                'address': self.contract_address,
                'topics': [self.event_topic],
                'fromBlock': window.from_block,
                'toBlock': window.to_block,
            })

            hashes, last_tx_hash = coalesce_transaction_hashes(logs, last_tx_hash)
            if hashes:
                logger.info(
                    f"Found {len(hashes)} {self.event_signature.split('(')[0]} transactions "
                    f"in blocks {window.from_block}-{window.to_block}"
                )
            for tx_hash in hashes:
                yield tx_hash
