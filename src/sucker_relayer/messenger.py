"""
Cross-chain messenger for OP Stack Bedrock withdrawals.

This module finds the messages a source chain transaction sent to L1, works out
where each one is in the prove/finalize flow, and builds the L1 transactions
that move it forward. Withdrawals are proven against outputs published to the
L2OutputOracle.
"""

import logging
from typing import Protocol

from eth_abi import encode
from web3 import Web3
from web3.logs import DISCARD
from web3.types import TxParams, TxReceipt, Wei

from .models import CrossChainMessage, SettlementStatus, WithdrawalTransaction
from .utils.contract_utility import ContractUtility

logger = logging.getLogger(__name__)

L2_CROSS_DOMAIN_MESSENGER = "0x4200000000000000000000000000000000000007"
L2_TO_L1_MESSAGE_PASSER = "0x4200000000000000000000000000000000000016"

RELAY_MESSAGE_SELECTOR = Web3.keccak(text="relayMessage(uint256,address,address,uint256,uint256,bytes)")[:4]
RELAY_MESSAGE_TYPES = ["uint256", "address", "address", "uint256", "uint256", "bytes"]

# Version field of Types.OutputRootProof
OUTPUT_ROOT_VERSION = b"\x00" * 32


class ChainMessenger(Protocol):
    """What the relayer needs from a cross-chain messaging protocol."""

    async def get_messages_by_transaction(self, tx_hash: str) -> list[CrossChainMessage]: ...

    async def get_message_status(self, message: CrossChainMessage, index: int) -> SettlementStatus: ...

    async def build_prove_transaction(self, message: CrossChainMessage, index: int) -> TxParams: ...

    async def build_finalize_transaction(self, message: CrossChainMessage, index: int) -> TxParams: ...


def encode_relay_message(message_nonce: int, sender: str, target: str, value: int, min_gas_limit: int, message: bytes) -> bytes:
    """Calldata the L1CrossDomainMessenger is called with when a message is finalized."""
    return RELAY_MESSAGE_SELECTOR + encode(
        RELAY_MESSAGE_TYPES,
        [message_nonce, Web3.to_checksum_address(sender), Web3.to_checksum_address(target), value, min_gas_limit, bytes(message)],
    )


class BedrockMessenger:
    """Handles message lookup, status and transaction building for Bedrock withdrawals."""

    def __init__(
        self,
        l1_w3: Web3,
        l2_w3: Web3,
        optimism_portal_address: str,
        l2_output_oracle_address: str,
        contract_util: ContractUtility,
        sender_address: str | None = None,
        gas_limit: int = 1_000_000,
    ):
        """
        Initialize the BedrockMessenger.

        Args:
            l1_w3: Web3 instance for the destination (L1) chain
            l2_w3: Web3 instance for the source (L2) chain
            optimism_portal_address: OptimismPortal proxy on L1
            l2_output_oracle_address: L2OutputOracle proxy on L1
            contract_util: Utility for ABI loading
            sender_address: Account built transactions are sent from (None when a relay signs)
            gas_limit: Gas limit put on built transactions
        """
        self.l1_w3 = l1_w3
        self.l2_w3 = l2_w3
        self.sender_address = sender_address
        self.gas_limit = gas_limit

        self.portal = contract_util.contract(l1_w3, "OptimismPortal", optimism_portal_address)
        self.output_oracle = contract_util.contract(l1_w3, "L2OutputOracle", l2_output_oracle_address)
        self.l2_messenger = contract_util.contract(l2_w3, "L2CrossDomainMessenger", L2_CROSS_DOMAIN_MESSENGER)
        self.message_passer = contract_util.contract(l2_w3, "L2ToL1MessagePasser", L2_TO_L1_MESSAGE_PASSER)

    def verify_chain_ids(self, l1_chain_id: int, l2_chain_id: int) -> None:
        """Make sure both RPC endpoints point at the configured chains.

        Raises:
            ValueError: If either endpoint reports a different chain ID
        """
        for name, w3, expected in (("L1", self.l1_w3, l1_chain_id), ("L2", self.l2_w3, l2_chain_id)):
            actual = int(w3.eth.chain_id)
            if actual != expected:
                raise ValueError(f"{name} RPC reports chain ID {actual}, expected {expected}")

    async def get_messages_by_transaction(self, tx_hash: str) -> list[CrossChainMessage]:
        """
        Decode every message a source chain transaction sent to L1.

        Args:
            tx_hash: Source chain transaction hash

        Returns:
            Messages in log order
        """
        receipt: TxReceipt = self.l2_w3.eth.get_transaction_receipt(tx_hash)

        messenger_address = Web3.to_checksum_address(L2_CROSS_DOMAIN_MESSENGER)
        passer_address = Web3.to_checksum_address(L2_TO_L1_MESSAGE_PASSER)

        sent = [
            event for event in self.l2_messenger.events.SentMessage().process_receipt(receipt, errors=DISCARD)
            if event['address'] == messenger_address
        ]
        values: dict[int, int] = {
            event['logIndex']: event['args']['value']
            for event in self.l2_messenger.events.SentMessageExtension1().process_receipt(receipt, errors=DISCARD)
            if event['address'] == messenger_address
        }
        passed = [
            event for event in self.message_passer.events.MessagePassed().process_receipt(receipt, errors=DISCARD)
            if event['address'] == passer_address
        ]

        messages: list[CrossChainMessage] = []
        for event in sent:
            args = event['args']
            log_index: int = event['logIndex']
            # SentMessageExtension1 is emitted right after the SentMessage it extends
            value: int = values.get(log_index + 1, 0)

            relay_calldata = encode_relay_message(
                args['messageNonce'], args['sender'], args['target'], value, args['gasLimit'], args['message']
            )
            withdrawal = self._find_withdrawal(passed, relay_calldata)
            if withdrawal is None:
                logger.warning(f"No MessagePassed log matches message at log index {log_index} in {tx_hash}")

            messages.append(CrossChainMessage(
                sender=Web3.to_checksum_address(args['sender']),
                target=Web3.to_checksum_address(args['target']),
                message=bytes(args['message']),
                value=value,
                message_nonce=args['messageNonce'],
                min_gas_limit=args['gasLimit'],
                block_number=event['blockNumber'],
                transaction_hash=Web3.to_hex(event['transactionHash']),
                log_index=log_index,
                withdrawal=withdrawal,
            ))

        logger.info(f"Found {len(messages)} messages in transaction {messages[0].transaction_hash if messages else tx_hash}")
        return messages

    def _find_withdrawal(self, passed: list, relay_calldata: bytes) -> WithdrawalTransaction | None:
        """Match a message to its MessagePassed log by content rather than position."""
        for event in passed:
            args = event['args']
            if bytes(args['data']) != relay_calldata:
                continue
            return WithdrawalTransaction(
                nonce=args['nonce'],
                sender=Web3.to_checksum_address(args['sender']),
                target=Web3.to_checksum_address(args['target']),
                value=args['value'],
                gas_limit=args['gasLimit'],
                data=bytes(args['data']),
                withdrawal_hash=bytes(args['withdrawalHash']),
            )
        return None

    @staticmethod
    def _require_withdrawal(message: CrossChainMessage) -> WithdrawalTransaction:
        if message.withdrawal is None:
            raise ValueError(f"Message {message} has no matching withdrawal")
        return message.withdrawal

    async def get_message_status(self, message: CrossChainMessage, index: int) -> SettlementStatus:
        """
        Work out where a message stands on L1.

        Args:
            message: The message to check
            index: Position of the message within its transaction

        Returns:
            Current settlement status
        """
        withdrawal = self._require_withdrawal(message)
        withdrawal_hash = withdrawal.withdrawal_hash

        if self.portal.functions.finalizedWithdrawals(withdrawal_hash).call():
            return SettlementStatus.SETTLED

        latest_output_block: int = self.output_oracle.functions.latestBlockNumber().call()
        if message.block_number > latest_output_block:
            logger.debug(f"Message {index} at block {message.block_number} is past the latest output ({latest_output_block})")
            return SettlementStatus.UNREADY

        _output_root, proven_timestamp, _output_index = self.portal.functions.provenWithdrawals(withdrawal_hash).call()
        if proven_timestamp == 0:
            return SettlementStatus.READY_TO_PROVE

        finalization_period: int = self.output_oracle.functions.FINALIZATION_PERIOD_SECONDS().call()
        latest_timestamp: int = self.l1_w3.eth.get_block('latest')['timestamp']
        if latest_timestamp - proven_timestamp > finalization_period:
            return SettlementStatus.READY_TO_RELAY

        logger.debug(
            f"Message {index} in challenge period, "
            f"{proven_timestamp + finalization_period - latest_timestamp}s remaining"
        )
        return SettlementStatus.UNREADY

    def _tx_params(self) -> TxParams:
        params: TxParams = {
            'gas': self.gas_limit,
            'value': Wei(0),
        }
        if self.sender_address:
            params['from'] = Web3.to_checksum_address(self.sender_address)
        return params

    async def build_prove_transaction(self, message: CrossChainMessage, index: int) -> TxParams:
        """
        Build the OptimismPortal call proving a withdrawal against the first output that covers it.

        Args:
            message: The message to prove
            index: Position of the message within its transaction

        Returns:
            Unsigned transaction
        """
        withdrawal = self._require_withdrawal(message)

        output_index: int = self.output_oracle.functions.getL2OutputIndexAfter(message.block_number).call()
        _output_root, _timestamp, l2_block_number = self.output_oracle.functions.getL2Output(output_index).call()
        logger.info(f"Proving message {index} against output {output_index} (L2 block {l2_block_number})")

        block = self.l2_w3.eth.get_block(l2_block_number)

        # Withdrawals are stored in the sentMessages mapping at slot 0
        storage_slot = Web3.keccak(encode(["bytes32", "uint256"], [withdrawal.withdrawal_hash, 0]))
        proof = self.l2_w3.eth.get_proof(
            Web3.to_checksum_address(L2_TO_L1_MESSAGE_PASSER),
            [Web3.to_int(storage_slot)],
            l2_block_number,
        )

        output_root_proof = (
            OUTPUT_ROOT_VERSION,
            bytes(block['stateRoot']),
            bytes(proof['storageHash']),
            bytes(block['hash']),
        )
        withdrawal_proof = [bytes(node) for node in proof['storageProof'][0]['proof']]

        return self.portal.functions.proveWithdrawalTransaction(
            withdrawal.as_tuple(),
            output_index,
            output_root_proof,
            withdrawal_proof,
        ).build_transaction(self._tx_params())

    async def build_finalize_transaction(self, message: CrossChainMessage, index: int) -> TxParams:
        """
        Build the OptimismPortal call finalizing a proven withdrawal.

        Args:
            message: The message to finalize
            index: Position of the message within its transaction

        Returns:
            Unsigned transaction
        """
        withdrawal = self._require_withdrawal(message)
        logger.info(f"Finalizing message {index} with withdrawal hash {Web3.to_hex(withdrawal.withdrawal_hash)}")
        return self.portal.functions.finalizeWithdrawalTransaction(
            withdrawal.as_tuple()
        ).build_transaction(self._tx_params())
