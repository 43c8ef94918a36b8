"""
Shared data models for the Sucker Relayer.

This module contains data classes and enums used across the relayer components.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any

from web3 import Web3


class MessagePriority(Enum):
    """How much a cross-chain message matters to this bridge pair."""
    IGNORE = "ignore"
    INFORMATIONAL_MESSAGE = "informational-message"
    VALUE_MESSAGE = "value-message"


class SettlementStatus(Enum):
    """Where a withdrawal stands in the prove/finalize flow on L1."""
    UNREADY = "unready"
    READY_TO_PROVE = "ready-to-prove"
    READY_TO_RELAY = "ready-to-relay"
    SETTLED = "settled"


class ActionKind(Enum):
    PROVE = "prove"
    FINALIZE = "finalize"


class OutcomeKind(Enum):
    SKIPPED = "skipped"
    SUBMITTED = "submitted"
    ALREADY_PENDING = "already-pending"


@dataclass(frozen=True, slots=True)
class WithdrawalTransaction:
    """Low-level L2 to L1 withdrawal as recorded by the L2ToL1MessagePasser.

    Attributes:
        nonce: Message passer nonce (versioned)
        sender: L2 address that initiated the withdrawal
        target: L1 address that will be called on finalization
        value: Wei sent along with the call
        gas_limit: Minimum gas to forward on finalization
        data: Calldata for the L1 call
        withdrawal_hash: Hash the OptimismPortal tracks the withdrawal under
    """
    nonce: int
    sender: str
    target: str
    value: int
    gas_limit: int
    data: bytes
    withdrawal_hash: bytes

    def as_tuple(self) -> tuple[int, str, str, int, int, bytes]:
        """ABI tuple for OptimismPortal's Types.WithdrawalTransaction."""
        return (
            self.nonce,
            self.sender,
            self.target,
            self.value,
            self.gas_limit,
            self.data,
        )


@dataclass(frozen=True, slots=True)
class CrossChainMessage:
    """A message sent through the L2CrossDomainMessenger.

    Attributes:
        sender: L2 address that sent the message
        target: L1 address the message is addressed to
        message: Calldata delivered to the target
        value: Wei carried by the message
        message_nonce: Versioned messenger nonce
        min_gas_limit: Gas limit requested by the sender
        block_number: L2 block the message was sent in
        transaction_hash: L2 transaction that sent the message
        log_index: Index of the SentMessage log in the block
        withdrawal: Withdrawal carrying this message, if it was found
    """
    sender: str
    target: str
    message: bytes
    value: int
    message_nonce: int
    min_gas_limit: int
    block_number: int
    transaction_hash: str
    log_index: int
    withdrawal: WithdrawalTransaction | None = None

    def __str__(self) -> str:
        return (
            f"CrossChainMessage(tx={self.transaction_hash[:10]}..., "
            f"block={self.block_number}, "
            f"sender={self.sender[:8]}..., "
            f"target={self.target[:8]}..., "
            f"value={self.value})"
        )

    @property
    def unique_key(self) -> tuple[str, int]:
        """Identity of the message within its source transaction."""
        return (self.transaction_hash, self.log_index)


@dataclass(frozen=True, slots=True)
class PendingRelayRequest:
    """Destination and calldata of a transaction waiting to be mined."""
    to: str
    data: str

    @classmethod
    def from_tx(cls, tx: Any) -> "PendingRelayRequest":
        """Build the request a transaction would show up as in a pending queue."""
        data = tx.get("data") or "0x"
        if isinstance(data, (bytes, bytearray)):
            data = Web3.to_hex(data)
        return cls(to=tx["to"], data=data)

    def matches(self, other: "PendingRelayRequest") -> bool:
        """Exact match on destination and calldata, ignoring hex letter case."""
        if not Web3.is_address(self.to) or not Web3.is_address(other.to):
            return False
        return (
            Web3.to_checksum_address(self.to) == Web3.to_checksum_address(other.to)
            and _normalize_hex(self.data) == _normalize_hex(other.data)
        )


def _normalize_hex(data: str) -> str:
    data = data.lower()
    return data if data.startswith("0x") else "0x" + data


@dataclass(frozen=True, slots=True)
class ScanWindow:
    """Inclusive block range queried in one eth_getLogs call."""
    from_block: int
    to_block: int


@dataclass(frozen=True, slots=True)
class ActionOutcome:
    """Result of evaluating one message.

    Attributes:
        kind: What happened
        action: Prove or finalize, when a transaction was built
        reference: Relay transaction id or L1 transaction hash when submitted
    """
    kind: OutcomeKind
    action: ActionKind | None = None
    reference: str | None = None

    @classmethod
    def skipped(cls) -> "ActionOutcome":
        return cls(OutcomeKind.SKIPPED)

    @classmethod
    def submitted(cls, action: ActionKind, reference: str) -> "ActionOutcome":
        return cls(OutcomeKind.SUBMITTED, action, reference)

    @classmethod
    def already_pending(cls, action: ActionKind) -> "ActionOutcome":
        return cls(OutcomeKind.ALREADY_PENDING, action)
