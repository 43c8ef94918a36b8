"""
Message classification for the sucker bridge pair.

Decides whether a cross-chain message belongs to this bridge and how important
it is. Classification is pure: it only looks at the message and the configured
addresses.
"""

import logging

from eth_abi import decode
from eth_abi.exceptions import DecodingError
from web3 import Web3

from .models import CrossChainMessage, MessagePriority

logger = logging.getLogger(__name__)

# finalizeBridgeERC20(localToken, remoteToken, from, to, amount, extraData)
FINALIZE_BRIDGE_ERC20_TYPES = ["address", "address", "address", "address", "uint256", "bytes"]
RECIPIENT_FIELD = 3


def _decode_bridge_recipient(payload: bytes) -> str | None:
    """Return the recipient of a finalizeBridgeERC20 call, or None if the payload has another shape."""
    try:
        decoded = decode(FINALIZE_BRIDGE_ERC20_TYPES, bytes(payload[4:]))
    except (DecodingError, ValueError, TypeError) as e:
        logger.debug(f"Payload is not a finalizeBridgeERC20 call: {e}")
        return None
    return Web3.to_checksum_address(decoded[RECIPIENT_FIELD])


def classify(
    message: CrossChainMessage,
    local_bridge_address: str,
    remote_bridge_address: str,
    standard_bridge_address: str,
) -> MessagePriority:
    """
    Classify a cross-chain message for the configured bridge pair.

    Args:
        message: The decoded cross-chain message
        local_bridge_address: Sucker on the destination (L1) chain
        remote_bridge_address: Sucker on the source (L2) chain
        standard_bridge_address: Standard token bridge on the destination chain

    Returns:
        VALUE_MESSAGE for token transfers to the local sucker and value-carrying
        sucker messages, INFORMATIONAL_MESSAGE for zero-value sucker messages,
        IGNORE for everything else
    """
    local_bridge = Web3.to_checksum_address(local_bridge_address)
    remote_bridge = Web3.to_checksum_address(remote_bridge_address)
    standard_bridge = Web3.to_checksum_address(standard_bridge_address)

    sender = Web3.to_checksum_address(message.sender)
    target = Web3.to_checksum_address(message.target)

    # ERC20 sent to the local sucker through the standard bridge.
    # A matching target does not guarantee the payload shape, so a failed decode is just no match.
    if target == standard_bridge:
        if _decode_bridge_recipient(message.message) == local_bridge:
            return MessagePriority.VALUE_MESSAGE

    # Sucker to sucker. Zero value means a root update, not a transfer.
    if sender == remote_bridge and target == local_bridge:
        return MessagePriority.VALUE_MESSAGE if message.value != 0 else MessagePriority.INFORMATIONAL_MESSAGE

    return MessagePriority.IGNORE


class MessageClassifier:
    """Classifier bound to one configured bridge pair."""

    def __init__(self, local_bridge_address: str, remote_bridge_address: str, standard_bridge_address: str):
        self.local_bridge_address = Web3.to_checksum_address(local_bridge_address)
        self.remote_bridge_address = Web3.to_checksum_address(remote_bridge_address)
        self.standard_bridge_address = Web3.to_checksum_address(standard_bridge_address)

    def classify(self, message: CrossChainMessage) -> MessagePriority:
        return classify(
            message,
            self.local_bridge_address,
            self.remote_bridge_address,
            self.standard_bridge_address,
        )
