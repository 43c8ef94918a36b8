import logging
from typing import TYPE_CHECKING

from .models import CrossChainMessage, SettlementStatus

if TYPE_CHECKING:
    from .messenger import ChainMessenger

logger = logging.getLogger(__name__)


class StatusResolver:
    """Looks up the settlement status of a message.

    Nothing is cached: status depends on L1 state and the challenge period clock,
    both of which move between calls.
    """

    def __init__(self, messenger: "ChainMessenger") -> None:
        self.messenger = messenger

    async def resolve_status(self, message: CrossChainMessage, index: int) -> SettlementStatus:
        status = await self.messenger.get_message_status(message, index)
        logger.debug(f"Message {index} of {message.transaction_hash[:10]}... is {status.value}")
        return status
