"""
Action execution for the Sucker Relayer.

This module decides which L1 action a classified message needs and performs it,
checking the submitter's pending queue first so the same request is never sent
twice while an earlier copy is still waiting to be mined.
"""

import logging
from typing import TYPE_CHECKING

from web3.types import TxParams

from .models import (
    ActionKind,
    ActionOutcome,
    CrossChainMessage,
    MessagePriority,
    PendingRelayRequest,
    SettlementStatus,
)

if TYPE_CHECKING:
    from .messenger import ChainMessenger
    from .submitter import TransactionSubmitter

logger = logging.getLogger(__name__)

ACTIONS_BY_STATUS: dict[SettlementStatus, ActionKind] = {
    SettlementStatus.READY_TO_PROVE: ActionKind.PROVE,
    SettlementStatus.READY_TO_RELAY: ActionKind.FINALIZE,
}


class ActionExecutor:
    """Performs the prove or finalize step a message is ready for."""

    def __init__(self, messenger: "ChainMessenger", submitter: "TransactionSubmitter") -> None:
        """
        Initialize the ActionExecutor.

        Args:
            messenger: Builds prove and finalize transactions
            submitter: Sends transactions and reports what is still pending
        """
        self.messenger = messenger
        self.submitter = submitter

    @staticmethod
    def decide(priority: MessagePriority, status: SettlementStatus) -> ActionKind | None:
        """Action for a priority and status, or None when there is nothing to do."""
        if priority is MessagePriority.IGNORE:
            return None
        return ACTIONS_BY_STATUS.get(status)

    async def act(
        self,
        message: CrossChainMessage,
        index: int,
        priority: MessagePriority,
        status: SettlementStatus,
    ) -> ActionOutcome:
        """
        Move a message one step forward if it is ready.

        Args:
            message: The message to act on
            index: Position of the message within its transaction
            priority: Classification of the message
            status: Current settlement status

        Returns:
            SKIPPED, ALREADY_PENDING or SUBMITTED

        Raises:
            Exception: Whatever building or submitting the transaction raised
        """
        action = self.decide(priority, status)
        if action is None:
            return ActionOutcome.skipped()

        logger.info(f"{action.value.capitalize()} {priority.value} from block {message.block_number}")

        match action:
            case ActionKind.PROVE:
                tx = await self.messenger.build_prove_transaction(message, index)
            case ActionKind.FINALIZE:
                tx = await self.messenger.build_finalize_transaction(message, index)

        if await self._is_pending(tx):
            logger.info(f"Identical {action.value} transaction already pending for {message.transaction_hash}, not resending")
            return ActionOutcome.already_pending(action)

        reference = await self.submitter.submit(tx)
        logger.info(f"Submitted {action.value} transaction for {message.transaction_hash}: {reference}")
        return ActionOutcome.submitted(action, reference)

    async def _is_pending(self, tx: TxParams) -> bool:
        request = PendingRelayRequest.from_tx(tx)
        pending = await self.submitter.pending_requests()
        return any(entry.matches(request) for entry in pending)
