"""Unit tests for the ActionExecutor decision table and pending-queue check."""

import pytest
from unittest.mock import AsyncMock
from web3 import Web3

from sucker_relayer.action_executor import ActionExecutor
from sucker_relayer.models import (
    ActionKind,
    CrossChainMessage,
    MessagePriority,
    OutcomeKind,
    PendingRelayRequest,
    SettlementStatus,
)

PORTAL = Web3.to_checksum_address("0x" + "a1" * 20)
PROVE_DATA = "0x4870496f" + "ab" * 64
FINALIZE_DATA = "0x8c3152e9" + "cd" * 64


@pytest.fixture
def message():
    return CrossChainMessage(
        sender="0x" + "22" * 20,
        target="0x" + "11" * 20,
        message=b"\x01",
        value=5,
        message_nonce=1,
        min_gas_limit=200_000,
        block_number=1234,
        transaction_hash="0x" + "ab" * 32,
        log_index=3,
    )


@pytest.fixture
def mock_messenger():
    """Messenger that builds fixed prove and finalize transactions."""
    mock = AsyncMock()
    mock.build_prove_transaction = AsyncMock(return_value={
        'to': PORTAL, 'data': PROVE_DATA, 'gas': 1_000_000, 'value': 0
    })
    mock.build_finalize_transaction = AsyncMock(return_value={
        'to': PORTAL, 'data': FINALIZE_DATA, 'gas': 1_000_000, 'value': 0
    })
    return mock


@pytest.fixture
def mock_submitter():
    mock = AsyncMock()
    mock.pending_requests = AsyncMock(return_value=[])
    mock.submit = AsyncMock(return_value="relay-tx-1")
    return mock


@pytest.fixture
def executor(mock_messenger, mock_submitter):
    return ActionExecutor(mock_messenger, mock_submitter)


class TestDecisionTable:
    """Tests for ActionExecutor.decide."""

    @pytest.mark.parametrize("status", list(SettlementStatus))
    def test_ignore_never_acts(self, status):
        assert ActionExecutor.decide(MessagePriority.IGNORE, status) is None

    @pytest.mark.parametrize("priority", [MessagePriority.VALUE_MESSAGE, MessagePriority.INFORMATIONAL_MESSAGE])
    @pytest.mark.parametrize("status,expected", [
        (SettlementStatus.UNREADY, None),
        (SettlementStatus.READY_TO_PROVE, ActionKind.PROVE),
        (SettlementStatus.READY_TO_RELAY, ActionKind.FINALIZE),
        (SettlementStatus.SETTLED, None),
    ])
    def test_relevant_messages(self, priority, status, expected):
        assert ActionExecutor.decide(priority, status) is expected


class TestAct:
    """Tests for ActionExecutor.act."""

    @pytest.mark.asyncio
    async def test_ignore_builds_nothing(self, executor, message, mock_messenger, mock_submitter):
        outcome = await executor.act(message, 0, MessagePriority.IGNORE, SettlementStatus.READY_TO_PROVE)

        assert outcome.kind is OutcomeKind.SKIPPED
        mock_messenger.build_prove_transaction.assert_not_called()
        mock_submitter.pending_requests.assert_not_called()
        mock_submitter.submit.assert_not_called()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [SettlementStatus.UNREADY, SettlementStatus.SETTLED])
    async def test_not_ready_is_skipped(self, executor, message, mock_submitter, status):
        outcome = await executor.act(message, 0, MessagePriority.VALUE_MESSAGE, status)

        assert outcome.kind is OutcomeKind.SKIPPED
        mock_submitter.submit.assert_not_called()

    @pytest.mark.asyncio
    async def test_prove_submitted(self, executor, message, mock_messenger, mock_submitter):
        outcome = await executor.act(message, 2, MessagePriority.VALUE_MESSAGE, SettlementStatus.READY_TO_PROVE)

        assert outcome.kind is OutcomeKind.SUBMITTED
        assert outcome.action is ActionKind.PROVE
        assert outcome.reference == "relay-tx-1"
        mock_messenger.build_prove_transaction.assert_awaited_once_with(message, 2)
        mock_submitter.submit.assert_awaited_once()
        assert mock_submitter.submit.call_args[0][0]['data'] == PROVE_DATA

    @pytest.mark.asyncio
    async def test_finalize_submitted(self, executor, message, mock_messenger, mock_submitter):
        outcome = await executor.act(
            message, 0, MessagePriority.INFORMATIONAL_MESSAGE, SettlementStatus.READY_TO_RELAY
        )

        assert outcome.kind is OutcomeKind.SUBMITTED
        assert outcome.action is ActionKind.FINALIZE
        mock_messenger.build_finalize_transaction.assert_awaited_once_with(message, 0)
        mock_messenger.build_prove_transaction.assert_not_called()

    @pytest.mark.asyncio
    async def test_identical_pending_request_not_resent(self, executor, message, mock_submitter):
        """Same destination and calldata already queued means nothing is sent."""
        mock_submitter.pending_requests.return_value = [
            PendingRelayRequest(to=PORTAL.lower(), data=FINALIZE_DATA.upper().replace("0X", "0x")),
        ]

        outcome = await executor.act(message, 0, MessagePriority.VALUE_MESSAGE, SettlementStatus.READY_TO_RELAY)

        assert outcome.kind is OutcomeKind.ALREADY_PENDING
        assert outcome.action is ActionKind.FINALIZE
        mock_submitter.submit.assert_not_called()

    @pytest.mark.asyncio
    async def test_different_calldata_is_submitted(self, executor, message, mock_submitter):
        mock_submitter.pending_requests.return_value = [
            PendingRelayRequest(to=PORTAL, data=PROVE_DATA),
        ]

        outcome = await executor.act(message, 0, MessagePriority.VALUE_MESSAGE, SettlementStatus.READY_TO_RELAY)

        assert outcome.kind is OutcomeKind.SUBMITTED
        mock_submitter.submit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_different_destination_is_submitted(self, executor, message, mock_submitter):
        mock_submitter.pending_requests.return_value = [
            PendingRelayRequest(to="0x" + "b2" * 20, data=FINALIZE_DATA),
        ]

        outcome = await executor.act(message, 0, MessagePriority.VALUE_MESSAGE, SettlementStatus.READY_TO_RELAY)

        assert outcome.kind is OutcomeKind.SUBMITTED

    @pytest.mark.asyncio
    async def test_bytes_calldata_compared_as_hex(self, executor, message, mock_messenger, mock_submitter):
        mock_messenger.build_prove_transaction.return_value = {
            'to': PORTAL, 'data': Web3.to_bytes(hexstr=PROVE_DATA), 'gas': 1_000_000, 'value': 0
        }
        mock_submitter.pending_requests.return_value = [PendingRelayRequest(to=PORTAL, data=PROVE_DATA)]

        outcome = await executor.act(message, 0, MessagePriority.VALUE_MESSAGE, SettlementStatus.READY_TO_PROVE)

        assert outcome.kind is OutcomeKind.ALREADY_PENDING

    @pytest.mark.asyncio
    async def test_build_failure_propagates(self, executor, message, mock_messenger, mock_submitter):
        mock_messenger.build_prove_transaction.side_effect = RuntimeError("rpc down")

        with pytest.raises(RuntimeError, match="rpc down"):
            await executor.act(message, 0, MessagePriority.VALUE_MESSAGE, SettlementStatus.READY_TO_PROVE)

        mock_submitter.submit.assert_not_called()
