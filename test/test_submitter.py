"""Unit tests for the relay and direct transaction submitters."""

import pytest
from unittest.mock import AsyncMock, MagicMock, PropertyMock, patch
from web3 import Web3
from web3.exceptions import TimeExhausted, TransactionNotFound

from sucker_relayer.models import PendingRelayRequest
from sucker_relayer.submitter import DirectSubmitter, RelaySubmitter

PORTAL = Web3.to_checksum_address("0x" + "a1" * 20)
TX_HASH = b"\x42" * 32


@pytest.fixture
def tx_params():
    return {
        'from': Web3.to_checksum_address("0x" + "99" * 20),
        'to': PORTAL,
        'data': "0x8c3152e9" + "cd" * 32,
        'gas': 1_000_000,
        'value': 0,
    }


@pytest.fixture
def mock_w3():
    """Web3 mock whose transactions are mined at block 100."""
    mock = MagicMock()
    mock.eth.send_transaction = MagicMock(return_value=TX_HASH)
    mock.eth.wait_for_transaction_receipt = MagicMock(return_value={'status': 1, 'blockNumber': 100})
    mock.eth.block_number = 102
    return mock


class TestRelaySubmitter:
    """Tests for RelaySubmitter."""

    @pytest.mark.asyncio
    async def test_delegates_to_relay(self, tx_params):
        relay_util = AsyncMock()
        relay_util.list_pending_transactions = AsyncMock(return_value=[PendingRelayRequest(PORTAL, "0x01")])
        relay_util.submit_tx = AsyncMock(return_value="relay-tx-9")
        submitter = RelaySubmitter(relay_util)

        assert await submitter.pending_requests() == [PendingRelayRequest(PORTAL, "0x01")]
        assert await submitter.submit(tx_params) == "relay-tx-9"
        relay_util.submit_tx.assert_awaited_once_with(tx_params)


class TestDirectSubmitter:
    """Tests for DirectSubmitter."""

    @pytest.mark.asyncio
    async def test_submit_returns_hash_after_confirmations(self, mock_w3, tx_params):
        submitter = DirectSubmitter(mock_w3, confirmations=3)

        tx_hash = await submitter.submit(tx_params)

        assert tx_hash == Web3.to_hex(TX_HASH)
        mock_w3.eth.send_transaction.assert_called_once_with(tx_params)
        assert submitter.in_flight == {}

    @pytest.mark.asyncio
    async def test_waits_until_enough_confirmations(self, mock_w3, tx_params):
        type(mock_w3.eth).block_number = PropertyMock(side_effect=[100, 101, 102])
        submitter = DirectSubmitter(mock_w3, confirmations=3)

        with patch("sucker_relayer.submitter.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            await submitter.submit(tx_params)

        assert mock_sleep.await_count == 2

    @pytest.mark.asyncio
    async def test_reverted_transaction_raises(self, mock_w3, tx_params):
        mock_w3.eth.wait_for_transaction_receipt.return_value = {'status': 0, 'blockNumber': 100}
        submitter = DirectSubmitter(mock_w3)

        with pytest.raises(RuntimeError, match="reverted"):
            await submitter.submit(tx_params)

        assert submitter.in_flight == {}

    @pytest.mark.asyncio
    async def test_unmined_transaction_stays_pending(self, mock_w3, tx_params):
        """A broadcast whose receipt never arrived is reported as pending."""
        mock_w3.eth.wait_for_transaction_receipt.side_effect = TimeExhausted("not mined")
        mock_w3.eth.get_transaction_receipt = MagicMock(side_effect=TransactionNotFound("unknown"))
        mock_w3.eth.get_transaction = MagicMock(return_value={'hash': TX_HASH, 'blockNumber': None})
        submitter = DirectSubmitter(mock_w3)

        with pytest.raises(TimeExhausted):
            await submitter.submit(tx_params)

        pending = await submitter.pending_requests()
        assert len(pending) == 1
        assert pending[0].matches(PendingRelayRequest.from_tx(tx_params))
        mock_w3.eth.get_transaction.assert_called_with(Web3.to_hex(TX_HASH))

    @pytest.mark.asyncio
    async def test_dropped_transaction_can_be_resent(self, mock_w3, tx_params):
        """A broadcast the node has forgotten no longer blocks a new submission."""
        mock_w3.eth.wait_for_transaction_receipt.side_effect = TimeExhausted("not mined")
        mock_w3.eth.get_transaction_receipt = MagicMock(side_effect=TransactionNotFound("unknown"))
        mock_w3.eth.get_transaction = MagicMock(side_effect=TransactionNotFound("unknown"))
        submitter = DirectSubmitter(mock_w3)

        with pytest.raises(TimeExhausted):
            await submitter.submit(tx_params)

        assert await submitter.pending_requests() == []
        assert submitter.in_flight == {}

    @pytest.mark.asyncio
    async def test_mined_transaction_leaves_pending(self, mock_w3, tx_params):
        mock_w3.eth.wait_for_transaction_receipt.side_effect = TimeExhausted("not mined")
        submitter = DirectSubmitter(mock_w3)
        with pytest.raises(TimeExhausted):
            await submitter.submit(tx_params)

        mock_w3.eth.get_transaction_receipt = MagicMock(return_value={'status': 1, 'blockNumber': 101})

        assert await submitter.pending_requests() == []
        assert submitter.in_flight == {}
