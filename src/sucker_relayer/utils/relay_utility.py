import json
import logging
from typing import Any

import httpx
from web3 import Web3
from web3.types import TxParams

from ..models import PendingRelayRequest

logger = logging.getLogger(__name__)


class RelayError(Exception):
    """Raised when the relay service returns something we cannot use."""


class RelayPausedError(RelayError):
    """Raised when the relay service reports itself as paused."""


class RelayUtility:
    """Utility for interacting with a transaction relay service.

    The relay queues, signs and broadcasts transactions on our behalf and
    exposes its pending queue so we can avoid sending the same request twice.
    """

    REQUEST_TIMEOUT: float = 30.0

    def __init__(self, url: str, api_key: str | None = None) -> None:
        """Initialize relay utility.

        Args:
            url: Base URL of the relay API, or a unix socket path
            api_key: Optional API key sent in the X-Api-Key header
        """
        self.url: str = url.rstrip('/')
        self.api_key: str | None = api_key

    async def _relay_request(self, method: str, path: str, payload: Any = None, params: dict[str, str] | None = None) -> Any:
        """Send a request to the relay API.

        Args:
            method: HTTP method
            path: API endpoint path
            payload: JSON payload to send
            params: Query string parameters

        Returns:
            JSON response from the relay

        Raises:
            httpx.HTTPStatusError: If the request fails
        """
        transport: httpx.AsyncHTTPTransport | None = None
        if not self.url.startswith('http'):
            transport = httpx.AsyncHTTPTransport(uds=self.url)
            logger.debug(f"Using unix domain socket: {self.url}")

        headers: dict[str, str] = {"X-Api-Key": self.api_key} if self.api_key else {}

        async with httpx.AsyncClient(transport=transport) as client:
            base_url: str = self.url if self.url.startswith('http') else "http://localhost"
            full_url: str = base_url + path
            logger.debug(f"{method} {full_url}: {json.dumps(payload) if payload is not None else ''}")
            response: httpx.Response = await client.request(
                method,
                full_url,
                json=payload,
                params=params,
                headers=headers,
                timeout=self.REQUEST_TIMEOUT,
            )
            response.raise_for_status()
            return response.json()

    async def get_status(self) -> dict[str, Any]:
        """Fetch the relay's own status.

        Returns:
            Status document, always containing a boolean "paused" key

        Raises:
            RelayError: If the response has no paused flag
        """
        response: Any = await self._relay_request("GET", "/relayer")
        match response:
            case {"paused": bool()}:
                return response
            case _:
                raise RelayError(f"Unexpected relay status response: {response}")

    async def ensure_not_paused(self) -> None:
        """Raise RelayPausedError if the relay refuses to send transactions."""
        status = await self.get_status()
        if status["paused"]:
            raise RelayPausedError("Relay is paused, refusing to start")
        logger.info(f"Relay ready (address: {status.get('address', 'unknown')})")

    async def list_pending_transactions(self) -> list[PendingRelayRequest]:
        """Snapshot of the relay's pending queue.

        Entries without a destination, such as contract deployments, can never
        match a call we build and are left out.
        """
        response: Any = await self._relay_request("GET", "/txs", params={"status": "pending"})
        if not isinstance(response, list):
            raise RelayError(f"Unexpected pending transactions response: {response}")

        pending: list[PendingRelayRequest] = []
        for entry in response:
            match entry:
                case {"to": str() as to, "data": str() as data} if to:
                    pending.append(PendingRelayRequest(to=to, data=data))
                case {"to": str() as to} if to:
                    pending.append(PendingRelayRequest(to=to, data="0x"))
                case _:
                    logger.debug(f"Ignoring pending entry without destination: {entry}")
        logger.debug(f"Relay has {len(pending)} pending transactions")
        return pending

    async def submit_tx(self, tx: TxParams) -> str:
        """
        Submit a transaction to the relay.

        Args:
            tx: Transaction parameters

        Returns:
            Relay transaction id

        Raises:
            RelayError: If the relay does not acknowledge the transaction
        """
        data = tx.get("data", "0x")
        payload: dict[str, Any] = {
            "to": Web3.to_checksum_address(tx["to"]),
            "data": Web3.to_hex(data) if isinstance(data, (bytes, bytearray)) else data,
            "value": int(tx.get("value", 0)),
            "gasLimit": int(tx["gas"]),
        }

        response: Any = await self._relay_request("POST", "/txs", payload=payload)
        logger.debug(f"Relay raw response: {response}")

        match response:
            case {"transactionId": str() as transaction_id}:
                logger.info(f"Transaction accepted by relay: {transaction_id}")
                return transaction_id
            case {"error": error_msg}:
                logger.error(f"Relay transaction failed: {error_msg}")
                raise RelayError(f"Relay transaction failed: {error_msg}")
            case _:
                raise RelayError(f"Unknown relay response format: {response}")
