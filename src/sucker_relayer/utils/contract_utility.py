import json
from pathlib import Path
from typing import Any

from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import Web3
from web3.contract import Contract
from web3.middleware import SignAndSendRawMiddlewareBuilder


class ContractUtility:
    """
    Loads the packaged protocol ABIs and, when given a key, a signing Web3 for L1.

    Without an RPC URL and key only ABI loading is available, which is all the
    relay mode needs since the relay signs for us.
    """

    CONTRACTS_DIR = Path(__file__).parent.parent / "contracts"

    def __init__(self, rpc_url: str = "", secret: str = ""):
        """
        Initialize the ContractUtility.

        Args:
            rpc_url: L1 RPC endpoint to broadcast on (omit for ABI-only use)
            secret: EOA private key that signs prove and finalize transactions
        """
        self.account: LocalAccount | None = None
        self.w3: Web3 | None = self._signing_web3(rpc_url, secret) if rpc_url and secret else None

    def _signing_web3(self, rpc_url: str, secret: str) -> Web3:
        account: LocalAccount = Account.from_key(secret)
        w3 = Web3(Web3.HTTPProvider(rpc_url))
        # Sign locally so send_transaction goes out as eth_sendRawTransaction
        w3.middleware_onion.inject(SignAndSendRawMiddlewareBuilder.build(account), layer=0)
        w3.eth.default_account = account.address
        self.account = account
        return w3

    def get_contract_abi(self, contract_name: str) -> list[dict[str, Any]]:
        """ABI of a protocol contract, read from contracts/<contract_name>.json."""
        with (self.CONTRACTS_DIR / f"{contract_name}.json").open() as abi_file:
            return json.load(abi_file)["abi"]

    def contract(self, w3: Web3, contract_name: str, address: str) -> Contract:
        """Bind a packaged ABI to a deployed address on the given chain."""
        return w3.eth.contract(
            address=Web3.to_checksum_address(address),
            abi=self.get_contract_abi(contract_name),
        )
