"""Network client boundary for snackshack-deployments."""

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

import requests
from eth_account import Account
from web3 import Web3
from web3.exceptions import TimeExhausted, Web3Exception
from web3.middleware import ExtraDataToPOAMiddleware

from .artifacts import ContractArtifact, link_bytecode
from .constants import RECEIPT_POLL_LATENCY
from .exceptions import ConfigurationError, ConfirmationTimeout, ReadError, SubmissionError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PendingTransaction:
    """A signed transaction accepted by the node but not yet confirmed."""

    transaction_hash: str
    description: str


class NetworkClient(ABC):
    """Operations the orchestrator needs from a blockchain endpoint."""

    @property
    @abstractmethod
    def account(self) -> str:
        """Address of the signing account."""

    @abstractmethod
    def deploy(
        self,
        artifact: ContractArtifact,
        args: Sequence[Any],
        libraries: Mapping[str, str],
    ) -> PendingTransaction:
        """Link, sign and submit a contract creation transaction."""

    @abstractmethod
    def send(
        self, address: str, abi: List[Dict[str, Any]], method: str, args: Sequence[Any] = ()
    ) -> PendingTransaction:
        """Sign and submit a state-mutating contract call."""

    @abstractmethod
    def call(
        self, address: str, abi: List[Dict[str, Any]], method: str, args: Sequence[Any] = ()
    ) -> Any:
        """Perform a read-only contract call."""

    @abstractmethod
    def wait_for_confirmation(self, pending: PendingTransaction, timeout: float) -> Dict[str, Any]:
        """Block until the transaction is mined; return its receipt."""


class Web3NetworkClient(NetworkClient):
    """NetworkClient backed by web3.py and a local private key."""

    def __init__(self, w3: Web3, account: Any, chain_id: Optional[int] = None):
        """
        Initialize the client.

        Args:
            w3: Connected Web3 instance
            account: eth_account LocalAccount used for signing
            chain_id: Expected chain id (read from the node if None)
        """
        self._w3 = w3
        self._account = account
        self._chain_id = chain_id

    @classmethod
    def from_rpc(
        cls,
        rpc_url: str,
        private_key: str,
        chain_id: Optional[int] = None,
        poa: bool = False,
        request_timeout: float = 60,
    ) -> "Web3NetworkClient":
        """
        Create a client for an HTTP JSON-RPC endpoint.

        Args:
            rpc_url: RPC endpoint URL
            private_key: Hex private key of the deployer
            chain_id: Expected chain id; a node on another chain is rejected
            poa: Inject the proof-of-authority extraData middleware
            request_timeout: Per-request HTTP timeout in seconds
        """
        w3 = Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": request_timeout}))
        if poa:
            w3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)
        try:
            account = Account.from_key(private_key)
        except (ValueError, TypeError) as e:
            raise ConfigurationError("Deployer private key is not a valid secp256k1 key") from e
        return cls(w3, account, chain_id=chain_id)

    @property
    def account(self) -> str:
        return self._account.address

    @property
    def chain_id(self) -> int:
        if self._chain_id is None:
            self._chain_id = self._w3.eth.chain_id
        return self._chain_id

    def check_chain(self) -> None:
        """
        Verify the node serves the expected chain.

        Raises:
            SubmissionError: If the node reports a different chain id
        """
        try:
            actual = self._w3.eth.chain_id
        except (Web3Exception, requests.RequestException) as e:
            raise SubmissionError(f"Could not reach node: {e}") from e
        if self._chain_id is not None and actual != self._chain_id:
            raise SubmissionError(f"Node is on chain {actual}, expected {self._chain_id}")
        self._chain_id = actual

    def deploy(
        self,
        artifact: ContractArtifact,
        args: Sequence[Any],
        libraries: Mapping[str, str],
    ) -> PendingTransaction:
        bytecode = link_bytecode(artifact.bytecode, artifact.link_references, libraries)
        contract = self._w3.eth.contract(abi=artifact.abi, bytecode=bytecode)
        return self._submit(
            lambda tx: contract.constructor(*args).build_transaction(tx),
            f"deploy {artifact.name}",
        )

    def send(
        self, address: str, abi: List[Dict[str, Any]], method: str, args: Sequence[Any] = ()
    ) -> PendingTransaction:
        def build(tx: Dict[str, Any]) -> Dict[str, Any]:
            contract = self._w3.eth.contract(address=Web3.to_checksum_address(address), abi=abi)
            return getattr(contract.functions, method)(*args).build_transaction(tx)

        return self._submit(build, f"{method} on {address}")

    def call(
        self, address: str, abi: List[Dict[str, Any]], method: str, args: Sequence[Any] = ()
    ) -> Any:
        try:
            contract = self._w3.eth.contract(address=Web3.to_checksum_address(address), abi=abi)
            return getattr(contract.functions, method)(*args).call()
        except (Web3Exception, ValueError, AttributeError, requests.RequestException) as e:
            raise ReadError(f"Read of {method} on {address} failed: {e}") from e

    def wait_for_confirmation(self, pending: PendingTransaction, timeout: float) -> Dict[str, Any]:
        """
        Block until the transaction is mined.

        Raises:
            ConfirmationTimeout: If no receipt appears within `timeout` seconds
            SubmissionError: If the transaction reverted or the node is unreachable
        """
        try:
            receipt = self._w3.eth.wait_for_transaction_receipt(
                pending.transaction_hash, timeout=timeout, poll_latency=RECEIPT_POLL_LATENCY
            )
        except TimeExhausted as e:
            raise ConfirmationTimeout(
                f"{pending.description} ({pending.transaction_hash}) "
                f"not confirmed within {timeout:.0f}s"
            ) from e
        except (Web3Exception, requests.RequestException) as e:
            raise SubmissionError(
                f"Lost contact with node while waiting for {pending.description}: {e}"
            ) from e

        # AttributeDict with HexBytes values -> plain JSON types
        receipt = json.loads(Web3.to_json(receipt))
        logger.debug(
            "%s confirmed in block %s (%s)",
            pending.description,
            receipt.get("blockNumber"),
            pending.transaction_hash,
        )
        if receipt.get("status") == 0:
            raise SubmissionError(
                f"{pending.description} reverted in block {receipt.get('blockNumber')} "
                f"({pending.transaction_hash})"
            )
        return receipt

    def _submit(self, build: Callable[[Dict[str, Any]], Dict[str, Any]], description: str) -> PendingTransaction:
        try:
            nonce = self._w3.eth.get_transaction_count(self.account, "pending")
            tx = build({"from": self.account, "nonce": nonce, "chainId": self.chain_id})
            signed = self._account.sign_transaction(tx)
            tx_hash = self._w3.eth.send_raw_transaction(signed.raw_transaction)
        except (Web3Exception, ValueError, AttributeError, requests.RequestException) as e:
            raise SubmissionError(f"{description} rejected: {e}") from e

        return PendingTransaction(transaction_hash=Web3.to_hex(tx_hash), description=description)
