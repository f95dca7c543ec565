"""Shared pytest fixtures for snackshack-deployments tests."""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Set

import pytest
from web3 import Web3

from snackshack_deployments.artifacts import ArtifactStore, ContractArtifact
from snackshack_deployments.exceptions import ConfirmationTimeout, ReadError, SubmissionError
from snackshack_deployments.ledger import RunLedger
from snackshack_deployments.network import NetworkClient, PendingTransaction
from snackshack_deployments.pacing import ConfirmationGate
from snackshack_deployments.types import (
    ContractSpec,
    FarmType,
    PoolRegistration,
    Ref,
    Topology,
)

DEPLOYER_ADDRESS = Web3.to_checksum_address("0x" + "de" * 20)


class FakeNetworkClient(NetworkClient):
    """
    In-memory chain for orchestrator tests.

    Every submission gets the next transaction number n (1-based); deployed
    contracts get deterministic addresses derived from n. Failures can be
    injected by transaction number.
    """

    def __init__(
        self,
        timeout_on: Optional[int] = None,
        reject_on: Optional[int] = None,
        failing_reads: Optional[Set[str]] = None,
    ):
        self.timeout_on = timeout_on
        self.reject_on = reject_on
        self.failing_reads = failing_reads or set()
        self.events: List[tuple] = []
        self.farm_pools: Dict[str, List[tuple]] = {}
        self.names: Dict[str, str] = {}
        self._submissions = 0
        self._pending: Dict[str, Dict[str, Any]] = {}

    @property
    def account(self) -> str:
        return DEPLOYER_ADDRESS

    def check_chain(self) -> None:
        pass

    @property
    def submissions(self) -> int:
        return self._submissions

    def writes(self) -> List[tuple]:
        return [e for e in self.events if e[0] in ("deploy", "send")]

    def deployed_artifacts(self) -> List[str]:
        return [e[1] for e in self.events if e[0] == "deploy"]

    def _next(self, description: str) -> int:
        self._submissions += 1
        if self.reject_on == self._submissions:
            raise SubmissionError(f"{description} rejected: insufficient funds")
        return self._submissions

    def deploy(
        self,
        artifact: ContractArtifact,
        args: Sequence[Any],
        libraries: Dict[str, str],
    ) -> PendingTransaction:
        n = self._next(f"deploy {artifact.name}")
        address = Web3.to_checksum_address(f"0x{0x1000 + n:040x}")
        tx_hash = f"0x{n:064x}"
        self.events.append(("deploy", artifact.name, tuple(args), dict(libraries)))
        self.names[address] = f"{artifact.name} #{n}"
        self._pending[tx_hash] = {
            "transactionHash": tx_hash,
            "blockNumber": 100 + n,
            "contractAddress": address,
            "status": 1,
        }
        return PendingTransaction(tx_hash, f"deploy {artifact.name}")

    def send(self, address, abi, method, args=()) -> PendingTransaction:
        n = self._next(f"{method} on {address}")
        tx_hash = f"0x{n:064x}"
        self.events.append(("send", address, method, tuple(args)))
        if method == "add":
            self.farm_pools.setdefault(address, []).append(tuple(args))
        self._pending[tx_hash] = {
            "transactionHash": tx_hash,
            "blockNumber": 100 + n,
            "contractAddress": None,
            "status": 1,
        }
        return PendingTransaction(tx_hash, f"{method} on {address}")

    def call(self, address, abi, method, args=()) -> Any:
        self.events.append(("call", address, method, tuple(args)))
        if method in self.failing_reads:
            raise ReadError(f"Read of {method} on {address} failed: execution reverted")
        if method == "poolLength":
            return len(self.farm_pools.get(address, []))
        if method == "name":
            return self.names.get(address, "Unknown")
        raise ReadError(f"Unsupported read {method}")

    def wait_for_confirmation(self, pending: PendingTransaction, timeout: float) -> Dict[str, Any]:
        self.events.append(("wait", pending.transaction_hash))
        if self.timeout_on is not None and int(pending.transaction_hash, 16) == self.timeout_on:
            raise ConfirmationTimeout(f"{pending.description} not confirmed within {timeout:.0f}s")
        return self._pending.pop(pending.transaction_hash)


@pytest.fixture
def fixtures_dir() -> Path:
    """Return the path to the fixtures directory."""
    return Path(__file__).parent / "fixtures"


@pytest.fixture
def artifacts_dir(fixtures_dir: Path) -> Path:
    """Hardhat artifacts of every contract used in tests."""
    return fixtures_dir / "artifacts"


@pytest.fixture
def artifact_store(artifacts_dir: Path) -> ArtifactStore:
    return ArtifactStore(artifacts_dir)


@pytest.fixture
def sample_ledger_json(fixtures_dir: Path) -> Dict[str, Any]:
    """Load and return the sample ledger.json fixture."""
    with open(fixtures_dir / "sample_ledger.json") as f:
        return json.load(f)


@pytest.fixture
def temp_ledger(tmp_path: Path, sample_ledger_json: Dict[str, Any]) -> Path:
    """Create a temporary ledger.json file with sample data."""
    ledger_path = tmp_path / ".snackshack-deployments" / "ledger.json"
    ledger_path.parent.mkdir(parents=True)
    with open(ledger_path, "w") as f:
        json.dump(sample_ledger_json, f, indent=2)
    return ledger_path


@pytest.fixture
def fake_client() -> FakeNetworkClient:
    return FakeNetworkClient()


@pytest.fixture
def make_client():
    """Factory for fake clients with injected failures."""
    return FakeNetworkClient


@pytest.fixture
def no_wait_gate():
    """Factory for confirmation gates that never sleep."""

    def factory(client: NetworkClient) -> ConfirmationGate:
        return ConfirmationGate(client, interval=0, timeout=5, sleep=lambda _: None)

    return factory


@pytest.fixture
def ledger_path(tmp_path: Path) -> Path:
    return tmp_path / "ledger.json"


@pytest.fixture
def small_topology() -> Topology:
    """TokenA, TokenB, Farm(TokenA), ControllerX(Farm) and one pool of TokenB."""
    return Topology(
        network="rinkeby",
        contracts=[
            ContractSpec(name="TokenA", artifact="MockERC20", args=("Token A", "A")),
            ContractSpec(name="TokenB", artifact="MockERC20", args=("Token B", "B")),
            ContractSpec(name="Farm", artifact="TestFarm", args=(Ref("TokenA"),)),
            ContractSpec(name="ControllerX", artifact="TestController", args=(Ref("Farm"),)),
        ],
        farm="Farm",
        pools=[
            PoolRegistration(1000, FarmType.STANDARD, Ref("TokenB"), Ref("ControllerX")),
        ],
    )


@pytest.fixture
def six_step_topology() -> Topology:
    """Six contracts deployed one after another, no pools."""
    names = ["One", "Two", "Three", "Four", "Five", "Six"]
    return Topology(
        network="rinkeby",
        contracts=[
            ContractSpec(name=name, artifact="MockERC20", args=(name, name.upper()))
            for name in names[:-1]
        ]
        + [ContractSpec(name="Six", artifact="TestFarm", args=(Ref("One"),))],
        farm="Six",
    )


@pytest.fixture
def in_memory_ledger() -> RunLedger:
    return RunLedger()
