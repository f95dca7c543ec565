"""Deployment orchestration: executes a resolved plan step by step."""

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional

from web3 import Web3

from .artifacts import ArtifactStore
from .constants import ERC20_METADATA_ABI, ZERO_ADDRESS
from .exceptions import (
    ConfigurationError,
    LedgerError,
    ReadError,
    SubmissionError,
    UnlinkedLibraryError,
)
from .ledger import RunLedger
from .network import NetworkClient
from .pacing import ConfirmationGate
from .pools import PoolRegistrationSequencer
from .resolver import DeploymentPlan, PlanStep, StepKind, resolve
from .types import (
    AddressLike,
    ConfigurationCall,
    ContractSpec,
    DeployedContract,
    Deployer,
    Mode,
    Ref,
    RegisteredPool,
    Topology,
)

logger = logging.getLogger(__name__)


class RunState(Enum):
    PLANNING = "PLANNING"
    EXECUTING = "EXECUTING"
    REGISTERING_POOLS = "REGISTERING_POOLS"
    COMPLETE = "COMPLETE"
    FAILED = "FAILED"


@dataclass
class DeploymentResult:
    """Outcome of a successful run."""

    network: str
    contracts: Dict[str, DeployedContract] = field(default_factory=dict)
    pools: List[RegisteredPool] = field(default_factory=list)
    skipped_calls: List[str] = field(default_factory=list)

    def address(self, name: str) -> str:
        return self.contracts[name].address


def apply_resume_state(
    topology: Topology,
    ledger: RunLedger,
    attach: Optional[Mapping[str, str]] = None,
) -> Topology:
    """
    Bind contracts that already exist to their addresses.

    Explicit `attach` overrides and contracts recorded in the ledger become
    ATTACH_EXISTING; everything else keeps its declared mode.

    Args:
        topology: Declared topology
        ledger: Run ledger of previous runs
        attach: Contract name -> address supplied by the operator

    Returns:
        A new Topology; the input is not modified

    Raises:
        ConfigurationError: If an override names an undeclared contract or
                            disagrees with an address already known
    """
    attach = dict(attach or {})
    declared = {spec.name for spec in topology.contracts}
    for name in attach:
        if name not in declared:
            raise ConfigurationError(f"Cannot attach undeclared contract '{name}'")

    recorded = ledger.addresses(topology.network)
    contracts: List[ContractSpec] = []

    for spec in topology.contracts:
        known = [
            address
            for address in (spec.address, attach.get(spec.name), recorded.get(spec.name))
            if address is not None
        ]
        if len({address.lower() for address in known}) > 1:
            raise ConfigurationError(
                f"Conflicting addresses for '{spec.name}': {', '.join(known)}"
            )
        if known and spec.mode is Mode.DEPLOY_NEW:
            spec = spec.attach(known[0])
        contracts.append(spec)

    return replace(
        topology,
        contracts=contracts,
        calls=list(topology.calls),
        pools=list(topology.pools),
    )


class DeploymentOrchestrator:
    """
    Deploys or attaches every contract of a topology, runs its configuration
    calls and finally registers the farm pools.

    Execution is strictly sequential: each transaction goes through the
    confirmation gate and is confirmed before the next one is submitted.
    Every confirmed step is written to the run ledger, so a failed run can be
    resumed by running again with the same ledger.
    """

    def __init__(
        self,
        topology: Topology,
        client: NetworkClient,
        artifacts: ArtifactStore,
        ledger: Optional[RunLedger] = None,
        gate: Optional[ConfirmationGate] = None,
        attach: Optional[Mapping[str, str]] = None,
        timestamp_lookup: Optional[Callable[[int], int]] = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            topology: Declared protocol topology
            client: Network client for the target network
            artifacts: Compiled contract artifacts
            ledger: Run ledger (in-memory if None)
            gate: Confirmation gate (default interval if None)
            attach: Contract name -> address to attach instead of deploying
            timestamp_lookup: Block number -> timestamp, used to annotate the
                              ledger; failures are logged and ignored
        """
        self._topology = topology
        self._network = topology.network
        self._client = client
        self._artifacts = artifacts
        self._ledger = ledger if ledger is not None else RunLedger()
        self._gate = gate if gate is not None else ConfirmationGate(client)
        self._attach = dict(attach or {})
        self._timestamp_lookup = timestamp_lookup

        self._state = RunState.PLANNING
        self._step: Optional[str] = None
        self._contracts: Dict[str, DeployedContract] = {}
        self._skipped_calls: List[str] = []

    @property
    def state(self) -> RunState:
        return self._state

    @property
    def current_step(self) -> Optional[str]:
        """Description of the step being executed (or that failed)."""
        return self._step

    @property
    def contracts(self) -> Dict[str, DeployedContract]:
        """Contracts obtained so far in this run."""
        return dict(self._contracts)

    def plan(self) -> DeploymentPlan:
        """
        Resolve the topology against the ledger and operator overrides.

        Raises:
            ConfigurationError: If the topology is invalid
            LedgerError: If recorded pools disagree with the planned ones
        """
        topology = apply_resume_state(self._topology, self._ledger, self._attach)
        plan = resolve(topology)
        self._check_recorded_pools(plan)
        return plan

    def run(self) -> DeploymentResult:
        """
        Execute the whole topology.

        Returns:
            DeploymentResult with every contract and newly registered pool

        Raises:
            DeploymentError: On the first failing step; the run stops there
                             and the ledger keeps the confirmed prefix
        """
        self._state = RunState.PLANNING
        self._step = "planning"
        try:
            plan = self.plan()
        except Exception as e:
            self._fail(e)
            raise

        self._ledger.mark(RunState.EXECUTING.value)
        self._ledger.save()

        for i, step in enumerate(plan.steps):
            self._state = RunState.EXECUTING
            self._step = f"step {i + 1}/{len(plan.steps)}: {step.description}"
            try:
                self._execute(step)
            except Exception as e:
                self._fail(e)
                raise

        self._state = RunState.REGISTERING_POOLS
        self._step = "pool registration"
        try:
            pools = self._register_pools(plan)
        except Exception as e:
            self._fail(e)
            raise

        self._state = RunState.COMPLETE
        self._step = None
        self._ledger.mark(RunState.COMPLETE.value)
        self._ledger.save()
        logger.info(
            "Deployment complete: %d contracts, %d pools registered this run",
            len(self._contracts),
            len(pools),
        )

        return DeploymentResult(
            network=self._network,
            contracts=dict(self._contracts),
            pools=pools,
            skipped_calls=list(self._skipped_calls),
        )

    def _fail(self, error: Exception) -> None:
        self._state = RunState.FAILED
        self._ledger.mark(
            RunState.FAILED.value,
            error=f"{type(error).__name__}: {error}",
            step=self._step,
        )
        self._ledger.save()

    def _execute(self, step: PlanStep) -> None:
        if step.kind is StepKind.ATTACH:
            self._attach_contract(step.spec)
        elif step.kind is StepKind.DEPLOY:
            self._deploy_contract(step.spec)
        else:
            self._configure(step.call)

    # Address resolution

    def resolve_address(self, value: AddressLike) -> str:
        """
        Turn a topology address into a checksummed address.

        Raises:
            ConfigurationError: If a Ref names a contract not obtained yet
        """
        if isinstance(value, Ref):
            if value.name not in self._contracts:
                raise ConfigurationError(
                    f"'{value.name}' is referenced before it was deployed"
                )
            return self._contracts[value.name].address
        if isinstance(value, Deployer):
            return self._client.account
        if not Web3.is_address(value):
            raise ConfigurationError(f"Not an address: {value!r}")
        return Web3.to_checksum_address(value)

    def resolve_args(self, value: Any) -> Any:
        """Resolve every Ref and DEPLOYER inside a (nested) argument value."""
        if isinstance(value, (Ref, Deployer)):
            return self.resolve_address(value)
        if isinstance(value, (list, tuple)):
            return tuple(self.resolve_args(item) for item in value)
        if isinstance(value, dict):
            return {key: self.resolve_args(item) for key, item in value.items()}
        return value

    def _resolve_libraries(self, spec: ContractSpec, required: List[str]) -> Dict[str, str]:
        libraries: Dict[str, str] = {}
        for symbol, ref in spec.libraries.items():
            if ref.name not in self._contracts:
                raise UnlinkedLibraryError(
                    f"Library {symbol} of '{spec.name}' points at '{ref.name}', "
                    "which has not been deployed"
                )
            libraries[symbol] = self._contracts[ref.name].address

        missing = [symbol for symbol in required if symbol not in libraries]
        if missing:
            raise UnlinkedLibraryError(
                f"Artifact {spec.artifact} needs libraries not linked by '{spec.name}': "
                + ", ".join(missing)
            )
        return libraries

    # Steps

    def _attach_contract(self, spec: ContractSpec) -> None:
        address = self.resolve_address(spec.address)
        deployed = DeployedContract(spec=spec, address=address)
        self._contracts[spec.name] = deployed

        resumed = self._ledger.has_contract(spec.name, self._network)
        self._ledger.record_contract(deployed, self._network)
        self._ledger.save()
        if resumed:
            logger.info("%s: %s (from ledger)", spec.display_name, address)
        else:
            logger.info("%s: %s (attached)", spec.display_name, address)

    def _deploy_contract(self, spec: ContractSpec) -> None:
        artifact = self._artifacts.get(spec.artifact)
        libraries = self._resolve_libraries(spec, artifact.link_symbols())
        args = self.resolve_args(spec.args)

        receipt = self._gate.transact(
            lambda: self._client.deploy(artifact, args, libraries),
            f"deploy {spec.name}",
        )
        address = receipt.get("contractAddress")
        if not address:
            raise SubmissionError(
                f"Deployment of '{spec.name}' confirmed without a contract address "
                f"({receipt.get('transactionHash')})"
            )

        deployed = DeployedContract(
            spec=spec, address=Web3.to_checksum_address(address), receipt=receipt
        )
        self._contracts[spec.name] = deployed
        self._ledger.record_contract(
            deployed, self._network, timestamp=self._block_timestamp(receipt)
        )
        self._ledger.save()
        logger.info("%s: %s", spec.display_name, deployed.address)

    def _configure(self, call: ConfigurationCall) -> None:
        description = call.label or call.key
        if self._ledger.has_call(call.key, self._network):
            self._skipped_calls.append(call.key)
            logger.info("%s (already done, skipped)", description)
            return

        target = self._contracts[call.target.name]
        abi = self._artifacts.get(target.spec.artifact).abi
        args = self.resolve_args(call.args)

        receipt = self._gate.transact(
            lambda: self._client.send(target.address, abi, call.method, args),
            call.key,
        )
        self._ledger.record_call(call.key, receipt, self._network)
        self._ledger.save()

        self._gate.settle()
        logger.info("%s: %s", description, self._token_name(target))

    def _register_pools(self, plan: DeploymentPlan) -> List[RegisteredPool]:
        farm = self._contracts[plan.farm]
        farm_abi = self._artifacts.get(farm.spec.artifact).abi

        sequencer = PoolRegistrationSequencer(
            self._client,
            self._gate,
            self.resolve_address,
            on_registered=self._record_pool,
        )

        recorded = self._ledger.pools(self._network)
        for pid, entry in enumerate(recorded):
            _, _, lp_token, secondary, controller = sequencer.registration_args(plan.pools[pid])
            planned = {"lp_token": lp_token, "secondary_reward": secondary, "controller": controller}
            for key, address in planned.items():
                if (entry.get(key) or ZERO_ADDRESS).lower() != address.lower():
                    raise LedgerError(
                        f"Recorded pool {pid} has {key} {entry.get(key)}, planned {address}; "
                        "pool indices cannot be reassigned"
                    )

        start = len(recorded)
        if start:
            logger.info("Pools 0-%d already registered, resuming at pid %d", start - 1, start)

        return sequencer.register(farm.address, farm_abi, plan.pools[start:], start_index=start)

    def _record_pool(self, pool: RegisteredPool) -> None:
        self._ledger.record_pool(pool, self._network)
        self._ledger.save()

    def _check_recorded_pools(self, plan: DeploymentPlan) -> None:
        recorded = self._ledger.pools(self._network)
        if len(recorded) > len(plan.pools):
            raise LedgerError(
                f"Ledger records {len(recorded)} pools but only {len(plan.pools)} are planned"
            )
        for pid, entry in enumerate(recorded):
            planned = plan.pools[pid]
            if entry["weight"] != planned.weight or entry["farm_type"] != planned.farm_type.name:
                raise LedgerError(
                    f"Recorded pool {pid} (weight {entry['weight']}, {entry['farm_type']}) "
                    f"does not match the planned entry (weight {planned.weight}, "
                    f"{planned.farm_type.name})"
                )

    # Informational reads

    def _token_name(self, contract: DeployedContract) -> str:
        try:
            return self._client.call(contract.address, ERC20_METADATA_ABI, "name")
        except ReadError as e:
            logger.warning("Could not read name of %s: %s", contract.name, e)
            return contract.address

    def _block_timestamp(self, receipt: Dict[str, Any]) -> Optional[int]:
        block = receipt.get("blockNumber")
        if self._timestamp_lookup is None or block is None:
            return None
        try:
            return self._timestamp_lookup(block)
        except ReadError as e:
            logger.warning("Could not fetch timestamp of block %s: %s", block, e)
            return None
