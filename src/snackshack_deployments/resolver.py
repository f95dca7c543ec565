"""Dependency resolution: topology validation and execution ordering."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from .exceptions import ConfigurationError
from .types import ConfigurationCall, ContractSpec, Mode, PoolRegistration, Ref, Topology


class StepKind(Enum):
    DEPLOY = "deploy"
    ATTACH = "attach"
    CALL = "call"


@dataclass(frozen=True)
class PlanStep:
    """One unit of execution: a contract to obtain or a call to make."""

    kind: StepKind
    spec: Optional[ContractSpec] = None
    call: Optional[ConfigurationCall] = None

    @property
    def description(self) -> str:
        if self.call is not None:
            return self.call.label or self.call.key
        return f"{self.kind.value} {self.spec.name}"


@dataclass
class DeploymentPlan:
    """Resolved, validated execution order for one topology."""

    network: str
    farm: str
    steps: List[PlanStep] = field(default_factory=list)
    pools: List[PoolRegistration] = field(default_factory=list)

    def contract_steps(self) -> List[PlanStep]:
        return [s for s in self.steps if s.kind is not StepKind.CALL]


def _check_declared(ref: Ref, positions: Dict[str, int], owner: str) -> int:
    if ref.name not in positions:
        raise ConfigurationError(f"{owner} references undeclared contract '{ref.name}'")
    return positions[ref.name]


def resolve(topology: Topology) -> DeploymentPlan:
    """
    Validate a topology and order its steps.

    Contracts keep their declared order, which must already be a valid
    topological order: every reference in a contract's constructor arguments
    or library links must name a contract declared before it. Each
    configuration call is scheduled right after the last contract it
    references.

    Args:
        topology: Protocol topology for one environment

    Returns:
        DeploymentPlan ready for execution

    Raises:
        ConfigurationError: On duplicate names, undeclared references,
                            forward references or an undeclared farm
    """
    positions: Dict[str, int] = {}
    for i, spec in enumerate(topology.contracts):
        if spec.name in positions:
            raise ConfigurationError(f"Contract '{spec.name}' is declared more than once")
        positions[spec.name] = i

    for i, spec in enumerate(topology.contracts):
        for symbol, ref in spec.libraries.items():
            if not isinstance(ref, Ref):
                raise ConfigurationError(
                    f"Library link {symbol} of '{spec.name}' must reference a declared contract"
                )
        for ref in spec.dependencies():
            position = _check_declared(ref, positions, f"Contract '{spec.name}'")
            if position >= i:
                raise ConfigurationError(
                    f"Contract '{spec.name}' references '{ref.name}', "
                    "which is not declared before it"
                )

    if topology.farm not in positions:
        raise ConfigurationError(f"Farm contract '{topology.farm}' is not declared")

    # Bucket calls by the position after which all their references exist
    calls_after: Dict[int, List[ConfigurationCall]] = {}
    for call in topology.calls:
        ready = max(
            _check_declared(ref, positions, f"Call '{call.key}'") for ref in call.dependencies()
        )
        calls_after.setdefault(ready, []).append(call)

    for pid, entry in enumerate(topology.pools):
        for ref in entry.dependencies():
            _check_declared(ref, positions, f"Pool {pid}")

    steps: List[PlanStep] = []
    for i, spec in enumerate(topology.contracts):
        kind = StepKind.ATTACH if spec.mode is Mode.ATTACH_EXISTING else StepKind.DEPLOY
        steps.append(PlanStep(kind=kind, spec=spec))
        for call in calls_after.get(i, []):
            steps.append(PlanStep(kind=StepKind.CALL, call=call))

    return DeploymentPlan(
        network=topology.network,
        farm=topology.farm,
        steps=steps,
        pools=list(topology.pools),
    )
