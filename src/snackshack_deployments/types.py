"""Data types and dataclasses for snackshack-deployments."""

from dataclasses import dataclass, field, replace
from enum import Enum, IntEnum
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

from .exceptions import ConfigurationError


class Mode(Enum):
    """How a contract instance is obtained."""

    DEPLOY_NEW = "deploy"
    ATTACH_EXISTING = "attach"


class FarmType(IntEnum):
    """Farm entry behavior, as encoded by the farm contract."""

    STANDARD = 0
    SCALED = 1


class PoolType(IntEnum):
    """Bonding-curve pool type of a liquidity pool token."""

    TOKEN = 0
    NFT = 1
    TRADE = 2


@dataclass(frozen=True)
class Ref:
    """Address of another contract in the topology, resolved at execution time."""

    name: str

    def __str__(self) -> str:
        return f"<{self.name}>"


@dataclass(frozen=True)
class Deployer:
    """Address of the signing account."""

    def __str__(self) -> str:
        return "<deployer>"


DEPLOYER = Deployer()

# A topology address: a reference, the deployer, or a literal address
AddressLike = Union[Ref, Deployer, str]


def iter_refs(value: Any) -> Iterator[Ref]:
    """Yield every Ref found in a (possibly nested) argument value."""
    if isinstance(value, Ref):
        yield value
    elif isinstance(value, (list, tuple)):
        for item in value:
            yield from iter_refs(item)
    elif isinstance(value, dict):
        for item in value.values():
            yield from iter_refs(item)


@dataclass(frozen=True)
class ContractSpec:
    """Static description of one contract instance in the topology."""

    name: str  # Unique within the topology, e.g. "SnackShack"
    artifact: str  # Hardhat contract name, e.g. "SnackShack"
    args: Tuple[Any, ...] = ()
    libraries: Dict[str, Ref] = field(default_factory=dict)  # link symbol -> library
    mode: Mode = Mode.DEPLOY_NEW
    address: Optional[str] = None  # Present iff ATTACH_EXISTING
    label: Optional[str] = None  # Human readable name for progress lines

    def __post_init__(self):
        if self.mode is Mode.ATTACH_EXISTING and not self.address:
            raise ConfigurationError(
                f"Contract '{self.name}' is ATTACH_EXISTING but has no address"
            )
        if self.mode is Mode.DEPLOY_NEW and self.address is not None:
            raise ConfigurationError(
                f"Contract '{self.name}' is DEPLOY_NEW but carries address {self.address}"
            )

    @property
    def display_name(self) -> str:
        return self.label or self.name

    def dependencies(self) -> List[Ref]:
        """References in constructor arguments and library links, in order."""
        refs = list(iter_refs(self.args))
        refs.extend(self.libraries.values())
        return refs

    def attach(self, address: str) -> "ContractSpec":
        """Return a copy of this spec bound to an existing address."""
        return replace(self, mode=Mode.ATTACH_EXISTING, address=address)


@dataclass(frozen=True)
class DeployedContract:
    """A contract whose deployment (or attachment) has been confirmed."""

    spec: ContractSpec
    address: str
    receipt: Optional[Dict[str, Any]] = None  # None for attached contracts

    @property
    def name(self) -> str:
        return self.spec.name

    @property
    def attached(self) -> bool:
        return self.receipt is None


@dataclass(frozen=True)
class ConfigurationCall:
    """A state-mutating call performed once its referenced contracts exist."""

    target: Ref
    method: str
    args: Tuple[Any, ...] = ()
    label: Optional[str] = None

    @property
    def key(self) -> str:
        """Identity of this call in the run ledger."""
        return f"{self.target.name}.{self.method}"

    def dependencies(self) -> List[Ref]:
        return [self.target, *iter_refs(self.args)]


@dataclass(frozen=True)
class PoolRegistration:
    """One farm entry; its position in the registration list is its pool index."""

    weight: int  # Allocation points
    farm_type: FarmType
    lp_token: AddressLike
    controller: AddressLike
    secondary_reward: Optional[AddressLike] = None
    label: Optional[str] = None  # Appended to the progress line, e.g. "BUY"

    def __post_init__(self):
        if self.weight < 0:
            raise ConfigurationError(f"Pool weight must be non-negative, got {self.weight}")

    def dependencies(self) -> List[Ref]:
        return list(iter_refs((self.lp_token, self.controller, self.secondary_reward)))


@dataclass(frozen=True)
class ControllerConfig:
    """Constructor parameters of a scaled-reward controller."""

    farm: AddressLike
    pool: AddressLike
    fee: int  # 1e18 fixed point, 0.06 ether == 6%
    delta: int
    spot_price: int
    delta_per_liquidity: int

    def __post_init__(self):
        if self.fee < 0:
            raise ConfigurationError(f"Controller fee must be non-negative, got {self.fee}")

    def constructor_args(self) -> Tuple[Any, ...]:
        return (
            self.farm,
            self.pool,
            self.fee,
            self.delta,
            self.spot_price,
            self.delta_per_liquidity,
        )


@dataclass(frozen=True)
class LiquidityPoolParams:
    """Constructor struct of a liquidity pool token."""

    nft: AddressLike
    factory: AddressLike
    curve: AddressLike
    pool_type: PoolType
    spot_price: int
    allow_fractional: bool = True

    def as_struct(self) -> Tuple[Any, ...]:
        return (
            self.nft,
            self.factory,
            self.curve,
            int(self.pool_type),
            self.spot_price,
            self.allow_fractional,
        )


@dataclass
class Topology:
    """The fixed protocol topology of one environment."""

    network: str
    contracts: List[ContractSpec]
    farm: str  # Name of the farm contract spec
    calls: List[ConfigurationCall] = field(default_factory=list)
    pools: List[PoolRegistration] = field(default_factory=list)

    def contract(self, name: str) -> ContractSpec:
        for spec in self.contracts:
            if spec.name == name:
                return spec
        raise ConfigurationError(f"Contract '{name}' is not declared in the topology")


@dataclass
class RegisteredPool:
    """A farm entry whose registration has been confirmed."""

    pid: int
    entry: PoolRegistration
    lp_token: str
    controller: str
    secondary_reward: str
    transaction_hash: Optional[str] = None
