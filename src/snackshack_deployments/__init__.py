"""
snackshack-deployments: ordered, resumable deployment of the Snack Shack farm contracts
"""

from importlib.metadata import PackageNotFoundError, version

from .exceptions import (
    ArtifactNotFoundError,
    ConfigurationError,
    ConfirmationTimeout,
    DeploymentError,
    LedgerError,
    NetworkNotFoundError,
    ReadError,
    SubmissionError,
    UnlinkedLibraryError,
)
from .ledger import RunLedger
from .orchestrator import DeploymentOrchestrator, DeploymentResult, RunState
from .registry import get_topology
from .resolver import DeploymentPlan, resolve
from .types import (
    DEPLOYER,
    ConfigurationCall,
    ContractSpec,
    ControllerConfig,
    DeployedContract,
    FarmType,
    Mode,
    PoolRegistration,
    Ref,
    Topology,
)

try:
    __version__ = version("snackshack-deployments")
except PackageNotFoundError:
    __version__ = None

__all__ = [
    "DeploymentOrchestrator",
    "DeploymentResult",
    "DeploymentPlan",
    "RunLedger",
    "RunState",
    "get_topology",
    "resolve",
    "ContractSpec",
    "ControllerConfig",
    "ConfigurationCall",
    "DeployedContract",
    "PoolRegistration",
    "Topology",
    "FarmType",
    "Mode",
    "Ref",
    "DEPLOYER",
    "DeploymentError",
    "ConfigurationError",
    "UnlinkedLibraryError",
    "SubmissionError",
    "ConfirmationTimeout",
    "ReadError",
    "ArtifactNotFoundError",
    "NetworkNotFoundError",
    "LedgerError",
]
