"""Custom exception classes for snackshack-deployments."""


class DeploymentError(Exception):
    """Base exception for deployment-related errors."""

    pass


class ConfigurationError(DeploymentError, ValueError):
    """Raised when the topology references an undeclared or later-ordered contract."""

    pass


class UnlinkedLibraryError(ConfigurationError):
    """Raised when a bytecode library link cannot be resolved to a deployed address."""

    pass


class SubmissionError(DeploymentError, RuntimeError):
    """Raised when the network rejects or reverts a transaction."""

    pass


class ConfirmationTimeout(DeploymentError, TimeoutError):
    """Raised when a submitted transaction is not confirmed in time."""

    pass


class ReadError(DeploymentError, RuntimeError):
    """Raised when an informational read-only call fails."""

    pass


class ArtifactNotFoundError(DeploymentError, FileNotFoundError):
    """Raised when a compiled contract artifact is not found."""

    pass


class NetworkNotFoundError(DeploymentError, ValueError):
    """Raised when the requested network has no configuration or topology."""

    pass


class LedgerError(DeploymentError, ValueError):
    """Raised when the run ledger is corrupt or disagrees with the plan."""

    pass
