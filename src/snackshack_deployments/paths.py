"""Path management utilities for snackshack-deployments."""

from pathlib import Path
from typing import Optional, Union


def get_default_ledger_dir() -> Path:
    """
    Get default ledger directory (current working directory).

    Returns:
        Path to ./.snackshack-deployments
    """
    return Path.cwd() / ".snackshack-deployments"


def get_ledger_path(ledger_root: Optional[Union[Path, str]] = None) -> Path:
    """
    Get run ledger file path.

    Args:
        ledger_root: Custom ledger directory (defaults to ./.snackshack-deployments)

    Returns:
        Path to ledger.json
    """
    if ledger_root is None:
        ledger_root = get_default_ledger_dir()
    else:
        ledger_root = Path(ledger_root).absolute()

    return ledger_root / "ledger.json"


def get_default_artifacts_dir() -> Path:
    """Hardhat compilation output of the current project."""
    return Path.cwd() / "artifacts"
