"""Persistent run ledger for resumable deployments."""

import json
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .constants import NETWORK_CONFIG
from .exceptions import LedgerError
from .types import DeployedContract, RegisteredPool


class RunLedger:
    """
    Records every confirmed step of a deployment run.

    The ledger is keyed by network. Contracts and configuration calls are
    recorded once and never changed; pools are an append-only list whose
    positions are the farm pool indices.
    """

    def __init__(self, ledger_path: Optional[Union[Path, str]] = None):
        """
        Initialize the ledger.

        Args:
            ledger_path: Path to ledger.json. A missing file starts an empty
                         ledger; None keeps the ledger in memory only.

        Raises:
            LedgerError: If the file exists but is not a valid ledger
        """
        self._path = Path(ledger_path) if ledger_path is not None else None
        self._data: Dict[str, Any] = {"metadata": {}, "networks": {}}

        if self._path is not None and self._path.exists():
            try:
                with open(self._path) as f:
                    data = json.load(f)
            except json.JSONDecodeError as e:
                raise LedgerError(f"Ledger at {self._path} is not valid JSON: {e}") from e
            if not isinstance(data, dict) or not isinstance(data.get("networks"), dict):
                raise LedgerError(f"Ledger at {self._path} has no 'networks' section")
            data.setdefault("metadata", {})
            self._data = data

    @property
    def path(self) -> Optional[Path]:
        return self._path

    def save(self) -> None:
        """Write the ledger to disk, replacing the previous file atomically."""
        if self._path is None:
            return
        self._data["metadata"]["updated_at"] = datetime.now(timezone.utc).strftime(
            "%Y-%m-%d %H:%M:%S UTC"
        )
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        with open(tmp_path, "w") as f:
            json.dump(self._data, f, indent=2)
        os.replace(tmp_path, self._path)

    def metadata(self) -> Dict[str, Any]:
        """
        Get ledger metadata (last update, run state, last error).

        Returns:
            Metadata dictionary
        """
        return self._data["metadata"]

    def mark(self, state: str, error: Optional[str] = None, step: Optional[str] = None) -> None:
        """Record the run state; `error` and `step` describe a failure."""
        self._data["metadata"]["state"] = state
        self._data["metadata"]["error"] = error
        self._data["metadata"]["failed_step"] = step

    def has_network(self, network: str) -> bool:
        return network in self._data["networks"]

    def _network(self, network: str) -> Dict[str, Any]:
        if network not in self._data["networks"]:
            config = NETWORK_CONFIG.get(network, {})
            self._data["networks"][network] = {
                "chain_id": config.get("chain_id"),
                "chain_name": config.get("chain_name"),
                "contracts": {},
                "calls": {},
                "pools": [],
            }
        return self._data["networks"][network]

    def _existing(self, network: str) -> Dict[str, Any]:
        return self._data["networks"].get(network, {})

    # Contracts

    def has_contract(self, name: str, network: str = "mainnet") -> bool:
        return name in self._existing(network).get("contracts", {})

    def contract(self, name: str, network: str = "mainnet") -> Dict[str, Any]:
        """
        Get the recorded entry of a contract.

        Raises:
            LedgerError: If the contract is not recorded
        """
        contracts = self._existing(network).get("contracts", {})
        if name not in contracts:
            raise LedgerError(f"Contract '{name}' not recorded for network '{network}'")
        return contracts[name]

    def addresses(self, network: str = "mainnet") -> Dict[str, str]:
        """Contract name -> address for every recorded contract."""
        contracts = self._existing(network).get("contracts", {})
        return {name: entry["address"] for name, entry in contracts.items()}

    def record_contract(
        self,
        deployed: DeployedContract,
        network: str = "mainnet",
        timestamp: Optional[int] = None,
    ) -> None:
        """
        Record a confirmed deployment or attachment.

        Re-recording the same address is a no-op; a different address is an
        error since recorded entries are immutable.

        Raises:
            LedgerError: If the name is already recorded with another address
        """
        contracts = self._network(network)["contracts"]
        existing = contracts.get(deployed.name)
        if existing is not None:
            if existing["address"].lower() != deployed.address.lower():
                raise LedgerError(
                    f"Contract '{deployed.name}' already recorded at {existing['address']}, "
                    f"refusing to overwrite with {deployed.address}"
                )
            return

        entry: Dict[str, Any] = {
            "address": deployed.address,
            "artifact": deployed.spec.artifact,
            "status": "attached" if deployed.attached else "deployed",
        }
        explorer = NETWORK_CONFIG.get(network, {}).get("block_explorer_url")
        if explorer:
            entry["url"] = f"{explorer}/address/{deployed.address}"

        if deployed.receipt is not None:
            entry["transaction_hash"] = deployed.receipt.get("transactionHash")
            entry["block"] = deployed.receipt.get("blockNumber")
        if timestamp is not None:
            entry["timestamp"] = timestamp

        contracts[deployed.name] = entry

    # Configuration calls

    def has_call(self, key: str, network: str = "mainnet") -> bool:
        return key in self._existing(network).get("calls", {})

    def record_call(self, key: str, receipt: Dict[str, Any], network: str = "mainnet") -> None:
        calls = self._network(network)["calls"]
        if key in calls:
            raise LedgerError(f"Call '{key}' already recorded for network '{network}'")
        calls[key] = {
            "transaction_hash": receipt.get("transactionHash"),
            "block": receipt.get("blockNumber"),
        }

    # Pools

    def pools(self, network: str = "mainnet") -> List[Dict[str, Any]]:
        """Recorded farm entries in pool index order."""
        return list(self._existing(network).get("pools", []))

    def record_pool(self, pool: RegisteredPool, network: str = "mainnet") -> None:
        """
        Append a confirmed pool registration.

        Raises:
            LedgerError: If `pool.pid` is not the next index
        """
        pools = self._network(network)["pools"]
        if pool.pid != len(pools):
            raise LedgerError(
                f"Pool index {pool.pid} recorded out of order, expected {len(pools)}"
            )
        pools.append(
            {
                "pid": pool.pid,
                "lp_token": pool.lp_token,
                "weight": pool.entry.weight,
                "farm_type": pool.entry.farm_type.name,
                "secondary_reward": pool.secondary_reward,
                "controller": pool.controller,
                "transaction_hash": pool.transaction_hash,
            }
        )
