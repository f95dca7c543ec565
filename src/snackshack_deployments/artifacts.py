"""Hardhat artifact parsing and library linking for snackshack-deployments."""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

from web3 import Web3

from .exceptions import ArtifactNotFoundError, ConfigurationError, UnlinkedLibraryError


@dataclass
class ContractArtifact:
    """Compiled contract as emitted by hardhat."""

    name: str  # e.g. "SnackShack"
    abi: List[Dict[str, Any]]
    bytecode: str  # Creation bytecode, possibly with link placeholders
    # source file -> library name -> list of {"start": int, "length": int}
    link_references: Dict[str, Dict[str, List[Dict[str, int]]]] = field(default_factory=dict)
    source_name: Optional[str] = None

    def link_symbols(self) -> List[str]:
        """Fully qualified library symbols this bytecode must be linked against."""
        return [
            f"{source}:{library}"
            for source, libraries in self.link_references.items()
            for library in libraries
        ]


def parse_artifact(file_path: Path) -> ContractArtifact:
    """
    Parse a hardhat artifact JSON file.

    Args:
        file_path: Path to artifacts/contracts/<Source>.sol/<Name>.json

    Returns:
        ContractArtifact with abi, bytecode and link references

    Raises:
        ConfigurationError: If the file has no creation bytecode
    """
    with open(file_path) as f:
        data = json.load(f)

    bytecode = data.get("bytecode")
    if not bytecode or bytecode == "0x":
        raise ConfigurationError(f"Artifact has no creation bytecode: {file_path}")

    return ContractArtifact(
        name=data.get("contractName", file_path.stem),
        abi=data["abi"],
        bytecode=bytecode,
        link_references=data.get("linkReferences", {}),
        source_name=data.get("sourceName"),
    )


def link_bytecode(
    bytecode: str,
    link_references: Mapping[str, Mapping[str, List[Dict[str, int]]]],
    libraries: Mapping[str, str],
) -> str:
    """
    Substitute library addresses into creation bytecode.

    Offsets in link references are byte offsets into the bytecode without its
    0x prefix; each placeholder is 20 bytes long.

    Args:
        bytecode: Hex creation bytecode
        link_references: Hardhat linkReferences of the artifact
        libraries: Fully qualified link symbol -> library address

    Returns:
        Linked bytecode, same length as the input

    Raises:
        UnlinkedLibraryError: If a referenced library has no address
        ConfigurationError: If a library address is malformed
    """
    prefix = "0x" if bytecode.startswith("0x") else ""
    body = bytecode[len(prefix):]

    for source, refs in link_references.items():
        for library, offsets in refs.items():
            symbol = f"{source}:{library}"
            if symbol not in libraries:
                raise UnlinkedLibraryError(f"No address supplied for library {symbol}")

            address = libraries[symbol]
            if not Web3.is_address(address):
                raise ConfigurationError(f"Invalid address for library {symbol}: {address}")
            address_hex = address[2:] if address.startswith("0x") else address

            for offset in offsets:
                start = offset["start"] * 2
                length = offset["length"] * 2
                if length != len(address_hex):
                    raise ConfigurationError(
                        f"Link reference for {symbol} is {offset['length']} bytes, expected 20"
                    )
                body = body[:start] + address_hex.lower() + body[start + length:]

    # Placeholders of libraries missing from linkReferences
    if "__$" in body:
        raise UnlinkedLibraryError("Bytecode still contains unresolved library placeholders")

    return prefix + body


class ArtifactStore:
    """Looks up compiled artifacts under a hardhat artifacts directory."""

    def __init__(self, artifacts_dir: Union[Path, str]):
        self._root = Path(artifacts_dir)
        self._cache: Dict[str, ContractArtifact] = {}

    @property
    def root(self) -> Path:
        return self._root

    def get(self, name: str) -> ContractArtifact:
        """
        Get the artifact for a contract name.

        Args:
            name: Contract name, e.g. "SnackShack"

        Returns:
            Parsed ContractArtifact

        Raises:
            ArtifactNotFoundError: If no artifact (or more than one) matches
        """
        if name not in self._cache:
            self._cache[name] = parse_artifact(self._find(name))
        return self._cache[name]

    def _find(self, name: str) -> Path:
        if not self._root.exists():
            raise ArtifactNotFoundError(
                f"Artifacts directory not found at {self._root}. "
                "Run `npx hardhat compile` first."
            )

        matches = sorted(
            p for p in self._root.rglob(f"{name}.json") if p.parent.name.endswith(".sol")
        )
        if not matches:
            raise ArtifactNotFoundError(f"Artifact for contract '{name}' not found in {self._root}")
        if len(matches) > 1:
            raise ArtifactNotFoundError(
                f"Artifact for contract '{name}' is ambiguous: "
                + ", ".join(str(p.relative_to(self._root)) for p in matches)
            )
        return matches[0]
