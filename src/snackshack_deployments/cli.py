"""Command line entry point: `snackshack-deploy --network rinkeby`."""

import argparse
import logging
import os
import sys
from typing import Dict, List, Optional

from dotenv import load_dotenv

from .artifacts import ArtifactStore
from .constants import DEFAULT_QUIESCENCE_INTERVAL, NETWORK_CONFIG
from .exceptions import ConfigurationError, DeploymentError, NetworkNotFoundError
from .ledger import RunLedger
from .network import Web3NetworkClient
from .orchestrator import DeploymentOrchestrator, apply_resume_state
from .pacing import ConfirmationGate
from .paths import get_default_artifacts_dir, get_ledger_path
from .registry import TOPOLOGIES, get_topology
from .resolver import resolve
from .timestamps import make_timestamp_lookup

logger = logging.getLogger("snackshack_deployments")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="snackshack-deploy",
        description="Deploy and configure the Snack Shack farm contracts.",
    )
    parser.add_argument("--network", required=True, choices=sorted(TOPOLOGIES))
    parser.add_argument("--rpc-url", help="JSON-RPC endpoint (default: from environment)")
    parser.add_argument(
        "--artifacts",
        default=None,
        help="Hardhat artifacts directory (default: ./artifacts)",
    )
    parser.add_argument(
        "--ledger",
        default=None,
        help="Run ledger file (default: ./.snackshack-deployments/ledger.json)",
    )
    parser.add_argument(
        "--attach",
        action="append",
        default=[],
        metavar="NAME=ADDRESS",
        help="Use an existing contract instead of deploying it (repeatable)",
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=DEFAULT_QUIESCENCE_INTERVAL,
        help="Seconds to wait between confirmed transactions (default: %(default)s)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Seconds to wait for each confirmation (default: per network)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the resolved plan without sending transactions",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def parse_attach(values: List[str]) -> Dict[str, str]:
    """
    Parse repeated NAME=ADDRESS options.

    Raises:
        ConfigurationError: If an option is malformed or repeats a name
    """
    attach: Dict[str, str] = {}
    for value in values:
        name, sep, address = value.partition("=")
        name, address = name.strip(), address.strip()
        if not sep or not name or not address:
            raise ConfigurationError(f"Expected NAME=ADDRESS, got '{value}'")
        if name in attach:
            raise ConfigurationError(f"Contract '{name}' attached more than once")
        attach[name] = address
    return attach


def get_rpc_url(network: str, rpc_url: Optional[str] = None) -> str:
    """
    Determine the RPC endpoint for a network.

    Order: explicit argument, network-specific environment variable, Alchemy
    URL built from $API_KEY_ALCHEMY.

    Raises:
        NetworkNotFoundError: If the network is not configured
        ConfigurationError: If no endpoint can be determined
    """
    if network not in NETWORK_CONFIG:
        raise NetworkNotFoundError(f"Network '{network}' is not configured")
    config = NETWORK_CONFIG[network]

    if rpc_url:
        return rpc_url
    if os.environ.get(config["default_rpc_env"]):
        return os.environ[config["default_rpc_env"]]
    if os.environ.get("API_KEY_ALCHEMY"):
        return config["alchemy_url"].format(api_key=os.environ["API_KEY_ALCHEMY"])

    raise ConfigurationError(
        f"RPC URL required: set ${config['default_rpc_env']} or $API_KEY_ALCHEMY, "
        "or pass --rpc-url"
    )


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        stream=sys.stdout,
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(message)s",
    )
    # web3 and urllib3 are chatty at DEBUG
    logging.getLogger("web3").setLevel(logging.INFO)
    logging.getLogger("urllib3").setLevel(logging.INFO)


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()
    load_dotenv(".env.secret")

    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)

    try:
        topology = get_topology(args.network)
        ledger = RunLedger(args.ledger or get_ledger_path())
        attach = parse_attach(args.attach)

        if args.dry_run:
            plan = resolve(apply_resume_state(topology, ledger, attach))
            for i, step in enumerate(plan.steps, start=1):
                print(f"{i:>3}. {step.description}")
            for pid, entry in enumerate(plan.pools):
                print(f"PID {pid}: weight {entry.weight} {entry.farm_type.name} {entry.lp_token}")
            return 0

        config = NETWORK_CONFIG[args.network]
        private_key = os.environ.get(config["private_key_env"])
        if not private_key:
            raise ConfigurationError(f"Deployer key required: set ${config['private_key_env']}")
        rpc_url = get_rpc_url(args.network, args.rpc_url)

        client = Web3NetworkClient.from_rpc(
            rpc_url, private_key, chain_id=config["chain_id"], poa=config["poa"]
        )
        client.check_chain()
        logger.info("Deployer: %s on %s", client.account, config["chain_name"])

        gate = ConfirmationGate(
            client,
            interval=args.interval,
            timeout=args.timeout if args.timeout is not None else config["confirmation_timeout"],
        )
        orchestrator = DeploymentOrchestrator(
            topology,
            client,
            ArtifactStore(args.artifacts or get_default_artifacts_dir()),
            ledger=ledger,
            gate=gate,
            attach=attach,
            timestamp_lookup=make_timestamp_lookup(args.network, rpc_url),
        )
        orchestrator.run()
    except DeploymentError as e:
        logger.error("Deployment failed: %s", e)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
