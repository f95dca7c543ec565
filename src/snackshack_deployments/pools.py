"""Sequential registration of reward pools in the farm contract."""

import logging
from typing import Any, Callable, Dict, List, Optional, Sequence

from .constants import ERC20_METADATA_ABI, ZERO_ADDRESS
from .exceptions import ReadError, SubmissionError
from .network import NetworkClient
from .pacing import ConfirmationGate
from .types import AddressLike, FarmType, PoolRegistration, RegisteredPool

logger = logging.getLogger(__name__)


class PoolRegistrationSequencer:
    """
    Registers farm entries one at a time, in list order.

    The farm assigns pool indices sequentially, so the entry submitted as the
    n-th registration of the farm becomes pid n. Each registration must be
    confirmed before the next one is submitted.
    """

    def __init__(
        self,
        client: NetworkClient,
        gate: ConfirmationGate,
        resolve_address: Callable[[AddressLike], str],
        on_registered: Optional[Callable[[RegisteredPool], None]] = None,
    ):
        """
        Initialize the sequencer.

        Args:
            client: Network client used for submissions and reads
            gate: Confirmation gate shared with the orchestrator
            resolve_address: Turns a topology address into a concrete address
            on_registered: Called with each pool right after it is confirmed
        """
        self._client = client
        self._gate = gate
        self._resolve_address = resolve_address
        self._on_registered = on_registered

    def registration_args(self, entry: PoolRegistration) -> tuple:
        """Arguments of the farm's add() call for one entry."""
        secondary = (
            self._resolve_address(entry.secondary_reward)
            if entry.secondary_reward is not None
            else ZERO_ADDRESS
        )
        return (
            entry.weight,
            int(FarmType(entry.farm_type)),
            self._resolve_address(entry.lp_token),
            secondary,
            self._resolve_address(entry.controller),
        )

    def register(
        self,
        farm_address: str,
        farm_abi: List[Dict[str, Any]],
        entries: Sequence[PoolRegistration],
        start_index: int = 0,
    ) -> List[RegisteredPool]:
        """
        Register `entries` as pids start_index, start_index + 1, ...

        Args:
            farm_address: Address of the farm contract
            farm_abi: ABI of the farm contract
            entries: Farm entries still to register, in pid order
            start_index: Pool index of the first entry

        Returns:
            The confirmed registrations

        Raises:
            SubmissionError: If a registration is rejected, or the farm
                             reports a pool count other than the next pid
                             (nothing is sent for that entry)
            ConfirmationTimeout: If a registration is not confirmed in time
        """
        registered: List[RegisteredPool] = []

        for offset, entry in enumerate(entries):
            pid = start_index + offset
            args = self.registration_args(entry)
            _, _, lp_token, secondary, controller = args

            # The farm assigns the next index on add(); it must be this pid
            self._gate.settle()
            self._check_pool_count(farm_address, farm_abi, pid)

            receipt = self._gate.transact(
                lambda: self._client.send(farm_address, farm_abi, "add", args),
                f"register pool {pid}",
            )

            pool = RegisteredPool(
                pid=pid,
                entry=entry,
                lp_token=lp_token,
                controller=controller,
                secondary_reward=secondary,
                transaction_hash=receipt.get("transactionHash"),
            )
            registered.append(pool)
            if self._on_registered is not None:
                self._on_registered(pool)

            self._gate.settle()
            name = self._token_name(lp_token)
            if entry.label:
                logger.info("PID %d: %s %s", pid, name, entry.label)
            else:
                logger.info("PID %d: %s", pid, name)

        return registered

    def _check_pool_count(self, farm_address: str, farm_abi: List[Dict[str, Any]], pid: int) -> None:
        try:
            length = self._client.call(farm_address, farm_abi, "poolLength")
        except ReadError as e:
            logger.warning("Could not verify pool count before pid %d: %s", pid, e)
            return
        if int(length) != pid:
            raise SubmissionError(
                f"Farm already holds {length} pools, expected {pid} before registering "
                f"pid {pid}; refusing to add an entry at the wrong index"
            )

    def _token_name(self, address: str) -> str:
        try:
            return self._client.call(address, ERC20_METADATA_ABI, "name")
        except ReadError as e:
            logger.warning("Could not read token name of %s: %s", address, e)
            return address
