"""Confirmation gate that spaces state-mutating calls from one account."""

import logging
import time
from typing import Any, Callable, Dict, Optional

from .constants import DEFAULT_QUIESCENCE_INTERVAL
from .network import NetworkClient, PendingTransaction

logger = logging.getLogger(__name__)


class ConfirmationGate:
    """
    Serializes transactions and enforces a quiescence interval between them.

    Only one transaction may be outstanding at a time. After a transaction
    confirms, the next submission (or an informational read, see `settle`)
    waits until `interval` seconds have passed since that confirmation.
    """

    def __init__(
        self,
        client: NetworkClient,
        interval: float = DEFAULT_QUIESCENCE_INTERVAL,
        timeout: float = 300.0,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        if interval < 0:
            raise ValueError(f"Quiescence interval must be non-negative, got {interval}")
        self._client = client
        self._interval = interval
        self._timeout = timeout
        self._sleep = sleep
        self._clock = clock
        self._last_confirmed_at: Optional[float] = None
        self._in_flight: Optional[str] = None

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def timeout(self) -> float:
        return self._timeout

    @property
    def in_flight(self) -> Optional[str]:
        """Description of the outstanding transaction, if any."""
        return self._in_flight

    def settle(self) -> None:
        """Block until the quiescence interval since the last confirmation has elapsed."""
        if self._last_confirmed_at is None:
            return
        remaining = self._interval - (self._clock() - self._last_confirmed_at)
        if remaining > 0:
            logger.debug("Waiting %.1fs for the network to settle", remaining)
            self._sleep(remaining)

    def transact(
        self, submit: Callable[[], PendingTransaction], description: str
    ) -> Dict[str, Any]:
        """
        Submit one transaction and block until it is confirmed.

        Args:
            submit: Callable that signs and sends the transaction
            description: Human readable name used in logs and errors

        Returns:
            Confirmed receipt

        Raises:
            RuntimeError: If another transaction is still outstanding
            SubmissionError: If the network rejects or reverts the transaction
            ConfirmationTimeout: If confirmation does not arrive in time
        """
        if self._in_flight is not None:
            raise RuntimeError(
                f"Cannot submit '{description}' while '{self._in_flight}' is outstanding"
            )

        self.settle()
        self._in_flight = description
        try:
            pending = submit()
            logger.debug("Submitted %s: %s", description, pending.transaction_hash)
            receipt = self._client.wait_for_confirmation(pending, timeout=self._timeout)
        finally:
            self._in_flight = None

        self._last_confirmed_at = self._clock()
        return receipt
