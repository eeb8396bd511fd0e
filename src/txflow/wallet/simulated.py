"""Simulated wallet for development and testing.

Signs by wrapping the unsigned payload and derives the transaction hash
from the signed bytes. Failures can be scripted per call.
"""

import logging
from typing import Optional

from txflow.errors import SubmissionError, UserRejectedError, WalletError
from txflow.hashing import blake2b_256
from txflow.wallet.base import WalletAdapter

logger = logging.getLogger(__name__)


class SimulatedWallet(WalletAdapter):
    """Wallet that never touches a real chain.

    Attributes:
        signed: Unsigned payloads passed to ``sign_tx``, in order
        submitted: Signed payloads passed to ``submit_tx``, in order
    """

    def __init__(
        self,
        address: str = "addr_test1qsimulated0wallet",
        connected: bool = True,
        tx_hash: Optional[str] = None,
    ):
        super().__init__("simulated")
        self.address = address
        self._connected = connected
        self._tx_hash = tx_hash

        self._reject_next = False
        self._fault_next: Optional[str] = None
        self._submit_failure: Optional[str] = None

        self.signed: list[str] = []
        self.submitted: list[str] = []

    @property
    def is_connected(self) -> bool:
        return self._connected

    def connect(self) -> None:
        self._connected = True

    def disconnect(self) -> None:
        self._connected = False

    def reject_next_signature(self) -> None:
        """Make the next ``sign_tx`` call behave as if the user declined."""
        self._reject_next = True

    def fail_next_signature(self, reason: str = "Wallet disconnected") -> None:
        """Make the next ``sign_tx`` call fail with a wallet fault."""
        self._fault_next = reason

    def fail_next_submit(self, reason: str = "Node rejected transaction") -> None:
        """Make the next ``submit_tx`` call fail before broadcast."""
        self._submit_failure = reason

    async def get_used_addresses(self) -> list[str]:
        self._require_connection()
        return [self.address]

    async def get_change_address(self) -> str:
        self._require_connection()
        return self.address

    async def sign_tx(self, unsigned_tx: str, partial: bool = True) -> str:
        self._require_connection()

        if self._reject_next:
            self._reject_next = False
            raise UserRejectedError("User declined to sign the transaction")

        if self._fault_next:
            reason, self._fault_next = self._fault_next, None
            raise WalletError(f"Wallet fault: {reason}")

        self.signed.append(unsigned_tx)
        logger.debug(f"[SIMULATED] Signed transaction ({len(unsigned_tx)} chars, partial={partial})")
        return f"signed:{unsigned_tx}"

    async def submit_tx(self, signed_tx: str) -> str:
        self._require_connection()

        if self._submit_failure:
            reason, self._submit_failure = self._submit_failure, None
            raise SubmissionError(f"Submit failed: {reason}")

        self.submitted.append(signed_tx)
        tx_hash = self._tx_hash or blake2b_256(signed_tx.encode("utf-8"))
        logger.info(f"[SIMULATED] Submitted transaction {tx_hash}")
        return tx_hash

    def _require_connection(self) -> None:
        if not self._connected:
            raise WalletError("Wallet is not connected")
