"""Wallet adapter interface.

The orchestrator never touches keys. It asks the connected wallet for
addresses, hands it an unsigned transaction to sign, and asks it to
broadcast the signed result.

Signing flow:
1. Gateway builds an unsigned transaction (CBOR hex)
2. Wallet signs it (partial signing; the gateway may add witnesses)
3. Wallet submits the signed transaction and returns its hash
"""

import logging
from abc import ABC, abstractmethod

logger = logging.getLogger(__name__)


class WalletAdapter(ABC):
    """Abstract base class for wallet connections.

    Implementations raise ``UserRejectedError`` when the user declines to
    sign and ``WalletError`` for any other wallet fault, so the two can be
    reported differently.
    """

    def __init__(self, name: str):
        self.name = name

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        """Whether a wallet is currently connected."""
        pass

    @abstractmethod
    async def get_used_addresses(self) -> list[str]:
        """Get addresses that have been used by this wallet."""
        pass

    @abstractmethod
    async def get_change_address(self) -> str:
        """Get the address change outputs should go to."""
        pass

    @abstractmethod
    async def sign_tx(self, unsigned_tx: str, partial: bool = True) -> str:
        """Sign an unsigned transaction.

        Args:
            unsigned_tx: Unsigned transaction (CBOR hex)
            partial: Allow partial signing

        Returns:
            Signed transaction (CBOR hex)
        """
        pass

    @abstractmethod
    async def submit_tx(self, signed_tx: str) -> str:
        """Broadcast a signed transaction.

        Returns:
            Transaction hash
        """
        pass

    async def initiator_data(self) -> dict:
        """Addresses the gateway needs to balance a transaction for this wallet."""
        return {
            "used_addresses": await self.get_used_addresses(),
            "change_address": await self.get_change_address(),
        }
