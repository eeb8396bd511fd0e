"""Wallet adapters."""

from txflow.wallet.base import WalletAdapter
from txflow.wallet.simulated import SimulatedWallet

__all__ = ["SimulatedWallet", "WalletAdapter"]
