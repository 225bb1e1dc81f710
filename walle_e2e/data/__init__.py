"""
Test data shared across runs.
"""

from walle_e2e.data.ledger import ResourceLedger
from walle_e2e.data.wallets import BOT_WALLETS, WALLETS, Wallet, reserve_wallet

__all__ = ["ResourceLedger", "BOT_WALLETS", "WALLETS", "Wallet", "reserve_wallet"]
