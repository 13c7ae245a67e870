"""Ledger Layer - fungible asset and share balances.

Components:
- AssetLedger: Abstract token interface (balances, transfers, allowances)
- InMemoryToken: Dictionary-backed token used for assets and vault shares
"""

from yieldvault.ledger.base import AssetLedger
from yieldvault.ledger.token import InMemoryToken

__all__ = [
    "AssetLedger",
    "InMemoryToken",
]
