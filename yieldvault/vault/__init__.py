"""Vault Layer - pooled share ledger and capital allocation.

Components:
- PooledVault: Issues shares, allocates across bridges, compounds yield
- RebalanceRecord / CompoundRecord: Audit records of allocation changes
- rebalancer: Pure APY-weighted allocation math
"""

from yieldvault.vault.base import CompoundRecord, RebalanceMove, RebalanceRecord
from yieldvault.vault.pooled_vault import PooledVault
from yieldvault.vault.rebalancer import (
    allocation_gaps_bps,
    plan_deficit_fills,
    score_strategies,
    should_rebalance,
    target_allocations,
)

__all__ = [
    "PooledVault",
    "RebalanceMove",
    "RebalanceRecord",
    "CompoundRecord",
    "score_strategies",
    "target_allocations",
    "allocation_gaps_bps",
    "should_rebalance",
    "plan_deficit_fills",
]
