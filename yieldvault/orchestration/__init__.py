"""Orchestration Layer - keeper cycles and their scheduling.

Components:
- KeeperWorkflow: Settles ready batches, compounds and rebalances each tier
- KeeperScheduler: Runs keeper jobs periodically with APScheduler
"""

from yieldvault.orchestration.scheduler import KeeperScheduler
from yieldvault.orchestration.workflows import KeeperReport, KeeperWorkflow

__all__ = [
    "KeeperWorkflow",
    "KeeperReport",
    "KeeperScheduler",
]
