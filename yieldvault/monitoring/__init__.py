"""Monitoring and performance tracking for pooled vaults.

Components:
- VaultPerformanceTracker: Share price history, realized APY, drawdown
"""

from yieldvault.monitoring.performance_tracker import VaultPerformanceTracker, VaultSnapshot

__all__ = [
    "VaultPerformanceTracker",
    "VaultSnapshot",
]
