"""Performance tracking for pooled vaults.

This module records share-price snapshots of a vault and derives the
realized yield, drawdown and fee drag holders actually experienced.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional

import numpy as np
import pandas as pd

from yieldvault.vault.pooled_vault import PooledVault
from yieldvault.venues.base import SECONDS_PER_YEAR


@dataclass
class VaultSnapshot:
    """Point-in-time view of a vault.

    Attributes:
        timestamp: Clock time of the snapshot
        share_price: Assets per share
        total_assets: Idle plus strategy value
        total_shares: Outstanding shares
        idle: Undeployed assets
        period_return: Share price change since the previous snapshot
        drawdown: Share price distance from its running peak (<= 0)
    """

    timestamp: int
    share_price: float
    total_assets: int
    total_shares: int
    idle: int
    period_return: float = 0.0
    drawdown: float = 0.0


class VaultPerformanceTracker:
    """Tracks a vault's share price over time.

    Example:
        >>> tracker = VaultPerformanceTracker(vault)
        >>> tracker.record_snapshot()
        >>> clock.warp(SECONDS_PER_YEAR)
        >>> tracker.record_snapshot()
        >>> tracker.get_performance_metrics()["realized_apy"]
        0.09
    """

    def __init__(self, vault: PooledVault):
        """Initialize tracker.

        Args:
            vault: Vault to observe
        """
        self.vault = vault
        self.history: List[VaultSnapshot] = []
        self.peak_price: float = 0.0

    def record_snapshot(self) -> VaultSnapshot:
        """Capture the vault's current state.

        Returns:
            VaultSnapshot with return and drawdown filled in
        """
        price = self.vault.share_price()

        period_return = 0.0
        if self.history and self.history[-1].share_price > 0:
            period_return = price / self.history[-1].share_price - 1

        self.peak_price = max(self.peak_price, price)
        drawdown = price / self.peak_price - 1 if self.peak_price > 0 else 0.0

        snapshot = VaultSnapshot(
            timestamp=self.vault.clock.now(),
            share_price=price,
            total_assets=self.vault.total_assets(),
            total_shares=self.vault.total_shares,
            idle=self.vault.idle_balance(),
            period_return=period_return,
            drawdown=drawdown,
        )
        self.history.append(snapshot)
        return snapshot

    def realized_apy(self, start: Optional[int] = None, end: Optional[int] = None) -> float:
        """Annualized share price growth between two snapshot times.

        Simple (non-compounded) annualization, matching how venues quote
        their rates.
        """
        history = self._window(start, end)
        if len(history) < 2:
            return 0.0

        first, last = history[0], history[-1]
        elapsed = last.timestamp - first.timestamp
        if elapsed <= 0 or first.share_price <= 0:
            return 0.0

        growth = last.share_price / first.share_price - 1
        return growth * SECONDS_PER_YEAR / elapsed

    def get_performance_metrics(
        self,
        start: Optional[int] = None,
        end: Optional[int] = None,
    ) -> Dict:
        """Get summary metrics over the recorded history.

        Args:
            start: Only use snapshots at or after this time
            end: Only use snapshots at or before this time

        Returns:
            Dict with performance metrics
        """
        history = self._window(start, end)
        if not history:
            return {
                "total_return": 0.0,
                "realized_apy": 0.0,
                "return_volatility": 0.0,
                "max_drawdown": 0.0,
                "num_snapshots": 0,
            }

        returns = np.array([h.period_return for h in history[1:]], dtype=float)
        first, last = history[0], history[-1]
        total_return = (
            last.share_price / first.share_price - 1 if first.share_price > 0 else 0.0
        )

        return {
            "total_return": total_return,
            "realized_apy": self.realized_apy(start, end),
            "return_volatility": float(returns.std()) if returns.size > 1 else 0.0,
            "max_drawdown": min(h.drawdown for h in history),
            "num_snapshots": len(history),
            "current_share_price": last.share_price,
            "peak_share_price": self.peak_price,
            "total_assets": last.total_assets,
        }

    def fee_summary(self) -> Dict[str, int]:
        """Totals over the vault's compound history."""
        records = self.vault.compound_history
        return {
            "harvested": sum(r.total_harvested for r in records),
            "fee_assets": sum(r.fee_assets for r in records),
            "fee_shares": sum(r.fee_shares for r in records),
            "compounds": len(records),
        }

    def get_share_price_curve(self) -> pd.DataFrame:
        """Share price history as a DataFrame indexed by timestamp."""
        columns = ["share_price", "total_assets", "total_shares", "idle", "period_return", "drawdown"]
        if not self.history:
            return pd.DataFrame(columns=columns)

        df = pd.DataFrame(
            [
                {
                    "timestamp": h.timestamp,
                    "share_price": h.share_price,
                    "total_assets": h.total_assets,
                    "total_shares": h.total_shares,
                    "idle": h.idle,
                    "period_return": h.period_return,
                    "drawdown": h.drawdown,
                }
                for h in self.history
            ]
        )
        df.set_index("timestamp", inplace=True)
        return df

    def get_latest_snapshot(self) -> Optional[VaultSnapshot]:
        return self.history[-1] if self.history else None

    def reset(self) -> None:
        self.history = []
        self.peak_price = 0.0

    def _window(self, start: Optional[int], end: Optional[int]) -> List[VaultSnapshot]:
        history = self.history
        if start is not None:
            history = [h for h in history if h.timestamp >= start]
        if end is not None:
            history = [h for h in history if h.timestamp <= end]
        return history
