"""Unit tests for VaultPerformanceTracker."""

import pandas as pd
import pytest

from yieldvault.bridge.allocation_bridge import AllocationBridge
from yieldvault.ledger.token import InMemoryToken
from yieldvault.monitoring.performance_tracker import VaultPerformanceTracker, VaultSnapshot
from yieldvault.utils.clock import ManualClock
from yieldvault.vault.pooled_vault import PooledVault
from yieldvault.venues.base import SECONDS_PER_YEAR
from yieldvault.venues.interest import SimpleInterestVenue

UNIT = 1_000_000


@pytest.fixture
def clock():
    return ManualClock(start=0)


@pytest.fixture
def vault(clock):
    """Vault with a single 10% strategy holding 1000 units."""
    usdc = InMemoryToken("USDC", minter="ops")
    vault = PooledVault("low", usdc, owner="ops", clock=clock)
    venue = SimpleInterestVenue("aave", usdc, clock, apy_bps=1000, admin="ops")
    vault.add_strategy("ops", AllocationBridge("aave", venue, owner=vault.address))

    usdc.mint("ops", "alice", 1000 * UNIT)
    usdc.approve("alice", vault.address, 1000 * UNIT)
    vault.deposit("alice", 1000 * UNIT)
    return vault


@pytest.fixture
def tracker(vault):
    return VaultPerformanceTracker(vault)


class TestRecordSnapshot:
    """Test snapshot capture."""

    def test_first_snapshot(self, tracker) -> None:
        """Test the first snapshot has no return or drawdown."""
        snapshot = tracker.record_snapshot()

        assert isinstance(snapshot, VaultSnapshot)
        assert snapshot.timestamp == 0
        assert snapshot.share_price == 1.0
        assert snapshot.total_assets == 1000 * UNIT
        assert snapshot.total_shares == 1000 * UNIT
        assert snapshot.idle == 0
        assert snapshot.period_return == 0.0
        assert snapshot.drawdown == 0.0

    def test_growth_between_snapshots(self, tracker, clock) -> None:
        """Test accrued interest shows up as a period return."""
        tracker.record_snapshot()
        clock.warp(SECONDS_PER_YEAR)

        snapshot = tracker.record_snapshot()

        assert snapshot.share_price == pytest.approx(1.1)
        assert snapshot.period_return == pytest.approx(0.1)
        assert tracker.peak_price == pytest.approx(1.1)
        assert tracker.get_latest_snapshot() is snapshot

    def test_fee_dilution_is_a_drawdown(self, tracker, vault, clock) -> None:
        """Test minting fee shares lowers the price below its peak."""
        clock.warp(SECONDS_PER_YEAR)
        tracker.record_snapshot()

        vault.asset.mint("ops", "venue:aave", 100 * UNIT)
        vault.compound()
        snapshot = tracker.record_snapshot()

        assert snapshot.period_return < 0
        assert snapshot.drawdown == pytest.approx(snapshot.period_return)
        assert snapshot.idle == 100 * UNIT


class TestPerformanceMetrics:
    """Test derived metrics."""

    def test_empty_history(self, tracker) -> None:
        """Test metrics before any snapshot."""
        metrics = tracker.get_performance_metrics()

        assert metrics["num_snapshots"] == 0
        assert metrics["realized_apy"] == 0.0
        assert tracker.get_latest_snapshot() is None

    def test_realized_apy(self, tracker, clock) -> None:
        """Test half a year at 10% annualizes back to 10%."""
        tracker.record_snapshot()
        clock.warp(SECONDS_PER_YEAR // 2)
        tracker.record_snapshot()

        assert tracker.realized_apy() == pytest.approx(0.1, rel=1e-6)

    def test_realized_apy_needs_two_snapshots(self, tracker) -> None:
        """Test a single snapshot has no rate."""
        tracker.record_snapshot()
        assert tracker.realized_apy() == 0.0

    def test_metrics_window(self, tracker, clock) -> None:
        """Test start and end restrict the snapshots used."""
        for _ in range(4):
            tracker.record_snapshot()
            clock.warp(SECONDS_PER_YEAR // 4)

        metrics = tracker.get_performance_metrics(start=SECONDS_PER_YEAR // 4)

        assert metrics["num_snapshots"] == 3
        assert metrics["realized_apy"] == pytest.approx(0.1, rel=1e-6)
        assert metrics["max_drawdown"] == 0.0
        assert metrics["total_assets"] == tracker.history[-1].total_assets

    def test_fee_summary(self, tracker, vault, clock) -> None:
        """Test totals come from the vault's compound history."""
        clock.warp(SECONDS_PER_YEAR)
        vault.asset.mint("ops", "venue:aave", 100 * UNIT)
        vault.compound()

        summary = tracker.fee_summary()

        assert summary["harvested"] == 100 * UNIT
        assert summary["fee_assets"] == 10 * UNIT
        assert summary["fee_shares"] == vault.balance_of("ops")
        assert summary["compounds"] == 1


class TestSharePriceCurve:
    """Test DataFrame export."""

    def test_empty_curve(self, tracker) -> None:
        """Test an empty frame keeps its columns."""
        df = tracker.get_share_price_curve()

        assert df.empty
        assert "share_price" in df.columns

    def test_curve_indexed_by_timestamp(self, tracker, clock) -> None:
        """Test one row per snapshot."""
        tracker.record_snapshot()
        clock.warp(3600)
        tracker.record_snapshot()

        df = tracker.get_share_price_curve()

        assert isinstance(df, pd.DataFrame)
        assert list(df.index) == [0, 3600]
        assert df.loc[3600, "share_price"] > df.loc[0, "share_price"]

    def test_reset(self, tracker) -> None:
        """Test reset clears history and peak."""
        tracker.record_snapshot()
        tracker.reset()

        assert tracker.history == []
        assert tracker.peak_price == 0.0
