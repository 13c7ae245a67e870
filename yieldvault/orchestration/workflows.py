"""Keeper workflow - one settlement cycle across every tier.

Batch execution, compounding and rebalancing are permissionless. The
keeper is whoever triggers them; this workflow does it for every tier in
one pass:

Settle ready deposit queues → Settle ready withdraw queues → Compound → Rebalance

Each step can also run on its own (settle_all, compound_all, rebalance_all)
when the scheduler gives them separate intervals.
"""

from dataclasses import dataclass, field
from typing import Dict, List

from yieldvault.router.base import BatchKind, BatchResult
from yieldvault.router.batching_router import BatchingRouter
from yieldvault.utils.exceptions import InsufficientLiquidityError
from yieldvault.utils.logging import get_logger
from yieldvault.utils.logging_enhanced import VaultEventType
from yieldvault.vault.base import CompoundRecord, RebalanceRecord

logger = get_logger(__name__)


@dataclass
class KeeperReport:
    """What one keeper cycle did.

    Attributes:
        timestamp: Clock time of the cycle
        batches: Batches that settled
        skipped: "tier/kind" -> reason for queues left alone
        failed: "tier/kind" -> error for batches that could not settle
        compounds: Compound records with a non-zero harvest, per tier
        rebalances: Rebalance records, per tier
    """

    timestamp: int
    batches: List[BatchResult] = field(default_factory=list)
    skipped: Dict[str, str] = field(default_factory=dict)
    failed: Dict[str, str] = field(default_factory=dict)
    compounds: Dict[str, CompoundRecord] = field(default_factory=dict)
    rebalances: Dict[str, RebalanceRecord] = field(default_factory=dict)


class KeeperWorkflow:
    """Runs settlement, compounding and rebalancing for a router's tiers.

    Example:
        >>> keeper = KeeperWorkflow(router)
        >>> report = keeper.run_cycle()
        >>> len(report.batches)
        2
    """

    def __init__(
        self,
        router: BatchingRouter,
        keeper: str = "keeper",
        compound: bool = True,
        rebalance: bool = True,
    ):
        """Initialize keeper workflow.

        Args:
            router: Router whose tiers are serviced
            keeper: Address recorded as the batch executor
            compound: Harvest and take fees every cycle
            rebalance: Rebalance every vault every cycle
        """
        self.router = router
        self.keeper = keeper
        self.compound = compound
        self.rebalance = rebalance

    def settle_tier(self, tier: str, report: KeeperReport) -> None:
        """Execute whichever queues of ``tier`` are ready and non-empty."""
        for kind in (BatchKind.DEPOSIT, BatchKind.WITHDRAW):
            key = f"{tier}/{kind.value}"
            queue = self.router.tier_state(tier).queue(kind)

            if not queue:
                report.skipped[key] = "empty"
                continue
            wait = self.router.time_until_next_batch(tier, kind)
            if wait > 0:
                report.skipped[key] = f"ready in {wait}s"
                continue

            try:
                if kind is BatchKind.DEPOSIT:
                    result = self.router.execute_batch_deposits(self.keeper, tier)
                else:
                    result = self.router.execute_batch_withdraws(self.keeper, tier)
            except InsufficientLiquidityError as e:
                # Queue is left intact by the router; retried next cycle
                logger.warning("Keeper could not settle %s: %s", key, e)
                report.failed[key] = str(e)
                if self.router.events is not None:
                    self.router.events.log_error(VaultEventType.KEEPER_ERROR, str(e), queue=key)
                continue

            report.batches.append(result)

    def compound_tier(self, tier: str, report: KeeperReport) -> None:
        record = self.router.vault_for(tier).compound()
        if record.total_harvested > 0:
            report.compounds[tier] = record

    def rebalance_tier(self, tier: str, report: KeeperReport) -> None:
        record = self.router.vault_for(tier).rebalance()
        if record is not None:
            report.rebalances[tier] = record

    def run_cycle(self) -> KeeperReport:
        """Run one full keeper pass over every tier.

        Returns:
            KeeperReport describing what happened
        """
        report = KeeperReport(timestamp=self.router.clock.now())

        for tier in self.router.tiers():
            self.settle_tier(tier, report)
            if self.compound:
                self.compound_tier(tier, report)
            if self.rebalance:
                self.rebalance_tier(tier, report)

        self._log_report("Keeper cycle", report)
        return report

    def settle_all(self) -> KeeperReport:
        """Settle ready queues of every tier, nothing else."""
        return self._run_step("Keeper settle", self.settle_tier)

    def compound_all(self) -> KeeperReport:
        """Compound every tier's vault, whatever the compound flag says."""
        return self._run_step("Keeper compound", self.compound_tier)

    def rebalance_all(self) -> KeeperReport:
        """Rebalance every tier's vault, whatever the rebalance flag says."""
        return self._run_step("Keeper rebalance", self.rebalance_tier)

    def _run_step(self, label: str, step) -> KeeperReport:
        report = KeeperReport(timestamp=self.router.clock.now())
        for tier in self.router.tiers():
            step(tier, report)
        self._log_report(label, report)
        return report

    @staticmethod
    def _log_report(label: str, report: KeeperReport) -> None:
        logger.info(
            "%s: %d batches, %d skipped, %d failed, %d compounds, %d rebalances",
            label,
            len(report.batches),
            len(report.skipped),
            len(report.failed),
            len(report.compounds),
            len(report.rebalances),
        )
