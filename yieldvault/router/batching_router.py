"""Batching router: per-tier request queues and periodic settlement.

Users queue deposits (assets) and withdrawals (vault shares) per risk
tier. Once the batch interval has elapsed, anyone may settle a queue: the
router performs a single vault operation for the whole queue and credits
each account its pro-rata share of the result, which the account claims
later.

State machine per (tier, queue):
    Idle -> Accepting -> window elapsed -> Executing -> Idle
"""

from typing import Dict, List, Optional, Tuple

import pandas as pd

from yieldvault.ledger.base import AssetLedger
from yieldvault.router.base import (
    BatchKind,
    BatchResult,
    PendingRequest,
    TierState,
    apportion,
)
from yieldvault.utils.exceptions import (
    BatchNotReadyError,
    ConfigurationError,
    InsufficientLiquidityError,
    InvalidAmountError,
    UnauthorizedError,
    UnknownTierError,
)
from yieldvault.utils.logging import get_logger, log_with_context
from yieldvault.utils.logging_enhanced import VaultEventLogger, VaultEventType, emit
from yieldvault.vault.pooled_vault import PooledVault

logger = get_logger(__name__)


class BatchingRouter:
    """Aggregates user requests into periodic vault operations.

    Configuration Parameters:
        batch_interval: Seconds between executions of the same queue
            (default 3600)
        name: Router name used to derive its address (default "main")

    Example:
        >>> router = BatchingRouter(usdc, owner="ops", clock=clock)
        >>> router.set_vault("ops", "low", low_vault)
        >>> usdc.approve("alice", router.address, 1_000)
        >>> router.deposit("alice", 1_000, "low")
        >>> clock.warp(router.batch_interval)
        >>> router.execute_batch_deposits("keeper", "low")
        >>> router.claim_deposit_shares("alice", "low")
        1000
    """

    def __init__(
        self,
        asset: AssetLedger,
        owner: str,
        clock,
        config: Optional[Dict] = None,
        event_logger: Optional[VaultEventLogger] = None,
    ):
        """Initialize router.

        Args:
            asset: Ledger of the deposited asset
            owner: Address allowed to configure tiers and the interval
            clock: Object with ``now() -> int``
            config: Configuration dictionary
            event_logger: Optional structured event sink
        """
        config = config or {}

        self.asset = asset
        self.owner = owner
        self.clock = clock
        self.events = event_logger
        self.name = config.get("name", "main")
        self.address = f"router:{self.name}"
        self.batch_interval = config.get("batch_interval", 3600)

        self._validate_config()

        self._tiers: Dict[str, TierState] = {}
        self._claimable_shares: Dict[Tuple[str, str], int] = {}
        self._claimable_assets: Dict[Tuple[str, str], int] = {}
        self.batch_history: List[BatchResult] = []

        logger.debug("BatchingRouter initialized: batch_interval=%ds", self.batch_interval)

    def _validate_config(self) -> None:
        """Validate configuration parameters."""
        if self.batch_interval < 0:
            raise ValueError(f"batch_interval must be non-negative, got {self.batch_interval}")

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    def set_vault(self, caller: str, tier: str, vault: PooledVault) -> None:
        """Map ``tier`` to ``vault``.

        A tier may only be re-pointed once it is fully settled (empty
        queues, nothing left to claim).

        Raises:
            UnauthorizedError: If caller is not the owner
            ConfigurationError: If the vault manages another asset or the
                tier still has open entries
        """
        self._only_owner(caller)
        if vault.asset is not self.asset:
            raise ConfigurationError(
                f"vault {vault.name} manages {vault.asset.symbol}, router routes {self.asset.symbol}"
            )

        existing = self._tiers.get(tier)
        if existing is not None and not existing.is_settled:
            raise ConfigurationError(f"tier {tier} has open entries, cannot change its vault")

        now = self.clock.now()
        self._tiers[tier] = TierState(
            vault=vault,
            last_deposit_batch=now if existing is None else existing.last_deposit_batch,
            last_withdraw_batch=now if existing is None else existing.last_withdraw_batch,
        )
        logger.info("Tier %s mapped to vault %s", tier, vault.name)

    def set_batch_interval(self, caller: str, seconds: int) -> None:
        self._only_owner(caller)
        if seconds < 0:
            raise InvalidAmountError(f"batch interval must be non-negative, got {seconds}")
        self.batch_interval = seconds
        logger.info("Batch interval set to %ds", seconds)

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    def deposit(self, caller: str, amount: int, tier: str) -> PendingRequest:
        """Queue a deposit of ``amount`` assets into ``tier``.

        The assets move to the router immediately (caller must have
        approved the router). Several requests from the same account in one
        window accumulate.
        """
        state = self._tier(tier)
        if amount <= 0:
            raise InvalidAmountError(f"deposit amount must be positive, got {amount}")

        self.asset.transfer_from(self.address, caller, self.address, amount)
        request = PendingRequest(caller, amount, self.clock.now())
        state.pending_deposits.append(request)

        log_with_context(logger, "debug", "Deposit queued", tier=tier, caller=caller, amount=amount)
        emit(self.events, VaultEventType.DEPOSIT_QUEUED, tier=tier, account=caller, amount=amount)
        return request

    def withdraw(self, caller: str, shares: int, tier: str) -> PendingRequest:
        """Queue a withdrawal of ``shares`` vault shares from ``tier``.

        The shares move to the router immediately (caller must have
        approved the router on the vault's shares).
        """
        state = self._tier(tier)
        if shares <= 0:
            raise InvalidAmountError(f"withdraw amount must be positive, got {shares}")

        state.vault.shares.transfer_from(self.address, caller, self.address, shares)
        request = PendingRequest(caller, shares, self.clock.now())
        state.pending_withdraws.append(request)

        log_with_context(logger, "debug", "Withdraw queued", tier=tier, caller=caller, shares=shares)
        emit(self.events, VaultEventType.WITHDRAW_QUEUED, tier=tier, account=caller, shares=shares)
        return request

    # ------------------------------------------------------------------
    # Settlement
    # ------------------------------------------------------------------

    def execute_batch_deposits(self, caller: str, tier: str) -> BatchResult:
        """Settle the deposit queue of ``tier`` as one vault deposit.

        Permissionless; ``caller`` is recorded for logging only.

        Raises:
            BatchNotReadyError: If the interval has not elapsed
            InvalidAmountError: If the queue is empty or would mint nothing
        """
        state = self._tier(tier)
        self._check_ready(state, tier, BatchKind.DEPOSIT)
        if not state.pending_deposits:
            raise InvalidAmountError(f"no pending deposits for tier {tier}")

        aggregate = state.total_pending_deposits
        state.vault.preview_deposit(aggregate)

        self.asset.approve(self.address, state.vault.address, aggregate)
        shares = state.vault.deposit(self.address, aggregate)

        allocations = apportion(shares, state.pending_deposits)
        for account, amount in allocations.items():
            key = (account, tier)
            self._claimable_shares[key] = self._claimable_shares.get(key, 0) + amount

        credited = sum(allocations.values())
        dust = shares - credited
        state.unclaimed_shares += credited
        state.undistributed_shares += dust
        state.pending_deposits = []
        state.last_deposit_batch = self.clock.now()

        result = BatchResult(
            tier=tier,
            kind=BatchKind.DEPOSIT,
            timestamp=state.last_deposit_batch,
            aggregate_in=aggregate,
            aggregate_out=shares,
            allocations=allocations,
            dust=dust,
        )
        self._record(result, caller)
        return result

    def execute_batch_withdraws(self, caller: str, tier: str) -> BatchResult:
        """Settle the withdraw queue of ``tier`` as one vault redeem.

        If the vault cannot raise the liquidity, the error propagates and
        the queue, the batch timestamp and every balance stay untouched, so
        the batch can be retried once liquidity returns.

        Raises:
            BatchNotReadyError: If the interval has not elapsed
            InvalidAmountError: If the queue is empty
            InsufficientLiquidityError: If the vault cannot pay out
        """
        state = self._tier(tier)
        self._check_ready(state, tier, BatchKind.WITHDRAW)
        if not state.pending_withdraws:
            raise InvalidAmountError(f"no pending withdrawals for tier {tier}")

        aggregate = state.total_pending_withdraws
        try:
            assets = state.vault.redeem(self.address, aggregate)
        except InsufficientLiquidityError as e:
            logger.warning("Withdraw batch for tier %s not serviceable: %s", tier, e)
            if self.events is not None:
                self.events.log_error(
                    VaultEventType.BATCH_FAILED, str(e), tier=tier, aggregate=aggregate
                )
            raise

        allocations = apportion(assets, state.pending_withdraws)
        for account, amount in allocations.items():
            key = (account, tier)
            self._claimable_assets[key] = self._claimable_assets.get(key, 0) + amount

        credited = sum(allocations.values())
        dust = assets - credited
        state.unclaimed_assets += credited
        state.undistributed_assets += dust
        state.pending_withdraws = []
        state.last_withdraw_batch = self.clock.now()

        result = BatchResult(
            tier=tier,
            kind=BatchKind.WITHDRAW,
            timestamp=state.last_withdraw_batch,
            aggregate_in=aggregate,
            aggregate_out=assets,
            allocations=allocations,
            dust=dust,
        )
        self._record(result, caller)
        return result

    def claim_deposit_shares(self, caller: str, tier: str) -> int:
        """Send caller every vault share credited to them in ``tier``.

        Returns:
            Shares transferred; 0 (and no effect) when nothing is claimable
        """
        state = self._tier(tier)
        key = (caller, tier)
        amount = self._claimable_shares.get(key, 0)
        if amount == 0:
            return 0

        self._claimable_shares[key] = 0
        state.unclaimed_shares -= amount
        state.vault.shares.transfer(self.address, caller, amount)

        log_with_context(logger, "debug", "Shares claimed", tier=tier, caller=caller, shares=amount)
        emit(self.events, VaultEventType.SHARES_CLAIMED, tier=tier, account=caller, shares=amount)
        return amount

    def claim_withdraw_assets(self, caller: str, tier: str) -> int:
        """Send caller every asset credited to them in ``tier``.

        Returns:
            Assets transferred; 0 (and no effect) when nothing is claimable
        """
        state = self._tier(tier)
        key = (caller, tier)
        amount = self._claimable_assets.get(key, 0)
        if amount == 0:
            return 0

        self._claimable_assets[key] = 0
        state.unclaimed_assets -= amount
        self.asset.transfer(self.address, caller, amount)

        log_with_context(logger, "debug", "Assets claimed", tier=tier, caller=caller, assets=amount)
        emit(self.events, VaultEventType.ASSETS_CLAIMED, tier=tier, account=caller, assets=amount)
        return amount

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def tiers(self) -> List[str]:
        return list(self._tiers)

    def vault_for(self, tier: str) -> PooledVault:
        return self._tier(tier).vault

    def total_pending_deposits(self, tier: str) -> int:
        return self._tier(tier).total_pending_deposits

    def total_pending_withdraws(self, tier: str) -> int:
        return self._tier(tier).total_pending_withdraws

    def pending_deposits(self, tier: str) -> List[PendingRequest]:
        return list(self._tier(tier).pending_deposits)

    def pending_withdraws(self, tier: str) -> List[PendingRequest]:
        return list(self._tier(tier).pending_withdraws)

    def claimable_shares(self, account: str, tier: str) -> int:
        return self._claimable_shares.get((account, tier), 0)

    def claimable_assets(self, account: str, tier: str) -> int:
        return self._claimable_assets.get((account, tier), 0)

    def undistributed(self, tier: str) -> Dict[str, int]:
        """Rounding remainders the router kept for ``tier``."""
        state = self._tier(tier)
        return {"shares": state.undistributed_shares, "assets": state.undistributed_assets}

    def time_until_next_batch(self, tier: str, kind: BatchKind) -> int:
        """Seconds until the queue may settle (0 when it already may)."""
        state = self._tier(tier)
        return max(0, state.last_batch(kind) + self.batch_interval - self.clock.now())

    def is_batch_ready(self, tier: str, kind: BatchKind) -> bool:
        return self.time_until_next_batch(tier, kind) == 0

    def tier_state(self, tier: str) -> TierState:
        return self._tier(tier)

    def batch_history_frame(self) -> pd.DataFrame:
        """Executed batches as a DataFrame, one row per batch."""
        columns = ["timestamp", "tier", "kind", "aggregate_in", "aggregate_out", "entries", "dust"]
        rows = [
            {
                "timestamp": r.timestamp,
                "tier": r.tier,
                "kind": r.kind.value,
                "aggregate_in": r.aggregate_in,
                "aggregate_out": r.aggregate_out,
                "entries": r.entries,
                "dust": r.dust,
            }
            for r in self.batch_history
        ]
        return pd.DataFrame(rows, columns=columns)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _tier(self, tier: str) -> TierState:
        state = self._tiers.get(tier)
        if state is None:
            raise UnknownTierError(f"no vault registered for tier {tier!r}")
        return state

    def _check_ready(self, state: TierState, tier: str, kind: BatchKind) -> None:
        elapsed = self.clock.now() - state.last_batch(kind)
        if elapsed < self.batch_interval:
            raise BatchNotReadyError(
                f"{kind.value} batch for tier {tier} ready in "
                f"{self.batch_interval - elapsed}s"
            )

    def _record(self, result: BatchResult, caller: str) -> None:
        self.batch_history.append(result)

        event_type = (
            VaultEventType.DEPOSIT_BATCH_EXECUTED
            if result.kind is BatchKind.DEPOSIT
            else VaultEventType.WITHDRAW_BATCH_EXECUTED
        )
        log_with_context(
            logger, "info", "Batch executed",
            tier=result.tier, kind=result.kind.value, keeper=caller,
            aggregate_in=result.aggregate_in, aggregate_out=result.aggregate_out,
            entries=result.entries, dust=result.dust,
        )
        emit(
            self.events, event_type,
            tier=result.tier, keeper=caller,
            aggregate_in=result.aggregate_in, aggregate_out=result.aggregate_out,
            allocations=result.allocations, dust=result.dust,
        )

    def _only_owner(self, caller: str) -> None:
        if caller != self.owner:
            raise UnauthorizedError(f"{caller} is not the router owner")
