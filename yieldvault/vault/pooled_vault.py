"""Pooled vault: share ledger, strategy allocation and compounding.

The vault issues shares against the assets it manages, spreads those
assets over a set of allocation bridges, moves capital toward the
better-paying bridges and turns harvested interest into share price
growth net of a performance fee.

Share math (integer, floored toward the vault):
    deposit: shares = assets * total_shares // total_assets   (1:1 when empty)
    redeem:  assets = shares * total_assets // total_shares

Invariants:
    total_assets() == idle + sum(bridge.balance_of())
    total_shares == sum of every holder's shares
"""

from typing import Dict, List, Optional

import pandas as pd

from yieldvault.bridge.allocation_bridge import AllocationBridge
from yieldvault.ledger.base import AssetLedger
from yieldvault.ledger.token import InMemoryToken
from yieldvault.utils.exceptions import (
    DuplicateOrUnknownStrategyError,
    InsufficientBalanceError,
    InsufficientLiquidityError,
    InvalidAmountError,
    UnauthorizedError,
)
from yieldvault.utils.logging import get_logger, log_with_context
from yieldvault.utils.logging_enhanced import VaultEventLogger, VaultEventType, emit
from yieldvault.vault.base import CompoundRecord, RebalanceMove, RebalanceRecord
from yieldvault.vault.rebalancer import (
    allocation_gaps_bps,
    plan_deficit_fills,
    plan_strategy_pulls,
    score_strategies,
    should_rebalance,
    target_allocations,
)
from yieldvault.venues.base import BPS_DENOMINATOR

logger = get_logger(__name__)


class PooledVault:
    """Share-issuing vault allocating across yield venues.

    Configuration Parameters:
        performance_fee_bps: Fee on harvested interest (default 1000 = 10%)
        fee_recipient: Address receiving fee shares (default: owner)
        min_rebalance_gap_bps: Minimum allocation gap before rebalance acts
            (default 100)
        deploy_on_deposit: Route new deposits into strategies immediately
            (default True)
        max_strategies: Upper bound on registered strategies (default 20)

    Example:
        >>> vault = PooledVault("low", usdc, owner="ops", clock=clock)
        >>> vault.add_strategy("ops", AllocationBridge("aave", venue, vault.address))
        >>> usdc.approve("alice", vault.address, 1_000)
        >>> vault.deposit("alice", 1_000)
        1000
    """

    def __init__(
        self,
        name: str,
        asset: AssetLedger,
        owner: str,
        clock,
        config: Optional[Dict] = None,
        event_logger: Optional[VaultEventLogger] = None,
    ):
        """Initialize vault.

        Args:
            name: Vault name, also used to derive the vault address
            asset: Ledger of the managed asset
            owner: Address allowed to run administrative operations
            clock: Object with ``now() -> int``
            config: Configuration dictionary (see class docstring)
            event_logger: Optional structured event sink
        """
        config = config or {}

        self.name = name
        self.address = f"vault:{name}"
        self.asset = asset
        self.owner = owner
        self.clock = clock
        self.events = event_logger

        self.performance_fee_bps = config.get("performance_fee_bps", 1000)
        self.fee_recipient = config.get("fee_recipient", owner)
        self.min_rebalance_gap_bps = config.get("min_rebalance_gap_bps", 100)
        self.deploy_on_deposit = config.get("deploy_on_deposit", True)
        self.exited = False
        self.max_strategies = config.get("max_strategies", 20)

        self._validate_config()

        self.shares = InMemoryToken(
            f"yv-{name}",
            minter=self.address,
            decimals=getattr(asset, "decimals", 18),
        )
        self.strategies: List[AllocationBridge] = []
        self.rebalance_history: List[RebalanceRecord] = []
        self.compound_history: List[CompoundRecord] = []

        logger.debug(
            "PooledVault %s initialized: fee=%d bps, min_gap=%d bps",
            name,
            self.performance_fee_bps,
            self.min_rebalance_gap_bps,
        )

    def _validate_config(self) -> None:
        """Validate configuration parameters."""
        if not 0 <= self.performance_fee_bps <= BPS_DENOMINATOR:
            raise ValueError(
                f"performance_fee_bps must be in [0, 10000], got {self.performance_fee_bps}"
            )
        if not 0 <= self.min_rebalance_gap_bps <= BPS_DENOMINATOR:
            raise ValueError(
                f"min_rebalance_gap_bps must be in [0, 10000], got {self.min_rebalance_gap_bps}"
            )
        if self.max_strategies < 1:
            raise ValueError(f"max_strategies must be >= 1, got {self.max_strategies}")
        if not self.fee_recipient:
            raise ValueError("fee_recipient must be set")

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    @property
    def total_shares(self) -> int:
        return self.shares.total_supply()

    def idle_balance(self) -> int:
        return self.asset.balance_of(self.address)

    def total_assets(self) -> int:
        """Idle assets plus the value of every strategy position."""
        return self.idle_balance() + sum(b.balance_of() for b in self.strategies)

    def share_price(self) -> float:
        """Assets per share; 1.0 while no shares exist."""
        total_shares = self.total_shares
        if total_shares == 0:
            return 1.0
        return self.total_assets() / total_shares

    def balance_of(self, account: str) -> int:
        return self.shares.balance_of(account)

    def convert_to_shares(self, assets: int) -> int:
        total_shares = self.total_shares
        if total_shares == 0:
            return assets
        total_assets = self.total_assets()
        if total_assets == 0:
            return 0
        return assets * total_shares // total_assets

    def convert_to_assets(self, shares: int) -> int:
        total_shares = self.total_shares
        if total_shares == 0:
            return shares
        return shares * self.total_assets() // total_shares

    def preview_deposit(self, assets: int) -> int:
        """Shares a deposit of ``assets`` would mint right now.

        Raises:
            InvalidAmountError: If assets is not positive or mints nothing
        """
        if assets <= 0:
            raise InvalidAmountError(f"deposit amount must be positive, got {assets}")
        if self.total_shares > 0 and self.total_assets() == 0:
            raise InvalidAmountError(f"{self.name} has shares outstanding but no assets")

        shares = self.convert_to_shares(assets)
        if shares == 0:
            raise InvalidAmountError(f"deposit of {assets} would mint zero shares")
        return shares

    def preview_redeem(self, shares: int) -> int:
        if shares <= 0:
            raise InvalidAmountError(f"redeem amount must be positive, got {shares}")
        if shares > self.total_shares:
            raise InvalidAmountError(
                f"cannot redeem {shares} of {self.total_shares} outstanding shares"
            )
        return self.convert_to_assets(shares)

    def liquid_assets(self) -> int:
        """Idle assets plus what every strategy could release right now."""
        return self.idle_balance() + sum(self._liquidity_caps())

    def _liquidity_caps(self) -> List[int]:
        """What each strategy could release, without counting a venue twice.

        Bridges sharing a venue draw on the same cash; earlier strategies
        claim it first.
        """
        venue_cash: Dict[str, int] = {}
        caps = []
        for bridge in self.strategies:
            venue = bridge.venue.address
            cash = venue_cash.setdefault(venue, self.asset.balance_of(venue))
            cap = max(0, min(bridge.available_liquidity(), cash))
            venue_cash[venue] = cash - cap
            caps.append(cap)
        return caps

    def max_redeem(self, account: str) -> int:
        """Largest share amount ``account`` could redeem right now."""
        held = self.balance_of(account)
        total_assets = self.total_assets()
        if held == 0 or total_assets == 0:
            return 0
        return min(held, self.liquid_assets() * self.total_shares // total_assets)

    def allocations(self) -> pd.DataFrame:
        """Current allocation per strategy plus the idle balance.

        Returns:
            DataFrame indexed by strategy name with columns
            balance, apy_bps, liquidity, weight
        """
        rows = [
            {
                "strategy": b.name,
                "balance": b.balance_of(),
                "apy_bps": b.get_apy(),
                "liquidity": b.available_liquidity(),
            }
            for b in self.strategies
        ]
        idle = self.idle_balance()
        rows.append({"strategy": "idle", "balance": idle, "apy_bps": 0, "liquidity": idle})

        frame = pd.DataFrame(rows).set_index("strategy")
        total = frame["balance"].sum()
        frame["weight"] = frame["balance"] / total if total > 0 else 0.0
        return frame

    def conservation_report(self) -> Dict[str, int]:
        """Snapshot of the quantities the ledger invariants relate."""
        holders = self.shares.holders()
        strategies_total = sum(b.balance_of() for b in self.strategies)
        return {
            "idle": self.idle_balance(),
            "strategies": strategies_total,
            "total_assets": self.total_assets(),
            "total_shares": self.total_shares,
            "holder_shares": sum(holders.values()),
        }

    # ------------------------------------------------------------------
    # Share ledger
    # ------------------------------------------------------------------

    def deposit(self, caller: str, assets: int) -> int:
        """Pull ``assets`` from caller and mint shares to caller.

        Requires ``caller`` to have approved the vault on the asset ledger.

        Returns:
            Shares minted

        Raises:
            InvalidAmountError: If assets is not positive or mints nothing
            InsufficientAllowanceError / InsufficientBalanceError: From the
                asset ledger, before any share is minted
        """
        shares = self.preview_deposit(assets)

        self.asset.transfer_from(self.address, caller, self.address, assets)
        self.shares.mint(self.address, caller, shares)

        log_with_context(
            logger, "info", "Vault deposit",
            vault=self.name, caller=caller, assets=assets, shares=shares,
        )
        emit(
            self.events, VaultEventType.VAULT_DEPOSIT,
            vault=self.name, caller=caller, assets=assets, shares=shares,
        )

        if self.deploy_on_deposit and self.strategies:
            self.deploy_idle()

        return shares

    def redeem(self, caller: str, shares: int) -> int:
        """Burn ``shares`` of caller and pay out their assets.

        Assets come from the idle balance first, then from strategies:
        pro-rata to their balances, capped by liquidity, with any
        remainder filled in strategy order.

        Returns:
            Assets paid to caller

        Raises:
            InsufficientBalanceError: If caller holds fewer shares
            InsufficientLiquidityError: If idle plus strategy liquidity
                cannot cover the payout (nothing changes)
        """
        held = self.balance_of(caller)
        if shares > held:
            raise InsufficientBalanceError(f"{caller} holds {held} shares, redeeming {shares}")

        assets = self.preview_redeem(shares)
        if assets == 0:
            raise InvalidAmountError(f"redeeming {shares} shares pays zero assets")

        shortfall = max(0, assets - self.idle_balance())
        pulls = self._plan_pulls(shortfall)
        if sum(pulls) < shortfall:
            raise InsufficientLiquidityError(
                f"{self.name} needs {shortfall} from strategies, only {sum(pulls)} is liquid"
            )

        self.shares.burn(self.address, caller, shares)
        for bridge, pull in zip(self.strategies, pulls):
            if pull > 0:
                bridge.withdraw(self.address, pull)
        self.asset.transfer(self.address, caller, assets)

        log_with_context(
            logger, "info", "Vault redeem",
            vault=self.name, caller=caller, shares=shares, assets=assets,
        )
        emit(
            self.events, VaultEventType.VAULT_REDEEM,
            vault=self.name, caller=caller, shares=shares, assets=assets,
        )
        return assets

    def approve(self, owner: str, spender: str, shares: int) -> bool:
        """Let ``spender`` pull up to ``shares`` of owner's shares."""
        return self.shares.approve(owner, spender, shares)

    def transfer(self, sender: str, to: str, shares: int) -> bool:
        return self.shares.transfer(sender, to, shares)

    def _plan_pulls(self, amount: int) -> List[int]:
        if amount <= 0:
            return [0] * len(self.strategies)
        balances = [b.balance_of() for b in self.strategies]
        return plan_strategy_pulls(amount, balances, self._liquidity_caps())

    # ------------------------------------------------------------------
    # Allocation
    # ------------------------------------------------------------------

    def rebalance(self) -> Optional[RebalanceRecord]:
        """Move capital toward APY-weighted targets.

        No-op (returns None) when there is nothing to allocate or when
        every strategy sits within ``min_rebalance_gap_bps`` of its target.
        Over-allocated strategies release what they can; illiquid ones are
        partially drained or skipped rather than failing the operation.

        Returns:
            RebalanceRecord describing the moves, or None
        """
        if self.exited:
            logger.debug("Rebalance skipped for %s: vault is exited", self.name)
            return None

        total_assets = self.total_assets()
        if not self.strategies or total_assets == 0:
            return None

        balances = [b.balance_of() for b in self.strategies]
        scores = score_strategies(balances, [b.get_apy() for b in self.strategies])
        targets = target_allocations(total_assets, scores)
        gaps = allocation_gaps_bps(total_assets, balances, targets)
        max_gap = max(gaps)

        if not should_rebalance(gaps, self.min_rebalance_gap_bps):
            logger.debug(
                "Rebalance skipped for %s: max gap %d bps <= %d bps",
                self.name,
                max_gap,
                self.min_rebalance_gap_bps,
            )
            return None

        moves: List[RebalanceMove] = []
        caps = self._liquidity_caps()
        for bridge, balance, target, cap in zip(self.strategies, balances, targets, caps):
            surplus = balance - target
            if surplus <= 0:
                continue
            amount = min(surplus, cap)
            if amount < surplus:
                logger.warning(
                    "Partial rebalance withdraw from %s: %d of %d surplus is liquid",
                    bridge.name,
                    amount,
                    surplus,
                )
            if amount > 0:
                bridge.withdraw(self.address, amount)
                moves.append(RebalanceMove(bridge.name, -amount, "over target"))

        moves.extend(self._fill_deficits(targets))

        record = RebalanceRecord(
            timestamp=self.clock.now(),
            total_assets=self.total_assets(),
            targets={b.name: t for b, t in zip(self.strategies, targets)},
            max_gap_bps=max_gap,
            moves=moves,
            equal_weight=sum(scores) == 0,
        )
        self.rebalance_history.append(record)

        log_with_context(
            logger, "info", "Vault rebalanced",
            vault=self.name, max_gap_bps=max_gap,
            withdrawn=record.withdrawn, deposited=record.deposited,
            total_assets=record.total_assets,
        )
        emit(
            self.events, VaultEventType.REBALANCED,
            vault=self.name, max_gap_bps=max_gap, total_assets=record.total_assets,
            moves={m.strategy: m.amount for m in moves},
        )
        return record

    def deploy_idle(self) -> Optional[RebalanceRecord]:
        """Route idle assets into under-allocated strategies.

        The deposit leg of a rebalance, without the gap threshold and
        without withdrawing from anyone. With no prior allocation the idle
        balance is split evenly.
        """
        idle = self.idle_balance()
        if self.exited or not self.strategies or idle == 0:
            return None

        total_assets = self.total_assets()
        balances = [b.balance_of() for b in self.strategies]
        scores = score_strategies(balances, [b.get_apy() for b in self.strategies])
        targets = target_allocations(total_assets, scores)

        moves = self._fill_deficits(targets)
        if not moves:
            return None

        record = RebalanceRecord(
            timestamp=self.clock.now(),
            total_assets=self.total_assets(),
            targets={b.name: t for b, t in zip(self.strategies, targets)},
            max_gap_bps=max(allocation_gaps_bps(total_assets, balances, targets)),
            moves=moves,
            equal_weight=sum(scores) == 0,
        )
        self.rebalance_history.append(record)
        emit(
            self.events, VaultEventType.IDLE_DEPLOYED,
            vault=self.name, deployed=record.deposited,
        )
        return record

    def _fill_deficits(self, targets: List[int]) -> List[RebalanceMove]:
        deficits = [t - b.balance_of() for b, t in zip(self.strategies, targets)]
        fills = plan_deficit_fills(self.idle_balance(), deficits)

        moves = []
        for bridge, fill in zip(self.strategies, fills):
            if fill <= 0:
                continue
            self.asset.transfer(self.address, bridge.address, fill)
            bridge.deposit(self.address, fill)
            moves.append(RebalanceMove(bridge.name, fill, "under target"))
        return moves

    def compound(self) -> CompoundRecord:
        """Harvest every strategy and take the performance fee.

        The fee is minted as new shares to ``fee_recipient``, sized so they
        are worth exactly the fee at the post-harvest share price. Harvested
        interest stays idle in the vault. Calling again before any new
        interest accrues harvests nothing and mints nothing.

        Returns:
            CompoundRecord (appended to history only when something was harvested)
        """
        harvested = {b.name: b.harvest(self.address) for b in self.strategies}
        total_harvested = sum(harvested.values())

        fee_assets = total_harvested * self.performance_fee_bps // BPS_DENOMINATOR
        fee_shares = 0
        total_shares = self.total_shares
        backing = self.total_assets() - fee_assets
        if fee_assets > 0 and total_shares > 0 and backing > 0:
            fee_shares = fee_assets * total_shares // backing
            if fee_shares > 0:
                self.shares.mint(self.address, self.fee_recipient, fee_shares)

        record = CompoundRecord(
            timestamp=self.clock.now(),
            harvested=harvested,
            fee_assets=fee_assets,
            fee_shares=fee_shares,
            total_assets=self.total_assets(),
            share_price=self.share_price(),
        )

        if total_harvested > 0:
            self.compound_history.append(record)
            log_with_context(
                logger, "info", "Vault compounded",
                vault=self.name, harvested=total_harvested,
                fee_assets=fee_assets, fee_shares=fee_shares,
                share_price=f"{record.share_price:.6f}",
            )
            emit(
                self.events, VaultEventType.COMPOUNDED,
                vault=self.name, harvested=harvested,
                fee_assets=fee_assets, fee_shares=fee_shares,
            )
        return record

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    def add_strategy(self, caller: str, bridge: AllocationBridge) -> int:
        """Register a bridge; returns its index.

        Raises:
            UnauthorizedError: If caller is not the owner
            DuplicateOrUnknownStrategyError: If the bridge is already
                registered, owned by another vault or manages another asset
        """
        self._only_owner(caller)

        if any(b is bridge or b.address == bridge.address for b in self.strategies):
            raise DuplicateOrUnknownStrategyError(f"{bridge.name} is already registered")
        if any(b.venue.address == bridge.venue.address for b in self.strategies):
            raise DuplicateOrUnknownStrategyError(
                f"{bridge.name} wraps {bridge.venue.address}, which another strategy already uses"
            )
        if bridge.owner != self.address:
            raise DuplicateOrUnknownStrategyError(
                f"{bridge.name} is owned by {bridge.owner}, not {self.address}"
            )
        if bridge.asset is not self.asset:
            raise DuplicateOrUnknownStrategyError(
                f"{bridge.name} manages {bridge.asset.symbol}, vault manages {self.asset.symbol}"
            )
        if len(self.strategies) >= self.max_strategies:
            raise DuplicateOrUnknownStrategyError(
                f"{self.name} already has {self.max_strategies} strategies"
            )

        self.strategies.append(bridge)
        logger.info("Strategy %s added to %s", bridge.name, self.name)
        emit(self.events, VaultEventType.STRATEGY_ADDED, vault=self.name, strategy=bridge.name)
        return len(self.strategies) - 1

    def remove_strategy(self, caller: str, index: int) -> int:
        """Liquidate and unregister the strategy at ``index``.

        Indices of the remaining strategies may shift; an index is only
        meaningful within the call it was read for.

        Returns:
            Assets recovered into the idle balance

        Raises:
            DuplicateOrUnknownStrategyError: If index is out of range
            InsufficientLiquidityError: If the position cannot be fully
                liquidated (strategy stays registered)
        """
        self._only_owner(caller)
        if not 0 <= index < len(self.strategies):
            raise DuplicateOrUnknownStrategyError(
                f"no strategy at index {index} ({len(self.strategies)} registered)"
            )

        bridge = self.strategies[index]
        recovered = bridge.withdraw_all(self.address)
        self.strategies.pop(index)

        logger.info("Strategy %s removed from %s, recovered %d", bridge.name, self.name, recovered)
        emit(
            self.events, VaultEventType.STRATEGY_REMOVED,
            vault=self.name, strategy=bridge.name, recovered=recovered,
        )
        return recovered

    def emergency_exit(self, caller: str) -> Dict[str, object]:
        """Pull every liquid position back into the vault.

        Strategies that cannot be fully liquidated are left in place and
        reported. The vault stays exited until ``resume``: rebalance and idle
        deployment do nothing, and new deposits stay idle.

        Returns:
            Dict with ``recovered`` (int) and ``illiquid`` (list of names)
        """
        self._only_owner(caller)

        recovered = 0
        illiquid: List[str] = []
        for bridge in self.strategies:
            try:
                recovered += bridge.withdraw_all(self.address)
            except InsufficientLiquidityError as e:
                logger.warning("Emergency exit could not liquidate %s: %s", bridge.name, e)
                illiquid.append(bridge.name)

        self.exited = True

        logger.warning(
            "Emergency exit on %s: recovered %d, illiquid=%s", self.name, recovered, illiquid
        )
        emit(
            self.events, VaultEventType.EMERGENCY_EXIT,
            vault=self.name, recovered=recovered, illiquid=illiquid,
        )
        return {"recovered": recovered, "illiquid": illiquid}

    def resume(self, caller: str) -> None:
        """Leave the exited state; the next rebalance redeploys idle assets."""
        self._only_owner(caller)
        self.exited = False
        logger.info("Vault %s resumed allocation", self.name)

    def set_performance_fee(self, caller: str, fee_bps: int) -> None:
        self._only_owner(caller)
        if not 0 <= fee_bps <= BPS_DENOMINATOR:
            raise InvalidAmountError(f"performance fee must be in [0, 10000], got {fee_bps}")
        self.performance_fee_bps = fee_bps

    def set_fee_recipient(self, caller: str, recipient: str) -> None:
        self._only_owner(caller)
        if not recipient:
            raise InvalidAmountError("fee recipient must be set")
        self.fee_recipient = recipient

    def set_min_rebalance_gap(self, caller: str, gap_bps: int) -> None:
        self._only_owner(caller)
        if not 0 <= gap_bps <= BPS_DENOMINATOR:
            raise InvalidAmountError(f"rebalance gap must be in [0, 10000], got {gap_bps}")
        self.min_rebalance_gap_bps = gap_bps

    def set_deploy_on_deposit(self, caller: str, enabled: bool) -> None:
        self._only_owner(caller)
        self.deploy_on_deposit = bool(enabled)

    def _only_owner(self, caller: str) -> None:
        if caller != self.owner:
            raise UnauthorizedError(f"{caller} is not the owner of vault {self.name}")

    def __repr__(self) -> str:
        return (
            f"PooledVault(name={self.name!r}, strategies={len(self.strategies)}, "
            f"total_shares={self.total_shares})"
        )
