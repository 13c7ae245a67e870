"""User-friendly Engine API for building and driving a vault deployment.

This module wires the asset ledger, venues, bridges, per-tier vaults and
the batching router together from a YAML configuration, and offers the
small conveniences simulations need (funding accounts, injecting venue
yield, warping time, tabular snapshots).
"""

from typing import Dict, Optional

import pandas as pd

from yieldvault.bridge.allocation_bridge import AllocationBridge
from yieldvault.ledger.token import InMemoryToken
from yieldvault.router.batching_router import BatchingRouter
from yieldvault.utils.clock import ManualClock
from yieldvault.utils.config import Config, load_config
from yieldvault.utils.exceptions import ConfigurationError
from yieldvault.utils.logging import get_logger
from yieldvault.utils.logging_enhanced import VaultEventLogger
from yieldvault.vault.pooled_vault import PooledVault
from yieldvault.venues.base import YieldVenue
from yieldvault.venues.interest import VENUE_TYPES, FixedTermVenue

logger = get_logger(__name__)


class EngineAPI:
    """High-level API over one router and its tier vaults.

    Example:
        >>> api = EngineAPI(Config({
        ...     "tiers": {"low": {"venues": [
        ...         {"name": "aave", "type": "simple", "apy_bps": 500},
        ...         {"name": "comp", "type": "simple", "apy_bps": 500},
        ...     ]}},
        ... }))
        >>> api.fund("alice", 1_000)
        >>> api.queue_deposit("alice", 1_000, "low")
        >>> api.warp(api.router.batch_interval)
        >>> api.router.execute_batch_deposits("keeper", "low")
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        clock=None,
        event_logger: Optional[VaultEventLogger] = None,
    ):
        """Initialize EngineAPI.

        Args:
            config: Engine configuration (defaults to load_config())
            clock: Time source (defaults to a ManualClock at simulation.start_time)
            event_logger: Optional structured event sink shared by all components
        """
        self.config = config if config is not None else load_config()
        self.clock = clock or ManualClock(start=self.config.get("simulation.start_time", 0))
        self.events = event_logger

        self.owner = self.config.get("owner", "ops")
        self.asset = InMemoryToken(
            self.config.get("asset.symbol", "USDC"),
            minter=self.owner,
            decimals=self.config.get("asset.decimals", 6),
        )
        self.router = BatchingRouter(
            self.asset,
            owner=self.owner,
            clock=self.clock,
            config=self.config.section("router"),
            event_logger=event_logger,
        )

        self.vaults: Dict[str, PooledVault] = {}
        self.venues: Dict[str, YieldVenue] = {}
        self.bridges: Dict[str, AllocationBridge] = {}

        tiers = self.config.section("tiers")
        if not tiers:
            raise ConfigurationError("at least one tier must be configured")
        for tier, tier_config in tiers.items():
            self._build_tier(tier, tier_config or {})

        logger.info(
            "EngineAPI initialized with tiers %s and %d venues",
            list(self.vaults),
            len(self.venues),
        )

    def _build_tier(self, tier: str, tier_config: Dict) -> None:
        vault_config = {**self.config.section("vault"), **(tier_config.get("vault") or {})}
        dust_threshold = vault_config.pop("dust_threshold", 1)

        vault = PooledVault(
            tier,
            self.asset,
            owner=self.owner,
            clock=self.clock,
            config=vault_config,
            event_logger=self.events,
        )

        for venue_config in tier_config.get("venues") or []:
            venue = self.build_venue(tier, venue_config)
            bridge = AllocationBridge(
                venue.name, venue, owner=vault.address, dust_threshold=dust_threshold
            )
            vault.add_strategy(self.owner, bridge)
            self.venues[venue.name] = venue
            self.bridges[venue.name] = bridge

        self.router.set_vault(self.owner, tier, vault)
        self.vaults[tier] = vault

    def build_venue(self, tier: str, venue_config: Dict) -> YieldVenue:
        """Create a venue from its configuration entry.

        Raises:
            ConfigurationError: On unknown type or missing fields
        """
        kind = venue_config.get("type", "simple")
        venue_cls = VENUE_TYPES.get(kind)
        if venue_cls is None:
            raise ConfigurationError(
                f"unknown venue type {kind!r}, expected one of {sorted(VENUE_TYPES)}"
            )
        if "name" not in venue_config:
            raise ConfigurationError(f"venue in tier {tier} is missing a name")

        name = f"{tier}-{venue_config['name']}"
        if name in self.venues:
            raise ConfigurationError(f"duplicate venue {name}")
        apy_bps = int(venue_config.get("apy_bps", 0))

        if venue_cls is FixedTermVenue:
            term = venue_config.get("term_seconds")
            if term is None:
                raise ConfigurationError(f"fixed term venue {name} needs term_seconds")
            return FixedTermVenue(
                name, self.asset, self.clock, apy_bps, self.owner,
                maturity=self.clock.now() + int(term),
            )
        return venue_cls(name, self.asset, self.clock, apy_bps, self.owner)

    # ------------------------------------------------------------------
    # Simulation helpers
    # ------------------------------------------------------------------

    def fund(self, account: str, amount: int) -> None:
        """Mint ``amount`` of the asset to ``account``."""
        self.asset.mint(self.owner, account, amount)

    def inject_liquidity(self, venue_name: str, amount: int) -> None:
        """Mint assets straight into a venue, standing in for external yield."""
        venue = self.venues.get(venue_name)
        if venue is None:
            raise ConfigurationError(f"unknown venue {venue_name}")
        self.asset.mint(self.owner, venue.address, amount)

    def top_up_venues(self) -> Dict[str, int]:
        """Mint into each venue whatever its bridge position exceeds its balance by.

        Keeps accrued interest withdrawable in simulations. Fixed term
        venues are topped up too; they still stay locked until maturity.

        Returns:
            Amount minted per venue (venues already covered are omitted)
        """
        minted = {}
        for name, bridge in self.bridges.items():
            venue = self.venues[name]
            shortfall = bridge.balance_of() - self.asset.balance_of(venue.address)
            if shortfall > 0:
                self.asset.mint(self.owner, venue.address, shortfall)
                minted[name] = shortfall
        return minted

    def set_venue_apy(self, venue_name: str, apy_bps: int) -> None:
        venue = self.venues.get(venue_name)
        if venue is None:
            raise ConfigurationError(f"unknown venue {venue_name}")
        venue.set_apy(self.owner, apy_bps)

    def queue_deposit(self, account: str, amount: int, tier: str):
        """Approve the router and queue a deposit in one step."""
        self.asset.approve(account, self.router.address, amount)
        return self.router.deposit(account, amount, tier)

    def queue_withdraw(self, account: str, shares: int, tier: str):
        """Approve the router on the tier's shares and queue a withdrawal."""
        self.vaults[tier].approve(account, self.router.address, shares)
        return self.router.withdraw(account, shares, tier)

    def warp(self, seconds: int) -> int:
        if not isinstance(self.clock, ManualClock):
            raise ConfigurationError("warp needs a ManualClock")
        return self.clock.warp(seconds)

    def snapshot(self) -> pd.DataFrame:
        """One row per tier with vault totals and queue sizes."""
        rows = []
        for tier, vault in self.vaults.items():
            rows.append(
                {
                    "tier": tier,
                    "total_assets": vault.total_assets(),
                    "total_shares": vault.total_shares,
                    "share_price": vault.share_price(),
                    "idle": vault.idle_balance(),
                    "strategies": len(vault.strategies),
                    "pending_deposits": self.router.total_pending_deposits(tier),
                    "pending_withdraws": self.router.total_pending_withdraws(tier),
                }
            )
        return pd.DataFrame(rows).set_index("tier")
