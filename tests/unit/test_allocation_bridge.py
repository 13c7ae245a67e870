"""Unit tests for AllocationBridge."""

import pytest

from yieldvault.bridge.allocation_bridge import AllocationBridge
from yieldvault.ledger.token import InMemoryToken
from yieldvault.utils.clock import ManualClock
from yieldvault.utils.exceptions import (
    InsufficientBalanceError,
    InsufficientLiquidityError,
    InvalidAmountError,
    UnauthorizedError,
)
from yieldvault.venues.base import SECONDS_PER_YEAR
from yieldvault.venues.interest import FixedTermVenue, SimpleInterestVenue

VAULT = "vault:low"
AMOUNT = 1_000_000_000


@pytest.fixture
def clock():
    return ManualClock(start=0)


@pytest.fixture
def usdc():
    token = InMemoryToken("USDC", minter="ops")
    token.mint("ops", VAULT, AMOUNT)
    return token


@pytest.fixture
def venue(usdc, clock):
    return SimpleInterestVenue("aave", usdc, clock, apy_bps=1000, admin="ops")


@pytest.fixture
def bridge(venue):
    return AllocationBridge("aave", venue, owner=VAULT)


def fund_and_deposit(bridge, usdc, amount=AMOUNT):
    """Mirror what the vault does: transfer first, then deposit."""
    usdc.transfer(VAULT, bridge.address, amount)
    bridge.deposit(VAULT, amount)


class TestBridgeInit:
    """Test construction."""

    def test_requires_venue(self) -> None:
        """Test objects that are not venues are rejected."""
        with pytest.raises(TypeError, match="does not implement YieldVenue"):
            AllocationBridge("bad", object(), owner=VAULT)

    def test_negative_dust_threshold(self, venue) -> None:
        """Test dust threshold must be non-negative."""
        with pytest.raises(ValueError, match="dust_threshold"):
            AllocationBridge("aave", venue, owner=VAULT, dust_threshold=-1)

    def test_attributes(self, bridge, usdc) -> None:
        """Test derived address and asset."""
        assert bridge.address == "bridge:aave"
        assert bridge.asset is usdc
        assert bridge.get_apy() == 1000


class TestBridgeDeposit:
    """Test deposits."""

    def test_deposit(self, bridge, usdc) -> None:
        """Test funds end up at the venue, not in the bridge."""
        fund_and_deposit(bridge, usdc)

        assert bridge.balance_of() == AMOUNT
        assert usdc.balance_of(bridge.address) == 0
        assert usdc.balance_of("venue:aave") == AMOUNT

    def test_deposit_requires_owner(self, bridge, usdc) -> None:
        """Test only the owning vault may deposit."""
        usdc.transfer(VAULT, bridge.address, AMOUNT)
        with pytest.raises(UnauthorizedError):
            bridge.deposit("vault:other", AMOUNT)

    def test_deposit_unfunded(self, bridge) -> None:
        """Test depositing without transferring first fails."""
        with pytest.raises(InsufficientBalanceError, match="holds 0"):
            bridge.deposit(VAULT, AMOUNT)

    def test_deposit_zero(self, bridge) -> None:
        """Test zero deposits are rejected."""
        with pytest.raises(InvalidAmountError):
            bridge.deposit(VAULT, 0)


class TestBridgeWithdraw:
    """Test withdrawals."""

    def test_withdraw_pays_owner(self, bridge, usdc) -> None:
        """Test withdrawn funds go straight back to the vault."""
        fund_and_deposit(bridge, usdc)
        bridge.withdraw(VAULT, 400_000_000)

        assert usdc.balance_of(VAULT) == 400_000_000
        assert bridge.balance_of() == 600_000_000

    def test_withdraw_beyond_liquidity(self, bridge, usdc, clock) -> None:
        """Test unfunded interest cannot be withdrawn."""
        fund_and_deposit(bridge, usdc)
        clock.warp(SECONDS_PER_YEAR)

        with pytest.raises(InsufficientLiquidityError, match="can release 1000000000"):
            bridge.withdraw(VAULT, 1_100_000_000)
        assert bridge.balance_of() == 1_100_000_000


class TestBridgeHarvest:
    """Test interest realization."""

    def test_harvest_realizes_interest(self, bridge, usdc, clock) -> None:
        """Test harvest sends accrued interest to the owner."""
        fund_and_deposit(bridge, usdc)
        clock.warp(SECONDS_PER_YEAR)
        usdc.mint("ops", "venue:aave", 100_000_000)

        assert bridge.harvest(VAULT) == 100_000_000
        assert usdc.balance_of(VAULT) == 100_000_000
        assert bridge.balance_of() == AMOUNT

    def test_harvest_is_idempotent(self, bridge, usdc, clock) -> None:
        """Test a second harvest at the same time realizes nothing."""
        fund_and_deposit(bridge, usdc)
        clock.warp(SECONDS_PER_YEAR)
        usdc.mint("ops", "venue:aave", 100_000_000)
        bridge.harvest(VAULT)

        assert bridge.harvest(VAULT) == 0
        assert usdc.balance_of(VAULT) == 100_000_000

    def test_harvest_locked_venue(self, usdc, clock) -> None:
        """Test harvesting a locked venue realizes nothing and keeps interest pending."""
        venue = FixedTermVenue("term", usdc, clock, 1000, "ops", maturity=SECONDS_PER_YEAR)
        bridge = AllocationBridge("term", venue, owner=VAULT)
        fund_and_deposit(bridge, usdc)
        clock.warp(SECONDS_PER_YEAR // 2)

        assert bridge.harvest(VAULT) == 0
        assert venue.pending_interest(bridge.address) == 50_000_000

    def test_harvest_requires_owner(self, bridge) -> None:
        """Test only the owner harvests."""
        with pytest.raises(UnauthorizedError):
            bridge.harvest("keeper")


class TestBridgeWithdrawAll:
    """Test full liquidation."""

    def test_withdraw_all(self, bridge, usdc, clock) -> None:
        """Test the whole position returns to the owner."""
        fund_and_deposit(bridge, usdc)
        clock.warp(SECONDS_PER_YEAR)
        usdc.mint("ops", "venue:aave", 100_000_000)

        assert bridge.withdraw_all(VAULT) == 1_100_000_000
        assert bridge.balance_of() == 0
        assert usdc.balance_of(VAULT) == 1_100_000_000

    def test_withdraw_all_illiquid(self, bridge, usdc, clock) -> None:
        """Test more than dust left behind raises and moves nothing."""
        fund_and_deposit(bridge, usdc)
        clock.warp(SECONDS_PER_YEAR)

        with pytest.raises(InsufficientLiquidityError):
            bridge.withdraw_all(VAULT)
        assert bridge.balance_of() == 1_100_000_000
        assert usdc.balance_of(VAULT) == 0

    def test_withdraw_all_tolerates_dust(self, venue, usdc, clock) -> None:
        """Test a residual within the dust threshold is left behind."""
        bridge = AllocationBridge("aave", venue, owner=VAULT, dust_threshold=10)
        fund_and_deposit(bridge, usdc)
        clock.warp(1)  # accrues 3 units of unfunded interest

        assert bridge.withdraw_all(VAULT) == AMOUNT
        assert bridge.balance_of() == 3
