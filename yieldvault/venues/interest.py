"""Concrete yield venue variants.

Each variant satisfies the ``YieldVenue`` protocol and keeps its positions
in a ``VenueAccounts`` book. ``InterestVenue`` carries the shared supply,
withdraw and reporting calls; the variants differ only in how interest
accrues and when principal may leave:

- SimpleInterestVenue: interest on principal only
- CompoundingVenue: interest on principal plus checkpointed interest
- FixedTermVenue: simple interest until maturity, no withdrawals before it
"""

from yieldvault.ledger.base import AssetLedger
from yieldvault.utils.exceptions import InsufficientLiquidityError, UnauthorizedError
from yieldvault.utils.logging import get_logger
from yieldvault.venues.base import VenueAccounts

logger = get_logger(__name__)


class InterestVenue:
    """Shared behavior for venues backed by a ``VenueAccounts`` book.

    Subclasses set ``kind`` and pass their accrual options (``compounding``,
    ``accrual_end``) through to the book.
    """

    kind = "base"

    def __init__(
        self,
        name: str,
        asset: AssetLedger,
        clock,
        apy_bps: int,
        admin: str,
        **accrual,
    ):
        self.name = name
        self.address = f"venue:{name}"
        self.asset = asset
        self.admin = admin
        self.clock = clock
        self._accounts = VenueAccounts(asset, self.address, clock, apy_bps, **accrual)

    def supply(self, caller: str, amount: int) -> None:
        self._accounts.supply(caller, amount)

    def withdraw(self, caller: str, amount: int) -> int:
        return self._accounts.withdraw(caller, amount)

    def pending_interest(self, account: str) -> int:
        return self._accounts.projected(account).interest

    def principal(self, account: str) -> int:
        return self._accounts.projected(account).principal

    def balance_of(self, account: str) -> int:
        return self._accounts.projected(account).value

    def available_liquidity(self, account: str) -> int:
        return min(self.balance_of(account), self._accounts.liquidity())

    def get_apy(self) -> int:
        return self._accounts.apy_bps

    def set_apy(self, caller: str, apy_bps: int) -> None:
        """Change the rate from now on (admin only)."""
        if caller != self.admin:
            raise UnauthorizedError(f"{caller} cannot administer {self.address}")
        self._accounts.set_apy(apy_bps)
        logger.info("%s APY set to %d bps", self.address, apy_bps)


class SimpleInterestVenue(InterestVenue):
    """Venue paying non-compounding interest on supplied principal.

    Example:
        >>> venue = SimpleInterestVenue("aave", usdc, clock, apy_bps=1000, admin="ops")
        >>> venue.get_apy()
        1000
    """

    kind = "simple"


class CompoundingVenue(InterestVenue):
    """Venue whose checkpointed interest itself earns interest.

    Compounding happens at checkpoint granularity: every supply, withdraw
    and rate change folds elapsed interest into the accrual base.
    """

    kind = "compounding"

    def __init__(self, name: str, asset: AssetLedger, clock, apy_bps: int, admin: str):
        super().__init__(name, asset, clock, apy_bps, admin, compounding=True)

    def poke(self, account: str) -> None:
        """Checkpoint ``account`` so its interest starts compounding."""
        self._accounts.checkpoint(account)


class FixedTermVenue(InterestVenue):
    """Venue locking all funds until a maturity timestamp.

    Interest accrues until maturity and stops afterwards. Before maturity
    the venue reports zero available liquidity and rejects withdrawals
    with ``InsufficientLiquidityError``.
    """

    kind = "fixed_term"

    def __init__(
        self,
        name: str,
        asset: AssetLedger,
        clock,
        apy_bps: int,
        admin: str,
        maturity: int,
    ):
        super().__init__(name, asset, clock, apy_bps, admin, accrual_end=maturity)
        self.maturity = maturity

    @property
    def matured(self) -> bool:
        return self.clock.now() >= self.maturity

    def withdraw(self, caller: str, amount: int) -> int:
        if not self.matured:
            raise InsufficientLiquidityError(
                f"{self.address} is locked until {self.maturity}"
            )
        return super().withdraw(caller, amount)

    def available_liquidity(self, account: str) -> int:
        if not self.matured:
            return 0
        return super().available_liquidity(account)

    def get_apy(self) -> int:
        # A matured term earns nothing more
        return 0 if self.matured else super().get_apy()


VENUE_TYPES = {
    venue_cls.kind: venue_cls
    for venue_cls in (SimpleInterestVenue, CompoundingVenue, FixedTermVenue)
}
