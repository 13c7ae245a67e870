"""Yield venue capability interface and interest accounting.

A venue is an opaque interest-bearing account. The engine only relies on
the ``YieldVenue`` protocol below; concrete venues (simple interest,
compounding, fixed term) are chosen when a bridge is constructed.

Accrual model:
    interest = base * apy_bps * elapsed // (10000 * SECONDS_PER_YEAR)

applied lazily at every interaction and checkpointed with a last-update
timestamp. A rate change only affects interest accrued after the
checkpoint taken when the rate is changed.
"""

from dataclasses import dataclass, replace
from typing import Dict, Optional, Protocol, runtime_checkable

from yieldvault.ledger.base import AssetLedger
from yieldvault.utils.exceptions import (
    InsufficientLiquidityError,
    InvalidAmountError,
)
from yieldvault.utils.logging import get_logger

logger = get_logger(__name__)

SECONDS_PER_YEAR = 365 * 24 * 60 * 60
BPS_DENOMINATOR = 10_000


def accrued_interest(base: int, apy_bps: int, elapsed: int) -> int:
    """Simple interest on ``base`` over ``elapsed`` seconds, floored."""
    if base <= 0 or apy_bps <= 0 or elapsed <= 0:
        return 0
    return base * apy_bps * elapsed // (BPS_DENOMINATOR * SECONDS_PER_YEAR)


@dataclass
class VenuePosition:
    """One account's position at a venue.

    Attributes:
        principal: Supplied amount still at the venue
        interest: Checkpointed, not yet withdrawn interest
        last_update: Timestamp of the last checkpoint
    """

    principal: int = 0
    interest: int = 0
    last_update: int = 0

    @property
    def value(self) -> int:
        return self.principal + self.interest


@runtime_checkable
class YieldVenue(Protocol):
    """Capability interface every venue variant provides."""

    name: str
    address: str
    asset: AssetLedger

    def supply(self, caller: str, amount: int) -> None: ...

    def withdraw(self, caller: str, amount: int) -> int: ...

    def pending_interest(self, account: str) -> int: ...

    def principal(self, account: str) -> int: ...

    def balance_of(self, account: str) -> int: ...

    def available_liquidity(self, account: str) -> int: ...

    def get_apy(self) -> int: ...


class VenueAccounts:
    """Per-account positions of a single venue.

    Shared bookkeeping used by composition in every venue variant. Tokens
    really move: supplied assets sit in the venue's ledger balance and
    interest is paid out of that balance, so a venue whose balance was not
    topped up with external yield becomes illiquid.

    Args:
        asset: Ledger of the underlying asset
        address: The venue's own address on that ledger
        clock: Object with ``now() -> int``
        apy_bps: Initial annual rate in basis points
        compounding: Accrue on principal plus checkpointed interest
        accrual_end: Timestamp after which no further interest accrues
    """

    def __init__(
        self,
        asset: AssetLedger,
        address: str,
        clock,
        apy_bps: int,
        compounding: bool = False,
        accrual_end: Optional[int] = None,
    ):
        if apy_bps < 0:
            raise ValueError(f"apy_bps must be non-negative, got {apy_bps}")

        self.asset = asset
        self.address = address
        self.clock = clock
        self.apy_bps = apy_bps
        self.compounding = compounding
        self.accrual_end = accrual_end

        self._positions: Dict[str, VenuePosition] = {}

    def projected(self, account: str) -> VenuePosition:
        """Position as it would look after a checkpoint now (no mutation)."""
        position = self._positions.get(account)
        if position is None:
            return VenuePosition(last_update=self.clock.now())
        return self._accrue(replace(position))

    def checkpoint(self, account: str) -> VenuePosition:
        position = self._positions.get(account)
        if position is None:
            position = VenuePosition(last_update=self.clock.now())
            self._positions[account] = position
            return position
        return self._accrue(position)

    def checkpoint_all(self) -> None:
        for position in self._positions.values():
            self._accrue(position)

    def set_apy(self, apy_bps: int) -> None:
        if apy_bps < 0:
            raise ValueError(f"apy_bps must be non-negative, got {apy_bps}")
        self.checkpoint_all()
        self.apy_bps = apy_bps

    def liquidity(self) -> int:
        return self.asset.balance_of(self.address)

    def supply(self, caller: str, amount: int) -> None:
        if amount <= 0:
            raise InvalidAmountError(f"supply amount must be positive, got {amount}")

        position = self.checkpoint(caller)
        self.asset.transfer_from(self.address, caller, self.address, amount)
        position.principal += amount

        logger.debug("%s supplied %d to %s", caller, amount, self.address)

    def withdraw(self, caller: str, amount: int) -> int:
        """Pay ``amount`` to ``caller``, taken from interest first."""
        if amount <= 0:
            raise InvalidAmountError(f"withdraw amount must be positive, got {amount}")

        projected = self.projected(caller)
        if amount > projected.value:
            raise InvalidAmountError(
                f"{caller} has {projected.value} at {self.address}, requested {amount}"
            )
        liquidity = self.liquidity()
        if amount > liquidity:
            raise InsufficientLiquidityError(
                f"{self.address} can pay {liquidity}, requested {amount}"
            )

        position = self.checkpoint(caller)
        from_interest = min(amount, position.interest)
        position.interest -= from_interest
        position.principal -= amount - from_interest
        self.asset.transfer(self.address, caller, amount)

        logger.debug("%s withdrew %d from %s", caller, amount, self.address)
        return amount

    def _accrue(self, position: VenuePosition) -> VenuePosition:
        now = self.clock.now()
        until = now if self.accrual_end is None else min(now, self.accrual_end)
        elapsed = until - position.last_update

        if elapsed > 0:
            base = position.value if self.compounding else position.principal
            position.interest += accrued_interest(base, self.apy_bps, elapsed)
        position.last_update = max(position.last_update, until)
        return position
