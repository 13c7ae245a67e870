"""Allocation bridge between a vault and one yield venue.

The bridge translates the vault's generic deposit/withdraw/harvest calls
into the venue's calling convention. Only the owning vault may drive it,
and it never keeps an idle balance between calls: everything it receives
is either supplied to the venue or sent back to the owner in the same call.
"""

from yieldvault.utils.exceptions import (
    InsufficientBalanceError,
    InsufficientLiquidityError,
    InvalidAmountError,
    UnauthorizedError,
)
from yieldvault.utils.logging import get_logger, log_with_context
from yieldvault.venues.base import YieldVenue

logger = get_logger(__name__)


class AllocationBridge:
    """Owner-gated adapter around a ``YieldVenue``.

    Configuration:
        dust_threshold: Residual value (smallest units) tolerated when a
            position is fully liquidated (default 1)

    Example:
        >>> bridge = AllocationBridge("aave-usdc", venue, owner=vault.address)
        >>> vault.add_strategy("ops", bridge)
        >>> bridge.balance_of()
        0
    """

    def __init__(self, name: str, venue: YieldVenue, owner: str, dust_threshold: int = 1):
        """Initialize bridge.

        Args:
            name: Strategy name, also used to derive the bridge address
            venue: The wrapped venue
            owner: Address of the vault allowed to call mutating methods
            dust_threshold: Residual tolerated by withdraw_all
        """
        if not isinstance(venue, YieldVenue):
            raise TypeError(f"{type(venue).__name__} does not implement YieldVenue")
        if dust_threshold < 0:
            raise ValueError(f"dust_threshold must be non-negative, got {dust_threshold}")

        self.name = name
        self.address = f"bridge:{name}"
        self.venue = venue
        self.asset = venue.asset
        self.owner = owner
        self.dust_threshold = dust_threshold

    def deposit(self, caller: str, amount: int) -> None:
        """Forward ``amount`` already transferred to the bridge into the venue.

        Raises:
            UnauthorizedError: If caller is not the owning vault
            InvalidAmountError: If amount is not positive
            InsufficientBalanceError: If the bridge was not funded first
        """
        self._only_owner(caller)
        if amount <= 0:
            raise InvalidAmountError(f"deposit amount must be positive, got {amount}")

        held = self.asset.balance_of(self.address)
        if held < amount:
            raise InsufficientBalanceError(
                f"{self.address} holds {held}, cannot deposit {amount}"
            )

        self.asset.approve(self.address, self.venue.address, amount)
        self.venue.supply(self.address, amount)

        log_with_context(logger, "debug", "Bridge deposit", bridge=self.name, amount=amount)

    def withdraw(self, caller: str, amount: int) -> int:
        """Pull ``amount`` from the venue and send it to the owner.

        Raises:
            InsufficientLiquidityError: If the venue cannot pay it right now
        """
        self._only_owner(caller)
        if amount <= 0:
            raise InvalidAmountError(f"withdraw amount must be positive, got {amount}")

        available = self.available_liquidity()
        if amount > available:
            raise InsufficientLiquidityError(
                f"{self.name} can release {available}, requested {amount}"
            )

        self.venue.withdraw(self.address, amount)
        self.asset.transfer(self.address, self.owner, amount)

        log_with_context(logger, "debug", "Bridge withdraw", bridge=self.name, amount=amount)
        return amount

    def harvest(self, caller: str) -> int:
        """Realize interest accrued since the last harvest.

        The realized amount is sent to the owner. When the venue is only
        partly liquid, the liquid part is realized and the rest stays
        pending for a later harvest, so nothing is counted twice.

        Returns:
            Realized interest (0 when nothing new accrued)
        """
        self._only_owner(caller)

        pending = self.venue.pending_interest(self.address)
        realizable = min(pending, self.available_liquidity())
        if realizable <= 0:
            return 0

        self.venue.withdraw(self.address, realizable)
        self.asset.transfer(self.address, self.owner, realizable)

        if realizable < pending:
            logger.warning(
                "Partial harvest on %s: realized %d of %d pending",
                self.name,
                realizable,
                pending,
            )
        return realizable

    def withdraw_all(self, caller: str) -> int:
        """Liquidate the entire position to the owner.

        Raises:
            InsufficientLiquidityError: If more than dust would remain

        Returns:
            Amount sent to the owner
        """
        self._only_owner(caller)

        balance = self.balance_of()
        available = self.available_liquidity()
        residual = balance - available
        if residual > self.dust_threshold:
            raise InsufficientLiquidityError(
                f"{self.name} can release {available} of {balance}"
            )

        if available > 0:
            self.venue.withdraw(self.address, available)
            self.asset.transfer(self.address, self.owner, available)

        if residual > 0:
            logger.info("%s left %d dust at %s", self.name, residual, self.venue.address)
        return available

    def balance_of(self) -> int:
        """Current value at the venue, including unrealized interest."""
        return self.venue.balance_of(self.address)

    def available_liquidity(self) -> int:
        return self.venue.available_liquidity(self.address)

    def get_apy(self) -> int:
        """Venue rate in basis points, used only to rank bridges."""
        return self.venue.get_apy()

    def _only_owner(self, caller: str) -> None:
        if caller != self.owner:
            raise UnauthorizedError(f"{caller} is not the owner of bridge {self.name}")

    def __repr__(self) -> str:
        return f"AllocationBridge(name={self.name!r}, venue={self.venue.address!r})"
