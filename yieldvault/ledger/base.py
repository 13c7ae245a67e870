"""Abstract base class for fungible asset ledgers.

The engine never touches raw balances it does not own: every movement of
the underlying asset or of vault shares goes through this interface.
Accounts are plain string addresses.
"""

from abc import ABC, abstractmethod


class AssetLedger(ABC):
    """Contract for a fungible token ledger with allowances.

    Implementations raise ``InsufficientBalanceError`` and
    ``InsufficientAllowanceError`` instead of returning False, and a failed
    call changes nothing.

    Example:
        >>> token = InMemoryToken("USDC", minter="treasury")
        >>> token.mint("treasury", "alice", 1_000)
        >>> token.approve("alice", "router", 500)
        >>> token.transfer_from("router", "alice", "router", 500)
        True
    """

    symbol: str

    @abstractmethod
    def balance_of(self, account: str) -> int:
        """Return the balance held by ``account``."""
        pass

    @abstractmethod
    def allowance(self, owner: str, spender: str) -> int:
        """Return how much ``spender`` may still pull from ``owner``."""
        pass

    @abstractmethod
    def total_supply(self) -> int:
        pass

    @abstractmethod
    def transfer(self, sender: str, to: str, amount: int) -> bool:
        """Move ``amount`` from ``sender`` to ``to``.

        Raises:
            InvalidAmountError: If amount is negative
            InsufficientBalanceError: If sender holds less than amount
        """
        pass

    @abstractmethod
    def transfer_from(self, spender: str, owner: str, to: str, amount: int) -> bool:
        """Move ``amount`` from ``owner`` to ``to`` using spender's allowance.

        Raises:
            InsufficientAllowanceError: If the allowance is below amount
            InsufficientBalanceError: If owner holds less than amount
        """
        pass

    @abstractmethod
    def approve(self, owner: str, spender: str, amount: int) -> bool:
        """Set the allowance of ``spender`` over ``owner``'s balance."""
        pass
