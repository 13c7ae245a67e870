"""In-memory fungible token.

Backs both the underlying asset in simulations and each vault's share
ledger. Minting and burning are restricted to the token's minter.
"""

from typing import Dict, Tuple

from yieldvault.ledger.base import AssetLedger
from yieldvault.utils.exceptions import (
    InsufficientAllowanceError,
    InsufficientBalanceError,
    InvalidAmountError,
    UnauthorizedError,
)
from yieldvault.utils.logging import get_logger

logger = get_logger(__name__)


class InMemoryToken(AssetLedger):
    """Dictionary-backed token ledger.

    Attributes:
        symbol: Token ticker
        minter: Address allowed to mint and burn

    Example:
        >>> usdc = InMemoryToken("USDC", minter="treasury")
        >>> usdc.mint("treasury", "alice", 1_000)
        >>> usdc.balance_of("alice")
        1000
    """

    def __init__(self, symbol: str, minter: str, decimals: int = 6):
        self.symbol = symbol
        self.minter = minter
        self.decimals = decimals

        self._balances: Dict[str, int] = {}
        self._allowances: Dict[Tuple[str, str], int] = {}
        self._total_supply = 0

    def balance_of(self, account: str) -> int:
        return self._balances.get(account, 0)

    def allowance(self, owner: str, spender: str) -> int:
        return self._allowances.get((owner, spender), 0)

    def total_supply(self) -> int:
        return self._total_supply

    def holders(self) -> Dict[str, int]:
        """Return a copy of all non-zero balances."""
        return {account: bal for account, bal in self._balances.items() if bal > 0}

    def transfer(self, sender: str, to: str, amount: int) -> bool:
        self._check_amount(amount)
        self._check_balance(sender, amount)
        self._move(sender, to, amount)
        return True

    def transfer_from(self, spender: str, owner: str, to: str, amount: int) -> bool:
        self._check_amount(amount)
        allowed = self.allowance(owner, spender)
        if allowed < amount:
            raise InsufficientAllowanceError(
                f"{spender} may pull {allowed} {self.symbol} from {owner}, requested {amount}"
            )
        self._check_balance(owner, amount)

        self._allowances[(owner, spender)] = allowed - amount
        self._move(owner, to, amount)
        return True

    def approve(self, owner: str, spender: str, amount: int) -> bool:
        self._check_amount(amount)
        self._allowances[(owner, spender)] = amount
        return True

    def mint(self, caller: str, to: str, amount: int) -> None:
        """Create ``amount`` new units for ``to`` (minter only)."""
        self._only_minter(caller)
        self._check_amount(amount)
        self._balances[to] = self.balance_of(to) + amount
        self._total_supply += amount

    def burn(self, caller: str, account: str, amount: int) -> None:
        """Destroy ``amount`` units held by ``account`` (minter only)."""
        self._only_minter(caller)
        self._check_amount(amount)
        self._check_balance(account, amount)
        self._balances[account] -= amount
        self._total_supply -= amount

    def _move(self, sender: str, to: str, amount: int) -> None:
        if amount == 0 or sender == to:
            return
        self._balances[sender] -= amount
        self._balances[to] = self.balance_of(to) + amount
        logger.debug("%s transfer %s -> %s: %d", self.symbol, sender, to, amount)

    def _check_balance(self, account: str, amount: int) -> None:
        balance = self.balance_of(account)
        if balance < amount:
            raise InsufficientBalanceError(
                f"{account} holds {balance} {self.symbol}, needs {amount}"
            )

    def _only_minter(self, caller: str) -> None:
        if caller != self.minter:
            raise UnauthorizedError(f"{caller} is not the {self.symbol} minter")

    @staticmethod
    def _check_amount(amount: int) -> None:
        if not isinstance(amount, int) or isinstance(amount, bool):
            raise InvalidAmountError(f"amount must be an integer, got {amount!r}")
        if amount < 0:
            raise InvalidAmountError(f"amount must be non-negative, got {amount}")
