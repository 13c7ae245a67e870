"""Queue state and apportionment for the batching router.

Per tier the router keeps two independent queues (deposits in assets,
withdrawals in vault shares). A batch turns one queue into one vault
operation and splits the result back over the queued accounts.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Sequence

from yieldvault.vault.pooled_vault import PooledVault


class BatchKind(Enum):
    """Queue kinds, each with its own batch cadence."""

    DEPOSIT = "deposit"
    WITHDRAW = "withdraw"


@dataclass
class PendingRequest:
    """A queued request.

    Attributes:
        account: Requesting account
        amount: Assets for deposits, vault shares for withdrawals
        submitted_at: Clock time of submission
    """

    account: str
    amount: int
    submitted_at: int

    def __post_init__(self):
        """Validate request fields."""
        if self.amount <= 0:
            raise ValueError(f"amount must be positive, got {self.amount}")


@dataclass
class TierState:
    """Everything the router tracks for one risk tier.

    Attributes:
        vault: Vault backing the tier
        pending_deposits: Queued deposits, in submission order
        pending_withdraws: Queued withdrawals, in submission order
        last_deposit_batch: Time the deposit queue last settled
        last_withdraw_batch: Time the withdraw queue last settled
        unclaimed_shares: Shares credited but not yet claimed
        unclaimed_assets: Assets credited but not yet claimed
        undistributed_shares: Rounding remainder kept by the router
        undistributed_assets: Rounding remainder kept by the router
    """

    vault: PooledVault
    last_deposit_batch: int
    last_withdraw_batch: int
    pending_deposits: List[PendingRequest] = field(default_factory=list)
    pending_withdraws: List[PendingRequest] = field(default_factory=list)
    unclaimed_shares: int = 0
    unclaimed_assets: int = 0
    undistributed_shares: int = 0
    undistributed_assets: int = 0

    @property
    def total_pending_deposits(self) -> int:
        return sum(r.amount for r in self.pending_deposits)

    @property
    def total_pending_withdraws(self) -> int:
        return sum(r.amount for r in self.pending_withdraws)

    def queue(self, kind: BatchKind) -> List[PendingRequest]:
        if kind is BatchKind.DEPOSIT:
            return self.pending_deposits
        return self.pending_withdraws

    def last_batch(self, kind: BatchKind) -> int:
        if kind is BatchKind.DEPOSIT:
            return self.last_deposit_batch
        return self.last_withdraw_batch

    @property
    def is_settled(self) -> bool:
        """True when nothing is queued and nothing is left to claim."""
        return not (
            self.pending_deposits
            or self.pending_withdraws
            or self.unclaimed_shares
            or self.unclaimed_assets
        )


@dataclass
class BatchResult:
    """Outcome of one batch execution.

    Attributes:
        tier: Tier that settled
        kind: Deposit or withdraw batch
        timestamp: Clock time of execution
        aggregate_in: Total assets (deposits) or shares (withdrawals) sent
        aggregate_out: Shares or assets received from the vault
        allocations: Amount credited per account
        dust: Rounding remainder kept by the router
    """

    tier: str
    kind: BatchKind
    timestamp: int
    aggregate_in: int
    aggregate_out: int
    allocations: Dict[str, int] = field(default_factory=dict)
    dust: int = 0

    @property
    def entries(self) -> int:
        return len(self.allocations)


def apportion(total_out: int, requests: Sequence[PendingRequest]) -> Dict[str, int]:
    """Split ``total_out`` over accounts pro-rata to what they put in.

    Contributions of the same account are summed before dividing, and
    every division floors, so the credited total never exceeds
    ``total_out`` and each account loses less than one unit.

    Example:
        >>> reqs = [PendingRequest("a", 1, 0), PendingRequest("b", 2, 0)]
        >>> apportion(10, reqs)
        {'a': 3, 'b': 6}
    """
    contributed: Dict[str, int] = {}
    for request in requests:
        contributed[request.account] = contributed.get(request.account, 0) + request.amount

    total_in = sum(contributed.values())
    if total_in == 0:
        return {}

    return {
        account: total_out * amount // total_in
        for account, amount in contributed.items()
    }
