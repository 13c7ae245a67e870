"""Records emitted by the pooled vault.

Rebalance and compound operations append one record each to the vault's
history so allocation decisions can be audited after the fact.
"""

from dataclasses import dataclass, field
from typing import Dict, List


@dataclass
class RebalanceMove:
    """Funds moved into (positive) or out of (negative) one strategy.

    Attributes:
        strategy: Bridge name
        amount: Signed amount in smallest units
        reason: Why this move was made (for logging/debugging)
    """

    strategy: str
    amount: int
    reason: str = ""


@dataclass
class RebalanceRecord:
    """Outcome of a rebalance (or of deploying idle deposits).

    Attributes:
        timestamp: Clock time of the operation
        total_assets: Vault total assets after the operation
        targets: Target allocation per strategy
        max_gap_bps: Largest allocation gap seen before acting
        moves: Funds moved per strategy
        equal_weight: True when every score was zero
    """

    timestamp: int
    total_assets: int
    targets: Dict[str, int]
    max_gap_bps: int
    moves: List[RebalanceMove] = field(default_factory=list)
    equal_weight: bool = False

    @property
    def withdrawn(self) -> int:
        return -sum(m.amount for m in self.moves if m.amount < 0)

    @property
    def deposited(self) -> int:
        return sum(m.amount for m in self.moves if m.amount > 0)


@dataclass
class CompoundRecord:
    """Outcome of a compound call.

    Attributes:
        timestamp: Clock time of the operation
        harvested: Realized interest per strategy
        fee_assets: Performance fee taken, in assets
        fee_shares: Shares minted to the fee recipient
        total_assets: Vault total assets after the operation
        share_price: Share price after the fee mint
    """

    timestamp: int
    harvested: Dict[str, int]
    fee_assets: int
    fee_shares: int
    total_assets: int
    share_price: float

    @property
    def total_harvested(self) -> int:
        return sum(self.harvested.values())
