"""APY-weighted allocation math.

Pure functions used by the vault to decide where capital should sit.

Algorithm:
1. Score each strategy: score = apy_bps * balance
2. Target = score / sum(scores) of total assets (equal weight if all zero)
3. Gap = |balance - target| in basis points of total assets
4. Act only when the largest gap exceeds the configured minimum
5. Fill under-allocated strategies in proportion to their deficits

All divisions floor, so targets and fills never add up to more than the
amount being allocated.
"""

from typing import List, Sequence

from yieldvault.venues.base import BPS_DENOMINATOR


def score_strategies(balances: Sequence[int], apys: Sequence[int]) -> List[int]:
    """Score = current APY (bps) times current balance."""
    if len(balances) != len(apys):
        raise ValueError(
            f"got {len(balances)} balances for {len(apys)} APY readings"
        )
    return [max(apy, 0) * max(balance, 0) for balance, apy in zip(balances, apys)]


def target_allocations(total_assets: int, scores: Sequence[int]) -> List[int]:
    """Split ``total_assets`` across strategies in proportion to scores.

    Falls back to equal weight when every score is zero (no allocation
    yet, or every venue paying nothing).

    Example:
        >>> target_allocations(5000, [0, 0])
        [2500, 2500]
        >>> target_allocations(1000, [300, 100])
        [750, 250]
    """
    if not scores or total_assets <= 0:
        return [0] * len(scores)

    total_score = sum(scores)
    if total_score == 0:
        return [total_assets // len(scores)] * len(scores)

    return [total_assets * score // total_score for score in scores]


def allocation_gaps_bps(
    total_assets: int,
    balances: Sequence[int],
    targets: Sequence[int],
) -> List[int]:
    """Distance of each balance from its target, in bps of total assets."""
    if total_assets <= 0:
        return [0] * len(balances)
    return [
        abs(balance - target) * BPS_DENOMINATOR // total_assets
        for balance, target in zip(balances, targets)
    ]


def should_rebalance(gaps_bps: Sequence[int], min_gap_bps: int) -> bool:
    """True when any strategy drifted further than ``min_gap_bps``.

    Example:
        >>> should_rebalance([40, 40], min_gap_bps=50)
        False
    """
    return any(gap > min_gap_bps for gap in gaps_bps)


def plan_deficit_fills(available: int, deficits: Sequence[int]) -> List[int]:
    """Distribute ``available`` across deficits, proportionally.

    Every deficit is filled exactly when there is enough; otherwise each
    gets ``available * deficit // total_deficit``. Any remainder stays
    with the caller.

    Example:
        >>> plan_deficit_fills(90, [60, 30])
        [60, 30]
        >>> plan_deficit_fills(50, [60, 40])
        [30, 20]
    """
    if available <= 0:
        return [0] * len(deficits)

    positive = [max(d, 0) for d in deficits]
    total_deficit = sum(positive)
    if total_deficit == 0:
        return [0] * len(deficits)
    if available >= total_deficit:
        return positive

    return [available * d // total_deficit for d in positive]


def plan_pro_rata_pulls(amount: int, balances: Sequence[int]) -> List[int]:
    """First-pass split of a redeem shortfall, proportional to balances.

    The caller caps each pull by the strategy's liquidity and covers the
    remainder in strategy order.
    """
    total = sum(max(b, 0) for b in balances)
    if amount <= 0 or total == 0:
        return [0] * len(balances)
    return [min(amount * max(b, 0) // total, max(b, 0)) for b in balances]


def plan_strategy_pulls(
    amount: int,
    balances: Sequence[int],
    caps: Sequence[int],
) -> List[int]:
    """Full withdrawal plan for a redeem shortfall.

    Pro-rata to balances first, each pull capped by ``caps``; whatever is
    left is filled in strategy order from the remaining caps. The result
    may sum to less than ``amount`` when the caps cannot cover it.

    Example:
        >>> plan_strategy_pulls(300, [500, 500], [400, 0])
        [300, 0]
    """
    if len(balances) != len(caps):
        raise ValueError(f"got {len(balances)} balances for {len(caps)} liquidity caps")

    pulls = [
        min(pull, max(cap, 0))
        for pull, cap in zip(plan_pro_rata_pulls(amount, balances), caps)
    ]
    remaining = amount - sum(pulls)
    for i, cap in enumerate(caps):
        if remaining <= 0:
            break
        extra = min(remaining, max(cap, 0) - pulls[i])
        if extra > 0:
            pulls[i] += extra
            remaining -= extra
    return pulls
