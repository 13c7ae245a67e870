"""Router Layer - batched deposit/withdraw settlement per risk tier.

Components:
- BatchingRouter: Queues requests, settles them in batches, pays claims
- BatchKind / PendingRequest / BatchResult / TierState: Queue data structures
- apportion: Floor-division pro-rata split of a batch result
"""

from yieldvault.router.base import (
    BatchKind,
    BatchResult,
    PendingRequest,
    TierState,
    apportion,
)
from yieldvault.router.batching_router import BatchingRouter

__all__ = [
    "BatchingRouter",
    "BatchKind",
    "BatchResult",
    "PendingRequest",
    "TierState",
    "apportion",
]
