"""Bridge Layer - adapters between vaults and yield venues."""

from yieldvault.bridge.allocation_bridge import AllocationBridge

__all__ = [
    "AllocationBridge",
]
