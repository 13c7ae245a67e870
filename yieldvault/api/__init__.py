"""User-friendly API layer.

Components:
- EngineAPI: Builds a router and per-tier vaults from configuration
"""

from yieldvault.api.engine_api import EngineAPI

__all__ = [
    "EngineAPI",
]
