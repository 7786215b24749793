"""
poolrewards/protocol/storage.py

Shadow balance storage.

The ledger never touches module-level state: it reads and writes shadow
balances through a ShadowStore injected at construction. Balances default to
zero the first time they are referenced and are never deleted.

Used by:
- RewardLedger - all shadow reads and writes
- Hosts that persist state between processes (via to_dict/from_dict)
"""

import logging
from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Dict, List

logger = logging.getLogger("poolrewards.protocol.storage")


# ============================================================================
# STORE INTERFACE
# ============================================================================

class ShadowStore(ABC):
    """Abstract base class for shadow balance stores."""

    @abstractmethod
    def get_shadow(self, pool_id: str, member: str) -> int:
        """Get a member's shadow balance in a pool (0 if never set)."""
        pass

    @abstractmethod
    def set_shadow(self, pool_id: str, member: str, value: int) -> None:
        """Set a member's shadow balance in a pool."""
        pass

    @abstractmethod
    def get_total_shadow(self, pool_id: str) -> int:
        """Get a pool's total shadow balance (0 if never set)."""
        pass

    @abstractmethod
    def set_total_shadow(self, pool_id: str, value: int) -> None:
        """Set a pool's total shadow balance."""
        pass

    @abstractmethod
    def members(self, pool_id: str) -> List[str]:
        """Members that have ever had a shadow balance written in a pool."""
        pass


# ============================================================================
# IN-MEMORY STORE
# ============================================================================

class MemoryShadowStore(ShadowStore):
    """In-memory shadow store."""

    def __init__(self):
        self._shadow: Dict[str, Dict[str, int]] = defaultdict(dict)  # pool -> member -> shadow
        self._total_shadow: Dict[str, int] = {}  # pool -> total

    def get_shadow(self, pool_id: str, member: str) -> int:
        return self._shadow.get(pool_id, {}).get(member, 0)

    def set_shadow(self, pool_id: str, member: str, value: int) -> None:
        if value < 0:
            raise ValueError(f"Shadow balance cannot be negative: {value}")
        self._shadow[pool_id][member] = value

    def get_total_shadow(self, pool_id: str) -> int:
        return self._total_shadow.get(pool_id, 0)

    def set_total_shadow(self, pool_id: str, value: int) -> None:
        if value < 0:
            raise ValueError(f"Total shadow balance cannot be negative: {value}")
        self._total_shadow[pool_id] = value

    def members(self, pool_id: str) -> List[str]:
        return list(self._shadow.get(pool_id, {}).keys())

    def pools(self) -> List[str]:
        """All pools with any recorded shadow state."""
        return sorted(set(self._shadow.keys()) | set(self._total_shadow.keys()))

    def to_dict(self) -> dict:
        """Snapshot the store for serialization."""
        return {
            "shadow": {pool: dict(balances) for pool, balances in self._shadow.items()},
            "total_shadow": dict(self._total_shadow),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "MemoryShadowStore":
        """Rebuild a store from a to_dict() snapshot."""
        store = cls()
        for pool_id, balances in data.get("shadow", {}).items():
            for member, value in balances.items():
                store.set_shadow(pool_id, member, int(value))
        for pool_id, value in data.get("total_shadow", {}).items():
            store.set_total_shadow(pool_id, int(value))
        logger.debug(f"Restored shadow store with {len(store.pools())} pools")
        return store
