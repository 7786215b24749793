"""
poolrewards/protocol/delegation.py

Stake delegation bookkeeping and the join/leave driver.

The ledger only reads stake figures. DelegationManager is the single place
that changes them, and it always settles the ledger first using the figures
from *before* the change:

    delegate:   ledger.on_join(...)  then registry.add_stake(...)
    undelegate: ledger.on_leave(...) then registry.remove_stake(...)

Usage:
    registry = InMemoryStakeRegistry()
    ledger = RewardLedger(store, vault, registry)
    manager = DelegationManager(registry, ledger)

    manager.delegate("pool-1", "alice", 100)
    manager.undelegate("pool-1", "alice", 40)
"""

import time
import hashlib
import logging
from abc import ABC, abstractmethod
from collections import defaultdict
from dataclasses import dataclass, field, asdict
from typing import Callable, Dict, List, TYPE_CHECKING

from ..errors import InvalidAmount
from .rewards import LeavePayout

if TYPE_CHECKING:
    from .ledger import RewardLedger

logger = logging.getLogger("poolrewards.protocol.delegation")


# ============================================================================
# DATA CLASSES
# ============================================================================

@dataclass
class DelegationRecord:
    """A single stake change applied to a pool."""
    pool_id: str
    member: str
    amount: int                 # Positive for delegation, negative for undelegation
    shadow_delta: int = 0       # Buy-in charged or shadow released
    payout: int = 0             # Rewards paid out on undelegation
    timestamp: int = field(default_factory=lambda: int(time.time()))
    delegation_id: str = ""

    def __post_init__(self):
        if not self.delegation_id:
            self.delegation_id = self._generate_id()

    def _generate_id(self) -> str:
        """Generate ID from pool, member, amount and timestamp."""
        data = f"{self.pool_id}:{self.member}:{self.amount}:{self.timestamp}"
        return hashlib.sha256(data.encode()).hexdigest()[:16]

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "DelegationRecord":
        return cls(
            pool_id=data.get("pool_id", ""),
            member=data.get("member", ""),
            amount=int(data.get("amount", 0)),
            shadow_delta=int(data.get("shadow_delta", 0)),
            payout=int(data.get("payout", 0)),
            timestamp=int(data.get("timestamp", 0)),
            delegation_id=data.get("delegation_id", ""),
        )


# ============================================================================
# STAKE REGISTRY
# ============================================================================

class StakeRegistry(ABC):
    """Read side of stake delegation, as consumed by the ledger."""

    @abstractmethod
    def delegated_stake(self, member: str, pool_id: str) -> int:
        """Stake `member` currently delegates to `pool_id`."""
        pass

    @abstractmethod
    def total_delegated_stake(self, pool_id: str) -> int:
        """Total stake delegated to `pool_id`."""
        pass

    @abstractmethod
    def members(self, pool_id: str) -> List[str]:
        """Members with non-zero stake in `pool_id`."""
        pass


class InMemoryStakeRegistry(StakeRegistry):
    """Stake registry backed by in-process dictionaries."""

    def __init__(self):
        self._stakes: Dict[str, Dict[str, int]] = defaultdict(dict)  # pool -> member -> stake
        self._totals: Dict[str, int] = defaultdict(int)  # pool -> total

    def delegated_stake(self, member: str, pool_id: str) -> int:
        return self._stakes.get(pool_id, {}).get(member, 0)

    def total_delegated_stake(self, pool_id: str) -> int:
        return self._totals.get(pool_id, 0)

    def members(self, pool_id: str) -> List[str]:
        return [m for m, stake in self._stakes.get(pool_id, {}).items() if stake > 0]

    def add_stake(self, pool_id: str, member: str, amount: int) -> None:
        if amount < 0:
            raise InvalidAmount(f"Stake amount must be non-negative, got {amount}")
        self._stakes[pool_id][member] = self.delegated_stake(member, pool_id) + amount
        self._totals[pool_id] += amount

    def remove_stake(self, pool_id: str, member: str, amount: int) -> None:
        if amount < 0:
            raise InvalidAmount(f"Stake amount must be non-negative, got {amount}")
        current = self.delegated_stake(member, pool_id)
        if amount > current:
            raise InvalidAmount(f"{member} has {current} staked in {pool_id}, cannot remove {amount}")
        self._stakes[pool_id][member] = current - amount
        self._totals[pool_id] -= amount


# ============================================================================
# DELEGATION MANAGER
# ============================================================================

class DelegationManager:
    """
    Applies stake changes and keeps the reward ledger in step with them.

    Each delegate/undelegate runs under the ledger's lock, so the ledger
    update and the registry update are observed together or not at all.
    """

    def __init__(self, registry: InMemoryStakeRegistry, ledger: "RewardLedger"):
        self.registry = registry
        self.ledger = ledger
        self._history: Dict[str, List[DelegationRecord]] = defaultdict(list)  # pool -> records
        self._on_delegation_changed: List[Callable[[DelegationRecord], None]] = []

    def delegate(self, pool_id: str, member: str, amount: int) -> DelegationRecord:
        """
        Add `amount` of stake from `member` to `pool_id`.

        Returns:
            DelegationRecord with the buy-in charged
        """
        if amount <= 0:
            raise InvalidAmount(f"Delegation amount must be positive, got {amount}")

        with self.ledger.lock:
            prior_total = self.registry.total_delegated_stake(pool_id)
            buy_in = self.ledger.on_join(pool_id, member, amount, prior_total)
            self.registry.add_stake(pool_id, member, amount)

            record = DelegationRecord(pool_id=pool_id, member=member, amount=amount, shadow_delta=buy_in)
            self._record(record)

        logger.info(f"Delegation: {member} -> {pool_id} ({amount}, buy-in {buy_in})")
        return record

    def undelegate(self, pool_id: str, member: str, amount: int) -> DelegationRecord:
        """
        Remove `amount` of stake from `member` in `pool_id`, paying out the
        rewards attached to it.

        Returns:
            DelegationRecord with shadow released and payout
        """
        if amount <= 0:
            raise InvalidAmount(f"Undelegation amount must be positive, got {amount}")

        with self.ledger.lock:
            member_total = self.registry.delegated_stake(member, pool_id)
            if amount > member_total:
                raise InvalidAmount(
                    f"{member} has {member_total} staked in {pool_id}, cannot undelegate {amount}"
                )
            pool_total = self.registry.total_delegated_stake(pool_id)
            payout: LeavePayout = self.ledger.on_leave(pool_id, member, amount, member_total, pool_total)
            self.registry.remove_stake(pool_id, member, amount)

            record = DelegationRecord(
                pool_id=pool_id,
                member=member,
                amount=-amount,
                shadow_delta=-payout.shadow,
                payout=payout.real,
            )
            self._record(record)

        logger.info(f"Undelegation: {member} <- {pool_id} ({amount}, paid {payout.real})")
        return record

    def undelegate_all(self, pool_id: str, member: str) -> DelegationRecord:
        """Remove all of `member`'s stake from `pool_id`."""
        amount = self.registry.delegated_stake(member, pool_id)
        return self.undelegate(pool_id, member, amount)

    def get_history(self, pool_id: str) -> List[DelegationRecord]:
        """Stake changes applied to a pool, oldest first."""
        return list(self._history.get(pool_id, []))

    def on_delegation_changed(self, callback: Callable[[DelegationRecord], None]) -> None:
        """Register callback for applied stake changes."""
        self._on_delegation_changed.append(callback)

    def _record(self, record: DelegationRecord) -> None:
        self._history[record.pool_id].append(record)
        for callback in self._on_delegation_changed:
            try:
                callback(record)
            except Exception as e:
                logger.error(f"Delegation callback error: {e}")
