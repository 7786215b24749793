"""
poolrewards/protocol/vault.py

Reward vault: custody of each pool's reward balance.

A pool's balance is split into an operator share (owned outright by the
pool operator) and a member share (owed to delegators, apportioned by the
RewardLedger). Only the ledger requests debits from the member share.

Usage:
    vault = InMemoryRewardVault()
    vault.deposit_for("pool-1", 1_000, operator_share_ppm=100_000)
    vault.member_share_balance("pool-1")     # 900
    vault.operator_share_balance("pool-1")   # 100
"""

import time
import logging
from abc import ABC, abstractmethod
from collections import defaultdict
from dataclasses import dataclass, field, asdict
from typing import Dict, List, Optional

from ..config import LedgerConfig, PPM_DENOMINATOR, DEFAULT_OPERATOR_SHARE_PPM
from ..errors import InvalidAmount, InsufficientBalance

logger = logging.getLogger("poolrewards.protocol.vault")


# ============================================================================
# DATA CLASSES
# ============================================================================

@dataclass
class PoolBalance:
    """Reward balance held for one pool."""
    pool_id: str
    operator_share: int = 0
    member_share: int = 0

    @property
    def total(self) -> int:
        return self.operator_share + self.member_share

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class VaultTransfer:
    """A payout leaving the vault."""
    recipient: str
    amount: int
    timestamp: int = field(default_factory=lambda: int(time.time()))

    def to_dict(self) -> dict:
        return asdict(self)


# ============================================================================
# VAULT INTERFACE
# ============================================================================

class RewardVault(ABC):
    """
    Abstract base class for reward vaults.

    Implementations must debit exactly the requested amount and fail without
    side effects when it exceeds the tracked share balance.
    """

    @abstractmethod
    def member_share_balance(self, pool_id: str) -> int:
        """Balance attributable to a pool's members."""
        pass

    @abstractmethod
    def operator_share_balance(self, pool_id: str) -> int:
        """Balance attributable to a pool's operator."""
        pass

    @abstractmethod
    def total_balance(self, pool_id: str) -> int:
        """Operator share plus member share."""
        pass

    @abstractmethod
    def withdraw_member_share(self, pool_id: str, amount: int) -> None:
        """
        Debit the member share of a pool.

        Raises:
            InsufficientBalance: if amount exceeds the member share
        """
        pass

    @abstractmethod
    def withdraw_operator_share(self, pool_id: str, amount: int) -> None:
        """
        Debit the operator share of a pool.

        Raises:
            InsufficientBalance: if amount exceeds the operator share
        """
        pass

    @abstractmethod
    def transfer(self, recipient: str, amount: int) -> None:
        """
        Pay a previously debited amount out to recipient.

        The ledger calls this after the debit and the shadow update have both
        been applied. Implementations must not fail once the matching debit
        has succeeded. Queue the payment instead of raising.
        """
        pass


# ============================================================================
# IN-MEMORY VAULT
# ============================================================================

class InMemoryRewardVault(RewardVault):
    """Reward vault backed by in-process dictionaries."""

    def __init__(self, default_operator_share_ppm: int = DEFAULT_OPERATOR_SHARE_PPM):
        if default_operator_share_ppm < 0 or default_operator_share_ppm > PPM_DENOMINATOR:
            raise ValueError(f"Invalid operator share {default_operator_share_ppm} ppm")
        self.default_operator_share_ppm = default_operator_share_ppm
        self._balances: Dict[str, PoolBalance] = {}
        self._paid: Dict[str, int] = defaultdict(int)
        self._transfers: List[VaultTransfer] = []

    @classmethod
    def from_config(cls, config: LedgerConfig) -> "InMemoryRewardVault":
        """Create a vault using the configured default operator share."""
        return cls(default_operator_share_ppm=config.operator_share_ppm)

    def _balance(self, pool_id: str) -> PoolBalance:
        if pool_id not in self._balances:
            self._balances[pool_id] = PoolBalance(pool_id=pool_id)
        return self._balances[pool_id]

    @staticmethod
    def _require_non_negative(amount: int) -> None:
        if amount < 0:
            raise InvalidAmount(f"Amount must be non-negative, got {amount}")

    # ========================================================================
    # DEPOSITS
    # ========================================================================

    def deposit_member_share(self, pool_id: str, amount: int) -> None:
        """Credit a reward that belongs entirely to the pool's members."""
        self._require_non_negative(amount)
        self._balance(pool_id).member_share += amount
        logger.debug(f"Deposited {amount} to member share of {pool_id}")

    def deposit_operator_share(self, pool_id: str, amount: int) -> None:
        """Credit a reward that belongs entirely to the pool's operator."""
        self._require_non_negative(amount)
        self._balance(pool_id).operator_share += amount
        logger.debug(f"Deposited {amount} to operator share of {pool_id}")

    def deposit_for(self, pool_id: str, amount: int, operator_share_ppm: Optional[int] = None) -> PoolBalance:
        """
        Credit a pool reward, splitting it between operator and members.

        Args:
            pool_id: Pool receiving the reward
            amount: Reward amount
            operator_share_ppm: Operator's cut in parts per million
                (defaults to the vault's default)

        Returns:
            PoolBalance holding just the operator/member amounts credited
        """
        self._require_non_negative(amount)
        ppm = self.default_operator_share_ppm if operator_share_ppm is None else operator_share_ppm
        if ppm < 0 or ppm > PPM_DENOMINATOR:
            raise InvalidAmount(f"Operator share must be 0-{PPM_DENOMINATOR} ppm, got {ppm}")

        operator_portion = (amount * ppm) // PPM_DENOMINATOR
        member_portion = amount - operator_portion

        balance = self._balance(pool_id)
        balance.operator_share += operator_portion
        balance.member_share += member_portion

        logger.info(
            f"Reward deposited for {pool_id}: operator={operator_portion} members={member_portion}"
        )
        return PoolBalance(pool_id=pool_id, operator_share=operator_portion, member_share=member_portion)

    # ========================================================================
    # RewardVault
    # ========================================================================

    def member_share_balance(self, pool_id: str) -> int:
        return self._balances[pool_id].member_share if pool_id in self._balances else 0

    def operator_share_balance(self, pool_id: str) -> int:
        return self._balances[pool_id].operator_share if pool_id in self._balances else 0

    def total_balance(self, pool_id: str) -> int:
        return self._balances[pool_id].total if pool_id in self._balances else 0

    def withdraw_member_share(self, pool_id: str, amount: int) -> None:
        self._require_non_negative(amount)
        available = self.member_share_balance(pool_id)
        if amount > available:
            raise InsufficientBalance(
                f"Member share of {pool_id} is {available}, cannot withdraw {amount}"
            )
        self._balance(pool_id).member_share -= amount

    def withdraw_operator_share(self, pool_id: str, amount: int) -> None:
        self._require_non_negative(amount)
        available = self.operator_share_balance(pool_id)
        if amount > available:
            raise InsufficientBalance(
                f"Operator share of {pool_id} is {available}, cannot withdraw {amount}"
            )
        self._balance(pool_id).operator_share -= amount

    def transfer(self, recipient: str, amount: int) -> None:
        self._require_non_negative(amount)
        self._paid[recipient] += amount
        self._transfers.append(VaultTransfer(recipient=recipient, amount=amount))

    # ========================================================================
    # QUERIES
    # ========================================================================

    def paid_to(self, recipient: str) -> int:
        """Total amount ever transferred to recipient."""
        return self._paid.get(recipient, 0)

    def get_transfers(self) -> List[VaultTransfer]:
        return list(self._transfers)

    def get_pool_balance(self, pool_id: str) -> PoolBalance:
        """Copy of a pool's balance record."""
        balance = self._balances.get(pool_id)
        if balance is None:
            return PoolBalance(pool_id=pool_id)
        return PoolBalance(
            pool_id=pool_id,
            operator_share=balance.operator_share,
            member_share=balance.member_share,
        )
