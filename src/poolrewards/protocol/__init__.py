"""
poolrewards/protocol/

Reward ledger, reward math and the collaborator interfaces it depends on.
"""

from .rewards import (
    LeavePayout,
    compute_real_balance,
    compute_buy_in,
    compute_leave_payout,
    cobb_douglas,
)
from .storage import ShadowStore, MemoryShadowStore
from .vault import RewardVault, InMemoryRewardVault, PoolBalance, VaultTransfer
from .delegation import (
    StakeRegistry,
    InMemoryStakeRegistry,
    DelegationManager,
    DelegationRecord,
)
from .access import AccessControl, PoolOperatorRegistry
from .ledger import (
    RewardLedger,
    WithdrawalRecord,
    MembershipChange,
    InvariantReport,
)

__all__ = [
    # Reward math
    "LeavePayout",
    "compute_real_balance",
    "compute_buy_in",
    "compute_leave_payout",
    "cobb_douglas",
    # Storage
    "ShadowStore",
    "MemoryShadowStore",
    # Vault
    "RewardVault",
    "InMemoryRewardVault",
    "PoolBalance",
    "VaultTransfer",
    # Delegation
    "StakeRegistry",
    "InMemoryStakeRegistry",
    "DelegationManager",
    "DelegationRecord",
    # Access control
    "AccessControl",
    "PoolOperatorRegistry",
    # Ledger
    "RewardLedger",
    "WithdrawalRecord",
    "MembershipChange",
    "InvariantReport",
]
