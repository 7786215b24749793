"""
poolrewards - Dilution-free reward accounting for pooled staking

Provides:
- RewardLedger: shadow-balance bookkeeping so any member's share of pool
  rewards can be computed exactly, without per-member work when a reward lands
- Buy-in / payout formulas that keep existing members' claims unchanged when
  others join or leave
- fixedpoint: deterministic signed fixed-point arithmetic with ln/exp
- Prometheus metrics for ledger activity

Usage:
    from poolrewards import (
        RewardLedger, MemoryShadowStore, InMemoryRewardVault,
        InMemoryStakeRegistry, DelegationManager,
    )

    vault = InMemoryRewardVault()
    registry = InMemoryStakeRegistry()
    ledger = RewardLedger(MemoryShadowStore(), vault, registry)
    manager = DelegationManager(registry, ledger)

    manager.delegate("pool-1", "alice", 100)
    vault.deposit_member_share("pool-1", 50)
    ledger.compute_real_balance("pool-1", "alice")   # 50
    ledger.withdraw("pool-1", "alice", 20)

Metrics Usage:
    from poolrewards.metrics import LedgerMetrics

    metrics = LedgerMetrics()
    metrics.attach(ledger)
    prometheus_output = metrics.collect()
"""

from . import fixedpoint
from .config import LedgerConfig
from .errors import (
    LedgerError,
    InvalidAmount,
    Unauthorized,
    InsufficientBalance,
    ArithmeticOverflow,
    DivisionByZero,
    DomainError,
)
from .metrics import LedgerMetrics
from .protocol import (
    RewardLedger,
    WithdrawalRecord,
    MembershipChange,
    InvariantReport,
    LeavePayout,
    ShadowStore,
    MemoryShadowStore,
    RewardVault,
    InMemoryRewardVault,
    StakeRegistry,
    InMemoryStakeRegistry,
    DelegationManager,
    DelegationRecord,
    AccessControl,
    PoolOperatorRegistry,
    cobb_douglas,
)

__version__ = "1.0.0"
__all__ = [
    # Core
    "RewardLedger",
    "WithdrawalRecord",
    "MembershipChange",
    "InvariantReport",
    "LeavePayout",
    "cobb_douglas",
    "fixedpoint",
    # Collaborators
    "ShadowStore",
    "MemoryShadowStore",
    "RewardVault",
    "InMemoryRewardVault",
    "StakeRegistry",
    "InMemoryStakeRegistry",
    "DelegationManager",
    "DelegationRecord",
    "AccessControl",
    "PoolOperatorRegistry",
    # Config & Metrics
    "LedgerConfig",
    "LedgerMetrics",
    # Errors
    "LedgerError",
    "InvalidAmount",
    "Unauthorized",
    "InsufficientBalance",
    "ArithmeticOverflow",
    "DivisionByZero",
    "DomainError",
]
