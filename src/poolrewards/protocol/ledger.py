"""
poolrewards/protocol/ledger.py

Dilution-free reward ledger for pooled staking.

Each pool keeps one shadow balance per member plus a pool-wide total. With
those two scalars per member the ledger can tell any member exactly what they
are owed, at any time, without touching other members when rewards arrive:

    real balance = stake / total_stake * (member_share + total_shadow) - shadow

- Withdrawing raises the member's shadow by the amount paid, so the claim
  cannot be paid twice.
- Joining (adding stake) charges a shadow buy-in so the newcomer gets no part
  of rewards that accrued before they arrived.
- Leaving (removing stake) releases shadow pro rata and pays out the real
  balance of the withdrawn fraction.

Every public operation computes all amounts first and holds the ledger lock
for its whole duration. The vault is debited before shadow state is written,
so a refused debit leaves no partial update behind. The payout transfer runs
last, once the books already agree with the debited balance.

Usage:
    ledger = RewardLedger(MemoryShadowStore(), vault, registry, access)

    owed = ledger.compute_real_balance("pool-1", "alice")
    ledger.withdraw("pool-1", "alice", owed)

    # Driven by DelegationManager when stake changes
    ledger.on_join("pool-1", "bob", 100, prior_total_stake)
    ledger.on_leave("pool-1", "bob", 50, 100, pool_total_stake)
"""

import time
import logging
import threading
from dataclasses import dataclass, field, asdict
from typing import Callable, List, Optional, TYPE_CHECKING

from ..config import LedgerConfig
from ..errors import InvalidAmount, Unauthorized
from .rewards import (
    LeavePayout,
    cobb_douglas,
    compute_buy_in,
    compute_leave_payout,
    compute_real_balance,
)
from .storage import ShadowStore

if TYPE_CHECKING:
    from .access import AccessControl
    from .delegation import StakeRegistry
    from .vault import RewardVault

logger = logging.getLogger("poolrewards.protocol.ledger")


# ============================================================================
# CONSTANTS
# ============================================================================

ROLE_MEMBER = "member"
ROLE_OPERATOR = "operator"

CHANGE_JOIN = "join"
CHANGE_LEAVE = "leave"


# ============================================================================
# DATA CLASSES
# ============================================================================

@dataclass
class WithdrawalRecord:
    """A completed withdrawal from a pool's vault balance."""
    pool_id: str
    recipient: str
    amount: int
    role: str = ROLE_MEMBER
    timestamp: int = field(default_factory=lambda: int(time.time()))

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class MembershipChange:
    """Shadow adjustment caused by a member adding or removing stake."""
    pool_id: str
    member: str
    kind: str                   # CHANGE_JOIN or CHANGE_LEAVE
    stake_delta: int            # Stake delegated (join) or undelegated (leave)
    shadow_delta: int           # Signed change to the member's shadow balance
    payout: int = 0             # Real amount paid out (leave only)
    timestamp: int = field(default_factory=lambda: int(time.time()))

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class InvariantReport:
    """Result of checking a pool's bookkeeping invariants."""
    pool_id: str
    total_shadow: int
    shadow_sum: int
    member_share_balance: int
    real_balance_sum: int
    members_checked: int

    @property
    def shadow_consistent(self) -> bool:
        """Pool total shadow equals the sum of member shadows."""
        return self.total_shadow == self.shadow_sum

    @property
    def solvent(self) -> bool:
        """
        Members are never owed more than the vault holds for them.

        The buy-in is an integer, so a member who joins while the pool holds
        a fractional remainder can sit up to one unit under water. The
        clamped sum of real balances may then exceed the member share by at
        most one unit per such member. Each claim is still capped at the
        member share and the vault refuses overdrafts, so the bound used by
        real callers is `member_share_balance + members_checked`, not the
        strict comparison made here.
        """
        return self.real_balance_sum <= self.member_share_balance

    @property
    def ok(self) -> bool:
        return self.shadow_consistent and self.solvent

    def to_dict(self) -> dict:
        result = asdict(self)
        result["shadow_consistent"] = self.shadow_consistent
        result["solvent"] = self.solvent
        return result


# ============================================================================
# REWARD LEDGER
# ============================================================================

class RewardLedger:
    """
    Shadow-balance reward accounting for every pool in a vault.

    Collaborators are injected:
        store: ShadowStore holding shadow balances
        vault: RewardVault holding real balances
        registry: StakeRegistry with current delegated stake
        access: optional AccessControl for operator withdrawals
    """

    def __init__(
        self,
        store: ShadowStore,
        vault: "RewardVault",
        registry: "StakeRegistry",
        access: Optional["AccessControl"] = None,
        config: Optional[LedgerConfig] = None,
    ):
        self.store = store
        self.vault = vault
        self.registry = registry
        self.access = access
        self.config = config or LedgerConfig()

        self._lock = threading.RLock()

        # Callbacks
        self._on_withdrawal: List[Callable[[WithdrawalRecord], None]] = []
        self._on_membership_change: List[Callable[[MembershipChange], None]] = []
        self._on_rejection: List[Callable[[str, str, str], None]] = []

    @property
    def lock(self) -> threading.RLock:
        """Re-entrant lock held by every ledger state transition."""
        return self._lock

    # ========================================================================
    # VIEWS
    # ========================================================================

    def get_shadow_balance(self, pool_id: str, member: str) -> int:
        return self.store.get_shadow(pool_id, member)

    def get_total_shadow_balance(self, pool_id: str) -> int:
        return self.store.get_total_shadow(pool_id)

    def get_member_share_balance(self, pool_id: str) -> int:
        return self.vault.member_share_balance(pool_id)

    def get_operator_balance(self, pool_id: str) -> int:
        return self.vault.operator_share_balance(pool_id)

    def get_total_balance(self, pool_id: str) -> int:
        return self.vault.total_balance(pool_id)

    def compute_real_balance(self, pool_id: str, member: str) -> int:
        """Amount `member` can withdraw from `pool_id` right now."""
        return compute_real_balance(
            member_stake=self.registry.delegated_stake(member, pool_id),
            total_stake=self.registry.total_delegated_stake(pool_id),
            member_shadow=self.store.get_shadow(pool_id, member),
            total_shadow=self.store.get_total_shadow(pool_id),
            pool_balance=self.vault.member_share_balance(pool_id),
        )

    def compute_epoch_reward(
        self,
        total_rewards: int,
        pool_fees: int,
        total_fees: int,
        pool_stake: int,
        total_stake: int,
    ) -> int:
        """
        Share of an epoch's rewards earned by one pool, using the configured
        Cobb-Douglas alpha. The result is what a host deposits into the vault.
        """
        return cobb_douglas(
            total_rewards,
            pool_fees,
            total_fees,
            pool_stake,
            total_stake,
            self.config.alpha_numerator,
            self.config.alpha_denominator,
        )

    # ========================================================================
    # MEMBER WITHDRAWALS
    # ========================================================================

    def withdraw(self, pool_id: str, member: str, amount: int) -> None:
        """
        Pay `amount` of the member's real balance out of the pool.

        Raises:
            InvalidAmount: if amount is negative or exceeds the real balance
        """
        with self._lock:
            if amount < 0:
                self._reject("withdraw", pool_id, f"negative amount {amount}")
                raise InvalidAmount(f"Withdrawal amount must be non-negative, got {amount}")

            available = self.compute_real_balance(pool_id, member)
            if amount > available:
                self._reject("withdraw", pool_id, f"{amount} exceeds balance {available}")
                raise InvalidAmount(
                    f"Cannot withdraw {amount} from {pool_id}, {member} is owed {available}"
                )

            self._withdraw_for_member(pool_id, member, amount)

    def withdraw_all(self, pool_id: str, member: str) -> int:
        """Withdraw the member's entire real balance. Returns the amount paid."""
        with self._lock:
            amount = self.compute_real_balance(pool_id, member)
            self._withdraw_for_member(pool_id, member, amount)
            return amount

    def _withdraw_for_member(self, pool_id: str, member: str, amount: int) -> None:
        if amount == 0:
            return

        new_shadow = self.store.get_shadow(pool_id, member) + amount
        new_total = self.store.get_total_shadow(pool_id) + amount

        self.vault.withdraw_member_share(pool_id, amount)
        self.store.set_shadow(pool_id, member, new_shadow)
        self.store.set_total_shadow(pool_id, new_total)
        self.vault.transfer(member, amount)

        logger.info(f"Member withdrawal: {member} took {amount} from {pool_id}")
        self._emit_withdrawal(WithdrawalRecord(pool_id=pool_id, recipient=member, amount=amount))

    # ========================================================================
    # OPERATOR WITHDRAWALS
    # ========================================================================

    def withdraw_operator(self, pool_id: str, operator: str, amount: int) -> None:
        """
        Pay `amount` of the operator share out to the pool operator.

        The operator share is not apportioned, so no shadow bookkeeping is
        involved.

        Raises:
            Unauthorized: if `operator` is not the pool's operator
            InvalidAmount: if amount is negative or exceeds the operator share
        """
        with self._lock:
            self._require_operator("withdraw_operator", pool_id, operator)
            if amount < 0:
                self._reject("withdraw_operator", pool_id, f"negative amount {amount}")
                raise InvalidAmount(f"Withdrawal amount must be non-negative, got {amount}")

            available = self.vault.operator_share_balance(pool_id)
            if amount > available:
                self._reject("withdraw_operator", pool_id, f"{amount} exceeds balance {available}")
                raise InvalidAmount(
                    f"Cannot withdraw {amount} from operator share of {pool_id}, balance is {available}"
                )

            self._withdraw_for_operator(pool_id, operator, amount)

    def withdraw_all_operator(self, pool_id: str, operator: str) -> int:
        """Withdraw the whole operator share. Returns the amount paid."""
        with self._lock:
            self._require_operator("withdraw_all_operator", pool_id, operator)
            amount = self.vault.operator_share_balance(pool_id)
            self._withdraw_for_operator(pool_id, operator, amount)
            return amount

    def _withdraw_for_operator(self, pool_id: str, operator: str, amount: int) -> None:
        if amount == 0:
            return

        self.vault.withdraw_operator_share(pool_id, amount)
        self.vault.transfer(operator, amount)

        logger.info(f"Operator withdrawal: {operator} took {amount} from {pool_id}")
        self._emit_withdrawal(
            WithdrawalRecord(pool_id=pool_id, recipient=operator, amount=amount, role=ROLE_OPERATOR)
        )

    def _require_operator(self, operation: str, pool_id: str, caller: str) -> None:
        if self.access is None or not self.config.enforce_operator_auth:
            return
        if not self.access.is_pool_operator(pool_id, caller):
            self._reject(operation, pool_id, f"{caller} is not the operator")
            raise Unauthorized(f"{caller} is not the operator of {pool_id}")

    # ========================================================================
    # MEMBERSHIP CHANGES
    # ========================================================================

    def on_join(
        self,
        pool_id: str,
        member: str,
        stake_to_delegate: int,
        prior_total_stake: int,
    ) -> int:
        """
        Charge the buy-in for a member adding stake to a pool.

        Must be called before the stake registry reflects the new stake.

        Args:
            pool_id: Pool receiving stake
            member: Delegating member
            stake_to_delegate: Stake being added
            prior_total_stake: Pool's total delegated stake before the addition

        Returns:
            The buy-in added to the member's shadow balance
        """
        with self._lock:
            total_shadow = self.store.get_total_shadow(pool_id)
            try:
                buy_in = compute_buy_in(
                    stake_to_delegate=stake_to_delegate,
                    prior_total_stake=prior_total_stake,
                    total_shadow=total_shadow,
                    pool_balance=self.vault.member_share_balance(pool_id),
                )
            except InvalidAmount as e:
                self._reject("join", pool_id, str(e))
                raise
            logger.debug(
                f"Buy-in for {member} in {pool_id}: stake={stake_to_delegate} "
                f"prior_total={prior_total_stake} -> {buy_in}"
            )

            if buy_in > 0:
                new_shadow = self.store.get_shadow(pool_id, member) + buy_in
                self.store.set_shadow(pool_id, member, new_shadow)
                self.store.set_total_shadow(pool_id, total_shadow + buy_in)

            logger.info(f"Member joined: {member} delegated {stake_to_delegate} to {pool_id}")
            self._emit_membership_change(MembershipChange(
                pool_id=pool_id,
                member=member,
                kind=CHANGE_JOIN,
                stake_delta=stake_to_delegate,
                shadow_delta=buy_in,
            ))
            return buy_in

    def on_leave(
        self,
        pool_id: str,
        member: str,
        stake_to_undelegate: int,
        member_total_stake: int,
        pool_total_stake: int,
    ) -> LeavePayout:
        """
        Release shadow and pay out rewards for a member removing stake.

        Must be called before the stake registry reflects the removal.

        Args:
            pool_id: Pool losing stake
            member: Undelegating member
            stake_to_undelegate: Stake being removed
            member_total_stake: Member's stake in the pool before removal
            pool_total_stake: Pool's total stake before removal

        Returns:
            LeavePayout with the shadow released and the amount paid

        Raises:
            InvalidAmount: if the stake figures are inconsistent
        """
        with self._lock:
            member_shadow = self.store.get_shadow(pool_id, member)
            total_shadow = self.store.get_total_shadow(pool_id)
            try:
                payout = compute_leave_payout(
                    stake_to_undelegate=stake_to_undelegate,
                    member_total_stake=member_total_stake,
                    pool_total_stake=pool_total_stake,
                    member_shadow=member_shadow,
                    total_shadow=total_shadow,
                    pool_balance=self.vault.member_share_balance(pool_id),
                )
            except InvalidAmount as e:
                self._reject("leave", pool_id, str(e))
                raise
            logger.debug(
                f"Leave payout for {member} in {pool_id}: stake={stake_to_undelegate} "
                f"shadow={payout.shadow} real={payout.real}"
            )

            if payout.real > 0:
                self.vault.withdraw_member_share(pool_id, payout.real)
            if payout.shadow > 0:
                self.store.set_shadow(pool_id, member, member_shadow - payout.shadow)
                self.store.set_total_shadow(pool_id, total_shadow - payout.shadow)
            if payout.real > 0:
                self.vault.transfer(member, payout.real)

            logger.info(
                f"Member left: {member} undelegated {stake_to_undelegate} from {pool_id}, paid {payout.real}"
            )
            if payout.real > 0:
                self._emit_withdrawal(
                    WithdrawalRecord(pool_id=pool_id, recipient=member, amount=payout.real)
                )
            self._emit_membership_change(MembershipChange(
                pool_id=pool_id,
                member=member,
                kind=CHANGE_LEAVE,
                stake_delta=stake_to_undelegate,
                shadow_delta=-payout.shadow,
                payout=payout.real,
            ))
            return payout

    # ========================================================================
    # INVARIANTS
    # ========================================================================

    def verify_pool_invariants(self, pool_id: str, members: Optional[List[str]] = None) -> InvariantReport:
        """
        Check that the pool's total shadow equals the sum of member shadows
        and that the real balances owed never exceed the member share.

        Args:
            pool_id: Pool to check
            members: Members to include (defaults to everyone known to the
                store or the stake registry)
        """
        with self._lock:
            if members is None:
                known = set(self.store.members(pool_id)) | set(self.registry.members(pool_id))
                members = sorted(known)

            shadow_sum = sum(self.store.get_shadow(pool_id, m) for m in members)
            real_sum = sum(self.compute_real_balance(pool_id, m) for m in members)
            report = InvariantReport(
                pool_id=pool_id,
                total_shadow=self.store.get_total_shadow(pool_id),
                shadow_sum=shadow_sum,
                member_share_balance=self.vault.member_share_balance(pool_id),
                real_balance_sum=real_sum,
                members_checked=len(members),
            )

        if not report.ok:
            logger.warning(f"Invariant violation in {pool_id}: {report.to_dict()}")
        return report

    # ========================================================================
    # CALLBACKS
    # ========================================================================

    def on_withdrawal(self, callback: Callable[[WithdrawalRecord], None]) -> None:
        """Register callback for completed withdrawals (member, operator and leave payouts)."""
        self._on_withdrawal.append(callback)

    def on_membership_change(self, callback: Callable[[MembershipChange], None]) -> None:
        """Register callback for joins and leaves."""
        self._on_membership_change.append(callback)

    def on_rejection(self, callback: Callable[[str, str, str], None]) -> None:
        """Register callback for rejected operations: (operation, pool_id, reason)."""
        self._on_rejection.append(callback)

    def _emit_withdrawal(self, record: WithdrawalRecord) -> None:
        for callback in self._on_withdrawal:
            try:
                callback(record)
            except Exception as e:
                logger.error(f"Withdrawal callback error: {e}")

    def _emit_membership_change(self, change: MembershipChange) -> None:
        for callback in self._on_membership_change:
            try:
                callback(change)
            except Exception as e:
                logger.error(f"Membership change callback error: {e}")

    def _reject(self, operation: str, pool_id: str, reason: str) -> None:
        logger.warning(f"Rejected {operation} on {pool_id}: {reason}")
        for callback in self._on_rejection:
            try:
                callback(operation, pool_id, reason)
            except Exception as e:
                logger.error(f"Rejection callback error: {e}")
