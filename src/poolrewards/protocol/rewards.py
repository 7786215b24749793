"""
poolrewards/protocol/rewards.py

Proportional reward formulas for pooled staking.

A pool's member-attributable rewards are tracked lazily with "shadow"
balances. For a pool with member-share vault balance B, total shadow T and
total delegated stake S, a member holding stake s and shadow h is owed:

    real = s * (B + T) / S - h

B + T is the lifetime member reward as if nobody had ever withdrawn. Every
formula here keeps (B + T) / S unchanged for the members not involved in an
operation, which is what makes joins and leaves dilution-free.

All functions are pure and operate on non-negative integers in base-asset
units. Rounding always favours the pool: payouts are floored, buy-ins are
ceiled.

A ceiled buy-in can leave the joining member a fraction of a unit under
water until more rewards arrive, and the other members hold that fraction.
Payouts are therefore also capped at the pool balance so a single claim can
never exceed what the vault holds.

Usage:
    from poolrewards.protocol.rewards import compute_real_balance, compute_buy_in

    owed = compute_real_balance(100, 200, 50, 70, 30)
    buy_in = compute_buy_in(100, 100, 20, 30)
"""

import logging
from dataclasses import dataclass, asdict

from .. import fixedpoint
from ..config import validate_alpha
from ..errors import InvalidAmount

logger = logging.getLogger("poolrewards.protocol.rewards")


@dataclass(frozen=True)
class LeavePayout:
    """Result of undelegating stake from a pool."""
    shadow: int     # Shadow balance released from the member and the pool total
    real: int       # Amount paid out of the member-share vault balance

    def to_dict(self) -> dict:
        return asdict(self)


def _require_non_negative(**values: int) -> None:
    for name, value in values.items():
        if value < 0:
            raise InvalidAmount(f"{name} must be non-negative, got {value}")


def _ceil_div(n: int, d: int) -> int:
    return -((-n) // d)


def compute_real_balance(
    member_stake: int,
    total_stake: int,
    member_shadow: int,
    total_shadow: int,
    pool_balance: int,
) -> int:
    """
    Amount a member can withdraw right now.

    Args:
        member_stake: Stake the member currently delegates to the pool
        total_stake: Total stake delegated to the pool
        member_shadow: Member's shadow balance
        total_shadow: Pool's total shadow balance
        pool_balance: Pool's member-share vault balance

    Returns:
        floor(member_stake * (pool_balance + total_shadow) / total_stake) - member_shadow,
        clamped to [0, pool_balance]. Zero when nobody has delegated.
    """
    if total_stake == 0:
        return 0
    entitlement = (member_stake * (pool_balance + total_shadow)) // total_stake
    if entitlement < member_shadow:
        return 0
    return min(entitlement - member_shadow, pool_balance)


def compute_buy_in(
    stake_to_delegate: int,
    prior_total_stake: int,
    total_shadow: int,
    pool_balance: int,
) -> int:
    """
    Shadow increment charged to a member adding stake to a pool.

    Keeping (B + T) / S fixed for everyone else while S grows by d requires
    T to grow by d * (B + T) / S. The remainder of the division is rounded up
    so the joining member absorbs it.

    When nobody held stake before, the joining member becomes the sole owner
    of the member balance whatever the buy-in, so none is charged.
    """
    _require_non_negative(
        stake_to_delegate=stake_to_delegate,
        prior_total_stake=prior_total_stake,
        total_shadow=total_shadow,
        pool_balance=pool_balance,
    )
    if prior_total_stake == 0 or stake_to_delegate == 0:
        return 0
    return _ceil_div(stake_to_delegate * (pool_balance + total_shadow), prior_total_stake)


def compute_leave_payout(
    stake_to_undelegate: int,
    member_total_stake: int,
    pool_total_stake: int,
    member_shadow: int,
    total_shadow: int,
    pool_balance: int,
) -> LeavePayout:
    """
    Split an undelegation into released shadow and paid-out real balance.

    Stake figures are the values *before* the undelegation takes effect.
    A full exit releases the member's whole shadow balance and pays the exact
    real balance. A partial exit releases shadow pro rata and pays the rest of
    the withdrawn fraction's entitlement.

    Raises:
        InvalidAmount: for negative inputs or stake figures that cannot coexist
    """
    _require_non_negative(
        stake_to_undelegate=stake_to_undelegate,
        member_total_stake=member_total_stake,
        pool_total_stake=pool_total_stake,
        member_shadow=member_shadow,
        total_shadow=total_shadow,
        pool_balance=pool_balance,
    )
    if stake_to_undelegate > member_total_stake:
        raise InvalidAmount(
            f"Cannot undelegate {stake_to_undelegate}, member only has {member_total_stake}"
        )
    if member_total_stake > pool_total_stake:
        raise InvalidAmount(
            f"Member stake {member_total_stake} exceeds pool total {pool_total_stake}"
        )
    if member_shadow > total_shadow:
        raise InvalidAmount(
            f"Member shadow {member_shadow} exceeds pool total shadow {total_shadow}"
        )

    if stake_to_undelegate == 0:
        return LeavePayout(shadow=0, real=0)

    if stake_to_undelegate == member_total_stake:
        real = compute_real_balance(
            member_total_stake, pool_total_stake, member_shadow, total_shadow, pool_balance
        )
        return LeavePayout(shadow=member_shadow, real=real)

    entitlement = (stake_to_undelegate * (pool_balance + total_shadow)) // pool_total_stake
    shadow = (member_shadow * stake_to_undelegate) // member_total_stake
    real = min(entitlement - shadow, pool_balance) if entitlement > shadow else 0
    return LeavePayout(shadow=shadow, real=real)


def cobb_douglas(
    total_rewards: int,
    fees: int,
    total_fees: int,
    stake: int,
    total_stake: int,
    alpha_numerator: int,
    alpha_denominator: int,
) -> int:
    """
    Cobb-Douglas reward share for a pool.

        total_rewards * (fees / total_fees) ^ alpha * (stake / total_stake) ^ (1 - alpha)

    ln() only accepts (0, 1] and exp() only accepts x <= 0, so the function is
    rewritten around whichever of feeRatio / stakeRatio and its inverse is at
    most one:

        stakeRatio * e^(alpha * ln(feeRatio / stakeRatio))   if feeRatio <= stakeRatio
        stakeRatio / e^(alpha * ln(stakeRatio / feeRatio))   otherwise

    Raises:
        ValueError: if alpha is outside [0, 1]
        DivisionByZero: if total_fees or total_stake is zero, or the stake
            ratio is so far below the fee ratio that exp() saturates to zero
    """
    validate_alpha(alpha_numerator, alpha_denominator)
    fee_ratio = fixedpoint.to_fixed(fees, total_fees)
    stake_ratio = fixedpoint.to_fixed(stake, total_stake)
    if fee_ratio == 0 or stake_ratio == 0:
        return 0

    fees_dominated = fee_ratio <= stake_ratio
    if fees_dominated:
        n = fixedpoint.div(fee_ratio, stake_ratio)
    else:
        n = fixedpoint.div(stake_ratio, fee_ratio)
    if n == 0:
        # The smaller ratio is below fixed-point resolution relative to the larger.
        return 0

    n = fixedpoint.exp(
        fixedpoint.mul_div(fixedpoint.ln(n), alpha_numerator, alpha_denominator)
    )
    if fees_dominated:
        n = fixedpoint.mul(stake_ratio, n)
    else:
        n = fixedpoint.div(stake_ratio, n)

    rewards = fixedpoint.uint_mul(n, total_rewards)
    logger.debug(
        f"cobb_douglas: fees={fees}/{total_fees} stake={stake}/{total_stake} "
        f"alpha={alpha_numerator}/{alpha_denominator} -> {rewards}"
    )
    return rewards
