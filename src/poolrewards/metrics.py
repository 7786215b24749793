"""
poolrewards/metrics.py

Prometheus metrics collection for poolrewards.

Counts withdrawals, buy-ins, leave payouts and rejected operations, and
exposes per-pool gauges for the shadow total and member-share balance of
watched pools.
"""

import time
import logging
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from .protocol.ledger import CHANGE_JOIN, ROLE_OPERATOR

if TYPE_CHECKING:
    from .protocol.ledger import RewardLedger, WithdrawalRecord, MembershipChange

logger = logging.getLogger("poolrewards.metrics")


class LedgerMetrics:
    """
    Prometheus metrics collector for a RewardLedger.

    Usage:
        from poolrewards.metrics import LedgerMetrics

        metrics = LedgerMetrics()
        metrics.attach(ledger)
        metrics.watch_pool("pool-1")

        # Get metrics in Prometheus format
        prometheus_output = metrics.collect()
    """

    # Metric definitions
    METRICS = {
        "poolrewards_member_withdrawals_total": {
            "type": "counter",
            "help": "Total number of member withdrawals (including leave payouts)",
        },
        "poolrewards_member_withdrawn_amount_total": {
            "type": "counter",
            "help": "Total amount paid to members",
        },
        "poolrewards_operator_withdrawals_total": {
            "type": "counter",
            "help": "Total number of operator withdrawals",
        },
        "poolrewards_operator_withdrawn_amount_total": {
            "type": "counter",
            "help": "Total amount paid to operators",
        },
        "poolrewards_joins_total": {
            "type": "counter",
            "help": "Total number of stake delegations settled",
        },
        "poolrewards_buy_in_amount_total": {
            "type": "counter",
            "help": "Total shadow buy-in charged on delegation",
        },
        "poolrewards_leaves_total": {
            "type": "counter",
            "help": "Total number of stake undelegations settled",
        },
        "poolrewards_rejected_operations_total": {
            "type": "counter",
            "help": "Total number of rejected ledger operations",
        },
        "poolrewards_pool_total_shadow": {
            "type": "gauge",
            "help": "Total shadow balance of a pool",
        },
        "poolrewards_pool_member_share_balance": {
            "type": "gauge",
            "help": "Member-share vault balance of a pool",
        },
        "poolrewards_uptime_seconds": {
            "type": "counter",
            "help": "Seconds since the collector was created",
        },
    }

    def __init__(self, ledger: Optional["RewardLedger"] = None):
        """
        Initialize metrics collector.

        Args:
            ledger: RewardLedger to read pool gauges from (see attach())
        """
        self.ledger = ledger
        self._start_time = time.time()
        self._watched_pools: List[str] = []

        # Counters (persist across collections)
        self._member_withdrawals = 0
        self._member_withdrawn = 0
        self._operator_withdrawals = 0
        self._operator_withdrawn = 0
        self._joins = 0
        self._buy_in_total = 0
        self._leaves = 0
        self._rejections: Dict[str, int] = {}  # operation -> count

    def attach(self, ledger: "RewardLedger") -> bool:
        """
        Subscribe to a ledger's callbacks.

        Returns:
            False if metrics are disabled in the ledger's config
        """
        self.ledger = ledger
        if not ledger.config.metrics_enabled:
            logger.info("Ledger metrics disabled by config")
            return False

        ledger.on_withdrawal(self.record_withdrawal)
        ledger.on_membership_change(self.record_membership_change)
        ledger.on_rejection(self.record_rejection)
        return True

    def watch_pool(self, pool_id: str) -> None:
        """Include a pool's gauges in collect()."""
        if pool_id not in self._watched_pools:
            self._watched_pools.append(pool_id)

    def record_withdrawal(self, record: "WithdrawalRecord") -> None:
        """Record a completed withdrawal."""
        if record.role == ROLE_OPERATOR:
            self._operator_withdrawals += 1
            self._operator_withdrawn += record.amount
        else:
            self._member_withdrawals += 1
            self._member_withdrawn += record.amount

    def record_membership_change(self, change: "MembershipChange") -> None:
        """Record a settled join or leave."""
        if change.kind == CHANGE_JOIN:
            self._joins += 1
            self._buy_in_total += change.shadow_delta
        else:
            self._leaves += 1

    def record_rejection(self, operation: str, pool_id: str, reason: str) -> None:
        """Record a rejected operation."""
        self._rejections[operation] = self._rejections.get(operation, 0) + 1

    def collect(self) -> str:
        """
        Collect all metrics and return in Prometheus format.

        Returns:
            Prometheus-formatted metrics string
        """
        lines = []
        declared = set()

        # Helper to add metric
        def add_metric(name: str, value: float, labels: Dict[str, str] = None):
            if name not in declared:
                metric_def = self.METRICS.get(name, {})
                lines.append(f"# HELP {name} {metric_def.get('help', '')}")
                lines.append(f"# TYPE {name} {metric_def.get('type', 'gauge')}")
                declared.add(name)

            if labels:
                label_str = ",".join(f'{k}="{v}"' for k, v in labels.items())
                lines.append(f"{name}{{{label_str}}} {value}")
            else:
                lines.append(f"{name} {value}")

        add_metric("poolrewards_member_withdrawals_total", self._member_withdrawals)
        add_metric("poolrewards_member_withdrawn_amount_total", self._member_withdrawn)
        add_metric("poolrewards_operator_withdrawals_total", self._operator_withdrawals)
        add_metric("poolrewards_operator_withdrawn_amount_total", self._operator_withdrawn)
        add_metric("poolrewards_joins_total", self._joins)
        add_metric("poolrewards_buy_in_amount_total", self._buy_in_total)
        add_metric("poolrewards_leaves_total", self._leaves)

        if self._rejections:
            for operation, count in sorted(self._rejections.items()):
                add_metric("poolrewards_rejected_operations_total", count, {"operation": operation})
        else:
            add_metric("poolrewards_rejected_operations_total", 0)

        if self.ledger is not None:
            try:
                for pool_id in self._watched_pools:
                    labels = {"pool": pool_id}
                    add_metric(
                        "poolrewards_pool_total_shadow",
                        self.ledger.get_total_shadow_balance(pool_id),
                        labels,
                    )
                    add_metric(
                        "poolrewards_pool_member_share_balance",
                        self.ledger.get_member_share_balance(pool_id),
                        labels,
                    )
            except Exception as e:
                logger.error(f"Error collecting pool metrics: {e}")
                lines.append(f"# Error collecting pool metrics: {e}")

        add_metric("poolrewards_uptime_seconds", time.time() - self._start_time)

        return "\n".join(lines) + "\n"

    def get_stats(self) -> Dict[str, Any]:
        """
        Get metrics as a dictionary (for JSON output).

        Returns:
            Dictionary of metric values
        """
        return {
            "member_withdrawals": self._member_withdrawals,
            "member_withdrawn": self._member_withdrawn,
            "operator_withdrawals": self._operator_withdrawals,
            "operator_withdrawn": self._operator_withdrawn,
            "joins": self._joins,
            "buy_in_total": self._buy_in_total,
            "leaves": self._leaves,
            "rejections": dict(self._rejections),
            "watched_pools": list(self._watched_pools),
            "uptime_seconds": time.time() - self._start_time,
        }

    def reset_counters(self) -> None:
        """Reset all counters (useful for testing)."""
        self._member_withdrawals = 0
        self._member_withdrawn = 0
        self._operator_withdrawals = 0
        self._operator_withdrawn = 0
        self._joins = 0
        self._buy_in_total = 0
        self._leaves = 0
        self._rejections = {}
