"""
poolrewards/tests/test_metrics.py

Tests for LedgerMetrics (Prometheus output).
"""

import pytest

from poolrewards.config import LedgerConfig
from poolrewards.errors import InvalidAmount, Unauthorized
from poolrewards.metrics import LedgerMetrics
from poolrewards.protocol import (
    RewardLedger,
    MemoryShadowStore,
    InMemoryRewardVault,
    InMemoryStakeRegistry,
    DelegationManager,
    PoolOperatorRegistry,
)
from poolrewards.protocol.ledger import (
    WithdrawalRecord,
    MembershipChange,
    ROLE_OPERATOR,
    CHANGE_JOIN,
    CHANGE_LEAVE,
)


@pytest.fixture
def vault():
    return InMemoryRewardVault()


@pytest.fixture
def registry():
    return InMemoryStakeRegistry()


@pytest.fixture
def ledger(vault, registry):
    return RewardLedger(MemoryShadowStore(), vault, registry)


@pytest.fixture
def metrics(ledger):
    metrics = LedgerMetrics()
    assert metrics.attach(ledger)
    return metrics


class TestLedgerMetrics:
    """Tests for metric collection."""

    def test_initial_output(self):
        output = LedgerMetrics().collect()

        assert "# TYPE poolrewards_member_withdrawals_total counter" in output
        assert "poolrewards_member_withdrawals_total 0" in output
        assert "poolrewards_rejected_operations_total 0" in output
        assert "poolrewards_uptime_seconds" in output

    def test_counts_activity(self, metrics, ledger, registry, vault):
        manager = DelegationManager(registry, ledger)
        manager.delegate("pool-1", "alice", 100)
        vault.deposit_member_share("pool-1", 50)
        ledger.withdraw("pool-1", "alice", 20)
        manager.delegate("pool-1", "bob", 100)
        manager.undelegate_all("pool-1", "alice")

        stats = metrics.get_stats()
        assert stats["joins"] == 2
        assert stats["buy_in_total"] == 50
        assert stats["leaves"] == 1
        assert stats["member_withdrawals"] == 2
        assert stats["member_withdrawn"] == 50

    def test_operator_withdrawals(self, metrics, ledger, vault):
        vault.deposit_operator_share("pool-1", 30)
        ledger.withdraw_all_operator("pool-1", "op")

        assert metrics.get_stats()["operator_withdrawn"] == 30
        assert "poolrewards_operator_withdrawals_total 1" in metrics.collect()

    def test_rejections_labelled(self, metrics, ledger):
        with pytest.raises(InvalidAmount):
            ledger.withdraw("pool-1", "alice", 5)

        output = metrics.collect()
        assert 'poolrewards_rejected_operations_total{operation="withdraw"} 1' in output

    def test_operator_rejections_labelled_by_entry_point(self, vault, registry):
        access = PoolOperatorRegistry({"pool-1": "op"})
        ledger = RewardLedger(MemoryShadowStore(), vault, registry, access)
        metrics = LedgerMetrics()
        metrics.attach(ledger)

        with pytest.raises(Unauthorized):
            ledger.withdraw_all_operator("pool-1", "mallory")

        output = metrics.collect()
        assert 'poolrewards_rejected_operations_total{operation="withdraw_all_operator"} 1' in output
        assert 'operation="withdraw_operator"' not in output

    def test_records_classified_by_role_and_kind(self):
        metrics = LedgerMetrics()

        metrics.record_withdrawal(WithdrawalRecord(pool_id="pool-1", recipient="op", amount=7, role=ROLE_OPERATOR))
        metrics.record_withdrawal(WithdrawalRecord(pool_id="pool-1", recipient="alice", amount=3))
        metrics.record_membership_change(MembershipChange(
            pool_id="pool-1", member="bob", kind=CHANGE_JOIN, stake_delta=10, shadow_delta=4,
        ))
        metrics.record_membership_change(MembershipChange(
            pool_id="pool-1", member="bob", kind=CHANGE_LEAVE, stake_delta=10, shadow_delta=-4,
        ))

        stats = metrics.get_stats()
        assert stats["operator_withdrawn"] == 7
        assert stats["member_withdrawn"] == 3
        assert stats["joins"] == 1
        assert stats["buy_in_total"] == 4
        assert stats["leaves"] == 1

    def test_pool_gauges(self, metrics, vault):
        vault.deposit_member_share("pool-1", 75)
        metrics.watch_pool("pool-1")
        metrics.watch_pool("pool-1")

        output = metrics.collect()
        assert 'poolrewards_pool_member_share_balance{pool="pool-1"} 75' in output
        assert 'poolrewards_pool_total_shadow{pool="pool-1"} 0' in output
        assert output.count("# TYPE poolrewards_pool_total_shadow gauge") == 1

    def test_disabled_by_config(self, vault, registry):
        ledger = RewardLedger(
            MemoryShadowStore(), vault, registry, config=LedgerConfig(metrics_enabled=False)
        )
        metrics = LedgerMetrics()

        assert not metrics.attach(ledger)
        vault.deposit_operator_share("pool-1", 10)
        ledger.withdraw_all_operator("pool-1", "op")
        assert metrics.get_stats()["operator_withdrawals"] == 0

    def test_reset_counters(self, metrics, ledger, vault):
        vault.deposit_operator_share("pool-1", 10)
        ledger.withdraw_all_operator("pool-1", "op")

        metrics.reset_counters()

        stats = metrics.get_stats()
        assert stats["operator_withdrawals"] == 0
        assert stats["rejections"] == {}
