"""
poolrewards/tests/test_vault.py

Tests for the reward vault and operator access control.
"""

import pytest

from poolrewards.config import LedgerConfig
from poolrewards.errors import InvalidAmount, InsufficientBalance
from poolrewards.protocol.vault import RewardVault, InMemoryRewardVault, PoolBalance
from poolrewards.protocol.access import AccessControl, PoolOperatorRegistry


@pytest.fixture
def vault():
    return InMemoryRewardVault()


class TestDeposits:
    """Tests for crediting pool rewards."""

    def test_empty_pool(self, vault):
        assert isinstance(vault, RewardVault)
        assert vault.member_share_balance("pool-1") == 0
        assert vault.operator_share_balance("pool-1") == 0
        assert vault.total_balance("pool-1") == 0

    def test_member_and_operator_deposits(self, vault):
        vault.deposit_member_share("pool-1", 70)
        vault.deposit_operator_share("pool-1", 30)

        assert vault.member_share_balance("pool-1") == 70
        assert vault.operator_share_balance("pool-1") == 30
        assert vault.total_balance("pool-1") == 100

    def test_deposit_for_splits(self, vault):
        credited = vault.deposit_for("pool-1", 1_000, operator_share_ppm=250_000)

        assert credited == PoolBalance("pool-1", operator_share=250, member_share=750)
        assert vault.get_pool_balance("pool-1").total == 1_000

    def test_deposit_for_floors_operator_cut(self, vault):
        credited = vault.deposit_for("pool-1", 7, operator_share_ppm=500_000)
        assert credited.operator_share == 3
        assert credited.member_share == 4

    def test_deposit_for_default_share(self):
        vault = InMemoryRewardVault(default_operator_share_ppm=100_000)
        vault.deposit_for("pool-1", 100)
        assert vault.operator_share_balance("pool-1") == 10

    def test_from_config(self):
        vault = InMemoryRewardVault.from_config(LedgerConfig(operator_share_ppm=200_000))
        vault.deposit_for("pool-1", 100)
        assert vault.member_share_balance("pool-1") == 80

    def test_invalid_share(self, vault):
        with pytest.raises(InvalidAmount):
            vault.deposit_for("pool-1", 100, operator_share_ppm=1_000_001)
        with pytest.raises(ValueError):
            InMemoryRewardVault(default_operator_share_ppm=-1)

    def test_negative_deposit(self, vault):
        with pytest.raises(InvalidAmount):
            vault.deposit_member_share("pool-1", -5)


class TestWithdrawals:
    """Tests for debiting shares and paying out."""

    def test_withdraw_member_share(self, vault):
        vault.deposit_member_share("pool-1", 50)
        vault.withdraw_member_share("pool-1", 20)
        assert vault.member_share_balance("pool-1") == 30

    def test_overdraw_fails_without_side_effects(self, vault):
        vault.deposit_member_share("pool-1", 50)
        vault.deposit_operator_share("pool-1", 5)

        with pytest.raises(InsufficientBalance):
            vault.withdraw_member_share("pool-1", 51)
        with pytest.raises(InsufficientBalance):
            vault.withdraw_operator_share("pool-1", 6)

        assert vault.member_share_balance("pool-1") == 50
        assert vault.operator_share_balance("pool-1") == 5

    def test_withdraw_from_unknown_pool(self, vault):
        with pytest.raises(InsufficientBalance):
            vault.withdraw_member_share("nowhere", 1)

    def test_transfer_tracking(self, vault):
        vault.transfer("alice", 10)
        vault.transfer("alice", 5)
        vault.transfer("bob", 1)

        assert vault.paid_to("alice") == 15
        assert vault.paid_to("carol") == 0
        assert [t.recipient for t in vault.get_transfers()] == ["alice", "alice", "bob"]

    def test_pool_balance_is_a_copy(self, vault):
        vault.deposit_member_share("pool-1", 10)
        snapshot = vault.get_pool_balance("pool-1")
        snapshot.member_share = 0
        assert vault.member_share_balance("pool-1") == 10


class TestAccessControl:
    """Tests for the pool operator registry."""

    def test_operator_lookup(self):
        access = PoolOperatorRegistry({"pool-1": "op"})

        assert isinstance(access, AccessControl)
        assert access.is_pool_operator("pool-1", "op")
        assert not access.is_pool_operator("pool-1", "someone")
        assert not access.is_pool_operator("pool-2", "op")

    def test_change_operator(self):
        access = PoolOperatorRegistry()
        access.set_operator("pool-1", "old")
        access.set_operator("pool-1", "new")

        assert access.get_operator("pool-1") == "new"
        assert not access.is_pool_operator("pool-1", "old")
