"""
Tests for lazy interest accrual: the pure ``accrue`` function and the engine
that applies it to the ledger and claim token.
"""

import pytest

from volt.core.constants import SECONDS_PER_DAY, SECONDS_PER_YEAR
from volt.core.contracts.claim_token import ClaimToken
from volt.core.defi.accrual import InterestAccrualEngine, accrue, calculate_interest
from volt.core.defi.ledger import Account, AccountLedger, LockPosition
from volt.core.ledger_exceptions import NotRegistered

UNIT = 10**6
T0 = 1_000_000


class TestAccrue:
    def test_base_rate_on_available_and_bonus(self):
        account = Account(
            address="0xa",
            available_balance=700 * UNIT,
            bonus_balance=300 * UNIT,
            last_accrual_time=T0,
        )
        result = accrue(account, T0 + SECONDS_PER_YEAR, base_apy_bp=600)

        assert result.interest == 60 * UNIT
        assert result.elapsed == SECONDS_PER_YEAR
        assert result.account.available_balance == 760 * UNIT
        assert result.account.bonus_balance == 300 * UNIT
        assert result.account.last_accrual_time == T0 + SECONDS_PER_YEAR

    def test_input_account_is_not_mutated(self):
        account = Account(address="0xa", available_balance=1000 * UNIT, last_accrual_time=T0)
        account.locks.append(LockPosition(100 * UNIT, T0, 90, 2000, 350))

        result = accrue(account, T0 + SECONDS_PER_DAY, base_apy_bp=600)

        assert account.available_balance == 1000 * UNIT
        assert account.last_accrual_time == T0
        assert result.account is not account
        assert result.account.locks[0] is not account.locks[0]

    def test_active_locks_accrue_at_their_apr(self):
        account = Account(address="0xa", last_accrual_time=T0)
        account.locks.append(LockPosition(1000 * UNIT, T0, 365, 11000, 1800))
        account.locks.append(LockPosition(1000 * UNIT, T0, 45, 1000, 150, active=False))

        result = accrue(account, T0 + SECONDS_PER_YEAR, base_apy_bp=600)

        assert result.interest == 180 * UNIT

    def test_each_term_floors_independently(self):
        account = Account(address="0xa", available_balance=1, last_accrual_time=T0)
        account.locks.append(LockPosition(1, T0, 45, 1000, 150))
        account.locks.append(LockPosition(1, T0, 45, 1000, 150))

        assert accrue(account, T0 + SECONDS_PER_DAY, 600).interest == 0

    def test_forward_dated_checkpoint_is_kept(self):
        account = Account(address="0xa", available_balance=1000 * UNIT, last_accrual_time=T0 + 500)
        result = accrue(account, T0, base_apy_bp=600)

        assert result.interest == 0
        assert result.elapsed == 0
        assert result.account.last_accrual_time == T0 + 500

    def test_calculate_interest_matches_accrue(self):
        account = Account(address="0xa", available_balance=12_345 * UNIT, last_accrual_time=T0)
        account.locks.append(LockPosition(777 * UNIT, T0, 180, 4000, 800))
        now = T0 + 17 * SECONDS_PER_DAY + 3
        assert calculate_interest(account, now, 600) == accrue(account, now, 600).interest


class TestInterestAccrualEngine:
    @pytest.fixture
    def engine(self):
        ledger = AccountLedger()
        token = ClaimToken()
        account = ledger.open_account("0xalice", None, T0)
        account.available_balance = 1000 * UNIT
        token.mint("0xalice", 1000 * UNIT)
        ledger.record_mint(1000 * UNIT)
        return InterestAccrualEngine(ledger, token)

    def test_settle_mints_interest(self, engine):
        minted = engine.settle("0xALICE", T0 + SECONDS_PER_YEAR)

        account = engine.ledger.get("0xalice")
        assert minted == 60 * UNIT
        assert account.available_balance == 1060 * UNIT
        assert account.last_accrual_time == T0 + SECONDS_PER_YEAR
        assert engine.token.balance_of("0xalice") == 1060 * UNIT
        assert engine.ledger.state.total_minted == 1060 * UNIT
        assert engine.settled_total == 60 * UNIT

    def test_settle_twice_at_same_time_is_idempotent(self, engine):
        engine.settle("0xalice", T0 + SECONDS_PER_DAY)
        assert engine.settle("0xalice", T0 + SECONDS_PER_DAY) == 0

    def test_project_does_not_mutate(self, engine):
        projected = engine.project("0xalice", T0 + SECONDS_PER_YEAR)
        assert projected == 60 * UNIT
        assert engine.ledger.get("0xalice").available_balance == 1000 * UNIT
        assert engine.project("0xnobody", T0 + SECONDS_PER_YEAR) == 0

    def test_settle_requires_registration(self, engine):
        with pytest.raises(NotRegistered):
            engine.settle("0xnobody", T0)
