"""
Tests for the StakingPlatform facade: deposits, transactional rollback,
reentrancy protection, the clock and metrics wiring.
"""

import pytest

from volt.core.constants import SECONDS_PER_DAY
from volt.core.contracts.claim_token import ClaimToken
from volt.core.contracts.reserve_vault import ReserveVault
from volt.core.defi.platform import StakingPlatform
from volt.core.ledger_exceptions import (
    AmountIsZero,
    BelowMinWithdraw,
    CustodyError,
    NotPaused,
    NotRegistered,
    Paused,
    ReentrancyError,
    TokenError,
    Unauthorized,
)
from volt.core.metrics import LedgerMetrics

from volt_testkit import (
    ALICE,
    BOB,
    DAVE,
    OPERATOR_FUNDING,
    OWNER,
    START_TIME,
    UNIT,
    WALLET_FUNDING,
    ledger_state,
    make_platform,
)


class ReenteringToken(ClaimToken):
    """Claim token whose mint calls back into the platform."""

    platform = None

    def mint(self, account, amount):
        if self.platform is not None:
            self.platform.deposit(account, amount)
        return super().mint(account, amount)


class TestConstruction:
    def test_owner_bootstrap(self, platform):
        owner = platform.ledger.get(OWNER)
        assert owner.registered is True
        assert owner.has_deposited is True
        assert owner.first_deposit_time == START_TIME
        assert len(platform.ledger) == 1

    def test_default_collaborators(self, platform):
        assert isinstance(platform.token, ClaimToken)
        assert isinstance(platform.custody, ReserveVault)
        assert platform.token.minter == platform.address
        assert platform.token.decimals == platform.config.reserve_decimals

    def test_fresh_platform_is_solvent(self, clock):
        platform = StakingPlatform(owner=OWNER, time_provider=clock)
        assert platform.liability() == 0
        assert platform.reserve_held() == 0
        assert platform.is_solvent() is True


class TestDeposit:
    def test_mints_claim_one_to_one(self, alice_registered):
        platform = alice_registered
        wallet = platform.custody.wallet_balance(ALICE)
        reserve = platform.reserve_held()

        result = platform.deposit(ALICE, 250 * UNIT)

        assert result.amount == 250 * UNIT
        assert result.deposit_bonus == 1250 * UNIT
        assert platform.balance_of_claim(ALICE) == 250 * UNIT + result.deposit_bonus
        assert platform.custody.wallet_balance(ALICE) == wallet - 250 * UNIT
        assert platform.reserve_held() == reserve + 250 * UNIT
        # deposit, size bonus and the owner's 10% referral
        assert platform.token.total_supply == (250 + 1250 + 25) * UNIT
        assert platform.token.total_supply == platform.ledger.state.total_minted
        assert platform.get_user_overview(ALICE)["first_deposit_time"] == START_TIME

    @pytest.mark.parametrize("amount", [0, -5])
    def test_non_positive_amount(self, alice_registered, amount):
        with pytest.raises(AmountIsZero):
            alice_registered.deposit(ALICE, amount)

    def test_unregistered(self, platform):
        with pytest.raises(NotRegistered):
            platform.deposit(BOB, 100 * UNIT)

    def test_short_wallet_leaves_no_trace(self, platform):
        platform.register(DAVE, OWNER)
        state = ledger_state(platform)

        with pytest.raises(CustodyError):
            platform.deposit(DAVE, WALLET_FUNDING + 1)

        assert ledger_state(platform) == state
        assert platform.get_user_overview(DAVE)["deposited"] is False

    def test_token_failure_rolls_back_custody(self, clock):
        token = ClaimToken(max_supply=100 * UNIT)
        platform = StakingPlatform(owner=OWNER, token=token, time_provider=clock)
        platform.custody.credit_wallet(ALICE, 1000 * UNIT)
        platform.register(ALICE, OWNER)

        with pytest.raises(TokenError):
            platform.deposit(ALICE, 101 * UNIT)

        assert platform.custody.wallet_balance(ALICE) == 1000 * UNIT
        assert platform.reserve_held() == 0
        assert platform.ledger.state.total_minted == 0


class TestTransactions:
    def test_reentrant_call_is_rejected(self, clock):
        token = ReenteringToken()
        platform = StakingPlatform(owner=OWNER, token=token, time_provider=clock)
        platform.custody.credit_wallet(ALICE, 1000 * UNIT)
        platform.register(ALICE, OWNER)
        token.platform = platform
        state = ledger_state(platform)

        with pytest.raises(ReentrancyError):
            platform.deposit(ALICE, 100 * UNIT)

        assert ledger_state(platform) == state
        assert platform._locked is False

    def test_failed_operation_discards_settled_interest(self, alice_deposited, clock):
        platform = alice_deposited
        clock.advance(days=30)
        state = ledger_state(platform)
        settled = platform.accrual.settled_total

        with pytest.raises(BelowMinWithdraw):
            platform.withdraw(ALICE, 1 * UNIT)

        assert ledger_state(platform) == state
        assert platform.accrual.settled_total == settled

    def test_settle_mints_pending_interest(self, alice_deposited, clock):
        platform = alice_deposited
        clock.advance(days=365)
        expected = platform.calculate_accrued_interest(ALICE)

        minted = platform.settle(ALICE)

        # 6% on 10,000 available plus 10,000 unvested bonus
        assert minted == expected == 1200 * UNIT
        assert platform.calculate_accrued_interest(ALICE) == 0
        assert platform.balance_of_claim(ALICE) == 21_200 * UNIT

    def test_settle_unregistered(self, platform):
        with pytest.raises(NotRegistered):
            platform.settle(BOB)

    def test_calculate_accrued_interest_is_read_only(self, alice_deposited, clock):
        platform = alice_deposited
        clock.advance(days=10)
        state = ledger_state(platform)

        first = platform.calculate_accrued_interest(ALICE)
        second = platform.calculate_accrued_interest(ALICE)

        assert first == second > 0
        assert ledger_state(platform) == state


class TestClock:
    def test_clock_never_runs_backwards(self, alice_deposited, clock):
        platform = alice_deposited
        clock.advance(days=2)
        platform.settle(ALICE)
        checkpoint = platform.ledger.get(ALICE).last_accrual_time

        clock.now = START_TIME
        platform.deposit(ALICE, 100 * UNIT)

        assert platform.ledger.get(ALICE).last_accrual_time == checkpoint
        assert checkpoint == START_TIME + 2 * SECONDS_PER_DAY
        assert platform.calculate_accrued_interest(ALICE) == 0

    def test_fractional_time_is_floored(self):
        platform = StakingPlatform(owner=OWNER, time_provider=lambda: START_TIME + 0.9)
        assert platform.ledger.get(OWNER).first_deposit_time == START_TIME


class TestPause:
    def test_fresh_platform_is_not_paused(self, platform):
        assert platform.is_paused() is False
        assert platform.get_global_state()["paused"] is False

    @pytest.mark.parametrize(
        "operation,args",
        [
            ("deposit", (ALICE, 1000 * UNIT)),
            ("lock", (ALICE, 1000 * UNIT, 90)),
            ("unlock", (ALICE, 0)),
            ("withdraw", (ALICE, 500 * UNIT)),
            ("claim_vested_bonus", (ALICE,)),
            ("settle", (ALICE,)),
            ("register", (BOB, OWNER)),
        ],
    )
    def test_user_operations_refused_while_paused(self, alice_deposited, operation, args):
        platform = alice_deposited
        platform.lock(ALICE, 1000 * UNIT, 90)
        platform.pause(OWNER)
        state = ledger_state(platform)

        with pytest.raises(Paused):
            getattr(platform, operation)(*args)

        assert ledger_state(platform) == state

    def test_unpause_restores_user_operations(self, alice_registered):
        platform = alice_registered
        platform.pause(OWNER)
        with pytest.raises(Paused):
            platform.deposit(ALICE, 1000 * UNIT)

        platform.unpause(OWNER)

        assert platform.is_paused() is False
        assert platform.deposit(ALICE, 1000 * UNIT).first_deposit is True

    def test_admin_operations_continue_while_paused(self, alice_deposited):
        platform = alice_deposited
        platform.pause(OWNER)

        platform.admin_deposit(OWNER, 100 * UNIT)
        platform.admin_grant_bonus(OWNER, ALICE, 10 * UNIT, 0)
        platform.update_referral_rewards(OWNER, [1000, 500, 250, 125, 100, 50, 25])

        assert platform.is_paused() is True

    def test_pause_is_owner_only(self, alice_registered):
        with pytest.raises(Unauthorized):
            alice_registered.pause(ALICE)
        alice_registered.pause(OWNER)
        with pytest.raises(Unauthorized):
            alice_registered.unpause(ALICE)
        assert alice_registered.is_paused() is True

    def test_double_pause_and_stray_unpause(self, platform):
        with pytest.raises(NotPaused):
            platform.unpause(OWNER)
        platform.pause(OWNER)
        with pytest.raises(Paused):
            platform.pause(OWNER)
        assert platform.is_paused() is True

    def test_paused_flag_survives_serialization(self, platform, clock):
        platform.pause(OWNER)
        restored = StakingPlatform.from_dict(platform.to_dict(), time_provider=clock)
        assert restored.is_paused() is True


class TestReadAccessors:
    def test_global_state(self, alice_deposited):
        data = alice_deposited.get_global_state()
        assert data["total_minted"] == 21_000 * UNIT
        assert data["total_burned"] == 0
        assert data["total_bonus_outstanding"] == 11_000 * UNIT
        assert data["accounts"] == 2
        assert data["active_locks"] == 0
        assert data["surplus"] == data["reserve_held"] - data["liability"]

    def test_parameters_include_policy(self, platform):
        params = platform.get_parameters()
        assert params["base_apy_bp"] == 600
        assert params["min_withdraw"] == 150 * UNIT
        assert params["referral_bp"] == [1000, 500, 250, 125, 100, 50, 25]
        assert params["fee_tier_threshold"] == 500 * UNIT
        assert params["enforce_solvency"] is False
        assert params["enforce_lock_maturity"] is False

    def test_unknown_account_reads(self, platform):
        assert platform.get_lock_count(BOB) == 0
        assert platform.get_locked_amount(BOB) == 0
        assert platform.vested_bonus(BOB) == 0
        assert platform.can_withdraw_bonus(BOB) is False
        assert platform.calculate_accrued_interest(BOB) == 0
        with pytest.raises(NotRegistered):
            platform.get_lock(BOB, 0)


class TestMetricsWiring:
    @pytest.fixture
    def metrics(self):
        return LedgerMetrics()

    def test_operations_and_value_flow(self, clock, metrics):
        platform = make_platform(clock, metrics=metrics)
        platform.register(ALICE, OWNER)
        platform.deposit(ALICE, 10_000 * UNIT)
        with pytest.raises(BelowMinWithdraw):
            platform.withdraw(ALICE, 1 * UNIT)
        platform.withdraw(ALICE, 1000 * UNIT)

        registry = metrics.registry
        assert registry.get_sample_value(
            "volt_operations_total", {"operation": "deposit", "status": "success"}
        ) == 1.0
        assert registry.get_sample_value(
            "volt_operations_total", {"operation": "withdraw", "status": "rejected"}
        ) == 1.0
        assert registry.get_sample_value(
            "volt_operation_errors_total",
            {"operation": "withdraw", "error_type": "BelowMinWithdraw"},
        ) == 1.0
        assert registry.get_sample_value("volt_deposits_base_units_total") == 10_000 * UNIT
        assert registry.get_sample_value(
            "volt_bonus_credited_base_units_total", {"source": "referral"}
        ) == 1000 * UNIT
        assert registry.get_sample_value("volt_fees_collected_base_units_total") == 50 * UNIT
        assert registry.get_sample_value("volt_surplus_base_units") == platform.surplus()
        assert registry.get_sample_value("volt_accounts_registered") == 2

    def test_admin_deposit_updates_reserve_gauge(self, clock, metrics):
        make_platform(clock, metrics=metrics)
        assert metrics.registry.get_sample_value("volt_reserve_held_base_units") == OPERATOR_FUNDING

    def test_unlock_records_lock_rewards(self, clock, metrics):
        platform = make_platform(clock, metrics=metrics)
        platform.register(ALICE, OWNER)
        platform.deposit(ALICE, 1000 * UNIT)
        platform.lock(ALICE, 1000 * UNIT, 1095)
        assert metrics.registry.get_sample_value("volt_active_locks") == 1

        platform.unlock(ALICE, 0)

        assert metrics.registry.get_sample_value("volt_lock_bonus_minted_base_units_total") == 4000 * UNIT
        assert metrics.registry.get_sample_value("volt_interest_minted_base_units_total") == 3000 * UNIT
        assert metrics.registry.get_sample_value("volt_active_locks") == 0
