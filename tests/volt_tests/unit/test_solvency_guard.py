"""
Tests for the solvency guard, admin liquidity moves and parameter updates.
"""

import pytest

from volt.core.config import PlatformConfig
from volt.core.ledger_exceptions import (
    AmountIsZero,
    InsufficientLiquidity,
    InvalidArrayLength,
    ParameterOutOfBounds,
    Unauthorized,
    get_error_context,
)

from volt_testkit import ALICE, OPERATOR_FUNDING, OWNER, UNIT, ledger_state, make_platform


class TestAdminLiquidity:
    def test_liability_and_surplus(self, alice_deposited):
        platform = alice_deposited
        state = platform.ledger.state
        # minted: 10,000 deposit + 10,000 deposit bonus + 1,000 referral to the owner;
        # the 11,000 of unvested bonus also counts as outstanding
        assert state.total_minted - state.total_burned == 21_000 * UNIT
        assert state.total_bonus_outstanding == 11_000 * UNIT
        assert platform.liability() == 32_000 * UNIT
        assert platform.liability() == state.total_minted - state.total_burned + state.total_bonus_outstanding
        assert platform.reserve_held() == OPERATOR_FUNDING + 10_000 * UNIT
        assert platform.surplus() == OPERATOR_FUNDING - 22_000 * UNIT
        assert platform.is_solvent() is True

    def test_withdraw_above_surplus_rejected(self, alice_deposited):
        platform = alice_deposited
        reserve = platform.reserve_held()

        with pytest.raises(InsufficientLiquidity):
            platform.admin_withdraw(OWNER, platform.surplus() + 1)

        assert platform.reserve_held() == reserve

    def test_withdraw_exact_surplus(self, alice_deposited):
        platform = alice_deposited
        surplus = platform.surplus()
        wallet = platform.custody.wallet_balance(OWNER)

        platform.admin_withdraw(OWNER, surplus)

        assert platform.surplus() == 0
        assert platform.custody.wallet_balance(OWNER) == wallet + surplus

    def test_deposit_raises_surplus(self, platform):
        before = platform.surplus()
        platform.admin_deposit(OWNER, 5000 * UNIT)
        assert platform.surplus() == before + 5000 * UNIT

    @pytest.mark.parametrize("method", ["admin_deposit", "admin_withdraw"])
    def test_owner_only(self, alice_registered, method):
        with pytest.raises(Unauthorized):
            getattr(alice_registered, method)(ALICE, 1 * UNIT)

    @pytest.mark.parametrize("method", ["admin_deposit", "admin_withdraw"])
    def test_zero_amount(self, platform, method):
        with pytest.raises(AmountIsZero):
            getattr(platform, method)(OWNER, 0)


class TestUserOperationsOnShortReserve:
    @pytest.mark.parametrize("strict", [False, True])
    def test_unfunded_first_deposit_accepted(self, clock, strict):
        platform = make_platform(clock, config=PlatformConfig(enforce_solvency=strict), funding=0)
        platform.register(ALICE, OWNER)

        result = platform.deposit(ALICE, 10_000 * UNIT)

        assert result.deposit_bonus == 10_000 * UNIT
        assert platform.is_solvent() is False
        # 21,000 minted plus 11,000 outstanding bonus against 10,000 held
        assert platform.surplus() == -22_000 * UNIT

    def test_owner_deposit_needs_no_funding(self, clock):
        platform = make_platform(clock, funding=0)
        platform.deposit(OWNER, 1000 * UNIT)
        assert platform.surplus() == 0

    def test_withdrawals_never_trapped_while_insolvent(self, clock):
        platform = make_platform(clock, config=PlatformConfig(enforce_solvency=True), funding=0)
        platform.register(ALICE, OWNER)
        platform.deposit(ALICE, 1000 * UNIT)
        clock.advance(days=10)

        result = platform.withdraw(ALICE, 200 * UNIT)

        assert result.net == 180 * UNIT
        assert platform.is_solvent() is False

    def test_admin_withdraw_still_bounded_while_insolvent(self, clock):
        platform = make_platform(clock, funding=0)
        platform.register(ALICE, OWNER)
        platform.deposit(ALICE, 1000 * UNIT)
        reserve = platform.reserve_held()

        with pytest.raises(InsufficientLiquidity):
            platform.admin_withdraw(OWNER, 1 * UNIT)

        assert platform.reserve_held() == reserve


class TestStrictSolvency:
    @pytest.fixture
    def strict(self, clock):
        platform = make_platform(
            clock, config=PlatformConfig(enforce_solvency=True), funding=1000 * UNIT
        )
        platform.register(ALICE, OWNER)
        return platform

    def test_backed_grant_accepted(self, strict):
        strict.admin_grant_bonus(OWNER, ALICE, 400 * UNIT, 0)
        # minted 400 plus 400 outstanding
        assert strict.surplus() == 200 * UNIT

    def test_unbacked_grant_rejected(self, strict):
        strict.admin_grant_bonus(OWNER, ALICE, 400 * UNIT, 0)
        state = ledger_state(strict)

        with pytest.raises(InsufficientLiquidity) as excinfo:
            strict.admin_grant_bonus(OWNER, ALICE, 400 * UNIT, 0)

        assert get_error_context(excinfo.value)["details"]["operation"] == "admin_grant_bonus"
        assert ledger_state(strict) == state

    def test_unbacked_referral_payout_rejected(self, strict):
        state = ledger_state(strict)
        with pytest.raises(InsufficientLiquidity):
            # 10% of 10,000 to the owner, counted twice against 1,000 held
            strict.payout_referral(OWNER, ALICE, 10_000 * UNIT)
        assert ledger_state(strict) == state

        strict.payout_referral(OWNER, ALICE, 1000 * UNIT)
        assert strict.get_user_overview(OWNER)["bonus"] == 100 * UNIT

    def test_guard_off_allows_unbacked_grant(self, clock):
        platform = make_platform(clock, funding=0)
        platform.register(ALICE, OWNER)

        platform.admin_grant_bonus(OWNER, ALICE, 400 * UNIT, 0)

        assert platform.surplus() == -800 * UNIT


class TestParameterStore:
    def test_update_parameters(self, platform):
        platform.update_parameters(OWNER, 700, 200 * UNIT, 800, 400)
        params = platform.get_parameters()
        assert params["base_apy_bp"] == 700
        assert params["min_withdraw"] == 200 * UNIT
        assert params["fee_lt_500_bp"] == 800
        assert params["fee_gte_500_bp"] == 400

    @pytest.mark.parametrize(
        "args,field,message",
        [
            ((10_001, 150 * UNIT, 1000, 500), "base_apy_bp", "APY too high"),
            ((600, 0, 1000, 500), "min_withdraw", "Invalid min"),
            ((600, 150 * UNIT, 5001, 500), "fee_lt_500_bp", "Fees too high"),
            ((600, 150 * UNIT, 1000, 5001), "fee_gte_500_bp", "Fees too high"),
        ],
    )
    def test_out_of_bounds(self, platform, args, field, message):
        before = platform.get_parameters()
        with pytest.raises(ParameterOutOfBounds, match=message) as excinfo:
            platform.update_parameters(OWNER, *args)
        assert excinfo.value.field == field
        assert get_error_context(excinfo.value)["field"] == field
        assert platform.get_parameters() == before

    def test_boundaries_accepted(self, platform):
        platform.update_parameters(OWNER, 10_000, 1, 5000, 5000)
        assert platform.get_parameters()["base_apy_bp"] == 10_000

    def test_update_requires_owner(self, alice_registered):
        with pytest.raises(Unauthorized):
            alice_registered.update_parameters(ALICE, 700, 200 * UNIT, 800, 400)

    def test_referral_rewards(self, platform):
        platform.update_referral_rewards(OWNER, [2000, 1000, 500, 250, 125, 60, 30])
        assert platform.get_parameters()["referral_bp"] == [2000, 1000, 500, 250, 125, 60, 30]

    @pytest.mark.parametrize("values", [[1000, 500], [100] * 8, []])
    def test_referral_rewards_length(self, platform, values):
        with pytest.raises(InvalidArrayLength):
            platform.update_referral_rewards(OWNER, values)

    def test_referral_reward_bound(self, platform):
        with pytest.raises(ParameterOutOfBounds) as excinfo:
            platform.update_referral_rewards(OWNER, [1000, 500, 250, 5001, 100, 50, 25])
        assert excinfo.value.field == "referral_bp[3]"

    def test_tier_table_is_reported(self, platform):
        tiers = platform.get_parameters()["tiers"]
        assert tiers[365] == {"bonus_bp": 11000, "apr_bp": 1800}
        assert sorted(tiers) == [45, 90, 180, 365, 1095]
