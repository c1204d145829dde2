"""
Solvency guard and validated parameter store.

Solvency means custody holds at least the platform's liability:

    reserve_held >= (total_minted - total_burned) + total_bonus_outstanding

Admin withdrawals may only take the surplus above that line. In strict mode
the platform also asks the guard, after each owner operation that adds
liability, whether the operation pushed the ledger (further) below the line.
User operations are never checked, so a shortfall never traps principal.
"""

from __future__ import annotations

import logging
from typing import Dict, Sequence

from .ledger import AccountLedger
from ..constants import MAX_BASE_APY_BP, MAX_FEE_BP, MAX_REFERRAL_BP, REFERRAL_LEVELS
from ..contracts.interfaces import ReserveCustodyProtocol
from ..ledger_exceptions import (
    AmountIsZero,
    InsufficientLiquidity,
    InvalidArrayLength,
    ParameterOutOfBounds,
)

logger = logging.getLogger(__name__)


class SolvencyGuard:
    """Liability accounting and the bounds on admin liquidity moves."""

    def __init__(self, ledger: AccountLedger, custody: ReserveCustodyProtocol) -> None:
        self.ledger = ledger
        self.custody = custody

    def reserve_held(self) -> int:
        return self.custody.balance_held()

    def liability(self) -> int:
        return self.ledger.liability()

    def surplus(self) -> int:
        """Reserve above liability; negative while insolvent."""
        return self.reserve_held() - self.liability()

    def is_solvent(self) -> bool:
        return self.surplus() >= 0

    def admin_deposit(self, owner: str, amount: int) -> int:
        """Inject reserve liquidity from the owner's wallet."""
        if amount <= 0:
            raise AmountIsZero("Deposit amount must be positive", details={"amount": amount})
        self.custody.transfer_in(owner, amount)

        logger.info(
            "Admin liquidity deposited",
            extra={"event": "volt.solvency.admin_deposit", "amount": amount, "surplus": self.surplus()},
        )
        return amount

    def admin_withdraw(self, owner: str, amount: int) -> int:
        """
        Withdraw surplus reserve to the owner's wallet.

        Raises:
            InsufficientLiquidity: the withdrawal would leave claims uncovered
        """
        if amount <= 0:
            raise AmountIsZero("Withdrawal amount must be positive", details={"amount": amount})

        held = self.reserve_held()
        liability = self.liability()
        if held - amount < liability:
            logger.warning(
                "Admin withdrawal rejected",
                extra={
                    "event": "volt.solvency.admin_withdraw_rejected",
                    "amount": amount,
                    "reserve": held,
                    "liability": liability,
                },
            )
            raise InsufficientLiquidity(
                f"Withdrawing {amount} would leave {held - amount} against liability {liability}",
                details={"amount": amount, "reserve": held, "liability": liability},
            )

        self.custody.transfer_out(owner, amount)
        logger.info(
            "Admin liquidity withdrawn",
            extra={"event": "volt.solvency.admin_withdraw", "amount": amount, "surplus": self.surplus()},
        )
        return amount

    def enforce(self, baseline_surplus: int, operation: str) -> None:
        """
        Reject an operation that left the ledger insolvent and lowered the
        surplus below ``baseline_surplus``.
        """
        surplus = self.surplus()
        if surplus < 0 and surplus < baseline_surplus:
            raise InsufficientLiquidity(
                f"{operation} would leave reserve short of liability by {-surplus}",
                details={
                    "operation": operation,
                    "reserve": self.reserve_held(),
                    "liability": self.liability(),
                    "baseline_surplus": baseline_surplus,
                },
            )


class ParameterStore:
    """Validated updates of the admin-tunable economic parameters."""

    def __init__(self, ledger: AccountLedger) -> None:
        self.ledger = ledger

    def update_parameters(
        self,
        base_apy_bp: int,
        min_withdraw: int,
        fee_lt_500_bp: int,
        fee_gte_500_bp: int,
    ) -> None:
        """
        Raises:
            ParameterOutOfBounds: with ``field`` naming the first bad value
        """
        if not 0 <= base_apy_bp <= MAX_BASE_APY_BP:
            raise ParameterOutOfBounds(
                "APY too high", field="base_apy_bp", details={"value": base_apy_bp}
            )
        if min_withdraw <= 0:
            raise ParameterOutOfBounds(
                "Invalid min", field="min_withdraw", details={"value": min_withdraw}
            )
        if not 0 <= fee_lt_500_bp <= MAX_FEE_BP:
            raise ParameterOutOfBounds(
                "Fees too high", field="fee_lt_500_bp", details={"value": fee_lt_500_bp}
            )
        if not 0 <= fee_gte_500_bp <= MAX_FEE_BP:
            raise ParameterOutOfBounds(
                "Fees too high", field="fee_gte_500_bp", details={"value": fee_gte_500_bp}
            )

        params = self.ledger.params
        params.base_apy_bp = base_apy_bp
        params.min_withdraw = min_withdraw
        params.fee_lt_500_bp = fee_lt_500_bp
        params.fee_gte_500_bp = fee_gte_500_bp

        logger.info(
            "Parameters updated",
            extra={"event": "volt.params.updated", **params.to_dict()},
        )

    def update_referral_rewards(self, referral_bp: Sequence[int]) -> None:
        values = tuple(referral_bp)
        if len(values) != REFERRAL_LEVELS:
            raise InvalidArrayLength(
                f"Expected {REFERRAL_LEVELS} referral levels, got {len(values)}",
                details={"length": len(values)},
            )
        for level, bp in enumerate(values):
            if not 0 <= bp <= MAX_REFERRAL_BP:
                raise ParameterOutOfBounds(
                    f"Referral reward too high at level {level}",
                    field=f"referral_bp[{level}]",
                    details={"level": level, "value": bp},
                )

        self.ledger.params.referral_bp = values
        logger.info(
            "Referral rewards updated",
            extra={"event": "volt.params.referral_updated", "referral_bp": list(values)},
        )

    def snapshot(self) -> Dict:
        data = self.ledger.params.to_dict()
        data["tiers"] = {
            days: {"bonus_bp": tier.bonus_bp, "apr_bp": tier.apr_bp}
            for days, tier in self.ledger.tiers.items()
        }
        return data
