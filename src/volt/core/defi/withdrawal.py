"""
Fee-tiered withdrawal of reserve against available claim.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .accrual import InterestAccrualEngine
from .fixed_point import apply_bp
from .ledger import AccountLedger
from ..constants import DEFAULT_RESERVE_DECIMALS, FEE_TIER_THRESHOLD_UNITS
from ..contracts.interfaces import ClaimTokenProtocol, ReserveCustodyProtocol
from ..ledger_exceptions import ActiveLocksPresent, BelowMinWithdraw, InsufficientBalance

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WithdrawalResult:
    amount: int
    fee: int
    bonus_forfeited: int = 0
    full_exit: bool = False

    @property
    def net(self) -> int:
        return self.amount - self.fee


class FeeTieredWithdrawal:
    """
    Burns claim tokens and pays out reserve minus a size-tiered fee.

    Withdrawals below ``FEE_TIER_THRESHOLD_UNITS`` pay ``fee_lt_500_bp``,
    larger ones ``fee_gte_500_bp``. The fee stays in custody as surplus.
    """

    def __init__(
        self,
        ledger: AccountLedger,
        accrual: InterestAccrualEngine,
        token: ClaimTokenProtocol,
        custody: ReserveCustodyProtocol,
        unit: int = 10 ** DEFAULT_RESERVE_DECIMALS,
        fee_threshold_units: int = FEE_TIER_THRESHOLD_UNITS,
    ) -> None:
        self.ledger = ledger
        self.accrual = accrual
        self.token = token
        self.custody = custody
        self.fee_threshold = fee_threshold_units * unit

    def quote_fee(self, amount: int) -> int:
        params = self.ledger.params
        fee_bp = params.fee_lt_500_bp if amount < self.fee_threshold else params.fee_gte_500_bp
        return apply_bp(amount, fee_bp)

    def withdraw(self, address: str, amount: int, full_exit: bool, now: int) -> WithdrawalResult:
        """
        Withdraw ``amount`` of available balance as reserve.

        With ``full_exit`` the unvested bonus is forfeited and the account's
        deposit lifecycle resets, so its next deposit counts as a first one.

        Raises:
            NotRegistered, BelowMinWithdraw, InsufficientBalance, ActiveLocksPresent
        """
        account = self.ledger.require_registered(address)
        self.accrual.settle(account.address, now)

        min_withdraw = self.ledger.params.min_withdraw
        if amount < min_withdraw or amount <= 0:
            raise BelowMinWithdraw(
                f"Withdrawal {amount} is below the minimum {min_withdraw}",
                details={"amount": amount, "min_withdraw": min_withdraw},
            )
        if amount > account.available_balance:
            raise InsufficientBalance(
                f"Withdrawal {amount} exceeds available balance {account.available_balance}",
                details={"amount": amount, "available": account.available_balance},
            )
        if full_exit and account.active_lock_count:
            raise ActiveLocksPresent(
                f"Account has {account.active_lock_count} active lock(s)",
                details={"active_locks": account.active_lock_count},
            )

        fee = self.quote_fee(amount)
        net = amount - fee

        self.token.burn(account.address, amount)
        self.ledger.record_burn(amount)
        account.available_balance -= amount
        if net > 0:
            self.custody.transfer_out(account.address, net)

        forfeited = 0
        if full_exit:
            forfeited = self.ledger.clear_bonus(account)
            if forfeited:
                self.token.burn(account.address, forfeited)
                self.ledger.record_burn(forfeited)
            account.has_deposited = False
            account.first_deposit_time = 0

        logger.info(
            "Withdrawal processed",
            extra={
                "event": "volt.withdrawal.processed",
                "account": account.address[:10],
                "amount": amount,
                "fee": fee,
                "net": net,
                "full_exit": full_exit,
                "bonus_forfeited": forfeited,
            },
        )
        return WithdrawalResult(amount=amount, fee=fee, bonus_forfeited=forfeited, full_exit=full_exit)
