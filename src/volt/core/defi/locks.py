"""
Lock Manager.

Time-locks part of an account's available claim for one of the fixed
duration tiers. Each position moves ``active -> inactive`` exactly once.

On unlock the position pays its full nominal reward regardless of how much
time actually passed:

    bonus    = amount * bonus_bp / 10_000
    interest = amount * apr_bp * duration_days * 86400 / (10_000 * SECONDS_PER_YEAR)

and the account's accrual checkpoint is forward-dated to the lock's nominal
end so that window is not paid twice. Operators who want a maturity gate
instead turn on ``enforce_maturity``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .accrual import InterestAccrualEngine
from .fixed_point import apply_bp, days_to_seconds, simple_interest
from .ledger import AccountLedger, LockPosition
from ..contracts.interfaces import ClaimTokenProtocol
from ..ledger_exceptions import (
    AmountIsZero,
    InsufficientBalance,
    InvalidLockIndex,
    LockNotMatured,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UnlockResult:
    index: int
    amount: int
    bonus: int
    interest: int

    @property
    def received(self) -> int:
        return self.amount + self.bonus + self.interest


def lock_reward(position: LockPosition) -> tuple[int, int]:
    """(bonus, interest) a position pays on unlock."""
    bonus = apply_bp(position.amount, position.bonus_bp)
    interest = simple_interest(
        position.amount, position.apr_bp, days_to_seconds(position.duration_days)
    )
    return bonus, interest


class LockManager:
    """Creates and terminates lock positions."""

    def __init__(
        self,
        ledger: AccountLedger,
        accrual: InterestAccrualEngine,
        token: ClaimTokenProtocol,
        enforce_maturity: bool = False,
    ) -> None:
        self.ledger = ledger
        self.accrual = accrual
        self.token = token
        self.enforce_maturity = enforce_maturity

    def lock(self, address: str, amount: int, duration_days: int, now: int) -> int:
        """
        Lock ``amount`` of available balance; returns the new lock index.

        Raises:
            AmountIsZero, NotRegistered, InvalidDuration, InsufficientBalance
        """
        if amount <= 0:
            raise AmountIsZero("Lock amount must be positive", details={"amount": amount})
        account = self.ledger.require_registered(address)
        tier = self.ledger.tier(duration_days)

        self.accrual.settle(account.address, now)

        if amount > account.available_balance:
            raise InsufficientBalance(
                f"Lock amount {amount} exceeds available balance {account.available_balance}",
                details={"amount": amount, "available": account.available_balance},
            )

        account.available_balance -= amount
        account.locks.append(
            LockPosition(
                amount=amount,
                start_time=now,
                duration_days=tier.duration_days,
                bonus_bp=tier.bonus_bp,
                apr_bp=tier.apr_bp,
            )
        )
        index = len(account.locks) - 1

        logger.info(
            "Lock created",
            extra={
                "event": "volt.lock.created",
                "account": account.address[:10],
                "index": index,
                "amount": amount,
                "duration_days": tier.duration_days,
            },
        )
        return index

    def unlock(self, address: str, index: int, now: int) -> UnlockResult:
        """
        Close an active position and credit principal, bonus and interest.

        Raises:
            NotRegistered, InvalidLockIndex, LockNotMatured
        """
        account = self.ledger.require_registered(address)
        if not isinstance(index, int) or index < 0 or index >= len(account.locks):
            raise InvalidLockIndex(
                f"Lock index {index} out of range",
                details={"index": index, "lock_count": len(account.locks)},
            )
        position = account.locks[index]
        if not position.active:
            raise InvalidLockIndex(
                f"Lock {index} is already unlocked",
                details={"index": index},
            )
        if self.enforce_maturity and now < position.end_time:
            raise LockNotMatured(
                f"Lock {index} matures at {position.end_time}",
                details={"index": index, "end_time": position.end_time, "now": now},
            )

        self.accrual.settle(account.address, now)

        bonus, interest = lock_reward(position)
        reward = bonus + interest
        if reward > 0:
            self.token.mint(account.address, reward)
            self.ledger.record_mint(reward)

        account.available_balance += position.amount + reward
        position.active = False
        if position.end_time > account.last_accrual_time:
            account.last_accrual_time = position.end_time

        result = UnlockResult(index=index, amount=position.amount, bonus=bonus, interest=interest)
        logger.info(
            "Lock released",
            extra={
                "event": "volt.lock.released",
                "account": account.address[:10],
                "index": index,
                "amount": position.amount,
                "bonus": bonus,
                "interest": interest,
            },
        )
        return result
