"""
Referral Engine.

Owns the referral graph and every bonus the platform pays out:

- Registration binds an account to an already-registered referrer, once.
  Since a referrer must exist before it can be referenced, the graph is
  acyclic by construction; a bounded ancestor walk double-checks this for
  ledgers restored from storage.
- On an account's first deposit the depositor receives a size-tiered bonus
  (3x / 5x / 10x, capped) and up to seven ancestors receive
  ``deposit * referral_bp[level] / 10_000``.
- Bonuses vest five years after the holder's first deposit; admin grants
  carry their own vesting timestamp. A bonus is minted as claim token the
  moment it is credited; claiming a vested bonus only moves it into the
  available balance.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from .accrual import InterestAccrualEngine
from .fixed_point import apply_bp, days_to_seconds
from .ledger import Account, AccountLedger
from ..constants import (
    BONUS_VESTING_DAYS,
    DEFAULT_FIRST_DEPOSIT_BONUS_CAP_UNITS,
    DEFAULT_FIRST_DEPOSIT_BONUS_TIERS,
    DEFAULT_RESERVE_DECIMALS,
    REFERRAL_LEVELS,
    ZERO_ADDRESS,
)
from ..contracts.interfaces import ClaimTokenProtocol
from ..ledger_exceptions import (
    AlreadyRegistered,
    AmountIsZero,
    BonusStillLocked,
    InvalidArrayLength,
    InvalidReferrer,
    LedgerError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReferralPayout:
    ancestor: str
    level: int
    amount: int


@dataclass
class FirstDepositResult:
    deposit_bonus: int = 0
    payouts: List[ReferralPayout] = field(default_factory=list)

    @property
    def referral_total(self) -> int:
        return sum(payout.amount for payout in self.payouts)


class ReferralEngine:
    """Referral graph, first-deposit bonuses and bonus vesting."""

    def __init__(
        self,
        ledger: AccountLedger,
        accrual: InterestAccrualEngine,
        token: ClaimTokenProtocol,
        unit: int = 10 ** DEFAULT_RESERVE_DECIMALS,
        bonus_tiers: Sequence[tuple] = DEFAULT_FIRST_DEPOSIT_BONUS_TIERS,
        bonus_cap_units: int = DEFAULT_FIRST_DEPOSIT_BONUS_CAP_UNITS,
        vesting_days: int = BONUS_VESTING_DAYS,
    ) -> None:
        self.ledger = ledger
        self.accrual = accrual
        self.token = token
        self.unit = unit
        # (threshold in base units, multiplier), largest band first
        self.bonus_tiers = sorted(
            ((min_units * unit, multiplier) for min_units, multiplier in bonus_tiers),
            reverse=True,
        )
        self.bonus_cap = bonus_cap_units * unit
        self.vesting_seconds = days_to_seconds(vesting_days)

    # ==================== Registration ====================

    def _validate_referrer(self, account: str, referrer: Optional[str]) -> str:
        if not isinstance(referrer, str) or not referrer or referrer.strip().lower() == ZERO_ADDRESS:
            raise InvalidReferrer("Referrer is empty or zero", details={"account": account})
        referrer_norm = referrer.strip().lower()
        if self.ledger.is_registered(account):
            raise AlreadyRegistered(
                f"Account {account} is already registered",
                details={"account": account},
            )
        if referrer_norm == account:
            raise InvalidReferrer("Account cannot refer itself", details={"account": account})
        if not self.ledger.is_registered(referrer_norm):
            raise InvalidReferrer(
                f"Referrer {referrer_norm} is not registered",
                details={"account": account, "referrer": referrer_norm},
            )

        # Bounded walk: the new edge must not close a loop back to ``account``
        cursor: Optional[str] = referrer_norm
        for _ in range(len(self.ledger) + 1):
            if cursor is None:
                break
            if cursor == account:
                raise InvalidReferrer(
                    "Referral would create a cycle",
                    details={"account": account, "referrer": referrer_norm},
                )
            node = self.ledger.get(cursor)
            cursor = node.referrer if node is not None else None
        return referrer_norm

    def register(self, account: str, referrer: Optional[str], now: int) -> Account:
        """
        Register ``account`` under ``referrer``.

        Raises:
            InvalidReferrer: empty, self, unregistered or cycle-forming referrer
            AlreadyRegistered: ``account`` already has a record
        """
        account_norm = self.ledger.normalize(account)
        referrer_norm = self._validate_referrer(account_norm, referrer)
        record = self.ledger.open_account(account_norm, referrer_norm, now)

        logger.info(
            "Account registered",
            extra={
                "event": "volt.referral.registered",
                "account": account_norm[:10],
                "referrer": referrer_norm[:10],
            },
        )
        return record

    def register_batch(
        self, accounts: Sequence[str], referrers: Sequence[str], now: int
    ) -> List[Account]:
        """Register pairs in order; later pairs may refer to earlier ones."""
        if len(accounts) != len(referrers):
            raise InvalidArrayLength(
                f"accounts ({len(accounts)}) and referrers ({len(referrers)}) differ in length",
                details={"accounts": len(accounts), "referrers": len(referrers)},
            )
        return [
            self.register(account, referrer, now)
            for account, referrer in zip(accounts, referrers)
        ]

    # ==================== Bonus credit ====================

    def _credit_bonus(self, account: Account, amount: int, vests_at: Optional[int] = None) -> None:
        if amount <= 0:
            return
        self.token.mint(account.address, amount)
        self.ledger.record_mint(amount)
        self.ledger.credit_bonus(account, amount, vests_at=vests_at)

    # ==================== First deposit ====================

    def first_deposit_bonus(self, amount: int) -> int:
        """Size-tiered bonus for a first deposit of ``amount`` base units."""
        for threshold, multiplier in self.bonus_tiers:
            if amount >= threshold:
                return min(amount * multiplier, self.bonus_cap)
        return 0

    def pay_referral_cascade(self, depositor: Account, amount: int, now: int) -> List[ReferralPayout]:
        """
        Credit up to ``REFERRAL_LEVELS`` ancestors of ``depositor``.

        Each ancestor is settled before its bonus grows so the new bonus
        only accrues from ``now``.
        """
        payouts: List[ReferralPayout] = []
        rates = self.ledger.params.referral_bp
        cursor = depositor.referrer

        for level in range(REFERRAL_LEVELS):
            if cursor is None:
                break
            ancestor = self.ledger.get(cursor)
            if ancestor is None or not ancestor.registered:
                break

            reward = apply_bp(amount, rates[level])
            if reward > 0:
                self.accrual.settle(ancestor.address, now)
                self._credit_bonus(ancestor, reward)
                payouts.append(ReferralPayout(ancestor=ancestor.address, level=level, amount=reward))
            cursor = ancestor.referrer

        if payouts:
            logger.info(
                "Referral bonuses credited",
                extra={
                    "event": "volt.referral.cascade",
                    "depositor": depositor.address[:10],
                    "levels": len(payouts),
                    "total": sum(payout.amount for payout in payouts),
                },
            )
        return payouts

    def on_first_deposit(self, account: Account, amount: int, now: int) -> FirstDepositResult:
        """Mark the deposit lifecycle started and pay the one-off bonuses."""
        account.has_deposited = True
        account.first_deposit_time = now

        result = FirstDepositResult()
        result.deposit_bonus = self.first_deposit_bonus(amount)
        self._credit_bonus(account, result.deposit_bonus)
        result.payouts = self.pay_referral_cascade(account, amount, now)
        return result

    # ==================== Vesting ====================

    def standard_vesting_time(self, account: Account) -> Optional[int]:
        if not account.has_deposited:
            return None
        return account.first_deposit_time + self.vesting_seconds

    def vested_bonus(self, account: Account, now: int) -> int:
        vested = 0
        vests_at = self.standard_vesting_time(account)
        if vests_at is not None and now >= vests_at:
            vested += account.standard_bonus
        vested += sum(grant.amount for grant in account.bonus_grants if now >= grant.vests_at)
        return vested

    def can_withdraw_bonus(self, account: Account, now: int) -> bool:
        return self.vested_bonus(account, now) > 0

    def grant_bonus(self, address: str, amount: int, vesting_seconds: int, now: int) -> Account:
        """Credit an admin bonus vesting ``vesting_seconds`` from ``now``."""
        if amount <= 0:
            raise AmountIsZero("Bonus grant must be positive", details={"amount": amount})
        if vesting_seconds < 0:
            raise LedgerError(
                "Vesting period cannot be negative",
                details={"vesting_seconds": vesting_seconds},
            )
        account = self.ledger.require_registered(address)
        self.accrual.settle(account.address, now)
        self._credit_bonus(account, amount, vests_at=now + vesting_seconds)

        logger.info(
            "Bonus granted",
            extra={
                "event": "volt.referral.bonus_granted",
                "account": account.address[:10],
                "amount": amount,
                "vests_at": now + vesting_seconds,
            },
        )
        return account

    def claim_vested_bonus(self, address: str, now: int) -> int:
        """
        Move every vested slice of bonus into the available balance.

        Raises:
            BonusStillLocked: nothing has vested yet
        """
        account = self.ledger.require_registered(address)
        self.accrual.settle(account.address, now)

        amount = self.vested_bonus(account, now)
        if amount <= 0:
            raise BonusStillLocked(
                "No vested bonus to claim",
                details={
                    "account": account.address,
                    "bonus_balance": account.bonus_balance,
                    "vests_at": self.standard_vesting_time(account),
                },
            )

        # Vesting is all-or-nothing per slice: drop matured grants, keep the rest
        account.bonus_grants = [grant for grant in account.bonus_grants if now < grant.vests_at]
        # Already minted at credit time
        self.ledger.release_bonus(account, amount)
        account.available_balance += amount

        logger.info(
            "Vested bonus claimed",
            extra={
                "event": "volt.referral.bonus_claimed",
                "account": account.address[:10],
                "amount": amount,
            },
        )
        return amount
