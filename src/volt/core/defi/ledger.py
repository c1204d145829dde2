"""
Account Ledger for the Volt staking platform.

Holds every per-account record plus the global counters that define the
platform's liability:

    liability = (total_minted - total_burned) + total_bonus_outstanding

Each account's claim-token balance is ``available + bonus + Σ active
lock.amount``: bonuses are minted when credited and burned when forfeited,
so summed over all accounts the claims equal ``total_minted - total_burned``.
Unvested bonus is also carried in ``total_bonus_outstanding``, which keeps
the solvency line above the minted supply until the bonus is claimed.

The ledger is a plain key-value store (address -> Account) plus one
GlobalState record. It performs no authorization and no settlement; the
engines built on top of it do.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional

from ..constants import (
    DEFAULT_BASE_APY_BP,
    DEFAULT_DURATION_TIERS,
    DEFAULT_FEE_GTE_500_BP,
    DEFAULT_FEE_LT_500_BP,
    DEFAULT_REFERRAL_BP,
    SECONDS_PER_DAY,
    ZERO_ADDRESS,
)
from ..ledger_exceptions import InvalidDuration, LedgerError, NotRegistered

logger = logging.getLogger(__name__)


@dataclass
class LockPosition:
    """A time-locked slice of an account's claim."""

    amount: int
    start_time: int
    duration_days: int
    bonus_bp: int
    apr_bp: int
    active: bool = True

    @property
    def end_time(self) -> int:
        return self.start_time + self.duration_days * SECONDS_PER_DAY

    def to_dict(self) -> Dict:
        return {
            "amount": self.amount,
            "start_time": self.start_time,
            "duration_days": self.duration_days,
            "bonus_bp": self.bonus_bp,
            "apr_bp": self.apr_bp,
            "active": self.active,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "LockPosition":
        return cls(
            amount=int(data["amount"]),
            start_time=int(data["start_time"]),
            duration_days=int(data["duration_days"]),
            bonus_bp=int(data["bonus_bp"]),
            apr_bp=int(data["apr_bp"]),
            active=bool(data.get("active", True)),
        )


@dataclass
class BonusGrant:
    """Admin-granted bonus with its own vesting timestamp."""

    amount: int
    vests_at: int

    def to_dict(self) -> Dict:
        return {"amount": self.amount, "vests_at": self.vests_at}

    @classmethod
    def from_dict(cls, data: Dict) -> "BonusGrant":
        return cls(amount=int(data["amount"]), vests_at=int(data["vests_at"]))


@dataclass
class Account:
    """
    Per-account ledger record.

    ``locks`` is append-only; indices are stable for the life of the account.
    ``bonus_balance`` includes every entry of ``bonus_grants``; the remainder
    is the standard (deposit/referral) bonus on the five-year schedule.
    """

    address: str
    registered: bool = True
    referrer: Optional[str] = None
    available_balance: int = 0
    bonus_balance: int = 0
    last_accrual_time: int = 0
    locks: List[LockPosition] = field(default_factory=list)
    has_deposited: bool = False
    first_deposit_time: int = 0
    bonus_grants: List[BonusGrant] = field(default_factory=list)

    @property
    def locked_amount(self) -> int:
        return sum(lock.amount for lock in self.locks if lock.active)

    @property
    def active_lock_count(self) -> int:
        return sum(1 for lock in self.locks if lock.active)

    @property
    def granted_bonus(self) -> int:
        return sum(grant.amount for grant in self.bonus_grants)

    @property
    def standard_bonus(self) -> int:
        return self.bonus_balance - self.granted_bonus

    @property
    def claim(self) -> int:
        """Outstanding claim on the reserve; equals the claim-token balance."""
        return self.available_balance + self.bonus_balance + self.locked_amount

    def to_dict(self) -> Dict:
        return {
            "address": self.address,
            "registered": self.registered,
            "referrer": self.referrer,
            "available_balance": self.available_balance,
            "bonus_balance": self.bonus_balance,
            "last_accrual_time": self.last_accrual_time,
            "locks": [lock.to_dict() for lock in self.locks],
            "has_deposited": self.has_deposited,
            "first_deposit_time": self.first_deposit_time,
            "bonus_grants": [grant.to_dict() for grant in self.bonus_grants],
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "Account":
        return cls(
            address=data["address"],
            registered=bool(data.get("registered", True)),
            referrer=data.get("referrer"),
            available_balance=int(data.get("available_balance", 0)),
            bonus_balance=int(data.get("bonus_balance", 0)),
            last_accrual_time=int(data.get("last_accrual_time", 0)),
            locks=[LockPosition.from_dict(item) for item in data.get("locks", [])],
            has_deposited=bool(data.get("has_deposited", False)),
            first_deposit_time=int(data.get("first_deposit_time", 0)),
            bonus_grants=[BonusGrant.from_dict(item) for item in data.get("bonus_grants", [])],
        )


@dataclass(frozen=True)
class DurationTier:
    duration_days: int
    bonus_bp: int
    apr_bp: int


@dataclass
class ProtocolParameters:
    """Admin-tunable economic parameters."""

    base_apy_bp: int = DEFAULT_BASE_APY_BP
    min_withdraw: int = 0
    fee_lt_500_bp: int = DEFAULT_FEE_LT_500_BP
    fee_gte_500_bp: int = DEFAULT_FEE_GTE_500_BP
    referral_bp: tuple = DEFAULT_REFERRAL_BP

    def to_dict(self) -> Dict:
        return {
            "base_apy_bp": self.base_apy_bp,
            "min_withdraw": self.min_withdraw,
            "fee_lt_500_bp": self.fee_lt_500_bp,
            "fee_gte_500_bp": self.fee_gte_500_bp,
            "referral_bp": list(self.referral_bp),
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "ProtocolParameters":
        return cls(
            base_apy_bp=int(data["base_apy_bp"]),
            min_withdraw=int(data["min_withdraw"]),
            fee_lt_500_bp=int(data["fee_lt_500_bp"]),
            fee_gte_500_bp=int(data["fee_gte_500_bp"]),
            referral_bp=tuple(int(bp) for bp in data["referral_bp"]),
        )


@dataclass
class GlobalState:
    total_minted: int = 0
    total_burned: int = 0
    total_bonus_outstanding: int = 0

    def to_dict(self) -> Dict:
        return {
            "total_minted": self.total_minted,
            "total_burned": self.total_burned,
            "total_bonus_outstanding": self.total_bonus_outstanding,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "GlobalState":
        return cls(
            total_minted=int(data.get("total_minted", 0)),
            total_burned=int(data.get("total_burned", 0)),
            total_bonus_outstanding=int(data.get("total_bonus_outstanding", 0)),
        )


class AccountLedger:
    """Key-value store of accounts plus the global liability counters."""

    def __init__(
        self,
        params: Optional[ProtocolParameters] = None,
        tiers: Optional[Dict[int, tuple]] = None,
    ) -> None:
        self.accounts: Dict[str, Account] = {}
        self.state = GlobalState()
        self.params = params or ProtocolParameters()
        tier_table = tiers if tiers is not None else DEFAULT_DURATION_TIERS
        self.tiers: Dict[int, DurationTier] = {
            days: DurationTier(days, bonus_bp, apr_bp)
            for days, (bonus_bp, apr_bp) in sorted(tier_table.items())
        }

    # ==================== Accounts ====================

    @staticmethod
    def normalize(address: Optional[str]) -> str:
        """Lower-case an identity; reject empty and zero addresses."""
        if not address or not isinstance(address, str):
            raise LedgerError("Account address is empty")
        normalized = address.strip().lower()
        if not normalized or normalized == ZERO_ADDRESS:
            raise LedgerError("Account address is empty or zero", details={"address": address})
        return normalized

    def get(self, address: str) -> Optional[Account]:
        if not address or not isinstance(address, str):
            return None
        return self.accounts.get(address.strip().lower())

    def is_registered(self, address: str) -> bool:
        account = self.get(address)
        return account is not None and account.registered

    def require_registered(self, address: str) -> Account:
        account = self.get(address)
        if account is None or not account.registered:
            raise NotRegistered(
                f"Account {address} is not registered",
                details={"account": address},
            )
        return account

    def open_account(self, address: str, referrer: Optional[str], now: int) -> Account:
        """Create a registered account; callers validate the referrer."""
        normalized = self.normalize(address)
        account = Account(
            address=normalized,
            registered=True,
            referrer=referrer,
            last_accrual_time=now,
        )
        self.accounts[normalized] = account
        return account

    def __iter__(self) -> Iterator[Account]:
        return iter(self.accounts.values())

    def __len__(self) -> int:
        return len(self.accounts)

    # ==================== Tiers ====================

    def tier(self, duration_days: int) -> DurationTier:
        try:
            return self.tiers[duration_days]
        except (KeyError, TypeError):
            raise InvalidDuration(
                f"Lock duration {duration_days} days is not one of {sorted(self.tiers)}",
                details={"duration_days": duration_days},
            ) from None

    # ==================== Global counters ====================

    def record_mint(self, amount: int) -> None:
        self.state.total_minted += amount

    def record_burn(self, amount: int) -> None:
        self.state.total_burned += amount

    def credit_bonus(self, account: Account, amount: int, vests_at: Optional[int] = None) -> None:
        """Add bonus to ``account``; ``vests_at`` marks an admin grant. The caller mints it."""
        if amount <= 0:
            return
        account.bonus_balance += amount
        self.state.total_bonus_outstanding += amount
        if vests_at is not None:
            account.bonus_grants.append(BonusGrant(amount=amount, vests_at=vests_at))

    def release_bonus(self, account: Account, amount: int) -> None:
        """Remove ``amount`` of bonus from the outstanding pool (claimed or forfeited)."""
        account.bonus_balance -= amount
        self.state.total_bonus_outstanding -= amount

    def clear_bonus(self, account: Account) -> int:
        cleared = account.bonus_balance
        if cleared:
            self.release_bonus(account, cleared)
        account.bonus_grants = []
        return cleared

    def liability(self) -> int:
        return (
            self.state.total_minted - self.state.total_burned + self.state.total_bonus_outstanding
        )

    def total_claims(self) -> int:
        return sum(account.claim for account in self.accounts.values())

    def active_lock_count(self) -> int:
        return sum(account.active_lock_count for account in self.accounts.values())

    # ==================== Serialization ====================

    def to_dict(self) -> Dict:
        return {
            "accounts": {addr: account.to_dict() for addr, account in self.accounts.items()},
            "state": self.state.to_dict(),
            "params": self.params.to_dict(),
            "tiers": {
                str(days): [tier.bonus_bp, tier.apr_bp] for days, tier in self.tiers.items()
            },
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "AccountLedger":
        tiers = {int(days): tuple(values) for days, values in data.get("tiers", {}).items()}
        ledger = cls(
            params=ProtocolParameters.from_dict(data["params"]),
            tiers=tiers or None,
        )
        ledger.state = GlobalState.from_dict(data.get("state", {}))
        ledger.accounts = {
            addr: Account.from_dict(item) for addr, item in data.get("accounts", {}).items()
        }
        return ledger
