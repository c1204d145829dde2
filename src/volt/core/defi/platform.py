"""
Volt Staking Platform.

Custodial staking ledger: users deposit a reserve asset and receive a 1:1
claim token, time-lock claim for tiered bonus and APR, accrue base interest
on everything else, and withdraw reserve back for a size-tiered fee. Deposits
pay a one-off size bonus and feed a seven-level referral cascade.

Every mutating operation is transactional:

1. the ledger, the claim token and custody are snapshotted;
2. the clock is read once (clamped to never run backwards);
3. the caller's account is settled;
4. the operation runs;
5. for owner operations that add liability (bonus grants, referral
   payouts), strict mode rejects the operation if it left reserve short of
   liability and lowered the surplus seen after step 3. User operations are
   never blocked by the guard, so principal can always be unlocked and
   withdrawn.

Any exception restores the snapshot before it propagates, so a rejected call
leaves no trace, including interest computed during the call.

Reentrancy protection mirrors the pool contracts: a ``_locked`` flag is held
for the whole operation. The owner can pause user operations; admin
operations keep working while paused.
"""

from __future__ import annotations

import copy
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

from .accrual import InterestAccrualEngine
from .ledger import AccountLedger, ProtocolParameters
from .locks import LockManager, UnlockResult, lock_reward
from .referral import ReferralEngine, ReferralPayout
from .solvency import ParameterStore, SolvencyGuard
from .withdrawal import FeeTieredWithdrawal, WithdrawalResult
from ..config import NetworkType, PlatformConfig
from ..contracts.claim_token import ClaimToken
from ..contracts.interfaces import ClaimTokenProtocol, ReserveCustodyProtocol, SnapshotProvider
from ..contracts.reserve_vault import ReserveVault
from ..ledger_exceptions import (
    AmountIsZero,
    InvalidLockIndex,
    NotPaused,
    Paused,
    ReentrancyError,
    StorageError,
    Unauthorized,
    get_error_context,
)
from ..metrics import LedgerMetrics
from ..persistence import LedgerStorage

logger = logging.getLogger(__name__)

STATE_VERSION = 1


@dataclass
class DepositResult:
    amount: int
    first_deposit: bool = False
    deposit_bonus: int = 0
    referral_payouts: List[ReferralPayout] = field(default_factory=list)


class StakingPlatform:
    """
    Facade wiring the ledger engines to a claim token and reserve custody.

    Args:
        owner: Administrator address; registered and marked as deposited at
            construction so it can root the referral graph
        token: Claim token collaborator (``ClaimToken`` when omitted)
        custody: Reserve custody collaborator (``ReserveVault`` when omitted)
        config: Economic defaults and policy flags
        time_provider: Returns the current unix time in seconds
        metrics: Optional Prometheus collector
    """

    def __init__(
        self,
        owner: str,
        token: Optional[ClaimTokenProtocol] = None,
        custody: Optional[ReserveCustodyProtocol] = None,
        config: Optional[PlatformConfig] = None,
        time_provider: Optional[Callable[[], float]] = None,
        metrics: Optional[LedgerMetrics] = None,
        address: str = "volt.platform",
        ledger: Optional[AccountLedger] = None,
    ) -> None:
        self.config = (config or PlatformConfig()).validate()
        self.unit = self.config.unit
        self.address = address
        self.time_provider = time_provider or time.time
        self.metrics = metrics
        self._last_time = 0
        self._locked = False
        self._paused = False

        self.token = token if token is not None else ClaimToken(
            decimals=self.config.reserve_decimals, minter=address
        )
        self.custody = custody if custody is not None else ReserveVault(
            decimals=self.config.reserve_decimals
        )

        bootstrap = ledger is None
        self.ledger = ledger or AccountLedger(
            params=ProtocolParameters(
                base_apy_bp=self.config.base_apy_bp,
                min_withdraw=self.config.min_withdraw_units * self.unit,
                fee_lt_500_bp=self.config.fee_lt_500_bp,
                fee_gte_500_bp=self.config.fee_gte_500_bp,
                referral_bp=tuple(self.config.referral_bp),
            )
        )

        self.accrual = InterestAccrualEngine(self.ledger, self.token)
        self.locks = LockManager(
            self.ledger,
            self.accrual,
            self.token,
            enforce_maturity=self.config.enforce_lock_maturity,
        )
        self.referral = ReferralEngine(
            self.ledger,
            self.accrual,
            self.token,
            unit=self.unit,
            bonus_tiers=self.config.first_deposit_bonus_tiers,
            bonus_cap_units=self.config.first_deposit_bonus_cap_units,
            vesting_days=self.config.bonus_vesting_days,
        )
        self.withdrawals = FeeTieredWithdrawal(
            self.ledger,
            self.accrual,
            self.token,
            self.custody,
            unit=self.unit,
            fee_threshold_units=self.config.fee_tier_threshold_units,
        )
        self.solvency = SolvencyGuard(self.ledger, self.custody)
        self.parameters = ParameterStore(self.ledger)

        if bootstrap:
            now = self._now()
            owner_account = self.ledger.open_account(owner, None, now)
            owner_account.has_deposited = True
            owner_account.first_deposit_time = now
            self.owner = owner_account.address
        else:
            self.owner = AccountLedger.normalize(owner)

        logger.info(
            "Staking platform initialized",
            extra={
                "event": "volt.platform.initialized",
                "owner": self.owner[:10],
                "network": self.config.network.value,
                "strict_solvency": self.config.enforce_solvency,
            },
        )

    # ==================== Clock ====================

    def _read_clock(self) -> int:
        return max(self._last_time, int(self.time_provider()))

    def _now(self) -> int:
        self._last_time = self._read_clock()
        return self._last_time

    # ==================== Transactions ====================

    def _require_owner(self, caller: str) -> None:
        if not isinstance(caller, str) or caller.strip().lower() != self.owner:
            raise Unauthorized(
                f"Caller {caller} is not the owner",
                details={"caller": caller},
            )

    def _require_not_locked(self) -> None:
        if self._locked:
            raise ReentrancyError("Platform is locked")

    def _snapshot(self) -> Dict[str, Any]:
        snapshot = {
            "accounts": copy.deepcopy(self.ledger.accounts),
            "state": copy.deepcopy(self.ledger.state),
            "params": copy.deepcopy(self.ledger.params),
            "settled_total": self.accrual.settled_total,
            "paused": self._paused,
        }
        for name in ("token", "custody"):
            collaborator = getattr(self, name)
            if isinstance(collaborator, SnapshotProvider):
                snapshot[name] = collaborator.snapshot()
        return snapshot

    def _restore(self, snapshot: Dict[str, Any]) -> None:
        self.ledger.accounts = snapshot["accounts"]
        self.ledger.state = snapshot["state"]
        self.ledger.params = snapshot["params"]
        self.accrual.settled_total = snapshot["settled_total"]
        self._paused = snapshot["paused"]
        for name in ("token", "custody"):
            if name in snapshot:
                getattr(self, name).restore(snapshot[name])

    def _execute(
        self,
        operation: str,
        caller: Optional[str],
        body: Callable[[int], Any],
        pausable: bool = False,
        guarded: bool = False,
    ) -> Any:
        """
        Run ``body(now)`` as one all-or-nothing ledger operation.

        ``pausable`` operations are refused while the platform is paused;
        ``guarded`` operations are checked by the solvency guard in strict mode.
        """
        self._require_not_locked()
        started = time.perf_counter()
        snapshot = self._snapshot()
        try:
            self._locked = True
            if pausable and self._paused:
                raise Paused(f"{operation} is unavailable while paused", details={"operation": operation})
            now = self._now()
            if caller and self.ledger.is_registered(caller):
                self.accrual.settle(caller, now)
            baseline = self.solvency.surplus()

            result = body(now)

            if guarded and self.config.enforce_solvency:
                self.solvency.enforce(baseline, operation)
        except Exception as exc:
            self._restore(snapshot)
            if self.metrics is not None:
                self.metrics.record_error(operation, type(exc).__name__)
            logger.warning(
                "Operation %s rejected: %s",
                operation,
                exc,
                extra={"event": "volt.platform.rejected", "operation": operation, **get_error_context(exc)},
            )
            raise
        finally:
            self._locked = False

        if self.metrics is not None:
            self.metrics.record_interest(self.accrual.settled_total - snapshot["settled_total"])
            self.metrics.record_operation(operation, "success", time.perf_counter() - started)
            self.metrics.update_solvency(self.solvency.reserve_held(), self.solvency.liability())
            self.metrics.update_population(len(self.ledger), self.ledger.active_lock_count())
        return result

    # ==================== Registration ====================

    def register(self, caller: str, referrer: str) -> None:
        """Self-register ``caller`` under ``referrer``."""
        self._execute(
            "register",
            None,
            lambda now: self.referral.register(caller, referrer, now),
            pausable=True,
        )

    def register_batch(self, caller: str, accounts: Sequence[str], referrers: Sequence[str]) -> int:
        """Owner-only batch registration; returns the number registered."""
        def body(now: int) -> int:
            self._require_owner(caller)
            return len(self.referral.register_batch(accounts, referrers, now))

        return self._execute("register_batch", caller, body)

    # ==================== User operations ====================

    def deposit(self, caller: str, amount: int) -> DepositResult:
        """
        Deposit reserve and mint claim tokens 1:1.

        The first deposit of a deposit lifecycle also pays the size bonus and
        the referral cascade.
        """
        def body(now: int) -> DepositResult:
            if amount <= 0:
                raise AmountIsZero("Deposit amount must be positive", details={"amount": amount})
            account = self.ledger.require_registered(caller)

            self.custody.transfer_in(account.address, amount)
            self.token.mint(account.address, amount)
            self.ledger.record_mint(amount)
            account.available_balance += amount

            result = DepositResult(amount=amount)
            if not account.has_deposited:
                first = self.referral.on_first_deposit(account, amount, now)
                result.first_deposit = True
                result.deposit_bonus = first.deposit_bonus
                result.referral_payouts = first.payouts

            logger.info(
                "Deposit accepted",
                extra={
                    "event": "volt.platform.deposit",
                    "account": account.address[:10],
                    "amount": amount,
                    "first_deposit": result.first_deposit,
                    "deposit_bonus": result.deposit_bonus,
                },
            )
            return result

        result = self._execute("deposit", caller, body, pausable=True)
        if self.metrics is not None:
            self.metrics.record_deposit(result.amount)
            self.metrics.record_bonus("deposit", result.deposit_bonus)
            self.metrics.record_bonus("referral", sum(p.amount for p in result.referral_payouts))
        return result

    def lock(self, caller: str, amount: int, duration_days: int) -> int:
        """Lock ``amount`` for ``duration_days``; returns the lock index."""
        return self._execute(
            "lock",
            caller,
            lambda now: self.locks.lock(caller, amount, duration_days, now),
            pausable=True,
        )

    def unlock(self, caller: str, index: int) -> UnlockResult:
        result = self._execute(
            "unlock",
            caller,
            lambda now: self.locks.unlock(caller, index, now),
            pausable=True,
        )
        if self.metrics is not None:
            self.metrics.record_lock_bonus(result.bonus)
            self.metrics.record_interest(result.interest)
        return result

    def withdraw(self, caller: str, amount: int, full_exit: bool = False) -> WithdrawalResult:
        result = self._execute(
            "withdraw",
            caller,
            lambda now: self.withdrawals.withdraw(caller, amount, full_exit, now),
            pausable=True,
        )
        if self.metrics is not None:
            self.metrics.record_withdrawal(result.amount, result.fee)
        return result

    def claim_vested_bonus(self, caller: str) -> int:
        """Move all vested bonus into the caller's available balance."""
        return self._execute(
            "claim_vested_bonus",
            caller,
            lambda now: self.referral.claim_vested_bonus(caller, now),
            pausable=True,
        )

    def settle(self, caller: str) -> int:
        """Settle accrued interest explicitly; returns the interest minted."""
        def body(now: int) -> int:
            self.ledger.require_registered(caller)
            return self.accrual.settle(caller, now)

        before = self.accrual.settled_total
        self._execute("settle", None, body, pausable=True)
        return self.accrual.settled_total - before

    # ==================== Admin operations ====================

    def admin_deposit(self, caller: str, amount: int) -> int:
        def body(now: int) -> int:
            self._require_owner(caller)
            return self.solvency.admin_deposit(self.owner, amount)

        return self._execute("admin_deposit", caller, body)

    def admin_withdraw(self, caller: str, amount: int) -> int:
        def body(now: int) -> int:
            self._require_owner(caller)
            return self.solvency.admin_withdraw(self.owner, amount)

        return self._execute("admin_withdraw", caller, body)

    def admin_grant_bonus(self, caller: str, account: str, amount: int, vesting_seconds: int) -> None:
        def body(now: int) -> None:
            self._require_owner(caller)
            self.referral.grant_bonus(account, amount, vesting_seconds, now)

        self._execute("admin_grant_bonus", caller, body, guarded=True)
        if self.metrics is not None:
            self.metrics.record_bonus("grant", amount)

    def payout_referral(self, caller: str, account: str, amount: int) -> List[ReferralPayout]:
        """
        Owner-triggered referral cascade for ``amount`` credited by ``account``.

        Pays the same per-level rates as a first deposit, without touching
        the account's own balance or deposit lifecycle.
        """
        def body(now: int) -> List[ReferralPayout]:
            self._require_owner(caller)
            if amount <= 0:
                raise AmountIsZero("Referral amount must be positive", details={"amount": amount})
            record = self.ledger.require_registered(account)
            return self.referral.pay_referral_cascade(record, amount, now)

        payouts = self._execute("payout_referral", caller, body, guarded=True)
        if self.metrics is not None:
            self.metrics.record_bonus("referral", sum(payout.amount for payout in payouts))
        return payouts

    def pause(self, caller: str) -> None:
        """Refuse user operations until ``unpause``."""
        def body(now: int) -> None:
            self._require_owner(caller)
            if self._paused:
                raise Paused("Platform is already paused")
            self._paused = True
            logger.warning("Platform paused", extra={"event": "volt.platform.paused"})

        self._execute("pause", caller, body)

    def unpause(self, caller: str) -> None:
        def body(now: int) -> None:
            self._require_owner(caller)
            if not self._paused:
                raise NotPaused("Platform is not paused")
            self._paused = False
            logger.info("Platform unpaused", extra={"event": "volt.platform.unpaused"})

        self._execute("unpause", caller, body)

    def update_parameters(
        self,
        caller: str,
        base_apy_bp: int,
        min_withdraw: int,
        fee_lt_500_bp: int,
        fee_gte_500_bp: int,
    ) -> None:
        """Retune economic parameters; ``min_withdraw`` is in base units."""
        def body(now: int) -> None:
            self._require_owner(caller)
            self.parameters.update_parameters(base_apy_bp, min_withdraw, fee_lt_500_bp, fee_gte_500_bp)

        self._execute("update_parameters", caller, body)

    def update_referral_rewards(self, caller: str, referral_bp: Sequence[int]) -> None:
        def body(now: int) -> None:
            self._require_owner(caller)
            self.parameters.update_referral_rewards(referral_bp)

        self._execute("update_referral_rewards", caller, body)

    # ==================== Read accessors ====================

    def get_user_overview(self, account: str) -> Dict[str, Any]:
        record = self.ledger.get(account)
        if record is None:
            return {
                "registered": False,
                "referrer": None,
                "available": 0,
                "locked": 0,
                "bonus": 0,
                "deposited": False,
                "first_deposit_time": 0,
                "lock_count": 0,
                "claim": 0,
            }
        return {
            "registered": record.registered,
            "referrer": record.referrer,
            "available": record.available_balance,
            "locked": record.locked_amount,
            "bonus": record.bonus_balance,
            "deposited": record.has_deposited,
            "first_deposit_time": record.first_deposit_time,
            "lock_count": len(record.locks),
            "claim": record.claim,
        }

    def get_lock(self, account: str, index: int) -> Dict[str, Any]:
        record = self.ledger.require_registered(account)
        if not isinstance(index, int) or index < 0 or index >= len(record.locks):
            raise InvalidLockIndex(
                f"Lock index {index} out of range",
                details={"index": index, "lock_count": len(record.locks)},
            )
        position = record.locks[index]
        bonus, interest = lock_reward(position)
        data = position.to_dict()
        data.update({"end_time": position.end_time, "bonus": bonus, "interest": interest})
        return data

    def get_lock_count(self, account: str) -> int:
        record = self.ledger.get(account)
        return len(record.locks) if record is not None else 0

    def get_locked_amount(self, account: str) -> int:
        record = self.ledger.get(account)
        return record.locked_amount if record is not None else 0

    def balance_of_claim(self, account: str) -> int:
        return self.token.balance_of(account)

    def get_parameters(self) -> Dict[str, Any]:
        data = self.parameters.snapshot()
        data.update(
            {
                "enforce_solvency": self.config.enforce_solvency,
                "enforce_lock_maturity": self.config.enforce_lock_maturity,
                "fee_tier_threshold": self.withdrawals.fee_threshold,
            }
        )
        return data

    def get_global_state(self) -> Dict[str, Any]:
        data = self.ledger.state.to_dict()
        data.update(
            {
                "reserve_held": self.solvency.reserve_held(),
                "liability": self.solvency.liability(),
                "surplus": self.solvency.surplus(),
                "accounts": len(self.ledger),
                "active_locks": self.ledger.active_lock_count(),
                "paused": self._paused,
            }
        )
        return data

    def calculate_accrued_interest(self, account: str) -> int:
        """Interest the account would receive if settled now; read-only."""
        return self.accrual.project(account, self._read_clock())

    def vested_bonus(self, account: str) -> int:
        record = self.ledger.get(account)
        if record is None:
            return 0
        return self.referral.vested_bonus(record, self._read_clock())

    def can_withdraw_bonus(self, account: str) -> bool:
        return self.vested_bonus(account) > 0

    def reserve_held(self) -> int:
        return self.solvency.reserve_held()

    def liability(self) -> int:
        return self.solvency.liability()

    def surplus(self) -> int:
        return self.solvency.surplus()

    def is_solvent(self) -> bool:
        return self.solvency.is_solvent()

    def is_paused(self) -> bool:
        return self._paused

    # ==================== Persistence ====================

    def to_dict(self) -> Dict[str, Any]:
        """Serialize ledger, policy and (when supported) collaborator state."""
        data: Dict[str, Any] = {
            "version": STATE_VERSION,
            "owner": self.owner,
            "address": self.address,
            "last_time": self._last_time,
            "paused": self._paused,
            "config": {
                "network": self.config.network.value,
                "reserve_decimals": self.config.reserve_decimals,
                "fee_tier_threshold_units": self.config.fee_tier_threshold_units,
                "first_deposit_bonus_tiers": [list(t) for t in self.config.first_deposit_bonus_tiers],
                "first_deposit_bonus_cap_units": self.config.first_deposit_bonus_cap_units,
                "bonus_vesting_days": self.config.bonus_vesting_days,
                "enforce_solvency": self.config.enforce_solvency,
                "enforce_lock_maturity": self.config.enforce_lock_maturity,
            },
            "ledger": self.ledger.to_dict(),
        }
        for name in ("token", "custody"):
            collaborator = getattr(self, name)
            if hasattr(collaborator, "to_dict"):
                data[name] = collaborator.to_dict()
        return data

    @classmethod
    def from_dict(
        cls,
        data: Dict[str, Any],
        token: Optional[ClaimTokenProtocol] = None,
        custody: Optional[ReserveCustodyProtocol] = None,
        time_provider: Optional[Callable[[], float]] = None,
        metrics: Optional[LedgerMetrics] = None,
    ) -> "StakingPlatform":
        """Rebuild a platform; in-memory collaborators are restored when not supplied."""
        stored = data.get("config", {})
        ledger = AccountLedger.from_dict(data["ledger"])
        params = ledger.params
        config = PlatformConfig(
            network=NetworkType(stored.get("network", NetworkType.TESTNET.value)),
            reserve_decimals=stored.get("reserve_decimals", 6),
            base_apy_bp=params.base_apy_bp,
            min_withdraw_units=max(1, params.min_withdraw // (10 ** stored.get("reserve_decimals", 6))),
            fee_lt_500_bp=params.fee_lt_500_bp,
            fee_gte_500_bp=params.fee_gte_500_bp,
            referral_bp=tuple(params.referral_bp),
            fee_tier_threshold_units=stored.get("fee_tier_threshold_units", 500),
            first_deposit_bonus_tiers=tuple(
                tuple(t) for t in stored.get("first_deposit_bonus_tiers", ((50, 3), (100, 5), (500, 10)))
            ),
            first_deposit_bonus_cap_units=stored.get("first_deposit_bonus_cap_units", 10_000),
            bonus_vesting_days=stored.get("bonus_vesting_days", 5 * 365),
            enforce_solvency=stored.get("enforce_solvency", False),
            enforce_lock_maturity=stored.get("enforce_lock_maturity", False),
        )
        if token is None and "token" in data:
            token = ClaimToken.from_dict(data["token"])
        if custody is None and "custody" in data:
            custody = ReserveVault.from_dict(data["custody"])

        platform = cls(
            owner=data["owner"],
            token=token,
            custody=custody,
            config=config,
            time_provider=time_provider,
            metrics=metrics,
            address=data.get("address", "volt.platform"),
            ledger=ledger,
        )
        platform._last_time = int(data.get("last_time", 0))
        platform._paused = bool(data.get("paused", False))
        return platform

    def save(self, storage: LedgerStorage) -> str:
        """Persist the platform; raises StorageError when the write fails."""
        self._require_not_locked()
        success, message = storage.save_to_disk(self.to_dict())
        if not success:
            raise StorageError(message)
        return message

    @classmethod
    def load(cls, storage: LedgerStorage, **kwargs: Any) -> "StakingPlatform":
        """Load a platform saved with ``save``; raises StorageError when nothing loads."""
        success, data, message = storage.load_from_disk()
        if not success or data is None:
            raise StorageError(message)
        return cls.from_dict(data, **kwargs)
