"""
Volt staking ledger engines.

- AccountLedger: per-account balances, locks, referral edges, counters
- InterestAccrualEngine: lazy checkpoint-based interest settlement
- LockManager: duration-tier locks with guaranteed nominal rewards
- ReferralEngine: registration graph, first-deposit bonuses, vesting
- FeeTieredWithdrawal: size-tiered fees, burn and reserve payout
- SolvencyGuard / ParameterStore: liability bounds and admin parameters
- StakingPlatform: transactional facade over all of the above
"""

from .accrual import AccrualResult, InterestAccrualEngine, accrue, calculate_interest
from .ledger import (
    Account,
    AccountLedger,
    BonusGrant,
    DurationTier,
    GlobalState,
    LockPosition,
    ProtocolParameters,
)
from .locks import LockManager, UnlockResult, lock_reward
from .platform import DepositResult, StakingPlatform
from .referral import FirstDepositResult, ReferralEngine, ReferralPayout
from .solvency import ParameterStore, SolvencyGuard
from .withdrawal import FeeTieredWithdrawal, WithdrawalResult

__all__ = [
    # Ledger
    "Account",
    "AccountLedger",
    "BonusGrant",
    "DurationTier",
    "GlobalState",
    "LockPosition",
    "ProtocolParameters",
    # Accrual
    "AccrualResult",
    "InterestAccrualEngine",
    "accrue",
    "calculate_interest",
    # Locks
    "LockManager",
    "UnlockResult",
    "lock_reward",
    # Referral
    "FirstDepositResult",
    "ReferralEngine",
    "ReferralPayout",
    # Withdrawal
    "FeeTieredWithdrawal",
    "WithdrawalResult",
    # Solvency
    "ParameterStore",
    "SolvencyGuard",
    # Facade
    "DepositResult",
    "StakingPlatform",
]
