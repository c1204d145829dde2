"""
Volt Ledger Constants

This module contains the magic numbers used throughout the ledger,
organized by category for better maintainability and understanding.

NOTE: Changes to accounting-critical constants (marked with [ACCOUNTING])
alter how existing balances and locks are valued. Existing ledgers must be
migrated before such a change is deployed.
"""

from typing import Final

# =============================================================================
# TIME CONSTANTS (in seconds)
# =============================================================================

SECONDS_PER_DAY: Final[int] = 86400  # 60 * 60 * 24
DAYS_PER_YEAR: Final[int] = 365
SECONDS_PER_YEAR: Final[int] = 31536000  # 60 * 60 * 24 * 365 [ACCOUNTING]

# =============================================================================
# FIXED-POINT CONSTANTS [ACCOUNTING]
# =============================================================================

BASIS_POINTS: Final[int] = 10_000  # 100%

# Reserve asset precision (USDT-style six decimals)
DEFAULT_RESERVE_DECIMALS: Final[int] = 6

# =============================================================================
# LOCK TIERS [ACCOUNTING]
# =============================================================================

# duration_days -> (bonus_bp, apr_bp)
DEFAULT_DURATION_TIERS: Final[dict[int, tuple[int, int]]] = {
    45: (1000, 150),
    90: (2000, 350),
    180: (4000, 800),
    365: (11000, 1800),
    1095: (40000, 10000),
}

# =============================================================================
# REFERRAL & BONUS CONSTANTS
# =============================================================================

REFERRAL_LEVELS: Final[int] = 7
DEFAULT_REFERRAL_BP: Final[tuple[int, ...]] = (1000, 500, 250, 125, 100, 50, 25)

# First-deposit size bonus, in whole reserve units: (min_units, multiplier),
# checked from the largest band down. Below the smallest band no bonus is paid.
DEFAULT_FIRST_DEPOSIT_BONUS_TIERS: Final[tuple[tuple[int, int], ...]] = (
    (50, 3),
    (100, 5),
    (500, 10),
)
DEFAULT_FIRST_DEPOSIT_BONUS_CAP_UNITS: Final[int] = 10_000

BONUS_VESTING_DAYS: Final[int] = 5 * DAYS_PER_YEAR

# =============================================================================
# WITHDRAWAL & PARAMETER DEFAULTS
# =============================================================================

DEFAULT_BASE_APY_BP: Final[int] = 600
DEFAULT_MIN_WITHDRAW_UNITS: Final[int] = 150
DEFAULT_FEE_LT_500_BP: Final[int] = 1000
DEFAULT_FEE_GTE_500_BP: Final[int] = 500
FEE_TIER_THRESHOLD_UNITS: Final[int] = 500

# Administrative update bounds
MAX_BASE_APY_BP: Final[int] = 10_000
MAX_FEE_BP: Final[int] = 5_000
MAX_REFERRAL_BP: Final[int] = 5_000

# =============================================================================
# ADDRESSES
# =============================================================================

ZERO_ADDRESS: Final[str] = "0x" + "0" * 40
