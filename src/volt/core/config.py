"""
Volt Ledger Configuration

Economic defaults and policy flags for a staking platform instance.

Every value can be overridden through ``VOLT_*`` environment variables.
The solvency guard bounds what the owner may promise out of reserve. It is
off by default and mandatory on mainnet; user operations are never blocked
by it.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping, Optional

from .constants import (
    BONUS_VESTING_DAYS,
    DEFAULT_BASE_APY_BP,
    DEFAULT_FEE_GTE_500_BP,
    DEFAULT_FEE_LT_500_BP,
    DEFAULT_FIRST_DEPOSIT_BONUS_CAP_UNITS,
    DEFAULT_FIRST_DEPOSIT_BONUS_TIERS,
    DEFAULT_MIN_WITHDRAW_UNITS,
    DEFAULT_REFERRAL_BP,
    DEFAULT_RESERVE_DECIMALS,
    FEE_TIER_THRESHOLD_UNITS,
    MAX_BASE_APY_BP,
    MAX_FEE_BP,
    MAX_REFERRAL_BP,
    REFERRAL_LEVELS,
)

logger = logging.getLogger(__name__)


class NetworkType(Enum):
    TESTNET = "testnet"
    MAINNET = "mainnet"


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""
    pass


def _env_int(environ: Mapping[str, str], env_var: str, default: int) -> int:
    raw = environ.get(env_var, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{env_var} must be an integer, got {raw!r}") from exc


def _env_bool(environ: Mapping[str, str], env_var: str, default: bool) -> bool:
    raw = environ.get(env_var, "").strip().lower()
    if not raw:
        return default
    if raw in ("1", "true", "yes", "on"):
        return True
    if raw in ("0", "false", "no", "off"):
        return False
    raise ConfigurationError(f"{env_var} must be a boolean flag, got {raw!r}")


def _env_int_list(environ: Mapping[str, str], env_var: str, default: tuple[int, ...]) -> tuple[int, ...]:
    raw = environ.get(env_var, "").strip()
    if not raw:
        return default
    try:
        return tuple(int(part.strip()) for part in raw.split(",") if part.strip())
    except ValueError as exc:
        raise ConfigurationError(f"{env_var} must be a comma separated list of integers") from exc


@dataclass
class PlatformConfig:
    """
    Construction-time settings for a StakingPlatform.

    Amounts suffixed ``_units`` are whole reserve units; the platform scales
    them by ``10 ** reserve_decimals``.
    """

    network: NetworkType = NetworkType.TESTNET
    reserve_decimals: int = DEFAULT_RESERVE_DECIMALS

    # Economic parameters (admin-tunable after construction)
    base_apy_bp: int = DEFAULT_BASE_APY_BP
    min_withdraw_units: int = DEFAULT_MIN_WITHDRAW_UNITS
    fee_lt_500_bp: int = DEFAULT_FEE_LT_500_BP
    fee_gte_500_bp: int = DEFAULT_FEE_GTE_500_BP
    referral_bp: tuple[int, ...] = DEFAULT_REFERRAL_BP

    # Fixed schedules
    fee_tier_threshold_units: int = FEE_TIER_THRESHOLD_UNITS
    first_deposit_bonus_tiers: tuple[tuple[int, int], ...] = DEFAULT_FIRST_DEPOSIT_BONUS_TIERS
    first_deposit_bonus_cap_units: int = DEFAULT_FIRST_DEPOSIT_BONUS_CAP_UNITS
    bonus_vesting_days: int = BONUS_VESTING_DAYS

    # Policy flags
    # Owner grants and referral payouts must stay backed by reserve
    enforce_solvency: bool = False
    enforce_lock_maturity: bool = False

    # Observability
    log_level: str = "INFO"
    log_file: Optional[str] = None
    extra: dict = field(default_factory=dict)

    @property
    def unit(self) -> int:
        """One whole reserve unit in base units."""
        return 10 ** self.reserve_decimals

    def validate(self) -> "PlatformConfig":
        """Check bounds; raise ConfigurationError on the first violation."""
        if self.reserve_decimals < 0 or self.reserve_decimals > 36:
            raise ConfigurationError("reserve_decimals must be between 0 and 36")
        if not 0 <= self.base_apy_bp <= MAX_BASE_APY_BP:
            raise ConfigurationError(f"base_apy_bp must be <= {MAX_BASE_APY_BP}")
        if self.min_withdraw_units <= 0:
            raise ConfigurationError("min_withdraw_units must be positive")
        for name in ("fee_lt_500_bp", "fee_gte_500_bp"):
            if not 0 <= getattr(self, name) <= MAX_FEE_BP:
                raise ConfigurationError(f"{name} must be <= {MAX_FEE_BP}")
        if len(self.referral_bp) != REFERRAL_LEVELS:
            raise ConfigurationError(f"referral_bp must have exactly {REFERRAL_LEVELS} levels")
        if any(not 0 <= bp <= MAX_REFERRAL_BP for bp in self.referral_bp):
            raise ConfigurationError(f"each referral_bp value must be <= {MAX_REFERRAL_BP}")
        thresholds = [min_units for min_units, _ in self.first_deposit_bonus_tiers]
        if thresholds != sorted(thresholds) or len(set(thresholds)) != len(thresholds):
            raise ConfigurationError("first_deposit_bonus_tiers must be strictly ascending")
        if self.first_deposit_bonus_cap_units < 0:
            raise ConfigurationError("first_deposit_bonus_cap_units must not be negative")
        if self.bonus_vesting_days < 0:
            raise ConfigurationError("bonus_vesting_days must not be negative")

        if not self.enforce_solvency:
            if self.network == NetworkType.MAINNET:
                raise ConfigurationError(
                    "CRITICAL: unbacked admin bonus grants cannot be allowed on mainnet "
                    "(set VOLT_ENFORCE_SOLVENCY=1)"
                )
            logger.debug(
                "Solvency guard off; admin grants and referral payouts may exceed custodied reserve",
                extra={"event": "config.solvency_unguarded", "network": self.network.value},
            )
        return self

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "PlatformConfig":
        """Build a validated config from ``VOLT_*`` environment variables."""
        env = os.environ if environ is None else environ

        network_raw = env.get("VOLT_NETWORK", NetworkType.TESTNET.value).strip().lower()
        try:
            network = NetworkType(network_raw)
        except ValueError as exc:
            raise ConfigurationError(f"Unknown VOLT_NETWORK {network_raw!r}") from exc

        config = cls(
            network=network,
            reserve_decimals=_env_int(env, "VOLT_RESERVE_DECIMALS", DEFAULT_RESERVE_DECIMALS),
            base_apy_bp=_env_int(env, "VOLT_BASE_APY_BP", DEFAULT_BASE_APY_BP),
            min_withdraw_units=_env_int(env, "VOLT_MIN_WITHDRAW_UNITS", DEFAULT_MIN_WITHDRAW_UNITS),
            fee_lt_500_bp=_env_int(env, "VOLT_FEE_LT_500_BP", DEFAULT_FEE_LT_500_BP),
            fee_gte_500_bp=_env_int(env, "VOLT_FEE_GTE_500_BP", DEFAULT_FEE_GTE_500_BP),
            referral_bp=_env_int_list(env, "VOLT_REFERRAL_BP", DEFAULT_REFERRAL_BP),
            bonus_vesting_days=_env_int(env, "VOLT_BONUS_VESTING_DAYS", BONUS_VESTING_DAYS),
            first_deposit_bonus_cap_units=_env_int(
                env, "VOLT_FIRST_DEPOSIT_BONUS_CAP_UNITS", DEFAULT_FIRST_DEPOSIT_BONUS_CAP_UNITS
            ),
            enforce_solvency=_env_bool(env, "VOLT_ENFORCE_SOLVENCY", network == NetworkType.MAINNET),
            enforce_lock_maturity=_env_bool(env, "VOLT_ENFORCE_LOCK_MATURITY", False),
            log_level=env.get("VOLT_LOG_LEVEL", "INFO").strip().upper() or "INFO",
            log_file=env.get("VOLT_LOG_FILE", "").strip() or None,
        )
        return config.validate()


__all__ = [
    "ConfigurationError",
    "NetworkType",
    "PlatformConfig",
]
