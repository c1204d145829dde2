"""
Volt Ledger - Metrics Module

Prometheus metrics for the staking ledger: operation outcomes, value minted
and burned, fees retained and the reserve/liability picture after each
operation.

Every LedgerMetrics instance owns its CollectorRegistry unless one is passed
in, so several platforms (or tests) can coexist in one process.
"""

import logging
import threading
from typing import Optional

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

logger = logging.getLogger(__name__)


class LedgerMetrics:
    """
    Centralized metrics collector for a staking platform.

    Amounts are exported in base units as floats, which is what Prometheus
    stores; they are for dashboards, never for accounting.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry or CollectorRegistry()
        self._lock = threading.Lock()

        # ==================== OPERATION METRICS ====================
        self.operations_total = Counter(
            "volt_operations_total",
            "Ledger operations by name and outcome",
            ["operation", "status"],
            registry=self.registry,
        )

        self.operation_errors_total = Counter(
            "volt_operation_errors_total",
            "Rejected ledger operations by error type",
            ["operation", "error_type"],
            registry=self.registry,
        )

        self.operation_duration = Histogram(
            "volt_operation_duration_seconds",
            "Wall time spent inside ledger operations",
            ["operation"],
            buckets=[0.0005, 0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1],
            registry=self.registry,
        )

        # ==================== VALUE FLOW METRICS ====================
        self.deposits_total = Counter(
            "volt_deposits_base_units_total",
            "Reserve deposited by users",
            registry=self.registry,
        )

        self.interest_minted_total = Counter(
            "volt_interest_minted_base_units_total",
            "Interest minted by accrual settlement and unlocks",
            registry=self.registry,
        )

        self.lock_bonus_minted_total = Counter(
            "volt_lock_bonus_minted_base_units_total",
            "Lock bonuses minted on unlock",
            registry=self.registry,
        )

        self.bonus_credited_total = Counter(
            "volt_bonus_credited_base_units_total",
            "Bonuses credited by source",
            ["source"],
            registry=self.registry,
        )

        self.withdrawals_total = Counter(
            "volt_withdrawals_base_units_total",
            "Gross claim amount burned by withdrawals",
            registry=self.registry,
        )

        self.fees_collected_total = Counter(
            "volt_fees_collected_base_units_total",
            "Withdrawal fees retained in custody",
            registry=self.registry,
        )

        # ==================== SOLVENCY METRICS ====================
        self.reserve_held = Gauge(
            "volt_reserve_held_base_units",
            "Reserve currently held in custody",
            registry=self.registry,
        )

        self.liability = Gauge(
            "volt_liability_base_units",
            "Outstanding claims (minted - burned + unpaid bonus)",
            registry=self.registry,
        )

        self.surplus = Gauge(
            "volt_surplus_base_units",
            "Reserve held minus liability; negative when insolvent",
            registry=self.registry,
        )

        self.accounts_registered = Gauge(
            "volt_accounts_registered",
            "Registered accounts",
            registry=self.registry,
        )

        self.active_locks = Gauge(
            "volt_active_locks",
            "Lock positions not yet unlocked",
            registry=self.registry,
        )

    def export_prometheus(self) -> str:
        """Export metrics in Prometheus text format."""
        return generate_latest(self.registry).decode("utf-8")

    def record_operation(self, operation: str, status: str = "success", duration: float = 0.0) -> None:
        with self._lock:
            self.operations_total.labels(operation=operation, status=status).inc()
            if duration > 0:
                self.operation_duration.labels(operation=operation).observe(duration)

    def record_error(self, operation: str, error_type: str) -> None:
        with self._lock:
            self.operations_total.labels(operation=operation, status="rejected").inc()
            self.operation_errors_total.labels(operation=operation, error_type=error_type).inc()

    def record_deposit(self, amount: int) -> None:
        if amount > 0:
            self.deposits_total.inc(amount)

    def record_interest(self, amount: int) -> None:
        if amount > 0:
            self.interest_minted_total.inc(amount)

    def record_lock_bonus(self, amount: int) -> None:
        if amount > 0:
            self.lock_bonus_minted_total.inc(amount)

    def record_bonus(self, source: str, amount: int) -> None:
        if amount > 0:
            self.bonus_credited_total.labels(source=source).inc(amount)

    def record_withdrawal(self, amount: int, fee: int) -> None:
        if amount > 0:
            self.withdrawals_total.inc(amount)
        if fee > 0:
            self.fees_collected_total.inc(fee)

    def update_solvency(self, reserve_held: int, liability: int) -> None:
        """Publish the reserve/liability picture after an operation."""
        with self._lock:
            self.reserve_held.set(reserve_held)
            self.liability.set(liability)
            self.surplus.set(reserve_held - liability)

    def update_population(self, accounts: int, active_locks: int) -> None:
        with self._lock:
            self.accounts_registered.set(accounts)
            self.active_locks.set(active_locks)


# ==================== GLOBAL METRICS INSTANCE ====================

_metrics_instance: Optional[LedgerMetrics] = None
_metrics_lock = threading.Lock()


def get_metrics() -> LedgerMetrics:
    """Get or create the process-wide metrics instance."""
    global _metrics_instance
    if _metrics_instance is None:
        with _metrics_lock:
            if _metrics_instance is None:
                _metrics_instance = LedgerMetrics()
                logger.debug("LedgerMetrics initialized", extra={"event": "metrics.initialized"})
    return _metrics_instance


__all__ = ["LedgerMetrics", "get_metrics"]
