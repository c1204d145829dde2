"""
Lazy interest accrual.

Interest is never streamed. Each mutating operation first settles the
account: the time since ``last_accrual_time`` is charged against

- ``available_balance + bonus_balance`` at the base APY, and
- each active lock's ``amount`` at that lock's APR,

each term floored on its own. The result is minted into
``available_balance`` and the checkpoint moves forward. Because every
operation settles first, balances compound at operation granularity.

``accrue`` is the pure core; ``InterestAccrualEngine`` applies its result to
the ledger and the claim token.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass

from .fixed_point import simple_interest
from .ledger import Account, AccountLedger
from ..contracts.interfaces import ClaimTokenProtocol

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccrualResult:
    """Outcome of settling one account at ``now``."""

    account: Account
    interest: int
    elapsed: int


def calculate_interest(account: Account, now: int, base_apy_bp: int) -> int:
    """Interest owed to ``account`` for the window ending at ``now``."""
    elapsed = now - account.last_accrual_time
    if elapsed <= 0:
        return 0

    interest = simple_interest(
        account.available_balance + account.bonus_balance, base_apy_bp, elapsed
    )
    for lock in account.locks:
        if lock.active:
            interest += simple_interest(lock.amount, lock.apr_bp, elapsed)
    return interest


def accrue(account: Account, now: int, base_apy_bp: int) -> AccrualResult:
    """
    Settle ``account`` at ``now`` without touching the input.

    Returns a copy with the interest added to ``available_balance`` and the
    checkpoint advanced to ``max(last_accrual_time, now)``. A checkpoint
    already in the future (forward-dated by an unlock) is left alone.
    """
    elapsed = max(0, now - account.last_accrual_time)
    interest = calculate_interest(account, now, base_apy_bp)

    updated = copy.deepcopy(account)
    updated.available_balance += interest
    updated.last_accrual_time = max(account.last_accrual_time, now)
    return AccrualResult(account=updated, interest=interest, elapsed=elapsed)


class InterestAccrualEngine:
    """Applies ``accrue`` to ledger accounts and mints the interest."""

    def __init__(self, ledger: AccountLedger, token: ClaimTokenProtocol) -> None:
        self.ledger = ledger
        self.token = token
        # Running total of interest minted by settlement, for metrics
        self.settled_total = 0

    def project(self, address: str, now: int) -> int:
        """Interest that settling ``address`` at ``now`` would mint."""
        account = self.ledger.get(address)
        if account is None:
            return 0
        return calculate_interest(account, now, self.ledger.params.base_apy_bp)

    def settle(self, address: str, now: int) -> int:
        """Settle a registered account in place; returns the minted interest."""
        account = self.ledger.require_registered(address)
        result = accrue(account, now, self.ledger.params.base_apy_bp)

        if result.interest > 0:
            self.token.mint(account.address, result.interest)
            self.ledger.record_mint(result.interest)
            self.settled_total += result.interest

        # Copy the settled fields back so existing references stay valid
        account.available_balance = result.account.available_balance
        account.last_accrual_time = result.account.last_accrual_time

        if result.interest > 0:
            logger.debug(
                "Interest settled",
                extra={
                    "event": "volt.accrual.settled",
                    "account": account.address[:10],
                    "interest": result.interest,
                    "elapsed": result.elapsed,
                },
            )
        return result.interest
