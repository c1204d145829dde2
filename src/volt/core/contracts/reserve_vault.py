"""
Reserve custody vault.

Holds the reserve asset (a six-decimal stablecoin by default) on behalf of a
staking platform. User wallets are modelled as plain balances so deposits can
fail the way an external token transfer does when the wallet is short.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict

from ..ledger_exceptions import CustodyError

logger = logging.getLogger(__name__)


@dataclass
class ReserveVault:
    """In-memory reserve custody with per-wallet balances."""

    asset_symbol: str = "USDT"
    decimals: int = 6
    held: int = 0
    wallets: dict[str, int] = field(default_factory=dict)

    # ==================== Wallets ====================

    def credit_wallet(self, account: str, amount: int) -> None:
        """Fund a user wallet with reserve asset (faucet / test setup)."""
        self._validate_amount(amount)
        account_norm = account.lower()
        self.wallets[account_norm] = self.wallets.get(account_norm, 0) + amount

    def wallet_balance(self, account: str) -> int:
        return self.wallets.get(account.lower(), 0)

    # ==================== Custody ====================

    def balance_held(self) -> int:
        return self.held

    def transfer_in(self, sender: str, amount: int) -> bool:
        """Pull ``amount`` from ``sender``'s wallet into custody."""
        self._validate_amount(amount)
        sender_norm = sender.lower()
        balance = self.wallets.get(sender_norm, 0)
        if balance < amount:
            raise CustodyError(
                f"{self.asset_symbol}: transfer amount exceeds wallet balance "
                f"({amount} > {balance})",
                details={"account": sender_norm, "amount": amount, "balance": balance},
            )
        self.wallets[sender_norm] = balance - amount
        self.held += amount

        logger.debug(
            "Reserve transferred into custody",
            extra={"event": "volt.custody.transfer_in", "from": sender_norm[:10], "amount": amount},
        )
        return True

    def transfer_out(self, recipient: str, amount: int) -> bool:
        """Pay ``amount`` from custody to ``recipient``'s wallet."""
        self._validate_amount(amount)
        if self.held < amount:
            raise CustodyError(
                f"{self.asset_symbol}: custody holds {self.held}, cannot pay {amount}",
                details={"recipient": recipient.lower(), "amount": amount, "held": self.held},
            )
        recipient_norm = recipient.lower()
        self.held -= amount
        self.wallets[recipient_norm] = self.wallets.get(recipient_norm, 0) + amount

        logger.debug(
            "Reserve transferred out of custody",
            extra={"event": "volt.custody.transfer_out", "to": recipient_norm[:10], "amount": amount},
        )
        return True

    # ==================== Rollback ====================

    def snapshot(self) -> Dict:
        return {"held": self.held, "wallets": dict(self.wallets)}

    def restore(self, snapshot: Dict) -> None:
        self.held = snapshot["held"]
        self.wallets = dict(snapshot["wallets"])

    def _validate_amount(self, amount: int) -> None:
        if not isinstance(amount, int) or isinstance(amount, bool):
            raise CustodyError(f"{self.asset_symbol}: amount must be an integer")
        if amount < 0:
            raise CustodyError(f"{self.asset_symbol}: amount cannot be negative")

    # ==================== Serialization ====================

    def to_dict(self) -> Dict:
        return {
            "asset_symbol": self.asset_symbol,
            "decimals": self.decimals,
            "held": self.held,
            "wallets": dict(self.wallets),
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "ReserveVault":
        return cls(
            asset_symbol=data.get("asset_symbol", "USDT"),
            decimals=data.get("decimals", 6),
            held=int(data.get("held", 0)),
            wallets={k: int(v) for k, v in data.get("wallets", {}).items()},
        )
