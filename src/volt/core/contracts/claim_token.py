"""
Claim Token Implementation.

A non-transferable ledger token minted 1:1 against reserve deposited into a
staking platform. The platform holding the token object is its only minter;
holders can only read balances. There is no transfer, approval or permit
surface.

Safety checks:
- Zero address checks on mint/burn targets
- Balance underflow prevention on burn
- Optional supply cap
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict

from ..constants import ZERO_ADDRESS
from ..ledger_exceptions import TokenError

logger = logging.getLogger(__name__)


@dataclass
class ClaimToken:
    """
    In-memory claim token.

    ``minter`` records the platform address bound at construction; mint and
    burn carry no caller argument since only the platform holds the object.
    """

    # Token metadata
    name: str = "Volt Token"
    symbol: str = "VOLT"
    decimals: int = 6
    total_supply: int = 0

    # Address allowed to mint and burn
    minter: str = ""

    # State
    balances: dict[str, int] = field(default_factory=dict)

    # Supply cap (0 = unlimited)
    max_supply: int = 0

    # ==================== View Functions ====================

    def balance_of(self, account: str) -> int:
        return self.balances.get(self._normalize(account), 0)

    # ==================== Minter Functions ====================

    def mint(self, account: str, amount: int) -> bool:
        """
        Mint claim tokens to ``account``.

        Raises:
            TokenError: On zero address, negative amount or supply cap breach
        """
        account_norm = self._normalize(account)
        self._validate_address(account_norm, "recipient")
        self._validate_amount(amount)
        if amount == 0:
            return True

        if self.max_supply > 0 and self.total_supply + amount > self.max_supply:
            raise TokenError(
                f"{self.symbol}: mint would exceed max supply "
                f"({self.total_supply + amount} > {self.max_supply})",
                details={"account": account_norm, "amount": amount},
            )

        self.total_supply += amount
        self.balances[account_norm] = self.balances.get(account_norm, 0) + amount

        logger.debug(
            "Claim token mint",
            extra={
                "event": "volt.token.mint",
                "token": self.symbol,
                "to": account_norm[:10],
                "amount": amount,
                "new_supply": self.total_supply,
            },
        )
        return True

    def burn(self, account: str, amount: int) -> bool:
        """
        Burn claim tokens from ``account``.

        Raises:
            TokenError: If the balance is smaller than ``amount``
        """
        account_norm = self._normalize(account)
        self._validate_address(account_norm, "holder")
        self._validate_amount(amount)
        if amount == 0:
            return True

        balance = self.balances.get(account_norm, 0)
        if balance < amount:
            raise TokenError(
                f"{self.symbol}: burn amount exceeds balance ({amount} > {balance})",
                details={"account": account_norm, "amount": amount, "balance": balance},
            )

        remaining = balance - amount
        if remaining:
            self.balances[account_norm] = remaining
        else:
            self.balances.pop(account_norm, None)
        self.total_supply -= amount

        logger.debug(
            "Claim token burn",
            extra={
                "event": "volt.token.burn",
                "token": self.symbol,
                "from": account_norm[:10],
                "amount": amount,
                "new_supply": self.total_supply,
            },
        )
        return True

    # ==================== Rollback ====================

    def snapshot(self) -> Dict:
        return {"total_supply": self.total_supply, "balances": dict(self.balances)}

    def restore(self, snapshot: Dict) -> None:
        self.total_supply = snapshot["total_supply"]
        self.balances = dict(snapshot["balances"])

    # ==================== Helpers ====================

    def _normalize(self, address: str) -> str:
        return address.lower()

    def _validate_address(self, address: str, field: str) -> None:
        if not address or address == ZERO_ADDRESS:
            raise TokenError(f"{self.symbol}: {field} is zero address")

    def _validate_amount(self, amount: int) -> None:
        if not isinstance(amount, int) or isinstance(amount, bool):
            raise TokenError(f"{self.symbol}: amount must be an integer")
        if amount < 0:
            raise TokenError(f"{self.symbol}: amount cannot be negative")

    # ==================== Serialization ====================

    def to_dict(self) -> Dict:
        """Serialize token state to dictionary."""
        return {
            "name": self.name,
            "symbol": self.symbol,
            "decimals": self.decimals,
            "total_supply": self.total_supply,
            "minter": self.minter,
            "balances": dict(self.balances),
            "max_supply": self.max_supply,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "ClaimToken":
        """Deserialize token state from dictionary."""
        return cls(
            name=data.get("name", "Volt Token"),
            symbol=data.get("symbol", "VOLT"),
            decimals=data.get("decimals", 6),
            total_supply=data.get("total_supply", 0),
            minter=data.get("minter", ""),
            balances={k: int(v) for k, v in data.get("balances", {}).items()},
            max_supply=data.get("max_supply", 0),
        )
