"""
Collaborator Protocol Interfaces - decoupling the ledger from concrete
token and custody implementations.

The staking platform depends on these protocols only. Any object providing
the methods below can stand in for the bundled in-memory implementations
(``ClaimToken`` and ``ReserveVault``), e.g. an adapter over an external
token contract.

``snapshot``/``restore`` are optional: when a collaborator provides them the
platform uses them to roll back partial effects of a failed operation. A
collaborator without them must itself guarantee that a raising call has no
effect.

Usage:
    class StakingPlatform:
        def __init__(self, token: ClaimTokenProtocol, custody: ReserveCustodyProtocol): ...
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class ClaimTokenProtocol(Protocol):
    """
    The 1:1 claim token the ledger mints against deposited reserve.

    ``burn`` must raise when ``account`` holds less than ``amount``.
    """

    def mint(self, account: str, amount: int) -> Any:
        ...

    def burn(self, account: str, amount: int) -> Any:
        ...

    def balance_of(self, account: str) -> int:
        ...


@runtime_checkable
class ReserveCustodyProtocol(Protocol):
    """
    Custody of the reserve asset backing every claim.

    ``transfer_in`` pulls reserve from a user's wallet into custody,
    ``transfer_out`` pays reserve from custody to a user's wallet.
    """

    def transfer_in(self, sender: str, amount: int) -> Any:
        ...

    def transfer_out(self, recipient: str, amount: int) -> Any:
        ...

    def balance_held(self) -> int:
        ...


@runtime_checkable
class SnapshotProvider(Protocol):
    """Collaborators whose state the platform can capture and roll back."""

    def snapshot(self) -> Any:
        ...

    def restore(self, snapshot: Any) -> None:
        ...


__all__ = [
    "ClaimTokenProtocol",
    "ReserveCustodyProtocol",
    "SnapshotProvider",
]
