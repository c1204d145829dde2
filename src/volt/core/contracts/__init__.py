"""
Ledger collaborators: the claim token and reserve custody.

The staking platform consumes both through the protocols in
``interfaces``; the in-memory implementations here back tests and
single-process deployments.
"""

from .claim_token import ClaimToken
from .interfaces import ClaimTokenProtocol, ReserveCustodyProtocol, SnapshotProvider
from .reserve_vault import ReserveVault

__all__ = [
    "ClaimToken",
    "ClaimTokenProtocol",
    "ReserveCustodyProtocol",
    "ReserveVault",
    "SnapshotProvider",
]
