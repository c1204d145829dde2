"""
Volt - Custodial Staking and Rewards Ledger

Users deposit a reserve asset, receive a 1:1 claim token, time-lock claim
tokens for tiered rewards and accrue interest on their holdings.

Main Components:
- Ledger: Per-account balances, lock positions and referral edges
- Accrual: Lazy checkpoint-based interest settlement
- Locks: Duration-tiered lock/unlock state machine
- Referral: Registration graph and first-deposit reward cascade
- Solvency: Reserve coverage guard and validated parameter updates

For detailed documentation, see: SPEC_FULL.md and DESIGN.md
"""

__version__ = "0.1.0"
__author__ = "Volt Development Team"

__all__ = []
