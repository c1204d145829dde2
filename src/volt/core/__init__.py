"""
Volt Core Module

Core functionality for the Volt staking ledger including:
- Accounting and accrual engine (defi)
- Claim token and reserve custody collaborators (contracts)
- Configuration, logging, metrics and persistence

This package contains the fundamental building blocks of the Volt platform.
"""

__all__ = []
