"""
Bridged Bitcoin accounting token

Provides:
  - Ledger    : per-account balances with operator-only mint / burn
  - MintEvent : emitted on issuance
  - BurnEvent : emitted on destruction
"""

from .ledger import (
    BurnEvent,
    Ledger,
    MintEvent,
)

__all__ = [
    "BurnEvent",
    "Ledger",
    "MintEvent",
]
