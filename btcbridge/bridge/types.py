"""
btcbridge Bridge Types

Core data structures shared by the bridge components.

Defines:
  - Account / ExternalTxId aliases and their validity predicates
  - FeeQuote returned by the fee calculator
  - DepositEvent / WithdrawEvent emitted by committed transitions
  - AdminAction / AdminEvent emitted by owner-gated configuration changes
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, NamedTuple, Optional

from ..constants import TX_ID_MAX_LENGTH, TX_ID_MIN_LENGTH, ZERO_ADDRESS

# Opaque chain-native address; only equality is ever inspected.
Account = str

# Source-chain (Bitcoin) transaction identifier.
ExternalTxId = str


# ══════════════════════════════════════════════════════════════════════
#  VALIDITY PREDICATES
# ══════════════════════════════════════════════════════════════════════

def is_null_account(account: Optional[Account]) -> bool:
    return account is None or account == "" or account == ZERO_ADDRESS


def is_valid_account(account: Optional[Account], caller: Optional[Account]) -> bool:
    """
    Sanity filter applied to oracle, whitelist and recipient accounts.

    Rejects the null account and any account equal to *caller*. The caller
    comparison means an owner cannot whitelist itself and an oracle cannot
    deposit to itself.
    """
    if is_null_account(account):
        return False
    return account != caller


def is_valid_tx_id(tx_id: Optional[ExternalTxId]) -> bool:
    """Non-empty string, longer than 10 and at most 64 characters."""
    if not isinstance(tx_id, str) or not tx_id:
        return False
    return TX_ID_MIN_LENGTH < len(tx_id) <= TX_ID_MAX_LENGTH


def is_valid_amount(amount: Any) -> bool:
    """Strictly positive integer (bool is rejected)."""
    return isinstance(amount, int) and not isinstance(amount, bool) and amount > 0


def is_valid_withdraw_amount(amount: Any) -> bool:
    """Non-negative integer; a zero withdraw commits and burns nothing."""
    return isinstance(amount, int) and not isinstance(amount, bool) and amount >= 0


# ══════════════════════════════════════════════════════════════════════
#  FEE QUOTE
# ══════════════════════════════════════════════════════════════════════

class FeeQuote(NamedTuple):
    """Fee and net amount for a gross amount."""
    fee: int
    net: int


# ══════════════════════════════════════════════════════════════════════
#  EVENTS
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class DepositEvent:
    """Emitted when a deposit commits."""
    tx_id: ExternalTxId
    oracle: Account
    recipient: Account
    amount: int
    fee: int
    net: int
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "Deposit",
            "txId": self.tx_id,
            "oracle": self.oracle,
            "recipient": self.recipient,
            "amount": self.amount,
            "fee": self.fee,
            "net": self.net,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class WithdrawEvent:
    """Emitted when a withdrawal commits."""
    holder: Account
    amount: int
    net: int
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "Withdraw",
            "holder": self.holder,
            "amount": self.amount,
            "net": self.net,
            "timestamp": self.timestamp,
        }


class AdminAction(str, Enum):
    ORACLE_UPDATED = "OracleUpdated"
    WHITELIST_UPDATED = "WhitelistUpdated"
    PAUSED = "BridgePaused"
    UNPAUSED = "BridgeUnpaused"
    FEE_RATE_UPDATED = "FeeRateUpdated"
    MAX_DEPOSIT_UPDATED = "MaxDepositUpdated"


@dataclass(frozen=True)
class AdminEvent:
    """Emitted when the owner changes bridge configuration."""
    action: AdminAction
    caller: Account
    target: Optional[Account] = None
    value: Any = None
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": self.action.value,
            "caller": self.caller,
            "target": self.target,
            "value": self.value,
            "timestamp": self.timestamp,
        }
