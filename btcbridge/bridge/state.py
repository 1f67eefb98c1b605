"""
Process-wide bridge configuration and counters.

``BridgeState`` holds the owner, the pause switch, the fee rate, the deposit
ceiling and the running ``total_locked`` counter. Setters are owner-gated
through the state's own ``AccessGuard``.
"""

from dataclasses import dataclass, field
from typing import Any, Dict

from ..constants import (
    DEFAULT_FEE_RATE,
    DEFAULT_MAX_DEPOSIT,
    FEE_RATE_LIMIT,
    MAX_DEPOSIT_LIMIT,
)
from ..exceptions import InsufficientBalanceError, InvalidAmountError
from ..logger import get_logger
from .access import AccessGuard
from .fees import is_valid_fee_rate
from .types import Account, is_null_account

logger = get_logger(__name__)


def is_valid_max_deposit(maximum) -> bool:
    return (
        isinstance(maximum, int)
        and not isinstance(maximum, bool)
        and 0 < maximum < MAX_DEPOSIT_LIMIT
    )


@dataclass
class BridgeState:
    """
    Bridge configuration and the gross locked counter.

    Attributes:
        owner: Deployer account allowed to run administrative operations
        paused: When True both deposit and withdraw are rejected
        fee_rate: Fee in milli-percent (10 == 1.0%), ``0 <= fee_rate < 100``
        max_deposit: Per-deposit ceiling, ``0 < max_deposit < 100_000_000``
        total_locked: Σ gross deposits − Σ gross withdrawals
    """
    owner: Account
    paused: bool = False
    fee_rate: int = DEFAULT_FEE_RATE
    max_deposit: int = DEFAULT_MAX_DEPOSIT
    total_locked: int = 0
    guard: AccessGuard = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        if is_null_account(self.owner):
            raise ValueError("Bridge owner cannot be the null account")
        if not is_valid_fee_rate(self.fee_rate):
            raise ValueError(f"fee_rate must be in [0, {FEE_RATE_LIMIT})")
        if not is_valid_max_deposit(self.max_deposit):
            raise ValueError(f"max_deposit must be in (0, {MAX_DEPOSIT_LIMIT})")
        if self.total_locked < 0:
            raise ValueError("total_locked must be non-negative")
        self.guard = AccessGuard(self)

    # ── Owner-gated setters ───────────────────────────────────────────

    def pause(self, caller: Account) -> None:
        self.guard.require_owner(caller)
        self.paused = True
        logger.warning(f"Bridge PAUSED by {caller}")

    def unpause(self, caller: Account) -> None:
        self.guard.require_owner(caller)
        self.paused = False
        logger.info(f"Bridge unpaused by {caller}")

    def set_fee_rate(self, caller: Account, rate: int) -> None:
        self.guard.require_owner(caller)
        if not is_valid_fee_rate(rate):
            raise InvalidAmountError(f"Fee rate {rate!r} must be in [0, {FEE_RATE_LIMIT})")
        previous, self.fee_rate = self.fee_rate, rate
        logger.info(f"Fee rate changed {previous} -> {rate} by {caller}")

    def set_max_deposit(self, caller: Account, maximum: int) -> None:
        self.guard.require_owner(caller)
        if not is_valid_max_deposit(maximum):
            raise InvalidAmountError(
                f"Max deposit {maximum!r} must be in (0, {MAX_DEPOSIT_LIMIT})"
            )
        previous, self.max_deposit = self.max_deposit, maximum
        logger.info(f"Max deposit changed {previous} -> {maximum} by {caller}")

    # ── Locked counter (engine only) ──────────────────────────────────

    def lock(self, amount: int) -> None:
        self.total_locked += amount

    def release(self, amount: int) -> None:
        if amount > self.total_locked:
            raise InsufficientBalanceError(
                f"Cannot release {amount}: only {self.total_locked} locked"
            )
        self.total_locked -= amount

    # ── Serialization ─────────────────────────────────────────────────

    def to_dict(self) -> Dict[str, Any]:
        return {
            "owner": self.owner,
            "paused": self.paused,
            "fee_rate": self.fee_rate,
            "max_deposit": self.max_deposit,
            "total_locked": self.total_locked,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "BridgeState":
        return cls(
            owner=d["owner"],
            paused=bool(d.get("paused", False)),
            fee_rate=d.get("fee_rate", DEFAULT_FEE_RATE),
            max_deposit=d.get("max_deposit", DEFAULT_MAX_DEPOSIT),
            total_locked=d.get("total_locked", 0),
        )
