"""
Bridged Bitcoin accounting token.

Implements the per-account balance map and the issuance / destruction
primitive used by the bridge engine:
  - balance_of(account) → int, unknown accounts read as 0
  - mint / burn, restricted to registered bridge operators
  - Mint and burn event log

Amounts are integers in the token's smallest unit (satoshi for bBTC).
The ledger keeps its own ``total_supply`` (net minted − burned), which is
independent of the bridge's gross ``total_locked`` counter.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Set

from ..constants import TOKEN_DECIMALS, TOKEN_NAME, TOKEN_SYMBOL
from ..exceptions import InsufficientBalanceError, InvalidAmountError, NotAuthorizedError
from ..logger import get_logger

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  EVENTS
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class MintEvent:
    """Emitted when the bridge issues tokens."""
    token_symbol: str
    recipient: str
    amount: int
    source_tx_id: str
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "Mint",
            "token": self.token_symbol,
            "to": self.recipient,
            "amount": self.amount,
            "sourceTxId": self.source_tx_id,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class BurnEvent:
    """Emitted when the bridge destroys tokens on withdrawal."""
    token_symbol: str
    holder: str
    amount: int
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "Burn",
            "token": self.token_symbol,
            "from": self.holder,
            "amount": self.amount,
            "timestamp": self.timestamp,
        }


# ══════════════════════════════════════════════════════════════════════
#  LEDGER
# ══════════════════════════════════════════════════════════════════════

class Ledger:
    """
    Fungible accounting token issued against locked Bitcoin.

    Only registered operators (the bridge engine) may mint or burn. Balance
    entries are created on first mint and kept at zero after a full
    withdrawal.
    """

    def __init__(
        self,
        name: str = TOKEN_NAME,
        symbol: str = TOKEN_SYMBOL,
        decimals: int = TOKEN_DECIMALS,
    ):
        if not name:
            raise ValueError("Token name cannot be empty")
        if not symbol:
            raise ValueError("Token symbol cannot be empty")
        if decimals < 0 or decimals > 18:
            raise ValueError(f"Decimals must be 0-18, got {decimals}")

        self.name = name
        self.symbol = symbol
        self.decimals = decimals
        self._total_supply = 0
        self._balances: Dict[str, int] = {}
        self._events: List[Any] = []
        self._operators: Set[str] = set()

    # ── Read-only views ───────────────────────────────────────────────

    @property
    def total_supply(self) -> int:
        return self._total_supply

    def balance_of(self, account: str) -> int:
        return self._balances.get(account, 0)

    @property
    def events(self) -> List[Any]:
        return list(self._events)

    @property
    def holders(self) -> int:
        return len([b for b in self._balances.values() if b > 0])

    # ── Operators ─────────────────────────────────────────────────────

    def add_operator(self, operator: str) -> None:
        self._operators.add(operator)
        logger.debug(f"Ledger operator added: {operator} for {self.symbol}")

    def remove_operator(self, operator: str) -> None:
        self._operators.discard(operator)

    def _require_operator(self, operator: str) -> None:
        if operator not in self._operators:
            raise NotAuthorizedError(f"{operator} is not an authorized {self.symbol} operator")

    # ── Issuance / destruction ────────────────────────────────────────

    def mint(self, operator: str, recipient: str, amount: int, source_tx_id: str) -> MintEvent:
        """Credit *amount* new tokens to *recipient*."""
        self._require_operator(operator)
        if amount <= 0:
            raise InvalidAmountError("Mint amount must be positive")

        self._total_supply += amount
        self._balances[recipient] = self._balances.get(recipient, 0) + amount

        event = MintEvent(
            token_symbol=self.symbol,
            recipient=recipient,
            amount=amount,
            source_tx_id=source_tx_id,
        )
        self._events.append(event)
        logger.debug(f"Mint: {amount} {self.symbol} -> {recipient} (tx={source_tx_id[:16]}…)")
        return event

    def burn(self, operator: str, holder: str, amount: int) -> BurnEvent:
        """Destroy *amount* tokens held by *holder*."""
        self._require_operator(operator)
        if amount <= 0:
            raise InvalidAmountError("Burn amount must be positive")

        bal = self.balance_of(holder)
        if bal < amount:
            raise InsufficientBalanceError(
                f"{holder} balance {bal} < burn amount {amount}"
            )

        self._balances[holder] = bal - amount
        self._total_supply -= amount

        event = BurnEvent(token_symbol=self.symbol, holder=holder, amount=amount)
        self._events.append(event)
        logger.debug(f"Burn: {holder} burned {amount} {self.symbol}")
        return event

    # ── Snapshot / restore ────────────────────────────────────────────

    def take_snapshot(self) -> Dict[str, Any]:
        return {
            "balances": dict(self._balances),
            "total_supply": self._total_supply,
            "event_count": len(self._events),
        }

    def restore_snapshot(self, snapshot: Dict[str, Any]) -> None:
        self._balances = snapshot["balances"]
        self._total_supply = snapshot["total_supply"]
        del self._events[snapshot["event_count"]:]

    # ── Serialization ─────────────────────────────────────────────────

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "symbol": self.symbol,
            "decimals": self.decimals,
            "total_supply": self._total_supply,
            "balances": dict(self._balances),
        }

    def load(self, d: Dict[str, Any]) -> None:
        """Replace balances and supply with persisted values."""
        balances = {a: int(b) for a, b in d.get("balances", {}).items()}
        if any(b < 0 for b in balances.values()):
            raise ValueError("Persisted balances cannot be negative")
        self._balances = balances
        self._total_supply = int(d.get("total_supply", sum(balances.values())))

    def __repr__(self) -> str:
        return f"<Ledger {self.symbol} supply={self._total_supply}>"
