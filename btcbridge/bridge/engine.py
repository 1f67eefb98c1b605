"""
Bridge Engine: deposit / withdraw state transitions

Deposit flow (oracle-submitted):
  1. External transaction id shape          → InvalidTxHash
  2. Positive amount                        → InvalidAmount
  3. Amount within the deposit ceiling      → MaxDepositExceeded
  4. Recipient passes the validity filter   → InvalidRecipient
  5. Recipient whitelisted                  → InvalidRecipient
  6. Bridge not paused                      → BridgePaused
  7. Transaction id not yet processed       → TransactionAlreadyProcessed
  8. Caller is an authorized oracle         → NotAuthorized
     and the attestation service agrees     → OracleValidationFailed
  Then: mint net tokens, mark tx processed, lock the gross amount.

Withdraw flow (holder-submitted):
  1. Bridge not paused                      → BridgePaused
  2. Positive amount                        → InvalidAmount
  3. Holder balance covers amount           → InsufficientBalance
  Then: burn the gross amount, release the gross amount, report the net.

Every public operation is one atomic transition: on any error the state is
restored to exactly what it was before the call.
"""

from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Dict, Iterator, List, Optional

from ..constants import (
    BRIDGE_OPERATOR,
    DEFAULT_FEE_RATE,
    DEFAULT_MAX_DEPOSIT,
    TOKEN_DECIMALS,
    TOKEN_NAME,
    TOKEN_SYMBOL,
)
from ..exceptions import (
    BridgeError,
    BridgePausedError,
    InsufficientBalanceError,
    InvalidAmountError,
    InvalidRecipientError,
    InvalidTxHashError,
    MaxDepositExceededError,
    NotAuthorizedError,
    OracleValidationFailedError,
    TransactionAlreadyProcessedError,
)
from ..logger import get_logger
from ..tokens.ledger import Ledger
from .fees import compute_fee
from .oracle import AttestationService, MockAttestationService
from .registry import OracleRegistry, Whitelist
from .replay import ReplayGuard
from .state import BridgeState
from .types import (
    Account,
    AdminAction,
    AdminEvent,
    DepositEvent,
    ExternalTxId,
    WithdrawEvent,
    is_valid_account,
    is_valid_amount,
    is_valid_tx_id,
    is_valid_withdraw_amount,
)

if TYPE_CHECKING:
    from ..config.loader import BridgeConfig

logger = get_logger(__name__)


class BridgeEngine:
    """
    Custodial Bitcoin bridge ledger.

    Owns one ``BridgeState`` plus the oracle registry, whitelist, replay
    guard and token ledger, and composes them into the ``deposit`` and
    ``withdraw`` transitions. Administrative operations are thin owner-gated
    wrappers over the component setters.
    """

    def __init__(
        self,
        owner: Account,
        fee_rate: int = DEFAULT_FEE_RATE,
        max_deposit: int = DEFAULT_MAX_DEPOSIT,
        *,
        ledger: Optional[Ledger] = None,
        attestation: Optional[AttestationService] = None,
    ):
        self.state = BridgeState(owner=owner, fee_rate=fee_rate, max_deposit=max_deposit)
        self.oracles = OracleRegistry(self.state.guard)
        self.whitelist = Whitelist(self.state.guard)
        self.replay = ReplayGuard()
        self.ledger = ledger or Ledger()
        self.ledger.add_operator(BRIDGE_OPERATOR)
        self.attestation = attestation or MockAttestationService()
        self._events: List[Any] = []

        logger.info(
            f"Bridge engine created: owner={owner}, fee_rate={fee_rate}, "
            f"max_deposit={max_deposit}, token={self.ledger.symbol}"
        )

    # ══════════════════════════════════════════════════════════════════
    #  Atomic transitions
    # ══════════════════════════════════════════════════════════════════

    def take_snapshot(self) -> Dict[str, Any]:
        """Capture every mutable component for a potential restore."""
        return {
            "state": self.state.to_dict(),
            "oracles": self.oracles.to_dict(),
            "whitelist": self.whitelist.to_dict(),
            "processed": self.replay.snapshot(),
            "ledger": self.ledger.take_snapshot(),
            "event_count": len(self._events),
        }

    def _restore_snapshot(self, snapshot: Dict[str, Any]) -> None:
        state = snapshot["state"]
        self.state.owner = state["owner"]
        self.state.paused = state["paused"]
        self.state.fee_rate = state["fee_rate"]
        self.state.max_deposit = state["max_deposit"]
        self.state.total_locked = state["total_locked"]
        self.oracles.load(snapshot["oracles"])
        self.whitelist.load(snapshot["whitelist"])
        self.replay.load(snapshot["processed"])
        self.ledger.restore_snapshot(snapshot["ledger"])
        del self._events[snapshot["event_count"]:]

    @contextmanager
    def _transition(self, operation: str) -> Iterator[None]:
        snapshot = self.take_snapshot()
        try:
            yield
        except BridgeError as exc:
            self._restore_snapshot(snapshot)
            logger.warning(f"{operation} rejected: {exc} (code {int(exc.code)})")
            raise
        except Exception:
            self._restore_snapshot(snapshot)
            logger.exception(f"{operation} failed, state restored")
            raise

    # ══════════════════════════════════════════════════════════════════
    #  Deposit
    # ══════════════════════════════════════════════════════════════════

    def deposit(
        self,
        caller: Account,
        tx_id: ExternalTxId,
        amount: int,
        recipient: Account,
    ) -> int:
        """
        Mint bridged tokens for a Bitcoin deposit asserted by an oracle.

        Args:
            caller: Oracle account submitting the claim
            tx_id: Bitcoin transaction id (replay-protection key)
            amount: Gross deposited amount in satoshi
            recipient: Whitelisted account receiving the tokens

        Returns:
            Net amount minted (gross minus fee)
        """
        with self._transition("deposit"):
            self._check_deposit(caller, tx_id, amount, recipient)

            quote = compute_fee(amount, self.state.fee_rate)
            self.ledger.mint(BRIDGE_OPERATOR, recipient, quote.net, tx_id)
            self.replay.mark_processed(tx_id)
            self.state.lock(amount)

            self._events.append(DepositEvent(
                tx_id=tx_id,
                oracle=caller,
                recipient=recipient,
                amount=amount,
                fee=quote.fee,
                net=quote.net,
            ))

        logger.info(
            f"Deposit {tx_id[:16]}… amount={amount} fee={quote.fee} net={quote.net} "
            f"-> {recipient} (locked={self.state.total_locked})"
        )
        return quote.net

    def _check_deposit(
        self,
        caller: Account,
        tx_id: ExternalTxId,
        amount: int,
        recipient: Account,
    ) -> None:
        if not is_valid_tx_id(tx_id):
            raise InvalidTxHashError(f"Invalid external transaction id: {tx_id!r}")
        if not is_valid_amount(amount):
            raise InvalidAmountError(f"Deposit amount must be a positive integer, got {amount!r}")
        if amount > self.state.max_deposit:
            raise MaxDepositExceededError(
                f"Deposit {amount} exceeds ceiling {self.state.max_deposit}"
            )
        if not is_valid_account(recipient, caller):
            raise InvalidRecipientError(f"Invalid recipient: {recipient!r}")
        if not self.whitelist.is_whitelisted(recipient):
            raise InvalidRecipientError(f"Recipient {recipient} is not whitelisted")
        if self.state.paused:
            raise BridgePausedError("Bridge is paused")
        if self.replay.is_processed(tx_id):
            raise TransactionAlreadyProcessedError(f"Transaction {tx_id} already processed")
        self._validate_oracle(caller, tx_id, amount)

    def _validate_oracle(self, caller: Account, tx_id: ExternalTxId, amount: int) -> None:
        if not self.oracles.is_authorized(caller):
            raise NotAuthorizedError(f"{caller} is not an authorized oracle")
        if not is_valid_tx_id(tx_id):
            raise InvalidTxHashError(f"Invalid external transaction id: {tx_id!r}")
        if not is_valid_amount(amount):
            raise InvalidAmountError(f"Deposit amount must be a positive integer, got {amount!r}")
        if not self.attestation.attest(caller, tx_id, amount):
            raise OracleValidationFailedError(f"Attestation failed for {tx_id}")

    # ══════════════════════════════════════════════════════════════════
    #  Withdraw
    # ══════════════════════════════════════════════════════════════════

    def withdraw(self, caller: Account, amount: int) -> int:
        """
        Burn bridged tokens held by *caller*.

        The gross *amount* is burned and released from ``total_locked``,
        while the returned value is the fee-adjusted net.

        Returns:
            Net amount after the current fee rate
        """
        with self._transition("withdraw"):
            if self.state.paused:
                raise BridgePausedError("Bridge is paused")
            if not is_valid_withdraw_amount(amount):
                raise InvalidAmountError(f"Withdraw amount must be a non-negative integer, got {amount!r}")
            balance = self.ledger.balance_of(caller)
            if balance < amount:
                raise InsufficientBalanceError(
                    f"{caller} balance {balance} < withdraw amount {amount}"
                )

            quote = compute_fee(amount, self.state.fee_rate)
            # Ledger burns are strictly positive.
            if amount:
                self.ledger.burn(BRIDGE_OPERATOR, caller, amount)
                self.state.release(amount)

            self._events.append(WithdrawEvent(holder=caller, amount=amount, net=quote.net))

        logger.info(
            f"Withdraw by {caller} amount={amount} net={quote.net} "
            f"(locked={self.state.total_locked})"
        )
        return quote.net

    # ══════════════════════════════════════════════════════════════════
    #  Administration (owner only)
    # ══════════════════════════════════════════════════════════════════

    def _admin(self, action: AdminAction, caller: Account, target=None, value=None) -> bool:
        self._events.append(AdminEvent(action=action, caller=caller, target=target, value=value))
        return True

    def add_oracle(self, caller: Account, account: Account) -> bool:
        with self._transition("addOracle"):
            self.oracles.set_oracle(caller, account, True)
            return self._admin(AdminAction.ORACLE_UPDATED, caller, account, True)

    def remove_oracle(self, caller: Account, account: Account) -> bool:
        with self._transition("removeOracle"):
            self.oracles.set_oracle(caller, account, False)
            return self._admin(AdminAction.ORACLE_UPDATED, caller, account, False)

    def add_to_whitelist(self, caller: Account, account: Account) -> bool:
        with self._transition("addToWhitelist"):
            self.whitelist.set_whitelisted(caller, account, True)
            return self._admin(AdminAction.WHITELIST_UPDATED, caller, account, True)

    def remove_from_whitelist(self, caller: Account, account: Account) -> bool:
        with self._transition("removeFromWhitelist"):
            self.whitelist.set_whitelisted(caller, account, False)
            return self._admin(AdminAction.WHITELIST_UPDATED, caller, account, False)

    def pause_bridge(self, caller: Account) -> bool:
        with self._transition("pauseBridge"):
            self.state.pause(caller)
            return self._admin(AdminAction.PAUSED, caller)

    def unpause_bridge(self, caller: Account) -> bool:
        with self._transition("unpauseBridge"):
            self.state.unpause(caller)
            return self._admin(AdminAction.UNPAUSED, caller)

    def update_bridge_fee(self, caller: Account, rate: int) -> bool:
        with self._transition("updateBridgeFee"):
            self.state.set_fee_rate(caller, rate)
            return self._admin(AdminAction.FEE_RATE_UPDATED, caller, value=rate)

    def update_max_deposit(self, caller: Account, maximum: int) -> bool:
        with self._transition("updateMaxDeposit"):
            self.state.set_max_deposit(caller, maximum)
            return self._admin(AdminAction.MAX_DEPOSIT_UPDATED, caller, value=maximum)

    # ══════════════════════════════════════════════════════════════════
    #  Queries (read-only)
    # ══════════════════════════════════════════════════════════════════

    def get_total_locked_bitcoin(self) -> int:
        return self.state.total_locked

    def get_user_balance(self, account: Account) -> int:
        return self.ledger.balance_of(account)

    def is_oracle_authorized(self, account: Account) -> bool:
        return self.oracles.is_authorized(account)

    def is_whitelisted(self, account: Account) -> bool:
        return self.whitelist.is_whitelisted(account)

    def is_transaction_processed(self, tx_id: ExternalTxId) -> bool:
        return self.replay.is_processed(tx_id)

    @property
    def events(self) -> List[Any]:
        return list(self._events)

    def get_status(self) -> Dict[str, Any]:
        return {
            "owner": self.state.owner,
            "paused": self.state.paused,
            "fee_rate": self.state.fee_rate,
            "max_deposit": self.state.max_deposit,
            "total_locked": self.state.total_locked,
            "token": {
                "name": self.ledger.name,
                "symbol": self.ledger.symbol,
                "decimals": self.ledger.decimals,
                "total_supply": self.ledger.total_supply,
                "holders": self.ledger.holders,
            },
            "oracles": self.oracles.enabled_accounts(),
            "whitelisted": len(self.whitelist.enabled_accounts()),
            "processed_transactions": self.replay.count,
        }

    # ══════════════════════════════════════════════════════════════════
    #  Persistence
    # ══════════════════════════════════════════════════════════════════

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the persisted layout (no event log)."""
        return {
            "state": self.state.to_dict(),
            "oracles": self.oracles.to_dict(),
            "whitelist": self.whitelist.to_dict(),
            "processed": self.replay.to_list(),
            "ledger": self.ledger.to_dict(),
        }

    @classmethod
    def from_dict(
        cls,
        d: Dict[str, Any],
        *,
        attestation: Optional[AttestationService] = None,
    ) -> "BridgeEngine":
        state = BridgeState.from_dict(d["state"])
        ledger_data = d.get("ledger", {})
        ledger = Ledger(
            name=ledger_data.get("name") or TOKEN_NAME,
            symbol=ledger_data.get("symbol") or TOKEN_SYMBOL,
            decimals=ledger_data.get("decimals", TOKEN_DECIMALS),
        )
        engine = cls(
            owner=state.owner,
            fee_rate=state.fee_rate,
            max_deposit=state.max_deposit,
            ledger=ledger,
            attestation=attestation,
        )
        engine.state.paused = state.paused
        engine.state.total_locked = state.total_locked
        engine.oracles.load(d.get("oracles", {}))
        engine.whitelist.load(d.get("whitelist", {}))
        engine.replay.load(d.get("processed", []))
        ledger.load(ledger_data)
        return engine

    @classmethod
    def from_config(
        cls,
        config: "BridgeConfig",
        *,
        attestation: Optional[AttestationService] = None,
    ) -> "BridgeEngine":
        """Deploy a fresh bridge: the configured owner registers oracles and whitelist."""
        bridge = config.bridge
        ledger = Ledger(
            name=config.token.name,
            symbol=config.token.symbol,
            decimals=config.token.decimals,
        )
        engine = cls(
            owner=bridge.owner,
            fee_rate=bridge.fee_rate,
            max_deposit=bridge.max_deposit,
            ledger=ledger,
            attestation=attestation,
        )
        for oracle in bridge.oracles:
            engine.add_oracle(bridge.owner, oracle)
        for account in bridge.whitelist:
            engine.add_to_whitelist(bridge.owner, account)
        if bridge.paused:
            engine.pause_bridge(bridge.owner)
        return engine

    def __repr__(self) -> str:
        return (
            f"<BridgeEngine owner={self.state.owner} locked={self.state.total_locked} "
            f"paused={self.state.paused}>"
        )
