"""
btcbridge bridge_* RPC Methods

Exposes the bridge ledger operations and queries via the JSON-RPC interface.

Namespace: ``bridge``  (methods are ``bridge_deposit``, ``bridge_getUserBalance``, etc.)

Caller identity is passed explicitly as the ``caller`` parameter; signature
verification happens in front of this service, not here.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

from ...bridge.engine import BridgeEngine
from ...bridge.store import BridgeStateStore
from ...exceptions import BridgeError, StateStoreError
from ..server import RPCModule, rpc_method, rpc_admin_method, RPCError, RPCErrorCode

logger = logging.getLogger(__name__)


@dataclass
class BridgeContext:
    """
    Shared application context for the bridge RPC module.

    Attributes:
        engine: The live BridgeEngine
        store: Where committed snapshots are persisted (optional)
        lock: Serializes mutate-then-persist sequences
    """
    engine: BridgeEngine
    store: Optional[BridgeStateStore] = None
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)


def bridge_error_to_rpc(exc: BridgeError) -> RPCError:
    """Map a rejected bridge operation to a JSON-RPC error object."""
    return RPCError(
        RPCErrorCode.TRANSACTION_REJECTED,
        exc.message,
        data={"bridgeError": int(exc.code), "name": exc.code.name},
    )


class BridgeModule(RPCModule):
    """
    Bridge RPC methods (bridge_* namespace).

    Context expectations (set during app bootstrap):
        self.context.engine: BridgeEngine instance
        self.context.store: BridgeStateStore (optional)
        self.context.lock: asyncio.Lock guarding mutations
    """

    namespace = "bridge"

    # ── Ledger operations ───────────────────────────────────────────

    @rpc_method
    async def deposit(self, caller: str, txId: str, amount: int, recipient: str) -> int:
        """
        Mint bridged tokens for an oracle-asserted Bitcoin deposit.

        Returns:
            Net amount minted to *recipient*
        """
        self._require_str(caller=caller, txId=txId, recipient=recipient)
        return await self._mutate(
            lambda engine: engine.deposit(caller, txId, amount, recipient)
        )

    @rpc_method
    async def withdraw(self, caller: str, amount: int) -> int:
        """
        Burn *amount* tokens held by *caller*.

        Returns:
            Fee-adjusted net amount (the gross amount is what gets burned)
        """
        self._require_str(caller=caller)
        return await self._mutate(lambda engine: engine.withdraw(caller, amount))

    # ── Admin methods ───────────────────────────────────────────────

    @rpc_admin_method
    async def addOracle(self, caller: str, account: str) -> bool:
        self._require_str(caller=caller, account=account)
        return await self._mutate(lambda engine: engine.add_oracle(caller, account))

    @rpc_admin_method
    async def removeOracle(self, caller: str, account: str) -> bool:
        self._require_str(caller=caller, account=account)
        return await self._mutate(lambda engine: engine.remove_oracle(caller, account))

    @rpc_admin_method
    async def addToWhitelist(self, caller: str, account: str) -> bool:
        self._require_str(caller=caller, account=account)
        return await self._mutate(lambda engine: engine.add_to_whitelist(caller, account))

    @rpc_admin_method
    async def removeFromWhitelist(self, caller: str, account: str) -> bool:
        self._require_str(caller=caller, account=account)
        return await self._mutate(lambda engine: engine.remove_from_whitelist(caller, account))

    @rpc_admin_method
    async def pauseBridge(self, caller: str) -> bool:
        """Halt deposits and withdrawals (owner only)."""
        self._require_str(caller=caller)
        return await self._mutate(lambda engine: engine.pause_bridge(caller))

    @rpc_admin_method
    async def unpauseBridge(self, caller: str) -> bool:
        self._require_str(caller=caller)
        return await self._mutate(lambda engine: engine.unpause_bridge(caller))

    @rpc_admin_method
    async def updateBridgeFee(self, caller: str, rate: int) -> bool:
        """Set the fee rate in milli-percent, ``0 <= rate < 100`` (owner only)."""
        self._require_str(caller=caller)
        return await self._mutate(lambda engine: engine.update_bridge_fee(caller, rate))

    @rpc_admin_method
    async def updateMaxDeposit(self, caller: str, maximum: int) -> bool:
        self._require_str(caller=caller)
        return await self._mutate(lambda engine: engine.update_max_deposit(caller, maximum))

    # ── Public queries ──────────────────────────────────────────────

    @rpc_method
    async def getTotalLockedBitcoin(self) -> int:
        return self._get_engine().get_total_locked_bitcoin()

    @rpc_method
    async def getUserBalance(self, account: str) -> int:
        return self._get_engine().get_user_balance(account)

    @rpc_method
    async def isOracleAuthorized(self, account: str) -> bool:
        return self._get_engine().is_oracle_authorized(account)

    @rpc_method
    async def isWhitelisted(self, account: str) -> bool:
        return self._get_engine().is_whitelisted(account)

    @rpc_method
    async def isTransactionProcessed(self, txId: str) -> bool:
        return self._get_engine().is_transaction_processed(txId)

    @rpc_method
    async def getBridgeStatus(self) -> Dict[str, Any]:
        """
        Return the bridge configuration and counters.

        Returns:
            owner, paused, fee_rate, max_deposit, total_locked, token,
            oracles, whitelisted, processed_transactions.
        """
        return self._get_engine().get_status()

    # ── Helpers ─────────────────────────────────────────────────────

    async def _mutate(self, operation: Callable[[BridgeEngine], Any]) -> Any:
        """Run *operation* on the engine and persist the committed state."""
        engine = self._get_engine()
        async with self.context.lock:
            try:
                result = operation(engine)
            except BridgeError as exc:
                raise bridge_error_to_rpc(exc)

            store = getattr(self.context, "store", None)
            if store is not None:
                try:
                    await store.save(engine.to_dict())
                except StateStoreError as exc:
                    logger.error(f"Committed bridge state could not be persisted: {exc}")
                    raise RPCError(RPCErrorCode.RESOURCE_UNAVAILABLE, str(exc))
        return result

    def _get_engine(self) -> BridgeEngine:
        """Resolve BridgeEngine from context."""
        if getattr(self.context, "engine", None) is not None:
            return self.context.engine
        raise RPCError(
            RPCErrorCode.INTERNAL_ERROR,
            "Bridge engine not available, bridge not initialized",
        )

    @staticmethod
    def _require_str(**params: Any) -> None:
        for name, value in params.items():
            if not isinstance(value, str):
                raise RPCError(RPCErrorCode.INVALID_PARAMS, f"{name} must be a string")
