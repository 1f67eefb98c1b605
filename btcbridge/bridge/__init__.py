"""
btcbridge Custodial Bitcoin Bridge

Provides:
  - types: Accounts, tx ids, validity predicates, deposit / withdraw / admin events
  - fees: Milli-percent fee quotes
  - access, registry, replay: Owner guard, oracle registry, whitelist, replay guard
  - state: BridgeState (owner, pause switch, fee rate, ceiling, total locked)
  - engine: BridgeEngine deposit / withdraw transitions and admin operations
  - store: In-memory and aiosqlite-backed state stores
"""

from .types import (
    Account,
    AdminAction,
    AdminEvent,
    DepositEvent,
    ExternalTxId,
    FeeQuote,
    WithdrawEvent,
    is_null_account,
    is_valid_account,
    is_valid_amount,
    is_valid_tx_id,
    is_valid_withdraw_amount,
)

from .fees import compute_fee, is_valid_fee_rate
from .access import AccessGuard
from .registry import OracleRegistry, Whitelist
from .replay import ReplayGuard
from .state import BridgeState
from .oracle import AttestationService, MockAttestationService
from .engine import BridgeEngine

from .store import (
    BridgeStateStore,
    InMemoryBridgeStateStore,
    SQLiteBridgeStateStore,
)

__all__ = [
    # Types
    "Account",
    "AdminAction",
    "AdminEvent",
    "DepositEvent",
    "ExternalTxId",
    "FeeQuote",
    "WithdrawEvent",
    "is_null_account",
    "is_valid_account",
    "is_valid_amount",
    "is_valid_tx_id",
    "is_valid_withdraw_amount",
    # Components
    "compute_fee",
    "is_valid_fee_rate",
    "AccessGuard",
    "OracleRegistry",
    "Whitelist",
    "ReplayGuard",
    "BridgeState",
    # Oracle attestation
    "AttestationService",
    "MockAttestationService",
    # Engine
    "BridgeEngine",
    # State stores
    "BridgeStateStore",
    "InMemoryBridgeStateStore",
    "SQLiteBridgeStateStore",
]
