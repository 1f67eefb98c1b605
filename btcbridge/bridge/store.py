"""
Bridge State Store: persistence of the engine snapshot

Persists exactly the bridge ledger layout produced by
``BridgeEngine.to_dict()``:

    bridge_state  single-row table: owner, pause flag, fee rate,
                              deposit ceiling, total locked, token metadata
    oracles   account → authorized
    whitelist   account → allowed
    processed_transactions  consumed external transaction ids
    balances   account → token balance

Usage:
    store = SQLiteBridgeStateStore("data/bridge.db")
    await store.initialize()       # creates tables if absent
    snapshot = await store.load()
    engine = BridgeEngine.from_dict(snapshot) if snapshot else BridgeEngine(owner)
    await store.save(engine.to_dict())
"""

import os
import sqlite3
from typing import Any, Dict, Optional, Protocol, runtime_checkable

import aiosqlite

from ..exceptions import StateStoreError
from ..logger import get_logger

logger = get_logger(__name__)


@runtime_checkable
class BridgeStateStore(Protocol):
    """Interface for persisting the bridge snapshot."""

    async def save(self, snapshot: Dict[str, Any]) -> None:
        ...

    async def load(self) -> Optional[Dict[str, Any]]:
        ...

    async def close(self) -> None:
        ...


class InMemoryBridgeStateStore:
    """Non-persistent store for tests and ephemeral deployments."""

    def __init__(self):
        self._snapshot: Optional[Dict[str, Any]] = None
        self.save_count = 0

    async def save(self, snapshot: Dict[str, Any]) -> None:
        self._snapshot = {
            "state": dict(snapshot["state"]),
            "oracles": dict(snapshot["oracles"]),
            "whitelist": dict(snapshot["whitelist"]),
            "processed": list(snapshot["processed"]),
            "ledger": {
                **snapshot["ledger"],
                "balances": dict(snapshot["ledger"]["balances"]),
            },
        }
        self.save_count += 1

    async def load(self) -> Optional[Dict[str, Any]]:
        return self._snapshot

    async def close(self) -> None:
        pass


# ── SQL DDL ─────────────────────────────────────────────────────────

_SCHEMA = """
CREATE TABLE IF NOT EXISTS bridge_state (
    id              INTEGER PRIMARY KEY DEFAULT 1 CHECK (id = 1),
    owner           TEXT    NOT NULL,
    paused          INTEGER NOT NULL DEFAULT 0,
    fee_rate        INTEGER NOT NULL,
    max_deposit     INTEGER NOT NULL,
    total_locked    INTEGER NOT NULL DEFAULT 0,
    token_name      TEXT    NOT NULL,
    token_symbol    TEXT    NOT NULL,
    token_decimals  INTEGER NOT NULL,
    total_supply    INTEGER NOT NULL DEFAULT 0,
    updated_at      TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS oracles (
    account     TEXT PRIMARY KEY,
    authorized  INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS whitelist (
    account  TEXT PRIMARY KEY,
    allowed  INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS processed_transactions (
    tx_id        TEXT PRIMARY KEY,
    recorded_at  TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS balances (
    account  TEXT PRIMARY KEY,
    balance  INTEGER NOT NULL
);
"""

_UPSERT_STATE = """
INSERT INTO bridge_state (
    id, owner, paused, fee_rate, max_deposit, total_locked,
    token_name, token_symbol, token_decimals, total_supply, updated_at
) VALUES (1, ?, ?, ?, ?, ?, ?, ?, ?, ?, CURRENT_TIMESTAMP)
ON CONFLICT (id) DO UPDATE SET
    owner          = excluded.owner,
    paused         = excluded.paused,
    fee_rate       = excluded.fee_rate,
    max_deposit    = excluded.max_deposit,
    total_locked   = excluded.total_locked,
    token_name     = excluded.token_name,
    token_symbol   = excluded.token_symbol,
    token_decimals = excluded.token_decimals,
    total_supply   = excluded.total_supply,
    updated_at     = CURRENT_TIMESTAMP;
"""

# Entries are never deleted: revocation writes 0, processed ids only grow.
_UPSERT_ORACLE = "INSERT OR REPLACE INTO oracles (account, authorized) VALUES (?, ?);"
_UPSERT_WHITELIST = "INSERT OR REPLACE INTO whitelist (account, allowed) VALUES (?, ?);"
_INSERT_PROCESSED = "INSERT OR IGNORE INTO processed_transactions (tx_id) VALUES (?);"
_UPSERT_BALANCE = "INSERT OR REPLACE INTO balances (account, balance) VALUES (?, ?);"


class SQLiteBridgeStateStore:
    """
    SQLite-backed bridge state store.

    Each ``save`` writes the whole snapshot inside one transaction, so a
    crash mid-save leaves the previous snapshot intact.
    """

    def __init__(self, db_path: str):
        self.db_path = db_path
        self.connection: Optional[aiosqlite.Connection] = None

    async def initialize(self) -> None:
        """Open the database and create tables if they do not exist."""
        if self.connection is not None:
            return

        directory = os.path.dirname(self.db_path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        self.connection = await aiosqlite.connect(self.db_path)
        self.connection.row_factory = aiosqlite.Row

        await self.connection.execute("PRAGMA journal_mode=WAL")
        await self.connection.execute("PRAGMA synchronous=NORMAL")
        await self.connection.executescript(_SCHEMA)
        await self.connection.commit()

        logger.info(f"Bridge state database initialized: {self.db_path}")

    def _require_connection(self) -> aiosqlite.Connection:
        if self.connection is None:
            raise StateStoreError("State store not initialized, call initialize() first")
        return self.connection

    async def save(self, snapshot: Dict[str, Any]) -> None:
        conn = self._require_connection()
        state = snapshot["state"]
        ledger = snapshot["ledger"]

        try:
            await conn.execute(_UPSERT_STATE, (
                state["owner"],
                int(bool(state["paused"])),
                state["fee_rate"],
                state["max_deposit"],
                state["total_locked"],
                ledger["name"],
                ledger["symbol"],
                ledger["decimals"],
                ledger["total_supply"],
            ))
            await conn.executemany(
                _UPSERT_ORACLE,
                [(a, int(bool(v))) for a, v in snapshot["oracles"].items()],
            )
            await conn.executemany(
                _UPSERT_WHITELIST,
                [(a, int(bool(v))) for a, v in snapshot["whitelist"].items()],
            )
            await conn.executemany(
                _INSERT_PROCESSED,
                [(tx_id,) for tx_id in snapshot["processed"]],
            )
            await conn.executemany(
                _UPSERT_BALANCE,
                list(ledger["balances"].items()),
            )
            await conn.commit()
        except sqlite3.Error as exc:
            await conn.rollback()
            raise StateStoreError(f"Failed to save bridge state: {exc}") from exc

        logger.debug(
            f"Bridge state saved: locked={state['total_locked']}, "
            f"processed={len(snapshot['processed'])}"
        )

    async def load(self) -> Optional[Dict[str, Any]]:
        conn = self._require_connection()

        try:
            async with conn.execute("SELECT * FROM bridge_state WHERE id = 1") as cursor:
                row = await cursor.fetchone()
            if row is None:
                return None

            async with conn.execute("SELECT account, authorized FROM oracles") as cursor:
                oracles = {r["account"]: bool(r["authorized"]) for r in await cursor.fetchall()}
            async with conn.execute("SELECT account, allowed FROM whitelist") as cursor:
                whitelist = {r["account"]: bool(r["allowed"]) for r in await cursor.fetchall()}
            async with conn.execute("SELECT tx_id FROM processed_transactions") as cursor:
                processed = [r["tx_id"] for r in await cursor.fetchall()]
            async with conn.execute("SELECT account, balance FROM balances") as cursor:
                balances = {r["account"]: r["balance"] for r in await cursor.fetchall()}
        except sqlite3.Error as exc:
            raise StateStoreError(f"Failed to load bridge state: {exc}") from exc

        return {
            "state": {
                "owner": row["owner"],
                "paused": bool(row["paused"]),
                "fee_rate": row["fee_rate"],
                "max_deposit": row["max_deposit"],
                "total_locked": row["total_locked"],
            },
            "oracles": oracles,
            "whitelist": whitelist,
            "processed": processed,
            "ledger": {
                "name": row["token_name"],
                "symbol": row["token_symbol"],
                "decimals": row["token_decimals"],
                "total_supply": row["total_supply"],
                "balances": balances,
            },
        }

    async def close(self) -> None:
        if self.connection is not None:
            await self.connection.close()
            self.connection = None
            logger.info("Bridge state database closed")
