"""
btcbridge: JSON-RPC, State Store and HTTP Tests

Tests for:
  - JSON-RPC 2.0 server (single, batch, notifications, params binding, admin gating)
  - bridge_* module (ledger operations, error mapping, persistence on commit)
  - InMemory / SQLite state stores
  - FastAPI application (POST /rpc, GET /, restart from persisted state)
"""

import json
import os
import sys

import pytest

# ── Path setup ────────────────────────────────────────────────────────
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from fastapi.testclient import TestClient

from btcbridge.bridge.engine import BridgeEngine
from btcbridge.bridge.store import (
    BridgeStateStore,
    InMemoryBridgeStateStore,
    SQLiteBridgeStateStore,
)
from btcbridge.config.loader import BridgeConfig
from btcbridge.exceptions import ErrorCode, InvalidAmountError, StateStoreError
from btcbridge.node.main import create_app
from btcbridge.rpc.modules.bridge import BridgeContext, BridgeModule, bridge_error_to_rpc
from btcbridge.rpc.server import (
    RPCError,
    RPCErrorCode,
    RPCModule,
    RPCRequest,
    RPCServer,
    rpc_admin_method,
    rpc_method,
)


OWNER = "0x" + "aa" * 20
ORACLE = "0x" + "bb" * 20
ALICE = "0x" + "cc" * 20
MALLORY = "0x" + "ee" * 20
TX1 = "a" * 11
TX2 = "f" * 64


def make_engine() -> BridgeEngine:
    engine = BridgeEngine(OWNER)
    engine.add_oracle(OWNER, ORACLE)
    engine.add_to_whitelist(OWNER, ALICE)
    return engine


def make_config(db_path: str = "unused.db", admin_enabled: bool = True) -> BridgeConfig:
    return BridgeConfig.from_dict({
        "bridge": {"owner": OWNER, "oracles": [ORACLE], "whitelist": [ALICE]},
        "rpc": {"admin_enabled": admin_enabled},
        "database": {"path": db_path},
    })


def call(method, params=None, id=1):
    req = {"jsonrpc": "2.0", "method": method, "id": id}
    if params is not None:
        req["params"] = params
    return req


# ===================================================================
# JSON-RPC SERVER
# ===================================================================

class EchoModule(RPCModule):
    namespace = "test"

    @rpc_method
    async def echo(self, value):
        return value

    @rpc_admin_method
    async def reset(self):
        return True

    async def hidden(self):
        return "not exposed"


class TestRPCRequest:
    def test_from_dict(self):
        req = RPCRequest.from_dict(call("bridge_getBridgeStatus", id=7))
        assert req.method == "bridge_getBridgeStatus"
        assert req.id == 7
        assert not req.is_notification

    def test_notification(self):
        req = RPCRequest.from_dict({"jsonrpc": "2.0", "method": "x"})
        assert req.is_notification

    def test_non_object_rejected(self):
        with pytest.raises(RPCError):
            RPCRequest.from_dict(["not", "an", "object"])


class TestRPCModule:
    def test_get_methods(self):
        methods = EchoModule().get_methods()
        assert set(methods) == {"test_echo", "test_reset"}

    def test_get_methods_without_admin(self):
        methods = EchoModule().get_methods(include_admin=False)
        assert set(methods) == {"test_echo"}


class TestRPCServer:
    @pytest.mark.asyncio
    async def test_handle_single_request(self):
        server = RPCServer()
        server.register_module(EchoModule())
        parsed = json.loads(await server.handle_request(call("test_echo", ["hi"])))
        assert parsed == {"jsonrpc": "2.0", "id": 1, "result": "hi"}

    @pytest.mark.asyncio
    async def test_named_params(self):
        server = RPCServer()
        server.register_module(EchoModule())
        parsed = json.loads(await server.handle_request(call("test_echo", {"value": 3})))
        assert parsed["result"] == 3

    @pytest.mark.asyncio
    async def test_method_not_found(self):
        server = RPCServer()
        parsed = json.loads(await server.handle_request(call("nonexistent")))
        assert parsed["error"]["code"] == RPCErrorCode.METHOD_NOT_FOUND

    @pytest.mark.asyncio
    async def test_parse_error(self):
        server = RPCServer()
        parsed = json.loads(await server.handle_request("{invalid json"))
        assert parsed["error"]["code"] == RPCErrorCode.PARSE_ERROR

    @pytest.mark.asyncio
    async def test_invalid_version(self):
        server = RPCServer()
        parsed = json.loads(await server.handle_request({"jsonrpc": "1.0", "method": "x", "id": 1}))
        assert parsed["error"]["code"] == RPCErrorCode.INVALID_REQUEST

    @pytest.mark.asyncio
    async def test_invalid_params(self):
        server = RPCServer()
        server.register_module(EchoModule())
        parsed = json.loads(await server.handle_request(call("test_echo", ["a", "b"])))
        assert parsed["error"]["code"] == RPCErrorCode.INVALID_PARAMS
        parsed = json.loads(await server.handle_request(call("test_echo", {"wrong": 1})))
        assert parsed["error"]["code"] == RPCErrorCode.INVALID_PARAMS
        parsed = json.loads(await server.handle_request(call("test_echo", "scalar")))
        assert parsed["error"]["code"] == RPCErrorCode.INVALID_PARAMS

    @pytest.mark.asyncio
    async def test_batch_request(self):
        server = RPCServer()
        server.register_module(EchoModule())
        parsed = json.loads(await server.handle_request([
            call("test_echo", ["a"], id=1),
            call("test_echo", ["b"], id=2),
            42,
        ]))
        assert len(parsed) == 3
        results = {r["id"]: r.get("result") for r in parsed}
        assert results[1] == "a"
        assert results[2] == "b"
        assert parsed[2]["error"]["code"] == RPCErrorCode.INVALID_REQUEST

    @pytest.mark.asyncio
    async def test_empty_batch(self):
        server = RPCServer()
        parsed = json.loads(await server.handle_request([]))
        assert parsed["error"]["code"] == RPCErrorCode.INVALID_REQUEST

    @pytest.mark.asyncio
    async def test_notification_returns_none(self):
        server = RPCServer()
        server.register_module(EchoModule())
        assert await server.handle_request({"jsonrpc": "2.0", "method": "test_echo", "params": [1]}) is None

    @pytest.mark.asyncio
    async def test_internal_error(self):
        server = RPCServer()

        async def boom():
            raise RuntimeError("kaboom")

        server.register_method("boom", boom)
        parsed = json.loads(await server.handle_request(call("boom")))
        assert parsed["error"]["code"] == RPCErrorCode.INTERNAL_ERROR

    def test_admin_methods_not_registered_when_disabled(self):
        server = RPCServer(admin_enabled=False)
        server.register_module(EchoModule())
        assert server.get_methods() == ["test_echo"]

    def test_unregister_module(self):
        server = RPCServer()
        server.register_module(EchoModule())
        server.unregister_module("test")
        assert server.get_methods() == []


# ===================================================================
# bridge_* MODULE
# ===================================================================

class TestBridgeErrorMapping:
    def test_maps_to_transaction_rejected(self):
        err = bridge_error_to_rpc(InvalidAmountError("bad amount"))
        assert err.code == RPCErrorCode.TRANSACTION_REJECTED
        assert err.to_dict() == {
            "code": -32003,
            "message": "bad amount",
            "data": {"bridgeError": 2, "name": "INVALID_AMOUNT"},
        }


class TestBridgeModule:
    def _server(self, store=None, admin_enabled=True):
        context = BridgeContext(engine=make_engine(), store=store)
        server = RPCServer(admin_enabled=admin_enabled)
        server.register_module(BridgeModule(context))
        return server, context

    async def _call(self, server, method, params=None):
        return json.loads(await server.handle_request(call(method, params)))

    def test_method_names(self):
        server, _ = self._server()
        assert set(server.get_methods()) == {
            "bridge_deposit",
            "bridge_withdraw",
            "bridge_addOracle",
            "bridge_removeOracle",
            "bridge_addToWhitelist",
            "bridge_removeFromWhitelist",
            "bridge_pauseBridge",
            "bridge_unpauseBridge",
            "bridge_updateBridgeFee",
            "bridge_updateMaxDeposit",
            "bridge_getTotalLockedBitcoin",
            "bridge_getUserBalance",
            "bridge_isOracleAuthorized",
            "bridge_isWhitelisted",
            "bridge_isTransactionProcessed",
            "bridge_getBridgeStatus",
        }

    def test_admin_disabled_hides_owner_methods(self):
        server, _ = self._server(admin_enabled=False)
        methods = set(server.get_methods())
        assert "bridge_deposit" in methods
        assert "bridge_pauseBridge" not in methods
        assert "bridge_addOracle" not in methods

    @pytest.mark.asyncio
    async def test_deposit_and_queries(self):
        store = InMemoryBridgeStateStore()
        server, _ = self._server(store)

        resp = await self._call(server, "bridge_deposit", {
            "caller": ORACLE, "txId": TX1, "amount": 1000, "recipient": ALICE,
        })
        assert resp["result"] == 990
        assert store.save_count == 1

        assert (await self._call(server, "bridge_getTotalLockedBitcoin"))["result"] == 1000
        assert (await self._call(server, "bridge_getUserBalance", [ALICE]))["result"] == 990
        assert (await self._call(server, "bridge_getUserBalance", [MALLORY]))["result"] == 0
        assert (await self._call(server, "bridge_isTransactionProcessed", [TX1]))["result"] is True
        assert (await self._call(server, "bridge_isOracleAuthorized", [ORACLE]))["result"] is True
        assert (await self._call(server, "bridge_isWhitelisted", [MALLORY]))["result"] is False

        status = (await self._call(server, "bridge_getBridgeStatus"))["result"]
        assert status["total_locked"] == 1000
        assert status["processed_transactions"] == 1

    @pytest.mark.asyncio
    async def test_positional_params(self):
        server, _ = self._server()
        resp = await self._call(server, "bridge_deposit", [ORACLE, TX1, 1000, ALICE])
        assert resp["result"] == 990
        resp = await self._call(server, "bridge_withdraw", [ALICE, 990])
        assert resp["result"] == 981

    @pytest.mark.asyncio
    async def test_replay_returns_bridge_error(self):
        store = InMemoryBridgeStateStore()
        server, _ = self._server(store)
        params = [ORACLE, TX1, 1000, ALICE]
        await self._call(server, "bridge_deposit", params)
        resp = await self._call(server, "bridge_deposit", params)
        assert resp["error"]["code"] == RPCErrorCode.TRANSACTION_REJECTED
        assert resp["error"]["data"] == {
            "bridgeError": int(ErrorCode.TRANSACTION_ALREADY_PROCESSED),
            "name": "TRANSACTION_ALREADY_PROCESSED",
        }
        # Rejected operations are not persisted
        assert store.save_count == 1

    @pytest.mark.asyncio
    async def test_admin_operations(self):
        server, context = self._server()
        assert (await self._call(server, "bridge_pauseBridge", [OWNER]))["result"] is True
        resp = await self._call(server, "bridge_deposit", [ORACLE, TX1, 1000, ALICE])
        assert resp["error"]["data"]["bridgeError"] == ErrorCode.BRIDGE_PAUSED
        assert (await self._call(server, "bridge_unpauseBridge", [OWNER]))["result"] is True
        assert (await self._call(server, "bridge_updateBridgeFee", [OWNER, 0]))["result"] is True
        assert (await self._call(server, "bridge_updateMaxDeposit", [OWNER, 2000]))["result"] is True
        assert (await self._call(server, "bridge_addOracle", [OWNER, MALLORY]))["result"] is True
        assert (await self._call(server, "bridge_removeOracle", [OWNER, MALLORY]))["result"] is True
        assert (await self._call(server, "bridge_addToWhitelist", [OWNER, MALLORY]))["result"] is True
        assert (await self._call(server, "bridge_removeFromWhitelist", [OWNER, MALLORY]))["result"] is True
        assert context.engine.state.fee_rate == 0
        assert context.engine.state.max_deposit == 2000

    @pytest.mark.asyncio
    async def test_non_owner_admin_call(self):
        server, _ = self._server()
        resp = await self._call(server, "bridge_updateBridgeFee", [MALLORY, 5])
        assert resp["error"]["data"] == {"bridgeError": 1, "name": "NOT_AUTHORIZED"}

    @pytest.mark.asyncio
    async def test_fee_out_of_range(self):
        server, _ = self._server()
        resp = await self._call(server, "bridge_updateBridgeFee", [OWNER, 100])
        assert resp["error"]["data"]["bridgeError"] == ErrorCode.INVALID_AMOUNT

    @pytest.mark.asyncio
    async def test_non_string_caller(self):
        server, _ = self._server()
        resp = await self._call(server, "bridge_withdraw", [123, 1])
        assert resp["error"]["code"] == RPCErrorCode.INVALID_PARAMS

    @pytest.mark.asyncio
    @pytest.mark.parametrize("method,params", [
        ("bridge_addToWhitelist", [OWNER, 12345]),
        ("bridge_addOracle", [OWNER, 12345]),
        ("bridge_removeFromWhitelist", [OWNER, None]),
        ("bridge_deposit", [ORACLE, TX1, 1000, 12345]),
        ("bridge_deposit", [ORACLE, TX1, 1000, [1]]),
        ("bridge_deposit", [ORACLE, 12345678901, 1000, ALICE]),
    ])
    async def test_non_string_accounts_rejected(self, method, params):
        store = InMemoryBridgeStateStore()
        server, context = self._server(store)
        before = context.engine.to_dict()
        resp = await self._call(server, method, params)
        assert resp["error"]["code"] == RPCErrorCode.INVALID_PARAMS
        assert context.engine.to_dict() == before
        assert store.save_count == 0

    @pytest.mark.asyncio
    async def test_missing_params(self):
        server, _ = self._server()
        resp = await self._call(server, "bridge_deposit", [ORACLE, TX1])
        assert resp["error"]["code"] == RPCErrorCode.INVALID_PARAMS

    @pytest.mark.asyncio
    async def test_store_failure_surfaces_as_unavailable(self):
        class FailingStore(InMemoryBridgeStateStore):
            async def save(self, snapshot):
                raise StateStoreError("disk gone")

        server, _ = self._server(FailingStore())
        resp = await self._call(server, "bridge_deposit", [ORACLE, TX1, 1000, ALICE])
        assert resp["error"]["code"] == RPCErrorCode.RESOURCE_UNAVAILABLE

    @pytest.mark.asyncio
    async def test_missing_engine(self):
        server = RPCServer()
        server.register_module(BridgeModule(None))
        resp = json.loads(await server.handle_request(call("bridge_getTotalLockedBitcoin")))
        assert resp["error"]["code"] == RPCErrorCode.INTERNAL_ERROR


# ===================================================================
# STATE STORES
# ===================================================================

class TestInMemoryStore:
    @pytest.mark.asyncio
    async def test_round_trip(self):
        store = InMemoryBridgeStateStore()
        assert isinstance(store, BridgeStateStore)
        assert await store.load() is None

        engine = make_engine()
        engine.deposit(ORACLE, TX1, 1000, ALICE)
        await store.save(engine.to_dict())
        engine.deposit(ORACLE, TX2, 1000, ALICE)

        snapshot = await store.load()
        assert snapshot["processed"] == [TX1]
        assert snapshot["ledger"]["balances"] == {ALICE: 990}


class TestSQLiteStore:
    @pytest.mark.asyncio
    async def test_empty_database_loads_none(self, tmp_path):
        store = SQLiteBridgeStateStore(str(tmp_path / "bridge.db"))
        await store.initialize()
        try:
            assert await store.load() is None
        finally:
            await store.close()

    @pytest.mark.asyncio
    async def test_uninitialized_store_raises(self, tmp_path):
        store = SQLiteBridgeStateStore(str(tmp_path / "bridge.db"))
        with pytest.raises(StateStoreError):
            await store.load()

    @pytest.mark.asyncio
    async def test_save_and_reload(self, tmp_path):
        db_path = str(tmp_path / "nested" / "bridge.db")
        engine = make_engine()
        engine.deposit(ORACLE, TX1, 1000, ALICE)
        engine.withdraw(ALICE, 400)
        engine.remove_oracle(OWNER, ORACLE)
        engine.update_bridge_fee(OWNER, 42)
        engine.pause_bridge(OWNER)

        store = SQLiteBridgeStateStore(db_path)
        await store.initialize()
        await store.save(engine.to_dict())
        await store.close()

        reopened = SQLiteBridgeStateStore(db_path)
        await reopened.initialize()
        try:
            snapshot = await reopened.load()
        finally:
            await reopened.close()

        restored = BridgeEngine.from_dict(snapshot)
        assert restored.to_dict() == engine.to_dict()
        assert restored.state.paused is True
        assert restored.state.fee_rate == 42
        assert restored.is_oracle_authorized(ORACLE) is False
        assert restored.get_user_balance(ALICE) == 590
        assert restored.get_total_locked_bitcoin() == 600

    @pytest.mark.asyncio
    async def test_repeated_saves_overwrite(self, tmp_path):
        store = SQLiteBridgeStateStore(str(tmp_path / "bridge.db"))
        await store.initialize()
        try:
            engine = make_engine()
            await store.save(engine.to_dict())
            engine.deposit(ORACLE, TX1, 1000, ALICE)
            engine.withdraw(ALICE, 990)
            await store.save(engine.to_dict())

            snapshot = await store.load()
            assert snapshot["state"]["total_locked"] == 10
            assert snapshot["ledger"]["balances"] == {ALICE: 0}
            assert snapshot["processed"] == [TX1]
        finally:
            await store.close()


# ===================================================================
# HTTP APPLICATION
# ===================================================================

class TestHTTPApp:
    def _rpc(self, client, method, params=None):
        resp = client.post("/rpc", json=call(method, params))
        assert resp.status_code == 200
        return resp.json()

    def test_bootstrap_and_deposit(self, tmp_path):
        db_path = str(tmp_path / "bridge.db")
        with TestClient(create_app(make_config(db_path))) as client:
            root = client.get("/").json()
            assert root["status"]["owner"] == OWNER
            assert root["status"]["oracles"] == [ORACLE]

            body = self._rpc(client, "bridge_deposit", [ORACLE, TX1, 1000, ALICE])
            assert body["result"] == 990

    def test_state_survives_restart(self, tmp_path):
        db_path = str(tmp_path / "bridge.db")
        with TestClient(create_app(make_config(db_path))) as client:
            self._rpc(client, "bridge_deposit", [ORACLE, TX1, 1000, ALICE])

        with TestClient(create_app(make_config(db_path))) as client:
            assert self._rpc(client, "bridge_getUserBalance", [ALICE])["result"] == 990
            body = self._rpc(client, "bridge_deposit", [ORACLE, TX1, 1000, ALICE])
            assert body["error"]["data"]["bridgeError"] == ErrorCode.TRANSACTION_ALREADY_PROCESSED

    def test_notification_returns_204(self, tmp_path):
        app = create_app(make_config(), store=InMemoryBridgeStateStore())
        with TestClient(app) as client:
            resp = client.post("/rpc", json={
                "jsonrpc": "2.0", "method": "bridge_getTotalLockedBitcoin",
            })
            assert resp.status_code == 204

    def test_batch_over_http(self):
        app = create_app(make_config(), store=InMemoryBridgeStateStore())
        with TestClient(app) as client:
            resp = client.post("/rpc", json=[
                call("bridge_deposit", [ORACLE, TX1, 1000, ALICE], id=1),
                call("bridge_withdraw", [ALICE, 500], id=2),
            ])
            results = {r["id"]: r["result"] for r in resp.json()}
            assert results == {1: 990, 2: 495}

    def test_malformed_body(self):
        app = create_app(make_config(), store=InMemoryBridgeStateStore())
        with TestClient(app) as client:
            resp = client.post("/rpc", content=b"{not json", headers={"content-type": "application/json"})
            assert resp.json()["error"]["code"] == RPCErrorCode.PARSE_ERROR

    def test_admin_disabled(self):
        app = create_app(make_config(admin_enabled=False), store=InMemoryBridgeStateStore())
        with TestClient(app) as client:
            body = self._rpc(client, "bridge_pauseBridge", [OWNER])
            assert body["error"]["code"] == RPCErrorCode.METHOD_NOT_FOUND

    def test_invalid_config_fails_startup(self):
        config = make_config()
        config.bridge.owner = ""
        app = create_app(config, store=InMemoryBridgeStateStore())
        with pytest.raises(ValueError):
            with TestClient(app):
                pass
