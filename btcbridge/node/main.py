"""
btcbridge HTTP service

FastAPI application exposing the bridge engine over JSON-RPC 2.0:

    POST /rpc   JSON-RPC endpoint (single, batch, notifications → 204)
    GET  /      Version and bridge status

On startup the engine is restored from the state store; a missing snapshot
bootstraps a fresh deployment from ``[bridge]`` / ``[token]`` config and
persists it immediately.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse, Response

from ..bridge.engine import BridgeEngine
from ..bridge.oracle import AttestationService
from ..bridge.store import BridgeStateStore, SQLiteBridgeStateStore
from ..config.loader import BridgeConfig, load_config
from ..constants import BRIDGE_VERSION
from ..logger import get_logger, set_log_level
from ..rpc.modules.bridge import BridgeContext, BridgeModule
from ..rpc.server import RPCServer

logger = get_logger(__name__)


async def open_engine(
    config: BridgeConfig,
    store: BridgeStateStore,
    attestation: Optional[AttestationService] = None,
) -> BridgeEngine:
    """Load the persisted engine, or deploy a new one from config and save it."""
    snapshot = await store.load()
    if snapshot is not None:
        engine = BridgeEngine.from_dict(snapshot, attestation=attestation)
        logger.info(f"Bridge state restored: {engine!r}")
        return engine

    config.validate()
    engine = BridgeEngine.from_config(config, attestation=attestation)
    await store.save(engine.to_dict())
    logger.info(f"New bridge deployed by {config.bridge.owner}")
    return engine


def create_app(
    config: Optional[BridgeConfig] = None,
    *,
    store: Optional[BridgeStateStore] = None,
    attestation: Optional[AttestationService] = None,
) -> FastAPI:
    """
    Build the bridge HTTP application.

    Args:
        config: Loaded configuration (``load_config()`` when omitted)
        store: State store (SQLite at ``database.path`` when omitted)
        attestation: Oracle attestation collaborator (mock when omitted)
    """
    if config is None:
        config = load_config()
    if store is None:
        store = SQLiteBridgeStateStore(config.database.path)

    rpc_server = RPCServer(admin_enabled=config.rpc.admin_enabled)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Startup and shutdown events."""
        set_log_level(config.log.level)
        logger.info("Starting btcbridge service...")

        if hasattr(store, "initialize"):
            await store.initialize()
        try:
            engine = await open_engine(config, store, attestation)

            context = BridgeContext(engine=engine, store=store)
            app.state.context = context
            if config.rpc.enabled:
                rpc_server.register_module(BridgeModule(context))

            logger.info(f"   RPC endpoint: http://{config.rpc.host}:{config.rpc.port}/rpc")
            yield
        finally:
            await store.close()
            logger.info("btcbridge service stopped.")

    app = FastAPI(
        title="btcbridge",
        description="Custodial Bitcoin bridge ledger.",
        version=BRIDGE_VERSION,
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    app.state.config = config
    app.state.store = store
    app.state.rpc_server = rpc_server
    app.state.context = None

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception on {request.url.path}: {exc}")
        return JSONResponse(status_code=500, content={"ok": False, "error": "Internal Server Error"})

    @app.post("/rpc")
    async def rpc_endpoint(request: Request):
        """JSON-RPC 2.0 endpoint"""
        result = await rpc_server.handle_request(await request.body())
        if result is None:
            return Response(status_code=204)
        # handle_request returns a JSON string; send it raw to avoid double-encoding
        return Response(content=result, media_type="application/json")

    @app.get("/")
    async def root():
        context = app.state.context
        if context is None:
            return JSONResponse(status_code=503, content={"ok": False, "error": "Bridge not initialized"})
        return {"bridge_version": BRIDGE_VERSION, "status": context.engine.get_status()}

    return app
