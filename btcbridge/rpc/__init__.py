"""
btcbridge RPC Module

Provides the JSON-RPC 2.0 interface to the bridge engine:
- Transport-agnostic JSON-RPC server (mounted on FastAPI at POST /rpc)
- bridge_* method namespace
"""

from .server import (
    RPCError,
    RPCErrorCode,
    RPCModule,
    RPCServer,
    rpc_admin_method,
    rpc_method,
)

__all__ = [
    "RPCError",
    "RPCErrorCode",
    "RPCModule",
    "RPCServer",
    "rpc_admin_method",
    "rpc_method",
]
