"""
btcbridge RPC Modules

JSON-RPC method implementations.
"""

from .bridge import BridgeContext, BridgeModule, bridge_error_to_rpc

__all__ = [
    "BridgeContext",
    "BridgeModule",
    "bridge_error_to_rpc",
]
