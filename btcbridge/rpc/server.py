"""
btcbridge JSON-RPC 2.0 Server

Implements the JSON-RPC 2.0 specification with support for:
- Method registration and namespacing (``bridge_deposit``, ...)
- Batch requests and notifications
- Parameter binding checked against the handler signature
- Error handling with standard codes
- Admin-only methods that are registered only when enabled
"""

import json
import inspect
from typing import Any, Callable, Dict, List, Optional, Union
from dataclasses import dataclass
from enum import IntEnum

from ..logger import get_logger

logger = get_logger(__name__)


class RPCErrorCode(IntEnum):
    """Standard JSON-RPC 2.0 error codes."""

    # Standard errors
    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603

    # Server errors (-32000 to -32099)
    SERVER_ERROR = -32000
    RESOURCE_UNAVAILABLE = -32002
    TRANSACTION_REJECTED = -32003


@dataclass
class RPCError(Exception):
    """JSON-RPC error."""

    code: int
    message: str
    data: Optional[Any] = None

    def to_dict(self) -> dict:
        result = {
            "code": int(self.code),
            "message": self.message,
        }
        if self.data is not None:
            result["data"] = self.data
        return result


@dataclass
class RPCRequest:
    """JSON-RPC request."""

    jsonrpc: str
    method: str
    params: Union[List, Dict, None]
    id: Union[str, int, None]

    @classmethod
    def from_dict(cls, data: dict) -> "RPCRequest":
        if not isinstance(data, dict):
            raise RPCError(RPCErrorCode.INVALID_REQUEST, "Request must be an object")
        return cls(
            jsonrpc=data.get("jsonrpc", "2.0"),
            method=data.get("method", ""),
            params=data.get("params"),
            id=data.get("id"),
        )

    @property
    def is_notification(self) -> bool:
        """Check if this is a notification (no id)."""
        return self.id is None


@dataclass
class RPCResponse:
    """JSON-RPC response."""

    jsonrpc: str = "2.0"
    result: Optional[Any] = None
    error: Optional[Dict] = None
    id: Union[str, int, None] = None

    def to_dict(self) -> dict:
        response = {"jsonrpc": self.jsonrpc, "id": self.id}
        if self.error is not None:
            response["error"] = self.error
        else:
            response["result"] = self.result
        return response

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


# Type for RPC method handlers
RPCMethod = Callable[..., Any]


class RPCModule:
    """
    Base class for RPC modules.

    Subclass this to create method namespaces like ``bridge_``.
    """

    # Namespace prefix (e.g., "bridge")
    namespace: str = ""

    def __init__(self, context: Any = None):
        """
        Initialize module with optional context.

        Args:
            context: Application context (engine, store, lock)
        """
        self.context = context

    def get_methods(self, include_admin: bool = True) -> Dict[str, RPCMethod]:
        """
        Get all public methods in this module.

        Methods starting with underscore are private.

        Args:
            include_admin: Also return methods marked with ``rpc_admin_method``

        Returns:
            Dict mapping method names to callables
        """
        methods = {}
        for name in dir(self):
            if name.startswith("_"):
                continue
            attr = getattr(self, name)
            if not (callable(attr) and hasattr(attr, "__rpc_method__")):
                continue
            if getattr(attr, "__rpc_admin__", False) and not include_admin:
                continue
            full_name = f"{self.namespace}_{name}" if self.namespace else name
            methods[full_name] = attr
        return methods


def rpc_method(func: RPCMethod) -> RPCMethod:
    """
    Decorator to mark a method as an RPC endpoint.

    Usage:
        @rpc_method
        async def getTotalLockedBitcoin(self) -> int:
            return self.context.engine.get_total_locked_bitcoin()
    """
    func.__rpc_method__ = True
    return func


def rpc_admin_method(func: RPCMethod) -> RPCMethod:
    """
    Decorator to mark a method as an administrative RPC endpoint.

    Admin endpoints are skipped at registration when the server runs with
    ``admin_enabled=False``.
    """
    func.__rpc_method__ = True
    func.__rpc_admin__ = True
    return func


class RPCServer:
    """
    JSON-RPC 2.0 server.

    Manages method registration and request handling. Transport agnostic:
    the FastAPI app feeds it raw request bodies.
    """

    def __init__(self, admin_enabled: bool = True):
        self.admin_enabled = admin_enabled
        self._methods: Dict[str, RPCMethod] = {}
        self._modules: Dict[str, RPCModule] = {}

    def register_method(self, name: str, handler: RPCMethod):
        """
        Register a single RPC method.

        Args:
            name: Method name (e.g., "bridge_deposit")
            handler: Async function to handle the method
        """
        self._methods[name] = handler
        logger.debug(f"Registered RPC method: {name}")

    def register_module(self, module: RPCModule):
        """
        Register an RPC module.

        Args:
            module: RPCModule instance
        """
        methods = module.get_methods(include_admin=self.admin_enabled)
        self._methods.update(methods)
        self._modules[module.namespace] = module
        logger.info(
            f"Registered RPC module: {module.namespace} ({len(methods)} methods"
            f"{'' if self.admin_enabled else ', admin disabled'})"
        )

    def unregister_module(self, namespace: str):
        """
        Unregister an RPC module.

        Args:
            namespace: Module namespace to remove
        """
        if namespace in self._modules:
            module = self._modules.pop(namespace)
            for name in module.get_methods():
                self._methods.pop(name, None)
            logger.info(f"Unregistered RPC module: {namespace}")

    def get_methods(self) -> List[str]:
        """Get list of registered method names."""
        return sorted(self._methods.keys())

    async def handle_request(self, data: Union[str, bytes, dict, list]) -> Optional[str]:
        """
        Handle a JSON-RPC request.

        Args:
            data: Request data (JSON string or already-decoded object)

        Returns:
            JSON response string, or None for notifications
        """
        try:
            if isinstance(data, (str, bytes)):
                parsed = json.loads(data)
            else:
                parsed = data
        except json.JSONDecodeError as e:
            error = RPCError(RPCErrorCode.PARSE_ERROR, f"Parse error: {e}")
            return RPCResponse(error=error.to_dict()).to_json()

        if isinstance(parsed, list):
            if not parsed:
                error = RPCError(RPCErrorCode.INVALID_REQUEST, "Empty batch")
                return RPCResponse(error=error.to_dict()).to_json()

            # Sequential so that mutating calls in one batch apply in order
            responses = []
            for req in parsed:
                responses.append(await self._handle_single(req))

            responses = [r for r in responses if r is not None]
            if not responses:
                return None
            return json.dumps(responses)

        response = await self._handle_single(parsed)
        if response is None:
            return None
        return json.dumps(response)

    async def _handle_single(self, data: Any) -> Optional[dict]:
        """Handle a single request and return response dict."""
        try:
            request = RPCRequest.from_dict(data)
        except RPCError as e:
            return RPCResponse(error=e.to_dict()).to_dict()

        if request.jsonrpc != "2.0":
            return RPCResponse(
                id=request.id,
                error=RPCError(RPCErrorCode.INVALID_REQUEST, "Invalid JSON-RPC version").to_dict()
            ).to_dict()

        if not request.method or not isinstance(request.method, str):
            return RPCResponse(
                id=request.id,
                error=RPCError(RPCErrorCode.INVALID_REQUEST, "Missing method").to_dict()
            ).to_dict()

        handler = self._methods.get(request.method)
        if handler is None:
            if request.is_notification:
                return None
            return RPCResponse(
                id=request.id,
                error=RPCError(
                    RPCErrorCode.METHOD_NOT_FOUND,
                    f"Method not found: {request.method}"
                ).to_dict()
            ).to_dict()

        try:
            args, kwargs = self._bind_params(handler, request.params)
            result = await handler(*args, **kwargs)

            if request.is_notification:
                return None
            return RPCResponse(id=request.id, result=result).to_dict()

        except RPCError as e:
            if request.is_notification:
                return None
            return RPCResponse(id=request.id, error=e.to_dict()).to_dict()

        except Exception as e:
            logger.exception(f"Error handling RPC method {request.method}")
            if request.is_notification:
                return None
            return RPCResponse(
                id=request.id,
                error=RPCError(RPCErrorCode.INTERNAL_ERROR, str(e)).to_dict()
            ).to_dict()

    @staticmethod
    def _bind_params(handler: RPCMethod, params: Any):
        """Convert positional/named params to call arguments or raise INVALID_PARAMS."""
        if params is None:
            args, kwargs = [], {}
        elif isinstance(params, list):
            args, kwargs = params, {}
        elif isinstance(params, dict):
            args, kwargs = [], params
        else:
            raise RPCError(RPCErrorCode.INVALID_PARAMS, "Invalid params type")

        try:
            inspect.signature(handler).bind(*args, **kwargs)
        except TypeError as e:
            raise RPCError(RPCErrorCode.INVALID_PARAMS, f"Invalid params: {e}")
        return args, kwargs
