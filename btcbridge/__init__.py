"""
btcbridge: custodial Bitcoin bridge ledger

Core imports are lazily loaded so that the CLI and config tooling do not
pull in the HTTP stack. For direct module access, import from submodules:

    from btcbridge.bridge import BridgeEngine
    from btcbridge.config import load_config
    from btcbridge.exceptions import BridgeError
"""

# Lazy imports to avoid loading everything at package import
def __getattr__(name):
    """Lazy module loading."""
    if name == 'BridgeEngine':
        from .bridge.engine import BridgeEngine
        return BridgeEngine
    elif name == 'BridgeError':
        from .exceptions import BridgeError
        return BridgeError
    elif name == 'ErrorCode':
        from .exceptions import ErrorCode
        return ErrorCode
    elif name == 'create_app':
        from .node.main import create_app
        return create_app
    raise AttributeError(f"module 'btcbridge' has no attribute {name!r}")

__all__ = ['BridgeEngine', 'BridgeError', 'ErrorCode', 'create_app']
