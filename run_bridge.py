import uvicorn
import logging

from btcbridge.config import load_config

# Suppress uvicorn's default logging; btcbridge.logger owns the root handlers
uvicorn_loggers = [
    logging.getLogger("uvicorn"),
    logging.getLogger("uvicorn.error"),
    logging.getLogger("uvicorn.access"),
    logging.getLogger("uvicorn.asgi"),
]

for uvicorn_logger in uvicorn_loggers:
    uvicorn_logger.setLevel(logging.ERROR)
    uvicorn_logger.handlers = []

config = load_config()

# BTCBRIDGE_RPC_HOST / BTCBRIDGE_RPC_PORT are already applied by load_config()
BTCBRIDGE_HOST = config.rpc.host
BTCBRIDGE_PORT = config.rpc.port

if __name__ == "__main__":
    uvicorn.run(
        "btcbridge.node.main:create_app",
        factory=True,
        host=BTCBRIDGE_HOST,
        port=BTCBRIDGE_PORT,
        reload=False,
        access_log=False,
        log_config=None,
    )
