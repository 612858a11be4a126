"""Run the server on the addresses selected by ``bindInfo``: ``python -m server``."""

from __future__ import annotations

import socket
import sys

import structlog
import uvicorn

from common.config import ConfigError, load_config
from common.logging import setup_logging
from server.app import create_app
from server.settings import ServerSettings

logger = structlog.get_logger()


def bind_socket(address: str, port: int) -> socket.socket:
    family = socket.AF_INET6 if ":" in address else socket.AF_INET
    sock = socket.create_server((address, port), family=family, reuse_port=False)
    sock.set_inheritable(True)
    return sock


def main() -> int:  # pragma: no cover
    settings = ServerSettings()
    setup_logging(log_dir=settings.log_dir)
    try:
        config = load_config(settings.config_path)
        app = create_app(settings=settings, config=config)
    except ConfigError as e:
        logger.error("invalid configuration, not starting", error=str(e))
        return 1

    bind_info = config.bind_info
    addresses = bind_info.listen_addresses()
    if not addresses:
        logger.error("no addresses to listen on, check bindInfo", bind_address=bind_info.bind_address)
        return 1
    try:
        sockets = [bind_socket(address, bind_info.port) for address in addresses]
    except OSError as e:
        logger.error("cannot bind", addresses=addresses, port=bind_info.port, error=str(e))
        return 1

    logger.info("listening", addresses=addresses, port=bind_info.port, filter_bind_address=bind_info.filter_bind_address)
    server = uvicorn.Server(uvicorn.Config(app, log_config=None))
    server.run(sockets=sockets)
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
