"""Listening socket creation."""

import logging
import socket
import sys

from gateway.domain.correlation_id import CorrelationLoggerAdapter

SOCKET_LOGGER = CorrelationLoggerAdapter(logging.getLogger("blob_gateway.socket"), {})

ACCEPT_POLL_SECONDS = 0.5


def create_server_socket(host: str, port: int) -> socket.socket:
    """Bind the listening socket, exiting the process when binding fails."""
    try:
        server_socket = socket.create_server((host, port))
    except OSError as error:
        SOCKET_LOGGER.critical(
            "Failed to bind listening socket",
            extra={
                "event": "bind_failed",
                "host": host,
                "port": port,
                "error_type": type(error).__name__,
                "error": str(error),
            },
        )
        sys.exit(1)
    server_socket.settimeout(ACCEPT_POLL_SECONDS)
    return server_socket
