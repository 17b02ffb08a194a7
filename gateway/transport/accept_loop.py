"""Main connection acceptance loop."""

import logging
import socket
import threading

from gateway.bootstrap.config import SECURITY_HEADERS
from gateway.domain.correlation_id import CorrelationLoggerAdapter
from gateway.domain.response_builders import draining_response
from gateway.lifecycle.state import ServerLifecycle
from gateway.pipeline.io import send_response
from gateway.transport.context import WorkerContext
from gateway.transport.worker import handle_client

ACCEPT_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("blob_gateway.transport.accept"), {}
)


def _reject_draining(client_socket: socket.socket) -> None:
    try:
        send_response(client_socket, draining_response(SECURITY_HEADERS))
    except OSError:
        pass
    finally:
        client_socket.close()


def _spawn_worker(
    client_socket: socket.socket,
    client_address: tuple[str, int],
    lifecycle: ServerLifecycle,
    context: WorkerContext,
) -> None:
    """Start a worker thread for an accepted connection."""
    client_addr_str = f"{client_address[0]}:{client_address[1]}"
    if ACCEPT_LOGGER.logger.isEnabledFor(logging.DEBUG):
        ACCEPT_LOGGER.debug(
            "Client connection accepted",
            extra={"event": "client_accepted", "client": client_addr_str},
        )

    thread = threading.Thread(
        target=handle_client,
        args=(client_socket, client_address, context),
        name=f"worker-{client_addr_str}",
        daemon=True,
    )
    lifecycle.register_worker(thread, client_socket)
    thread.start()


def accept_connections(
    server_socket: socket.socket, lifecycle: ServerLifecycle, context: WorkerContext
) -> None:
    """Accept connections until the lifecycle asks to stop, then close the listener."""
    try:
        while True:
            try:
                client_socket, client_address = server_socket.accept()
            except socket.timeout:
                if lifecycle.should_stop():
                    break
                continue
            except OSError as error:
                if lifecycle.should_stop():
                    break
                ACCEPT_LOGGER.error(
                    "Socket accept failed",
                    extra={"event": "accept_error", "error_type": type(error).__name__},
                )
                continue

            if lifecycle.is_draining():
                _reject_draining(client_socket)
                continue

            _spawn_worker(client_socket, client_address, lifecycle, context)
    finally:
        server_socket.close()
        ACCEPT_LOGGER.info("Listener closed", extra={"event": "listener_closed"})
