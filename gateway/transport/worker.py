"""Worker thread logic for handling individual client connections."""

import logging
import socket
import threading
import time
from dataclasses import dataclass
from typing import Optional

from gateway.bootstrap.config import ALLOWED_METHODS, SECURITY_HEADERS
from gateway.domain.correlation_id import (
    CorrelationLoggerAdapter,
    clear_correlation_id,
    generate_correlation_id,
    set_correlation_id,
)
from gateway.domain.errors import StreamingFailure
from gateway.domain.http_types import HttpRequest
from gateway.domain.response_builders import (
    bad_request_response,
    entity_too_large_response,
    header_too_large_response,
)
from gateway.lifecycle.state import ServerLifecycle
from gateway.pipeline.io import receive_request, send_response
from gateway.pipeline.router import route_request
from gateway.pipeline.validation import (
    RequestEntityTooLarge,
    RequestHeaderTooLarge,
    validate_request,
)
from gateway.transport.context import WorkerContext

WORKER_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("blob_gateway.transport.worker"), {}
)


@dataclass
class _WorkerResources:
    thread: threading.Thread
    client_socket: socket.socket
    client_addr_str: str


def _read_request_with_validation(
    client_socket: socket.socket,
    buffer: bytes,
    client_addr_str: str,
) -> tuple[Optional[HttpRequest], bytes, bool]:
    """Read a request from the socket while enforcing size limits."""
    try:
        request, buffer = receive_request(client_socket, buffer)
    except RequestHeaderTooLarge:
        WORKER_LOGGER.warning(
            "Request headers exceeded limit",
            extra={"event": "header_size_exceeded", "client": client_addr_str},
        )
        send_response(client_socket, header_too_large_response(SECURITY_HEADERS))
        return None, b"", True
    except RequestEntityTooLarge:
        WORKER_LOGGER.warning(
            "Request body size exceeded limit",
            extra={"event": "body_size_exceeded", "client": client_addr_str},
        )
        send_response(client_socket, entity_too_large_response(SECURITY_HEADERS))
        return None, b"", True
    except ValueError:
        WORKER_LOGGER.warning(
            "Malformed request received",
            extra={"event": "malformed_request", "client": client_addr_str},
        )
        send_response(client_socket, bad_request_response(None, SECURITY_HEADERS))
        return None, b"", True

    if request is None:
        if WORKER_LOGGER.logger.isEnabledFor(logging.DEBUG):
            WORKER_LOGGER.debug(
                "Client disconnected",
                extra={"event": "client_disconnected", "client": client_addr_str},
            )
        return None, buffer, True
    return request, buffer, False


def _process_request(
    request: HttpRequest, context: WorkerContext, client_socket: socket.socket
) -> bool:
    """Respond to one request; return True when the connection must close."""
    started = time.monotonic()
    response = validate_request(request, ALLOWED_METHODS, SECURITY_HEADERS)
    if response is None:
        response = route_request(request, context)
    bytes_out = send_response(client_socket, response)
    WORKER_LOGGER.info(
        "Request complete",
        extra={
            "event": "request_complete",
            "method": request.method,
            "route": request.path,
            "status_code": response.status_code,
            "bytes_out": bytes_out,
            "duration_ms": round((time.monotonic() - started) * 1000, 2),
        },
    )
    return response.close_connection


def _await_request_bytes(client_socket: socket.socket, client_addr_str: str) -> bytes:
    """Block until the client starts a request; empty bytes mean it hung up."""
    chunk = client_socket.recv(4096)
    if not chunk and WORKER_LOGGER.logger.isEnabledFor(logging.DEBUG):
        WORKER_LOGGER.debug(
            "Client disconnected",
            extra={"event": "client_disconnected", "client": client_addr_str},
        )
    return chunk


def _mark(lifecycle: Optional[ServerLifecycle], thread: threading.Thread, idle: bool):
    if lifecycle is None:
        return
    if idle:
        lifecycle.mark_idle(thread)
    else:
        lifecycle.mark_active(thread)


def _cleanup_worker(
    lifecycle: Optional[ServerLifecycle], resources: _WorkerResources
) -> None:
    if lifecycle is not None:
        lifecycle.cleanup_worker(resources.thread)

    try:
        resources.client_socket.shutdown(socket.SHUT_WR)
    except OSError:
        pass
    resources.client_socket.close()

    WORKER_LOGGER.debug(
        "Socket closed",
        extra={"event": "socket_closed", "client": resources.client_addr_str},
    )
    clear_correlation_id()


def handle_client(
    client_socket: socket.socket,
    client_address: tuple[str, int],
    context: WorkerContext,
) -> None:
    """Process requests on a client socket until the connection is closed."""
    buffer = b""
    lifecycle = context.lifecycle
    if context.config is not None:
        client_socket.settimeout(context.config.socket_timeout)
    client_addr_str = f"{client_address[0]}:{client_address[1]}"
    resources = _WorkerResources(
        threading.current_thread(), client_socket, client_addr_str
    )

    try:
        while True:
            set_correlation_id(generate_correlation_id())

            if not buffer:
                buffer = _await_request_bytes(client_socket, client_addr_str)
                if not buffer:
                    break
            _mark(lifecycle, resources.thread, idle=False)

            request, buffer, should_terminate = _read_request_with_validation(
                client_socket, buffer, client_addr_str
            )
            if should_terminate or request is None:
                break

            close_connection = _process_request(request, context, client_socket)
            clear_correlation_id()

            if close_connection:
                break
            # Draining may begin just before the worker turns idle; check after.
            _mark(lifecycle, resources.thread, idle=True)
            if lifecycle is not None and lifecycle.is_draining():
                break
    except StreamingFailure as error:
        WORKER_LOGGER.error(
            "Streaming failed after headers were sent",
            extra={
                "event": "streaming_failure",
                "client": client_addr_str,
                "bytes_out": error.bytes_sent,
                "error": error.detail,
            },
        )
    except (
        ConnectionError,
        TimeoutError,
        OSError,
    ) as error:
        WORKER_LOGGER.error(
            "Error handling client connection",
            extra={
                "event": "connection_error",
                "client": client_addr_str,
                "error_type": type(error).__name__,
            },
        )
    except Exception as error:  # pylint: disable=broad-except
        WORKER_LOGGER.error(
            "Unexpected error in worker",
            extra={
                "event": "worker_error",
                "client": client_addr_str,
                "error_type": type(error).__name__,
                "error": str(error),
            },
            exc_info=True,
        )
    finally:
        _cleanup_worker(lifecycle, resources)
