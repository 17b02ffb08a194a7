"""HTTP input/output operations."""

import logging
import socket
import urllib.parse
from typing import Optional, Tuple

from gateway.bootstrap.config import HEADER_DELIMITER, MAX_BODY_BYTES, MAX_HEADER_BYTES
from gateway.domain.correlation_id import (
    CorrelationLoggerAdapter,
    get_correlation_id,
    set_correlation_id,
)
from gateway.domain.errors import StreamingFailure
from gateway.domain.http_types import HttpRequest, HttpResponse
from gateway.pipeline.validation import RequestEntityTooLarge, RequestHeaderTooLarge

IO_LOGGER = CorrelationLoggerAdapter(logging.getLogger("blob_gateway.io"), {})


def parse_headers(lines: list[str]) -> dict[str, str]:
    """Convert raw header lines into a lowercase-keyed dictionary."""
    parsed = {}
    for line in lines:
        if ":" in line:
            name, value = line.split(":", 1)
            parsed[name.strip().lower()] = value.strip()
    return parsed


def parse_request_line(request_line: str) -> Tuple[str, str]:
    """Parse the HTTP method and decoded path from the request line."""
    try:
        method, target, version = request_line.split(" ", 2)
    except ValueError as exc:
        raise ValueError("Invalid request line") from exc
    if not version.startswith("HTTP/"):
        raise ValueError("Invalid HTTP version")

    parsed_target = urllib.parse.urlsplit(target)
    path = urllib.parse.unquote(parsed_target.path)
    return method, path


def determine_content_length(headers: dict[str, str]) -> int:
    """Validate and return the declared Content-Length for the request."""
    header_value = headers.get("content-length")
    if header_value is None:
        return 0
    try:
        content_length = int(header_value)
    except ValueError as exc:
        raise ValueError("Invalid Content-Length") from exc
    if content_length < 0:
        raise ValueError("Negative Content-Length")
    if content_length > MAX_BODY_BYTES:
        raise RequestEntityTooLarge
    return content_length


def receive_request(
    client_socket: socket.socket, buffer: bytes
) -> Tuple[Optional[HttpRequest], bytes]:
    """Read bytes from the socket until a complete request is available."""
    while HEADER_DELIMITER not in buffer:
        if len(buffer) > MAX_HEADER_BYTES:
            raise RequestHeaderTooLarge
        chunk = client_socket.recv(4096)
        if not chunk:
            return None, b""
        buffer += chunk

    header_block, remainder = buffer.split(HEADER_DELIMITER, 1)
    if len(header_block) > MAX_HEADER_BYTES:
        raise RequestHeaderTooLarge
    try:
        header_lines = header_block.decode().split("\r\n")
    except UnicodeDecodeError as exc:
        raise ValueError("Request headers are not valid UTF-8") from exc
    method, path = parse_request_line(header_lines[0])
    headers = parse_headers(header_lines[1:])

    incoming_correlation_id = headers.get("x-request-id")
    if incoming_correlation_id:
        set_correlation_id(incoming_correlation_id)

    content_length = determine_content_length(headers)

    while len(remainder) < content_length:
        chunk = client_socket.recv(4096)
        if not chunk:
            return None, b""
        remainder += chunk

    body = remainder[:content_length]
    leftover = remainder[content_length:]
    IO_LOGGER.debug(
        "Parsed request",
        extra={"event": "request_parsed", "method": method, "route": path},
    )
    return HttpRequest(method, path, headers, body), leftover


def _close_body(response: HttpResponse) -> None:
    close = getattr(response.body_iter, "close", None)
    if close is not None:
        close()


def _stream_chunks(client_socket: socket.socket, response: HttpResponse) -> int:
    """Copy the body iterator to the socket, raising StreamingFailure on error."""
    bytes_sent = 0
    try:
        for chunk in response.body_iter:
            if not chunk:
                continue
            client_socket.sendall(f"{len(chunk):X}\r\n".encode() + chunk + b"\r\n")
            bytes_sent += len(chunk)
        client_socket.sendall(b"0\r\n\r\n")
    except Exception as error:  # pylint: disable=broad-except
        raise StreamingFailure(
            f"{type(error).__name__}: {error}", bytes_sent=bytes_sent
        ) from error
    return bytes_sent


def send_response(client_socket: socket.socket, response: HttpResponse) -> int:
    """Serialize and send the HTTP response, returning the body bytes sent."""
    headers = dict(response.headers)

    correlation_id = get_correlation_id()
    if correlation_id:
        headers["X-Request-ID"] = correlation_id

    if response.use_chunked:
        headers["Transfer-Encoding"] = "chunked"
    else:
        headers["Content-Length"] = str(len(response.body))
    if response.close_connection:
        headers["Connection"] = "close"
    header_lines = [response.status_line]
    header_lines.extend(f"{name}: {value}" for name, value in headers.items())
    header_block = "\r\n".join(header_lines).encode() + b"\r\n\r\n"

    try:
        if response.use_chunked and response.body_iter is not None:
            client_socket.sendall(header_block)
            bytes_sent = _stream_chunks(client_socket, response)
        else:
            client_socket.sendall(header_block + response.body)
            bytes_sent = len(response.body)
    finally:
        _close_body(response)

    IO_LOGGER.debug(
        "Sent response",
        extra={
            "event": "response_sent",
            "status_code": response.status_code,
            "bytes_out": bytes_sent,
        },
    )
    return bytes_sent
