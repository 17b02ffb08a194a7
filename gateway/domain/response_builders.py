"""Pure HTTP response builders."""

from typing import Iterable, Optional

from gateway.domain.errors import ErrorKind, GatewayError, status_for
from gateway.domain.http_types import HttpRequest, HttpResponse, should_close

AUTH_REALM = "blob-gateway"
OBJECT_CONTENT_TYPE = "application/octet-stream"

# Public error bodies; backend details stay in the logs.
ERROR_BODIES = {
    ErrorKind.AUTHENTICATION: b"missing/invalid authorization\n",
    ErrorKind.OBJECT_NOT_FOUND: b"object not found\n",
    ErrorKind.INVALID_KEY: b"invalid object key\n",
    ErrorKind.BACKEND: b"internal error\n",
}


def _status_line(code: int, reason: str) -> str:
    return f"HTTP/1.1 {code} {reason}"


def text_response(
    message: str, request: HttpRequest, security_headers: dict[str, str]
) -> HttpResponse:
    """Return a text/plain 200 response."""
    headers = {"Content-Type": "text/plain; charset=utf-8", **security_headers}
    return HttpResponse(
        "HTTP/1.1 200 OK", headers, message.encode(), should_close(request.headers)
    )


def object_stream_response(
    request: HttpRequest,
    body_iter: Iterable[bytes],
    security_headers: dict[str, str],
) -> HttpResponse:
    """Return a 200 response streaming object bytes with chunked encoding."""
    headers = {"Content-Type": OBJECT_CONTENT_TYPE, **security_headers}
    return HttpResponse(
        "HTTP/1.1 200 OK",
        headers,
        b"",
        should_close(request.headers),
        body_iter=body_iter,
        use_chunked=True,
    )


def error_response(
    error: GatewayError, request: HttpRequest, security_headers: dict[str, str]
) -> HttpResponse:
    """Translate a per-request gateway error into its mapped status."""
    code, reason = status_for(error.kind)
    headers = {"Content-Type": "text/plain; charset=utf-8", **security_headers}
    if error.kind is ErrorKind.AUTHENTICATION:
        headers["WWW-Authenticate"] = f'Basic realm="{AUTH_REALM}"'
    return HttpResponse(
        _status_line(code, reason),
        headers,
        ERROR_BODIES[error.kind],
        should_close(request.headers),
    )


def bad_request_response(
    request: Optional[HttpRequest], security_headers: dict[str, str]
) -> HttpResponse:
    """Produce a 400 response honoring the caller's connection preference."""
    return HttpResponse(
        "HTTP/1.1 400 Bad Request",
        security_headers.copy(),
        b"",
        should_close(request.headers) if request is not None else True,
    )


def entity_too_large_response(security_headers: dict[str, str]) -> HttpResponse:
    """Produce a 413 response that always closes the connection."""
    return HttpResponse(
        "HTTP/1.1 413 Payload Too Large", security_headers.copy(), b"", True
    )


def header_too_large_response(security_headers: dict[str, str]) -> HttpResponse:
    """Produce a 431 response that always closes the connection."""
    return HttpResponse(
        "HTTP/1.1 431 Request Header Fields Too Large",
        security_headers.copy(),
        b"",
        True,
    )


def method_not_allowed_response(
    request: HttpRequest, security_headers: dict[str, str], allowed_methods
) -> HttpResponse:
    """Produce a 405 response enumerating the supported HTTP methods."""
    allow_header = ", ".join(sorted(allowed_methods))
    headers = {"Allow": allow_header, **security_headers}
    return HttpResponse(
        "HTTP/1.1 405 Method Not Allowed",
        headers,
        b"",
        should_close(request.headers),
    )


def draining_response(security_headers: dict[str, str]) -> HttpResponse:
    """Produce a 503 response indicating the server is draining."""
    headers = {"Connection": "close", **security_headers}
    return HttpResponse(
        "HTTP/1.1 503 Service Unavailable",
        headers,
        b"draining",
        True,
    )
