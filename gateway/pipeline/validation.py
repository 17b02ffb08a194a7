"""Request validation utilities."""

from gateway.domain.http_types import HttpRequest
from gateway.domain.response_builders import (
    bad_request_response,
    method_not_allowed_response,
)


class RequestEntityTooLarge(Exception):
    """Raised when a request body exceeds configured limits."""


class RequestHeaderTooLarge(Exception):
    """Raised when the request header block exceeds configured limits."""


def enforce_allowed_method(
    request: HttpRequest,
    allowed_methods: set[str],
    security_headers: dict[str, str],
):
    """Ensure the HTTP method is part of the supported allowlist."""
    if request.method in allowed_methods:
        return None

    return method_not_allowed_response(request, security_headers, allowed_methods)


def enforce_absolute_path(request: HttpRequest, security_headers: dict[str, str]):
    """Reject request targets that are not origin-form paths."""
    if not request.path.startswith("/"):
        return bad_request_response(request, security_headers)
    return None


def validate_request(
    request: HttpRequest,
    allowed_methods: set[str],
    security_headers: dict[str, str],
):
    """Return an error response when the request fails validation checks."""
    method_error = enforce_allowed_method(request, allowed_methods, security_headers)
    if method_error is not None:
        return method_error

    return enforce_absolute_path(request, security_headers)
