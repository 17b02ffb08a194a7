"""HTTP Basic authentication against the static credential set."""

import base64
import binascii
import logging
from dataclasses import dataclass
from typing import Optional

from gateway.domain.correlation_id import CorrelationLoggerAdapter
from gateway.domain.credentials import CredentialSet
from gateway.domain.errors import AuthenticationError
from gateway.domain.http_types import HttpRequest

AUTH_LOGGER = CorrelationLoggerAdapter(logging.getLogger("blob_gateway.security.auth"), {})

BASIC_PREFIX = "basic "


@dataclass(frozen=True)
class BasicCredentials:
    """Username and password decoded from an Authorization header."""

    username: str
    password: str


def parse_basic_authorization(header_value: Optional[str]) -> Optional[BasicCredentials]:
    """Decode a ``Basic`` Authorization header, or None when absent or malformed."""
    if not header_value or header_value[: len(BASIC_PREFIX)].lower() != BASIC_PREFIX:
        return None
    encoded = header_value[len(BASIC_PREFIX) :].strip()
    try:
        decoded = base64.b64decode(encoded, validate=True).decode("utf-8")
    except (binascii.Error, ValueError):
        return None
    username, separator, password = decoded.partition(":")
    if not separator:
        return None
    return BasicCredentials(username, password)


def authenticate(request: HttpRequest, credentials: CredentialSet) -> str:
    """Return the authenticated username or raise AuthenticationError."""
    supplied = parse_basic_authorization(request.headers.get("authorization"))
    if supplied is None:
        AUTH_LOGGER.warning(
            "Unauthorized request",
            extra={
                "event": "unauthorized",
                "username": "",
                "route": request.path,
            },
        )
        raise AuthenticationError("missing or malformed basic credentials")

    if not credentials.is_authorized(supplied.username, supplied.password):
        AUTH_LOGGER.warning(
            "Unauthorized request",
            extra={
                "event": "unauthorized",
                "username": supplied.username,
                "route": request.path,
            },
        )
        raise AuthenticationError(
            "credentials not authorized", username=supplied.username
        )
    return supplied.username
