"""Error taxonomy for the gateway and the fixed kind-to-status table.

Every error raised by the credential store, the blob backends or the server
lifecycle derives from :class:`GatewayError` and carries an
:class:`ErrorKind`. The HTTP boundary never inspects exception types
directly; it looks the kind up in :data:`STATUS_BY_KIND`.
"""

import enum
from typing import Optional


class ErrorKind(enum.Enum):
    """Classification of gateway failures."""

    CONFIG = "config"
    AUTHENTICATION = "authentication"
    OBJECT_NOT_FOUND = "object_not_found"
    INVALID_KEY = "invalid_key"
    BACKEND = "backend"
    STREAMING = "streaming"
    SHUTDOWN = "shutdown"


# Only per-request kinds that can still be reported as a status code.
STATUS_BY_KIND: dict[ErrorKind, tuple[int, str]] = {
    ErrorKind.AUTHENTICATION: (401, "Unauthorized"),
    ErrorKind.OBJECT_NOT_FOUND: (404, "Not Found"),
    ErrorKind.INVALID_KEY: (400, "Bad Request"),
    ErrorKind.BACKEND: (500, "Internal Server Error"),
}


class GatewayError(Exception):
    """Base class for all gateway errors."""

    kind: ErrorKind = ErrorKind.BACKEND

    def __init__(self, detail: str = "") -> None:
        super().__init__(detail)
        self.detail = detail


class ConfigError(GatewayError):
    """Raised when startup configuration is malformed."""

    kind = ErrorKind.CONFIG


class StartupError(ConfigError):
    """Raised when the bucket cannot be opened at startup."""


class AuthenticationError(GatewayError):
    """Raised when a request carries missing or non-matching credentials."""

    kind = ErrorKind.AUTHENTICATION

    def __init__(self, detail: str = "", username: str = "") -> None:
        super().__init__(detail)
        self.username = username


class ObjectAccessError(GatewayError):
    """Raised when a key is absent or rejected; always a client error."""

    kind = ErrorKind.OBJECT_NOT_FOUND

    def __init__(self, detail: str = "", key: Optional[str] = None) -> None:
        super().__init__(detail)
        self.key = key


class ObjectNotFound(ObjectAccessError):
    """The requested object does not exist in the bucket."""

    kind = ErrorKind.OBJECT_NOT_FOUND


class InvalidObjectKey(ObjectAccessError):
    """The requested key is not acceptable as an object identifier."""

    kind = ErrorKind.INVALID_KEY


class BackendError(GatewayError):
    """Raised for any other storage backend failure."""

    kind = ErrorKind.BACKEND


class StreamingFailure(GatewayError):
    """Raised when copying a body fails after the headers were sent."""

    kind = ErrorKind.STREAMING

    def __init__(self, detail: str = "", bytes_sent: int = 0) -> None:
        super().__init__(detail)
        self.bytes_sent = bytes_sent


class ShutdownError(GatewayError):
    """Raised when the drain deadline is exceeded or closing fails."""

    kind = ErrorKind.SHUTDOWN


def status_for(kind: ErrorKind) -> tuple[int, str]:
    """Return the status code and reason phrase for a per-request error kind."""
    try:
        return STATUS_BY_KIND[kind]
    except KeyError as exc:
        raise ValueError(f"{kind.value} errors have no HTTP status") from exc
