"""Authenticated object download handler."""

import logging
from typing import BinaryIO, Iterator

from gateway.bootstrap.config import COPY_CHUNK_SIZE, SECURITY_HEADERS
from gateway.domain.correlation_id import CorrelationLoggerAdapter
from gateway.domain.credentials import CredentialSet
from gateway.domain.errors import (
    AuthenticationError,
    BackendError,
    ObjectAccessError,
)
from gateway.domain.http_types import HttpRequest, HttpResponse
from gateway.domain.object_keys import extract_object_key, validate_object_key
from gateway.domain.response_builders import error_response, object_stream_response
from gateway.security.basic_auth import authenticate
from gateway.storage.base import BucketHandle

OBJECT_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("blob_gateway.handlers.object"), {}
)


class ObjectStream:
    """Chunk iterator over an object reader that owns the reader.

    ``close()`` releases the reader whether or not iteration ever started,
    so the response writer can guarantee release on every exit path.
    """

    def __init__(self, reader: BinaryIO, key: str, chunk_size: int = COPY_CHUNK_SIZE):
        self._reader = reader
        self._key = key
        self._chunk_size = chunk_size
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def __iter__(self) -> Iterator[bytes]:
        while not self._closed:
            chunk = self._reader.read(self._chunk_size)
            if not chunk:
                break
            yield chunk

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self._reader.close()
        except OSError as error:
            OBJECT_LOGGER.warning(
                "Failed to close object reader",
                extra={
                    "event": "reader_close_failed",
                    "object_key": self._key,
                    "error_type": type(error).__name__,
                },
            )


def handle_object(
    request: HttpRequest, credentials: CredentialSet, bucket: BucketHandle
) -> HttpResponse:
    """Authenticate the request and stream the object named by its path."""
    key = extract_object_key(request.path)
    OBJECT_LOGGER.info(
        "Object requested", extra={"event": "object_requested", "object_key": key}
    )

    try:
        authenticate(request, credentials)
    except AuthenticationError as error:
        return error_response(error, request, SECURITY_HEADERS)

    try:
        reader = bucket.new_reader(validate_object_key(key))
    except ObjectAccessError as error:
        OBJECT_LOGGER.info(
            "Object not readable",
            extra={
                "event": "object_unavailable",
                "object_key": key,
                "error_type": type(error).__name__,
            },
        )
        return error_response(error, request, SECURITY_HEADERS)
    except BackendError as error:
        OBJECT_LOGGER.error(
            "Backend failure opening object",
            extra={
                "event": "backend_error",
                "object_key": key,
                "error": error.detail,
            },
        )
        return error_response(error, request, SECURITY_HEADERS)

    return object_stream_response(
        request, ObjectStream(reader, key), SECURITY_HEADERS
    )
