"""Unauthenticated system endpoints."""

import logging

from gateway.bootstrap.config import SECURITY_HEADERS
from gateway.domain.correlation_id import CorrelationLoggerAdapter
from gateway.domain.http_types import HttpRequest, HttpResponse
from gateway.domain.response_builders import text_response

SYSTEM_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("blob_gateway.handlers.system"), {}
)


def handle_root(request: HttpRequest) -> HttpResponse:
    """Answer ``GET /`` with a plain-text acknowledgement."""
    if SYSTEM_LOGGER.logger.isEnabledFor(logging.DEBUG):
        SYSTEM_LOGGER.debug("Root request processed", extra={"event": "root_request"})
    return text_response("ok\n", request, SECURITY_HEADERS)
