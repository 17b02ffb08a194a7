"""Request routing logic."""

import logging

from gateway.domain.correlation_id import CorrelationLoggerAdapter
from gateway.domain.http_types import HttpRequest, HttpResponse
from gateway.handlers.object_handler import handle_object
from gateway.handlers.system_handlers import handle_root
from gateway.transport.context import WorkerContext

ROUTER_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("blob_gateway.pipeline.router"), {}
)


def route_request(request: HttpRequest, context: WorkerContext) -> HttpResponse:
    """Route the request to the root acknowledgement or the object handler."""
    if request.path == "/":
        if ROUTER_LOGGER.logger.isEnabledFor(logging.DEBUG):
            ROUTER_LOGGER.debug(
                "Route matched", extra={"event": "route_matched", "route": "/"}
            )
        return handle_root(request)

    if ROUTER_LOGGER.logger.isEnabledFor(logging.DEBUG):
        ROUTER_LOGGER.debug(
            "Route matched", extra={"event": "route_matched", "route": "/{key}"}
        )
    return handle_object(request, context.credentials, context.bucket)
