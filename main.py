"""Authenticated HTTP gateway serving objects from a blob bucket."""

import logging
import sys

from gateway.bootstrap.config import build_server_config, parse_cli_args
from gateway.bootstrap.logging_setup import configure_logging
from gateway.domain.correlation_id import CorrelationLoggerAdapter
from gateway.domain.credentials import configure
from gateway.domain.errors import ConfigError, ShutdownError
from gateway.lifecycle.server import GatewayServer
from gateway.storage.registry import open_bucket

MAIN_LOGGER = CorrelationLoggerAdapter(logging.getLogger("blob_gateway.main"), {})


def main(argv=None) -> int:
    """Open the bucket, serve until SIGINT/SIGTERM, then drain and exit."""
    args = parse_cli_args(sys.argv[1:] if argv is None else argv)
    configure_logging(args.log_level, args.log_destination)

    try:
        credentials = configure(args.authorize)
        config = build_server_config(args, credentials)
        bucket = open_bucket(args.bucket)
    except ConfigError as error:
        MAIN_LOGGER.critical(
            "Invalid startup configuration",
            extra={
                "event": "startup_failed",
                "error_type": type(error).__name__,
                "error": error.detail,
            },
        )
        return 1

    if not credentials:
        MAIN_LOGGER.warning(
            "No users authorized; every object request will be rejected",
            extra={"event": "no_credentials"},
        )

    MAIN_LOGGER.info(
        "Starting blob gateway",
        extra={
            "event": "server_starting",
            "bucket": args.bucket,
            "listen": args.listen,
            "authorized_users": len(credentials),
            "log_destination": args.log_destination,
            "log_level": args.log_level,
            "socket_timeout": config.socket_timeout,
            "shutdown_grace_seconds": config.shutdown_grace_seconds,
        },
    )

    server = GatewayServer(config, bucket)
    server.install_signal_handlers()
    server.start()
    server.wait_for_termination_signal()

    try:
        server.shutdown(config.shutdown_grace_seconds)
    except ShutdownError as error:
        MAIN_LOGGER.critical(
            "Could not stop server cleanly",
            extra={"event": "shutdown_failed", "error": error.detail},
        )
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
