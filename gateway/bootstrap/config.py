"""Gateway configuration and CLI argument parsing."""

import argparse
import os
from dataclasses import dataclass
from typing import Optional

from gateway.domain.credentials import CredentialSet
from gateway.domain.errors import ConfigError


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value is not None else default


def _env_list(name: str, default: list[str]) -> list[str]:
    value = os.getenv(name)
    if value is None:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]


MAX_HEADER_BYTES = _env_int("BLOB_GATEWAY_MAX_HEADER_BYTES", 16 * 1024)
MAX_BODY_BYTES = _env_int("BLOB_GATEWAY_MAX_BODY_BYTES", 64 * 1024)
COPY_CHUNK_SIZE = _env_int("BLOB_GATEWAY_COPY_CHUNK_SIZE", 64 * 1024)
DEFAULT_SOCKET_TIMEOUT = _env_int("BLOB_GATEWAY_SOCKET_TIMEOUT", 60)
DEFAULT_SHUTDOWN_GRACE_SECONDS = _env_int("BLOB_GATEWAY_SHUTDOWN_GRACE_SECONDS", 15)
DEFAULT_LISTEN = os.getenv("BLOB_GATEWAY_LISTEN", "127.0.0.1:8080")

HEADER_DELIMITER = b"\r\n\r\n"
ALLOWED_METHODS = {"GET"}

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "Cache-Control": "no-store",
}


@dataclass
class ServerConfig:
    """Runtime settings built once at startup and passed to every component."""

    listen_host: str
    listen_port: int
    socket_timeout: int
    shutdown_grace_seconds: int
    credentials: CredentialSet


def parse_listen_address(value: str) -> tuple[str, int]:
    """Split ``host:port`` (or ``[v6]:port``) into its parts."""
    host, separator, port_text = value.rpartition(":")
    if not separator or not port_text.isdigit():
        raise ConfigError(f"invalid listen address {value!r}: expected host:port")
    port = int(port_text)
    if port > 65535:
        raise ConfigError(f"invalid listen port {port}")
    host = host.strip("[]") or "0.0.0.0"
    return host, port


def parse_cli_args(argv: list[str]) -> argparse.Namespace:
    """Return parsed CLI arguments for gateway configuration."""
    parser = argparse.ArgumentParser(
        description="Serve objects from a blob bucket behind HTTP Basic auth"
    )
    parser.add_argument(
        "--authorize",
        action="append",
        default=None,
        metavar="USER:PASSWORD",
        help="user/password allowed to authenticate (repeatable, e.g. carlos:asd123)",
    )
    parser.add_argument(
        "--bucket",
        default=os.getenv("BLOB_GATEWAY_BUCKET"),
        help="bucket URI (e.g. s3://foo, gs://foo, azblob://foo, file:///srv/blobs)",
    )
    parser.add_argument(
        "--listen",
        "--address",
        dest="listen",
        default=DEFAULT_LISTEN,
        help="address to listen on (e.g. 127.0.0.1:9090)",
    )
    default_log_level = os.getenv("BLOB_GATEWAY_LOG_LEVEL", "INFO").upper()
    default_destination = os.getenv("BLOB_GATEWAY_LOG_DESTINATION", "stdout")
    parser.add_argument(
        "--log-level",
        default=default_log_level,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        type=str.upper,
    )
    parser.add_argument(
        "--log-destination",
        default=default_destination,
        help="stdout or a file path",
    )
    parser.add_argument(
        "--socket-timeout",
        type=int,
        default=DEFAULT_SOCKET_TIMEOUT,
        help="Socket timeout in seconds for client I/O",
    )
    parser.add_argument(
        "--shutdown-grace-seconds",
        type=int,
        default=DEFAULT_SHUTDOWN_GRACE_SECONDS,
        help="Seconds to wait for in-flight requests on shutdown",
    )
    args = parser.parse_args(argv)
    if args.authorize is None:
        args.authorize = _env_list("BLOB_GATEWAY_AUTHORIZE", [])
    return args


def build_server_config(
    args: argparse.Namespace, credentials: Optional[CredentialSet] = None
) -> ServerConfig:
    """Validate parsed arguments into a :class:`ServerConfig`."""
    if not args.bucket:
        raise ConfigError("a bucket URI is required (--bucket)")
    host, port = parse_listen_address(args.listen)
    return ServerConfig(
        listen_host=host,
        listen_port=port,
        socket_timeout=args.socket_timeout,
        shutdown_grace_seconds=args.shutdown_grace_seconds,
        credentials=credentials if credentials is not None else CredentialSet(),
    )
