"""Start, signal handling and bounded shutdown of the gateway server."""

import logging
import signal
import threading
from typing import Optional

from gateway.bootstrap.config import ServerConfig
from gateway.bootstrap.socket_factory import create_server_socket
from gateway.domain.correlation_id import CorrelationLoggerAdapter
from gateway.domain.errors import ShutdownError
from gateway.lifecycle.state import ServerLifecycle
from gateway.storage.base import BucketHandle
from gateway.transport.accept_loop import accept_connections
from gateway.transport.context import WorkerContext

SERVER_LOGGER = CorrelationLoggerAdapter(logging.getLogger("blob_gateway.server"), {})

TERMINATION_SIGNALS = (signal.SIGINT, signal.SIGTERM)
# Time granted to workers to unwind after their sockets were force-closed.
FORCED_CLOSE_WAIT_SECONDS = 1.0


class GatewayServer:
    """Owns the listener thread, worker tracking and the bucket handle."""

    def __init__(
        self,
        config: ServerConfig,
        bucket: BucketHandle,
        lifecycle: Optional[ServerLifecycle] = None,
    ) -> None:
        self.config = config
        self.bucket = bucket
        self.lifecycle = lifecycle if lifecycle is not None else ServerLifecycle()
        self.context = WorkerContext(
            credentials=config.credentials,
            bucket=bucket,
            lifecycle=self.lifecycle,
            config=config,
        )
        self._accept_thread: Optional[threading.Thread] = None
        self.address: Optional[tuple[str, int]] = None

    def install_signal_handlers(self) -> None:
        """Route SIGINT/SIGTERM to the lifecycle; must run on the main thread."""

        def _on_signal(signum: int, _frame) -> None:
            SERVER_LOGGER.info(
                "Received shutdown signal",
                extra={"event": "signal_received", "signal": signum},
            )
            self.lifecycle.request_termination(signum)

        for signum in TERMINATION_SIGNALS:
            signal.signal(signum, _on_signal)

    def start(self) -> None:
        """Bind the listener and serve on a background thread."""
        server_socket = create_server_socket(
            self.config.listen_host, self.config.listen_port
        )
        self.address = server_socket.getsockname()[:2]
        self._accept_thread = threading.Thread(
            target=accept_connections,
            args=(server_socket, self.lifecycle, self.context),
            name="accept-loop",
            daemon=True,
        )
        self._accept_thread.start()
        SERVER_LOGGER.info(
            "Listening",
            extra={
                "event": "server_listening",
                "host": self.address[0],
                "port": self.address[1],
            },
        )

    def wait_for_termination_signal(self) -> None:
        """Block the calling thread until a termination signal arrives."""
        self.lifecycle.wait_for_termination()

    def shutdown(self, deadline: Optional[float] = None) -> None:
        """Drain in-flight requests, then close the bucket.

        Requests still running at the deadline have their connections
        force-closed. Raises ShutdownError, leaving the bucket open, when
        workers outlive even that.
        """
        if deadline is None:
            deadline = self.config.shutdown_grace_seconds
        SERVER_LOGGER.info(
            "Stopping",
            extra={"event": "server_stopping", "shutdown_grace_seconds": deadline},
        )
        self.lifecycle.begin_draining()
        if self._accept_thread is not None:
            self._accept_thread.join()

        drained = self.lifecycle.wait_for_workers(deadline)
        if not drained:
            self.lifecycle.force_close_connections()
            drained = self.lifecycle.wait_for_workers(FORCED_CLOSE_WAIT_SECONDS)

        if not drained:
            SERVER_LOGGER.error(
                "Leaving bucket open while workers are still running",
                extra={"event": "bucket_left_open", "bucket": self.bucket.uri.raw},
            )
            raise ShutdownError(
                f"workers still running {deadline} seconds after shutdown began"
            )
        self.bucket.close()
        SERVER_LOGGER.info("Server shutdown complete", extra={"event": "server_stopped"})
