"""Server lifecycle state management."""

import logging
import socket
import threading
import time
from typing import Optional

from gateway.domain.correlation_id import CorrelationLoggerAdapter

LIFECYCLE_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("blob_gateway.lifecycle"), {}
)


def _shutdown_socket(client_socket: socket.socket) -> None:
    try:
        client_socket.shutdown(socket.SHUT_RDWR)
    except OSError:
        pass


class ServerLifecycle:
    """Tracks termination requests, draining state and worker connections."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._termination_event = threading.Event()
        self._stop_event = threading.Event()
        self._draining_event = threading.Event()
        self._workers: dict[threading.Thread, Optional[socket.socket]] = {}
        # Workers waiting for the next request on a keep-alive connection.
        # Freshly registered workers are not idle until they answer once.
        self._idle: set[threading.Thread] = set()

    def request_termination(self, signum: Optional[int] = None) -> None:
        """Record that a termination signal arrived; safe from signal handlers."""
        self._termination_event.set()

    def wait_for_termination(self, poll_seconds: float = 0.5) -> None:
        """Block until :meth:`request_termination` has been called."""
        while not self._termination_event.wait(poll_seconds):
            continue

    def should_stop(self) -> bool:
        """Check if the server should stop accepting new connections."""
        return self._stop_event.is_set()

    def is_draining(self) -> bool:
        """Check if the server is in draining mode."""
        return self._draining_event.is_set()

    def register_worker(
        self, thread: threading.Thread, client_socket: Optional[socket.socket] = None
    ) -> None:
        """Register a worker thread and the connection it serves."""
        with self._lock:
            self._workers[thread] = client_socket

    def cleanup_worker(self, thread: threading.Thread) -> None:
        """Remove a worker thread from tracking."""
        with self._lock:
            self._workers.pop(thread, None)
            self._idle.discard(thread)

    def mark_active(self, thread: threading.Thread) -> None:
        """Flag a worker as reading or answering a request."""
        with self._lock:
            self._idle.discard(thread)

    def mark_idle(self, thread: threading.Thread) -> None:
        """Flag a worker as waiting for the next request on its connection."""
        with self._lock:
            if thread in self._workers:
                self._idle.add(thread)

    def begin_draining(self) -> None:
        """Stop accepting connections and close the idle ones."""
        self._draining_event.set()
        self._stop_event.set()
        LIFECYCLE_LOGGER.info(
            "Beginning graceful shutdown", extra={"event": "draining_started"}
        )
        self.close_idle_connections()

    def close_idle_connections(self) -> int:
        """Shut down keep-alive connections with no request in flight."""
        with self._lock:
            idle = [
                sock
                for thread, sock in self._workers.items()
                if sock is not None and thread in self._idle
            ]
        for client_socket in idle:
            _shutdown_socket(client_socket)
        return len(idle)

    def force_close_connections(self) -> int:
        """Shut down every tracked connection, busy or not."""
        with self._lock:
            sockets = [sock for sock in self._workers.values() if sock is not None]
        for client_socket in sockets:
            _shutdown_socket(client_socket)
        if sockets:
            LIFECYCLE_LOGGER.warning(
                "Force-closed outstanding connections",
                extra={"event": "connections_forced", "remaining_workers": len(sockets)},
            )
        return len(sockets)

    def wait_for_workers(self, timeout: float) -> bool:
        """Wait for all worker threads to complete within the timeout."""
        deadline = time.monotonic() + timeout
        while True:
            with self._lock:
                self._workers = {
                    w: s for w, s in self._workers.items() if w.is_alive()
                }
                active_workers = list(self._workers)
            if not active_workers:
                return True
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                LIFECYCLE_LOGGER.warning(
                    "Shutdown timeout exceeded",
                    extra={
                        "event": "drain_timeout",
                        "remaining_workers": len(active_workers),
                    },
                )
                return False
            for worker in active_workers:
                worker.join(timeout=min(0.1, remaining))
                if time.monotonic() >= deadline:
                    break
