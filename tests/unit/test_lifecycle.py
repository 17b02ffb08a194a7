"""Unit tests for lifecycle state management."""

import socket
import threading
import time
from unittest.mock import Mock

from gateway.lifecycle.state import ServerLifecycle


class TestServerLifecycle:
    """Tests for ServerLifecycle state management."""

    def test_initial_state(self):
        """Test lifecycle starts in non-draining, non-stopped state."""
        lifecycle = ServerLifecycle()
        assert not lifecycle.should_stop()
        assert not lifecycle.is_draining()

    def test_begin_draining_sets_flags(self):
        """Test begin_draining sets both draining and stop flags."""
        lifecycle = ServerLifecycle()
        lifecycle.begin_draining()
        assert lifecycle.should_stop()
        assert lifecycle.is_draining()

    def test_termination_request_releases_waiter(self):
        """A signal recorded on another thread wakes the main thread."""
        lifecycle = ServerLifecycle()
        timer = threading.Timer(0.1, lifecycle.request_termination)
        timer.start()
        start = time.monotonic()
        lifecycle.wait_for_termination(poll_seconds=0.05)
        assert time.monotonic() - start < 2.0
        timer.join()

    def test_cleaned_up_worker_is_no_longer_closed(self):
        """Workers removed from tracking are not touched by shutdown."""
        lifecycle = ServerLifecycle()
        thread = threading.Thread(target=lambda: None)
        sock = Mock(spec=socket.socket)
        lifecycle.register_worker(thread, sock)
        lifecycle.cleanup_worker(thread)
        assert lifecycle.force_close_connections() == 0
        sock.shutdown.assert_not_called()

    def test_cleanup_nonexistent_worker_is_safe(self):
        """Test cleanup of unregistered worker does not raise."""
        lifecycle = ServerLifecycle()
        lifecycle.cleanup_worker(threading.Thread(target=lambda: None))

    def test_wait_for_workers_returns_true_when_empty(self):
        """Test wait_for_workers returns True when no workers active."""
        assert ServerLifecycle().wait_for_workers(timeout=1.0) is True

    def test_wait_for_workers_waits_for_completion(self):
        """Test wait_for_workers waits for active threads to finish."""
        lifecycle = ServerLifecycle()
        completed = threading.Event()

        def worker():
            time.sleep(0.2)
            completed.set()

        thread = threading.Thread(target=worker)
        lifecycle.register_worker(thread)
        thread.start()
        assert lifecycle.wait_for_workers(timeout=2.0) is True
        assert completed.is_set()

    def test_wait_for_workers_timeout_exceeded(self):
        """Test wait_for_workers returns False when timeout exceeded."""
        lifecycle = ServerLifecycle()
        release = threading.Event()
        thread = threading.Thread(target=release.wait, args=(10.0,), daemon=True)
        lifecycle.register_worker(thread)
        thread.start()
        try:
            start = time.monotonic()
            result = lifecycle.wait_for_workers(timeout=0.3)
            elapsed = time.monotonic() - start
            assert result is False
            assert 0.2 < elapsed < 0.8
        finally:
            release.set()
            thread.join()

    def test_multiple_workers_tracked(self):
        """Every tracked connection is reached by a forced close."""
        lifecycle = ServerLifecycle()
        threads = [threading.Thread(target=lambda: None) for _ in range(5)]
        for thread in threads:
            lifecycle.register_worker(thread, Mock(spec=socket.socket))
        assert lifecycle.force_close_connections() == 5
        for thread in threads:
            lifecycle.cleanup_worker(thread)
        assert lifecycle.force_close_connections() == 0


class TestConnectionClosing:
    """Idle and forced connection shutdown during draining."""

    def _tracked(self, lifecycle, state):
        thread = threading.Thread(target=lambda: None)
        sock = Mock(spec=socket.socket)
        lifecycle.register_worker(thread, sock)
        if state == "idle":
            lifecycle.mark_idle(thread)
        elif state == "active":
            lifecycle.mark_active(thread)
        return thread, sock

    def test_draining_closes_only_idle_keep_alive_connections(self):
        lifecycle = ServerLifecycle()
        _, idle_sock = self._tracked(lifecycle, "idle")
        _, active_sock = self._tracked(lifecycle, "active")
        _, new_sock = self._tracked(lifecycle, "new")

        lifecycle.begin_draining()

        idle_sock.shutdown.assert_called_once_with(socket.SHUT_RDWR)
        active_sock.shutdown.assert_not_called()
        new_sock.shutdown.assert_not_called()

    def test_worker_reading_again_is_not_idle(self):
        lifecycle = ServerLifecycle()
        thread, sock = self._tracked(lifecycle, "idle")
        lifecycle.mark_active(thread)
        assert lifecycle.close_idle_connections() == 0
        lifecycle.mark_idle(thread)
        assert lifecycle.close_idle_connections() == 1
        sock.shutdown.assert_called_once()

    def test_force_close_shuts_down_every_connection(self):
        lifecycle = ServerLifecycle()
        _, active_sock = self._tracked(lifecycle, "active")
        _, new_sock = self._tracked(lifecycle, "new")
        assert lifecycle.force_close_connections() == 2
        active_sock.shutdown.assert_called_once_with(socket.SHUT_RDWR)
        new_sock.shutdown.assert_called_once_with(socket.SHUT_RDWR)

    def test_already_closed_socket_is_tolerated(self):
        lifecycle = ServerLifecycle()
        _, sock = self._tracked(lifecycle, "idle")
        sock.shutdown.side_effect = OSError("not connected")
        assert lifecycle.force_close_connections() == 1

    def test_mark_idle_ignores_untracked_threads(self):
        lifecycle = ServerLifecycle()
        lifecycle.mark_idle(threading.Thread(target=lambda: None))
        assert lifecycle.close_idle_connections() == 0
