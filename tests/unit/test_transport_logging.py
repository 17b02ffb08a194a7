"""Unit tests for transport layer behavior and logging events."""

import base64
import logging
import socket
from unittest.mock import MagicMock, patch

import pytest

from gateway.lifecycle.state import ServerLifecycle
from gateway.pipeline.validation import RequestEntityTooLarge
from gateway.transport.accept_loop import accept_connections
from gateway.transport.context import WorkerContext
from gateway.transport.worker import handle_client


def _events(caplog):
    return [getattr(r, "event", None) for r in caplog.records]


def _sent(client_sock) -> bytes:
    return b"".join(call.args[0] for call in client_sock.sendall.call_args_list)


@pytest.fixture(name="context")
def fixture_context(credentials, memory_bucket):
    """Worker context over the in-memory bucket, without a lifecycle."""
    return WorkerContext(credentials=credentials, bucket=memory_bucket)


@pytest.fixture(name="mock_lifecycle")
def fixture_mock_lifecycle():
    """Lifecycle that asks the accept loop to stop on the first poll."""
    lifecycle = MagicMock(spec=ServerLifecycle)
    lifecycle.should_stop.return_value = True
    lifecycle.is_draining.return_value = False
    return lifecycle


def test_accept_loop_spawns_registered_worker(mock_lifecycle, caplog):
    """Accepted connections get a tracked worker; the listener is closed on exit."""
    caplog.set_level(logging.DEBUG)
    server_sock = MagicMock()
    client_sock = MagicMock()
    server_sock.accept.side_effect = [
        (client_sock, ("127.0.0.1", 12345)),
        socket.timeout(),
    ]

    with patch("gateway.transport.accept_loop.threading.Thread") as mock_thread:
        accept_connections(server_sock, mock_lifecycle, MagicMock())

    mock_lifecycle.register_worker.assert_called_once_with(
        mock_thread.return_value, client_sock
    )
    mock_thread.return_value.start.assert_called_once()
    assert mock_thread.call_args.kwargs["daemon"] is True
    server_sock.close.assert_called_once()
    accepted = next(
        r for r in caplog.records if getattr(r, "event", None) == "client_accepted"
    )
    assert accepted.client == "127.0.0.1:12345"
    assert "listener_closed" in _events(caplog)


def test_accept_loop_rejects_connections_while_draining(mock_lifecycle):
    """A connection accepted after draining began receives 503."""
    mock_lifecycle.is_draining.return_value = True
    server_sock = MagicMock()
    client_sock = MagicMock()
    server_sock.accept.side_effect = [
        (client_sock, ("127.0.0.1", 1)),
        socket.timeout(),
    ]

    accept_connections(server_sock, mock_lifecycle, MagicMock())

    assert _sent(client_sock).startswith(b"HTTP/1.1 503")
    client_sock.close.assert_called_once()
    mock_lifecycle.register_worker.assert_not_called()


def test_worker_logs_request_lifecycle(context, caplog):
    """A served request logs its status under one correlation ID."""
    caplog.set_level(logging.DEBUG)
    client_sock = MagicMock()
    client_sock.recv.side_effect = [
        b"GET / HTTP/1.1\r\nHost: localhost\r\n\r\n",
        b"",
    ]

    handle_client(client_sock, ("127.0.0.1", 54321), context)

    assert _sent(client_sock).endswith(b"ok\n")
    complete = next(
        r for r in caplog.records if getattr(r, "event", None) == "request_complete"
    )
    assert complete.status_code == 200
    assert complete.route == "/"
    assert complete.correlation_id != "-"
    assert "socket_closed" in _events(caplog)
    client_sock.close.assert_called_once()


def test_worker_streams_object_over_keep_alive(context):
    """Two requests on one connection are both answered."""
    token = base64.b64encode(b"carlos:asd123").decode()
    request = (
        f"GET /hello.txt HTTP/1.1\r\nAuthorization: Basic {token}\r\n\r\n".encode()
    )
    client_sock = MagicMock()
    client_sock.recv.side_effect = [request + request, b""]

    handle_client(client_sock, ("127.0.0.1", 54321), context)

    sent = _sent(client_sock)
    assert sent.count(b"HTTP/1.1 200 OK") == 2
    assert sent.count(b"2\r\nhi\r\n0\r\n\r\n") == 2


def test_worker_echoes_incoming_request_id(context):
    """A client-supplied X-Request-ID is reused for the response."""
    client_sock = MagicMock()
    client_sock.recv.side_effect = [
        b"GET / HTTP/1.1\r\nX-Request-ID: trace-42\r\nConnection: close\r\n\r\n",
    ]

    handle_client(client_sock, ("127.0.0.1", 54321), context)

    assert b"X-Request-ID: trace-42\r\n" in _sent(client_sock)


def test_worker_logs_body_size_exceeded(context, caplog):
    """Oversized bodies are answered with 413 and logged."""
    caplog.set_level(logging.WARNING)
    client_sock = MagicMock()

    with patch("gateway.transport.worker.receive_request") as mock_recv:
        mock_recv.side_effect = RequestEntityTooLarge("Too big")
        handle_client(client_sock, ("127.0.0.1", 54321), context)

    record = next(
        r for r in caplog.records if getattr(r, "event", None) == "body_size_exceeded"
    )
    assert record.client == "127.0.0.1:54321"
    assert _sent(client_sock).startswith(b"HTTP/1.1 413")


def test_worker_answers_malformed_request_with_400(context):
    """Garbage request lines get a 400 and the connection closes."""
    client_sock = MagicMock()
    client_sock.recv.side_effect = [b"NONSENSE\r\n\r\n"]

    handle_client(client_sock, ("127.0.0.1", 54321), context)

    assert _sent(client_sock).startswith(b"HTTP/1.1 400 Bad Request")


def test_worker_logs_streaming_failure(credentials, caplog):
    """A failure after the headers were sent is logged and closes the socket."""
    caplog.set_level(logging.ERROR)
    reader = MagicMock()
    reader.read.side_effect = OSError("backend connection reset")
    bucket = MagicMock()
    bucket.new_reader.return_value = reader
    token = base64.b64encode(b"carlos:asd123").decode()
    client_sock = MagicMock()
    client_sock.recv.side_effect = [
        f"GET /a.txt HTTP/1.1\r\nAuthorization: Basic {token}\r\n\r\n".encode(),
    ]

    handle_client(
        client_sock,
        ("127.0.0.1", 54321),
        WorkerContext(credentials=credentials, bucket=bucket),
    )

    assert _sent(client_sock).startswith(b"HTTP/1.1 200 OK")
    assert "streaming_failure" in _events(caplog)
    reader.close.assert_called_once()
    client_sock.close.assert_called_once()


def test_worker_stops_after_response_when_draining(context):
    """Keep-alive connections end once the server is draining."""
    lifecycle = MagicMock(spec=ServerLifecycle)
    lifecycle.is_draining.return_value = True
    context.lifecycle = lifecycle
    client_sock = MagicMock()
    client_sock.recv.side_effect = [b"GET / HTTP/1.1\r\n\r\n", b"GET / HTTP/1.1\r\n\r\n"]

    handle_client(client_sock, ("127.0.0.1", 54321), context)

    assert client_sock.recv.call_count == 1
    lifecycle.cleanup_worker.assert_called_once()


def test_worker_answers_undecodable_headers_with_400(context, caplog):
    """Header bytes that are not UTF-8 are a malformed request, not a socket error."""
    caplog.set_level(logging.WARNING)
    client_sock = MagicMock()
    client_sock.recv.side_effect = [b"GET /a.txt HTTP/1.1\r\nX-Name: \xff\xfe\r\n\r\n"]

    handle_client(client_sock, ("127.0.0.1", 54321), context)

    assert _sent(client_sock).startswith(b"HTTP/1.1 400 Bad Request")
    events = _events(caplog)
    assert "malformed_request" in events
    assert "connection_error" not in events
