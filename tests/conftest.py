"""Shared pytest fixtures for integration and unit tests."""

from __future__ import annotations

import subprocess
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Generator, TypedDict

import pytest

from tests.utils.http import reserve_port, wait_for_port

if TYPE_CHECKING:
    from _pytest.tmpdir import TempPathFactory

PROJECT_ROOT = Path(__file__).resolve().parent.parent
SERVER_ENTRYPOINT = PROJECT_ROOT / "main.py"
TEST_USER = "carlos"
TEST_PASSWORD = "asd123"


class ServerProcessInfo(TypedDict):
    """Metadata describing a running gateway fixture instance."""

    base_url: str
    host: str
    port: int
    directory: Path
    process: subprocess.Popen[bytes]
    log_file: Path


def gateway_command(
    directory: Path, host: str, port: int, extra_args: list[str] | None = None
) -> list[str]:
    """Build the command line that starts the gateway against ``directory``."""
    args = [
        sys.executable,
        str(SERVER_ENTRYPOINT),
        "--bucket",
        directory.as_uri(),
        "--listen",
        f"{host}:{port}",
        "--authorize",
        f"{TEST_USER}:{TEST_PASSWORD}",
    ]
    if extra_args:
        args.extend(extra_args)
    return args


def _launch_server(
    directory: Path,
    log_file: Path,
    extra_args: list[str] | None = None,
) -> Generator[ServerProcessInfo, None, None]:
    host = "127.0.0.1"
    port = reserve_port(host)
    args = gateway_command(directory, host, port, extra_args)
    args.extend(["--log-destination", str(log_file)])

    with subprocess.Popen(
        args,
        cwd=PROJECT_ROOT,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
    ) as process:
        try:
            wait_for_port(host, port)
        except Exception:
            process.terminate()
            stdout, stderr = process.communicate(timeout=5)
            print(f"\nServer stdout:\n{stdout.decode()}")
            print(f"\nServer stderr:\n{stderr.decode()}")
            raise

        yield {
            "base_url": f"http://{host}:{port}",
            "host": host,
            "port": port,
            "directory": directory,
            "process": process,
            "log_file": log_file,
        }

        if process.poll() is None:
            process.terminate()
            try:
                process.wait(timeout=5)
            except subprocess.TimeoutExpired:
                process.kill()


@pytest.fixture(name="bucket_dir")
def _bucket_dir(tmp_path_factory: "TempPathFactory") -> Path:
    """Local directory served as a ``file://`` bucket."""
    directory = tmp_path_factory.mktemp("bucket")
    (directory / "hello.txt").write_bytes(b"hi")
    return directory


@pytest.fixture(name="server_process")
def _server_process(
    bucket_dir: Path, tmp_path_factory: "TempPathFactory"
) -> Generator[ServerProcessInfo, None, None]:
    """Launch the gateway in a background process for integration tests."""
    log_file = tmp_path_factory.mktemp("logs") / "gateway.log"
    yield from _launch_server(bucket_dir, log_file, ["--shutdown-grace-seconds", "5"])


@pytest.fixture()
def base_url(server_process: ServerProcessInfo) -> str:
    """Expose the running gateway base URL to integration tests."""
    return server_process["base_url"]


@pytest.fixture()
def auth() -> tuple[str, str]:
    """Credentials accepted by the launched gateway."""
    return (TEST_USER, TEST_PASSWORD)
