"""Shared fixtures for unit tests."""

import logging

import fsspec
import pytest

from gateway.domain.credentials import configure
from gateway.storage.registry import open_bucket


@pytest.fixture(autouse=True)
def enable_log_propagation():
    """Ensure logs propagate to root so caplog can catch them."""
    logger = logging.getLogger("blob_gateway")
    old_propagate = logger.propagate
    old_level = logger.level
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
    yield
    logger.propagate = old_propagate
    logger.setLevel(old_level)


@pytest.fixture(name="memory_fs")
def fixture_memory_fs():
    """Provide the process-wide in-memory filesystem, emptied after each test."""
    filesystem = fsspec.filesystem("memory")
    yield filesystem
    filesystem.store.clear()
    filesystem.pseudo_dirs.clear()
    filesystem.pseudo_dirs.append("")


@pytest.fixture(name="memory_bucket")
def fixture_memory_bucket(memory_fs):
    """Open ``mem://`` holding ``hello.txt`` = ``hi``."""
    memory_fs.pipe("/hello.txt", b"hi")
    handle = open_bucket("mem://")
    yield handle
    handle.close()


@pytest.fixture(name="credentials")
def fixture_credentials():
    """Credential set allowing carlos:asd123."""
    return configure(["carlos:asd123"])
