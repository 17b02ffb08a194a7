"""Blob backend built on fsspec filesystems."""

from __future__ import annotations

import logging
from typing import BinaryIO

import fsspec

from gateway.domain.correlation_id import CorrelationLoggerAdapter
from gateway.domain.errors import (
    BackendError,
    InvalidObjectKey,
    ObjectNotFound,
    StartupError,
)
from gateway.storage.base import BucketHandle, BucketURI

FSSPEC_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("blob_gateway.storage.fsspec"), {}
)


class FsspecBackend:
    """Reads objects through one fsspec protocol (s3, gcs, az, file, memory)."""

    def __init__(self, protocol: str) -> None:
        self.name = protocol
        self.protocol = protocol

    def __repr__(self) -> str:
        return f"FsspecBackend({self.protocol!r})"

    def open(self, uri: BucketURI) -> BucketHandle:
        try:
            filesystem = fsspec.filesystem(self.protocol, **uri.storage_options)
        except ImportError as exc:
            raise StartupError(
                f"backend library for {self.protocol!r} is not installed: {exc}"
            ) from exc
        except (ValueError, TypeError, OSError) as exc:
            raise StartupError(f"cannot open bucket {uri.raw!r}: {exc}") from exc

        if uri.root:
            try:
                exists = filesystem.exists(uri.root)
            except Exception as exc:  # pylint: disable=broad-except
                raise StartupError(
                    f"cannot reach bucket {uri.raw!r}: {exc}"
                ) from exc
            if not exists:
                raise StartupError(f"bucket {uri.raw!r} does not exist")

        FSSPEC_LOGGER.debug(
            "Filesystem ready",
            extra={"event": "filesystem_ready", "protocol": self.protocol},
        )
        return BucketHandle(uri, self, filesystem)

    def new_reader(self, handle: BucketHandle, key: str) -> BinaryIO:
        path = handle.uri.object_path(key)
        try:
            return handle.filesystem.open(path, "rb")
        except (FileNotFoundError, NotADirectoryError) as exc:
            raise ObjectNotFound(f"object {key!r} not found", key=key) from exc
        except IsADirectoryError as exc:
            raise InvalidObjectKey(f"object {key!r} is a directory", key=key) from exc
        except Exception as exc:  # pylint: disable=broad-except
            raise BackendError(
                f"{type(exc).__name__} opening {key!r}: {exc}"
            ) from exc
