"""Static table mapping bucket URI schemes to backends."""

import logging

from gateway.domain.correlation_id import CorrelationLoggerAdapter
from gateway.storage.base import (
    BlobBackend,
    BucketHandle,
    ensure_scheme,
    parse_bucket_uri,
)
from gateway.storage.fsspec_backend import FsspecBackend

REGISTRY_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("blob_gateway.storage.registry"), {}
)

_S3 = FsspecBackend("s3")
_GCS = FsspecBackend("gcs")
_AZURE = FsspecBackend("az")
_LOCAL = FsspecBackend("file")
_MEMORY = FsspecBackend("memory")

BACKENDS: dict[str, BlobBackend] = {
    "s3": _S3,
    "gs": _GCS,
    "gcs": _GCS,
    "azblob": _AZURE,
    "az": _AZURE,
    "abfs": _AZURE,
    "file": _LOCAL,
    "mem": _MEMORY,
    "memory": _MEMORY,
}


def backend_for(scheme: str) -> BlobBackend:
    """Return the backend registered for ``scheme``."""
    return BACKENDS[scheme]


def open_bucket(uri: str) -> BucketHandle:
    """Resolve the URI scheme and open the bucket, raising StartupError."""
    bucket_uri = parse_bucket_uri(uri)
    ensure_scheme(bucket_uri, BACKENDS)
    backend = backend_for(bucket_uri.scheme)
    handle = backend.open(bucket_uri)
    REGISTRY_LOGGER.info(
        "Bucket opened",
        extra={"event": "bucket_opened", "bucket": uri, "backend": backend.name},
    )
    return handle
