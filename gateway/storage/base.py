"""Bucket URIs, the backend capability interface and the shared bucket handle."""

import logging
import urllib.parse
from dataclasses import dataclass, field
from typing import Any, BinaryIO, Protocol

from gateway.domain.correlation_id import CorrelationLoggerAdapter
from gateway.domain.errors import BackendError, StartupError

STORAGE_LOGGER = CorrelationLoggerAdapter(logging.getLogger("blob_gateway.storage"), {})

_BOOLEAN_OPTIONS = {"true": True, "false": False}


@dataclass(frozen=True)
class BucketURI:
    """A parsed bucket URI such as ``s3://bucket/prefix?anon=true``."""

    raw: str
    scheme: str
    root: str
    storage_options: dict[str, Any] = field(default_factory=dict)

    def object_path(self, key: str) -> str:
        """Return the backend path of ``key`` inside this bucket."""
        if not self.root:
            return key
        if self.root.endswith("/"):
            return f"{self.root}{key}"
        return f"{self.root}/{key}"


def parse_bucket_uri(uri: str) -> BucketURI:
    """Split a bucket URI into scheme, root path and storage options."""
    try:
        parsed = urllib.parse.urlsplit(uri)
    except ValueError as exc:
        raise StartupError(f"malformed bucket URI {uri!r}: {exc}") from exc
    if not parsed.scheme:
        raise StartupError(f"bucket URI {uri!r} has no scheme")
    root = f"{parsed.netloc}{parsed.path}"
    if len(root) > 1:
        root = root.rstrip("/")
    options: dict[str, Any] = {}
    for name, value in urllib.parse.parse_qsl(parsed.query):
        options[name] = _BOOLEAN_OPTIONS.get(value.lower(), value)
    return BucketURI(uri, parsed.scheme.lower(), root, options)


class BlobBackend(Protocol):
    """Capability interface implemented once per storage provider."""

    name: str

    def open(self, uri: BucketURI) -> "BucketHandle":
        """Connect to the bucket or raise StartupError."""

    def new_reader(self, handle: "BucketHandle", key: str) -> BinaryIO:
        """Open a streaming reader for ``key`` inside the bucket."""


class BucketHandle:
    """Open bucket shared read-only by every worker thread."""

    def __init__(self, uri: BucketURI, backend: BlobBackend, filesystem: Any) -> None:
        self.uri = uri
        self.backend = backend
        self.filesystem = filesystem
        self._closed = False

    @property
    def closed(self) -> bool:
        """True once :meth:`close` has run."""
        return self._closed

    def new_reader(self, key: str) -> BinaryIO:
        """Open a reader for ``key``; the caller owns and must close it."""
        if self._closed:
            raise BackendError("bucket handle is closed")
        return self.backend.new_reader(self, key)

    def close(self) -> None:
        """Release the bucket. Called once, after serving has stopped."""
        if self._closed:
            return
        self._closed = True
        invalidate = getattr(self.filesystem, "invalidate_cache", None)
        if invalidate is not None:
            invalidate()
        STORAGE_LOGGER.info(
            "Bucket closed",
            extra={"event": "bucket_closed", "bucket": self.uri.raw},
        )


def ensure_scheme(uri: BucketURI, known_schemes) -> None:
    """Raise StartupError when no backend is registered for the URI scheme."""
    if uri.scheme not in known_schemes:
        supported = ", ".join(sorted(known_schemes))
        raise StartupError(
            f"unsupported bucket scheme {uri.scheme!r} (supported: {supported})"
        )
