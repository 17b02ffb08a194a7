"""Context object shared across worker threads."""

from dataclasses import dataclass
from typing import Optional

from gateway.bootstrap.config import ServerConfig
from gateway.domain.credentials import CredentialSet
from gateway.lifecycle.state import ServerLifecycle
from gateway.storage.base import BucketHandle


@dataclass
class WorkerContext:
    """Dependencies shared across handler threads; read-only while serving."""

    credentials: CredentialSet
    bucket: BucketHandle
    lifecycle: Optional[ServerLifecycle] = None
    config: Optional[ServerConfig] = None
