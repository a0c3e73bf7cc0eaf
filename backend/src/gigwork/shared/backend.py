"""
Wires the document store, blob store, identity service and live view
publisher together. Handlers obtain the process-wide instance through
``get_backend``.
"""
from typing import Optional

from .auth import CognitoIdentityService, IdentityService, InMemoryIdentityService
from .blob_store import BlobStore, InMemoryBlobStore
from .config import Config, config
from .logging import logger
from .store import DocumentStore


class Backend:

    def __init__(self, store: DocumentStore, blobs: BlobStore, identity: IdentityService,
                 cfg: Config = config, publisher=None):
        self.store = store
        self.blobs = blobs
        self.identity = identity
        self.config = cfg
        # ViewPublisher pushing live view snapshots to WebSocket connections
        self.publisher = publisher


def memory_backend(cfg: Optional[Config] = None) -> Backend:
    from .connections import InMemoryViewPublisher
    from .memory_store import InMemoryDocumentStore
    return Backend(InMemoryDocumentStore(), InMemoryBlobStore(), InMemoryIdentityService(),
                   cfg or Config(), InMemoryViewPublisher())


def aws_backend(cfg: Config = config) -> Backend:
    from .connections import ApiGatewayViewPublisher
    from .dynamo import DynamoDocumentStore
    from .s3_utils import S3BlobStore
    return Backend(DynamoDocumentStore(cfg), S3BlobStore(cfg), CognitoIdentityService(cfg), cfg,
                   ApiGatewayViewPublisher(cfg))


_backend: Optional[Backend] = None


def get_backend() -> Backend:
    """Build the configured backend on first use and reuse it across invocations."""
    global _backend
    if _backend is None:
        if config.BACKEND == 'memory':
            _backend = memory_backend(config)
        else:
            _backend = aws_backend(config)
        logger.info(f"Initialized {config.BACKEND} backend")
    return _backend


def set_backend(backend: Optional[Backend]) -> None:
    global _backend
    _backend = backend
