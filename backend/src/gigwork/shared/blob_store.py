"""
Blob storage interface for uploaded files (payment proofs, assignment
briefs, submitted work).
"""
import threading
import time
from abc import ABC, abstractmethod
from typing import Dict, Optional

from .errors import NotFoundError


class BlobStore(ABC):

    @abstractmethod
    def upload(self, path: str, data: bytes, content_type: str = 'application/octet-stream') -> str:
        """Store ``data`` under ``path`` and return its URL."""

    @abstractmethod
    def delete(self, url: str) -> bool:
        """Release a stored file. Returns False if it was already gone."""

    def download_url(self, url: str) -> str:
        """URL a client can fetch the file from. Defaults to the stored URL."""
        return url


class InMemoryBlobStore(BlobStore):
    BASE_URL = 'memory://blobs/'

    def __init__(self):
        self._lock = threading.Lock()
        self.files: Dict[str, bytes] = {}

    def upload(self, path: str, data: bytes, content_type: str = 'application/octet-stream') -> str:
        with self._lock:
            self.files[path] = bytes(data)
        return self.BASE_URL + path

    def path_for(self, url: str) -> Optional[str]:
        if not url or not url.startswith(self.BASE_URL):
            return None
        return url[len(self.BASE_URL):]

    def read(self, url: str) -> bytes:
        path = self.path_for(url)
        with self._lock:
            if path not in self.files:
                raise NotFoundError(f'File {url} not found')
            return self.files[path]

    def delete(self, url: str) -> bool:
        path = self.path_for(url)
        with self._lock:
            return self.files.pop(path, None) is not None


def storage_path(prefix: str, file_name: str) -> str:
    """Timestamped object path, e.g. ``assignments/1718000000000-brief.pdf``."""
    return f"{prefix.rstrip('/')}/{int(time.time() * 1000)}-{file_name}"
