"""
Blob Storage

Backends holding the uploaded source CSVs. The stored blob is the source
of truth for reprocessing, so every backend must answer ``exists`` reliably.
"""
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from config.settings import settings
from src.leadintake.exceptions import BlobNotFoundError, StorageError
from src.leadintake.utils.logger import get_logger

logger = get_logger(__name__)


class BlobStorage(ABC):
    """Key/value store for uploaded CSV payloads."""

    bucket: str = settings.storage_bucket

    @abstractmethod
    def upload(self, path: str, content: bytes, content_type: str = "text/csv") -> str:
        """Store ``content`` at ``path`` and return the path."""

    @abstractmethod
    def download(self, path: str) -> bytes:
        """Return the blob at ``path``; raise BlobNotFoundError if absent."""

    @abstractmethod
    def exists(self, path: str) -> bool:
        """Return True if a blob is stored at ``path``."""

    @abstractmethod
    def remove(self, path: str) -> bool:
        """Delete the blob at ``path``; return False if it was already gone."""

    def download_text(self, path: str) -> str:
        return self.download(path).decode("utf-8-sig", errors="replace")


class LocalBlobStorage(BlobStorage):
    """
    Filesystem-backed storage.

    Blobs live under ``{root}/{bucket}/{path}``. Used for development,
    single-host deployments and tests.
    """

    def __init__(self, root: str, bucket: Optional[str] = None):
        self.root = Path(root)
        self.bucket = bucket or settings.storage_bucket
        logger.debug("local_blob_storage_initialized", root=str(self.root), bucket=self.bucket)

    def _resolve(self, path: str) -> Path:
        base = (self.root / self.bucket).resolve()
        target = (base / path).resolve()
        if base != target and base not in target.parents:
            raise StorageError(f"Invalid storage path: {path}")
        return target

    def upload(self, path: str, content: bytes, content_type: str = "text/csv") -> str:
        target = self._resolve(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(content)
        except OSError as e:
            raise StorageError(f"Failed to upload file: {e}") from e

        logger.info("blob_uploaded", path=path, size=len(content))
        return path

    def download(self, path: str) -> bytes:
        target = self._resolve(path)
        if not target.is_file():
            raise BlobNotFoundError(path)
        try:
            return target.read_bytes()
        except OSError as e:
            raise StorageError(f"Failed to download file: {e}") from e

    def exists(self, path: str) -> bool:
        return self._resolve(path).is_file()

    def remove(self, path: str) -> bool:
        target = self._resolve(path)
        if not target.is_file():
            return False
        try:
            target.unlink()
        except OSError as e:
            raise StorageError(f"Failed to remove file: {e}") from e

        logger.info("blob_removed", path=path)
        return True


class SupabaseBlobStorage(BlobStorage):
    """Supabase Storage bucket backend."""

    def __init__(self, client, bucket: Optional[str] = None):
        self.client = client
        self.bucket = bucket or settings.storage_bucket

    def _bucket(self):
        return self.client.storage.from_(self.bucket)

    def upload(self, path: str, content: bytes, content_type: str = "text/csv") -> str:
        try:
            self._bucket().upload(path, content, {"content-type": content_type})
        except Exception as e:
            message = str(e)
            if "Invalid key" in message:
                raise StorageError(
                    f"Filename contains invalid characters: {path}"
                ) from e
            raise StorageError(f"Failed to upload file: {message}") from e

        logger.info("blob_uploaded", bucket=self.bucket, path=path, size=len(content))
        return path

    def download(self, path: str) -> bytes:
        try:
            return self._bucket().download(path)
        except Exception as e:
            if not self.exists(path):
                raise BlobNotFoundError(path) from e
            raise StorageError(f"Failed to download file: {e}") from e

    def exists(self, path: str) -> bool:
        folder, _, name = path.rpartition("/")
        try:
            entries = self._bucket().list(folder, {"search": name})
        except Exception as e:
            raise StorageError(f"Failed to list storage folder {folder}: {e}") from e
        return any(entry.get("name") == name for entry in entries or [])

    def remove(self, path: str) -> bool:
        try:
            removed = self._bucket().remove([path])
        except Exception as e:
            raise StorageError(f"Failed to remove file: {e}") from e

        logger.info("blob_removed", bucket=self.bucket, path=path)
        return bool(removed)


def build_storage(backend: Optional[str] = None) -> BlobStorage:
    """
    Construct the configured storage backend.

    Args:
        backend: ``local`` or ``supabase``; defaults to settings.storage_backend
    """
    backend = backend or settings.storage_backend
    if backend == "supabase":
        from supabase import create_client

        if not settings.supabase_url or not settings.supabase_service_role_key:
            raise StorageError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set")
        client = create_client(settings.supabase_url, settings.supabase_service_role_key)
        return SupabaseBlobStorage(client)
    if backend == "local":
        return LocalBlobStorage(settings.storage_root)
    raise StorageError(f"Unknown storage backend: {backend}")
