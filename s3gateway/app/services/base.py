from __future__ import annotations

from s3gateway.common.config import Settings, get_settings
from s3gateway.infra.storage.client import StorageClient


class ServiceError(Exception):
    """Base class for application service level exceptions."""


class InvalidRequestError(ServiceError):
    """Raised when caller input is rejected before reaching the backend."""


class PayloadTooLargeError(InvalidRequestError):
    """Raised when an upload exceeds STORAGE_MAX_UPLOAD_BYTES."""


class BaseService:
    """Provides guard rails and helpers shared by application services."""

    def __init__(self, storage: StorageClient, *, settings: Settings | None = None):
        self._storage = storage
        self._settings = settings or get_settings()

    @property
    def storage(self) -> StorageClient:
        return self._storage

    @property
    def settings(self) -> Settings:
        return self._settings

    def _ensure_bucket(self, bucket: str | None) -> str:
        name = (bucket or "").strip()
        if not name:
            raise InvalidRequestError("bucket name is required")
        return name

    def _ensure_key(self, key: str | None) -> str:
        # keys are kept verbatim; only emptiness is rejected
        if not key or not key.strip():
            raise InvalidRequestError("object key is required")
        return key

    def _ensure_size(self, size_bytes: int) -> None:
        limit = self._settings.STORAGE_MAX_UPLOAD_BYTES
        if size_bytes > limit:
            raise PayloadTooLargeError(
                f"Payload size {size_bytes} exceeds maximum allowed ({limit} bytes)"
            )
