"""Bucket and object operations.

These are thin pass-throughs to the storage client. The service only
validates caller input and applies the configured presign defaults.
"""

from __future__ import annotations

import logging

from s3gateway.app.services.base import BaseService, InvalidRequestError
from s3gateway.infra.storage.client import ObjectReference, StoredObject

logger = logging.getLogger("storage")

# SigV4 presigned URLs are valid for at most seven days
MAX_PRESIGN_EXPIRES_SECONDS = 7 * 24 * 60 * 60


class ObjectService(BaseService):
    """Application service for bucket and single-shot object operations."""

    def create_bucket(self, name: str) -> str:
        bucket = self._ensure_bucket(name)
        self._storage.create_bucket(bucket=bucket)
        return bucket

    def list_buckets(self) -> list[str]:
        return self._storage.list_buckets()

    def delete_bucket(self, name: str) -> None:
        self._storage.delete_bucket(bucket=self._ensure_bucket(name))

    def put_object(
        self,
        bucket: str,
        key: str,
        data: bytes,
        *,
        content_type: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> ObjectReference:
        bucket = self._ensure_bucket(bucket)
        key = self._ensure_key(key)
        self._ensure_size(len(data))
        reference = self._storage.put_object(
            bucket=bucket,
            object_key=key,
            body=data,
            content_type=content_type,
            metadata=metadata,
        )
        logger.info(
            "object_uploaded bucket=%s key=%s size=%s", bucket, key, len(data)
        )
        return reference

    def get_object(self, bucket: str, key: str) -> StoredObject:
        return self._storage.get_object(
            bucket=self._ensure_bucket(bucket), object_key=self._ensure_key(key)
        )

    def delete_object(self, bucket: str, key: str) -> None:
        self._storage.delete_object(
            bucket=self._ensure_bucket(bucket), object_key=self._ensure_key(key)
        )

    def copy_object(
        self,
        source_bucket: str,
        source_key: str,
        dest_bucket: str,
        dest_key: str,
    ) -> ObjectReference:
        return self._storage.copy_object(
            source_bucket=self._ensure_bucket(source_bucket),
            source_key=self._ensure_key(source_key),
            dest_bucket=self._ensure_bucket(dest_bucket),
            dest_key=self._ensure_key(dest_key),
        )

    def list_objects(self, bucket: str, prefix: str | None = None) -> list[str]:
        return self._storage.list_objects(
            bucket=self._ensure_bucket(bucket), prefix=prefix or None
        )

    def presign_download(
        self,
        bucket: str,
        key: str,
        *,
        expires_in: int | None = None,
        filename: str | None = None,
    ) -> tuple[str, int]:
        """Return a presigned GET URL and its lifetime in seconds."""
        expires = self._resolve_expiry(expires_in)
        url = self._storage.presign_download(
            bucket=self._ensure_bucket(bucket),
            object_key=self._ensure_key(key),
            expires_in=expires,
            filename=filename,
        )
        return url, expires

    def presign_upload(
        self,
        bucket: str,
        key: str,
        *,
        expires_in: int | None = None,
        content_type: str | None = None,
    ) -> tuple[str, int]:
        """Return a presigned PUT URL and its lifetime in seconds."""
        expires = self._resolve_expiry(expires_in)
        url = self._storage.presign_upload(
            bucket=self._ensure_bucket(bucket),
            object_key=self._ensure_key(key),
            expires_in=expires,
            content_type=content_type,
        )
        return url, expires

    def _resolve_expiry(self, expires_in: int | None) -> int:
        if expires_in is None:
            return int(self.settings.STORAGE_PRESIGN_EXPIRES_SECONDS)
        if expires_in <= 0 or expires_in > MAX_PRESIGN_EXPIRES_SECONDS:
            raise InvalidRequestError(
                f"expires_in must be between 1 and {MAX_PRESIGN_EXPIRES_SECONDS} seconds"
            )
        return int(expires_in)
