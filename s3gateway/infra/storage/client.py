"""Storage client protocol and data types.

This module defines the abstract interface for object storage operations:
bucket management, single-shot object transfer, presigned URLs and the
primitives of a manual multipart upload.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, Sequence


class StorageError(RuntimeError):
    """Raised when object storage operations fail."""

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        self.code = code


class ObjectNotFoundError(StorageError):
    """Raised when the bucket or object does not exist."""


class StorageConflictError(StorageError):
    """Raised when the backend refuses a request because of existing state."""


@dataclass(frozen=True, slots=True)
class CompletedPart:
    """Represents a completed part in a multipart upload."""

    part_number: int
    etag: str


@dataclass(frozen=True, slots=True)
class MultipartUpload:
    """Result of initiating a multipart upload."""

    upload_id: str
    bucket: str
    object_key: str


@dataclass(frozen=True, slots=True)
class ObjectReference:
    """A committed object as reported by the backend."""

    bucket: str
    key: str
    etag: str | None
    size_bytes: int | None
    version_id: str | None = None
    location: str | None = None
    part_count: int | None = None


@dataclass(frozen=True, slots=True)
class StoredObject:
    """Object content together with its metadata."""

    body: bytes
    content_type: str | None
    etag: str | None
    metadata: dict[str, str]


class StorageClient(Protocol):
    """Protocol defining the interface for object storage backends.

    Every method raises StorageError (or one of its subclasses) on failure.
    """

    def init_multipart_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        content_type: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> MultipartUpload:
        """Initialize a multipart upload session.

        Args:
            bucket: Target bucket name.
            object_key: Object key (path) in the bucket.
            content_type: MIME type of the object.
            metadata: Custom metadata to attach to the object.

        Returns:
            MultipartUpload containing the upload_id for subsequent operations.
        """
        ...

    def upload_part(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
        part_number: int,
        body: bytes,
    ) -> str:
        """Upload one part of a multipart upload.

        Args:
            bucket: Target bucket name.
            object_key: Object key (path) in the bucket.
            upload_id: Multipart upload ID from init_multipart_upload.
            part_number: Part number (1-based, max 10000).
            body: Part content.

        Returns:
            The part's ETag, to be presented verbatim on completion.
        """
        ...

    def complete_multipart_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
        parts: Sequence[CompletedPart],
    ) -> ObjectReference:
        """Complete a multipart upload by combining all parts.

        Args:
            bucket: Target bucket name.
            object_key: Object key (path) in the bucket.
            upload_id: Multipart upload ID.
            parts: Completed parts with their ETags, in ascending order.

        Returns:
            Reference to the assembled object.
        """
        ...

    def abort_multipart_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
    ) -> None:
        """Abort a multipart upload and clean up uploaded parts."""
        ...

    def create_bucket(self, *, bucket: str) -> None: ...

    def list_buckets(self) -> list[str]: ...

    def delete_bucket(self, *, bucket: str) -> None: ...

    def put_object(
        self,
        *,
        bucket: str,
        object_key: str,
        body: bytes,
        content_type: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> ObjectReference: ...

    def get_object(self, *, bucket: str, object_key: str) -> StoredObject: ...

    def delete_object(self, *, bucket: str, object_key: str) -> None: ...

    def copy_object(
        self,
        *,
        source_bucket: str,
        source_key: str,
        dest_bucket: str,
        dest_key: str,
    ) -> ObjectReference: ...

    def list_objects(self, *, bucket: str, prefix: str | None = None) -> list[str]:
        """List object keys under a prefix, following continuation tokens."""
        ...

    def presign_download(
        self,
        *,
        bucket: str,
        object_key: str,
        expires_in: int,
        filename: str | None = None,
    ) -> str:
        """Generate a presigned URL for downloading an object.

        Args:
            bucket: Target bucket name.
            object_key: Object key (path) in the bucket.
            expires_in: URL expiration time in seconds.
            filename: Optional filename for Content-Disposition header.
        """
        ...

    def presign_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        expires_in: int,
        content_type: str | None = None,
    ) -> str:
        """Generate a presigned URL for a single PUT upload."""
        ...
