"""S3-compatible storage client implementation.

This module provides an S3-compatible storage client that works with
AWS S3, MinIO, LocalStack and other S3-compatible object storage services.

Dependencies:
    - boto3
    - botocore
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Sequence

from s3gateway.infra.storage.client import (
    CompletedPart,
    MultipartUpload,
    ObjectNotFoundError,
    ObjectReference,
    StorageConflictError,
    StorageError,
    StoredObject,
)

if TYPE_CHECKING:
    from s3gateway.common.config import Settings

logger = logging.getLogger("storage")

NOT_FOUND_CODES = frozenset(
    {"404", "NoSuchKey", "NoSuchBucket", "NoSuchUpload", "NotFound"}
)
CONFLICT_CODES = frozenset(
    {"409", "BucketAlreadyExists", "BucketAlreadyOwnedByYou", "BucketNotEmpty"}
)


def _error_code(exc: Exception) -> str | None:
    """Extract the S3 error code from a botocore ClientError, if any."""
    response = getattr(exc, "response", None)
    if not isinstance(response, dict):
        return None
    code = (response.get("Error") or {}).get("Code")
    return str(code) if code is not None else None


def _wrap(message: str, exc: Exception) -> StorageError:
    code = _error_code(exc)
    text = f"{message}: {exc}"
    if code in NOT_FOUND_CODES:
        return ObjectNotFoundError(text, code=code)
    if code in CONFLICT_CODES:
        return StorageConflictError(text, code=code)
    return StorageError(text, code=code)


class S3StorageClient:
    """S3-compatible object storage client.

    Supports AWS S3, MinIO, and other S3-compatible services.
    Uses boto3 for all storage operations; retries are delegated to
    botocore's retry handler.
    """

    def __init__(self, *, settings: "Settings") -> None:
        """Initialize the S3 client with configuration from settings.

        Args:
            settings: Application settings containing S3 configuration.

        Raises:
            StorageError: If boto3 is not installed.
        """
        self._settings = settings
        self._client = self._build_client(settings)

    @staticmethod
    def _build_client(settings: "Settings") -> Any:
        """Create a boto3 S3 client from settings."""
        try:
            import boto3
            from botocore.config import Config
        except ImportError as exc:
            raise StorageError(
                "boto3 and botocore are required for S3 storage backend. "
                "Install with: pip install boto3"
            ) from exc

        addressing_style = (settings.S3_ADDRESSING_STYLE or "path").strip().lower()
        config = Config(
            s3={"addressing_style": addressing_style},
            retries={"max_attempts": int(settings.S3_MAX_ATTEMPTS), "mode": "standard"},
        )

        return boto3.client(
            "s3",
            endpoint_url=settings.S3_ENDPOINT_URL,
            region_name=settings.S3_REGION,
            aws_access_key_id=settings.S3_ACCESS_KEY_ID,
            aws_secret_access_key=settings.S3_SECRET_ACCESS_KEY,
            use_ssl=bool(settings.S3_USE_SSL),
            config=config,
        )

    # --- multipart ---

    def init_multipart_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        content_type: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> MultipartUpload:
        """Initialize a multipart upload session."""
        params: dict[str, Any] = {"Bucket": bucket, "Key": object_key}
        if content_type:
            params["ContentType"] = content_type
        if metadata:
            params["Metadata"] = metadata

        try:
            response = self._client.create_multipart_upload(**params)
        except Exception as exc:
            raise _wrap("Failed to create multipart upload", exc) from exc

        upload_id = response.get("UploadId")
        if not upload_id:
            raise StorageError("S3 response missing UploadId")

        return MultipartUpload(
            upload_id=str(upload_id),
            bucket=bucket,
            object_key=object_key,
        )

    def upload_part(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
        part_number: int,
        body: bytes,
    ) -> str:
        """Upload one part and return its ETag."""
        try:
            response = self._client.upload_part(
                Bucket=bucket,
                Key=object_key,
                UploadId=upload_id,
                PartNumber=int(part_number),
                Body=body,
            )
        except Exception as exc:
            raise _wrap(f"Failed to upload part {part_number}", exc) from exc

        etag = response.get("ETag")
        if not etag:
            raise StorageError(f"S3 response missing ETag for part {part_number}")
        # ETag is kept verbatim (quotes included); S3 expects it back unchanged
        return str(etag)

    def complete_multipart_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
        parts: Sequence[CompletedPart],
    ) -> ObjectReference:
        """Complete a multipart upload by combining all parts."""
        multipart_payload = {
            "Parts": [
                {"ETag": part.etag, "PartNumber": int(part.part_number)}
                for part in parts
            ]
        }

        try:
            response = self._client.complete_multipart_upload(
                Bucket=bucket,
                Key=object_key,
                UploadId=upload_id,
                MultipartUpload=multipart_payload,
            )
        except Exception as exc:
            raise _wrap("Failed to complete multipart upload", exc) from exc

        return ObjectReference(
            bucket=bucket,
            key=object_key,
            etag=response.get("ETag"),
            size_bytes=None,
            version_id=response.get("VersionId"),
            location=response.get("Location"),
            part_count=len(parts),
        )

    def abort_multipart_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
    ) -> None:
        """Abort a multipart upload and clean up uploaded parts."""
        try:
            self._client.abort_multipart_upload(
                Bucket=bucket,
                Key=object_key,
                UploadId=upload_id,
            )
        except Exception as exc:
            raise _wrap("Failed to abort multipart upload", exc) from exc

    # --- buckets ---

    def create_bucket(self, *, bucket: str) -> None:
        params: dict[str, Any] = {"Bucket": bucket}
        region = (self._settings.S3_REGION or "").strip()
        # us-east-1 rejects an explicit LocationConstraint
        if region and region != "us-east-1":
            params["CreateBucketConfiguration"] = {"LocationConstraint": region}
        try:
            self._client.create_bucket(**params)
        except Exception as exc:
            raise _wrap("Failed to create bucket", exc) from exc
        logger.info("bucket_created bucket=%s", bucket)

    def list_buckets(self) -> list[str]:
        try:
            response = self._client.list_buckets()
        except Exception as exc:
            raise _wrap("Failed to list buckets", exc) from exc
        return [str(b["Name"]) for b in response.get("Buckets", []) if b.get("Name")]

    def delete_bucket(self, *, bucket: str) -> None:
        try:
            self._client.delete_bucket(Bucket=bucket)
        except Exception as exc:
            raise _wrap("Failed to delete bucket", exc) from exc
        logger.info("bucket_deleted bucket=%s", bucket)

    # --- objects ---

    def put_object(
        self,
        *,
        bucket: str,
        object_key: str,
        body: bytes,
        content_type: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> ObjectReference:
        params: dict[str, Any] = {"Bucket": bucket, "Key": object_key, "Body": body}
        if content_type:
            params["ContentType"] = content_type
        if metadata:
            params["Metadata"] = metadata

        try:
            response = self._client.put_object(**params)
        except Exception as exc:
            raise _wrap("Failed to upload object", exc) from exc

        return ObjectReference(
            bucket=bucket,
            key=object_key,
            etag=response.get("ETag"),
            size_bytes=len(body),
            version_id=response.get("VersionId"),
        )

    def get_object(self, *, bucket: str, object_key: str) -> StoredObject:
        try:
            response = self._client.get_object(Bucket=bucket, Key=object_key)
            body = response["Body"].read()
        except Exception as exc:
            raise _wrap("Failed to download object", exc) from exc

        return StoredObject(
            body=body,
            content_type=response.get("ContentType"),
            etag=response.get("ETag"),
            metadata=dict(response.get("Metadata") or {}),
        )

    def delete_object(self, *, bucket: str, object_key: str) -> None:
        """Delete an object from storage."""
        try:
            self._client.delete_object(Bucket=bucket, Key=object_key)
        except Exception as exc:
            raise _wrap("Failed to delete object", exc) from exc

    def copy_object(
        self,
        *,
        source_bucket: str,
        source_key: str,
        dest_bucket: str,
        dest_key: str,
    ) -> ObjectReference:
        try:
            response = self._client.copy_object(
                Bucket=dest_bucket,
                Key=dest_key,
                CopySource={"Bucket": source_bucket, "Key": source_key},
            )
        except Exception as exc:
            raise _wrap("Failed to copy object", exc) from exc

        result = response.get("CopyObjectResult") or {}
        return ObjectReference(
            bucket=dest_bucket,
            key=dest_key,
            etag=result.get("ETag"),
            size_bytes=None,
            version_id=response.get("VersionId"),
        )

    def list_objects(self, *, bucket: str, prefix: str | None = None) -> list[str]:
        params: dict[str, Any] = {"Bucket": bucket}
        if prefix:
            params["Prefix"] = prefix

        keys: list[str] = []
        try:
            paginator = self._client.get_paginator("list_objects_v2")
            for page in paginator.paginate(**params):
                keys.extend(str(item["Key"]) for item in page.get("Contents", []))
        except Exception as exc:
            raise _wrap("Failed to list objects", exc) from exc
        return keys

    # --- presigning ---

    def presign_download(
        self,
        *,
        bucket: str,
        object_key: str,
        expires_in: int,
        filename: str | None = None,
    ) -> str:
        """Generate a presigned URL for downloading an object."""
        params: dict[str, Any] = {"Bucket": bucket, "Key": object_key}
        if filename:
            # Escape quotes in filename for Content-Disposition header
            safe_filename = filename.replace('"', '\\"')
            params["ResponseContentDisposition"] = (
                f'attachment; filename="{safe_filename}"'
            )
        return self._presign(
            "get_object",
            params,
            expires_in=expires_in,
            error_message="Failed to generate download URL",
        )

    def presign_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        expires_in: int,
        content_type: str | None = None,
    ) -> str:
        """Generate a presigned URL for a single PUT upload."""
        params: dict[str, Any] = {"Bucket": bucket, "Key": object_key}
        if content_type:
            params["ContentType"] = content_type
        return self._presign(
            "put_object",
            params,
            expires_in=expires_in,
            error_message="Failed to generate upload URL",
        )

    def _presign(
        self,
        operation: str,
        params: dict[str, Any],
        *,
        expires_in: int,
        error_message: str,
    ) -> str:
        try:
            url = self._client.generate_presigned_url(
                operation,
                Params=params,
                ExpiresIn=int(expires_in),
            )
        except Exception as exc:
            raise _wrap(error_message, exc) from exc

        if not url:
            raise StorageError("Generated presigned URL is empty")

        return str(url)
