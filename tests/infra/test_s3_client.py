"""Tests for the boto3-backed S3 storage client."""

from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError

from s3gateway.common.config import Settings
from s3gateway.infra.storage.client import (
    CompletedPart,
    MultipartUpload,
    ObjectNotFoundError,
    StorageClient,
    StorageConflictError,
    StorageError,
)
from s3gateway.infra.storage.s3_client import S3StorageClient


def _client_error(code: str, operation: str = "Operation") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


@pytest.fixture
def mock_s3():
    """Mock boto3 S3 client."""
    mock_client = MagicMock()
    with patch.object(S3StorageClient, "_build_client", return_value=mock_client):
        yield mock_client


@pytest.fixture
def settings() -> Settings:
    return Settings(
        S3_ENDPOINT_URL="http://localhost:9000",
        S3_ACCESS_KEY_ID="test-key",
        S3_SECRET_ACCESS_KEY="test-secret",
        S3_USE_SSL=False,
    )


@pytest.fixture
def client(mock_s3, settings):
    return S3StorageClient(settings=settings)


class TestBuildClient:
    def test_passes_addressing_style_and_retries(self, settings):
        with patch("boto3.client") as factory:
            S3StorageClient(settings=settings)

        kwargs = factory.call_args.kwargs
        assert factory.call_args.args == ("s3",)
        assert kwargs["endpoint_url"] == "http://localhost:9000"
        assert kwargs["region_name"] == "us-east-1"
        assert kwargs["use_ssl"] is False
        config = kwargs["config"]
        assert config.s3 == {"addressing_style": "path"}
        assert config.retries == {"max_attempts": 3, "mode": "standard"}


class TestMultipartPrimitives:
    def test_init_multipart_upload(self, client, mock_s3):
        """Content type and metadata are forwarded when provided."""
        mock_s3.create_multipart_upload.return_value = {"UploadId": "upload-1"}

        result = client.init_multipart_upload(
            bucket="media",
            object_key="clips/a.mp4",
            content_type="video/mp4",
            metadata={"uploaded-by": "u1"},
        )

        assert result == MultipartUpload(
            upload_id="upload-1", bucket="media", object_key="clips/a.mp4"
        )
        mock_s3.create_multipart_upload.assert_called_once_with(
            Bucket="media",
            Key="clips/a.mp4",
            ContentType="video/mp4",
            Metadata={"uploaded-by": "u1"},
        )

    def test_init_multipart_upload_minimal(self, client, mock_s3):
        mock_s3.create_multipart_upload.return_value = {"UploadId": "upload-1"}

        client.init_multipart_upload(bucket="media", object_key="k")

        mock_s3.create_multipart_upload.assert_called_once_with(Bucket="media", Key="k")

    def test_init_multipart_upload_missing_upload_id(self, client, mock_s3):
        mock_s3.create_multipart_upload.return_value = {}

        with pytest.raises(StorageError, match="S3 response missing UploadId"):
            client.init_multipart_upload(bucket="media", object_key="k")

    def test_init_multipart_upload_missing_bucket(self, client, mock_s3):
        mock_s3.create_multipart_upload.side_effect = _client_error("NoSuchBucket")

        with pytest.raises(ObjectNotFoundError) as excinfo:
            client.init_multipart_upload(bucket="nope", object_key="k")
        assert excinfo.value.code == "NoSuchBucket"

    def test_upload_part_returns_etag_verbatim(self, client, mock_s3):
        mock_s3.upload_part.return_value = {"ETag": '"abc123"'}

        etag = client.upload_part(
            bucket="media",
            object_key="k",
            upload_id="upload-1",
            part_number=2,
            body=b"chunk",
        )

        assert etag == '"abc123"'
        mock_s3.upload_part.assert_called_once_with(
            Bucket="media",
            Key="k",
            UploadId="upload-1",
            PartNumber=2,
            Body=b"chunk",
        )

    def test_upload_part_missing_etag(self, client, mock_s3):
        mock_s3.upload_part.return_value = {}

        with pytest.raises(StorageError, match="missing ETag for part 3"):
            client.upload_part(
                bucket="media",
                object_key="k",
                upload_id="upload-1",
                part_number=3,
                body=b"chunk",
            )

    def test_upload_part_failure(self, client, mock_s3):
        mock_s3.upload_part.side_effect = Exception("connection reset")

        with pytest.raises(StorageError, match="Failed to upload part 1"):
            client.upload_part(
                bucket="media",
                object_key="k",
                upload_id="upload-1",
                part_number=1,
                body=b"chunk",
            )

    def test_complete_keeps_caller_order(self, client, mock_s3):
        """The client does not reorder; ordering is the caller's job."""
        mock_s3.complete_multipart_upload.return_value = {
            "ETag": '"final-2"',
            "Location": "http://localhost:9000/media/k",
            "VersionId": "v1",
        }
        parts = [
            CompletedPart(part_number=1, etag="e1"),
            CompletedPart(part_number=2, etag="e2"),
        ]

        reference = client.complete_multipart_upload(
            bucket="media", object_key="k", upload_id="upload-1", parts=parts
        )

        kwargs = mock_s3.complete_multipart_upload.call_args.kwargs
        assert kwargs["UploadId"] == "upload-1"
        assert kwargs["MultipartUpload"] == {
            "Parts": [
                {"ETag": "e1", "PartNumber": 1},
                {"ETag": "e2", "PartNumber": 2},
            ]
        }
        assert reference.etag == '"final-2"'
        assert reference.version_id == "v1"
        assert reference.location == "http://localhost:9000/media/k"
        assert reference.part_count == 2
        assert reference.size_bytes is None

    def test_complete_rejected(self, client, mock_s3):
        mock_s3.complete_multipart_upload.side_effect = _client_error("InvalidPart")

        with pytest.raises(StorageError, match="Failed to complete multipart upload") as excinfo:
            client.complete_multipart_upload(
                bucket="media",
                object_key="k",
                upload_id="upload-1",
                parts=[CompletedPart(part_number=1, etag="e1")],
            )
        assert excinfo.value.code == "InvalidPart"
        assert not isinstance(excinfo.value, ObjectNotFoundError)

    def test_abort(self, client, mock_s3):
        client.abort_multipart_upload(bucket="media", object_key="k", upload_id="upload-1")

        mock_s3.abort_multipart_upload.assert_called_once_with(
            Bucket="media", Key="k", UploadId="upload-1"
        )

    def test_abort_failure(self, client, mock_s3):
        mock_s3.abort_multipart_upload.side_effect = _client_error("NoSuchUpload")

        with pytest.raises(ObjectNotFoundError, match="Failed to abort multipart upload"):
            client.abort_multipart_upload(
                bucket="media", object_key="k", upload_id="upload-1"
            )


class TestBuckets:
    def test_create_bucket_in_default_region(self, client, mock_s3):
        client.create_bucket(bucket="media")
        mock_s3.create_bucket.assert_called_once_with(Bucket="media")

    def test_create_bucket_outside_us_east_1(self, mock_s3):
        client = S3StorageClient(settings=Settings(S3_REGION="eu-central-1"))

        client.create_bucket(bucket="media")

        mock_s3.create_bucket.assert_called_once_with(
            Bucket="media",
            CreateBucketConfiguration={"LocationConstraint": "eu-central-1"},
        )

    def test_create_existing_bucket(self, client, mock_s3):
        mock_s3.create_bucket.side_effect = _client_error("BucketAlreadyOwnedByYou")

        with pytest.raises(StorageConflictError):
            client.create_bucket(bucket="media")

    def test_list_buckets(self, client, mock_s3):
        mock_s3.list_buckets.return_value = {
            "Buckets": [{"Name": "a"}, {"Name": "b"}, {}]
        }
        assert client.list_buckets() == ["a", "b"]

    def test_delete_non_empty_bucket(self, client, mock_s3):
        mock_s3.delete_bucket.side_effect = _client_error("BucketNotEmpty")

        with pytest.raises(StorageConflictError):
            client.delete_bucket(bucket="media")


class TestObjects:
    def test_put_object(self, client, mock_s3):
        mock_s3.put_object.return_value = {"ETag": '"e"', "VersionId": "v2"}

        reference = client.put_object(
            bucket="media", object_key="k", body=b"data", content_type="text/plain"
        )

        mock_s3.put_object.assert_called_once_with(
            Bucket="media", Key="k", Body=b"data", ContentType="text/plain"
        )
        assert reference.size_bytes == 4
        assert reference.version_id == "v2"

    def test_get_object(self, client, mock_s3):
        body = MagicMock()
        body.read.return_value = b"payload"
        mock_s3.get_object.return_value = {
            "Body": body,
            "ContentType": "application/octet-stream",
            "ETag": '"e"',
            "Metadata": {"uploaded-by": "u1"},
        }

        stored = client.get_object(bucket="media", object_key="k")

        assert stored.body == b"payload"
        assert stored.etag == '"e"'
        assert stored.metadata == {"uploaded-by": "u1"}

    def test_get_missing_object(self, client, mock_s3):
        mock_s3.get_object.side_effect = _client_error("NoSuchKey", "GetObject")

        with pytest.raises(ObjectNotFoundError, match="Failed to download object"):
            client.get_object(bucket="media", object_key="missing")

    def test_numeric_not_found_code(self, client, mock_s3):
        """Some S3-compatible backends report a bare HTTP status as the code."""
        mock_s3.get_object.side_effect = _client_error("404", "GetObject")

        with pytest.raises(ObjectNotFoundError) as excinfo:
            client.get_object(bucket="media", object_key="k")
        assert excinfo.value.code == "404"

    def test_delete_object_failure(self, client, mock_s3):
        mock_s3.delete_object.side_effect = Exception("S3 error")

        with pytest.raises(StorageError, match="Failed to delete object"):
            client.delete_object(bucket="media", object_key="k")

    def test_copy_object(self, client, mock_s3):
        mock_s3.copy_object.return_value = {"CopyObjectResult": {"ETag": '"c"'}}

        reference = client.copy_object(
            source_bucket="media", source_key="a", dest_bucket="backup", dest_key="b"
        )

        mock_s3.copy_object.assert_called_once_with(
            Bucket="backup",
            Key="b",
            CopySource={"Bucket": "media", "Key": "a"},
        )
        assert reference.bucket == "backup"
        assert reference.etag == '"c"'

    def test_list_objects_follows_pages(self, client, mock_s3):
        paginator = MagicMock()
        paginator.paginate.return_value = [
            {"Contents": [{"Key": "2024/a"}, {"Key": "2024/b"}]},
            {"Contents": [{"Key": "2024/c"}]},
            {},
        ]
        mock_s3.get_paginator.return_value = paginator

        keys = client.list_objects(bucket="media", prefix="2024/")

        assert keys == ["2024/a", "2024/b", "2024/c"]
        mock_s3.get_paginator.assert_called_once_with("list_objects_v2")
        paginator.paginate.assert_called_once_with(Bucket="media", Prefix="2024/")


class TestPresign:
    def test_download_with_filename(self, client, mock_s3):
        mock_s3.generate_presigned_url.return_value = "https://download"

        client.presign_download(
            bucket="media", object_key="k", expires_in=60, filename='re"port.pdf'
        )

        params = mock_s3.generate_presigned_url.call_args.kwargs["Params"]
        assert params["ResponseContentDisposition"] == 'attachment; filename="re\\"port.pdf"'

    def test_download_without_filename(self, client, mock_s3):
        mock_s3.generate_presigned_url.return_value = "https://download"

        client.presign_download(bucket="media", object_key="k", expires_in=60)

        params = mock_s3.generate_presigned_url.call_args.kwargs["Params"]
        assert "ResponseContentDisposition" not in params

    def test_upload_with_content_type(self, client, mock_s3):
        mock_s3.generate_presigned_url.return_value = "https://upload"

        url = client.presign_upload(
            bucket="media", object_key="k", expires_in=60, content_type="image/png"
        )

        assert url == "https://upload"
        mock_s3.generate_presigned_url.assert_called_once_with(
            "put_object",
            Params={"Bucket": "media", "Key": "k", "ContentType": "image/png"},
            ExpiresIn=60,
        )

    def test_empty_url_rejected(self, client, mock_s3):
        mock_s3.generate_presigned_url.return_value = ""

        with pytest.raises(StorageError, match="Generated presigned URL is empty"):
            client.presign_upload(bucket="media", object_key="k", expires_in=60)

    def test_generation_failure(self, client, mock_s3):
        mock_s3.generate_presigned_url.side_effect = Exception("S3 error")

        with pytest.raises(StorageError, match="Failed to generate download URL"):
            client.presign_download(bucket="media", object_key="k", expires_in=60)


class TestSurface:
    @pytest.mark.parametrize("name", ["head_object", "presign_upload_part"])
    def test_unused_operations_not_exposed(self, name):
        """Only operations the gateway routes or the session manager call are exposed."""
        assert not hasattr(S3StorageClient, name)
        assert not hasattr(StorageClient, name)
