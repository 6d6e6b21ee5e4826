from __future__ import annotations

from s3gateway.infra.storage.client import StorageError

MiB = 1024 * 1024


def _payload(size: int) -> bytes:
    return (b"0123456789abcdef" * (size // 16 + 1))[:size]


def test_multipart_upload_commits_object(client, storage):
    data = _payload(12 * MiB)

    r = client.post(
        "/api/v1/buckets/media/multipart-uploads/videos/clip.bin",
        content=data,
        headers={"Content-Type": "video/mp4", "X-User-Id": "u1"},
    )

    assert r.status_code == 201
    body = r.json()
    assert body["bucket"] == "media"
    assert body["key"] == "videos/clip.bin"
    assert body["size_bytes"] == 12 * MiB
    assert body["part_count"] == 3
    stored = storage.buckets["media"]["videos/clip.bin"]
    assert stored["body"] == data
    assert stored["content_type"] == "video/mp4"
    assert stored["metadata"] == {"uploaded-by": "u1"}


def test_empty_body_rejected_without_session(client, storage):
    r = client.post("/api/v1/buckets/media/multipart-uploads/empty.bin", content=b"")

    assert r.status_code == 400
    assert r.json()["error_code"] == "empty_payload"
    assert storage.calls_to("init_multipart_upload") == []


def test_part_failure_reports_session_and_aborts(client, storage):
    storage.fail_parts[2] = StorageError("connection reset")

    r = client.post(
        "/api/v1/buckets/media/multipart-uploads/k",
        content=_payload(11 * MiB),
    )

    assert r.status_code == 502
    assert r.headers["content-type"].startswith("application/problem+json")
    body = r.json()
    assert body["error_code"] == "part_upload_failed"
    detail = body["detail"]
    assert detail["container"] == "media"
    assert detail["key"] == "k"
    assert detail["session_id"] == "mock-upload-1"
    assert detail["part_number"] == 2
    assert len(storage.calls_to("abort_multipart_upload")) == 1


def test_open_failure_maps_to_session_open_failed(client, storage):
    storage.fail_open = StorageError("throttled")

    r = client.post("/api/v1/buckets/media/multipart-uploads/k", content=b"abc")

    assert r.status_code == 502
    body = r.json()
    assert body["error_code"] == "session_open_failed"
    assert body["detail"]["session_id"] is None
    assert storage.calls_to("abort_multipart_upload") == []


def test_commit_failure_maps_to_commit_failed(client, storage):
    storage.fail_commit = StorageError("EntityTooSmall")

    r = client.post("/api/v1/buckets/media/multipart-uploads/k", content=b"abc")

    assert r.status_code == 502
    assert r.json()["error_code"] == "commit_failed"
    assert len(storage.calls_to("abort_multipart_upload")) == 1


def test_abort_failure_reported_alongside_primary(client, storage):
    storage.fail_commit = StorageError("rejected")
    storage.fail_abort = StorageError("abort refused")

    r = client.post("/api/v1/buckets/media/multipart-uploads/k", content=b"abc")

    assert r.status_code == 502
    body = r.json()
    assert body["error_code"] == "commit_failed"
    assert body["detail"]["abort_error"] == "abort refused"
