MULTIPART_UPLOAD_DESCRIPTION = """
Upload the raw request body through a manual multipart session.

The body is split into parts of `STORAGE_PART_SIZE_BYTES` (at least 5 MiB;
the last part may be shorter) and each part is uploaded under one session.
The object only appears once every part has been accepted and the session
is committed. On any failure the session is aborted and the response is a
`502` problem document whose `error_code` is one of `session_open_failed`,
`part_upload_failed` or `commit_failed`; `detail.abort_error` is present when
cleanup itself failed.

Empty bodies are rejected with `400` (`error_code=empty_payload`); use
`PUT /buckets/{bucket}/objects/{key}` for zero-byte objects.
""".strip()


PRESIGNED_URL_DESCRIPTION = (
    "Generate a presigned GET (download) or PUT (upload) URL. "
    "`expires_in` defaults to `STORAGE_PRESIGN_EXPIRES_SECONDS` and may not "
    "exceed seven days."
)
