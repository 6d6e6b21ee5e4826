from prometheus_client import Counter, Histogram, make_asgi_app

# 低基数标签：使用路由模板（如 /api/v1/buckets/{bucket}），避免动态路径导致高基数
REQUESTS = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "route", "status"],
)

LATENCY = Histogram(
    "http_request_duration_seconds",
    "Request latency in seconds",
    ["method", "route"],
)

# outcome: committed, session_open_failed, part_upload_failed, commit_failed,
# rejected (stream over a limit), source_failed (OSError reading the source),
# unexpected_error, interrupted (KeyboardInterrupt and other BaseException)
MULTIPART_UPLOADS = Counter(
    "multipart_uploads_total",
    "Multipart upload sessions by terminal outcome",
    ["outcome"],
)

MULTIPART_PARTS = Counter(
    "multipart_parts_uploaded_total",
    "Parts accepted by the storage backend",
)

MULTIPART_ABORTS = Counter(
    "multipart_aborts_total",
    "Abort requests issued for failed multipart sessions",
    ["result"],
)

# /metrics 端点 ASGI 应用
metrics_app = make_asgi_app()
