from __future__ import annotations

import os

import pytest
from fastapi.testclient import TestClient

from s3gateway.common.config import get_settings

# keep tests independent of a developer's .env and of real S3 credentials
for _key in (
    "API_KEY_ENABLED",
    "AUTH_ENABLED",
    "TRACE_HTTP",
    "STORAGE_PART_SIZE_BYTES",
    "STORAGE_UPLOAD_CONCURRENCY",
    "STORAGE_MAX_UPLOAD_BYTES",
):
    os.environ.pop(_key, None)
os.environ.setdefault("S3_ENDPOINT_URL", "http://localhost:9000")
get_settings.cache_clear()  # type: ignore[attr-defined]

from s3gateway.api.v1.deps import get_storage_client  # noqa: E402
from s3gateway.main import create_app  # noqa: E402
from tests.services.mock_storage import MockStorageClient  # noqa: E402


@pytest.fixture(autouse=True)
def reset_settings_cache():
    get_settings.cache_clear()  # type: ignore[attr-defined]
    yield
    get_settings.cache_clear()  # type: ignore[attr-defined]


@pytest.fixture
def storage() -> MockStorageClient:
    storage = MockStorageClient()
    storage.buckets["media"] = {}
    return storage


@pytest.fixture
def app(storage):
    application = create_app()
    application.dependency_overrides[get_storage_client] = lambda: storage
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)
