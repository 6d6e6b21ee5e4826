from __future__ import annotations

import pytest

from s3gateway.common.config import (
    DEFAULT_MAX_UPLOAD_BYTES,
    MIN_PART_SIZE_BYTES,
    Settings,
    get_settings,
)


def test_defaults():
    settings = Settings()
    assert settings.S3_REGION == "us-east-1"
    assert settings.STORAGE_PART_SIZE_BYTES == MIN_PART_SIZE_BYTES
    assert settings.STORAGE_UPLOAD_CONCURRENCY == 1
    assert settings.STORAGE_MAX_UPLOAD_BYTES == DEFAULT_MAX_UPLOAD_BYTES
    assert settings.STORAGE_PRESIGN_EXPIRES_SECONDS == 600
    assert settings.AUTH_DEFAULT_PERMISSIONS == ["*"]


def test_reads_environment(monkeypatch):
    monkeypatch.setenv("S3_ENDPOINT_URL", "http://minio:9000")
    monkeypatch.setenv("S3_USE_SSL", "false")
    monkeypatch.setenv("S3_ADDRESSING_STYLE", "virtual")
    monkeypatch.setenv("STORAGE_PART_SIZE_BYTES", str(8 * 1024 * 1024))
    monkeypatch.setenv("STORAGE_UPLOAD_CONCURRENCY", "4")
    monkeypatch.setenv("CORS_ORIGINS", "http://a.test, http://b.test")
    get_settings.cache_clear()  # type: ignore[attr-defined]

    settings = get_settings()

    assert settings.S3_ENDPOINT_URL == "http://minio:9000"
    assert settings.S3_USE_SSL is False
    assert settings.S3_ADDRESSING_STYLE == "virtual"
    assert settings.STORAGE_PART_SIZE_BYTES == 8 * 1024 * 1024
    assert settings.STORAGE_UPLOAD_CONCURRENCY == 4
    assert settings.CORS_ORIGINS == ["http://a.test", "http://b.test"]


def test_blank_endpoint_means_aws(monkeypatch):
    monkeypatch.setenv("S3_ENDPOINT_URL", "  ")
    assert Settings.from_environment().S3_ENDPOINT_URL is None


@pytest.mark.parametrize(
    "overrides",
    [
        {"STORAGE_PART_SIZE_BYTES": MIN_PART_SIZE_BYTES - 1},
        {"STORAGE_UPLOAD_CONCURRENCY": 0},
        {"STORAGE_PRESIGN_EXPIRES_SECONDS": 0},
        {"S3_MAX_ATTEMPTS": 0},
        {"S3_ADDRESSING_STYLE": "sideways"},
    ],
)
def test_rejects_invalid_values(overrides):
    with pytest.raises(ValueError):
        Settings(**overrides)
