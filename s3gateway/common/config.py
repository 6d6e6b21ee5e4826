from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path

ENV_FILE = Path(".env")

DEFAULT_AUTH_PERMISSIONS: tuple[str, ...] = ("*",)

# S3 rejects non-final parts smaller than 5 MiB
MIN_PART_SIZE_BYTES = 5 * 1024 * 1024
DEFAULT_MAX_UPLOAD_BYTES = 5 * 1024 * 1024 * 1024


def _load_env_file() -> None:
    if not ENV_FILE.exists():
        return
    for raw_line in ENV_FILE.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key and key not in os.environ:
            os.environ[key] = value


def _as_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.lower() in {"1", "true", "t", "yes", "y", "on"}


def _as_list(value: str | None) -> list[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def _as_optional(value: str | None) -> str | None:
    if value is None or not value.strip():
        return None
    return value.strip()


@dataclass
class Settings:
    S3_ENDPOINT_URL: str | None = None
    S3_REGION: str = "us-east-1"
    S3_ACCESS_KEY_ID: str = "test"
    S3_SECRET_ACCESS_KEY: str = "test"
    S3_USE_SSL: bool = True
    S3_ADDRESSING_STYLE: str = "path"
    S3_MAX_ATTEMPTS: int = 3
    STORAGE_PART_SIZE_BYTES: int = MIN_PART_SIZE_BYTES
    STORAGE_UPLOAD_CONCURRENCY: int = 1
    STORAGE_MAX_UPLOAD_BYTES: int = DEFAULT_MAX_UPLOAD_BYTES
    STORAGE_PRESIGN_EXPIRES_SECONDS: int = 600
    ENABLE_METRICS: bool = True
    API_KEY_ENABLED: bool = False
    API_KEY: str | None = None
    CORS_ENABLED: bool = False
    CORS_ORIGINS: list[str] = field(default_factory=list)
    TRACE_HTTP: bool = False
    AUTH_ENABLED: bool = False
    AUTH_ALLOW_ANONYMOUS: bool = False
    AUTH_TOKEN_SECRET: str | None = None
    AUTH_TOKEN_ALGORITHM: str = "HS256"
    AUTH_TOKEN_AUDIENCE: str | None = None
    AUTH_TOKEN_ISSUER: str | None = None
    AUTH_TOKEN_LEEWAY: int = 0
    AUTH_DEFAULT_PERMISSIONS: list[str] = field(
        default_factory=lambda: list(DEFAULT_AUTH_PERMISSIONS)
    )

    def __post_init__(self) -> None:
        if self.STORAGE_PART_SIZE_BYTES < MIN_PART_SIZE_BYTES:
            raise ValueError(
                f"STORAGE_PART_SIZE_BYTES must be at least {MIN_PART_SIZE_BYTES} bytes."
            )
        if self.STORAGE_UPLOAD_CONCURRENCY < 1:
            raise ValueError("STORAGE_UPLOAD_CONCURRENCY must be at least 1.")
        if self.STORAGE_PRESIGN_EXPIRES_SECONDS <= 0:
            raise ValueError("STORAGE_PRESIGN_EXPIRES_SECONDS must be positive.")
        if self.S3_MAX_ATTEMPTS < 1:
            raise ValueError("S3_MAX_ATTEMPTS must be at least 1.")
        style = (self.S3_ADDRESSING_STYLE or "").strip().lower()
        if style not in {"path", "virtual", "auto"}:
            raise ValueError(
                "S3_ADDRESSING_STYLE must be one of 'path', 'virtual' or 'auto'."
            )

    @classmethod
    def from_environment(cls) -> "Settings":
        _load_env_file()

        auth_default_permissions_env = os.environ.get("AUTH_DEFAULT_PERMISSIONS")
        if auth_default_permissions_env is None:
            auth_default_permissions = list(DEFAULT_AUTH_PERMISSIONS)
        else:
            auth_default_permissions = _as_list(auth_default_permissions_env)

        return cls(
            S3_ENDPOINT_URL=_as_optional(os.environ.get("S3_ENDPOINT_URL")),
            S3_REGION=os.environ.get("S3_REGION", cls.S3_REGION),
            S3_ACCESS_KEY_ID=os.environ.get("S3_ACCESS_KEY_ID", cls.S3_ACCESS_KEY_ID),
            S3_SECRET_ACCESS_KEY=os.environ.get(
                "S3_SECRET_ACCESS_KEY", cls.S3_SECRET_ACCESS_KEY
            ),
            S3_USE_SSL=_as_bool(os.environ.get("S3_USE_SSL"), cls.S3_USE_SSL),
            S3_ADDRESSING_STYLE=os.environ.get(
                "S3_ADDRESSING_STYLE", cls.S3_ADDRESSING_STYLE
            ),
            S3_MAX_ATTEMPTS=int(
                os.environ.get("S3_MAX_ATTEMPTS", cls.S3_MAX_ATTEMPTS)
            ),
            STORAGE_PART_SIZE_BYTES=int(
                os.environ.get("STORAGE_PART_SIZE_BYTES", cls.STORAGE_PART_SIZE_BYTES)
            ),
            STORAGE_UPLOAD_CONCURRENCY=int(
                os.environ.get(
                    "STORAGE_UPLOAD_CONCURRENCY", cls.STORAGE_UPLOAD_CONCURRENCY
                )
            ),
            STORAGE_MAX_UPLOAD_BYTES=int(
                os.environ.get(
                    "STORAGE_MAX_UPLOAD_BYTES", cls.STORAGE_MAX_UPLOAD_BYTES
                )
            ),
            STORAGE_PRESIGN_EXPIRES_SECONDS=int(
                os.environ.get(
                    "STORAGE_PRESIGN_EXPIRES_SECONDS",
                    cls.STORAGE_PRESIGN_EXPIRES_SECONDS,
                )
            ),
            ENABLE_METRICS=_as_bool(
                os.environ.get("ENABLE_METRICS"), cls.ENABLE_METRICS
            ),
            API_KEY_ENABLED=_as_bool(
                os.environ.get("API_KEY_ENABLED"), cls.API_KEY_ENABLED
            ),
            API_KEY=os.environ.get("API_KEY"),
            CORS_ENABLED=_as_bool(os.environ.get("CORS_ENABLED"), cls.CORS_ENABLED),
            CORS_ORIGINS=_as_list(os.environ.get("CORS_ORIGINS")),
            TRACE_HTTP=_as_bool(os.environ.get("TRACE_HTTP"), cls.TRACE_HTTP),
            AUTH_ENABLED=_as_bool(os.environ.get("AUTH_ENABLED"), cls.AUTH_ENABLED),
            AUTH_ALLOW_ANONYMOUS=_as_bool(
                os.environ.get("AUTH_ALLOW_ANONYMOUS"), cls.AUTH_ALLOW_ANONYMOUS
            ),
            AUTH_TOKEN_SECRET=os.environ.get("AUTH_TOKEN_SECRET"),
            AUTH_TOKEN_ALGORITHM=os.environ.get(
                "AUTH_TOKEN_ALGORITHM", cls.AUTH_TOKEN_ALGORITHM
            ),
            AUTH_TOKEN_AUDIENCE=os.environ.get("AUTH_TOKEN_AUDIENCE"),
            AUTH_TOKEN_ISSUER=os.environ.get("AUTH_TOKEN_ISSUER"),
            AUTH_TOKEN_LEEWAY=int(
                os.environ.get("AUTH_TOKEN_LEEWAY", cls.AUTH_TOKEN_LEEWAY)
            ),
            AUTH_DEFAULT_PERMISSIONS=auth_default_permissions,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_environment()
