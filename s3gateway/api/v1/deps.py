from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from functools import lru_cache

from fastapi import Depends, Header, HTTPException

from s3gateway.app.services.bundle import ServiceBundle, get_service_bundle
from s3gateway.common.auth import AuthenticationError, Authenticator, Principal
from s3gateway.common.config import get_settings
from s3gateway.infra.storage.client import StorageClient
from s3gateway.infra.storage.s3_client import S3StorageClient

logger = logging.getLogger("http")


@lru_cache(maxsize=1)
def _default_storage_client() -> S3StorageClient:
    return S3StorageClient(settings=get_settings())


def get_storage_client() -> StorageClient:
    return _default_storage_client()


def get_services(
    storage: StorageClient = Depends(get_storage_client),
) -> ServiceBundle:
    return get_service_bundle(storage, get_settings())


def get_current_principal(
    authorization: str | None = Header(default=None),
    x_user_id: str | None = Header(default=None),
) -> Principal:
    authenticator = Authenticator(get_settings())
    try:
        return authenticator.authenticate(
            authorization_header=authorization,
            fallback_user_id=x_user_id,
        )
    except AuthenticationError as exc:
        raise HTTPException(
            status_code=401,
            detail={
                "message": str(exc),
                "error_code": "unauthenticated",
            },
        ) from exc


def get_request_context(
    principal: Principal = Depends(get_current_principal),
    x_request_id: str | None = Header(default=None),
):
    return {
        "user_id": principal.user_id,
        "request_id": x_request_id,
        "principal": principal,
    }


def require_api_key(x_api_key: str | None = Header(default=None)) -> None:
    settings = get_settings()
    if settings.API_KEY_ENABLED:
        api_key_expected = getattr(settings, "API_KEY", None)
        if not x_api_key or (api_key_expected and x_api_key != api_key_expected):
            raise HTTPException(status_code=401, detail="Invalid API key")


def ensure_permissions(principal: Principal, permissions: Iterable[str]) -> None:
    missing = principal.missing_permissions(permissions)
    if missing:
        logger.warning(
            "permission_denied user_id=%s missing=%s",
            principal.user_id,
            ",".join(missing),
        )
        raise HTTPException(
            status_code=403,
            detail={
                "message": "Missing required permissions",
                "missing_permissions": missing,
                "error_code": "permission_denied",
            },
        )


def require_permissions(*permissions: str) -> Callable[[], None]:
    if not permissions:
        raise ValueError("At least one permission must be provided")

    def dependency(principal: Principal = Depends(get_current_principal)) -> None:
        ensure_permissions(principal, permissions)

    return dependency


def require_permission(permission: str) -> Callable[[], None]:
    return require_permissions(permission)
