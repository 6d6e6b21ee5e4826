from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Mapping

import jwt
from jwt import PyJWTError

from s3gateway.common.config import Settings

logger = logging.getLogger("auth")

ANONYMOUS_USER = "<missing>"


class AuthenticationError(Exception):
    """Raised when the caller cannot be authenticated."""


@dataclass(frozen=True)
class Principal:
    user_id: str
    permissions: frozenset[str]
    source: str
    token: str | None = None
    claims: Mapping[str, Any] | None = None

    def has_permission(self, permission: str) -> bool:
        if "*" in self.permissions or permission in self.permissions:
            return True
        # "objects:*" grants "objects:read" and "objects:write"
        resource, _, _ = permission.partition(":")
        return bool(resource) and f"{resource}:*" in self.permissions

    def missing_permissions(self, permissions: Iterable[str]) -> list[str]:
        return [p for p in permissions if not self.has_permission(p)]


class Authenticator:
    def __init__(self, settings: Settings):
        self._settings = settings

    def authenticate(
        self,
        authorization_header: str | None,
        fallback_user_id: str | None,
    ) -> Principal:
        if not self._settings.AUTH_ENABLED:
            return self._header_principal(fallback_user_id, source="legacy")

        credentials = _bearer_credentials(authorization_header)
        if credentials is None:
            if self._settings.AUTH_ALLOW_ANONYMOUS:
                return self._header_principal(fallback_user_id, source="anonymous")
            raise AuthenticationError("Missing bearer token")

        claims = self._decode_token(credentials)
        subject = claims.get("sub")
        if not subject:
            raise AuthenticationError("Token missing 'sub' claim")

        permissions = {p for p in self._settings.AUTH_DEFAULT_PERMISSIONS if p}
        permissions.update(_as_strings(claims.get("permissions")))
        scope = claims.get("scope")
        if isinstance(scope, str):
            permissions.update(scope.split())

        return Principal(
            user_id=str(subject),
            permissions=frozenset(permissions),
            source="bearer",
            token=credentials,
            claims=claims,
        )

    def _header_principal(self, user_id: str | None, *, source: str) -> Principal:
        return Principal(
            user_id=user_id or ANONYMOUS_USER,
            permissions=frozenset(self._settings.AUTH_DEFAULT_PERMISSIONS or ["*"]),
            source=source,
        )

    def _decode_token(self, token: str) -> dict[str, Any]:
        secret = self._settings.AUTH_TOKEN_SECRET
        if not secret:
            raise AuthenticationError(
                "Authentication secret is not configured while AUTH_ENABLED is true"
            )

        options: dict[str, Any] = {"algorithms": [self._settings.AUTH_TOKEN_ALGORITHM]}
        if self._settings.AUTH_TOKEN_AUDIENCE:
            options["audience"] = self._settings.AUTH_TOKEN_AUDIENCE
        if self._settings.AUTH_TOKEN_ISSUER:
            options["issuer"] = self._settings.AUTH_TOKEN_ISSUER
        if self._settings.AUTH_TOKEN_LEEWAY:
            options["leeway"] = self._settings.AUTH_TOKEN_LEEWAY

        try:
            return jwt.decode(token, secret, **options)
        except PyJWTError as exc:
            logger.debug("token_decode_error", exc_info=exc)
            raise AuthenticationError("Invalid authentication token") from exc


def _bearer_credentials(header: str | None) -> str | None:
    if not header or not header.strip():
        return None
    scheme, _, credentials = header.strip().partition(" ")
    if scheme.lower() != "bearer":
        raise AuthenticationError("Invalid authorization header")
    return credentials.strip() or None


def _as_strings(value: Any) -> list[str]:
    if isinstance(value, str):
        return [value]
    if isinstance(value, (list, tuple, set)):
        return [str(item) for item in value if str(item)]
    return []
