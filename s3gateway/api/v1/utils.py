from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from fastapi import HTTPException, status

from s3gateway.app.services.base import (
    InvalidRequestError,
    PayloadTooLargeError,
)
from s3gateway.app.services.multipart_service import (
    EmptyPayloadError,
    MultipartUploadError,
)
from s3gateway.infra.storage.client import (
    ObjectNotFoundError,
    StorageConflictError,
    StorageError,
)


def upload_metadata(user_id: str | None) -> dict[str, str]:
    """User metadata attached to every object written through the API."""
    return {"uploaded-by": user_id or "<missing>"}


@contextmanager
def translate_errors() -> Iterator[None]:
    """Map service and storage exceptions onto HTTP errors."""
    try:
        yield
    except PayloadTooLargeError as exc:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail=str(exc)
        ) from exc
    except EmptyPayloadError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"message": str(exc), "error_code": "empty_payload"},
        ) from exc
    except InvalidRequestError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)
        ) from exc
    except MultipartUploadError as exc:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={**exc.context(), "error_code": exc.error_code},
        ) from exc
    except ObjectNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)
        ) from exc
    except StorageConflictError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT, detail=str(exc)
        ) from exc
    except StorageError as exc:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"message": str(exc), "error_code": "storage_error"},
        ) from exc
