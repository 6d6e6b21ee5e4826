"""Object API router.

Single-shot upload/download, deletion, copy and presigned URLs. Object
bodies travel as the raw request/response body.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response, status
from starlette.concurrency import run_in_threadpool

from s3gateway.api.v1.deps import (
    ensure_permissions,
    get_request_context,
    get_services,
    require_permission,
)
from s3gateway.api.v1.descriptions import PRESIGNED_URL_DESCRIPTION
from s3gateway.api.v1.schemas.objects import (
    ObjectCopy,
    ObjectOut,
    PresignOut,
    PresignRequest,
)
from s3gateway.api.v1.utils import translate_errors, upload_metadata
from s3gateway.app.services.bundle import ServiceBundle
from s3gateway.common.permissions import Permissions

router = APIRouter()


@router.put(
    "/buckets/{bucket}/objects/{key:path}",
    response_model=ObjectOut,
    status_code=status.HTTP_201_CREATED,
    summary="Upload object",
    description="Store the raw request body as a single object.",
    dependencies=[Depends(require_permission(Permissions.OBJECTS_WRITE))],
)
async def upload_object(
    bucket: str,
    key: str,
    request: Request,
    services: ServiceBundle = Depends(get_services),
    ctx: dict = Depends(get_request_context),
) -> ObjectOut:
    data = await request.body()
    with translate_errors():
        reference = await run_in_threadpool(
            services.objects().put_object,
            bucket,
            key,
            data,
            content_type=request.headers.get("Content-Type"),
            metadata=upload_metadata(ctx["user_id"]),
        )
    return ObjectOut.model_validate(reference)


@router.get(
    "/buckets/{bucket}/objects/{key:path}",
    summary="Download object",
    response_class=Response,
    responses={200: {"content": {"application/octet-stream": {}}}},
    dependencies=[Depends(require_permission(Permissions.OBJECTS_READ))],
)
def download_object(
    bucket: str,
    key: str,
    services: ServiceBundle = Depends(get_services),
) -> Response:
    with translate_errors():
        stored = services.objects().get_object(bucket, key)
    headers = {"ETag": stored.etag} if stored.etag else None
    return Response(
        content=stored.body,
        media_type=stored.content_type or "application/octet-stream",
        headers=headers,
    )


@router.delete(
    "/buckets/{bucket}/objects/{key:path}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete object",
    dependencies=[Depends(require_permission(Permissions.OBJECTS_WRITE))],
)
def delete_object(
    bucket: str,
    key: str,
    services: ServiceBundle = Depends(get_services),
) -> Response:
    with translate_errors():
        services.objects().delete_object(bucket, key)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/objects/copy",
    response_model=ObjectOut,
    summary="Copy object",
    dependencies=[Depends(require_permission(Permissions.OBJECTS_WRITE))],
)
def copy_object(
    payload: ObjectCopy,
    services: ServiceBundle = Depends(get_services),
) -> ObjectOut:
    with translate_errors():
        reference = services.objects().copy_object(
            payload.source_bucket,
            payload.source_key,
            payload.dest_bucket,
            payload.dest_key,
        )
    return ObjectOut.model_validate(reference)


@router.post(
    "/presigned-urls",
    response_model=PresignOut,
    summary="Create presigned URL",
    description=PRESIGNED_URL_DESCRIPTION,
)
def create_presigned_url(
    payload: PresignRequest,
    services: ServiceBundle = Depends(get_services),
    ctx: dict = Depends(get_request_context),
) -> PresignOut:
    # GET URLs need read access, PUT URLs write access
    permission = (
        Permissions.OBJECTS_READ if payload.method == "GET" else Permissions.OBJECTS_WRITE
    )
    ensure_permissions(ctx["principal"], [permission])

    with translate_errors():
        if payload.method == "GET":
            url, expires_in = services.objects().presign_download(
                payload.bucket,
                payload.key,
                expires_in=payload.expires_in,
                filename=payload.filename,
            )
        else:
            url, expires_in = services.objects().presign_upload(
                payload.bucket,
                payload.key,
                expires_in=payload.expires_in,
                content_type=payload.content_type,
            )
    return PresignOut(url=url, method=payload.method, expires_in=expires_in)
