"""Manual multipart upload router."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, status
from starlette.concurrency import run_in_threadpool

from s3gateway.api.v1.deps import get_request_context, get_services, require_permission
from s3gateway.api.v1.descriptions import MULTIPART_UPLOAD_DESCRIPTION
from s3gateway.api.v1.schemas.objects import ObjectOut
from s3gateway.api.v1.utils import translate_errors, upload_metadata
from s3gateway.app.services.bundle import ServiceBundle
from s3gateway.common.permissions import Permissions

router = APIRouter()


@router.post(
    "/buckets/{bucket}/multipart-uploads/{key:path}",
    response_model=ObjectOut,
    status_code=status.HTTP_201_CREATED,
    summary="Multipart upload",
    description=MULTIPART_UPLOAD_DESCRIPTION,
    dependencies=[Depends(require_permission(Permissions.OBJECTS_WRITE))],
)
async def multipart_upload(
    bucket: str,
    key: str,
    request: Request,
    services: ServiceBundle = Depends(get_services),
    ctx: dict = Depends(get_request_context),
) -> ObjectOut:
    data = await request.body()
    with translate_errors():
        reference = await run_in_threadpool(
            services.multipart().upload,
            bucket,
            key,
            data,
            content_type=request.headers.get("Content-Type"),
            metadata=upload_metadata(ctx["user_id"]),
        )
    return ObjectOut.model_validate(reference)
