"""Bucket API router."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response, status

from s3gateway.api.v1.deps import get_services, require_permission
from s3gateway.api.v1.schemas.buckets import BucketCreate, BucketOut, BucketsOut
from s3gateway.api.v1.schemas.objects import ObjectKeysOut
from s3gateway.api.v1.utils import translate_errors
from s3gateway.app.services.bundle import ServiceBundle
from s3gateway.common.permissions import Permissions

router = APIRouter()


@router.post(
    "/buckets",
    response_model=BucketOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create bucket",
    dependencies=[Depends(require_permission(Permissions.BUCKETS_WRITE))],
)
def create_bucket(
    payload: BucketCreate,
    services: ServiceBundle = Depends(get_services),
) -> BucketOut:
    with translate_errors():
        name = services.objects().create_bucket(payload.name)
    return BucketOut(name=name)


@router.get(
    "/buckets",
    response_model=BucketsOut,
    summary="List buckets",
    dependencies=[Depends(require_permission(Permissions.BUCKETS_READ))],
)
def list_buckets(services: ServiceBundle = Depends(get_services)) -> BucketsOut:
    with translate_errors():
        names = services.objects().list_buckets()
    return BucketsOut(items=names)


@router.delete(
    "/buckets/{bucket}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete bucket",
    dependencies=[Depends(require_permission(Permissions.BUCKETS_WRITE))],
)
def delete_bucket(
    bucket: str,
    services: ServiceBundle = Depends(get_services),
) -> Response:
    with translate_errors():
        services.objects().delete_bucket(bucket)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get(
    "/buckets/{bucket}/objects",
    response_model=ObjectKeysOut,
    summary="List objects",
    description="List object keys in a bucket, optionally under a prefix.",
    dependencies=[Depends(require_permission(Permissions.OBJECTS_READ))],
)
def list_objects(
    bucket: str,
    prefix: str | None = Query(default=None),
    services: ServiceBundle = Depends(get_services),
) -> ObjectKeysOut:
    with translate_errors():
        keys = services.objects().list_objects(bucket, prefix)
    return ObjectKeysOut(bucket=bucket, prefix=prefix, keys=keys)
