from .base import BaseService, InvalidRequestError, PayloadTooLargeError, ServiceError
from .bundle import ServiceBundle, get_service_bundle
from .multipart_service import (
    AbortError,
    CommitError,
    EmptyPayloadError,
    InvalidSessionTransition,
    InvalidUploadError,
    MultipartUploadError,
    MultipartUploadService,
    PartDescriptor,
    PartUploadError,
    SessionOpenError,
    SessionState,
    UploadSession,
    plan_parts,
)
from .object_service import ObjectService

__all__ = [
    "BaseService",
    "ServiceError",
    "InvalidRequestError",
    "PayloadTooLargeError",
    "ServiceBundle",
    "get_service_bundle",
    "MultipartUploadService",
    "MultipartUploadError",
    "SessionOpenError",
    "PartUploadError",
    "CommitError",
    "AbortError",
    "InvalidUploadError",
    "EmptyPayloadError",
    "InvalidSessionTransition",
    "PartDescriptor",
    "SessionState",
    "UploadSession",
    "plan_parts",
    "ObjectService",
]
