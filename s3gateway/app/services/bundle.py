from __future__ import annotations

from dataclasses import dataclass, field

from s3gateway.common.config import Settings
from s3gateway.infra.storage.client import StorageClient

from .multipart_service import MultipartUploadService
from .object_service import ObjectService


@dataclass
class ServiceBundle:
    """Lazily constructs application services sharing the same storage client."""

    storage: StorageClient
    settings: Settings
    _objects: ObjectService | None = field(default=None, init=False, repr=False)
    _multipart: MultipartUploadService | None = field(
        default=None, init=False, repr=False
    )

    def objects(self) -> ObjectService:
        if self._objects is None:
            self._objects = ObjectService(self.storage, settings=self.settings)
        return self._objects

    def multipart(self) -> MultipartUploadService:
        if self._multipart is None:
            self._multipart = MultipartUploadService(
                self.storage, settings=self.settings
            )
        return self._multipart


def get_service_bundle(storage: StorageClient, settings: Settings) -> ServiceBundle:
    return ServiceBundle(storage=storage, settings=settings)
