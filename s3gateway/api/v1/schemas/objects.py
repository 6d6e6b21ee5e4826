"""Pydantic schemas for object, presign and multipart API endpoints."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class ObjectOut(BaseModel):
    """Reference to a stored object."""

    model_config = ConfigDict(from_attributes=True)

    bucket: str
    key: str
    etag: str | None = None
    size_bytes: int | None = None
    version_id: str | None = None
    location: str | None = None
    part_count: int | None = None


class ObjectKeysOut(BaseModel):
    bucket: str
    prefix: str | None = None
    keys: list[str]


class ObjectCopy(BaseModel):
    """Request body for copying an object."""

    source_bucket: str = Field(min_length=1)
    source_key: str = Field(min_length=1)
    dest_bucket: str = Field(min_length=1)
    dest_key: str = Field(min_length=1)


class PresignRequest(BaseModel):
    """Request body for generating a presigned URL."""

    bucket: str = Field(min_length=1)
    key: str = Field(min_length=1)
    method: Literal["GET", "PUT"] = "GET"
    expires_in: int | None = Field(default=None, ge=1)
    filename: str | None = None
    content_type: str | None = None


class PresignOut(BaseModel):
    url: str
    method: str
    expires_in: int
