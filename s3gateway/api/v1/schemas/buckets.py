"""Pydantic schemas for bucket API endpoints."""

from __future__ import annotations

from pydantic import BaseModel, Field


class BucketCreate(BaseModel):
    """Request body for creating a bucket."""

    name: str = Field(min_length=3, max_length=63)


class BucketOut(BaseModel):
    name: str


class BucketsOut(BaseModel):
    items: list[str]
