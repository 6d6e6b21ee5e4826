from __future__ import annotations


class Permissions:
    BUCKETS_READ = "buckets:read"
    BUCKETS_WRITE = "buckets:write"

    OBJECTS_READ = "objects:read"
    OBJECTS_WRITE = "objects:write"


__all__ = ["Permissions"]
