"""Object storage adapter and its FastAPI dependency."""

from functools import lru_cache

from ..core.config import settings
from .object_store import (
    ObjectStore,
    PresignedUrl,
    S3ObjectStore,
    PLACEHOLDER_CONTENT_TYPE,
)


@lru_cache(maxsize=1)
def get_object_store() -> ObjectStore:
    """Process-wide S3 client. boto3 clients are thread-safe."""
    return S3ObjectStore(
        bucket=settings.s3_bucket_name,
        region=settings.s3_region,
        endpoint_url=settings.s3_endpoint_url,
        access_key_id=settings.aws_access_key_id,
        secret_access_key=settings.aws_secret_access_key,
        connect_timeout=settings.s3_connect_timeout,
        read_timeout=settings.s3_read_timeout,
        max_attempts=settings.s3_max_attempts,
    )


__all__ = [
    "ObjectStore",
    "PresignedUrl",
    "S3ObjectStore",
    "PLACEHOLDER_CONTENT_TYPE",
    "get_object_store",
]
