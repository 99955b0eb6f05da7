"""Object store adapter: bytes addressed by keys derived from tree position.

The engines only see the ``ObjectStore`` protocol. ``S3ObjectStore`` is the
production implementation on top of boto3; any S3-compatible endpoint
(MinIO, R2) works through ``s3_endpoint_url``.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Protocol

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from ..exceptions import StorageUnavailableError

logger = logging.getLogger(__name__)

PLACEHOLDER_CONTENT_TYPE = "application/x-directory"

# Error codes S3 returns for a key that is already gone.
_MISSING_KEY_CODES = frozenset({"NoSuchKey", "404", "NotFound"})


@dataclass(frozen=True)
class PresignedUrl:
    """Credential-free retrieval URL and the instant it stops working."""
    url: str
    expires_at: datetime


class ObjectStore(Protocol):
    """What the engines need from object storage."""

    def put(self, key: str, data: bytes, content_type: str = "application/octet-stream") -> None:
        ...

    def delete(self, key: str) -> None:
        """Remove *key*. A missing key is not an error."""
        ...

    def presign(self, key: str, ttl_seconds: int) -> PresignedUrl:
        ...


class S3ObjectStore:
    """boto3-backed object store with explicit timeouts on every call."""

    def __init__(
        self,
        bucket: str,
        region: str = "us-east-1",
        endpoint_url: Optional[str] = None,
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None,
        connect_timeout: float = 5.0,
        read_timeout: float = 30.0,
        max_attempts: int = 3,
        client=None,
    ):
        self.bucket = bucket
        if client is None:
            client = boto3.client(
                "s3",
                region_name=region,
                endpoint_url=endpoint_url or None,
                aws_access_key_id=access_key_id,
                aws_secret_access_key=secret_access_key,
                config=Config(
                    connect_timeout=connect_timeout,
                    read_timeout=read_timeout,
                    retries={"max_attempts": max_attempts, "mode": "standard"},
                    signature_version="s3v4",
                ),
            )
        self.client = client

    def put(self, key: str, data: bytes, content_type: str = "application/octet-stream") -> None:
        try:
            self.client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error("Object put failed", extra={"key": key, "error": str(e)})
            raise StorageUnavailableError("put", key, e) from e
        logger.debug("Stored object", extra={"key": key, "size": len(data)})

    def delete(self, key: str) -> None:
        try:
            self.client.delete_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "")
            if code in _MISSING_KEY_CODES:
                logger.debug("Object already absent", extra={"key": key})
                return
            raise StorageUnavailableError("delete", key, e) from e
        except BotoCoreError as e:
            raise StorageUnavailableError("delete", key, e) from e

    def presign(self, key: str, ttl_seconds: int) -> PresignedUrl:
        # Signing is local, but credential resolution can still fail.
        try:
            url = self.client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket, "Key": key},
                ExpiresIn=ttl_seconds,
            )
        except (ClientError, BotoCoreError) as e:
            raise StorageUnavailableError("presign", key, e) from e
        expires_at = datetime.now(timezone.utc) + timedelta(seconds=ttl_seconds)
        return PresignedUrl(url=url, expires_at=expires_at)
