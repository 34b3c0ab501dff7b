"""
AWS S3 utilities — durable video storage and presigned GET URLs.

Upload flow:
  1. The API stages and remuxes the upload locally.
  2. The remuxed file is streamed to S3 with PutObject semantics.
  3. The record stores "<bucket>,<key>"; reads mint a 1-hour presigned URL.
"""
from __future__ import annotations

import logging
from typing import Protocol

import aioboto3
import aiofiles
from botocore.exceptions import BotoCoreError, ClientError

from app.config import Settings
from app.exceptions import S3PresignError, StorageUploadFailed
from app.video.constants import VIDEO_URL_EXPIRY_SECONDS

logger = logging.getLogger(__name__)


class ObjectStore(Protocol):
    async def put(self, bucket: str, key: str, path: str, content_type: str) -> None: ...

    async def presign_get(
        self, bucket: str, key: str, expiry_seconds: int = VIDEO_URL_EXPIRY_SECONDS,
    ) -> str: ...


def _s3_session(settings: Settings) -> aioboto3.Session:
    return aioboto3.Session(
        aws_access_key_id=settings.aws_access_key_id or None,
        aws_secret_access_key=settings.aws_secret_access_key or None,
        region_name=settings.aws_region,
    )


def _client_kwargs(settings: Settings) -> dict[str, str]:
    if settings.s3_endpoint_url:
        return {"endpoint_url": settings.s3_endpoint_url}
    return {}


async def upload_file(
    bucket: str,
    key: str,
    path: str,
    content_type: str,
    settings: Settings,
) -> None:
    """Stream a local file to S3 under ``key``."""
    try:
        async with _s3_session(settings).client("s3", **_client_kwargs(settings)) as s3:
            async with aiofiles.open(path, "rb") as body:
                await s3.upload_fileobj(
                    body, bucket, key, ExtraArgs={"ContentType": content_type},
                )
    except (BotoCoreError, ClientError) as exc:
        logger.error("S3 upload failed for s3://%s/%s: %s", bucket, key, exc)
        raise StorageUploadFailed() from exc
    except OSError as exc:
        logger.error("Could not read %s for upload: %s", path, exc)
        raise StorageUploadFailed() from exc
    logger.info("Uploaded s3://%s/%s", bucket, key)


async def generate_presigned_get_url(
    bucket: str,
    key: str,
    settings: Settings,
    expiry_seconds: int = VIDEO_URL_EXPIRY_SECONDS,
) -> str:
    """Return a presigned GET URL for direct S3 access."""
    try:
        async with _s3_session(settings).client("s3", **_client_kwargs(settings)) as s3:
            url: str = await s3.generate_presigned_url(
                "get_object",
                Params={"Bucket": bucket, "Key": key},
                ExpiresIn=expiry_seconds,
            )
    except (BotoCoreError, ClientError) as exc:
        logger.error("Presign failed for s3://%s/%s: %s", bucket, key, exc)
        raise S3PresignError() from exc
    return url


class S3ObjectStore:
    """ObjectStore backed by aioboto3, configured from Settings."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    async def put(self, bucket: str, key: str, path: str, content_type: str) -> None:
        await upload_file(bucket, key, path, content_type, self.settings)

    async def presign_get(
        self, bucket: str, key: str, expiry_seconds: int = VIDEO_URL_EXPIRY_SECONDS,
    ) -> str:
        return await generate_presigned_get_url(bucket, key, self.settings, expiry_seconds)
