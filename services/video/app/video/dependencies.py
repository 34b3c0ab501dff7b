"""
Video service — auth and pipeline dependencies.

Auth guards are re-exported from shared; JWTs are issued by the identity
service and validated here with the same secret. The pipeline and object
store are built per request from Settings so tests can override them.
"""
import uuid

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings
from app.database import get_db
from app.exceptions import InvalidVideoId
from app.ffmpeg import FFmpegFastStartRemuxer, FFprobeMediaProbe
from app.s3 import ObjectStore, S3ObjectStore
from app.staging import StagingStore
from app.video.pipeline import VideoIngestionPipeline
from app.video.service import SqlVideoRepository
from shared.auth import get_current_user_required

__all__ = [
    "get_current_user_required",
    "get_object_store",
    "get_pipeline",
    "get_settings",
    "parse_video_id",
]


def get_settings() -> Settings:
    return Settings()


def get_object_store(settings: Settings = Depends(get_settings)) -> ObjectStore:
    return S3ObjectStore(settings)


def get_pipeline(
    db: AsyncSession = Depends(get_db),
    store: ObjectStore = Depends(get_object_store),
    settings: Settings = Depends(get_settings),
) -> VideoIngestionPipeline:
    return VideoIngestionPipeline(
        videos=SqlVideoRepository(db),
        store=store,
        probe=FFprobeMediaProbe.from_settings(settings),
        remuxer=FFmpegFastStartRemuxer.from_settings(settings),
        staging=StagingStore(settings.staging_dir),
        bucket=settings.s3_bucket,
        max_upload_bytes=settings.max_upload_bytes,
    )


def parse_video_id(video_id: str) -> uuid.UUID:
    """Path parameter → UUID; resolved before authentication."""
    try:
        return uuid.UUID(video_id)
    except ValueError:
        raise InvalidVideoId()
