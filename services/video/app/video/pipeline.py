"""
Video ingestion pipeline.

validate → authorize → stage → probe → classify → remux → upload → record

Each step fails fast and aborts the rest; nothing is retried here. Staged
files (the raw upload and the remuxed copy) are released on every exit path.
Collaborators are injected so the orchestration can run against fakes.
"""
from __future__ import annotations

import logging
import re
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

from python_multipart.multipart import parse_options_header

from app.exceptions import (
    InvalidContentType,
    NotVideoOwner,
    UnsupportedVideoType,
    UploadFileTooLarge,
    VideoNotFound,
)
from app.ffmpeg import FastStartRemuxer, MediaProbe
from app.s3 import ObjectStore
from app.staging import AsyncReadable, StagingStore
from app.video.constants import VIDEO_CONTENT_TYPE
from app.video.models import Video
from app.video.service import StorageLocator, build_storage_key, classify_dimensions

logger = logging.getLogger(__name__)

# RFC 7230 token characters
_MEDIA_TOKEN = re.compile(r"[!#$%&'*+.^_`|~0-9a-z-]+")

OwnerCheck = Callable[[Video], bool]


class VideoRepository(Protocol):
    async def get_video(self, video_id: uuid.UUID) -> Video | None: ...

    async def update_video(self, video: Video) -> Video: ...


@dataclass
class UploadRequest:
    owner_id: uuid.UUID
    video_id: uuid.UUID
    content_type: str
    stream: AsyncReadable
    declared_size: int | None = None


def parse_media_type(content_type: str) -> str:
    """``video/MP4; codecs=avc1`` → ``video/mp4``.

    Anything that is not a single ``type/subtype`` pair raises InvalidContentType.
    """
    try:
        raw, _ = parse_options_header(content_type)
        media_type = raw.decode("latin-1")
    except (UnicodeError, ValueError) as exc:
        raise InvalidContentType() from exc
    main, _, sub = media_type.partition("/")
    if not _MEDIA_TOKEN.fullmatch(main) or not _MEDIA_TOKEN.fullmatch(sub):
        raise InvalidContentType()
    return media_type


def owned_by(owner_id: uuid.UUID) -> OwnerCheck:
    def check(video: Video) -> bool:
        return video.user_id == owner_id
    return check


class VideoIngestionPipeline:
    def __init__(
        self,
        *,
        videos: VideoRepository,
        store: ObjectStore,
        probe: MediaProbe,
        remuxer: FastStartRemuxer,
        staging: StagingStore,
        bucket: str,
        max_upload_bytes: int,
    ) -> None:
        self.videos = videos
        self.store = store
        self.probe = probe
        self.remuxer = remuxer
        self.staging = staging
        self.bucket = bucket
        self.max_upload_bytes = max_upload_bytes

    def check_size(self, declared_size: int | None) -> None:
        if declared_size is not None and declared_size > self.max_upload_bytes:
            raise UploadFileTooLarge(self.max_upload_bytes // (1024 * 1024))

    async def authorize(
        self,
        video_id: uuid.UUID,
        owner_check: OwnerCheck,
    ) -> Video:
        video = await self.videos.get_video(video_id)
        if video is None:
            raise VideoNotFound()
        if not owner_check(video):
            raise NotVideoOwner()
        return video

    async def ingest(
        self,
        request: UploadRequest,
        owner_check: OwnerCheck | None = None,
        *,
        video: Video | None = None,
    ) -> StorageLocator:
        """Store the upload and point the record at it.

        ``video`` may be passed when the caller already fetched the record;
        the ownership check still runs before anything is staged.
        """
        if owner_check is None:
            owner_check = owned_by(request.owner_id)

        self.check_size(request.declared_size)

        media_type = parse_media_type(request.content_type)
        if media_type != VIDEO_CONTENT_TYPE:
            logger.warning(
                "Rejected upload for video %s: content type %s",
                request.video_id, media_type,
            )
            raise UnsupportedVideoType(media_type)

        if video is None:
            video = await self.authorize(request.video_id, owner_check)
        elif not owner_check(video):
            raise NotVideoOwner()

        async with self.staging.staged() as original:
            size = await self.staging.write(
                original, request.stream, limit=self.max_upload_bytes,
            )
            logger.info("Staged %d bytes for video %s", size, video.id)

            width, height = await self.probe.probe(original.path)
            aspect = classify_dimensions(width, height)
            logger.info(
                "Video %s is %dx%d (%s)", video.id, width, height, aspect.value,
            )

            processed_path = await self.remuxer.remux(original.path)
            async with self.staging.adopted(processed_path) as processed:
                key = build_storage_key(aspect)
                await self.store.put(self.bucket, key, processed.path, media_type)

        locator = StorageLocator(bucket=self.bucket, key=key)
        video.video_url = locator.encode()
        await self.videos.update_video(video)
        logger.info("Video %s stored at %s", video.id, video.video_url)
        return locator
