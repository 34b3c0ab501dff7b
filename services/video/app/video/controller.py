"""
Video — controller layer.

Receives validated input from router, calls the pipeline and service
functions, composes the response. Thin glue layer between HTTP and
business logic.
"""
from __future__ import annotations

import logging
import uuid
from pathlib import Path
from typing import TYPE_CHECKING

import aiofiles
from starlette.datastructures import UploadFile
from starlette.requests import Request
from starlette.types import Message

from app.exceptions import (
    MissingUploadField,
    NotVideoOwner,
    StagingFailed,
    UnsupportedImageType,
    UploadFileTooLarge,
    VideoNotFound,
)
from app.staging import CHUNK_SIZE
from app.video import service
from app.video.constants import (
    MULTIPART_ENVELOPE_BYTES,
    THUMBNAIL_EXTENSIONS,
    THUMBNAIL_FORM_FIELD,
    VIDEO_FORM_FIELD,
    VIDEO_URL_EXPIRY_SECONDS,
)
from app.video.pipeline import UploadRequest, owned_by, parse_media_type
from app.video.schemas import (
    CreateVideoRequest,
    MessageResponse,
    VideoListResponse,
    VideoResponse,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from app.config import Settings
    from app.s3 import ObjectStore
    from app.video.models import Video
    from app.video.pipeline import VideoIngestionPipeline
    from shared.models.user import CurrentUser

logger = logging.getLogger(__name__)


def _content_length(request: Request) -> int | None:
    raw = request.headers.get("content-length")
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


def _capped(request: Request, limit: int) -> Request:
    """A view of ``request`` whose body raises UploadFileTooLarge past ``limit``.

    Covers chunked bodies that carry no Content-Length, so the multipart
    parser never spools more than the ceiling plus the form envelope.
    """
    ceiling = limit + MULTIPART_ENVELOPE_BYTES
    receive = request.receive
    received = 0

    async def capped_receive() -> Message:
        nonlocal received
        message = await receive()
        if message["type"] == "http.request":
            received += len(message.get("body", b""))
            if received > ceiling:
                logger.warning(
                    "Rejected %s %s: body exceeded %d bytes",
                    request.method, request.url.path, ceiling,
                )
                raise UploadFileTooLarge(limit // (1024 * 1024))
        return message

    return Request(request.scope, receive=capped_receive)


async def _form_file(request: Request, field: str, limit: int) -> UploadFile:
    form = await _capped(request, limit).form(max_files=1)
    upload = form.get(field)
    if not isinstance(upload, UploadFile):
        raise MissingUploadField(field)
    return upload


async def sign_video(video: Video, store: ObjectStore) -> VideoResponse:
    """Swap the stored "bucket,key" locator for a fresh presigned URL."""
    response = VideoResponse.model_validate(video)
    if not video.video_url:
        return response
    locator = service.StorageLocator.decode(video.video_url)
    url = await store.presign_get(locator.bucket, locator.key, VIDEO_URL_EXPIRY_SECONDS)
    return response.model_copy(update={"video_url": url})


async def _get_owned_video(
    db: AsyncSession,
    video_id: uuid.UUID,
    user: CurrentUser,
) -> Video:
    video = await service.get_video_by_id(db, video_id)
    if video is None:
        raise VideoNotFound()
    if video.user_id != user.id:
        raise NotVideoOwner()
    return video


# ── CRUD ─────────────────────────────────────────────────────────────────────

async def create_video(
    request: CreateVideoRequest,
    user: CurrentUser,
    db: AsyncSession,
) -> VideoResponse:
    video = await service.create_video(
        db, user_id=user.id, title=request.title, description=request.description,
    )
    return VideoResponse.model_validate(video)


async def get_video(
    video_id: uuid.UUID,
    user: CurrentUser,
    db: AsyncSession,
    store: ObjectStore,
) -> VideoResponse:
    video = await _get_owned_video(db, video_id, user)
    return await sign_video(video, store)


async def list_videos(
    user: CurrentUser,
    db: AsyncSession,
    store: ObjectStore,
    *,
    page: int = 1,
    page_size: int = 20,
) -> VideoListResponse:
    items, total = await service.get_videos_by_user(
        db, user.id, page=page, page_size=page_size,
    )
    return VideoListResponse(
        items=[await sign_video(v, store) for v in items],
        total=total,
        page=page,
        page_size=page_size,
    )


async def delete_video(
    video_id: uuid.UUID,
    user: CurrentUser,
    db: AsyncSession,
) -> MessageResponse:
    await _get_owned_video(db, video_id, user)
    await service.delete_video(db, video_id, user.id)
    return MessageResponse(message="Video deleted successfully.")


# ── Uploads ──────────────────────────────────────────────────────────────────

async def upload_video(
    video_id: uuid.UUID,
    request: Request,
    user: CurrentUser,
    pipeline: VideoIngestionPipeline,
    store: ObjectStore,
) -> VideoResponse:
    """Ingest a multipart ``video`` upload and return the signed record.

    Order: size ceiling → (id, auth via dependencies) → record + ownership →
    body parse → pipeline. Nothing is parsed or staged for non-owners.
    """
    pipeline.check_size(_content_length(request))
    video = await pipeline.authorize(video_id, owned_by(user.id))

    upload = await _form_file(request, VIDEO_FORM_FIELD, pipeline.max_upload_bytes)
    try:
        await pipeline.ingest(
            UploadRequest(
                owner_id=user.id,
                video_id=video_id,
                content_type=upload.content_type or "",
                stream=upload,
                declared_size=upload.size,
            ),
            video=video,
        )
    finally:
        await upload.close()

    return await sign_video(video, store)


async def upload_thumbnail(
    video_id: uuid.UUID,
    request: Request,
    user: CurrentUser,
    db: AsyncSession,
    store: ObjectStore,
    settings: Settings,
) -> VideoResponse:
    """Store a JPEG/PNG thumbnail under assets_root and link it on the record."""
    limit = settings.max_thumbnail_bytes
    declared = _content_length(request)
    if declared is not None and declared > limit:
        raise UploadFileTooLarge(limit // (1024 * 1024))

    video = await _get_owned_video(db, video_id, user)

    upload = await _form_file(request, THUMBNAIL_FORM_FIELD, limit)
    try:
        media_type = parse_media_type(upload.content_type or "")
        extension = THUMBNAIL_EXTENSIONS.get(media_type)
        if extension is None:
            raise UnsupportedImageType(media_type)

        filename = service.random_asset_name(extension)
        await _write_asset(upload, Path(settings.assets_root) / filename, limit)
    finally:
        await upload.close()

    video.thumbnail_url = f"{settings.public_base_url.rstrip('/')}/assets/{filename}"
    video = await service.save_video(db, video)
    logger.info("Thumbnail for video %s stored as %s", video.id, filename)
    return await sign_video(video, store)


async def _write_asset(upload: UploadFile, path: Path, limit: int) -> None:
    """Copy an upload to ``path``; a partial file never survives a failure."""
    written = 0
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        async with aiofiles.open(path, "wb") as out:
            while chunk := await upload.read(CHUNK_SIZE):
                written += len(chunk)
                if written > limit:
                    raise UploadFileTooLarge(limit // (1024 * 1024))
                await out.write(chunk)
    except OSError as exc:
        path.unlink(missing_ok=True)
        logger.error("Writing asset %s failed: %s", path, exc)
        raise StagingFailed() from exc
    except BaseException:
        path.unlink(missing_ok=True)
        raise
