"""
Video — HTTP routes.

All endpoints require JWT auth (Bearer token from the identity service).
"""
import uuid

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings
from app.database import get_db
from app.rate_limit import UPLOAD_RATE_LIMIT, limiter
from app.s3 import ObjectStore
from app.video import controller
from app.video.dependencies import (
    get_current_user_required,
    get_object_store,
    get_pipeline,
    get_settings,
    parse_video_id,
)
from app.video.pipeline import VideoIngestionPipeline
from app.video.schemas import (
    CreateVideoRequest,
    MessageResponse,
    VideoListResponse,
    VideoResponse,
)
from shared.models.user import CurrentUser

router = APIRouter(prefix="/videos", tags=["videos"])


# ── Drafts ───────────────────────────────────────────────────────────────────

@router.post(
    "",
    response_model=VideoResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a video draft",
    description="Creates an empty video record. Upload the media with POST /videos/{id}/video.",
)
async def create_video(
    request: CreateVideoRequest,
    user: CurrentUser = Depends(get_current_user_required),
    db: AsyncSession = Depends(get_db),
) -> VideoResponse:
    return await controller.create_video(request, user, db)


@router.get(
    "",
    response_model=VideoListResponse,
    summary="List my videos",
    description="Paginated list of the caller's videos with fresh signed URLs.",
)
async def list_videos(
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
    user: CurrentUser = Depends(get_current_user_required),
    db: AsyncSession = Depends(get_db),
    store: ObjectStore = Depends(get_object_store),
) -> VideoListResponse:
    return await controller.list_videos(user, db, store, page=page, page_size=page_size)


@router.get(
    "/{video_id}",
    response_model=VideoResponse,
    summary="Get video details",
)
async def get_video(
    video_id: uuid.UUID = Depends(parse_video_id),
    user: CurrentUser = Depends(get_current_user_required),
    db: AsyncSession = Depends(get_db),
    store: ObjectStore = Depends(get_object_store),
) -> VideoResponse:
    return await controller.get_video(video_id, user, db, store)


@router.delete(
    "/{video_id}",
    response_model=MessageResponse,
    summary="Delete a video",
)
async def delete_video(
    video_id: uuid.UUID = Depends(parse_video_id),
    user: CurrentUser = Depends(get_current_user_required),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    return await controller.delete_video(video_id, user, db)


# ── Uploads ──────────────────────────────────────────────────────────────────

@router.post(
    "/{video_id}/video",
    response_model=VideoResponse,
    summary="Upload the video file",
    description=(
        "Multipart field `video`, `video/mp4` only, up to 1 GiB. The file is "
        "probed for orientation, remuxed for fast start and stored in S3. "
        "The response carries a presigned URL valid for one hour."
    ),
)
@limiter.limit(UPLOAD_RATE_LIMIT)
async def upload_video(
    request: Request,
    video_id: uuid.UUID = Depends(parse_video_id),
    user: CurrentUser = Depends(get_current_user_required),
    pipeline: VideoIngestionPipeline = Depends(get_pipeline),
    store: ObjectStore = Depends(get_object_store),
) -> VideoResponse:
    return await controller.upload_video(video_id, request, user, pipeline, store)


@router.post(
    "/{video_id}/thumbnail",
    response_model=VideoResponse,
    summary="Upload a thumbnail",
    description="Multipart field `thumbnail`, JPEG or PNG, up to 10 MiB.",
)
@limiter.limit(UPLOAD_RATE_LIMIT)
async def upload_thumbnail(
    request: Request,
    video_id: uuid.UUID = Depends(parse_video_id),
    user: CurrentUser = Depends(get_current_user_required),
    db: AsyncSession = Depends(get_db),
    store: ObjectStore = Depends(get_object_store),
    settings: Settings = Depends(get_settings),
) -> VideoResponse:
    return await controller.upload_thumbnail(video_id, request, user, db, store, settings)
