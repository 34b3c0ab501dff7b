"""
Video — pure business logic.

Zero FastAPI imports. Receives data objects and session via parameters.
Fully testable in isolation.
"""
from __future__ import annotations

import secrets
import uuid
from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import InvalidStorageLocator
from app.video.constants import (
    LANDSCAPE_RATIO_RANGE,
    LOCATOR_SEPARATOR,
    PORTRAIT_RATIO_RANGE,
    STORAGE_KEY_RANDOM_BYTES,
    VIDEO_KEY_EXTENSION,
    AspectClass,
)
from app.video.models import Video


# ── Storage locator ──────────────────────────────────────────────────────────

@dataclass(frozen=True)
class StorageLocator:
    """Where an uploaded video lives: persisted on the record as "bucket,key"."""

    bucket: str
    key: str

    def encode(self) -> str:
        return f"{self.bucket}{LOCATOR_SEPARATOR}{self.key}"

    @classmethod
    def decode(cls, raw: str) -> StorageLocator:
        parts = raw.split(LOCATOR_SEPARATOR)
        if len(parts) != 2:
            raise InvalidStorageLocator()
        return cls(bucket=parts[0], key=parts[1])


# ── Aspect ratio / keys ──────────────────────────────────────────────────────

def classify_aspect_ratio(ratio: float) -> AspectClass:
    low, high = LANDSCAPE_RATIO_RANGE
    if low <= ratio <= high:
        return AspectClass.LANDSCAPE
    low, high = PORTRAIT_RATIO_RANGE
    if low <= ratio <= high:
        return AspectClass.PORTRAIT
    return AspectClass.OTHER


def classify_dimensions(width: int, height: int) -> AspectClass:
    return classify_aspect_ratio(width / height)


def build_storage_key(aspect: AspectClass) -> str:
    """Random object key under the orientation prefix.

    Keys are not checked for existence before upload: 256 bits of entropy
    make a collision negligible.
    """
    token = secrets.token_urlsafe(STORAGE_KEY_RANDOM_BYTES)
    return f"{aspect.value}/{token}{VIDEO_KEY_EXTENSION}"


def random_asset_name(extension: str) -> str:
    """Random file name for locally served assets (thumbnails)."""
    return f"{secrets.token_urlsafe(STORAGE_KEY_RANDOM_BYTES)}.{extension}"


# ── Persistence ──────────────────────────────────────────────────────────────

async def create_video(
    db: AsyncSession,
    *,
    user_id: uuid.UUID,
    title: str,
    description: str | None = None,
) -> Video:
    """Create a new video draft with no media attached."""
    video = Video(user_id=user_id, title=title, description=description)
    db.add(video)
    await db.flush()
    await db.refresh(video)
    return video


async def get_video_by_id(
    db: AsyncSession,
    video_id: uuid.UUID,
) -> Video | None:
    result = await db.execute(select(Video).where(Video.id == video_id))
    return result.scalar_one_or_none()


async def get_videos_by_user(
    db: AsyncSession,
    user_id: uuid.UUID,
    *,
    page: int = 1,
    page_size: int = 20,
) -> tuple[list[Video], int]:
    """Fetch paginated videos for a user, newest first."""
    count_stmt = select(func.count()).select_from(Video).where(Video.user_id == user_id)
    total = (await db.execute(count_stmt)).scalar() or 0

    offset = (page - 1) * page_size
    result = await db.execute(
        select(Video)
        .where(Video.user_id == user_id)
        .order_by(Video.created_at.desc())
        .offset(offset)
        .limit(page_size)
    )
    return list(result.scalars().all()), total


async def save_video(db: AsyncSession, video: Video) -> Video:
    """Flush pending changes on a video and reload server-side columns."""
    db.add(video)
    await db.flush()
    await db.refresh(video)
    return video


async def delete_video(
    db: AsyncSession,
    video_id: uuid.UUID,
    user_id: uuid.UUID,
) -> bool:
    """Delete a video owned by the user. Returns True if deleted."""
    video = await get_video_by_id(db, video_id)
    if video is None or video.user_id != user_id:
        return False
    await db.delete(video)
    await db.flush()
    return True


class SqlVideoRepository:
    """Metadata store used by the ingestion pipeline, bound to one session."""

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def get_video(self, video_id: uuid.UUID) -> Video | None:
        return await get_video_by_id(self._db, video_id)

    async def update_video(self, video: Video) -> Video:
        return await save_video(self._db, video)
