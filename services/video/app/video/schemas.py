"""
Video — Pydantic V2 request/response schemas.
"""
from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


# ── Base ─────────────────────────────────────────────────────────────────────

class _Base(BaseModel):
    model_config = ConfigDict(
        str_strip_whitespace=True,
        extra="forbid",
    )


# ── Requests ─────────────────────────────────────────────────────────────────

class CreateVideoRequest(_Base):
    """Create a video draft; the media is uploaded afterwards."""
    title: str = Field(min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=5000)


# ── Responses ────────────────────────────────────────────────────────────────

class VideoResponse(_Base):
    """Video record as returned to clients.

    ``video_url`` is a short-lived presigned URL, never the stored locator.
    """
    model_config = ConfigDict(
        str_strip_whitespace=True,
        extra="forbid",
        from_attributes=True,
    )

    id: uuid.UUID
    user_id: uuid.UUID
    title: str
    description: str | None = None
    thumbnail_url: str | None = None
    video_url: str | None = None
    created_at: datetime
    updated_at: datetime | None = None


class VideoListResponse(_Base):
    items: list[VideoResponse]
    total: int
    page: int
    page_size: int


class MessageResponse(_Base):
    message: str
